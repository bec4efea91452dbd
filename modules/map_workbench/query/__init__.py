"""Query Predicate Engine for the Map Workbench

Turns user-built multi-criterion filters with AND/OR combinators into predicates
evaluated against dataset features.
"""

from .query_models import (
    Operator,
    Combinator,
    Criterion,
    QueryClause,
    QueryGroup,
    CompiledCriterion,
    Predicate,
    STRING_OPERATORS,
    NUMERIC_OPERATORS,
    BOOLEAN_OPERATORS,
    OPERATORS_BY_FIELD_TYPE
)
from .predicate_engine import QueryPredicateEngine, evaluate_criterion

__all__ = [
    # Models
    'Operator',
    'Combinator',
    'Criterion',
    'QueryClause',
    'QueryGroup',
    'CompiledCriterion',
    'Predicate',
    'STRING_OPERATORS',
    'NUMERIC_OPERATORS',
    'BOOLEAN_OPERATORS',
    'OPERATORS_BY_FIELD_TYPE',
    # Engine
    'QueryPredicateEngine',
    'evaluate_criterion'
]
