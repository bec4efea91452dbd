"""Query Builder Models

Pydantic models for multi-criterion attribute queries: operators, combinators,
criteria, ordered query groups and the compiled predicate evaluated against
dataset features.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import FieldType


class Operator(str, Enum):
    """Comparison operators available to a criterion."""
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_OR_EQUAL = "greaterOrEqual"
    LESS_OR_EQUAL = "lessOrEqual"

    @classmethod
    def _missing_(cls, value: Any) -> Optional["Operator"]:
        # Accept the query builder's short names and snake_case spellings
        if isinstance(value, str):
            key = value.strip().lower().replace("_", "-")
            return _OPERATOR_ALIASES.get(key)
        return None


_OPERATOR_ALIASES: Dict[str, Operator] = {
    "contains": Operator.CONTAINS,
    "not-contains": Operator.NOT_CONTAINS,
    "notcontains": Operator.NOT_CONTAINS,
    "equals": Operator.EQUALS,
    "not-equals": Operator.NOT_EQUALS,
    "notequals": Operator.NOT_EQUALS,
    "starts": Operator.STARTS_WITH,
    "starts-with": Operator.STARTS_WITH,
    "startswith": Operator.STARTS_WITH,
    "ends": Operator.ENDS_WITH,
    "ends-with": Operator.ENDS_WITH,
    "endswith": Operator.ENDS_WITH,
    "greater": Operator.GREATER_THAN,
    "greater-than": Operator.GREATER_THAN,
    "greaterthan": Operator.GREATER_THAN,
    "less": Operator.LESS_THAN,
    "less-than": Operator.LESS_THAN,
    "lessthan": Operator.LESS_THAN,
    "greater-equal": Operator.GREATER_OR_EQUAL,
    "greater-or-equal": Operator.GREATER_OR_EQUAL,
    "greaterorequal": Operator.GREATER_OR_EQUAL,
    "less-equal": Operator.LESS_OR_EQUAL,
    "less-or-equal": Operator.LESS_OR_EQUAL,
    "lessorequal": Operator.LESS_OR_EQUAL,
}


class Combinator(str, Enum):
    """Logical connective joining a criterion to the next one."""
    AND = "AND"
    OR = "OR"

    @classmethod
    def _missing_(cls, value: Any) -> Optional["Combinator"]:
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


STRING_OPERATORS: FrozenSet[Operator] = frozenset({
    Operator.CONTAINS, Operator.NOT_CONTAINS, Operator.EQUALS,
    Operator.NOT_EQUALS, Operator.STARTS_WITH, Operator.ENDS_WITH,
})

NUMERIC_OPERATORS: FrozenSet[Operator] = frozenset({
    Operator.EQUALS, Operator.NOT_EQUALS, Operator.GREATER_THAN,
    Operator.LESS_THAN, Operator.GREATER_OR_EQUAL, Operator.LESS_OR_EQUAL,
})

BOOLEAN_OPERATORS: FrozenSet[Operator] = frozenset({Operator.EQUALS, Operator.NOT_EQUALS})

OPERATORS_BY_FIELD_TYPE: Dict[FieldType, FrozenSet[Operator]] = {
    FieldType.STRING: STRING_OPERATORS,
    FieldType.NUMBER: NUMERIC_OPERATORS,
    FieldType.DATE: NUMERIC_OPERATORS,
    FieldType.BOOLEAN: BOOLEAN_OPERATORS,
}

# Operators a missing attribute value satisfies
NEGATIVE_OPERATORS: FrozenSet[Operator] = frozenset({Operator.NOT_EQUALS, Operator.NOT_CONTAINS})


class Criterion(BaseModel):
    """A single field/operator/value test."""
    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="Field name in the target dataset")
    operator: Operator = Field(..., description="Comparison operator")
    value: Any = Field(..., description="Value compared against the attribute")


class QueryClause(BaseModel):
    """A criterion and the combinator joining it to the following criterion."""
    model_config = ConfigDict(frozen=True)

    criterion: Criterion
    combinator: Optional[Combinator] = Field(None, description="AND/OR to the next clause; None on the last")


class QueryGroup(BaseModel):
    """Ordered sequence of criteria chained by AND/OR.

    Evaluation is a strict left-to-right fold; AND does not bind tighter than OR.
    """
    model_config = ConfigDict(frozen=True)

    clauses: Tuple[QueryClause, ...] = Field(default_factory=tuple)

    @classmethod
    def from_criteria(cls, criteria: List[Union[Dict[str, Any], Criterion, QueryClause]]) -> "QueryGroup":
        """Build a group from dictionaries carrying ``field``, ``operator``, ``value``
        and an optional ``combinator`` joining each entry to the next one.
        """
        clauses = []
        for item in criteria:
            if isinstance(item, QueryClause):
                clauses.append(item)
            elif isinstance(item, Criterion):
                clauses.append(QueryClause(criterion=item))
            else:
                data = dict(item)
                combinator = data.pop("combinator", None)
                clauses.append(QueryClause(criterion=Criterion(**data), combinator=combinator))
        return cls(clauses=tuple(clauses))

    def is_empty(self) -> bool:
        return len(self.clauses) == 0

    def describe(self) -> str:
        """Render the group as a readable expression, e.g. ``name contains 'park' AND area > 10``."""
        parts = []
        for clause in self.clauses:
            c = clause.criterion
            parts.append(f"{c.field} {c.operator.value} {c.value!r}")
            if clause.combinator is not None:
                parts.append(clause.combinator.value)
        return " ".join(parts)


class CompiledCriterion(BaseModel):
    """Criterion resolved against a dataset schema with its value pre-coerced."""
    model_config = ConfigDict(frozen=True)

    field_name: str = Field(..., description="Canonical field name from the schema")
    field_type: FieldType
    operator: Operator
    value: Any = Field(..., description="Criterion value coerced to the field type")
    combinator: Optional[Combinator] = None

    @field_validator('value')
    @classmethod
    def validate_value_present(cls, v: Any) -> Any:
        if v is None:
            raise ValueError('Compiled criterion value cannot be None')
        return v


class Predicate(BaseModel):
    """A query group compiled against one dataset's schema."""
    model_config = ConfigDict(frozen=True)

    dataset_id: str = Field(..., description="Dataset the predicate was compiled for")
    clauses: Tuple[CompiledCriterion, ...] = Field(..., min_length=1)
    description: str = Field("", description="Readable form of the source query")
