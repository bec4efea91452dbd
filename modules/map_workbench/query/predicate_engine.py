"""Query Predicate Engine

Compiles an ordered AND/OR query group into a predicate bound to one dataset's
schema and evaluates it against features.

Compilation performs every check that can fail: empty groups, unknown fields,
operators that do not apply to the field type, malformed combinators and
criterion values that cannot be coerced. Evaluation is then pure and total.
"""

from datetime import date, datetime, timezone
from typing import Any, List, Optional
import logging
import math

from ..exceptions import QueryValidationError
from ..models import Dataset, Feature, FieldType
from .query_models import (
    Combinator, CompiledCriterion, NEGATIVE_OPERATORS, OPERATORS_BY_FIELD_TYPE,
    Operator, Predicate, QueryGroup
)

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "no", "n", "0"}


class QueryPredicateEngine:
    """Builds and evaluates attribute query predicates."""

    def compile(self, group: QueryGroup, dataset: Dataset) -> Predicate:
        """Compile a query group against a dataset schema.

        Args:
            group: Ordered criteria with combinators
            dataset: Dataset whose schema the criteria must satisfy

        Returns:
            Predicate ready for evaluation

        Raises:
            QueryValidationError: If the group is empty or any clause is invalid
        """
        if group.is_empty():
            raise QueryValidationError("Query group is empty", {"dataset_id": dataset.id})

        errors: List[str] = []
        compiled: List[CompiledCriterion] = []
        last_index = len(group.clauses) - 1

        for index, clause in enumerate(group.clauses):
            criterion = clause.criterion

            if index < last_index and clause.combinator is None:
                errors.append(f"Clause {index + 1} ({criterion.field}) is missing an AND/OR combinator")
            if index == last_index and clause.combinator is not None:
                errors.append(f"Last clause ({criterion.field}) cannot carry a combinator")

            field = dataset.get_field(criterion.field)
            if field is None:
                errors.append(f"Field '{criterion.field}' not found in dataset '{dataset.id}'")
                continue

            allowed = OPERATORS_BY_FIELD_TYPE[field.field_type]
            if criterion.operator not in allowed:
                errors.append(
                    f"Operator '{criterion.operator.value}' cannot be applied to "
                    f"{field.field_type.value} field '{field.name}'"
                )
                continue

            try:
                value = coerce_criterion_value(criterion.value, field.field_type)
            except ValueError as e:
                errors.append(f"Invalid value for field '{field.name}': {e}")
                continue

            compiled.append(CompiledCriterion(
                field_name=field.name,
                field_type=field.field_type,
                operator=criterion.operator,
                value=value,
                combinator=clause.combinator
            ))

        if errors:
            logger.debug(f"Query compilation failed for {dataset.id}: {errors}")
            raise QueryValidationError(
                errors[0] if len(errors) == 1 else f"Query has {len(errors)} invalid clauses: {errors[0]}",
                {"dataset_id": dataset.id},
                validation_errors=errors
            )

        predicate = Predicate(dataset_id=dataset.id, clauses=tuple(compiled), description=group.describe())
        logger.debug(f"Compiled predicate for {dataset.id}: {predicate.description}")
        return predicate

    def evaluate(self, predicate: Predicate, feature: Feature) -> bool:
        """Evaluate a predicate against one feature with a strict left-to-right fold."""
        result: Optional[bool] = None
        previous: Optional[Combinator] = None

        for clause in predicate.clauses:
            if result is None:
                result = evaluate_criterion(clause, feature)
            elif previous == Combinator.AND:
                result = result and evaluate_criterion(clause, feature)
            else:
                result = result or evaluate_criterion(clause, feature)
            previous = clause.combinator

        return bool(result)

    def run(self, predicate: Predicate, dataset: Dataset) -> List[Feature]:
        """Return matching features of a dataset in their original order."""
        if predicate.dataset_id != dataset.id:
            logger.warning(
                f"Predicate compiled for {predicate.dataset_id} applied to dataset {dataset.id}"
            )
        matches = [feature for feature in dataset.features if self.evaluate(predicate, feature)]
        logger.debug(f"Predicate matched {len(matches)}/{dataset.feature_count} features in {dataset.id}")
        return matches

    def unique_values(self, dataset: Dataset, field_name: str, limit: int = 100) -> List[Any]:
        """Sorted distinct non-null values of a field, for value suggestions.

        Raises:
            QueryValidationError: If the field is not in the schema
        """
        field = dataset.get_field(field_name)
        if field is None:
            raise QueryValidationError(
                f"Field '{field_name}' not found in dataset '{dataset.id}'",
                {"dataset_id": dataset.id}
            )

        values = set()
        for feature in dataset.features:
            value = _lookup_attribute(feature, field.name)
            if value is not None:
                values.add(value)

        try:
            ordered = sorted(values)
        except TypeError:
            ordered = sorted(values, key=str)
        return ordered[:limit]


def evaluate_criterion(clause: CompiledCriterion, feature: Feature) -> bool:
    """Evaluate one compiled criterion against a feature.

    A missing or null attribute satisfies only the negative operators. A value
    that cannot be coerced to the field type fails this criterion alone.
    """
    raw = _lookup_attribute(feature, clause.field_name)
    if raw is None:
        return clause.operator in NEGATIVE_OPERATORS

    if clause.field_type == FieldType.STRING:
        return _compare_strings(clause.operator, str(raw).casefold(), clause.value)

    try:
        actual = coerce_attribute_value(raw, clause.field_type)
    except ValueError:
        return False

    if clause.field_type == FieldType.BOOLEAN:
        if clause.operator == Operator.EQUALS:
            return actual == clause.value
        return actual != clause.value

    return _compare_ordered(clause.operator, actual, clause.value)


def coerce_criterion_value(value: Any, field_type: FieldType) -> Any:
    """Coerce a criterion value at compile time; string values are case-folded."""
    if value is None:
        raise ValueError("value is required")
    if field_type == FieldType.STRING:
        return str(value).casefold()
    return coerce_attribute_value(value, field_type)


def coerce_attribute_value(value: Any, field_type: FieldType) -> Any:
    """Coerce an attribute value to the comparable form of its field type.

    Raises:
        ValueError: If the value cannot be represented in the field type
    """
    if field_type == FieldType.NUMBER:
        return _to_number(value)
    if field_type == FieldType.DATE:
        return _to_datetime(value)
    if field_type == FieldType.BOOLEAN:
        return _to_bool(value)
    return str(value)


def _lookup_attribute(feature: Feature, field_name: str) -> Any:
    if field_name in feature.attributes:
        return feature.attributes[field_name]
    lowered = field_name.lower()
    for key, value in feature.attributes.items():
        if key.lower() == lowered:
            return value
    return None


def _compare_strings(operator: Operator, actual: str, expected: str) -> bool:
    if operator == Operator.CONTAINS:
        return expected in actual
    if operator == Operator.NOT_CONTAINS:
        return expected not in actual
    if operator == Operator.EQUALS:
        return actual == expected
    if operator == Operator.NOT_EQUALS:
        return actual != expected
    if operator == Operator.STARTS_WITH:
        return actual.startswith(expected)
    if operator == Operator.ENDS_WITH:
        return actual.endswith(expected)
    return False


def _compare_ordered(operator: Operator, actual: Any, expected: Any) -> bool:
    if operator == Operator.EQUALS:
        return actual == expected
    if operator == Operator.NOT_EQUALS:
        return actual != expected
    if operator == Operator.GREATER_THAN:
        return actual > expected
    if operator == Operator.LESS_THAN:
        return actual < expected
    if operator == Operator.GREATER_OR_EQUAL:
        return actual >= expected
    if operator == Operator.LESS_OR_EQUAL:
        return actual <= expected
    return False


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty string is not a number")
        try:
            number = float(text)
        except ValueError:
            raise ValueError(f"{value!r} is not a number") from None
    else:
        raise ValueError(f"{type(value).__name__} is not a number")
    if math.isnan(number):
        raise ValueError("NaN is not comparable")
    return number


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError("boolean is not a date")
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as feature services deliver dates
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ValueError(f"{value!r} is out of the supported date range") from None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"{value!r} is not an ISO date") from None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"{type(value).__name__} is not a date")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"{value!r} is not a boolean")
