"""Tests for QueryPredicateEngine compilation and left-to-right evaluation."""

import pytest
from pydantic import ValidationError

from modules.map_workbench.exceptions import QueryValidationError
from modules.map_workbench.models import Dataset, Feature, FieldDefinition, FieldType, GeometryKind
from modules.map_workbench.query import (
    Combinator, Criterion, Operator, QueryGroup, QueryPredicateEngine
)


def matching_ids(engine, dataset, criteria):
    predicate = engine.compile(QueryGroup.from_criteria(criteria), dataset)
    return [feature.id for feature in engine.run(predicate, dataset)]


class TestQueryModels:
    """Test operator, combinator and query group models."""

    def test_operator_aliases(self):
        """Test short and snake_case operator spellings."""
        assert Operator("not-equals") == Operator.NOT_EQUALS
        assert Operator("starts") == Operator.STARTS_WITH
        assert Operator("greater_or_equal") == Operator.GREATER_OR_EQUAL
        assert Operator("lessThan") == Operator.LESS_THAN

    def test_unknown_operator(self):
        """Test unknown operators are rejected."""
        with pytest.raises(ValueError):
            Operator("between")

    def test_combinator_case_insensitive(self):
        """Test combinators accept any case."""
        assert Combinator("and") == Combinator.AND
        assert Combinator(" Or ") == Combinator.OR

    def test_from_criteria(self):
        """Test building a group from dictionaries."""
        group = QueryGroup.from_criteria([
            {"field": "NAME", "operator": "contains", "value": "park", "combinator": "and"},
            Criterion(field="HECTARES", operator=Operator.GREATER_THAN, value=5),
        ])

        assert len(group.clauses) == 2
        assert group.clauses[0].combinator == Combinator.AND
        assert group.clauses[1].combinator is None
        assert group.describe() == "NAME contains 'park' AND HECTARES greaterThan 5"

    def test_from_criteria_invalid_operator(self):
        """Test malformed entries raise pydantic validation errors."""
        with pytest.raises(ValidationError):
            QueryGroup.from_criteria([{"field": "NAME", "operator": "resembles", "value": "x"}])


class TestCompile:
    """Test predicate compilation against dataset schemas."""

    @pytest.fixture
    def engine(self):
        return QueryPredicateEngine()

    def test_empty_group(self, engine, parks_dataset):
        """Test an empty group is a validation error."""
        with pytest.raises(QueryValidationError) as exc_info:
            engine.compile(QueryGroup(), parks_dataset)

        assert "empty" in exc_info.value.message

    def test_unknown_field(self, engine, parks_dataset):
        """Test criteria must reference schema fields."""
        group = QueryGroup.from_criteria([{"field": "COLOUR", "operator": "equals", "value": "red"}])

        with pytest.raises(QueryValidationError) as exc_info:
            engine.compile(group, parks_dataset)

        assert "Field 'COLOUR' not found" in exc_info.value.message

    def test_operator_type_mismatch(self, engine, parks_dataset):
        """Test string operators are refused on numeric and boolean fields."""
        group = QueryGroup.from_criteria([
            {"field": "HECTARES", "operator": "contains", "value": "1", "combinator": "OR"},
            {"field": "PUBLIC", "operator": "greaterThan", "value": True},
        ])

        with pytest.raises(QueryValidationError) as exc_info:
            engine.compile(group, parks_dataset)

        assert len(exc_info.value.validation_errors) == 2
        assert "cannot be applied to number field 'HECTARES'" in exc_info.value.validation_errors[0]
        assert "boolean field 'PUBLIC'" in exc_info.value.validation_errors[1]

    def test_uncoercible_value(self, engine, parks_dataset):
        """Test criterion values are coerced to the field type at compile time."""
        group = QueryGroup.from_criteria([{"field": "HECTARES", "operator": "greaterThan", "value": "lots"}])

        with pytest.raises(QueryValidationError) as exc_info:
            engine.compile(group, parks_dataset)

        assert "Invalid value for field 'HECTARES'" in exc_info.value.message

    def test_missing_combinator(self, engine, parks_dataset):
        """Test every clause but the last needs a combinator."""
        group = QueryGroup.from_criteria([
            {"field": "NAME", "operator": "contains", "value": "park"},
            {"field": "HECTARES", "operator": "greaterThan", "value": 5},
        ])

        with pytest.raises(QueryValidationError) as exc_info:
            engine.compile(group, parks_dataset)

        assert "missing an AND/OR combinator" in exc_info.value.message

    def test_trailing_combinator(self, engine, parks_dataset):
        """Test the last clause cannot carry a combinator."""
        group = QueryGroup.from_criteria([
            {"field": "NAME", "operator": "contains", "value": "park", "combinator": "AND"},
        ])

        with pytest.raises(QueryValidationError):
            engine.compile(group, parks_dataset)

    def test_compile_resolves_field_case(self, engine, parks_dataset):
        """Test field names resolve case-insensitively to the schema name."""
        group = QueryGroup.from_criteria([{"field": "hectares", "operator": "lessThan", "value": "10"}])

        predicate = engine.compile(group, parks_dataset)

        assert predicate.clauses[0].field_name == "HECTARES"
        assert predicate.clauses[0].value == 10.0
        assert predicate.dataset_id == "parks"


class TestEvaluate:
    """Test predicate evaluation semantics."""

    @pytest.fixture
    def engine(self):
        return QueryPredicateEngine()

    def test_single_criterion(self, engine, parks_dataset):
        """Test a single contains criterion, case-insensitive."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "contains", "value": "PARK"}
        ]) == ["1", "3"]

    def test_and_then_or_folds_left(self, engine, parks_dataset):
        """Test [c1 AND c2 OR c3] is (c1 AND c2) OR c3."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "contains", "value": "park", "combinator": "AND"},
            {"field": "HECTARES", "operator": "greaterThan", "value": 40, "combinator": "OR"},
            {"field": "OWNER", "operator": "equals", "value": "trust"},
        ]) == ["2"]

    def test_or_then_and_folds_left(self, engine, parks_dataset):
        """Test [c1 OR c2 AND c3] is (c1 OR c2) AND c3, not c1 OR (c2 AND c3)."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "contains", "value": "park", "combinator": "OR"},
            {"field": "HECTARES", "operator": "greaterThan", "value": 40, "combinator": "AND"},
            {"field": "OWNER", "operator": "equals", "value": "trust"},
        ]) == ["2"]

    def test_string_operators(self, engine, parks_dataset):
        """Test equals, startsWith, endsWith and notContains."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "equals", "value": "riverside park"}
        ]) == ["1"]
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "startsWith", "value": "h"}
        ]) == ["2", "4"]
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "endsWith", "value": "GREEN"}
        ]) == ["3"]
        assert matching_ids(engine, parks_dataset, [
            {"field": "NAME", "operator": "notContains", "value": "park"}
        ]) == ["2", "4"]

    def test_missing_attribute_satisfies_only_negative_operators(self, engine, parks_dataset):
        """Test a null attribute fails equals and passes notEquals."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "OWNER", "operator": "notEquals", "value": "council"}
        ]) == ["2", "4"]
        assert "4" not in matching_ids(engine, parks_dataset, [
            {"field": "OWNER", "operator": "contains", "value": ""}
        ])

    def test_numeric_comparisons(self, engine, parks_dataset):
        """Test ordered numeric operators."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "HECTARES", "operator": "greaterOrEqual", "value": 12.5}
        ]) == ["1", "2"]
        assert matching_ids(engine, parks_dataset, [
            {"field": "HECTARES", "operator": "lessOrEqual", "value": "7.9"}
        ]) == ["3", "4"]

    def test_date_comparison(self, engine, parks_dataset):
        """Test date fields compare chronologically."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "OPENED", "operator": "greaterThan", "value": "2022-01-01"}
        ]) == ["1", "3"]

    def test_boolean_equals(self, engine, parks_dataset):
        """Test boolean criteria accept textual values."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "PUBLIC", "operator": "equals", "value": "yes"}
        ]) == ["1", "3"]
        assert matching_ids(engine, parks_dataset, [
            {"field": "PUBLIC", "operator": "notEquals", "value": True}
        ]) == ["2", "4"]

    def test_coercion_failure_fails_only_that_criterion(self, engine):
        """Test an uncoercible attribute fails its criterion, not the whole predicate."""
        dataset = Dataset(
            id="trees", title="Trees", geometry_kind=GeometryKind.POINT,
            fields=[FieldDefinition(name="HEIGHT", field_type=FieldType.NUMBER),
                    FieldDefinition(name="NAME", field_type=FieldType.STRING)],
            features=[
                Feature(id=1, attributes={"HEIGHT": "n/a", "NAME": "Old Oak"}),
                Feature(id=2, attributes={"HEIGHT": "35", "NAME": "Kauri"}),
                Feature(id=3, attributes={"HEIGHT": float("nan"), "NAME": "Rimu"}),
            ]
        )

        assert matching_ids(engine, dataset, [
            {"field": "HEIGHT", "operator": "greaterThan", "value": 10, "combinator": "OR"},
            {"field": "NAME", "operator": "contains", "value": "oak"},
        ]) == ["1", "2"]

    def test_run_preserves_dataset_order(self, engine, parks_dataset):
        """Test matches keep the dataset's feature order."""
        assert matching_ids(engine, parks_dataset, [
            {"field": "HECTARES", "operator": "greaterThan", "value": 0}
        ]) == ["1", "2", "3", "4"]


class TestUniqueValues:
    """Test field value suggestions."""

    def test_unique_values_sorted_without_nulls(self, parks_dataset):
        """Test distinct values are sorted and nulls dropped."""
        engine = QueryPredicateEngine()

        assert engine.unique_values(parks_dataset, "owner") == ["Council", "Trust"]

    def test_unique_values_limit(self, parks_dataset):
        """Test the suggestion list is capped."""
        engine = QueryPredicateEngine()

        assert engine.unique_values(parks_dataset, "HECTARES", limit=2) == [3.2, 7.9]

    def test_unique_values_unknown_field(self, parks_dataset):
        """Test unknown fields raise QueryValidationError."""
        with pytest.raises(QueryValidationError):
            QueryPredicateEngine().unique_values(parks_dataset, "COLOUR")
