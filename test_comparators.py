"""Tests for built-in comparators and the rule registry."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from shapediff import (
    CATALOGUE,
    AlwaysEqualComparator,
    CaseInsensitiveComparator,
    ComparatorSpec,
    DateOnlyComparator,
    DateTimeToleranceComparator,
    DecimalToleranceComparator,
    DifferenceCollector,
    DifferenceKind,
    FieldMappingComparator,
    IgnoreNullComparator,
    RuleError,
    RuleRegistry,
    SerializedEqualityComparator,
    UnorderedCollectionComparator,
)
from shapediff.comparators import parse_datetime
from shapediff.rules import FunctionComparator, as_comparator
from shapediff.utils import import_object, parse_duration


class ComparatorTest:
    """Shared helpers for comparator tests."""

    def setup_method(self):
        self.differences = DifferenceCollector()

    def run(self, comparator, reference, candidate, path="field"):
        return comparator.compare(reference, candidate, path, self.differences)


class TestNullHandling(ComparatorTest):
    """Test that comparators handle None combinations themselves."""

    @pytest.mark.parametrize("comparator", [
        DateOnlyComparator(),
        DecimalToleranceComparator(),
        CaseInsensitiveComparator(),
        UnorderedCollectionComparator(),
        DateTimeToleranceComparator("1s"),
        SerializedEqualityComparator(),
        FieldMappingComparator({"a": "b"}),
    ])
    def test_none_combinations(self, comparator):
        assert self.run(comparator, None, None) is True
        assert len(self.differences) == 0

        assert self.run(comparator, None, "x") is False
        assert self.run(comparator, "x", None) is False
        assert len(self.differences) == 2
        assert all(d.kind == DifferenceKind.VALUE_MISMATCH for d in self.differences)


class TestDateOnly(ComparatorTest):

    def test_ignores_time_of_day(self):
        comparator = DateOnlyComparator()
        assert self.run(comparator, datetime(2025, 1, 1, 10, 0), "2025-01-01T23:59:00Z") is True
        assert self.run(comparator, date(2025, 1, 1), datetime(2025, 1, 1, 5, 0)) is True

    def test_different_days(self):
        assert self.run(DateOnlyComparator(), datetime(2025, 1, 1), datetime(2025, 1, 2)) is False
        diff = list(self.differences)[0]
        assert diff.expected == date(2025, 1, 1)
        assert diff.actual == date(2025, 1, 2)

    def test_unparseable(self):
        assert self.run(DateOnlyComparator(), "yesterday", "2025-01-01") is False
        assert "Cannot parse" in list(self.differences)[0].message


class TestDecimalTolerance(ComparatorTest):

    def test_within_tolerance(self):
        comparator = DecimalToleranceComparator("0.01")
        assert self.run(comparator, 100.00, 100.005) is True
        assert self.run(comparator, Decimal("1.00"), 1) is True

    def test_exceeds_tolerance(self):
        assert self.run(DecimalToleranceComparator(0.01), 100, 100.02) is False
        assert "exceeds tolerance" in list(self.differences)[0].message

    def test_not_a_number(self):
        assert self.run(DecimalToleranceComparator(), "abc", 1) is False
        assert "Cannot convert" in list(self.differences)[0].message

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError):
            DecimalToleranceComparator("-0.1")


class TestCaseInsensitive(ComparatorTest):

    def test_case(self):
        assert self.run(CaseInsensitiveComparator(), "Hello", "hELLO") is True
        assert self.run(CaseInsensitiveComparator(), "Hello", "World") is False

    def test_whitespace(self):
        assert self.run(CaseInsensitiveComparator(), " a ", "A") is False
        assert self.run(CaseInsensitiveComparator(trim_whitespace=True), " a ", "A") is True


class TestUnordered(ComparatorTest):

    def test_order_ignored(self):
        assert self.run(UnorderedCollectionComparator(), [1, 2, 3], [3, 1, 2]) is True
        assert self.run(UnorderedCollectionComparator(), ["a", "a", "b"], ["b", "a", "a"]) is True

    def test_length_mismatch(self):
        assert self.run(UnorderedCollectionComparator(), [1, 2], [1]) is False
        assert list(self.differences)[0].kind == DifferenceKind.COUNT_MISMATCH

    def test_different_items(self):
        assert self.run(UnorderedCollectionComparator(), [1, 2], [1, 3]) is False
        assert self.run(UnorderedCollectionComparator(), ["a", "a"], ["a", "b"]) is False

    def test_requires_collections(self):
        assert self.run(UnorderedCollectionComparator(), "ab", ["a", "b"]) is False


class TestAlwaysEqualAndIgnoreNull(ComparatorTest):

    def test_always_equal(self):
        assert self.run(AlwaysEqualComparator(), 1, "completely different") is True
        assert self.run(AlwaysEqualComparator(), None, 1) is True
        assert len(self.differences) == 0

    def test_ignore_null(self):
        assert self.run(IgnoreNullComparator(), None, 5) is True
        assert self.run(IgnoreNullComparator(), 5, None) is True
        assert self.run(IgnoreNullComparator(), 5, 5.0) is True
        assert self.run(IgnoreNullComparator(), 5, 6) is False
        assert len(self.differences) == 1


class TestDateTimeTolerance(ComparatorTest):

    def test_within_window(self):
        comparator = DateTimeToleranceComparator("5s")
        assert self.run(comparator, "2025-02-02T10:30:00Z", "2025-02-02T10:30:03Z") is True
        assert self.run(comparator, datetime(2025, 2, 2, 10, 30), datetime(2025, 2, 2, 10, 29, 56)) is True

    def test_outside_window(self):
        comparator = DateTimeToleranceComparator(timedelta(seconds=1))
        assert self.run(comparator, datetime(2025, 2, 2, 10, 30), datetime(2025, 2, 2, 10, 30, 2)) is False
        assert "exceeds tolerance" in list(self.differences)[0].message

    def test_numeric_tolerance_in_seconds(self):
        assert DateTimeToleranceComparator(90).tolerance == timedelta(seconds=90)

    def test_naive_against_aware(self):
        comparator = DateTimeToleranceComparator("1h")
        assert self.run(comparator, "2025-02-02T10:30:00", "2025-02-02T10:30:00+02:00") is False
        assert "Cannot compare" in list(self.differences)[0].message


@dataclass
class Address:
    street: str
    zip: Optional[str] = None


class TestSerializedEquality(ComparatorTest):

    def test_key_order_ignored(self):
        assert self.run(SerializedEqualityComparator(), {"a": 1, "b": 2}, {"b": 2, "a": 1}) is True

    def test_dataclass_against_mapping(self):
        comparator = SerializedEqualityComparator()
        assert self.run(comparator, Address("Main"), {"street": "Main", "zip": None}) is True
        assert self.run(comparator, Address("Main"), {"street": "High", "zip": None}) is False


@dataclass
class Discount:
    Total: Optional[Decimal] = None
    AfterTax: Optional[Decimal] = None


@dataclass
class Price:
    Total: Decimal
    AfterDiscount: Optional[Discount] = None


class TestFieldMapping(ComparatorTest):

    def setup_method(self):
        super().setup_method()
        self.comparator = FieldMappingComparator({
            "Total": "Total",
            "AfterDiscount.Total": "AfterDiscount.AfterTax",
        })

    def test_renamed_field_matches(self):
        reference = Price(Decimal("100"), Discount(Total=Decimal("90")))
        candidate = Price(Decimal("100"), Discount(AfterTax=Decimal("90")))
        assert self.run(self.comparator, reference, candidate, "Price") is True

    def test_renamed_field_differs(self):
        reference = Price(Decimal("100"), Discount(Total=Decimal("90")))
        candidate = Price(Decimal("100"), Discount(AfterTax=Decimal("85")))
        assert self.run(self.comparator, reference, candidate, "Price") is False
        assert [(d.path, d.expected, d.actual) for d in self.differences] == [
            ("Price.AfterDiscount.Total", Decimal("90"), Decimal("85"))
        ]

    def test_works_on_mappings(self):
        reference = {"Total": 100, "AfterDiscount": {"Total": 90}}
        candidate = {"Total": 100.0, "AfterDiscount": {"AfterTax": 90}}
        assert self.run(self.comparator, reference, candidate, "Price") is True

    def test_intermediate_present_on_one_side(self):
        reference = Price(Decimal("100"), Discount(Total=Decimal("90")))
        candidate = Price(Decimal("100"), None)
        assert self.run(self.comparator, reference, candidate, "Price") is False
        assert [(d.path, d.expected, d.actual) for d in self.differences] == [
            ("Price.AfterDiscount", "<exists>", "<missing>")
        ]

    def test_intermediate_absent_on_both_sides(self):
        assert self.run(self.comparator, Price(Decimal("1")), Price(Decimal("1")), "Price") is True

    def test_empty_mapping_rejected(self):
        with pytest.raises(ValueError):
            FieldMappingComparator({})


class TestCatalogue:

    def test_names(self):
        assert set(CATALOGUE) == {
            "date_only",
            "decimal_tolerance",
            "case_insensitive",
            "unordered",
            "always_equal",
            "ignore_null",
            "datetime_tolerance",
            "serialized",
            "field_mapping",
        }

    def test_entries_build_from_params(self):
        comparator = ComparatorSpec(CATALOGUE["decimal_tolerance"], tolerance=0.5).build()
        assert isinstance(comparator, DecimalToleranceComparator)
        assert comparator.tolerance == Decimal("0.5")


class TestRuleRegistry:
    """Test rule resolution precedence."""

    def setup_method(self):
        self.registry = RuleRegistry()

    def test_exact_then_type_wide(self):
        wide = AlwaysEqualComparator()
        exact = CaseInsensitiveComparator()
        self.registry.add(str, wide)
        self.registry.add(str, exact, field="code")
        assert self.registry.resolve(str, "code") is exact
        assert self.registry.resolve(str, "name") is wide
        assert self.registry.resolve(int, "code") is None
        assert self.registry.resolve(None, "code") is None

    def test_path_rules_are_normalized(self):
        comparator = AlwaysEqualComparator()
        self.registry.add_path("Result.Items[0].Price", comparator)
        assert self.registry.resolve_path("result.items.price") is comparator
        assert self.registry.resolve_path("Result.Items") is None

    def test_invalid_selector(self):
        with pytest.raises(RuleError):
            self.registry.add("str", AlwaysEqualComparator())
        with pytest.raises(RuleError):
            self.registry.add_path("[0]", AlwaysEqualComparator())

    def test_not_a_comparator(self):
        with pytest.raises(RuleError):
            self.registry.add(str, 42)

    def test_rules_listing(self):
        self.registry.add(str, AlwaysEqualComparator(), field="code")
        self.registry.add(int, AlwaysEqualComparator())
        assert len(self.registry) == 2
        assert {(r.type, r.field) for r in self.registry.rules} == {(str, "code"), (int, None)}

    def test_function_adapter(self):
        def never_equal(reference, candidate, path, differences):
            return False

        comparator = as_comparator(never_equal)
        assert isinstance(comparator, FunctionComparator)
        assert comparator.describe() == "never_equal"
        assert comparator.compare(1, 1, "x", DifferenceCollector()) is False

    def test_spec_construction_failure(self):
        spec = ComparatorSpec(FieldMappingComparator, {})
        with pytest.raises(RuleError) as exc_info:
            spec.build()
        assert "cannot construct comparator" in str(exc_info.value)


class TestUtils:

    def test_parse_duration(self):
        assert parse_duration("5s") == timedelta(seconds=5)
        assert parse_duration("250ms") == timedelta(milliseconds=250)
        assert parse_duration("2m") == timedelta(minutes=2)
        assert parse_duration("1h") == timedelta(hours=1)
        assert parse_duration("1d") == timedelta(days=1)
        assert parse_duration("") == timedelta(0)
        with pytest.raises(ValueError):
            parse_duration("soon")

    def test_parse_datetime(self):
        assert parse_datetime("2025-02-02T10:30:00Z") == datetime(2025, 2, 2, 10, 30)
        assert parse_datetime("2025-02-02") == datetime(2025, 2, 2)
        assert parse_datetime(date(2025, 2, 2)) == datetime(2025, 2, 2)
        with pytest.raises(ValueError):
            parse_datetime("not a date")

    def test_import_object(self):
        assert import_object("datetime") is datetime
        assert import_object("str") is str
        assert import_object("decimal:Decimal") is Decimal
        with pytest.raises(ValueError):
            import_object("NoSuchType")
