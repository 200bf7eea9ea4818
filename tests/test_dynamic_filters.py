from datetime import date

import pytest

from app.services.dynamic_filters import (
    FilterCondition,
    FilterValidationError,
    as_condition,
    build_predicate,
    coerce_value,
    describe_condition,
    filters_to_payload,
    is_empty_filter,
    parse_filter_payload,
)
from app.services.resource_config import FieldDescriptor, ValueType, enum_field


@pytest.fixture()
def price_field():
    return FieldDescriptor(key="price", label="Price", value_type=ValueType.number)


@pytest.fixture()
def status_field():
    return enum_field("status", {"open": "Open", "done": "Done"}, label="Status")


def test_empty_filter_tokens():
    assert is_empty_filter(None)
    assert is_empty_filter("")
    assert is_empty_filter("all")
    assert is_empty_filter(FilterCondition("eq", "all"))
    assert is_empty_filter({"from": "", "to": None})
    assert not is_empty_filter(False)
    assert not is_empty_filter(0)
    assert not is_empty_filter("open")


def test_coerce_value_by_type():
    assert coerce_value("1,200", ValueType.number) == 1200
    assert coerce_value("2.5", ValueType.number) == 2.5
    assert coerce_value("yes", ValueType.boolean) is True
    assert coerce_value("2024-03-01T10:00:00", ValueType.date) == date(2024, 3, 1)
    with pytest.raises(FilterValidationError):
        coerce_value("soon", ValueType.date)
    with pytest.raises(FilterValidationError):
        coerce_value(True, ValueType.number)


def test_as_condition_normalizes_aliases():
    assert as_condition({"op": ">=", "value": 3}) == FilterCondition("gte", 3)
    assert as_condition("open") == FilterCondition("eq", "open")
    with pytest.raises(FilterValidationError):
        as_condition({"operator": "regex", "value": "x"})


def test_number_comparisons(price_field):
    greater = build_predicate(price_field, {"operator": "gt", "value": "10"})
    assert greater(12)
    assert not greater(10)
    assert not greater(None)

    between = build_predicate(price_field, FilterCondition("between", [5, None]))
    assert between(5)
    assert not between(4.99)


def test_not_equal_matches_missing_values(price_field):
    predicate = build_predicate(price_field, FilterCondition("ne", 3))
    assert predicate(None)
    assert predicate(4)
    assert not predicate(3)


def test_in_operator_validates_enum_options(status_field):
    predicate = build_predicate(status_field, FilterCondition("in", "open,done"))
    assert predicate("done")
    with pytest.raises(FilterValidationError):
        build_predicate(status_field, FilterCondition("in", ["open", "archived"]))


def test_operator_must_be_allowed_for_field(status_field):
    with pytest.raises(FilterValidationError):
        build_predicate(status_field, FilterCondition("gt", "open"))


def test_contains_is_case_insensitive():
    descriptor = FieldDescriptor(key="name")
    predicate = build_predicate(descriptor, {"operator": "like", "value": "LAP"})
    assert predicate("Laptop Pro")
    assert not predicate(None)


def test_describe_condition(status_field, price_field):
    assert describe_condition(status_field, "open") == "Status: Open"
    assert describe_condition(price_field, FilterCondition("gte", 10)) == (
        "Price greater than or equal 10"
    )
    assert describe_condition(price_field, FilterCondition("between", [1, 5])) == "Price between 1 - 5"


def test_filters_payload_round_trip_skips_empty_values():
    payload = filters_to_payload(
        {"status": "open", "role": "all", "price": FilterCondition("lt", 5)}
    )
    assert payload == {"status": "open", "price": {"operator": "lt", "value": 5}}

    parsed = parse_filter_payload('{"status": "open", "price": {"op": "<", "value": 5}}')
    assert parsed == {"status": "open", "price": FilterCondition("lt", 5)}


def test_parse_filter_payload_rejects_bad_input():
    assert parse_filter_payload(None) == {}
    assert parse_filter_payload("") == {}
    with pytest.raises(FilterValidationError):
        parse_filter_payload("{not json")
    with pytest.raises(FilterValidationError):
        parse_filter_payload("[1, 2]")
