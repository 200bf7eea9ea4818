"""Typed filter conditions evaluated against in-memory record values."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.services.resource_config import FieldDescriptor, ValueType

ValuePredicate = Callable[[Any], bool]


class FilterValidationError(ValueError):
    """Raised when a filter operator or value is invalid for its field."""


@dataclass(frozen=True)
class FilterCondition:
    """An explicit operator filter; plain filter values mean ``eq``."""

    operator: str
    value: Any


OPERATOR_LABELS: dict[str, str] = {
    "eq": "Equals",
    "ne": "Not Equals",
    "contains": "Contains",
    "in": "In",
    "gt": "Greater Than",
    "lt": "Less Than",
    "gte": "Greater Than or Equal",
    "lte": "Less Than or Equal",
    "between": "Between",
}

OPERATOR_ALIASES: dict[str, str] = {
    "=": "eq",
    "==": "eq",
    "!=": "ne",
    ">": "gt",
    "<": "lt",
    ">=": "gte",
    "<=": "lte",
    "like": "contains",
}

DEFAULT_OPERATORS_BY_TYPE: dict[ValueType, set[str]] = {
    ValueType.string: {"eq", "ne", "contains", "in"},
    ValueType.text: {"eq", "ne", "contains"},
    ValueType.url: {"eq", "ne", "contains"},
    ValueType.enum: {"eq", "ne", "in"},
    ValueType.number: {"eq", "ne", "gt", "lt", "gte", "lte", "in", "between"},
    ValueType.boolean: {"eq", "ne"},
    ValueType.date: {"eq", "ne", "gt", "lt", "gte", "lte", "between"},
}

# Filter values that mean "no filter" for a field.
EMPTY_FILTER_TOKENS = {None, "", "all"}
TRUE_TOKENS = {True, "true", "1", 1, "yes", "on"}
FALSE_TOKENS = {False, "false", "0", 0, "no", "off"}


def is_empty_filter(value: Any) -> bool:
    if isinstance(value, FilterCondition):
        return is_empty_filter(value.value)
    if isinstance(value, Mapping):
        if "value" in value:
            return is_empty_filter(value["value"])
        return all(is_empty_filter(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return all(is_empty_filter(item) for item in value)
    try:
        return value in EMPTY_FILTER_TOKENS
    except TypeError:
        return False


def _parse_bool(value: Any) -> bool:
    normalized = str(value).strip().lower() if value is not None else value
    if isinstance(value, bool):
        return value
    if normalized in TRUE_TOKENS:
        return True
    if normalized in FALSE_TOKENS:
        return False
    raise FilterValidationError("Expected a boolean value")


def _parse_number(value: Any) -> int | float | Decimal:
    if isinstance(value, bool):
        raise FilterValidationError("Expected a numeric value")
    if isinstance(value, (int, float, Decimal)):
        return value
    try:
        text = str(value).strip().replace(",", "")
        return float(text) if "." in text or "e" in text.lower() else int(text)
    except (TypeError, ValueError) as exc:
        raise FilterValidationError("Expected a numeric value") from exc


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except (TypeError, ValueError) as exc:
        raise FilterValidationError("Expected an ISO date value (YYYY-MM-DD)") from exc


def coerce_value(value: Any, value_type: ValueType) -> Any:
    """Coerce a raw record or filter value into the comparable type of a field.

    Raises FilterValidationError when the value cannot be coerced.
    """
    if value is None:
        raise FilterValidationError("Value is empty")
    if value_type == ValueType.number:
        return _parse_number(value)
    if value_type == ValueType.boolean:
        return _parse_bool(value)
    if value_type == ValueType.date:
        return _parse_date(value)
    return str(value)


def _coerce_list(value: Any, value_type: ValueType) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        raw_values = list(value)
    elif isinstance(value, str):
        raw_values = [item.strip() for item in value.split(",") if item.strip()]
    else:
        raise FilterValidationError("Expected an array value")

    if not raw_values:
        raise FilterValidationError("Array filter value cannot be empty")

    return [coerce_value(item, value_type) for item in raw_values]


def normalize_operator(operator: Any) -> str:
    if operator is None:
        raise FilterValidationError("Filter operator is required")
    op = str(operator).strip().lower()
    op = OPERATOR_ALIASES.get(op, op)
    if op not in OPERATOR_LABELS:
        raise FilterValidationError(f"Unsupported operator: {operator}")
    return op


def as_condition(filter_value: Any) -> FilterCondition:
    """Normalize a filter value into a FilterCondition.

    Accepts a FilterCondition, a mapping with ``operator``/``op`` and
    ``value`` keys, or a plain value (exact match).
    """
    if isinstance(filter_value, FilterCondition):
        return FilterCondition(normalize_operator(filter_value.operator), filter_value.value)
    if isinstance(filter_value, Mapping):
        operator = filter_value.get("operator", filter_value.get("op", "eq"))
        return FilterCondition(normalize_operator(operator), filter_value.get("value"))
    return FilterCondition("eq", filter_value)


def allowed_operators(descriptor: FieldDescriptor) -> set[str]:
    if descriptor.filter_operators is not None:
        return set(descriptor.filter_operators)
    return DEFAULT_OPERATORS_BY_TYPE.get(
        descriptor.value_type, DEFAULT_OPERATORS_BY_TYPE[ValueType.string]
    )


def _validate_option(descriptor: FieldDescriptor, value: Any) -> None:
    if descriptor.value_type != ValueType.enum:
        return
    options = set(descriptor.option_values())
    values = value if isinstance(value, list) else [value]
    invalid = [item for item in values if str(item) not in options]
    if invalid:
        raise FilterValidationError(
            f"Invalid option(s) for '{descriptor.key}': {', '.join(str(v) for v in invalid)}"
        )


def _between_bounds(value: Any, value_type: ValueType) -> tuple[Any, Any]:
    if isinstance(value, Mapping):
        bounds = (value.get("from", value.get("min")), value.get("to", value.get("max")))
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        bounds = (value[0], value[1])
    else:
        raise FilterValidationError("Between expects [from, to]")
    start = None if is_empty_filter(bounds[0]) else coerce_value(bounds[0], value_type)
    end = None if is_empty_filter(bounds[1]) else coerce_value(bounds[1], value_type)
    if start is None and end is None:
        raise FilterValidationError("Between needs at least one bound")
    return start, end


def build_predicate(descriptor: FieldDescriptor, filter_value: Any) -> ValuePredicate:
    """Build a predicate over a record value for one field filter.

    Raises FilterValidationError for unsupported operators or values that do
    not coerce to the field's type.
    """
    condition = as_condition(filter_value)
    operator = condition.operator
    value_type = descriptor.value_type

    if operator not in allowed_operators(descriptor):
        raise FilterValidationError(
            f"Operator '{operator}' is not allowed for field '{descriptor.key}'"
        )

    if operator == "contains":
        needle = str(condition.value).lower()
        return lambda raw: raw is not None and needle in str(raw).lower()

    if operator == "in":
        options = _coerce_list(condition.value, value_type)
        _validate_option(descriptor, [str(item) for item in options])
        return lambda raw: _safe_coerce(raw, value_type) in options

    if operator == "between":
        start, end = _between_bounds(condition.value, value_type)

        def _in_range(raw: Any) -> bool:
            current = _safe_coerce(raw, value_type)
            if current is None:
                return False
            if start is not None and current < start:
                return False
            if end is not None and current > end:
                return False
            return True

        return _in_range

    expected = coerce_value(condition.value, value_type)
    _validate_option(descriptor, expected)

    comparisons: dict[str, Callable[[Any, Any], bool]] = {
        "eq": lambda current, target: current == target,
        "ne": lambda current, target: current != target,
        "gt": lambda current, target: current > target,
        "lt": lambda current, target: current < target,
        "gte": lambda current, target: current >= target,
        "lte": lambda current, target: current <= target,
    }
    compare = comparisons[operator]

    def _predicate(raw: Any) -> bool:
        current = _safe_coerce(raw, value_type)
        if current is None:
            return operator == "ne"
        return compare(current, expected)

    return _predicate


def _safe_coerce(value: Any, value_type: ValueType) -> Any:
    try:
        return coerce_value(value, value_type)
    except FilterValidationError:
        return None


def describe_condition(descriptor: FieldDescriptor, filter_value: Any) -> str:
    """Human-readable summary of an active filter, used for filter chips."""
    try:
        condition = as_condition(filter_value)
    except FilterValidationError:
        return f"{descriptor.label}: {filter_value}"
    value = condition.value
    if condition.operator == "between":
        if isinstance(value, Mapping):
            bounds = [value.get("from", value.get("min")), value.get("to", value.get("max"))]
        elif isinstance(value, (list, tuple)) and len(value) == 2:
            bounds = list(value)
        else:
            bounds = [value, None]
        start, end = ("" if is_empty_filter(item) else str(item) for item in bounds)
        if start and not end:
            return f"{descriptor.label} from {start}"
        if end and not start:
            return f"{descriptor.label} until {end}"
        return f"{descriptor.label} between {start} - {end}"
    if descriptor.value_type == ValueType.enum and not isinstance(value, (list, tuple)):
        value = descriptor.option_label(value) or value
    if isinstance(value, (list, tuple)):
        value = " - ".join("" if item is None else str(item) for item in value)
    if condition.operator == "eq":
        return f"{descriptor.label}: {value}"
    return f"{descriptor.label} {OPERATOR_LABELS[condition.operator].lower()} {value}"


def filters_to_payload(filters: Mapping[str, Any]) -> dict[str, Any]:
    """Convert active filters into a JSON-serializable mapping."""
    payload: dict[str, Any] = {}
    for key, value in filters.items():
        if is_empty_filter(value):
            continue
        if isinstance(value, FilterCondition):
            payload[key] = {"operator": value.operator, "value": value.value}
        else:
            payload[key] = value
    return payload


def parse_filter_payload(payload: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Parse a ``{field: value | {operator, value}}`` filters payload.

    Accepts a JSON string or an already decoded mapping.
    """
    if payload is None or payload == "":
        return {}
    parsed: Any
    if isinstance(payload, str):
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise FilterValidationError("Invalid JSON in filters payload") from exc
    else:
        parsed = payload
    if not isinstance(parsed, Mapping):
        raise FilterValidationError("Filters payload must be an object")
    filters: dict[str, Any] = {}
    for key, value in parsed.items():
        field_key = str(key).strip()
        if not field_key:
            raise FilterValidationError("Filter field is required")
        if isinstance(value, Mapping) and ("operator" in value or "op" in value):
            filters[field_key] = as_condition(value)
        else:
            filters[field_key] = value
    return filters
