"""Form parsing and field-level validation for create/edit dialogs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from app.services.dynamic_filters import FilterValidationError, coerce_value
from app.services.resource_config import FieldDescriptor, Record, ResourceConfig, ValueType
from app.services.resource_errors import RecordValidationError

logger = logging.getLogger(__name__)

CHECKBOX_TRUE = {"true", "1", "on", "yes"}


def _form_str(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key, "")
    return value.strip() if isinstance(value, str) else ("" if value is None else str(value))


def _parse_field(descriptor: FieldDescriptor, form: Mapping[str, Any]) -> tuple[Any, str | None]:
    if descriptor.value_type == ValueType.boolean:
        raw = form.get(descriptor.key)
        if isinstance(raw, bool):
            return raw, None
        return _form_str(form, descriptor.key).lower() in CHECKBOX_TRUE, None

    text = _form_str(form, descriptor.key)
    if not text:
        return None, None

    if descriptor.value_type == ValueType.number:
        try:
            return coerce_value(text, ValueType.number), None
        except FilterValidationError:
            return text, f"{descriptor.label} must be a number"
    if descriptor.value_type == ValueType.date:
        try:
            return coerce_value(text, ValueType.date).isoformat(), None
        except FilterValidationError:
            return text, f"{descriptor.label} must be a date (YYYY-MM-DD)"
    if descriptor.value_type == ValueType.url:
        if not text.startswith(("http://", "https://")):
            return text, f"{descriptor.label} must be a valid URL"
        return text, None
    if descriptor.value_type == ValueType.enum:
        if text not in descriptor.option_values():
            return text, f"Select a valid {descriptor.label.lower()}"
        return text, None
    return text, None


def parse_form_values(
    config: ResourceConfig, form: Mapping[str, Any]
) -> tuple[Record, dict[str, str]]:
    """Coerce submitted form values by field type.

    Returns the parsed values and a mapping of field key to error message.
    Unparseable inputs are kept as submitted so the form can be re-rendered.
    """
    values: Record = {}
    errors: dict[str, str] = {}
    for descriptor in config.form_fields:
        value, error = _parse_field(descriptor, form)
        values[descriptor.key] = value
        if error:
            errors[descriptor.key] = error
    for key, message in validate_values(config, values).items():
        errors.setdefault(key, message)
    return values, errors


def _type_error(descriptor: FieldDescriptor, value: Any) -> str | None:
    """Check an already parsed value against the descriptor's type."""
    value_type = descriptor.value_type
    if value_type == ValueType.number:
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            return f"{descriptor.label} must be a number"
    elif value_type == ValueType.boolean:
        if not isinstance(value, bool):
            return f"{descriptor.label} must be true or false"
    elif value_type == ValueType.enum:
        if str(value) not in descriptor.option_values():
            return f"Select a valid {descriptor.label.lower()}"
    elif value_type == ValueType.date:
        try:
            coerce_value(value, ValueType.date)
        except FilterValidationError:
            return f"{descriptor.label} must be a date (YYYY-MM-DD)"
    elif value_type == ValueType.url:
        if not str(value).startswith(("http://", "https://")):
            return f"{descriptor.label} must be a valid URL"
    return None


def validate_values(
    config: ResourceConfig, values: Mapping[str, Any], *, partial: bool = False
) -> dict[str, str]:
    """Check required fields, custom validators and the optional record schema.

    With ``partial`` only keys present in ``values`` are checked.
    """
    errors: dict[str, str] = {}
    for descriptor in config.form_fields:
        if partial and descriptor.key not in values:
            continue
        value = values.get(descriptor.key)
        if descriptor.required and (value is None or value == ""):
            errors[descriptor.key] = f"{descriptor.label} is required"
            continue
        if value is None or value == "":
            continue
        type_error = _type_error(descriptor, value)
        if type_error:
            errors[descriptor.key] = type_error
            continue
        if descriptor.validator is None:
            continue
        message = descriptor.validator(value)
        if message:
            errors[descriptor.key] = message

    if config.record_schema is not None and not partial:
        try:
            config.record_schema.model_validate(dict(values))
        except ValidationError as exc:
            for error in exc.errors():
                loc = error.get("loc") or ("__all__",)
                errors.setdefault(str(loc[0]), error.get("msg", "Invalid value"))
    return errors


def validate_record(
    config: ResourceConfig, values: Mapping[str, Any], *, partial: bool = False
) -> None:
    errors = validate_values(config, values, partial=partial)
    if errors:
        logger.info("Rejected %s submission: %s", config.key, sorted(errors))
        raise RecordValidationError(errors)


def form_values_for(config: ResourceConfig, record: Mapping[str, Any] | None) -> dict[str, Any]:
    """Initial form values for an edit dialog, or blanks for create."""
    values: dict[str, Any] = {}
    for descriptor in config.form_fields:
        value = record.get(descriptor.key) if record else None
        if descriptor.value_type == ValueType.boolean:
            values[descriptor.key] = bool(value) if record else True
        else:
            values[descriptor.key] = "" if value is None else str(value)
    return values
