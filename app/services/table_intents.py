"""Translate submitted table controls into reducer actions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.services.dynamic_filters import FilterCondition, is_empty_filter
from app.services.resource_config import ResourceConfig
from app.services.resource_errors import ResourceError
from app.services.table_state import (
    ClearFilters,
    ClearSelection,
    ClickSortHeader,
    GoToPage,
    NextPage,
    PrevPage,
    SelectAll,
    SetFilter,
    SetPageSize,
    SetSearch,
    TableAction,
    ToggleSelect,
)

logger = logging.getLogger(__name__)

INTENTS = (
    "search",
    "filter",
    "clear_filters",
    "sort",
    "page",
    "next_page",
    "prev_page",
    "page_size",
    "toggle",
    "select_all",
    "clear_selection",
)


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def _int(data: Mapping[str, Any], key: str) -> int:
    raw = _text(data, key)
    try:
        return int(raw)
    except ValueError as exc:
        raise ResourceError(f"Invalid {key.replace('_', ' ')}: {raw or 'empty'}") from exc


def filter_value_from_form(config: ResourceConfig, data: Mapping[str, Any]) -> Any:
    """Read one filter control's value; range controls submit ``value_from``/``value_to``."""
    field_key = _text(data, "field")
    descriptor = config.get_field(field_key)
    if descriptor is not None and descriptor.filter_control in ("date_range", "number_range"):
        bounds = {"from": _text(data, "value_from"), "to": _text(data, "value_to")}
        if is_empty_filter(bounds["from"]) and is_empty_filter(bounds["to"]):
            return None
        return FilterCondition("between", bounds)
    value = data.get("value")
    return value.strip() if isinstance(value, str) else value


def parse_intent(config: ResourceConfig, data: Mapping[str, Any]) -> TableAction:
    """Build the action for an ``intent`` form post.

    Raises :class:`ResourceError` for unknown intents or malformed values.
    """
    intent = _text(data, "intent")
    if intent == "search":
        return SetSearch(term=_text(data, "search"))
    if intent == "filter":
        field_key = _text(data, "field")
        if not field_key:
            raise ResourceError("Filter field is required")
        return SetFilter(field=field_key, value=filter_value_from_form(config, data))
    if intent == "clear_filters":
        return ClearFilters()
    if intent == "sort":
        field_key = _text(data, "field")
        if not field_key:
            raise ResourceError("Sort field is required")
        return ClickSortHeader(field=field_key)
    if intent == "page":
        return GoToPage(page=_int(data, "page"))
    if intent == "next_page":
        return NextPage()
    if intent == "prev_page":
        return PrevPage()
    if intent == "page_size":
        return SetPageSize(page_size=_int(data, "page_size"))
    if intent == "toggle":
        record_id = _text(data, "record_id")
        if not record_id:
            raise ResourceError("Record id is required")
        return ToggleSelect(record_id=record_id)
    if intent == "select_all":
        return SelectAll()
    if intent == "clear_selection":
        return ClearSelection()
    logger.debug("Rejected table intent %r for %s", intent, config.key)
    raise ResourceError(f"Unknown table intent: {intent or 'missing'}")
