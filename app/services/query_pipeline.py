"""Pure search, filter, sort and pagination over an in-memory record list.

Nothing in this module raises for bad input: malformed filters are treated as
"no match" and unsortable values are pushed to the end of the result.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.services.dynamic_filters import (
    FilterValidationError,
    build_predicate,
    coerce_value,
    is_empty_filter,
)
from app.services.resource_config import FieldDescriptor, Record, ResourceConfig, ValueType

logger = logging.getLogger(__name__)

SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: str = "asc"

    def __post_init__(self) -> None:
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError("Sort direction must be 'asc' or 'desc'")

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


@dataclass(frozen=True)
class QueryState:
    search_term: str = ""
    filters: Mapping[str, Any] = field(default_factory=dict)
    sort: SortSpec | None = None

    def active_filters(self) -> dict[str, Any]:
        return {key: value for key, value in self.filters.items() if not is_empty_filter(value)}

    @property
    def is_identity(self) -> bool:
        return not self.search_term.strip() and not self.active_filters() and self.sort is None


@dataclass(frozen=True)
class Page:
    items: list[Record]
    total_count: int
    total_pages: int
    page: int
    page_size: int

    @property
    def start_index(self) -> int:
        """1-based index of the first row shown, 0 when the page is empty."""
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end_index(self) -> int:
        if not self.items:
            return 0
        return self.start_index + len(self.items) - 1

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def count_pages(total: int, page_size: int) -> int:
    if page_size < 1:
        return 1 if total else 0
    return math.ceil(total / page_size)


def clamp_page(page: int, total_pages: int) -> int:
    return min(max(1, page), max(1, total_pages))


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def matches_search(
    record: Mapping[str, Any], search_term: str, fields: Iterable[FieldDescriptor]
) -> bool:
    term = (search_term or "").strip().lower()
    if not term:
        return True
    for descriptor in fields:
        value = record.get(descriptor.key)
        if value is None:
            continue
        if term in _stringify(value).lower():
            return True
        label = descriptor.option_label(value) if descriptor.enum_options else None
        if label and term in label.lower():
            return True
    return False


def _fallback_descriptor(key: str) -> FieldDescriptor:
    return FieldDescriptor(key=key, value_type=ValueType.string, participates_in=frozenset())


def matches_filters(
    record: Mapping[str, Any], filters: Mapping[str, Any], config: ResourceConfig
) -> bool:
    for key, filter_value in filters.items():
        if is_empty_filter(filter_value):
            continue
        descriptor = config.get_field(key) or _fallback_descriptor(key)
        try:
            predicate = build_predicate(descriptor, filter_value)
        except FilterValidationError as exc:
            logger.debug("Ignoring malformed filter %s=%r: %s", key, filter_value, exc)
            return False
        if not predicate(record.get(key)):
            return False
    return True


def _infer_type(records: Sequence[Mapping[str, Any]], key: str) -> ValueType:
    for record in records:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            return ValueType.boolean
        if isinstance(value, (int, float, Decimal)):
            return ValueType.number
        if isinstance(value, (date, datetime)):
            return ValueType.date
        return ValueType.string
    return ValueType.string


def _sort_key(value: Any, value_type: ValueType) -> Any:
    if value is None:
        return None
    if value_type in (ValueType.number, ValueType.boolean, ValueType.date):
        try:
            return coerce_value(value, value_type)
        except FilterValidationError:
            return None
    return _stringify(value).casefold()


def sort_records(
    records: Sequence[Record], sort: SortSpec | None, config: ResourceConfig
) -> list[Record]:
    """Stable sort by one field; missing or unparseable values always go last."""
    if sort is None:
        return list(records)
    descriptor = config.get_field(sort.field)
    value_type = descriptor.value_type if descriptor else _infer_type(records, sort.field)

    keyed: list[tuple[Any, Record]] = []
    missing: list[Record] = []
    for record in records:
        key = _sort_key(record.get(sort.field), value_type)
        if key is None:
            missing.append(record)
        else:
            keyed.append((key, record))

    try:
        keyed.sort(key=lambda item: item[0], reverse=sort.descending)
    except TypeError as exc:
        logger.debug("Unable to sort by %s: %s", sort.field, exc)
        return list(records)
    return [record for _, record in keyed] + missing


def compute_visible(
    records: Sequence[Record], query: QueryState, config: ResourceConfig
) -> list[Record]:
    """Return the filtered and sorted view of ``records`` for ``query``."""
    search_fields = config.search_fields if config.enable_search else []
    filters = query.active_filters() if config.enable_filters else {}
    term = query.search_term if config.enable_search else ""

    filtered = [
        record
        for record in records
        if matches_search(record, term, search_fields)
        and matches_filters(record, filters, config)
    ]
    return sort_records(filtered, query.sort, config)


def paginate(rows: Sequence[Record], page: int, page_size: int) -> Page:
    """Slice one page out of ``rows``; a page past the end is empty."""
    total = len(rows)
    if page_size < 1:
        return Page(
            items=list(rows),
            total_count=total,
            total_pages=count_pages(total, page_size),
            page=1,
            page_size=max(total, 1),
        )
    pages = count_pages(total, page_size)
    if page < 1:
        items: list[Record] = []
    else:
        start = (page - 1) * page_size
        items = list(rows[start : start + page_size])
    return Page(items=items, total_count=total, total_pages=pages, page=page, page_size=page_size)
