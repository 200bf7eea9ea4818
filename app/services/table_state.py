"""Single reducer for query, pagination and selection state of a resource table.

All table interactions go through :func:`apply_action` so dependent pieces of
state (filters and page number, page and selection) change together. The page
number is clamped after every transition so a shrinking result set never
leaves the table on an empty page.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Union

from app.services.dynamic_filters import is_empty_filter
from app.services.query_pipeline import (
    Page,
    QueryState,
    SortSpec,
    clamp_page,
    compute_visible,
    count_pages,
    paginate,
)
from app.services.resource_config import Record, ResourceConfig
from app.services.selection import Selection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableState:
    query: QueryState = field(default_factory=QueryState)
    page: int = 1
    page_size: int = 10
    selection: Selection = field(default_factory=Selection)

    @classmethod
    def initial(cls, config: ResourceConfig, page_size: int | None = None) -> TableState:
        return cls(page_size=page_size or config.page_size)


@dataclass(frozen=True)
class SetSearch:
    term: str


@dataclass(frozen=True)
class SetFilter:
    field: str
    value: Any


@dataclass(frozen=True)
class ClearFilters:
    pass


@dataclass(frozen=True)
class ClickSortHeader:
    field: str


@dataclass(frozen=True)
class GoToPage:
    page: int


@dataclass(frozen=True)
class NextPage:
    pass


@dataclass(frozen=True)
class PrevPage:
    pass


@dataclass(frozen=True)
class SetPageSize:
    page_size: int


@dataclass(frozen=True)
class ToggleSelect:
    record_id: str


@dataclass(frozen=True)
class SelectAll:
    pass


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class PruneRecords:
    """Drop ids of removed records from the selection."""

    record_ids: tuple[str, ...]


@dataclass(frozen=True)
class Refresh:
    """Re-clamp after the record collection changed."""


TableAction = Union[
    SetSearch,
    SetFilter,
    ClearFilters,
    ClickSortHeader,
    GoToPage,
    NextPage,
    PrevPage,
    SetPageSize,
    ToggleSelect,
    SelectAll,
    ClearSelection,
    PruneRecords,
    Refresh,
]


def next_sort(current: SortSpec | None, field_key: str) -> SortSpec | None:
    """Header click cycle: unsorted -> asc -> desc -> unsorted.

    Clicking a different column always starts at ascending.
    """
    if current is None or current.field != field_key:
        return SortSpec(field=field_key, direction="asc")
    if current.direction == "asc":
        return SortSpec(field=field_key, direction="desc")
    return None


def effective_page_size(state: TableState, config: ResourceConfig) -> int:
    return state.page_size if config.enable_pagination else 0


def filtered_rows(
    state: TableState, records: Sequence[Record], config: ResourceConfig
) -> list[Record]:
    return compute_visible(records, state.query, config)


def visible_page(
    state: TableState, records: Sequence[Record], config: ResourceConfig
) -> Page:
    rows = filtered_rows(state, records, config)
    return paginate(rows, state.page, effective_page_size(state, config))


def _clamped(state: TableState, records: Sequence[Record], config: ResourceConfig) -> TableState:
    total = len(filtered_rows(state, records, config))
    pages = count_pages(total, effective_page_size(state, config))
    page = clamp_page(state.page, pages)
    if page == state.page:
        return state
    logger.debug("Clamping %s table page %s -> %s", config.key, state.page, page)
    return replace(state, page=page, selection=Selection())


def _reset_view(state: TableState, query: QueryState) -> TableState:
    return replace(state, query=query, page=1, selection=Selection())


def apply_action(
    state: TableState,
    action: TableAction,
    records: Sequence[Record],
    config: ResourceConfig,
) -> TableState:
    """Return the next table state for ``action``.

    Selection is page scoped: anything that changes which rows are on the
    current page clears it.
    """
    query = state.query
    next_state = state

    if isinstance(action, SetSearch):
        term = (action.term or "").strip()
        if term != query.search_term:
            next_state = _reset_view(state, replace(query, search_term=term))
    elif isinstance(action, SetFilter):
        descriptor = config.get_field(action.field)
        if descriptor is None or not descriptor.filterable:
            logger.debug("Ignoring filter on non-filterable field %s", action.field)
            return state
        filters = dict(query.filters)
        if is_empty_filter(action.value):
            filters.pop(action.field, None)
        else:
            filters[action.field] = action.value
        if filters != dict(query.filters):
            next_state = _reset_view(state, replace(query, filters=filters))
    elif isinstance(action, ClearFilters):
        if query.filters:
            next_state = _reset_view(state, replace(query, filters={}))
    elif isinstance(action, ClickSortHeader):
        descriptor = config.get_field(action.field)
        if descriptor is None or not descriptor.sortable:
            return state
        next_state = replace(
            state,
            query=replace(query, sort=next_sort(query.sort, action.field)),
            selection=Selection(),
        )
    elif isinstance(action, (GoToPage, NextPage, PrevPage)):
        if isinstance(action, GoToPage):
            target = action.page
        elif isinstance(action, NextPage):
            target = state.page + 1
        else:
            target = state.page - 1
        total = len(filtered_rows(state, records, config))
        page = clamp_page(target, count_pages(total, effective_page_size(state, config)))
        if page != state.page:
            next_state = replace(state, page=page, selection=Selection())
    elif isinstance(action, SetPageSize):
        if action.page_size < 1:
            return state
        if action.page_size != state.page_size:
            next_state = replace(state, page_size=action.page_size, page=1, selection=Selection())
    elif isinstance(action, ToggleSelect):
        page = visible_page(state, records, config)
        visible_ids = {config.record_id(record) for record in page.items}
        if str(action.record_id) not in visible_ids:
            return state
        next_state = replace(state, selection=state.selection.toggle(action.record_id))
    elif isinstance(action, SelectAll):
        page = visible_page(state, records, config)
        visible_ids = [config.record_id(record) for record in page.items]
        next_state = replace(state, selection=state.selection.select_all(visible_ids))
    elif isinstance(action, ClearSelection):
        next_state = replace(state, selection=Selection())
    elif isinstance(action, PruneRecords):
        next_state = replace(state, selection=state.selection.without(action.record_ids))
    elif isinstance(action, Refresh):
        pass
    else:
        raise TypeError(f"Unsupported table action: {action!r}")

    return _clamped(next_state, records, config)
