"""View model for resource tables, shared by the admin templates and the JSON API."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from app.schemas.display_settings import DisplaySettings
from app.services.cell_formatting import Cell, format_cell
from app.services.crud_orchestrator import CrudOrchestrator
from app.services.display_settings import DisplaySettingsProvider, StaticDisplaySettingsProvider
from app.services.dynamic_filters import FilterCondition, describe_condition, is_empty_filter
from app.services.query_pipeline import Page
from app.services.resource_config import FieldDescriptor, ValueType

PAGE_SIZE_OPTIONS = (10, 25, 50, 100)
ALL_OPTION_VALUE = "all"

ARIA_SORT = {"asc": "ascending", "desc": "descending"}
DENSITY_CLASSES = {
    "compact": "py-1 px-2 text-xs",
    "comfortable": "py-2 px-3 text-sm",
    "spacious": "py-4 px-4 text-sm",
}


@dataclass(frozen=True)
class HeaderView:
    key: str
    label: str
    sortable: bool
    sort_direction: str | None = None

    @property
    def aria_sort(self) -> str:
        return ARIA_SORT.get(self.sort_direction or "", "none")


@dataclass(frozen=True)
class RowActionView:
    key: str
    label: str
    variant: str
    disabled: bool


@dataclass(frozen=True)
class RowView:
    id: str
    cells: list[Cell]
    actions: list[RowActionView]
    selected: bool


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str


@dataclass(frozen=True)
class FilterControl:
    key: str
    label: str
    control: str
    value: Any = None
    options: list[FilterOption] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return not is_empty_filter(self.value)

    @property
    def selected_value(self) -> str:
        if not self.is_active:
            return ALL_OPTION_VALUE
        value = self.value.value if isinstance(self.value, FilterCondition) else self.value
        if isinstance(value, bool):
            return "true" if value else "false"
        return "" if isinstance(value, Mapping) else str(value)

    def bound(self, name: str) -> str:
        """``from``/``to`` value of a range control."""
        value = self.value.value if isinstance(self.value, FilterCondition) else self.value
        if isinstance(value, Mapping):
            bound = value.get(name)
            return "" if bound is None else str(bound)
        return ""


@dataclass(frozen=True)
class BulkActionView:
    key: str
    label: str
    variant: str
    disabled: bool
    destructive: bool


@dataclass(frozen=True)
class PaginationView:
    page: int
    total_pages: int
    total_count: int
    page_size: int
    start_index: int
    end_index: int
    has_previous: bool
    has_next: bool
    window: list[int | None]
    page_size_options: list[int]
    enabled: bool = True


@dataclass(frozen=True)
class TableView:
    resource: str
    title: str
    description: str | None
    search_term: str
    search_enabled: bool
    headers: list[HeaderView]
    rows: list[RowView]
    filters: list[FilterControl]
    active_filters: list[str]
    bulk_actions: list[BulkActionView]
    pagination: PaginationView
    selected_count: int
    all_selected: bool
    found_label: str
    density: str
    density_class: str
    can_create: bool
    can_export: bool
    version: int

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for row in payload["rows"]:
            for cell in row["cells"]:
                cell["raw"] = _json_safe(cell["raw"])
        for control in payload["filters"]:
            control["value"] = _json_safe(control["value"])
        return payload


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    if isinstance(value, FilterCondition):
        return {"operator": value.operator, "value": _json_safe(value.value)}
    return str(value)


def page_window(page: int, total_pages: int, radius: int = 2) -> list[int | None]:
    """Page numbers around ``page`` plus first and last; ``None`` marks a gap."""
    if total_pages <= 1:
        return [1]
    numbers = {1, total_pages}
    numbers.update(range(max(1, page - radius), min(total_pages, page + radius) + 1))
    window: list[int | None] = []
    previous = 0
    for number in sorted(numbers):
        if number - previous > 1:
            window.append(None)
        window.append(number)
        previous = number
    return window


def found_label(count: int) -> str:
    return f"{count} item found" if count == 1 else f"{count} items found"


def _filter_options(descriptor: FieldDescriptor, display: DisplaySettings) -> list[FilterOption]:
    options = [FilterOption(value=ALL_OPTION_VALUE, label="All")]
    if descriptor.value_type == ValueType.boolean:
        options.append(FilterOption(value="true", label=display.yes_label))
        options.append(FilterOption(value="false", label=display.no_label))
    else:
        options.extend(
            FilterOption(value=option.value, label=option.label)
            for option in descriptor.enum_options
        )
    return options


def build_filter_controls(
    orchestrator: CrudOrchestrator, display: DisplaySettings
) -> list[FilterControl]:
    config = orchestrator.config
    if not config.enable_filters:
        return []
    current = orchestrator.state.query.filters
    controls: list[FilterControl] = []
    for descriptor in config.filter_fields:
        control = descriptor.filter_control
        options = _filter_options(descriptor, display) if control == "select" else []
        controls.append(
            FilterControl(
                key=descriptor.key,
                label=descriptor.label,
                control=control,
                value=current.get(descriptor.key),
                options=options,
            )
        )
    return controls


def build_pagination(
    page: Page, *, enabled: bool, page_size: int, max_page_size: int | None = None
) -> PaginationView:
    total_pages = max(1, page.total_pages)
    options = [size for size in PAGE_SIZE_OPTIONS if max_page_size is None or size <= max_page_size]
    if page_size not in options:
        options = sorted({*options, page_size})
    return PaginationView(
        page=page.page,
        total_pages=total_pages,
        total_count=page.total_count,
        page_size=page_size,
        start_index=page.start_index,
        end_index=page.end_index,
        has_previous=enabled and page.has_previous,
        has_next=enabled and page.page < total_pages,
        window=page_window(page.page, total_pages) if enabled else [1],
        page_size_options=options,
        enabled=enabled,
    )


def build_table_view(
    orchestrator: CrudOrchestrator,
    display_provider: DisplaySettingsProvider | None = None,
    *,
    max_page_size: int | None = None,
) -> TableView:
    """Assemble everything a template needs to render the current table state."""
    config = orchestrator.config
    state = orchestrator.state
    display = (display_provider or StaticDisplaySettingsProvider()).get_display_settings()
    page = orchestrator.page()
    sort = state.query.sort

    headers = [
        HeaderView(
            key=descriptor.key,
            label=descriptor.label,
            sortable=descriptor.sortable,
            sort_direction=sort.direction if sort and sort.field == descriptor.key else None,
        )
        for descriptor in config.table_fields
    ]

    row_actions = config.all_row_actions()
    rows: list[RowView] = []
    visible_ids: list[str] = []
    for record in page.items:
        record_id = config.record_id(record)
        visible_ids.append(record_id)
        rows.append(
            RowView(
                id=record_id,
                cells=[format_cell(descriptor, record, display) for descriptor in config.table_fields],
                actions=[
                    RowActionView(
                        key=action.key,
                        label=action.label,
                        variant=action.variant,
                        disabled=action.is_disabled(record),
                    )
                    for action in row_actions
                ],
                selected=state.selection.is_selected(record_id),
            )
        )

    selected = orchestrator.selected_records()
    bulk_actions = [
        BulkActionView(
            key=action.key,
            label=action.label,
            variant=action.variant,
            disabled=action.is_disabled(selected),
            destructive=action.destructive,
        )
        for action in config.all_bulk_actions()
    ]

    active = [
        describe_condition(config.get_field(key), value)
        for key, value in state.query.active_filters().items()
        if config.get_field(key) is not None
    ]

    return TableView(
        resource=config.key,
        title=config.title,
        description=config.description,
        search_term=state.query.search_term,
        search_enabled=config.enable_search,
        headers=headers,
        rows=rows,
        filters=build_filter_controls(orchestrator, display),
        active_filters=active,
        bulk_actions=bulk_actions,
        pagination=build_pagination(
            page,
            enabled=config.enable_pagination,
            page_size=state.page_size,
            max_page_size=max_page_size,
        ),
        selected_count=len(selected),
        all_selected=state.selection.all_selected(visible_ids),
        found_label=found_label(page.total_count),
        density=display.table_density,
        density_class=DENSITY_CLASSES.get(display.table_density, DENSITY_CLASSES["comfortable"]),
        can_create=config.enable_create,
        can_export=config.enable_export,
        version=orchestrator.version,
    )
