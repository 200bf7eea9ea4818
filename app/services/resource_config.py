"""Declarative resource configuration: field descriptors, actions and registry."""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel

Record = dict[str, Any]
CellRenderer = Callable[[Any, Mapping[str, Any]], str]
FieldValidator = Callable[[Any], str | None]
RowPredicate = Callable[[Mapping[str, Any]], bool]
BulkPredicate = Callable[[list[Record]], bool]
BulkHandler = Callable[[Any, list[Record]], Awaitable[None]]


class ValueType(enum.Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    date = "date"
    enum = "enum"
    url = "url"
    text = "text"


class Participation(enum.Enum):
    search = "search"
    sort = "sort"
    filter = "filter"
    table = "table"
    form = "form"
    view = "view"


_SEARCHABLE_TYPES = {ValueType.string, ValueType.text, ValueType.enum, ValueType.url}
_FILTERABLE_TYPES = {ValueType.enum, ValueType.boolean}

FILTER_CONTROL_BY_TYPE: dict[ValueType, str] = {
    ValueType.enum: "select",
    ValueType.boolean: "select",
    ValueType.date: "date_range",
    ValueType.number: "number_range",
}


def default_participation(value_type: ValueType) -> frozenset[Participation]:
    """Return the participation set used when a descriptor does not declare one."""
    members = {Participation.sort, Participation.form, Participation.view}
    if value_type != ValueType.text:
        members.add(Participation.table)
    if value_type in _SEARCHABLE_TYPES:
        members.add(Participation.search)
    if value_type in _FILTERABLE_TYPES:
        members.add(Participation.filter)
    return frozenset(members)


@dataclass(frozen=True)
class EnumOption:
    value: str
    label: str


@dataclass(frozen=True)
class FieldDescriptor:
    """Metadata for one record attribute.

    ``participates_in`` defaults to a set derived from ``value_type`` (see
    :func:`default_participation`). ``currency`` overrides the key-based
    currency convention used when formatting numbers.
    """

    key: str
    label: str = ""
    value_type: ValueType = ValueType.string
    participates_in: frozenset[Participation] | None = None
    enum_options: tuple[EnumOption, ...] = ()
    required: bool = False
    render: CellRenderer | None = None
    validator: FieldValidator | None = None
    currency: bool | None = None
    filter_operators: frozenset[str] | None = None
    placeholder: str | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Field key is required")
        if not self.label:
            object.__setattr__(self, "label", self.key.replace("_", " ").title())
        if self.participates_in is None:
            object.__setattr__(
                self, "participates_in", default_participation(self.value_type)
            )
        else:
            object.__setattr__(self, "participates_in", frozenset(self.participates_in))
        object.__setattr__(self, "enum_options", tuple(self.enum_options))
        if self.value_type == ValueType.enum and not self.enum_options:
            raise ValueError(f"Enum field {self.key} requires enum_options")
        if self.value_type != ValueType.enum and self.enum_options:
            raise ValueError(f"Field {self.key} is not an enum but declares enum_options")

    def participates(self, participation: Participation) -> bool:
        return participation in (self.participates_in or ())

    @property
    def searchable(self) -> bool:
        return self.participates(Participation.search)

    @property
    def sortable(self) -> bool:
        return self.participates(Participation.sort)

    @property
    def filterable(self) -> bool:
        return self.participates(Participation.filter)

    @property
    def filter_control(self) -> str:
        return FILTER_CONTROL_BY_TYPE.get(self.value_type, "input")

    def option_label(self, value: Any) -> str | None:
        for option in self.enum_options:
            if option.value == value or option.value == str(value):
                return option.label
        return None

    def option_values(self) -> list[str]:
        return [option.value for option in self.enum_options]


def enum_field(key: str, options: Mapping[str, str] | list[str], **kwargs) -> FieldDescriptor:
    """Shortcut for enum descriptors from a value->label mapping or a value list."""
    if isinstance(options, Mapping):
        pairs = tuple(EnumOption(value=str(v), label=str(lbl)) for v, lbl in options.items())
    else:
        pairs = tuple(EnumOption(value=str(v), label=str(v)) for v in options)
    return FieldDescriptor(key=key, value_type=ValueType.enum, enum_options=pairs, **kwargs)


@dataclass(frozen=True)
class RowAction:
    key: str
    label: str
    variant: str = "default"
    disabled: RowPredicate | None = None

    def is_disabled(self, record: Mapping[str, Any]) -> bool:
        if self.disabled is None:
            return False
        return bool(self.disabled(record))


@dataclass(frozen=True)
class BulkAction:
    """A bulk action over the selected records.

    ``handler`` is awaited with the orchestrator and the selected records
    resolved at invocation time. The built-in ``delete`` action has no handler; the orchestrator
    routes it to ``bulk_remove``.
    """

    key: str
    label: str
    variant: str = "default"
    handler: BulkHandler | None = None
    disabled: BulkPredicate | None = None
    destructive: bool = False

    def is_disabled(self, records: list[Record]) -> bool:
        if not records:
            return True
        if self.disabled is None:
            return False
        return bool(self.disabled(records))


VIEW_ACTION = RowAction(key="view", label="View", variant="ghost")
EDIT_ACTION = RowAction(key="edit", label="Edit", variant="outline")
DELETE_ACTION = RowAction(key="delete", label="Delete", variant="destructive")
BULK_DELETE_ACTION = BulkAction(
    key="delete", label="Delete selected", variant="destructive", destructive=True
)


@dataclass(frozen=True)
class ResourceConfig:
    """Static configuration for one resource page.

    Created once at page composition and never mutated. The record collection
    it governs is owned by a ``CrudOrchestrator``.
    """

    key: str
    title: str
    fields: tuple[FieldDescriptor, ...]
    id_field: str = "id"
    api_prefix: str = ""
    description: str | None = None
    page_size: int = 10
    enable_search: bool = True
    enable_filters: bool = True
    enable_pagination: bool = True
    enable_bulk_actions: bool = True
    enable_create: bool = True
    enable_edit: bool = True
    enable_delete: bool = True
    enable_view: bool = True
    enable_export: bool = True
    row_actions: tuple[RowAction, ...] = ()
    bulk_actions: tuple[BulkAction, ...] = ()
    record_schema: type[BaseModel] | None = None
    create_template: str = "admin/resources/form.html"
    edit_template: str = "admin/resources/form.html"
    view_template: str = "admin/resources/detail.html"
    _field_map: dict[str, FieldDescriptor] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Resource key is required")
        if self.page_size <= 0:
            raise ValueError("page_size must be a positive integer")
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "row_actions", tuple(self.row_actions))
        object.__setattr__(self, "bulk_actions", tuple(self.bulk_actions))
        if not self.api_prefix:
            object.__setattr__(self, "api_prefix", f"/{self.key}")
        seen: dict[str, FieldDescriptor] = {}
        for descriptor in self.fields:
            if descriptor.key in seen:
                raise ValueError(f"Duplicate field in resource {self.key}: {descriptor.key}")
            seen[descriptor.key] = descriptor
        self._field_map.update(seen)

    def get_field(self, key: str) -> FieldDescriptor | None:
        return self._field_map.get(key)

    def fields_for(self, participation: Participation) -> list[FieldDescriptor]:
        return [item for item in self.fields if item.participates(participation)]

    @property
    def search_fields(self) -> list[FieldDescriptor]:
        return self.fields_for(Participation.search)

    @property
    def table_fields(self) -> list[FieldDescriptor]:
        return self.fields_for(Participation.table)

    @property
    def form_fields(self) -> list[FieldDescriptor]:
        return [
            item
            for item in self.fields_for(Participation.form)
            if item.key != self.id_field
        ]

    @property
    def view_fields(self) -> list[FieldDescriptor]:
        return self.fields_for(Participation.view)

    @property
    def filter_fields(self) -> list[FieldDescriptor]:
        return self.fields_for(Participation.filter)

    def record_id(self, record: Mapping[str, Any]) -> str:
        value = record.get(self.id_field)
        return "" if value is None else str(value)

    def all_row_actions(self) -> list[RowAction]:
        actions: list[RowAction] = []
        if self.enable_view:
            actions.append(VIEW_ACTION)
        if self.enable_edit:
            actions.append(EDIT_ACTION)
        actions.extend(self.row_actions)
        if self.enable_delete:
            actions.append(DELETE_ACTION)
        return actions

    def all_bulk_actions(self) -> list[BulkAction]:
        if not self.enable_bulk_actions:
            return []
        actions = list(self.bulk_actions)
        if self.enable_delete and not any(a.key == BULK_DELETE_ACTION.key for a in actions):
            actions.append(BULK_DELETE_ACTION)
        return actions

    def bulk_action(self, key: str) -> BulkAction | None:
        for action in self.all_bulk_actions():
            if action.key == key:
                return action
        return None


class ResourceRegistry:
    _resources: dict[str, ResourceConfig] = {}

    @classmethod
    def register(cls, config: ResourceConfig) -> ResourceConfig:
        cls._resources[config.key] = config
        return config

    @classmethod
    def get(cls, key: str) -> ResourceConfig:
        config = cls._resources.get(key)
        if not config:
            raise HTTPException(status_code=404, detail="Unregistered resource")
        return config

    @classmethod
    def exists(cls, key: str) -> bool:
        return key in cls._resources

    @classmethod
    def all(cls) -> list[ResourceConfig]:
        return list(cls._resources.values())

    @classmethod
    def clear(cls) -> None:
        cls._resources.clear()
