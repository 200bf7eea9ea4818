from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ResourceListResponse(BaseModel):
    data: list[dict[str, Any]]
    total: int


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class BulkDeleteResponse(BaseModel):
    ids: list[str]
    deleted: int


class EnumOptionRead(BaseModel):
    value: str
    label: str


class ResourceFieldRead(BaseModel):
    key: str
    label: str
    value_type: str
    participates_in: list[str]
    required: bool = False
    enum_options: list[EnumOptionRead] = Field(default_factory=list)
    filter_control: str


class ResourceSchemaRead(BaseModel):
    key: str
    title: str
    description: str | None = None
    id_field: str
    page_size: int
    fields: list[ResourceFieldRead]
    bulk_actions: list[str]
    flags: dict[str, bool]


class TableIntentRequest(BaseModel):
    intent: str = Field(min_length=1, max_length=40)
    search: str | None = None
    field: str | None = None
    value: Any = None
    value_from: str | None = None
    value_to: str | None = None
    page: int | None = None
    page_size: int | None = Field(default=None, ge=1, le=500)
    record_id: str | None = None
