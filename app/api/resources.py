from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.api.deps import (
    get_display_provider,
    get_orchestrator,
    get_resource_config,
    get_workspace,
)
from app.config import settings
from app.schemas.resources import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    EnumOptionRead,
    ResourceFieldRead,
    ResourceListResponse,
    ResourceSchemaRead,
    TableIntentRequest,
)
from app.services.crud_orchestrator import CrudOrchestrator
from app.services.display_settings import DisplaySettingsProvider
from app.services.dynamic_filters import FilterValidationError, parse_filter_payload
from app.services.query_pipeline import SortSpec
from app.services.record_forms import validate_record
from app.services.resource_catalog import ResourceWorkspace
from app.services.resource_config import Record, ResourceConfig
from app.services.resource_operations import ListParams
from app.services.table_intents import parse_intent
from app.services.table_view import build_table_view
from app.web.request_parsing import parse_json_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resources", tags=["resources"])

FLAG_NAMES = (
    "enable_search",
    "enable_filters",
    "enable_pagination",
    "enable_bulk_actions",
    "enable_create",
    "enable_edit",
    "enable_delete",
    "enable_view",
    "enable_export",
)


def _known_values(config: ResourceConfig, payload: dict[str, Any]) -> Record:
    """Drop keys the resource does not declare."""
    return {key: value for key, value in payload.items() if config.get_field(key) is not None}


def _schema(config: ResourceConfig) -> ResourceSchemaRead:
    return ResourceSchemaRead(
        key=config.key,
        title=config.title,
        description=config.description,
        id_field=config.id_field,
        page_size=config.page_size,
        fields=[
            ResourceFieldRead(
                key=descriptor.key,
                label=descriptor.label,
                value_type=descriptor.value_type.value,
                participates_in=sorted(item.value for item in descriptor.participates_in or ()),
                required=descriptor.required,
                enum_options=[
                    EnumOptionRead(value=option.value, label=option.label)
                    for option in descriptor.enum_options
                ],
                filter_control=descriptor.filter_control,
            )
            for descriptor in config.fields
        ],
        bulk_actions=[action.key for action in config.all_bulk_actions()],
        flags={name: getattr(config, name) for name in FLAG_NAMES},
    )


@router.get("/{resource_key}", response_model=ResourceListResponse)
async def list_records(
    resource_key: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    search: str = Query(default="", max_length=200),
    filters: str | None = Query(default=None),
    sort: str | None = Query(default=None),
    order: str = Query(default="asc", pattern="^(asc|desc)$"),
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
):
    try:
        parsed_filters = parse_filter_payload(filters)
    except FilterValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    sort_spec = SortSpec(field=sort, direction=order) if sort else None
    result = await workspace.store(config.key).list(
        ListParams(page=page, limit=limit, search=search, filters=parsed_filters, sort=sort_spec)
    )
    return ResourceListResponse(data=result.data, total=result.total)


@router.get("/{resource_key}/schema", response_model=ResourceSchemaRead)
async def get_resource_schema(config: ResourceConfig = Depends(get_resource_config)):
    return _schema(config)


@router.get("/{resource_key}/view")
async def get_table_view(
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
    display_provider: DisplaySettingsProvider = Depends(get_display_provider),
):
    return build_table_view(
        orchestrator, display_provider, max_page_size=settings.max_page_size
    ).to_dict()


@router.post("/{resource_key}/view/intents")
async def apply_table_intent(
    payload: TableIntentRequest,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
    display_provider: DisplaySettingsProvider = Depends(get_display_provider),
):
    orchestrator.dispatch(parse_intent(config, payload.model_dump(exclude_none=True)))
    return build_table_view(
        orchestrator, display_provider, max_page_size=settings.max_page_size
    ).to_dict()


@router.get("/{resource_key}/{record_id}")
async def get_record(
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
):
    return await workspace.store(config.key).get_by_id(record_id)


@router.post("/{resource_key}", status_code=201)
async def create_record(
    payload: dict = Depends(parse_json_body),
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
):
    values = _known_values(config, payload)
    validate_record(config, values)
    record = await workspace.store(config.key).create(values)
    logger.info("API created %s record %s", config.key, config.record_id(record))
    return record


@router.patch("/{resource_key}/{record_id}")
async def update_record(
    record_id: str,
    payload: dict = Depends(parse_json_body),
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
):
    values = _known_values(config, payload)
    values.pop(config.id_field, None)
    validate_record(config, values, partial=True)
    return await workspace.store(config.key).update(record_id, values)


@router.delete("/{resource_key}/{record_id}", status_code=204)
async def delete_record(
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
):
    await workspace.store(config.key).delete(record_id)
    return Response(status_code=204)


@router.post("/{resource_key}/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_records(
    payload: BulkDeleteRequest,
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
):
    store = workspace.store(config.key)
    before = len(store.snapshot())
    await store.bulk_delete(payload.ids)
    deleted = before - len(store.snapshot())
    logger.info("API bulk deleted %s %s records", deleted, config.key)
    return BulkDeleteResponse(ids=payload.ids, deleted=deleted)
