"""Admin resource management web routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from app.api.deps import (
    get_display_provider,
    get_orchestrator,
    get_resource_config,
    get_workspace,
)
from app.config import settings
from app.services import web_resources as web_resources_service
from app.services.crud_orchestrator import CrudOrchestrator, DialogKind
from app.services.display_settings import DisplaySettingsProvider
from app.services.record_forms import parse_form_values
from app.services.resource_catalog import ResourceWorkspace
from app.services.resource_config import BULK_DELETE_ACTION, ResourceConfig
from app.services.resource_errors import (
    RecordValidationError,
    ResourceOperationError,
    StaleConfirmationError,
)
from app.services.resource_export import export_filename, render_resource_csv
from app.services.table_intents import parse_intent
from app.view_sessions import get_view_session
from app.web.request_parsing import parse_form_data, parse_form_list

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory="templates")
router = APIRouter(prefix="/resources", tags=["web-admin-resources"])

TRUE_VALUES = {"true", "1", "yes", "on"}


def _base_context(request: Request, active_page: str) -> dict:
    return {
        "app_name": settings.app_name,
        "active_page": active_page,
        "navigation": web_resources_service.navigation(),
        "current_user": getattr(request.state, "auth", None),
    }


def _confirmed(form: dict) -> bool:
    return str(form.get("confirm", "")).lower() in TRUE_VALUES


def _redirect(config: ResourceConfig, suffix: str = "") -> RedirectResponse:
    return RedirectResponse(web_resources_service.resource_url(config, suffix), status_code=303)


def _form_response(request: Request, config: ResourceConfig, form_context: dict, status_code: int = 200):
    context = _base_context(request, active_page=config.key)
    context.update(form_context)
    template = config.create_template if form_context["kind"] == "create" else config.edit_template
    return templates.TemplateResponse(request, template, context, status_code=status_code)


@router.get("", response_class=HTMLResponse)
async def resources_home(request: Request):
    context = _base_context(request, active_page="home")
    context.update(web_resources_service.home_page_data())
    return templates.TemplateResponse(request, "admin/resources/home.html", context)


@router.get("/{resource_key}", response_class=HTMLResponse)
async def resource_list(
    request: Request,
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
    display_provider: DisplaySettingsProvider = Depends(get_display_provider),
    view_session: str = Depends(get_view_session),
):
    orchestrator = await workspace.orchestrator(config.key, session=view_session, refresh=True)
    context = _base_context(request, active_page=config.key)
    context.update(web_resources_service.list_page_data(orchestrator, display_provider))
    return templates.TemplateResponse(request, "admin/resources/index.html", context)


@router.post("/{resource_key}/table")
async def resource_table_intent(
    request: Request,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    form = await parse_form_data(request)
    orchestrator.dispatch(parse_intent(config, form))
    return _redirect(config)


@router.get("/{resource_key}/export.csv")
async def resource_export_csv(
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
    display_provider: DisplaySettingsProvider = Depends(get_display_provider),
):
    if not config.enable_export:
        raise HTTPException(status_code=404, detail="Export is not available")
    content = render_resource_csv(
        config, orchestrator.filtered(), display_provider.get_display_settings()
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(config)}"'},
    )


@router.get("/{resource_key}/new", response_class=HTMLResponse)
async def resource_new(
    request: Request,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    orchestrator.open_create()
    form_context = web_resources_service.build_form_context(orchestrator, kind=DialogKind.create)
    return _form_response(request, config, form_context)


@router.post("/{resource_key}/cancel")
async def resource_cancel(
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    orchestrator.cancel_pending()
    for kind in DialogKind:
        orchestrator.close_dialog(kind)
    return _redirect(config)


@router.post("/{resource_key}/bulk/{action_key}", response_class=HTMLResponse)
async def resource_bulk_action(
    request: Request,
    action_key: str,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    form = await parse_form_data(request)
    action = config.bulk_action(action_key)
    if action is None:
        raise HTTPException(status_code=404, detail="Unknown bulk action")

    needs_confirmation = action.destructive or (
        action.key == BULK_DELETE_ACTION.key and action.handler is None
    )
    if needs_confirmation and not _confirmed(form):
        pending = orchestrator.request_bulk_action(action.key)
        context = _base_context(request, active_page=config.key)
        context.update(
            web_resources_service.confirm_page_data(
                orchestrator,
                pending,
                action_url=web_resources_service.resource_url(config, f"/bulk/{action.key}"),
                action_label=action.label,
            )
        )
        return templates.TemplateResponse(request, "admin/resources/confirm.html", context)

    try:
        if needs_confirmation:
            record_ids = await parse_form_list(request, "ids")
            await orchestrator.confirm_bulk_action(action.key, record_ids)
        else:
            await orchestrator.run_bulk_action(action.key)
    except StaleConfirmationError:
        logger.info("Rejected stale %s confirmation on %s", action.key, config.key)
        raise
    except ResourceOperationError as exc:
        logger.info("Bulk action %s on %s failed: %s", action.key, config.key, exc.message)
    return _redirect(config)


@router.post("/{resource_key}", response_class=HTMLResponse)
async def resource_create(
    request: Request,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    form = await parse_form_data(request)
    values, errors = parse_form_values(config, form)
    if errors:
        form_context = web_resources_service.build_form_context(
            orchestrator, kind=DialogKind.create, values=values, errors=errors,
            error="Please correct the highlighted fields.",
        )
        return _form_response(request, config, form_context, status_code=422)

    try:
        await orchestrator.create(values)
    except RecordValidationError as exc:
        form_context = web_resources_service.build_form_context(
            orchestrator, kind=DialogKind.create, values=values, errors=exc.field_errors,
            error="Please correct the highlighted fields.",
        )
        return _form_response(request, config, form_context, status_code=422)
    except ResourceOperationError as exc:
        form_context = web_resources_service.build_form_context(
            orchestrator, kind=DialogKind.create, values=values, error=exc.message
        )
        return _form_response(request, config, form_context, status_code=exc.status_code)
    return _redirect(config)


@router.get("/{resource_key}/{record_id}", response_class=HTMLResponse)
async def resource_detail(
    request: Request,
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
    display_provider: DisplaySettingsProvider = Depends(get_display_provider),
):
    slot = orchestrator.open_view(record_id)
    context = _base_context(request, active_page=config.key)
    context.update(
        web_resources_service.detail_page_data(orchestrator, slot.values, display_provider)
    )
    return templates.TemplateResponse(request, config.view_template, context)


@router.get("/{resource_key}/{record_id}/edit", response_class=HTMLResponse)
async def resource_edit(
    request: Request,
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    slot = orchestrator.open_edit(record_id)
    form_context = web_resources_service.build_form_context(
        orchestrator, kind=DialogKind.edit, record=slot.values
    )
    return _form_response(request, config, form_context)


@router.post("/{resource_key}/{record_id}", response_class=HTMLResponse)
async def resource_update(
    request: Request,
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    record = orchestrator.find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    form = await parse_form_data(request)
    values, errors = parse_form_values(config, form)
    if errors:
        form_context = web_resources_service.build_form_context(
            orchestrator, kind=DialogKind.edit, record=record, values=values, errors=errors,
            error="Please correct the highlighted fields.",
        )
        return _form_response(request, config, form_context, status_code=422)

    try:
        await orchestrator.update(record_id, values)
    except RecordValidationError as exc:
        form_context = web_resources_service.build_form_context(
            orchestrator, kind=DialogKind.edit, record=record, values=values,
            errors=exc.field_errors, error="Please correct the highlighted fields.",
        )
        return _form_response(request, config, form_context, status_code=422)
    except ResourceOperationError as exc:
        form_context = web_resources_service.build_form_context(
            orchestrator, kind=DialogKind.edit, record=record, values=values, error=exc.message
        )
        return _form_response(request, config, form_context, status_code=exc.status_code)
    return _redirect(config)


@router.get("/{resource_key}/{record_id}/delete", response_class=HTMLResponse)
async def resource_delete_confirm(
    request: Request,
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    pending = orchestrator.request_delete(record_id)
    context = _base_context(request, active_page=config.key)
    context.update(
        web_resources_service.confirm_page_data(
            orchestrator,
            pending,
            action_url=web_resources_service.resource_url(config, f"/{record_id}/delete"),
            action_label="Delete",
        )
    )
    return templates.TemplateResponse(request, "admin/resources/confirm.html", context)


@router.post("/{resource_key}/{record_id}/delete")
async def resource_delete(
    request: Request,
    record_id: str,
    config: ResourceConfig = Depends(get_resource_config),
    orchestrator: CrudOrchestrator = Depends(get_orchestrator),
):
    form = await parse_form_data(request)
    if not config.enable_delete:
        raise HTTPException(status_code=403, detail="Deleting is disabled for this resource")
    try:
        await orchestrator.remove(record_id, confirmed=_confirmed(form))
    except ResourceOperationError as exc:
        logger.info("Keeping %s record %s after failed delete: %s", config.key, record_id, exc.message)
    return _redirect(config)
