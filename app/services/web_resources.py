"""Service helpers for the admin resource pages."""

from __future__ import annotations

import logging
from typing import Any

from app.config import settings
from app.services.cell_formatting import format_cell
from app.services.crud_orchestrator import CrudOrchestrator, DialogKind, PendingConfirmation
from app.services.display_settings import DisplaySettingsProvider
from app.services.record_forms import form_values_for
from app.services.resource_config import Record, ResourceConfig, ResourceRegistry
from app.services.table_view import build_table_view

logger = logging.getLogger(__name__)


def resource_url(config: ResourceConfig, suffix: str = "") -> str:
    return f"/admin/resources/{config.key}{suffix}"


def navigation() -> list[dict[str, str]]:
    return [
        {"key": config.key, "title": config.title, "url": resource_url(config)}
        for config in ResourceRegistry.all()
    ]


def home_page_data() -> dict[str, object]:
    resources = [
        {
            "key": config.key,
            "title": config.title,
            "description": config.description,
            "url": resource_url(config),
        }
        for config in ResourceRegistry.all()
    ]
    return {"resources": resources}


def list_page_data(
    orchestrator: CrudOrchestrator, display_provider: DisplaySettingsProvider
) -> dict[str, object]:
    """Table view plus pending notifications for the list route."""
    notifications = []
    drain = getattr(orchestrator.notifier, "drain", None)
    if callable(drain):
        notifications = drain()
    return {
        "config": orchestrator.config,
        "table": build_table_view(
            orchestrator, display_provider, max_page_size=settings.max_page_size
        ),
        "notifications": notifications,
        "base_url": resource_url(orchestrator.config),
    }


def build_form_context(
    orchestrator: CrudOrchestrator,
    *,
    kind: DialogKind,
    record: Record | None = None,
    values: dict[str, Any] | None = None,
    errors: dict[str, str] | None = None,
    error: str | None = None,
) -> dict[str, object]:
    """Build shared form context for create/edit templates."""
    config = orchestrator.config
    if kind == DialogKind.edit and record is not None:
        action_url = resource_url(config, f"/{config.record_id(record)}")
    else:
        action_url = resource_url(config)
    form_values = form_values_for(config, record)
    if values:
        for key, value in values.items():
            if key in form_values:
                form_values[key] = value if isinstance(value, bool) else ("" if value is None else str(value))
    context: dict[str, object] = {
        "config": config,
        "kind": kind.value,
        "record": record,
        "fields": config.form_fields,
        "values": form_values,
        "errors": errors or {},
        "action_url": action_url,
        "cancel_url": resource_url(config, "/cancel"),
        "base_url": resource_url(config),
    }
    if error:
        context["error"] = error
    return context


def detail_page_data(
    orchestrator: CrudOrchestrator,
    record: Record,
    display_provider: DisplaySettingsProvider,
) -> dict[str, object]:
    config = orchestrator.config
    display = display_provider.get_display_settings()
    record_id = config.record_id(record)
    return {
        "config": config,
        "record": record,
        "record_id": record_id,
        "cells": [
            (descriptor.label, format_cell(descriptor, record, display, with_time=True))
            for descriptor in config.view_fields
        ],
        "can_edit": config.enable_edit,
        "can_delete": config.enable_delete,
        "base_url": resource_url(config),
    }


def confirm_page_data(
    orchestrator: CrudOrchestrator,
    pending: PendingConfirmation,
    *,
    action_url: str,
    action_label: str,
) -> dict[str, object]:
    config = orchestrator.config
    records = [orchestrator.find(record_id) for record_id in pending.record_ids]
    noun = "item" if pending.count == 1 else "items"
    return {
        "config": config,
        "pending": pending,
        "records": [record for record in records if record is not None],
        "summary_fields": config.table_fields[:3],
        "message": f"{action_label}: {pending.count} {noun}. This cannot be undone.",
        "action_url": action_url,
        "action_label": action_label,
        "cancel_url": resource_url(config, "/cancel"),
        "base_url": resource_url(config),
    }
