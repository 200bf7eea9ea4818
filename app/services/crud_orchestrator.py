"""Owner of one resource page's record collection and its CRUD flows.

The orchestrator never applies a mutation before the operation backend
confirms it. Reconciliation always re-reads ``self.records`` after the
``await`` because other requests may have changed it in the meantime.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Awaitable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.metrics import observe_operation
from app.services.query_pipeline import Page
from app.services.record_forms import validate_record
from app.services.resource_config import BULK_DELETE_ACTION, BulkAction, Record, ResourceConfig
from app.services.resource_errors import (
    ConfirmationRequired,
    RecordNotFoundError,
    RecordValidationError,
    ResourceError,
    ResourceOperationError,
    StaleConfirmationError,
)
from app.services.resource_operations import ListParams, ResourceOperations
from app.services.table_state import (
    ClearSelection,
    PruneRecords,
    Refresh,
    TableAction,
    TableState,
    apply_action,
    filtered_rows,
    visible_page,
)

logger = logging.getLogger(__name__)

LOAD_BATCH_SIZE = 100


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


class Notifier(Protocol):
    def notify(self, level: str, message: str) -> None: ...


class CollectingNotifier:
    """Keeps notifications until the web layer drains them into flash messages."""

    def __init__(self) -> None:
        self.messages: list[Notification] = []

    def notify(self, level: str, message: str) -> None:
        self.messages.append(Notification(level=level, message=message))

    def drain(self) -> list[Notification]:
        messages, self.messages = self.messages, []
        return messages


class DialogKind(str, enum.Enum):
    create = "create"
    edit = "edit"
    view = "view"


@dataclass
class DialogSlot:
    is_open: bool = False
    record_id: str | None = None
    values: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PendingConfirmation:
    record_ids: tuple[str, ...]
    bulk: bool = False
    action: str | None = None

    @property
    def count(self) -> int:
        return len(self.record_ids)


class CrudOrchestrator:
    def __init__(
        self,
        config: ResourceConfig,
        operations: ResourceOperations,
        notifier: Notifier | None = None,
        *,
        page_size: int | None = None,
    ):
        self.config = config
        self.operations = operations
        self.notifier = notifier or CollectingNotifier()
        self.records: list[Record] = []
        self.state = TableState.initial(config, page_size)
        self.dialogs: dict[DialogKind, DialogSlot] = {kind: DialogSlot() for kind in DialogKind}
        self.pending: PendingConfirmation | None = None
        self.version = 0
        self.loaded = False

    # Table state

    def dispatch(self, action: TableAction) -> TableState:
        self.state = apply_action(self.state, action, self.records, self.config)
        return self.state

    def page(self) -> Page:
        return visible_page(self.state, self.records, self.config)

    def filtered(self) -> list[Record]:
        return filtered_rows(self.state, self.records, self.config)

    def selected_records(self) -> list[Record]:
        return self.state.selection.selected_records(self.records, self.config.id_field)

    def find(self, record_id: object) -> Record | None:
        key = str(record_id)
        for record in self.records:
            if self.config.record_id(record) == key:
                return record
        return None

    def _require(self, record_id: object, operation: str) -> Record:
        record = self.find(record_id)
        if record is None:
            raise RecordNotFoundError(str(record_id), operation=operation)
        return record

    def _bump(self) -> None:
        self.version += 1
        self.dispatch(Refresh())

    def _notify(self, level: str, message: str) -> None:
        self.notifier.notify(level, message)

    async def load(self, *, batch_size: int = LOAD_BATCH_SIZE) -> list[Record]:
        """Fetch the full collection page by page from the operation backend."""
        collected: list[Record] = []
        page = 1
        while True:
            result = await self._perform(
                "list", self.operations.list(ListParams(page=page, limit=batch_size))
            )
            collected.extend(dict(record) for record in result.data)
            if not result.data or len(collected) >= result.total:
                break
            page += 1
        self.records = collected
        self.loaded = True
        self._bump()
        logger.info("Loaded %s %s records", len(collected), self.config.key)
        return self.records

    async def _perform(self, operation: str, call: Awaitable[Any], *, notify: bool = True) -> Any:
        started = time.perf_counter()
        try:
            result = await call
        except ResourceError as exc:
            observe_operation(self.config.key, operation, "error", time.perf_counter() - started)
            logger.warning("%s %s failed: %s", self.config.key, operation, exc.message)
            if notify:
                self._notify("error", exc.message)
            raise
        except Exception as exc:
            observe_operation(self.config.key, operation, "error", time.perf_counter() - started)
            logger.exception("%s %s failed unexpectedly", self.config.key, operation)
            message = f"{operation.replace('_', ' ').capitalize()} failed"
            if notify:
                self._notify("error", message)
            raise ResourceOperationError(message, operation=operation) from exc
        observe_operation(self.config.key, operation, "success", time.perf_counter() - started)
        return result

    # Dialogs

    def open_create(self) -> DialogSlot:
        if not self.config.enable_create:
            raise ResourceError(f"Creating {self.config.title} is disabled")
        slot = DialogSlot(is_open=True)
        self.dialogs[DialogKind.create] = slot
        return slot

    def open_edit(self, record_id: object) -> DialogSlot:
        if not self.config.enable_edit:
            raise ResourceError(f"Editing {self.config.title} is disabled")
        record = self._require(record_id, "edit")
        slot = DialogSlot(is_open=True, record_id=str(record_id), values=dict(record))
        self.dialogs[DialogKind.edit] = slot
        return slot

    def open_view(self, record_id: object) -> DialogSlot:
        record = self._require(record_id, "view")
        slot = DialogSlot(is_open=True, record_id=str(record_id), values=dict(record))
        self.dialogs[DialogKind.view] = slot
        return slot

    def close_dialog(self, kind: DialogKind | str) -> None:
        self.dialogs[DialogKind(kind)] = DialogSlot()

    def _close_if(self, kind: DialogKind, record_id: str | None = None) -> None:
        slot = self.dialogs[kind]
        if not slot.is_open:
            return
        if record_id is not None and slot.record_id != record_id:
            return
        self.dialogs[kind] = DialogSlot()

    def _record_failure(self, kind: DialogKind, payload: Mapping[str, Any], exc: ResourceError) -> None:
        slot = self.dialogs[kind]
        if not slot.is_open:
            return
        slot.values = {**slot.values, **dict(payload)}
        slot.errors = exc.field_errors if isinstance(exc, RecordValidationError) else {}

    # Confirmation flow

    def request_delete(self, record_id: object) -> PendingConfirmation:
        if not self.config.enable_delete:
            raise ResourceError(f"Deleting {self.config.title} is disabled")
        self._require(record_id, "delete")
        self.pending = PendingConfirmation(record_ids=(str(record_id),))
        return self.pending

    def request_bulk_delete(self, record_ids: Iterable[object] | None = None) -> PendingConfirmation:
        if not self.config.enable_delete:
            raise ResourceError(f"Deleting {self.config.title} is disabled")
        if record_ids is None:
            ids = tuple(self.config.record_id(record) for record in self.selected_records())
        else:
            ids = tuple(str(item) for item in record_ids)
        if not ids:
            raise ResourceError("No records selected")
        self.pending = PendingConfirmation(record_ids=ids, bulk=True, action=BULK_DELETE_ACTION.key)
        return self.pending

    def cancel_pending(self) -> None:
        self.pending = None

    async def confirm_pending(self) -> int:
        pending = self.pending
        if pending is None:
            raise ResourceError("Nothing is waiting for confirmation")
        if pending.bulk:
            return await self.bulk_remove(list(pending.record_ids), confirmed=True)
        await self.remove(pending.record_ids[0], confirmed=True)
        return 1

    # Mutations

    async def create(self, payload: Mapping[str, Any]) -> Record:
        values = dict(payload)
        try:
            validate_record(self.config, values)
        except RecordValidationError as exc:
            self._record_failure(DialogKind.create, values, exc)
            self._notify("error", exc.message)
            raise
        try:
            created = await self._perform("create", self.operations.create(values))
        except ResourceError as exc:
            self._record_failure(DialogKind.create, values, exc)
            raise

        created = dict(created)
        record_id = self.config.record_id(created)
        records = [
            record for record in self.records if self.config.record_id(record) != record_id
        ]
        records.append(created)
        self.records = records
        self._close_if(DialogKind.create)
        self._bump()
        logger.info("Created %s record %s", self.config.key, record_id)
        self._notify("success", f"{self.config.title} record created")
        return created

    async def update(
        self, record_id: object, payload: Mapping[str, Any], *, notify: bool = True
    ) -> Record:
        """Update one record; ``notify=False`` leaves reporting to the caller."""
        key = str(record_id)
        values = dict(payload)
        values.pop(self.config.id_field, None)
        try:
            validate_record(self.config, values, partial=True)
        except RecordValidationError as exc:
            self._record_failure(DialogKind.edit, values, exc)
            if notify:
                self._notify("error", exc.message)
            raise
        try:
            updated = await self._perform(
                "update", self.operations.update(key, values), notify=notify
            )
        except ResourceError as exc:
            self._record_failure(DialogKind.edit, values, exc)
            raise

        updated = dict(updated)
        replaced = False
        records: list[Record] = []
        for record in self.records:
            if self.config.record_id(record) == key:
                records.append(updated)
                replaced = True
            else:
                records.append(record)
        if replaced:
            self.records = records
        else:
            logger.info("Not restoring %s record %s removed during update", self.config.key, key)
        self._close_if(DialogKind.edit, key)
        self._bump()
        if notify:
            self._notify("success", f"{self.config.title} record updated")
        return updated

    async def remove(self, record_id: object, *, confirmed: bool = False) -> None:
        key = str(record_id)
        if not confirmed:
            raise ConfirmationRequired([key])
        await self._perform("delete", self.operations.delete(key))
        self.records = [
            record for record in self.records if self.config.record_id(record) != key
        ]
        self.pending = None
        self.dispatch(PruneRecords(record_ids=(key,)))
        self._close_if(DialogKind.edit, key)
        self._close_if(DialogKind.view, key)
        self._bump()
        logger.info("Deleted %s record %s", self.config.key, key)
        self._notify("success", f"{self.config.title} record deleted")

    async def bulk_remove(
        self, record_ids: Iterable[object] | None = None, *, confirmed: bool = False
    ) -> int:
        if record_ids is None:
            ids = [self.config.record_id(record) for record in self.selected_records()]
        else:
            ids = [str(item) for item in record_ids]
        if not ids:
            return 0
        if not confirmed:
            raise ConfirmationRequired(ids)
        await self._perform("bulk_delete", self.operations.bulk_delete(ids))
        targets = set(ids)
        before = len(self.records)
        self.records = [
            record for record in self.records if self.config.record_id(record) not in targets
        ]
        removed = before - len(self.records)
        self.pending = None
        self.dispatch(ClearSelection())
        self._bump()
        logger.info("Bulk deleted %s %s records", removed, self.config.key)
        noun = "item" if len(ids) == 1 else "items"
        self._notify("success", f"Deleted {len(ids)} {noun}")
        return removed

    # Bulk actions

    def _bulk_action(self, key: str) -> BulkAction:
        action = self.config.bulk_action(key)
        if action is None:
            raise ResourceError(f"Unknown bulk action: {key}")
        return action

    def request_bulk_action(self, key: str) -> PendingConfirmation:
        """Hold the current selection until the user confirms ``key`` on it."""
        action = self._bulk_action(key)
        if action.key == BULK_DELETE_ACTION.key and action.handler is None:
            return self.request_bulk_delete()
        selected = self.selected_records()
        if action.is_disabled(selected):
            raise ResourceError(f"{action.label} is not available for the current selection")
        self.pending = PendingConfirmation(
            record_ids=tuple(self.config.record_id(record) for record in selected),
            bulk=True,
            action=action.key,
        )
        return self.pending

    async def confirm_bulk_action(self, key: str, record_ids: Iterable[object]) -> int:
        """Run ``key`` on exactly the records listed on the confirmation page.

        Raises StaleConfirmationError when they no longer match the pending
        confirmation.
        """
        ids = tuple(str(item) for item in record_ids)
        pending = self.pending
        if (
            not ids
            or pending is None
            or not pending.bulk
            or pending.action != key
            or set(pending.record_ids) != set(ids)
        ):
            raise StaleConfirmationError(ids)
        return await self.run_bulk_action(key, confirmed=True, record_ids=pending.record_ids)

    async def run_bulk_action(
        self,
        key: str,
        *,
        confirmed: bool = False,
        record_ids: Iterable[object] | None = None,
    ) -> int:
        """Run a configured bulk action.

        Without ``record_ids`` the action runs over the selection as it is
        right now. A successful run clears the selection.
        """
        action = self._bulk_action(key)
        if record_ids is None:
            selected = self.selected_records()
        else:
            found = (self.find(record_id) for record_id in record_ids)
            selected = [record for record in found if record is not None]
        if action.is_disabled(selected):
            raise ResourceError(f"{action.label} is not available for the current selection")
        ids = [self.config.record_id(record) for record in selected]
        if action.key == BULK_DELETE_ACTION.key and action.handler is None:
            return await self.bulk_remove(ids, confirmed=confirmed)
        if action.handler is None:
            raise ResourceError(f"Bulk action {key} has no handler")
        if action.destructive and not confirmed:
            raise ConfirmationRequired(ids)
        await self._perform(f"bulk_{action.key}", action.handler(self, selected))
        self.pending = None
        self.dispatch(ClearSelection())
        logger.info("Ran %s on %s %s records", action.key, len(ids), self.config.key)
        self._notify("success", f"{action.label}: {len(ids)} selected")
        return len(ids)
