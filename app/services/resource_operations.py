"""Resource operation backends consumed by the CRUD orchestrator.

``InMemoryResourceOperations`` serves mock/offline mode and backs the REST
routes in ``app.api.resources``; ``HttpResourceOperations`` talks to any
backend exposing the same REST contract.
"""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

import httpx

from app.services.dynamic_filters import filters_to_payload
from app.services.query_pipeline import QueryState, SortSpec, compute_visible, paginate
from app.services.resource_config import Record, ResourceConfig
from app.services.resource_errors import RecordNotFoundError, ResourceOperationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListParams:
    page: int = 1
    limit: int = 10
    search: str = ""
    filters: Mapping[str, Any] = field(default_factory=dict)
    sort: SortSpec | None = None


@dataclass(frozen=True)
class ListResult:
    data: list[Record]
    total: int


class ResourceOperations(Protocol):
    async def list(self, params: ListParams) -> ListResult: ...

    async def get_by_id(self, record_id: str) -> Record: ...

    async def create(self, payload: Mapping[str, Any]) -> Record: ...

    async def update(self, record_id: str, payload: Mapping[str, Any]) -> Record: ...

    async def delete(self, record_id: str) -> None: ...

    async def bulk_delete(self, record_ids: list[str]) -> None: ...


class InMemoryResourceOperations:
    """Record store kept in process memory.

    New records get the next free numeric id as a string unless the payload
    already carries one or an ``id_factory`` is given.
    """

    def __init__(
        self,
        config: ResourceConfig,
        records: Iterable[Mapping[str, Any]] | None = None,
        *,
        id_factory: Callable[[], str] | None = None,
    ):
        self.config = config
        self._records: list[Record] = [dict(record) for record in records or []]
        self._id_factory = id_factory
        self._counter = itertools.count(self._max_numeric_id() + 1)

    def _max_numeric_id(self) -> int:
        numeric = [
            int(self.config.record_id(record))
            for record in self._records
            if self.config.record_id(record).isdigit()
        ]
        return max(numeric, default=0)

    def _next_id(self) -> str:
        if self._id_factory is not None:
            return str(self._id_factory())
        while True:
            candidate = str(next(self._counter))
            if self._index(candidate) is None:
                return candidate

    def _index(self, record_id: str) -> int | None:
        for index, record in enumerate(self._records):
            if self.config.record_id(record) == str(record_id):
                return index
        return None

    def _stamp(self, record: Record, *keys: str, overwrite: bool = False) -> None:
        """Fill audit date fields the resource declares."""
        today = date.today().isoformat()
        for key in keys:
            if self.config.get_field(key) is None:
                continue
            if overwrite or record.get(key) in (None, ""):
                record[key] = today

    def snapshot(self) -> list[Record]:
        return [dict(record) for record in self._records]

    async def list(self, params: ListParams) -> ListResult:
        query = QueryState(search_term=params.search, filters=dict(params.filters), sort=params.sort)
        rows = compute_visible(self._records, query, self.config)
        page = paginate(rows, params.page, params.limit)
        return ListResult(data=[dict(record) for record in page.items], total=page.total_count)

    async def get_by_id(self, record_id: str) -> Record:
        index = self._index(record_id)
        if index is None:
            raise RecordNotFoundError(str(record_id), operation="get")
        return dict(self._records[index])

    async def create(self, payload: Mapping[str, Any]) -> Record:
        record = dict(payload)
        id_field = self.config.id_field
        if record.get(id_field) in (None, ""):
            record[id_field] = self._next_id()
        else:
            record[id_field] = str(record[id_field])
            if self._index(record[id_field]) is not None:
                raise ResourceOperationError(
                    f"Record {record[id_field]} already exists",
                    operation="create",
                    status_code=409,
                )
        self._stamp(record, "created_at", "updated_at")
        self._records.append(record)
        logger.debug("Created %s record %s", self.config.key, record[id_field])
        return dict(record)

    async def update(self, record_id: str, payload: Mapping[str, Any]) -> Record:
        index = self._index(record_id)
        if index is None:
            raise RecordNotFoundError(str(record_id), operation="update")
        current = self._records[index]
        updated = {**current, **dict(payload)}
        updated[self.config.id_field] = current[self.config.id_field]
        self._stamp(updated, "updated_at", overwrite=True)
        self._records[index] = updated
        return dict(updated)

    async def delete(self, record_id: str) -> None:
        index = self._index(record_id)
        if index is None:
            raise RecordNotFoundError(str(record_id), operation="delete")
        del self._records[index]

    async def bulk_delete(self, record_ids: list[str]) -> None:
        targets = {str(item) for item in record_ids}
        before = len(self._records)
        self._records = [
            record for record in self._records if self.config.record_id(record) not in targets
        ]
        removed = before - len(self._records)
        if removed != len(targets):
            logger.debug(
                "Bulk delete on %s removed %s of %s ids", self.config.key, removed, len(targets)
            )


class HttpResourceOperations:
    """REST client for a resource backend.

    Routes are relative to ``base_url`` + ``config.api_prefix``:
    ``GET /``, ``GET /{id}``, ``POST /``, ``PATCH /{id}``, ``DELETE /{id}``
    and ``POST /bulk-delete``. List responses are ``{"data": [...], "total": n}``.
    """

    def __init__(
        self,
        config: ResourceConfig,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
    ):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, headers=dict(headers or {})
        )
        self._prefix = config.api_prefix.rstrip("/")

    async def __aenter__(self) -> HttpResourceOperations:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _path(self, suffix: str = "") -> str:
        return f"{self._prefix}{suffix}"

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed for %s: %s", method, path, self.config.key, exc)
            raise ResourceOperationError(
                f"Could not reach the {self.config.title} service",
                operation=operation,
            ) from exc

        if response.status_code == 404 and operation in {"get", "update", "delete"}:
            record_id = path.rsplit("/", 1)[-1]
            raise RecordNotFoundError(record_id, operation=operation)
        if response.status_code >= 400:
            details: object = None
            message = f"{operation.capitalize()} failed with status {response.status_code}"
            try:
                details = response.json()
            except ValueError:
                details = response.text or None
            if isinstance(details, dict) and isinstance(details.get("message"), str):
                message = details["message"]
            logger.warning(
                "%s %s returned %s for %s", method, path, response.status_code, self.config.key
            )
            raise ResourceOperationError(
                message,
                operation=operation,
                status_code=response.status_code,
                details=details,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ResourceOperationError(
                "Backend returned an invalid JSON body", operation=operation
            ) from exc

    async def list(self, params: ListParams) -> ListResult:
        query: dict[str, Any] = {"page": params.page, "limit": params.limit}
        if params.search:
            query["search"] = params.search
        filters = filters_to_payload(params.filters)
        if filters:
            query["filters"] = json.dumps(filters, default=str)
        if params.sort is not None:
            query["sort"] = params.sort.field
            query["order"] = params.sort.direction
        response = await self._request("list", "GET", self._path(), params=query)
        payload = self._json(response, "list")
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise ResourceOperationError("Backend returned an invalid list body", operation="list")
        return ListResult(data=list(payload["data"]), total=int(payload.get("total", 0)))

    async def get_by_id(self, record_id: str) -> Record:
        response = await self._request("get", "GET", self._path(f"/{record_id}"))
        return self._json(response, "get")

    async def create(self, payload: Mapping[str, Any]) -> Record:
        response = await self._request(
            "create", "POST", self._path(), content=json.dumps(dict(payload), default=str),
            headers={"content-type": "application/json"},
        )
        return self._json(response, "create")

    async def update(self, record_id: str, payload: Mapping[str, Any]) -> Record:
        response = await self._request(
            "update", "PATCH", self._path(f"/{record_id}"),
            content=json.dumps(dict(payload), default=str),
            headers={"content-type": "application/json"},
        )
        return self._json(response, "update")

    async def delete(self, record_id: str) -> None:
        await self._request("delete", "DELETE", self._path(f"/{record_id}"))

    async def bulk_delete(self, record_ids: list[str]) -> None:
        await self._request(
            "bulk_delete", "POST", self._path("/bulk-delete"),
            json={"ids": [str(item) for item in record_ids]},
        )
