"""Built-in resources (users, products, orders) and the per-app workspace
that wires their stores and orchestrators together."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any

from app.config import Settings, settings as app_settings
from app.services.crud_orchestrator import CollectingNotifier, CrudOrchestrator
from app.services.resource_config import (
    BulkAction,
    FieldDescriptor,
    Participation,
    Record,
    ResourceConfig,
    ResourceRegistry,
    ValueType,
    enum_field,
)
from app.services.resource_operations import (
    HttpResourceOperations,
    InMemoryResourceOperations,
    ResourceOperations,
)

logger = logging.getLogger(__name__)

DISPLAY_ONLY = frozenset({Participation.table, Participation.view, Participation.sort})
VIEW_ONLY = frozenset({Participation.view})
DETAIL_FORM = frozenset({Participation.form, Participation.view})

# Table state is kept for this many admin browsers; the least recent go first.
MAX_VIEW_SESSIONS = 500
DEFAULT_VIEW_SESSION = "default"


def _id_field() -> FieldDescriptor:
    return FieldDescriptor(
        key="id",
        label="ID",
        participates_in=frozenset({Participation.table, Participation.view, Participation.sort}),
    )


def _audit_fields() -> tuple[FieldDescriptor, FieldDescriptor]:
    return (
        FieldDescriptor(
            key="created_at",
            label="Created At",
            value_type=ValueType.date,
            participates_in=DISPLAY_ONLY | {Participation.filter},
        ),
        FieldDescriptor(
            key="updated_at", label="Updated At", value_type=ValueType.date, participates_in=VIEW_ONLY
        ),
    )


def _validate_email(value: Any) -> str | None:
    text = str(value)
    local, _, domain = text.partition("@")
    if not local or "." not in domain:
        return "Enter a valid email address"
    return None


def _non_negative(label: str):
    def validator(value: Any) -> str | None:
        if isinstance(value, (int, float)) and value < 0:
            return f"{label} cannot be negative"
        return None

    return validator


def _whole_number(value: Any) -> str | None:
    if isinstance(value, float) and not value.is_integer():
        return "Stock must be a whole number"
    if isinstance(value, (int, float)) and value < 0:
        return "Stock cannot be negative"
    return None


async def _deactivate_users(orchestrator: CrudOrchestrator, records: list[Record]) -> None:
    for record in records:
        await orchestrator.update(
            orchestrator.config.record_id(record), {"is_active": False}, notify=False
        )


async def _mark_orders_shipped(orchestrator: CrudOrchestrator, records: list[Record]) -> None:
    for record in records:
        await orchestrator.update(
            orchestrator.config.record_id(record), {"status": "shipped"}, notify=False
        )


USERS = ResourceConfig(
    key="users",
    title="Users",
    description="Manage system users and their roles",
    fields=(
        _id_field(),
        FieldDescriptor(key="email", label="Email", required=True, validator=_validate_email),
        FieldDescriptor(key="first_name", label="First Name", required=True),
        FieldDescriptor(key="last_name", label="Last Name", required=True),
        enum_field(
            "role",
            {"admin": "Admin", "manager": "Manager", "user": "User"},
            label="Role",
            required=True,
        ),
        FieldDescriptor(key="avatar", label="Avatar", value_type=ValueType.url, participates_in=DETAIL_FORM),
        FieldDescriptor(key="is_active", label="Active", value_type=ValueType.boolean),
        *_audit_fields(),
    ),
    bulk_actions=(
        BulkAction(
            key="deactivate",
            label="Deactivate selected",
            variant="outline",
            handler=_deactivate_users,
            disabled=lambda records: all(not record.get("is_active") for record in records),
        ),
    ),
)

PRODUCTS = ResourceConfig(
    key="products",
    title="Products",
    description="Manage product catalog and inventory",
    fields=(
        _id_field(),
        FieldDescriptor(key="name", label="Name", required=True),
        FieldDescriptor(key="description", label="Description", value_type=ValueType.text, required=True),
        FieldDescriptor(
            key="price",
            label="Price",
            value_type=ValueType.number,
            required=True,
            validator=_non_negative("Price"),
            participates_in=frozenset(
                {Participation.table, Participation.form, Participation.view, Participation.sort, Participation.filter}
            ),
        ),
        enum_field(
            "category",
            {"electronics": "Electronics", "clothing": "Clothing", "books": "Books", "home": "Home"},
            label="Category",
            required=True,
        ),
        FieldDescriptor(
            key="stock", label="Stock", value_type=ValueType.number, required=True, validator=_whole_number
        ),
        FieldDescriptor(key="sku", label="SKU", required=True),
        FieldDescriptor(key="image", label="Image", value_type=ValueType.url, participates_in=DETAIL_FORM),
        *_audit_fields(),
    ),
)

ORDERS = ResourceConfig(
    key="orders",
    title="Orders",
    description="Manage customer orders and fulfillment",
    fields=(
        _id_field(),
        FieldDescriptor(key="order_number", label="Order Number", required=True),
        FieldDescriptor(
            key="customer_id",
            label="Customer ID",
            required=True,
            participates_in=DETAIL_FORM | {Participation.search},
        ),
        FieldDescriptor(key="customer_name", label="Customer Name", required=True),
        FieldDescriptor(
            key="total",
            label="Total",
            value_type=ValueType.number,
            required=True,
            validator=_non_negative("Total"),
        ),
        enum_field(
            "status",
            {
                "pending": "Pending",
                "processing": "Processing",
                "shipped": "Shipped",
                "delivered": "Delivered",
                "cancelled": "Cancelled",
            },
            label="Status",
            required=True,
        ),
        *_audit_fields(),
    ),
    bulk_actions=(
        BulkAction(
            key="mark_shipped",
            label="Mark shipped",
            variant="outline",
            handler=_mark_orders_shipped,
            disabled=lambda records: any(
                record.get("status") not in ("pending", "processing") for record in records
            ),
        ),
    ),
)

DEFAULT_RESOURCES = (USERS, PRODUCTS, ORDERS)

SEED_RECORDS: dict[str, list[Record]] = {
    "users": [
        {"id": "1", "email": "admin@example.com", "first_name": "Super", "last_name": "Admin",
         "role": "admin", "avatar": None, "is_active": True,
         "created_at": "2024-01-15", "updated_at": "2024-03-01"},
        {"id": "2", "email": "manager@example.com", "first_name": "John", "last_name": "Manager",
         "role": "manager", "avatar": None, "is_active": True,
         "created_at": "2024-02-02", "updated_at": "2024-02-20"},
        {"id": "3", "email": "user@example.com", "first_name": "Jane", "last_name": "User",
         "role": "user", "avatar": None, "is_active": True,
         "created_at": "2024-02-18", "updated_at": "2024-02-18"},
        {"id": "4", "email": "guest@example.com", "first_name": "Guest", "last_name": "User",
         "role": "user", "avatar": None, "is_active": False,
         "created_at": "2024-03-05", "updated_at": "2024-04-11"},
    ],
    "products": [
        {"id": "1", "name": "Laptop Pro 15", "description": "15-inch laptop with 32 GB RAM",
         "price": 1299, "category": "electronics", "stock": 42, "sku": "LP-1500",
         "image": None, "created_at": "2024-01-10", "updated_at": "2024-01-10"},
        {"id": "2", "name": "Wireless Mouse", "description": "Ergonomic wireless mouse",
         "price": 29.99, "category": "electronics", "stock": 310, "sku": "WM-0200",
         "image": None, "created_at": "2024-01-12", "updated_at": "2024-02-01"},
        {"id": "3", "name": "Mechanical Keyboard", "description": "Tenkeyless, brown switches",
         "price": 89.5, "category": "electronics", "stock": 75, "sku": "MK-0870",
         "image": None, "created_at": "2024-01-20", "updated_at": "2024-01-20"},
        {"id": "4", "name": "USB-C Hub", "description": "7-in-1 hub with HDMI",
         "price": 45, "category": "electronics", "stock": 0, "sku": "HB-0007",
         "image": None, "created_at": "2024-02-03", "updated_at": "2024-03-15"},
        {"id": "5", "name": "Cotton T-Shirt", "description": "Unisex crew neck tee",
         "price": 15, "category": "clothing", "stock": 500, "sku": "TS-0100",
         "image": None, "created_at": "2024-02-05", "updated_at": "2024-02-05"},
        {"id": "6", "name": "Rain Jacket", "description": "Packable waterproof jacket",
         "price": 120, "category": "clothing", "stock": 38, "sku": "RJ-0300",
         "image": None, "created_at": "2024-02-11", "updated_at": "2024-02-11"},
        {"id": "7", "name": "Running Shoes", "description": "Lightweight trail runners",
         "price": 95, "category": "clothing", "stock": 64, "sku": "RS-0410",
         "image": None, "created_at": "2024-02-19", "updated_at": "2024-02-19"},
        {"id": "8", "name": "Python Cookbook", "description": "Recipes for mastering Python 3",
         "price": 49.99, "category": "books", "stock": 23, "sku": "BK-1001",
         "image": None, "created_at": "2024-03-01", "updated_at": "2024-03-01"},
        {"id": "9", "name": "Design Patterns", "description": "Elements of reusable software",
         "price": 54, "category": "books", "stock": 12, "sku": "BK-1002",
         "image": None, "created_at": "2024-03-04", "updated_at": "2024-03-04"},
        {"id": "10", "name": "Desk Lamp", "description": "LED lamp with dimmer",
         "price": 34.95, "category": "home", "stock": 88, "sku": "DL-0050",
         "image": None, "created_at": "2024-03-09", "updated_at": "2024-03-09"},
        {"id": "11", "name": "Coffee Grinder", "description": "Burr grinder, 15 settings",
         "price": 79, "category": "home", "stock": 17, "sku": "CG-0015",
         "image": None, "created_at": "2024-03-12", "updated_at": "2024-03-20"},
        {"id": "12", "name": "Throw Blanket", "description": "Knitted wool blanket",
         "price": 60, "category": "home", "stock": 40, "sku": "TB-0060",
         "image": None, "created_at": "2024-03-18", "updated_at": "2024-03-18"},
    ],
    "orders": [
        {"id": "1", "order_number": "ORD-1001", "customer_id": "3", "customer_name": "Jane User",
         "total": 1328.99, "status": "delivered", "created_at": "2024-03-02", "updated_at": "2024-03-06"},
        {"id": "2", "order_number": "ORD-1002", "customer_id": "3", "customer_name": "Jane User",
         "total": 15, "status": "shipped", "created_at": "2024-03-10", "updated_at": "2024-03-11"},
        {"id": "3", "order_number": "ORD-1003", "customer_id": "4", "customer_name": "Guest User",
         "total": 174.5, "status": "processing", "created_at": "2024-03-14", "updated_at": "2024-03-14"},
        {"id": "4", "order_number": "ORD-1004", "customer_id": "2", "customer_name": "John Manager",
         "total": 89.5, "status": "pending", "created_at": "2024-03-16", "updated_at": "2024-03-16"},
        {"id": "5", "order_number": "ORD-1005", "customer_id": "4", "customer_name": "Guest User",
         "total": 49.99, "status": "cancelled", "created_at": "2024-03-18", "updated_at": "2024-03-19"},
        {"id": "6", "order_number": "ORD-1006", "customer_id": "3", "customer_name": "Jane User",
         "total": 139, "status": "pending", "created_at": "2024-03-21", "updated_at": "2024-03-21"},
    ],
}


def register_default_resources() -> list[ResourceConfig]:
    for config in DEFAULT_RESOURCES:
        ResourceRegistry.register(config)
    return list(DEFAULT_RESOURCES)


class ResourceWorkspace:
    """Stores and orchestrators for every registered resource.

    Each resource gets one in-memory store, served by the REST routes. Each
    view session (one admin browser) gets its own orchestrator per resource,
    so table state, dialogs and pending confirmations stay with the browser
    that made them. With ``resource_api_base_url`` set the orchestrators talk
    to that backend over HTTP instead.
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        seed: bool | None = None,
        max_sessions: int = MAX_VIEW_SESSIONS,
    ):
        self.settings = config or app_settings
        self.seed = self.settings.seed_sample_data if seed is None else seed
        self.max_sessions = max_sessions
        self._stores: dict[str, InMemoryResourceOperations] = {}
        self._operations_by_key: dict[str, ResourceOperations] = {}
        self._sessions: OrderedDict[str, dict[str, CrudOrchestrator]] = OrderedDict()

    def store(self, key: str) -> InMemoryResourceOperations:
        if key not in self._stores:
            config = ResourceRegistry.get(key)
            records = SEED_RECORDS.get(key, []) if self.seed else []
            self._stores[key] = InMemoryResourceOperations(config, records)
            logger.info("Initialized %s store with %s records", key, len(records))
        return self._stores[key]

    def _operations(self, config: ResourceConfig) -> ResourceOperations:
        operations = self._operations_by_key.get(config.key)
        if operations is not None:
            return operations
        base_url = self.settings.resource_api_base_url
        if not base_url:
            operations = self.store(config.key)
        else:
            headers = {}
            if self.settings.resource_api_token:
                headers["Authorization"] = f"Bearer {self.settings.resource_api_token}"
            operations = HttpResourceOperations(
                config, base_url, timeout=self.settings.resource_api_timeout, headers=headers
            )
        self._operations_by_key[config.key] = operations
        return operations

    def _session_orchestrators(self, session: str) -> dict[str, CrudOrchestrator]:
        orchestrators = self._sessions.get(session)
        if orchestrators is not None:
            self._sessions.move_to_end(session)
            return orchestrators
        orchestrators = self._sessions[session] = {}
        while len(self._sessions) > self.max_sessions:
            expired, _ = self._sessions.popitem(last=False)
            logger.info("Dropped table state of idle view session %s", expired[:8])
        return orchestrators

    async def orchestrator(
        self, key: str, *, session: str = DEFAULT_VIEW_SESSION, refresh: bool = False
    ) -> CrudOrchestrator:
        orchestrators = self._session_orchestrators(session)
        orchestrator = orchestrators.get(key)
        if orchestrator is None:
            config = ResourceRegistry.get(key)
            page_size = min(config.page_size, self.settings.max_page_size)
            orchestrator = CrudOrchestrator(
                config,
                self._operations(config),
                CollectingNotifier(),
                page_size=page_size,
            )
            orchestrators[key] = orchestrator
        if refresh or not orchestrator.loaded:
            await orchestrator.load()
        return orchestrator

    def session_count(self) -> int:
        return len(self._sessions)

    async def aclose(self) -> None:
        for operations in self._operations_by_key.values():
            if isinstance(operations, HttpResourceOperations):
                await operations.aclose()
        self._operations_by_key.clear()
        self._sessions.clear()
