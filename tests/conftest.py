import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import app
from app.schemas.display_settings import DisplaySettings
from app.services.crud_orchestrator import CrudOrchestrator
from app.services.display_settings import StaticDisplaySettingsProvider
from app.services.resource_catalog import ResourceWorkspace, register_default_resources
from app.services.resource_config import (
    BulkAction,
    FieldDescriptor,
    Participation,
    ResourceConfig,
    ValueType,
    default_participation,
    enum_field,
)
from app.services.resource_operations import InMemoryResourceOperations


def _test_settings(**overrides) -> Settings:
    values = {
        "resource_api_base_url": "",
        "admin_session_token": None,
        "seed_sample_data": True,
        "max_page_size": 200,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(autouse=True)
def open_admin(monkeypatch):
    """Run without an admin token unless a test sets one."""
    from app.services import auth_dependencies
    from app.web.auth import routes as auth_routes

    test_settings = _test_settings()
    monkeypatch.setattr(auth_dependencies, "settings", test_settings)
    monkeypatch.setattr(auth_routes, "settings", test_settings)
    return test_settings


@pytest.fixture()
def display():
    return DisplaySettings()


@pytest.fixture()
def workspace():
    register_default_resources()
    return ResourceWorkspace(_test_settings(), seed=True)


@pytest.fixture()
def client(workspace):
    app.state.workspace = workspace
    app.state.display_provider = StaticDisplaySettingsProvider()
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.state.workspace = None
    app.state.display_provider = None


@pytest.fixture()
def tasks_config():
    """Small resource used by engine-level tests."""
    return ResourceConfig(
        key="tasks",
        title="Tasks",
        page_size=2,
        fields=(
            FieldDescriptor(key="id", label="ID"),
            FieldDescriptor(key="name", label="Name", required=True),
            enum_field(
                "status",
                {"open": "Open", "done": "Done"},
                label="Status",
                required=True,
            ),
            FieldDescriptor(key="points", label="Points", value_type=ValueType.number),
            FieldDescriptor(key="urgent", label="Urgent", value_type=ValueType.boolean),
            FieldDescriptor(
                key="due",
                label="Due",
                value_type=ValueType.date,
                participates_in=default_participation(ValueType.date) | {Participation.filter},
            ),
        ),
        bulk_actions=(
            BulkAction(key="archive", label="Archive", destructive=True, handler=None),
        ),
    )


@pytest.fixture()
def task_records():
    return [
        {"id": "1", "name": "Write docs", "status": "open", "points": 3, "urgent": True, "due": "2024-03-01"},
        {"id": "2", "name": "Fix login", "status": "done", "points": 5, "urgent": False, "due": "2024-02-10"},
        {"id": "3", "name": "Review PR", "status": "open", "points": None, "urgent": False, "due": None},
        {"id": "4", "name": "Deploy", "status": "open", "points": 1, "urgent": True, "due": "2024-04-20"},
        {"id": "5", "name": "Plan sprint", "status": "done", "points": 8, "urgent": False, "due": "2024-01-05"},
    ]


@pytest.fixture()
def task_store(tasks_config, task_records):
    return InMemoryResourceOperations(tasks_config, task_records)


@pytest.fixture()
def orchestrator(tasks_config, task_store):
    return CrudOrchestrator(tasks_config, task_store)
