import pytest

from app.services.dynamic_filters import FilterCondition
from app.services.query_pipeline import SortSpec
from app.services.resource_catalog import ORDERS
from app.services.resource_errors import RecordNotFoundError, ResourceOperationError
from app.services.resource_operations import InMemoryResourceOperations, ListParams


@pytest.mark.asyncio
async def test_list_applies_query_and_pagination(task_store):
    result = await task_store.list(
        ListParams(page=1, limit=2, filters={"status": "open"}, sort=SortSpec("points", "desc"))
    )
    assert result.total == 3
    assert [row["id"] for row in result.data] == ["1", "4"]


@pytest.mark.asyncio
async def test_list_returns_copies(task_store):
    result = await task_store.list(ListParams(limit=10))
    result.data[0]["name"] = "changed"
    assert (await task_store.get_by_id("1"))["name"] == "Write docs"


@pytest.mark.asyncio
async def test_create_assigns_next_numeric_id(task_store):
    created = await task_store.create({"name": "New", "status": "open"})
    assert created["id"] == "6"
    created = await task_store.create({"name": "Another", "status": "open", "id": ""})
    assert created["id"] == "7"


@pytest.mark.asyncio
async def test_create_with_existing_id_conflicts(task_store):
    with pytest.raises(ResourceOperationError) as excinfo:
        await task_store.create({"id": 1, "name": "Dup"})
    assert excinfo.value.status_code == 409


@pytest.mark.asyncio
async def test_custom_id_factory(tasks_config):
    store = InMemoryResourceOperations(tasks_config, id_factory=lambda: "task-abc")
    assert (await store.create({"name": "X"}))["id"] == "task-abc"


@pytest.mark.asyncio
async def test_update_merges_and_keeps_id(task_store):
    updated = await task_store.update("2", {"name": "Fix logout", "id": "20"})
    assert updated == {**updated, "id": "2", "name": "Fix logout", "status": "done"}


@pytest.mark.asyncio
async def test_missing_records_raise_not_found(task_store):
    with pytest.raises(RecordNotFoundError):
        await task_store.get_by_id("99")
    with pytest.raises(RecordNotFoundError):
        await task_store.update("99", {"name": "x"})
    with pytest.raises(RecordNotFoundError):
        await task_store.delete("99")


@pytest.mark.asyncio
async def test_bulk_delete_ignores_unknown_ids(task_store):
    await task_store.bulk_delete(["1", "3", "99"])
    assert [record["id"] for record in task_store.snapshot()] == ["2", "4", "5"]


@pytest.mark.asyncio
async def test_audit_dates_are_stamped_when_declared():
    store = InMemoryResourceOperations(ORDERS)
    created = await store.create({"order_number": "ORD-1", "created_at": "2020-01-01"})
    assert created["created_at"] == "2020-01-01"
    assert created["updated_at"]

    updated = await store.update(created["id"], {"status": "pending", "updated_at": "1999-01-01"})
    assert updated["updated_at"] != "1999-01-01"


@pytest.mark.asyncio
async def test_list_with_between_filter(task_store):
    result = await task_store.list(
        ListParams(limit=10, filters={"due": FilterCondition("between", {"from": "2024-02-01", "to": "2024-03-31"})})
    )
    assert [row["id"] for row in result.data] == ["1", "2"]
