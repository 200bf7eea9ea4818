import pytest

from app.config import Settings
from app.services.resource_catalog import ResourceWorkspace, register_default_resources
from app.services.table_state import SetSearch, ToggleSelect


@pytest.mark.asyncio
async def test_sessions_share_records_but_not_table_state(workspace):
    first = await workspace.orchestrator("products", session="browser-a")
    second = await workspace.orchestrator("products", session="browser-b")
    assert first is not second
    assert first is await workspace.orchestrator("products", session="browser-a")

    first.dispatch(SetSearch("lamp"))
    first.dispatch(ToggleSelect("10"))
    assert second.state.query.search_term == ""
    assert len(second.state.selection) == 0

    await first.update("10", {"stock": 3})
    await second.load()
    assert second.find("10")["stock"] == 3
    assert workspace.session_count() == 2


@pytest.mark.asyncio
async def test_least_recent_sessions_are_dropped():
    register_default_resources()
    workspace = ResourceWorkspace(
        Settings(resource_api_base_url="", max_page_size=200), seed=True, max_sessions=2
    )
    kept = await workspace.orchestrator("users", session="browser-a")
    kept.dispatch(ToggleSelect("1"))
    await workspace.orchestrator("users", session="browser-b")
    await workspace.orchestrator("users", session="browser-a")
    await workspace.orchestrator("users", session="browser-c")

    assert workspace.session_count() == 2
    assert await workspace.orchestrator("users", session="browser-a") is kept
    fresh = await workspace.orchestrator("users", session="browser-b")
    assert len(fresh.state.selection) == 0
