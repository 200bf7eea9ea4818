import json

import pytest

from app.schemas.display_settings import DisplaySettings
from app.services.dynamic_filters import FilterCondition
from app.services.display_settings import StaticDisplaySettingsProvider
from app.services.resource_errors import ResourceError
from app.services.table_intents import filter_value_from_form, parse_intent
from app.services.table_state import (
    ClearSelection,
    ClickSortHeader,
    GoToPage,
    SetFilter,
    SetPageSize,
    SetSearch,
    ToggleSelect,
)
from app.services.table_view import build_table_view, found_label, page_window


def test_page_window_marks_gaps():
    assert page_window(1, 1) == [1]
    assert page_window(1, 4) == [1, 2, 3, 4]
    assert page_window(6, 12) == [1, None, 4, 5, 6, 7, 8, None, 12]
    assert page_window(12, 12) == [1, None, 10, 11, 12]


def test_found_label():
    assert found_label(0) == "0 items found"
    assert found_label(1) == "1 item found"
    assert found_label(5) == "5 items found"


@pytest.mark.asyncio
async def test_build_table_view(orchestrator):
    await orchestrator.load()
    orchestrator.dispatch(ClickSortHeader("points"))
    orchestrator.dispatch(ToggleSelect("4"))

    view = build_table_view(orchestrator)

    assert view.title == "Tasks"
    assert [header.key for header in view.headers] == ["id", "name", "status", "points", "urgent", "due"]
    points = next(header for header in view.headers if header.key == "points")
    assert points.aria_sort == "ascending"
    assert [row.id for row in view.rows] == ["4", "1"]
    assert view.rows[0].selected
    assert [action.key for action in view.rows[0].actions] == ["view", "edit", "delete"]
    assert view.selected_count == 1
    assert not view.all_selected
    assert view.found_label == "5 items found"
    assert view.pagination.total_pages == 3
    assert view.pagination.window == [1, 2, 3]
    assert view.pagination.has_next
    assert not view.pagination.has_previous
    assert view.density_class == "py-2 px-3 text-sm"


@pytest.mark.asyncio
async def test_bulk_actions_disabled_without_selection(orchestrator):
    await orchestrator.load()
    view = build_table_view(orchestrator)
    assert {action.key: action.disabled for action in view.bulk_actions} == {
        "archive": True,
        "delete": True,
    }


@pytest.mark.asyncio
async def test_filter_controls_and_chips(orchestrator):
    await orchestrator.load()
    orchestrator.dispatch(SetFilter("status", "done"))
    orchestrator.dispatch(SetFilter("due", FilterCondition("between", {"from": "2024-01-01", "to": ""})))

    view = build_table_view(orchestrator, StaticDisplaySettingsProvider(DisplaySettings(table_density="compact")))

    controls = {control.key: control for control in view.filters}
    assert set(controls) == {"status", "urgent", "due"}
    assert controls["due"].control == "date_range"
    assert controls["status"].selected_value == "done"
    assert [option.value for option in controls["status"].options] == ["all", "open", "done"]
    assert controls["urgent"].selected_value == "all"
    assert [option.label for option in controls["urgent"].options] == ["All", "Yes", "No"]
    assert view.active_filters == ["Status: Done", "Due from 2024-01-01"]
    assert view.density == "compact"


@pytest.mark.asyncio
async def test_empty_view(orchestrator):
    await orchestrator.load()
    orchestrator.dispatch(SetSearch("nothing matches this"))
    view = build_table_view(orchestrator)
    assert view.is_empty
    assert view.found_label == "0 items found"
    assert view.pagination.start_index == 0
    assert view.pagination.window == [1]


@pytest.mark.asyncio
async def test_to_dict_is_json_serializable(orchestrator):
    await orchestrator.load()
    orchestrator.dispatch(SetFilter("due", FilterCondition("between", {"from": "2024-02-01", "to": ""})))
    payload = build_table_view(orchestrator).to_dict()
    encoded = json.loads(json.dumps(payload))
    assert encoded["resource"] == "tasks"
    assert encoded["rows"][0]["cells"][1]["text"] == "Write docs"


def test_parse_intent_builds_actions(tasks_config):
    assert parse_intent(tasks_config, {"intent": "search", "search": " docs "}) == SetSearch("docs")
    assert parse_intent(tasks_config, {"intent": "page", "page": "3"}) == GoToPage(3)
    assert parse_intent(tasks_config, {"intent": "page_size", "page_size": 25}) == SetPageSize(25)
    assert parse_intent(tasks_config, {"intent": "sort", "field": "name"}) == ClickSortHeader("name")
    assert parse_intent(tasks_config, {"intent": "toggle", "record_id": "2"}) == ToggleSelect("2")
    assert parse_intent(tasks_config, {"intent": "clear_selection"}) == ClearSelection()


def test_parse_intent_rejects_bad_input(tasks_config):
    for data in (
        {},
        {"intent": "launch"},
        {"intent": "page", "page": ""},
        {"intent": "filter"},
        {"intent": "toggle"},
    ):
        with pytest.raises(ResourceError):
            parse_intent(tasks_config, data)


def test_range_filter_values_from_form(tasks_config):
    value = filter_value_from_form(
        tasks_config, {"field": "points", "value_from": "2", "value_to": "5"}
    )
    assert value == FilterCondition("between", {"from": "2", "to": "5"})
    assert filter_value_from_form(tasks_config, {"field": "points", "value_from": "", "value_to": ""}) is None
    assert filter_value_from_form(tasks_config, {"field": "status", "value": " open "}) == "open"
