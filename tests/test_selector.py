from __future__ import annotations

import allure
import pytest

from uni_flow.pipe.selector import get_by_path, select_path

pytestmark = [
    allure.epic("JSON Pipelines"),
    allure.feature("Selection"),
]

EVENTS = {
    "events": [
        {"title": "Standup", "attendees": [{"email": "a@x.io"}, {"email": "b@x.io"}]},
        {"title": "Review", "attendees": [{"email": "c@x.io"}]},
        {"title": "Focus"},
    ],
    "meta": {"count": 3},
}


def test_select_path_wildcard_field() -> None:
    data = {"items": [{"name": "a"}, {"name": "b"}]}

    assert select_path(data, "items[*].name") == ["a", "b"]


def test_select_path_nested_wildcards_flatten() -> None:
    assert select_path(EVENTS, "events[*].attendees[*].email") == ["a@x.io", "b@x.io", "c@x.io"]


def test_select_path_drops_missing_values() -> None:
    assert select_path(EVENTS, "events[*].attendees") == [
        {"email": "a@x.io"},
        {"email": "b@x.io"},
        {"email": "c@x.io"},
    ]


def test_select_path_trailing_wildcard_returns_array_items() -> None:
    assert select_path(EVENTS, "events[*]") == EVENTS["events"]


@pytest.mark.parametrize("path", ["", ".", None])
def test_select_path_identity(path: str | None) -> None:
    assert select_path([1, 2], path) == [1, 2]
    assert select_path({"a": 1}, path) == [{"a": 1}]


def test_select_path_scalar_result_is_wrapped() -> None:
    assert select_path(EVENTS, "meta.count") == [3]


def test_select_path_missing_path_is_empty() -> None:
    assert select_path(EVENTS, "nope.deeper") == []


def test_get_by_path_index_and_default() -> None:
    assert get_by_path(EVENTS, "events[1].title") == "Review"
    assert get_by_path(EVENTS, "events[9].title", default="?") == "?"
    assert get_by_path(EVENTS, "meta.count.value") is None


def test_get_by_path_star_returns_current_array() -> None:
    assert get_by_path(EVENTS, "events.*") == EVENTS["events"]
