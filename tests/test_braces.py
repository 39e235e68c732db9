from __future__ import annotations

import allure
import pytest

from uni_flow.chain.braces import expand_braces, expand_command_braces

pytestmark = [
    allure.epic("Command Chains"),
    allure.feature("Brace Expansion"),
]


def test_expand_braces_returns_input_without_groups() -> None:
    assert expand_braces("todoist tasks --json") == ["todoist tasks --json"]


def test_expand_braces_ascending_range() -> None:
    assert expand_braces("page {1..3}") == ["page 1", "page 2", "page 3"]


def test_expand_braces_descending_and_negative_range() -> None:
    assert expand_braces("n{1..-1}") == ["n1", "n0", "n-1"]


def test_expand_braces_single_value_range() -> None:
    assert expand_braces("x{4..4}") == ["x4"]


def test_expand_braces_list_trims_whitespace() -> None:
    assert expand_braces("notes add { alpha , beta,gamma }") == [
        "notes add alpha",
        "notes add beta",
        "notes add gamma",
    ]


def test_expand_braces_multiple_groups_are_cartesian_in_order() -> None:
    assert expand_braces("{a,b}{1,2}") == ["a1", "a2", "b1", "b2"]


def test_expand_braces_keeps_chain_operators_inside_values() -> None:
    assert expand_braces("echo {x && y,z}") == ["echo x && y", "echo z"]


@pytest.mark.parametrize(
    ("value", "expected_count"),
    [
        ("{1..10}", 10),
        ("{a,b,c}{1..4}", 12),
        ("{1..2}{1..2}{1..2}", 8),
    ],
)
def test_expand_braces_result_size(value: str, expected_count: int) -> None:
    assert len(expand_braces(value)) == expected_count


def test_expand_command_braces_concatenates_in_input_order() -> None:
    assert expand_command_braces(["a{1,2}", "b", "c{x,y}"]) == ["a1", "a2", "b", "cx", "cy"]
