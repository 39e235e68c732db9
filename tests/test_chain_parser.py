from __future__ import annotations

import allure

from uni_flow.chain.models import Step, StepCondition
from uni_flow.chain.parser import parse_chain, tokenize_chain

pytestmark = [
    allure.epic("Command Chains"),
    allure.feature("Chain Parsing"),
]


def test_parse_chain_plain_command_is_single_always_step() -> None:
    assert parse_chain(["echo hello"]) == [Step(command="echo hello")]


def test_parse_chain_and_or_pipe_conditions() -> None:
    steps = parse_chain(["a && b || c | d"])

    assert steps == [
        Step("a", StepCondition.ALWAYS, consumes_pipe_input=False),
        Step("b", StepCondition.ON_SUCCESS, consumes_pipe_input=False),
        Step("c", StepCondition.ON_FAILURE, consumes_pipe_input=False),
        Step("d", StepCondition.ON_SUCCESS, consumes_pipe_input=True),
    ]


def test_parse_chain_state_does_not_leak_between_raw_strings() -> None:
    steps = parse_chain(["a && b", "c", "d | e"])

    assert [step.command for step in steps] == ["a", "b", "c", "d", "e"]
    assert steps[2].condition is StepCondition.ALWAYS
    assert steps[2].consumes_pipe_input is False
    assert steps[3].condition is StepCondition.ALWAYS
    assert steps[4].consumes_pipe_input is True


def test_parse_chain_ignores_empty_segments() -> None:
    steps = parse_chain(["  && a ||   ", ""])

    assert steps == [Step("a", StepCondition.ON_SUCCESS)]


def test_parse_chain_trailing_operator_is_dropped() -> None:
    assert parse_chain(["a |"]) == [Step("a")]


def test_parse_chain_operators_inside_quotes_are_literal() -> None:
    steps = parse_chain(["x 'a|b' | y \"c && d\""])

    assert steps == [
        Step("x 'a|b'"),
        Step('y "c && d"', StepCondition.ON_SUCCESS, consumes_pipe_input=True),
    ]


def test_parse_chain_escaped_pipe_is_literal() -> None:
    assert parse_chain([r"echo a\|b"]) == [Step(r"echo a\|b")]


def test_tokenize_chain_marks_operators() -> None:
    assert tokenize_chain("a||b") == [("a", False), ("||", True), ("b", False)]


def test_step_should_run_follows_condition() -> None:
    assert Step("a").should_run(False) is True
    assert Step("a", StepCondition.ON_SUCCESS).should_run(True) is True
    assert Step("a", StepCondition.ON_SUCCESS).should_run(False) is False
    assert Step("a", StepCondition.ON_FAILURE).should_run(False) is True
    assert Step("a", StepCondition.ON_FAILURE).should_run(True) is False
