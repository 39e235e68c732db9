"""Split raw command strings into conditional/piped steps."""

from __future__ import annotations

import logging

from uni_flow.chain.models import Step, StepCondition

logger = logging.getLogger(__name__)

AND_OPERATOR = "&&"
OR_OPERATOR = "||"
PIPE_OPERATOR = "|"


def parse_chain(raw_commands: list[str]) -> list[Step]:
    """Parse ``&&``, ``||`` and ``|`` operators into an ordered step list.

    Operator state never leaks between separate raw strings: each one starts
    with an unconditional, non-piped first step.
    """

    steps: list[Step] = []
    for raw in raw_commands:
        condition = StepCondition.ALWAYS
        pipe = False
        for token, is_operator in tokenize_chain(raw):
            if is_operator:
                if token == AND_OPERATOR:
                    condition, pipe = StepCondition.ON_SUCCESS, False
                elif token == OR_OPERATOR:
                    condition, pipe = StepCondition.ON_FAILURE, False
                else:
                    condition, pipe = StepCondition.ON_SUCCESS, True
                continue

            command = token.strip()
            if not command:
                continue
            steps.append(Step(command=command, condition=condition, consumes_pipe_input=pipe))
            condition, pipe = StepCondition.ALWAYS, False

    logger.debug("Parsed %d raw command(s) into %d step(s)", len(raw_commands), len(steps))
    return steps


def tokenize_chain(raw: str) -> list[tuple[str, bool]]:
    """Split on chain operators found outside quotes.

    Returns ``(text, is_operator)`` pairs.  Quotes and escapes are kept
    verbatim in the command text so the executor can tokenize it later.
    """

    tokens: list[tuple[str, bool]] = []
    current: list[str] = []
    quote: str | None = None
    index = 0
    length = len(raw)

    while index < length:
        char = raw[index]
        if quote is not None:
            current.append(char)
            if char == "\\" and quote == '"' and index + 1 < length:
                current.append(raw[index + 1])
                index += 2
                continue
            if char == quote:
                quote = None
            index += 1
            continue

        if char == "\\" and index + 1 < length:
            current.extend((char, raw[index + 1]))
            index += 2
            continue
        if char in {"'", '"'}:
            quote = char
            current.append(char)
            index += 1
            continue

        operator = _operator_at(raw, index)
        if operator is not None:
            tokens.append(("".join(current), False))
            tokens.append((operator, True))
            current = []
            index += len(operator)
            continue

        current.append(char)
        index += 1

    if quote is not None:
        logger.debug("Unterminated %s quote in chain: %r", quote, raw)
    tokens.append(("".join(current), False))
    return tokens


def _operator_at(raw: str, index: int) -> str | None:
    pair = raw[index : index + 2]
    if pair in {AND_OPERATOR, OR_OPERATOR}:
        return pair
    if raw[index] == PIPE_OPERATOR:
        return PIPE_OPERATOR
    return None
