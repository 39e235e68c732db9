"""Boolean filter expressions evaluated against selected items.

Grammar (keywords are case-insensitive)::

    expr       := or_expr
    or_expr    := and_expr (("or" | "||") and_expr)*
    and_expr   := not_expr (("and" | "&&") not_expr)*
    not_expr   := ("not" | "!") not_expr | comparison
    comparison := operand (COMPARE operand)?
    COMPARE    := "==" | "!=" | ">" | "<" | ">=" | "<=" | "contains" | "startsWith" | "endsWith"
    operand    := STRING | NUMBER | "true" | "false" | "null"
                | NAME ("." NAME)* | FUNC "(" expr ")" | "(" expr ")"
    FUNC       := "len" | "num" | "lower" | "upper"

Records bind their own fields as names; scalars bind a single ``value``.
String tests are case-insensitive. Nothing is ever passed to ``eval``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from uni_flow.pipe.selector import MISSING, get_by_path

logger = logging.getLogger(__name__)

_TOKEN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)
  | (?P<op>===|!==|==|!=|>=|<=|&&|\|\||[><!(),])
  | (?P<name>[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)
    """,
    re.VERBOSE,
)
_INTEGER = re.compile(r"-?\d+")
_OPERATOR_ALIASES = {"===": "==", "!==": "!=", "&&": "and", "||": "or", "!": "not"}
_WORD_OPERATORS = {
    "and": "and",
    "or": "or",
    "not": "not",
    "contains": "contains",
    "startswith": "startsWith",
    "endswith": "endsWith",
}
_LITERAL_WORDS = {"true": True, "false": False, "null": None}
_COMPARISONS = {"==", "!=", ">", "<", ">=", "<=", "contains", "startsWith", "endsWith"}
_FUNCTIONS = {"len", "num", "lower", "upper"}


class FilterSyntaxError(ValueError):
    """Expression could not be tokenized or parsed."""


class FilterEvaluationError(ValueError):
    """Expression is well-formed but cannot be evaluated for this item."""


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    value: Any
    position: int


@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class Name:
    path: str


@dataclass(frozen=True, slots=True)
class Not:
    operand: Node


@dataclass(frozen=True, slots=True)
class BoolOp:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True, slots=True)
class Compare:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True, slots=True)
class Call:
    function: str
    argument: Node


Node = Literal | Name | Not | BoolOp | Compare | Call


class FilterExpression:
    """Compiled filter, reusable across items."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.tree: Node | None = _compile(source) if source.strip() else None

    def matches(self, item: Any) -> bool:
        """Evaluate for one item; evaluation errors count as non-matching."""

        if self.tree is None:
            return True
        try:
            return _truthy(_evaluate(self.tree, _bindings(item)))
        except (FilterEvaluationError, OverflowError, RecursionError) as error:
            logger.debug("Filter %r not matched: %s", self.source, error)
            return False


def compile_filter(expression: str) -> FilterExpression:
    """Parse ``expression`` once; raises ``FilterSyntaxError`` when malformed."""

    return FilterExpression(expression)


def evaluate_filter(item: Any, expression: str | None) -> bool:
    """Return whether ``item`` satisfies ``expression``; never raises."""

    if not expression:
        return True
    try:
        return compile_filter(expression).matches(item)
    except FilterSyntaxError as error:
        logger.debug("Invalid filter %r: %s", expression, error)
        return False


def _compile(source: str) -> Node:
    try:
        return _Parser(_tokenize(source)).parse()
    except RecursionError as error:
        raise FilterSyntaxError("Expression is nested too deeply") from error


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN.match(source, position)
        if match is None:
            raise FilterSyntaxError(f"Unexpected character {source[position]!r} at {position}")
        kind = match.lastgroup or ""
        text = match.group()
        if kind == "string":
            tokens.append(_Token("literal", _unquote(text), position))
        elif kind == "number":
            try:
                number = int(text) if _INTEGER.fullmatch(text) else float(text)
            except ValueError as error:
                raise FilterSyntaxError(f"Invalid number at {position}: {error}") from error
            tokens.append(_Token("literal", number, position))
        elif kind == "op":
            tokens.append(_Token("op", _OPERATOR_ALIASES.get(text, text), position))
        elif kind == "name":
            lowered = text.lower()
            if lowered in _WORD_OPERATORS:
                tokens.append(_Token("op", _WORD_OPERATORS[lowered], position))
            elif lowered in _LITERAL_WORDS:
                tokens.append(_Token("literal", _LITERAL_WORDS[lowered], position))
            else:
                tokens.append(_Token("name", text, position))
        position = match.end()
    tokens.append(_Token("end", None, len(source)))
    return tokens


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._index = 0

    def parse(self) -> Node:
        node = self._or()
        token = self._peek()
        if token.kind != "end":
            raise FilterSyntaxError(f"Unexpected {token.value!r} at {token.position}")
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._accept_op("or"):
            node = BoolOp("or", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._accept_op("and"):
            node = BoolOp("and", node, self._not())
        return node

    def _not(self) -> Node:
        if self._accept_op("not"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._operand()
        token = self._peek()
        if token.kind == "op" and token.value in _COMPARISONS:
            self._index += 1
            return Compare(token.value, left, self._operand())
        return left

    def _operand(self) -> Node:
        token = self._advance()
        if token.kind == "literal":
            return Literal(token.value)
        if token.kind == "name":
            if token.value in _FUNCTIONS and self._accept_op("("):
                argument = self._or()
                self._expect_op(")")
                return Call(token.value, argument)
            return Name(token.value)
        if token.kind == "op" and token.value == "(":
            node = self._or()
            self._expect_op(")")
            return node
        if token.kind == "end":
            raise FilterSyntaxError("Unexpected end of expression")
        raise FilterSyntaxError(f"Unexpected {token.value!r} at {token.position}")

    def _peek(self) -> _Token:
        return self._tokens[self._index]

    def _advance(self) -> _Token:
        token = self._tokens[self._index]
        if token.kind != "end":
            self._index += 1
        return token

    def _accept_op(self, value: str) -> bool:
        token = self._peek()
        if token.kind == "op" and token.value == value:
            self._index += 1
            return True
        return False

    def _expect_op(self, value: str) -> None:
        if not self._accept_op(value):
            token = self._peek()
            raise FilterSyntaxError(f"Expected {value!r} at {token.position}")


def _bindings(item: Any) -> dict[str, Any]:
    if isinstance(item, dict):
        return dict(item)
    return {"value": item}


def _evaluate(node: Node, bindings: dict[str, Any]) -> Any:  # noqa: PLR0911
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Name):
        head, _, rest = node.path.partition(".")
        if head not in bindings:
            raise FilterEvaluationError(f"Unknown field: {head}")
        value = bindings[head]
        return get_by_path(value, rest) if rest else value
    if isinstance(node, Not):
        return not _truthy(_evaluate(node.operand, bindings))
    if isinstance(node, BoolOp):
        left = _truthy(_evaluate(node.left, bindings))
        if node.op == "and":
            return left and _truthy(_evaluate(node.right, bindings))
        return left or _truthy(_evaluate(node.right, bindings))
    if isinstance(node, Compare):
        return _compare(node.op, _evaluate(node.left, bindings), _evaluate(node.right, bindings))
    return _call(node.function, _evaluate(node.argument, bindings))


def _compare(op: str, left: Any, right: Any) -> bool:  # noqa: PLR0911
    if op == "==":
        return _loose_equal(left, right)
    if op == "!=":
        return not _loose_equal(left, right)
    if op == "contains":
        if isinstance(left, list):
            needle = _text(right).lower()
            return any(_text(element).lower() == needle for element in left)
        return _text(right).lower() in _text(left).lower()
    if op == "startsWith":
        return _text(left).lower().startswith(_text(right).lower())
    if op == "endsWith":
        return _text(left).lower().endswith(_text(right).lower())

    left_value, right_value = _orderable(left, right)
    if op == ">":
        return left_value > right_value
    if op == "<":
        return left_value < right_value
    if op == ">=":
        return left_value >= right_value
    return left_value <= right_value


def _call(function: str, value: Any) -> Any:
    if function == "len":
        if isinstance(value, (list, dict, str)):
            return len(value)
        return len(_text(value))
    if function == "num":
        return _number(value)
    if function == "lower":
        return _text(value).lower()
    return _text(value).upper()


def _loose_equal(left: Any, right: Any) -> bool:
    if _is_number(left) and isinstance(right, str):
        return _maybe_number(right) == left
    if isinstance(left, str) and _is_number(right):
        return _maybe_number(left) == right
    return left == right


def _orderable(left: Any, right: Any) -> tuple[Any, Any]:
    if _is_number(left) and _is_number(right):
        return left, right
    if isinstance(left, str) and isinstance(right, str):
        return left, right
    return _number(left), _number(right)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _maybe_number(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _number(value: Any) -> float:
    if _is_number(value):
        try:
            return float(value)
        except OverflowError as error:
            raise FilterEvaluationError(f"Number too large: {error}") from error
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, str):
        parsed = _maybe_number(value.strip())
        if parsed is not None:
            return parsed
    raise FilterEvaluationError(f"Not a number: {value!r}")


def _text(value: Any) -> str:
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _truthy(value: Any) -> bool:
    if value is None or value is MISSING or value is False:
        return False
    if _is_number(value):
        return value != 0
    if isinstance(value, str):
        return value != ""
    return True
