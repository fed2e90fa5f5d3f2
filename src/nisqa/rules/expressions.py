from __future__ import annotations

import logging
import math
import operator
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput, VisitError

from nisqa.errors import RuleEvaluationError
from nisqa.rules.interfaces import RuleSet

LOGGER = logging.getLogger(__name__)

Value = bool | int | float | str


@dataclass(frozen=True, slots=True)
class Literal:
    value: Value


@dataclass(frozen=True, slots=True)
class Name:
    name: str


@dataclass(frozen=True, slots=True)
class Call:
    func: str
    args: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True, slots=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True, slots=True)
class Compare:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True, slots=True)
class BoolOp:
    op: str
    left: Node
    right: Node


Node = Literal | Name | Call | Unary | Binary | Compare | BoolOp

FUNCTIONS: dict[str, Callable[..., Value]] = {
    "abs": abs,
    "ceil": math.ceil,
    "floor": math.floor,
    "log": math.log,
    "log2": math.log2,
    "sqrt": math.sqrt,
    "min": min,
    "max": max,
}

MAX_EXPONENT = 10_000


def _power(base: Value, exponent: Value) -> Value:
    # big-int pow holds the GIL for as long as it runs
    if isinstance(exponent, (int, float)) and abs(exponent) > MAX_EXPONENT:
        raise RuleEvaluationError(f"exponent {exponent} exceeds the limit of {MAX_EXPONENT}")
    return operator.pow(base, exponent)  # type: ignore[operator]


_BINARY: dict[str, Callable[[Value, Value], Value]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "**": _power,
}

_COMPARE: dict[str, Callable[[Value, Value], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


class _NodeBuilder(Transformer):
    def number(self, items: list[Token]) -> Node:
        text = str(items[0])
        if any(ch in text for ch in ".eE"):
            return Literal(float(text))
        return Literal(int(text))

    def string(self, items: list[Token]) -> Node:
        return Literal(str(items[0])[1:-1])

    def true(self, _items: list[Token]) -> Node:
        return Literal(True)

    def false(self, _items: list[Token]) -> Node:
        return Literal(False)

    def name(self, items: list[Token]) -> Node:
        return Name(str(items[0]))

    def args(self, items: list[Node]) -> tuple[Node, ...]:
        return tuple(items)

    def call(self, items: list[object]) -> Node:
        func = str(items[0])
        args = items[1] if len(items) > 1 else ()
        if func not in FUNCTIONS:
            raise RuleEvaluationError(f"unknown function `{func}`")
        return Call(func=func, args=tuple(args))  # type: ignore[arg-type]

    def neg(self, items: list[object]) -> Node:
        return Unary(op="-", operand=items[1])  # type: ignore[arg-type]

    def pos(self, items: list[object]) -> Node:
        return Unary(op="+", operand=items[1])  # type: ignore[arg-type]

    def not_(self, items: list[Node]) -> Node:
        return Unary(op="not", operand=items[0])

    def binop(self, items: list[object]) -> Node:
        left, op, right = items
        return Binary(op=str(op), left=left, right=right)  # type: ignore[arg-type]

    def pow(self, items: list[object]) -> Node:
        left, _op, right = items
        return Binary(op="**", left=left, right=right)  # type: ignore[arg-type]

    def compare(self, items: list[object]) -> Node:
        left, op, right = items
        return Compare(op=str(op), left=left, right=right)  # type: ignore[arg-type]

    def and_(self, items: list[Node]) -> Node:
        return BoolOp(op="and", left=items[0], right=items[1])

    def or_(self, items: list[Node]) -> Node:
        return BoolOp(op="or", left=items[0], right=items[1])


@lru_cache(maxsize=1)
def _parser() -> Lark:
    grammar = Path(__file__).with_name("grammar.lark").read_text(encoding="utf-8")
    return Lark(
        grammar,
        parser="lalr",
        lexer="contextual",
        maybe_placeholders=False,
        start="start",
    )


@lru_cache(maxsize=1024)
def parse_rule(rule: str) -> Node:
    if not rule.strip():
        raise RuleEvaluationError("rule text is empty")
    try:
        tree = _parser().parse(rule)
    except UnexpectedInput as exc:
        raise RuleEvaluationError(
            f"malformed rule `{rule}` at column {exc.column}: unexpected input"
        ) from None
    try:
        node = _NodeBuilder().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, RuleEvaluationError):
            raise exc.orig_exc from None
        raise RuleEvaluationError(f"malformed rule `{rule}`: {exc.orig_exc}") from None
    if isinstance(node, Token):
        raise RuleEvaluationError(f"malformed rule `{rule}`")
    return node


def iter_names(node: Node) -> Iterator[str]:
    if isinstance(node, Name):
        yield node.name
    elif isinstance(node, Call):
        for arg in node.args:
            yield from iter_names(arg)
    elif isinstance(node, Unary):
        yield from iter_names(node.operand)
    elif isinstance(node, (Binary, Compare, BoolOp)):
        yield from iter_names(node.left)
        yield from iter_names(node.right)


def coerce(raw: str) -> Value:
    text = raw.strip()
    lowered = text.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        pass
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"'}:
        return text[1:-1]
    return raw


def evaluate(node: Node, env: Mapping[str, Value]) -> Value:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Name):
        if node.name not in env:
            raise RuleEvaluationError(f"parameter `{node.name}` is not bound")
        return env[node.name]
    if isinstance(node, BoolOp):
        left = evaluate(node.left, env)
        if node.op == "and":
            return bool(left) and bool(evaluate(node.right, env))
        return bool(left) or bool(evaluate(node.right, env))

    try:
        if isinstance(node, Unary):
            operand = evaluate(node.operand, env)
            if node.op == "not":
                return not operand
            if node.op == "-":
                return -operand  # type: ignore[operator]
            return +operand  # type: ignore[operator]
        if isinstance(node, Call):
            args = [evaluate(arg, env) for arg in node.args]
            return FUNCTIONS[node.func](*args)
        if isinstance(node, Binary):
            return _BINARY[node.op](evaluate(node.left, env), evaluate(node.right, env))
        if isinstance(node, Compare):
            return _COMPARE[node.op](evaluate(node.left, env), evaluate(node.right, env))
    except (ArithmeticError, TypeError, ValueError) as exc:
        raise RuleEvaluationError(f"rule evaluation failed: {exc}") from exc
    raise RuleEvaluationError(f"unsupported rule node: {type(node).__name__}")


class ExpressionOracle:
    """Embedded rule oracle for arithmetic/boolean rule expressions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rule_sets: dict[str, tuple[str, ...]] = {}

    def activate(self, rule_set: RuleSet) -> None:
        with self._lock:
            if self._rule_sets.get(rule_set.id) == rule_set.rules:
                return
            self._rule_sets[rule_set.id] = rule_set.rules
        for rule in rule_set.rules:
            try:
                parse_rule(rule)
            except RuleEvaluationError as exc:
                LOGGER.warning("Rule set %s contains a malformed rule: %s", rule_set.id, exc)

    def deactivate(self, rule_set_id: str) -> None:
        with self._lock:
            self._rule_sets.pop(rule_set_id, None)

    def active_rule_sets(self) -> list[str]:
        with self._lock:
            return sorted(self._rule_sets)

    def query(self, rule: str, binding: Mapping[str, str]) -> bool | int | float:
        node = parse_rule(rule)
        env = {name: coerce(raw) for name, raw in binding.items()}
        result = evaluate(node, env)
        if isinstance(result, str):
            raise RuleEvaluationError(f"rule `{rule}` produced a string, expected a bool or number")
        return result
