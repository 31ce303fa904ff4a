from __future__ import annotations

import math
import operator
import re
from dataclasses import dataclass
from typing import Any, Callable

from .coercion import to_number

"""Restricted expression evaluator for custom rule conditions.

Grammar (lowest to highest precedence)::

    expr       := or_expr
    or_expr    := and_expr (("or" | "||") and_expr)*
    and_expr   := not_expr (("and" | "&&") not_expr)*
    not_expr   := ("not" | "!") not_expr | comparison
    comparison := unary (COMPARE_OP unary)*
    unary      := "-" unary | primary
    primary    := NUMBER | STRING | "true" | "false" | "null" | "value" | "(" expr ")"

The only name is ``value`` (the cell value under test). There are no calls,
attribute access or subscripts, so no user text is ever executed.
Comparisons chain like Python (``0 <= value <= 10``).
"""

__all__ = ["ExpressionError", "Expression", "compile_expression", "evaluate_expression"]


class ExpressionError(Exception):
    """Raised when an expression cannot be tokenized, parsed or evaluated."""


_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)
      | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||<|>|!|\(|\)|-)
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    )
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "true", "false", "null", "value"}


@dataclass(frozen=True)
class Token:
    kind: str  # number | string | op | name | end
    text: str
    pos: int


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    length = len(source)
    while pos < length:
        if source[pos:].strip() == "":
            break
        m = _TOKEN_RE.match(source, pos)
        if m is None or m.end() == pos:
            raise ExpressionError(f"unexpected character at {pos}: {source[pos:pos + 10]!r}")
        kind = m.lastgroup or ""
        text = m.group(kind)
        if kind == "name" and text not in _KEYWORDS:
            raise ExpressionError(f"unknown name {text!r} (only 'value' is available)")
        tokens.append(Token(kind, text, m.start(kind)))
        pos = m.end()
    tokens.append(Token("end", "", length))
    return tokens


# --- AST -----------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ValueRef:
    pass


@dataclass(frozen=True)
class Negate:
    operand: Any


@dataclass(frozen=True)
class Not:
    operand: Any


@dataclass(frozen=True)
class BoolOp:
    op: str  # and | or
    operands: tuple[Any, ...]


@dataclass(frozen=True)
class Compare:
    left: Any
    ops: tuple[str, ...]
    comparators: tuple[Any, ...]


_OR = {"or", "||"}
_AND = {"and", "&&"}
_NOT = {"not", "!"}
_COMPARE_OPS = {"==", "!=", "===", "!==", "<", "<=", ">", ">="}

# 括弧・not・単項マイナスの入れ子の上限
MAX_NESTING = 64


def _unescape(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)), body)


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._i = 0
        self._depth = 0

    @property
    def _current(self) -> Token:
        return self._tokens[self._i]

    def _advance(self) -> Token:
        tok = self._tokens[self._i]
        self._i += 1
        return tok

    def _nest(self, pos: int) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ExpressionError(f"expression nested too deeply at {pos}")

    def parse(self):
        node = self._or()
        if self._current.kind != "end":
            raise ExpressionError(f"unexpected token {self._current.text!r} at {self._current.pos}")
        return node

    def _or(self):
        operands = [self._and()]
        while self._current.text in _OR:
            self._advance()
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def _and(self):
        operands = [self._not()]
        while self._current.text in _AND:
            self._advance()
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def _not(self):
        if self._current.text in _NOT:
            self._nest(self._advance().pos)
            node = Not(self._not())
            self._depth -= 1
            return node
        return self._comparison()

    def _comparison(self):
        left = self._unary()
        ops: list[str] = []
        comparators = []
        while self._current.kind == "op" and self._current.text in _COMPARE_OPS:
            ops.append(self._advance().text)
            comparators.append(self._unary())
        if not ops:
            return left
        return Compare(left, tuple(ops), tuple(comparators))

    def _unary(self):
        if self._current.text == "-":
            self._nest(self._advance().pos)
            node = Negate(self._unary())
            self._depth -= 1
            return node
        return self._primary()

    def _primary(self):
        tok = self._advance()
        if tok.kind == "number":
            try:
                return Literal(float(tok.text) if any(c in tok.text for c in ".eE") else int(tok.text))
            except ValueError as e:  # int() の桁数上限
                raise ExpressionError(f"number literal too long at {tok.pos}") from e
        if tok.kind == "string":
            return Literal(_unescape(tok.text))
        if tok.kind == "name":
            if tok.text == "value":
                return ValueRef()
            if tok.text == "true":
                return Literal(True)
            if tok.text == "false":
                return Literal(False)
            if tok.text == "null":
                return Literal(None)
        if tok.text == "(":
            self._nest(tok.pos)
            node = self._or()
            if self._advance().text != ")":
                raise ExpressionError(f"missing ')' for '(' at {tok.pos}")
            self._depth -= 1
            return node
        if tok.kind == "end":
            raise ExpressionError("unexpected end of expression")
        raise ExpressionError(f"unexpected token {tok.text!r} at {tok.pos}")


# --- evaluation ----------------------------------------------------------

def _ordered(fn: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(a: Any, b: Any) -> bool:
        na, nb = to_number(a), to_number(b)
        if na is not None and nb is not None:
            return fn(na, nb)
        if isinstance(a, str) and isinstance(b, str):
            return fn(a, b)
        return False  # 比較不能 (数値化できない) は常に偽
    return compare


def _loose_eq(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    na, nb = to_number(a), to_number(b)
    if na is not None and nb is not None:
        return na == nb
    return a == b


def _strict_eq(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": _loose_eq,
    "!=": lambda a, b: not _loose_eq(a, b),
    "===": _strict_eq,
    "!==": lambda a, b: not _strict_eq(a, b),
    "<": _ordered(operator.lt),
    "<=": _ordered(operator.le),
    ">": _ordered(operator.gt),
    ">=": _ordered(operator.ge),
}


def _truthy(v: Any) -> bool:
    if isinstance(v, float) and math.isnan(v):
        return False
    return bool(v)


def _eval(node, value: Any) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, ValueRef):
        return value
    if isinstance(node, Negate):
        n = to_number(_eval(node.operand, value))
        if n is None:
            raise ExpressionError("unary '-' needs a numeric operand")
        return -n
    if isinstance(node, Not):
        return not _truthy(_eval(node.operand, value))
    if isinstance(node, BoolOp):
        if node.op == "and":
            return all(_truthy(_eval(o, value)) for o in node.operands)
        return any(_truthy(_eval(o, value)) for o in node.operands)
    if isinstance(node, Compare):
        left = _eval(node.left, value)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, value)
            if not _COMPARATORS[op](left, right):
                return False
            left = right
        return True
    raise ExpressionError(f"unsupported node: {type(node).__name__}")


class Expression:
    """A parsed expression; evaluate repeatedly against different cell values."""

    def __init__(self, source: str) -> None:
        if not isinstance(source, str) or not source.strip():
            raise ExpressionError("expression is empty")
        self.source = source
        self._tree = _Parser(tokenize(source)).parse()

    def evaluate(self, value: Any) -> bool:
        try:
            return _truthy(_eval(self._tree, value))
        except (RecursionError, OverflowError) as e:
            raise ExpressionError(f"cannot evaluate expression: {e}") from e

    def __repr__(self) -> str:  # pragma: no cover
        return f"Expression({self.source!r})"


_cache: dict[str, Expression] = {}


def compile_expression(source: str) -> Expression:
    expr = _cache.get(source)
    if expr is None:
        expr = Expression(source)
        if len(_cache) > 256:
            _cache.clear()
        _cache[source] = expr
    return expr


def evaluate_expression(source: str, value: Any) -> bool:
    """Parse (cached) and evaluate ``source`` with ``value`` bound."""
    return compile_expression(source).evaluate(value)
