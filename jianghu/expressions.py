"""Trigger expressions: a small, sandboxed boolean language.

Event catalogs may describe a trigger as an expression instead of a
registered trigger id, e.g.

    state.player.attributes.strength >= 15 && random_int(1, 10) > 8
    state.world.current_location_id in [3, 4] and not is_faction_war_happening()
    state.player.inventory.length > 0

Source text is tokenised and parsed into a tiny AST which is interpreted
directly. Nothing is ever compiled or executed as Python. The interpreter
only allows:

    literals        numbers, 'strings', "strings", true/false/null, [lists]
    names           looked up in the evaluation environment (state + helpers)
    field access    a.b on pydantic model fields and mapping keys, x.length
    indexing        a[b] on mappings and sequences
    calls           helpers from the environment, x.includes(y), x.contains(y)
    operators       == != === !== < <= > >= in, not in, + - * / %
    logic           && || ! and or not

Anything else (private names, unknown fields, calling non-helpers) raises
ExpressionError. Helpers may be coroutine functions; their results are
awaited.
"""

from __future__ import annotations

import ast
import inspect
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import BaseModel

MAX_EXPRESSION_LENGTH = 500


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated."""


# ---------------------------------------------------------------------------
# Tokeniser
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!+\-*/%().\[\],])
""", re.VERBOSE)

_CONSTANTS = {"true": True, "True": True, "false": False, "False": False,
              "null": None, "None": None}

_COMPARE_OPS = {"==", "!=", "===", "!==", "<", "<=", ">", ">="}


@dataclass(frozen=True)
class _Token:
    kind: str  # number | string | name | op | end
    value: str
    pos: int


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ExpressionError(f"Unexpected character {source[pos]!r} at {pos}")
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(_Token("end", "", pos))
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Const:
    value: Any


@dataclass(frozen=True)
class Name:
    id: str


@dataclass(frozen=True)
class Attr:
    obj: Node
    name: str


@dataclass(frozen=True)
class Index:
    obj: Node
    key: Node


@dataclass(frozen=True)
class Call:
    func: Node
    args: tuple[Node, ...]


@dataclass(frozen=True)
class ListExpr:
    items: tuple[Node, ...]


@dataclass(frozen=True)
class Unary:
    op: str  # "-" | "not"
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str  # + - * / %
    left: Node
    right: Node


@dataclass(frozen=True)
class Compare:
    op: str  # == != < <= > >= in "not in"
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical:
    op: str  # "and" | "or"
    left: Node
    right: Node


Node = Const | Name | Attr | Index | Call | ListExpr | Unary | Binary | Compare | Logical


# ---------------------------------------------------------------------------
# Parser (recursive descent, lowest precedence first)
# ---------------------------------------------------------------------------

class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._i = 0

    @property
    def _tok(self) -> _Token:
        return self._tokens[self._i]

    def _advance(self) -> _Token:
        tok = self._tokens[self._i]
        self._i += 1
        return tok

    def _at(self, *values: str) -> bool:
        return self._tok.kind in ("op", "name") and self._tok.value in values

    def _expect(self, value: str) -> None:
        if not self._at(value):
            raise ExpressionError(f"Expected {value!r} at {self._tok.pos}, got {self._tok.value!r}")
        self._advance()

    def parse(self) -> Node:
        node = self._or()
        if self._tok.kind != "end":
            raise ExpressionError(f"Unexpected {self._tok.value!r} at {self._tok.pos}")
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._at("||", "or"):
            self._advance()
            node = Logical("or", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._at("&&", "and"):
            self._advance()
            node = Logical("and", node, self._not())
        return node

    def _not(self) -> Node:
        if self._at("!", "not"):
            self._advance()
            return Unary("not", self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._additive()
        op = self._compare_op()
        if op is None:
            return left
        node = Compare(op, left, self._additive())
        if self._compare_op(peek=True) is not None:
            raise ExpressionError(f"Chained comparison at {self._tok.pos}; use && instead")
        return node

    def _compare_op(self, peek: bool = False) -> str | None:
        tok = self._tok
        if tok.kind == "op" and tok.value in _COMPARE_OPS:
            if not peek:
                self._advance()
            return {"===": "==", "!==": "!="}.get(tok.value, tok.value)
        if tok.kind == "name" and tok.value == "in":
            if not peek:
                self._advance()
            return "in"
        if tok.kind == "name" and tok.value == "not":
            following = self._tokens[self._i + 1]
            if following.kind == "name" and following.value == "in":
                if not peek:
                    self._advance()
                    self._advance()
                return "not in"
        return None

    def _additive(self) -> Node:
        node = self._multiplicative()
        while self._tok.kind == "op" and self._tok.value in ("+", "-"):
            op = self._advance().value
            node = Binary(op, node, self._multiplicative())
        return node

    def _multiplicative(self) -> Node:
        node = self._unary()
        while self._tok.kind == "op" and self._tok.value in ("*", "/", "%"):
            op = self._advance().value
            node = Binary(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._tok.kind == "op" and self._tok.value == "-":
            self._advance()
            return Unary("-", self._unary())
        return self._postfix()

    def _postfix(self) -> Node:
        node = self._primary()
        while True:
            if self._at("."):
                self._advance()
                if self._tok.kind != "name":
                    raise ExpressionError(f"Expected field name at {self._tok.pos}")
                node = Attr(node, self._advance().value)
            elif self._at("["):
                self._advance()
                key = self._or()
                self._expect("]")
                node = Index(node, key)
            elif self._at("("):
                self._advance()
                node = Call(node, self._arguments(")"))
            else:
                return node

    def _arguments(self, closer: str) -> tuple[Node, ...]:
        args: list[Node] = []
        if not self._at(closer):
            args.append(self._or())
            while self._at(","):
                self._advance()
                args.append(self._or())
        self._expect(closer)
        return tuple(args)

    def _primary(self) -> Node:
        tok = self._tok
        if tok.kind == "number":
            self._advance()
            return Const(float(tok.value) if "." in tok.value else int(tok.value))
        if tok.kind == "string":
            self._advance()
            return Const(ast.literal_eval(tok.value))
        if tok.kind == "name":
            self._advance()
            if tok.value in _CONSTANTS:
                return Const(_CONSTANTS[tok.value])
            if tok.value in ("and", "or", "not", "in"):
                raise ExpressionError(f"Unexpected keyword {tok.value!r} at {tok.pos}")
            return Name(tok.value)
        if self._at("("):
            self._advance()
            node = self._or()
            self._expect(")")
            return node
        if self._at("["):
            self._advance()
            return ListExpr(self._arguments("]"))
        raise ExpressionError(f"Unexpected {tok.value or 'end of expression'!r} at {tok.pos}")


@lru_cache(maxsize=256)
def parse_expression(source: str) -> Node:
    """Parse source text into an expression tree. Results are cached."""
    if not source or not source.strip():
        raise ExpressionError("Empty expression")
    if len(source) > MAX_EXPRESSION_LENGTH:
        raise ExpressionError(f"Expression longer than {MAX_EXPRESSION_LENGTH} characters")
    return _Parser(_tokenize(source)).parse()


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

def _contains(container: Any, item: Any) -> bool:
    try:
        return item in container
    except TypeError as e:
        raise ExpressionError(f"Membership test failed: {e}") from e


_METHODS = {
    "includes": _contains,
    "contains": _contains,
}


def _get_field(obj: Any, name: str) -> Any:
    if name.startswith("_"):
        raise ExpressionError(f"Access to private name {name!r} is not allowed")
    if isinstance(obj, BaseModel):
        if name in type(obj).model_fields:
            return getattr(obj, name)
        raise ExpressionError(f"{type(obj).__name__} has no field {name!r}")
    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
        if name == "length":
            return len(obj)
        raise ExpressionError(f"Missing key {name!r}")
    if name == "length" and isinstance(obj, (str, Sequence, set, frozenset)):
        return len(obj)
    raise ExpressionError(f"Cannot read {name!r} of {type(obj).__name__}")


def _get_item(obj: Any, key: Any) -> Any:
    if isinstance(obj, (Mapping, Sequence)) and not isinstance(obj, BaseModel):
        try:
            return obj[key]
        except (KeyError, IndexError, TypeError) as e:
            raise ExpressionError(f"Bad index {key!r}: {e}") from e
    raise ExpressionError(f"Cannot index {type(obj).__name__}")


def _compare(op: str, left: Any, right: Any) -> bool:
    try:
        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        if op == ">=":
            return left >= right
        if op == "in":
            return left in right
        if op == "not in":
            return left not in right
    except TypeError as e:
        raise ExpressionError(f"Cannot compare {left!r} {op} {right!r}") from e
    raise ExpressionError(f"Unknown comparison {op!r}")


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    try:
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            return left / right
        if op == "%":
            return left % right
    except (TypeError, ZeroDivisionError) as e:
        raise ExpressionError(f"Cannot compute {left!r} {op} {right!r}: {e}") from e
    raise ExpressionError(f"Unknown operator {op!r}")


async def evaluate(node: Node, env: Mapping[str, Any]) -> Any:
    """Interpret an expression tree against `env` (names -> values/helpers)."""
    if isinstance(node, Const):
        return node.value
    if isinstance(node, Name):
        if node.id.startswith("_") or node.id not in env:
            raise ExpressionError(f"Unknown name {node.id!r}")
        return env[node.id]
    if isinstance(node, Attr):
        return _get_field(await evaluate(node.obj, env), node.name)
    if isinstance(node, Index):
        return _get_item(await evaluate(node.obj, env), await evaluate(node.key, env))
    if isinstance(node, ListExpr):
        return [await evaluate(item, env) for item in node.items]
    if isinstance(node, Call):
        return await _call(node, env)
    if isinstance(node, Unary):
        value = await evaluate(node.operand, env)
        if node.op == "not":
            return not value
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ExpressionError(f"Cannot negate {value!r}")
        return -value
    if isinstance(node, Binary):
        return _arithmetic(node.op, await evaluate(node.left, env), await evaluate(node.right, env))
    if isinstance(node, Compare):
        return _compare(node.op, await evaluate(node.left, env), await evaluate(node.right, env))
    if isinstance(node, Logical):
        left = bool(await evaluate(node.left, env))
        if node.op == "and":
            return left and bool(await evaluate(node.right, env))
        return left or bool(await evaluate(node.right, env))
    raise ExpressionError(f"Unsupported node {type(node).__name__}")


async def _call(node: Call, env: Mapping[str, Any]) -> Any:
    args = [await evaluate(arg, env) for arg in node.args]

    if isinstance(node.func, Attr) and node.func.name in _METHODS:
        target = await evaluate(node.func.obj, env)
        if len(args) != 1:
            raise ExpressionError(f"{node.func.name}() takes exactly one argument")
        return _METHODS[node.func.name](target, args[0])

    if not isinstance(node.func, Name):
        raise ExpressionError("Only helper functions and includes()/contains() can be called")
    func = await evaluate(node.func, env)
    if not callable(func) or isinstance(func, type):
        raise ExpressionError(f"{node.func.id!r} is not a helper function")
    try:
        result = func(*args)
    except TypeError as e:
        raise ExpressionError(f"Bad call to {node.func.id}(): {e}") from e
    if inspect.isawaitable(result):
        result = await result
    return result


async def evaluate_expression(source: str, env: Mapping[str, Any]) -> bool:
    """Parse (cached) and evaluate `source`, coercing the result to bool."""
    return bool(await evaluate(parse_expression(source), env))
