"""Guard expression language used by transition conditions.

Supports ``== != > >= < <=``, ``contains``, ``&&``/``AND``, ``||``/``OR``,
``!``/``NOT``, parentheses, quoted strings, numbers, ``true``/``false``/
``null`` and variable references (dotted names walk nested mappings).
String comparisons ignore case.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, List, Mapping, NamedTuple, Optional

from .exceptions import ExpressionError

_KEYWORDS = {
    "AND": "and",
    "OR": "or",
    "NOT": "not",
    "CONTAINS": "contains",
    "TRUE": "bool",
    "FALSE": "bool",
    "NULL": "null",
}
_COMPARISONS = ("==", "!=", ">", ">=", "<", "<=", "contains")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


class Token(NamedTuple):
    kind: str
    value: str
    pos: int


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    while i < len(text):
        ch = text[i]
        nxt = text[i + 1] if i + 1 < len(text) else ""
        if ch.isspace():
            i += 1
        elif ch in "()":
            tokens.append(Token(ch, ch, i))
            i += 1
        elif ch in "'\"":
            start = i
            i += 1
            chars = []
            while i < len(text) and text[i] != ch:
                if text[i] == "\\" and i + 1 < len(text):
                    i += 1
                    chars.append(_ESCAPES.get(text[i], text[i]))
                else:
                    chars.append(text[i])
                i += 1
            if i >= len(text):
                raise ExpressionError(
                    f"Unterminated string literal starting at position {start}"
                )
            tokens.append(Token("str", "".join(chars), start))
            i += 1
        elif ch in "=!<>":
            if nxt == "=":
                tokens.append(Token(ch + "=", ch + "=", i))
                i += 2
            elif ch == "=":
                raise ExpressionError(f"Unexpected character '=' at position {i}")
            else:
                tokens.append(Token("not" if ch == "!" else ch, ch, i))
                i += 1
        elif ch in "&|":
            if nxt != ch:
                raise ExpressionError(f"Unexpected character '{ch}' at position {i}")
            tokens.append(Token("and" if ch == "&" else "or", ch * 2, i))
            i += 2
        elif ch.isdigit():
            start = i
            seen_dot = False
            while i < len(text) and (text[i].isdigit() or (text[i] == "." and not seen_dot)):
                seen_dot = seen_dot or text[i] == "."
                i += 1
            tokens.append(Token("num", text[start:i], start))
        elif ch.isalpha() or ch == "_":
            start = i
            while i < len(text) and (text[i].isalnum() or text[i] in "_."):
                i += 1
            word = text[start:i]
            tokens.append(Token(_KEYWORDS.get(word.upper(), "name"), word, start))
        else:
            raise ExpressionError(f"Unexpected character '{ch}' at position {i}")
    return tokens


# ----------------------------------------------------------------------
# Evaluation helpers


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any) -> Optional[float]:
    if _is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)


def compare(left: Any, right: Any) -> int:
    """Three-way comparison with case-insensitive string semantics."""
    if left is None and right is None:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1
    if isinstance(left, bool) and isinstance(right, bool):
        return (left > right) - (left < right)
    if _is_number(left) or _is_number(right):
        lnum, rnum = _as_number(left), _as_number(right)
        if lnum is not None and rnum is not None:
            return (lnum > rnum) - (lnum < rnum)
    lstr, rstr = _to_text(left).casefold(), _to_text(right).casefold()
    return (lstr > rstr) - (lstr < rstr)


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _contains(container: Any, item: Any) -> bool:
    if container is None or item is None:
        return False
    if isinstance(container, (list, tuple, set)):
        return any(compare(element, item) == 0 for element in container)
    needle = _to_text(item).casefold()
    return bool(needle) and needle in _to_text(container).casefold()


def resolve_variable(name: str, variables: Mapping[str, Any]) -> Any:
    if name in variables:
        return variables[name]
    current: Any = variables
    for part in name.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


# ----------------------------------------------------------------------
# Syntax tree


@dataclass(frozen=True)
class Literal:
    value: Any

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        return self.value


@dataclass(frozen=True)
class Variable:
    name: str

    def evaluate(self, variables: Mapping[str, Any]) -> Any:
        return resolve_variable(self.name, variables)


@dataclass(frozen=True)
class Not:
    operand: Any

    def evaluate(self, variables: Mapping[str, Any]) -> bool:
        return not is_truthy(self.operand.evaluate(variables))


@dataclass(frozen=True)
class Logical:
    op: str
    left: Any
    right: Any

    def evaluate(self, variables: Mapping[str, Any]) -> bool:
        left = is_truthy(self.left.evaluate(variables))
        if self.op == "and":
            return left and is_truthy(self.right.evaluate(variables))
        return left or is_truthy(self.right.evaluate(variables))


@dataclass(frozen=True)
class Comparison:
    op: str
    left: Any
    right: Any

    def evaluate(self, variables: Mapping[str, Any]) -> bool:
        left = self.left.evaluate(variables)
        right = self.right.evaluate(variables)
        if self.op == "contains":
            return _contains(left, right)
        result = compare(left, right)
        if self.op == "==":
            return result == 0
        if self.op == "!=":
            return result != 0
        if self.op == ">":
            return result > 0
        if self.op == ">=":
            return result >= 0
        if self.op == "<":
            return result < 0
        return result <= 0


class _Parser:
    """Recursive-descent parser: or > and > not > comparison > primary."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def parse(self):
        if not self.tokens:
            raise ExpressionError("Empty expression")
        node = self._or()
        if self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            raise ExpressionError(
                f"Unexpected token '{token.value}' at position {token.pos}"
            )
        return node

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> Token:
        token = self._peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of expression: {self.text}")
        self.pos += 1
        return token

    def _or(self):
        node = self._and()
        while self._peek() is not None and self._peek().kind == "or":
            self._take()
            node = Logical("or", node, self._and())
        return node

    def _and(self):
        node = self._not()
        while self._peek() is not None and self._peek().kind == "and":
            self._take()
            node = Logical("and", node, self._not())
        return node

    def _not(self):
        token = self._peek()
        if token is not None and token.kind == "not":
            self._take()
            return Not(self._not())
        return self._comparison()

    def _comparison(self):
        node = self._primary()
        token = self._peek()
        if token is not None and token.kind in _COMPARISONS:
            self._take()
            node = Comparison(token.kind, node, self._primary())
        return node

    def _primary(self):
        token = self._take()
        if token.kind == "(":
            node = self._or()
            closing = self._take()
            if closing.kind != ")":
                raise ExpressionError(
                    f"Expected ')' at position {closing.pos}, got '{closing.value}'"
                )
            return node
        if token.kind == "str":
            return Literal(token.value)
        if token.kind == "num":
            return Literal(float(token.value) if "." in token.value else int(token.value))
        if token.kind == "bool":
            return Literal(token.value.upper() == "TRUE")
        if token.kind == "null":
            return Literal(None)
        if token.kind == "name":
            return Variable(token.value)
        raise ExpressionError(f"Unexpected token '{token.value}' at position {token.pos}")


@functools.lru_cache(maxsize=512)
def parse_expression(text: str):
    """Parse ``text`` into an evaluable tree. Results are cached."""
    return _Parser(text).parse()


def evaluate_expression(text: str, variables: Mapping[str, Any]) -> bool:
    """Evaluate ``text`` against ``variables`` and coerce to bool."""
    return is_truthy(parse_expression(text).evaluate(variables))


__all__ = [
    "compare",
    "evaluate_expression",
    "is_truthy",
    "parse_expression",
    "resolve_variable",
    "tokenize",
]
