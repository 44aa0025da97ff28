"""Parse filter text into an expression tree.

Accepts the same language the translator emits, plus word forms of the
boolean operators::

    country == 'BG' && year >= 2020
    NOT(country IN ['BG', 'NL']) OR active == true
"""

import re
from dataclasses import dataclass

from pydantic import ValidationError

from vecstore.exceptions import FilterParseError
from vecstore.filters.expression import (
    LIST_OPERATORS,
    And,
    Comparison,
    FilterExpression,
    Not,
    Operator,
    Or,
    Scalar,
)

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
      | (?P<symbol>==|!=|>=|<=|&&|\|\||[><!()\[\],])
      | (?P<word>[A-Za-z_][A-Za-z0-9_.]*)
    )""",
    re.VERBOSE,
)

_KEYWORDS = {"AND", "OR", "NOT", "IN", "NIN", "TRUE", "FALSE"}

_COMPARISON_SYMBOLS = {op.value: op for op in Operator if op not in LIST_OPERATORS}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise FilterParseError(
                f"Unexpected character {text[pos:].lstrip()[:1]!r} at position {pos}",
                details={"text": text, "position": pos},
            )
        kind = match.lastgroup or ""
        value = match.group(kind)
        if kind == "word" and value.upper() in _KEYWORDS:
            kind, value = "keyword", value.upper()
        tokens.append(_Token(kind, value, match.start(match.lastgroup)))
        pos = match.end()
    return tokens


def _unquote(literal: str) -> str:
    return re.sub(r"\\(.)", r"\1", literal[1:-1])


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenize(text)
        self._index = 0

    def _peek(self) -> _Token | None:
        return self._tokens[self._index] if self._index < len(self._tokens) else None

    def _advance(self) -> _Token:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of filter")
        self._index += 1
        return token

    def _accept(self, *texts: str) -> bool:
        token = self._peek()
        if token is not None and token.kind in ("symbol", "keyword") and token.text in texts:
            self._index += 1
            return True
        return False

    def _expect(self, text: str) -> None:
        if not self._accept(text):
            raise self._error(f"Expected {text!r}")

    def _error(self, message: str) -> FilterParseError:
        token = self._peek()
        position = token.pos if token else len(self._text)
        found = f" near {token.text!r}" if token else ""
        return FilterParseError(
            f"{message}{found} at position {position}",
            details={"text": self._text, "position": position},
        )

    def parse(self) -> FilterExpression:
        expr = self._or()
        if self._peek() is not None:
            raise self._error("Unexpected trailing input")
        return expr

    def _or(self) -> FilterExpression:
        operands = [self._and()]
        while self._accept("||", "OR"):
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else Or(operands=operands)

    def _and(self) -> FilterExpression:
        operands = [self._unary()]
        while self._accept("&&", "AND"):
            operands.append(self._unary())
        return operands[0] if len(operands) == 1 else And(operands=operands)

    def _unary(self) -> FilterExpression:
        if self._accept("NOT", "!"):
            return Not(operand=self._unary())
        if self._accept("("):
            expr = self._or()
            self._expect(")")
            return expr
        return self._comparison()

    def _comparison(self) -> Comparison:
        token = self._advance()
        if token.kind != "word":
            self._index -= 1
            raise self._error("Expected a field name")
        field = token.text

        if self._accept("IN"):
            return self._build(field, Operator.IN, self._list())
        if self._accept("NIN"):
            return self._build(field, Operator.NIN, self._list())
        if self._accept("NOT"):
            self._expect("IN")
            return self._build(field, Operator.NIN, self._list())

        op_token = self._advance()
        op = _COMPARISON_SYMBOLS.get(op_token.text) if op_token.kind == "symbol" else None
        if op is None:
            self._index -= 1
            raise self._error("Expected a comparison operator")
        return self._build(field, op, self._literal())

    def _build(self, field: str, op: Operator, value: Scalar | list[Scalar]) -> Comparison:
        try:
            return Comparison(field=field, op=op, value=value)
        except ValidationError as e:
            raise self._error(f"Invalid comparison on {field!r}: {e.errors()[0]['msg']}") from e

    def _list(self) -> list[Scalar]:
        self._expect("[")
        values = [self._literal()]
        while self._accept(","):
            values.append(self._literal())
        self._expect("]")
        return values

    def _literal(self) -> Scalar:
        token = self._advance()
        if token.kind == "string":
            return _unquote(token.text)
        if token.kind == "number":
            is_float = any(c in token.text for c in ".eE")
            return float(token.text) if is_float else int(token.text)
        if token.kind == "keyword" and token.text in ("TRUE", "FALSE"):
            return token.text == "TRUE"
        self._index -= 1
        raise self._error("Expected a literal value")


def parse_filter(text: str) -> FilterExpression:
    """Parse filter text.

    Args:
        text: Filter in native syntax.

    Returns:
        The expression tree.

    Raises:
        FilterParseError: If the text is malformed.
    """
    if not text or not text.strip():
        raise FilterParseError("Filter text is empty", details={"text": text})
    return _Parser(text).parse()
