"""Arithmetic evaluation for calculation requests.

Utterances are reduced to the characters ``0-9 + - * / ( ) .`` and then
parsed by a small recursive-descent parser:

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("+" | "-") unary | primary
    primary := NUMBER | "(" expr ")"

Evaluation follows IEEE float rules, so ``1/0`` is infinity and ``0/0``
is NaN rather than an exception.
"""

import math
import re
from dataclasses import dataclass

from core.errors import InvalidResult, MalformedExpression, NoExpressionFound

FILLER_PHRASES = re.compile(r"calculate|what is|how much is", re.IGNORECASE)
DISALLOWED_CHARS = re.compile(r"[^0-9+\-*/().]")
NUMBER = re.compile(r"\d+\.?\d*|\.\d+")

MAX_DEPTH = 64


@dataclass
class Token:
    kind: str  # "num" or the operator/paren character
    text: str
    pos: int


def sanitize(text: str) -> str:
    """Strip filler phrases and every non-arithmetic character."""
    expression = FILLER_PHRASES.sub("", text)
    return DISALLOWED_CHARS.sub("", expression)


def tokenize(expression: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(expression):
        char = expression[pos]
        if char in "+-*/()":
            tokens.append(Token(kind=char, text=char, pos=pos))
            pos += 1
            continue
        match = NUMBER.match(expression, pos)
        if not match:
            raise MalformedExpression(f"Unexpected character {char!r}", position=pos)
        tokens.append(Token(kind="num", text=match.group(), pos=pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise MalformedExpression("Unexpected end of expression")
        self.index += 1
        return token

    def parse(self) -> float:
        value = self._expr()
        trailing = self._peek()
        if trailing is not None:
            raise MalformedExpression(f"Unexpected token {trailing.text!r}", position=trailing.pos)
        return value

    def _expr(self) -> float:
        value = self._term()
        while (token := self._peek()) and token.kind in "+-":
            self._advance()
            rhs = self._term()
            value = value + rhs if token.kind == "+" else value - rhs
        return value

    def _term(self) -> float:
        value = self._unary()
        while (token := self._peek()) and token.kind in "*/":
            self._advance()
            rhs = self._unary()
            value = value * rhs if token.kind == "*" else _divide(value, rhs)
        return value

    def _unary(self) -> float:
        token = self._peek()
        if token and token.kind in "+-":
            self._advance()
            with _Nesting(self):
                operand = self._unary()
            return -operand if token.kind == "-" else operand
        return self._primary()

    def _primary(self) -> float:
        token = self._advance()
        if token.kind == "num":
            return float(token.text)
        if token.kind == "(":
            with _Nesting(self):
                value = self._expr()
            closing = self._advance()
            if closing.kind != ")":
                raise MalformedExpression("Expected ')'", position=closing.pos)
            return value
        raise MalformedExpression(f"Unexpected token {token.text!r}", position=token.pos)


class _Nesting:
    def __init__(self, parser: _Parser):
        self.parser = parser

    def __enter__(self) -> None:
        self.parser.depth += 1
        if self.parser.depth > MAX_DEPTH:
            raise MalformedExpression("Expression nested too deeply")

    def __exit__(self, *exc: object) -> None:
        self.parser.depth -= 1


def _divide(lhs: float, rhs: float) -> float:
    if rhs != 0:
        return lhs / rhs
    if lhs == 0 or math.isnan(lhs):
        return math.nan
    return math.copysign(math.inf, lhs) * math.copysign(1.0, rhs)


def evaluate(expression: str) -> float:
    """Evaluate an already-sanitized expression."""
    return _Parser(tokenize(expression)).parse()


def evaluate_expression(text: str) -> float:
    """Extract the arithmetic from an utterance and compute it.

    Raises NoExpressionFound when nothing arithmetic is left after
    sanitizing, MalformedExpression on syntax errors and InvalidResult
    when the result is NaN.
    """
    expression = sanitize(text)
    if not expression:
        raise NoExpressionFound(f"No arithmetic in {text!r}")
    result = evaluate(expression)
    if math.isnan(result):
        raise InvalidResult(f"{expression} is not a number")
    return result


def format_number(value: float) -> str:
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)
