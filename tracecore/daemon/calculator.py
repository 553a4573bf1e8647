"""Arithmetic expression detection and evaluation.

Grammar (``^`` is right-associative and binds tighter than unary minus):

    expr   := term (('+' | '-') term)*
    term   := unary (('*' | '/') unary)*
    unary  := ('-' | '+') unary | power
    power  := atom ('^' unary)?
    atom   := NUMBER | '(' expr ')'
"""

import math
import re
from typing import List, Tuple

from .error_handling import CalculationError

MAX_EXPRESSION_LENGTH = 100
_MATH_PATTERN = re.compile(r'^[\d+\-*/^().\s]+$')
_TOKEN_PATTERN = re.compile(r'\s*(?:(\d+\.?\d*|\.\d+)|(.))')
_OPERATORS = set('+-*/^')


def is_math_expression(text: str) -> bool:
    """Whether the raw query looks like an arithmetic expression."""
    trimmed = text.strip()
    if not trimmed or len(trimmed) > MAX_EXPRESSION_LENGTH:
        return False
    if any(c.isalpha() for c in trimmed):
        return False
    has_operator = any(c in _OPERATORS for c in trimmed)
    has_digit = any(c.isdigit() for c in trimmed)
    return has_operator and has_digit and bool(_MATH_PATTERN.match(trimmed))


def evaluate(expression: str) -> str:
    """Evaluate an expression and return the formatted result."""
    if not is_math_expression(expression):
        raise CalculationError(f"Not an arithmetic expression: {expression!r}")
    value = _Parser(_tokenize(expression)).parse()
    return format_result(value)


def format_result(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise CalculationError("Result is not a finite number")
    if value == int(value):
        return str(int(value))
    formatted = f"{value:.10f}".rstrip('0')
    return formatted.rstrip('.')


def _tokenize(expression: str) -> List[Tuple[str, str]]:
    tokens = []
    for number, op in _TOKEN_PATTERN.findall(expression.strip()):
        if number:
            tokens.append(('num', number))
        elif op.strip():
            tokens.append(('op', op))
    return tokens


class _Parser:

    def __init__(self, tokens: List[Tuple[str, str]]):
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> float:
        value = self._expr()
        if self.pos != len(self.tokens):
            raise CalculationError(f"Unexpected token {self.tokens[self.pos][1]!r}")
        return value

    def _peek(self) -> str:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos][1]
        return ''

    def _advance(self) -> Tuple[str, str]:
        if self.pos >= len(self.tokens):
            raise CalculationError("Unexpected end of expression")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in ('+', '-'):
            op = self._advance()[1]
            rhs = self._term()
            value = value + rhs if op == '+' else value - rhs
        return value

    def _term(self) -> float:
        value = self._unary()
        while self._peek() in ('*', '/'):
            op = self._advance()[1]
            rhs = self._unary()
            if op == '*':
                value *= rhs
            elif rhs == 0:
                raise CalculationError("Division by zero")
            else:
                value /= rhs
        return value

    def _unary(self) -> float:
        if self._peek() == '-':
            self._advance()
            return -self._unary()
        if self._peek() == '+':
            self._advance()
            return self._unary()
        return self._power()

    def _power(self) -> float:
        base = self._atom()
        if self._peek() == '^':
            self._advance()
            exponent = self._unary()
            try:
                result = base ** exponent
            except (OverflowError, ZeroDivisionError) as e:
                raise CalculationError(str(e)) from e
            if isinstance(result, complex):
                raise CalculationError("Result is not a real number")
            return result
        return base

    def _atom(self) -> float:
        kind, value = self._advance()
        if kind == 'num':
            return float(value)
        if value == '(':
            inner = self._expr()
            if self._advance()[1] != ')':
                raise CalculationError("Expected ')'")
            return inner
        raise CalculationError(f"Unexpected token {value!r}")
