"""Tests for arithmetic detection and evaluation."""

import pytest

from tracecore.daemon.calculator import evaluate, format_result, is_math_expression
from tracecore.daemon.error_handling import CalculationError


@pytest.mark.parametrize("text", ["2+2", "2+2*3", " (1 + 2) * 3 ", "10/4", "2^10", "-3*-3", ".5+.5"])
def test_detects_expressions(text):
    assert is_math_expression(text)


@pytest.mark.parametrize("text", ["", "42", "chrome", "2 apples + 3", "1+" * 60, "2 % 3", "+"])
def test_rejects_non_expressions(text):
    assert not is_math_expression(text)


@pytest.mark.parametrize("expression,expected", [
    ("2+2*3", "8"),
    ("(2+2)*3", "12"),
    ("10/4", "2.5"),
    ("2^3^2", "512"),
    ("-2^2", "-4"),
    ("1/3", "0.3333333333"),
    ("0.1+0.2", "0.3"),
    ("7-10", "-3"),
    ("2*(3+(4-1))", "12"),
])
def test_evaluate(expression, expected):
    assert evaluate(expression) == expected


@pytest.mark.parametrize("expression", ["1/0", "(2+", "2+*3", "()", "2^0.5^(1/0)", "1.2.3+1"])
def test_malformed(expression):
    with pytest.raises(CalculationError):
        evaluate(expression)


def test_overflow():
    with pytest.raises(CalculationError):
        evaluate("10^400")


def test_rejects_non_expression():
    with pytest.raises(CalculationError):
        evaluate("open chrome")


def test_format_result():
    assert format_result(3.0) == "3"
    assert format_result(2.50) == "2.5"
    with pytest.raises(CalculationError):
        format_result(float("inf"))
