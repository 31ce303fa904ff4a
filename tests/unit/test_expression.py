from __future__ import annotations
import pytest

from sheet_editor.services.expression import (
    Expression,
    ExpressionError,
    compile_expression,
    evaluate_expression,
)


@pytest.mark.parametrize(
    "source,value,expected",
    [
        ("value > 10", 11, True),
        ("value > 10", "11", True),
        ("value > 10", 10, False),
        ("value >= 0 and value <= 10", 5, True),
        ("value >= 0 && value <= 10", 11, False),
        ("0 <= value <= 10", 10, True),
        ("0 <= value <= 10", -1, False),
        ("value < 0 or value > 100", -5, True),
        ("value < 0 || value > 100", 50, False),
        ("not (value > 3)", 2, True),
        ("!(value > 3)", 4, False),
        ("value == 'yes'", "yes", True),
        ("value != \"no\"", "yes", True),
        ("value == 5", "5", True),
        ("value === 5", "5", False),
        ("value === 5", 5.0, True),
        ("value !== 5", "5", True),
        ("value == null", None, True),
        ("value", "", False),
        ("value", "x", True),
        ("-value < 0", 3, True),
        ("value == true", True, True),
    ],
)
def test_evaluate_expression(source: str, value, expected: bool):
    assert evaluate_expression(source, value) is expected


def test_ordered_comparison_with_non_numeric_is_false():
    assert evaluate_expression("value > 10", "abc") is False
    assert evaluate_expression("value < 10", "abc") is False


def test_string_ordering_compares_text():
    assert evaluate_expression("value < 'b'", "a") is True


def test_escaped_strings():
    assert evaluate_expression(r"value == 'it\'s'", "it's") is True


@pytest.mark.parametrize(
    "source",
    [
        "",
        "   ",
        "value >",
        "(value > 1",
        "foo > 1",
        "value.__class__",
        "__import__('os')",
        "value > 1 1",
        "value $ 2",
    ],
)
def test_invalid_expressions_raise(source: str):
    with pytest.raises(ExpressionError):
        Expression(source)


def test_unary_minus_on_text_raises_at_evaluation():
    expr = Expression("-value > 0")
    with pytest.raises(ExpressionError):
        expr.evaluate("abc")


def test_compile_expression_is_cached():
    a = compile_expression("value > 1")
    b = compile_expression("value > 1")
    assert a is b


@pytest.mark.parametrize(
    "source",
    [
        "(" * 400 + "value > 1" + ")" * 400,
        "not " * 400 + "value > 1",
        "-" * 400 + "value > 1",
        "value > " + "9" * 5000,
    ],
)
def test_runaway_expressions_raise_expression_error(source: str):
    with pytest.raises(ExpressionError):
        Expression(source)


def test_nesting_within_limit_is_accepted():
    source = "(" * 60 + "value > 1" + ")" * 60
    assert evaluate_expression(source, 2)
    assert not evaluate_expression(source, 0)


def test_huge_integer_literal_compares_as_infinity():
    expr = Expression("value > " + "9" * 400)
    assert not expr.evaluate(10)
    assert Expression("value < " + "9" * 400).evaluate(10)
