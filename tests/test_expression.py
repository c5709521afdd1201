import pytest

from sheetcalc.expression import ArithmeticEngine, default_engine
from sheetcalc.formula import (
    DivisionByZeroError,
    FormulaError,
    FormulaSyntaxError,
    FormulaTypeError,
    UnknownFunctionError,
)


@pytest.mark.parametrize("expression, expected", [
    ("2+3*4", 14),
    ("(2+3)*4", 20),
    ("10-4-3", 3),
    ("8/4/2", 1),
    ("7%3", 1),
    ("-2^2", -4),
    ("2^3^2", 512),
    ("2^-1", 0.5),
    ("-(1+2)", -3),
    ("+4", 4),
    (".5+1.5", 2),
    ("1.5e2", 150),
    (" 1 +  2 ", 3),
    ("true+1", 2),
])
def test_arithmetic(expression, expected):
    assert default_engine.evaluate(expression) == expected


@pytest.mark.parametrize("expression, expected", [
    ("1<2", True),
    ("2<=2", True),
    ("3>4", False),
    ("3>=4", False),
    ("1+1==2", True),
    ("1!=1", False),
    ('"a"=="a"', True),
    ('"a"<"b"', True),
    ('"a"==1', False),
    ('"a"!=1', True),
])
def test_comparisons(expression, expected):
    assert default_engine.evaluate(expression) is expected


def test_concatenation():
    assert default_engine.evaluate('"a"&"b"') == "ab"
    assert default_engine.evaluate('1+1&"x"') == "2x"
    assert default_engine.evaluate('0.5&"!"') == "0.5!"
    assert default_engine.evaluate('(1<2)&""') == "TRUE"


def test_builtin_functions():
    assert default_engine.evaluate("sum(1, 2, 3)") == 6
    assert default_engine.evaluate("sum()") == 0
    assert default_engine.evaluate("mean(1, 2, 3, 4)") == 2.5
    assert default_engine.evaluate('count(1, "x", 2)') == 2
    assert default_engine.evaluate("count()") == 0
    assert default_engine.evaluate("min(3, 1, 2)") == 1
    assert default_engine.evaluate("max(3, 1, 2)") == 3
    assert default_engine.evaluate("prod(2, 3, 4)") == 24
    assert default_engine.evaluate("sum(max(1, 5), min(2, 9))") == 7


@pytest.mark.parametrize("name", ["mean", "min", "max"])
def test_functions_needing_values(name):
    with pytest.raises(FormulaSyntaxError):
        default_engine.evaluate(f"{name}()")


def test_text_in_arithmetic_is_type_error():
    with pytest.raises(FormulaTypeError):
        default_engine.evaluate('"a"+1')
    with pytest.raises(FormulaTypeError):
        default_engine.evaluate('-"a"')
    with pytest.raises(FormulaTypeError):
        default_engine.evaluate('sum(1, "a")')
    with pytest.raises(FormulaTypeError):
        default_engine.evaluate('"a"<1')


def test_division_by_zero():
    with pytest.raises(DivisionByZeroError):
        default_engine.evaluate("1/0")
    with pytest.raises(DivisionByZeroError):
        default_engine.evaluate("5%0")
    with pytest.raises(DivisionByZeroError):
        default_engine.evaluate("0^-1")


def test_non_real_and_overflow_results():
    with pytest.raises(FormulaTypeError):
        default_engine.evaluate("(-8)^(1/3)")
    with pytest.raises(FormulaError):
        default_engine.evaluate("10^400")
    with pytest.raises(FormulaError):
        default_engine.evaluate("1e308*10")


@pytest.mark.parametrize("expression", ["", "   ", "(1+2", "1+2)", "1 2", '"abc', "1..2", "=1", "sum(1,", "1 +* 2"])
def test_syntax_errors(expression):
    with pytest.raises(FormulaSyntaxError):
        default_engine.evaluate(expression)


def test_unknown_names():
    with pytest.raises(UnknownFunctionError):
        default_engine.evaluate("round(1.5)")
    with pytest.raises(UnknownFunctionError):
        default_engine.evaluate("x + 1")


def test_extra_functions_are_per_instance():
    engine = ArithmeticEngine({"double": lambda x: x * 2})
    assert engine.evaluate("double(4) + 1") == 9
    assert "double" in engine.function_names
    with pytest.raises(UnknownFunctionError):
        default_engine.evaluate("double(4)")
