"""Expression engines that evaluate the plain expressions built by formula.py.

The formula layer only depends on `ExpressionEngine.evaluate`. The default
`ArithmeticEngine` is a recursive-descent evaluator (no eval()) covering:

  literals      12  1.5  .5  1e-07  "text"  true  false
  operators     == != < <= > >=   &   + -   * / %   unary + -   ^
  functions     sum mean count min max prod (variadic)
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from sheetcalc.formula import (
    DivisionByZeroError,
    FormulaError,
    FormulaSyntaxError,
    FormulaTypeError,
    UnknownFunctionError,
)


class ExpressionEngine(ABC):
    @abstractmethod
    def evaluate(self, expression: str):
        """Evaluate a plain expression and return a number, string or bool."""


# ── Built-in functions ────────────────────────────────────────────

def _numbers(name: str, args: tuple) -> list[float]:
    values = []
    for a in args:
        if isinstance(a, str):
            raise FormulaTypeError(f"{name}() expects numbers, got {a!r}")
        values.append(float(a))
    return values


def _non_empty(name: str, args: tuple) -> list[float]:
    values = _numbers(name, args)
    if not values:
        raise FormulaSyntaxError(f"{name}() needs at least one value")
    return values


def _sum(*args):
    return math.fsum(_numbers("sum", args))


def _mean(*args):
    values = _non_empty("mean", args)
    return math.fsum(values) / len(values)


def _count(*args):
    return float(sum(1 for a in args if not isinstance(a, (str, bool))))


def _min(*args):
    return min(_non_empty("min", args))


def _max(*args):
    return max(_non_empty("max", args))


def _prod(*args):
    return math.prod(_numbers("prod", args))


BUILTIN_FUNCTIONS: Dict[str, Callable] = {
    "sum": _sum,
    "mean": _mean,
    "count": _count,
    "min": _min,
    "max": _max,
    "prod": _prod,
}

_CONSTANTS = {"true": True, "false": False, "TRUE": True, "FALSE": False}


def _num(value) -> float:
    if isinstance(value, str):
        raise FormulaTypeError(f"Cannot use text {value!r} as a number")
    return float(value)


def _text(value) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return str(value)


# ── Parser ────────────────────────────────────────────────────────

class _Parser:
    """Parses and evaluates one expression. Not reusable."""
    __slots__ = ('text', 'pos', 'functions')

    def __init__(self, text: str, functions: Dict[str, Callable]):
        self.text = text
        self.pos = 0
        self.functions = functions

    def _skip_ws(self):
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self, n: int = 1) -> str:
        self._skip_ws()
        return self.text[self.pos:self.pos + n]

    def _eat(self, expected: str):
        if self._peek(len(expected)) != expected:
            got = self.text[self.pos] if self.pos < len(self.text) else "end of expression"
            raise FormulaSyntaxError(f"Expected '{expected}' at pos {self.pos}, got '{got}'")
        self.pos += len(expected)

    def _number(self) -> float:
        start = self.pos
        text = self.text
        while self.pos < len(text) and (text[self.pos].isdigit() or text[self.pos] == '.'):
            self.pos += 1
        if self.pos < len(text) and text[self.pos] in 'eE':
            mark = self.pos
            self.pos += 1
            if self.pos < len(text) and text[self.pos] in '+-':
                self.pos += 1
            if self.pos < len(text) and text[self.pos].isdigit():
                while self.pos < len(text) and text[self.pos].isdigit():
                    self.pos += 1
            else:
                self.pos = mark
        try:
            return float(text[start:self.pos])
        except ValueError:
            raise FormulaSyntaxError(f"Invalid number at pos {start}: {text[start:self.pos]!r}")

    def _string(self) -> str:
        self.pos += 1
        end = self.text.find('"', self.pos)
        if end == -1:
            raise FormulaSyntaxError(f"Unterminated string at pos {self.pos - 1}")
        value = self.text[self.pos:end]
        self.pos = end + 1
        return value

    def _identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] == '_'):
            self.pos += 1
        return self.text[start:self.pos]

    def _call(self, name: str):
        func = self.functions.get(name)
        if func is None:
            raise UnknownFunctionError(f"Unknown function: {name}")
        self._eat('(')
        args = []
        if self._peek() != ')':
            args.append(self._comparison())
            while self._peek() == ',':
                self._eat(',')
                args.append(self._comparison())
        self._eat(')')
        return func(*args)

    def _primary(self):
        ch = self._peek()
        if ch == '(':
            self._eat('(')
            val = self._comparison()
            self._eat(')')
            return val
        if ch == '"':
            return self._string()
        if ch.isdigit() or ch == '.':
            return self._number()
        if ch.isalpha() or ch == '_':
            name = self._identifier()
            if self._peek() == '(':
                return self._call(name)
            if name in _CONSTANTS:
                return _CONSTANTS[name]
            raise UnknownFunctionError(f"Unknown symbol: {name}")
        if not ch:
            raise FormulaSyntaxError("Unexpected end of expression")
        raise FormulaSyntaxError(f"Unexpected '{ch}' at pos {self.pos}")

    def _power(self):
        base = self._primary()
        if self._peek() == '^':
            self._eat('^')
            exponent = self._unary()
            try:
                result = _num(base) ** _num(exponent)
            except ZeroDivisionError:
                raise DivisionByZeroError("Zero raised to a negative power")
            if isinstance(result, complex):
                raise FormulaTypeError("Result is not a real number")
            return result
        return base

    def _unary(self):
        ch = self._peek()
        if ch == '-':
            self._eat('-')
            return -_num(self._unary())
        if ch == '+':
            self._eat('+')
            return _num(self._unary())
        return self._power()

    def _term(self):
        left = self._unary()
        while self._peek() in ('*', '/', '%'):
            op = self._peek()
            self._eat(op)
            right = _num(self._unary())
            if op == '*':
                left = _num(left) * right
                continue
            if right == 0:
                raise DivisionByZeroError("Division by zero")
            left = _num(left) / right if op == '/' else math.fmod(_num(left), right)
        return left

    def _additive(self):
        left = self._term()
        while self._peek() in ('+', '-'):
            op = self._peek()
            self._eat(op)
            right = _num(self._term())
            left = _num(left) + right if op == '+' else _num(left) - right
        return left

    def _concat(self):
        left = self._additive()
        while self._peek() == '&':
            self._eat('&')
            left = _text(left) + _text(self._additive())
        return left

    def _comparison(self):
        left = self._concat()
        for op in ('==', '!=', '<=', '>=', '<', '>'):
            if self._peek(len(op)) == op:
                self._eat(op)
                return _compare(op, left, self._concat())
        return left

    def parse(self):
        if not self.text.strip():
            raise FormulaSyntaxError("Empty expression")
        result = self._comparison()
        self._skip_ws()
        if self.pos != len(self.text):
            raise FormulaSyntaxError(f"Unexpected '{self.text[self.pos]}' at pos {self.pos}")
        return result


def _compare(op: str, left, right) -> bool:
    if isinstance(left, str) != isinstance(right, str):
        if op in ('==', '!='):
            return op == '!='
        raise FormulaTypeError(f"Cannot compare {left!r} with {right!r}")
    if op == '==':
        return left == right
    if op == '!=':
        return left != right
    if op == '<':
        return left < right
    if op == '<=':
        return left <= right
    if op == '>':
        return left > right
    return left >= right


# ── Engine ────────────────────────────────────────────────────────

class ArithmeticEngine(ExpressionEngine):
    """Stateless evaluator; extra functions are scoped to this instance."""

    def __init__(self, functions: Optional[Dict[str, Callable]] = None) -> None:
        self._functions: Dict[str, Callable] = dict(BUILTIN_FUNCTIONS)
        if functions:
            self._functions.update(functions)

    @property
    def function_names(self) -> list[str]:
        return sorted(self._functions)

    def evaluate(self, expression: str):
        try:
            result = _Parser(expression, self._functions).parse()
        except OverflowError as e:
            raise FormulaError(f"Numeric overflow: {e}")
        except RecursionError:
            raise FormulaSyntaxError("Expression nested too deeply")
        if isinstance(result, float) and not math.isfinite(result):
            raise FormulaError(f"Non-finite result: {result}")
        return result


default_engine = ArithmeticEngine()
