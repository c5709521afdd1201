"""Formula evaluator for SheetCalc cell mappings.

A cell mapping is a flat dict of cell reference -> value ({"A1": 2, "B1": "x"}).
A formula is any string starting with "=". Evaluation runs in a fixed order:

  1. spreadsheet function names are translated (SUM( -> sum(, ...)
  2. inline ranges (A1:B3) are expanded to the values they cover
  3. cell references are replaced by literals (missing/empty -> 0)
  4. the plain expression is handed to an ExpressionEngine

Numeric results are rounded to 6 decimal places. `evaluate` raises
FormulaError on failure; `evaluate_formula` never raises and returns
the "#ERROR" sentinel instead.
"""

import logging
import math
import re

logger = logging.getLogger(__name__)

ERROR_SENTINEL = "#ERROR"


# ── Error types ───────────────────────────────────────────────────

class FormulaError(Exception):
    """Base for all formula errors. `code` is the cell display string."""
    code: str = "#ERROR"

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code

class FormulaSyntaxError(FormulaError):
    code = "#ERROR"

class FormulaTypeError(FormulaError):
    code = "#VALUE"

class DivisionByZeroError(FormulaError):
    code = "#DIV/0"

class UnknownFunctionError(FormulaError):
    code = "#NAME"

class RangeFormatError(FormulaError):
    code = "#REF"


# ── Column codec ──────────────────────────────────────────────────

def column_letter_to_number(letter: str) -> int:
    """A->1, B->2, ..., Z->26, AA->27.

    Input is not validated: anything other than uppercase A-Z gives a
    meaningless number.
    """
    n = 0
    for ch in letter:
        n = n * 26 + (ord(ch) - ord('A') + 1)
    return n


def column_number_to_letter(number: int) -> str:
    """1->A, 26->Z, 27->AA, 52->AZ. Numbers below 1 give ''."""
    result = ""
    while number > 0:
        number, rem = divmod(number - 1, 26)
        result = chr(rem + ord('A')) + result
    return result


# ── Cell values ───────────────────────────────────────────────────

_CELL_REF_RE = re.compile(r'[A-Z]+[0-9]+')
_CELL_PARTS_RE = re.compile(r"([A-Z]+)([0-9]+)")
_RANGE_RE = re.compile(r'([A-Z]+[0-9]+):([A-Z]+[0-9]+)')
_QUOTED_OR_RANGE_RE = re.compile(r'"[^"]*"|' + _RANGE_RE.pattern)
_LEADING_FLOAT_RE = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def is_empty(value) -> bool:
    return value is None or value == ""


def _finite_float(value) -> float | None:
    try:
        n = float(value)
    except OverflowError:
        return None
    return n if math.isfinite(n) else None


def numeric_value(value) -> float | None:
    """Return the number a cell value stands for, or None for text.

    Empty and whitespace-only strings are text here; callers handle the
    empty case before asking.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite_float(value)
    if not isinstance(value, str) or not value.strip() or '_' in value:
        return None
    try:
        n = float(value.strip())
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def _leading_float(value) -> float:
    """Numeric prefix of a value ('12abc' -> 12.0); 0.0 when there is none."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _finite_float(value) or 0.0
    m = _LEADING_FLOAT_RE.match(str(value))
    if not m:
        return 0.0
    n = float(m.group(0))
    return n if math.isfinite(n) else 0.0


def _number_literal(value: float) -> str:
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


# ── Function translation ──────────────────────────────────────────

FUNCTION_MAP = {
    "SUM": "sum",
    "AVERAGE": "mean",
    "COUNT": "count",
    "MIN": "min",
    "MAX": "max",
    "PRODUCT": "prod",
}

_FUNCTION_RES = [
    (re.compile(re.escape(name) + r'\(', re.IGNORECASE), target + "(")
    for name, target in FUNCTION_MAP.items()
]


def translate_functions(expression: str) -> str:
    """Rewrite spreadsheet function calls to engine names.

    Only names directly followed by '(' are rewritten; anything else,
    including unknown functions, is left for the engine.
    """
    for pattern, replacement in _FUNCTION_RES:
        expression = pattern.sub(replacement, expression)
    return expression


# ── Reference resolution ──────────────────────────────────────────

def resolve_references(expression: str, cells) -> str:
    """Replace every cell reference with the literal for its value.

    Missing or empty cells become 0, numeric values are inserted bare and
    text is wrapped in double quotes. Embedded quotes are not escaped.
    """
    def _ref_sub(m: re.Match) -> str:
        value = cells.get(m.group(0))
        if is_empty(value):
            return "0"
        n = numeric_value(value)
        if n is not None:
            return value.strip() if isinstance(value, str) else _number_literal(n)
        return f'"{value}"'

    return _CELL_REF_RE.sub(_ref_sub, expression)


# ── Range extraction ──────────────────────────────────────────────

def split_cell_ref(ref: str) -> tuple[str, int]:
    m = _CELL_PARTS_RE.fullmatch(ref)
    if not m:
        raise RangeFormatError(f"Invalid cell reference: {ref!r}")
    return m.group(1), int(m.group(2))


def extract_cell_range(range_str: str, cells) -> list[float]:
    """'A1:B2' -> numeric values of A1, B1, A2, B2 (row by row).

    Cells missing from the mapping or holding '' are skipped, not zero-filled.
    Reversed bounds produce an empty list. Raises RangeFormatError on a
    malformed range.
    """
    parts = range_str.split(':')
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise RangeFormatError(f"Invalid range: {range_str!r}")
    start_col, start_row = split_cell_ref(parts[0])
    end_col, end_row = split_cell_ref(parts[1])

    start_num = column_letter_to_number(start_col)
    end_num = column_letter_to_number(end_col)

    values: list[float] = []
    for row in range(start_row, end_row + 1):
        for col in range(start_num, end_num + 1):
            value = cells.get(f"{column_number_to_letter(col)}{row}")
            if not is_empty(value):
                values.append(_leading_float(value))
    return values


def expand_ranges(expression: str, cells) -> str:
    """Replace each inline range with its comma-separated values.

    Ranges inside double-quoted text are left as written.
    """
    def _range_sub(m: re.Match) -> str:
        if m.group(0).startswith('"'):
            return m.group(0)
        values = extract_cell_range(m.group(0), cells)
        return ", ".join(_number_literal(v) for v in values)

    return _QUOTED_OR_RANGE_RE.sub(_range_sub, expression)


# ── Formula evaluation ────────────────────────────────────────────

def is_formula(value) -> bool:
    return isinstance(value, str) and value.startswith('=')


def round_result(value):
    """Round numbers half-up to 6 decimals; leave anything else alone."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    if _finite_float(value) is None:
        raise FormulaError(f"Non-finite result: {value}")
    # no digits below 1e-6 left to round at this magnitude
    if abs(value) >= 1e15:
        return value
    return math.floor(value * 1e6 + 0.5) / 1e6


def to_expression(formula: str, cells) -> str:
    """Turn a formula into the plain expression handed to the engine."""
    expr = formula[1:].strip()
    if not expr:
        raise FormulaSyntaxError("Empty formula")
    expr = translate_functions(expr)
    expr = expand_ranges(expr, cells)
    return resolve_references(expr, cells)


def evaluate(formula: str, cells, engine=None):
    """Evaluate a formula string (starting with =) against a cell mapping.

    Raises FormulaError (or whatever the engine raises) on failure.
    """
    if engine is None:
        from sheetcalc.expression import default_engine
        engine = default_engine
    expr = to_expression(formula, cells)
    return round_result(engine.evaluate(expr))


def evaluate_formula(formula, cells, engine=None):
    """Evaluate a cell's content for display.

    Non-formula content is returned unchanged. Any failure is logged and
    reported as "#ERROR".
    """
    if not formula or not is_formula(formula):
        return formula
    try:
        return evaluate(formula, cells, engine)
    except Exception as e:
        logger.warning("Formula evaluation error for %r: %s", formula, e)
        return ERROR_SENTINEL
