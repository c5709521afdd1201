"""Sheet-level helpers built on the formula evaluator.

Covers turning an uploaded grid ({headers, data}) into a flat cell mapping,
turning a selection into a range token, and rendering computed cells with
their display format.
"""

from datetime import date

from sheetcalc.formula import (
    column_letter_to_number,
    column_number_to_letter,
    evaluate_formula,
    split_cell_ref,
)

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}
_ZERO_DECIMAL_CURRENCIES = {"JPY"}


def cell_mapping_from_grid(headers: list, data: list) -> dict:
    """Flatten rows into {"A1": value, ...}.

    data[0] is row 1 and the j-th header is column j+1. Rows may be lists
    (positional) or dicts keyed by header name.
    """
    cells = {}
    for ri, row in enumerate(data):
        if isinstance(row, dict):
            values = [row.get(h, "") for h in headers]
        else:
            values = list(row)
        for ci, value in enumerate(values):
            cells[f"{column_number_to_letter(ci + 1)}{ri + 1}"] = "" if value is None else value
    return cells


def selection_to_range(start: str, end: str) -> str:
    """Normalise a drag selection into a range token.

    ('C4', 'A1') -> 'A1:C4'; a single cell gives just its reference.
    """
    start_col, start_row = split_cell_ref(start)
    end_col, end_row = split_cell_ref(end)
    cols = sorted((column_letter_to_number(start_col), column_letter_to_number(end_col)))
    rows = sorted((start_row, end_row))
    first = f"{column_number_to_letter(cols[0])}{rows[0]}"
    last = f"{column_number_to_letter(cols[1])}{rows[1]}"
    if first == last:
        return first
    return f"{first}:{last}"


def evaluate_sheet(cells: dict, engine=None) -> dict:
    """Compute every cell: formulas are evaluated, plain values pass through.

    Formulas see the raw mapping, so a formula that references another
    formula cell sees its text, not its result.
    """
    return {ref: evaluate_formula(value, cells, engine) for ref, value in cells.items()}


# ── Display formatting ────────────────────────────────────────────

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _grouped(value: float, min_decimals: int, max_decimals: int) -> str:
    text = f"{value:,.{max_decimals}f}"
    if max_decimals > min_decimals and '.' in text:
        whole, frac = text.split('.')
        frac = frac.rstrip('0')
        if len(frac) < min_decimals:
            frac = frac.ljust(min_decimals, '0')
        text = f"{whole}.{frac}" if frac else whole
    return text


def format_display_value(value, fmt: dict | None):
    """Apply a cell format ({"type": ..., "decimals": ..., "currency": ...}).

    Values the format does not apply to are returned unchanged.
    """
    if not fmt:
        return value
    kind = fmt.get("type")
    decimals = fmt.get("decimals")

    if kind == "number" and _is_number(value):
        return _grouped(value, decimals or 0, decimals or 2)

    if kind == "percentage" and _is_number(value):
        return f"{value * 100:.{decimals or 0}f}%"

    if kind == "currency" and _is_number(value):
        code = (fmt.get("currency") or "USD").upper()
        places = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
        symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
        sign = "-" if value < 0 else ""
        return f"{sign}{symbol}{_grouped(abs(value), places, places)}"

    if kind == "date" and isinstance(value, date):
        return f"{value.month}/{value.day}/{value.year}"

    return value


def cell_display_value(ref: str, cells: dict, formats: dict | None = None, engine=None):
    """What the grid shows for one cell: evaluated, then formatted."""
    value = cells.get(ref, "")
    value = evaluate_formula(value, cells, engine)
    return format_display_value(value, (formats or {}).get(ref))
