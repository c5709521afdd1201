from datetime import date

import pytest

from sheetcalc.formula import ERROR_SENTINEL, RangeFormatError
from sheetcalc.grid import (
    cell_display_value,
    cell_mapping_from_grid,
    evaluate_sheet,
    format_display_value,
    selection_to_range,
)


def test_cell_mapping_from_list_rows():
    cells = cell_mapping_from_grid(["A", "B"], [[1, "x"], [None, "=A1*2"]])
    assert cells == {"A1": 1, "B1": "x", "A2": "", "B2": "=A1*2"}


def test_cell_mapping_from_dict_rows():
    headers = ["Name", "Amount"]
    data = [{"Name": "rent", "Amount": "900"}, {"Name": "food"}]
    cells = cell_mapping_from_grid(headers, data)
    assert cells == {"A1": "rent", "B1": "900", "A2": "food", "B2": ""}


def test_cell_mapping_wide_rows_use_bijective_letters():
    cells = cell_mapping_from_grid([], [list(range(28))])
    assert cells["Z1"] == 25
    assert cells["AA1"] == 26
    assert cells["AB1"] == 27


@pytest.mark.parametrize("start, end, expected", [
    ("A1", "C4", "A1:C4"),
    ("C4", "A1", "A1:C4"),
    ("C1", "A4", "A1:C4"),
    ("B3", "B3", "B3"),
    ("AA1", "Z2", "Z1:AA2"),
])
def test_selection_to_range(start, end, expected):
    assert selection_to_range(start, end) == expected


def test_selection_to_range_rejects_bad_refs():
    with pytest.raises(RangeFormatError):
        selection_to_range("A", "B2")


def test_evaluate_sheet():
    cells = {"A1": 2, "A2": "3", "A3": "=SUM(A1:A2)", "B1": "label", "B2": "=B1*2"}
    result = evaluate_sheet(cells)
    assert result == {"A1": 2, "A2": "3", "A3": 5, "B1": "label", "B2": ERROR_SENTINEL}


def test_evaluate_sheet_sees_raw_formula_text():
    result = evaluate_sheet({"A1": "=1+1", "A2": "=A1+1"})
    assert result["A1"] == 2
    assert result["A2"] == ERROR_SENTINEL


@pytest.mark.parametrize("value, fmt, expected", [
    (1234.5, {"type": "number"}, "1,234.5"),
    (1234.567, {"type": "number"}, "1,234.57"),
    (1000, {"type": "number"}, "1,000"),
    (2.5, {"type": "number", "decimals": 3}, "2.500"),
    (0.5, {"type": "percentage"}, "50%"),
    (0.256, {"type": "percentage", "decimals": 1}, "25.6%"),
    (1234.5, {"type": "currency"}, "$1,234.50"),
    (-3, {"type": "currency", "currency": "USD"}, "-$3.00"),
    (9.99, {"type": "currency", "currency": "eur"}, "€9.99"),
    (1500, {"type": "currency", "currency": "JPY"}, "¥1,500"),
    (10, {"type": "currency", "currency": "CHF"}, "CHF 10.00"),
    (date(2025, 1, 5), {"type": "date"}, "1/5/2025"),
])
def test_format_display_value(value, fmt, expected):
    assert format_display_value(value, fmt) == expected


def test_format_display_value_leaves_other_values():
    assert format_display_value("abc", {"type": "number"}) == "abc"
    assert format_display_value(ERROR_SENTINEL, {"type": "currency"}) == ERROR_SENTINEL
    assert format_display_value(True, {"type": "percentage"}) is True
    assert format_display_value(3.5, None) == 3.5
    assert format_display_value("2025-01-05", {"type": "date"}) == "2025-01-05"


def test_cell_display_value():
    cells = {"A1": 0.2, "A2": 0.3, "A3": "=A1+A2"}
    formats = {"A3": {"type": "percentage"}}
    assert cell_display_value("A3", cells, formats) == "50%"
    assert cell_display_value("A1", cells) == 0.2
    assert cell_display_value("Z9", cells) == ""
