from __future__ import annotations
import pytest

from sheet_editor.models.cell_range import CellRange
from sheet_editor.services.chart_data import color_for_index, prepare_chart_data

GRID = [
    ["", "Q1", "Q2"],
    ["East", "10", 20],
    ["West", 30, "n/a"],
]


def test_headers_on_both_axes_by_columns():
    data = prepare_chart_data(GRID, CellRange(0, 0, 2, 2))
    assert data["labels"] == ["East", "West"]
    assert [d["label"] for d in data["datasets"]] == ["Q1", "Q2"]
    assert data["datasets"][0]["data"] == [10, 30]
    assert data["datasets"][1]["data"] == [20, "n/a"]
    assert data["datasets"][0]["backgroundColor"] == color_for_index(0)
    assert data["datasets"][1]["borderColor"] == color_for_index(1, 1.0)


def test_rows_orientation():
    data = prepare_chart_data(GRID, CellRange(0, 0, 2, 2), orientation="rows")
    assert data["labels"] == ["Q1", "Q2"]
    assert [d["label"] for d in data["datasets"]] == ["East", "West"]
    assert data["datasets"][1]["data"] == [30, "n/a"]


def test_without_headers_uses_fallback_labels():
    data = prepare_chart_data(GRID, CellRange(1, 1, 2, 2), has_headers=False)
    assert data["labels"] == ["Row 2", "Row 3"]
    assert [d["label"] for d in data["datasets"]] == ["Dataset 1", "Dataset 2"]

    by_rows = prepare_chart_data(GRID, CellRange(1, 1, 2, 2), has_headers=False, orientation="rows")
    assert by_rows["labels"] == ["B", "C"]


def test_column_headers_only():
    data = prepare_chart_data(GRID, CellRange(0, 1, 2, 2), header_axis="column")
    assert [d["label"] for d in data["datasets"]] == ["Q1", "Q2"]
    assert data["labels"] == ["Row 2", "Row 3"]


def test_range_outside_grid_and_bad_arguments():
    assert prepare_chart_data(GRID, CellRange(10, 0, 12, 2)) is None
    with pytest.raises(ValueError):
        prepare_chart_data(GRID, CellRange(0, 0, 1, 1), header_axis="diagonal")
    with pytest.raises(ValueError):
        prepare_chart_data(GRID, CellRange(0, 0, 1, 1), orientation="spiral")


def test_palette_wraps():
    assert color_for_index(0) == color_for_index(6)
    assert color_for_index(0).startswith("rgba(")
