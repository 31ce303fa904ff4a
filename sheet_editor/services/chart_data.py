from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..models.cell_range import CellRange, column_letter
from .coercion import as_text, to_number

"""Chart data preparation: cut a range out of a grid into labels + datasets."""

_PALETTE = (
    (54, 162, 235),
    (255, 99, 132),
    (75, 192, 192),
    (255, 206, 86),
    (153, 102, 255),
    (255, 159, 64),
)

HEADER_AXES = ("row", "column", "both")
ORIENTATIONS = ("columns", "rows")


def color_for_index(index: int, alpha: float = 0.6) -> str:
    r, g, b = _PALETTE[index % len(_PALETTE)]
    return f"rgba({r}, {g}, {b}, {alpha})"


def _numeric_or_raw(v: Any) -> Any:
    n = to_number(v)
    if n is None:
        return v
    return int(n) if n.is_integer() else n


def _dataset(index: int, label: str, data: list[Any]) -> dict[str, Any]:
    return {
        "label": label,
        "data": data,
        "backgroundColor": color_for_index(index),
        "borderColor": color_for_index(index, 1.0),
        "borderWidth": 1,
    }


def prepare_chart_data(
    grid: Sequence[Sequence[Any]],
    rng: CellRange,
    *,
    has_headers: bool = True,
    header_axis: str = "both",
    orientation: str = "columns",
) -> dict[str, Any] | None:
    """Build ``{"labels": [...], "datasets": [...]}`` for a chart.

    With headers, ``row`` takes the first column as row labels, ``column``
    takes the first row as column headers and ``both`` does both. Numeric
    strings become numbers. Returns None for a range outside the grid.
    """
    if header_axis not in HEADER_AXES:
        raise ValueError(f"header_axis must be one of {HEADER_AXES}: {header_axis}")
    if orientation not in ORIENTATIONS:
        raise ValueError(f"orientation must be one of {ORIENTATIONS}: {orientation}")
    if rng.start_row >= len(grid):
        return None

    values: list[list[Any]] = []
    for r in range(rng.start_row, min(rng.end_row, len(grid) - 1) + 1):
        row = grid[r]
        values.append(
            [_numeric_or_raw(row[c]) if c < len(row) else None for c in range(rng.start_col, rng.end_col + 1)]
        )
    if not values:
        return None

    use_row_labels = has_headers and header_axis in ("row", "both")
    use_col_headers = has_headers and header_axis in ("column", "both")

    col_headers: list[str] = []
    if use_col_headers:
        header_row, values = values[0], values[1:]
        col_headers = [as_text(h) for h in header_row[1 if use_row_labels else 0:]]
    row_labels: list[str] = []
    if use_row_labels:
        row_labels = [as_text(row[0]) for row in values]
        values = [row[1:] for row in values]

    first_data_row = rng.start_row + (1 if use_col_headers else 0)
    first_data_col = rng.start_col + (1 if use_row_labels else 0)
    width = len(values[0]) if values else 0

    datasets: list[dict[str, Any]] = []
    if orientation == "columns":
        labels = row_labels or [f"Row {first_data_row + i + 1}" for i in range(len(values))]
        for i in range(width):
            label = col_headers[i] if i < len(col_headers) and col_headers[i] else f"Dataset {i + 1}"
            datasets.append(_dataset(i, label, [row[i] for row in values]))
    else:
        labels = col_headers or [column_letter(first_data_col + i) for i in range(width)]
        for i, row in enumerate(values):
            label = row_labels[i] if i < len(row_labels) and row_labels[i] else f"Dataset {i + 1}"
            datasets.append(_dataset(i, label, list(row)))

    return {"labels": labels, "datasets": datasets}
