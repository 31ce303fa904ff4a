from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.rules import FilterSpec, FilterType
from .coercion import as_text, to_number

"""Filter engine: at most one predicate per column, rows hidden on any failure."""

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence[Any]]


def _between_bounds(operand: Any) -> tuple[Any, Any]:
    if isinstance(operand, dict):
        return operand.get("min"), operand.get("max")
    if isinstance(operand, (list, tuple)) and len(operand) == 2:
        return operand[0], operand[1]
    raise ValueError(f"between filter needs {{min, max}}: {operand!r}")


def matches_filter(value: Any, ftype: FilterType, operand: Any) -> bool:
    """Whether a cell value passes one predicate.

    None passes only ``empty`` and a ``values`` set containing ''.
    """
    if value is None:
        if ftype is FilterType.EMPTY:
            return True
        if ftype is FilterType.VALUES:
            return "" in {as_text(v) for v in operand or ()}
        return False

    text = as_text(value)
    if ftype is FilterType.EQUALS:
        return text == as_text(operand)
    if ftype is FilterType.NOT_EQUALS:
        return text != as_text(operand)
    if ftype is FilterType.CONTAINS:
        return as_text(operand) in text
    if ftype is FilterType.NOT_CONTAINS:
        return as_text(operand) not in text
    if ftype is FilterType.STARTS_WITH:
        return text.startswith(as_text(operand))
    if ftype is FilterType.ENDS_WITH:
        return text.endswith(as_text(operand))
    if ftype in (FilterType.GREATER_THAN, FilterType.LESS_THAN):
        a, b = to_number(value), to_number(operand)
        if a is None or b is None:
            return False
        return a > b if ftype is FilterType.GREATER_THAN else a < b
    if ftype is FilterType.BETWEEN:
        lo_raw, hi_raw = _between_bounds(operand)
        n, lo, hi = to_number(value), to_number(lo_raw), to_number(hi_raw)
        if n is None or lo is None or hi is None:
            return False
        return lo <= n <= hi
    if ftype is FilterType.EMPTY:
        return text == ""
    if ftype is FilterType.NOT_EMPTY:
        return text != ""
    if ftype is FilterType.VALUES:
        return text in {as_text(v) for v in operand or ()}
    return True


class FilterEngine:
    def __init__(self) -> None:
        self._filters: dict[int, FilterSpec] = {}
        self._hidden: list[int] = []

    @property
    def filters(self) -> dict[int, FilterSpec]:
        return dict(self._filters)

    @property
    def hidden_rows(self) -> list[int]:
        """Hidden row indices as of the last ``recompute``."""
        return list(self._hidden)

    def set_filter(self, column: int, ftype: FilterType | str, value: Any = None) -> FilterSpec:
        if column < 0:
            raise ValueError(f"column index must be >= 0: {column}")
        spec = FilterSpec(column=column, type=FilterType(ftype), value=value)
        if spec.type is FilterType.BETWEEN:
            _between_bounds(value)
        self._filters[column] = spec
        logger.debug(f"filter set: column={column} type={spec.type.value}")
        return spec

    def clear_filter(self, column: int) -> bool:
        return self._filters.pop(column, None) is not None

    def clear_all_filters(self) -> None:
        self._filters.clear()
        self._hidden = []

    def has_filter(self, column: int) -> bool:
        return column in self._filters

    def row_visible(self, row: Sequence[Any]) -> bool:
        for col, spec in self._filters.items():
            value = row[col] if col < len(row) else None
            if not matches_filter(value, spec.type, spec.value):
                return False
        return True

    def recompute(self, grid: Grid) -> list[int]:
        """Recalculate and return the hidden row indices for ``grid``."""
        if not self._filters:
            self._hidden = []
        else:
            self._hidden = [i for i, row in enumerate(grid) if not self.row_visible(row)]
        return list(self._hidden)

    @staticmethod
    def column_values(grid: Grid, column: int) -> list[str]:
        """Distinct non-null values of a column (first-seen order) for value pickers."""
        seen: dict[str, None] = {}
        for row in grid:
            if column < len(row) and row[column] is not None:
                seen.setdefault(as_text(row[column]), None)
        return list(seen)
