from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

"""Cell coordinates, rectangular ranges and their string keys.

All indices are 0-based. Two key formats are used throughout the document
record:

- cell key  ``"row,col"``            (comments, styles, protected cells)
- range key ``"r1,c1:r2,c2"``        (data validation rules)

Spreadsheet-style addresses (``A1`` / ``A1:B2``) are only used for display.
"""

__all__ = [
    "CellRange",
    "cell_key",
    "parse_cell_key",
    "column_letter",
    "column_index",
    "cell_address",
    "parse_cell_address",
]

_ADDRESS_RE = re.compile(r"^([A-Z]+)([0-9]+)$")


def cell_key(row: int, col: int) -> str:
    return f"{row},{col}"


def parse_cell_key(key: str) -> tuple[int, int]:
    """Parse ``"row,col"`` into a tuple. Raises ValueError on malformed keys."""
    parts = key.split(",")
    if len(parts) != 2:
        raise ValueError(f"invalid cell key: {key!r}")
    return int(parts[0]), int(parts[1])


def column_letter(col: int) -> str:
    """Column header label: 0 -> A, 25 -> Z, 26 -> AA."""
    if col < 0:
        raise ValueError(f"column index must be >= 0: {col}")
    letters = ""
    n = col
    while n >= 0:
        n, rem = divmod(n, 26)
        letters = chr(65 + rem) + letters
        n -= 1
    return letters


def column_index(letters: str) -> int:
    """Inverse of column_letter: A -> 0, AA -> 26."""
    if not letters or not letters.isalpha():
        raise ValueError(f"invalid column letters: {letters!r}")
    result = 0
    for ch in letters.upper():
        result = result * 26 + (ord(ch) - 64)
    return result - 1


def cell_address(row: int, col: int) -> str:
    return f"{column_letter(col)}{row + 1}"


def parse_cell_address(address: str) -> tuple[int, int]:
    m = _ADDRESS_RE.match(address.strip().upper())
    if not m:
        raise ValueError(f"invalid cell address: {address!r}")
    return int(m.group(2)) - 1, column_index(m.group(1))


@dataclass(frozen=True)
class CellRange:
    """Rectangular, inclusive, well-ordered cell range.

    Construct through :meth:`of` (or :meth:`single`) when the corners may come
    in any order, e.g. a selection dragged upwards. The constructor itself
    rejects unordered corners so a stored range is always start <= end.
    """
    start_row: int
    start_col: int
    end_row: int
    end_col: int

    def __post_init__(self) -> None:
        if self.start_row > self.end_row or self.start_col > self.end_col:
            raise ValueError(
                f"range corners out of order: ({self.start_row},{self.start_col})"
                f"-({self.end_row},{self.end_col})"
            )
        if self.start_row < 0 or self.start_col < 0:
            raise ValueError("range indices must be >= 0")

    @classmethod
    def of(cls, row1: int, col1: int, row2: int, col2: int) -> CellRange:
        return cls(min(row1, row2), min(col1, col2), max(row1, row2), max(col1, col2))

    @classmethod
    def single(cls, row: int, col: int) -> CellRange:
        return cls(row, col, row, col)

    @classmethod
    def from_key(cls, key: str) -> CellRange:
        """Accept either a range key ``r1,c1:r2,c2`` or a single cell key ``r,c``."""
        if ":" in key:
            start, end = key.split(":", 1)
            r1, c1 = parse_cell_key(start)
            r2, c2 = parse_cell_key(end)
            return cls.of(r1, c1, r2, c2)
        r, c = parse_cell_key(key)
        return cls.single(r, c)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CellRange:
        return cls.of(
            int(data["startRow"]), int(data["startCol"]), int(data["endRow"]), int(data["endCol"])
        )

    @classmethod
    def coerce(cls, value: CellRange | dict[str, Any] | str) -> CellRange:
        """Accept a CellRange, a record dict or a cell/range key."""
        if isinstance(value, CellRange):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        if isinstance(value, str):
            return cls.from_key(value)
        raise TypeError(f"cannot build a CellRange from {type(value).__name__}")

    def to_dict(self) -> dict[str, int]:
        return {
            "startRow": self.start_row,
            "startCol": self.start_col,
            "endRow": self.end_row,
            "endCol": self.end_col,
        }

    @property
    def key(self) -> str:
        if self.is_single_cell:
            return cell_key(self.start_row, self.start_col)
        return f"{cell_key(self.start_row, self.start_col)}:{cell_key(self.end_row, self.end_col)}"

    @property
    def address(self) -> str:
        return f"{cell_address(self.start_row, self.start_col)}:{cell_address(self.end_row, self.end_col)}"

    @property
    def is_single_cell(self) -> bool:
        return self.start_row == self.end_row and self.start_col == self.end_col

    def contains(self, row: int, col: int) -> bool:
        return self.start_row <= row <= self.end_row and self.start_col <= col <= self.end_col

    def overlaps(self, other: CellRange) -> bool:
        return not (
            self.end_row < other.start_row
            or self.start_row > other.end_row
            or self.end_col < other.start_col
            or self.start_col > other.end_col
        )

    def cells(self):
        for r in range(self.start_row, self.end_row + 1):
            for c in range(self.start_col, self.end_col + 1):
                yield r, c
