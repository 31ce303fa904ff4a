from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from ..models.document import Grid

"""Tabular import / export of sheet grids (CSV, XLSX) through pandas.

Grids read here are always rectangular: short rows are padded with '' and
blank cells (NaN) become ''. Numeric cells keep their numeric type; whole
floats from XLSX stay floats (pandas' choice), everything else is left as is.
"""

CSV_SUFFIXES = {".csv", ".tsv", ".txt"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


class GridIOError(Exception):
    pass


def _to_python(value: Any) -> Any:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        return value
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if hasattr(value, "item"):  # numpy scalar -> python scalar
        return value.item()
    return value


def frame_to_grid(df: pd.DataFrame, *, min_rows: int = 0, min_cols: int = 0) -> Grid:
    """Convert a header-less DataFrame into a rectangular grid of python scalars."""
    rows = [[_to_python(v) for v in row] for row in df.itertuples(index=False, name=None)]
    width = max([len(r) for r in rows] + [min_cols])
    grid = [r + [""] * (width - len(r)) for r in rows]
    while len(grid) < min_rows:
        grid.append([""] * width)
    return grid


def grid_to_frame(grid: Grid, *, trim: bool = True) -> pd.DataFrame:
    """DataFrame for export; ``trim`` drops trailing blank rows and columns."""
    rows = [list(r) for r in grid]
    if trim:
        def _blank(v: Any) -> bool:
            return v is None or v == ""

        while rows and all(_blank(v) for v in rows[-1]):
            rows.pop()
        width = 0
        for r in rows:
            for i in range(len(r) - 1, -1, -1):
                if not _blank(r[i]):
                    width = max(width, i + 1)
                    break
        rows = [r[:width] for r in rows]
    return pd.DataFrame(rows)


def read_csv_grid(
    path: Path,
    *,
    delimiter: str = ",",
    encoding: str = "utf-8",
    min_rows: int = 0,
    min_cols: int = 0,
) -> Grid:
    try:
        df = pd.read_csv(
            path,
            header=None,
            sep=delimiter,
            encoding=encoding,
            dtype=object,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except pd.errors.EmptyDataError:
        return frame_to_grid(pd.DataFrame(), min_rows=min_rows, min_cols=min_cols)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        raise GridIOError(f"failed to read {path}: {e}") from e
    return frame_to_grid(df, min_rows=min_rows, min_cols=min_cols)


def read_workbook(path: Path, *, min_rows: int = 0, min_cols: int = 0) -> dict[str, Grid]:
    """Every sheet of an XLSX file (or the single sheet of a CSV, named after the file)."""
    suffix = path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        delimiter = "\t" if suffix == ".tsv" else ","
        return {path.stem: read_csv_grid(path, delimiter=delimiter, min_rows=min_rows, min_cols=min_cols)}
    if suffix not in EXCEL_SUFFIXES:
        raise GridIOError(f"unsupported file type: {path.suffix}")
    try:
        xls = pd.ExcelFile(path)
        sheets: dict[str, Grid] = {}
        for name in xls.sheet_names:
            df = xls.parse(name, header=None)
            sheets[str(name)] = frame_to_grid(df, min_rows=min_rows, min_cols=min_cols)
    except (OSError, ValueError) as e:
        raise GridIOError(f"failed to read {path}: {e}") from e
    return sheets


def write_csv_grid(grid: Grid, path: Path, *, delimiter: str = ",", encoding: str = "utf-8") -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        grid_to_frame(grid).to_csv(path, header=False, index=False, sep=delimiter, encoding=encoding)
    except OSError as e:
        raise GridIOError(f"failed to write {path}: {e}") from e
    return path


def write_workbook(sheets: dict[str, Grid], path: Path) -> Path:
    """Write all sheets into one XLSX file (openpyxl engine)."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for name, grid in sheets.items():
                # Excel のシート名は 31 文字まで
                grid_to_frame(grid).to_excel(writer, sheet_name=name[:31], header=False, index=False)
    except (OSError, ValueError) as e:
        raise GridIOError(f"failed to write {path}: {e}") from e
    return path
