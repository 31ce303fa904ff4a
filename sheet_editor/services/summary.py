from __future__ import annotations

from dataclasses import dataclass

from ..models.document import Document
from .coercion import is_blank

"""SUMMARY line rendering for a document.

Format::

    SUMMARY sheets=<n> cells=<non-empty> rules=<cf>/<dv> comments=<n> charts=<n> modified=<0|1>
"""


@dataclass(frozen=True)
class DocumentStats:
    sheets: int
    non_empty_cells: int
    conditional_format_rules: int
    validation_rules: int
    comments: int
    charts: int
    modified: bool


def collect_stats(doc: Document) -> DocumentStats:
    cells = sum(
        1
        for grid in doc.sheet_data.values()
        for row in grid
        for value in row
        if not is_blank(value)
    )
    return DocumentStats(
        sheets=len(doc.sheets),
        non_empty_cells=cells,
        conditional_format_rules=sum(len(e) for e in doc.conditional_formats.values()),
        validation_rules=sum(len(e) for e in doc.data_validations.values()),
        comments=sum(len(c) for c in doc.comments.values()),
        charts=len(doc.charts),
        modified=doc.is_modified,
    )


def render_summary_line(doc: Document) -> str:
    """Render the SUMMARY line for ``doc``.

    Examples:
        >>> from sheet_editor.models.document import Document, blank_grid
        >>> doc = Document(sheets=["sheet1"], current_sheet="sheet1", sheet_data={"sheet1": blank_grid(2, 2)})
        >>> render_summary_line(doc)
        'SUMMARY sheets=1 cells=0 rules=0/0 comments=0 charts=0 modified=0'
    """
    s = collect_stats(doc)
    return (
        f"SUMMARY sheets={s.sheets} "
        f"cells={s.non_empty_cells} "
        f"rules={s.conditional_format_rules}/{s.validation_rules} "
        f"comments={s.comments} "
        f"charts={s.charts} "
        f"modified={1 if s.modified else 0}"
    )
