from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

"""Document-level models owned by the Document Store.

A ``Document`` is the whole spreadsheet file. Every per-sheet map is keyed by
sheet name, so renaming a sheet has to move an entry in each of them.
"""

if TYPE_CHECKING:  # 循環 import 回避 (engine は services 側)
    from ..services.conditional_format import ConditionalFormatEngine
    from ..services.data_validation import DataValidationEngine

__all__ = [
    "Grid",
    "Comment",
    "Chart",
    "Document",
    "UndoSnapshot",
    "CellChange",
    "Rejection",
    "ChangeResult",
    "blank_grid",
    "utc_now_iso",
]

Grid = list[list[Any]]


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def blank_grid(rows: int, cols: int) -> Grid:
    return [["" for _ in range(cols)] for _ in range(rows)]


@dataclass
class Comment:
    text: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, str]:
        return {"text": self.text, "createdAt": self.created_at, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Comment:
        now = utc_now_iso()
        return cls(
            text=str(data.get("text", "")),
            created_at=data.get("createdAt") or now,
            updated_at=data.get("updatedAt") or now,
        )


@dataclass
class Chart:
    id: str
    type: str
    data_range: dict[str, int] | None
    sheet_id: str
    title: str = "New Chart"
    options: dict[str, Any] = field(default_factory=dict)
    position: dict[str, int] = field(default_factory=lambda: {"x": 0, "y": 0})
    size: dict[str, int] = field(default_factory=lambda: {"width": 400, "height": 300})
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "dataRange": self.data_range,
            "sheetId": self.sheet_id,
            "options": dict(self.options),
            "position": dict(self.position),
            "size": dict(self.size),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chart:
        now = utc_now_iso()
        return cls(
            id=str(data["id"]),
            type=data.get("type") or "bar",
            data_range=data.get("dataRange"),
            sheet_id=str(data.get("sheetId", "")),
            title=data.get("title") or "New Chart",
            options=dict(data.get("options") or {}),
            position=dict(data.get("position") or {"x": 0, "y": 0}),
            size=dict(data.get("size") or {"width": 400, "height": 300}),
            created_at=data.get("createdAt") or now,
            updated_at=data.get("updatedAt") or now,
        )


@dataclass
class Document:
    sheets: list[str]
    current_sheet: str
    sheet_data: dict[str, Grid]
    cell_styles: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    conditional_formats: dict[str, ConditionalFormatEngine] = field(default_factory=dict)
    charts: list[Chart] = field(default_factory=list)
    comments: dict[str, dict[str, Comment]] = field(default_factory=dict)
    protected_cells: dict[str, dict[str, bool]] = field(default_factory=dict)
    data_validations: dict[str, DataValidationEngine] = field(default_factory=dict)
    is_modified: bool = False
    filename: str = "新しいスプレッドシート"
    last_saved: str | None = None

    def per_sheet_maps(self) -> list[dict[str, Any]]:
        """All maps keyed by sheet name (charts carry the name inside each entry)."""
        return [
            self.sheet_data,
            self.cell_styles,
            self.conditional_formats,
            self.comments,
            self.protected_cells,
            self.data_validations,
        ]


@dataclass(frozen=True)
class UndoSnapshot:
    """Full copy of one sheet grid taken just before a mutation commits."""
    sheet_id: str
    grid: Grid
    description: str = ""


@dataclass(frozen=True)
class CellChange:
    row: int
    col: int
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class Rejection:
    change: CellChange
    reason: str  # validation | declined | protected | plugin | out_of_bounds
    message: str = ""


@dataclass
class ChangeResult:
    applied: list[CellChange] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return bool(self.applied)
