from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from ..logging.error_log import ErrorLogBuffer
from ..models.cell_range import CellRange, cell_key, parse_cell_key
from ..models.config_models import EditorConfig
from ..models.document import (
    CellChange,
    ChangeResult,
    Chart,
    Comment,
    Document,
    Grid,
    Rejection,
    UndoSnapshot,
    blank_grid,
    utc_now_iso,
)
from ..models.rules import Condition, ErrorPolicy, ValidationResult, ValidationSpec
from ..storage.record import document_from_record, document_to_record
from .conditional_format import ConditionalFormatEngine
from .data_validation import DataValidationEngine
from .message_channel import DocumentMessage, MessageChannel, ValidationMessage
from .plugin_registry import ChangeBatch, ExtensionRegistry, HookName

"""Document store: the only component that mutates the spreadsheet document.

Cell edits go through ``apply_changes``:

1. bounds / protected-cell checks
2. data validation (stop blocks, warning asks ``confirm``, info notifies)
3. ``data:beforeChange`` hook (plugins may drop changes)
4. undo snapshot of the sheet grid, then the mutation itself
5. ``data:afterChange`` hook and forwarding to the formula engine

Undo history covers grid contents only; every new snapshot clears redo.
"""

if TYPE_CHECKING:
    from .collaborators import FormulaEngine

logger = logging.getLogger(__name__)

LOAD_DATA_SOURCE = "loadData"

# (change, failed validation) -> proceed?
ConfirmCallback = Callable[[CellChange, ValidationResult], bool]

FORMAT_PROPERTIES: dict[str, tuple[str, Any]] = {
    # format 名 -> (style key, toggle 時の値)
    "bold": ("fontWeight", "bold"),
    "italic": ("fontStyle", "italic"),
    "underline": ("textDecoration", "underline"),
    "align": ("textAlign", None),
    "fontSize": ("fontSize", None),
    "color": ("color", None),
    "backgroundColor": ("backgroundColor", None),
}
_TOGGLE_FORMATS = {"bold", "italic", "underline"}


class DocumentStoreError(Exception):
    pass


class SheetNotFoundError(DocumentStoreError):
    pass


class DuplicateSheetNameError(DocumentStoreError):
    pass


def _copy_grid(grid: Grid) -> Grid:
    return [list(row) for row in grid]


class DocumentStore:
    def __init__(
        self,
        config: EditorConfig | None = None,
        *,
        registry: ExtensionRegistry | None = None,
        formula_engine: FormulaEngine | None = None,
        channel: MessageChannel | None = None,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config or EditorConfig()
        self.registry = registry
        self.channel = channel or (registry.channel if registry is not None else MessageChannel(error_buffer))
        self._formula_engine = formula_engine
        self._error_buffer = error_buffer
        self._undo: list[UndoSnapshot] = []
        self._redo: list[UndoSnapshot] = []
        self._document = self._blank_document()

    def _blank_document(self) -> Document:
        name = self.config.default_sheet_name
        return Document(
            sheets=[name],
            current_sheet=name,
            sheet_data={name: blank_grid(self.config.default_rows, self.config.default_cols)},
            filename=self.config.default_filename,
        )

    def _publish(self, event: str, sheet: str | None = None, **detail: Any) -> None:
        self.channel.publish(DocumentMessage(event, sheet, detail))

    # ------------------------------------------------------------------
    # document / collaborators
    # ------------------------------------------------------------------
    @property
    def document(self) -> Document:
        return self._document

    @property
    def formula_engine(self) -> FormulaEngine | None:
        return self._formula_engine

    def set_formula_engine(self, engine: FormulaEngine | None) -> None:
        self._formula_engine = engine

    @property
    def is_modified(self) -> bool:
        return self._document.is_modified

    def set_modified(self, modified: bool) -> None:
        self._document.is_modified = modified

    def reset_document(self) -> None:
        """Replace the document with a blank one; the formula engine handle is kept."""
        self._document = self._blank_document()
        self.clear_history()
        self._publish("reset", self._document.current_sheet)

    def load_document(self, record: dict[str, Any]) -> None:
        """Replace the document with a persisted record (modified flag cleared)."""
        self._document = document_from_record(
            record,
            error_buffer=self._error_buffer,
            default_filename=self.config.default_filename,
        )
        self.clear_history()
        self._publish("loaded", self._document.current_sheet, filename=self._document.filename)

    def to_record(self) -> dict[str, Any]:
        return document_to_record(self._document)

    def mark_saved(self, filename: str, saved_at: str | None = None) -> str:
        """Record a successful save: filename, last-saved time, modified flag cleared."""
        doc = self._document
        doc.filename = filename
        doc.last_saved = saved_at or utc_now_iso()
        doc.is_modified = False
        self._publish("saved", None, filename=filename)
        return doc.last_saved

    # ------------------------------------------------------------------
    # sheets
    # ------------------------------------------------------------------
    @property
    def sheets(self) -> list[str]:
        return list(self._document.sheets)

    @property
    def current_sheet(self) -> str:
        return self._document.current_sheet

    def _require_sheet(self, name: str | None) -> str:
        sheet = name or self._document.current_sheet
        if sheet not in self._document.sheet_data:
            raise SheetNotFoundError(f"sheet not found: {sheet}")
        return sheet

    def set_current_sheet(self, name: str) -> None:
        self._document.current_sheet = self._require_sheet(name)

    def _next_sheet_name(self) -> str:
        n = len(self._document.sheets) + 1
        while f"sheet{n}" in self._document.sheet_data:
            n += 1
        return f"sheet{n}"

    def create_sheet(self, name: str | None = None) -> str:
        doc = self._document
        name = name or self._next_sheet_name()
        if name in doc.sheet_data:
            raise DuplicateSheetNameError(f"sheet already exists: {name}")
        doc.sheets.append(name)
        doc.sheet_data[name] = blank_grid(self.config.default_rows, self.config.default_cols)
        doc.is_modified = True
        if self._formula_engine is not None:
            self._formula_engine.add_sheet(name)
        self._publish("sheet-created", name)
        logger.debug(f"sheet created: {name}")
        return name

    def rename_sheet(self, old_name: str, new_name: str) -> None:
        doc = self._document
        if old_name not in doc.sheet_data:
            raise SheetNotFoundError(f"sheet not found: {old_name}")
        if new_name == old_name:
            return
        if not new_name:
            raise ValueError("sheet name must not be empty")
        if new_name in doc.sheet_data:
            raise DuplicateSheetNameError(f"sheet already exists: {new_name}")

        doc.sheets[doc.sheets.index(old_name)] = new_name
        for mapping in doc.per_sheet_maps():
            if old_name in mapping:
                mapping[new_name] = mapping.pop(old_name)
        for chart in doc.charts:
            if chart.sheet_id == old_name:
                chart.sheet_id = new_name
        for stack in (self._undo, self._redo):
            stack[:] = [
                UndoSnapshot(new_name, s.grid, s.description) if s.sheet_id == old_name else s
                for s in stack
            ]
        if doc.current_sheet == old_name:
            doc.current_sheet = new_name
        doc.is_modified = True
        if self._formula_engine is not None:
            self._formula_engine.rename_sheet(old_name, new_name)
        self._publish("sheet-renamed", new_name, old_name=old_name)

    def delete_sheet(self, name: str) -> bool:
        """Delete a sheet and everything keyed by it. False when it is the last sheet."""
        doc = self._document
        if name not in doc.sheet_data:
            raise SheetNotFoundError(f"sheet not found: {name}")
        if len(doc.sheets) <= 1:
            logger.warning(f"cannot delete the last sheet: {name}")
            return False

        doc.sheets.remove(name)
        for mapping in doc.per_sheet_maps():
            mapping.pop(name, None)
        doc.charts = [c for c in doc.charts if c.sheet_id != name]
        self._undo = [s for s in self._undo if s.sheet_id != name]
        self._redo = [s for s in self._redo if s.sheet_id != name]
        if doc.current_sheet == name:
            doc.current_sheet = doc.sheets[0]
        doc.is_modified = True
        if self._formula_engine is not None:
            self._formula_engine.remove_sheet(name)
        self._publish("sheet-deleted", name)
        return True

    # ------------------------------------------------------------------
    # grid
    # ------------------------------------------------------------------
    def get_grid(self, sheet: str | None = None) -> Grid:
        """Copy of a sheet grid (callers never mutate the stored one)."""
        return _copy_grid(self._document.sheet_data[self._require_sheet(sheet)])

    def get_cell(self, row: int, col: int, sheet: str | None = None) -> Any:
        grid = self._document.sheet_data[self._require_sheet(sheet)]
        if 0 <= row < len(grid) and 0 <= col < len(grid[row]):
            return grid[row][col]
        return None

    def dimensions(self, sheet: str | None = None) -> tuple[int, int]:
        grid = self._document.sheet_data[self._require_sheet(sheet)]
        return len(grid), (len(grid[0]) if grid else 0)

    def update_sheet_data(
        self,
        sheet: str,
        grid: Grid,
        *,
        description: str = "update sheet data",
        record_undo: bool = True,
    ) -> None:
        """Replace a whole sheet grid. Raises ValueError for ragged grids."""
        sheet = self._require_sheet(sheet)
        widths = {len(row) for row in grid}
        if len(widths) > 1:
            raise ValueError(f"grid rows must all have the same length, got {sorted(widths)}")
        old = self._document.sheet_data[sheet]
        if record_undo:
            self.push_undo(UndoSnapshot(sheet, _copy_grid(old), description))
        self._document.sheet_data[sheet] = _copy_grid(grid)
        self._document.is_modified = True
        self._forward_diff(sheet, old, self._document.sheet_data[sheet])

    def set_cell_value(
        self,
        row: int,
        col: int,
        value: Any,
        *,
        sheet: str | None = None,
        source: str = "edit",
        confirm: ConfirmCallback | None = None,
    ) -> ChangeResult:
        return self.apply_changes(
            [CellChange(row, col, None, value)], sheet=sheet, source=source, confirm=confirm
        )

    def apply_changes(
        self,
        changes: Iterable[CellChange],
        *,
        sheet: str | None = None,
        source: str = "edit",
        confirm: ConfirmCallback | None = None,
    ) -> ChangeResult:
        """Validate and commit a batch of cell edits as one undo step.

        ``old_value`` of each change is re-read from the grid. A ``warning``
        failure without a ``confirm`` callback counts as declined.
        """
        sheet = self._require_sheet(sheet)
        grid = self._document.sheet_data[sheet]
        result = ChangeResult()
        pending: list[CellChange] = []
        check_rules = source != LOAD_DATA_SOURCE

        for raw in changes:
            if not (0 <= raw.row < len(grid) and 0 <= raw.col < len(grid[raw.row])):
                result.rejected.append(Rejection(raw, "out_of_bounds", "cell is outside the sheet"))
                continue
            change = CellChange(raw.row, raw.col, grid[raw.row][raw.col], raw.new_value)
            if check_rules and self.is_cell_protected(sheet, change.row, change.col):
                result.rejected.append(Rejection(change, "protected", "cell is protected"))
                continue
            if check_rules and not self._passes_validation(sheet, change, result, confirm):
                continue
            pending.append(change)

        if pending and self.registry is not None:
            pending = self._filter_by_plugins(self.registry, sheet, pending, source, result)
        if not pending:
            return result

        self.push_undo(UndoSnapshot(sheet, _copy_grid(grid), f"{source}: {len(pending)} cell(s)"))
        for change in pending:
            grid[change.row][change.col] = change.new_value
        self._document.is_modified = True
        result.applied.extend(pending)

        if self.registry is not None:
            self.registry.run_hook(HookName.DATA_AFTER_CHANGE, ChangeBatch(sheet, tuple(pending), source))
        if self._formula_engine is not None:
            for change in pending:
                self._formula_engine.set_cell_contents(sheet, change.row, change.col, change.new_value)
        return result

    def _passes_validation(
        self,
        sheet: str,
        change: CellChange,
        result: ChangeResult,
        confirm: ConfirmCallback | None,
    ) -> bool:
        engine = self._document.data_validations.get(sheet)
        if engine is None:
            return True
        outcome = engine.validate(change.row, change.col, change.new_value)
        if outcome.valid:
            return True

        if outcome.policy is ErrorPolicy.INFO:
            proceed, reason = True, None
            result.notices.append(outcome.message)
        elif outcome.policy is ErrorPolicy.WARNING:
            proceed = bool(confirm(change, outcome)) if confirm is not None else False
            reason = None if proceed else "declined"
        else:
            proceed, reason = False, "validation"

        if reason is not None:
            result.rejected.append(Rejection(change, reason, outcome.message))
        self.channel.publish(
            ValidationMessage(
                sheet=sheet,
                row=change.row,
                col=change.col,
                value=change.new_value,
                message=outcome.message,
                policy=outcome.policy.value,
                blocked=not proceed,
            )
        )
        return proceed

    def _filter_by_plugins(
        self,
        registry: ExtensionRegistry,
        sheet: str,
        pending: list[CellChange],
        source: str,
        result: ChangeResult,
    ) -> list[CellChange]:
        answers = registry.run_hook(
            HookName.DATA_BEFORE_CHANGE, ChangeBatch(sheet, tuple(pending), source)
        )
        if not answers:
            return pending
        kept = list(pending)
        for answer in answers:
            kept = [c for c in kept if c in answer]
        for change in pending:
            if change not in kept:
                result.rejected.append(Rejection(change, "plugin", "rejected by plugin"))
        return kept

    def _forward_diff(self, sheet: str, old: Grid, new: Grid) -> None:
        if self._formula_engine is None:
            return
        for r, row in enumerate(new):
            for c, value in enumerate(row):
                before = old[r][c] if r < len(old) and c < len(old[r]) else None
                if before != value:
                    self._formula_engine.set_cell_contents(sheet, r, c, value)

    # ------------------------------------------------------------------
    # undo / redo
    # ------------------------------------------------------------------
    def push_undo(self, snapshot: UndoSnapshot) -> None:
        self._undo.append(snapshot)
        limit = self.config.history_limit
        if limit is not None and len(self._undo) > limit:
            del self._undo[: len(self._undo) - limit]
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def _restore(self, source: list[UndoSnapshot], target: list[UndoSnapshot]) -> bool:
        while source:
            snapshot = source.pop()
            sheet = snapshot.sheet_id
            if sheet not in self._document.sheet_data:
                logger.warning(f"history entry for missing sheet dropped: {sheet}")
                continue
            current = self._document.sheet_data[sheet]
            target.append(UndoSnapshot(sheet, _copy_grid(current), snapshot.description))
            self._document.sheet_data[sheet] = _copy_grid(snapshot.grid)
            self._document.current_sheet = sheet
            self._document.is_modified = True
            self._forward_diff(sheet, current, self._document.sheet_data[sheet])
            return True
        return False

    def undo(self) -> bool:
        return self._restore(self._undo, self._redo)

    def redo(self) -> bool:
        return self._restore(self._redo, self._undo)

    def clear_history(self) -> None:
        self._undo.clear()
        self._redo.clear()

    # ------------------------------------------------------------------
    # styles / formatting
    # ------------------------------------------------------------------
    def set_cell_style(self, sheet: str, row: int, col: int, style: dict[str, Any] | None) -> None:
        """Merge ``style`` into the cell's overrides; None removes all overrides."""
        sheet = self._require_sheet(sheet)
        styles = self._document.cell_styles.setdefault(sheet, {})
        key = cell_key(row, col)
        if style is None:
            styles.pop(key, None)
        else:
            merged = {**styles.get(key, {}), **style}
            merged = {k: v for k, v in merged.items() if v is not None}
            if merged:
                styles[key] = merged
            else:
                styles.pop(key, None)
        self._document.is_modified = True

    def get_cell_style(self, row: int, col: int, sheet: str | None = None) -> dict[str, Any]:
        sheet = self._require_sheet(sheet)
        return dict(self._document.cell_styles.get(sheet, {}).get(cell_key(row, col), {}))

    def apply_format(self, sheet: str, rng: CellRange, fmt: str, value: Any = None) -> None:
        """Apply a toolbar format to a range.

        bold / italic / underline toggle, based on the range's first cell; the
        other formats set ``value`` (None clears it).
        """
        if fmt not in FORMAT_PROPERTIES:
            raise ValueError(f"unknown format: {fmt}")
        sheet = self._require_sheet(sheet)
        prop, on_value = FORMAT_PROPERTIES[fmt]
        if fmt in _TOGGLE_FORMATS:
            first = self.get_cell_style(rng.start_row, rng.start_col, sheet)
            new_value = None if first.get(prop) == on_value else on_value
        else:
            new_value = value
        for r, c in rng.cells():
            self.set_cell_style(sheet, r, c, {prop: new_value})

    # ------------------------------------------------------------------
    # conditional formats
    # ------------------------------------------------------------------
    def conditional_formats(self, sheet: str | None = None) -> ConditionalFormatEngine:
        sheet = self._require_sheet(sheet)
        engine = self._document.conditional_formats.get(sheet)
        if engine is None:
            engine = ConditionalFormatEngine(error_buffer=self._error_buffer)
            self._document.conditional_formats[sheet] = engine
        return engine

    def add_conditional_format_rule(
        self,
        sheet: str,
        rng: CellRange,
        condition: Condition,
        style: dict[str, Any],
    ) -> str:
        rule_id = self.conditional_formats(sheet).add_rule(rng, condition, style)
        self._document.is_modified = True
        return rule_id

    def remove_conditional_format_rule(self, sheet: str, rule_id: str) -> bool:
        removed = self.conditional_formats(sheet).remove_rule(rule_id)
        if removed:
            self._document.is_modified = True
        return removed

    # ------------------------------------------------------------------
    # data validation
    # ------------------------------------------------------------------
    def data_validation(self, sheet: str | None = None) -> DataValidationEngine:
        sheet = self._require_sheet(sheet)
        engine = self._document.data_validations.get(sheet)
        if engine is None:
            engine = DataValidationEngine(error_buffer=self._error_buffer)
            self._document.data_validations[sheet] = engine
        return engine

    def set_data_validation_rule(
        self,
        sheet: str,
        target: CellRange | str,
        spec: ValidationSpec,
    ) -> str:
        rule_id = self.data_validation(sheet).add_rule(target, spec)
        self._document.is_modified = True
        return rule_id

    def remove_data_validation_rule(self, sheet: str, rule_id: str) -> bool:
        removed = self.data_validation(sheet).remove_rule(rule_id)
        if removed:
            self._document.is_modified = True
        return removed

    # ------------------------------------------------------------------
    # protected cells
    # ------------------------------------------------------------------
    def set_protected_cells(self, sheet: str, keys: Iterable[str], protected: bool = True) -> None:
        sheet = self._require_sheet(sheet)
        cells = self._document.protected_cells.setdefault(sheet, {})
        for key in keys:
            parse_cell_key(key)
            if protected:
                cells[key] = True
            else:
                cells.pop(key, None)
        self._document.is_modified = True

    def is_cell_protected(self, sheet: str, row: int, col: int) -> bool:
        return bool(self._document.protected_cells.get(sheet, {}).get(cell_key(row, col)))

    # ------------------------------------------------------------------
    # comments
    # ------------------------------------------------------------------
    def set_comment(self, sheet: str, row: int, col: int, text: str) -> Comment | None:
        """Create or update a comment. Blank text is ignored (returns None)."""
        sheet = self._require_sheet(sheet)
        if not text or not text.strip():
            return None
        comments = self._document.comments.setdefault(sheet, {})
        key = cell_key(row, col)
        now = utc_now_iso()
        existing = comments.get(key)
        if existing is None:
            comment = Comment(text=text, created_at=now, updated_at=now)
        else:
            comment = Comment(text=text, created_at=existing.created_at, updated_at=now)
        comments[key] = comment
        self._document.is_modified = True
        return comment

    def get_comment(self, sheet: str, row: int, col: int) -> Comment | None:
        return self._document.comments.get(sheet, {}).get(cell_key(row, col))

    def remove_comment(self, sheet: str, row: int, col: int) -> bool:
        comments = self._document.comments.get(sheet, {})
        if comments.pop(cell_key(row, col), None) is None:
            return False
        self._document.is_modified = True
        return True

    # ------------------------------------------------------------------
    # charts
    # ------------------------------------------------------------------
    def add_chart(self, config: dict[str, Any]) -> str:
        data = dict(config)
        data.setdefault("id", f"chart-{uuid.uuid4().hex[:12]}")
        data.setdefault("sheetId", self._document.current_sheet)
        self._require_sheet(data["sheetId"])
        rng = data.get("dataRange")
        if isinstance(rng, CellRange):
            data["dataRange"] = rng.to_dict()
        chart = Chart.from_dict(data)
        self._document.charts.append(chart)
        self._document.is_modified = True
        return chart.id

    def get_chart(self, chart_id: str) -> Chart | None:
        for chart in self._document.charts:
            if chart.id == chart_id:
                return chart
        return None

    def update_chart(self, chart_id: str, changes: dict[str, Any]) -> bool:
        chart = self.get_chart(chart_id)
        if chart is None:
            return False
        merged = {**chart.to_dict(), **changes, "id": chart.id, "createdAt": chart.created_at}
        merged["updatedAt"] = utc_now_iso()
        if isinstance(merged.get("dataRange"), CellRange):
            merged["dataRange"] = merged["dataRange"].to_dict()
        idx = self._document.charts.index(chart)
        self._document.charts[idx] = Chart.from_dict(merged)
        self._document.is_modified = True
        return True

    def remove_chart(self, chart_id: str) -> bool:
        before = len(self._document.charts)
        self._document.charts = [c for c in self._document.charts if c.id != chart_id]
        if len(self._document.charts) == before:
            return False
        self._document.is_modified = True
        return True

    def charts_for_sheet(self, sheet: str | None = None) -> list[Chart]:
        sheet = sheet or self._document.current_sheet
        return [c for c in self._document.charts if c.sheet_id == sheet]
