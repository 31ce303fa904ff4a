from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from ..logging.error_log import ErrorLogBuffer
from ..models.cell_range import column_letter
from ..models.config_models import EditorConfig
from ..models.document import CellChange, ChangeResult, utc_now_iso
from ..plugins import register_core_plugins
from ..storage.backend import DocumentStorage, open_storage
from .collaborators import FormulaEngine, GridView, StoreGridView
from .document_store import ConfirmCallback, DocumentStore
from .message_channel import CommandMessage, MessageChannel, StatusMessage
from .plugin_registry import CellContext, CommandRequest, ExtensionRegistry, HookName, MenuConfig
from .summary import render_summary_line

"""Editor session: the store, the registry and the built-in plugins wired together.

This is the surface the grid widget and the host UI talk to. It turns grid
events into store operations and hook results into what the grid needs on
its next paint (styles, cell properties, hidden rows).
"""

logger = logging.getLogger(__name__)


class SpreadsheetEditor:
    def __init__(
        self,
        config: EditorConfig | None = None,
        *,
        grid: GridView | None = None,
        formula_engine: FormulaEngine | None = None,
        storage: DocumentStorage | None = None,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config or EditorConfig()
        self.error_buffer = error_buffer
        self.channel = MessageChannel(error_buffer)
        self.registry = ExtensionRegistry(channel=self.channel, error_buffer=error_buffer)
        self.store = DocumentStore(
            self.config,
            registry=self.registry,
            formula_engine=formula_engine,
            channel=self.channel,
            error_buffer=error_buffer,
        )
        self._storage = storage
        self.plugins = register_core_plugins(self.registry, self.store, self.config.enabled_plugins)
        self.registry.set_grid(grid or StoreGridView(self.store))

    # --- collaborators ---
    @property
    def grid(self) -> GridView | None:
        return self.registry.grid

    def set_grid(self, grid: GridView | None) -> None:
        self.registry.set_grid(grid)

    @property
    def storage(self) -> DocumentStorage:
        if self._storage is None:
            self._storage = open_storage(self.config.storage)
        return self._storage

    def _refresh(self) -> None:
        filtering = self.plugins.get("filtering")
        if filtering is not None and self.registry.is_enabled("filtering"):
            filtering.recompute()
        elif self.grid is not None:
            self.grid.render()

    # --- grid events ---
    def handle_cell_edit(
        self,
        row: int,
        col: int,
        old_value: Any,
        new_value: Any,
        *,
        source: str = "edit",
        confirm: ConfirmCallback | None = None,
    ) -> ChangeResult:
        return self.handle_changes([(row, col, old_value, new_value)], source=source, confirm=confirm)

    def handle_changes(
        self,
        changes: Iterable[tuple[int, int, Any, Any]],
        *,
        source: str = "edit",
        confirm: ConfirmCallback | None = None,
    ) -> ChangeResult:
        """Apply ``(row, col, old, new)`` edits from the grid to the current sheet."""
        batch = [CellChange(r, c, old, new) for r, c, old, new in changes]
        result = self.store.apply_changes(batch, source=source, confirm=confirm)
        for notice in result.notices:
            self.channel.publish(StatusMessage(notice))
        if result.rejected and not result.applied and self.grid is not None:
            self.grid.render()  # 拒否された値を画面から戻す
        return result

    def undo(self) -> bool:
        done = self.store.undo()
        if done:
            self._refresh()
        return done

    def redo(self) -> bool:
        done = self.store.redo()
        if done:
            self._refresh()
        return done

    def select_sheet(self, name: str) -> None:
        self.store.set_current_sheet(name)
        self._refresh()

    # --- per-cell overrides for the grid ---
    def column_header(self, col: int) -> str:
        return column_letter(col)

    def cell_style(self, row: int, col: int, sheet: str | None = None) -> dict[str, Any]:
        """Merged style from every ``cell:render`` handler (later plugins win)."""
        sheet = sheet or self.store.current_sheet
        ctx = CellContext(sheet, row, col, self.store.get_cell(row, col, sheet))
        merged: dict[str, Any] = {}
        for style in self.registry.run_hook(HookName.CELL_RENDER, ctx) or []:
            merged.update(style)
        return merged

    def cell_properties(self, row: int, col: int, sheet: str | None = None) -> dict[str, Any]:
        sheet = sheet or self.store.current_sheet
        ctx = CellContext(sheet, row, col, self.store.get_cell(row, col, sheet))
        merged: dict[str, Any] = {}
        if self.store.is_cell_protected(sheet, row, col):
            merged["readOnly"] = True
        for props in self.registry.run_hook(HookName.CELL_PROPERTIES, ctx) or []:
            merged.update(props)
        return merged

    def hidden_rows(self) -> list[int]:
        filtering = self.plugins.get("filtering")
        if filtering is None or not self.registry.is_enabled("filtering"):
            return []
        return filtering.hidden_rows()

    # --- menus / commands ---
    def _extend(self, hook: HookName, config: MenuConfig) -> MenuConfig:
        results = self.registry.run_hook(hook, config)
        return results[-1] if results else config

    def menu(self, items: list[dict[str, Any]] | None = None) -> MenuConfig:
        return self._extend(HookName.MENU_EXTEND, MenuConfig(list(items or [])))

    def toolbar(self, items: list[dict[str, Any]] | None = None) -> MenuConfig:
        return self._extend(HookName.TOOLBAR_EXTEND, MenuConfig(list(items or [])))

    def context_menu(self, row: int, col: int, items: list[dict[str, Any]] | None = None) -> MenuConfig:
        return self._extend(HookName.CONTEXTMENU_EXTEND, MenuConfig(list(items or []), row=row, col=col))

    def execute_command(self, command: str, args: dict[str, Any] | None = None) -> Any:
        """Dispatch a menu/toolbar command; returns the first plugin result (or None)."""
        args = dict(args or {})
        self.channel.publish(CommandMessage(command, args))
        results = self.registry.run_hook(HookName.COMMAND_EXECUTE, CommandRequest(command, args))
        if not results:
            logger.debug(f"no plugin handled command {command}")
            return None
        return results[0]

    # --- documents ---
    def new_document(self) -> None:
        self.store.reset_document()
        self._refresh()

    def save_document(self, name: str | None = None) -> str:
        name = name or self.store.document.filename
        record = self.store.to_record()
        record["filename"] = name
        record["lastSaved"] = utc_now_iso()
        self.storage.save(name, record)
        self.store.mark_saved(name, record["lastSaved"])
        self.channel.publish(StatusMessage(f"saved {name}"))
        return name

    def open_document(self, name: str) -> None:
        record = self.storage.load(name)
        record["filename"] = name
        self.store.load_document(record)
        self._refresh()
        self.channel.publish(StatusMessage(f"opened {name}"))

    def list_documents(self) -> list[str]:
        return self.storage.list_documents()

    def delete_document(self, name: str) -> bool:
        return self.storage.delete(name)

    def summary_line(self) -> str:
        return render_summary_line(self.store.document)
