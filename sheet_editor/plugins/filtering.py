from __future__ import annotations

import logging
from typing import Any

from ..models.cell_range import column_letter
from ..services.collaborators import GridView
from ..services.document_store import DocumentStore
from ..services.filter_engine import FilterEngine
from ..services.message_channel import StatusMessage
from ..services.plugin_registry import (
    ChangeBatch,
    CommandRequest,
    HookName,
    MenuConfig,
    PluginContext,
    PluginDefinition,
)
from .formatting import find_or_add_menu

"""Filtering plugin: one FilterEngine per sheet, hidden rows pushed to the grid.

Filters are view state and are not saved with the document.
"""

logger = logging.getLogger(__name__)

PLUGIN_ID = "filtering"
SET_COMMAND = "filter:set"
CLEAR_COMMAND = "filter:clear"
CLEAR_ALL_COMMAND = "filter:clear-all"
VALUES_COMMAND = "filter:column-values"


class FilteringPlugin:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.context: PluginContext | None = None
        self._engines: dict[str, FilterEngine] = {}

    def initialize(self, context: PluginContext) -> None:
        self.context = context

    def cleanup(self) -> None:
        for engine in self._engines.values():
            engine.clear_all_filters()
        self._push_hidden([])
        self._engines.clear()
        self.context = None

    def engine(self, sheet: str | None = None) -> FilterEngine:
        sheet = sheet or self.store.current_sheet
        engine = self._engines.get(sheet)
        if engine is None:
            engine = self._engines[sheet] = FilterEngine()
        return engine

    def hidden_rows(self, sheet: str | None = None) -> list[int]:
        return self.engine(sheet).hidden_rows

    def _push_hidden(self, rows: list[int]) -> None:
        if self.context is not None and self.context.grid is not None:
            self.context.grid.set_hidden_rows(rows)
            self.context.grid.render()

    def recompute(self, sheet: str | None = None) -> list[int]:
        sheet = sheet or self.store.current_sheet
        if sheet not in self.store.document.sheet_data:
            self._engines.pop(sheet, None)
            return []
        hidden = self.engine(sheet).recompute(self.store.document.sheet_data[sheet])
        if sheet == self.store.current_sheet:
            self._push_hidden(hidden)
        return hidden

    def _status(self, text: str) -> None:
        if self.context is not None:
            self.context.channel.publish(StatusMessage(text))

    def extend_menu(self, config: MenuConfig) -> MenuConfig:
        submenu = find_or_add_menu(config, "data", "Data")
        submenu.append({"id": "clear-all-filters", "label": "Clear all filters", "command": CLEAR_ALL_COMMAND})
        return config

    def extend_context_menu(self, config: MenuConfig) -> MenuConfig:
        if config.col is None:
            return config
        config.items.append(
            {"id": "filter", "label": "Filter...", "command": SET_COMMAND, "args": {"column": config.col}}
        )
        if self.engine().has_filter(config.col):
            config.items.append(
                {"id": "clear-filter", "label": "Clear filter", "command": CLEAR_COMMAND, "args": {"column": config.col}}
            )
        return config

    def after_change(self, batch: ChangeBatch) -> None:
        engine = self._engines.get(batch.sheet)
        if engine is not None and engine.filters:
            self.recompute(batch.sheet)

    def on_grid_change(self, grid: GridView | None) -> None:
        if grid is not None:
            self.recompute()

    def execute(self, request: CommandRequest) -> Any:
        args = request.args
        sheet = args.get("sheet") or self.store.current_sheet
        if request.command == SET_COMMAND:
            column = int(args["column"])
            self.engine(sheet).set_filter(column, args["type"], args.get("value"))
            hidden = self.recompute(sheet)
            self._status(f"filter applied to column {column_letter(column)}")
            return hidden
        if request.command == CLEAR_COMMAND:
            column = int(args["column"])
            self.engine(sheet).clear_filter(column)
            hidden = self.recompute(sheet)
            self._status(f"filter cleared from column {column_letter(column)}")
            return hidden
        if request.command == CLEAR_ALL_COMMAND:
            self.engine(sheet).clear_all_filters()
            return self.recompute(sheet)
        if request.command == VALUES_COMMAND:
            return FilterEngine.column_values(self.store.document.sheet_data[sheet], int(args["column"]))
        return None

    def definition(self) -> PluginDefinition:
        return PluginDefinition(
            name="Filtering",
            initialize=self.initialize,
            cleanup=self.cleanup,
            on_grid_change=self.on_grid_change,
            hooks={
                HookName.MENU_EXTEND: self.extend_menu,
                HookName.CONTEXTMENU_EXTEND: self.extend_context_menu,
                HookName.DATA_AFTER_CHANGE: self.after_change,
                HookName.COMMAND_EXECUTE: self.execute,
            },
        )
