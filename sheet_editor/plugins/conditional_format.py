from __future__ import annotations

import logging
from typing import Any

from ..models.cell_range import CellRange
from ..models.rules import Condition
from ..services.document_store import DocumentStore
from ..services.plugin_registry import (
    CellContext,
    CommandRequest,
    HookName,
    MenuConfig,
    PluginContext,
    PluginDefinition,
)
from .formatting import find_or_add_menu

"""Conditional format plugin.

Rules live in the document store (one engine per sheet); this plugin exposes
them to the grid through ``cell:render`` and manages them through commands.
"""

logger = logging.getLogger(__name__)

PLUGIN_ID = "conditional-format"
ADD_COMMAND = "conditional-format:add"
REMOVE_COMMAND = "conditional-format:remove"
CLEAR_COMMAND = "conditional-format:clear"
LIST_COMMAND = "conditional-format:list"


class ConditionalFormatPlugin:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.context: PluginContext | None = None

    def initialize(self, context: PluginContext) -> None:
        self.context = context

    def cleanup(self) -> None:
        self.context = None

    def _render(self) -> None:
        if self.context is not None and self.context.grid is not None:
            self.context.grid.render()

    def extend_menu(self, config: MenuConfig) -> MenuConfig:
        submenu = find_or_add_menu(config, "format", "Format")
        if not any(item.get("id") == "conditional-format" for item in submenu):
            submenu.append({"type": "separator"})
            submenu.append({"id": "conditional-format", "label": "Conditional formatting", "command": ADD_COMMAND})
            submenu.append(
                {"id": "manage-conditional-formats", "label": "Manage conditional formats", "command": LIST_COMMAND}
            )
        return config

    def extend_toolbar(self, config: MenuConfig) -> MenuConfig:
        config.items.append(
            {"id": "conditional-format", "tooltip": "Conditional formatting", "icon": "🎨", "command": ADD_COMMAND}
        )
        return config

    def render_cell(self, cell: CellContext) -> dict[str, Any] | None:
        engine = self.store.document.conditional_formats.get(cell.sheet)
        if engine is None or not len(engine):
            return None
        grid = self.store.document.sheet_data.get(cell.sheet)
        return engine.evaluate(cell.row, cell.col, cell.value, grid) or None

    def execute(self, request: CommandRequest) -> Any:
        args = request.args
        sheet = args.get("sheet") or self.store.current_sheet
        if request.command == ADD_COMMAND:
            rule_id = self.store.add_conditional_format_rule(
                sheet,
                CellRange.coerce(args["range"]),
                Condition.from_dict(args["condition"]),
                dict(args.get("style") or {}),
            )
            self._render()
            return rule_id
        if request.command == REMOVE_COMMAND:
            removed = self.store.remove_conditional_format_rule(sheet, args["id"])
            self._render()
            return removed
        if request.command == CLEAR_COMMAND:
            cleared = self.store.conditional_formats(sheet).clear_all_rules()
            if cleared:
                self.store.set_modified(True)
                self._render()
            return cleared
        if request.command == LIST_COMMAND:
            return self.store.conditional_formats(sheet).to_records()
        return None

    def definition(self) -> PluginDefinition:
        return PluginDefinition(
            name="Conditional formatting",
            initialize=self.initialize,
            cleanup=self.cleanup,
            hooks={
                HookName.MENU_EXTEND: self.extend_menu,
                HookName.TOOLBAR_EXTEND: self.extend_toolbar,
                HookName.CELL_RENDER: self.render_cell,
                HookName.COMMAND_EXECUTE: self.execute,
            },
        )
