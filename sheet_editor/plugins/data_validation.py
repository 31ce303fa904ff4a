from __future__ import annotations

import logging
from typing import Any

from ..models.cell_range import CellRange
from ..models.rules import ValidationSpec
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

"""Data validation plugin.

The document store already validates every edit before it commits, so this
plugin only manages rules and tells the grid which cells get a dropdown.
"""

logger = logging.getLogger(__name__)

PLUGIN_ID = "data-validation"
SET_COMMAND = "data-validation:set"
REMOVE_COMMAND = "data-validation:remove"
CLEAR_RANGE_COMMAND = "data-validation:clear-range"


class DataValidationPlugin:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.context: PluginContext | None = None

    def initialize(self, context: PluginContext) -> None:
        self.context = context

    def cleanup(self) -> None:
        self.context = None

    def extend_menu(self, config: MenuConfig) -> MenuConfig:
        submenu = find_or_add_menu(config, "data", "Data")
        submenu.append({"id": "data-validation", "label": "Data validation", "command": SET_COMMAND})
        return config

    def cell_properties(self, cell: CellContext) -> dict[str, Any] | None:
        engine = self.store.document.data_validations.get(cell.sheet)
        if engine is None:
            return None
        source = engine.list_source(cell.row, cell.col)
        if source is None:
            return None
        return {"type": "dropdown", "source": source}

    def execute(self, request: CommandRequest) -> Any:
        args = request.args
        sheet = args.get("sheet") or self.store.current_sheet
        if request.command == SET_COMMAND:
            return self.store.set_data_validation_rule(
                sheet, CellRange.coerce(args["range"]), ValidationSpec.from_dict(args["rule"])
            )
        if request.command == REMOVE_COMMAND:
            return self.store.remove_data_validation_rule(sheet, args["id"])
        if request.command == CLEAR_RANGE_COMMAND:
            removed = self.store.data_validation(sheet).remove_rules_in(CellRange.coerce(args["range"]))
            if removed:
                self.store.set_modified(True)
            return removed
        return None

    def definition(self) -> PluginDefinition:
        return PluginDefinition(
            name="Data validation",
            initialize=self.initialize,
            cleanup=self.cleanup,
            hooks={
                HookName.MENU_EXTEND: self.extend_menu,
                HookName.CELL_PROPERTIES: self.cell_properties,
                HookName.COMMAND_EXECUTE: self.execute,
            },
        )
