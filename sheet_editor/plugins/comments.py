from __future__ import annotations

from typing import Any

from ..services.document_store import DocumentStore
from ..services.plugin_registry import (
    CellContext,
    CommandRequest,
    HookName,
    MenuConfig,
    PluginContext,
    PluginDefinition,
)

"""Cell comments plugin."""

PLUGIN_ID = "comments"
SET_COMMAND = "comment:set"
REMOVE_COMMAND = "comment:remove"


class CommentsPlugin:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.context: PluginContext | None = None

    def initialize(self, context: PluginContext) -> None:
        self.context = context

    def cleanup(self) -> None:
        self.context = None

    def extend_context_menu(self, config: MenuConfig) -> MenuConfig:
        if config.row is None or config.col is None:
            return config
        target = {"row": config.row, "col": config.col}
        existing = self.store.get_comment(self.store.current_sheet, config.row, config.col)
        if existing is None:
            config.items.append({"id": "add-comment", "label": "Add comment", "command": SET_COMMAND, "args": target})
        else:
            config.items.append({"id": "edit-comment", "label": "Edit comment", "command": SET_COMMAND, "args": target})
            config.items.append(
                {"id": "delete-comment", "label": "Delete comment", "command": REMOVE_COMMAND, "args": target}
            )
        return config

    def cell_properties(self, cell: CellContext) -> dict[str, Any] | None:
        comment = self.store.get_comment(cell.sheet, cell.row, cell.col)
        if comment is None:
            return None
        return {"comment": comment.text}

    def execute(self, request: CommandRequest) -> Any:
        args = request.args
        sheet = args.get("sheet") or self.store.current_sheet
        if request.command == SET_COMMAND:
            comment = self.store.set_comment(sheet, int(args["row"]), int(args["col"]), args.get("text", ""))
            return comment.to_dict() if comment is not None else False
        if request.command == REMOVE_COMMAND:
            return self.store.remove_comment(sheet, int(args["row"]), int(args["col"]))
        return None

    def definition(self) -> PluginDefinition:
        return PluginDefinition(
            name="Comments",
            initialize=self.initialize,
            cleanup=self.cleanup,
            hooks={
                HookName.CONTEXTMENU_EXTEND: self.extend_context_menu,
                HookName.CELL_PROPERTIES: self.cell_properties,
                HookName.COMMAND_EXECUTE: self.execute,
            },
        )
