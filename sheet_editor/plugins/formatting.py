from __future__ import annotations

import copy
import logging
from typing import Any

from ..models.cell_range import CellRange
from ..services.document_store import FORMAT_PROPERTIES, DocumentStore
from ..services.plugin_registry import (
    CellContext,
    CommandRequest,
    HookName,
    MenuConfig,
    PluginContext,
    PluginDefinition,
)

"""Formatting plugin: bold / italic / underline / alignment / colors."""

logger = logging.getLogger(__name__)

PLUGIN_ID = "formatting"
APPLY_COMMAND = "format:apply"

_FORMAT_MENU = [
    {"id": "bold", "label": "Bold", "command": APPLY_COMMAND, "args": {"format": "bold"}},
    {"id": "italic", "label": "Italic", "command": APPLY_COMMAND, "args": {"format": "italic"}},
    {"id": "underline", "label": "Underline", "command": APPLY_COMMAND, "args": {"format": "underline"}},
    {"type": "separator"},
    {"id": "align-left", "label": "Align left", "command": APPLY_COMMAND, "args": {"format": "align", "value": "left"}},
    {"id": "align-center", "label": "Align center", "command": APPLY_COMMAND, "args": {"format": "align", "value": "center"}},
    {"id": "align-right", "label": "Align right", "command": APPLY_COMMAND, "args": {"format": "align", "value": "right"}},
    {"type": "separator"},
    {"id": "text-color-red", "label": "Text red", "command": APPLY_COMMAND, "args": {"format": "color", "value": "#ff0000"}},
    {"id": "bg-color-yellow", "label": "Fill yellow", "command": APPLY_COMMAND, "args": {"format": "backgroundColor", "value": "#ffff00"}},
]


def find_or_add_menu(config: MenuConfig, menu_id: str, label: str) -> list[dict[str, Any]]:
    """Submenu list of ``menu_id``, creating the top-level menu when missing."""
    for item in config.items:
        if item.get("id") == menu_id:
            return item.setdefault("submenu", [])
    menu = {"id": menu_id, "label": label, "submenu": []}
    config.items.append(menu)
    return menu["submenu"]


class FormattingPlugin:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.context: PluginContext | None = None

    def initialize(self, context: PluginContext) -> None:
        self.context = context

    def cleanup(self) -> None:
        self.context = None

    def extend_menu(self, config: MenuConfig) -> MenuConfig:
        submenu = find_or_add_menu(config, "format", "Format")
        submenu.extend(copy.deepcopy(_FORMAT_MENU))
        return config

    def extend_toolbar(self, config: MenuConfig) -> MenuConfig:
        for fmt, icon in (("bold", "B"), ("italic", "I"), ("underline", "U")):
            config.items.append(
                {"id": fmt, "tooltip": fmt.capitalize(), "icon": icon, "command": APPLY_COMMAND, "args": {"format": fmt}}
            )
        return config

    def render_cell(self, cell: CellContext) -> dict[str, Any] | None:
        return self.store.get_cell_style(cell.row, cell.col, cell.sheet) or None

    def execute(self, request: CommandRequest) -> Any:
        if request.command != APPLY_COMMAND:
            return None
        fmt = request.args.get("format")
        if fmt not in FORMAT_PROPERTIES:
            raise ValueError(f"unknown format: {fmt}")
        rng = CellRange.coerce(request.args["range"])
        sheet = request.args.get("sheet") or self.store.current_sheet
        self.store.apply_format(sheet, rng, fmt, request.args.get("value"))
        if self.context is not None and self.context.grid is not None:
            self.context.grid.render()
        return True

    def definition(self) -> PluginDefinition:
        return PluginDefinition(
            name="Formatting",
            initialize=self.initialize,
            cleanup=self.cleanup,
            hooks={
                HookName.MENU_EXTEND: self.extend_menu,
                HookName.TOOLBAR_EXTEND: self.extend_toolbar,
                HookName.CELL_RENDER: self.render_cell,
                HookName.COMMAND_EXECUTE: self.execute,
            },
        )
