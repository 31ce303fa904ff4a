from __future__ import annotations

import logging
from typing import Any

from ..models.cell_range import CellRange
from ..models.document import Chart
from ..services.chart_data import prepare_chart_data
from ..services.document_store import DocumentStore
from ..services.message_channel import StatusMessage
from ..services.plugin_registry import (
    CommandRequest,
    HookName,
    MenuConfig,
    PluginContext,
    PluginDefinition,
)
from .formatting import find_or_add_menu

"""Chart plugin: chart configs on the document plus the data each one plots.

Charts keep only their source range; ``chart:data`` cuts the current cell
values out of the sheet on every call.
"""

logger = logging.getLogger(__name__)

PLUGIN_ID = "chart"
ADD_COMMAND = "chart:add"
UPDATE_COMMAND = "chart:update"
REMOVE_COMMAND = "chart:remove"
DATA_COMMAND = "chart:data"

DEFAULT_CHART_TYPE = "bar"


def chart_data(store: DocumentStore, chart: Chart) -> dict[str, Any] | None:
    """Labels and datasets for ``chart`` from its sheet's current values."""
    if chart.data_range is None:
        return None
    opts = chart.options
    return prepare_chart_data(
        store.get_grid(chart.sheet_id),
        CellRange.from_dict(chart.data_range),
        has_headers=opts.get("hasHeaders", True),
        header_axis=opts.get("headerAxis", "both"),
        orientation=opts.get("dataOrientation", "columns"),
    )


class ChartPlugin:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.context: PluginContext | None = None

    def initialize(self, context: PluginContext) -> None:
        self.context = context

    def cleanup(self) -> None:
        self.context = None

    def _status(self, text: str) -> None:
        if self.context is not None:
            self.context.channel.publish(StatusMessage(text))

    def extend_menu(self, config: MenuConfig) -> MenuConfig:
        submenu = find_or_add_menu(config, "insert", "Insert")
        submenu.append(
            {"id": "insert-chart", "label": "Chart", "command": ADD_COMMAND, "args": {"type": DEFAULT_CHART_TYPE}}
        )
        return config

    def extend_toolbar(self, config: MenuConfig) -> MenuConfig:
        config.items.append(
            {
                "id": "chart-button",
                "tooltip": "Insert chart",
                "icon": "chart",
                "command": ADD_COMMAND,
                "args": {"type": DEFAULT_CHART_TYPE},
            }
        )
        return config

    def add(self, args: dict[str, Any]) -> str | bool:
        sheet = args.get("sheet") or self.store.current_sheet
        rng = CellRange.coerce(args["range"])
        chart_type = args.get("type") or DEFAULT_CHART_TYPE
        options = dict(args.get("options") or {})
        if prepare_chart_data(
            self.store.get_grid(sheet),
            rng,
            has_headers=options.get("hasHeaders", True),
            header_axis=options.get("headerAxis", "both"),
            orientation=options.get("dataOrientation", "columns"),
        ) is None:
            logger.warning(f"chart not created: no data in {rng} on {sheet}")
            return False
        config: dict[str, Any] = {
            "type": chart_type,
            "title": args.get("title") or f"{chart_type.capitalize()} Chart",
            "dataRange": rng.to_dict(),
            "sheetId": sheet,
            "options": options,
        }
        for key in ("position", "size"):
            if args.get(key):
                config[key] = dict(args[key])
        chart_id = self.store.add_chart(config)
        self._status(f"chart added: {config['title']}")
        return chart_id

    def execute(self, request: CommandRequest) -> Any:
        args = request.args
        if request.command == ADD_COMMAND:
            return self.add(args)
        if request.command == UPDATE_COMMAND:
            changes = dict(args.get("changes") or {})
            if isinstance(changes.get("dataRange"), (CellRange, str)):
                changes["dataRange"] = CellRange.coerce(changes["dataRange"]).to_dict()
            return self.store.update_chart(args["id"], changes)
        if request.command == REMOVE_COMMAND:
            removed = self.store.remove_chart(args["id"])
            if removed:
                self._status("chart removed")
            return removed
        if request.command == DATA_COMMAND:
            chart = self.store.get_chart(args["id"])
            if chart is None:
                return False
            return chart_data(self.store, chart) or False
        return None

    def definition(self) -> PluginDefinition:
        return PluginDefinition(
            name="Charts",
            initialize=self.initialize,
            cleanup=self.cleanup,
            hooks={
                HookName.MENU_EXTEND: self.extend_menu,
                HookName.TOOLBAR_EXTEND: self.extend_toolbar,
                HookName.COMMAND_EXECUTE: self.execute,
            },
        )
