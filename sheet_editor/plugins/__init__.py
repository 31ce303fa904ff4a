"""Built-in feature plugins.

Each plugin is a small class bound to the document store at construction
time; ``definition()`` turns it into the hook map the extension registry
understands.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from ..services.document_store import DocumentStore
from ..services.plugin_registry import ExtensionRegistry
from .charts import ChartPlugin
from .comments import CommentsPlugin
from .conditional_format import ConditionalFormatPlugin
from .data_validation import DataValidationPlugin
from .filtering import FilteringPlugin
from .formatting import FormattingPlugin

logger = logging.getLogger(__name__)

# 有効化順 = フック実行順 (書式 -> 条件付き書式 の順で後勝ち)
CORE_PLUGINS: dict[str, type] = {
    "formatting": FormattingPlugin,
    "conditional-format": ConditionalFormatPlugin,
    "data-validation": DataValidationPlugin,
    "filtering": FilteringPlugin,
    "comments": CommentsPlugin,
    "chart": ChartPlugin,
}


def register_core_plugins(
    registry: ExtensionRegistry,
    store: DocumentStore,
    enabled: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Register every built-in plugin and enable those listed in ``enabled``.

    Returns the plugin instances by id (registered ones, enabled or not).
    """
    wanted = set(CORE_PLUGINS if enabled is None else enabled)
    unknown = wanted - set(CORE_PLUGINS)
    if unknown:
        logger.warning(f"unknown plugins ignored: {sorted(unknown)}")
    instances: dict[str, Any] = {}
    for plugin_id, cls in CORE_PLUGINS.items():
        plugin = cls(store)
        if registry.register(plugin_id, plugin.definition()):
            instances[plugin_id] = plugin
    for plugin_id in CORE_PLUGINS:
        if plugin_id in wanted and plugin_id in instances:
            registry.enable(plugin_id)
    return instances


__all__ = [
    "CORE_PLUGINS",
    "ChartPlugin",
    "CommentsPlugin",
    "ConditionalFormatPlugin",
    "DataValidationPlugin",
    "FilteringPlugin",
    "FormattingPlugin",
    "register_core_plugins",
]
