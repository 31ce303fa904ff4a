from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..logging.error_log import ErrorLogBuffer, report_contained_error
from ..models.document import CellChange
from ..models.error_record import HOOK_HANDLER_ERROR, PLUGIN_CLEANUP_ERROR, PLUGIN_INIT_ERROR
from .collaborators import GridView
from .message_channel import MessageChannel

"""Extension registry: plugin lifecycle and hook dispatch.

Hooks are dispatched synchronously in registration order. Every hook name is
bound to one payload class (see ``HOOK_PAYLOADS``) and ``run_hook`` refuses a
payload of any other type. Handler, initializer and cleanup failures are
contained here: logged, recorded, never raised to the caller.
"""

logger = logging.getLogger(__name__)


class HookName(str, Enum):
    MENU_EXTEND = "menu:extend"
    TOOLBAR_EXTEND = "toolbar:extend"
    CELL_RENDER = "cell:render"
    CELL_PROPERTIES = "cell:properties"
    CONTEXTMENU_EXTEND = "contextmenu:extend"
    DATA_BEFORE_CHANGE = "data:beforeChange"
    DATA_AFTER_CHANGE = "data:afterChange"
    COMMAND_EXECUTE = "command:execute"


# --- hook payloads --------------------------------------------------------

@dataclass
class MenuConfig:
    """menu:extend / toolbar:extend / contextmenu:extend payload. Handlers return it (modified)."""
    items: list[dict[str, Any]] = field(default_factory=list)
    row: int | None = None  # contextmenu のみ
    col: int | None = None


@dataclass(frozen=True)
class CellContext:
    """cell:render / cell:properties payload. Handlers return a property dict or None."""
    sheet: str
    row: int
    col: int
    value: Any


@dataclass(frozen=True)
class ChangeBatch:
    """data:beforeChange returns the changes to keep; data:afterChange returns None."""
    sheet: str
    changes: tuple[CellChange, ...]
    source: str = "edit"


@dataclass(frozen=True)
class CommandRequest:
    """command:execute payload; a handler that owns ``command`` returns a non-None result."""
    command: str
    args: dict[str, Any] = field(default_factory=dict)


HOOK_PAYLOADS: dict[str, type] = {
    HookName.MENU_EXTEND.value: MenuConfig,
    HookName.TOOLBAR_EXTEND.value: MenuConfig,
    HookName.CONTEXTMENU_EXTEND.value: MenuConfig,
    HookName.CELL_RENDER.value: CellContext,
    HookName.CELL_PROPERTIES.value: CellContext,
    HookName.DATA_BEFORE_CHANGE.value: ChangeBatch,
    HookName.DATA_AFTER_CHANGE.value: ChangeBatch,
    HookName.COMMAND_EXECUTE.value: CommandRequest,
}

Handler = Callable[[Any], Any]


def _hook_key(name: HookName | str) -> str:
    return name.value if isinstance(name, HookName) else str(name)


# --- plugin definitions ---------------------------------------------------

@dataclass
class PluginDefinition:
    name: str
    version: str = "1.0.0"
    author: str = "Unknown"
    initialize: Callable[[PluginContext], None] | None = None
    cleanup: Callable[[], None] | None = None
    hooks: dict[HookName | str, Handler] = field(default_factory=dict)
    on_grid_change: Callable[[GridView | None], None] | None = None


@dataclass
class PluginInfo:
    id: str
    definition: PluginDefinition
    enabled: bool = False

    @property
    def name(self) -> str:
        return self.definition.name or self.id


class PluginContext:
    """Handle given to a plugin's initializer.

    Gives access to the live grid (read and replace) and the message channel,
    so plugins never look up shared state on their own.
    """

    def __init__(self, registry: ExtensionRegistry, plugin_id: str) -> None:
        self._registry = registry
        self.plugin_id = plugin_id

    @property
    def grid(self) -> GridView | None:
        return self._registry.grid

    def set_grid(self, grid: GridView | None) -> None:
        self._registry.set_grid(grid)

    @property
    def channel(self) -> MessageChannel:
        return self._registry.channel


@dataclass(frozen=True)
class _Registration:
    plugin_id: str
    handler: Handler


class ExtensionRegistry:
    def __init__(
        self,
        *,
        channel: MessageChannel | None = None,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> None:
        self._plugins: dict[str, PluginInfo] = {}
        self._hooks: dict[str, list[_Registration]] = {name: [] for name in HOOK_PAYLOADS}
        self._payload_types: dict[str, type] = dict(HOOK_PAYLOADS)
        self._running: set[str] = set()
        self._grid: GridView | None = None
        self._error_buffer = error_buffer
        self.channel = channel or MessageChannel(error_buffer)

    # --- hook vocabulary ---
    def add_hook(self, name: str, payload_type: type) -> None:
        """Extend the hook vocabulary with a new name bound to ``payload_type``."""
        if name in self._hooks:
            raise ValueError(f"hook already defined: {name}")
        self._hooks[name] = []
        self._payload_types[name] = payload_type

    @property
    def hook_names(self) -> list[str]:
        return list(self._hooks)

    def handler_count(self, name: HookName | str) -> int:
        return len(self._hooks.get(_hook_key(name), []))

    # --- grid handle ---
    @property
    def grid(self) -> GridView | None:
        return self._grid

    def set_grid(self, grid: GridView | None) -> None:
        """Replace the shared grid handle and notify every enabled plugin."""
        self._grid = grid
        for info in self._plugins.values():
            callback = info.definition.on_grid_change
            if not info.enabled or callback is None:
                continue
            try:
                callback(grid)
            except Exception as e:
                report_contained_error(
                    logger,
                    self._error_buffer,
                    component="extension-registry",
                    source=info.id,
                    error_type=HOOK_HANDLER_ERROR,
                    error=e,
                    message=f"plugin {info.id} failed on grid change",
                )

    # --- lifecycle ---
    def register(self, plugin_id: str, definition: PluginDefinition) -> bool:
        if plugin_id in self._plugins:
            logger.warning(f"plugin {plugin_id} is already registered")
            return False
        self._plugins[plugin_id] = PluginInfo(id=plugin_id, definition=definition)
        logger.debug(f"plugin registered: {plugin_id}")
        return True

    def enable(self, plugin_id: str) -> bool:
        info = self._plugins.get(plugin_id)
        if info is None:
            logger.warning(f"plugin {plugin_id} is not registered")
            return False
        if info.enabled:
            return True

        definition = info.definition
        if definition.initialize is not None:
            try:
                definition.initialize(PluginContext(self, plugin_id))
            except Exception as e:
                report_contained_error(
                    logger,
                    self._error_buffer,
                    component="extension-registry",
                    source=plugin_id,
                    error_type=PLUGIN_INIT_ERROR,
                    error=e,
                    message=f"failed to initialize plugin {plugin_id}",
                )
                return False

        for name, handler in definition.hooks.items():
            key = _hook_key(name)
            if key not in self._hooks:
                logger.warning(f"plugin {plugin_id}: unknown hook {key} ignored")
                continue
            self._hooks[key].append(_Registration(plugin_id, handler))

        info.enabled = True
        logger.info(f"plugin enabled: {plugin_id}")
        return True

    def disable(self, plugin_id: str) -> bool:
        info = self._plugins.get(plugin_id)
        if info is None or not info.enabled:
            return False

        if info.definition.cleanup is not None:
            try:
                info.definition.cleanup()
            except Exception as e:
                report_contained_error(
                    logger,
                    self._error_buffer,
                    component="extension-registry",
                    source=plugin_id,
                    error_type=PLUGIN_CLEANUP_ERROR,
                    error=e,
                    message=f"error during plugin {plugin_id} cleanup",
                )

        for key, regs in self._hooks.items():
            self._hooks[key] = [r for r in regs if r.plugin_id != plugin_id]
        info.enabled = False
        logger.info(f"plugin disabled: {plugin_id}")
        return True

    def is_enabled(self, plugin_id: str) -> bool:
        info = self._plugins.get(plugin_id)
        return info is not None and info.enabled

    def get_plugins(self) -> list[PluginInfo]:
        return list(self._plugins.values())

    # --- dispatch ---
    def run_hook(self, name: HookName | str, payload: Any) -> list[Any] | None:
        """Run every handler for ``name``; None when no handler produced a value."""
        key = _hook_key(name)
        regs = self._hooks.get(key)
        if regs is None:
            return None
        expected = self._payload_types[key]
        if not isinstance(payload, expected):
            raise TypeError(
                f"hook {key} expects {expected.__name__}, got {type(payload).__name__}"
            )
        if key in self._running:
            logger.warning(f"re-entrant run of hook {key} refused")
            return None

        results: list[Any] = []
        self._running.add(key)
        try:
            for reg in list(regs):
                try:
                    result = reg.handler(payload)
                except Exception as e:
                    report_contained_error(
                        logger,
                        self._error_buffer,
                        component="extension-registry",
                        source=f"{reg.plugin_id}:{key}",
                        error_type=HOOK_HANDLER_ERROR,
                        error=e,
                        message=f"error running hook {key} in plugin {reg.plugin_id}",
                    )
                    continue
                if result is not None:
                    results.append(result)
        finally:
            self._running.discard(key)
        return results or None
