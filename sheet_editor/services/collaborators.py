from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

"""Interfaces of the two external collaborators.

The grid widget and the formula engine live outside this package; the core
only talks to them through these protocols. ``StoreGridView`` is a headless
grid used by the CLI and the tests.
"""

if TYPE_CHECKING:
    from .document_store import DocumentStore

Grid = list[list[Any]]


@runtime_checkable
class GridView(Protocol):
    """The grid-rendering widget as seen by plugins."""

    def get_data(self) -> Grid: ...

    def render(self) -> None: ...

    def set_hidden_rows(self, rows: list[int]) -> None: ...


@runtime_checkable
class FormulaEngine(Protocol):
    """Receives sheet lifecycle events and committed edits; results are never read back here."""

    def add_sheet(self, name: str) -> None: ...

    def rename_sheet(self, old_name: str, new_name: str) -> None: ...

    def remove_sheet(self, name: str) -> None: ...

    def set_cell_contents(self, sheet: str, row: int, col: int, value: Any) -> None: ...


class StoreGridView:
    """GridView over the store's current sheet (no drawing)."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self.hidden_rows: list[int] = []
        self.render_count = 0

    def get_data(self) -> Grid:
        return self._store.get_grid()

    def render(self) -> None:
        self.render_count += 1

    def set_hidden_rows(self, rows: list[int]) -> None:
        self.hidden_rows = list(rows)
