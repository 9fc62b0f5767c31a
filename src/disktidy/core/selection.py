"""Tracks the selected entries of a scan result."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    from disktidy.core.loader import CategoryLoader
    from disktidy.models.scan_result import FileEntry


class CheckState(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    ALL = "all"


class SelectionSet:
    """Tracks selected entry keys across categories and loaded pages.

    Every operation works over the entries the loader currently holds;
    pages that have not been fetched yet can never be selected or counted.
    Bulk selection (``select_all``, ``toggle_category``) also respects the
    loader's filter: only visible entries are affected.
    Calls *on_changed* whenever the selection changes.
    """

    def __init__(self, loader: CategoryLoader, on_changed: Callable[[], None] | None = None) -> None:
        self._loader = loader
        self._on_changed = on_changed
        self._keys: set[str] = set()

    # -- Mutators --

    def toggle(self, key: str) -> bool:
        """Flip one entry. Returns its new state; unknown keys stay unselected."""
        if key in self._keys:
            self._keys.discard(key)
            self._notify()
            return False
        if not self._loader.has_entry(key):
            return False
        self._keys.add(key)
        self._notify()
        return True

    def select(self, keys: Iterable[str]) -> None:
        added = {k for k in keys if self._loader.has_entry(k)} - self._keys
        if added:
            self._keys |= added
            self._notify()

    def select_all(self) -> None:
        """Select exactly the visible loaded entries."""
        self._keys = {entry.key for entry in self._loader.visible_entries()}
        self._notify()

    def deselect_all(self) -> None:
        if self._keys:
            self._keys.clear()
            self._notify()

    def toggle_category(self, category_key: str) -> None:
        """Select every visible entry of a category, or deselect them if all were selected."""
        keys = {f.key for f in self._loader.visible_files(category_key)}
        if not keys:
            return
        if keys <= self._keys:
            self._keys -= keys
        else:
            self._keys |= keys
        self._notify()

    def discard(self, keys: Iterable[str]) -> None:
        before = len(self._keys)
        self._keys.difference_update(keys)
        if len(self._keys) != before:
            self._notify()

    def prune(self) -> None:
        """Drop keys whose entries are no longer loaded."""
        stale = {k for k in self._keys if not self._loader.has_entry(k)}
        if stale:
            self._keys -= stale
            self._notify()

    def clear(self) -> None:
        self.deselect_all()

    # -- Queries --

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._keys)

    @property
    def selected_count(self) -> int:
        return len(self._keys)

    @property
    def selected_size(self) -> int:
        """Total size of selected entries that are loaded."""
        return sum(e.size for e in self._loader.loaded_entries() if e.key in self._keys)

    def selected_entries(self) -> list[FileEntry]:
        """Selected entries in display order."""
        return [e for e in self._loader.loaded_entries() if e.key in self._keys]

    def category_state(self, category_key: str) -> CheckState:
        files = self._loader.visible_files(category_key)
        selected = sum(1 for f in files if f.key in self._keys)
        if selected == 0:
            return CheckState.NONE
        return CheckState.ALL if selected == len(files) else CheckState.PARTIAL

    def _notify(self) -> None:
        if self._on_changed:
            self._on_changed()
