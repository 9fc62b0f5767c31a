"""Paginated category loading over a scan result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Iterator

from disktidy.models.scan_result import Category, CategoryPage, FileEntry, ScanResult

log = logging.getLogger(__name__)

PageFetcher = Callable[[str, int, int], Awaitable[CategoryPage | None]]

DEFAULT_PAGE_SIZE = 50
DEFAULT_VIRTUALIZE_THRESHOLD = 100


@dataclass(slots=True)
class CategoryState:
    """Live, incrementally loaded view of one category."""

    key: str
    display_name: str
    files: list[FileEntry] = field(default_factory=list)
    file_count: int = 0
    total_size: int = 0
    has_more: bool = False
    description: str = ""
    is_loading: bool = False
    expanded: bool = False
    virtualized: bool = False

    def to_category(self) -> Category:
        return Category(
            key=self.key,
            display_name=self.display_name,
            files=tuple(self.files),
            file_count=self.file_count,
            total_size=self.total_size,
            has_more=self.has_more,
            description=self.description,
        )


class CategoryLoader:
    """Holds the loaded pages of every category and fetches more on demand.

    Loads for one category are serialized by its ``is_loading`` flag;
    different categories load independently. A failed fetch leaves the
    existing page untouched.
    """

    def __init__(
        self,
        fetch: PageFetcher | None = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        virtualize_threshold: int = DEFAULT_VIRTUALIZE_THRESHOLD,
        on_changed: Callable[[], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self._fetch = fetch
        self.page_size = page_size
        self.virtualize_threshold = virtualize_threshold
        self._on_changed = on_changed
        self._on_error = on_error
        self._states: dict[str, CategoryState] = {}
        self._owner: dict[str, str] = {}  # entry key -> category key
        self._generation = 0
        self.search_query = ""
        self.file_types: frozenset[str] = frozenset()

    # -- Population --

    def load(self, result: ScanResult | None) -> None:
        """Replace all state with the categories of *result*."""
        self._reset()
        if result is None:
            self._notify()
            return
        for cat in result.categories:
            state = CategoryState(
                key=cat.key,
                display_name=cat.display_name,
                file_count=max(cat.file_count, len(cat.files)),
                total_size=cat.total_size,
                has_more=cat.has_more,
                description=cat.description,
                virtualized=cat.file_count > self.virtualize_threshold,
            )
            self._states[cat.key] = state
            self._append(state, cat.files)
        self._notify()

    def clear(self) -> None:
        self._reset()
        self._notify()

    def _reset(self) -> None:
        self._generation += 1
        self._states.clear()
        self._owner.clear()

    # -- Queries --

    @property
    def categories(self) -> list[CategoryState]:
        return list(self._states.values())

    def get(self, category_key: str) -> CategoryState | None:
        return self._states.get(category_key)

    def __contains__(self, category_key: str) -> bool:
        return category_key in self._states

    def __len__(self) -> int:
        return len(self._states)

    def is_virtualized(self, category_key: str) -> bool:
        """Whether the category is large enough to need a virtualized list."""
        state = self._states.get(category_key)
        return bool(state and state.virtualized)

    def loaded_entries(self) -> Iterator[FileEntry]:
        for state in self._states.values():
            yield from state.files

    def has_entry(self, key: str) -> bool:
        return key in self._owner

    def find(self, key: str) -> FileEntry | None:
        category_key = self._owner.get(key)
        if category_key is None:
            return None
        for entry in self._states[category_key].files:
            if entry.key == key:
                return entry
        return None

    def category_of(self, key: str) -> str | None:
        return self._owner.get(key)

    def snapshot(self, session_id: str | None = None, duration_ms: int = 0) -> ScanResult:
        """Build a new immutable result from the current pages."""
        return ScanResult(
            session_id=session_id,
            categories=tuple(state.to_category() for state in self._states.values()),
            duration_ms=duration_ms,
        )

    # -- Filtering --

    def set_filter(self, query: str = "", file_types: Iterable[str] = ()) -> None:
        """Narrow the visible entries by a search query and file extensions.

        The query matches name, path, extension or category, case-insensitively.
        Extensions are compared without the leading dot. The filter only
        hides loaded entries; it never changes what is fetched.
        """
        self.search_query = query.strip().lower()
        self.file_types = frozenset(t.lower().lstrip(".") for t in file_types if t)
        self._notify()

    def set_search_query(self, query: str) -> None:
        self.set_filter(query, self.file_types)

    def clear_filter(self) -> None:
        self.set_filter()

    @property
    def is_filtered(self) -> bool:
        return bool(self.search_query or self.file_types)

    def matches(self, entry: FileEntry) -> bool:
        if self.file_types and entry.extension not in self.file_types:
            return False
        if not self.search_query:
            return True
        query = self.search_query
        return any(
            query in text.lower() for text in (entry.file_name, entry.path, entry.extension, entry.category)
        )

    def visible_files(self, category_key: str) -> list[FileEntry]:
        """Loaded entries of a category that pass the filter."""
        state = self._states.get(category_key)
        if state is None:
            return []
        return [f for f in state.files if self.matches(f)]

    def visible_entries(self) -> Iterator[FileEntry]:
        for state in self._states.values():
            for entry in state.files:
                if self.matches(entry):
                    yield entry

    # -- Paging --

    async def load_more(
        self,
        category_key: str,
        offset: int | None = None,
        limit: int | None = None,
    ) -> CategoryPage | None:
        """Fetch the next page of a category and append it.

        Returns the fetched page, or None when nothing was merged (no more
        pages, a load already in flight, or the fetch failed).
        """
        state = self._states.get(category_key)
        if state is None or self._fetch is None:
            return None
        if state.is_loading:
            log.debug("Load for '%s' already in flight, ignoring", category_key)
            return None
        if not state.has_more:
            return None

        if offset is None:
            offset = len(state.files)
        if limit is None:
            limit = self.page_size

        generation = self._generation
        state.is_loading = True
        self._notify()
        try:
            page = await self._fetch(category_key, offset, limit)
        except Exception as exc:
            log.warning("Loading more of '%s' failed: %s", category_key, exc)
            if self._on_error:
                self._on_error(f"Could not load more files: {exc}")
            page = None
        finally:
            state.is_loading = False

        if generation != self._generation or self._states.get(category_key) is not state:
            log.debug("Discarding page for '%s' from a replaced result", category_key)
            return None
        if page is None:
            self._notify()
            return None

        self._append(state, page.files)
        state.has_more = page.has_more
        self._notify()
        return page

    async def load_all(self, category_key: str) -> int:
        """Page a category until the worker reports no more. Returns files added."""
        state = self._states.get(category_key)
        if state is None:
            return 0
        before = len(state.files)
        while state.has_more:
            page = await self.load_more(category_key)
            if page is None or not page.files:
                break
        return len(state.files) - before

    # -- Expansion --

    async def expand(self, category_key: str) -> None:
        """Expand a category, fetching its first page if nothing is loaded yet."""
        state = self._states.get(category_key)
        if state is None:
            return
        state.expanded = True
        self._notify()
        if not state.files and state.has_more:
            await self.load_more(category_key)

    def collapse(self, category_key: str) -> None:
        state = self._states.get(category_key)
        if state is not None and state.expanded:
            state.expanded = False
            self._notify()

    async def toggle_expand(self, category_key: str) -> None:
        state = self._states.get(category_key)
        if state is None:
            return
        if state.expanded:
            self.collapse(category_key)
        else:
            await self.expand(category_key)

    def expand_all(self) -> None:
        """Mark every category expanded without fetching."""
        for state in self._states.values():
            state.expanded = True
        self._notify()

    def collapse_all(self) -> None:
        for state in self._states.values():
            state.expanded = False
        self._notify()

    # -- Removal --

    def remove_entries(self, keys: Iterable[str]) -> list[FileEntry]:
        """Remove loaded entries; categories left without files are dropped."""
        drop = {k for k in keys if k in self._owner}
        if not drop:
            return []
        removed: list[FileEntry] = []
        for category_key in {self._owner[k] for k in drop}:
            state = self._states[category_key]
            gone = [f for f in state.files if f.key in drop]
            state.files = [f for f in state.files if f.key not in drop]
            state.file_count = max(len(state.files), state.file_count - len(gone))
            state.total_size = max(0, state.total_size - sum(f.size for f in gone))
            removed.extend(gone)
            if not state.files:
                del self._states[category_key]
                log.debug("Dropped emptied category '%s'", category_key)
        for key in drop:
            del self._owner[key]
        self._notify()
        return removed

    def _append(self, state: CategoryState, files: Iterable[FileEntry]) -> None:
        for entry in files:
            if entry.key in self._owner:
                continue
            state.files.append(entry)
            self._owner[entry.key] = state.key
        if len(state.files) > state.file_count:
            state.file_count = len(state.files)

    def _notify(self) -> None:
        if self._on_changed:
            self._on_changed()
