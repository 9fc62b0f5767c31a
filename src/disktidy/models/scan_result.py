"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any


@dataclass(slots=True)
class FileEntry:
    """Single file (or logical item) reported by a scan.

    Identity is ``path`` unless an explicit ``id`` is set, which is the
    case for items whose path is not unique (e.g. registry-key residues).
    """

    path: str
    size: int
    name: str = ""
    modified_time: int = 0
    id: str | None = None
    category: str = ""
    safe_to_delete: bool = True
    risk_level: str = "low"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.id if self.id is not None else self.path

    @property
    def file_name(self) -> str:
        return self.name or PurePath(self.path).name

    @property
    def extension(self) -> str:
        """Lower-case suffix without the dot, or "" when there is none."""
        return PurePath(self.file_name).suffix.lstrip(".").lower()


@dataclass(frozen=True, slots=True)
class Category:
    """Named group of entries with independent pagination.

    ``file_count`` is the authoritative total and may exceed ``len(files)``.
    ``has_more`` is set by whichever fetch produced the page.
    """

    key: str
    display_name: str
    files: tuple[FileEntry, ...] = ()
    file_count: int = 0
    total_size: int = 0
    has_more: bool = False
    description: str = ""


@dataclass(frozen=True, slots=True)
class CategoryPage:
    """One page returned by a category fetch."""

    files: tuple[FileEntry, ...]
    has_more: bool
    total: int | None = None


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Final result of a scan session. Never mutated in place."""

    session_id: str | None
    categories: tuple[Category, ...] = ()
    duration_ms: int = 0

    @property
    def file_count(self) -> int:
        return sum(c.file_count for c in self.categories)

    @property
    def total_size(self) -> int:
        return sum(c.total_size for c in self.categories)

    @property
    def loaded_files(self) -> list[FileEntry]:
        return [f for c in self.categories for f in c.files]

    def category(self, key: str) -> Category | None:
        for cat in self.categories:
            if cat.key == key:
                return cat
        return None
