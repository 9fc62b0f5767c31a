"""Base scan domain interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable

from disktidy.models.scan_result import Category, CategoryPage, FileEntry, ScanResult
from disktidy.models.scan_session import ScanProgress, ScanStatus

log = logging.getLogger(__name__)


def pick(payload: dict[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first present key; the worker mixes camelCase and snake_case."""
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return default


class ScanDomain(ABC):
    """Base class for all scan domains.

    A domain describes one kind of background scan exposed by the worker:
    its event channels, how to encode start options, and how to decode
    progress, result and page payloads into the shared models.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier, e.g. 'large_file'."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name, e.g. 'Large Files'."""

    @property
    def description(self) -> str:
        return ""

    @property
    def sort_order(self) -> int:
        """Display order (lower = first). Default 50."""
        return 50

    @property
    def progress_event(self) -> str:
        return f"{self.id}:progress"

    @property
    def complete_event(self) -> str:
        return f"{self.id}:complete"

    @property
    def supports_paging(self) -> bool:
        """Whether the worker serves further category pages on demand."""
        return True

    @property
    def default_options(self) -> dict[str, Any]:
        return {}

    def start_params(self, **options: Any) -> dict[str, Any]:
        """Merge user options over the domain defaults.

        Unknown option names are passed through unchanged so newer
        worker versions can accept them.
        """
        params = dict(self.default_options)
        params.update(options)
        return params

    # -- Payload decoding --

    def session_id_of(self, payload: Any) -> str | None:
        """Extract the session id an event belongs to, if it carries one."""
        if isinstance(payload, dict):
            sid = pick(payload, "scanId", "scan_id", "session_id", "sessionId")
            return str(sid) if sid else None
        return None

    def parse_progress(self, payload: dict[str, Any]) -> ScanProgress:
        return ScanProgress(
            session_id=self.session_id_of(payload),
            status=ScanStatus.parse(pick(payload, "status")),
            current_path=str(pick(payload, "currentPath", "current_path", default="")),
            scanned_count=int(pick(payload, "scannedFiles", "scanned_files", "scanned_count", default=0)),
            found_count=int(pick(payload, "foundFiles", "found_files", "found_count", "totalFiles", default=0)),
            scanned_size=int(pick(payload, "scannedSize", "scanned_size", default=0)),
            total_size=int(pick(payload, "totalSize", "total_size", default=0)),
            percent=float(pick(payload, "percent", default=0.0)),
            speed=float(pick(payload, "speed", default=0.0)),
            phase=pick(payload, "currentPhase", "current_phase"),
        )

    def parse_entry(self, raw: dict[str, Any]) -> FileEntry:
        path = str(raw.get("path", ""))
        return FileEntry(
            path=path,
            size=int(raw.get("size", 0)),
            name=str(raw.get("name") or path.replace("\\", "/").rsplit("/", 1)[-1]),
            modified_time=int(pick(raw, "modified_time", "modifiedAt", "last_modified", default=0)),
            category=str(pick(raw, "category", "file_type", default="")),
            safe_to_delete=bool(raw.get("safe_to_delete", True)),
            risk_level=str(raw.get("risk_level", "low")),
        )

    def parse_result(self, payload: Any, session_id: str | None) -> ScanResult:
        """Decode a completion payload of the shape ``{categories: [...]}``."""
        categories = tuple(self._parse_category(raw) for raw in pick(payload, "categories", default=[]))
        return ScanResult(
            session_id=self.session_id_of(payload) or session_id,
            categories=categories,
            duration_ms=int(pick(payload, "duration_ms", "durationMs", "duration", default=0)),
        )

    def parse_page(self, payload: dict[str, Any]) -> CategoryPage:
        files = tuple(self.parse_entry(f) for f in payload.get("files") or [])
        return CategoryPage(
            files=files,
            has_more=bool(pick(payload, "has_more", "hasMore", default=False)),
            total=pick(payload, "total"),
        )

    def display_name(self, category_key: str) -> str:
        return category_key.replace("_", " ").capitalize()

    def _parse_category(self, raw: dict[str, Any]) -> Category:
        key = str(pick(raw, "name", "key", "category", default=""))
        files = tuple(self.parse_entry(f) for f in raw.get("files") or [])
        file_count = int(pick(raw, "file_count", "fileCount", "count", default=len(files)))
        return Category(
            key=key,
            display_name=str(pick(raw, "display_name", "displayName", default=self.display_name(key))),
            files=files,
            file_count=max(file_count, len(files)),
            total_size=int(pick(raw, "total_size", "totalSize", default=sum(f.size for f in files))),
            has_more=bool(pick(raw, "has_more", "hasMore", default=len(files) < file_count)),
            description=str(raw.get("description", "")),
        )

    # -- Identity and safety --

    def is_safe_to_delete(self, entry: FileEntry) -> bool:
        """Whether an entry may be sent to the delete call."""
        return True


class GroupedFilesDomain(ScanDomain, ABC):
    """Base class for domains whose result is a flat file list.

    The list is grouped client-side by each entry's category.
    Every file is delivered up front, so no further pages exist.
    """

    @property
    def supports_paging(self) -> bool:
        return False

    def parse_result(self, payload: Any, session_id: str | None) -> ScanResult:
        entries = [self.parse_entry(raw) for raw in pick(payload, "files", default=[])]
        return ScanResult(
            session_id=self.session_id_of(payload) or session_id,
            categories=group_entries(entries, self.display_name),
            duration_ms=int(pick(payload, "duration_ms", "durationMs", default=0)),
        )


class TypedGroupsDomain(ScanDomain, ABC):
    """Base class for domains whose result is a list of typed groups.

    Each group looks like ``{<type_field>: ..., items: [...], count, total_size}``.
    The completion payload is either that bare list or a dict holding it
    under ``results``; the bare list carries no session id.
    """

    @property
    @abstractmethod
    def _type_field(self) -> str:
        """Group key field, e.g. 'file_type'."""

    def parse_result(self, payload: Any, session_id: str | None) -> ScanResult:
        if isinstance(payload, dict):
            groups = pick(payload, "results", "groups", default=[])
            duration = int(pick(payload, "duration_ms", "durationMs", default=0))
        else:
            groups, duration = payload or [], 0
        categories: list[Category] = []
        for raw in groups:
            key = str(raw.get(self._type_field, "other"))
            files = tuple(self.parse_entry(item) for item in raw.get("items") or [])
            count = max(int(raw.get("count", len(files))), len(files))
            categories.append(
                Category(
                    key=key,
                    display_name=self.display_name(key),
                    files=files,
                    file_count=count,
                    total_size=int(raw.get("total_size", sum(f.size for f in files))),
                    has_more=bool(raw.get("has_more", len(files) < count)),
                )
            )
        return ScanResult(
            session_id=self.session_id_of(payload) or session_id,
            categories=tuple(categories),
            duration_ms=duration,
        )


def group_entries(entries: Iterable[FileEntry], display_name) -> tuple[Category, ...]:
    """Group entries by their category field, preserving first-seen order."""
    groups: dict[str, list[FileEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.category or "other", []).append(entry)
    return tuple(
        Category(
            key=key,
            display_name=display_name(key),
            files=tuple(files),
            file_count=len(files),
            total_size=sum(f.size for f in files),
            has_more=False,
        )
        for key, files in groups.items()
    )
