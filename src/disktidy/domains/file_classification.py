"""File-classification scan domain."""

from __future__ import annotations

from typing import Any

from disktidy.models.domain import ScanDomain, pick
from disktidy.models.scan_result import Category, FileEntry, ScanResult


class FileClassificationDomain(ScanDomain):
    """Breaks a disk down by file type.

    The completion payload carries per-type statistics plus a sample of
    the largest files; the files of each type are paged in on demand.
    """

    @property
    def id(self) -> str:
        return "file_classification"

    @property
    def name(self) -> str:
        return "File Classification"

    @property
    def description(self) -> str:
        return "Space usage by file type."

    @property
    def sort_order(self) -> int:
        return 50

    @property
    def default_options(self) -> dict[str, Any]:
        return {
            "path": "C:\\",
            "max_depth": 5,
            "include_hidden": False,
            "include_system": False,
            "exclude_paths": [
                "Windows",
                "Program Files",
                "Program Files (x86)",
                "ProgramData",
                "$Recycle.Bin",
                "System Volume Information",
            ],
            "max_files": 100000,
            "top_n_categories": 15,
        }

    def parse_result(self, payload: Any, session_id: str | None) -> ScanResult:
        samples: dict[str, list[FileEntry]] = {}
        for raw in pick(payload, "largest_files", default=[]):
            entry = self.parse_entry(raw)
            samples.setdefault(entry.category, []).append(entry)

        categories: list[Category] = []
        for raw in pick(payload, "categories", default=[]):
            key = str(pick(raw, "category", "name", default="other"))
            if raw.get("files") is not None:
                files = tuple(self.parse_entry(f) for f in raw["files"])
            else:
                files = tuple(samples.get(key, ()))
            count = max(int(pick(raw, "count", "file_count", default=len(files))), len(files))
            categories.append(
                Category(
                    key=key,
                    display_name=str(raw.get("display_name") or self.display_name(key)),
                    files=files,
                    file_count=count,
                    total_size=int(raw.get("total_size", 0)),
                    has_more=len(files) < count,
                )
            )
        return ScanResult(
            session_id=self.session_id_of(payload) or session_id,
            categories=tuple(categories),
            duration_ms=int(pick(payload, "duration_ms", default=0)),
        )
