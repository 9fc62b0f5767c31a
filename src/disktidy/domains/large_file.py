"""Large-file scan domain."""

from __future__ import annotations

from typing import Any

from disktidy.models.domain import GroupedFilesDomain, pick
from disktidy.models.scan_result import FileEntry

_MIB = 1024 * 1024

_TYPE_NAMES = {
    "video": "Videos",
    "audio": "Audio",
    "image": "Images",
    "document": "Documents",
    "archive": "Archives",
    "executable": "Executables",
    "disk_image": "Disk Images",
    "other": "Other Files",
}


class LargeFileDomain(GroupedFilesDomain):
    """Finds files above a size threshold, grouped by file type."""

    @property
    def id(self) -> str:
        return "large_file"

    @property
    def name(self) -> str:
        return "Large Files"

    @property
    def description(self) -> str:
        return "Files larger than the configured threshold."

    @property
    def sort_order(self) -> int:
        return 10

    @property
    def default_options(self) -> dict[str, Any]:
        return {
            "path": "C:\\",
            "min_size_bytes": 500 * _MIB,
            "exclude_paths": [],
            "include_hidden": False,
            "include_system": False,
        }

    def parse_entry(self, raw: dict[str, Any]) -> FileEntry:
        entry = super().parse_entry(raw)
        entry.category = str(pick(raw, "file_type", default="other")) or "other"
        entry.extra = {
            "extension": raw.get("extension", ""),
            "accessed_time": raw.get("accessed_time", 0),
            "created_time": raw.get("created_time", 0),
        }
        return entry

    def display_name(self, category_key: str) -> str:
        return _TYPE_NAMES.get(category_key, super().display_name(category_key))
