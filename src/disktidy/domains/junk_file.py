"""Junk-file scan domain."""

from __future__ import annotations

from typing import Any

from disktidy.models.domain import TypedGroupsDomain
from disktidy.models.scan_result import FileEntry

_TYPE_NAMES = {
    "empty_folders": "Empty Folders",
    "invalid_shortcuts": "Broken Shortcuts",
    "old_logs": "Old Log Files",
    "old_installers": "Old Installers",
    "invalid_downloads": "Incomplete Downloads",
    "small_files": "Small Files",
    "orphaned_files": "Orphaned Files",
}


class JunkFileDomain(TypedGroupsDomain):
    """Empty folders, broken shortcuts, stale logs and installers."""

    _type_field = "file_type"

    @property
    def id(self) -> str:
        return "junk_file"

    @property
    def name(self) -> str:
        return "Junk Files"

    @property
    def description(self) -> str:
        return "Leftover files that are usually safe to remove."

    @property
    def sort_order(self) -> int:
        return 20

    @property
    def default_options(self) -> dict[str, Any]:
        return {
            "scan_paths": [],
            "include_empty_folders": True,
            "include_invalid_shortcuts": True,
            "include_old_logs": True,
            "include_old_installers": True,
            "include_invalid_downloads": True,
            "include_small_files": False,
            "small_file_max_size": 100 * 1024,
            "log_max_age_days": 30,
            "installer_max_age_days": 90,
            "exclude_paths": [],
            "include_hidden": False,
            "include_system": False,
        }

    def parse_entry(self, raw: dict[str, Any]) -> FileEntry:
        entry = super().parse_entry(raw)
        entry.extra = {"description": raw.get("description", "")}
        return entry

    def display_name(self, category_key: str) -> str:
        return _TYPE_NAMES.get(category_key, super().display_name(category_key))

    def is_safe_to_delete(self, entry: FileEntry) -> bool:
        return entry.safe_to_delete
