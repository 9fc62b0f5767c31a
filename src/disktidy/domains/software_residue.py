"""Software-residue scan domain."""

from __future__ import annotations

from typing import Any

from disktidy.models.domain import TypedGroupsDomain
from disktidy.models.scan_result import FileEntry

_TYPE_NAMES = {
    "leftover_folder": "Leftover Folders",
    "registry_key": "Registry Keys",
    "cache_file": "Cache Files",
    "config_file": "Config Files",
}


class SoftwareResidueDomain(TypedGroupsDomain):
    """Folders, registry keys and files left behind by uninstalled software.

    Registry keys share no unique filesystem path, so entries are keyed by
    the worker-assigned item id and deletion is addressed by id.
    """

    _type_field = "residue_type"

    @property
    def id(self) -> str:
        return "software_residue"

    @property
    def name(self) -> str:
        return "Software Residue"

    @property
    def description(self) -> str:
        return "Remains of applications that are no longer installed."

    @property
    def sort_order(self) -> int:
        return 40

    @property
    def supports_paging(self) -> bool:
        return False

    @property
    def default_options(self) -> dict[str, Any]:
        return {
            "include_leftover_folders": True,
            "include_registry_keys": True,
            "include_cache_files": True,
            "include_config_files": True,
            "scan_all_drives": False,
            "custom_scan_paths": [],
        }

    def parse_entry(self, raw: dict[str, Any]) -> FileEntry:
        entry = super().parse_entry(raw)
        entry.id = str(raw.get("id") or entry.path)
        entry.category = str(raw.get("residue_type", ""))
        entry.extra = {
            "app_name": raw.get("app_name", ""),
            "description": raw.get("description", ""),
        }
        return entry

    def display_name(self, category_key: str) -> str:
        return _TYPE_NAMES.get(category_key, super().display_name(category_key))

    def is_safe_to_delete(self, entry: FileEntry) -> bool:
        return entry.safe_to_delete
