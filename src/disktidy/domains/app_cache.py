"""Chat application cache scan domain."""

from __future__ import annotations

from typing import Any

from disktidy.models.domain import GroupedFilesDomain, pick
from disktidy.models.scan_result import FileEntry

_CATEGORY_NAMES = {
    "chat_images": "Chat Images",
    "video_files": "Videos",
    "document_files": "Documents",
    "install_packages": "Installers",
    "cache_data": "Cache Data",
    "voice_files": "Voice Messages",
    "emoji_cache": "Emoji Cache",
    "temp_files": "Temporary Files",
    "thumb_cache": "Thumbnails",
}


class AppCacheDomain(GroupedFilesDomain):
    """Cached media and files kept by chat applications."""

    @property
    def id(self) -> str:
        return "app_cache"

    @property
    def name(self) -> str:
        return "App Cache"

    @property
    def description(self) -> str:
        return "Images, videos and temporary files cached by chat applications."

    @property
    def sort_order(self) -> int:
        return 30

    @property
    def default_options(self) -> dict[str, Any]:
        return {
            "apps": [],
            "categories": [],
            "incremental": False,
            "force_rescan": False,
        }

    def parse_entry(self, raw: dict[str, Any]) -> FileEntry:
        entry = super().parse_entry(raw)
        entry.category = str(raw.get("category") or "cache_data")
        entry.extra = {
            "app": raw.get("app", ""),
            "chat_object": pick(raw, "chatObject", "chat_object", default=""),
            "is_encrypted": bool(pick(raw, "isEncrypted", "is_encrypted", default=False)),
        }
        return entry

    def display_name(self, category_key: str) -> str:
        return _CATEGORY_NAMES.get(category_key, super().display_name(category_key))
