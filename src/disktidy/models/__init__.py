"""DiskTidy data models."""

from disktidy.models.domain import ScanDomain
from disktidy.models.scan_session import ScanProgress, ScanSession, ScanStatus
from disktidy.models.scan_result import Category, CategoryPage, FileEntry, ScanResult
from disktidy.models.clean_result import DeleteResult, FailedItem

__all__ = [
    "Category",
    "CategoryPage",
    "DeleteResult",
    "FailedItem",
    "FileEntry",
    "ScanDomain",
    "ScanProgress",
    "ScanResult",
    "ScanSession",
    "ScanStatus",
]
