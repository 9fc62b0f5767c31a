"""Scan session, status and progress dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ScanStatus(str, Enum):
    """Lifecycle state of a scan session."""

    IDLE = "idle"
    SCANNING = "scanning"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        """Whether a scan is running or paused on the backend."""
        return self in (ScanStatus.SCANNING, ScanStatus.PAUSED)

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.CANCELLED, ScanStatus.ERROR)

    @property
    def can_start(self) -> bool:
        """Whether a new scan may be issued from this state."""
        return not self.is_active

    @classmethod
    def parse(cls, value: str | None) -> ScanStatus:
        """Map a backend status string onto a ScanStatus.

        The worker reports ``failed`` for some domains; it is an error.
        Unknown values are treated as ``scanning``.
        """
        if value is None:
            return cls.SCANNING
        value = str(value).lower()
        if value == "failed":
            return cls.ERROR
        try:
            return cls(value)
        except ValueError:
            return cls.SCANNING


@dataclass(slots=True)
class ScanSession:
    """One logical scan run.

    ``id`` stays ``None`` until the backend acknowledges the start call.
    """

    domain: str
    id: str | None = None
    status: ScanStatus = ScanStatus.IDLE
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def acknowledged(self) -> bool:
        return self.id is not None


@dataclass(frozen=True, slots=True)
class ScanProgress:
    """Snapshot of a running scan. Replaced wholesale on every event."""

    session_id: str | None
    status: ScanStatus = ScanStatus.SCANNING
    current_path: str = ""
    scanned_count: int = 0
    found_count: int = 0
    scanned_size: int = 0
    total_size: int = 0
    percent: float = 0.0
    speed: float = 0.0
    phase: str | None = None

    @classmethod
    def initial(cls) -> ScanProgress:
        """Zeroed progress shown between start() and the first event."""
        return cls(session_id=None)
