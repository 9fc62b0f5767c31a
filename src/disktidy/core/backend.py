"""Worker backend contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BackendError(Exception):
    """Raised when a call into the worker process fails."""


class BackendUnavailableError(BackendError):
    """Raised when the worker (or the bus that reaches it) is not available.

    This is an environment error: fatal to the requested operation and
    not worth retrying automatically.
    """


class ScanBackend(ABC):
    """Commands exposed by the external worker process.

    Every scan domain shares the same command shape; the domain id selects
    which scanner the worker addresses. Payloads are plain JSON-compatible
    values and are decoded by the domain.
    """

    @abstractmethod
    async def start(self, domain: str, params: dict[str, Any]) -> str:
        """Start a scan and return its session id."""

    @abstractmethod
    async def pause(self, domain: str, session_id: str) -> None:
        """Pause a running scan."""

    @abstractmethod
    async def resume(self, domain: str, session_id: str) -> None:
        """Resume a paused scan."""

    @abstractmethod
    async def cancel(self, domain: str, session_id: str) -> None:
        """Cancel a scan. Best-effort on the worker side."""

    @abstractmethod
    async def get_progress(self, domain: str, session_id: str) -> dict[str, Any] | None:
        """Return the latest progress payload, or None if unknown."""

    @abstractmethod
    async def get_result(self, domain: str, session_id: str) -> Any | None:
        """Return the completion payload, or None if not finished."""

    @abstractmethod
    async def clear_result(self, domain: str, session_id: str) -> None:
        """Drop the worker-side result cache for a session."""

    @abstractmethod
    async def get_category_files(
        self,
        domain: str,
        session_id: str,
        category: str,
        offset: int,
        limit: int,
    ) -> dict[str, Any] | None:
        """Return ``{files, has_more, total}`` for one page, or None."""

    @abstractmethod
    async def delete_files(self, paths: list[str], *, move_to_recycle_bin: bool = True) -> dict[str, Any]:
        """Delete entries and return ``{deleted_count, deleted_size, failed_count, failed_items}``."""
