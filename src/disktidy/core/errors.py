"""User-visible error state with a display window."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

log = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    ENVIRONMENT = "environment"  # host capability missing, no retry
    START = "start"
    SCAN = "scan"
    COMMAND = "command"  # pause/resume/cancel, scan may still run
    DELETE = "delete"

    @property
    def transient(self) -> bool:
        """Transient errors clear themselves after the display window.

        Only command and delete failures are transient. Environment, start
        and scan failures end the session, and their message backs the
        retry prompt, so it stays until ``clear()`` or the next successful
        action instead of expiring on a timer.
        """
        return self in (ErrorKind.COMMAND, ErrorKind.DELETE)


class ErrorSlot:
    """Holds the single error message a controller exposes for display.

    Transient kinds auto-clear after *display_seconds*; the others persist
    until dismissed or cleared by the next successful action.
    """

    def __init__(self, display_seconds: float = 6.0, on_changed: Callable[[], None] | None = None) -> None:
        self.display_seconds = display_seconds
        self._on_changed = on_changed
        self.message: str | None = None
        self.kind: ErrorKind | None = None
        self._timer: asyncio.TimerHandle | None = None

    def __bool__(self) -> bool:
        return self.message is not None

    def set(self, message: str, kind: ErrorKind) -> None:
        self._cancel_timer()
        self.message = message
        self.kind = kind
        if kind.transient and self.display_seconds > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._timer = loop.call_later(self.display_seconds, self._expire)
        self._notify()

    def clear(self) -> None:
        self._cancel_timer()
        if self.message is None:
            return
        self.message = None
        self.kind = None
        self._notify()

    def _expire(self) -> None:
        self._timer = None
        log.debug("Error display window elapsed: %s", self.message)
        self.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self) -> None:
        if self._on_changed:
            self._on_changed()
