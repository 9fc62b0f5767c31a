"""Generic scan session controller shared by every scan domain."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

from disktidy.core.backend import BackendUnavailableError, ScanBackend
from disktidy.core.errors import ErrorKind, ErrorSlot
from disktidy.core.events import EventCorrelator, EventSource
from disktidy.core.loader import DEFAULT_PAGE_SIZE, DEFAULT_VIRTUALIZE_THRESHOLD, CategoryLoader
from disktidy.core.selection import SelectionSet
from disktidy.models.scan_result import CategoryPage, ScanResult
from disktidy.models.scan_session import ScanProgress, ScanSession, ScanStatus

if TYPE_CHECKING:
    from disktidy.models.domain import ScanDomain
    from disktidy.settings import ClientConfig

log = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 300.0


class ScanInProgressError(Exception):
    """Raised when start() is called while a scan is running or paused."""


class SessionError(Exception):
    """Raised when an operation needs a session the controller does not have."""


class ScanController:
    """Drives one scan domain through its session lifecycle.

    Owns the status, the latest progress snapshot, the result (through its
    category loader), the selection and the error slot. Backend failures
    are caught here and stored in ``errors``; they never propagate out of
    the lifecycle actions.

    ``status`` is updated optimistically by pause/resume, with
    ``pending_confirmation`` set until the backend acknowledges.
    """

    def __init__(
        self,
        domain: ScanDomain,
        backend: ScanBackend,
        events: EventSource,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        virtualize_threshold: int = DEFAULT_VIRTUALIZE_THRESHOLD,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        error_display_seconds: float = 6.0,
        on_changed: Callable[[], None] | None = None,
    ) -> None:
        self.domain = domain
        self.backend = backend
        self.idle_timeout = idle_timeout
        self._on_changed = on_changed

        self.status = ScanStatus.IDLE
        self.pending_confirmation = False
        self.session: ScanSession | None = None
        self.progress: ScanProgress | None = None
        self.result: ScanResult | None = None

        self.errors = ErrorSlot(error_display_seconds, on_changed=self._notify)
        self.loader = CategoryLoader(
            self._fetch_page,
            page_size=page_size,
            virtualize_threshold=virtualize_threshold,
            on_changed=self._notify,
            on_error=lambda message: self.errors.set(message, ErrorKind.COMMAND),
        )
        self.selection = SelectionSet(self.loader, on_changed=self._notify)

        self._correlator = EventCorrelator(events)
        self._listeners: asyncio.Future | None = None
        self._generation = 0
        self._command_in_flight = False
        self._progress_closed = False
        self._idle_timer: asyncio.TimerHandle | None = None
        self._last_options: dict[str, Any] | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @classmethod
    def from_config(
        cls,
        domain: ScanDomain,
        backend: ScanBackend,
        events: EventSource,
        config: ClientConfig,
        **kwargs: Any,
    ) -> ScanController:
        return cls(
            domain,
            backend,
            events,
            page_size=config.page_size,
            virtualize_threshold=config.virtualize_threshold,
            idle_timeout=config.idle_timeout,
            error_display_seconds=config.error_display_seconds,
            **kwargs,
        )

    # -- Queries --

    @property
    def session_id(self) -> str | None:
        return self.session.id if self.session is not None else None

    @property
    def error(self) -> str | None:
        return self.errors.message

    @property
    def subscription_count(self) -> int:
        return self._correlator.subscription_count()

    # -- Listeners --

    async def setup_listeners(self) -> None:
        """Subscribe to the domain's event channels.

        Safe to call repeatedly and concurrently; only one registration
        per channel is ever made. A failed registration may be retried.
        """
        if self._closed:
            raise SessionError(f"{self.domain.id} controller has been cleaned up")
        if self._listeners is None:
            self._listeners = asyncio.ensure_future(self._subscribe())
        task = self._listeners
        try:
            await task
        except Exception:
            if self._listeners is task:
                self._listeners = None
            raise

    async def _subscribe(self) -> None:
        await self._correlator.subscribe(self.domain.progress_event, self._on_progress, consumer=self)
        await self._correlator.subscribe(self.domain.complete_event, self._on_complete, consumer=self)
        log.debug("Listening for %s events", self.domain.id)

    # -- Lifecycle actions --

    async def start(self, **options: Any) -> str | None:
        """Start a new scan and return its session id, or None on failure.

        Raises ScanInProgressError if a scan is already running or paused.
        """
        if self.status.is_active:
            raise ScanInProgressError(f"A {self.domain.name} scan is already {self.status.value}")

        params = self.domain.start_params(**options)
        self._last_options = dict(options)
        self._drop_session()
        self._generation += 1
        generation = self._generation

        self.session = ScanSession(domain=self.domain.id, status=ScanStatus.SCANNING)
        self._set_status(ScanStatus.SCANNING)
        self.progress = ScanProgress.initial()
        self._progress_closed = False
        self._correlator.open()
        self._notify()

        log.info("Starting %s scan", self.domain.id)
        try:
            await self.setup_listeners()
            session_id = await self.backend.start(self.domain.id, params)
        except BackendUnavailableError as exc:
            log.warning("Cannot start %s scan: %s", self.domain.id, exc)
            self._start_failed(generation, str(exc), ErrorKind.ENVIRONMENT)
            return None
        except Exception as exc:
            log.warning("Starting %s scan failed: %s", self.domain.id, exc)
            self._start_failed(generation, f"Failed to start scan: {exc}", ErrorKind.START)
            return None

        session_id = str(session_id) if session_id else None
        if generation != self._generation:
            # Cancelled, reset or cleaned up before the worker acknowledged.
            if session_id:
                log.info("Cancelling %s scan %s that was abandoned before it started", self.domain.id, session_id)
                self._correlator.retire(session_id)
                await self._best_effort("cancel", self.backend.cancel, session_id)
                if self._closed:
                    await self._best_effort("clear result", self.backend.clear_result, session_id)
            return None
        if not session_id:
            self._start_failed(generation, "Failed to start scan: worker returned no session id", ErrorKind.START)
            return None

        self.session.id = session_id
        if self.status.is_active:
            self._correlator.bind(session_id)
            if self.status is ScanStatus.SCANNING:
                self._arm_idle_timer()
        else:
            # A terminal event arrived before the acknowledgement.
            self._correlator.finish(session_id)
        log.info("%s scan started: %s", self.domain.name, session_id)
        self._notify()
        return session_id

    async def pause(self) -> bool:
        """Pause the running scan. Returns True once the backend confirms."""
        return await self._command(ScanStatus.SCANNING, ScanStatus.PAUSED, "pause", self.backend.pause)

    async def resume(self) -> bool:
        """Resume a paused scan. Returns True once the backend confirms."""
        return await self._command(ScanStatus.PAUSED, ScanStatus.SCANNING, "resume", self.backend.resume)

    async def _command(
        self,
        expected: ScanStatus,
        target: ScanStatus,
        verb: str,
        call: Callable[[str, str], Awaitable[None]],
    ) -> bool:
        session_id = self.session_id
        if session_id is None or self.status is not expected:
            log.debug("Ignoring %s of %s scan in state %s", verb, self.domain.id, self.status.value)
            return False

        self._set_status(target)
        self.pending_confirmation = True
        self._command_in_flight = True
        if target is ScanStatus.SCANNING:
            self._arm_idle_timer()
        else:
            self._disarm_idle_timer()
        self._notify()

        try:
            await call(self.domain.id, session_id)
        except Exception as exc:
            # The scan may still be running on the worker: keep the
            # optimistic status, let the next progress event reconcile.
            log.warning("Failed to %s %s scan %s: %s", verb, self.domain.id, session_id, exc)
            self.errors.set(f"Failed to {verb} scan: {exc}", ErrorKind.COMMAND)
            return False
        finally:
            self._command_in_flight = False

        if session_id == self.session_id and self.status is target:
            self.pending_confirmation = False
            self.errors.clear()
        self._notify()
        return True

    async def cancel(self) -> None:
        """Cancel the current scan.

        Local state is cleared right away; the backend call is best-effort.
        Without a session id yet, the cancel is sent once start() gets one.
        """
        if not self.status.is_active:
            return
        session_id = self.session_id
        self._generation += 1
        self._drop_session()
        self._set_status(ScanStatus.CANCELLED)
        self._notify()

        if session_id is None:
            log.debug("Cancel of %s scan deferred until it is acknowledged", self.domain.id)
            return
        log.info("Cancelling %s scan %s", self.domain.id, session_id)
        try:
            await self.backend.cancel(self.domain.id, session_id)
        except Exception as exc:
            log.warning("Failed to cancel %s scan %s: %s", self.domain.id, session_id, exc)
            self.errors.set(f"Failed to cancel scan: {exc}", ErrorKind.COMMAND)

    async def retry(self) -> str | None:
        """Start again with the options of the last start() call."""
        if self._last_options is None:
            raise SessionError(f"No previous {self.domain.name} scan to retry")
        return await self.start(**self._last_options)

    async def reset(self) -> None:
        """Return to idle from any state, discarding session and result."""
        session_id = self.session_id
        was_active = self.status.is_active
        self._generation += 1
        self._drop_session()
        self.session = None
        self._set_status(ScanStatus.IDLE)
        self.errors.clear()
        self._notify()

        if session_id is None:
            return
        if was_active:
            await self._best_effort("cancel", self.backend.cancel, session_id)
        await self._best_effort("clear result", self.backend.clear_result, session_id)

    async def cleanup(self) -> None:
        """Tear down subscriptions and timers. Further calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._disarm_idle_timer()
        self.errors.clear()
        if self._listeners is not None and not self._listeners.done():
            self._listeners.cancel()
        self._correlator.close()
        for task in list(self._tasks):
            task.cancel()

        session_id = self.session_id
        if session_id is not None:
            await self._best_effort("clear result", self.backend.clear_result, session_id)
        log.debug("%s controller cleaned up", self.domain.id)

    def clear_error(self) -> None:
        self.errors.clear()

    # -- Polling --

    async def refresh_progress(self) -> ScanProgress | None:
        """Poll the worker for progress, e.g. after a missed event."""
        session_id = self.session_id
        if session_id is None or not self.status.is_active:
            return None
        try:
            payload = await self.backend.get_progress(self.domain.id, session_id)
        except Exception as exc:
            log.warning("Failed to get %s progress: %s", self.domain.id, exc)
            self.errors.set(f"Failed to refresh progress: {exc}", ErrorKind.COMMAND)
            return None
        if payload is not None and session_id == self.session_id:
            self._on_progress(payload)
        return self.progress

    async def fetch_result(self) -> ScanResult | None:
        """Fetch the completed result from the worker if the event was missed."""
        if self.result is not None:
            return self.result
        session_id = self.session_id
        if session_id is None:
            return None
        generation = self._generation
        try:
            payload = await self.backend.get_result(self.domain.id, session_id)
        except Exception as exc:
            log.warning("Failed to get %s result: %s", self.domain.id, exc)
            self.errors.set(f"Failed to fetch result: {exc}", ErrorKind.COMMAND)
            return None
        if payload is None or generation != self._generation:
            return None
        try:
            result = self.domain.parse_result(payload, session_id)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.warning("Malformed %s result: %s", self.domain.id, exc)
            self._fail(f"Could not read scan result: {exc}", ErrorKind.SCAN)
            return None
        self._apply_result(result)
        return result

    # -- Result access --

    async def load_more(
        self,
        category_key: str,
        offset: int | None = None,
        limit: int | None = None,
    ) -> CategoryPage | None:
        return await self.loader.load_more(category_key, offset, limit)

    def remove_entries(self, keys: Iterable[str]) -> None:
        """Drop entries from the result and the selection without a re-scan."""
        keys = set(keys)
        self.loader.remove_entries(keys)
        self.selection.discard(keys)
        if self.result is not None:
            self.result = self.loader.snapshot(self.result.session_id, self.result.duration_ms)
        self._notify()

    async def _fetch_page(self, category_key: str, offset: int, limit: int) -> CategoryPage | None:
        session_id = self.session_id
        if session_id is None or not self.domain.supports_paging:
            return None
        payload = await self.backend.get_category_files(self.domain.id, session_id, category_key, offset, limit)
        if payload is None:
            return None
        return self.domain.parse_page(payload)

    # -- Event handlers --

    def _on_progress(self, payload: Any) -> None:
        session_id = self.domain.session_id_of(payload)
        if self._progress_closed or not self._correlator.accepts(session_id):
            log.debug("Dropping %s progress for session %s", self.domain.id, session_id)
            return
        try:
            progress = self.domain.parse_progress(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.warning("Malformed %s progress event: %s", self.domain.id, exc)
            return

        status = progress.status
        if status is ScanStatus.IDLE:
            return
        if status is ScanStatus.COMPLETED:
            self._progress_closed = True
            self.progress = None
            self.pending_confirmation = False
            self._set_status(ScanStatus.COMPLETED)
            self._disarm_idle_timer()
        elif status is ScanStatus.ERROR:
            message = payload.get("error") or payload.get("message") or "Scan failed"
            self._fail(str(message), ErrorKind.SCAN)
            return
        elif status is ScanStatus.CANCELLED:
            self._drop_session()
            self._set_status(ScanStatus.CANCELLED)
        else:
            self.progress = progress
            if self.pending_confirmation and not self._command_in_flight and _reports_status(payload):
                if status is not self.status:
                    log.info("%s scan is %s on the worker", self.domain.name, status.value)
                self._set_status(status)
                self.pending_confirmation = False
            if self.status is ScanStatus.SCANNING:
                self._arm_idle_timer()
        self._notify()

    def _on_complete(self, payload: Any) -> None:
        session_id = self.domain.session_id_of(payload)
        if not self._correlator.accepts(session_id):
            log.debug("Dropping %s completion for session %s", self.domain.id, session_id)
            return
        try:
            result = self.domain.parse_result(payload, self.session_id)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.warning("Malformed %s result: %s", self.domain.id, exc)
            self._fail(f"Could not read scan result: {exc}", ErrorKind.SCAN)
            return
        self._apply_result(result)

    def _apply_result(self, result: ScanResult) -> None:
        self._disarm_idle_timer()
        self._correlator.finish(result.session_id or self.session_id)
        self._progress_closed = True
        self.result = result
        self.loader.load(result)
        self.selection.clear()
        self.progress = None
        self.pending_confirmation = False
        self._set_status(ScanStatus.COMPLETED)
        self.errors.clear()
        log.info(
            "%s scan completed: %d files in %d categories",
            self.domain.name,
            result.file_count,
            len(result.categories),
        )
        self._notify()

    # -- Internals --

    def _set_status(self, status: ScanStatus) -> None:
        self.status = status
        if self.session is not None:
            self.session.status = status

    def _drop_session(self) -> None:
        """Forget progress, result and selection, and retire the session id."""
        self._disarm_idle_timer()
        self._correlator.retire(self.session_id)
        self.pending_confirmation = False
        self.progress = None
        self.result = None
        self.selection.clear()
        self.loader.clear()
        self.errors.clear()

    def _fail(self, message: str, kind: ErrorKind) -> None:
        self._disarm_idle_timer()
        self._correlator.finish(self.session_id)
        self._progress_closed = True
        self.progress = None
        self.pending_confirmation = False
        self._set_status(ScanStatus.ERROR)
        self.errors.set(message, kind)
        self._notify()

    def _start_failed(self, generation: int, message: str, kind: ErrorKind) -> None:
        if generation != self._generation:
            log.debug("Ignoring start failure of an abandoned %s scan", self.domain.id)
            return
        self._fail(message, kind)

    def _arm_idle_timer(self) -> None:
        self._disarm_idle_timer()
        if self.idle_timeout <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._idle_timer = loop.call_later(self.idle_timeout, self._on_idle_timeout)

    def _disarm_idle_timer(self) -> None:
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _on_idle_timeout(self) -> None:
        self._idle_timer = None
        if self.status is not ScanStatus.SCANNING:
            return
        session_id = self.session_id
        log.warning("%s scan %s stalled for %ss", self.domain.id, session_id, self.idle_timeout)
        self._fail(f"Scan stalled: no progress for {self.idle_timeout:g} seconds", ErrorKind.SCAN)
        if session_id is not None:
            task = asyncio.ensure_future(self._best_effort("cancel", self.backend.cancel, session_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _best_effort(self, what: str, call: Callable[[str, str], Awaitable[Any]], session_id: str) -> None:
        try:
            await call(self.domain.id, session_id)
        except Exception as exc:
            log.warning("Best-effort %s of %s scan %s failed: %s", what, self.domain.id, session_id, exc)

    def _notify(self) -> None:
        if self._on_changed:
            self._on_changed()


def _reports_status(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("status") is not None
