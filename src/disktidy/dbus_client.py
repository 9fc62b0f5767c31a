"""D-Bus transport to the disk worker process.

D-Bus methods use PascalCase per D-Bus convention; dbus-next exposes them
on the proxy as ``call_<snake_case>``. Structured values travel as JSON
strings in both directions.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from dbus_next import BusType
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError, InvalidAddressError

from disktidy.core.backend import BackendError, BackendUnavailableError, ScanBackend
from disktidy.core.events import EventHandler, LocalEventBus, Unlisten

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.disktidy"
_OBJECT_PATH = "/io/github/disktidy"
_INTERFACE = "io.github.disktidy.Worker"


class DBusBackend(ScanBackend):
    """Backend that forwards every command to the worker over D-Bus.

    The connection is opened lazily on the first call and shared by the
    event source.
    """

    def __init__(self, bus_type: BusType = BusType.SESSION) -> None:
        self._bus_type = bus_type
        self._bus: MessageBus | None = None
        self._iface: Any = None
        self._lock = asyncio.Lock()

    async def connect(self) -> Any:
        """Connect and return the worker interface proxy."""
        async with self._lock:
            if self._iface is not None:
                return self._iface
            try:
                bus = await MessageBus(bus_type=self._bus_type).connect()
                introspection = await bus.introspect(_BUS_NAME, _OBJECT_PATH)
            except (OSError, DBusError, InvalidAddressError) as e:
                raise BackendUnavailableError(f"Disk worker is not available: {e}") from e
            proxy = bus.get_proxy_object(_BUS_NAME, _OBJECT_PATH, introspection)
            self._iface = proxy.get_interface(_INTERFACE)
            self._bus = bus
            log.debug("Connected to %s", _BUS_NAME)
            return self._iface

    def disconnect(self) -> None:
        if self._bus is not None:
            self._bus.disconnect()
        self._bus = None
        self._iface = None

    async def _call(self, method: str, *args: Any) -> Any:
        iface = await self.connect()
        try:
            reply = await getattr(iface, f"call_{method}")(*args)
        except DBusError as e:
            raise BackendError(f"{method} failed: {e.text}") from e
        return reply

    async def _call_json(self, method: str, *args: Any) -> Any:
        reply = await self._call(method, *args)
        if not reply:
            return None
        try:
            return json.loads(reply)
        except json.JSONDecodeError as e:
            raise BackendError(f"{method} returned invalid JSON: {e}") from e

    # -- ScanBackend --

    async def start(self, domain: str, params: dict[str, Any]) -> str:
        return await self._call("start_scan", domain, json.dumps(params))

    async def pause(self, domain: str, session_id: str) -> None:
        await self._call("pause_scan", domain, session_id)

    async def resume(self, domain: str, session_id: str) -> None:
        await self._call("resume_scan", domain, session_id)

    async def cancel(self, domain: str, session_id: str) -> None:
        await self._call("cancel_scan", domain, session_id)

    async def get_progress(self, domain: str, session_id: str) -> dict[str, Any] | None:
        return await self._call_json("get_progress", domain, session_id)

    async def get_result(self, domain: str, session_id: str) -> Any | None:
        return await self._call_json("get_result", domain, session_id)

    async def clear_result(self, domain: str, session_id: str) -> None:
        await self._call("clear_result", domain, session_id)

    async def get_category_files(
        self,
        domain: str,
        session_id: str,
        category: str,
        offset: int,
        limit: int,
    ) -> dict[str, Any] | None:
        return await self._call_json("get_category_files", domain, session_id, category, offset, limit)

    async def delete_files(self, paths: list[str], *, move_to_recycle_bin: bool = True) -> dict[str, Any]:
        return await self._call_json("delete_files", paths, move_to_recycle_bin) or {}


class DBusEventSource:
    """Event source fed by the worker's ``Event(name, payload_json)`` signal.

    One signal handler is attached per connection; listeners are fanned
    out through a local bus.
    """

    def __init__(self, backend: DBusBackend) -> None:
        self._backend = backend
        self._local = LocalEventBus()
        self._iface: Any = None
        self._lock = asyncio.Lock()

    async def listen(self, event_name: str, handler: EventHandler) -> Unlisten:
        await self._attach()
        return await self._local.listen(event_name, handler)

    async def _attach(self) -> None:
        async with self._lock:
            if self._iface is not None:
                return
            iface = await self._backend.connect()
            iface.on_event(self._on_signal)
            self._iface = iface

    def close(self) -> None:
        if self._iface is not None:
            self._iface.off_event(self._on_signal)
            self._iface = None

    def _on_signal(self, name: str, payload_json: str) -> None:
        try:
            payload = json.loads(payload_json) if payload_json else None
        except json.JSONDecodeError as e:
            log.warning("Dropping '%s' event with invalid payload: %s", name, e)
            return
        self._local.emit(name, payload)
