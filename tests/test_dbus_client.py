"""Tests for the D-Bus transport, with the bus replaced by fakes."""

from __future__ import annotations

import json

import pytest
from dbus_next.errors import DBusError

import disktidy.dbus_client as dbus_client
from disktidy.core.backend import BackendError, BackendUnavailableError
from disktidy.dbus_client import DBusBackend, DBusEventSource


class FakeInterface:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.replies: dict[str, str] = {}
        self.errors: dict[str, Exception] = {}
        self.handlers: list = []

    def __getattr__(self, name):
        if not name.startswith("call_"):
            raise AttributeError(name)
        method = name[len("call_") :]

        async def call(*args):
            self.calls.append((method, *args))
            if method in self.errors:
                raise self.errors[method]
            return self.replies.get(method, "")

        return call

    def on_event(self, handler) -> None:
        self.handlers.append(handler)

    def off_event(self, handler) -> None:
        self.handlers.remove(handler)

    def fire(self, name: str, payload) -> None:
        for handler in list(self.handlers):
            handler(name, json.dumps(payload))


class FakeProxy:
    def __init__(self, iface: FakeInterface) -> None:
        self._iface = iface

    def get_interface(self, name: str) -> FakeInterface:
        assert name == "io.github.disktidy.Worker"
        return self._iface


class FakeBus:
    instances: list[FakeBus] = []
    connect_error: Exception | None = None

    def __init__(self, bus_type=None) -> None:
        self.bus_type = bus_type
        self.iface = FakeInterface()
        self.disconnected = False
        FakeBus.instances.append(self)

    async def connect(self) -> FakeBus:
        if FakeBus.connect_error is not None:
            raise FakeBus.connect_error
        return self

    async def introspect(self, bus_name: str, path: str) -> str:
        return "<node/>"

    def get_proxy_object(self, bus_name: str, path: str, introspection) -> FakeProxy:
        return FakeProxy(self.iface)

    def disconnect(self) -> None:
        self.disconnected = True


@pytest.fixture
def fake_bus(monkeypatch):
    FakeBus.instances = []
    FakeBus.connect_error = None
    monkeypatch.setattr(dbus_client, "MessageBus", FakeBus)
    return FakeBus


class TestDBusBackend:
    @pytest.mark.asyncio
    async def test_start_sends_json_params(self, fake_bus):
        backend = DBusBackend()
        iface = await backend.connect()
        iface.replies["start_scan"] = "scan-7"

        assert await backend.start("large_file", {"path": "/home"}) == "scan-7"
        method, domain, params = iface.calls[0]
        assert (method, domain) == ("start_scan", "large_file")
        assert json.loads(params) == {"path": "/home"}

    @pytest.mark.asyncio
    async def test_connects_once(self, fake_bus):
        backend = DBusBackend()
        await backend.pause("large_file", "s1")
        await backend.resume("large_file", "s1")
        assert len(fake_bus.instances) == 1
        assert [c[0] for c in fake_bus.instances[0].iface.calls] == ["pause_scan", "resume_scan"]

    @pytest.mark.asyncio
    async def test_json_replies_decoded(self, fake_bus):
        backend = DBusBackend()
        await backend.connect()
        iface = fake_bus.instances[0].iface
        iface.replies["get_category_files"] = json.dumps({"files": [], "has_more": False, "total": 0})
        iface.replies["get_progress"] = ""

        page = await backend.get_category_files("file_classification", "s1", "video", 50, 50)
        assert page == {"files": [], "has_more": False, "total": 0}
        assert iface.calls[-1] == ("get_category_files", "file_classification", "s1", "video", 50, 50)
        assert await backend.get_progress("file_classification", "s1") is None

    @pytest.mark.asyncio
    async def test_delete_files(self, fake_bus):
        backend = DBusBackend()
        await backend.connect()
        iface = fake_bus.instances[0].iface
        iface.replies["delete_files"] = json.dumps({"deleted_count": 2})

        result = await backend.delete_files(["/a", "/b"], move_to_recycle_bin=False)
        assert result == {"deleted_count": 2}
        assert iface.calls[-1] == ("delete_files", ["/a", "/b"], False)

    @pytest.mark.asyncio
    async def test_unreachable_bus_is_unavailable(self, fake_bus):
        fake_bus.connect_error = FileNotFoundError("no socket")
        with pytest.raises(BackendUnavailableError):
            await DBusBackend().start("large_file", {})

    @pytest.mark.asyncio
    async def test_method_error_is_backend_error(self, fake_bus):
        backend = DBusBackend()
        await backend.connect()
        fake_bus.instances[0].iface.errors["cancel_scan"] = DBusError(
            "org.freedesktop.DBus.Error.Failed", "no such scan"
        )
        with pytest.raises(BackendError, match="no such scan"):
            await backend.cancel("large_file", "s1")

    @pytest.mark.asyncio
    async def test_invalid_json_is_backend_error(self, fake_bus):
        backend = DBusBackend()
        await backend.connect()
        fake_bus.instances[0].iface.replies["get_result"] = "{broken"
        with pytest.raises(BackendError):
            await backend.get_result("large_file", "s1")

    @pytest.mark.asyncio
    async def test_disconnect(self, fake_bus):
        backend = DBusBackend()
        await backend.connect()
        backend.disconnect()
        assert fake_bus.instances[0].disconnected


class TestDBusEventSource:
    @pytest.mark.asyncio
    async def test_signal_fans_out_by_name(self, fake_bus):
        backend = DBusBackend()
        source = DBusEventSource(backend)
        progress, complete = [], []
        await source.listen("large_file:progress", progress.append)
        await source.listen("large_file:complete", complete.append)

        iface = fake_bus.instances[0].iface
        assert len(iface.handlers) == 1
        iface.fire("large_file:progress", {"scanId": "s1", "percent": 5})
        assert progress == [{"scanId": "s1", "percent": 5}]
        assert complete == []

    @pytest.mark.asyncio
    async def test_unlisten_and_close(self, fake_bus):
        source = DBusEventSource(DBusBackend())
        received = []
        unlisten = await source.listen("x", received.append)
        unlisten()
        iface = fake_bus.instances[0].iface
        iface.fire("x", 1)
        assert received == []

        source.close()
        assert iface.handlers == []

    @pytest.mark.asyncio
    async def test_invalid_payload_dropped(self, fake_bus):
        source = DBusEventSource(DBusBackend())
        received = []
        await source.listen("x", received.append)
        fake_bus.instances[0].iface.handlers[0]("x", "{nope")
        assert received == []
