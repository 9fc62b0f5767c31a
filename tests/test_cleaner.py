"""Tests for the delete/cleanup coordinator."""

from __future__ import annotations

import pytest

from disktidy.core.backend import BackendError
from disktidy.core.cleaner import CleanupCoordinator
from disktidy.core.controller import ScanController
from disktidy.core.errors import ErrorKind
from disktidy.domains.large_file import LargeFileDomain
from disktidy.domains.software_residue import SoftwareResidueDomain
from tests.test_controller import FakeBackend, raw_files


@pytest.fixture
def backend():
    return FakeBackend()


async def completed(backend, bus, files) -> ScanController:
    controller = ScanController(LargeFileDomain(), backend, bus)
    session_id = await controller.start()
    bus.emit("large_file:complete", {"scanId": session_id, "files": files})
    return controller


class TestCleanupCoordinator:
    @pytest.mark.asyncio
    async def test_deleting_whole_category_drops_it(self, backend, bus):
        controller = await completed(backend, bus, raw_files("video", 100) + raw_files("audio", 5))
        controller.selection.toggle_category("video")
        assert controller.selection.selected_count == 100

        result = await CleanupCoordinator(controller).delete()

        assert result.deleted_count == 100
        assert controller.selection.selected_count == 0
        assert controller.result.category("video") is None
        assert controller.loader.get("video") is None
        assert controller.result.file_count == 5
        assert len(backend.calls_named("delete_files")) == 1
        assert len(backend.calls_named("start")) == 1

    @pytest.mark.asyncio
    async def test_sends_paths_and_recycle_flag(self, backend, bus):
        controller = await completed(backend, bus, raw_files("audio", 2))
        controller.selection.select_all()
        await CleanupCoordinator(controller, move_to_recycle_bin=False).delete()
        _, paths, recycle = backend.calls_named("delete_files")[0]
        assert paths == ["/data/audio/file0.bin", "/data/audio/file1.bin"]
        assert recycle is False

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_failed_entries(self, backend, bus):
        controller = await completed(backend, bus, raw_files("audio", 4))
        controller.selection.select_all()
        backend.delete_response = {
            "deleted_count": 3,
            "deleted_size": 3072,
            "failed_count": 1,
            "failed_items": [{"path": "/data/audio/file2.bin", "error": "in use"}],
        }

        result = await CleanupCoordinator(controller).delete()

        assert result.partial
        assert controller.error is None
        state = controller.loader.get("audio")
        assert [f.path for f in state.files] == ["/data/audio/file2.bin"]
        assert controller.selection.keys == {"/data/audio/file2.bin"}

    @pytest.mark.asyncio
    async def test_failed_call_changes_nothing(self, backend, bus):
        controller = await completed(backend, bus, raw_files("audio", 3))
        controller.selection.select_all()
        before = controller.result
        backend.fail["delete_files"] = BackendError("access denied")

        assert await CleanupCoordinator(controller).delete() is None
        assert controller.result is before
        assert controller.selection.selected_count == 3
        assert controller.errors.kind is ErrorKind.DELETE
        assert "access denied" in controller.error

    @pytest.mark.asyncio
    async def test_empty_selection_makes_no_call(self, backend, bus):
        controller = await completed(backend, bus, raw_files("audio", 3))
        assert await CleanupCoordinator(controller).delete() is None
        assert backend.calls_named("delete_files") == []

    @pytest.mark.asyncio
    async def test_residue_unsafe_items_skipped_and_ids_sent(self, backend, bus):
        controller = ScanController(SoftwareResidueDomain(), backend, bus)
        session_id = await controller.start()
        bus.emit(
            "software_residue:complete",
            {
                "scanId": session_id,
                "results": [
                    {
                        "residue_type": "registry_key",
                        "items": [
                            {"id": "r1", "path": "HKCU\\Software\\Old", "size": 0, "safe_to_delete": True},
                            {"id": "r2", "path": "HKCU\\Software\\Old", "size": 0, "safe_to_delete": False},
                        ],
                    }
                ],
            },
        )
        controller.selection.select_all()
        coordinator = CleanupCoordinator(controller)
        plan = coordinator.plan()
        assert [e.key for e in plan.skipped] == ["r2"]

        await coordinator.delete()
        _, keys, _ = backend.calls_named("delete_files")[0]
        assert keys == ["r1"]
        assert controller.selection.keys == {"r2"}
