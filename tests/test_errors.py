"""Tests for the error slot."""

from __future__ import annotations

import asyncio

import pytest

from disktidy.core.errors import ErrorKind, ErrorSlot


class TestErrorSlot:
    @pytest.mark.asyncio
    async def test_transient_error_clears_after_window(self):
        slot = ErrorSlot(display_seconds=0.01)
        slot.set("pause failed", ErrorKind.COMMAND)
        assert slot
        await asyncio.sleep(0.05)
        assert not slot
        assert slot.kind is None

    @pytest.mark.asyncio
    async def test_start_error_persists(self):
        slot = ErrorSlot(display_seconds=0.01)
        slot.set("could not start", ErrorKind.START)
        await asyncio.sleep(0.05)
        assert slot.message == "could not start"

    @pytest.mark.asyncio
    async def test_new_error_restarts_window(self):
        slot = ErrorSlot(display_seconds=0.01)
        slot.set("first", ErrorKind.DELETE)
        slot.set("second", ErrorKind.SCAN)
        await asyncio.sleep(0.05)
        assert slot.message == "second"

    def test_clear_without_loop(self):
        changes = []
        slot = ErrorSlot(on_changed=lambda: changes.append(1))
        slot.set("x", ErrorKind.COMMAND)
        slot.clear()
        slot.clear()
        assert slot.message is None
        assert len(changes) == 2

    def test_transient_kinds(self):
        assert ErrorKind.COMMAND.transient
        assert ErrorKind.DELETE.transient
        assert not ErrorKind.ENVIRONMENT.transient
        assert not ErrorKind.START.transient
        assert not ErrorKind.SCAN.transient
