"""Shared test fixtures."""

from __future__ import annotations

import pytest

from disktidy.core.events import LocalEventBus
from disktidy.settings import Settings


@pytest.fixture
def bus():
    """In-process event source."""
    return LocalEventBus()


@pytest.fixture
def isolate_settings(tmp_path, monkeypatch):
    """Redirect the settings file to a temp directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.setattr(Settings, "_instance", None)
    return tmp_path / "disktidy" / "settings.json"
