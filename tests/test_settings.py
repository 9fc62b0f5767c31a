"""Tests for the settings store and client config."""

from __future__ import annotations

import json

from disktidy.settings import ClientConfig, Settings


class TestSettings:
    def test_dot_notation_roundtrip(self, tmp_path):
        path = tmp_path / "settings.json"
        settings = Settings(path)
        settings.set("scan.page_size", 25)

        assert settings.get("scan.page_size") == 25
        assert json.loads(path.read_text()) == {"scan": {"page_size": 25}}
        assert Settings(path).get("scan.page_size") == 25

    def test_missing_key_default(self, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        assert settings.get("scan.page_size") is None
        assert settings.get("scan.page_size", 50) == 50

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        assert Settings(path).get("scan.page_size") is None

    def test_non_object_file_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")
        assert Settings(path).get("scan") is None

    def test_instance_uses_xdg_config_home(self, isolate_settings):
        Settings.instance().set("ui.error_display_seconds", 3)
        assert isolate_settings.exists()


class TestClientConfig:
    def test_defaults(self, tmp_path):
        config = ClientConfig.from_settings(Settings(tmp_path / "settings.json"))
        assert config == ClientConfig()
        assert config.page_size == 50
        assert config.virtualize_threshold == 100
        assert config.idle_timeout == 300
        assert config.error_display_seconds == 6
        assert config.move_to_recycle_bin is True

    def test_reads_values(self, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        settings.set("scan.page_size", 200)
        settings.set("scan.idle_timeout", 0)
        settings.set("clean.move_to_recycle_bin", False)

        config = ClientConfig.from_settings(settings)
        assert config.page_size == 200
        assert config.idle_timeout == 0
        assert config.move_to_recycle_bin is False

    def test_invalid_values_fall_back(self, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        settings.set("scan.page_size", "lots")
        settings.set("scan.virtualize_threshold", -1)
        settings.set("scan.idle_timeout", True)
        settings.set("clean.move_to_recycle_bin", 1)

        config = ClientConfig.from_settings(settings)
        assert config.page_size == 50
        assert config.virtualize_threshold == 100
        assert config.idle_timeout == 300
        assert config.move_to_recycle_bin is True
