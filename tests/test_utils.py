"""Tests for formatting helpers."""

from __future__ import annotations

import pytest

from disktidy.utils import bytes_to_human, format_elapsed, parse_option, xdg_config_home


class TestFormatting:
    def test_bytes_to_human(self):
        assert bytes_to_human(0) == "0 B"
        assert bytes_to_human(512) == "512 B"
        assert bytes_to_human(1536) == "1.5 KB"
        assert bytes_to_human(500 * 1024 * 1024) == "500.0 MB"
        assert bytes_to_human(-2048) == "-2.0 KB"

    def test_format_elapsed(self):
        assert format_elapsed(0.25) == "250 ms"
        assert format_elapsed(12.34) == "12.3s"
        assert format_elapsed(125) == "2m 5s"

    def test_xdg_config_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert xdg_config_home() == tmp_path


class TestParseOption:
    def test_json_values(self):
        assert parse_option("min_size_bytes=1024") == ("min_size_bytes", 1024)
        assert parse_option("include_hidden=true") == ("include_hidden", True)
        assert parse_option('exclude_paths=["/tmp"]') == ("exclude_paths", ["/tmp"])

    def test_plain_string(self):
        assert parse_option("path=/home/user") == ("path", "/home/user")
        assert parse_option("path=") == ("path", "")

    def test_rejects_missing_key(self):
        with pytest.raises(ValueError):
            parse_option("no-equals")
        with pytest.raises(ValueError):
            parse_option("=1")
