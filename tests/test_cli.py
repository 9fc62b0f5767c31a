"""Tests for the command-line interface."""

from __future__ import annotations

import json
from contextlib import contextmanager

import pytest
from click.testing import CliRunner

import disktidy.cli as cli
from disktidy.core.backend import BackendUnavailableError
from tests.test_controller import FakeBackend, raw_files


@pytest.fixture
def backend(bus, monkeypatch, isolate_settings):
    backend = FakeBackend()

    @contextmanager
    def fake_worker():
        yield backend, bus

    monkeypatch.setattr(cli, "_worker", fake_worker)
    backend.after_start = lambda session_id: bus.emit(
        "large_file:complete",
        {"scanId": session_id, "files": raw_files("video", 3, size=1000) + raw_files("audio", 2, size=10)},
    )
    return backend


@pytest.fixture
def runner():
    return CliRunner()


class TestDomainsCommand:
    def test_lists_domains_as_json(self, runner):
        result = runner.invoke(cli.main, ["domains", "--json"])
        assert result.exit_code == 0
        ids = [d["id"] for d in json.loads(result.output)]
        assert ids == ["large_file", "junk_file", "app_cache", "software_residue", "file_classification"]

    def test_lists_domains(self, runner):
        result = runner.invoke(cli.main, ["domains"])
        assert result.exit_code == 0
        assert "Large Files" in result.output


class TestScanCommand:
    def test_scan_json(self, runner, backend):
        result = runner.invoke(cli.main, ["scan", "large_file", "-o", "path=/home", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "completed"
        assert data["file_count"] == 5
        assert [c["key"] for c in data["categories"]] == ["video", "audio"]
        assert backend.calls_named("start")[0][2]["path"] == "/home"
        assert backend.calls_named("clear_result")

    def test_scan_text(self, runner, backend):
        result = runner.invoke(cli.main, ["scan", "large_file"])
        assert result.exit_code == 0, result.output
        assert "Videos" in result.output
        assert "Total:" in result.output

    def test_scan_failure_exits_nonzero(self, runner, backend):
        backend.fail["start"] = BackendUnavailableError("Disk worker is not available")
        result = runner.invoke(cli.main, ["scan", "large_file", "--json"])
        assert result.exit_code == 1
        assert "Disk worker is not available" in result.output

    def test_unknown_domain(self, runner, backend):
        result = runner.invoke(cli.main, ["scan", "nope"])
        assert result.exit_code == 1
        assert backend.calls == []

    def test_bad_option(self, runner, backend):
        result = runner.invoke(cli.main, ["scan", "large_file", "-o", "novalue"])
        assert result.exit_code == 2


class TestCleanCommand:
    def test_clean_category(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file", "-c", "video", "--yes", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "cleaned"
        assert data["deleted_count"] == 3
        _, paths, recycle = backend.calls_named("delete_files")[0]
        assert paths == [f"/data/video/file{i}.bin" for i in range(3)]
        assert recycle is True

    def test_clean_permanent(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file", "--yes", "--permanent", "--json"])
        assert result.exit_code == 0, result.output
        _, paths, recycle = backend.calls_named("delete_files")[0]
        assert len(paths) == 5
        assert recycle is False

    def test_dry_run(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file", "--dry-run", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data == {"status": "dry_run", "would_delete": 5, "would_free_bytes": 3020, "skipped": 0}
        assert backend.calls_named("delete_files") == []

    def test_declined_confirmation(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file"], input="n\n")
        assert result.exit_code == 0, result.output
        assert "Aborted." in result.output
        assert backend.calls_named("delete_files") == []

    def test_missing_category_is_nothing_to_clean(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file", "-c", "archive", "--yes", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "nothing_to_clean"

    def test_repeated_category_cleaned_once(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file", "-c", "video", "-c", "video", "--yes", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["deleted_count"] == 3
        _, paths, _ = backend.calls_named("delete_files")[0]
        assert paths == [f"/data/video/file{i}.bin" for i in range(3)]

    def test_search_and_type_filter(self, runner, backend):
        result = runner.invoke(
            cli.main, ["clean", "large_file", "-s", "FILE1", "-t", ".bin", "--yes", "--json"]
        )
        assert result.exit_code == 0, result.output
        _, paths, _ = backend.calls_named("delete_files")[0]
        assert paths == ["/data/video/file1.bin", "/data/audio/file1.bin"]

    def test_type_filter_with_no_match(self, runner, backend):
        result = runner.invoke(cli.main, ["clean", "large_file", "-t", "iso", "--yes", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "nothing_to_clean"
