# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the Typer CLI commands and output formatters."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from sitewarden.cli.app import app
from sitewarden.core.logging import JsonFormatter, TextFormatter, redact_sensitive

runner = CliRunner()

WEBSHELL = "<?php\n// loader\neval(base64_decode($_POST['cmd']));\n"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in ("SITEWARDEN_SITE_ROOT", "SITEWARDEN_SITE_DB_PATH", "SITEWARDEN_AI_DEEP_SCAN_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SITEWARDEN_STATE_DB_PATH", str(tmp_path / "cli-state.db"))
    monkeypatch.setenv("SITEWARDEN_HOME_DIR", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    with patch("sitewarden.core.logging.setup_logging"):
        yield


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "sitewarden v0.4.0" in result.stdout


class TestScanCommands:
    def test_scan_json(self, site_root, write_file):
        write_file(site_root, "shell.php", WEBSHELL)
        result = runner.invoke(app, ["scan", "--site-root", str(site_root), "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["status"] == "completed"
        assert data["suspicious"] == 1
        assert data["findings"][0]["path"] == "shell.php"

    def test_scan_console(self, site_root, write_file):
        write_file(site_root, "index.php", "<?php\necho 'home';\n")
        result = runner.invoke(app, ["scan", "-r", str(site_root)])
        assert result.exit_code == 0, result.output
        assert "completed" in result.stdout.lower()

    def test_start_tick_status_cancel(self, site_root):
        result = runner.invoke(app, ["start"])
        assert result.exit_code == 0
        assert "Scan started" in result.stdout

        again = runner.invoke(app, ["start"])
        assert again.exit_code == 1

        ticked = runner.invoke(app, ["tick", "-r", str(site_root), "-f", "json"])
        assert ticked.exit_code == 0, ticked.output
        assert json.loads(ticked.stdout)["status"] == "running"

        status = runner.invoke(app, ["status", "--format", "json"])
        assert json.loads(status.stdout)["status"] == "running"

        cancelled = runner.invoke(app, ["cancel"])
        assert cancelled.exit_code == 0
        assert "before cancellation" in cancelled.stdout

        full = runner.invoke(app, ["status", "--full", "-f", "json"])
        assert json.loads(full.stdout)["status"] == "cancelled"

    def test_scan_with_missing_site_db(self, site_root, tmp_path):
        result = runner.invoke(
            app, ["scan", "-r", str(site_root), "--site-db", str(tmp_path / "gone.sqlite")]
        )
        assert result.exit_code == 1
        assert not (tmp_path / "gone.sqlite").exists()

    def test_cancel_without_scan(self):
        result = runner.invoke(app, ["cancel"])
        assert result.exit_code == 0
        assert "No scan running (status: idle)" in result.stdout


class TestAdHocCommands:
    def test_file_json(self, site_root, write_file):
        path = write_file(site_root, "shell.php", WEBSHELL)
        result = runner.invoke(app, ["file", str(path), "--no-ai", "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["suspicious"] is True
        assert data["detections"][0]["original_line"] == 3

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["file", str(tmp_path / "nope.php")])
        assert result.exit_code == 1

    def test_content_argument(self):
        result = runner.invoke(app, ["content", "hello world", "-f", "json"])
        data = json.loads(result.stdout)
        assert data == {"target": "content", "suspicious": False, "detections": []}

    def test_content_from_stdin(self):
        result = runner.invoke(app, ["content", "-", "--format", "json"], input=WEBSHELL)
        assert json.loads(result.stdout)["suspicious"] is True

    def test_content_console(self):
        result = runner.invoke(app, ["content", WEBSHELL])
        assert result.exit_code == 0
        assert "SUSPICIOUS" in result.stdout


class TestRedaction:
    def test_api_key_redacted(self):
        assert "abcdefghijklmnop" not in redact_sensitive("key sk-ant-REDACTED")

    def test_password_hash_redacted(self):
        redacted = redact_sensitive("hash $P$9IQRaTwmfeRo7ud9Fh4E2PdI0S3r.L0")
        assert "[REDACTED]" in redacted
        assert "feRo7ud9" not in redacted


class TestLogFormatters:
    def _record(self, msg: str, **extra) -> logging.LogRecord:
        record = logging.LogRecord("sitewarden.engine", logging.WARNING, __file__, 1, msg, (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_includes_scan_context(self):
        record = self._record("Failed to scan x", scan_step="malware", path="x.php")
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["scan_step"] == "malware"
        assert entry["path"] == "x.php"
        assert "chunk" not in entry

    def test_text_prefixes_step_and_redacts(self):
        record = self._record("token X-Token: abcd1234efgh5678", scan_step="plugin")
        line = TextFormatter("%(message)s").format(record)
        assert line.startswith("[plugin] ")
        assert "efgh5678" not in line
