"""Unit tests for telemetry, redaction and status."""

import json
import os
import time

from sandpatch.redaction import redact_text
from sandpatch.status import StatusWindow, compute_status
from sandpatch.telemetry import TelemetrySink, prune_telemetry_file


class TestTelemetrySink:
    def test_writes_jsonl(self, tmp_path):
        path = tmp_path / "t" / "telemetry.jsonl"
        sink = TelemetrySink(enabled=True, path=path)

        sink.log("r1", "call_admitted", {"action": "read_file"})
        sink.log("r1", "tool_succeeded", {"path": tmp_path})

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["run_id"] == "r1"
        assert first["type"] == "call_admitted"
        assert first["data"] == {"action": "read_file"}
        assert json.loads(lines[1])["data"]["path"] == str(tmp_path)

    def test_disabled(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        TelemetrySink(enabled=False, path=path).log("r1", "x", {})
        assert not path.exists()


class TestPrune:
    def test_old_file_removed(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        path.write_text("{}\n")
        old = time.time() - 40 * 86400
        os.utime(path, (old, old))

        prune_telemetry_file(path, retention_days=30)

        assert not path.exists()

    def test_recent_file_kept(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        path.write_text("{}\n")
        prune_telemetry_file(path, retention_days=30)
        assert path.exists()

    def test_missing_file(self, tmp_path):
        prune_telemetry_file(tmp_path / "nope.jsonl", retention_days=30)


class TestRedaction:
    def test_api_keys(self):
        out = redact_text("key sk-abcdefghijklmnopqrstuvwx and ghp_abcdefghijklmnopqrstuvwxyz")
        assert "sk-REDACTED" in out
        assert "ghp_REDACTED" in out

    def test_password_assignment(self):
        assert redact_text("password=hunter2") == "password=REDACTED"

    def test_truncation(self):
        out = redact_text("x" * 50, max_len=10)
        assert out == "x" * 10 + "...(truncated)"

    def test_empty(self):
        assert redact_text("") == ""


class TestStatus:
    def test_no_file(self, tmp_path):
        st = compute_status(tmp_path / "missing.jsonl")
        assert st["calls_admitted"] == 0
        assert st["rejection_rate"] is None
        assert st["last_run"] is None

    def test_metrics(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        sink = TelemetrySink(enabled=True, path=path)
        sink.log("r1", "run_started", {})
        for _ in range(3):
            sink.log("r1", "call_admitted", {})
        sink.log("r1", "call_rejected", {"error": "loop_rejected"})
        sink.log("r1", "tool_succeeded", {})
        sink.log("r1", "tool_succeeded", {})
        sink.log("r1", "tool_failed", {})
        sink.log("r1", "patch_applied", {})
        sink.log("r1", "run_completed", {"status": "validated"})
        with open(path, "a") as f:
            f.write("not json\n")

        st = compute_status(path)

        assert st["runs_started"] == 1
        assert st["calls_admitted"] == 3
        assert st["calls_rejected"] == 1
        assert st["rejection_rate"] == 0.25
        assert st["rejections_by_error"] == {"loop_rejected": 1}
        assert st["tool_failure_rate"] == 1 / 3
        assert st["patches_applied"] == 1
        assert st["last_run"]["data"]["status"] == "validated"

    def test_window_excludes_old_events(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        old = {"timestamp": time.time() - 7200, "run_id": "r", "type": "call_admitted", "data": {}}
        path.write_text(json.dumps(old) + "\n")

        st = compute_status(path, window=StatusWindow(seconds=3600))

        assert st["calls_admitted"] == 0
