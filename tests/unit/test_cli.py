"""Unit tests for the click CLI."""

import json

import pytest
from click.testing import CliRunner

from sandpatch.cli import cli
from sandpatch.fingerprint import fingerprint_file


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, project, *args, **kwargs):
    return runner.invoke(cli, ["--root", str(project), *args], **kwargs)


class TestCli:
    def test_tools(self, runner, project):
        result = invoke(runner, project, "tools")
        assert result.exit_code == 0
        assert "apply_patch" in result.output
        assert "read_file" in result.output

    def test_read(self, runner, project, calculator):
        result = invoke(runner, project, "read", "calculator.rb")
        assert result.exit_code == 0
        assert json.loads(result.output)["sha256"] == fingerprint_file(calculator)

    def test_read_escape_fails(self, runner, project):
        result = invoke(runner, project, "read", "../../etc/passwd")
        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "path_escape"

    def test_patch_from_stdin(self, runner, project, calculator):
        edits = json.dumps([{"start_line": 3, "end_line": 3, "replacement": "    a - b\n"}])
        result = invoke(
            runner,
            project,
            "patch",
            "calculator.rb",
            "--edits",
            "-",
            "--sha256",
            fingerprint_file(calculator),
            input=edits,
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "patched"
        assert "a - b" in calculator.read_text()

    def test_patch_stale_sha(self, runner, project, calculator):
        edits = json.dumps([{"start_line": 1, "end_line": 1, "replacement": "x\n"}])
        result = invoke(
            runner, project, "patch", "calculator.rb", "--edits", "-", "--sha256", "0" * 64, input=edits
        )
        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "concurrent_modification"

    def test_patch_bad_json(self, runner, project, calculator):
        result = invoke(runner, project, "patch", "calculator.rb", "--edits", "-", input="not json")
        assert result.exit_code != 0
        assert "Invalid edits JSON" in result.output

    def test_call(self, runner, project, calculator):
        result = invoke(runner, project, "call", "search", "--params", '{"params": {"query": "add"}}')
        assert result.exit_code == 0
        assert json.loads(result.output)["count"] == 1

    def test_call_unknown_action(self, runner, project):
        result = invoke(runner, project, "call", "make_coffee")
        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "unknown_action"

    def test_status(self, runner, project, calculator):
        invoke(runner, project, "read", "calculator.rb")
        result = invoke(runner, project, "status", "--format", "json")
        assert result.exit_code == 0
        assert json.loads(result.output)["calls_admitted"] == 1

    def test_telemetry_tail(self, runner, project, calculator):
        invoke(runner, project, "read", "calculator.rb")
        result = invoke(runner, project, "telemetry", "tail", "-n", "1")
        assert result.exit_code == 0
        assert json.loads(result.output)["type"] == "tool_succeeded"

    def test_run_without_network(self, runner, project, monkeypatch):
        monkeypatch.setenv("SANDPATCH_DISABLE_NETWORK", "1")
        result = invoke(runner, project, "run", "do something")
        assert result.exit_code != 0
        assert "SANDPATCH_DISABLE_NETWORK" in result.output

    def test_config_option(self, runner, project, tmp_path):
        (project / "work").mkdir()
        (project / "work" / "a.rb").write_text("x\n")
        config = tmp_path / "custom.yml"
        config.write_text("sandbox:\n  subdir: work\n")

        result = runner.invoke(cli, ["--root", str(project), "--config", str(config), "read", "a.rb"])

        assert result.exit_code == 0
        assert json.loads(result.output)["path"] == "work/a.rb"
