"""Scenario tests for edge cases and determinism."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from sandpatch.config import SandpatchConfig
from sandpatch.errors import ConcurrentModification, LoopRejected, PathEscape
from sandpatch.fingerprint import fingerprint, fingerprint_file
from sandpatch.loop_guard import LoopGuard
from sandpatch.normalizer import normalize
from sandpatch.patching import PatchEngine
from sandpatch.workspace import Workspace


@pytest.fixture
def engine(sandbox):
    return PatchEngine(sandbox)


class TestDeterminism:
    """Tests for deterministic behavior."""

    def test_same_patch_same_bytes(self, project, engine):
        """Applying the same edits to the same content always yields the same file."""
        results = []
        for i in range(3):
            path = project / "playground" / f"copy{i}.rb"
            path.write_text("a\nb\nc\n")
            result = engine.apply_patch(
                path.name,
                [
                    {"start_line": 1, "end_line": 1, "replacement": "A\n"},
                    {"start_line": 3, "end_line": 3, "replacement": "C\nD\n"},
                ],
            )
            results.append(result.fingerprint)
        assert len(set(results)) == 1
        assert results[0] == fingerprint(b"A\nb\nC\nD\n")

    def test_edit_order_does_not_matter(self, project, engine):
        path = project / "playground" / "x.rb"
        edits = [
            {"start_line": 1, "end_line": 1, "replacement": "1\n1b\n"},
            {"start_line": 2, "end_line": 3, "replacement": ""},
        ]

        path.write_text("a\nb\nc\nd\n")
        forward = engine.apply_patch("x.rb", edits).fingerprint
        path.write_text("a\nb\nc\nd\n")
        backward = engine.apply_patch("x.rb", list(reversed(edits))).fingerprint

        assert forward == backward

    def test_admission_independent_of_argument_shape(self):
        guard = LoopGuard()
        history = guard.new_history()
        guard.check(normalize("search", {"query": "x", "path": "lib"}), history)

        for shape in (
            {"path": "lib", "query": "x"},
            {"params": {"Query": "x", "path": "lib"}},
            ["search", {"query": "x", "path": "lib"}],
        ):
            assert not guard.admit(normalize("search", shape), history)


class TestPlannerMistakes:
    """What happens when the planner gets things slightly wrong."""

    def test_absolute_system_path_is_scoped_not_followed(self, workspace, project):
        workspace.execute("create_file", {"path": "/etc/hosts.rb", "content": "x\n"})
        assert (project / "playground" / "etc" / "hosts.rb").exists()

    def test_wrong_case_path(self, workspace, project):
        (project / "playground" / "Calculator.rb").write_text("class Calculator\nend\n")
        result = workspace.execute("read_file", {"path": "calculator.rb"})
        assert result["path"] == "playground/Calculator.rb"

    def test_file_edited_between_read_and_patch(self, workspace, calculator):
        read = workspace.execute("read_file", {"path": "calculator.rb"})
        calculator.write_text("class Calculator\nend\n")

        with pytest.raises(ConcurrentModification) as exc:
            workspace.execute(
                "apply_patch",
                {"path": "calculator.rb", "sha256": read["sha256"], "edits": [
                    {"start_line": 4, "end_line": 4, "replacement": "  end\n"}
                ]},
            )
        assert exc.value.details["actual"] == fingerprint_file(calculator)

    def test_recover_after_stale_read(self, workspace, calculator):
        """Re-reading after a ConcurrentModification gives a usable sha."""
        stale = workspace.execute("read_file", {"path": "calculator.rb"})["sha256"]
        calculator.write_text(calculator.read_text() + "\n")
        edits = [{"start_line": 1, "end_line": 1, "replacement": "class Calc\n"}]

        with pytest.raises(ConcurrentModification):
            workspace.execute("apply_patch", {"path": "calculator.rb", "sha256": stale, "edits": edits})
        fresh = workspace.execute("read_file", {"path": "calculator.rb"})["sha256"]
        result = workspace.execute("apply_patch", {"path": "calculator.rb", "sha256": fresh, "edits": edits})

        assert result["status"] == "patched"

    def test_escape_attempts(self, workspace):
        for path in ("../secret", "playground/../../x", "lib/../../../etc/passwd", ".git/config"):
            with pytest.raises(PathEscape):
                workspace.execute("read_file", {"path": path})

    def test_verification_loop_broken_by_patch(self, workspace, calculator, monkeypatch):
        tool = workspace.tools["ruby_syntax_check"]
        monkeypatch.setattr(tool, "run", lambda args, ctx: {"ok": False, "error": "syntax error"})

        workspace.execute("ruby_syntax_check", {"path": "calculator.rb"})
        workspace.execute("ruby_syntax_check", {"path": "calculator.rb"})
        with pytest.raises(LoopRejected):
            workspace.execute("ruby_syntax_check", {"path": "calculator.rb"})

        sha = fingerprint_file(calculator)
        workspace.execute(
            "apply_patch",
            {"path": "calculator.rb", "sha256": sha, "edits": [
                {"start_line": 5, "end_line": 5, "replacement": "end\n"}
            ]},
        )
        assert workspace.execute("ruby_syntax_check", {"path": "calculator.rb"})["ok"] is False


class TestConcurrency:
    def test_independent_runs_in_threads(self, project):
        """Each run owns its history; runs on different files do not interfere."""
        for i in range(4):
            (project / "playground" / f"f{i}.rb").write_text("a\nb\n")

        def run(i):
            ws = Workspace(project, SandpatchConfig())
            read = ws.execute("read_file", {"path": f"f{i}.rb"})
            return ws.execute(
                "apply_patch",
                {"path": f"f{i}.rb", "sha256": read["sha256"], "edits": [
                    {"start_line": 2, "end_line": 2, "replacement": f"b{i}\n"}
                ]},
            )

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(run, range(4)))

        assert all(r["status"] == "patched" for r in results)
        for i in range(4):
            assert (project / "playground" / f"f{i}.rb").read_text() == f"a\nb{i}\n"
