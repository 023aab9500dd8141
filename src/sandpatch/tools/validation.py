"""Syntax and lint checks run as external processes.

Failures are reported in the result (`ok: false`) and recorded on the run state
so collect_errors can list them later.
"""

from __future__ import annotations

import json
import tempfile
from abc import abstractmethod
from pathlib import Path
from typing import Any

from .base import VERIFICATION, Tool, ToolContext

PYCACHE_PREFIX = str(Path(tempfile.gettempdir()) / "sandpatch-pycache")
NOT_RUN_EXIT_CODES = {124, 126, 127}


def _raw_failure(res: dict[str, Any]) -> dict[str, Any]:
    return {"ok": False, "error": (res["stdout"] + res["stderr"]).strip()}


class ExternalCheck(Tool):
    """A verification tool backed by one external command."""

    kind = VERIFICATION
    properties = {"path": {"type": "string", "description": "File to check"}}
    required = ("path",)
    counter = "syntax_errors"  # RunState field bumped on failure

    @abstractmethod
    def argv(self, full_path: Path) -> list[str]:
        """Command line checking `full_path`."""

    def env(self) -> dict[str, str]:
        return {}

    def interpret(self, res: dict[str, Any]) -> dict[str, Any]:
        if res["exit_code"] == 0:
            return {"ok": True, "message": "Syntax OK"}
        return _raw_failure(res)

    def error_count(self, result: dict[str, Any]) -> int:
        return 1

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        path = self.require_str(args, "path")
        full_path = ctx.sandbox.resolve_existing(path)

        res = ctx.runner.run(self.argv(full_path), env=self.env())
        if res["exit_code"] in NOT_RUN_EXIT_CODES:
            result = {"ok": False, "error": res["stderr"].strip()}
        else:
            result = self.interpret(res)
            if not result["ok"]:
                count = self.error_count(result)
                setattr(ctx.state, self.counter, getattr(ctx.state, self.counter) + count)

        result["path"] = ctx.sandbox.relative(full_path)
        if not result["ok"]:
            ctx.state.errors.append(
                {"tool": self.name, "path": result["path"], "error": result.get("error", "")}
            )
        return result


class RubySyntaxCheck(ExternalCheck):
    name = "ruby_syntax_check"
    description = "Validate Ruby syntax with `ruby -c`."

    def argv(self, full_path: Path) -> list[str]:
        return ["ruby", "-c", str(full_path)]

    def interpret(self, res: dict[str, Any]) -> dict[str, Any]:
        output = res["stdout"] + res["stderr"]
        if res["exit_code"] == 0 and "Syntax OK" in output:
            return {"ok": True, "message": "Syntax OK"}
        return {"ok": False, "error": output.strip()}


class PythonSyntaxCheck(ExternalCheck):
    name = "python_syntax_check"
    description = "Validate Python syntax with py_compile."

    def argv(self, full_path: Path) -> list[str]:
        return ["python3", "-m", "py_compile", str(full_path)]

    def env(self) -> dict[str, str]:
        # Bytecode must not land inside the sandbox.
        return {"PYTHONPYCACHEPREFIX": PYCACHE_PREFIX}


class EslintCheck(ExternalCheck):
    name = "eslint_check"
    description = "Validate JavaScript/TypeScript with eslint."
    counter = "lint_errors"

    def argv(self, full_path: Path) -> list[str]:
        return ["eslint", "--format", "json", str(full_path)]

    def interpret(self, res: dict[str, Any]) -> dict[str, Any]:
        try:
            report = json.loads(res["stdout"])
        except json.JSONDecodeError:
            return _raw_failure(res)
        if not isinstance(report, list) or not all(isinstance(r, dict) for r in report):
            return _raw_failure(res)
        messages = report[0].get("messages", []) if report else []
        if not messages:
            return {"ok": True, "message": "No syntax errors"}
        return {"ok": False, "errors": messages, "error": f"{len(messages)} eslint message(s)"}

    def error_count(self, result: dict[str, Any]) -> int:
        return len(result.get("errors", [])) or 1


class RubocopCheck(ExternalCheck):
    name = "rubocop_check"
    description = "Check Ruby style with RuboCop."
    counter = "lint_errors"

    def argv(self, full_path: Path) -> list[str]:
        return ["rubocop", "--format", "json", str(full_path)]

    def interpret(self, res: dict[str, Any]) -> dict[str, Any]:
        try:
            report = json.loads(res["stdout"])
        except json.JSONDecodeError:
            return _raw_failure(res)
        if not isinstance(report, dict):
            return _raw_failure(res)
        offenses = [o for f in report.get("files", []) for o in (f.get("offenses") or [])]
        if not offenses:
            return {"ok": True, "message": "No offenses found", "offenses": []}
        return {
            "ok": False,
            "offenses": offenses,
            "summary": report.get("summary", {}),
            "error": f"{len(offenses)} offense(s)",
        }

    def error_count(self, result: dict[str, Any]) -> int:
        return len(result.get("offenses", [])) or 1
