"""Workspace: one agent run's view of the sandbox.

Every tool invocation follows the same path:
- CallNormalizer flattens the planner's invocation
- Policy refuses dangerous actions
- LoopGuard admits or rejects (history recorded only on admission)
- The tool runs; paths go through PathSandbox, edits through PatchEngine
- Outcome is logged to telemetry
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

from .config import SandpatchConfig
from .errors import LoopRejected, PolicyViolation, SandpatchError, UnknownAction
from .loop_guard import CallHistory, LoopGuard
from .normalizer import normalize
from .patching import PatchEngine
from .paths import PathSandbox
from .policy import RunState, check_action, should_stop
from .redaction import redact_text
from .runner import CommandRunner
from .telemetry import TelemetrySink
from .tools import Tool, ToolContext, build_registry
from .types import CanonicalCall, Decision


class Workspace:
    """
    Owns the sandbox, tools, loop guard and call history of one agent run.

    Concurrent runs must each use their own Workspace.
    """

    def __init__(
        self,
        project_root: Path | str,
        config: SandpatchConfig | None = None,
        run_id: str | None = None,
        tools: dict[str, Tool] | None = None,
        telemetry: TelemetrySink | None = None,
    ):
        self.config = config or SandpatchConfig()
        self.project_root = Path(project_root)
        self.run_id = run_id or uuid.uuid4().hex[:12]

        self.sandbox = PathSandbox(
            self.project_root,
            subdir=self.config.sandbox.subdir,
            forbidden_components=set(self.config.sandbox.forbidden_components),
        )
        self.engine = PatchEngine(self.sandbox)
        self.guard = LoopGuard(self.config.loop_guard)
        self.history: CallHistory = self.guard.new_history()
        self.state = RunState()
        self.tools = tools if tools is not None else build_registry()
        self.telemetry = telemetry or TelemetrySink(
            enabled=self.config.telemetry.enabled,
            path=self.project_root / self.config.telemetry.log_path,
        )

        validation = self.config.validation
        self.context = ToolContext(
            sandbox=self.sandbox,
            engine=self.engine,
            runner=CommandRunner(
                self.sandbox.root,
                allowed_argv=validation.allowed_argv,
                enforce_allowlist=validation.enforce_allowlist,
                timeout_s=validation.timeout_seconds,
            ),
            git_runner=CommandRunner(
                self.project_root,
                allowed_argv=validation.allowed_argv,
                enforce_allowlist=validation.enforce_allowlist,
                timeout_s=validation.timeout_seconds,
            ),
            state=self.state,
            protected_files=list(self.config.sandbox.protected_files),
        )

    def ensure_sandbox(self) -> Path:
        """Create the sandbox directory if needed."""
        self.sandbox.root.mkdir(parents=True, exist_ok=True)
        return self.sandbox.root

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [tool.schema() for tool in self.tools.values()]

    def should_stop(self) -> bool:
        return should_stop(self.state, self.config.policy)

    def _log(self, event_type: str, data: dict[str, Any]) -> None:
        self.telemetry.log(self.run_id, event_type, data)

    def _summary(self, call: CanonicalCall) -> dict[str, Any]:
        limit = self.config.telemetry.max_error_chars
        return {
            "action": call.action,
            "path": call.args.get("path"),
            "args": redact_text(str(call.args), max_len=limit),
        }

    def admit(self, call: CanonicalCall) -> None:
        """Policy + loop guard. Records the call on success."""
        try:
            check_action(call, self.config.policy)
            self.guard.check(call, self.history)
        except (LoopRejected, PolicyViolation) as e:
            self.state.rejections += 1
            self._log("call_rejected", {**self._summary(call), "error": e.code, "reason": e.message})
            raise
        self._log("call_admitted", self._summary(call))

    def dispatch(self, call: CanonicalCall) -> dict[str, Any]:
        """Run an already-admitted call."""
        tool = self.tools.get(call.action)
        if tool is None:
            raise UnknownAction(
                f"Unknown action '{call.action}'",
                action=call.action,
                available=sorted(self.tools),
            )

        try:
            result = tool.run(call.args, self.context)
        except SandpatchError as e:
            self._log(
                "tool_failed",
                {
                    **self._summary(call),
                    "error": e.code,
                    "message": redact_text(e.message, max_len=self.config.telemetry.max_error_chars),
                },
            )
            raise

        self._log("tool_succeeded", {**self._summary(call), "ok": result.get("ok", True)})
        if result.get("status") in {"patched", "created"}:
            self._log(
                "patch_applied",
                {"action": call.action, "path": result.get("path"), "sha256": result.get("sha256")},
            )
        return result

    def execute(self, action: Any, raw_invocation: Any = None) -> dict[str, Any]:
        """
        Normalize, admit and run one tool invocation.

        Args:
            action: Tool name from the planner
            raw_invocation: Arguments in any supported shape

        Returns:
            Tool result dict

        Raises:
            SandpatchError: Typed failure (LoopRejected is advisory)
        """
        self.state.iterations += 1
        call = normalize(action, raw_invocation)
        self.admit(call)
        return self.dispatch(call)

    def execute_decision(self, decision: Decision | dict[str, Any]) -> dict[str, Any]:
        if isinstance(decision, dict):
            decision = Decision.from_dict(decision)
        return self.execute(decision.action, decision.params)

    def execute_safe(self, action: Any, raw_invocation: Any = None) -> dict[str, Any]:
        """Like execute(), but typed failures come back as error dicts."""
        try:
            return self.execute(action, raw_invocation)
        except SandpatchError as e:
            return e.to_dict()
