"""Agent loop: plan, then call tools until the change is validated.

Each step sends the conversation to the model, turns its tool calls into
Decisions and runs them through the Workspace. Tool results (including typed
failures) go back to the model as `tool` messages so it can correct itself.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

from .errors import SandpatchError
from .llm_client import OllamaClient
from .planner import Planner
from .tools.base import MUTATION, VERIFICATION
from .types import Decision
from .workspace import Workspace

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _parse_arguments(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return {}
    return raw if raw is not None else {}


def _decision_from_content(content: str) -> Decision | None:
    text = content.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(text)
        if match is None:
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    if not isinstance(data, dict) or not data.get("action"):
        return None
    return Decision.from_dict(data)


def parse_decisions(response: dict[str, Any]) -> list[Decision]:
    """
    Extract decisions from an Ollama chat response.

    Native tool calls (`message.tool_calls`) take priority. Otherwise the
    message content is read as a JSON decision `{"action": ..., "params": ...}`.
    """
    message = response.get("message") or {}
    decisions: list[Decision] = []
    for tool_call in message.get("tool_calls") or []:
        function = tool_call.get("function") or {}
        name = function.get("name")
        if not name:
            continue
        decisions.append(Decision(action=name, params=_parse_arguments(function.get("arguments"))))
    if decisions:
        return decisions

    decision = _decision_from_content(str(message.get("content") or ""))
    return [decision] if decision else []


def _tool_message(action: str, result: dict[str, Any]) -> dict[str, Any]:
    return {
        "role": "tool",
        "content": f"Tool: {action}\nResult: {json.dumps(result, indent=2, default=str)}",
    }


class AgentRunner:
    """Drives one task against one Workspace."""

    def __init__(
        self,
        workspace: Workspace,
        client: OllamaClient,
        max_steps: int | None = None,
        use_planner: bool = True,
    ):
        self.workspace = workspace
        self.client = client
        self.max_steps = max_steps or workspace.config.llm.max_steps
        self.use_planner = use_planner
        self.mutated = False

    async def _execute(self, decision: Decision) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.workspace.execute_decision, decision)
        except SandpatchError as e:
            # LoopRejected is advisory; the reason goes back to the model.
            return e.to_dict()

    def _kind(self, action: str) -> str | None:
        tool = self.workspace.tools.get(action)
        return tool.kind if tool is not None else None

    async def run(self, task: str) -> dict[str, Any]:
        """
        Run the agent loop.

        Returns:
            Summary dict with status, step count, run counters and the last result
        """
        ws = self.workspace
        ws.ensure_sandbox()
        ws.telemetry.log(ws.run_id, "run_started", {"task": task, "model": self.client.config.model_id})

        plan: dict[str, Any] | None = None
        if self.use_planner:
            plan = await Planner(self.client).plan(task)
        messages = Planner.initial_messages(task, plan)
        tools = ws.tool_schemas()

        status = "max_steps"
        steps = 0
        last_result: dict[str, Any] | None = None

        while steps < self.max_steps:
            if ws.should_stop():
                status = "policy_stop"
                break

            steps += 1
            response = await self.client.chat(messages, tools=tools)
            assistant = response.get("message") or {"role": "assistant", "content": ""}
            messages.append(assistant)

            decisions = parse_decisions(response)
            if not decisions:
                status = "finished"
                break

            done = False
            for decision in decisions:
                result = await self._execute(decision)
                last_result = result
                messages.append(_tool_message(decision.action, result))

                ok = result.get("ok", True) is not False
                kind = self._kind(decision.action)
                if kind == MUTATION and ok:
                    self.mutated = True
                if kind == VERIFICATION and ok and self.mutated:
                    done = True
            if done:
                status = "validated"
                break

        state = ws.state
        summary = {
            "run_id": ws.run_id,
            "status": status,
            "steps": steps,
            "plan": plan,
            "iterations": state.iterations,
            "file_edits": state.file_edits,
            "syntax_errors": state.syntax_errors,
            "lint_errors": state.lint_errors,
            "rejections": state.rejections,
            "last_result": last_result,
        }
        ws.telemetry.log(
            ws.run_id,
            "run_completed",
            {k: v for k, v in summary.items() if k not in {"plan", "last_result"}},
        )
        return summary
