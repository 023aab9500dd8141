"""Single-shot planner: turns a task into a short JSON plan before tool calling starts."""

from __future__ import annotations

import json
from typing import Any

from .llm_client import OllamaClient

PLAN_FORMAT: dict[str, Any] = {
    "type": "object",
    "required": ["intent"],
    "properties": {
        "intent": {"type": "string"},
        "files": {"type": "array", "items": {"type": "string"}},
        "steps": {"type": "array", "items": {"type": "string"}},
    },
}

PLAN_PROMPT = """You are a coding task planner.

Output a JSON plan describing:
- what files to inspect
- what edits are needed (high level)

Rules:
- Never suggest writing files directly
- All edits must use apply_patch
- Validation is mandatory

Task:
{task}
"""

SYSTEM_PROMPT = """You are a coding agent working inside a sandboxed workspace.

Rules:
- Paths are relative to the workspace; you cannot leave it
- Read a file before changing it; apply_patch needs the sha256 from read_file
- Line numbers in apply_patch refer to the file as last read
- Use create_file only for new files
- After every change, run the matching syntax check
- Stop once the change is made and validation passes
"""


class Planner:
    def __init__(self, client: OllamaClient):
        self.client = client

    async def plan(self, task: str) -> dict[str, Any]:
        """Ask the model for a plan. A reply that is not JSON becomes {"intent": <text>}."""
        response = await self.client.generate(PLAN_PROMPT.format(task=task), format=PLAN_FORMAT)
        text = str(response.get("response", "")).strip()
        try:
            plan = json.loads(text)
        except json.JSONDecodeError:
            return {"intent": text}
        if not isinstance(plan, dict):
            return {"intent": text}
        plan.setdefault("intent", "")
        return plan

    @staticmethod
    def initial_messages(task: str, plan: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        content = f"Task:\n{task}"
        if plan:
            content += f"\n\nPlan:\n{json.dumps(plan, indent=2)}"
        messages.append({"role": "user", "content": content})
        return messages
