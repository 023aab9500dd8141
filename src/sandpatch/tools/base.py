"""Base class for tools.

All tools inherit from Tool and implement:
- run(): Execute against canonical arguments inside a ToolContext
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..errors import InvalidArguments
from ..patching import PatchEngine
from ..paths import PathSandbox
from ..policy import RunState
from ..runner import CommandRunner

READ = "read"
MUTATION = "mutation"
VERIFICATION = "verification"
OTHER = "other"


@dataclass
class ToolContext:
    """Everything a tool may touch during one agent run."""

    sandbox: PathSandbox
    engine: PatchEngine
    runner: CommandRunner
    git_runner: CommandRunner
    state: RunState = field(default_factory=RunState)
    protected_files: list[str] = field(default_factory=list)


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    kind: str = OTHER
    description: str = ""
    # JSON schema properties and required names for function calling.
    properties: dict[str, Any] = {}
    required: tuple[str, ...] = ()

    @abstractmethod
    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        """Execute with canonical arguments; raise SandpatchError on failure."""
        pass

    def schema(self) -> dict[str, Any]:
        """Tool definition in the Ollama/OpenAI function-calling shape."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.properties,
                    "required": list(self.required),
                },
            },
        }

    def require_str(self, args: dict[str, Any], key: str) -> str:
        value = args.get(key)
        if not isinstance(value, str) or (key == "path" and not value):
            raise InvalidArguments(
                f"{self.name} requires '{key}' (string)",
                tool=self.name,
                field=key,
                got=type(value).__name__,
            )
        return value
