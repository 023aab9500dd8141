"""Safety policies and limits for agent execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import PolicyConfig
from .errors import PolicyViolation, ProtectedPath
from .types import CanonicalCall


@dataclass
class RunState:
    """Counters for one agent run."""

    iterations: int = 0
    file_edits: int = 0
    syntax_errors: int = 0
    lint_errors: int = 0
    rejections: int = 0
    errors: list[dict] = field(default_factory=list)  # Failures reported by verification tools


def should_stop(state: RunState, config: PolicyConfig) -> bool:
    if state.iterations >= config.max_iterations:
        return True
    if state.file_edits >= config.max_file_edits:
        return True
    if config.stop_on_syntax_error and state.syntax_errors > 0:
        return True
    if state.lint_errors > config.max_lint_errors:
        return True
    return False


def check_action(call: CanonicalCall, config: PolicyConfig) -> None:
    """Refuse dangerous actions outright."""
    if call.action in config.dangerous_actions:
        raise PolicyViolation(
            f"Dangerous action '{call.action}' is not allowed",
            action=call.action,
        )


def check_editable(path: Path, protected_files: list[str]) -> None:
    """Refuse writes to lockfiles and other protected names."""
    if path.name in protected_files:
        raise ProtectedPath(
            f"Editing {path.name} is not allowed",
            path=str(path),
            protected_files=list(protected_files),
        )
