"""Typed failures raised by the patch execution core.

Every failure carries a ``details`` dict with enough structure (paths,
fingerprints, edit indexes) for a planner to correct itself and retry.
"""

from __future__ import annotations

from typing import Any

EDIT_EXAMPLE: dict[str, Any] = {
    "start_line": 3,
    "end_line": 4,
    "replacement": "def add(a, b):\n    return a + b\n",
}


class SandpatchError(Exception):
    """Base class for all core failures."""

    code = "error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.code, "message": self.message, **self.details}


class PathEscape(SandpatchError, ValueError):
    """Path resolves (or tries to resolve) outside the sandbox root."""

    code = "path_escape"


class NotFound(SandpatchError, FileNotFoundError):
    """Target file absent after every fallback lookup."""

    code = "not_found"


class ConcurrentModification(SandpatchError):
    """File content no longer matches the fingerprint the caller read."""

    code = "concurrent_modification"

    def __init__(self, path: str, expected: str, actual: str):
        super().__init__(
            f"File changed since read. Expected {expected}, got {actual}. "
            "Re-read the file and retry with the new sha256.",
            path=path,
            expected=expected,
            actual=actual,
        )


class InvalidEditSet(SandpatchError):
    """Edit list is empty, malformed, or contains an invalid edit."""

    code = "invalid_edit_set"

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message, index=index, example=EDIT_EXAMPLE)


class LineRangeOutOfBounds(SandpatchError):
    """Edit references lines past the end of the file."""

    code = "line_range_out_of_bounds"

    def __init__(self, index: int, start_line: int, end_line: int, line_count: int):
        super().__init__(
            f"Invalid line range: {start_line}..{end_line} "
            f"(edit {index}, file has {line_count} lines)",
            index=index,
            start_line=start_line,
            end_line=end_line,
            line_count=line_count,
            example=EDIT_EXAMPLE,
        )


class LoopRejected(SandpatchError):
    """Call refused by the repetition guard. Advisory, not fatal to the run."""

    code = "loop_rejected"

    def __init__(self, reason: str, kind: str, signature: str):
        super().__init__(reason, kind=kind, signature=signature)
        self.kind = kind
        self.signature = signature


class PolicyViolation(SandpatchError):
    """Action refused by the run policy (dangerous action, existing file, ...)."""

    code = "policy_violation"


class ProtectedPath(PolicyViolation):
    """Target file is on the protected list and may not be modified."""

    code = "protected_path"


class InvalidArguments(SandpatchError):
    """Tool arguments missing or of the wrong type."""

    code = "invalid_arguments"


class UnknownAction(SandpatchError):
    """No tool is registered under the requested action name."""

    code = "unknown_action"
