"""Core data types for the sandpatch system."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Edit:
    """Replace the inclusive 1-indexed line range [start_line, end_line]."""

    start_line: int
    end_line: int
    replacement: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_line": self.start_line,
            "end_line": self.end_line,
            "replacement": self.replacement,
        }


@dataclass
class PatchRequest:
    """A set of line-range edits against one file."""

    path: str
    edits: list[Any]  # Edit instances or raw mappings; validated by PatchEngine
    expected_fingerprint: str | None = None  # None disables the concurrency check


@dataclass
class PatchResult:
    """Result of a successful patch application."""

    path: str
    fingerprint: str  # sha256 of the written content
    edits_applied: int
    line_count: int
    status: str = "patched"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "path": self.path,
            "sha256": self.fingerprint,
            "edits_applied": self.edits_applied,
            "lines": self.line_count,
        }


@dataclass(frozen=True)
class CanonicalCall:
    """A de-aliased, flattened tool invocation."""

    action: str
    args: dict[str, Any] = field(default_factory=dict)

    @property
    def signature(self) -> str:
        """Stable `action:args` string used for repetition checks."""
        try:
            serialized = json.dumps(self.args, sort_keys=True, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            # Unsortable nested keys or circular references.
            serialized = repr(self.args)
        return f"{self.action}:{serialized}"


@dataclass
class Decision:
    """A planner decision: which tool to call and with what."""

    action: str
    params: Any = None
    confidence: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Decision:
        params = data.get("params")
        if params is None:
            params = data.get("args", {})
        confidence = data.get("confidence")
        try:
            confidence = float(confidence) if confidence is not None else None
        except (TypeError, ValueError):
            confidence = None
        return cls(action=str(data.get("action") or ""), params=params, confidence=confidence)


@dataclass(frozen=True)
class Admission:
    """Outcome of a LoopGuard check."""

    ok: bool
    reason: str = ""
    kind: str = ""  # "", "repeated_call", "repeated_read", "no_progress"

    def __bool__(self) -> bool:
        return self.ok
