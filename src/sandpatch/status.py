from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class StatusWindow:
    seconds: float


def _iter_events(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    events: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as f:
        for ln in f:
            ln = ln.strip()
            if not ln:
                continue
            try:
                events.append(json.loads(ln))
            except json.JSONDecodeError:
                continue
    return events


def compute_status(telemetry_path: Path, *, window: StatusWindow | None = None) -> dict[str, Any]:
    """Summarize guard and tool activity from telemetry.jsonl (best-effort)."""
    window = window or StatusWindow(seconds=3600.0)
    cutoff = time.time() - float(window.seconds)

    events = _iter_events(telemetry_path)
    recent = [e for e in events if float(e.get("timestamp", 0.0) or 0.0) >= cutoff]

    def _count(event_type: str) -> int:
        return sum(1 for e in recent if e.get("type") == event_type)

    def _rate(part: int, whole: int) -> float | None:
        return (part / whole) if whole else None

    admitted = _count("call_admitted")
    rejected = _count("call_rejected")
    succeeded = _count("tool_succeeded")
    failed = _count("tool_failed")

    rejection_kinds: dict[str, int] = {}
    for e in recent:
        if e.get("type") != "call_rejected":
            continue
        kind = str((e.get("data") or {}).get("error") or "unknown")
        rejection_kinds[kind] = rejection_kinds.get(kind, 0) + 1

    last_run = next((e for e in reversed(events) if e.get("type") == "run_completed"), None)

    return {
        "window_seconds": window.seconds,
        "telemetry_path": str(telemetry_path),
        "runs_started": _count("run_started"),
        "calls_admitted": admitted,
        "calls_rejected": rejected,
        "rejection_rate": _rate(rejected, admitted + rejected),
        "rejections_by_error": rejection_kinds,
        "tool_failure_rate": _rate(failed, succeeded + failed),
        "patches_applied": _count("patch_applied"),
        "last_run": last_run,
    }
