"""Repetition guard that keeps an agent from looping on the same call.

`LoopGuard.admit` is a pure function of (call, history). Committing an admitted
call to the history is a separate `record` step.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from .config import LoopGuardConfig
from .errors import LoopRejected
from .types import Admission, CanonicalCall

DEFAULT_HISTORY_SIZE = 5


class CallHistory:
    """Bounded FIFO of call signatures for one agent run."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE, signatures: Iterable[str] = ()):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._items: deque[str] = deque(signatures, maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, signature: str) -> None:
        self._items.append(signature)

    def count(self, signature: str) -> int:
        return self._items.count(signature)

    def clear(self) -> None:
        self._items.clear()

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"CallHistory(capacity={self.capacity}, signatures={list(self._items)!r})"


class LoopGuard:
    """Per-action repetition policy over a CallHistory."""

    def __init__(self, config: LoopGuardConfig | None = None):
        self.config = config or LoopGuardConfig()

    def new_history(self) -> CallHistory:
        return CallHistory(self.config.history_size)

    def _has_mutation(self, history: CallHistory) -> bool:
        prefixes = tuple(f"{a}:" for a in self.config.mutation_actions)
        return any(sig.startswith(prefixes) for sig in history)

    def admit(self, call: CanonicalCall, history: CallHistory) -> Admission:
        """
        Decide whether a call may run. Does not touch the history.

        Thresholds count the incoming call plus identical signatures already
        retained, so a threshold of 2 rejects the second identical call.
        """
        signature = call.signature
        occurrences = history.count(signature) + 1

        if call.action in self.config.verification_actions:
            threshold = self.config.verification_threshold
            if occurrences >= threshold and not self._has_mutation(history):
                return Admission(
                    ok=False,
                    kind="no_progress",
                    reason=(
                        f"Repeated {call.action} without edits detected ({threshold} times). "
                        "If the check passed (ok: true), the task is complete - STOP. "
                        "If it failed, fix the code with apply_patch first."
                    ),
                )
        elif call.action in self.config.read_actions:
            threshold = self.config.read_threshold
            if occurrences >= threshold:
                return Admission(
                    ok=False,
                    kind="repeated_read",
                    reason=(
                        f"Repeated {call.action} call detected ({threshold} times). "
                        "You've already read this file multiple times. "
                        "If you need to modify it, use apply_patch."
                    ),
                )
        else:
            threshold = self.config.default_threshold
            if occurrences >= threshold:
                return Admission(
                    ok=False,
                    kind="repeated_call",
                    reason=(
                        f"Repeated identical call detected: {call.action} with same "
                        f"parameters ({threshold} times). Try a different approach."
                    ),
                )
        return Admission(ok=True)

    def record(self, call: CanonicalCall, history: CallHistory) -> None:
        history.append(call.signature)

    def check(self, call: CanonicalCall, history: CallHistory) -> None:
        """Admit-then-record; raises LoopRejected without touching history."""
        decision = self.admit(call, history)
        if not decision.ok:
            raise LoopRejected(decision.reason, kind=decision.kind, signature=call.signature)
        self.record(call, history)
