"""Line-range patch engine with fingerprint-based optimistic concurrency.

Edits address the file as it was read: 1-indexed, inclusive line ranges in the
original coordinates. Applying them from the highest start line down keeps
every pending range valid without the caller adjusting for size deltas.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from .errors import ConcurrentModification, InvalidEditSet, LineRangeOutOfBounds
from .fingerprint import fingerprint
from .paths import PathSandbox
from .types import Edit, PatchRequest, PatchResult

ENCODING = "utf-8"


def split_lines(text: str) -> list[str]:
    """Split on LF, keeping each line's original terminator."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def decode(data: bytes) -> str:
    return data.decode(ENCODING, errors="surrogateescape")


def encode(text: str) -> bytes:
    return text.encode(ENCODING, errors="surrogateescape")


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_edits(edits: Any) -> list[tuple[int, Edit]]:
    """
    Structurally validate an edit set.

    Returns (original index, Edit) pairs. Raises InvalidEditSet naming the first
    offending edit. Overlapping ranges are rejected.
    """
    if isinstance(edits, (str, bytes, Mapping)) or not isinstance(edits, Sequence):
        raise InvalidEditSet(
            f"edits must be a list of edit objects, got {type(edits).__name__}"
        )
    if not edits:
        raise InvalidEditSet("edits must not be empty")

    validated: list[tuple[int, Edit]] = []
    for i, raw in enumerate(edits):
        if isinstance(raw, Edit):
            edit = raw
        elif isinstance(raw, Mapping):
            missing = [k for k in ("start_line", "end_line", "replacement") if k not in raw]
            if missing:
                raise InvalidEditSet(f"edit {i} is missing {', '.join(missing)}", index=i)
            edit = Edit(
                start_line=raw["start_line"],
                end_line=raw["end_line"],
                replacement=raw["replacement"],
            )
        else:
            raise InvalidEditSet(
                f"edit {i} must be an object, got {type(raw).__name__}", index=i
            )

        if not _is_int(edit.start_line) or not _is_int(edit.end_line):
            raise InvalidEditSet(f"edit {i}: start_line and end_line must be integers", index=i)
        if not isinstance(edit.replacement, str):
            raise InvalidEditSet(f"edit {i}: replacement must be a string", index=i)
        try:
            encode(edit.replacement)
        except UnicodeEncodeError as e:
            raise InvalidEditSet(
                f"edit {i}: replacement is not encodable as UTF-8 ({e.reason})", index=i
            ) from e
        if edit.start_line < 1:
            raise InvalidEditSet(f"edit {i}: start_line must be >= 1", index=i)
        if edit.end_line < edit.start_line:
            raise InvalidEditSet(f"edit {i}: end_line must be >= start_line", index=i)
        validated.append((i, edit))

    ordered = sorted(validated, key=lambda pair: pair[1].start_line)
    for (_, prev), (i, cur) in zip(ordered, ordered[1:]):
        if cur.start_line <= prev.end_line:
            raise InvalidEditSet(
                f"edit {i} ({cur.start_line}..{cur.end_line}) overlaps "
                f"{prev.start_line}..{prev.end_line}",
                index=i,
            )
    return validated


def apply_edits(lines: list[str], edits: list[tuple[int, Edit]]) -> list[str]:
    """Apply validated edits to a copy of lines, highest start line first."""
    for i, edit in edits:
        if edit.end_line > len(lines):
            raise LineRangeOutOfBounds(i, edit.start_line, edit.end_line, len(lines))

    out = list(lines)
    for _, edit in sorted(edits, key=lambda pair: pair[1].start_line, reverse=True):
        out[edit.start_line - 1 : edit.end_line] = split_lines(edit.replacement)
    return out


def write_atomic(path: Path, data: bytes) -> None:
    """Replace path's content in one step; readers never see a partial file."""
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class PatchEngine:
    """Reads, validates, mutates and writes sandboxed files."""

    def __init__(self, sandbox: PathSandbox):
        self.sandbox = sandbox

    def apply(self, request: PatchRequest) -> PatchResult:
        return self.apply_patch(request.path, request.edits, request.expected_fingerprint)

    def apply_patch(
        self,
        path: str,
        edits: Any,
        expected_fingerprint: str | None = None,
    ) -> PatchResult:
        """
        Apply line-range edits to a file inside the sandbox.

        Args:
            path: Caller-supplied path (resolved through the sandbox)
            edits: Ordered sequence of edits in original-file coordinates
            expected_fingerprint: sha256 the caller last read; None skips the check

        Returns:
            PatchResult for the written file

        Raises:
            PathEscape, NotFound, ConcurrentModification, InvalidEditSet,
            LineRangeOutOfBounds
        """
        full_path = self.sandbox.resolve_existing(path)
        original = full_path.read_bytes()

        if expected_fingerprint is not None:
            actual = fingerprint(original)
            if str(expected_fingerprint).strip().lower() != actual:
                raise ConcurrentModification(
                    path=str(full_path),
                    expected=str(expected_fingerprint),
                    actual=actual,
                )

        validated = validate_edits(edits)
        lines = apply_edits(split_lines(decode(original)), validated)

        data = encode("".join(lines))
        write_atomic(full_path, data)

        return PatchResult(
            path=str(full_path),
            fingerprint=fingerprint(data),
            edits_applied=len(validated),
            line_count=len(lines),
        )
