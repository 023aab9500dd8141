"""Content fingerprints for optimistic concurrency."""

from __future__ import annotations

import hashlib
from pathlib import Path


def fingerprint(content: bytes | str) -> str:
    """Return the sha256 hex digest of exact content (str is UTF-8 encoded)."""
    if isinstance(content, str):
        content = content.encode("utf-8", errors="surrogateescape")
    return hashlib.sha256(content).hexdigest()


def fingerprint_file(path: Path) -> str:
    return fingerprint(Path(path).read_bytes())
