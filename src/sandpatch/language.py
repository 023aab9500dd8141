"""Programming language detection from file extension."""

from __future__ import annotations

from pathlib import Path

EXTENSIONS = {
    ".rb": "ruby",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
}

# Verification tool that checks each language's syntax.
SYNTAX_CHECKS = {
    "ruby": "ruby_syntax_check",
    "python": "python_syntax_check",
    "javascript": "eslint_check",
    "typescript": "eslint_check",
}


def detect(path: str | Path) -> str:
    return EXTENSIONS.get(Path(path).suffix.lower(), "unknown")


def syntax_check_for(path: str | Path) -> str | None:
    return SYNTAX_CHECKS.get(detect(path))
