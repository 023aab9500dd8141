"""Path resolution confined to a single sandbox directory.

Planner-produced paths arrive in every shape: absolute, relative, with or
without the sandbox prefix, wrong case. Resolution is permissive about shape
and strict about containment; the containment check always runs last.
"""

from __future__ import annotations

import os
from pathlib import Path

from .errors import NotFound, PathEscape

DEFAULT_SUBDIR = "playground"
FORBIDDEN_COMPONENTS = {".git", ".env", ".ssh"}


def _is_within(root: Path, p: Path) -> bool:
    return root != p and root in p.parents


class PathSandbox:
    """Resolves caller-supplied paths to absolute paths under one root."""

    def __init__(
        self,
        project_root: Path | str,
        subdir: str = DEFAULT_SUBDIR,
        forbidden_components: set[str] | frozenset[str] | None = None,
    ):
        self.project_root = Path(os.path.abspath(project_root))
        self.subdir = subdir.strip("/")
        self.root = self.project_root / self.subdir
        self.forbidden_components = (
            set(FORBIDDEN_COMPONENTS) if forbidden_components is None else set(forbidden_components)
        )

    def _absolute(self, raw_path: str) -> Path:
        return Path(os.path.normpath(os.path.join(self.project_root, raw_path)))

    def _scope(self, raw_path: str) -> str:
        normalized = raw_path[1:] if raw_path.startswith("/") else raw_path
        if normalized == self.subdir or normalized.startswith(f"{self.subdir}/"):
            return normalized
        return f"{self.subdir}/{normalized}"

    def _case_insensitive(self, candidate: Path) -> Path:
        parent = candidate.parent
        if not parent.is_dir():
            return candidate
        wanted = candidate.name.casefold()
        matches = [
            entry
            for entry in parent.iterdir()
            if entry.name.casefold() == wanted and entry.is_file()
        ]
        if len(matches) == 1:
            return parent / matches[0].name
        return candidate

    def _validate(self, candidate: Path, raw_path: str, allow_root: bool) -> None:
        if allow_root and candidate == self.root:
            return
        if not _is_within(self.root, candidate):
            raise PathEscape(
                f"Path must be within {self.root}/ directory. Got: {candidate}",
                path=raw_path,
                resolved=str(candidate),
                root=str(self.root),
            )
        # Symlinks inside the sandbox must not lead back out of it.
        real_root = self.root.resolve()
        real = candidate.resolve()
        if real != real_root and real_root not in real.parents:
            raise PathEscape(
                "Path escapes sandbox root through a symlink",
                path=raw_path,
                resolved=str(real),
                root=str(self.root),
            )
        for part in candidate.relative_to(self.root).parts:
            if part in self.forbidden_components:
                raise PathEscape(
                    f"Forbidden path component: {part}",
                    path=raw_path,
                    resolved=str(candidate),
                    root=str(self.root),
                )

    def resolve(self, raw_path: str, *, allow_root: bool = False) -> Path:
        """
        Resolve a caller-supplied path to an absolute path inside the sandbox.

        Args:
            raw_path: Path as produced by the planner
            allow_root: Accept the sandbox root itself (directory listings)

        Returns:
            Absolute path with the sandbox root as an ancestor

        Raises:
            PathEscape: If no resolution inside the sandbox exists
        """
        if not isinstance(raw_path, str):
            raise PathEscape(
                f"Path must be a string, got {type(raw_path).__name__}",
                path=repr(raw_path),
                root=str(self.root),
            )
        if "\x00" in raw_path:
            raise PathEscape("NUL bytes not allowed in paths", path=repr(raw_path), root=str(self.root))

        candidate = self._absolute(raw_path)
        if not (candidate == self.root or _is_within(self.root, candidate)):
            candidate = self._absolute(self._scope(raw_path))

        if not candidate.exists():
            candidate = self._case_insensitive(candidate)

        self._validate(candidate, raw_path, allow_root)
        return candidate

    def resolve_existing(self, raw_path: str) -> Path:
        """Resolve and require an existing regular file."""
        p = self.resolve(raw_path)
        if not p.is_file():
            raise NotFound(
                f"File does not exist: {raw_path}",
                path=raw_path,
                resolved=str(p),
            )
        return p

    def resolve_dir(self, raw_path: str = ".") -> Path:
        """Resolve a directory, allowing the sandbox root itself."""
        if raw_path in ("", "."):
            raw_path = self.subdir
        p = self.resolve(raw_path, allow_root=True)
        if not p.is_dir():
            raise NotFound(
                f"Directory does not exist: {raw_path}",
                path=raw_path,
                resolved=str(p),
            )
        return p

    def relative(self, path: Path) -> str:
        """Display form of a resolved path, relative to the project root."""
        return Path(path).relative_to(self.project_root).as_posix()
