"""Read-only repository tools: list, read, search."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..errors import InvalidArguments, NotFound
from ..fingerprint import fingerprint
from ..language import detect
from ..patching import split_lines
from .base import OTHER, READ, Tool, ToolContext

EXCLUDED_COMPONENTS = {".git", "node_modules", "vendor", "bundle", ".bundle", "tmp", "log", "__pycache__"}
MAX_SEARCH_RESULTS = 500


def _excluded(rel: Path) -> bool:
    return any(part in EXCLUDED_COMPONENTS for part in rel.parts)


def _iter_files(ctx: ToolContext, base: Path, pattern: str = "**/*") -> list[Path]:
    root = ctx.sandbox.root.resolve()
    files: list[Path] = []
    for p in base.glob(pattern):
        if not p.is_file():
            continue
        real = p.resolve()
        # Symlinks may point anywhere.
        if root not in real.parents:
            continue
        if _excluded(p.relative_to(ctx.sandbox.root)):
            continue
        files.append(p)
    return sorted(files)


class ListFiles(Tool):
    name = "list_files"
    kind = OTHER
    description = "List files in the workspace, optionally filtered by a glob pattern."
    properties = {
        "path": {"type": "string", "description": "Directory to list (default: workspace root)"},
        "glob": {"type": "string", "description": "Glob pattern (default: **/*)"},
    }

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        path = args.get("path") or "."
        pattern = args.get("glob") or "**/*"
        if not isinstance(path, str) or not isinstance(pattern, str):
            raise InvalidArguments("list_files expects string 'path' and 'glob'", tool=self.name)
        if Path(pattern).is_absolute() or ".." in Path(pattern).parts:
            raise InvalidArguments("glob must be relative to the listed directory", tool=self.name, glob=pattern)

        base = ctx.sandbox.resolve_dir(path)
        files = [ctx.sandbox.relative(p) for p in _iter_files(ctx, base, pattern)]
        return {"files": files, "count": len(files)}


class ReadFile(Tool):
    name = "read_file"
    kind = READ
    description = (
        "Read a file. Returns its content, line count and sha256; pass the sha256 "
        "back to apply_patch."
    )
    properties = {"path": {"type": "string", "description": "File to read"}}
    required = ("path",)

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        path = self.require_str(args, "path")
        full_path = ctx.sandbox.resolve(path)
        if full_path.is_dir():
            raise NotFound(f"Path is not a file: {path}", path=path, resolved=str(full_path))
        full_path = ctx.sandbox.resolve_existing(path)

        data = full_path.read_bytes()
        content = data.decode("utf-8", errors="replace")
        return {
            "path": ctx.sandbox.relative(full_path),
            "content": content,
            "sha256": fingerprint(data),
            "lines": len(split_lines(content)),
            "language": detect(full_path),
        }


class Search(Tool):
    name = "search"
    kind = OTHER
    description = "Search workspace files for a text fragment."
    properties = {
        "query": {"type": "string", "description": "Text to look for"},
        "path": {"type": "string", "description": "Directory to search (default: workspace root)"},
        "case_sensitive": {"type": "boolean", "description": "Default: false"},
    }
    required = ("query",)

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        query = self.require_str(args, "query")
        if not query:
            raise InvalidArguments("search query must not be empty", tool=self.name, field="query")
        case_sensitive = bool(args.get("case_sensitive", False))
        path = args.get("path") or "."
        if not isinstance(path, str):
            raise InvalidArguments("search expects a string 'path'", tool=self.name)

        base = ctx.sandbox.resolve_dir(path)
        needle = query if case_sensitive else query.lower()
        results: list[dict[str, Any]] = []
        truncated = False
        for file_path in _iter_files(ctx, base):
            try:
                text = file_path.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError):
                # Binary or unreadable files are skipped.
                continue
            for line_number, line in enumerate(text.splitlines(), start=1):
                haystack = line if case_sensitive else line.lower()
                if needle not in haystack:
                    continue
                if len(results) >= MAX_SEARCH_RESULTS:
                    truncated = True
                    break
                results.append(
                    {
                        "file": ctx.sandbox.relative(file_path),
                        "line": line_number,
                        "content": line,
                    }
                )
            if truncated:
                break

        return {"results": results, "count": len(results), "truncated": truncated}
