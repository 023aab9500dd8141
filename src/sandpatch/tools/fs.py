"""Tools that change, preview or revert workspace content."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..errors import InvalidArguments, PolicyViolation
from ..fingerprint import fingerprint
from ..git_ops import git_diff, git_revert_all
from ..language import syntax_check_for
from ..patching import encode
from ..policy import check_editable
from .base import MUTATION, OTHER, Tool, ToolContext

# Keys a planner may use for the expected content hash.
FINGERPRINT_KEYS = ("sha256", "expected_sha256", "expected_fingerprint", "fingerprint")


class CreateFile(Tool):
    name = "create_file"
    kind = MUTATION
    description = "Create a new file. Fails if the file already exists; use apply_patch to change it."
    properties = {
        "path": {"type": "string", "description": "File to create"},
        "content": {"type": "string", "description": "Full file content"},
    }
    required = ("path", "content")

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        path = self.require_str(args, "path")
        content = self.require_str(args, "content")

        full_path = ctx.sandbox.resolve(path)
        check_editable(full_path, ctx.protected_files)
        if full_path.exists():
            raise PolicyViolation(
                f"File already exists: {path}",
                path=str(full_path),
                hint="Use read_file and apply_patch to modify existing files.",
            )

        try:
            data = encode(content)
        except UnicodeEncodeError as e:
            raise InvalidArguments(
                f"content is not encodable as UTF-8 ({e.reason})", tool=self.name, field="content"
            ) from e
        full_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(full_path, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise PolicyViolation(f"File already exists: {path}", path=str(full_path)) from e

        ctx.state.file_edits += 1
        return {
            "status": "created",
            "path": ctx.sandbox.relative(full_path),
            "sha256": fingerprint(data),
            "validate_with": syntax_check_for(full_path),
        }


class ApplyPatch(Tool):
    name = "apply_patch"
    kind = MUTATION
    description = (
        "Replace inclusive 1-indexed line ranges of an existing file. All line numbers "
        "refer to the file as last read; pass the sha256 returned by read_file."
    )
    properties = {
        "path": {"type": "string", "description": "File to patch"},
        "sha256": {"type": "string", "description": "sha256 from the last read_file"},
        "edits": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "start_line": {"type": "integer"},
                    "end_line": {"type": "integer"},
                    "replacement": {"type": "string"},
                },
                "required": ["start_line", "end_line", "replacement"],
            },
        },
    }
    required = ("path", "edits")

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        path = self.require_str(args, "path")
        expected = next((args[k] for k in FINGERPRINT_KEYS if args.get(k)), None)
        if expected is not None and not isinstance(expected, str):
            raise InvalidArguments("sha256 must be a hex string", tool=self.name, field="sha256")

        check_editable(ctx.sandbox.resolve(path), ctx.protected_files)
        result = ctx.engine.apply_patch(path, args.get("edits"), expected)

        ctx.state.file_edits += 1
        full_path = Path(result.path)
        return {
            **result.to_dict(),
            "path": ctx.sandbox.relative(full_path),
            "validate_with": syntax_check_for(full_path),
        }


class DiffPreview(Tool):
    name = "diff_preview"
    kind = OTHER
    description = "Show uncommitted changes in the workspace (git diff)."

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        return {"diff": git_diff(ctx.git_runner, ctx.sandbox.root)}


class RevertLastChange(Tool):
    name = "revert_last_change"
    kind = MUTATION
    description = "Discard all uncommitted changes to tracked workspace files."

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        success = git_revert_all(ctx.git_runner, ctx.sandbox.root)
        return {
            "reverted": success,
            "status": "All changes reverted" if success else "Revert failed",
        }
