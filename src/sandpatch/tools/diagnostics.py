from __future__ import annotations

from typing import Any

from .base import OTHER, Tool, ToolContext


class CollectErrors(Tool):
    name = "collect_errors"
    kind = OTHER
    description = "List the syntax and lint failures reported so far in this run."

    def run(self, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        errors = list(ctx.state.errors)
        return {"errors": errors, "count": len(errors)}
