"""Tools the agent can call.

Every tool receives canonical arguments and reaches the filesystem only
through the ToolContext's PathSandbox.
"""

from .base import MUTATION, OTHER, READ, VERIFICATION, Tool, ToolContext
from .diagnostics import CollectErrors
from .fs import ApplyPatch, CreateFile, DiffPreview, RevertLastChange
from .repo import ListFiles, ReadFile, Search
from .validation import EslintCheck, PythonSyntaxCheck, RubocopCheck, RubySyntaxCheck

ALL_TOOLS: list[type[Tool]] = [
    ListFiles,
    ReadFile,
    Search,
    CreateFile,
    ApplyPatch,
    DiffPreview,
    RevertLastChange,
    RubySyntaxCheck,
    PythonSyntaxCheck,
    EslintCheck,
    RubocopCheck,
    CollectErrors,
]


def build_registry(tools: list[type[Tool]] | None = None) -> dict[str, Tool]:
    """Instantiate tools keyed by name."""
    return {cls.name: cls() for cls in (tools or ALL_TOOLS)}


__all__ = [
    "ALL_TOOLS",
    "MUTATION",
    "OTHER",
    "READ",
    "VERIFICATION",
    "Tool",
    "ToolContext",
    "build_registry",
    "ApplyPatch",
    "CollectErrors",
    "CreateFile",
    "DiffPreview",
    "EslintCheck",
    "ListFiles",
    "PythonSyntaxCheck",
    "ReadFile",
    "RevertLastChange",
    "RubocopCheck",
    "RubySyntaxCheck",
    "Search",
]
