"""Normalization of planner tool invocations into canonical calls.

The planner is the one source of input-shape variance nobody controls. Raw
invocations are first classified into one of a few known shapes, then merged
with an explicit precedence: keyword arguments > first positional mapping >
empty. Normalization never raises; tools validate their own fields.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .types import CanonicalCall, Decision

# Keys under which planners nest the real arguments.
WRAPPER_KEYS = ("params", "args", "arguments")
# Decision metadata that is never a tool argument.
META_KEYS = {"action", "confidence", "reasoning", "thought"}

PATH_ALIASES = ("file_path", "files", "file")

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEP_RE = re.compile(r"[\s\-.]+")


@dataclass(frozen=True)
class FlatMapping:
    """`{"path": "a.rb", "edits": [...]}`"""

    values: Mapping[str, Any]


@dataclass(frozen=True)
class NestedParams:
    """`{"action": "read_file", "params": {"path": "a.rb"}}`"""

    params: Mapping[str, Any]
    outer: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Positional:
    """`("read_file", {"path": "a.rb"})`, optionally with keyword arguments."""

    values: tuple[Any, ...]
    keywords: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Keywords:
    """`read_file(path="a.rb")`"""

    values: Mapping[str, Any]


Invocation = Union[FlatMapping, NestedParams, Positional, Keywords]


def canonical_key(key: Any) -> str:
    """`"File-Path"`, `"filePath"` and `" file path "` all become `"file_path"`."""
    s = str(key).strip()
    s = _CAMEL_RE.sub("_", s)
    s = _SEP_RE.sub("_", s)
    return s.lower().strip("_")


def canonical_action(action: Any) -> str:
    return canonical_key(action) if action is not None else ""


def _wrapper_key(mapping: Mapping[Any, Any]) -> Any:
    for key in mapping:
        if canonical_key(key) in WRAPPER_KEYS and isinstance(mapping[key], Mapping):
            return key
    return None


def classify(raw: Any) -> Invocation:
    """Map an opaque invocation onto one of the known shapes."""
    if isinstance(raw, (FlatMapping, NestedParams, Positional, Keywords)):
        return raw
    if raw is None:
        return Keywords({})
    if isinstance(raw, Mapping):
        key = _wrapper_key(raw)
        if key is not None:
            outer = {k: v for k, v in raw.items() if k != key}
            return NestedParams(params=raw[key], outer=outer)
        return FlatMapping(raw)
    if isinstance(raw, (list, tuple)):
        return Positional(tuple(raw))
    # A bare scalar is treated as a single positional value.
    return Positional((raw,))


def canonical_keys(mapping: Mapping[Any, Any]) -> dict[str, Any]:
    """
    Canonicalize keys, keeping them unique.

    When two keys collapse to the same canonical form, a key that was already
    canonical wins; otherwise the first one seen wins.
    """
    out: dict[str, Any] = {}
    for key, value in mapping.items():
        ck = canonical_key(key)
        if not ck:
            continue
        if ck not in out or key == ck:
            out[ck] = value
    return out


def _flatten_mapping(mapping: Mapping[Any, Any]) -> dict[str, Any]:
    shape = classify(mapping)
    if isinstance(shape, NestedParams):
        outer = {
            k: v for k, v in canonical_keys(shape.outer).items() if k not in META_KEYS
        }
        return {**outer, **_flatten_mapping(shape.params)}
    return canonical_keys(mapping)


def merge(shape: Invocation, action: str) -> dict[str, Any]:
    """Merge a classified invocation into one flat, canonical mapping."""
    if isinstance(shape, FlatMapping):
        return {k: v for k, v in canonical_keys(shape.values).items() if k not in META_KEYS}
    if isinstance(shape, NestedParams):
        return _flatten_mapping({"params": shape.params, **shape.outer})
    if isinstance(shape, Keywords):
        return _flatten_mapping(shape.values)

    values = list(shape.values)
    if values and isinstance(values[0], str) and canonical_action(values[0]) == action:
        values = values[1:]
    first_mapping = next((v for v in values if isinstance(v, Mapping)), None)
    base = _flatten_mapping(first_mapping) if first_mapping is not None else {}
    return {**base, **_flatten_mapping(shape.keywords)}


def promote_path(args: dict[str, Any]) -> dict[str, Any]:
    """Fill `path` from the first alias that carries a value.

    The promoted alias is dropped, as is any alias repeating an explicit
    `path`, so every spelling of the same call has one signature.
    """
    if "path" in args:
        path = args["path"]
        return {k: v for k, v in args.items() if not _repeats_path(k, v, path)}
    for alias in PATH_ALIASES:
        if alias not in args:
            continue
        value = args[alias]
        rest = {k: v for k, v in args.items() if k != alias}
        if alias == "files":
            if isinstance(value, (list, tuple)) and value:
                if len(value) > 1:
                    rest["files"] = value
                return {**rest, "path": value[0]}
            continue
        return {**rest, "path": value}
    return args


def _repeats_path(key: str, value: Any, path: Any) -> bool:
    if key == "files":
        return isinstance(value, (list, tuple)) and list(value) == [path]
    return key in PATH_ALIASES and value == path


def normalize(action: Any, raw_invocation: Any = None) -> CanonicalCall:
    """
    Normalize an arbitrarily-shaped invocation.

    Args:
        action: Tool name as produced by the planner
        raw_invocation: Mapping, nested-params mapping, positional sequence,
            or one of the shape dataclasses

    Returns:
        CanonicalCall with canonical action name and argument keys
    """
    name = canonical_action(action)
    args = merge(classify(raw_invocation), name)
    return CanonicalCall(action=name, args=promote_path(args))


def normalize_call(action: Any, *args: Any, **kwargs: Any) -> CanonicalCall:
    """Python-call convenience: `normalize_call("read_file", path="a.rb")`."""
    if args:
        return normalize(action, Positional(tuple(args), kwargs))
    return normalize(action, Keywords(kwargs))


def normalize_decision(decision: Decision | Mapping[str, Any]) -> CanonicalCall:
    if isinstance(decision, Mapping):
        decision = Decision.from_dict(dict(decision))
    return normalize(decision.action, decision.params)
