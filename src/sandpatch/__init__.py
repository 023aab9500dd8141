"""Sandboxed, fingerprint-checked file patching for LLM coding agents."""

__version__ = "0.1.0"
