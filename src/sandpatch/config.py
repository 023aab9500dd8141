"""Configuration schema for sandpatch.

Configuration is loaded from .sandpatch.yml in the project root.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_FILENAME = ".sandpatch.yml"


def clean_subdir(v: str) -> str:
    v = v.strip().strip("/")
    if not v or v == "." or ".." in Path(v).parts:
        raise ValueError("subdir must be a non-empty relative directory name")
    return v


class SandboxConfig(BaseModel):
    """Where file operations are allowed to happen."""

    subdir: str = "playground"
    forbidden_components: list[str] = Field(default_factory=lambda: [".git", ".env", ".ssh"])
    protected_files: list[str] = Field(
        default_factory=lambda: ["Gemfile.lock", "package-lock.json", "yarn.lock"]
    )

    @field_validator("subdir")
    @classmethod
    def validate_subdir(cls, v: str) -> str:
        return clean_subdir(v)


class LoopGuardConfig(BaseModel):
    """Repetition policy. Thresholds count the incoming call itself."""

    history_size: int = 5
    default_threshold: int = 2
    verification_threshold: int = 3
    read_threshold: int = 3
    verification_actions: list[str] = Field(
        default_factory=lambda: [
            "ruby_syntax_check",
            "python_syntax_check",
            "eslint_check",
            "rubocop_check",
        ]
    )
    mutation_actions: list[str] = Field(
        default_factory=lambda: ["apply_patch", "create_file", "revert_last_change"]
    )
    read_actions: list[str] = Field(default_factory=lambda: ["read_file"])

    @field_validator("history_size", "default_threshold", "verification_threshold", "read_threshold")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class PolicyConfig(BaseModel):
    """Run-level safety limits."""

    dangerous_actions: list[str] = Field(default_factory=lambda: ["delete_file", "rm", "remove"])
    max_iterations: int = 100
    max_file_edits: int = 50
    max_lint_errors: int = 10
    # Stopping on the first syntax error leaves the agent no chance to fix it.
    stop_on_syntax_error: bool = False


class ValidationConfig(BaseModel):
    """External checkers (syntax, lint) run as subprocesses."""

    timeout_seconds: int = 60
    enforce_allowlist: bool = True
    allowed_argv: list[list[str]] = Field(
        default_factory=lambda: [
            ["ruby", "-c"],
            ["python3", "-m", "py_compile"],
            ["python", "-m", "py_compile"],
            ["eslint", "--format", "json"],
            ["rubocop", "--format", "json"],
            ["git", "diff"],
            ["git", "checkout", "--"],
        ]
    )


class LLMConfig(BaseModel):
    """Chat/generate endpoint used by the agent loop."""

    provider: str = "ollama"
    base_url: str = "http://localhost:11434"
    model_id: str = "qwen2.5-coder"
    temperature: float = 0.2
    timeout_seconds: int = 300
    retry_max: int = 6
    max_steps: int = 25

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        valid_providers = {"ollama"}
        if v not in valid_providers:
            raise ValueError(f"Invalid provider: {v}. Must be one of {valid_providers}")
        return v


class TelemetryConfig(BaseModel):
    """Telemetry and logging configuration."""

    enabled: bool = True
    log_path: str = ".sandpatch/telemetry.jsonl"
    retention_days: int = 30
    max_error_chars: int = 400


class SandpatchConfig(BaseModel):
    """Complete sandpatch configuration."""

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    loop_guard: LoopGuardConfig = Field(default_factory=LoopGuardConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @classmethod
    def load_from_file(cls, config_path: Path | str) -> SandpatchConfig:
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    @classmethod
    def load_from_project(cls, project_root: Path | str) -> SandpatchConfig:
        """Load configuration from the project's .sandpatch.yml."""
        config_path = Path(project_root) / CONFIG_FILENAME

        if not config_path.exists():
            return cls()

        return cls.load_from_file(config_path)

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if subdir := os.getenv("SANDPATCH_SANDBOX_DIR"):
            self.sandbox.subdir = clean_subdir(subdir)

        if v := os.getenv("SANDPATCH_HISTORY_SIZE"):
            self.loop_guard.history_size = int(v)

        if v := os.getenv("SANDPATCH_MAX_ITERATIONS"):
            self.policy.max_iterations = int(v)
        if os.getenv("SANDPATCH_STOP_ON_SYNTAX_ERROR") == "1":
            self.policy.stop_on_syntax_error = True

        if v := os.getenv("SANDPATCH_VALIDATION_TIMEOUT_SECONDS"):
            self.validation.timeout_seconds = int(v)
        if os.getenv("SANDPATCH_DISABLE_ALLOWLIST") == "1":
            self.validation.enforce_allowlist = False

        if url := os.getenv("SANDPATCH_LLM_BASE_URL"):
            self.llm.base_url = url
        if model := os.getenv("SANDPATCH_LLM_MODEL"):
            self.llm.model_id = model
        if temp := os.getenv("SANDPATCH_LLM_TEMPERATURE"):
            self.llm.temperature = float(temp)
        if v := os.getenv("SANDPATCH_MAX_STEPS"):
            self.llm.max_steps = int(v)

        if log_path := os.getenv("SANDPATCH_TELEMETRY_PATH"):
            self.telemetry.log_path = log_path
        if os.getenv("SANDPATCH_TELEMETRY_DISABLED") == "1":
            self.telemetry.enabled = False


def load_config(project_root: Path | str) -> SandpatchConfig:
    """
    Load configuration for a project.

    Args:
        project_root: Directory holding the sandbox subdirectory

    Returns:
        Loaded and validated configuration
    """
    config = SandpatchConfig.load_from_project(project_root)
    config.apply_env_overrides()
    return config
