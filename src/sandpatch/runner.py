import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Any


class CommandRunner:
    """
    Runner for external checkers (syntax, lint, git).

    Key security properties:
    - Executes an argv list (no shell).
    - Allowlist is validated against parsed argv (command + args prefix).
    """

    def __init__(
        self,
        cwd: Path,
        allowed_argv: list[list[str]] | None = None,
        enforce_allowlist: bool = True,
        timeout_s: int = 60,
    ):
        self.cwd = Path(cwd)
        self.allowed_argv = allowed_argv or []
        self.enforce_allowlist = enforce_allowlist
        self.timeout_s = timeout_s

    def _check_argv_allowed(self, argv: list[str]) -> tuple[bool, str]:
        if not argv:
            return False, "Empty argv"

        for a in argv:
            if any(ch in a for ch in ["\n", "\r", "\x00"]):
                return False, "Newlines/NUL not allowed"

        if self.enforce_allowlist:
            if not self.allowed_argv:
                return False, "Allowlist enforcement enabled but allowlist is empty"
            for allowed in self.allowed_argv:
                if allowed and argv[: len(allowed)] == allowed:
                    return True, ""
            return False, "Command not in allowlist"

        return True, ""

    def available(self, program: str) -> bool:
        return shutil.which(program) is not None

    def run(
        self,
        argv: list[str],
        timeout_s: int | None = None,
        env: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        t0 = time.time()

        ok, reason = self._check_argv_allowed(argv)
        if not ok:
            return {
                "argv": argv,
                "exit_code": 126,
                "stdout": "",
                "stderr": f"Runner rejected command: {reason}",
                "duration_s": round(time.time() - t0, 3),
                "rejected": True,
                "reject_reason": reason,
            }

        if not self.available(argv[0]):
            return {
                "argv": argv,
                "exit_code": 127,
                "stdout": "",
                "stderr": f"{argv[0]} not found in PATH",
                "duration_s": round(time.time() - t0, 3),
            }

        merged_env = os.environ.copy()
        if env:
            merged_env.update(env)

        try:
            p = subprocess.run(
                argv,
                cwd=str(self.cwd),
                text=True,
                capture_output=True,
                timeout=timeout_s or self.timeout_s,
                shell=False,
                env=merged_env,
            )
        except subprocess.TimeoutExpired:
            return {
                "argv": argv,
                "exit_code": 124,
                "stdout": "",
                "stderr": f"Timed out after {timeout_s or self.timeout_s}s",
                "duration_s": round(time.time() - t0, 3),
            }
        return {
            "argv": argv,
            "exit_code": p.returncode,
            "stdout": p.stdout,
            "stderr": p.stderr,
            "duration_s": round(time.time() - t0, 3),
        }
