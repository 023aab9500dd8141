from pathlib import Path

from .runner import CommandRunner


def git_diff(runner: CommandRunner, scope: Path) -> str:
    """Uncommitted changes under scope (empty when clean or not a repo)."""
    res = runner.run(["git", "diff", "--", str(scope)])
    return res["stdout"] if res["exit_code"] == 0 else ""


def git_revert_all(runner: CommandRunner, scope: Path) -> bool:
    """Discard uncommitted changes to tracked files under scope."""
    res = runner.run(["git", "checkout", "--", str(scope)])
    return res["exit_code"] == 0
