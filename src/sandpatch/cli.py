"""Command-line interface for sandpatch.

Commands:
- sandpatch tools: List tool definitions
- sandpatch read PATH: Read a sandboxed file (content + sha256)
- sandpatch patch PATH --edits FILE: Apply line-range edits
- sandpatch call ACTION --params JSON: Run any tool through the full pipeline
- sandpatch run TASK: Run the agent loop against a local Ollama server
- sandpatch status: Show guard/tool metrics from telemetry
- sandpatch telemetry tail: Print recent telemetry events
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections import deque
from pathlib import Path
from typing import Any

import click

from . import __version__
from .agent import AgentRunner
from .config import SandpatchConfig, load_config
from .errors import SandpatchError
from .llm_client import OllamaClient
from .status import StatusWindow, compute_status
from .telemetry import prune_telemetry_file
from .workspace import Workspace


def _load(root: Path, config: str | None) -> SandpatchConfig:
    if config:
        cfg = SandpatchConfig.load_from_file(config)
        cfg.apply_env_overrides()
        return cfg
    return load_config(root)


def _workspace(ctx: click.Context) -> Workspace:
    root: Path = ctx.obj["root"]
    return Workspace(root, ctx.obj["config"])


def _emit(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _execute(ws: Workspace, action: str, params: Any) -> None:
    try:
        result = ws.execute(action, params)
    except SandpatchError as e:
        _emit(e.to_dict())
        sys.exit(1)
    _emit(result)
    if result.get("ok") is False:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="sandpatch")
@click.option(
    "--root",
    "-r",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Project root holding the sandbox directory.",
)
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx: click.Context, root: str, config: str | None) -> None:
    """sandpatch - sandboxed file patching for coding agents."""
    root_path = Path(root).resolve()
    ctx.ensure_object(dict)
    ctx.obj["root"] = root_path
    ctx.obj["config"] = _load(root_path, config)


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List registered tools and their kinds."""
    ws = _workspace(ctx)
    for name, tool in ws.tools.items():
        click.echo(f"{name:<22} {tool.kind:<13} {tool.description}")


@cli.command()
@click.argument("path")
@click.pass_context
def read(ctx: click.Context, path: str) -> None:
    """Read a file from the sandbox."""
    _execute(_workspace(ctx), "read_file", {"path": path})


@cli.command()
@click.argument("path")
@click.option(
    "--edits",
    "-e",
    "edits_file",
    type=click.File("r", encoding="utf-8"),
    required=True,
    help="JSON file with a list of edits ('-' for stdin).",
)
@click.option("--sha256", help="Expected sha256 of the current content.")
@click.pass_context
def patch(ctx: click.Context, path: str, edits_file: Any, sha256: str | None) -> None:
    """Apply line-range edits to a sandboxed file.

    Example:
        sandpatch patch lib/calc.rb --edits edits.json --sha256 3a7b...
    """
    try:
        edits = json.load(edits_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid edits JSON: {e}") from e

    params: dict[str, Any] = {"path": path, "edits": edits}
    if sha256:
        params["sha256"] = sha256
    _execute(_workspace(ctx), "apply_patch", params)


@cli.command()
@click.argument("action")
@click.option("--params", "-p", default="{}", show_default=True, help="Tool arguments as JSON.")
@click.pass_context
def call(ctx: click.Context, action: str, params: str) -> None:
    """Run one tool call through normalization, policy and the loop guard."""
    try:
        raw = json.loads(params)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid params JSON: {e}") from e
    _execute(_workspace(ctx), action, raw)


@cli.command()
@click.argument("task")
@click.option("--model", "-m", help="Override the configured model id.")
@click.option("--max-steps", type=int, help="Override the configured step limit.")
@click.option("--no-plan", is_flag=True, help="Skip the planning request.")
@click.option("--output", "-o", type=click.Path(), help="Save the run summary to a JSON file")
@click.pass_context
def run(
    ctx: click.Context,
    task: str,
    model: str | None,
    max_steps: int | None,
    no_plan: bool,
    output: str | None,
) -> None:
    """Run the agent loop on TASK.

    Example:
        sandpatch run "Add a subtract method to calculator.rb"
    """
    cfg: SandpatchConfig = ctx.obj["config"]
    if model:
        cfg.llm.model_id = model

    ws = _workspace(ctx)
    prune_telemetry_file(ws.telemetry.path, cfg.telemetry.retention_days)

    click.echo(f"Sandbox: {ws.sandbox.root}")
    click.echo(f"Model: {cfg.llm.model_id}")
    click.echo()

    runner = AgentRunner(ws, OllamaClient(cfg.llm), max_steps=max_steps, use_planner=not no_plan)
    try:
        summary = asyncio.run(runner.run(task))
    except KeyboardInterrupt:
        click.echo()
        click.echo("Stopping...")
        sys.exit(130)
    except RuntimeError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Status: {summary['status']}")
    click.echo(f"Steps: {summary['steps']}")
    click.echo(f"File edits: {summary['file_edits']}")
    click.echo(f"Rejections: {summary['rejections']}")

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, default=str)
        click.echo(f"Results saved to: {output}")

    if summary["status"] not in {"validated", "finished"}:
        sys.exit(1)


@cli.command()
@click.option(
    "--format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--window-minutes",
    type=int,
    default=60,
    show_default=True,
    help="Time window for metrics.",
)
@click.pass_context
def status(ctx: click.Context, format: str, window_minutes: int) -> None:
    """Show guard and tool metrics from telemetry."""
    cfg: SandpatchConfig = ctx.obj["config"]
    telemetry_path = ctx.obj["root"] / cfg.telemetry.log_path
    st = compute_status(telemetry_path, window=StatusWindow(seconds=max(1, window_minutes) * 60.0))

    if format == "json":
        click.echo(json.dumps(st, indent=2, default=str))
        return

    click.echo(f"Telemetry: {telemetry_path}")
    click.echo(f"Window: {window_minutes} minutes")
    click.echo(f"Calls admitted: {st['calls_admitted']}")
    click.echo(f"Calls rejected: {st['calls_rejected']}")
    click.echo(f"Rejection rate: {st['rejection_rate']}")
    click.echo(f"Tool failure rate: {st['tool_failure_rate']}")
    click.echo(f"Patches applied: {st['patches_applied']}")

    last = st.get("last_run") or {}
    if last:
        click.echo()
        click.echo(f"Last run: run_id={last.get('run_id')} status={(last.get('data') or {}).get('status')}")


@cli.group()
def telemetry() -> None:
    """Telemetry utilities."""


@telemetry.command("tail")
@click.option(
    "--lines",
    "-n",
    type=int,
    default=50,
    show_default=True,
    help="Number of telemetry lines to show.",
)
@click.pass_context
def telemetry_tail(ctx: click.Context, lines: int) -> None:
    """Print the last N telemetry events."""
    cfg: SandpatchConfig = ctx.obj["config"]
    telemetry_path = ctx.obj["root"] / cfg.telemetry.log_path

    if not telemetry_path.exists():
        raise click.ClickException(f"Telemetry file not found: {telemetry_path}")

    with open(telemetry_path, encoding="utf-8") as f:
        tail = deque(f, maxlen=max(0, lines))

    for ln in tail:
        click.echo(ln, nl=False)


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
