"""Top-level ``run`` command: config, logging, runtime, and the launcher."""

from __future__ import annotations

import argparse
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.markup import escape

from ..config import build_cli_config, build_launch_spec, load_config, resolve_path
from ..exceptions import LauncherError, ValidationError
from ..launcher import Launcher
from ..results import RunResult
from ..runtime.base import SessionRuntime
from ..runtime.docker import DockerRuntime
from ..signals import interrupt_token
from ..utils.log_rotation import cleanup_old_logs
from ..utils.structured_logging import setup_structured_logging
from .session_output import TerminalOutput

__all__ = ["make_run_id", "render_error", "run"]

RuntimeFactory = Callable[[], SessionRuntime]


def make_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"run_{ts}_{uuid.uuid4().hex[:8]}"


def render_error(console: Console, exc: LauncherError) -> None:
    console.print(f"[red]{escape(str(exc))}[/red]")
    if exc.hints:
        console.print("Try:")
        for hint in exc.hints[:3]:
            console.print(f"  • {escape(hint)}")


def _event_printer(console: Console) -> Callable[[Dict[str, Any]], None]:
    def _print(event: Dict[str, Any]) -> None:
        kind = event.get("type")
        data = event.get("data", {})
        if kind == "session.stale_removed":
            console.print(
                f"[yellow]Removed stale container {data.get('name')} "
                f"({data.get('status')})[/yellow]"
            )
        elif kind == "session.preflight":
            console.print(
                f"[blue]config[/blue] {data.get('config_dir')}  "
                f"[blue]reports[/blue] {data.get('report_dir')}"
            )
        elif kind == "session.started":
            console.print(
                f"[green]Started {data.get('name')}[/green] ({data.get('session_id')})"
            )
        elif kind == "session.interrupted":
            console.print("\n[yellow]Interrupted, stopping the session[/yellow]")
        elif kind == "session.removed":
            console.print(f"[dim]Removed container {data.get('name')}[/dim]")

    return _print


def _print_summary(console: Console, result: RunResult, report_dir: Path) -> None:
    if result.signaled:
        status = "[yellow]interrupted[/yellow]"
    elif result.exit_code == 0:
        status = "[green]exited cleanly[/green]"
    else:
        status = f"[red]exited with code {result.exit_code}[/red]"
    console.print(
        f"{result.instance_name} {status} after {result.duration_ms / 1000:.1f}s; "
        f"reports in {report_dir}"
    )


async def run(
    console: Console,
    args: argparse.Namespace,
    base_dir: Path,
    *,
    runtime_factory: RuntimeFactory = DockerRuntime,
    stdout: Optional[Any] = None,
) -> int:
    """Run one supervised session and return the process exit code."""
    try:
        cfg = load_config(base_dir, build_cli_config(args), getattr(args, "config", None))
        spec = build_launch_spec(cfg, base_dir)
    except LauncherError as exc:
        render_error(console, exc)
        return exc.exit_code

    run_id = make_run_id()
    logs_dir = resolve_path(cfg["paths"]["logs_dir"], base_dir)
    stream = stdout if stdout is not None else sys.stdout.buffer
    try:
        retention = int((cfg.get("logging") or {}).get("retention_days", 7))
        run_logs_dir = setup_structured_logging(
            logs_dir,
            run_id,
            debug=bool(getattr(args, "debug", False)),
            verbose=bool(getattr(args, "verbose", False)),
            quiet=bool(getattr(args, "quiet", False)),
        )
        cleanup_old_logs(logs_dir, retention)
        output = TerminalOutput(stream, run_logs_dir / "container.log")
    except (OSError, ValueError) as exc:
        error = ValidationError(
            f"cannot set up run logs under {logs_dir}: {exc}",
            hints=["pass --logs-dir DIR", "set FUZZRUN_LOGS_DIR", "or pass --base-dir DIR"],
        )
        render_error(console, error)
        return error.exit_code

    runtime: Optional[SessionRuntime] = None
    try:
        runtime = runtime_factory()
        launcher = Launcher(
            runtime, output=output, event_callback=_event_printer(console)
        )
        console.print(
            f"[bold]{spec.instance_name}[/bold] {spec.image} → "
            f"ws://localhost:{spec.published_port}  [dim]({run_id})[/dim]"
        )
        with interrupt_token() as token:
            result = await launcher.run(spec, token)
    except LauncherError as exc:
        render_error(console, exc)
        return exc.exit_code
    finally:
        output.close()
        if runtime is not None:
            runtime.close()

    _print_summary(console, result, spec.host_report_dir)
    return result.process_exit_code
