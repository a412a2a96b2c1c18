"""Environment diagnostics (doctor) for the fuzzrun CLI.

Each check appends a ``(status, title, message, tries)`` row; the command
fails when any row is ``✗``; ``!`` rows are warnings.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from ..config import LaunchSpec, build_cli_config, build_launch_spec, load_config
from ..exceptions import LauncherError
from ..ports import is_port_free
from ..runtime.base import SessionRuntime
from ..runtime.docker import DockerRuntime
from ..seed import SERVER_CONFIG_NAME
from ..utils.platform_utils import validate_docker_setup

__all__ = ["run_doctor"]

Row = tuple[str, str, str, list[str]]


def _print_rows(console: Console, rows: list[Row]) -> int:
    ok = all(status != "✗" for status, *_ in rows)
    for status, title, message, tries in rows:
        if status in ("✓", "✗", "!"):
            console.print(f"{status} {title}: {escape(message)}")
        else:
            console.print(f"i {title}: {escape(message)}")
        if status in ("✗", "!") and tries:
            console.print("Try:")
            for t in tries[:3]:
                console.print(f"  • {escape(t)}")
    return 0 if ok else 1


def _check_base_dir(base_dir: Path, rows: list[Row]) -> None:
    prefixes = {Path(p).resolve() for p in (sys.prefix, sys.base_prefix, sys.exec_prefix)}
    if any(base_dir.resolve().is_relative_to(p) for p in prefixes):
        rows.append(
            (
                "!",
                "base dir",
                f"{base_dir} is inside the Python install prefix; "
                "config, reports and logs would land there",
                ["pass --base-dir DIR", "set FUZZRUN_HOME", "or run autobahn/run.py"],
            )
        )
    else:
        rows.append(("i", "base dir", str(base_dir), []))


def _check_docker(rows: list[Row]) -> bool:
    valid, message = validate_docker_setup()
    rows.append(
        (
            "✓" if valid else "✗",
            "docker",
            "ok" if valid else (message or "cannot connect to docker daemon"),
            [] if valid else ["start Docker", "check $DOCKER_HOST", "run: docker info"],
        )
    )
    return valid


async def _check_image(runtime: SessionRuntime, spec: LaunchSpec, rows: list[Row]) -> None:
    try:
        await runtime.ensure_image(spec.image)
        rows.append(("✓", "image", spec.image, []))
    except LauncherError as exc:
        rows.append(("✗", "image", str(exc), list(exc.hints)))


async def _check_name(runtime: SessionRuntime, spec: LaunchSpec, rows: list[Row]) -> None:
    try:
        existing = await runtime.find(spec.instance_name)
    except LauncherError as exc:
        rows.append(("✗", "name", str(exc), []))
        return
    if existing is None:
        rows.append(("✓", "name", f"{spec.instance_name} is free", []))
    elif existing.running:
        rows.append(
            (
                "✗",
                "name",
                f"{spec.instance_name} is running ({existing.session_id[:12]})",
                [f"docker stop {spec.instance_name}", "or pass --name"],
            )
        )
    else:
        rows.append(
            (
                "i",
                "name",
                f"stale {spec.instance_name} ({existing.status}) will be removed on run",
                [],
            )
        )


def _check_port(spec: LaunchSpec, rows: list[Row]) -> None:
    if is_port_free(spec.published_port, spec.host_address):
        rows.append(("✓", "port", f"{spec.host_address}:{spec.published_port} free", []))
    else:
        rows.append(
            (
                "✗",
                "port",
                f"{spec.host_address}:{spec.published_port} in use",
                [f"lsof -i :{spec.published_port}", "pick another port with --port"],
            )
        )


def _check_dir(title: str, path: Path, mode: int, rows: list[Row]) -> None:
    if not path.exists():
        rows.append(("i", title, f"{path} (will be created)", []))
    elif os.access(path, mode):
        rows.append(("✓", title, str(path), []))
    else:
        rows.append(("✗", title, f"no access: {path}", ["adjust permissions"]))


def _check_server_config(spec: LaunchSpec, rows: list[Row]) -> None:
    target = spec.host_config_dir / SERVER_CONFIG_NAME
    if target.exists():
        rows.append(("✓", "server config", str(target), []))
    else:
        rows.append(("i", "server config", f"{target} missing (default written on run)", []))


async def run_doctor(
    console: Console,
    args: argparse.Namespace,
    base_dir: Path,
    *,
    runtime_factory: Callable[[], SessionRuntime] = DockerRuntime,
    docker_check: Optional[Callable[[list[Row]], bool]] = None,
) -> int:
    try:
        cfg = load_config(base_dir, build_cli_config(args), getattr(args, "config", None))
        spec = build_launch_spec(cfg, base_dir)
    except LauncherError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return exc.exit_code

    rows: list[Row] = []
    _check_base_dir(base_dir, rows)
    _check_dir("config dir", spec.host_config_dir, os.R_OK, rows)
    _check_dir("report dir", spec.host_report_dir, os.W_OK, rows)
    _check_server_config(spec, rows)
    _check_port(spec, rows)

    if (docker_check or _check_docker)(rows):
        runtime: Optional[SessionRuntime] = None
        try:
            runtime = runtime_factory()
            await _check_image(runtime, spec, rows)
            await _check_name(runtime, spec, rows)
        except LauncherError as exc:
            rows.append(("✗", "runtime", str(exc), list(exc.hints)))
        finally:
            if runtime is not None:
                runtime.close()
    return _print_rows(console, rows)
