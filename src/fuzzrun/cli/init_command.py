"""``init`` command: write the default fuzzing-server config."""

from __future__ import annotations

import argparse
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..config import build_cli_config, build_launch_spec, load_config
from ..exceptions import LauncherError
from ..launcher import prepare_host_dirs
from ..seed import SERVER_CONFIG_NAME, seed_config_dir

__all__ = ["run_init"]


async def run_init(console: Console, args: argparse.Namespace, base_dir: Path) -> int:
    try:
        cfg = load_config(base_dir, build_cli_config(args), getattr(args, "config", None))
        spec = build_launch_spec(cfg, base_dir)
        prepare_host_dirs(spec)
    except LauncherError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return exc.exit_code

    target = spec.host_config_dir / SERVER_CONFIG_NAME
    if seed_config_dir(spec, force=bool(getattr(args, "force", False))):
        console.print(f"[green]Wrote[/green] {target}")
    else:
        console.print(f"[yellow]{target} exists[/yellow]; pass --force to overwrite")
    return 0
