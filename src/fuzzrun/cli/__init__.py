"""fuzzrun CLI entrypoint.

A thin shell that resolves the launcher's base directory and delegates to
the ``run``, ``doctor`` and ``init`` command modules.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Final, List, Optional

from rich.console import Console

from ..config import resolve_base_dir
from . import doctor, init_command, run_command
from .parser import create_parser

__all__: Final = ["main", "base_dir_for"]


def base_dir_for(args: argparse.Namespace, anchor: Optional[os.PathLike | str]) -> Path:
    """Pick the directory relative paths resolve against.

    ``--base-dir`` wins, then ``$FUZZRUN_HOME``, then the launcher's own
    location (``anchor``, defaulting to the invoked script).
    """
    if getattr(args, "base_dir", None):
        return Path(args.base_dir).expanduser().resolve()
    home = os.environ.get("FUZZRUN_HOME")
    if home:
        return Path(home).expanduser().resolve()
    return resolve_base_dir(anchor if anchor is not None else sys.argv[0])


async def _dispatch(console: Console, args: argparse.Namespace, base_dir: Path) -> int:
    if args.command == "doctor":
        return await doctor.run_doctor(console, args, base_dir)
    if args.command == "init":
        return await init_command.run_init(console, args, base_dir)
    return await run_command.run(console, args, base_dir)


def main(
    argv: Optional[List[str]] = None, anchor: Optional[os.PathLike | str] = None
) -> None:
    """CLI entrypoint."""
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.no_color:
        console = Console(stderr=True, no_color=True)
    else:
        console = Console(stderr=True)

    base_dir = base_dir_for(args, anchor)
    rc = asyncio.run(_dispatch(console, args, base_dir))
    sys.exit(int(rc))


if __name__ == "__main__":
    main()
