"""Argument parser construction for fuzzrun."""

from __future__ import annotations

import argparse
from pathlib import Path

from ..config import DEFAULT_IMAGE
from ..version import __version__

COMMANDS = ("run", "doctor", "init")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with grouped options and examples."""
    parser = argparse.ArgumentParser(
        prog="fuzzrun",
        description=(
            "Run a containerized protocol fuzzing server in the foreground and "
            "remove it when it exits or is interrupted"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  # Start the fuzzing server on ws://localhost:9001\n"
            "  fuzzrun\n\n"
            "  # Use another host port and image tag\n"
            "  fuzzrun --port 9002 --image crossbario/autobahn-testsuite:latest\n\n"
            "  # Check Docker, image, port and directories\n"
            "  fuzzrun doctor\n\n"
            "  # Write the default fuzzingserver.json\n"
            "  fuzzrun init\n"
        ),
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        default="run",
        help="Command to run (default: run)",
    )

    g_session = parser.add_argument_group("Session")
    g_session.add_argument(
        "--port", type=int, help="Host port published for the server (default: 9001)"
    )
    g_session.add_argument(
        "--image", help=f"Image reference to run (default: {DEFAULT_IMAGE})"
    )
    g_session.add_argument(
        "--name", help="Container name (default: fuzzingserver)"
    )
    g_session.add_argument(
        "--host-address",
        help="Host interface the port binds to (default: 0.0.0.0)",
    )
    g_session.add_argument(
        "--stop-timeout",
        type=int,
        help="Seconds to wait after SIGTERM before killing on interrupt (default: 10)",
    )
    g_session.add_argument(
        "--no-tty", action="store_true", help="Never allocate a TTY for the session"
    )

    g_paths = parser.add_argument_group("Paths")
    g_paths.add_argument(
        "--base-dir",
        type=Path,
        help="Directory relative paths resolve against (default: launcher location)",
    )
    g_paths.add_argument(
        "--config-dir", type=Path, help="Host dir mounted read-only at /config"
    )
    g_paths.add_argument(
        "--report-dir", type=Path, help="Host dir mounted at /reports"
    )
    g_paths.add_argument("--logs-dir", type=Path, help="Directory for run logs")
    g_paths.add_argument(
        "--config", type=Path, help="YAML config file (default: <base-dir>/fuzzrun.yaml)"
    )

    g_init = parser.add_argument_group("init")
    g_init.add_argument(
        "--force", action="store_true", help="Overwrite an existing fuzzingserver.json"
    )

    g_output = parser.add_argument_group("Output")
    g_output.add_argument("-v", "--verbose", action="store_true", help="Log INFO to stderr")
    g_output.add_argument("--debug", action="store_true", help="Log DEBUG to stderr")
    g_output.add_argument(
        "-q", "--quiet", action="store_true", help="Only log errors to stderr"
    )
    g_output.add_argument(
        "--no-color", action="store_true", help="Disable colored output"
    )

    return parser


__all__ = ["COMMANDS", "create_parser"]
