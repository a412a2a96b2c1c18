"""JSON Lines run logs for fuzzrun.

Each run gets ``<logs_dir>/<run_id>/`` holding one file per component:

- ``runtime.jsonl``: ``fuzzrun.runtime.*`` (docker calls, container lifecycle)
- ``launcher.jsonl``: every other ``fuzzrun.*`` logger
- ``other.jsonl``: anything else that reaches the root logger

Files always record DEBUG; the console handler on stderr follows the
``--quiet``/``--verbose``/``--debug`` flags.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = ["JSONFormatter", "setup_structured_logging"]

# Ordered most specific first; a logger is claimed by the first prefix it falls under.
_ROUTES = (
    ("fuzzrun.runtime", "runtime.jsonl"),
    ("fuzzrun", "launcher.jsonl"),
)
_CATCH_ALL = "other.jsonl"
_CLAMPED_LOGGERS = ("docker", "urllib3")

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def __init__(self, run_id: Optional[str] = None) -> None:
        super().__init__()
        self.run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.")
            + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        if self.run_id:
            entry["run_id"] = self.run_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                entry[key] = _jsonable(value)
        return json.dumps(entry)


def setup_structured_logging(
    logs_dir: Path,
    run_id: str,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> Path:
    """Route logging into this run's JSONL files and return the run directory."""
    run_dir = Path(logs_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    formatter = JSONFormatter(run_id)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_console_level(debug=debug, verbose=verbose, quiet=quiet))
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    # Component loggers do not propagate, so each record lands in exactly one file.
    for prefix, filename in _ROUTES:
        component = logging.getLogger(prefix)
        _drop_handlers(component)
        component.setLevel(logging.DEBUG)
        component.propagate = False
        component.addHandler(_file_handler(run_dir / filename, formatter))
        component.addHandler(console)

    root = logging.getLogger()
    _drop_handlers(root)
    root.setLevel(logging.DEBUG)
    root.addHandler(_file_handler(run_dir / _CATCH_ALL, formatter))
    root.addHandler(console)

    for name in _CLAMPED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return run_dir


def _drop_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        target.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()


def _file_handler(path: Path, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def _console_level(*, debug: bool, verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value
