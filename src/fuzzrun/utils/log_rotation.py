"""Cleanup of old run log directories."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

__all__ = ["cleanup_old_logs"]

_RUN_DIR_PREFIX = "run_"
_TIMESTAMP_SLICE = slice(4, 19)  # run_YYYYMMDD_HHMMSS
_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_DEFAULT_RETENTION_DAYS = 7


def cleanup_old_logs(
    logs_dir: Path,
    retention_days: int = _DEFAULT_RETENTION_DAYS,
    *,
    now: Optional[datetime] = None,
) -> int:
    """Remove run log directories older than ``retention_days``."""
    if not logs_dir.exists():
        return 0

    cutoff_date = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)
    cleanup_count = 0

    for run_dir in list(_iter_run_directories(logs_dir)):
        timestamp = _extract_run_timestamp(run_dir)
        if timestamp is None:
            logger.warning("Failed to parse timestamp for %s", run_dir)
            continue
        if timestamp < cutoff_date:
            try:
                logger.info("Removing old log directory: %s", run_dir)
                shutil.rmtree(run_dir)
                cleanup_count += 1
            except OSError as exc:  # pragma: no cover - best effort cleanup
                logger.warning("Failed to remove %s: %s", run_dir, exc)

    return cleanup_count


def _iter_run_directories(logs_dir: Path) -> Iterable[Path]:
    for entry in logs_dir.iterdir():
        if entry.is_dir() and entry.name.startswith(_RUN_DIR_PREFIX):
            yield entry


def _extract_run_timestamp(run_dir: Path) -> Optional[datetime]:
    try:
        parsed = datetime.strptime(run_dir.name[_TIMESTAMP_SLICE], _TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)
