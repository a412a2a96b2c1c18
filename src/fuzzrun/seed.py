"""Default fuzzing-server configuration seeding."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from .config import LaunchSpec

logger = logging.getLogger(__name__)

SERVER_CONFIG_NAME = "fuzzingserver.json"

__all__ = ["SERVER_CONFIG_NAME", "default_server_config", "seed_config_dir"]


def default_server_config(spec: LaunchSpec) -> Dict[str, Any]:
    """Return the config the Autobahn fuzzing server starts with by default."""
    return {
        "url": f"ws://127.0.0.1:{spec.container_port}",
        "outdir": f"{spec.container_report_dir.rstrip('/')}/clients",
        "cases": ["*"],
        "exclude-cases": [],
        "exclude-agent-cases": {},
    }


def seed_config_dir(spec: LaunchSpec, *, force: bool = False) -> bool:
    """Write ``fuzzingserver.json`` into the config dir.

    Returns ``True`` when a file was written. An existing file is left alone
    unless ``force`` is set.
    """
    target = Path(spec.host_config_dir) / SERVER_CONFIG_NAME
    if target.exists() and not force:
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(default_server_config(spec), handle, indent=2)
        handle.write("\n")
    logger.info("Wrote default server config to %s", target)
    return True
