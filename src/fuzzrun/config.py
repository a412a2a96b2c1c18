"""Configuration management for fuzzrun.

Values are layered, lowest precedence first: built-in defaults, the YAML
config file, a ``.env`` file, the process environment, then CLI flags.
Relative paths resolve against the launcher's base directory, never against
the caller's working directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values

from .exceptions import ValidationError

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_IMAGE",
    "LaunchSpec",
    "build_cli_config",
    "build_launch_spec",
    "deep_merge",
    "get_default_config",
    "load_config",
    "load_dotenv_config",
    "load_env_config",
    "load_yaml_config",
    "merge_config",
    "resolve_base_dir",
    "resolve_path",
]

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "fuzzrun.yaml"
# Pinned so repeated runs exercise the same suite; override with --image.
DEFAULT_IMAGE = "crossbario/autobahn-testsuite:0.8.2"

_ENV_TO_CONFIG_KEY: Dict[str, Tuple[str, ...]] = {
    "FUZZRUN_PORT": ("port",),
    "FUZZRUN_IMAGE": ("image",),
    "FUZZRUN_NAME": ("instance_name",),
    "FUZZRUN_CONFIG_DIR": ("paths", "config_dir"),
    "FUZZRUN_REPORT_DIR": ("paths", "report_dir"),
    "FUZZRUN_LOGS_DIR": ("paths", "logs_dir"),
    "FUZZRUN_STOP_TIMEOUT": ("session", "stop_timeout"),
    "FUZZRUN_HOST_ADDRESS": ("session", "host_address"),
}


@dataclass(frozen=True)
class LaunchSpec:
    """Everything needed to start one sandboxed fuzzing server."""

    host_config_dir: Path
    host_report_dir: Path
    container_config_dir: str = "/config"
    container_report_dir: str = "/reports"
    published_port: int = 9001
    container_port: int = 9001
    image: str = DEFAULT_IMAGE
    instance_name: str = "fuzzingserver"
    host_address: str = "0.0.0.0"
    interactive: bool = True
    tty: Optional[bool] = None
    stop_timeout: int = 10
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def port_binding(self) -> Dict[str, Tuple[str, int]]:
        return {
            f"{self.container_port}/tcp": (self.host_address, self.published_port)
        }


def resolve_base_dir(anchor: os.PathLike | str) -> Path:
    """Return the directory host paths are resolved against.

    ``anchor`` is the launcher's own location. A file anchors to its parent
    directory, a directory anchors to itself.
    """
    path = Path(anchor).expanduser().resolve()
    if path.is_dir():
        return path
    return path.parent


def get_default_config() -> Dict[str, Any]:
    """Return a fresh copy of fuzzrun's default configuration."""
    return {
        "image": DEFAULT_IMAGE,
        "port": 9001,
        "instance_name": "fuzzingserver",
        "paths": {
            "config_dir": "config",
            "report_dir": "reports",
            "logs_dir": "logs",
        },
        "container": {
            "port": 9001,
            "config_dir": "/config",
            "report_dir": "/reports",
        },
        "session": {
            "stop_timeout": 10,
            "host_address": "0.0.0.0",
            "interactive": True,
            "tty": None,
        },
        "logging": {
            "retention_days": 7,
        },
    }


def merge_config(
    cli_args: Dict[str, Any],
    env_config: Dict[str, Any],
    dotenv_config: Dict[str, Any],
    file_config: Dict[str, Any],
    defaults: Dict[str, Any],
) -> Dict[str, Any]:
    """Merge configuration dictionaries honoring precedence order."""
    merged = defaults.copy()
    deep_merge(merged, file_config)
    deep_merge(merged, dotenv_config)
    deep_merge(merged, env_config)
    cli_filtered = {key: value for key, value in cli_args.items() if value is not None}
    deep_merge(merged, cli_filtered)
    return merged


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> None:
    """Recursively merge ``overlay`` into ``base`` in place."""
    for key, value in overlay.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            base[key] = dict(base[key])
            deep_merge(base[key], value)
        else:
            base[key] = value


def load_yaml_config(path: Path, *, explicit: bool = False) -> Dict[str, Any]:
    """Load configuration from a YAML file.

    A missing or broken default file yields ``{}``; an explicit ``--config``
    path that is missing or malformed raises ``ValidationError``.
    """
    if not path.exists():
        if explicit:
            raise ValidationError(f"config file not found: {path}")
        return {}

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (yaml.YAMLError, OSError) as exc:
        if explicit:
            raise ValidationError(f"failed to read config {path}: {exc}")
        logger.warning("Failed to load %s: %s", path, exc)
        return {}

    if not isinstance(data, dict):
        if explicit:
            raise ValidationError(f"invalid config format (expected mapping): {path}")
        return {}
    return data


def load_dotenv_config(dotenv_path: Path) -> Dict[str, Any]:
    """Load ``FUZZRUN_*`` settings from a ``.env`` file."""
    if not dotenv_path.exists():
        return {}
    return _config_from_env_mapping(dotenv_values(dotenv_path))


def load_env_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load ``FUZZRUN_*`` settings from the process environment."""
    return _config_from_env_mapping(os.environ if environ is None else environ)


def build_cli_config(args) -> Dict[str, Any]:
    """Translate argparse args into a hierarchical config dict."""
    cfg: Dict[str, Any] = {}
    if getattr(args, "port", None) is not None:
        cfg["port"] = args.port
    if getattr(args, "image", None):
        cfg["image"] = args.image
    if getattr(args, "name", None):
        cfg["instance_name"] = args.name
    if getattr(args, "config_dir", None):
        cfg.setdefault("paths", {})["config_dir"] = _cli_path(args.config_dir)
    if getattr(args, "report_dir", None):
        cfg.setdefault("paths", {})["report_dir"] = _cli_path(args.report_dir)
    if getattr(args, "logs_dir", None):
        cfg.setdefault("paths", {})["logs_dir"] = _cli_path(args.logs_dir)
    if getattr(args, "stop_timeout", None) is not None:
        cfg.setdefault("session", {})["stop_timeout"] = args.stop_timeout
    if getattr(args, "host_address", None):
        cfg.setdefault("session", {})["host_address"] = args.host_address
    if getattr(args, "no_tty", False):
        cfg.setdefault("session", {})["tty"] = False
    return cfg


def load_config(
    base_dir: Path,
    cli_config: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Load configuration from defaults, files, environment, and CLI."""
    explicit = config_path is not None
    path = config_path if explicit else base_dir / CONFIG_FILE_NAME
    if explicit and not path.is_absolute():
        path = Path.cwd() / path
    return merge_config(
        cli_args=cli_config or {},
        env_config=load_env_config(environ),
        dotenv_config=load_dotenv_config(base_dir / ".env"),
        file_config=load_yaml_config(path, explicit=explicit),
        defaults=get_default_config(),
    )


def build_launch_spec(config: Dict[str, Any], base_dir: Path) -> LaunchSpec:
    """Validate a merged config and turn it into a ``LaunchSpec``."""
    paths = config.get("paths", {}) or {}
    container = config.get("container", {}) or {}
    session = config.get("session", {}) or {}

    image = str(config.get("image") or "").strip()
    if not image:
        raise ValidationError("image must be a non-empty image reference")
    name = str(config.get("instance_name") or "").strip()
    if not name:
        raise ValidationError("instance_name must not be empty")

    tty = session.get("tty")
    return LaunchSpec(
        host_config_dir=resolve_path(paths.get("config_dir", "config"), base_dir),
        host_report_dir=resolve_path(paths.get("report_dir", "reports"), base_dir),
        container_config_dir=str(container.get("config_dir", "/config")),
        container_report_dir=str(container.get("report_dir", "/reports")),
        published_port=_port(config.get("port"), "port"),
        container_port=_port(container.get("port"), "container.port"),
        image=image,
        instance_name=name,
        host_address=str(session.get("host_address") or "0.0.0.0"),
        interactive=_bool(session.get("interactive", True), "session.interactive"),
        tty=None if tty is None else _bool(tty, "session.tty"),
        stop_timeout=_non_negative_int(
            session.get("stop_timeout", 10), "session.stop_timeout"
        ),
        labels={"fuzzrun.instance": name},
    )


def resolve_path(value: Any, base_dir: Path) -> Path:
    """Resolve ``value`` against ``base_dir`` unless it is already absolute."""
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def _config_from_env_mapping(values: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for env_key, config_path in _ENV_TO_CONFIG_KEY.items():
        value = values.get(env_key)
        if value is None or value == "":
            continue
        target = config
        for part in config_path[:-1]:
            target = target.setdefault(part, {})
        target[config_path[-1]] = value
    return config


def _port(value: Any, key: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer, got {value!r}")
    if not 1 <= port <= 65535:
        raise ValidationError(f"{key} must be within 1..65535, got {port}")
    return port


def _non_negative_int(value: Any, key: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer, got {value!r}")
    if number < 0:
        raise ValidationError(f"{key} must be >= 0, got {number}")
    return number


def _bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValidationError(f"{key} must be a boolean, got {value!r}")


def _cli_path(value: Any) -> str:
    # Paths typed on the command line are relative to where the operator is.
    return str(Path(str(value)).expanduser().resolve())
