"""Cross-platform helpers for fuzzrun."""

from __future__ import annotations

import os
import platform
import subprocess
from pathlib import Path
from typing import Optional, Tuple

__all__ = [
    "is_wsl",
    "normalize_path_for_docker",
    "selinux_enabled",
    "validate_docker_setup",
]


def is_wsl() -> bool:
    """Return ``True`` when running inside Windows Subsystem for Linux."""
    if platform.system() != "Linux":
        return False

    try:
        with open("/proc/version", "r", encoding="utf-8") as handle:
            version_info = handle.read().lower()
    except OSError:
        return False

    return "microsoft" in version_info or "wsl" in version_info


def selinux_enabled() -> bool:
    """Return ``True`` when bind mounts need an SELinux relabel flag."""
    return platform.system() == "Linux" and os.path.exists("/sys/fs/selinux")


def normalize_path_for_docker(
    path: Path, *, is_windows_docker: Optional[bool] = None
) -> str:
    """Return a Docker-compatible bind source for a host path."""
    try:
        normalized = Path(os.path.realpath(str(path))).absolute()
    except OSError:
        normalized = Path(path).absolute()

    if is_windows_docker is None:
        is_windows_docker = platform.system() == "Windows" and not is_wsl()

    if is_windows_docker:
        path_str = str(normalized).replace("\\", "/")
        if len(path_str) >= 2 and path_str[1] == ":":
            drive_letter = path_str[0].lower()
            path_str = f"/{drive_letter}{path_str[2:]}"
        return path_str

    path_str = str(normalized)
    if platform.system() == "Darwin" and path_str.startswith("/tmp/"):
        return path_str.replace("/tmp/", "/private/tmp/", 1)
    return path_str


def validate_docker_setup() -> Tuple[bool, Optional[str]]:
    """Check whether Docker is reachable and return (is_ready, message)."""
    system = platform.system()
    try:
        result = subprocess.run(
            ["docker", "info"], capture_output=True, text=True, timeout=10
        )
    except FileNotFoundError:
        return False, _docker_missing_message(system)
    except subprocess.TimeoutExpired:
        return False, "Docker command timed out. The Docker daemon may be unresponsive."
    except (OSError, subprocess.SubprocessError) as exc:
        return False, f"Error checking Docker: {exc}"

    if result.returncode == 0:
        return True, None

    if is_wsl():
        return (
            False,
            "Docker is not accessible from WSL.\n"
            "Install Docker inside WSL2 or enable the Docker Desktop WSL2 backend.",
        )
    return (
        False,
        "Docker daemon is not running or not accessible.\n"
        "Please ensure Docker is installed and the daemon is running.",
    )


def _docker_missing_message(system: str) -> str:
    if system == "Windows":
        return (
            "Docker command not found.\n"
            "Please install Docker Desktop: https://docs.docker.com/desktop/install/windows-install/"
        )
    return (
        "Docker command not found.\n"
        "Please install Docker: https://docs.docker.com/engine/install/"
    )
