"""Build ``containers.create`` keyword arguments from a launch spec."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from docker.types import Mount

from ....config import LaunchSpec
from ....utils.platform_utils import normalize_path_for_docker, selinux_enabled


def prepare_mounts(
    spec: LaunchSpec, *, selinux: bool
) -> Tuple[List[Mount], Dict[str, Dict[str, str]]]:
    """Return (mounts, volumes) binding the config and report directories.

    Under SELinux the binds go through ``volumes`` so they can carry the
    ``z`` relabel flag, which ``Mount`` cannot express.
    """
    binds = (
        (spec.host_config_dir, spec.container_config_dir, True),
        (spec.host_report_dir, spec.container_report_dir, False),
    )
    mounts: List[Mount] = []
    volumes: Dict[str, Dict[str, str]] = {}
    for host_dir, target, read_only in binds:
        source = normalize_path_for_docker(host_dir)
        if selinux:
            volumes[source] = {"bind": target, "mode": "z,ro" if read_only else "z"}
        else:
            mounts.append(
                Mount(target=target, source=source, type="bind", read_only=read_only)
            )
    return mounts, volumes


def build_container_config(spec: LaunchSpec, *, tty: bool) -> Dict[str, Any]:
    mounts, volumes = prepare_mounts(spec, selinux=selinux_enabled())
    config: Dict[str, Any] = {
        "image": spec.image,
        "name": spec.instance_name,
        "ports": spec.port_binding,
        "stdin_open": bool(spec.interactive),
        "tty": bool(tty),
        "labels": dict(spec.labels),
    }
    if mounts:
        config["mounts"] = mounts
    if volumes:
        config["volumes"] = volumes
    return config


__all__ = ["build_container_config", "prepare_mounts"]
