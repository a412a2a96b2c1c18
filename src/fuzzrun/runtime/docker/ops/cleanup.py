"""Stop and removal helpers for DockerRuntime."""

from __future__ import annotations

import asyncio

import docker

from ....exceptions import DockerError


async def stop_container(manager, container, timeout: int | None = None) -> None:
    """Stop a container gracefully with SIGTERM, then SIGKILL if needed."""
    loop = asyncio.get_event_loop()
    eff_timeout = int(timeout) if timeout is not None else 10
    try:
        await loop.run_in_executor(
            None, lambda: container.stop(timeout=max(0, eff_timeout))
        )
        manager.logger.info(f"Stopped container {container.name}")
    except manager.NotFound:
        manager.logger.debug(f"Container {container.name} not found")
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        raise DockerError(f"Failed to stop container {container.name}: {exc}")


async def remove_container(manager, container) -> None:
    """Force-remove a container; an already-removed container is fine."""
    loop = asyncio.get_event_loop()
    try:
        await loop.run_in_executor(
            None, lambda: container.remove(force=True, v=True)
        )
        manager.logger.info(f"Removed container {container.name}")
    except manager.NotFound:
        manager.logger.debug(f"Container {container.name} already removed")
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        # 409 while the daemon is already removing it counts as removed
        if "already in progress" in str(exc):
            manager.logger.debug(f"Removal of {container.name} already in progress")
            return
        raise DockerError(f"Failed to remove container {container.name}: {exc}")


__all__ = ["remove_container", "stop_container"]
