"""Container create/start helpers."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict

import docker
from docker.errors import ImageNotFound

from ....exceptions import (
    ImageUnavailable,
    NameCollision,
    RuntimeUnavailable,
    SessionStartFailure,
)


def _is_conflict(exc: Exception) -> bool:
    msg = str(exc)
    status_code = getattr(exc, "status_code", None) or getattr(
        getattr(exc, "response", None), "status_code", None
    )
    return status_code == 409 or "already in use" in msg or "Conflict" in msg


async def _discard_late_container(manager, create_future, container_name: str) -> None:
    """Remove whatever a timed-out create call still produces.

    The executor thread keeps running after ``wait_for`` gives up; the docker
    client's own API timeout bounds how long it can take.
    """
    loop = asyncio.get_event_loop()
    try:
        late = await create_future
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        manager.logger.debug("Timed-out create for %s failed: %s", container_name, exc)
        return
    manager.logger.warning(
        "Removing %s (%s) created after the create timeout",
        container_name,
        late.id[:12],
    )
    try:
        await loop.run_in_executor(None, lambda: late.remove(force=True, v=True))
    except docker.errors.NotFound:
        pass
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        manager.logger.error("Failed to remove late container %s: %s", container_name, exc)


async def create_container_instance(
    manager, *, config: Dict[str, Any], timeout_s: float = 20
):
    loop = asyncio.get_event_loop()
    container_name = config["name"]
    create_start = time.monotonic()
    create_future = loop.run_in_executor(
        None, lambda: manager.client.containers.create(**config)
    )
    try:
        container = await asyncio.wait_for(asyncio.shield(create_future), timeout=timeout_s)
    except asyncio.TimeoutError:
        await _discard_late_container(manager, create_future, container_name)
        raise RuntimeUnavailable(
            f"Docker create timed out after {timeout_s:g}s for {container_name}. "
            "Check that the daemon is responsive."
        )
    except ImageNotFound as exc:
        raise ImageUnavailable(config["image"], str(exc))
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        if _is_conflict(exc):
            raise NameCollision(container_name, str(exc))
        raise SessionStartFailure(f"Docker create failed for {container_name}: {exc}")

    manager.logger.info(
        "Docker create returned id=%s (%.2fs)",
        container.id[:12],
        time.monotonic() - create_start,
    )
    return container


async def start_container(manager, container) -> None:
    loop = asyncio.get_event_loop()
    try:
        await loop.run_in_executor(None, container.start)
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        # e.g. "port is already allocated" or a bad bind source
        raise SessionStartFailure(f"Docker start failed for {container.name}: {exc}")
    manager.logger.info(f"Started container {container.name} ({container.id[:12]})")


__all__ = ["create_container_instance", "start_container"]
