"""Stream container output and collect its exit status."""

from __future__ import annotations

import asyncio

import docker

from ....exceptions import DockerError


async def stream_output(manager, container, sink) -> None:
    """Forward attached stdout/stderr chunks to ``sink`` until EOF."""
    loop = asyncio.get_event_loop()
    try:
        stream = await loop.run_in_executor(
            None,
            lambda: container.attach(stdout=True, stderr=True, stream=True, logs=True),
        )
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        raise DockerError(f"Failed to attach to {container.name}: {exc}")

    async for chunk in manager._async_iter(stream):  # noqa: SLF001
        if chunk:
            await sink(chunk)
    manager.logger.debug(f"Output stream of {container.name} closed")


async def wait_exit_code(manager, container) -> int:
    loop = asyncio.get_event_loop()
    try:
        status = await loop.run_in_executor(None, container.wait)
    except manager.NotFound:
        manager.logger.warning(f"Container {container.name} vanished before exit")
        return -1
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        raise DockerError(f"Failed waiting for {container.name}: {exc}")

    error = (status or {}).get("Error")
    if error:
        manager.logger.warning(f"Container {container.name} wait error: {error}")
    return int((status or {}).get("StatusCode", -1))


__all__ = ["stream_output", "wait_exit_code"]
