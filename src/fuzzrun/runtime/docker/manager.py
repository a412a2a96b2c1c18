"""
Docker Engine backend for the session runtime interface.

A small facade over the docker SDK that delegates each lifecycle step to a
helper under ``ops/`` and translates SDK errors into launcher errors.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import warnings
from typing import Any, Optional

import docker
from docker.errors import DockerException, ImageNotFound, NotFound

from ...config import LaunchSpec
from ...exceptions import RuntimeUnavailable
from ..base import OutputSink, SessionHandle, SessionInfo, SessionRuntime
from .ops import attach as attach_ops
from .ops import cleanup, image_check
from .ops import create as create_ops
from .ops.config_builder import build_container_config

# Suppress the urllib3 exception on close that happens with docker-py
warnings.filterwarnings("ignore", message=".*I/O operation on closed file.*")

logger = logging.getLogger(__name__)


class DockerRuntime(SessionRuntime):
    """Runs sessions as Docker containers."""

    name = "docker"

    def __init__(self, api_timeout: int = 20, client: Optional[Any] = None):
        """Initialize Docker client.

        Args:
            api_timeout: Per-request timeout (seconds) for Docker SDK calls.
            client: Pre-built client, mainly for tests.
        """

        self.NotFound = NotFound
        self.ImageNotFound = ImageNotFound
        self.logger = logger
        if client is not None:
            self.client = client
            return
        try:
            self.client = docker.from_env(timeout=int(api_timeout))
        except DockerException as exc:
            raise RuntimeUnavailable(f"Failed to connect to Docker daemon: {exc}")

    def close(self) -> None:
        """Close the Docker client connection."""
        try:
            self.client.close()
        except (OSError, DockerException):
            pass

    async def _async_iter(self, blocking_iter):
        """Convert a blocking iterator to an async iterator."""

        loop = asyncio.get_event_loop()
        sentinel = object()
        while True:
            item = await loop.run_in_executor(
                None, lambda: next(blocking_iter, sentinel)
            )
            if item is sentinel:
                break
            yield item

    async def validate_environment(self) -> bool:
        """Validate Docker daemon is accessible and working."""

        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self.client.ping)
            return True
        except (docker.errors.APIError, docker.errors.DockerException) as exc:
            logger.error(f"Docker validation failed: {exc}")
            return False

    async def ensure_image(self, image: str) -> None:
        await image_check.ensure_image_exists(self, image)

    async def find(self, name: str) -> Optional[SessionInfo]:
        loop = asyncio.get_event_loop()
        try:
            container = await loop.run_in_executor(
                None, lambda: self.client.containers.get(name)
            )
        except NotFound:
            return None
        except (docker.errors.APIError, docker.errors.DockerException) as exc:
            raise RuntimeUnavailable(f"Failed to look up container {name}: {exc}")
        return SessionInfo(name=name, session_id=container.id, status=container.status)

    async def create(self, spec: LaunchSpec) -> SessionHandle:
        tty = spec.tty if spec.tty is not None else _stdout_is_tty()
        config = build_container_config(spec, tty=tty)
        logger.debug(
            "Creating container %s from %s (ports=%s, tty=%s)",
            spec.instance_name,
            spec.image,
            config["ports"],
            tty,
        )
        container = await create_ops.create_container_instance(self, config=config)
        return SessionHandle(
            name=spec.instance_name, session_id=container.id, native=container
        )

    async def start(self, handle: SessionHandle) -> None:
        await create_ops.start_container(self, handle.native)

    async def attach(self, handle: SessionHandle, sink: OutputSink) -> None:
        await attach_ops.stream_output(self, handle.native, sink)

    async def wait(self, handle: SessionHandle) -> int:
        return await attach_ops.wait_exit_code(self, handle.native)

    async def stop(self, handle: SessionHandle, timeout: int) -> None:
        await cleanup.stop_container(self, handle.native, timeout)

    async def remove(self, handle: SessionHandle) -> None:
        container = handle.native
        if container is None:
            container = await self._get_container(handle.session_id or handle.name)
            if container is None:
                logger.debug(f"Container {handle.name} already removed")
                return
        await cleanup.remove_container(self, container)

    async def _get_container(self, ref: str):
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: self.client.containers.get(ref)
            )
        except NotFound:
            return None


def _stdout_is_tty() -> bool:
    try:
        return sys.stdin.isatty() and sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


__all__ = ["DockerRuntime"]
