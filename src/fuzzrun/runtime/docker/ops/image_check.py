"""Image validation helper."""

from __future__ import annotations

import asyncio
import time

import docker
from docker.errors import ImageNotFound

from ....exceptions import ImageUnavailable, RuntimeUnavailable


async def ensure_image_exists(manager, image: str, timeout_s: float = 10) -> None:
    """Check the image is present locally; never pulls."""
    loop = asyncio.get_event_loop()
    try:
        img_check_start = time.monotonic()
        img_future = loop.run_in_executor(
            None, lambda: manager.client.images.get(image)
        )
        await asyncio.wait_for(img_future, timeout=timeout_s)
        manager.logger.info(
            "Docker image found: %s (%.2fs)", image, time.monotonic() - img_check_start
        )
    except asyncio.TimeoutError:
        raise RuntimeUnavailable(
            f"Docker image check timed out after {timeout_s:g}s. "
            "Docker daemon may be unresponsive."
        )
    except ImageNotFound:
        raise ImageUnavailable(image)
    except (docker.errors.APIError, docker.errors.DockerException) as exc:
        raise ImageUnavailable(image, str(exc))


__all__ = ["ensure_image_exists"]
