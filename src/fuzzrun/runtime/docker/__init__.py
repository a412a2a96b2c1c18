"""Docker-backed session runtime."""

from .manager import DockerRuntime

__all__ = ["DockerRuntime"]
