"""Abstract interface for isolation backends.

The launcher only talks to a ``SessionRuntime``; the concrete backend (Docker
today) can be swapped without touching the supervised control flow.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..config import LaunchSpec

OutputSink = Callable[[bytes], Awaitable[None]]


@dataclass(frozen=True)
class SessionInfo:
    """Snapshot of an existing session as reported by the runtime."""

    name: str
    session_id: str
    status: str

    @property
    def running(self) -> bool:
        return self.status in ("running", "restarting", "paused")


@dataclass
class SessionHandle:
    """Reference to a session created by a runtime."""

    name: str
    session_id: str
    native: Any = None


class SessionRuntime(ABC):
    """Capability interface for creating and supervising one session."""

    name: str = "runtime"

    async def validate_environment(self) -> bool:
        """Return whether the backend is reachable."""
        return True

    @abstractmethod
    async def ensure_image(self, image: str) -> None:
        """Raise ``ImageUnavailable`` if ``image`` cannot be used."""

    @abstractmethod
    async def find(self, name: str) -> Optional[SessionInfo]:
        """Return the session named ``name`` or ``None``."""

    @abstractmethod
    async def create(self, spec: LaunchSpec) -> SessionHandle:
        """Create (but do not start) a session for ``spec``."""

    @abstractmethod
    async def start(self, handle: SessionHandle) -> None:
        """Start a created session."""

    @abstractmethod
    async def attach(self, handle: SessionHandle, sink: OutputSink) -> None:
        """Stream session output into ``sink`` until the stream closes."""

    @abstractmethod
    async def wait(self, handle: SessionHandle) -> int:
        """Block until the session's process exits and return its exit code."""

    @abstractmethod
    async def stop(self, handle: SessionHandle, timeout: int) -> None:
        """Ask the session to terminate, killing it after ``timeout`` seconds."""

    @abstractmethod
    async def remove(self, handle: SessionHandle) -> None:
        """Remove the session and everything it reserved."""

    def close(self) -> None:
        """Release client resources held by the runtime."""


__all__ = ["OutputSink", "SessionHandle", "SessionInfo", "SessionRuntime"]
