"""Supervised lifecycle of one sandboxed fuzzing-server session.

``Launcher.run`` walks IDLE -> CREATING -> RUNNING -> TEARING_DOWN ->
TERMINATED. Every precondition is checked before a session exists; once a
session has been created, removal runs on every exit path, exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import LaunchSpec
from .exceptions import InstanceAlreadyRunning, LauncherError, ValidationError
from .ports import ensure_port_free
from .results import RunResult
from .runtime.base import OutputSink, SessionHandle, SessionRuntime
from .seed import seed_config_dir
from .status import SessionState

logger = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, Any]], None]
PortProbe = Callable[[int, str], None]

__all__ = ["Launcher", "prepare_host_dirs"]


def prepare_host_dirs(spec: LaunchSpec) -> None:
    """Create the host config/report dirs if absent and check their access."""
    for path in (spec.host_config_dir, spec.host_report_dir):
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ValidationError(f"cannot create directory {path}: {exc}")
    if not os.access(spec.host_config_dir, os.R_OK | os.X_OK):
        raise ValidationError(f"config directory is not readable: {spec.host_config_dir}")
    if not os.access(spec.host_report_dir, os.W_OK | os.X_OK):
        raise ValidationError(f"report directory is not writable: {spec.host_report_dir}")


async def _discard(_chunk: bytes) -> None:
    return None


class Launcher:
    """Create, attach to, and always tear down one runtime session."""

    def __init__(
        self,
        runtime: SessionRuntime,
        *,
        output: Optional[OutputSink] = None,
        event_callback: Optional[EventCallback] = None,
        port_probe: PortProbe = ensure_port_free,
        seed_defaults: bool = True,
    ) -> None:
        self.runtime = runtime
        self.output = output or _discard
        self.event_callback = event_callback
        self.port_probe = port_probe
        self.seed_defaults = seed_defaults
        self.state = SessionState.IDLE

    async def preflight(self, spec: LaunchSpec) -> None:
        """Check every precondition; the only side effects are directory
        creation, config seeding, and removal of a stopped stale session."""
        prepare_host_dirs(spec)
        if self.seed_defaults:
            seed_config_dir(spec)

        existing = await self.runtime.find(spec.instance_name)
        if existing is not None and existing.running:
            raise InstanceAlreadyRunning(spec.instance_name)

        self.port_probe(spec.published_port, spec.host_address)
        await self.runtime.ensure_image(spec.image)

        if existing is not None:
            logger.info(
                "Removing stale container %s (status=%s)",
                spec.instance_name,
                existing.status,
            )
            await self.runtime.remove(
                SessionHandle(name=existing.name, session_id=existing.session_id)
            )
            self._emit(
                "session.stale_removed",
                {"name": existing.name, "status": existing.status},
            )

        self._emit(
            "session.preflight",
            {
                "image": spec.image,
                "port": spec.published_port,
                "config_dir": str(spec.host_config_dir),
                "report_dir": str(spec.host_report_dir),
            },
        )

    async def run(
        self, spec: LaunchSpec, cancel: Optional[asyncio.Event] = None
    ) -> RunResult:
        """Run ``spec`` in the foreground until it exits or ``cancel`` is set."""
        started = time.monotonic()
        cancel = cancel or asyncio.Event()
        self.state = SessionState.IDLE

        await self.preflight(spec)
        if cancel.is_set():
            logger.info("Interrupted before %s was created", spec.instance_name)
            self._emit("session.interrupted", {"name": spec.instance_name})
            self._set_state(SessionState.TERMINATED)
            return self._result(spec, started, exit_code=-1, signaled=True)

        handle: Optional[SessionHandle] = None
        signaled = False
        try:
            self._set_state(SessionState.CREATING)
            self._emit(
                "session.creating", {"name": spec.instance_name, "image": spec.image}
            )
            handle = await self.runtime.create(spec)
            if cancel.is_set():
                # Created but never started: nothing to stop, only to remove.
                self._emit("session.interrupted", {"name": handle.name})
                signaled = True
                exit_code = -1
            else:
                await self.runtime.start(handle)
                self._set_state(SessionState.RUNNING)
                self._emit(
                    "session.started",
                    {"name": handle.name, "session_id": handle.session_id[:12]},
                )
                signaled = await self._supervise(handle, spec, cancel)
                exit_code = await self.runtime.wait(handle)
                self._emit(
                    "session.exited", {"exit_code": exit_code, "signaled": signaled}
                )
        except BaseException:
            await self._teardown(handle, suppress_errors=True)
            raise
        await self._teardown(handle)
        return self._result(
            spec,
            started,
            exit_code=exit_code,
            signaled=signaled,
            session_id=handle.session_id if handle else None,
        )

    def _result(
        self,
        spec: LaunchSpec,
        started: float,
        *,
        exit_code: int,
        signaled: bool,
        session_id: Optional[str] = None,
    ) -> RunResult:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Session %s finished: exit_code=%s signaled=%s (%dms)",
            spec.instance_name,
            exit_code,
            signaled,
            duration_ms,
        )
        return RunResult(
            exit_code=exit_code,
            signaled=signaled,
            duration_ms=duration_ms,
            instance_name=spec.instance_name,
            session_id=session_id,
        )

    async def _supervise(
        self, handle: SessionHandle, spec: LaunchSpec, cancel: asyncio.Event
    ) -> bool:
        """Race the output pump against the interrupt token.

        Returns ``True`` when the session was interrupted.
        """
        pump = asyncio.ensure_future(self.runtime.attach(handle, self.output))
        watcher = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {pump, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (pump, watcher):
                if not task.done():
                    task.cancel()
            await asyncio.gather(pump, watcher, return_exceptions=True)

        if pump in done:
            # Surface attach failures; a clean EOF means the process exited.
            pump.result()
            return False

        logger.info("Interrupt received; stopping %s", handle.name)
        self._emit("session.interrupted", {"name": handle.name})
        await self.runtime.stop(handle, spec.stop_timeout)
        return True

    async def _teardown(
        self, handle: Optional[SessionHandle], *, suppress_errors: bool = False
    ) -> None:
        if handle is None:
            self._set_state(SessionState.TERMINATED)
            return
        self._set_state(SessionState.TEARING_DOWN)
        try:
            await _uncancellable(self.runtime.remove(handle))
            self._emit("session.removed", {"name": handle.name})
        except LauncherError as exc:
            if not suppress_errors:
                raise
            logger.error("Teardown of %s failed: %s", handle.name, exc)
        finally:
            self._set_state(SessionState.TERMINATED)

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state

    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.event_callback:
            self.event_callback({"type": event_type, "data": data})


async def _uncancellable(awaitable: Awaitable[None]) -> None:
    """Await ``awaitable`` to completion even if the caller is cancelled."""
    task = asyncio.ensure_future(awaitable)
    cancelled = False
    while True:
        try:
            await asyncio.shield(task)
            break
        except asyncio.CancelledError:
            if task.done():
                raise
            cancelled = True
            logger.warning("Cancellation requested during teardown; finishing removal")
    if cancelled:
        raise asyncio.CancelledError()
