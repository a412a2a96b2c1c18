from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from fuzzrun.config import LaunchSpec
from fuzzrun.exceptions import ImageUnavailable
from fuzzrun.runtime.base import SessionHandle, SessionInfo, SessionRuntime


class FakeRuntime(SessionRuntime):
    """In-memory runtime that records every lifecycle call."""

    name = "fake"

    def __init__(
        self,
        *,
        exit_code: int = 0,
        stop_exit_code: int = 143,
        output: Optional[List[bytes]] = None,
        hang: bool = False,
        images: Optional[set] = None,
        start_error: Optional[Exception] = None,
        attach_error: Optional[Exception] = None,
    ) -> None:
        self.exit_code = exit_code
        self.stop_exit_code = stop_exit_code
        self.output = list(output or [b"hello\n"])
        self.hang = hang
        self.images = images if images is not None else {"img"}
        self.start_error = start_error
        self.attach_error = attach_error
        self.existing: Dict[str, SessionInfo] = {}
        self.calls: List[str] = []
        self.created = 0
        self.removed: List[str] = []
        self.stopped = 0
        self.closed = False
        self._stopped = asyncio.Event()
        self._seq = 0

    async def ensure_image(self, image: str) -> None:
        self.calls.append("ensure_image")
        if image not in self.images:
            raise ImageUnavailable(image)

    async def find(self, name: str) -> Optional[SessionInfo]:
        self.calls.append("find")
        return self.existing.get(name)

    async def create(self, spec: LaunchSpec) -> SessionHandle:
        self.calls.append("create")
        self.created += 1
        self._seq += 1
        self._stopped = asyncio.Event()
        session_id = f"{self._seq:064x}"
        self.existing[spec.instance_name] = SessionInfo(
            name=spec.instance_name, session_id=session_id, status="created"
        )
        return SessionHandle(name=spec.instance_name, session_id=session_id)

    async def start(self, handle: SessionHandle) -> None:
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error
        self.existing[handle.name] = SessionInfo(
            name=handle.name, session_id=handle.session_id, status="running"
        )

    async def attach(self, handle: SessionHandle, sink) -> None:
        self.calls.append("attach")
        for chunk in self.output:
            await sink(chunk)
        if self.attach_error is not None:
            raise self.attach_error
        if self.hang:
            await self._stopped.wait()

    async def wait(self, handle: SessionHandle) -> int:
        self.calls.append("wait")
        return self.stop_exit_code if self._stopped.is_set() else self.exit_code

    async def stop(self, handle: SessionHandle, timeout: int) -> None:
        self.calls.append("stop")
        self.stopped += 1
        self._stopped.set()

    async def remove(self, handle: SessionHandle) -> None:
        self.calls.append("remove")
        self.removed.append(handle.name)
        self.existing.pop(handle.name, None)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_runtime_cls():
    return FakeRuntime


@pytest.fixture
def spec(tmp_path: Path) -> LaunchSpec:
    return LaunchSpec(
        host_config_dir=tmp_path / "config",
        host_report_dir=tmp_path / "reports",
        image="img",
        instance_name="fuzzingserver",
        published_port=9001,
    )


@pytest.fixture
def no_port_check():
    def _probe(port: int, host: str) -> None:
        return None

    return _probe


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved = list(root.handlers)
    saved_level = root.level
    yield
    for name in ("fuzzrun", "fuzzrun.runtime"):
        component = logging.getLogger(name)
        for handler in list(component.handlers):
            handler.close()
        component.handlers.clear()
        component.propagate = True
    for handler in list(root.handlers):
        if handler not in saved:
            handler.close()
    root.handlers[:] = saved
    root.setLevel(saved_level)
