from __future__ import annotations

import time
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from docker.errors import APIError, ImageNotFound, NotFound

from fuzzrun.config import LaunchSpec
from fuzzrun.exceptions import (
    ImageUnavailable,
    NameCollision,
    RuntimeUnavailable,
    SessionStartFailure,
)
from fuzzrun.runtime.base import SessionHandle
from fuzzrun.runtime.docker import DockerRuntime
from fuzzrun.runtime.docker.ops.config_builder import (
    build_container_config,
    prepare_mounts,
)
from fuzzrun.runtime.docker.ops.create import create_container_instance


class _FakeContainer:
    def __init__(self, name: str, status: str = "created", exit_code: int = 0) -> None:
        self.name = name
        self.id = "c0ffee" * 10
        self.status = status
        self.exit_code = exit_code
        self.removed: List[Dict[str, Any]] = []
        self.stopped: List[int] = []
        self.remove_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.status = "running"

    def attach(self, **kwargs):
        assert kwargs["stream"] is True
        return iter([b"line 1\n", b"", b"line 2\n"])

    def wait(self) -> Dict[str, Any]:
        return {"StatusCode": self.exit_code, "Error": None}

    def stop(self, timeout: int) -> None:
        self.stopped.append(timeout)
        self.status = "exited"

    def remove(self, **kwargs) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed.append(kwargs)


class _FakeContainers:
    def __init__(self) -> None:
        self.by_name: Dict[str, _FakeContainer] = {}
        self.create_kwargs: List[Dict[str, Any]] = []
        self.create_error: Optional[Exception] = None

    def get(self, name: str) -> _FakeContainer:
        if name not in self.by_name:
            raise NotFound(f"No such container: {name}")
        return self.by_name[name]

    def create(self, **kwargs) -> _FakeContainer:
        self.create_kwargs.append(kwargs)
        if self.create_error is not None:
            raise self.create_error
        container = _FakeContainer(kwargs["name"])
        self.by_name[kwargs["name"]] = container
        return container


class _FakeImages:
    def __init__(self, present: set) -> None:
        self.present = present

    def get(self, image: str):
        if image not in self.present:
            raise ImageNotFound(f"No such image: {image}")
        return SimpleNamespace(id="sha256:abc")


class _FakeClient:
    def __init__(self, images: set) -> None:
        self.containers = _FakeContainers()
        self.images = _FakeImages(images)
        self.closed = False

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True


def _spec(tmp_path: Path, **overrides) -> LaunchSpec:
    values = dict(
        host_config_dir=tmp_path / "config",
        host_report_dir=tmp_path / "reports",
        image="crossbario/autobahn-testsuite:0.8.2",
        labels={"fuzzrun.instance": "fuzzingserver"},
    )
    values.update(overrides)
    return LaunchSpec(**values)


def _conflict() -> APIError:
    response = SimpleNamespace(status_code=409, url="http://docker/containers/create", reason="Conflict")
    return APIError("Conflict", response=response, explanation="name already in use")


def test_mounts_bind_config_read_only_and_reports_read_write(tmp_path: Path) -> None:
    mounts, volumes = prepare_mounts(_spec(tmp_path), selinux=False)

    assert volumes == {}
    by_target = {m["Target"]: m for m in mounts}
    assert by_target["/config"]["ReadOnly"] is True
    assert by_target["/reports"]["ReadOnly"] is False
    assert by_target["/config"]["Source"].endswith("config")
    assert by_target["/config"]["Type"] == "bind"


def test_selinux_mounts_use_relabel_flags(tmp_path: Path) -> None:
    mounts, volumes = prepare_mounts(_spec(tmp_path), selinux=True)

    assert mounts == []
    modes = {v["bind"]: v["mode"] for v in volumes.values()}
    assert modes == {"/config": "z,ro", "/reports": "z"}


def test_container_config_publishes_port_and_names_session(tmp_path: Path) -> None:
    config = build_container_config(_spec(tmp_path, published_port=9002), tty=True)

    assert config["name"] == "fuzzingserver"
    assert config["ports"] == {"9001/tcp": ("0.0.0.0", 9002)}
    assert config["stdin_open"] is True
    assert config["tty"] is True
    assert config["labels"] == {"fuzzrun.instance": "fuzzingserver"}


@pytest.mark.asyncio
async def test_missing_image_maps_to_image_unavailable(tmp_path: Path) -> None:
    runtime = DockerRuntime(client=_FakeClient(images=set()))

    with pytest.raises(ImageUnavailable, match="not available locally"):
        await runtime.ensure_image("crossbario/autobahn-testsuite:0.8.2")


@pytest.mark.asyncio
async def test_full_lifecycle_against_fake_client(tmp_path: Path) -> None:
    client = _FakeClient(images={"crossbario/autobahn-testsuite:0.8.2"})
    runtime = DockerRuntime(client=client)
    spec = _spec(tmp_path, tty=False)
    chunks: List[bytes] = []

    async def _sink(chunk: bytes) -> None:
        chunks.append(chunk)

    await runtime.ensure_image(spec.image)
    handle = await runtime.create(spec)
    await runtime.start(handle)
    await runtime.attach(handle, _sink)
    code = await runtime.wait(handle)
    await runtime.remove(handle)

    assert chunks == [b"line 1\n", b"line 2\n"]
    assert code == 0
    assert client.containers.create_kwargs[0]["tty"] is False
    assert handle.native.removed == [{"force": True, "v": True}]


@pytest.mark.asyncio
async def test_find_reports_status_or_none(tmp_path: Path) -> None:
    client = _FakeClient(images=set())
    client.containers.by_name["fuzzingserver"] = _FakeContainer(
        "fuzzingserver", status="exited"
    )
    runtime = DockerRuntime(client=client)

    info = await runtime.find("fuzzingserver")

    assert info is not None and info.running is False
    assert await runtime.find("other") is None


@pytest.mark.asyncio
async def test_create_name_conflict_maps_to_name_collision(tmp_path: Path) -> None:
    client = _FakeClient(images=set())
    client.containers.create_error = _conflict()
    runtime = DockerRuntime(client=client)

    with pytest.raises(NameCollision):
        await runtime.create(_spec(tmp_path, tty=False))


@pytest.mark.asyncio
async def test_start_rejection_is_surfaced_verbatim(tmp_path: Path) -> None:
    client = _FakeClient(images=set())
    runtime = DockerRuntime(client=client)
    handle = await runtime.create(_spec(tmp_path, tty=False))
    handle.native.start_error = APIError("Bind for 0.0.0.0:9001 failed: port is already allocated")

    with pytest.raises(SessionStartFailure, match="port is already allocated"):
        await runtime.start(handle)


@pytest.mark.asyncio
async def test_remove_of_vanished_container_is_not_an_error(tmp_path: Path) -> None:
    runtime = DockerRuntime(client=_FakeClient(images=set()))
    container = _FakeContainer("fuzzingserver")
    container.remove_error = NotFound("No such container")

    await runtime.remove(SessionHandle(name="fuzzingserver", session_id="x", native=container))
    await runtime.remove(SessionHandle(name="gone", session_id="gone"))


@pytest.mark.asyncio
async def test_stop_passes_grace_timeout(tmp_path: Path) -> None:
    runtime = DockerRuntime(client=_FakeClient(images=set()))
    container = _FakeContainer("fuzzingserver", status="running")

    await runtime.stop(SessionHandle(name="fuzzingserver", session_id="x", native=container), 7)

    assert container.stopped == [7]


class _SlowContainers(_FakeContainers):
    def create(self, **kwargs) -> _FakeContainer:
        time.sleep(0.3)
        return super().create(**kwargs)


@pytest.mark.asyncio
async def test_create_timeout_removes_container_created_late(tmp_path: Path) -> None:
    client = _FakeClient(images=set())
    client.containers = _SlowContainers()
    runtime = DockerRuntime(client=client)
    config = build_container_config(_spec(tmp_path), tty=False)

    with pytest.raises(RuntimeUnavailable, match="timed out"):
        await create_container_instance(runtime, config=config, timeout_s=0.05)

    late = client.containers.by_name["fuzzingserver"]
    assert late.removed == [{"force": True, "v": True}]
