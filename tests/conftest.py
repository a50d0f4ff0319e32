"""Shared fixtures: settings, zip archives and an in-memory Docker client."""

from __future__ import annotations

import struct
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Callable

import docker.errors
import pytest

from overseer.config import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        workspace_dir=str(tmp_path / "sandbox"),
        container_name="overseer-test",
    )


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[..., Path]:
    """Build a zip archive from a mapping of entry name -> content."""

    def _make(name: str, entries: dict[str, str | bytes], dirs: tuple[str, ...] = ()) -> Path:
        path = tmp_path / "archives" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            for directory in dirs:
                archive.writestr(directory.rstrip("/") + "/", "")
            for entry, content in entries.items():
                archive.writestr(entry, content)
        return path

    return _make


@pytest.fixture
def scribbled_zip(tmp_path: Path) -> Callable[[str], Path]:
    """Build a zip whose headers are intact but whose deflate stream is garbage."""

    def _make(name: str) -> Path:
        path = tmp_path / "archives" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr("run.sh", "echo graded\n" * 500)
        data = bytearray(path.read_bytes())
        # Member data starts after the 30-byte local header, name and extra field.
        name_len, extra_len = struct.unpack("<HH", data[26:30])
        start = 30 + name_len + extra_len
        data[start:start + 8] = b"\xff" * 8
        path.write_bytes(bytes(data))
        return path

    return _make


# ---------------------------------------------------------------------------
# Fake Docker SDK
# ---------------------------------------------------------------------------


def _host_path(volumes: dict[str, dict[str, str]], container_path: str) -> Path:
    """Translate an in-container path to the host path behind its bind mount."""
    for host, spec in volumes.items():
        bind = spec["bind"].rstrip("/")
        if container_path.startswith(bind + "/"):
            return Path(host) / container_path[len(bind) + 1:]
    raise AssertionError(f"{container_path} is not under a bind mount")


def default_script(phase: str, workspace: Path, log: Path, status: Path) -> None:
    """Stand-in for build.sh / run.sh: writes a log and a status document."""
    if phase == "build":
        log.write_text("B-log")
        status.write_text("score: 1\n")
    else:
        log.write_text("R-log")
        status.write_text("tests_passed: true\n")
    (workspace / f"{phase}.artifact").write_text(phase)


class FakeContainer:
    def __init__(self, client: FakeDockerClient, **kwargs: Any) -> None:
        self.client = client
        self.kwargs = kwargs
        self.name: str = kwargs["name"]
        self.command: list[str] = kwargs["command"]
        self.short_id = f"c{len(client.created):05d}"
        self.phase = PurePosixPath(self.command[3]).stem
        self.removed_with_force: bool | None = None

    def start(self) -> None:
        self.client.events.append(("start", self.phase))
        volumes = self.kwargs["volumes"]
        workspace = _host_path(volumes, self.command[3]).parent
        script = self.client.scripts.get(self.phase, default_script)
        script(
            self.phase,
            workspace,
            _host_path(volumes, self.command[5]),
            _host_path(volumes, self.command[4]),
        )

    def wait(self) -> dict[str, int]:
        return {"StatusCode": self.client.exit_codes.get(self.phase, 0)}

    def diff(self) -> list[dict[str, Any]] | None:
        self.client.events.append(("diff", self.phase))
        return self.client.changes.get(self.phase)

    def remove(self, force: bool = False) -> None:
        self.client.events.append(("remove", self.phase))
        self.removed_with_force = force
        if self.client.remove_error:
            raise docker.errors.APIError("removal of container failed")
        self.client.live_names.discard(self.name)


class FakeContainerCollection:
    def __init__(self, client: FakeDockerClient) -> None:
        self.client = client

    def create(self, **kwargs: Any) -> FakeContainer:
        if kwargs["image"] not in self.client.images.available:
            raise docker.errors.ImageNotFound(f"No such image: {kwargs['image']}")
        if kwargs["name"] in self.client.live_names:
            raise docker.errors.APIError(f"Conflict. The container name {kwargs['name']} is in use")
        container = FakeContainer(self.client, **kwargs)
        self.client.created.append(container)
        self.client.live_names.add(kwargs["name"])
        return container


class FakeImageCollection:
    def __init__(self, available: set[str]) -> None:
        self.available = available
        self.pulled: list[str] = []
        self.pullable: set[str] = set()

    def pull(self, image: str) -> None:
        if image not in self.pullable:
            raise docker.errors.ImageNotFound(f"pull access denied for {image}")
        self.pulled.append(image)
        self.available.add(image)


class FakeDockerClient:
    """Just enough of ``docker.DockerClient`` for the phase runner."""

    def __init__(self, images: set[str] | None = None) -> None:
        self.images = FakeImageCollection(images or {"grader:latest"})
        self.containers = FakeContainerCollection(self)
        self.created: list[FakeContainer] = []
        self.live_names: set[str] = set()
        self.events: list[tuple[str, str]] = []
        self.scripts: dict[str, Callable[..., None]] = {}
        self.exit_codes: dict[str, int] = {}
        self.changes: dict[str, list[dict[str, Any]]] = {}
        self.remove_error = False
        self.reachable = True

    def ping(self) -> bool:
        if not self.reachable:
            raise docker.errors.DockerException("Error while fetching server API version")
        return True


@pytest.fixture
def docker_client() -> FakeDockerClient:
    return FakeDockerClient()


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeQueue:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy
        self.enqueued: list[dict[str, Any]] = []
        self.acknowledged: list[tuple[str, str]] = []
        self.published: list[dict[str, Any]] = []

    async def health_check(self) -> bool:
        return self.healthy

    async def enqueue(self, record: dict[str, Any]) -> str:
        self.enqueued.append(record)
        return f"{len(self.enqueued)}-0"

    async def acknowledge(self, msg_id: str, group: str) -> None:
        self.acknowledged.append((msg_id, group))

    async def publish_result(self, payload: dict[str, Any]) -> str:
        self.published.append(payload)
        return f"{len(self.published)}-0"


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()
