"""Pytest configuration and shared fixtures."""

import os
import threading
from typing import Any
from unittest.mock import MagicMock, Mock

import docker
import pytest
from docker.errors import APIError, NotFound

from pack8s.podman import Handle


class RecordingEvent(threading.Event):
    """Context event that records every wait instead of sleeping."""

    def __init__(self) -> None:
        super().__init__()
        self.waits: list[float | None] = []

    def wait(self, timeout: float | None = None) -> bool:
        self.waits.append(timeout)
        return self.is_set()


class FakeEngineAPI:
    """In-memory stand-in for the low-level API of a podman engine."""

    def __init__(self) -> None:
        self._containers: dict[str, dict[str, Any]] = {}
        self._volumes: dict[str, dict[str, Any]] = {}
        self._serial = 0

    def containers(self, all: bool = False) -> list[dict[str, Any]]:
        return [dict(c) for c in self._containers.values()]

    def create_host_config(self, **kwargs: Any) -> dict[str, Any]:
        return kwargs

    def create_container(
        self,
        image: str,
        command: Any = None,
        name: str | None = None,
        labels: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        self._serial += 1
        container_id = f"{self._serial:064x}"
        self._containers[container_id] = {
            "Id": container_id,
            "Names": [f"/{name or container_id[:12]}"],
            "Image": image,
            "State": "created",
            "Status": "Created",
            "Labels": labels or {},
        }
        return {"Id": container_id, "Warnings": []}

    def _lookup(self, container: str) -> dict[str, Any]:
        if container not in self._containers:
            raise NotFound(f"no such container: {container}")
        return self._containers[container]

    def start(self, container: str) -> None:
        self._lookup(container).update(State="running", Status="Up")

    def stop(self, container: str, timeout: int | None = None) -> None:
        self._lookup(container).update(State="exited", Status="Exited (0)")

    def inspect_container(self, container: str) -> dict[str, Any]:
        record = self._lookup(container)
        return {
            "Id": record["Id"],
            "State": {
                "Status": record["State"],
                "Running": record["State"] == "running",
                "ExitCode": 0,
            },
        }

    def remove_container(self, container: str, v: bool = False, force: bool = False) -> None:
        if self._lookup(container)["State"] == "running" and not force:
            raise APIError(
                "409 Client Error",
                response=Mock(status_code=409),
                explanation=f"container {container} is running",
            )
        del self._containers[container]

    def volumes(self) -> dict[str, Any]:
        return {"Volumes": [dict(v) for v in self._volumes.values()] or None, "Warnings": None}

    def create_volume(
        self, name: str | None = None, labels: dict[str, str] | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        volume = {
            "Name": name,
            "Driver": "local",
            "Mountpoint": f"/var/lib/containers/storage/volumes/{name}/_data",
            "Labels": labels or {},
        }
        self._volumes[str(name)] = volume
        return dict(volume)

    def remove_volume(self, name: str, force: bool = False) -> None:
        if name not in self._volumes:
            raise NotFound(f"no such volume: {name}")
        del self._volumes[name]


@pytest.fixture
def mock_docker_client():
    """Create a mock SDK client."""
    client = MagicMock()
    client.ping.return_value = True
    client.api.base_url = "http+docker://localhost"
    return client


@pytest.fixture
def mock_docker_client_class(monkeypatch, mock_docker_client):
    """Mock docker.DockerClient class; returns the mocked constructor."""
    factory = Mock(return_value=mock_docker_client)
    monkeypatch.setattr(docker, "DockerClient", factory)
    return factory


@pytest.fixture
def context():
    """A cancellation context that never sleeps."""
    return RecordingEvent()


@pytest.fixture
def handle(mock_docker_client_class, context):
    """Handle connected to the mock SDK client."""
    hnd = Handle(context=context)
    yield hnd
    hnd.close()


@pytest.fixture
def engine(mock_docker_client):
    """Stateful fake engine behind the mock SDK client."""
    fake = FakeEngineAPI()
    mock_docker_client.api = fake
    return fake


@pytest.fixture
def engine_handle(engine, handle):
    """Handle whose calls land on the fake engine."""
    return handle


@pytest.fixture
def pty_pair():
    """A pseudo-terminal: (master fd, slave fd)."""
    master, slave = os.openpty()
    yield master, slave
    for fd in (master, slave):
        try:
            os.close(fd)
        except OSError:
            pass


@pytest.fixture
def mock_container_listing():
    """Engine listing with containers in a deliberate, unsorted order."""
    return [
        {"Id": "c3", "Names": ["/pack8s-node02"], "State": "running", "Status": "Up"},
        {"Id": "c1", "Names": ["/other"], "State": "exited", "Status": "Exited (0)"},
        {"Id": "c2", "Names": ["/pack8s-node01"], "State": "running", "Status": "Up"},
        {"Id": "c4", "Names": ["/Pack8s-upper"], "State": "running", "Status": "Up"},
    ]
