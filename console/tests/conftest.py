"""Shared test fixtures for console tests."""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections import deque
from typing import TYPE_CHECKING

import pytest
import structlog

from monitor import ContainerNotFoundError, ContainerRef, ContainerRuntime

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Generator
    from pathlib import Path

    from monitor import ProcessList


def _snapshot_line(pids: int) -> bytes:
    doc = {
        "cpu_stats": {
            "cpu_usage": {"total_usage": 400, "percpu_usage": [200, 200]},
            "system_cpu_usage": 2000,
        },
        "precpu_stats": {"cpu_usage": {"total_usage": 100}, "system_cpu_usage": 1000},
        "memory_stats": {"usage": 256 * 1024 * 1024, "limit": 1024 * 1024 * 1024},
        "blkio_stats": {"io_service_bytes_recursive": [{"op": "Read", "value": 4096}]},
        "networks": {"eth0": {"rx_bytes": 2048, "tx_bytes": 1024}},
        "pids_stats": {"current": pids},
    }
    return json.dumps(doc).encode() + b"\n"


class _Lines:
    def __init__(self, lines: list[bytes], hang: bool) -> None:
        self._lines = deque(lines)
        self._hang = hang

    async def readline(self) -> bytes:
        if self._lines:
            return self._lines.popleft()
        if self._hang:
            await asyncio.Event().wait()
        return b""


class StaticRuntime(ContainerRuntime):
    """Runtime with a fixed set of containers and scripted stats sessions."""

    def __init__(
        self,
        containers: list[ContainerRef],
        samples: int = 5,
        hang: bool = True,
        processes: ProcessList | None = None,
    ) -> None:
        self.containers = containers
        self.samples = samples
        self.hang = hang
        self.processes = processes
        self.open_streams = 0

    async def list_containers(self, all: bool = True) -> list[ContainerRef]:  # noqa: A002
        return [c for c in self.containers if all or c.is_running]

    async def inspect_container(self, container: str) -> ContainerRef:
        for ref in self.containers:
            if container in (ref.id, ref.short_id, ref.display_name):
                return ref
        raise ContainerNotFoundError(f"No such container: {container}", status=404)

    @contextlib.asynccontextmanager
    async def stats_stream(self, container_id: str) -> AsyncIterator[_Lines]:
        self.open_streams += 1
        try:
            yield _Lines([_snapshot_line(n) for n in range(self.samples)], self.hang)
        finally:
            self.open_streams -= 1

    async def top(self, container_id: str) -> ProcessList | None:
        return self.processes


@pytest.fixture(autouse=True)
def isolated_config_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Isolate tests from the real user configuration directory.

    Sets XDG_CONFIG_HOME to a temporary directory so that tests don't
    read or modify ~/.config/container-stats/.
    """
    config_home = tmp_path / "xdg_config"
    config_home.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.delenv("DOCKER_HOST", raising=False)

    yield config_home


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo logging configuration done by CLI commands."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def web_container() -> ContainerRef:
    """A running container."""
    return ContainerRef.model_validate(
        {
            "Id": "a1b2c3d4e5f6" + "0" * 52,
            "Names": ["/web"],
            "Image": "nginx:latest",
            "Command": "nginx -g 'daemon off;'",
            "State": "running",
            "Status": "Up 5 minutes",
        }
    )


@pytest.fixture
def exited_container() -> ContainerRef:
    """A container that has exited."""
    return ContainerRef.model_validate(
        {
            "Id": "0f9e8d7c6b5a" + "1" * 52,
            "Names": ["/worker"],
            "Image": "busybox",
            "Command": "sleep 10",
            "State": "exited",
            "Status": "Exited (0) 2 hours ago",
        }
    )


@pytest.fixture
def static_runtime() -> Callable[..., StaticRuntime]:
    """Factory for scripted runtimes."""
    return StaticRuntime
