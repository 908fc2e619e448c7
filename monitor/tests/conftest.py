"""Test fixtures for the monitor package.

Provides Docker-shaped snapshot documents and an in-memory container runtime
so the pipeline can be exercised without a Docker daemon.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections import deque
from typing import TYPE_CHECKING, Any

import pytest

from monitor.errors import ContainerNotFoundError, RuntimeClientError
from monitor.interfaces import ContainerRuntime
from monitor.models import ContainerRef, ProcessList

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


def make_snapshot_doc(
    total: int = 200,
    system: int = 1000,
    pre_total: int = 100,
    pre_system: int = 800,
    cores: int = 2,
    usage: int = 500,
    limit: int = 1000,
    blkio: list[dict[str, Any]] | None = None,
    networks: dict[str, dict[str, int]] | None = None,
    pids: int = 3,
) -> dict[str, Any]:
    """Build a stats document shaped like the Docker Engine's."""
    return {
        "read": "2024-01-01T00:00:01Z",
        "preread": "2024-01-01T00:00:00Z",
        "name": "/web",
        "id": "f" * 64,
        "pids_stats": {"current": pids},
        "blkio_stats": {"io_service_bytes_recursive": blkio},
        "cpu_stats": {
            "cpu_usage": {
                "total_usage": total,
                "percpu_usage": [total // max(cores, 1)] * cores,
                "usage_in_kernelmode": 0,
                "usage_in_usermode": 0,
            },
            "system_cpu_usage": system,
            "online_cpus": cores,
        },
        "precpu_stats": {
            "cpu_usage": {"total_usage": pre_total, "percpu_usage": [pre_total] * cores},
            "system_cpu_usage": pre_system,
            "online_cpus": cores,
        },
        "memory_stats": {"usage": usage, "limit": limit},
        "networks": networks,
    }


def make_snapshot_line(**kwargs: Any) -> bytes:
    """Encode a stats document as one stream line."""
    return json.dumps(make_snapshot_doc(**kwargs)).encode() + b"\n"


class ScriptedStream:
    """Byte stream that replays prepared lines.

    After the last line it either reports EOF or, with ``hang=True``, blocks
    like an idle connection until the reader is cancelled.
    """

    def __init__(self, lines: list[bytes], hang: bool = False, delay: float = 0.0) -> None:
        self._lines = deque(lines)
        self._hang = hang
        self._delay = delay
        self.reads = 0

    async def readline(self) -> bytes:
        self.reads += 1
        if self._lines:
            if self._delay:
                await asyncio.sleep(self._delay)
            return self._lines.popleft()
        if self._hang:
            await asyncio.Event().wait()
        return b""


class FakeRuntime(ContainerRuntime):
    """In-memory runtime.

    Tracks how many stats sessions are open so tests can check that every
    session is released.
    """

    def __init__(
        self,
        containers: list[ContainerRef] | None = None,
        lines: list[bytes] | None = None,
        hang: bool = False,
        delay: float = 0.0,
        processes: ProcessList | None = None,
        top_error: bool = False,
        open_error: bool = False,
    ) -> None:
        self.containers = containers or []
        self.lines = lines or []
        self.hang = hang
        self.delay = delay
        self.processes = processes
        self.top_error = top_error
        self.open_error = open_error
        self.open_streams = 0
        self.sessions_opened = 0
        self.top_calls = 0
        self.streams: list[ScriptedStream] = []

    async def list_containers(self, all: bool = True) -> list[ContainerRef]:  # noqa: A002
        if all:
            return list(self.containers)
        return [c for c in self.containers if c.is_running]

    async def inspect_container(self, container: str) -> ContainerRef:
        for ref in self.containers:
            if container in (ref.id, ref.short_id, ref.display_name):
                return ref
        raise ContainerNotFoundError(f"No such container: {container}", status=404)

    @contextlib.asynccontextmanager
    async def stats_stream(self, container_id: str) -> AsyncIterator[ScriptedStream]:
        if self.open_error:
            raise RuntimeClientError("daemon unavailable", status=500)
        stream = ScriptedStream(self.lines, hang=self.hang, delay=self.delay)
        self.streams.append(stream)
        self.sessions_opened += 1
        self.open_streams += 1
        try:
            yield stream
        finally:
            self.open_streams -= 1

    async def top(self, container_id: str) -> ProcessList | None:
        self.top_calls += 1
        if self.top_error:
            raise RuntimeClientError("top failed", status=500)
        return self.processes


@pytest.fixture
def running_container() -> ContainerRef:
    """A running container."""
    return ContainerRef(
        id="a1b2c3d4e5f6" + "0" * 52,
        names=["/web"],
        image="nginx:latest",
        command="nginx -g 'daemon off;'",
        state="running",
        status="Up 5 minutes",
    )


@pytest.fixture
def stopped_container() -> ContainerRef:
    """A container that has exited."""
    return ContainerRef(
        id="0f9e8d7c6b5a" + "1" * 52,
        names=["/worker"],
        image="busybox",
        command="sleep 10",
        state="exited",
        status="Exited (0) 2 hours ago",
    )


@pytest.fixture
def snapshot_line() -> Callable[..., bytes]:
    """Factory for encoded stats documents."""
    return make_snapshot_line


@pytest.fixture
def snapshot_doc() -> Callable[..., dict[str, Any]]:
    """Factory for stats documents."""
    return make_snapshot_doc


@pytest.fixture
def fake_runtime() -> Callable[..., FakeRuntime]:
    """Factory for in-memory runtimes."""
    return FakeRuntime


@pytest.fixture
def process_list() -> ProcessList:
    """Process list as returned by ``top``."""
    return ProcessList(
        titles=["UID", "PID", "PPID", "C", "STIME", "TTY", "TIME", "CMD"],
        processes=[
            ["root", "101", "1", "0", "10:00", "?", "00:00:00", "nginx: master process"],
            ["nginx", "120", "101", "0", "10:00", "?", "00:00:00", "nginx: worker process"],
        ],
    )
