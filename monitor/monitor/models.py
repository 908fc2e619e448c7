"""Data models for the container stats pipeline.

Runtime payloads (container summaries, usage snapshots, process lists) are
Pydantic models decoded straight from the Docker Engine JSON. The derived
record handed to consumers is a plain dataclass.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Length of the short container ID shown to users
SHORT_ID_LENGTH = 12

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"


class LogLevel(str, Enum):
    """Log level for the monitor."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class MonitorConfig(BaseModel):
    """Configuration for container monitoring."""

    docker_host: str = Field(
        default_factory=lambda: os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST,
        description="Runtime endpoint (unix:// or tcp://)",
    )
    api_version: str | None = Field(
        default=None, description="Engine API version prefix, e.g. '1.43'. None = unversioned."
    )
    sample_interval_seconds: float = Field(
        default=1.0, ge=0.1, description="Interval between snapshot decodes"
    )
    process_list_enabled: bool = Field(
        default=True, description="Attach the container's process list to each record"
    )
    process_poll_interval_seconds: float = Field(
        default=5.0, gt=0, description="Interval between process list queries"
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for non-streaming runtime requests"
    )
    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Log level")


def truncate_id(container_id: str) -> str:
    """Return the short display form of a container ID.

    A digest prefix such as ``sha256:`` is dropped before truncating.

    Args:
        container_id: Full container ID.

    Returns:
        The first 12 characters of the ID.
    """
    if ":" in container_id:
        container_id = container_id.split(":", 1)[1]
    return container_id[:SHORT_ID_LENGTH]


class _RuntimeModel(BaseModel):
    """Base for models decoded from runtime JSON."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ContainerRef(_RuntimeModel):
    """Identity and running state of a container."""

    id: str = Field(..., alias="Id", description="Full container ID")
    names: list[str] = Field(default_factory=list, alias="Names")
    image: str = Field(default="", alias="Image")
    command: str = Field(default="", alias="Command")
    state: str = Field(default="", alias="State")
    status: str = Field(default="", alias="Status")

    @field_validator("names", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def short_id(self) -> str:
        """Truncated container ID."""
        return truncate_id(self.id)

    @property
    def display_name(self) -> str:
        """First container name without the leading slash."""
        if not self.names:
            return self.short_id
        return self.names[0].lstrip("/")

    @property
    def is_running(self) -> bool:
        """Whether the container is running."""
        if self.state:
            return self.state.lower() == "running"
        return self.status.startswith("Up")

    @classmethod
    def from_inspect(cls, data: dict[str, Any]) -> ContainerRef:
        """Build a ContainerRef from a ``/containers/{id}/json`` payload.

        Args:
            data: Inspect payload.

        Returns:
            ContainerRef equivalent to the list-endpoint summary.
        """
        config = data.get("Config") or {}
        state = data.get("State") or {}
        cmd = config.get("Cmd") or []
        entrypoint = config.get("Entrypoint") or []
        command = " ".join([*entrypoint, *cmd])
        return cls(
            id=data["Id"],
            names=[data["Name"]] if data.get("Name") else [],
            image=config.get("Image", ""),
            command=command,
            state=state.get("Status", ""),
            status="Up" if state.get("Running") else state.get("Status", ""),
        )


class CPUUsage(_RuntimeModel):
    """CPU usage counters of one sample."""

    total_usage: int = 0
    percpu_usage: list[int] = Field(default_factory=list)
    usage_in_kernelmode: int = 0
    usage_in_usermode: int = 0

    @field_validator("percpu_usage", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class CPUStats(_RuntimeModel):
    """Container and system CPU counters of one sample."""

    cpu_usage: CPUUsage = Field(default_factory=CPUUsage)
    system_cpu_usage: int = 0
    online_cpus: int = 0


class MemoryStats(_RuntimeModel):
    """Memory usage and limit in bytes."""

    usage: int = 0
    limit: int = 0


class BlkioEntry(_RuntimeModel):
    """One block I/O counter."""

    major: int = 0
    minor: int = 0
    op: str = ""
    value: int = 0


class BlkioStats(_RuntimeModel):
    """Block I/O counters."""

    io_service_bytes_recursive: list[BlkioEntry] = Field(default_factory=list)

    @field_validator("io_service_bytes_recursive", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class NetworkStats(_RuntimeModel):
    """Byte counters of one network interface."""

    rx_bytes: int = 0
    tx_bytes: int = 0


class PidsStats(_RuntimeModel):
    """Process count."""

    current: int = 0


class RawSnapshot(_RuntimeModel):
    """One decoded point-in-time usage record.

    ``cpu_stats`` holds the current CPU sample and ``precpu_stats`` the one
    immediately before it, so CPU deltas need a single snapshot.
    """

    read: str = ""
    name: str = ""
    id: str = ""
    cpu_stats: CPUStats = Field(default_factory=CPUStats)
    precpu_stats: CPUStats = Field(default_factory=CPUStats)
    memory_stats: MemoryStats = Field(default_factory=MemoryStats)
    blkio_stats: BlkioStats = Field(default_factory=BlkioStats)
    networks: dict[str, NetworkStats] = Field(default_factory=dict)
    pids_stats: PidsStats = Field(default_factory=PidsStats)

    @field_validator(
        "cpu_stats",
        "precpu_stats",
        "memory_stats",
        "blkio_stats",
        "networks",
        "pids_stats",
        mode="before",
    )
    @classmethod
    def _none_as_default(cls, value: Any) -> Any:
        return {} if value is None else value


class ProcessList(_RuntimeModel):
    """Processes running inside a container, as reported by ``top``."""

    titles: list[str] = Field(default_factory=list, alias="Titles")
    processes: list[list[str]] = Field(default_factory=list, alias="Processes")

    def column(self, title: str) -> list[str]:
        """Return the values of one column, or an empty list if absent.

        Args:
            title: Column title, e.g. ``"PID"`` or ``"CMD"``.

        Returns:
            Column values in process order.
        """
        try:
            index = self.titles.index(title)
        except ValueError:
            return []
        return [row[index] for row in self.processes if index < len(row)]


@dataclass(slots=True, frozen=True)
class DerivedStats:
    """Resource usage of a container derived from one snapshot.

    Attributes:
        container_id: Truncated container ID.
        command: Container command.
        cpu_percentage: CPU usage in percent of one core times core count.
        memory: Memory used in bytes.
        memory_limit: Memory limit in bytes.
        memory_percentage: Memory used in percent of the limit.
        block_read: Bytes read from block devices.
        block_write: Bytes written to block devices.
        network_rx: Bytes received over all interfaces.
        network_tx: Bytes transmitted over all interfaces.
        pids_current: Number of processes.
        process_list: Latest process list, or None if unavailable.
    """

    container_id: str
    command: str
    cpu_percentage: float = 0.0
    memory: float = 0.0
    memory_limit: float = 0.0
    memory_percentage: float = 0.0
    block_read: float = 0.0
    block_write: float = 0.0
    network_rx: float = 0.0
    network_tx: float = 0.0
    pids_current: int = 0
    process_list: ProcessList | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d: dict[str, Any] = {
            "id": self.container_id,
            "command": self.command,
            "cpu_percentage": self.cpu_percentage,
            "memory": self.memory,
            "memory_limit": self.memory_limit,
            "memory_percentage": self.memory_percentage,
            "block_read": self.block_read,
            "block_write": self.block_write,
            "network_rx": self.network_rx,
            "network_tx": self.network_tx,
            "pids_current": self.pids_current,
        }
        if self.process_list is not None:
            d["processes"] = self.process_list.model_dump(by_alias=True)
        return d
