"""Container-Stats Monitor Library.

Live resource-usage sampling for running containers.

Module Overview:
    calculator: Pure functions deriving percentages and totals from snapshots
    config: YAML-based configuration management (XDG spec compliant)
    decoder: Decoding of usage snapshots from a runtime stats stream
    docker_client: Docker Engine runtime over the HTTP API (aiohttp)
    errors: Exception hierarchy
    interfaces: Abstract base class for container runtimes
    models: Runtime payload models and the DerivedStats record
    sampler: Tick-paced sampling task and process list poller
    stream: Unbuffered output stream of DerivedStats
    subscription: Per-container subscriptions with cancellation
"""

from importlib.metadata import version as get_package_version

from monitor.calculator import (
    build_stats,
    calculate_block_io,
    calculate_cpu_percent,
    calculate_memory_percent,
    calculate_network,
)
from monitor.config import ConfigManager, YamlConfigLoader, get_config_dir, get_default_config_path
from monitor.decoder import ByteStream, SnapshotDecoder
from monitor.docker_client import DockerRuntime, parse_docker_host
from monitor.errors import (
    ContainerNotFoundError,
    DecodeError,
    MonitorError,
    RuntimeClientError,
    StreamClosedError,
    StreamEndedError,
)
from monitor.interfaces import ContainerRuntime
from monitor.models import (
    ContainerRef,
    DerivedStats,
    LogLevel,
    MonitorConfig,
    ProcessList,
    RawSnapshot,
    truncate_id,
)
from monitor.sampler import ProcessListPoller, StatsSampler, Ticker
from monitor.stream import StatsStream
from monitor.subscription import Subscription, open_subscription, open_subscription_from_config

__version__ = get_package_version("container-stats")

__all__ = [
    "ByteStream",
    "ConfigManager",
    "ContainerNotFoundError",
    "ContainerRef",
    "ContainerRuntime",
    "DecodeError",
    "DerivedStats",
    "DockerRuntime",
    "LogLevel",
    "MonitorConfig",
    "MonitorError",
    "ProcessList",
    "ProcessListPoller",
    "RawSnapshot",
    "RuntimeClientError",
    "SnapshotDecoder",
    "StatsSampler",
    "StatsStream",
    "StreamClosedError",
    "StreamEndedError",
    "Subscription",
    "Ticker",
    "YamlConfigLoader",
    "build_stats",
    "calculate_block_io",
    "calculate_cpu_percent",
    "calculate_memory_percent",
    "calculate_network",
    "get_config_dir",
    "get_default_config_path",
    "open_subscription",
    "open_subscription_from_config",
    "parse_docker_host",
    "truncate_id",
]
