"""Derived metrics computed from raw usage snapshots.

Every function here is pure: no state, no I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import DerivedStats, truncate_id

if TYPE_CHECKING:
    from .models import ContainerRef, ProcessList, RawSnapshot


def calculate_cpu_percent(snapshot: RawSnapshot) -> float:
    """Calculate CPU usage between the previous and current sample.

    The container's usage delta is divided by the host's usage delta and
    scaled by the number of per-core counters in the current sample. A
    snapshot without per-core counters therefore yields 0.0.

    Args:
        snapshot: Snapshot carrying both CPU samples.

    Returns:
        CPU percentage, or 0.0 if either delta is not positive.
    """
    current = snapshot.cpu_stats
    previous = snapshot.precpu_stats

    cpu_delta = current.cpu_usage.total_usage - previous.cpu_usage.total_usage
    system_delta = current.system_cpu_usage - previous.system_cpu_usage
    if cpu_delta <= 0 or system_delta <= 0:
        return 0.0

    num_cores = len(current.cpu_usage.percpu_usage)
    return (cpu_delta / system_delta) * num_cores * 100.0


def calculate_memory_percent(snapshot: RawSnapshot) -> float:
    """Calculate memory usage relative to the limit.

    Args:
        snapshot: Snapshot to read memory counters from.

    Returns:
        Memory percentage, or 0.0 when no limit is reported.
    """
    memory = snapshot.memory_stats
    # The limit is only 0 when the cgroup has not reported any data yet
    if memory.limit == 0:
        return 0.0
    return memory.usage / memory.limit * 100.0


def calculate_block_io(snapshot: RawSnapshot) -> tuple[int, int]:
    """Sum block I/O bytes by operation.

    Args:
        snapshot: Snapshot to read block I/O counters from.

    Returns:
        Tuple of (bytes read, bytes written).
    """
    read = 0
    write = 0
    for entry in snapshot.blkio_stats.io_service_bytes_recursive:
        op = entry.op.lower()
        if op == "read":
            read += entry.value
        elif op == "write":
            write += entry.value
    return read, write


def calculate_network(snapshot: RawSnapshot) -> tuple[int, int]:
    """Sum network bytes over all interfaces.

    Args:
        snapshot: Snapshot to read network counters from.

    Returns:
        Tuple of (bytes received, bytes transmitted).
    """
    rx = sum(iface.rx_bytes for iface in snapshot.networks.values())
    tx = sum(iface.tx_bytes for iface in snapshot.networks.values())
    return rx, tx


def build_stats(
    container: ContainerRef,
    snapshot: RawSnapshot,
    process_list: ProcessList | None = None,
) -> DerivedStats:
    """Build the derived record for one snapshot.

    Args:
        container: Container the snapshot belongs to.
        snapshot: Decoded usage snapshot.
        process_list: Latest process list, if one is available.

    Returns:
        DerivedStats for the consumer.
    """
    block_read, block_write = calculate_block_io(snapshot)
    network_rx, network_tx = calculate_network(snapshot)

    return DerivedStats(
        container_id=truncate_id(container.id),
        command=container.command,
        cpu_percentage=calculate_cpu_percent(snapshot),
        memory=float(snapshot.memory_stats.usage),
        memory_limit=float(snapshot.memory_stats.limit),
        memory_percentage=calculate_memory_percent(snapshot),
        block_read=float(block_read),
        block_write=float(block_write),
        network_rx=float(network_rx),
        network_tx=float(network_tx),
        pids_current=snapshot.pids_stats.current,
        process_list=process_list,
    )
