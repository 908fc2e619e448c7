"""Per-container display rows fed by stats subscriptions.

A ``StatsRow`` is the consumer side of a Subscription: ``follow()`` drains
the subscription's stream and keeps the row's labels current. Colours come
from an explicit ``GaugeTheme``; rows never read global state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from rich.text import Text

if TYPE_CHECKING:
    from monitor import ContainerRef, DerivedStats, Subscription

logger = structlog.get_logger(__name__)

BINARY_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB")

# Gauges never drop below this so an idle container still shows a sliver
GAUGE_MIN_PERCENT = 5
GAUGE_MAX_PERCENT = 100

NOT_AVAILABLE = "-"


def format_bytes(size: float) -> str:
    """Format a byte count with binary units and four significant digits.

    Args:
        size: Number of bytes.

    Returns:
        Formatted size, e.g. ``"1.5KiB"`` or ``"512B"``.
    """
    unit = 0
    while size >= 1024.0 and unit < len(BINARY_UNITS) - 1:
        size /= 1024.0
        unit += 1
    return f"{size:.4g}{BINARY_UNITS[unit]}"


def clamp_gauge(percent: float) -> int:
    """Clamp a percentage into the range a gauge can draw."""
    return max(GAUGE_MIN_PERCENT, min(GAUGE_MAX_PERCENT, int(percent)))


@dataclass(frozen=True)
class GaugeTheme:
    """Colours used by stats rows.

    Attributes:
        normal: Style of gauges at or below the warning threshold.
        warning: Style of gauges above ``warning_above``.
        critical: Style of gauges above ``critical_above``.
        muted: Style of rows whose container is not running.
        warning_above: Warning threshold in percent.
        critical_above: Critical threshold in percent.
    """

    normal: str = "dark_cyan"
    warning: str = "indian_red"
    critical: str = "deep_pink3"
    muted: str = "grey50"
    warning_above: int = 70
    critical_above: int = 90

    def style_for(self, percent: int) -> str:
        """Return the gauge style for a percentage."""
        if percent > self.critical_above:
            return self.critical
        if percent > self.warning_above:
            return self.warning
        return self.normal


DEFAULT_THEME = GaugeTheme()


class StatsRow:
    """Display state of one container."""

    def __init__(self, container: ContainerRef, theme: GaugeTheme = DEFAULT_THEME) -> None:
        """Initialize the row.

        Args:
            container: Container shown in this row.
            theme: Colours for gauges and muted rows.
        """
        self.container = container
        self.theme = theme

        self.container_id = container.short_id
        self.name = container.display_name
        self.cpu_label = NOT_AVAILABLE
        self.cpu_gauge = GAUGE_MIN_PERCENT
        self.memory_label = NOT_AVAILABLE
        self.memory_gauge = GAUGE_MIN_PERCENT
        self.net_label = NOT_AVAILABLE
        self.block_label = NOT_AVAILABLE
        self.pids_label = NOT_AVAILABLE
        self.processes: list[str] = []
        self.running = container.is_running
        self.updates = 0

    def update(self, stats: DerivedStats) -> None:
        """Apply one stats record to the row.

        Args:
            stats: The latest record.
        """
        self.cpu_label = f"{stats.cpu_percentage:.2f}%"
        self.cpu_gauge = clamp_gauge(stats.cpu_percentage)
        self.memory_label = f"{format_bytes(stats.memory)} / {format_bytes(stats.memory_limit)}"
        self.memory_gauge = clamp_gauge(stats.memory_percentage)
        self.net_label = f"{format_bytes(stats.network_rx)} / {format_bytes(stats.network_tx)}"
        self.block_label = f"{format_bytes(stats.block_read)} / {format_bytes(stats.block_write)}"
        self.pids_label = str(stats.pids_current)
        if stats.process_list is not None:
            self.processes = stats.process_list.column("CMD")
        self.updates += 1

    def mark_not_running(self) -> None:
        """Show the row as a container without live data."""
        self.running = False
        self.cpu_label = NOT_AVAILABLE
        self.memory_label = NOT_AVAILABLE

    def reset(self) -> None:
        """Clear all live values."""
        self.cpu_label = NOT_AVAILABLE
        self.cpu_gauge = GAUGE_MIN_PERCENT
        self.memory_label = NOT_AVAILABLE
        self.memory_gauge = GAUGE_MIN_PERCENT
        self.net_label = NOT_AVAILABLE
        self.block_label = NOT_AVAILABLE
        self.pids_label = NOT_AVAILABLE
        self.processes = []

    async def follow(self, subscription: Subscription) -> int:
        """Update the row from a subscription until its stream closes.

        Args:
            subscription: Subscription for this row's container.

        Returns:
            Number of records received.
        """
        if subscription.stream is None:
            self.mark_not_running()
            return 0

        received = 0
        async for stats in subscription.stream:
            self.update(stats)
            received += 1
        logger.debug("stats_row_stream_closed", container=self.container_id, received=received)
        return received

    def cells(self, show_processes: bool = False) -> list[Text]:
        """Render the row as table cells.

        Args:
            show_processes: Append a cell listing process commands.

        Returns:
            One Text per column.
        """
        if not self.running:
            muted = self.theme.muted
            cells = [
                Text(self.container_id, style=muted),
                Text(self.name, style=muted),
                Text(self.cpu_label, style=muted),
                Text(self.memory_label, style=muted),
                Text(self.net_label, style=muted),
                Text(self.block_label, style=muted),
                Text(self.pids_label, style=muted),
            ]
        else:
            cells = [
                Text(self.container_id),
                Text(self.name),
                Text(self.cpu_label, style=self.theme.style_for(self.cpu_gauge)),
                Text(self.memory_label, style=self.theme.style_for(self.memory_gauge)),
                Text(self.net_label),
                Text(self.block_label),
                Text(self.pids_label),
            ]
        if show_processes:
            cells.append(Text(", ".join(self.processes) or NOT_AVAILABLE, overflow="ellipsis"))
        return cells
