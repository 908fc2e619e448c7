"""Subscriptions to a container's live stats.

A Subscription pairs a read-only StatsStream with a cancellation control.
It lives exactly as long as its sampling task: the stream closes when the
runtime session ends, a snapshot fails to decode, or ``cancel()`` is called.
There is no resume; open a new Subscription to try again.

Example:
    >>> async with open_subscription(runtime, container) as sub:
    ...     async for stats in sub.stream:
    ...         print(stats.cpu_percentage)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from .sampler import (
    DEFAULT_PROCESS_POLL_INTERVAL,
    DEFAULT_SAMPLE_INTERVAL,
    ProcessListPoller,
    StatsSampler,
)
from .stream import StatsStream

if TYPE_CHECKING:
    from .interfaces import ContainerRuntime
    from .models import ContainerRef, MonitorConfig

logger = structlog.get_logger(__name__)


class Subscription:
    """Live stats of one container.

    For a container that is not running, ``stream`` is None and ``cancel()``
    does nothing. That means "no live data", not an error.
    """

    def __init__(
        self,
        container: ContainerRef,
        stream: StatsStream | None = None,
        task: asyncio.Task[None] | None = None,
    ) -> None:
        """Initialize the subscription.

        Args:
            container: Container being monitored.
            stream: Output stream, None for an inert subscription.
            task: Sampling task feeding the stream.
        """
        self._container = container
        self._stream = stream
        self._task = task
        if task is not None:
            task.add_done_callback(self._on_task_done)

    @property
    def container(self) -> ContainerRef:
        """Container being monitored."""
        return self._container

    @property
    def stream(self) -> StatsStream | None:
        """Output stream, or None if the container is not running."""
        return self._stream

    @property
    def is_live(self) -> bool:
        """Whether this subscription has a sampling task."""
        return self._task is not None

    @property
    def done(self) -> bool:
        """Whether sampling has finished. Inert subscriptions are always done."""
        return self._task is None or self._task.done()

    def cancel(self) -> None:
        """Request the subscription to stop.

        The stream closes shortly afterwards; at most the value already in
        flight may still be received. Calling this more than once is harmless.
        """
        if self._task is not None and not self._task.done():
            logger.debug("subscription_cancel_requested", container=self._container.short_id)
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the sampling task has finished and released its session."""
        if self._task is None:
            return
        await asyncio.wait({self._task})

    async def aclose(self) -> None:
        """Cancel and wait for the sampling task to finish."""
        self.cancel()
        await self.wait_closed()

    async def __aenter__(self) -> Subscription:
        """Enter the subscription scope."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Cancel the subscription when leaving the scope."""
        await self.aclose()

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # A task cancelled before its first step never reaches the sampler's cleanup
        if self._stream is not None:
            self._stream.close()
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "stats_sampling_crashed",
                container=self._container.short_id,
                error=repr(error),
            )


def open_subscription(
    runtime: ContainerRuntime,
    container: ContainerRef,
    *,
    interval: float = DEFAULT_SAMPLE_INTERVAL,
    process_poll_interval: float | None = DEFAULT_PROCESS_POLL_INTERVAL,
) -> Subscription:
    """Subscribe to the live stats of a container.

    Must be called from a running event loop. Each call opens its own
    runtime session, even for a container that already has subscribers.

    Args:
        runtime: Runtime providing the stats session.
        container: Container to monitor.
        interval: Seconds between samples.
        process_poll_interval: Seconds between process list queries, or None
            to leave process lists out.

    Returns:
        A live Subscription, or an inert one if the container is not running.
    """
    if not container.is_running:
        logger.debug("subscription_inert", container=container.short_id, state=container.state)
        return Subscription(container)

    poller = None
    if process_poll_interval is not None:
        poller = ProcessListPoller(runtime, container.id, process_poll_interval)

    stream = StatsStream()
    sampler = StatsSampler(runtime, container, stream, interval=interval, process_poller=poller)
    task = asyncio.create_task(sampler.run(), name=f"stats-{container.short_id}")
    logger.debug("subscription_opened", container=container.short_id, interval=interval)
    return Subscription(container, stream, task)


def open_subscription_from_config(
    runtime: ContainerRuntime,
    container: ContainerRef,
    config: MonitorConfig,
) -> Subscription:
    """Subscribe using intervals from the monitor configuration."""
    return open_subscription(
        runtime,
        container,
        interval=config.sample_interval_seconds,
        process_poll_interval=(
            config.process_poll_interval_seconds if config.process_list_enabled else None
        ),
    )
