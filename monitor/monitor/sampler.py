"""Sampling of a container's live stats session.

``StatsSampler`` owns one stats session for one container: it decodes a
snapshot on every tick, turns it into DerivedStats and hands it to the
output stream. ``ProcessListPoller`` refreshes the container's process list
on its own, slower schedule so a slow ``top`` query never stalls a tick.

The sampler's ``run()`` coroutine is meant to be the whole body of one
asyncio task. Cancelling that task is the only way to stop it early; every
exit path closes the output stream and releases the stats session once.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from .calculator import build_stats
from .decoder import SnapshotDecoder
from .errors import DecodeError, MonitorError, RuntimeClientError, StreamEndedError

if TYPE_CHECKING:
    from collections.abc import Callable

    from .interfaces import ContainerRuntime
    from .models import ContainerRef, ProcessList
    from .stream import StatsStream

logger = structlog.get_logger(__name__)

DEFAULT_SAMPLE_INTERVAL = 1.0
DEFAULT_PROCESS_POLL_INTERVAL = 5.0


class Ticker:
    """Fixed-interval trigger.

    Ticks are scheduled at ``start + k * interval``. If the caller comes
    back late, one tick fires immediately and any further missed ticks are
    dropped, so ticks never pile up behind a slow decode.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the ticker.

        Args:
            interval: Seconds between ticks.
            clock: Monotonic clock, replaceable in tests.
        """
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self._interval = interval
        self._clock = clock
        self._next = clock() + interval
        self._dropped = 0

    @property
    def interval(self) -> float:
        """Seconds between ticks."""
        return self._interval

    @property
    def dropped(self) -> int:
        """Number of ticks dropped because the caller was late."""
        return self._dropped

    async def wait(self) -> None:
        """Wait for the next tick."""
        now = self._clock()
        if now < self._next:
            await asyncio.sleep(self._next - now)
            self._next += self._interval
            return

        missed = int((now - self._next) // self._interval) + 1
        self._dropped += missed - 1
        self._next += missed * self._interval


class ProcessListPoller:
    """Keeps the latest process list of a container.

    Query failures are not errors: the latest list simply becomes None
    until a later query succeeds.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        container_id: str,
        interval: float = DEFAULT_PROCESS_POLL_INTERVAL,
    ) -> None:
        """Initialize the poller.

        Args:
            runtime: Runtime to query.
            container_id: Container to list processes of.
            interval: Seconds between queries.
        """
        self._runtime = runtime
        self._container_id = container_id
        self._interval = interval
        self._latest: ProcessList | None = None
        self._failures = 0

    @property
    def latest(self) -> ProcessList | None:
        """Most recent process list, or None if the last query failed."""
        return self._latest

    @property
    def failures(self) -> int:
        """Number of failed queries."""
        return self._failures

    async def refresh(self) -> ProcessList | None:
        """Query the process list once.

        Returns:
            The new process list, or None on failure.
        """
        try:
            self._latest = await self._runtime.top(self._container_id)
        except (MonitorError, ValidationError) as e:
            self._failures += 1
            self._latest = None
            logger.debug("process_list_failed", container=self._container_id, error=str(e))
        return self._latest

    async def run(self) -> None:
        """Refresh forever until cancelled."""
        while True:
            await self.refresh()
            await asyncio.sleep(self._interval)


class StatsSampler:
    """Samples one container's stats session into a StatsStream."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        container: ContainerRef,
        stream: StatsStream,
        interval: float = DEFAULT_SAMPLE_INTERVAL,
        process_poller: ProcessListPoller | None = None,
    ) -> None:
        """Initialize the sampler.

        Args:
            runtime: Runtime providing the stats session.
            container: Running container to sample.
            stream: Output stream; closed when sampling ends.
            interval: Seconds between decode attempts.
            process_poller: Source of process lists, or None to omit them.
        """
        self._runtime = runtime
        self._container = container
        self._stream = stream
        self._interval = interval
        self._poller = process_poller
        self._log = logger.bind(container=container.short_id)

    async def run(self) -> None:
        """Sample until the session ends, fails, or the task is cancelled."""
        poller_task: asyncio.Task[None] | None = None
        if self._poller is not None:
            poller_task = asyncio.create_task(self._poller.run())

        try:
            async with self._runtime.stats_stream(self._container.id) as body:
                await self._sample(SnapshotDecoder(body))
        except StreamEndedError:
            self._log.debug("stats_session_ended")
        except DecodeError as e:
            self._log.warning("stats_decode_failed", error=str(e))
        except RuntimeClientError as e:
            self._log.warning("stats_session_failed", error=str(e), status=e.status)
        except asyncio.CancelledError:
            self._log.debug("stats_sampling_cancelled")
            raise
        finally:
            if poller_task is not None:
                await self._stop_poller(poller_task)
            self._stream.close()

    async def _stop_poller(self, poller_task: asyncio.Task[None]) -> None:
        # Must not raise: the sampler's own exit reason wins
        poller_task.cancel()
        try:
            await poller_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self._log.warning("process_poller_failed", error=str(e))

    async def _sample(self, decoder: SnapshotDecoder) -> None:
        # The first document only primes the previous CPU sample
        await decoder.decode()

        ticker = Ticker(self._interval)
        while True:
            await ticker.wait()
            snapshot = await decoder.decode()
            process_list = self._poller.latest if self._poller is not None else None
            stats = build_stats(self._container, snapshot, process_list)
            await self._stream.send(stats)
