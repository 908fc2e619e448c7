"""Output stream of derived stats.

``StatsStream`` is an unbuffered async channel between a sampling task and
its consumer: ``send()`` returns only once the consumer has received the
value, so a slow consumer slows down sampling. Closing the stream ends the
consumer's iteration.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from .errors import StreamClosedError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .models import DerivedStats

logger = structlog.get_logger(__name__)


class StatsStream:
    """Rendezvous channel of DerivedStats.

    Attributes:
        sent_count: Number of values handed to the consumer.
    """

    def __init__(self) -> None:
        """Initialize an open stream."""
        # A single slot holds the value in flight; join() waits for the receiver
        self._queue: asyncio.Queue[DerivedStats] = asyncio.Queue(maxsize=1)
        self._closed = asyncio.Event()
        self._sent_count = 0

    @property
    def closed(self) -> bool:
        """Whether the stream has been closed."""
        return self._closed.is_set()

    @property
    def sent_count(self) -> int:
        """Number of values received by the consumer."""
        return self._sent_count

    async def send(self, stats: DerivedStats) -> None:
        """Hand a value to the consumer and wait until it is received.

        Args:
            stats: The value to send.

        Raises:
            StreamClosedError: If the stream is closed.
        """
        if self.closed:
            raise StreamClosedError("Cannot send on a closed stats stream")
        await self._queue.put(stats)
        await self._queue.join()

    def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        if not self.closed:
            logger.debug("stats_stream_closed", sent=self._sent_count)
        self._closed.set()

    async def receive(self) -> DerivedStats | None:
        """Wait for the next value.

        A value already in flight is delivered even if the stream was closed
        after it was sent.

        Returns:
            The next value, or None once the stream is closed.
        """
        if self._queue.empty() and not self.closed:
            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await getter
            if getter.done() and not getter.cancelled():
                return self._received(getter.result())

        if self._queue.empty():
            return None
        return self._received(self._queue.get_nowait())

    def _received(self, stats: DerivedStats) -> DerivedStats:
        self._queue.task_done()
        self._sent_count += 1
        return stats

    def __aiter__(self) -> AsyncIterator[DerivedStats]:
        """Iterate over values until the stream closes."""
        return self

    async def __anext__(self) -> DerivedStats:
        """Get the next value from the stream."""
        stats = await self.receive()
        if stats is None:
            raise StopAsyncIteration
        return stats
