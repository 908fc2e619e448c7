"""Decoding of usage snapshots from a runtime stats stream.

The Docker Engine writes one JSON document per line on the stats endpoint.
``SnapshotDecoder`` reads those documents one at a time.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from pydantic import ValidationError

from .errors import DecodeError, StreamEndedError
from .models import RawSnapshot

logger = structlog.get_logger(__name__)


class ByteStream(Protocol):
    """Line-oriented async byte source, e.g. ``aiohttp.StreamReader``."""

    async def readline(self) -> bytes:
        """Read up to and including the next newline; ``b""`` at EOF."""
        ...


class SnapshotDecoder:
    """Pulls one RawSnapshot at a time from a byte stream.

    A decoder is stateful and belongs to exactly one sampling task.
    """

    def __init__(self, stream: ByteStream) -> None:
        """Initialize the decoder.

        Args:
            stream: Stream positioned at the start of a JSON document.
        """
        self._stream = stream
        self._decoded = 0

    @property
    def decoded_count(self) -> int:
        """Number of snapshots decoded so far."""
        return self._decoded

    async def decode(self) -> RawSnapshot:
        """Decode the next snapshot, waiting for the runtime if needed.

        Blank keep-alive lines are skipped.

        Returns:
            The next snapshot.

        Raises:
            StreamEndedError: If the stream reached EOF.
            DecodeError: If the next document is not a valid snapshot.
        """
        while True:
            try:
                line = await self._stream.readline()
            except ValueError as e:
                # aiohttp raises ValueError for lines above its buffer limit
                raise DecodeError(f"Unreadable stats document: {e}") from e

            if not line:
                raise StreamEndedError("Stats stream ended")
            if line.strip():
                break

        try:
            snapshot = RawSnapshot.model_validate_json(line)
        except ValidationError as e:
            logger.debug("snapshot_invalid", error=str(e), size=len(line))
            raise DecodeError(f"Invalid stats document: {e.error_count()} error(s)") from e

        self._decoded += 1
        return snapshot
