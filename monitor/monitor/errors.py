"""Exceptions raised by the monitor library."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for all monitor errors."""


class RuntimeClientError(MonitorError):
    """Error talking to the container runtime."""

    def __init__(self, message: str, status: int | None = None) -> None:
        """Initialize runtime client error.

        Args:
            message: Error message.
            status: HTTP status returned by the runtime, if any.
        """
        super().__init__(message)
        self.status = status


class ContainerNotFoundError(RuntimeClientError):
    """The requested container does not exist."""


class DecodeError(MonitorError):
    """A usage snapshot could not be decoded from the stats stream."""


class StreamEndedError(DecodeError):
    """The runtime closed the stats stream."""


class StreamClosedError(MonitorError):
    """A value was sent on an already closed stats stream."""
