"""Interface to the container runtime.

The pipeline only needs three things from a runtime: a streaming source of
usage snapshots, a process list query, and container lookup. Concrete
runtimes implement ``ContainerRuntime``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from .decoder import ByteStream
    from .models import ContainerRef, ProcessList


class ContainerRuntime(ABC):
    """Abstract base class for container runtimes."""

    @abstractmethod
    async def list_containers(self, all: bool = True) -> list[ContainerRef]:  # noqa: A002
        """List containers.

        Args:
            all: Include stopped containers.

        Returns:
            Containers known to the runtime.

        Raises:
            RuntimeClientError: If the runtime cannot be queried.
        """
        ...

    @abstractmethod
    async def inspect_container(self, container: str) -> ContainerRef:
        """Look up a single container.

        Args:
            container: Container ID or name.

        Returns:
            The container.

        Raises:
            ContainerNotFoundError: If no such container exists.
            RuntimeClientError: If the runtime cannot be queried.
        """
        ...

    @abstractmethod
    def stats_stream(self, container_id: str) -> AbstractAsyncContextManager[ByteStream]:
        """Open a live stats session for a container.

        The session's connection is aborted when the context exits, which
        unblocks any read waiting on it.

        Args:
            container_id: Container ID.

        Returns:
            Async context manager yielding the session's byte stream.
        """
        ...

    @abstractmethod
    async def top(self, container_id: str) -> ProcessList | None:
        """List the processes running in a container.

        Args:
            container_id: Container ID.

        Returns:
            Process list, or None if the runtime reported nothing.

        Raises:
            RuntimeClientError: If the query fails.
        """
        ...
