"""Docker Engine runtime over the HTTP API.

This module talks to the Docker daemon with aiohttp, either over its unix
socket or over TCP. Only the endpoints the stats pipeline needs are covered:

    GET /containers/json              list containers
    GET /containers/{id}/json         inspect a container
    GET /containers/{id}/stats        live usage snapshots (one JSON per line)
    GET /containers/{id}/top          processes in a container
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import aiohttp
import structlog

from .errors import ContainerNotFoundError, RuntimeClientError
from .interfaces import ContainerRuntime
from .models import DEFAULT_DOCKER_HOST, ContainerRef, ProcessList

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .decoder import ByteStream
    from .models import MonitorConfig

logger = structlog.get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT = 10.0

# Host used in request URLs when connecting over a unix socket
_UNIX_BASE_URL = "http://docker"


def parse_docker_host(docker_host: str) -> tuple[str, str | None]:
    """Split a DOCKER_HOST value into a base URL and a unix socket path.

    Args:
        docker_host: ``unix:///path``, ``tcp://host:port`` or an http(s) URL.

    Returns:
        Tuple of (base URL, socket path or None).

    Raises:
        ValueError: If the scheme is not supported.
    """
    parts = urlsplit(docker_host)
    if parts.scheme == "unix":
        return _UNIX_BASE_URL, parts.path
    if parts.scheme == "tcp":
        return f"http://{parts.netloc}", None
    if parts.scheme in ("http", "https"):
        return docker_host.rstrip("/"), None
    raise ValueError(f"Unsupported docker host: {docker_host}")


class DockerRuntime(ContainerRuntime):
    """ContainerRuntime backed by the Docker Engine API.

    The runtime owns one ``aiohttp.ClientSession``; use it as an async
    context manager so the session is closed on exit.

    Example:
        >>> async with DockerRuntime() as runtime:
        ...     containers = await runtime.list_containers()
    """

    def __init__(
        self,
        docker_host: str = DEFAULT_DOCKER_HOST,
        api_version: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the runtime.

        Args:
            docker_host: Daemon endpoint.
            api_version: Engine API version to pin, e.g. ``"1.43"``.
            request_timeout: Total timeout of non-streaming requests in seconds.
        """
        self._base_url, self._socket_path = parse_docker_host(docker_host)
        self._prefix = f"/v{api_version.lstrip('v')}" if api_version else ""
        self._request_timeout = request_timeout
        self._session: aiohttp.ClientSession | None = None
        self._open_streams = 0
        self._log = logger.bind(docker_host=docker_host)

    @classmethod
    def from_config(cls, config: MonitorConfig) -> DockerRuntime:
        """Create a runtime from the monitor configuration."""
        return cls(
            docker_host=config.docker_host,
            api_version=config.api_version,
            request_timeout=config.request_timeout_seconds,
        )

    @property
    def open_streams(self) -> int:
        """Number of stats sessions currently holding a connection."""
        return self._open_streams

    async def __aenter__(self) -> DockerRuntime:
        """Open the HTTP session."""
        self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the HTTP session."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session and every connection it holds."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector: aiohttp.BaseConnector | None = None
            if self._socket_path:
                connector = aiohttp.UnixConnector(path=self._socket_path)
            self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    def _url(self, path: str) -> str:
        return f"{self._base_url}{self._prefix}{path}"

    async def _raise_for_status(self, response: aiohttp.ClientResponse, what: str) -> None:
        if response.status < 400:
            return

        message = response.reason or ""
        with contextlib.suppress(aiohttp.ClientError, ValueError):
            body = await response.json(content_type=None)
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]

        if response.status == 404:
            raise ContainerNotFoundError(f"No such container: {what}", status=404)
        raise RuntimeClientError(
            f"Docker API error {response.status} for {what}: {message}",
            status=response.status,
        )

    async def _get_json(self, path: str, what: str, params: dict[str, str] | None = None) -> Any:
        session = self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self._request_timeout)
        try:
            async with session.get(self._url(path), params=params, timeout=timeout) as response:
                await self._raise_for_status(response, what)
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise RuntimeClientError(f"Cannot reach Docker daemon: {e}") from e
        except TimeoutError:
            raise RuntimeClientError(
                f"Docker request timed out after {self._request_timeout}s"
            ) from None

    async def list_containers(self, all: bool = True) -> list[ContainerRef]:  # noqa: A002
        """List containers.

        Args:
            all: Include stopped containers.

        Returns:
            Containers in the order the daemon reports them.
        """
        params = {"all": "1" if all else "0"}
        data = await self._get_json("/containers/json", "container list", params=params)
        return [ContainerRef.model_validate(item) for item in data or []]

    async def inspect_container(self, container: str) -> ContainerRef:
        """Look up a container by ID or name."""
        data = await self._get_json(f"/containers/{container}/json", container)
        return ContainerRef.from_inspect(data)

    async def top(self, container_id: str) -> ProcessList | None:
        """List the processes running in a container."""
        data = await self._get_json(f"/containers/{container_id}/top", container_id)
        if not data:
            return None
        return ProcessList.model_validate(data)

    @contextlib.asynccontextmanager
    async def stats_stream(self, container_id: str) -> AsyncIterator[ByteStream]:
        """Open a streaming stats session for a container.

        The stream has no read timeout: the daemon only writes when it has a
        new sample. Leaving the context aborts the connection, which wakes up
        any pending read.

        Args:
            container_id: Container ID.

        Yields:
            The response body stream.

        Raises:
            ContainerNotFoundError: If the container does not exist.
            RuntimeClientError: If the session cannot be opened, or if the
                connection drops while the body is being read.
        """
        session = self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=None, sock_read=None)
        try:
            response = await session.get(
                self._url(f"/containers/{container_id}/stats"),
                params={"stream": "1"},
                timeout=timeout,
            )
        except aiohttp.ClientError as e:
            raise RuntimeClientError(f"Cannot open stats stream: {e}") from e

        self._open_streams += 1
        self._log.debug("stats_stream_opened", container=container_id, open=self._open_streams)
        try:
            await self._raise_for_status(response, container_id)
            try:
                yield response.content
            except aiohttp.ClientError as e:
                # Daemon restarts and container removals drop the connection mid-read
                raise RuntimeClientError(f"Stats stream interrupted: {e}") from e
        finally:
            # The body is unbounded, so abort the connection instead of draining it
            response.close()
            self._open_streams -= 1
            self._log.debug(
                "stats_stream_released", container=container_id, open=self._open_streams
            )
