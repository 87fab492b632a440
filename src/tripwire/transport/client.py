"""HTTP client capability used by the transport.

The transport only needs ``post()``; any object implementing HTTPClient can
be passed as the ``client`` option, which is how tests and alternative HTTP
stacks plug in.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import httpx

SUPPORTED_CLIENTS = ("httpx",)


@runtime_checkable
class HTTPClient(Protocol):
    """Minimal HTTP client interface for tripwire."""

    def post(
        self,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
        timeout: float | None = None,
    ) -> tuple[int, Mapping[str, str], bytes]:
        """POST ``body`` and return ``(status, headers, body)``.

        Connection-level faults raise ``httpx.HTTPError`` or ``OSError``.
        """
        ...

    def close(self) -> None:
        """Release pooled connections."""
        ...


class HttpxClient:
    """HTTPClient backed by a shared ``httpx.Client`` connection pool."""

    def __init__(self, timeout: float = 5.0, **client_kwargs: Any):
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, **client_kwargs)

    def post(
        self,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
        timeout: float | None = None,
    ) -> tuple[int, Mapping[str, str], bytes]:
        response = self._client.post(
            url,
            headers=dict(headers),
            content=body,
            timeout=timeout if timeout is not None else self.timeout,
        )
        return response.status_code, dict(response.headers), response.content

    def close(self) -> None:
        self._client.close()


def create_client(client: Any = "httpx", timeout: float = 5.0) -> HTTPClient:
    """Create the HTTP client selected by the ``client`` option.

    Args:
        client: ``"httpx"`` or an object implementing HTTPClient
        timeout: Default per-request timeout in seconds

    Returns:
        HTTPClient instance

    Raises:
        ValueError: If the client name is not supported
        TypeError: If the object does not implement HTTPClient
    """
    if isinstance(client, str):
        if client == "httpx":
            return HttpxClient(timeout=timeout)
        supported = ", ".join(SUPPORTED_CLIENTS)
        raise ValueError(f"Unsupported HTTP client: {client}. Supported: {supported}")

    if not isinstance(client, HTTPClient):
        raise TypeError(f"HTTP client {client!r} must implement post() and close()")
    return client
