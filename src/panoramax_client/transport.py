"""HTTP transport abstraction.

The client never talks to the network directly: everything goes through an
``HttpTransport`` so tests (and host applications) can inject their own.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from loguru import logger

from .errors import TransportError


@dataclass(frozen=True)
class TransportResponse:
    """Status and body of a completed request."""

    status_code: int
    content: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class HttpTransport(ABC):
    """Abstract interface for a blocking HTTP transport."""

    @abstractmethod
    def request(self, url: str, method: str = "GET", timeout: float | None = None) -> TransportResponse:
        """Perform a request.

        Args:
            url: Absolute URL
            method: HTTP method (``GET`` or ``HEAD``)
            timeout: Seconds to wait before giving up, None for the transport default

        Returns:
            The response, whatever its status code

        Raises:
            TransportError: On connection failures and timeouts

        """
        pass

    def close(self) -> None:
        """Release any pooled connections."""


class HttpxTransport(HttpTransport):
    """``HttpTransport`` backed by a shared ``httpx.Client``."""

    def __init__(self, client: httpx.Client | None = None, timeout: float = 30.0):
        """
        Initialize the transport.

        Args:
            client: Optional pre-configured client; one is created (and owned) otherwise
            timeout: Default request timeout in seconds
        """
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self.timeout = timeout

    def request(self, url: str, method: str = "GET", timeout: float | None = None) -> TransportResponse:
        try:
            response = self.client.request(
                method, url, timeout=timeout if timeout is not None else self.timeout
            )
        except httpx.TimeoutException as e:
            logger.debug("{} {} timed out: {}", method, url, e)
            raise TransportError(url, "Request timed out") from e
        except httpx.HTTPError as e:
            logger.debug("{} {} failed: {}", method, url, e)
            raise TransportError(url, f"Request failed: {e}") from e
        logger.debug("{} {} -> {} ({} bytes)", method, url, response.status_code, len(response.content))
        return TransportResponse(status_code=response.status_code, content=response.content)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()


def build_url(api: str, *parts: str) -> str:
    """Join path segments onto an API base URL with single slashes."""
    return api + ("" if api.endswith("/") else "/") + "/".join(parts)
