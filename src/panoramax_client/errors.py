"""Exception hierarchy for the Panoramax client.

Unreachable endpoints are not errors at the cache level (lookups return None),
but the lower layers signal them explicitly so callers can tell them apart
from malformed payloads.
"""

from typing import Any


class PanoramaxError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(PanoramaxError):
    """A request failed at the network level or returned an unexpected status."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"{message} ({url})")


class EndpointUnavailableError(PanoramaxError):
    """The endpoint is currently considered dead by the liveness monitor."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Endpoint is not live: {endpoint}")


class DecodeError(PanoramaxError, ValueError):
    """A JSON payload does not match the declared shape of its target type.

    Attributes:
        path: JSONPath-like location of the offending value (e.g. ``$.features[2].bbox[0]``).
        value: The offending JSON value.

    """

    def __init__(self, path: str, message: str, value: Any = None):
        self.path = path
        self.value = value
        super().__init__(f"{path}: {message}")
