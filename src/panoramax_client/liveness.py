"""
Endpoint liveness tracking with exponential backoff.

Each endpoint is either live or dead. A live result is trusted for a short
TTL; a dead result suppresses probes for ``min(2**retry_count, max_wait)``
seconds so an outage does not turn into a request storm.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from .errors import TransportError
from .transport import HttpTransport, build_url

LIVE_PATH = "live"


@dataclass(frozen=True)
class LiveCheck:
    """Outcome of the last probe of an endpoint."""

    time: float
    result: bool
    retry_count: int


class LivenessMonitor:
    """Tracks per-endpoint reachability.

    The check-then-probe-then-record sequence is atomic per endpoint; probes
    of different endpoints do not block each other.
    """

    def __init__(
        self,
        transport: HttpTransport,
        max_wait_seconds: float = 600,
        live_ttl_seconds: float = 30,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the monitor.

        Args:
            transport: Transport used for ``HEAD {endpoint}/live`` probes
            max_wait_seconds: Ceiling on the backoff window
            live_ttl_seconds: How long a positive result is trusted
            timeout: Probe timeout in seconds; a timeout counts as a failed probe
            clock: Monotonic time source in seconds
        """
        self.transport = transport
        self.max_wait_seconds = max_wait_seconds
        self.live_ttl_seconds = live_ttl_seconds
        self.timeout = timeout
        self._clock = clock
        self._checks: dict[str, LiveCheck] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, endpoint: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(endpoint)
            if lock is None:
                lock = self._locks[endpoint] = threading.Lock()
            return lock

    def backoff_seconds(self, retry_count: int) -> float:
        """Return how long a dead endpoint is left alone after ``retry_count`` failures."""
        return float(min(2**retry_count, self.max_wait_seconds))

    def last_check(self, endpoint: str) -> LiveCheck | None:
        """Return the recorded state of an endpoint, if it was ever probed."""
        return self._checks.get(endpoint)

    def is_live(self, endpoint: str, force: bool = False) -> bool:
        """Check whether an endpoint is reachable.

        Args:
            endpoint: API base URL
            force: Probe now, ignoring both the positive TTL and the backoff window

        Returns:
            True if the endpoint is (presumed) live

        """
        with self._lock_for(endpoint):
            check = self._checks.get(endpoint)
            if check is not None and not force:
                elapsed = self._clock() - check.time
                if check.result and elapsed < self.live_ttl_seconds:
                    return True
                if not check.result and elapsed < self.backoff_seconds(check.retry_count):
                    logger.debug(
                        "Endpoint {} in backoff ({:.0f}s elapsed, retry {})",
                        endpoint,
                        elapsed,
                        check.retry_count,
                    )
                    return False
            return self._probe(endpoint, check)

    def _probe(self, endpoint: str, previous: LiveCheck | None) -> bool:
        url = build_url(endpoint, LIVE_PATH)
        try:
            response = self.transport.request(url, "HEAD", timeout=self.timeout)
            live = response.status_code == 200
            if not live:
                logger.debug("Liveness probe {} returned {}", url, response.status_code)
        except TransportError as e:
            logger.debug("Liveness probe {} failed: {}", url, e)
            live = False

        if live:
            retry_count = 0
        else:
            retry_count = previous.retry_count + 1 if previous is not None else 1
            logger.warning(
                "Endpoint {} is not live (retry {}, next probe in {:.0f}s)",
                endpoint,
                retry_count,
                self.backoff_seconds(retry_count),
            )
        self._checks[endpoint] = LiveCheck(time=self._clock(), result=live, retry_count=retry_count)
        return live

    def reset(self, endpoint: str | None = None) -> None:
        """Forget recorded state for one endpoint, or for all of them.

        Waits for a probe of the endpoint that is in progress, so its result
        cannot be written back after the reset.
        """
        endpoints = [endpoint] if endpoint is not None else list(self._checks)
        for name in endpoints:
            with self._lock_for(name):
                self._checks.pop(name, None)
