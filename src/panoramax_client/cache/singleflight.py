"""
Per-key memoization with at most one computation in flight per key.

The first caller to miss on a key becomes its leader and computes the value;
concurrent callers for the same key wait on the leader's future and receive
the same value or the same exception. Computations for different keys run
in parallel.
"""

import threading
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from typing import Generic, TypeVar

from loguru import logger

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SingleFlightCache(Generic[K, V]):
    """A process-lifetime memo table keyed by ``K``."""

    def __init__(self, name: str, cache_none: bool = False):
        """
        Initialize the cache.

        Args:
            name: Label used in log messages
            cache_none: Whether a computed ``None`` is stored (a negative entry)
                or left uncached so the next call computes again
        """
        self.name = name
        self.cache_none = cache_none
        self._values: dict[K, V | None] = {}
        self._inflight: dict[K, Future] = {}
        self._lock = threading.Lock()

    def get(self, key: K, compute: Callable[[], V | None]) -> V | None:
        """Return the cached value for ``key``, computing it on a miss.

        Exceptions raised by ``compute`` are re-raised to every caller waiting
        on the same computation and are never cached.
        """
        with self._lock:
            if key in self._values:
                logger.debug("{} cache hit: {}", self.name, key)
                return self._values[key]
            future = self._inflight.get(key)
            leader = future is None
            if future is None:
                future = self._inflight[key] = Future()

        if not leader:
            logger.debug("{} cache waiting on in-flight computation: {}", self.name, key)
            return future.result()

        logger.debug("{} cache miss: {}", self.name, key)
        try:
            value = compute()
        except BaseException as e:
            with self._lock:
                del self._inflight[key]
            future.set_exception(e)
            raise

        with self._lock:
            if value is not None or self.cache_none:
                self._values[key] = value
            del self._inflight[key]
        future.set_result(value)
        return value

    def peek(self, key: K) -> V | None:
        """Return a cached value without computing anything."""
        with self._lock:
            return self._values.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def clear(self) -> None:
        """Drop every stored entry. In-flight computations are unaffected."""
        with self._lock:
            self._values.clear()
