"""
Three-tier cached access to a Panoramax API.

``PanoramaxClient`` is the session object every lookup goes through. It owns
the liveness monitor, the collection fetcher and, per endpoint, three
independent caches:

    collections  collection id -> merged Collection
    items        image id      -> Image (or a stored "not in collection")
    images       image id      -> raw bytes of the best image variant

Entries live as long as the client. Unreachable endpoints and transport
failures yield None; malformed payloads raise ``DecodeError``.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from ..config import Settings
from ..errors import EndpointUnavailableError, PanoramaxError, TransportError
from ..fetcher import CollectionFetcher
from ..liveness import LivenessMonitor
from ..models import Collection, Image
from ..transport import HttpTransport, HttpxTransport
from .singleflight import SingleFlightCache


class _CollectionUnavailable(PanoramaxError):
    """The owning collection could not be obtained, so nothing is cached."""


@dataclass
class EndpointCache:
    """The three cache tiers for one endpoint."""

    endpoint: str
    collections: SingleFlightCache[str, Collection] = field(
        default_factory=lambda: SingleFlightCache("collection")
    )
    items: SingleFlightCache[str, Image] = field(
        default_factory=lambda: SingleFlightCache("item", cache_none=True)
    )
    images: SingleFlightCache[str, bytes] = field(
        default_factory=lambda: SingleFlightCache("image")
    )

    def clear(self) -> None:
        self.collections.clear()
        self.items.clear()
        self.images.clear()


class PanoramaxClient:
    """Cached, liveness-aware access to one or more Panoramax endpoints.

    All methods block; callers wanting background work run them on their own
    threads. The client is safe to share between threads.

    Example:
        >>> with PanoramaxClient() as client:
        ...     collection = client.get_collection("https://api.panoramax.xyz/api", "0b5f...")

    """

    def __init__(
        self,
        transport: HttpTransport | None = None,
        max_wait_seconds: float = 600,
        live_ttl_seconds: float = 30,
        timeout: float | None = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the client.

        Args:
            transport: HTTP transport; an ``HttpxTransport`` is created (and owned) if omitted
            max_wait_seconds: Ceiling on the liveness backoff window
            live_ttl_seconds: How long a positive liveness result is trusted
            timeout: Timeout in seconds for every request
            clock: Monotonic time source for the liveness monitor
        """
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(timeout=timeout or 30.0)
        self.timeout = timeout
        self.liveness = LivenessMonitor(
            self.transport,
            max_wait_seconds=max_wait_seconds,
            live_ttl_seconds=live_ttl_seconds,
            timeout=timeout,
            clock=clock,
        )
        self.fetcher = CollectionFetcher(self.transport, self.liveness, timeout=timeout)
        self._caches: dict[str, EndpointCache] = {}
        self._caches_lock = threading.Lock()
        logger.debug(
            "PanoramaxClient initialized: max_wait={}s, live_ttl={}s, timeout={}",
            max_wait_seconds,
            live_ttl_seconds,
            timeout,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: HttpTransport | None = None
    ) -> "PanoramaxClient":
        """Create a client from application settings."""
        return cls(
            transport=transport,
            max_wait_seconds=settings.max_wait_seconds,
            live_ttl_seconds=settings.live_ttl_seconds,
            timeout=settings.request_timeout,
        )

    def __enter__(self) -> "PanoramaxClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Drop all cached state and release the transport if the client created it."""
        self.clear()
        if self._owns_transport:
            self.transport.close()

    def clear(self) -> None:
        """Forget every cached entry and every liveness result."""
        with self._caches_lock:
            caches = list(self._caches.values())
        for cache in caches:
            cache.clear()
        self.liveness.reset()

    def cache_for(self, endpoint: str) -> EndpointCache:
        """Return the cache tiers of an endpoint, creating them on first use."""
        with self._caches_lock:
            cache = self._caches.get(endpoint)
            if cache is None:
                cache = self._caches[endpoint] = EndpointCache(endpoint)
            return cache

    def is_live(self, endpoint: str, force: bool = False) -> bool:
        """Check whether an endpoint is reachable. See ``LivenessMonitor.is_live``."""
        return self.liveness.is_live(endpoint, force=force)

    def get_collection(self, endpoint: str, collection_id: str) -> Collection | None:
        """Get a collection, fetching all of its pages on a miss.

        Returns:
            The merged collection, or None if the endpoint is down or a request failed

        Raises:
            DecodeError: If a page of the collection is malformed

        """
        cache = self.cache_for(endpoint)
        try:
            return cache.collections.get(
                collection_id, lambda: self.fetcher.fetch_collection(endpoint, collection_id)
            )
        except EndpointUnavailableError:
            logger.debug("Skipping collection {}: {} is not live", collection_id, endpoint)
            return None
        except TransportError as e:
            logger.warning("Could not fetch collection {}: {}", collection_id, e)
            return None

    def get_item(self, endpoint: str, collection_id: str, image_id: str) -> Image | None:
        """Get one image of a collection.

        The item is looked up in the (cached) collection rather than fetched on
        its own. An id missing from an available collection is remembered as
        absent; an unavailable collection leaves no entry behind.

        Raises:
            DecodeError: If the owning collection is malformed

        """
        cache = self.cache_for(endpoint)

        def load() -> Image | None:
            collection = self.get_collection(endpoint, collection_id)
            if collection is None:
                raise _CollectionUnavailable(collection_id)
            image = collection.find(image_id)
            if image is None:
                logger.debug("Image {} not found in collection {}", image_id, collection_id)
            return image

        try:
            return cache.items.get(image_id, load)
        except _CollectionUnavailable:
            return None

    def get_image_bytes(self, endpoint: str, collection_id: str, image_id: str) -> bytes | None:
        """Get the encoded bytes of the best available variant of an image.

        Failed downloads are not cached and force a fresh liveness probe, since
        the endpoint may have gone down since it was last seen live.

        Raises:
            DecodeError: If the owning collection is malformed

        """
        cache = self.cache_for(endpoint)

        def load() -> bytes | None:
            image = self.get_item(endpoint, collection_id, image_id)
            if image is None:
                return None
            link = image.best_asset()
            if link is None or link.href is None:
                logger.debug("Image {} has no usable asset", image_id)
                return None
            if not self.liveness.is_live(endpoint):
                return None
            url = str(link.href)
            try:
                response = self.transport.request(url, "GET", timeout=self.timeout)
                if not response.ok:
                    raise TransportError(
                        url, f"Unexpected status {response.status_code}", response.status_code
                    )
            except TransportError as e:
                logger.warning("Could not fetch image {}: {}", image_id, e)
                self.liveness.is_live(endpoint, force=True)
                return None
            logger.debug("Fetched image {}: {} bytes", image_id, len(response.content))
            return response.content

        return cache.images.get(image_id, load)
