"""
Paginated collection fetching.

Walks the ``rel="next"`` links of ``/collections/{id}/items`` and merges the
pages into one ``Collection``.
"""

from collections.abc import Iterable, Sequence

import httpx
from loguru import logger

from .decoding import decode_page, parse_json
from .errors import DecodeError, EndpointUnavailableError, TransportError
from .liveness import LivenessMonitor
from .models import Collection, Image, Link
from .transport import HttpTransport, build_url


def find_next(links: Iterable[Link]) -> Link | None:
    """Return the pagination link of a page, if any. Links without an href are ignored."""
    for link in links:
        if link.rel == "next" and link.href is not None:
            return link
    return None


def merge_pages(pages: Sequence[Collection]) -> Collection:
    """Merge pages into one collection.

    Images are concatenated in page order. Links keep their first occurrence,
    so ``self``/``root``/``next`` entries repeated on every page appear once.
    """
    if len(pages) == 1:
        return pages[0]
    links: list[Link] = []
    images: list[Image] = []
    for page in pages:
        for link in page.links:
            if link not in links:
                links.append(link)
        images.extend(page)
    return Collection(links, images)


class CollectionFetcher:
    """Fetches and reassembles multi-page collections."""

    def __init__(
        self,
        transport: HttpTransport,
        liveness: LivenessMonitor,
        timeout: float | None = None,
    ):
        self.transport = transport
        self.liveness = liveness
        self.timeout = timeout

    def fetch_collection(self, endpoint: str, collection_id: str) -> Collection:
        """Fetch every page of a collection.

        Liveness is checked once, before the first request; pages are then
        fetched strictly one after another. Relative ``next`` hrefs are
        resolved against the page they appear on.

        Args:
            endpoint: API base URL
            collection_id: Collection identifier

        Returns:
            The merged collection

        Raises:
            EndpointUnavailableError: If the endpoint is not live
            TransportError: If a page request fails
            DecodeError: If a page is malformed

        """
        if not self.liveness.is_live(endpoint):
            raise EndpointUnavailableError(endpoint)

        url: str | None = build_url(endpoint, "collections", collection_id, "items")
        visited: set[str] = set()
        pages: list[Collection] = []
        while url is not None:
            visited.add(url)
            try:
                page = decode_page(self._get_json(url))
            except DecodeError as e:
                logger.error("Malformed page {} of collection {}: {}", url, collection_id, e)
                raise
            pages.append(page)

            next_link = find_next(page.links)
            url = str(httpx.URL(url).join(next_link.href)) if next_link is not None else None
            if url is not None and url in visited:
                logger.warning("Pagination loop in collection {} at {}", collection_id, url)
                url = None

        collection = merge_pages(pages)
        logger.info(
            "Fetched collection {}: {} images over {} page(s)",
            collection_id,
            len(collection),
            len(pages),
        )
        return collection

    def _get_json(self, url: str):
        logger.debug("Fetching page {}", url)
        response = self.transport.request(url, "GET", timeout=self.timeout)
        if not response.ok:
            raise TransportError(url, f"Unexpected status {response.status_code}", response.status_code)
        return parse_json(response.content, url)
