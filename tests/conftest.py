"""Pytest fixtures and configuration for panoramax-client tests.

This module provides a scripted in-memory transport, a manual clock, and
builders for Panoramax JSON payloads.
"""

import json
import threading
from collections.abc import Callable
from io import BytesIO
from typing import Any, Union

import pytest

from panoramax_client.cache import PanoramaxClient
from panoramax_client.errors import TransportError
from panoramax_client.liveness import LivenessMonitor
from panoramax_client.transport import HttpTransport, TransportResponse

API = "https://panoramax.test/api"
LIVE_URL = f"{API}/live"


def items_url(collection_id: str, page: int | None = None) -> str:
    """Return the items URL of a collection, optionally for a later page."""
    url = f"{API}/collections/{collection_id}/items"
    return url if page is None else f"{url}?page={page}"


# --- Fake Transport ---


Route = Union[TransportResponse, Exception, Callable[[], TransportResponse]]


class FakeTransport(HttpTransport):
    """Scripted transport: each (method, url) maps to a response, an exception, or a callable."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Route] = {}
        self.calls: list[tuple[str, str]] = []
        self.timeouts: list[float | None] = []
        self._lock = threading.Lock()
        self.closed = False

    def add(self, url: str, route: Route, method: str = "GET") -> None:
        self.routes[(method, url)] = route

    def add_json(self, url: str, payload: Any) -> None:
        self.add(url, TransportResponse(200, json.dumps(payload).encode()))

    def set_live(self, live: bool = True) -> None:
        self.add(LIVE_URL, TransportResponse(200 if live else 503), method="HEAD")

    def request(self, url: str, method: str = "GET", timeout: float | None = None) -> TransportResponse:
        with self._lock:
            self.calls.append((method, url))
            self.timeouts.append(timeout)
        route = self.routes.get((method, url))
        if route is None:
            return TransportResponse(404)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route()
        return route

    def count(self, url: str, method: str = "GET") -> int:
        with self._lock:
            return self.calls.count((method, url))

    def close(self) -> None:
        self.closed = True


class ManualClock:
    """A monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# --- Payload Builders ---


def make_link(href: str, rel: str, type_: str = "application/json", title: str | None = None) -> dict:
    """Build a STAC link object."""
    link = {"href": href, "rel": rel, "type": type_}
    if title is not None:
        link["title"] = title
    return link


def make_feature(
    image_id: str,
    lon: float = 2.35,
    lat: float = 48.86,
    collection: str = "c1",
    assets: dict[str, dict] | None = None,
    **properties: Any,
) -> dict:
    """Build an image feature the way a Panoramax server serves it."""
    if assets is None:
        assets = {
            "hd": make_link(f"https://cdn.panoramax.test/{image_id}/hd.jpg", "data", "image/jpeg"),
            "sd": make_link(f"https://cdn.panoramax.test/{image_id}/sd.jpg", "data", "image/jpeg"),
            "thumb": make_link(f"https://cdn.panoramax.test/{image_id}/thumb.jpg", "data", "image/jpeg"),
        }
    return {
        "type": "Feature",
        "id": image_id,
        "stac_version": "1.0.0",
        "stac_extensions": ["https://stac-extensions.github.io/view/v1.0.0/schema.json"],
        "bbox": [lon, lat, lon, lat],
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "collection": collection,
        "links": [
            make_link(API, "root"),
            make_link(f"{API}/collections/{collection}", "parent"),
        ],
        "assets": assets,
        "providers": [{"id": "p1", "name": "Alice", "roles": ["producer"]}],
        "properties": {"datetime": "2024-05-01T10:00:00Z", "license": "CC-BY-SA-4.0", **properties},
    }


def make_page(features: list[dict], links: list[dict]) -> dict:
    """Build a FeatureCollection page."""
    return {"type": "FeatureCollection", "features": features, "links": links}


# --- Fixtures ---


@pytest.fixture
def transport() -> FakeTransport:
    """Create a scripted transport with a live endpoint."""
    fake = FakeTransport()
    fake.set_live(True)
    return fake


@pytest.fixture
def clock() -> ManualClock:
    """Create a manual clock."""
    return ManualClock()


@pytest.fixture
def monitor(transport: FakeTransport, clock: ManualClock) -> LivenessMonitor:
    """Create a liveness monitor on the fake transport and clock."""
    return LivenessMonitor(transport, max_wait_seconds=600, live_ttl_seconds=30, clock=clock)


@pytest.fixture
def client(transport: FakeTransport, clock: ManualClock) -> PanoramaxClient:
    """Create a client on the fake transport and clock."""
    return PanoramaxClient(transport=transport, timeout=5.0, clock=clock)


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Create sample JPEG bytes for testing."""
    from PIL import Image

    img = Image.new("RGB", (64, 32), color="blue")
    buffer = BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def transport_error() -> TransportError:
    """A connection failure."""
    return TransportError(API, "Connection refused")
