"""
Tests for the caching layer.

Tests SingleFlightCache semantics and the three PanoramaxClient tiers:
memoization, liveness handling, negative entries, failure handling, and
single-flight behaviour under concurrent access.
"""

import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import API, LIVE_URL, items_url, make_feature, make_link, make_page
from panoramax_client.cache import PanoramaxClient, SingleFlightCache
from panoramax_client.config import Settings
from panoramax_client.errors import DecodeError, TransportError
from panoramax_client.transport import TransportResponse

HD_URL = "https://cdn.panoramax.test/{}/hd.jpg"


def serve_collection(transport, collection_id: str = "c1", ids=("a", "b")) -> None:
    """Serve a one-page collection."""
    transport.add_json(
        items_url(collection_id),
        make_page(
            [make_feature(i, collection=collection_id) for i in ids],
            [make_link(API, "root")],
        ),
    )


def gated(response: TransportResponse, gate: threading.Event, started: threading.Event | None = None):
    """Build a route that blocks until the gate opens."""

    def route():
        if started is not None:
            started.set()
        gate.wait(timeout=5)
        return response

    return route


class TestSingleFlightCache:
    """Test SingleFlightCache."""

    def test_memoizes(self):
        """Test that a value is computed once."""
        cache = SingleFlightCache("test")
        calls = []

        def compute():
            calls.append(1)
            return "value"

        assert cache.get("k", compute) == "value"
        assert cache.get("k", compute) == "value"
        assert len(calls) == 1
        assert "k" in cache
        assert len(cache) == 1

    def test_none_not_cached_by_default(self):
        """Test that None results are recomputed."""
        cache = SingleFlightCache("test")
        calls = []

        def compute():
            calls.append(1)
            return None

        cache.get("k", compute)
        cache.get("k", compute)

        assert len(calls) == 2
        assert "k" not in cache

    def test_none_cached_when_enabled(self):
        """Test negative entries."""
        cache = SingleFlightCache("test", cache_none=True)
        calls = []

        def compute():
            calls.append(1)
            return None

        cache.get("k", compute)
        cache.get("k", compute)

        assert len(calls) == 1
        assert "k" in cache

    def test_exceptions_not_cached(self):
        """Test that failures propagate and are retried on the next call."""
        cache = SingleFlightCache("test")

        def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get("k", boom)

        assert cache.get("k", lambda: 1) == 1

    def test_concurrent_callers_share_computation(self):
        """Test that concurrent callers for one key see a single computation."""
        cache = SingleFlightCache("test")
        gate = threading.Event()
        calls = []

        def compute():
            calls.append(1)
            gate.wait(timeout=5)
            return object()

        with ThreadPoolExecutor(max_workers=10) as pool:
            futures = [pool.submit(cache.get, "k", compute) for _ in range(10)]
            time.sleep(0.05)
            gate.set()
            results = [f.result(timeout=5) for f in futures]

        assert len(calls) == 1
        assert all(result is results[0] for result in results)

    def test_concurrent_callers_share_failure(self):
        """Test that every waiting caller observes the leader's exception."""
        cache = SingleFlightCache("test")
        gate = threading.Event()
        calls = []

        def compute():
            calls.append(1)
            gate.wait(timeout=5)
            raise ValueError("bad payload")

        with ThreadPoolExecutor(max_workers=6) as pool:
            futures = [pool.submit(cache.get, "k", compute) for _ in range(6)]
            time.sleep(0.05)
            gate.set()
            errors = [f.exception(timeout=5) for f in futures]

        assert len(calls) == 1
        assert all(isinstance(e, ValueError) for e in errors)

    def test_different_keys_do_not_block(self):
        """Test that a slow key does not block another key."""
        cache = SingleFlightCache("test")
        gate = threading.Event()
        started = threading.Event()

        def slow():
            started.set()
            gate.wait(timeout=5)
            return "slow"

        with ThreadPoolExecutor(max_workers=2) as pool:
            slow_future = pool.submit(cache.get, "slow", slow)
            assert started.wait(timeout=5)

            assert cache.get("fast", lambda: "fast") == "fast"
            assert not slow_future.done()

            gate.set()
            assert slow_future.result(timeout=5) == "slow"

    def test_clear(self):
        """Test that clear drops entries."""
        cache = SingleFlightCache("test")
        cache.get("k", lambda: 1)
        cache.clear()

        assert cache.peek("k") is None
        assert len(cache) == 0


class TestGetCollection:
    """Test the collection tier."""

    def test_fetches_once(self, client, transport):
        """Test that a collection is fetched once and then served from cache."""
        serve_collection(transport)

        first = client.get_collection(API, "c1")
        second = client.get_collection(API, "c1")

        assert first is second
        assert [image.id for image in first] == ["a", "b"]
        assert transport.count(items_url("c1")) == 1

    def test_dead_endpoint_returns_none(self, client, transport):
        """Test that an unreachable endpoint yields no data and no entry."""
        transport.set_live(False)
        serve_collection(transport)

        assert client.get_collection(API, "c1") is None
        assert "c1" not in client.cache_for(API).collections
        assert transport.count(items_url("c1")) == 0

    def test_cache_hit_while_dead(self, client, transport, clock):
        """Test that cached collections stay available during an outage."""
        serve_collection(transport)
        client.get_collection(API, "c1")
        transport.set_live(False)
        clock.advance(60)

        assert client.get_collection(API, "c1") is not None

    def test_transport_error_returns_none(self, client, transport):
        """Test that a failed page request yields None and is retried later."""
        transport.add(items_url("c1"), TransportError(items_url("c1"), "reset"))

        assert client.get_collection(API, "c1") is None

        serve_collection(transport)
        assert client.get_collection(API, "c1") is not None

    def test_decode_error_propagates(self, client, transport):
        """Test that malformed payloads raise and leave no entry."""
        transport.add(items_url("c1"), TransportResponse(200, b"[1, 2"))

        with pytest.raises(DecodeError):
            client.get_collection(API, "c1")

        assert "c1" not in client.cache_for(API).collections

    def test_decode_error_keeps_other_entries(self, client, transport):
        """Test that a bad collection does not disturb cached ones."""
        serve_collection(transport, "good")
        good = client.get_collection(API, "good")
        transport.add(items_url("bad"), TransportResponse(200, b"{"))

        with pytest.raises(DecodeError):
            client.get_collection(API, "bad")

        assert client.get_collection(API, "good") is good

    def test_endpoints_isolated(self, client, transport):
        """Test that the same id on two endpoints is cached separately."""
        other = "https://other.test/api"
        transport.add(f"{other}/live", TransportResponse(200), method="HEAD")
        serve_collection(transport, "c1", ids=("a",))
        transport.add_json(
            f"{other}/collections/c1/items",
            make_page([make_feature("z")], []),
        )

        assert client.get_collection(API, "c1")[0].id == "a"
        assert client.get_collection(other, "c1")[0].id == "z"

    def test_concurrent_single_fetch(self, client, transport):
        """Test that concurrent callers trigger exactly one fetch."""
        gate = threading.Event()
        body = json.dumps(make_page([make_feature("a")], [])).encode()
        transport.add(items_url("c1"), gated(TransportResponse(200, body), gate))
        client.is_live(API)

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(client.get_collection, API, "c1") for _ in range(8)]
            time.sleep(0.05)
            gate.set()
            results = [f.result(timeout=5) for f in futures]

        assert transport.count(items_url("c1")) == 1
        assert all(result is results[0] for result in results)


class TestGetItem:
    """Test the item tier."""

    def test_found(self, client, transport):
        """Test that an item is found in its collection."""
        serve_collection(transport)

        image = client.get_item(API, "c1", "b")

        assert image.id == "b"

    def test_reuses_collection_cache(self, client, transport):
        """Test that items come from the cached collection."""
        serve_collection(transport)

        client.get_item(API, "c1", "a")
        client.get_item(API, "c1", "b")
        client.get_collection(API, "c1")

        assert transport.count(items_url("c1")) == 1

    def test_item_shared_with_collection(self, client, transport):
        """Test that the cached item is the collection's own object."""
        serve_collection(transport)

        image = client.get_item(API, "c1", "a")

        assert image is client.get_collection(API, "c1")[0]

    def test_missing_item_cached_as_absent(self, client, transport):
        """Test that an id absent from the collection is remembered."""
        serve_collection(transport)

        assert client.get_item(API, "c1", "zzz") is None
        assert "zzz" in client.cache_for(API).items

    def test_unavailable_collection_not_cached(self, client, transport):
        """Test that an unreachable endpoint leaves no item entry."""
        transport.set_live(False)

        assert client.get_item(API, "c1", "a") is None
        assert "a" not in client.cache_for(API).items


class TestGetImageBytes:
    """Test the image bytes tier."""

    def test_fetches_best_asset(self, client, transport, sample_image_bytes):
        """Test that the hd variant is downloaded and cached."""
        serve_collection(transport)
        transport.add(HD_URL.format("a"), TransportResponse(200, sample_image_bytes))

        first = client.get_image_bytes(API, "c1", "a")
        second = client.get_image_bytes(API, "c1", "a")

        assert first == sample_image_bytes
        assert second is first
        assert transport.count(HD_URL.format("a")) == 1

    def test_missing_item(self, client, transport):
        """Test that an unknown image yields None."""
        serve_collection(transport)

        assert client.get_image_bytes(API, "c1", "zzz") is None
        assert "zzz" not in client.cache_for(API).images

    def test_no_assets(self, client, transport):
        """Test that an image without assets yields None."""
        transport.add_json(items_url("c1"), make_page([make_feature("a", assets={})], []))

        assert client.get_image_bytes(API, "c1", "a") is None

    def test_asset_without_href(self, client, transport):
        """Test that a best asset with no href yields None without a download."""
        hd = {"href": None, "rel": "data", "type": "image/jpeg"}
        transport.add_json(items_url("c1"), make_page([make_feature("a", assets={"hd": hd})], []))

        assert client.get_image_bytes(API, "c1", "a") is None
        assert [url for method, url in transport.calls if method == "GET"] == [items_url("c1")]

    def test_failed_download_forces_liveness_probe(self, client, transport, sample_image_bytes):
        """Test that a failed download is not cached and re-probes the endpoint."""
        serve_collection(transport)
        transport.add(HD_URL.format("a"), TransportError(HD_URL.format("a"), "reset"))

        assert client.get_image_bytes(API, "c1", "a") is None
        assert transport.count(LIVE_URL, "HEAD") == 2
        assert "a" not in client.cache_for(API).images

        transport.add(HD_URL.format("a"), TransportResponse(200, sample_image_bytes))
        assert client.get_image_bytes(API, "c1", "a") == sample_image_bytes

    def test_bad_status_not_cached(self, client, transport):
        """Test that a non-200 download yields None."""
        serve_collection(transport)
        transport.add(HD_URL.format("a"), TransportResponse(500))

        assert client.get_image_bytes(API, "c1", "a") is None
        assert "a" not in client.cache_for(API).images

    def test_dead_after_failure(self, client, transport):
        """Test that a download failure during an outage marks the endpoint dead."""
        serve_collection(transport)
        client.get_item(API, "c1", "a")
        transport.add(HD_URL.format("a"), TransportError(HD_URL.format("a"), "down"))
        transport.set_live(False)

        assert client.get_image_bytes(API, "c1", "a") is None
        assert client.liveness.last_check(API).result is False

    def test_concurrent_single_download(self, client, transport, sample_image_bytes):
        """Test that concurrent callers trigger exactly one download."""
        serve_collection(transport)
        client.get_item(API, "c1", "a")
        gate = threading.Event()
        transport.add(HD_URL.format("a"), gated(TransportResponse(200, sample_image_bytes), gate))

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(client.get_image_bytes, API, "c1", "a") for _ in range(8)]
            time.sleep(0.05)
            gate.set()
            results = [f.result(timeout=5) for f in futures]

        assert transport.count(HD_URL.format("a")) == 1
        assert all(result == sample_image_bytes for result in results)

    def test_concurrent_cold_start(self, client, transport, sample_image_bytes):
        """Test that concurrent cold lookups fetch the page and the image once each."""
        serve_collection(transport)
        transport.add(HD_URL.format("a"), TransportResponse(200, sample_image_bytes))

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(client.get_image_bytes, API, "c1", "a") for _ in range(8)]
            results = [f.result(timeout=5) for f in futures]

        assert transport.count(items_url("c1")) == 1
        assert transport.count(HD_URL.format("a")) == 1
        assert transport.count(LIVE_URL, "HEAD") == 1
        assert set(results) == {sample_image_bytes}


class TestClientLifecycle:
    """Test client construction and disposal."""

    def test_from_settings(self, transport):
        """Test that settings become plain client inputs."""
        settings = Settings(max_wait_seconds=60, live_ttl_seconds=5, request_timeout=2.0)

        client = PanoramaxClient.from_settings(settings, transport=transport)

        assert client.liveness.max_wait_seconds == 60
        assert client.liveness.live_ttl_seconds == 5
        assert client.timeout == 2.0

    def test_clear(self, client, transport):
        """Test that clear forgets cached collections and liveness."""
        serve_collection(transport)
        client.get_collection(API, "c1")

        client.clear()

        assert "c1" not in client.cache_for(API).collections
        assert client.liveness.last_check(API) is None

    def test_injected_transport_not_closed(self, transport):
        """Test that the client only closes transports it created."""
        with PanoramaxClient(transport=transport):
            pass

        assert transport.closed is False
