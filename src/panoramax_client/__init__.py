"""
Panoramax client.

A caching client for the Panoramax street-level imagery API: endpoint
liveness with backoff, paginated collection fetching, structural decoding
into typed models, and three cache tiers (collections, items, image bytes).

Usage:
    from panoramax_client import PanoramaxClient

    with PanoramaxClient() as client:
        image = client.get_item(api, collection_id, image_id)
        data = client.get_image_bytes(api, collection_id, image_id)

    # Or from the command line
    panoramax-client collection <collection-id>
"""

from loguru import logger

__version__ = "0.1.0"

from .cache import PanoramaxClient
from .entry import ImageEntry
from .errors import DecodeError, EndpointUnavailableError, PanoramaxError, TransportError
from .models import Collection, Image, Link, best_asset

# Library default: silent until setup_logging() is called
logger.disable("panoramax_client")

__all__ = [
    "Collection",
    "DecodeError",
    "EndpointUnavailableError",
    "Image",
    "ImageEntry",
    "Link",
    "PanoramaxClient",
    "PanoramaxError",
    "TransportError",
    "best_asset",
]
