"""
Caching package.

Provides the single-flight memo table and the three-tier Panoramax client.
"""

from .client import EndpointCache, PanoramaxClient
from .singleflight import SingleFlightCache

__all__ = [
    "EndpointCache",
    "PanoramaxClient",
    "SingleFlightCache",
]
