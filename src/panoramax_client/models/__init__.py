"""
Domain models package.

Provides the immutable Panoramax records and the image variant selector.
"""

from .assets import AssetKind, best_asset
from .base import (
    Collection,
    Exif,
    Image,
    InteriorOrientation,
    LatLon,
    Link,
    Properties,
    Provider,
)

__all__ = [
    "AssetKind",
    "Collection",
    "Exif",
    "Image",
    "InteriorOrientation",
    "LatLon",
    "Link",
    "Properties",
    "Provider",
    "best_asset",
]
