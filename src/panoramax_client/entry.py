"""
Read-only image view for photo viewers.

``ImageEntry`` wraps a decoded ``Image`` and answers the questions an image
viewer asks (position, display name, EXIF speed/elevation/direction, times,
neighbouring images), fetching pixels through the client's caches.
"""

from __future__ import annotations

from concurrent.futures import Executor
from datetime import datetime, timezone
from io import BytesIO
from typing import TYPE_CHECKING
from urllib.parse import urljoin

from loguru import logger
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from .models import Collection, Exif, Image, Link, Properties, Provider

if TYPE_CHECKING:
    from .cache import PanoramaxClient

DEFAULT_API = "https://api.panoramax.xyz/api"


def parse_rational(value: str | None) -> float | None:
    """Parse an EXIF rational (``"123/10"``) or decimal string."""
    if value is None:
        return None
    try:
        if "/" in value:
            numerator, denominator = value.split("/", 1)
            return float(numerator) / float(denominator)
        return float(value)
    except (ValueError, ZeroDivisionError):
        logger.trace("Unparseable EXIF rational: {!r}", value)
        return None


class ImageEntry:
    """A viewer-facing view of one Panoramax image."""

    def __init__(self, image: Image, client: PanoramaxClient, default_api: str = DEFAULT_API):
        """
        Initialize the entry.

        Args:
            image: Decoded image
            client: Client whose caches back pixel and collection lookups
            default_api: Endpoint used when the image has no ``root`` link
        """
        self.image = image
        self.client = client
        self.default_api = default_api

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageEntry):
            return NotImplemented
        return self.image == other.image

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ImageEntry(id={self.image.id!r}, collection={self.image.collection!r})"

    # Identity and position

    @property
    def id(self) -> str:
        return self.image.id

    @property
    def lat(self) -> float:
        return self.image.lat

    @property
    def lon(self) -> float:
        return self.image.lon

    @property
    def links(self) -> tuple[Link, ...]:
        return self.image.links

    @property
    def providers(self) -> tuple[Provider, ...]:
        return self.image.providers

    @property
    def properties(self) -> Properties:
        return self.image.properties

    @property
    def exif(self) -> Exif:
        return self.image.properties.exif

    @property
    def root_api(self) -> str:
        """The API the image was served from."""
        root = self.image.link("root")
        if root is None or root.href is None:
            return self.default_api
        return str(root.href)

    @property
    def image_uri(self) -> str | None:
        """A browsable URI for the image: the viewer page if known, else the best asset."""
        via = self.image.link("via")
        if via is not None and via.href is not None:
            return urljoin(str(via.href), f"?focus=pic&pic={self.image.id}")
        best = self.image.best_asset()
        if best is None or best.href is None:
            return None
        return str(best.href)

    @property
    def display_name(self) -> str:
        name = ", ".join(provider.name for provider in self.image.providers)
        taken = self.exif_datetime
        if taken is not None:
            name += " - " + taken.strftime("%Y-%m-%d %H:%M:%S")
        return name

    # Pixels

    def read_bytes(self) -> bytes | None:
        """Return the encoded bytes of the best image variant, or None."""
        return self.client.get_image_bytes(self.root_api, self.image.collection, self.image.id)

    def open_image(self) -> PILImage.Image | None:
        """Return the decoded picture, or None if it is unavailable or unreadable."""
        data = self.read_bytes()
        if data is None:
            return None
        try:
            picture = PILImage.open(BytesIO(data))
            picture.load()
        except (UnidentifiedImageError, OSError) as e:
            logger.warning("Could not decode image {}: {}", self.image.id, e)
            return None
        return picture

    # Navigation

    def collection(self) -> Collection | None:
        return self.client.get_collection(self.root_api, self.image.collection)

    def _neighbour(self, pick) -> ImageEntry | None:
        collection = self.collection()
        if collection is None:
            return None
        index = collection.position(self.image.id)
        if index < 0:
            return None
        target = pick(index, len(collection))
        if target is None:
            return None
        return ImageEntry(collection[target], self.client, self.default_api)

    def next_entry(self, prefetch: Executor | None = None) -> ImageEntry | None:
        """Return the following image.

        Args:
            prefetch: Optional executor used to warm the byte cache for the result

        """
        entry = self._neighbour(lambda i, n: i + 1 if i + 1 < n else None)
        if entry is not None and prefetch is not None:
            prefetch.submit(entry.read_bytes)
        return entry

    def previous_entry(self) -> ImageEntry | None:
        return self._neighbour(lambda i, n: i - 1 if i > 0 else None)

    def first_entry(self) -> ImageEntry | None:
        """Return the first image of the collection, None if this is it."""
        return self._neighbour(lambda i, n: 0 if i > 0 else None)

    def last_entry(self) -> ImageEntry | None:
        """Return the last image of the collection, None if this is it."""
        return self._neighbour(lambda i, n: n - 1 if i + 1 < n else None)

    # EXIF

    @property
    def speed(self) -> float | None:
        # TODO: convert using gps_speed_ref (K/M/N) once viewers expect a fixed unit
        return parse_rational(self.exif.gps_speed)

    @property
    def elevation(self) -> float | None:
        return parse_rational(self.exif.gps_altitude)

    @property
    def image_direction(self) -> float | None:
        return parse_rational(self.exif.gps_img_direction)

    @property
    def gps_processing_method(self) -> str | None:
        return self.exif.gps_processing_method

    @property
    def has_exif_time(self) -> bool:
        return self.exif.image_date_time is not None

    @property
    def has_gps_time(self) -> bool:
        return self.exif.gps_time_stamp is not None

    @property
    def exif_datetime(self) -> datetime | None:
        """``Exif.Image.DateTime``, read as UTC."""
        value = self.exif.image_date_time
        if value is None:
            return None
        try:
            return datetime.strptime(value, "%Y:%m:%d %H:%M:%S").replace(tzinfo=timezone.utc)
        except ValueError:
            logger.trace("Unparseable EXIF datetime: {!r}", value)
            return None

    @property
    def gps_datetime(self) -> datetime | None:
        """GPS date stamp plus the three-rational GPS time stamp, in UTC."""
        date_stamp = self.exif.gps_date_stamp
        time_stamp = self.exif.gps_time_stamp
        if date_stamp is None or time_stamp is None:
            return None
        try:
            day = datetime.strptime(date_stamp, "%Y:%m:%d")
        except ValueError:
            return None
        parts = [parse_rational(part) for part in time_stamp.split(" ", 2)]
        if len(parts) != 3 or any(part is None for part in parts):
            return None
        hour, minute, second = (round(part) for part in parts)
        try:
            return day.replace(hour=hour, minute=minute, second=second, tzinfo=timezone.utc)
        except ValueError:
            return None
