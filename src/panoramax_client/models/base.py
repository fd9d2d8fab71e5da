"""
Domain models for the Panoramax catalog.

Provides immutable Pydantic models for the STAC-like payloads served by a
Panoramax instance, plus the ``Collection`` container that holds a (possibly
multi-page) sequence of images.

Field aliases are the JSON keys after periods have been stripped, which is
how the structural decoder matches them (``Exif.GPSInfo.GPSAltitude`` is
looked up as ``ExifGPSInfoGPSAltitude``).
"""

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Protocol, overload, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .assets import best_asset


@runtime_checkable
class LatLon(Protocol):
    """Anything with a WGS84 position."""

    @property
    def lat(self) -> float: ...

    @property
    def lon(self) -> float: ...


class Link(BaseModel):
    """A STAC link, used both for pagination and for asset references.

    ``href`` is a URI reference: it may be relative to the document it came
    from, and may be absent.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    href: httpx.URL | None = None
    rel: str = ""
    type: str = ""
    title: str | None = None

    @field_validator("href", mode="before")
    @classmethod
    def _parse_href(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return httpx.URL(value)
            except httpx.InvalidURL as e:
                raise ValueError(f"malformed URL {value!r}: {e}") from e
        return value


class Provider(BaseModel):
    """An organisation or person that produced an image."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    roles: tuple[str, ...] = ()


class Exif(BaseModel):
    """Raw EXIF/GPS tags as reported by the server. Every value is a string."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    gps_altitude: str | None = Field(default=None, alias="ExifGPSInfoGPSAltitude")
    gps_altitude_ref: str | None = Field(default=None, alias="ExifGPSInfoGPSAltitudeRef")
    gps_date_stamp: str | None = Field(default=None, alias="ExifGPSInfoGPSDateStamp")
    gps_img_direction: str | None = Field(default=None, alias="ExifGPSInfoGPSImgDirection")
    gps_img_direction_ref: str | None = Field(default=None, alias="ExifGPSInfoGPSImgDirectionRef")
    gps_latitude: str | None = Field(default=None, alias="ExifGPSInfoGPSLatitude")
    gps_latitude_ref: str | None = Field(default=None, alias="ExifGPSInfoGPSLatitudeRef")
    gps_longitude: str | None = Field(default=None, alias="ExifGPSInfoGPSLongitude")
    gps_longitude_ref: str | None = Field(default=None, alias="ExifGPSInfoGPSLongitudeRef")
    gps_processing_method: str | None = Field(
        default=None, alias="ExifGPSInfoGPSProcessingMethod"
    )
    gps_speed: str | None = Field(default=None, alias="ExifGPSInfoGPSSpeed")
    gps_speed_ref: str | None = Field(default=None, alias="ExifGPSInfoGPSSpeedRef")
    gps_time_stamp: str | None = Field(default=None, alias="ExifGPSInfoGPSTimeStamp")
    image_date_time: str | None = Field(default=None, alias="ExifImageDateTime")
    image_exif_tag: str | None = Field(default=None, alias="ExifImageExifTag")
    image_gps_tag: str | None = Field(default=None, alias="ExifImageGPSTag")
    image_length: str | None = Field(default=None, alias="ExifImageImageLength")
    image_width: str | None = Field(default=None, alias="ExifImageImageWidth")
    make: str | None = Field(default=None, alias="ExifImageMake")
    model: str | None = Field(default=None, alias="ExifImageModel")
    orientation: str | None = Field(default=None, alias="ExifImageOrientation")
    date_time_digitized: str | None = Field(default=None, alias="ExifPhotoDateTimeDigitized")
    date_time_original: str | None = Field(default=None, alias="ExifPhotoDateTimeOriginal")
    exif_version: str | None = Field(default=None, alias="ExifPhotoExifVersion")
    exposure_time: str | None = Field(default=None, alias="ExifPhotoExposureTime")
    flash: str | None = Field(default=None, alias="ExifPhotoFlash")
    focal_length: str | None = Field(default=None, alias="ExifPhotoFocalLength")
    iso_speed_ratings: str | None = Field(default=None, alias="ExifPhotoISOSpeedRatings")
    light_source: str | None = Field(default=None, alias="ExifPhotoLightSource")
    offset_time: str | None = Field(default=None, alias="ExifPhotoOffsetTime")
    offset_time_digitized: str | None = Field(default=None, alias="ExifPhotoOffsetTimeDigitized")
    offset_time_original: str | None = Field(default=None, alias="ExifPhotoOffsetTimeOriginal")
    pixel_x_dimension: str | None = Field(default=None, alias="ExifPhotoPixelXDimension")
    pixel_y_dimension: str | None = Field(default=None, alias="ExifPhotoPixelYDimension")
    sub_sec_time: str | None = Field(default=None, alias="ExifPhotoSubSecTime")
    sub_sec_time_digitized: str | None = Field(default=None, alias="ExifPhotoSubSecTimeDigitized")
    sub_sec_time_original: str | None = Field(default=None, alias="ExifPhotoSubSecTimeOriginal")
    white_balance: str | None = Field(default=None, alias="ExifPhotoWhiteBalance")


class InteriorOrientation(BaseModel):
    """Camera interior orientation (``pers:interior_orientation``)."""

    model_config = ConfigDict(frozen=True)

    camera_model: str | None = None
    focal_length: float = 0.0
    camera_manufacturer: str | None = None
    sensor_array_dimensions: tuple[int, ...]

    @field_validator("sensor_array_dimensions")
    @classmethod
    def _two_dimensions(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if len(value) != 2:
            raise ValueError(
                f"The sensor array must have exactly two dimensions, got {len(value)}"
            )
        return value


class Properties(BaseModel):
    """Catalog metadata attached to an image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    exif: Exif = Field(default_factory=Exif)
    created: str | None = None
    license: str | None = None
    updated: str | None = None
    datetime: str | None = None
    datetimetz: str | None = None
    semantics: tuple[Any, ...] = ()
    annotations: tuple[Any, ...] = ()
    collection: Any = None
    view_azimuth: int | None = Field(default=None, alias="view:azimuth")
    geovisio_image: str | None = Field(default=None, alias="geovisio:image")
    geovisio_status: str | None = Field(default=None, alias="geovisio:status")
    geovisio_producer: str | None = Field(default=None, alias="geovisio:producer")
    geovisio_thumbnail: str | None = Field(default=None, alias="geovisio:thumbnail")
    geovisio_visibility: str | None = Field(default=None, alias="geovisio:visibility")
    geovisio_rank_in_collection: int | None = Field(
        default=None, alias="geovisio:rank_in_collection"
    )
    original_file_name: str | None = Field(default=None, alias="original_file:name")
    original_file_size: int | None = Field(default=None, alias="original_file:size")
    interior_orientation: InteriorOrientation | None = Field(
        default=None, alias="pers:interior_orientation"
    )
    horizontal_accuracy: float | None = Field(default=None, alias="quality:horizontal_accuracy")


class Image(BaseModel):
    """A single picture (a GeoJSON feature) in a Panoramax collection.

    ``lat`` and ``lon`` come from ``geometry.coordinates`` rather than from
    top-level keys; see ``panoramax_client.decoding``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    bbox: tuple[float, ...] = ()
    type: str = ""
    links: tuple[Link, ...] = ()
    assets: dict[str, Link] = Field(default_factory=dict)
    providers: tuple[Provider, ...] = ()
    collection: str = ""
    properties: Properties = Field(default_factory=Properties)
    stac_version: str = ""
    lat: float = 0.0
    lon: float = 0.0
    stac_extensions: tuple[str, ...] = ()

    # assets is a dict, so the generated hash would fail
    __hash__ = None  # type: ignore[assignment]

    def best_asset(self) -> Link | None:
        """Return the best available image variant."""
        return best_asset(self.assets)

    def link(self, rel: str) -> Link | None:
        """Return the first link with the given relation."""
        for link in self.links:
            if link.rel == rel:
                return link
        return None


class Collection(Sequence[Image]):
    """An ordered sequence of images plus the collection's own links.

    Links are de-duplicated on construction, keeping the first occurrence.
    """

    def __init__(self, links: Iterable[Link] = (), images: Iterable[Image] = ()):
        unique: list[Link] = []
        for link in links:
            if link not in unique:
                unique.append(link)
        self._links = tuple(unique)
        self._images = tuple(images)

    @property
    def links(self) -> tuple[Link, ...]:
        return self._links

    @property
    def images(self) -> tuple[Image, ...]:
        return self._images

    @overload
    def __getitem__(self, index: int) -> Image: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Image, ...]: ...

    def __getitem__(self, index):
        return self._images[index]

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[Image]:
        return iter(self._images)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Collection):
            return NotImplemented
        return self._links == other._links and self._images == other._images

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Collection(images={len(self._images)}, links={len(self._links)})"

    def find(self, image_id: str) -> Image | None:
        """Return the image with the given id, if present."""
        for image in self._images:
            if image.id == image_id:
                return image
        return None

    def position(self, image_id: str) -> int:
        """Return the index of the image with the given id, or -1."""
        for index, image in enumerate(self._images):
            if image.id == image_id:
                return index
        return -1

    def link(self, rel: str) -> Link | None:
        """Return the first link with the given relation."""
        for link in self._links:
            if link.rel == rel:
                return link
        return None
