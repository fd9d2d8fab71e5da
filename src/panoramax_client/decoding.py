"""
Structural JSON decoding.

Turns parsed JSON (dicts, lists, str, int, float, bool, None) into the
Pydantic domain models, driven only by each model's declared field types.

Rules:
    - JSON object keys are matched to fields after stripping periods, so
      ``Exif.Image.Make`` matches a field declared as ``ExifImageMake``.
    - A missing key or a JSON null leaves the field at its default value.
    - A value of the wrong kind is a hard failure (``DecodeError``), as is
      a malformed URI reference or a fractional number targeting an ``int`` field.
    - Types that need more than the generic algorithm register a bespoke
      decoder with ``register_decoder``.
"""

import json
import types
from collections.abc import Callable, Mapping
from typing import Any, TypeVar, Union, get_args, get_origin

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from .errors import DecodeError
from .models import Collection, Image, Link

T = TypeVar("T")

Decoder = Callable[[Any, str], Any]

_DECODERS: dict[Any, Decoder] = {}


def register_decoder(target: Any) -> Callable[[Decoder], Decoder]:
    """Register a bespoke decoder for a target type.

    The decoder receives the raw JSON value and its path, and replaces the
    generic algorithm for that type everywhere it appears (top level, array
    elements, nested fields).
    """

    def wrapper(func: Decoder) -> Decoder:
        _DECODERS[target] = func
        return func

    return wrapper


def decode(target: type[T] | Any, value: Any, path: str = "$") -> T:
    """Decode a parsed JSON value into ``target``.

    Args:
        target: A model class, a scalar type, ``httpx.URL``, ``Any``, or a
            ``tuple[X, ...]`` / ``list[X]`` / ``dict[str, X]`` / ``X | None`` of those
        value: Parsed JSON value
        path: Location of ``value`` in the document, used in error messages

    Returns:
        The decoded value. ``None`` decodes to ``None``.

    Raises:
        DecodeError: If the value does not fit the target's shape

    """
    if value is None:
        return None  # type: ignore[return-value]

    custom = _DECODERS.get(target)
    if custom is not None:
        return custom(value, path)

    origin = get_origin(target)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(target) if arg is not type(None)]
        if len(members) != 1:
            raise TypeError(f"Unsupported union type: {target}")
        return decode(members[0], value, path)

    if target is Any:
        return value

    if origin in (tuple, list):
        items = _expect(list, value, path, "array")
        element = get_args(target)[0]
        decoded = [decode(element, item, f"{path}[{i}]") for i, item in enumerate(items)]
        return tuple(decoded) if origin is tuple else decoded  # type: ignore[return-value]

    if origin in (dict, Mapping):
        entries = _expect(dict, value, path, "object")
        element = get_args(target)[1]
        return {  # type: ignore[return-value]
            key: decode(element, item, f"{path}.{key}") for key, item in entries.items()
        }

    if isinstance(target, type) and issubclass(target, BaseModel):
        return decode_model(target, value, path)

    return _decode_scalar(target, value, path)


def decode_model(model: type[BaseModel], value: Any, path: str = "$", skip: tuple[str, ...] = ()) -> Any:
    """Decode a JSON object into a model using the generic field algorithm."""
    obj = _expect(dict, value, path, "object")
    fields = decode_fields(model, obj, path, skip=skip)
    return construct(model, fields, path, obj)


def decode_fields(
    model: type[BaseModel],
    obj: Mapping[str, Any],
    path: str = "$",
    skip: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Decode every declared field of ``model`` found in ``obj``.

    Args:
        model: Target model class
        obj: JSON object
        path: Location of ``obj`` in the document
        skip: Field names left out, for decoders that compute them separately

    Returns:
        Decoded values keyed by field name. Missing and null keys are omitted
        so the model's defaults apply.

    """
    normalized = {key.replace(".", ""): key for key in obj}
    fields: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        if name in skip:
            continue
        raw_key = normalized.get(info.alias or name)
        if raw_key is None or obj[raw_key] is None:
            continue
        fields[name] = decode(info.annotation, obj[raw_key], f"{path}.{raw_key}")
    return fields


def construct(model: type[BaseModel], fields: dict[str, Any], path: str, value: Any = None) -> Any:
    """Build a model from decoded fields, turning validation failures into ``DecodeError``."""
    try:
        return model(**fields)
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        raise DecodeError(
            f"{path}.{location}" if location else path,
            f"invalid {model.__name__}: {error['msg']}",
            value,
        ) from e


def _decode_scalar(target: Any, value: Any, path: str) -> Any:
    if target is str:
        return _expect(str, value, path, "string")

    if target is httpx.URL:
        text = _expect(str, value, path, "string")
        try:
            return httpx.URL(text)
        except httpx.InvalidURL as e:
            raise DecodeError(path, f"malformed URL {text!r}", value) from e

    if target is bool:
        return _expect(bool, value, path, "boolean")

    if target is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DecodeError(path, f"expected integer, got {_kind(value)}", value)
        if isinstance(value, float):
            if not value.is_integer():
                raise DecodeError(path, f"{value!r} is not an exact integer", value)
            return int(value)
        return value

    if target is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DecodeError(path, f"expected number, got {_kind(value)}", value)
        return float(value)

    raise TypeError(f"No decoder for {target!r}")


def _expect(kind: type, value: Any, path: str, name: str) -> Any:
    if not isinstance(value, kind):
        raise DecodeError(path, f"expected {name}, got {_kind(value)}", value)
    return value


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


@register_decoder(Image)
def _decode_image(value: Any, path: str) -> Image:
    # Position lives in the GeoJSON geometry, not in top-level keys.
    obj = _expect(dict, value, path, "object")
    fields = decode_fields(Image, obj, path, skip=("lat", "lon", "assets"))

    geometry = _expect(dict, obj.get("geometry"), f"{path}.geometry", "object")
    coordinates = _expect(list, geometry.get("coordinates"), f"{path}.geometry.coordinates", "array")
    if len(coordinates) < 2:
        raise DecodeError(
            f"{path}.geometry.coordinates",
            f"expected at least 2 coordinates, got {len(coordinates)}",
            coordinates,
        )
    fields["lon"] = decode(float, coordinates[0], f"{path}.geometry.coordinates[0]")
    fields["lat"] = decode(float, coordinates[1], f"{path}.geometry.coordinates[1]")

    assets = obj.get("assets")
    fields["assets"] = decode(dict[str, Link], assets, f"{path}.assets") if assets is not None else {}

    return construct(Image, fields, path, obj)


def decode_page(payload: Any) -> Collection:
    """Decode one page of ``/collections/{id}/items`` into a ``Collection``.

    Raises:
        DecodeError: If the page or any feature in it is malformed

    """
    obj = _expect(dict, payload, "$", "object")
    features = obj.get("features")
    links = obj.get("links")
    images = decode(tuple[Image, ...], features, "$.features") if features is not None else ()
    page_links = decode(tuple[Link, ...], links, "$.links") if links is not None else ()
    logger.debug("Decoded page: {} features, {} links", len(images), len(page_links))
    return Collection(page_links, images)


def parse_json(content: bytes, url: str = "") -> Any:
    """Parse a response body as JSON, failing with ``DecodeError``."""
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError("$", f"invalid JSON from {url or 'response'}: {e}") from e
