"""Image variant selection."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import Link


class AssetKind(str, Enum):
    """Asset names published by Panoramax, with their expected maximum width."""

    HD = "hd"
    SD = "sd"
    THUMB = "thumb"

    @property
    def max_width(self) -> int:
        # hd is full resolution, so it takes the largest value of a short
        return {"hd": 32767, "sd": 2048, "thumb": 500}[self.value]


def best_asset(assets: Mapping[str, Link]) -> Link | None:
    """Pick the best image link out of an image's named assets.

    Preference is ``hd``, then ``sd``, then any asset that is not a thumbnail,
    then ``thumb``. When several unknown assets exist, the first one in
    mapping order wins.

    Args:
        assets: Asset links keyed by asset name

    Returns:
        The selected link, or None if there are no assets

    """
    for kind in (AssetKind.HD, AssetKind.SD):
        if kind.value in assets:
            return assets[kind.value]
    for name, link in assets.items():
        if name != AssetKind.THUMB.value:
            return link
    return assets.get(AssetKind.THUMB.value)
