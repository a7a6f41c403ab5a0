"""
Conversion between pixel and percentage-of-image coordinates.

Percentage coordinates make the sprite layout independent of the resolution
the atlas texture is eventually rendered at.
"""

import math

from sprite_atlas.models import BoundingBox, PercentBox


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _pct(px: int, dimension: int) -> float:
    return min(100.0, max(0.0, px * 100.0 / dimension))


def to_percent(bbox: BoundingBox, image_size: tuple[int, int]) -> PercentBox:
    """
    Convert a pixel bounding box to percentages of the image size.

    Args:
        bbox: Pixel bounding box
        image_size: Image (width, height) in pixels

    Returns:
        PercentBox with every coordinate in [0, 100]
    """
    width, height = image_size
    return PercentBox(
        x=_pct(bbox.x, width),
        y=_pct(bbox.y, height),
        width=_pct(bbox.width, width),
        height=_pct(bbox.height, height)
    )


def to_pixels(bounds: PercentBox, image_size: tuple[int, int]) -> BoundingBox:
    """Convert percentage coordinates back to pixels, rounding half up."""
    width, height = image_size
    return BoundingBox(
        x=_round_half_up(bounds.x * width / 100.0),
        y=_round_half_up(bounds.y * height / 100.0),
        width=_round_half_up(bounds.width * width / 100.0),
        height=_round_half_up(bounds.height * height / 100.0)
    )


def verify_round_trip(bbox: BoundingBox, image_size: tuple[int, int], tolerance: int = 1) -> bool:
    """Check that pixels -> percent -> pixels reproduces bbox within tolerance."""
    restored = to_pixels(to_percent(bbox, image_size), image_size)
    return all(
        abs(a - b) <= tolerance
        for a, b in (
            (bbox.x, restored.x),
            (bbox.y, restored.y),
            (bbox.width, restored.width),
            (bbox.height, restored.height),
        )
    )
