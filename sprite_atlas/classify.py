"""
Semantic classification and naming of separated regions.

The rules are geometric heuristics (pixel count, fill density, aspect ratio
and vertical position). Every cutoff lives in ClassifierThresholds; the
defaults were tuned on slot-game symbol sheets (a word plus a character and
its props) and need adjusting for materially different artwork.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Sequence

from sprite_atlas.models import (
    AnimationPotential,
    ClassifiedSprite,
    Region,
    SpriteType,
)
from sprite_atlas.normalize import to_percent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierThresholds:
    """Cutoffs of the classification rules, checked in this order."""

    # Regions whose top edges differ by less than this share a row (pixels)
    row_tolerance: int = 20

    # Rule 1: text
    text_max_position: float = 0.7  # center y as a fraction of image height
    text_min_pixels: int = 2000
    text_max_pixels: int = 15000
    text_min_density: float = 0.15
    text_min_aspect: float = 0.3
    text_max_aspect: float = 3.0

    # Rule 2: main character
    character_min_pixels: int = 8000
    character_min_density: float = 0.3
    character_min_aspect: float = 0.7
    character_max_aspect: float = 1.5

    # Rule 3: elongated object in the lower half
    object_min_pixels: int = 800
    object_max_pixels: int = 4000
    object_wide_aspect: float = 1.8
    object_tall_aspect: float = 0.55
    object_min_density: float = 0.25
    object_min_position: float = 0.5

    # Rule 4: effect
    effect_max_density: float = 0.2
    effect_max_pixels: int = 800

    # Objects and effects above this get a "_large" name
    large_pixels: int = 2000


_Z_INDEX = {
    SpriteType.TEXT: 5,
    SpriteType.OBJECT: 4,
    SpriteType.CHARACTER: 3,
    SpriteType.EFFECT: 2,
}

_ANIMATION_POTENTIAL = {
    SpriteType.TEXT: AnimationPotential.HIGH,
    SpriteType.CHARACTER: AnimationPotential.HIGH,
    SpriteType.OBJECT: AnimationPotential.MEDIUM,
    SpriteType.EFFECT: AnimationPotential.LOW,
}


@dataclass(frozen=True)
class NamingState:
    """
    Counters threaded through the classification of consecutive regions.

    Attributes:
        symbols_used: Text regions named so far
        fallback_count: Regions that matched no specific rule so far
        taken: Names already assigned
        base_counts: How often each base name has been requested
    """
    symbols_used: int = 0
    fallback_count: int = 0
    taken: frozenset[str] = frozenset()
    base_counts: dict[str, int] = field(default_factory=dict)

    def unique_name(self, base: str) -> tuple[str, NamingState]:
        """Return base, or base_2, base_3, ... if it is already taken."""
        count = self.base_counts.get(base, 0) + 1
        name = base if count == 1 else f"{base}_{count}"
        while name in self.taken:
            count += 1
            name = f"{base}_{count}"
        counts = dict(self.base_counts)
        counts[base] = count
        return name, replace(self, taken=self.taken | {name}, base_counts=counts)


def order_regions(regions: Sequence[Region], row_tolerance: int = 20) -> list[Region]:
    """
    Sort regions top-to-bottom, then left-to-right.

    Regions whose top edge lies within row_tolerance of the first region of
    the current row are treated as the same row.
    """
    by_top = sorted(regions, key=lambda r: (r.bbox.y, r.bbox.x, r.id))

    rows: list[list[Region]] = []
    for region in by_top:
        if rows and region.bbox.y - rows[-1][0].bbox.y < row_tolerance:
            rows[-1].append(region)
        else:
            rows.append([region])

    return [r for row in rows for r in sorted(row, key=lambda r: (r.bbox.x, r.bbox.y, r.id))]


def _normalize_symbols(expected_symbols: str | Sequence[str] | None) -> tuple[str, ...]:
    if expected_symbols is None:
        return ()
    return tuple(s.lower() for s in expected_symbols if s.strip())


def _match_rule(
    region: Region,
    image_height: int,
    t: ClassifierThresholds,
    state: NamingState,
    symbols: tuple[str, ...]
) -> tuple[SpriteType, str, NamingState]:
    """First matching rule wins. Returns (type, base name, updated state)."""
    area = region.pixel_count
    density = region.density
    aspect = region.aspect_ratio
    position = (region.bbox.y + region.bbox.height / 2) / image_height

    symbols_left = not symbols or state.symbols_used < len(symbols)
    if (position < t.text_max_position
            and t.text_min_pixels <= area <= t.text_max_pixels
            and density > t.text_min_density
            and t.text_min_aspect <= aspect <= t.text_max_aspect
            and symbols_left):
        if symbols:
            base = symbols[state.symbols_used]
        else:
            base = f"letter_{state.symbols_used + 1}"
        return SpriteType.TEXT, base, replace(state, symbols_used=state.symbols_used + 1)

    if (area >= t.character_min_pixels
            and density > t.character_min_density
            and t.character_min_aspect <= aspect <= t.character_max_aspect):
        return SpriteType.CHARACTER, "character", state

    if (t.object_min_pixels <= area <= t.object_max_pixels
            and (aspect > t.object_wide_aspect or aspect < t.object_tall_aspect)
            and density > t.object_min_density
            and position > t.object_min_position):
        base = "object_large" if area > t.large_pixels else "object"
        return SpriteType.OBJECT, base, state

    if density < t.effect_max_density or area < t.effect_max_pixels:
        base = "effect_large" if area > t.large_pixels else "effect"
        return SpriteType.EFFECT, base, state

    fallback_count = state.fallback_count + 1
    return SpriteType.OBJECT, f"sprite_{fallback_count}", replace(state, fallback_count=fallback_count)


def classify_region(
    region: Region,
    image_size: tuple[int, int],
    thresholds: ClassifierThresholds,
    state: NamingState,
    expected_symbols: str | Sequence[str] | None = None
) -> tuple[ClassifiedSprite, NamingState]:
    """
    Classify and name one region.

    Args:
        region: Region to classify
        image_size: Image (width, height) in pixels
        thresholds: Rule cutoffs
        state: Naming counters accumulated over the previous regions
        expected_symbols: Known symbol sequence (e.g. a word) for text names

    Returns:
        Tuple of (classified sprite, naming state for the next region)
    """
    symbols = _normalize_symbols(expected_symbols)
    sprite_type, base, state = _match_rule(region, image_size[1], thresholds, state, symbols)
    name, state = state.unique_name(base)

    if sprite_type is SpriteType.TEXT:
        description = f"Letter {base.upper()}" if symbols else f"Text glyph {name}"
    else:
        description = (f"{sprite_type.value} sprite ({region.pixel_count} pixels, "
                       f"density {region.density:.2f})")

    logger.debug("Classified region %d as %s %r (pixels=%d, density=%.2f, ratio=%.2f)",
                 region.id, sprite_type.value, name, region.pixel_count,
                 region.density, region.aspect_ratio)

    sprite = ClassifiedSprite(
        region=region,
        sprite_type=sprite_type,
        name=name,
        z_index=_Z_INDEX[sprite_type],
        animation_potential=_ANIMATION_POTENTIAL[sprite_type],
        description=description,
        percent_bounds=to_percent(region.bbox, image_size)
    )
    return sprite, state


def classify_regions(
    regions: Sequence[Region],
    image_size: tuple[int, int],
    thresholds: ClassifierThresholds = ClassifierThresholds(),
    expected_symbols: str | Sequence[str] | None = None
) -> list[ClassifiedSprite]:
    """
    Classify, name and order all regions of one image.

    Regions are visited in reading order (see order_regions), so names such
    as letter sequences follow the layout of the image.
    """
    state = NamingState()
    sprites = []
    for region in order_regions(regions, thresholds.row_tolerance):
        sprite, state = classify_region(region, image_size, thresholds, state, expected_symbols)
        sprites.append(sprite)

    logger.info("Named sprites: %s", ", ".join(s.name for s in sprites))
    return sprites
