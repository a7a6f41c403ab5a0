"""
Atlas descriptor model and its export dialects.

The descriptor names and locates every sprite inside the one shared source
image. The TexturePacker document, the minimal runtime (PixiJS) document and
the line-oriented Spine text atlas are all projections of the same frame
model, so they cannot disagree with each other.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from sprite_atlas.errors import AtlasError
from sprite_atlas.models import AnimationPotential, BoundingBox, ClassifiedSprite, SpriteType
from sprite_atlas.normalize import to_pixels, verify_round_trip

logger = logging.getLogger(__name__)

APP_NAME = "sprite-atlas"
DESCRIPTOR_VERSION = "1.0.0"
DEFAULT_FORMAT = "RGBA8888"

# Animation-candidate group for each role that animates well
_ANIMATION_GROUPS = {
    SpriteType.TEXT: "letters",
    SpriteType.CHARACTER: "character",
}


class ExportFormat(Enum):
    TEXTUREPACKER = "texturepacker"
    PIXI = "pixi"
    SPINE = "spine"


@dataclass(frozen=True)
class AtlasFrame:
    """
    One named sprite rectangle inside the atlas texture.

    Attributes:
        name: Unique frame name
        frame: Packed pixel rectangle
        source_size: Untrimmed sprite size as (w, h)
        pivot: Anchor point in frame-relative units, center by default
    """
    name: str
    frame: BoundingBox
    source_size: tuple[int, int]
    pivot: tuple[float, float] = (0.5, 0.5)
    rotated: bool = False
    trimmed: bool = False


@dataclass(frozen=True)
class AtlasMeta:
    image: str
    size: tuple[int, int]
    timestamp: str
    format: str = DEFAULT_FORMAT
    app: str = APP_NAME
    version: str = DESCRIPTOR_VERSION
    scale: str = "1"


@dataclass(frozen=True)
class AtlasDescriptor:
    """
    Packing descriptor handed back to the caller.

    Attributes:
        frames: Frames keyed by their unique name, in sprite order
        meta: Source image reference, size, format and generation time
        animations: Optional animation group -> ordered frame names
    """
    frames: dict[str, AtlasFrame]
    meta: AtlasMeta
    animations: dict[str, tuple[str, ...]] | None = field(default=None)


def build_descriptor(
    sprites: Sequence[ClassifiedSprite],
    image_size: tuple[int, int],
    image_name: str = "atlas.png",
    timestamp: str | None = None,
    group_animations: bool = True
) -> AtlasDescriptor:
    """
    Build the atlas descriptor for a list of classified sprites.

    Frame rectangles are recovered from the sprites' percentage bounds, and
    every one must match the sprite's pixel bounding box within one pixel.

    Args:
        sprites: Classified sprites with unique names
        image_size: Source image (width, height) in pixels
        image_name: Reference to the shared source image
        timestamp: Generation time (ISO 8601); current UTC time if omitted,
                   which makes otherwise identical descriptors unequal
        group_animations: Group high animation potential sprites by role

    Returns:
        The atlas descriptor

    Raises:
        AtlasError: On a duplicate name or a failed coordinate round trip
    """
    frames: dict[str, AtlasFrame] = {}
    animations: dict[str, list[str]] = {}

    for sprite in sprites:
        if sprite.name in frames:
            raise AtlasError(f"duplicate frame name {sprite.name!r}")

        if not verify_round_trip(sprite.bbox, image_size):
            raise AtlasError(f"coordinate round trip failed for frame {sprite.name!r}")
        box = to_pixels(sprite.percent_bounds, image_size)

        frames[sprite.name] = AtlasFrame(
            name=sprite.name,
            frame=box,
            source_size=(box.width, box.height)
        )

        if group_animations and sprite.animation_potential is AnimationPotential.HIGH:
            group = _ANIMATION_GROUPS.get(sprite.sprite_type)
            if group:
                animations.setdefault(group, []).append(sprite.name)

    if timestamp is None:
        timestamp = datetime.now(timezone.utc).isoformat()

    meta = AtlasMeta(image=image_name, size=image_size, timestamp=timestamp)
    logger.debug("Built atlas descriptor with %d frame(s)", len(frames))
    return AtlasDescriptor(
        frames=frames,
        meta=meta,
        animations={k: tuple(v) for k, v in animations.items()} or None
    )


def _frame_dict(frame: AtlasFrame) -> dict[str, Any]:
    box = frame.frame
    return {
        "frame": {"x": box.x, "y": box.y, "w": box.width, "h": box.height},
        "rotated": frame.rotated,
        "trimmed": frame.trimmed,
        "spriteSourceSize": {"x": 0, "y": 0, "w": box.width, "h": box.height},
        "sourceSize": {"w": frame.source_size[0], "h": frame.source_size[1]},
        "pivot": {"x": frame.pivot[0], "y": frame.pivot[1]},
    }


def _size_dict(size: tuple[int, int]) -> dict[str, int]:
    return {"w": size[0], "h": size[1]}


def to_texturepacker(desc: AtlasDescriptor) -> dict[str, Any]:
    """TexturePacker JSON (hash) document."""
    doc: dict[str, Any] = {
        "frames": {name: _frame_dict(frame) for name, frame in desc.frames.items()},
        "meta": {
            "app": desc.meta.app,
            "version": desc.meta.version,
            "image": desc.meta.image,
            "format": desc.meta.format,
            "size": _size_dict(desc.meta.size),
            "scale": desc.meta.scale,
            "smartupdate": desc.meta.timestamp,
        },
    }
    if desc.animations:
        doc["animations"] = {k: list(v) for k, v in desc.animations.items()}
    return doc


def to_pixi(desc: AtlasDescriptor) -> dict[str, Any]:
    """Minimal runtime spritesheet: frames, image/size/scale and animations only."""
    doc: dict[str, Any] = {
        "frames": {name: _frame_dict(frame) for name, frame in desc.frames.items()},
        "meta": {
            "image": desc.meta.image,
            "size": _size_dict(desc.meta.size),
            "scale": desc.meta.scale,
        },
    }
    if desc.animations:
        doc["animations"] = {k: list(v) for k, v in desc.animations.items()}
    return doc


def to_spine(desc: AtlasDescriptor) -> str:
    """Line-oriented Spine/libGDX text atlas."""
    lines = [
        desc.meta.image,
        f"size: {desc.meta.size[0]},{desc.meta.size[1]}",
        f"format: {desc.meta.format}",
        "filter: Linear,Linear",
        "repeat: none",
        "",
    ]
    for name, frame in desc.frames.items():
        box = frame.frame
        lines += [
            name,
            f"  rotate: {str(frame.rotated).lower()}",
            f"  xy: {box.x}, {box.y}",
            f"  size: {box.width}, {box.height}",
            f"  orig: {frame.source_size[0]}, {frame.source_size[1]}",
            "  offset: 0, 0",
            "  index: -1",
            "",
        ]
    return "\n".join(lines)


def export_descriptor(desc: AtlasDescriptor, fmt: ExportFormat | str = ExportFormat.TEXTUREPACKER) -> str:
    """
    Serialize a descriptor in one of the export dialects.

    Args:
        desc: Descriptor to export
        fmt: Export dialect (enum member or its value, e.g. "pixi")

    Returns:
        JSON text for the TexturePacker and PixiJS dialects, atlas text for Spine
    """
    fmt = ExportFormat(fmt)
    if fmt is ExportFormat.SPINE:
        return to_spine(desc)
    doc = to_texturepacker(desc) if fmt is ExportFormat.TEXTUREPACKER else to_pixi(desc)
    return json.dumps(doc, indent=2)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_atlas(doc: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Check a TexturePacker or PixiJS document for structural problems.

    Returns:
        Tuple of (valid, list of error messages)
    """
    if not isinstance(doc, dict):
        return False, [f"Document must be an object, got {type(doc).__name__}"]

    errors = []
    meta = doc.get("meta") or {}
    if not isinstance(meta, dict):
        errors.append("meta must be an object")
        meta = {}

    if not meta.get("image"):
        errors.append("Missing meta.image")
    size = meta.get("size")
    if not size:
        errors.append("Missing meta.size")
    elif not isinstance(size, dict) or not all(_is_number(size.get(k)) for k in ("w", "h")):
        errors.append("meta.size must have numeric w and h")

    frames = doc.get("frames")
    if frames is None:
        errors.append("Missing frames object")
        frames = {}
    elif not isinstance(frames, dict):
        errors.append(f"frames must be an object, got {type(frames).__name__}")
        frames = {}

    for name, frame in frames.items():
        bounds = frame.get("frame") if isinstance(frame, dict) else None
        if not bounds:
            errors.append(f"Frame {name} missing bounds data")
            continue
        if not isinstance(bounds, dict):
            errors.append(f"Frame {name} bounds must be an object")
            continue
        if not all(_is_number(bounds.get(k)) for k in ("x", "y", "w", "h")):
            errors.append(f"Frame {name} needs numeric x, y, w and h")
            continue
        if bounds["x"] < 0 or bounds["y"] < 0:
            errors.append(f"Frame {name} has negative coordinates")

    return len(errors) == 0, errors


def _parse_texturepacker(doc: dict[str, Any]) -> AtlasDescriptor:
    frames = {}
    for name, data in doc["frames"].items():
        bounds = data["frame"]
        source = data.get("sourceSize", {"w": bounds["w"], "h": bounds["h"]})
        pivot = data.get("pivot", {"x": 0.5, "y": 0.5})
        frames[name] = AtlasFrame(
            name=name,
            frame=BoundingBox(bounds["x"], bounds["y"], bounds["w"], bounds["h"]),
            source_size=(source["w"], source["h"]),
            pivot=(pivot["x"], pivot["y"]),
            rotated=data.get("rotated", False),
            trimmed=data.get("trimmed", False)
        )

    meta = doc["meta"]
    animations = doc.get("animations")
    return AtlasDescriptor(
        frames=frames,
        meta=AtlasMeta(
            image=meta["image"],
            size=(meta["size"]["w"], meta["size"]["h"]),
            timestamp=meta.get("smartupdate", ""),
            format=meta.get("format", DEFAULT_FORMAT),
            app=meta.get("app", APP_NAME),
            version=meta.get("version", DESCRIPTOR_VERSION),
            scale=meta.get("scale", "1")
        ),
        animations={k: tuple(v) for k, v in animations.items()} if animations else None
    )


def descriptor_from_texturepacker(doc: dict[str, Any]) -> AtlasDescriptor:
    """
    Parse a TexturePacker document produced by to_texturepacker.

    Raises:
        AtlasError: If the document fails validation or an optional entry
                    (sourceSize, pivot, animations) is malformed
    """
    valid, errors = validate_atlas(doc)
    if not valid:
        raise AtlasError("invalid atlas document: " + "; ".join(errors))

    try:
        return _parse_texturepacker(doc)
    except (KeyError, TypeError, AttributeError) as e:
        raise AtlasError(f"malformed atlas document: {e!r}") from e
