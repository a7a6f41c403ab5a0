"""
Tests for coordinate normalization and the atlas descriptor dialects.
"""

import json
from dataclasses import replace

import pytest

from sprite_atlas.atlas import (
    AtlasFrame,
    ExportFormat,
    build_descriptor,
    descriptor_from_texturepacker,
    export_descriptor,
    to_pixi,
    to_spine,
    to_texturepacker,
    validate_atlas,
)
from sprite_atlas.classify import classify_regions
from sprite_atlas.errors import AtlasError
from sprite_atlas.models import BoundingBox, PercentBox
from sprite_atlas.normalize import to_percent, to_pixels, verify_round_trip

from images import make_region

IMAGE_SIZE = (1000, 500)
TIMESTAMP = "2024-01-01T00:00:00+00:00"


def _sprites():
    regions = [
        make_region(100, 50, 50, 60, 2500, 0),
        make_region(200, 50, 50, 60, 2500, 1),
        make_region(300, 300, 150, 150, 15000, 2),
        make_region(10, 450, 20, 20, 300, 3),
    ]
    return classify_regions(regions, IMAGE_SIZE, expected_symbols="OK")


def _descriptor():
    return build_descriptor(_sprites(), IMAGE_SIZE, "symbol.png", TIMESTAMP)


def test_to_percent():
    assert to_percent(BoundingBox(10, 10, 40, 40), (100, 100)) == PercentBox(10.0, 10.0, 40.0, 40.0)
    assert to_percent(BoundingBox(50, 25, 100, 50), (200, 100)) == PercentBox(25.0, 25.0, 50.0, 50.0)


def test_to_percent_clamps():
    percent = to_percent(BoundingBox(150, 0, 10, 10), (100, 100))

    assert percent.x == 100.0


def test_to_pixels_rounds_half_up():
    box = to_pixels(PercentBox(0.5, 2.5, 12.5, 40.0), (100, 100))

    assert box == BoundingBox(1, 3, 13, 40)


@pytest.mark.parametrize("image_size", [(1, 1), (3, 7), (97, 61), (1000, 333), (4096, 4096)])
def test_round_trip_within_one_pixel(image_size):
    width, height = image_size
    for x in range(0, width, max(1, width // 7)):
        for y in range(0, height, max(1, height // 5)):
            bbox = BoundingBox(x, y, width - x, height - y)
            assert verify_round_trip(bbox, image_size), f"Round trip failed for {bbox} in {image_size}"


def test_build_descriptor():
    desc = _descriptor()

    assert list(desc.frames) == ["o", "k", "character", "effect"]
    assert desc.frames["o"] == AtlasFrame("o", BoundingBox(100, 50, 50, 60), (50, 60))
    assert desc.meta.image == "symbol.png"
    assert desc.meta.size == IMAGE_SIZE
    assert desc.meta.timestamp == TIMESTAMP
    assert desc.animations == {"letters": ("o", "k"), "character": ("character",)}


def test_build_descriptor_without_animations():
    desc = build_descriptor(_sprites(), IMAGE_SIZE, timestamp=TIMESTAMP, group_animations=False)

    assert desc.animations is None
    assert "animations" not in to_texturepacker(desc)


def test_build_descriptor_default_timestamp():
    desc = build_descriptor([], IMAGE_SIZE)

    assert desc.frames == {}
    assert desc.meta.timestamp, "A generation time is always recorded"


def test_duplicate_names_rejected():
    sprites = _sprites()
    sprites[1] = replace(sprites[1], name=sprites[0].name)

    with pytest.raises(AtlasError, match="duplicate"):
        build_descriptor(sprites, IMAGE_SIZE, timestamp=TIMESTAMP)


def test_out_of_image_sprite_rejected():
    sprite = classify_regions([make_region(1500, 10, 20, 20, 300)], IMAGE_SIZE)[0]

    with pytest.raises(AtlasError, match="round trip"):
        build_descriptor([sprite], IMAGE_SIZE, timestamp=TIMESTAMP)


def test_dialects_agree_on_frames():
    desc = _descriptor()

    tp = to_texturepacker(desc)
    pixi = to_pixi(desc)
    spine = to_spine(desc)

    assert tp["frames"] == pixi["frames"], "JSON dialects share the frame data"
    assert tp["frames"]["k"]["frame"] == {"x": 200, "y": 50, "w": 50, "h": 60}
    assert tp["frames"]["k"]["pivot"] == {"x": 0.5, "y": 0.5}
    assert "k\n  rotate: false\n  xy: 200, 50\n  size: 50, 60\n" in spine


def test_texturepacker_meta():
    meta = to_texturepacker(_descriptor())["meta"]

    assert meta["image"] == "symbol.png"
    assert meta["size"] == {"w": 1000, "h": 500}
    assert meta["format"] == "RGBA8888"
    assert meta["smartupdate"] == TIMESTAMP


def test_pixi_meta_is_minimal():
    assert set(to_pixi(_descriptor())["meta"]) == {"image", "size", "scale"}


def test_spine_header():
    lines = to_spine(_descriptor()).splitlines()

    assert lines[:3] == ["symbol.png", "size: 1000,500", "format: RGBA8888"]


def test_export_descriptor():
    desc = _descriptor()

    doc = json.loads(export_descriptor(desc))
    assert doc == to_texturepacker(desc)

    assert json.loads(export_descriptor(desc, "pixi")) == to_pixi(desc)
    assert export_descriptor(desc, ExportFormat.SPINE) == to_spine(desc)

    with pytest.raises(ValueError):
        export_descriptor(desc, "xml")


def test_texturepacker_round_trip():
    desc = _descriptor()

    doc = json.loads(export_descriptor(desc, ExportFormat.TEXTUREPACKER))

    assert descriptor_from_texturepacker(doc) == desc


def test_validate_atlas():
    valid, errors = validate_atlas(to_texturepacker(_descriptor()))
    assert valid
    assert errors == []

    doc = {"frames": {"a": {"frame": {"x": -1, "y": 0, "w": 2, "h": 2}}, "b": {}}, "meta": {}}
    valid, errors = validate_atlas(doc)
    assert not valid
    assert "Missing meta.image" in errors
    assert "Missing meta.size" in errors
    assert "Frame a has negative coordinates" in errors
    assert "Frame b missing bounds data" in errors


def test_validate_atlas_missing_frames():
    valid, errors = validate_atlas({"meta": {"image": "a.png", "size": {"w": 1, "h": 1}}})

    assert not valid
    assert errors == ["Missing frames object"]


def test_parse_invalid_document():
    with pytest.raises(AtlasError, match="invalid atlas"):
        descriptor_from_texturepacker({"frames": {}, "meta": {}})


@pytest.mark.parametrize("doc, message", [
    ({"frames": [], "meta": {"image": "a.png", "size": {"w": 1, "h": 1}}}, "frames must be an object, got list"),
    ({"frames": {"a": {"frame": {"x": "1", "y": 0, "w": 2, "h": 2}}},
      "meta": {"image": "a.png", "size": {"w": 4, "h": 4}}}, "Frame a needs numeric x, y, w and h"),
    ({"frames": {"a": {"frame": {"x": 0, "y": 0}}},
      "meta": {"image": "a.png", "size": {"w": 4, "h": 4}}}, "Frame a needs numeric x, y, w and h"),
    ({"frames": {"a": {"frame": [0, 0, 2, 2]}},
      "meta": {"image": "a.png", "size": {"w": 4, "h": 4}}}, "Frame a bounds must be an object"),
    ({"frames": {"a": "0,0,2,2"}, "meta": {"image": "a.png", "size": {"w": 4, "h": 4}}},
     "Frame a missing bounds data"),
    ({"frames": {}, "meta": {"image": "a.png", "size": "4x4"}}, "meta.size must have numeric w and h"),
    ({"frames": {}, "meta": ["a.png"]}, "meta must be an object"),
])
def test_validate_atlas_malformed_documents(doc, message):
    """Structurally malformed documents are reported, never raised."""
    valid, errors = validate_atlas(doc)

    assert not valid
    assert message in errors

    with pytest.raises(AtlasError, match="invalid atlas"):
        descriptor_from_texturepacker(doc)


def test_validate_atlas_rejects_non_object():
    assert validate_atlas([]) == (False, ["Document must be an object, got list"])


def test_parse_malformed_optional_entries():
    doc = to_texturepacker(_descriptor())
    doc["frames"]["o"]["sourceSize"] = "50x60"

    with pytest.raises(AtlasError, match="malformed"):
        descriptor_from_texturepacker(doc)
