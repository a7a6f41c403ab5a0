"""
Tests for the region separation strategies and their quality score.
"""

import math

import numpy as np
import pytest

from sprite_atlas.models import BinaryMask, BoundingBox, SeparationMethod
from sprite_atlas.separation import (
    SeparationOptions,
    SeparationResult,
    connected_components,
    distance_transform,
    distance_transform_separation,
    find_local_maxima,
    find_projection_cuts,
    projection_separation,
    separate,
    separation_confidence,
    _SEPARATORS,
    smooth_profile,
    watershed_separation,
)

from images import make_region


def _mask(height: int, width: int, rects=()) -> BinaryMask:
    data = np.zeros((height, width), dtype=np.uint8)
    for x, y, w, h in rects:
        data[y:y + h, x:x + w] = 255
    return BinaryMask(data)


def _grid_mask() -> BinaryMask:
    """Four 10x10 blocks in a 2x2 grid."""
    return _mask(40, 60, [(5, 5, 10, 10), (30, 5, 10, 10), (5, 25, 10, 10), (30, 25, 10, 10)])


def test_bounding_box_from_pixels():
    pixels = np.array([[3, 4], [7, 2], [5, 9]])

    box = BoundingBox.from_pixels(pixels)

    assert box == BoundingBox(3, 2, 5, 8)
    assert (box.x2, box.y2) == (8, 10), "x2 and y2 are exclusive"
    assert box.within(8, 10)
    assert not box.within(7, 10)


def test_connected_components_basic():
    mask = _mask(20, 30, [(2, 2, 5, 5), (15, 3, 4, 4)])

    result = connected_components(mask)

    assert len(result.regions) == 2
    assert result.discarded == 0
    assert [r.bbox for r in result.regions] == [BoundingBox(2, 2, 5, 5), BoundingBox(15, 3, 4, 4)]
    assert [r.id for r in result.regions] == [0, 1]
    assert all(r.method is SeparationMethod.CONNECTED_COMPONENTS for r in result.regions)
    assert result.regions[0].pixel_count == 25
    assert result.regions[0].density == 1.0


def test_connected_components_is_four_connected():
    """Diagonal neighbours do not join regions."""
    mask = _mask(4, 4, [(0, 0, 1, 1), (1, 1, 1, 1)])

    assert len(connected_components(mask).regions) == 2


def test_regions_are_disjoint_and_inside_mask():
    mask = _grid_mask()

    for method in SeparationMethod:
        result = separate(mask, method)
        seen = set()
        for region in result.regions:
            coords = {tuple(p) for p in region.pixels.tolist()}
            assert not coords & seen, f"{method.value}: regions overlap"
            seen |= coords
            for x, y in coords:
                assert mask.foreground[y, x], f"{method.value}: region pixel outside the mask"
            assert region.bbox.within(mask.width, mask.height)


def test_size_filter_discards_and_counts():
    mask = _mask(20, 40, [(1, 1, 2, 2), (10, 1, 5, 5), (20, 1, 10, 10)])

    result = connected_components(mask, min_size=5, max_size=50)

    assert [r.pixel_count for r in result.regions] == [25]
    assert result.discarded == 2
    assert result.candidates == 3


def test_empty_mask_gives_no_regions():
    mask = _mask(10, 10)

    for method in SeparationMethod:
        result = separate(mask, method)
        assert result.regions == ()
        assert result.discarded == 0
        assert separation_confidence(result) == 0.0


def test_distance_transform_values():
    mask = _mask(9, 9, [(2, 2, 5, 5)])

    dist = distance_transform(mask)

    assert dist.shape == (9, 9)
    assert dist.dtype == np.float64
    assert dist[0, 0] == 0.0, "Background is zero"
    assert dist[2, 2] == pytest.approx(1.0), "Corner pixel touches background"
    assert dist[4, 4] == pytest.approx(3.0), "Center is three steps from background"


def test_distance_transform_border_counts_as_background():
    full = BinaryMask(np.full((5, 5), 255, dtype=np.uint8))

    dist = distance_transform(full)

    assert dist[0, 0] == pytest.approx(1.0)
    assert dist[2, 2] == pytest.approx(3.0)


def test_distance_transform_diagonal_cost():
    data = np.full((11, 11), 255, dtype=np.uint8)
    data[5, 5] = 0

    dist = distance_transform(BinaryMask(data))

    assert dist[5, 6] == pytest.approx(1.0)
    assert dist[6, 6] == pytest.approx(math.sqrt(2))


def test_find_local_maxima_one_seed_per_disc(necked_mask):
    seeds = find_local_maxima(distance_transform(necked_mask))

    assert len(seeds) == 2, "Each disc plateau collapses into one seed"
    xs = sorted(x for x, _y, _v in seeds)
    assert xs[0] < 32 < 43 < xs[1], "One seed in each disc"
    assert all(v >= 2.0 for _x, _y, v in seeds)


def test_find_local_maxima_ignores_thin_shapes():
    mask = _mask(10, 20, [(2, 4, 15, 2)])

    assert find_local_maxima(distance_transform(mask)) == [], "Two pixel wide bars are too thin"


def test_watershed_splits_neck(necked_mask):
    components = connected_components(necked_mask)
    watershed = watershed_separation(necked_mask)

    assert len(components.regions) == 1, "The neck joins the discs"
    assert len(watershed.regions) == 2, "Watershed splits at the neck"
    assert sum(r.pixel_count for r in watershed.regions) == necked_mask.foreground_count
    assert all(r.confidence == 0.8 for r in watershed.regions)


def test_watershed_keeps_unseeded_components():
    """Shapes too thin to hold a seed still become regions."""
    data = np.zeros((40, 60), dtype=np.uint8)
    data[5:25, 5:25] = 255
    data[30, 40:55] = 255

    result = watershed_separation(BinaryMask(data))

    assert len(result.regions) == 2
    assert sorted(r.pixel_count for r in result.regions) == [15, 400]


def test_distance_transform_separation_keeps_cores(necked_mask):
    result = distance_transform_separation(necked_mask)

    assert len(result.regions) == 2, "Cores of the two discs are separate"
    for region in result.regions:
        assert region.pixel_count < necked_mask.foreground_count / 2, "Regions cover only the cores"
        assert region.method is SeparationMethod.DISTANCE_TRANSFORM


def test_distance_ratio_option(necked_mask):
    loose = distance_transform_separation(necked_mask, options=SeparationOptions(distance_ratio=0.2))
    tight = distance_transform_separation(necked_mask, options=SeparationOptions(distance_ratio=0.9))

    assert sum(r.pixel_count for r in loose.regions) > sum(r.pixel_count for r in tight.regions)


def test_smooth_profile_ends_average_existing_entries():
    smoothed = smooth_profile(np.array([3, 0, 0]))

    assert smoothed.tolist() == pytest.approx([1.5, 1.0, 0.0])


def test_smooth_profile_shorter_than_window():
    assert smooth_profile(np.array([4, 2]), window=3).tolist() == [4.0, 2.0]


def test_find_projection_cuts():
    profile = np.array([0, 0, 0, 5, 5, 0, 0, 0, 0, 5, 5, 0, 0])

    assert find_projection_cuts(profile) == [1, 6], "Runs collapse to their midpoint, ends excluded"


def test_find_projection_cuts_without_gaps():
    assert find_projection_cuts(np.array([1, 2, 3, 2, 1])) == []


def test_projection_separation_grid():
    mask = _grid_mask()

    result = projection_separation(mask)

    assert [r.bbox for r in result.regions] == [
        BoundingBox(5, 5, 10, 10),
        BoundingBox(30, 5, 10, 10),
        BoundingBox(5, 25, 10, 10),
        BoundingBox(30, 25, 10, 10),
    ], "Each grid cell gives one tightly bounded region"
    assert all(r.confidence == 0.6 for r in result.regions)


def test_projection_merges_blobs_sharing_a_cell():
    """Blobs with no empty row or column between them end up in one region."""
    mask = _mask(30, 30, [(5, 5, 8, 8), (14, 14, 8, 8)])

    assert len(connected_components(mask).regions) == 2
    assert len(projection_separation(mask).regions) == 1


def test_separate_dispatches_by_method():
    mask = _grid_mask()

    for method in SeparationMethod:
        result = separate(mask, method)
        assert result.method is method
        assert all(r.method is method for r in result.regions)


def test_confidence_perfect_match():
    result = SeparationResult(
        tuple(make_region(i * 20, 0, 10, 10, 100, i) for i in range(4)), 0,
        SeparationMethod.CONNECTED_COMPONENTS)

    assert separation_confidence(result, expected_count=4) == pytest.approx(1.0)
    assert separation_confidence(result) == pytest.approx(1.0), "Equal sizes are perfectly uniform"


def test_confidence_penalties():
    uniform = tuple(make_region(i * 20, 0, 10, 10, 100, i) for i in range(4))
    method = SeparationMethod.CONNECTED_COMPONENTS

    wrong_count = SeparationResult(uniform, 0, method)
    assert separation_confidence(wrong_count, expected_count=2) == pytest.approx(0.5)

    with_discards = SeparationResult(uniform, 4, method)
    assert separation_confidence(with_discards) == pytest.approx(0.5), "Half the candidates were dropped"

    uneven = SeparationResult((make_region(0, 0, 10, 10, 100), make_region(20, 0, 20, 20, 300, 1)), 0, method)
    assert separation_confidence(uneven) == pytest.approx(0.75)


def test_every_method_has_a_separator():
    assert set(_SEPARATORS) == set(SeparationMethod), "Every separation method needs a separator"


def test_watershed_splits_elongated_bars():
    """A long bar has a ridge rather than a single peak, so watershed cuts it into pieces."""
    bar = _mask(20, 100, [(10, 5, 80, 10)])

    assert len(connected_components(bar).regions) == 1
    pieces = watershed_separation(bar)
    assert len(pieces.regions) > 1, "Each inscribed disc along the ridge keeps its own seed"
    assert sum(r.pixel_count for r in pieces.regions) == bar.foreground_count
