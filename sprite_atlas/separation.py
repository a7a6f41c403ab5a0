"""
Functions for separating a binary mask into candidate sprite regions.

Four interchangeable strategies share one contract: a mask plus size bounds
in, a SeparationResult out. Regions whose pixel count falls outside the
bounds are dropped and counted, never raised.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Callable

import cv2
import numpy as np
from scipy.ndimage import maximum_filter    # type: ignore

from sprite_atlas.models import BinaryMask, BoundingBox, Region, SeparationMethod

logger = logging.getLogger(__name__)

_SQRT2 = math.sqrt(2.0)

# Confidence reported on every region produced by a strategy
_BASE_CONFIDENCE = {
    SeparationMethod.CONNECTED_COMPONENTS: 0.7,
    SeparationMethod.WATERSHED: 0.8,
    SeparationMethod.DISTANCE_TRANSFORM: 0.75,
    SeparationMethod.PROJECTION: 0.6,
}


@dataclass(frozen=True)
class SeparationOptions:
    """
    Tuning knobs for the individual strategies.

    Attributes:
        distance_ratio: Fraction of the maximum distance kept as blob core
                        by the distance transform strategy
        peak_window: Window size for watershed seed detection
        min_seed_distance: Seeds must lie at least this far from background
        profile_window: Moving-average window for projection profiles
    """
    distance_ratio: float = 0.7
    peak_window: int = 3
    min_seed_distance: float = 2.0
    profile_window: int = 3


@dataclass(frozen=True)
class SeparationResult:
    """
    Output of one separation strategy.

    Attributes:
        regions: Regions within the size bounds, ordered by first pixel
        discarded: Number of candidate regions dropped by the size filter
        method: Strategy that produced the regions
    """
    regions: tuple[Region, ...]
    discarded: int
    method: SeparationMethod

    @property
    def candidates(self) -> int:
        return len(self.regions) + self.discarded


def _regions_from_labels(
    labels: np.ndarray,
    method: SeparationMethod,
    min_size: int,
    max_size: int
) -> SeparationResult:
    """
    Group labelled pixels into regions.

    Args:
        labels: int array, 0 for background, any positive value for a region
        method: Strategy recorded on the regions
        min_size: Minimum pixel count of a kept region
        max_size: Maximum pixel count of a kept region

    Returns:
        Regions ordered by the raster position of their first pixel
    """
    ys, xs = np.nonzero(labels)
    if len(ys) == 0:
        return SeparationResult((), 0, method)

    pixel_labels = labels[ys, xs]
    coords = np.stack([xs, ys], axis=1).astype(np.int64)

    # Stable sort keeps raster order inside every label
    order = np.argsort(pixel_labels, kind="stable")
    sorted_labels = pixel_labels[order]
    unique_labels, starts, counts = np.unique(sorted_labels, return_index=True, return_counts=True)

    # Regions are numbered by the raster index of their first pixel
    first_pixel = order[starts]
    region_order = np.argsort(first_pixel, kind="stable")

    regions = []
    discarded = 0
    confidence = _BASE_CONFIDENCE[method]
    for idx in region_order:
        count = int(counts[idx])
        if count < min_size or count > max_size:
            discarded += 1
            continue
        pixels = coords[order[starts[idx]:starts[idx] + count]]
        regions.append(Region(
            id=len(regions),
            pixels=pixels,
            bbox=BoundingBox.from_pixels(pixels),
            method=method,
            confidence=confidence
        ))

    logger.debug("%s: %d region(s) kept, %d discarded by size",
                 method.value, len(regions), discarded)
    return SeparationResult(tuple(regions), discarded, method)


def _label_components(foreground: np.ndarray) -> np.ndarray:
    _num_labels, labels = cv2.connectedComponents(
        foreground.astype(np.uint8), connectivity=4, ltype=cv2.CV_32S)
    return labels


def connected_components(
    mask: BinaryMask,
    min_size: int = 1,
    max_size: int | None = None,
    options: SeparationOptions = SeparationOptions()
) -> SeparationResult:
    """
    Split the mask into maximal 4-connected foreground blobs.

    Args:
        mask: Binary mask to separate
        min_size: Minimum size (in pixels) for a region to be kept
        max_size: Maximum size (in pixels), defaults to the mask area

    Returns:
        SeparationResult with one region per blob
    """
    max_size = mask.width * mask.height if max_size is None else max_size
    labels = _label_components(mask.foreground)
    return _regions_from_labels(labels, SeparationMethod.CONNECTED_COMPONENTS, min_size, max_size)


def distance_transform(mask: BinaryMask) -> np.ndarray:
    """
    Two-pass chamfer approximation of the distance to the nearest background pixel.

    Axis neighbours cost 1 and diagonal neighbours cost sqrt(2). The forward
    pass runs top-left to bottom-right, the backward pass bottom-right to
    top-left. The area outside the image counts as background.

    Returns:
        float64 array of shape (height, width), 0 on background pixels
    """
    h, w = mask.height, mask.width

    # One pixel of background padding on every side
    dist = np.zeros((h + 2, w + 2), dtype=np.float64)
    dist[1:-1, 1:-1] = np.where(mask.foreground, np.inf, 0.0)
    idx = np.arange(w + 2, dtype=np.float64)

    # Forward pass. Neighbours from the previous row are final, so each row is
    # relaxed against them at once; the left neighbour chain becomes a running minimum.
    for y in range(1, h + 1):
        prev = dist[y - 1]
        cand = np.minimum(dist[y], prev + 1.0)
        cand[1:] = np.minimum(cand[1:], prev[:-1] + _SQRT2)
        cand[:-1] = np.minimum(cand[:-1], prev[1:] + _SQRT2)
        dist[y] = np.minimum.accumulate(cand - idx) + idx

    # Backward pass, mirrored
    for y in range(h, 0, -1):
        nxt = dist[y + 1]
        cand = np.minimum(dist[y], nxt + 1.0)
        cand[:-1] = np.minimum(cand[:-1], nxt[1:] + _SQRT2)
        cand[1:] = np.minimum(cand[1:], nxt[:-1] + _SQRT2)
        dist[y] = np.minimum.accumulate((cand + idx)[::-1])[::-1] - idx

    return dist[1:-1, 1:-1].copy()


def distance_transform_separation(
    mask: BinaryMask,
    min_size: int = 1,
    max_size: int | None = None,
    options: SeparationOptions = SeparationOptions()
) -> SeparationResult:
    """
    Keep only blob cores far from any background, then label them.

    Blobs that touch through a neck thinner than the cores fall apart. The
    regions cover only the core pixels, not the whole blobs.
    """
    max_size = mask.width * mask.height if max_size is None else max_size
    dist = distance_transform(mask)
    max_distance = float(dist.max()) if dist.size else 0.0
    if max_distance <= 0.0:
        return SeparationResult((), 0, SeparationMethod.DISTANCE_TRANSFORM)

    core = dist > max_distance * options.distance_ratio
    labels = _label_components(core)
    return _regions_from_labels(labels, SeparationMethod.DISTANCE_TRANSFORM, min_size, max_size)


def find_local_maxima(
    dist: np.ndarray,
    window: int = 3,
    min_value: float = 2.0
) -> list[tuple[int, int, float]]:
    """
    Find watershed seeds in a distance map.

    A candidate is not exceeded by any pixel in the window around it, lies
    at least min_value from background and has its whole window inside the
    image. Candidates are sorted by distance value, strongest first (ties in
    raster order). A candidate inside the inscribed disc of a stronger seed
    is merged into that seed. Round and square plateaus collapse into a
    single seed; an elongated ridge such as a long bar keeps one seed per
    inscribed disc along its length.

    Returns:
        List of (x, y, distance) seeds
    """
    h, w = dist.shape
    radius = window // 2

    neighborhood_max = maximum_filter(dist, size=window, mode="constant", cval=0.0)
    is_max = (dist >= neighborhood_max) & (dist >= min_value)
    if radius > 0:
        is_max[:radius, :] = False
        is_max[max(h - radius, 0):, :] = False
        is_max[:, :radius] = False
        is_max[:, max(w - radius, 0):] = False

    ys, xs = np.nonzero(is_max)
    values = dist[ys, xs]
    order = np.argsort(-values, kind="stable")

    seeds: list[tuple[int, int, float]] = []
    seed_xy = np.empty((0, 2), dtype=np.float64)
    seed_r2 = np.empty(0, dtype=np.float64)
    for i in order:
        x, y, value = int(xs[i]), int(ys[i]), float(values[i])
        if len(seeds):
            d2 = (seed_xy[:, 0] - x) ** 2 + (seed_xy[:, 1] - y) ** 2
            if np.any(d2 < seed_r2):
                continue
        seeds.append((x, y, value))
        seed_xy = np.vstack([seed_xy, [x, y]])
        seed_r2 = np.append(seed_r2, value * value)

    logger.debug("Found %d watershed seed(s) from %d local maxima", len(seeds), len(order))
    return seeds


def _flood_from_seeds(foreground: np.ndarray, seeds: list[tuple[int, int, float]]) -> np.ndarray:
    """Breadth-first growth of every seed over 4-connected foreground; first writer wins."""
    h, w = foreground.shape
    fg = foreground.ravel().tolist()
    labels = [0] * (h * w)

    queue: deque[int] = deque()
    for label, (x, y, _value) in enumerate(seeds, start=1):
        pos = y * w + x
        labels[pos] = label
        queue.append(pos)

    while queue:
        pos = queue.popleft()
        label = labels[pos]
        x = pos % w
        neighbours = []
        if x + 1 < w:
            neighbours.append(pos + 1)
        if x > 0:
            neighbours.append(pos - 1)
        if pos + w < h * w:
            neighbours.append(pos + w)
        if pos >= w:
            neighbours.append(pos - w)
        for n in neighbours:
            if fg[n] and labels[n] == 0:
                labels[n] = label
                queue.append(n)

    return np.array(labels, dtype=np.int32).reshape(h, w)


def watershed_separation(
    mask: BinaryMask,
    min_size: int = 1,
    max_size: int | None = None,
    options: SeparationOptions = SeparationOptions()
) -> SeparationResult:
    """
    Region growing from distance-map peaks.

    Pulls apart blobs that touch through thin necks, which plain connected
    components would report as one region. Foreground components without
    any seed (too thin to produce one) are kept as regions of their own.
    Elongated shapes (bars, tall strokes) are split into several regions.
    """
    max_size = mask.width * mask.height if max_size is None else max_size
    foreground = mask.foreground

    dist = distance_transform(mask)
    seeds = find_local_maxima(dist, options.peak_window, options.min_seed_distance)
    labels = _flood_from_seeds(foreground, seeds)

    unseeded = foreground & (labels == 0)
    if unseeded.any():
        extra = _label_components(unseeded)
        labels = np.where(extra > 0, extra + len(seeds), labels)

    return _regions_from_labels(labels, SeparationMethod.WATERSHED, min_size, max_size)


def smooth_profile(profile: np.ndarray, window: int = 3) -> np.ndarray:
    """Moving average; windows at the ends average over the entries that exist."""
    if len(profile) < window:
        return profile.astype(np.float64)
    kernel = np.ones(window)
    sums = np.convolve(profile.astype(np.float64), kernel, mode="same")
    counts = np.convolve(np.ones(len(profile)), kernel, mode="same")
    return sums / counts


def find_projection_cuts(profile: np.ndarray, window: int = 3) -> list[int]:
    """
    Cut positions of a projection profile.

    A position is a cut candidate when its smoothed value is zero and not
    above either neighbour. Each run of adjacent candidates gives a single
    cut at its midpoint.
    """
    smoothed = smooth_profile(profile, window)
    candidates = [
        i for i in range(1, len(smoothed) - 1)
        if smoothed[i] == 0 and smoothed[i] <= smoothed[i - 1] and smoothed[i] <= smoothed[i + 1]
    ]

    cuts = []
    run_start = None
    for j, pos in enumerate(candidates):
        if run_start is None:
            run_start = pos
        if j + 1 == len(candidates) or candidates[j + 1] != pos + 1:
            cuts.append((run_start + pos) // 2)
            run_start = None
    return cuts


def projection_profiles(mask: BinaryMask) -> tuple[np.ndarray, np.ndarray]:
    """Foreground pixel count per row and per column."""
    foreground = mask.foreground
    return foreground.sum(axis=1), foreground.sum(axis=0)


def projection_separation(
    mask: BinaryMask,
    min_size: int = 1,
    max_size: int | None = None,
    options: SeparationOptions = SeparationOptions()
) -> SeparationResult:
    """
    Split row/column aligned content (such as text) at empty rows and columns.

    The image is partitioned into the grid of cells between consecutive cut
    lines and image edges. The foreground pixels of each cell form one region.
    """
    max_size = mask.width * mask.height if max_size is None else max_size
    foreground = mask.foreground

    row_profile, col_profile = projection_profiles(mask)
    x_edges = [0, *find_projection_cuts(col_profile, options.profile_window), mask.width]
    y_edges = [0, *find_projection_cuts(row_profile, options.profile_window), mask.height]

    labels = np.zeros(foreground.shape, dtype=np.int32)
    label = 0
    for y1, y2 in zip(y_edges, y_edges[1:]):
        for x1, x2 in zip(x_edges, x_edges[1:]):
            cell = foreground[y1:y2, x1:x2]
            if not cell.any():
                continue
            label += 1
            labels[y1:y2, x1:x2][cell] = label

    logger.debug("Projection cuts: %d column(s), %d row(s)", len(x_edges) - 2, len(y_edges) - 2)
    return _regions_from_labels(labels, SeparationMethod.PROJECTION, min_size, max_size)


_SEPARATORS: dict[SeparationMethod, Callable[..., SeparationResult]] = {
    SeparationMethod.CONNECTED_COMPONENTS: connected_components,
    SeparationMethod.WATERSHED: watershed_separation,
    SeparationMethod.DISTANCE_TRANSFORM: distance_transform_separation,
    SeparationMethod.PROJECTION: projection_separation,
}

_missing = set(SeparationMethod) - set(_SEPARATORS)
if _missing:
    raise RuntimeError(f"No separator registered for {sorted(m.value for m in _missing)}")


def separate(
    mask: BinaryMask,
    method: SeparationMethod,
    min_size: int = 1,
    max_size: int | None = None,
    options: SeparationOptions = SeparationOptions()
) -> SeparationResult:
    """
    Separate a mask into regions with the given strategy.

    Args:
        mask: Filtered binary mask
        method: Separation strategy
        min_size: Minimum size (in pixels) for a region to be kept
        max_size: Maximum size (in pixels), defaults to the mask area
        options: Strategy tuning knobs

    Returns:
        SeparationResult with the kept regions and the discard count
    """
    separator = _SEPARATORS[method]
    result = separator(mask, min_size, max_size, options)
    logger.info("%s separation found %d region(s)", method.value, len(result.regions))
    return result


def separation_confidence(
    result: SeparationResult,
    expected_count: int | None = None,
    count_weight: float = 0.5
) -> float:
    """
    Informational quality score of a separation, in [0, 1].

    Combines how close the region count is to the expected count with how
    uniform the region sizes are (lower variance scores higher), scaled by
    the fraction of candidate regions that survived the size filter.
    Without an expected count only size uniformity is used.
    """
    regions = result.regions
    if not regions:
        return 0.0

    sizes = np.array([r.pixel_count for r in regions], dtype=np.float64)
    mean = sizes.mean()
    uniformity = max(0.0, 1.0 - float(sizes.var()) / (mean * mean))

    if expected_count:
        count_score = max(0.0, 1.0 - abs(len(regions) - expected_count) / expected_count)
        score = count_weight * count_score + (1.0 - count_weight) * uniformity
    else:
        score = uniformity

    retained = len(regions) / result.candidates
    return float(score * retained)
