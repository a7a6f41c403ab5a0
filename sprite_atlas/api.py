#!/usr/bin/env python3
"""
Public API for the sprite atlas library.

This module runs the whole detection pipeline on one decoded image:
binarize the alpha channel, filter the mask morphologically, separate it into
regions, classify and name the regions, and pack them into an atlas descriptor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from sprite_atlas.alpha_processing import binarize_alpha, extract_alpha
from sprite_atlas.atlas import AtlasDescriptor, build_descriptor
from sprite_atlas.classify import classify_regions
from sprite_atlas.config import AnalysisConfig
from sprite_atlas.errors import InputError
from sprite_atlas.models import ClassifiedSprite, Region, SeparationMethod
from sprite_atlas.morphology import apply_pipeline
from sprite_atlas.region_visualization import plot_projection_profiles, visualize_regions
from sprite_atlas.separation import separate, separation_confidence

logger = logging.getLogger(__name__)


@dataclass
class DebugImage:
    """
    An intermediate image from the pipeline.

    Attributes:
        image: Image data as a numpy array (uint8; mask, BGR or BGRA)
        name: Descriptive name (e.g., "debug_binary_mask")
        metadata: Additional metadata (e.g., number of regions)
    """
    image: np.ndarray
    name: str
    metadata: dict[str, float | int | str] | None = None


@dataclass
class AnalysisResult:
    """
    Outcome of one analysis.

    Attributes:
        descriptor: Atlas descriptor (zero frames when nothing was found)
        sprites: Classified sprites in reading order, one per frame
        success: False when no sprite survived filtering
        message: Human readable summary or diagnostic
        confidence: Informational separation quality score in [0, 1]
        applied_operations: Morphological steps, e.g. ["open(1)", "close(1)"]
        discarded: Candidate regions dropped for their size or the sprite limit
        debug_images: Intermediate images, only filled when debug=True
    """
    descriptor: AtlasDescriptor
    sprites: list[ClassifiedSprite]
    success: bool
    message: str
    confidence: float
    applied_operations: list[str]
    discarded: int
    debug_images: list[DebugImage] = field(default_factory=list)


def _validate_image(image: np.ndarray | None) -> None:
    if image is None:
        raise InputError("image cannot be None")

    if not isinstance(image, np.ndarray):
        raise InputError(f"image must be a numpy array, got {type(image)}")

    if image.ndim != 3:
        raise InputError(f"image must be 3D array (height, width, channels), got shape {image.shape}")

    if image.shape[2] not in (3, 4):
        raise InputError(f"image must have 3 (BGR) or 4 (BGRA) channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        raise InputError(f"image must be uint8, got {image.dtype}")

    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InputError(f"image must have non-zero width and height, got shape {image.shape}")


def _limit_regions(regions: Sequence[Region], max_sprites: int) -> list[Region]:
    """Keep the max_sprites largest regions, preserving their order."""
    if len(regions) <= max_sprites:
        return list(regions)
    largest = sorted(regions, key=lambda r: (-r.pixel_count, r.id))[:max_sprites]
    return sorted(largest, key=lambda r: r.id)


def analyze_spritesheet(
    image: np.ndarray | None,
    config: AnalysisConfig | None = None,
    *,
    image_name: str = "atlas.png",
    expected_symbols: str | Sequence[str] | None = None,
    timestamp: str | None = None,
    debug: bool = False
) -> AnalysisResult:
    """
    Detect, classify and pack the sprites of one image.

    Args:
        image: Input image as numpy array in BGR or BGRA format (uint8).
               Must be 3D array with shape (height, width, 3) or (height, width, 4).
               BGR images are treated as fully opaque.
        config: Analysis configuration, defaults to AnalysisConfig()
        image_name: Reference to the source image stored in the descriptor
        expected_symbols: Known symbol sequence (e.g. the word "SCATTER") used
                          to name text sprites in reading order
        timestamp: Descriptor generation time (ISO 8601). When omitted the
                   current UTC time is used, so repeated runs differ in
                   descriptor.meta.timestamp; pass a fixed value for
                   identical descriptors
        debug: If True, attach intermediate images to the result

    Returns:
        AnalysisResult. Finding nothing is not an error: success is False and
        the descriptor has zero frames.

    Raises:
        InputError: If image is None or has invalid shape/dtype/size.
        ConfigurationError: If the configuration is invalid.

    Example:
        >>> import cv2
        >>> from sprite_atlas import analyze_spritesheet, export_descriptor
        >>>
        >>> img = cv2.imread("symbol.png", cv2.IMREAD_UNCHANGED)
        >>> result = analyze_spritesheet(img, expected_symbols="SCATTER")
        >>> if result.success:
        >>>     print(export_descriptor(result.descriptor, "pixi"))
    """
    _validate_image(image)
    assert image is not None

    config = config or AnalysisConfig()
    config.validate()

    height, width = int(image.shape[0]), int(image.shape[1])
    image_size = (width, height)
    debug_images: list[DebugImage] = []

    # Binarize the alpha channel and clean it up
    mask = binarize_alpha(extract_alpha(image), config.alpha_threshold)
    filtered, applied = apply_pipeline(mask, config.operations, config.element, config.iterations)
    logger.debug("Mask: %d foreground pixel(s), %d after %s",
                 mask.foreground_count, filtered.foreground_count, ", ".join(applied) or "no filtering")

    if debug:
        debug_images.append(DebugImage(mask.data.copy(), "debug_binary_mask",
                                       {"foreground": mask.foreground_count}))
        debug_images.append(DebugImage(filtered.data.copy(), "debug_filtered_mask",
                                       {"foreground": filtered.foreground_count}))
        if config.separation_method is SeparationMethod.PROJECTION:
            debug_images.append(DebugImage(
                plot_projection_profiles(filtered, config.separation_options.profile_window),
                "debug_projection_profiles"))

    # Separate the mask into regions
    min_size, max_size = config.size_bounds(width * height)
    separation = separate(filtered, config.separation_method, min_size, max_size,
                          config.separation_options)
    regions = _limit_regions(separation.regions, config.max_sprites)
    dropped = len(separation.regions) - len(regions)
    if dropped:
        logger.info("Keeping the %d largest of %d regions", len(regions), len(separation.regions))
    confidence = separation_confidence(separation, config.expected_count)

    # Classify, name and pack
    sprites = classify_regions(regions, image_size, config.classifier, expected_symbols)
    descriptor = build_descriptor(sprites, image_size, image_name, timestamp)

    if debug:
        debug_images.append(DebugImage(visualize_regions(image, sprites), "debug_regions",
                                       {"num_sprites": len(sprites)}))

    if sprites:
        success = True
        message = (f"Detected {len(sprites)} sprite(s) with "
                   f"{config.separation_method.value} separation")
    elif filtered.foreground_count == 0:
        success = False
        message = f"No foreground pixels with opacity above {config.alpha_threshold}"
    else:
        success = False
        message = (f"No region within the size bounds [{min_size}, {max_size}] "
                   f"({separation.discarded} candidate(s) discarded)")

    if success:
        logger.info(message)
    else:
        logger.warning(message)

    return AnalysisResult(
        descriptor=descriptor,
        sprites=sprites,
        success=success,
        message=message,
        confidence=confidence,
        applied_operations=applied,
        discarded=separation.discarded + dropped,
        debug_images=debug_images
    )
