"""Analysis configuration. Every field is optional."""

from __future__ import annotations

from dataclasses import dataclass, field

from sprite_atlas.classify import ClassifierThresholds
from sprite_atlas.errors import ConfigurationError
from sprite_atlas.models import SeparationMethod
from sprite_atlas.morphology import MorphOp
from sprite_atlas.separation import SeparationOptions
from sprite_atlas.structuring import KernelShape, StructuringElement


@dataclass(frozen=True)
class AnalysisConfig:
    """Controls binarization, filtering, separation and classification."""

    # Binarization
    alpha_threshold: int = 30  # opacity must exceed this to be foreground

    # Region size bounds (pixel counts)
    min_sprite_size: int = 50
    max_sprite_size: int | None = None  # None = whole image area
    max_sprites: int = 20  # largest regions are kept when exceeded

    # Morphology
    merge_distance: int = 2  # gap in pixels the default kernel bridges
    structuring_element: StructuringElement | None = None  # None = ellipse from merge_distance
    operations: tuple[MorphOp, ...] = (MorphOp.OPEN, MorphOp.CLOSE)
    iterations: int = 1

    # Separation
    separation_method: SeparationMethod = SeparationMethod.CONNECTED_COMPONENTS
    separation_options: SeparationOptions = field(default_factory=SeparationOptions)
    expected_count: int | None = None  # only used for the confidence score

    # Classification
    classifier: ClassifierThresholds = field(default_factory=ClassifierThresholds)

    @property
    def element(self) -> StructuringElement:
        if self.structuring_element is not None:
            return self.structuring_element
        return StructuringElement.from_merge_distance(self.merge_distance, KernelShape.ELLIPSE)

    def size_bounds(self, image_area: int) -> tuple[int, int]:
        """Effective (min, max) region pixel counts for an image."""
        max_size = image_area if self.max_sprite_size is None else self.max_sprite_size
        return self.min_sprite_size, max_size

    def validate(self) -> None:
        """
        Reject invalid values before any pixel is processed.

        Raises:
            ConfigurationError: On the first invalid value found
        """
        if not 0 <= self.alpha_threshold <= 255:
            raise ConfigurationError(f"alpha_threshold must be in 0-255, got {self.alpha_threshold}")
        if self.min_sprite_size < 0:
            raise ConfigurationError(f"min_sprite_size must not be negative, got {self.min_sprite_size}")

        if self.max_sprite_size is not None and self.min_sprite_size > self.max_sprite_size:
            raise ConfigurationError(
                f"min_sprite_size ({self.min_sprite_size}) must not exceed "
                f"max_sprite_size ({self.max_sprite_size})")

        if self.max_sprites <= 0:
            raise ConfigurationError(f"max_sprites must be positive, got {self.max_sprites}")
        if self.iterations <= 0:
            raise ConfigurationError(f"iterations must be positive, got {self.iterations}")
        if not 0.0 < self.separation_options.distance_ratio < 1.0:
            raise ConfigurationError(
                f"distance_ratio must be in (0, 1), got {self.separation_options.distance_ratio}")
        if self.separation_options.peak_window <= 0 or self.separation_options.profile_window <= 0:
            raise ConfigurationError("separation windows must be positive")

        # Builds (and so validates) the structuring element
        _ = self.element
