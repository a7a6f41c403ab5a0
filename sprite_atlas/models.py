"""
Value types shared by the pipeline stages.

Every stage returns fresh instances of these types; none of them is modified
after construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class SeparationMethod(Enum):
    """Strategy used to split a mask into candidate regions."""
    CONNECTED_COMPONENTS = "connected_components"
    WATERSHED = "watershed"
    DISTANCE_TRANSFORM = "distance_transform"
    PROJECTION = "projection"


class SpriteType(Enum):
    TEXT = "text"
    CHARACTER = "character"
    OBJECT = "object"
    EFFECT = "effect"


class AnimationPotential(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, eq=False)
class BinaryMask:
    """
    Per-pixel foreground/background intensities of one image.

    Attributes:
        data: uint8 array of shape (height, width). Binarized masks hold only
              0 and 255; morphology results may hold any uint8 value.
    """
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.data.ndim != 2:
            raise ValueError(f"mask must be 2D (height, width), got shape {self.data.shape}")
        if self.data.dtype != np.uint8:
            object.__setattr__(self, "data", self.data.astype(np.uint8))

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def foreground(self) -> np.ndarray:
        """Boolean view of the pixels that count as foreground."""
        return self.data > 128

    @property
    def foreground_count(self) -> int:
        return int(np.count_nonzero(self.foreground))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BinaryMask):
            return NotImplemented
        return np.array_equal(self.data, other.data)

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned pixel rectangle. x2 and y2 are exclusive."""
    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def from_pixels(cls, pixels: np.ndarray) -> BoundingBox:
        """Tight box around an (N, 2) array of (x, y) coordinates."""
        xs = pixels[:, 0]
        ys = pixels[:, 1]
        x1, y1 = int(xs.min()), int(ys.min())
        return cls(x1, y1, int(xs.max()) - x1 + 1, int(ys.max()) - y1 + 1)

    def within(self, width: int, height: int) -> bool:
        return 0 <= self.x and 0 <= self.y and self.x2 <= width and self.y2 <= height


@dataclass(frozen=True)
class PercentBox:
    """Bounding box expressed as percentages (0-100) of the image size."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, eq=False)
class Region:
    """
    A candidate sprite found by a separation strategy.

    Attributes:
        id: Sequence number within one separation run
        pixels: (N, 2) int array of (x, y) coordinates in raster order
        bbox: Tight bounding box of the pixels
        method: Strategy that produced the region
        confidence: Strategy-specific confidence in [0, 1]
    """
    id: int
    pixels: np.ndarray
    bbox: BoundingBox
    method: SeparationMethod
    confidence: float

    @property
    def pixel_count(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def density(self) -> float:
        return self.pixel_count / self.bbox.area

    @property
    def aspect_ratio(self) -> float:
        return self.bbox.width / self.bbox.height


@dataclass(frozen=True, eq=False)
class ClassifiedSprite:
    """A region with its semantic type, unique name and layout hints."""
    region: Region
    sprite_type: SpriteType
    name: str
    z_index: int
    animation_potential: AnimationPotential
    description: str
    percent_bounds: PercentBox

    @property
    def bbox(self) -> BoundingBox:
        return self.region.bbox

    @property
    def pixel_count(self) -> int:
        return self.region.pixel_count
