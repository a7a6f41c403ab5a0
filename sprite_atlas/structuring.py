"""
Structuring elements (kernels) for morphological filtering.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from sprite_atlas.errors import ConfigurationError


class KernelShape(Enum):
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    CROSS = "cross"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StructuringElement:
    """
    Neighborhood shape used by erosion and dilation.

    Attributes:
        shape: Kernel shape
        size: Side length of the square kernel
        kernel: Explicit 0/1 matrix, required for (and only used by) CUSTOM
    """
    shape: KernelShape = KernelShape.ELLIPSE
    size: int = 3
    kernel: tuple[tuple[int, ...], ...] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.size, bool) or not isinstance(self.size, (int, np.integer)) or self.size <= 0:
            raise ConfigurationError(f"structuring element size must be a positive integer, got {self.size!r}")

        if self.shape is KernelShape.CUSTOM:
            if self.kernel is None:
                raise ConfigurationError("custom structuring element requires an explicit kernel")
            rows = tuple(tuple(int(v) for v in row) for row in self.kernel)
            if len(rows) != self.size or any(len(row) != self.size for row in rows):
                raise ConfigurationError(f"custom kernel must be {self.size}x{self.size}")
            if any(v not in (0, 1) for row in rows for v in row):
                raise ConfigurationError("custom kernel entries must be 0 or 1")
            if not any(v for row in rows for v in row):
                raise ConfigurationError("custom kernel must contain at least one 1")
            object.__setattr__(self, "kernel", rows)

    @classmethod
    def custom(cls, matrix: Sequence[Sequence[int]]) -> StructuringElement:
        """Build a CUSTOM element from a square 0/1 matrix."""
        return cls(KernelShape.CUSTOM, len(matrix), tuple(tuple(row) for row in matrix))

    @classmethod
    def from_merge_distance(cls, merge_distance: int,
                            shape: KernelShape = KernelShape.ELLIPSE) -> StructuringElement:
        """Kernel just wide enough to bridge gaps of merge_distance pixels."""
        if merge_distance < 0:
            raise ConfigurationError(f"merge_distance must not be negative, got {merge_distance}")
        return cls(shape, max(1, 2 * merge_distance - 1))


def make_kernel(element: StructuringElement) -> np.ndarray:
    """
    Build the size x size 0/1 kernel for a structuring element.

    Args:
        element: The structuring element to materialize

    Returns:
        uint8 array of shape (size, size)
    """
    size = element.size

    if element.shape is KernelShape.CUSTOM:
        return np.array(element.kernel, dtype=np.uint8)

    if element.shape is KernelShape.RECTANGLE:
        return np.ones((size, size), dtype=np.uint8)

    center = size // 2
    kernel = np.zeros((size, size), dtype=np.uint8)

    if element.shape is KernelShape.ELLIPSE:
        yy, xx = np.mgrid[0:size, 0:size]
        distance = np.sqrt((xx - center) ** 2 + (yy - center) ** 2)
        kernel[distance <= center] = 1
    else:
        kernel[center, :] = 1
        kernel[:, center] = 1

    return kernel
