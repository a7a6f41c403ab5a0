"""
Morphological filtering of binary masks.

Grayscale morphology over the mask intensities. Pixels outside the image are
treated as background for erosion and contribute nothing to dilation. Every
function returns a new mask of the same dimensions; there is no failure mode,
only over- or under-aggressive results depending on kernel and iterations.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Sequence

import cv2
import numpy as np

from sprite_atlas.errors import ConfigurationError
from sprite_atlas.models import BinaryMask
from sprite_atlas.structuring import StructuringElement, make_kernel

logger = logging.getLogger(__name__)


class MorphOp(Enum):
    ERODE = "erode"
    DILATE = "dilate"
    OPEN = "open"
    CLOSE = "close"
    GRADIENT = "gradient"
    TOPHAT = "tophat"
    BLACKHAT = "blackhat"


def _erode(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return cv2.erode(data, kernel, borderType=cv2.BORDER_CONSTANT, borderValue=0)


def _dilate(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return cv2.dilate(data, kernel, borderType=cv2.BORDER_CONSTANT, borderValue=0)


def _open(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return _dilate(_erode(data, kernel), kernel)


def _close(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return _erode(_dilate(data, kernel), kernel)


def _gradient(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    # uint8 subtraction in OpenCV saturates at 0
    return cv2.subtract(_dilate(data, kernel), _erode(data, kernel))


def _tophat(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return cv2.subtract(data, _open(data, kernel))


def _blackhat(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return cv2.subtract(_close(data, kernel), data)


_OPERATIONS: dict[MorphOp, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    MorphOp.ERODE: _erode,
    MorphOp.DILATE: _dilate,
    MorphOp.OPEN: _open,
    MorphOp.CLOSE: _close,
    MorphOp.GRADIENT: _gradient,
    MorphOp.TOPHAT: _tophat,
    MorphOp.BLACKHAT: _blackhat,
}


def erode(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    """Minimum over the kernel-covered neighborhood."""
    return BinaryMask(_erode(mask.data, make_kernel(element)))


def dilate(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    """Maximum over the kernel-covered neighborhood."""
    return BinaryMask(_dilate(mask.data, make_kernel(element)))


def open_mask(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    """Erosion followed by dilation; removes specks smaller than the kernel."""
    return BinaryMask(_open(mask.data, make_kernel(element)))


def close_mask(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    """Dilation followed by erosion; fills holes and gaps smaller than the kernel."""
    return BinaryMask(_close(mask.data, make_kernel(element)))


def gradient(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    return BinaryMask(_gradient(mask.data, make_kernel(element)))


def tophat(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    return BinaryMask(_tophat(mask.data, make_kernel(element)))


def blackhat(mask: BinaryMask, element: StructuringElement) -> BinaryMask:
    return BinaryMask(_blackhat(mask.data, make_kernel(element)))


def apply_operation(
    mask: BinaryMask,
    operation: MorphOp,
    element: StructuringElement,
    iterations: int = 1
) -> BinaryMask:
    """
    Apply one morphological operation a number of times.

    Iterations compose sequentially: open with iterations=2 is
    open(open(mask)), not an opening with a larger kernel.

    Args:
        mask: Input mask
        operation: Operation to apply
        element: Structuring element for every pass
        iterations: Number of passes (must be positive)

    Returns:
        New filtered mask
    """
    if iterations <= 0:
        raise ConfigurationError(f"iterations must be positive, got {iterations}")

    kernel = make_kernel(element)
    func = _OPERATIONS[operation]

    data = mask.data
    for _ in range(iterations):
        data = func(data, kernel)

    logger.debug("Applied %s with %d iteration(s)", operation.value, iterations)
    return BinaryMask(data)


def apply_pipeline(
    mask: BinaryMask,
    operations: Sequence[MorphOp],
    element: StructuringElement,
    iterations: int = 1
) -> tuple[BinaryMask, list[str]]:
    """
    Apply an ordered sequence of morphological operations.

    Returns:
        Tuple of (filtered mask, list of applied steps such as "open(1)")
    """
    applied = []
    for operation in operations:
        mask = apply_operation(mask, operation, element, iterations)
        applied.append(f"{operation.value}({iterations})")
    return mask, applied
