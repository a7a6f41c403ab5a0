"""
Functions for turning an image's alpha channel into a binary mask.
"""

import cv2
import numpy as np

from sprite_atlas.models import BinaryMask


def extract_alpha(img: np.ndarray) -> np.ndarray:
    """
    Get the opacity channel of an image.

    Args:
        img: BGRA or BGR image (uint8). BGR images are treated as fully opaque.

    Returns:
        Alpha channel as a (height, width) uint8 array
    """
    if img.shape[2] == 3:
        return np.full(img.shape[:2], 255, dtype=np.uint8)
    return img[:, :, 3].copy()


def binarize_alpha(alpha: np.ndarray, threshold: int = 30) -> BinaryMask:
    """
    Threshold the alpha channel into a foreground/background mask.

    A pixel is foreground (255) iff its opacity is strictly greater than the
    threshold. An all-transparent image gives an empty mask, which is not an
    error.

    Args:
        alpha: The alpha channel to threshold
        threshold: Threshold value for binary thresholding (0-255)

    Returns:
        Binary mask with the same dimensions as the alpha channel
    """
    _, binary_alpha = cv2.threshold(alpha, threshold, 255, cv2.THRESH_BINARY)
    return BinaryMask(binary_alpha)
