"""
Shared synthetic images for the test suite.

The images are drawn with numpy so the tests do not depend on example files.
"""

import numpy as np
import pytest

from sprite_atlas.models import BinaryMask

from images import blank_bgra, disc_mask, paint_rect

SCATTER_LETTER_XS = [15 + i * 58 for i in range(7)]


@pytest.fixture
def scatter_image() -> np.ndarray:
    """Seven isolated 40x70 letter blocks in a row, spelling SCATTER."""
    img = blank_bgra(420, 100)
    for x in SCATTER_LETTER_XS:
        paint_rect(img, x, 15, 40, 70)
    return img


@pytest.fixture
def square_image() -> np.ndarray:
    """A single 40x40 opaque square at (10, 10) in a 100x100 image."""
    img = blank_bgra(100, 100)
    paint_rect(img, 10, 10, 40, 40)
    return img


@pytest.fixture
def necked_mask() -> BinaryMask:
    """Two discs of radius 12 joined by a one pixel wide neck."""
    data = disc_mask(80, 50, [(20, 25, 12), (55, 25, 12)])
    data[25, 32:44] = 255
    return BinaryMask(data)


@pytest.fixture
def necked_image(necked_mask: BinaryMask) -> np.ndarray:
    img = blank_bgra(necked_mask.width, necked_mask.height)
    img[:, :, 3] = necked_mask.data
    return img
