"""
Functions for visualizing detected regions and projection profiles.
"""

from __future__ import annotations

from typing import Sequence

import cv2
import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from sprite_atlas.models import BinaryMask, ClassifiedSprite, SpriteType
from sprite_atlas.separation import find_projection_cuts, projection_profiles

# BGR colors per sprite type
_COLORS = {
    SpriteType.TEXT: (255, 0, 255),       # Magenta
    SpriteType.CHARACTER: (0, 200, 0),    # Green
    SpriteType.OBJECT: (255, 128, 0),     # Blue-ish
    SpriteType.EFFECT: (0, 200, 255),     # Orange
}


def _flatten_alpha(img: np.ndarray) -> np.ndarray:
    """Blend a BGRA image onto a white background."""
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.shape[2] == 3:
        return img.copy()
    bg = np.ones((img.shape[0], img.shape[1], 3), dtype=np.uint8) * 255
    alpha = img[:, :, 3:4].astype(float) / 255
    return (img[:, :, :3] * alpha + bg * (1 - alpha)).astype(np.uint8)


def visualize_regions(img: np.ndarray, sprites: Sequence[ClassifiedSprite],
                      output_path: str | None = None) -> np.ndarray:
    """
    Draw each sprite's bounding box and name over the image.

    Args:
        img: Input image (BGRA, BGR or a single channel mask)
        sprites: Classified sprites to draw
        output_path: Path to save the visualization (optional)

    Returns:
        BGR image with the overlay
    """
    vis_img = _flatten_alpha(img)

    font = cv2.FONT_HERSHEY_SIMPLEX
    for sprite in sprites:
        box = sprite.bbox
        color = _COLORS[sprite.sprite_type]
        cv2.rectangle(vis_img, (box.x, box.y), (box.x2 - 1, box.y2 - 1), color, 1)
        cv2.putText(vis_img, sprite.name, (box.x, max(10, box.y - 3)), font, 0.4, color, 1)

    if output_path:
        cv2.imwrite(output_path, vis_img)

    return vis_img


def plot_projection_profiles(mask: BinaryMask, window: int = 3,
                             output_path: str | None = None) -> np.ndarray:
    """
    Plot the row and column projection profiles with their cut lines.

    Returns:
        The rendered plot as a BGR image
    """
    row_profile, col_profile = projection_profiles(mask)

    fig = Figure(figsize=(10, 6))
    canvas = FigureCanvasAgg(fig)
    for ax, profile, title in zip(fig.subplots(2, 1), (col_profile, row_profile), ("Columns", "Rows")):
        ax.bar(np.arange(len(profile)), profile, width=1.0, alpha=0.7)
        for cut in find_projection_cuts(profile, window):
            ax.axvline(x=cut, color='r', linestyle='--', linewidth=1)
        ax.set_title(f"{title} projection profile")
        ax.set_ylabel("Foreground pixels")
        ax.grid(alpha=0.3)
    fig.tight_layout()

    canvas.draw()
    rgba = np.asarray(canvas.buffer_rgba())
    plot_img = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGR)

    if output_path:
        cv2.imwrite(output_path, plot_img)

    return plot_img
