"""Image export utilities for rendered images.

The renderer's product is a dense row-major array of RGB bytes. This module
converts linear radiance to that form and writes it to disk.

Supported formats:
    - PNG (8-bit sRGB via Pillow)

Example:
    >>> from voxeltrace.preview.export import save_png
    >>> from voxeltrace.core.renderer import TileRenderer
    >>>
    >>> renderer = TileRenderer(320, 240)
    >>> save_png(renderer.render(), "output.png")
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from voxeltrace.preview.display import ToneMapMethod, process_image_for_display


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    tone_map: ToneMapMethod = "filmic",
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Convert a linear float32 image to uint8 for display/export.

    Args:
        image: Linear HDR image array of shape (H, W, 3).
        tone_map: Tone mapping method.
        gamma: Gamma correction value (default 2.2 for sRGB).

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    processed = process_image_for_display(image, tone_map=tone_map, gamma=gamma)
    # Truncate like an integer cast of value * 255
    return (processed * 255.0).astype(np.uint8)


def save_png(image: npt.NDArray[np.generic], filepath: str | Path, **kwargs) -> None:
    """Save an image as an 8-bit RGB PNG file.

    Args:
        image: A uint8 array of shape (H, W, 3), or a linear float radiance
            array that is converted with image_to_uint8() first.
        filepath: Output file path (should end in .png).
        **kwargs: tone_map and gamma for float input.

    Raises:
        ValueError: If the array is not of shape (H, W, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    if image.dtype != np.uint8:
        image = image_to_uint8(image, **kwargs)

    pil_image = PILImage.fromarray(np.ascontiguousarray(image))
    pil_image.save(str(filepath))
