"""Tone mapping and Matplotlib-based preview display for rendered images.

The tracer produces linear HDR radiance: lights are brighter than 1 and lit
surfaces near lights quickly exceed it. This module maps radiance to
displayable [0, 1] values.

Tone mapping options:
    - filmic: Hejl-Burgess-Dawson filmic curve; gamma is part of the curve,
      so no further gamma correction is applied
    - reinhard: luminance-based Reinhard with a white point
    - aces: Narkowicz fit of the ACES filmic curve
    - none: clamp only

Example:
    >>> from voxeltrace.preview.display import show_preview
    >>> from voxeltrace.core.renderer import TileRenderer
    >>>
    >>> renderer = TileRenderer(320, 240)
    >>> show_preview(renderer.render_radiance(), tone_map="filmic")
"""

from __future__ import annotations

from typing import Literal

import numpy as np
import numpy.typing as npt

# Type alias for tone mapping options
ToneMapMethod = Literal["filmic", "reinhard", "aces", "none"]

TONE_MAP_METHODS: tuple[str, ...] = ("filmic", "reinhard", "aces", "none")

# Rec. 709 luma weights
_LUMA = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)


def tone_map_filmic(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Apply the Hejl-Burgess-Dawson filmic curve.

    c = max(0, x - 0.004); out = c(6.2c + 0.5) / (c(6.2c + 1.7) + 0.06).
    The output is already gamma encoded.

    Args:
        image: Linear HDR image array of shape (H, W, 3).

    Returns:
        Display-ready image in [0, 1).
    """
    c = np.maximum(image - 0.004, 0.0)
    result = (c * (6.2 * c + 0.5)) / (c * (6.2 * c + 1.7) + 0.06)
    return result.astype(np.float32)


def tone_map_reinhard(
    image: npt.NDArray[np.float32],
    white: float = 4.0,
) -> npt.NDArray[np.float32]:
    """Apply extended Reinhard tone mapping on luminance.

    Scales each pixel by Ld / L with Ld = L (1 + L / white^2) / (1 + L), which
    keeps hue and maps luminance `white` to 1.

    Args:
        image: Linear HDR image array of shape (H, W, 3).
        white: Smallest luminance mapped to pure white.

    Returns:
        Tone mapped image (may exceed 1 above the white point).
    """
    if white <= 0.0:
        raise ValueError(f"White point {white} must be positive.")
    image = np.maximum(image, 0.0)
    luminance = image @ _LUMA
    mapped = luminance * (1.0 + luminance / (white * white)) / (1.0 + luminance)
    scale = np.divide(
        mapped, luminance, out=np.zeros_like(luminance), where=luminance > 0.0
    )
    return (image * scale[..., np.newaxis]).astype(np.float32)


def tone_map_aces(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Apply the ACES filmic approximation x(2.51x + 0.03) / (x(2.43x + 0.59) + 0.14)."""
    x = np.maximum(image, 0.0)
    result = (x * (2.51 * x + 0.03)) / (x * (2.43 * x + 0.59) + 0.14)
    return result.astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Apply gamma correction for display.

    Args:
        image: Linear image array of shape (H, W, 3) in [0, 1] range.
        gamma: Gamma value (default 2.2 for sRGB).

    Returns:
        Gamma corrected image.
    """
    if gamma == 1.0:
        return image

    # Clamp to [0, 1] before gamma to avoid NaN from negative values
    image = np.clip(image, 0.0, 1.0)
    result = np.power(image, 1.0 / gamma)
    return result.astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    tone_map: ToneMapMethod = "filmic",
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Process an image for display with tone mapping and gamma correction.

    Applies the full display pipeline:
    1. Tone mapping
    2. Gamma correction (skipped for filmic, whose curve includes it)
    3. Clamping to [0, 1]

    Args:
        image: Linear HDR image array of shape (H, W, 3).
        tone_map: Tone mapping method.
        gamma: Gamma correction value (default 2.2 for sRGB).

    Returns:
        Processed image ready for display, in [0, 1] range.

    Raises:
        ValueError: If the tone mapping method is unknown.
    """
    result = np.asarray(image, dtype=np.float32)
    # NaN would survive clipping and turn into arbitrary bytes
    result = np.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)

    if tone_map == "filmic":
        result = tone_map_filmic(result)
    elif tone_map == "reinhard":
        result = apply_gamma(tone_map_reinhard(result), gamma)
    elif tone_map == "aces":
        result = apply_gamma(tone_map_aces(result), gamma)
    elif tone_map == "none":
        result = apply_gamma(result, gamma)
    else:
        raise ValueError(f"Unknown tone mapping method: {tone_map}")

    result = np.clip(result, 0.0, 1.0)
    return result.astype(np.float32)


def show_preview(
    image: npt.NDArray[np.generic],
    *,
    tone_map: ToneMapMethod = "filmic",
    gamma: float = 2.2,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Display an image as a Matplotlib figure.

    Args:
        image: Either a linear float radiance array of shape (H, W, 3), which
            is tone mapped first, or an already converted uint8 image.
        tone_map: Tone mapping method for float input.
        gamma: Gamma correction value for float input.
        title: Optional figure title.
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until figure is closed.
    """
    import matplotlib.pyplot as plt

    if np.issubdtype(image.dtype, np.floating):
        display_image = process_image_for_display(image, tone_map=tone_map, gamma=gamma)
    else:
        display_image = image

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(display_image)
    ax.axis("off")
    if title:
        ax.set_title(title)
    fig.tight_layout()
    plt.show(block=block)
