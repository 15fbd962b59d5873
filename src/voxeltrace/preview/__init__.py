"""Preview module for output and visualization.

Components:
    display: Tone mapping and Matplotlib-based static preview
    export: 8-bit conversion and PNG export

Example:
    >>> from voxeltrace.preview import image_to_uint8, save_png
    >>> pixels = image_to_uint8(radiance, tone_map="filmic")
    >>> save_png(pixels, "output.png")
"""

from voxeltrace.preview.display import (
    TONE_MAP_METHODS,
    ToneMapMethod,
    apply_gamma,
    process_image_for_display,
    show_preview,
    tone_map_aces,
    tone_map_filmic,
    tone_map_reinhard,
)
from voxeltrace.preview.export import image_to_uint8, save_png

__all__ = [
    # Display functions
    "show_preview",
    # Tone mapping
    "tone_map_filmic",
    "tone_map_reinhard",
    "tone_map_aces",
    "apply_gamma",
    "process_image_for_display",
    "ToneMapMethod",
    "TONE_MAP_METHODS",
    # Export functions
    "save_png",
    "image_to_uint8",
]
