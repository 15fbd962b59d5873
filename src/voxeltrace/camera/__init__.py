"""Camera module for primary ray generation.

Components:
    pinhole: Fixed pinhole camera with pitch/yaw orientation and a small
        positional shake

Pixel (x, y) maps to a ray through the image plane one unit in front of the
camera; `scale` pixels span one unit of that plane. Ray generation runs inside
the render kernel, once per pixel.
"""

from .pinhole import (
    VoxelCamera,
    camera_basis,
    get_camera_info,
    get_ray,
    rotate_about_axis,
    rotate_z,
    setup_camera,
)

__all__ = [
    "VoxelCamera",
    "setup_camera",
    "get_ray",
    "get_camera_info",
    "camera_basis",
    "rotate_about_axis",
    "rotate_z",
]
