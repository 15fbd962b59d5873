"""Geometry module for voxel coordinates and cube bounds.

Components:
    point: Integer voxel coordinates for the Python-side API
    cube: Axis-aligned power-of-two cube bounds and their distance queries
"""

from .cube import (
    Cube,
    cube_child,
    cube_contains,
    cube_contains_f,
    cube_distance_to,
    cube_max_border_distance,
    cube_max_marchable_distance,
    cube_octant,
    cube_point_octant,
    make_cube,
)
from .point import Point, as_point

__all__ = [
    "Cube",
    "Point",
    "as_point",
    "make_cube",
    "cube_contains",
    "cube_contains_f",
    "cube_distance_to",
    "cube_max_border_distance",
    "cube_max_marchable_distance",
    "cube_octant",
    "cube_point_octant",
    "cube_child",
]
