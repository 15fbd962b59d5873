"""Integer voxel coordinates for the Python-side scene API."""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import NamedTuple


class Point(NamedTuple):
    """A voxel coordinate identifying the unit cube [x, x+1) x [y, y+1) x [z, z+1).

    Attributes:
        x: Integer X coordinate.
        y: Integer Y coordinate.
        z: Integer Z coordinate.
    """

    x: int
    y: int
    z: int

    @classmethod
    def containing(cls, position: Iterable[float]) -> Point:
        """Return the voxel that contains a continuous position."""
        px, py, pz = position
        return cls(math.floor(px), math.floor(py), math.floor(pz))

    def voxel_center(self) -> tuple[float, float, float]:
        """Return the continuous centroid of this voxel."""
        return (self.x + 0.5, self.y + 0.5, self.z + 0.5)

    def offset(self, dx: int, dy: int, dz: int) -> Point:
        return Point(self.x + dx, self.y + dy, self.z + dz)


def as_point(value: Iterable[int]) -> Point:
    """Coerce a 3-sequence of integers to a Point.

    Raises:
        ValueError: If the value does not have exactly three integer components.
    """
    if isinstance(value, Point):
        return value
    components = tuple(value)
    if len(components) != 3:
        raise ValueError(f"Voxel coordinate needs 3 components, got {len(components)}")
    for i, component in enumerate(components):
        if isinstance(component, bool) or int(component) != component:
            raise ValueError(f"Voxel coordinate component {i} = {component!r} is not an integer")
    return Point(int(components[0]), int(components[1]), int(components[2]))
