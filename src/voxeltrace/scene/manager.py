"""Scene construction API coordinating voxels, lights and materials.

A VoxelScene declares the world volume once and then receives insertions:

- insert(point, material): store an opaque or emissive voxel in the octree
- insert_light(point, emission): register a light with the light tree
- add_light_voxel(point, color, emission): both at once, which is what a
  visible light needs

Materials are deduplicated: inserting many voxels with equal materials
registers one material id. Insertions outside the world volume are silently
ignored.

The octree, light tree and material table are module-level Taichi fields, so
only one scene is active at a time; creating a VoxelScene resets all three.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from voxeltrace.scene.manager import VoxelScene
    >>> from voxeltrace.materials import RoughMaterial
    >>> scene = VoxelScene()
    >>> scene.insert((5, 5, 10), RoughMaterial(color=(200, 200, 200), roughness=255))
    >>> scene.add_light_voxel((2, 2, 10), color=(255, 255, 255), emission=50)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import numpy as np
import numpy.typing as npt

from voxeltrace.geometry.point import Point, as_point
from voxeltrace.materials.voxel import (
    EmissiveMaterial,
    VoxelMaterial,
    clear_voxel_materials,
    get_voxel_material,
    get_voxel_material_count,
    register_material,
)
from voxeltrace.scene import light_tree, octree

logger = logging.getLogger(__name__)


class VoxelScene:
    """High-level scene builder for the voxel tracer.

    Attributes:
        origin: Integer minimum corner of the world volume.
        size: Edge length of the world volume (a power of two).
    """

    def __init__(self, origin: Iterable[int] = (-64, -64, -64), size: int = 128) -> None:
        """Declare the world volume and start from an empty scene.

        Raises:
            ValueError: If size is not a positive power of two.
        """
        self.origin = octree.validate_bounds(origin, size)
        self.size = size
        self._material_ids: dict[VoxelMaterial, int] = {}
        self._clear_all()

    def _clear_all(self) -> None:
        octree.setup_octree(self.origin, self.size)
        light_tree.setup_light_tree(self.origin, self.size)
        clear_voxel_materials()
        self._material_ids.clear()

    def clear(self) -> None:
        """Remove every voxel, light and material but keep the world volume."""
        self._clear_all()
        logger.debug("Scene cleared")

    def contains(self, point: Iterable[int]) -> bool:
        """Check whether a voxel lies inside the world volume."""
        point = as_point(point)
        return all(o <= c < o + self.size for o, c in zip(self.origin, point))

    # =========================================================================
    # Materials
    # =========================================================================

    def material_id(self, material: VoxelMaterial) -> int:
        """Return the id of a material, registering it on first use."""
        material_id = self._material_ids.get(material)
        if material_id is None:
            material_id = register_material(material)
            self._material_ids[material] = material_id
        return material_id

    def get_material(self, material_id: int) -> VoxelMaterial:
        """Look up a registered material by id.

        Raises:
            ValueError: If the id is not registered.
        """
        return get_voxel_material(material_id)

    def get_material_count(self) -> int:
        return get_voxel_material_count()

    # =========================================================================
    # Voxels and Lights
    # =========================================================================

    def insert(self, point: Iterable[int], material: VoxelMaterial) -> bool:
        """Store a voxel, overwriting any voxel already at the point.

        Returns:
            True if the point lies inside the world volume.
        """
        return octree.insert_voxel(point, self.material_id(material))

    def fill(self, points: npt.ArrayLike, material: VoxelMaterial) -> int:
        """Store many voxels sharing one material.

        Args:
            points: Integer array of shape (N, 3).
            material: Material of every voxel.

        Returns:
            The number of points inside the world volume.
        """
        points_arr = np.asarray(points, dtype=np.int32).reshape(-1, 3)
        inserted = octree.insert_voxels(points_arr, self.material_id(material))
        logger.debug("Filled %d of %d voxels", inserted, len(points_arr))
        return inserted

    def insert_light(
        self,
        point: Iterable[int],
        emission: int,
        useful_limit: float | None = None,
        negligible_limit: float | None = None,
    ) -> bool:
        """Register a light with the light tree.

        The light only contributes where shadow rays hit an emissive voxel at
        the same point; use add_light_voxel() to insert both. The limits
        default to the active tracer settings.

        Returns:
            True if the point lies inside the world volume.
        """
        return light_tree.insert_light(point, emission, useful_limit, negligible_limit)

    def add_light_voxel(
        self,
        point: Iterable[int],
        color: tuple[int, int, int],
        emission: int,
        **limits: float,
    ) -> bool:
        """Insert an emissive voxel and register it as a light.

        Args:
            point: Voxel coordinate.
            color: RGB light color as bytes.
            emission: Emission code.
            **limits: useful_limit and negligible_limit for insert_light().

        Returns:
            True if the point lies inside the world volume.
        """
        inserted = self.insert(point, EmissiveMaterial(color=color, emission=emission))
        if inserted:
            self.insert_light(point, emission, **limits)
        return inserted

    def material_at(self, point: Iterable[int]) -> VoxelMaterial | None:
        """Return the material of the voxel at a point, None if empty."""
        point = as_point(point)
        if not self.contains(point):
            return None
        payload, _ = octree.probe_closest(point.voxel_center(), (1.0, 0.0, 0.0))
        if payload is None:
            return None
        return get_voxel_material(payload)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_voxel_count(self) -> int:
        return octree.get_leaf_count()

    def get_light_count(self) -> int:
        return light_tree.get_light_count()

    def lights(self) -> list[tuple[Point, int]]:
        """Return (point, emission) of every registered light."""
        return [light_tree.get_light(i) for i in range(self.get_light_count())]

    def __repr__(self) -> str:
        return (
            f"VoxelScene(origin={tuple(self.origin)}, size={self.size}, "
            f"lights={self.get_light_count()}, materials={self.get_material_count()})"
        )
