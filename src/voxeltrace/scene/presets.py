"""Preset voxel scenes.

- reflection: a glossy wall beside three colored lights over a wide floor,
  showing mirror reflections blended by roughness
- lattice: a 16^3 lattice of voxels every 4 units, with colored lights at
  every other lattice point along each axis
- single voxel: one diffuse voxel and one white light, the smallest lit scene

Every factory resets the active scene and returns (scene, camera).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from voxeltrace.scene.presets import create_reflection_scene
    >>> from voxeltrace.core.renderer import TileRenderer
    >>>
    >>> scene, camera = create_reflection_scene()
    >>> TileRenderer(640, 480, camera=camera).save_png("reflection.png")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import numpy as np

from voxeltrace.camera.pinhole import VoxelCamera
from voxeltrace.materials.voxel import RoughMaterial
from voxeltrace.scene.manager import VoxelScene

logger = logging.getLogger(__name__)

# World volume shared by the presets
WORLD_ORIGIN = (-64, -64, -64)
WORLD_SIZE = 128

# Lattice light limits; tighter than the defaults since the lattice holds
# hundreds of lights
LATTICE_USEFUL_LIMIT = 0.5
LATTICE_NEGLIGIBLE_LIMIT = 0.25


def _grid(xs: range, ys: range, zs: range) -> np.ndarray:
    """Integer points of a rectangular grid, shape (N, 3)."""
    x, y, z = np.meshgrid(list(xs), list(ys), list(zs), indexing="ij")
    return np.stack([x.ravel(), y.ravel(), z.ravel()], axis=1).astype(np.int32)


def create_reflection_scene() -> tuple[VoxelScene, VoxelCamera]:
    """Create the reflection showcase scene.

    Contents:
    - A 1 x 4 x 3 wall at x = 5 with roughness 150
    - Blue, green and white lights next to it
    - Two nearly diffuse pink voxels
    - A 60 x 60 white floor at z = 0 with roughness 250

    Returns:
        A tuple of (VoxelScene, VoxelCamera).
    """
    start = time.perf_counter()
    scene = VoxelScene(WORLD_ORIGIN, WORLD_SIZE)

    wall = RoughMaterial((200, 200, 200), 150)
    scene.fill(_grid(range(5, 6), range(-2, 2), range(-3, 0)), wall)

    scene.add_light_voxel((5, 3, -1), color=(100, 200, 255), emission=30)

    pink = RoughMaterial((240, 130, 130), 254)
    scene.insert((1, -1, -1), pink)
    scene.insert((1, -1, -2), pink)

    scene.add_light_voxel((0, 1, -1), color=(100, 200, 100), emission=30)
    scene.add_light_voxel((4, -3, -4), color=(255, 255, 255), emission=50)

    floor = RoughMaterial((255, 255, 255), 250)
    scene.fill(_grid(range(-20, 40), range(-20, 40), range(0, 1)), floor)

    logger.info("Built reflection scene in %.3fs", time.perf_counter() - start)
    return scene, VoxelCamera()


def create_lattice_scene(
    useful_limit: float = LATTICE_USEFUL_LIMIT,
    negligible_limit: float = LATTICE_NEGLIGIBLE_LIMIT,
) -> tuple[VoxelScene, VoxelCamera]:
    """Create the lattice scene.

    Voxels sit every 4 units over [0, 64) on each axis. Points with all
    coordinates = 4 (mod 8) are lights colored by their position; the rest
    are diffuse grey.

    Args:
        useful_limit: Light tree useful limit for the lattice lights.
        negligible_limit: Light tree negligible limit for the lattice lights.

    Returns:
        A tuple of (VoxelScene, VoxelCamera).
    """
    start = time.perf_counter()
    scene = VoxelScene(WORLD_ORIGIN, WORLD_SIZE)

    points = _grid(range(0, 64, 4), range(0, 64, 4), range(0, 64, 4))
    is_light = np.all(points % 8 == 4, axis=1)
    scene.fill(points[~is_light], RoughMaterial((200, 200, 200), 255))

    for x, y, z in points[is_light].tolist():
        color = (min(y, 100), min(z, 100), min(x, 100))
        scene.add_light_voxel(
            (x, y, z),
            color=color,
            emission=50,
            useful_limit=useful_limit,
            negligible_limit=negligible_limit,
        )

    logger.info(
        "Built lattice scene with %d lights in %.3fs",
        scene.get_light_count(),
        time.perf_counter() - start,
    )
    return scene, VoxelCamera()


def create_single_voxel_scene() -> tuple[VoxelScene, VoxelCamera]:
    """Create a single diffuse voxel at (5, 5, 10) lit from (2, 2, 10).

    The camera looks at the voxel from its lit side.

    Returns:
        A tuple of (VoxelScene, VoxelCamera).
    """
    scene = VoxelScene(WORLD_ORIGIN, WORLD_SIZE)
    scene.insert((5, 5, 10), RoughMaterial((200, 200, 200), 255))
    scene.add_light_voxel((2, 2, 10), color=(255, 255, 255), emission=50)
    camera = VoxelCamera.looking_at((5.5, 0.5, 10.5), (5.5, 5.5, 10.5), scale=200.0)
    return scene, camera


SCENES: dict[str, Callable[[], tuple[VoxelScene, VoxelCamera]]] = {
    "reflection": create_reflection_scene,
    "lattice": create_lattice_scene,
    "single": create_single_voxel_scene,
}
