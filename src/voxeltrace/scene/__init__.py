"""Scene module for voxel storage, lights and ray marching.

Components:
    octree: Sparse voxel octree mapping voxel coordinates to material ids
    light_tree: Light importance tree pruned by brightness limits
    marcher: Empty-space-skipping ray marcher over the octree
    manager: Scene construction API with material deduplication
    presets: Ready-made scenes (reflection, lattice, single voxel)

Scene data is organized for kernel access:
    - Node arenas in flat Taichi fields, 8 consecutive children per split
    - Material ids as octree payloads
    - Per-node light lists as linked entries in a shared arena

Both trees are built once, single threaded, before rendering and are only
read while rendering.
"""

from .light_tree import (
    MAX_LIGHT_ENTRIES,
    MAX_LIGHT_NODES,
    MAX_LIGHTS,
    clear_light_tree,
    get_light,
    get_light_count,
    insert_light,
    query_lights,
    setup_light_tree,
)
from .manager import VoxelScene
from .marcher import CastOutcome, CastResult, CastStatus, cast_ray, cast_to_hit
from .octree import (
    MAX_OCTREE_NODES,
    NodeKind,
    OctreeNodeInfo,
    clear_octree,
    find_closest,
    get_leaf_count,
    get_node_count,
    insert_voxel,
    insert_voxels,
    probe_closest,
    query_radius,
    setup_octree,
    walk_octree,
)
from .presets import (
    SCENES,
    create_lattice_scene,
    create_reflection_scene,
    create_single_voxel_scene,
)

__all__ = [
    # Octree
    "NodeKind",
    "OctreeNodeInfo",
    "MAX_OCTREE_NODES",
    "setup_octree",
    "clear_octree",
    "insert_voxel",
    "insert_voxels",
    "find_closest",
    "probe_closest",
    "query_radius",
    "walk_octree",
    "get_node_count",
    "get_leaf_count",
    # Light tree
    "MAX_LIGHTS",
    "MAX_LIGHT_NODES",
    "MAX_LIGHT_ENTRIES",
    "setup_light_tree",
    "clear_light_tree",
    "insert_light",
    "query_lights",
    "get_light",
    "get_light_count",
    # Marcher
    "CastStatus",
    "CastResult",
    "CastOutcome",
    "cast_to_hit",
    "cast_ray",
    # Scene construction
    "VoxelScene",
    "SCENES",
    "create_reflection_scene",
    "create_lattice_scene",
    "create_single_voxel_scene",
]
