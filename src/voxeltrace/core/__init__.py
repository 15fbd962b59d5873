"""Core rendering module.

This module contains the fundamental building blocks of the voxel tracer:

Components:
    vector: Ray data structure, vector math and voxel coordinate helpers
    settings: Tunable tracer constants and their kernel-visible copies
    shading: Direct lighting with shadow rays and roughness-weighted reflection
    renderer: Parallel row-band tile renderer

Rays are marched through a sparse voxel octree with hierarchical empty-space
skipping. Rough surfaces gather light from the light importance tree and blend
in a single mirror reflection per bounce; emissive voxels return their color.

All compute-intensive operations use Taichi kernels.
"""

from .vector import (
    FAR,
    Ray,
    dot,
    ivec3,
    length,
    make_ray,
    normalize,
    prob_voxel_norm,
    reflect,
    to_vec3,
    vec3,
    voxel_center,
    voxel_equals,
    voxel_floor,
)

# Note: shading and renderer are NOT imported here since they pull in the scene
# fields. Import them directly from voxeltrace.core.shading or
# voxeltrace.core.renderer when needed.

__all__ = [
    "FAR",
    "Ray",
    "make_ray",
    "vec3",
    "ivec3",
    "length",
    "normalize",
    "dot",
    "reflect",
    "to_vec3",
    "voxel_floor",
    "voxel_center",
    "voxel_equals",
    "prob_voxel_norm",
]
