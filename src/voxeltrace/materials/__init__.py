"""Material module for voxel surfaces.

Components:
    voxel: Rough (diffuse/mirror blend) and emissive voxel materials

Each occupied voxel references one material id. Rough materials are lit by
the direct lighting pass and may spawn a single mirror reflection ray;
emissive materials return their color scaled by an exponential intensity.
"""

from .voxel import (
    MAX_VOXEL_MATERIALS,
    EmissiveMaterial,
    MaterialKind,
    RoughMaterial,
    VoxelMaterial,
    clear_voxel_materials,
    emission_strength,
    get_voxel_material,
    get_voxel_material_count,
    register_material,
)

__all__ = [
    "MAX_VOXEL_MATERIALS",
    "MaterialKind",
    "RoughMaterial",
    "EmissiveMaterial",
    "VoxelMaterial",
    "emission_strength",
    "register_material",
    "get_voxel_material",
    "get_voxel_material_count",
    "clear_voxel_materials",
]
