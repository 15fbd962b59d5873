"""Voxel material registry.

Every occupied voxel carries one of two materials:

- RoughMaterial: a diffuse reflector. Its roughness byte controls how much of
  the mirror-reflected color is blended into the diffuse result; 255 is purely
  diffuse and never spawns a reflection ray.
- EmissiveMaterial: a light source. Its emission byte is a log-scaled
  intensity code, strength = 2 ** (emission / 16).

Colors are RGB byte triples. Materials are registered once into Taichi fields
and referenced from the voxel octree by their integer material id.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from voxeltrace.materials.voxel import RoughMaterial, register_material
    >>> wall = register_material(RoughMaterial(color=(200, 200, 200), roughness=150))
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3

# Emission codes are exponent steps of 1/16 of a doubling
EMISSION_CODE_SCALE = 16.0

# Roughness value at which a surface stops reflecting entirely
FULLY_DIFFUSE = 255


class MaterialKind(IntEnum):
    """Material variants stored in the material table."""

    ROUGH = 0
    EMISSION = 1


KIND_ROUGH = int(MaterialKind.ROUGH)
KIND_EMISSION = int(MaterialKind.EMISSION)


def _check_byte(name: str, value: int) -> None:
    if isinstance(value, bool) or int(value) != value or not 0 <= value <= 255:
        raise ValueError(f"{name} = {value!r} is not a byte in [0, 255].")


def _check_color(color: tuple[int, int, int]) -> None:
    if len(color) != 3:
        raise ValueError(f"Color needs 3 channels, got {len(color)}.")
    for i, component in enumerate(color):
        _check_byte(f"Color component {i}", component)


@dataclass(frozen=True)
class RoughMaterial:
    """A diffuse voxel surface.

    Attributes:
        color: RGB albedo as bytes.
        roughness: 0 (mirror-like) to 255 (purely diffuse).
    """

    color: tuple[int, int, int]
    roughness: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", tuple(self.color))
        _check_color(self.color)
        _check_byte("Roughness", self.roughness)

    @property
    def kind(self) -> MaterialKind:
        return MaterialKind.ROUGH


@dataclass(frozen=True)
class EmissiveMaterial:
    """A light-emitting voxel.

    Attributes:
        color: RGB light color as bytes.
        emission: Log-scaled intensity code.
    """

    color: tuple[int, int, int]
    emission: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", tuple(self.color))
        _check_color(self.color)
        _check_byte("Emission", self.emission)

    @property
    def kind(self) -> MaterialKind:
        return MaterialKind.EMISSION

    @property
    def strength(self) -> float:
        return emission_strength(self.emission)


VoxelMaterial = Union[RoughMaterial, EmissiveMaterial]


def emission_strength(code: int) -> float:
    """Convert an emission code to a linear intensity: 2 ** (code / 16)."""
    return 2.0 ** (code / EMISSION_CODE_SCALE)


@ti.func
def emission_strength_f(code: ti.i32) -> ti.f32:
    """Taichi counterpart of emission_strength()."""
    return 2.0 ** (ti.cast(code, ti.f32) / EMISSION_CODE_SCALE)


# =============================================================================
# Material Table
# =============================================================================

MAX_VOXEL_MATERIALS = 4096

material_kinds = ti.field(dtype=ti.i32, shape=MAX_VOXEL_MATERIALS)
# Colors stored normalized to [0, 1]
material_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_VOXEL_MATERIALS)
# Roughness for ROUGH, emission code for EMISSION
material_params = ti.field(dtype=ti.i32, shape=MAX_VOXEL_MATERIALS)
num_voxel_materials = ti.field(dtype=ti.i32, shape=())

# Python-side mirror of the table, indexed by material id
_registered: list[VoxelMaterial] = []


def clear_voxel_materials() -> None:
    """Clear all registered materials.

    Resets the material count to zero. Existing data in the fields will be
    overwritten when new materials are registered.
    """
    num_voxel_materials[None] = 0
    _registered.clear()


def register_material(material: VoxelMaterial) -> int:
    """Add a material to the material table.

    Args:
        material: The rough or emissive material to register.

    Returns:
        The material id, usable as an octree payload.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        TypeError: If the material is not a known voxel material.
    """
    if isinstance(material, RoughMaterial):
        param = material.roughness
    elif isinstance(material, EmissiveMaterial):
        param = material.emission
    else:
        raise TypeError(f"Unsupported voxel material: {material!r}")

    idx = num_voxel_materials[None]
    if idx >= MAX_VOXEL_MATERIALS:
        raise RuntimeError(f"Maximum number of voxel materials ({MAX_VOXEL_MATERIALS}) exceeded")

    material_kinds[idx] = int(material.kind)
    material_colors[idx] = [c / 255.0 for c in material.color]
    material_params[idx] = param
    num_voxel_materials[None] = idx + 1
    _registered.append(material)
    return idx


def get_voxel_material(material_id: int) -> VoxelMaterial:
    """Look up a registered material by id.

    Raises:
        ValueError: If the id is not registered.
    """
    if not 0 <= material_id < len(_registered):
        raise ValueError(f"Invalid material_id: {material_id}")
    return _registered[material_id]


def get_voxel_material_count() -> int:
    """Get the number of registered materials."""
    return int(num_voxel_materials[None])


@ti.func
def get_material_kind(material_id: ti.i32) -> ti.i32:
    """Get the MaterialKind of a material id (-1 if invalid)."""
    result = -1
    if 0 <= material_id < num_voxel_materials[None]:
        result = material_kinds[material_id]
    return result


@ti.func
def get_material_color(material_id: ti.i32) -> vec3:
    """Get the normalized RGB color of a material."""
    return material_colors[material_id]


@ti.func
def get_material_param(material_id: ti.i32) -> ti.i32:
    """Get the roughness (rough) or emission code (emissive) of a material."""
    return material_params[material_id]
