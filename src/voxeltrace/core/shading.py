"""Direct lighting with shadow rays and roughness-weighted mirror reflection.

Shading a ray marches it to the nearest surface:

- Emissive voxels return their color scaled by the emission strength.
- Rough voxels gather direct light from every light the light tree reports at
  the hit position, each tested with a shadow ray toward the light's voxel
  center, then blend in the mirror-reflected color with the weight
  w = 1 - 2 ** (-bias + roughness / scale). Roughness 255 never reflects.
- A ray that hits nothing is black.

The blend result = (1 - w) * direct + w * reflected is naturally recursive.
Taichi functions cannot recurse, so direct_color() evaluates the same sum as a
loop carrying the product of the reflection weights along the path.

A shadow ray that ends inside the light's voxel without hitting it, and not
because the step budget ran out, means the light tree and the octree disagree.
The first such event is recorded in fields and check_light_consistency()
raises it as a LightVisibilityError once the kernel has finished.
"""

import math

import taichi as ti

from voxeltrace.core import settings
from voxeltrace.core.vector import (
    dot,
    ivec3,
    length,
    prob_voxel_norm,
    reflect,
    vec3,
    voxel_center,
    voxel_equals,
    voxel_floor,
)
from voxeltrace.geometry.cube import cube_child, cube_contains_f, cube_octant
from voxeltrace.materials.voxel import (
    FULLY_DIFFUSE,
    KIND_EMISSION,
    KIND_ROUGH,
    emission_strength_f,
    get_material_color,
    get_material_kind,
    get_material_param,
)
from voxeltrace.scene.light_tree import (
    NO_ENTRY,
    light_child,
    light_entry_light,
    light_entry_next,
    light_node_first_entry,
    light_point,
    light_tree_root,
)
from voxeltrace.scene.marcher import (
    STATUS_HIT,
    STATUS_INSUFFICIENT_STEPS,
    CastStatus,
    cast_to_hit,
)


class LightVisibilityError(RuntimeError):
    """A shadow ray reached a light's voxel without hitting the light.

    Attributes:
        origin: Shading position the shadow ray started from.
        direction: Unit direction of the shadow ray.
        light: Voxel coordinate of the expected light.
        light_distance: Distance from the origin to the light's voxel center.
        status: How the shadow ray's march ended.
        final_position: Where the march stopped.
        count: Number of violations seen during the render.
    """

    def __init__(
        self,
        origin: tuple[float, float, float],
        direction: tuple[float, float, float],
        light: tuple[int, int, int],
        light_distance: float,
        status: CastStatus,
        final_position: tuple[float, float, float],
        count: int,
    ):
        self.origin = origin
        self.direction = direction
        self.light = light
        self.light_distance = light_distance
        self.status = status
        self.final_position = final_position
        self.count = count
        super().__init__(
            f"Shadow ray from {origin} along {direction} reached light voxel {light} "
            f"(distance {light_distance:.6f}) without hitting it: march ended with "
            f"{status.name} at {final_position}; {count} violation(s) in total"
        )


# First-violation diagnostics
_violation_count = ti.field(dtype=ti.i32, shape=())
_violation_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_violation_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
_violation_light = ti.Vector.field(3, dtype=ti.i32, shape=())
_violation_distance = ti.field(dtype=ti.f32, shape=())
_violation_status = ti.field(dtype=ti.i32, shape=())
_violation_final = ti.Vector.field(3, dtype=ti.f32, shape=())


def reset_light_violations() -> None:
    """Forget every recorded violation."""
    _violation_count[None] = 0


def get_light_violation_count() -> int:
    return int(_violation_count[None])


def check_light_consistency() -> None:
    """Raise the first recorded light visibility violation, if any.

    Raises:
        LightVisibilityError: If a violation was recorded since the last reset.
    """
    count = get_light_violation_count()
    if count == 0:
        return
    origin = _violation_origin.to_numpy().tolist()
    direction = _violation_direction.to_numpy().tolist()
    light = _violation_light.to_numpy().tolist()
    final = _violation_final.to_numpy().tolist()
    raise LightVisibilityError(
        origin=tuple(float(c) for c in origin),
        direction=tuple(float(c) for c in direction),
        light=tuple(int(c) for c in light),
        light_distance=float(_violation_distance[None]),
        status=CastStatus(int(_violation_status[None])),
        final_position=tuple(float(c) for c in final),
        count=count,
    )


@ti.func
def record_light_violation(
    origin: vec3, direction: vec3, light: ivec3, distance: ti.f32, status: ti.i32, final: vec3
):
    """Count a violation and keep the diagnostics of the first one."""
    previous = ti.atomic_add(_violation_count[None], 1)
    if previous == 0:
        _violation_origin[None] = origin
        _violation_direction[None] = direction
        _violation_light[None] = light
        _violation_distance[None] = distance
        _violation_status[None] = status
        _violation_final[None] = final


# =============================================================================
# Direct Lighting
# =============================================================================


@ti.func
def light_contribution(pos: vec3, normal: vec3, albedo: vec3, light: ivec3) -> vec3:
    """Light reaching a rough surface from one emissive voxel.

    Args:
        pos: Shading position, already pushed off the surface.
        normal: Outward surface normal.
        albedo: Normalized surface color.
        light: Voxel coordinate of the light.

    Returns:
        strength / (d - 0.5)^2 * max(n . l, 0) * albedo * light color when the
        shadow ray hits the light's voxel, black otherwise.
    """
    contribution = vec3(0.0, 0.0, 0.0)
    to_light = voxel_center(light) - pos
    d = length(to_light)
    if d > 0.0:
        light_dir = to_light / d
        hit = cast_to_hit(pos, light_dir)
        if voxel_equals(voxel_floor(hit.position), light):
            if hit.status == STATUS_HIT:
                if get_material_kind(hit.payload) == KIND_EMISSION:
                    falloff = ti.max(d - 0.5, settings.solid_push[None])
                    strength = emission_strength_f(get_material_param(hit.payload))
                    cosine = ti.max(dot(normal, light_dir), 0.0)
                    contribution = (
                        albedo
                        * get_material_color(hit.payload)
                        * (strength / (falloff * falloff) * cosine)
                    )
            elif hit.status != STATUS_INSUFFICIENT_STEPS:
                record_light_violation(pos, light_dir, light, d, hit.status, hit.position)
    return contribution


@ti.func
def gather_direct_light(pos: vec3, normal: vec3, albedo: vec3) -> vec3:
    """Sum the contributions of every light the light tree reports at pos."""
    total = vec3(0.0, 0.0, 0.0)
    cube = light_tree_root()
    node = -1
    if cube_contains_f(cube, pos):
        node = 0
    while node != -1:
        entry = light_node_first_entry(node)
        while entry != NO_ENTRY:
            light = light_entry_light(entry)
            total += light_contribution(pos, normal, albedo, light_point(light))
            entry = light_entry_next(entry)
        octant = cube_octant(cube, pos)
        node = light_child(node, octant)
        cube = cube_child(cube, octant)
    return total


@ti.func
def reflection_weight(roughness: ti.i32) -> ti.f32:
    """Share of the mirror-reflected color, clamped to [0, 1]."""
    scaled = ti.cast(roughness, ti.f32) / settings.roughness_scale[None]
    w = 1.0 - 2.0 ** (scaled - settings.reflection_bias[None])
    return ti.min(ti.max(w, 0.0), 1.0)


@ti.func
def direct_color(origin: vec3, direction: vec3, depth: ti.i32) -> vec3:
    """Shade a ray with direct lighting and mirror reflections.

    Args:
        origin: Ray origin.
        direction: Unit ray direction.
        depth: Maximum number of surfaces the path may visit; 0 is black.

    Returns:
        The linear RGB radiance along the ray.
    """
    color = vec3(0.0, 0.0, 0.0)
    throughput = 1.0
    pos = origin
    ray_dir = direction
    remaining = depth
    while remaining > 0:
        remaining -= 1
        bounce = 0
        hit = cast_to_hit(pos, ray_dir)
        if hit.status == STATUS_HIT:
            material = hit.payload
            kind = get_material_kind(material)
            if kind == KIND_EMISSION:
                strength = emission_strength_f(get_material_param(material))
                color += throughput * strength * get_material_color(material)
            elif kind == KIND_ROUGH:
                normal = prob_voxel_norm(hit.position, ray_dir)
                shade_pos = hit.position - ray_dir * settings.solid_push[None]
                lit = gather_direct_light(shade_pos, normal, get_material_color(material))
                roughness = get_material_param(material)
                if roughness < FULLY_DIFFUSE:
                    w = reflection_weight(roughness)
                    color += throughput * (1.0 - w) * lit
                    throughput *= w
                    ray_dir = reflect(ray_dir, normal)
                    pos = shade_pos
                    bounce = 1
                else:
                    color += throughput * lit
        if bounce == 0:
            remaining = 0
    return color


# =============================================================================
# Python Interface
# =============================================================================

_shade_result = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _shade_kernel(
    ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32, depth: ti.i32
):
    _shade_result[None] = direct_color(vec3(ox, oy, oz), vec3(dx, dy, dz), depth)


def shade_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int | None = None,
) -> tuple[float, float, float]:
    """Shade a single ray from Python scope.

    Args:
        origin: Ray origin.
        direction: Ray direction, normalized before shading.
        depth: Path depth, defaults to the active tracer settings.

    Returns:
        Linear RGB radiance.

    Raises:
        ValueError: If the direction has zero length or depth is negative.
        LightVisibilityError: If a shadow ray violated light visibility.
    """
    if depth is None:
        depth = settings.get_tracer_settings().max_depth
    if depth < 0:
        raise ValueError(f"Depth {depth} must not be negative.")
    norm = math.sqrt(sum(float(c) * float(c) for c in direction))
    if norm == 0.0 or not math.isfinite(norm):
        raise ValueError(f"Ray direction {tuple(direction)} must be finite and non-zero.")
    dx, dy, dz = (float(c) / norm for c in direction)

    settings.ensure_tracer_configured()
    reset_light_violations()
    _shade_kernel(float(origin[0]), float(origin[1]), float(origin[2]), dx, dy, dz, depth)
    check_light_consistency()
    result = _shade_result[None]
    return (float(result[0]), float(result[1]), float(result[2]))
