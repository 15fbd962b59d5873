"""Axis-aligned cube bounds used by the voxel octree and the light tree.

A Cube is defined by an integer origin and a power-of-two integer edge length,
matching octree subdivision. The floating-point origin is cached so that
containment and distance tests against continuous positions stay cheap.

All containment tests are closed-open on every axis: the cube with origin o
and size s covers [o, o + s) along each axis.

Children are numbered with bit 2 selecting the upper X half, bit 1 the upper
Y half and bit 0 the upper Z half. A position exactly on the half-size
boundary belongs to the upper child.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> @ti.kernel
    ... def exit_distance() -> ti.f32:
    ...     cube = make_cube(ivec3(0, 0, 0), 8)
    ...     return cube_max_marchable_distance(cube, vec3(1.0, 1.0, 1.0), vec3(1.0, 0.0, 0.0))
    >>> exit_distance()  # 7.0
"""

import taichi as ti
import taichi.math as tm

from voxeltrace.core.vector import FAR, ivec3, to_vec3, vec3


@ti.dataclass
class Cube:
    """Axis-aligned cube bounds.

    Attributes:
        origin: Integer minimum corner.
        size: Integer edge length (power of two, at least 1).
        fpos: Cached floating-point copy of origin.
    """

    origin: ivec3
    size: ti.i32
    fpos: vec3


@ti.func
def make_cube(origin: ivec3, size: ti.i32) -> Cube:
    """Create a cube and cache its floating-point origin."""
    return Cube(origin=origin, size=size, fpos=to_vec3(origin))


@ti.func
def cube_contains(cube: Cube, p: ivec3) -> ti.i32:
    """Integer closed-open containment test."""
    upper = cube.origin + cube.size
    return (
        p.x >= cube.origin.x
        and p.x < upper.x
        and p.y >= cube.origin.y
        and p.y < upper.y
        and p.z >= cube.origin.z
        and p.z < upper.z
    )


@ti.func
def cube_contains_f(cube: Cube, pos: vec3) -> ti.i32:
    """Floating-point closed-open containment test."""
    s = ti.cast(cube.size, ti.f32)
    f = cube.fpos
    return (
        f.x <= pos.x
        and pos.x < f.x + s
        and f.y <= pos.y
        and pos.y < f.y + s
        and f.z <= pos.z
        and pos.z < f.z + s
    )


@ti.func
def cube_distance_to(cube: Cube, pos: vec3) -> ti.f32:
    """Euclidean distance from a position to the nearest point of the cube.

    Returns 0 when the position is inside.
    """
    s = ti.cast(cube.size, ti.f32)
    f = cube.fpos
    dx = ti.max(ti.max(f.x - pos.x, pos.x - (f.x + s)), 0.0)
    dy = ti.max(ti.max(f.y - pos.y, pos.y - (f.y + s)), 0.0)
    dz = ti.max(ti.max(f.z - pos.z, pos.z - (f.z + s)), 0.0)
    return ti.sqrt(dx * dx + dy * dy + dz * dz)


@ti.func
def cube_max_border_distance(cube: Cube, pos: vec3) -> ti.f32:
    """Distance from a position to the farthest corner of the cube."""
    s = ti.cast(cube.size, ti.f32)
    f = cube.fpos
    far_x = ti.max(ti.abs(pos.x - f.x), ti.abs(f.x + s - pos.x))
    far_y = ti.max(ti.abs(pos.y - f.y), ti.abs(f.y + s - pos.y))
    far_z = ti.max(ti.abs(pos.z - f.z), ti.abs(f.z + s - pos.z))
    return tm.length(vec3(far_x, far_y, far_z))


@ti.func
def _exit_along_axis(position: ti.f32, low: ti.f32, high: ti.f32, d: ti.f32) -> ti.f32:
    """Parametric distance to the face a ray heads for on one axis.

    A zero direction component never leaves the slab, so it imposes no
    constraint.
    """
    t = FAR
    if d > 0.0:
        t = ti.abs((high - position) / d)
    elif d < 0.0:
        t = ti.abs((low - position) / d)
    return t


@ti.func
def cube_max_marchable_distance(cube: Cube, pos: vec3, direction: vec3) -> ti.f32:
    """Distance a ray may travel from inside the cube before leaving it.

    This is the empty-space skip: when the cube is known to be empty the ray
    can jump straight to this distance without missing anything.

    Args:
        cube: The bounds the position lies in.
        pos: A position inside the cube.
        direction: The ray direction (normalized for Euclidean distances).

    Returns:
        The minimum over all axes of the parametric exit distance.
    """
    s = ti.cast(cube.size, ti.f32)
    f = cube.fpos
    tx = _exit_along_axis(pos.x, f.x, f.x + s, direction.x)
    ty = _exit_along_axis(pos.y, f.y, f.y + s, direction.y)
    tz = _exit_along_axis(pos.z, f.z, f.z + s, direction.z)
    return ti.min(ti.min(tx, ty), tz)


@ti.func
def cube_octant(cube: Cube, pos: vec3) -> ti.i32:
    """Index of the child octant containing a continuous position."""
    mid = cube.fpos + 0.5 * ti.cast(cube.size, ti.f32)
    octant = 0
    if pos.x >= mid.x:
        octant |= 0b100
    if pos.y >= mid.y:
        octant |= 0b010
    if pos.z >= mid.z:
        octant |= 0b001
    return octant


@ti.func
def cube_point_octant(cube: Cube, p: ivec3) -> ti.i32:
    """Index of the child octant containing an integer voxel coordinate."""
    mid = cube.origin + cube.size // 2
    octant = 0
    if p.x >= mid.x:
        octant |= 0b100
    if p.y >= mid.y:
        octant |= 0b010
    if p.z >= mid.z:
        octant |= 0b001
    return octant


@ti.func
def cube_child(cube: Cube, octant: ti.i32) -> Cube:
    """Bounds of one of the eight equal children of a cube."""
    half = cube.size // 2
    shift = ivec3((octant >> 2) & 1, (octant >> 1) & 1, octant & 1) * half
    return make_cube(cube.origin + shift, half)
