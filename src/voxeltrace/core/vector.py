"""Ray data structure and vector utilities for voxel ray marching.

This module provides the Ray dataclass plus the vector and voxel helpers used
by the octree, the ray marcher and the shading code. All functions are Taichi
functions and can only be called from within kernels.

Voxels are addressed by integer coordinates (ivec3). The voxel (x, y, z)
covers the unit cube [x, x+1) x [y, y+1) x [z, z+1).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> @ti.kernel
    ... def probe() -> ti.i32:
    ...     cell = voxel_floor(vec3(1.5, -0.25, 3.0))
    ...     return cell.y  # -1
"""

import taichi as ti
import taichi.math as tm

# Type aliases for float and integer 3D vectors
vec3 = tm.vec3
ivec3 = tm.ivec3

# Stand-in for an unbounded distance (kept finite to stay clear of inf/NaN)
FAR = 1e30


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Must be normalized
            for distances reported by the marcher to be Euclidean.
    """

    origin: vec3
    direction: vec3


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return tm.length(v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Normalize a vector to unit length.

    A zero-length input produces NaN components; callers must only pass
    non-degenerate vectors.
    """
    return tm.normalize(v)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Compute the dot product of two vectors."""
    return tm.dot(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Computes R = I - 2(I . N)N. The normal should be unit length.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The mirror-reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


# =============================================================================
# Voxel Helpers
# =============================================================================


@ti.func
def to_vec3(p: ivec3) -> vec3:
    """Convert an integer voxel coordinate to a float vector."""
    return vec3(ti.cast(p.x, ti.f32), ti.cast(p.y, ti.f32), ti.cast(p.z, ti.f32))


@ti.func
def voxel_floor(pos: vec3) -> ivec3:
    """Return the coordinate of the voxel containing a continuous position."""
    return ivec3(
        ti.cast(ti.floor(pos.x), ti.i32),
        ti.cast(ti.floor(pos.y), ti.i32),
        ti.cast(ti.floor(pos.z), ti.i32),
    )


@ti.func
def voxel_center(p: ivec3) -> vec3:
    """Return the centroid (x+0.5, y+0.5, z+0.5) of a unit voxel."""
    return to_vec3(p) + vec3(0.5, 0.5, 0.5)


@ti.func
def voxel_equals(a: ivec3, b: ivec3) -> ti.i32:
    """Check whether two voxel coordinates are identical."""
    return a.x == b.x and a.y == b.y and a.z == b.z


@ti.func
def _wall_step(position: ti.f32, cell: ti.f32, back: ti.f32) -> ti.f32:
    """Parametric distance along one axis to the wall the backward ray meets."""
    step = FAR
    if back > 0.0:
        step = (cell + 1.0 - position) / back
    elif back < 0.0:
        step = (cell - position) / back
    return step


@ti.func
def _axis_sign(back: ti.f32) -> ti.f32:
    sign = -1.0
    if back > 0.0:
        sign = 1.0
    return sign


@ti.func
def prob_voxel_norm(pos: vec3, direction: vec3) -> vec3:
    """Estimate the outward normal of the voxel face a ray just entered.

    The position is assumed to lie on (or just past) the face of the voxel it
    entered while travelling along `direction`. Walking backwards from the
    position, the face reached first is the entry face; its outward normal
    points against the incoming direction on that axis.

    Ties are resolved in axis order: X wins unless Y is strictly closer, and
    the current best wins unless Z is strictly closer.

    Args:
        pos: A position inside (or on the boundary of) the hit voxel.
        direction: The incoming ray direction.

    Returns:
        An axis-aligned unit normal.
    """
    back = -direction
    cell = to_vec3(voxel_floor(pos))

    step_x = _wall_step(pos.x, cell.x, back.x)
    step_y = _wall_step(pos.y, cell.y, back.y)
    step_z = _wall_step(pos.z, cell.z, back.z)

    best = step_x
    normal = vec3(_axis_sign(back.x), 0.0, 0.0)
    if step_y < best:
        best = step_y
        normal = vec3(0.0, _axis_sign(back.y), 0.0)
    if step_z < best:
        best = step_z
        normal = vec3(0.0, 0.0, _axis_sign(back.z))
    return normal
