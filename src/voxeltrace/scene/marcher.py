"""Hierarchical empty-space-skipping ray marcher.

cast_to_hit() walks a ray through the voxel octree. At every step it asks the
octree what lies at the current position: an occupied voxel ends the march,
free space yields the distance to the far side of the empty node, which the
ray skips in a single step (plus a small push so it lands strictly past the
boundary). Large empty regions are therefore crossed in one step instead of
one voxel at a time.

Every march ends in one of four states:

- HIT: the ray reached an occupied voxel.
- OUT_OF_TREE: the ray left the root bounds.
- MAX_DISTANCE: the distance budget was exceeded.
- INSUFFICIENT_STEPS: the step budget ran out first. This points at budgets
  that do not fit the scene scale rather than at the scene itself.
"""

import math
from dataclasses import dataclass
from enum import IntEnum

import taichi as ti

from voxeltrace.core import settings
from voxeltrace.core.vector import vec3
from voxeltrace.geometry.cube import cube_contains_f
from voxeltrace.geometry.point import Point
from voxeltrace.scene.octree import NO_PAYLOAD, find_closest, octree_root


class CastStatus(IntEnum):
    """Terminal state of a march."""

    HIT = 0
    OUT_OF_TREE = 1
    MAX_DISTANCE = 2
    INSUFFICIENT_STEPS = 3


STATUS_HIT = int(CastStatus.HIT)
STATUS_OUT_OF_TREE = int(CastStatus.OUT_OF_TREE)
STATUS_MAX_DISTANCE = int(CastStatus.MAX_DISTANCE)
STATUS_INSUFFICIENT_STEPS = int(CastStatus.INSUFFICIENT_STEPS)
_MARCHING = -1


@ti.dataclass
class CastResult:
    """Outcome of cast_to_hit().

    Attributes:
        status: A CastStatus value.
        payload: Payload of the hit voxel, -1 unless status is HIT.
        position: Final ray position (inside the hit voxel for a HIT).
        distance: Total distance travelled.
        steps: Number of octree lookups performed.
    """

    status: ti.i32
    payload: ti.i32
    position: vec3
    distance: ti.f32
    steps: ti.i32


@ti.func
def cast_to_hit(origin: vec3, direction: vec3) -> CastResult:
    """March a ray until it hits a voxel or a budget runs out.

    Args:
        origin: Start of the ray.
        direction: Unit ray direction.

    Returns:
        A CastResult describing how the march ended.
    """
    root = octree_root()
    limit_steps = settings.max_steps[None]
    limit_distance = settings.max_distance[None]
    push = settings.push_distance[None]

    pos = origin
    travelled = 0.0
    steps = 0
    payload = NO_PAYLOAD
    status = _MARCHING
    while status == _MARCHING:
        if steps >= limit_steps:
            status = STATUS_INSUFFICIENT_STEPS
        elif cube_contains_f(root, pos) == 0:
            status = STATUS_OUT_OF_TREE
        else:
            steps += 1
            found, skip = find_closest(pos, direction)
            if found != NO_PAYLOAD:
                payload = found
                status = STATUS_HIT
            else:
                step = push
                if skip >= push:
                    step = skip + push
                pos += direction * step
                travelled += step
                if travelled > limit_distance:
                    status = STATUS_MAX_DISTANCE
    return CastResult(
        status=status, payload=payload, position=pos, distance=travelled, steps=steps
    )


# =============================================================================
# Python Interface
# =============================================================================


@dataclass(frozen=True)
class CastOutcome:
    """Python-side copy of a CastResult.

    Attributes:
        status: How the march ended.
        payload: Payload of the hit voxel, None unless status is HIT.
        position: Final ray position.
        distance: Total distance travelled.
        steps: Number of octree lookups performed.
    """

    status: CastStatus
    payload: int | None
    position: tuple[float, float, float]
    distance: float
    steps: int

    @property
    def hit(self) -> bool:
        return self.status == CastStatus.HIT

    @property
    def voxel(self) -> Point:
        """The voxel containing the final position."""
        return Point.containing(self.position)


_cast_status = ti.field(dtype=ti.i32, shape=())
_cast_payload = ti.field(dtype=ti.i32, shape=())
_cast_position = ti.Vector.field(3, dtype=ti.f32, shape=())
_cast_distance = ti.field(dtype=ti.f32, shape=())
_cast_steps = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _cast_kernel(ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32):
    result = cast_to_hit(vec3(ox, oy, oz), vec3(dx, dy, dz))
    _cast_status[None] = result.status
    _cast_payload[None] = result.payload
    _cast_position[None] = result.position
    _cast_distance[None] = result.distance
    _cast_steps[None] = result.steps


def cast_ray(
    origin: tuple[float, float, float], direction: tuple[float, float, float]
) -> CastOutcome:
    """March a single ray from Python scope.

    The direction is normalized before marching.

    Raises:
        ValueError: If the direction has zero length.
    """
    norm = math.sqrt(sum(float(c) * float(c) for c in direction))
    if norm == 0.0 or not math.isfinite(norm):
        raise ValueError(f"Ray direction {tuple(direction)} must be finite and non-zero.")
    dx, dy, dz = (float(c) / norm for c in direction)
    settings.ensure_tracer_configured()
    _cast_kernel(float(origin[0]), float(origin[1]), float(origin[2]), dx, dy, dz)

    status = CastStatus(int(_cast_status[None]))
    payload = int(_cast_payload[None]) if status == CastStatus.HIT else None
    position = _cast_position[None]
    return CastOutcome(
        status=status,
        payload=payload,
        position=(float(position[0]), float(position[1]), float(position[2])),
        distance=float(_cast_distance[None]),
        steps=int(_cast_steps[None]),
    )
