"""Sparse voxel octree mapping integer voxel coordinates to a payload.

The octree covers a cubic world volume whose edge length is a power of two.
Every node is one of:

- EMPTY: nothing inside, the whole node is free space.
- LEAF: the entire unit cube is occupied by an integer payload.
- SPLIT: subdivided into 8 equal children.

Nodes live in a flat arena of Taichi fields. A split node stores the index of
its first child; its 8 children occupy consecutive slots in the order given by
cube_child() (bit 2 = upper X half, bit 1 = upper Y half, bit 0 = upper Z half).

The payload is an integer handle; the renderer stores material ids in it.
Insertion outside the root bounds is silently ignored, and inserting into an
occupied leaf overwrites its payload.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from voxeltrace.scene.octree import setup_octree, insert_voxel, probe_closest
    >>> setup_octree((-64, -64, -64), 128)
    >>> insert_voxel((5, 5, 10), 7)
    >>> probe_closest((5.5, 5.5, 10.5), (1.0, 0.0, 0.0))
    (7, 0.0)
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti

from voxeltrace.core.vector import ivec3, vec3
from voxeltrace.geometry.cube import (
    Cube,
    cube_child,
    cube_contains,
    cube_contains_f,
    cube_distance_to,
    cube_max_marchable_distance,
    cube_octant,
    cube_point_octant,
    make_cube,
)
from voxeltrace.geometry.point import Point, as_point

logger = logging.getLogger(__name__)


class NodeKind(IntEnum):
    """State of an octree node."""

    EMPTY = 0
    LEAF = 1
    SPLIT = 2


NODE_EMPTY = int(NodeKind.EMPTY)
NODE_LEAF = int(NodeKind.LEAF)
NODE_SPLIT = int(NodeKind.SPLIT)

# Outcomes of a single insertion
INSERT_DONE = 0
INSERT_OUT_OF_BOUNDS = 1
INSERT_OVERFLOW = 2
_INSERT_PENDING = -1

# Payload reported for free space
NO_PAYLOAD = -1

# Kernels address voxels and payloads with 32-bit integers
INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
MAX_WORLD_SIZE = 1 << 30

# Arena capacity (node slots)
MAX_OCTREE_NODES = 1 << 20

# Capacity of the radius query
MAX_QUERY_RESULTS = 1 << 16
# Depth-first stack for the radius query; 7 * 31 + 1 entries covers any tree
QUERY_STACK_SIZE = 256

# Node arena
node_kinds = ti.field(dtype=ti.i32, shape=MAX_OCTREE_NODES)
node_payloads = ti.field(dtype=ti.i32, shape=MAX_OCTREE_NODES)
node_first_child = ti.field(dtype=ti.i32, shape=MAX_OCTREE_NODES)
num_nodes = ti.field(dtype=ti.i32, shape=())

# Root bounds
root_origin = ti.Vector.field(3, dtype=ti.i32, shape=())
root_size = ti.field(dtype=ti.i32, shape=())

# Radius query scratch space
_stack_nodes = ti.field(dtype=ti.i32, shape=QUERY_STACK_SIZE)
_stack_origins = ti.Vector.field(3, dtype=ti.i32, shape=QUERY_STACK_SIZE)
_stack_sizes = ti.field(dtype=ti.i32, shape=QUERY_STACK_SIZE)
_query_points = ti.Vector.field(3, dtype=ti.i32, shape=MAX_QUERY_RESULTS)
_query_payloads = ti.field(dtype=ti.i32, shape=MAX_QUERY_RESULTS)
_query_overflow = ti.field(dtype=ti.i32, shape=())

# Single-probe results
_probe_payload = ti.field(dtype=ti.i32, shape=())
_probe_distance = ti.field(dtype=ti.f32, shape=())


def validate_bounds(origin: Iterable[int], size: int) -> Point:
    """Check a world volume declaration and return its origin as a Point.

    Raises:
        ValueError: If the origin is not an integer triple, size is not a
            positive power of two, or the volume does not fit 32-bit
            coordinates.
    """
    origin = as_point(origin)
    if size < 1 or size & (size - 1):
        raise ValueError(f"World size {size} must be a positive power of two.")
    if size > MAX_WORLD_SIZE:
        raise ValueError(f"World size {size} exceeds the maximum of {MAX_WORLD_SIZE}.")
    if any(c < INT32_MIN or c + size - 1 > INT32_MAX for c in origin):
        raise ValueError(
            f"World volume at {tuple(origin)} with size {size} does not fit 32-bit coordinates."
        )
    return origin


def point_in_bounds(point: Iterable[int], origin: Iterable[int], size: int) -> bool:
    """Closed-open containment of a coordinate in a cubic volume, in Python scope."""
    return all(o <= c < o + size for o, c in zip(origin, point))


def setup_octree(origin: Iterable[int], size: int) -> None:
    """Declare the world volume and reset the octree to a single empty root.

    Args:
        origin: Integer minimum corner of the world volume.
        size: Edge length of the world volume (a power of two).

    Raises:
        ValueError: If size is not a positive power of two.
    """
    origin = validate_bounds(origin, size)
    root_origin[None] = [origin.x, origin.y, origin.z]
    root_size[None] = size
    clear_octree()
    logger.debug("Octree bounds set to origin=%s size=%d", tuple(origin), size)


def clear_octree() -> None:
    """Remove every voxel but keep the root bounds."""
    node_kinds[0] = NODE_EMPTY
    node_payloads[0] = NO_PAYLOAD
    node_first_child[0] = -1
    num_nodes[None] = 1


def get_octree_bounds() -> tuple[Point, int]:
    """Return the (origin, size) of the root bounds."""
    origin = root_origin[None]
    return Point(int(origin[0]), int(origin[1]), int(origin[2])), int(root_size[None])


def get_node_count() -> int:
    """Get the number of allocated nodes (including empty ones)."""
    return int(num_nodes[None])


@ti.func
def octree_root() -> Cube:
    """Bounds of the root node."""
    return make_cube(root_origin[None], root_size[None])


# =============================================================================
# Insertion
# =============================================================================


@ti.func
def _allocate_children(node: ti.i32) -> ti.i32:
    """Turn an empty node into a split node with 8 empty children.

    Returns 1 on success, 0 if the arena is full.
    """
    ok = 0
    first = num_nodes[None]
    if first + 8 <= MAX_OCTREE_NODES:
        for i in range(8):
            node_kinds[first + i] = NODE_EMPTY
            node_payloads[first + i] = NO_PAYLOAD
            node_first_child[first + i] = -1
        num_nodes[None] = first + 8
        node_first_child[node] = first
        node_kinds[node] = NODE_SPLIT
        ok = 1
    return ok


@ti.func
def _insert_one(p: ivec3, payload: ti.i32) -> ti.i32:
    """Insert a payload at a voxel coordinate, descending from the root."""
    cube = octree_root()
    status = INSERT_OUT_OF_BOUNDS
    if cube_contains(cube, p):
        status = _INSERT_PENDING
    node = 0
    while status == _INSERT_PENDING:
        kind = node_kinds[node]
        if kind == NODE_SPLIT:
            octant = cube_point_octant(cube, p)
            cube = cube_child(cube, octant)
            node = node_first_child[node] + octant
        elif kind == NODE_LEAF:
            node_payloads[node] = payload
            status = INSERT_DONE
        elif cube.size == 1:
            node_kinds[node] = NODE_LEAF
            node_payloads[node] = payload
            status = INSERT_DONE
        elif _allocate_children(node) == 0:
            status = INSERT_OVERFLOW
        # A freshly split node is retried on the next iteration
    return status


@ti.kernel
def _insert_voxel_kernel(x: ti.i32, y: ti.i32, z: ti.i32, payload: ti.i32) -> ti.i32:
    return _insert_one(ivec3(x, y, z), payload)


@ti.kernel
def _insert_voxels_kernel(
    points: ti.types.ndarray(),
    payloads: ti.types.ndarray(),
    count: ti.i32,
    result: ti.types.ndarray(),
):
    # result[0]: in-bounds insertions, result[1]: overflow flag
    ti.loop_config(serialize=True)
    for i in range(count):
        if result[1] == 0:
            status = _insert_one(ivec3(points[i, 0], points[i, 1], points[i, 2]), payloads[i])
            if status == INSERT_DONE:
                result[0] += 1
            elif status == INSERT_OVERFLOW:
                result[1] = 1


def _overflow_error() -> RuntimeError:
    return RuntimeError(f"Maximum number of octree nodes ({MAX_OCTREE_NODES}) exceeded")


def insert_voxel(point: Iterable[int], payload: int) -> bool:
    """Store a payload at a voxel coordinate.

    Points outside the root bounds are ignored. Inserting at an occupied
    voxel overwrites its payload.

    Args:
        point: Integer voxel coordinate.
        payload: Non-negative integer payload (a material id).

    Returns:
        True if the point was inside the root bounds.

    Raises:
        ValueError: If the payload is negative or does not fit 32 bits.
        RuntimeError: If the node arena is exhausted.
    """
    point = as_point(point)
    if not 0 <= payload <= INT32_MAX:
        raise ValueError(f"Payload {payload} must be non-negative and fit 32 bits.")
    origin, size = get_octree_bounds()
    # Checked here so coordinates beyond 32 bits never reach the kernel
    if not point_in_bounds(point, origin, size):
        logger.debug("Ignoring voxel %s outside the octree bounds", tuple(point))
        return False
    status = _insert_voxel_kernel(point.x, point.y, point.z, payload)
    if status == INSERT_OVERFLOW:
        raise _overflow_error()
    return True


def insert_voxels(points: npt.ArrayLike, payloads: npt.ArrayLike) -> int:
    """Insert many voxels in a single serial kernel launch.

    Args:
        points: Integer array of shape (N, 3).
        payloads: Integer array of shape (N,) or a single payload for all.

    Returns:
        The number of points that were inside the root bounds.

    Raises:
        ValueError: If the shapes do not match or a payload is negative or
            does not fit 32 bits.
        RuntimeError: If the node arena is exhausted.
    """
    points_arr = np.asarray(points, dtype=np.int64).reshape(-1, 3)
    payloads_arr = np.asarray(payloads, dtype=np.int64)
    if payloads_arr.ndim == 0:
        payloads_arr = np.full(len(points_arr), int(payloads_arr), dtype=np.int64)
    if payloads_arr.shape != (len(points_arr),):
        raise ValueError(
            f"Got {len(points_arr)} points but payload shape {payloads_arr.shape}"
        )
    if len(points_arr) == 0:
        return 0
    if np.any(payloads_arr < 0) or np.any(payloads_arr > INT32_MAX):
        raise ValueError("Payloads must be non-negative and fit 32 bits.")

    # Drop out-of-bounds points before narrowing to 32 bits
    origin, size = get_octree_bounds()
    low = np.array(origin, dtype=np.int64)
    inside = np.all((points_arr >= low) & (points_arr < low + size), axis=1)
    skipped = int(len(points_arr) - np.count_nonzero(inside))
    if skipped:
        logger.debug("Ignored %d voxels outside the octree bounds", skipped)
    points_arr = np.ascontiguousarray(points_arr[inside], dtype=np.int32)
    payloads_arr = np.ascontiguousarray(payloads_arr[inside], dtype=np.int32)
    if len(points_arr) == 0:
        return 0

    result = np.zeros(2, dtype=np.int32)
    _insert_voxels_kernel(points_arr, payloads_arr, len(points_arr), result)
    if result[1]:
        raise _overflow_error()
    return int(result[0])


# =============================================================================
# Queries
# =============================================================================


@ti.func
def find_closest(pos: vec3, direction: vec3):
    """Find the payload at a position, or the distance of free space ahead.

    The position must lie inside the root bounds. Descends through exactly one
    child per level, the one containing the position.

    Args:
        pos: Query position inside the root bounds.
        direction: Ray direction used for the empty-space distance.

    Returns:
        A tuple (payload, distance): (payload, 0) inside an occupied voxel,
        (NO_PAYLOAD, exit distance of the empty node) in free space.
    """
    cube = octree_root()
    node = 0
    payload = NO_PAYLOAD
    distance = 0.0
    searching = 1
    while searching == 1:
        kind = node_kinds[node]
        if kind == NODE_SPLIT:
            octant = cube_octant(cube, pos)
            cube = cube_child(cube, octant)
            node = node_first_child[node] + octant
        elif kind == NODE_LEAF:
            payload = node_payloads[node]
            searching = 0
        else:
            distance = cube_max_marchable_distance(cube, pos, direction)
            searching = 0
    return payload, distance


@ti.kernel
def _probe_kernel(px: ti.f32, py: ti.f32, pz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32):
    payload, distance = find_closest(vec3(px, py, pz), vec3(dx, dy, dz))
    _probe_payload[None] = payload
    _probe_distance[None] = distance


def probe_closest(
    pos: tuple[float, float, float], direction: tuple[float, float, float]
) -> tuple[int | None, float]:
    """Python-side find_closest().

    Args:
        pos: Query position, must lie inside the root bounds.
        direction: Ray direction.

    Returns:
        (payload, 0.0) for an occupied voxel, (None, skip distance) otherwise.

    Raises:
        ValueError: If the position lies outside the root bounds.
    """
    origin, size = get_octree_bounds()
    if not point_in_bounds(pos, origin, size):
        raise ValueError(f"Position {tuple(pos)} lies outside the octree bounds.")
    _probe_kernel(*(float(c) for c in pos), *(float(c) for c in direction))
    payload = int(_probe_payload[None])
    distance = float(_probe_distance[None])
    if payload == NO_PAYLOAD:
        return None, distance
    return payload, distance


@ti.kernel
def _query_radius_kernel(px: ti.f32, py: ti.f32, pz: ti.f32, radius: ti.f32) -> ti.i32:
    pos = vec3(px, py, pz)
    count = 0
    _query_overflow[None] = 0
    _stack_nodes[0] = 0
    _stack_origins[0] = root_origin[None]
    _stack_sizes[0] = root_size[None]
    top = 1
    while top > 0:
        top -= 1
        node = _stack_nodes[top]
        cube = make_cube(_stack_origins[top], _stack_sizes[top])
        kind = node_kinds[node]
        if kind != NODE_EMPTY and (
            cube_contains_f(cube, pos) == 1 or cube_distance_to(cube, pos) <= radius
        ):
            if kind == NODE_LEAF:
                if count < MAX_QUERY_RESULTS:
                    _query_points[count] = cube.origin
                    _query_payloads[count] = node_payloads[node]
                    count += 1
                else:
                    _query_overflow[None] = 1
            else:
                first = node_first_child[node]
                # Push in reverse so children are visited in index order
                for k in range(8):
                    octant = 7 - k
                    child = cube_child(cube, octant)
                    _stack_nodes[top] = first + octant
                    _stack_origins[top] = child.origin
                    _stack_sizes[top] = child.size
                    top += 1
    return count


def query_radius(
    pos: tuple[float, float, float],
    radius: float,
    visit_fn: Callable[[Point, int], None],
) -> int:
    """Visit every occupied voxel within a radius of a position.

    A voxel is visited if its bounds contain the position or their nearest
    point is at most radius away. Subtrees whose bounds are farther away are
    never descended.

    Args:
        pos: Query position (may lie outside the root bounds).
        radius: Search radius.
        visit_fn: Called with (voxel point, payload) for each match.

    Returns:
        The number of visited voxels.

    Raises:
        ValueError: If radius is negative.
        RuntimeError: If more than MAX_QUERY_RESULTS voxels match.
    """
    if radius < 0.0:
        raise ValueError(f"Radius {radius} must not be negative.")
    count = _query_radius_kernel(float(pos[0]), float(pos[1]), float(pos[2]), float(radius))
    if _query_overflow[None]:
        raise RuntimeError(f"Radius query matched more than {MAX_QUERY_RESULTS} voxels")
    if count == 0:
        return 0
    points = _query_points.to_numpy()[:count]
    payloads = _query_payloads.to_numpy()[:count]
    for point, payload in zip(points, payloads):
        visit_fn(Point(int(point[0]), int(point[1]), int(point[2])), int(payload))
    return count


# =============================================================================
# Inspection
# =============================================================================


@dataclass(frozen=True)
class OctreeNodeInfo:
    """Snapshot of one octree node.

    Attributes:
        index: Arena slot of the node.
        kind: Node state.
        origin: Integer minimum corner of the node bounds.
        size: Edge length of the node bounds.
        payload: Payload of a leaf, None otherwise.
        children: Arena slots of the 8 children of a split node, else empty.
    """

    index: int
    kind: NodeKind
    origin: Point
    size: int
    payload: int | None
    children: tuple[int, ...]


def walk_octree() -> Iterator[OctreeNodeInfo]:
    """Yield every node reachable from the root, parents before children."""
    count = get_node_count()
    kinds = node_kinds.to_numpy()[:count]
    payloads = node_payloads.to_numpy()[:count]
    first_children = node_first_child.to_numpy()[:count]
    origin, size = get_octree_bounds()

    pending = [(0, origin, size)]
    while pending:
        index, node_origin, node_size = pending.pop()
        kind = NodeKind(int(kinds[index]))
        children: tuple[int, ...] = ()
        if kind == NodeKind.SPLIT:
            first = int(first_children[index])
            children = tuple(range(first, first + 8))
            half = node_size // 2
            for octant in reversed(range(8)):
                child_origin = node_origin.offset(
                    half * ((octant >> 2) & 1), half * ((octant >> 1) & 1), half * (octant & 1)
                )
                pending.append((first + octant, child_origin, half))
        yield OctreeNodeInfo(
            index=index,
            kind=kind,
            origin=node_origin,
            size=node_size,
            payload=int(payloads[index]) if kind == NodeKind.LEAF else None,
            children=children,
        )


def get_leaf_count() -> int:
    """Get the number of occupied voxels."""
    return sum(1 for info in walk_octree() if info.kind == NodeKind.LEAF)
