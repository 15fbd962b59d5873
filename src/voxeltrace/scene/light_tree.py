"""Light importance tree: a spatial index over emissive voxels.

Each node covers a cube of the world volume and keeps a list of lights that
are bright enough everywhere inside it. A light is offered to a node as
follows:

1. If its minimum brightness anywhere in the node (strength over the squared
   distance to the farthest corner) exceeds the useful limit, it is recorded
   at the node and offered no further.
2. Otherwise, if it lies outside the node and its maximum brightness (nearest
   point of the node) falls below the negligible limit, it is pruned for the
   whole subtree.
3. Otherwise it is recorded at unit-sized nodes, or the node splits and the
   light is offered to all 8 children.

A query walks the path from the root to the unit node containing a position
and visits every light recorded along the way, parents first.

The tree lives in Taichi fields: a node arena (8 consecutive children per
split, same octant order as the voxel octree), an entry arena forming one
linked list per node, and a light table.
"""

import logging
from collections.abc import Callable, Iterable

import taichi as ti

from voxeltrace.core.settings import get_tracer_settings
from voxeltrace.core.vector import ivec3, vec3, voxel_center
from voxeltrace.geometry.cube import (
    Cube,
    cube_child,
    cube_contains_f,
    cube_distance_to,
    cube_max_border_distance,
    cube_octant,
    make_cube,
)
from voxeltrace.geometry.point import Point, as_point
from voxeltrace.materials.voxel import emission_strength_f
from voxeltrace.scene.octree import point_in_bounds, validate_bounds

logger = logging.getLogger(__name__)

MAX_LIGHTS = 4096
MAX_LIGHT_NODES = 1 << 21
MAX_LIGHT_ENTRIES = 1 << 22
MAX_LIGHT_QUERY_RESULTS = 4096
_INSERT_STACK_SIZE = 256

NO_ENTRY = -1

# Light table
light_points = ti.Vector.field(3, dtype=ti.i32, shape=MAX_LIGHTS)
light_emissions = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())

# Node arena
light_node_first_child = ti.field(dtype=ti.i32, shape=MAX_LIGHT_NODES)
light_node_head = ti.field(dtype=ti.i32, shape=MAX_LIGHT_NODES)
light_node_tail = ti.field(dtype=ti.i32, shape=MAX_LIGHT_NODES)
num_light_nodes = ti.field(dtype=ti.i32, shape=())

# Entry arena (singly linked lists hanging off the nodes)
entry_lights = ti.field(dtype=ti.i32, shape=MAX_LIGHT_ENTRIES)
entry_next = ti.field(dtype=ti.i32, shape=MAX_LIGHT_ENTRIES)
num_entries = ti.field(dtype=ti.i32, shape=())

# Root bounds
light_root_origin = ti.Vector.field(3, dtype=ti.i32, shape=())
light_root_size = ti.field(dtype=ti.i32, shape=())

# Insertion scratch space
_stack_nodes = ti.field(dtype=ti.i32, shape=_INSERT_STACK_SIZE)
_stack_origins = ti.Vector.field(3, dtype=ti.i32, shape=_INSERT_STACK_SIZE)
_stack_sizes = ti.field(dtype=ti.i32, shape=_INSERT_STACK_SIZE)
_insert_overflow = ti.field(dtype=ti.i32, shape=())

# Query results (light indices)
_query_lights = ti.field(dtype=ti.i32, shape=MAX_LIGHT_QUERY_RESULTS)
_query_overflow = ti.field(dtype=ti.i32, shape=())


def setup_light_tree(origin: Iterable[int], size: int) -> None:
    """Declare the volume covered by the light tree and drop every light.

    Raises:
        ValueError: If size is not a positive power of two.
    """
    origin = validate_bounds(origin, size)
    light_root_origin[None] = [origin.x, origin.y, origin.z]
    light_root_size[None] = size
    clear_light_tree()


def clear_light_tree() -> None:
    """Remove every light but keep the root bounds."""
    num_lights[None] = 0
    num_entries[None] = 0
    light_node_first_child[0] = -1
    light_node_head[0] = NO_ENTRY
    light_node_tail[0] = NO_ENTRY
    num_light_nodes[None] = 1


def get_light_count() -> int:
    """Get the number of inserted lights."""
    return int(num_lights[None])


def get_light_node_count() -> int:
    return int(num_light_nodes[None])


def get_light_entry_count() -> int:
    """Get the number of (node, light) records across the whole tree."""
    return int(num_entries[None])


def get_light(index: int) -> tuple[Point, int]:
    """Return the (point, emission code) of an inserted light."""
    if not 0 <= index < get_light_count():
        raise ValueError(f"Invalid light index: {index}")
    p = light_points[index]
    return Point(int(p[0]), int(p[1]), int(p[2])), int(light_emissions[index])


# =============================================================================
# Taichi Accessors
# =============================================================================


@ti.func
def light_tree_root() -> Cube:
    """Bounds of the root node (node index 0)."""
    return make_cube(light_root_origin[None], light_root_size[None])


@ti.func
def light_node_first_entry(node: ti.i32) -> ti.i32:
    """First entry of a node's light list, NO_ENTRY if empty."""
    return light_node_head[node]


@ti.func
def light_entry_next(entry: ti.i32) -> ti.i32:
    return entry_next[entry]


@ti.func
def light_entry_light(entry: ti.i32) -> ti.i32:
    return entry_lights[entry]


@ti.func
def light_point(light: ti.i32) -> ivec3:
    return light_points[light]


@ti.func
def light_emission(light: ti.i32) -> ti.i32:
    return light_emissions[light]


@ti.func
def light_child(node: ti.i32, octant: ti.i32) -> ti.i32:
    """Child of a node in the given octant, -1 if the node is not split."""
    child = -1
    first = light_node_first_child[node]
    if first != -1:
        child = first + octant
    return child


# =============================================================================
# Insertion
# =============================================================================


@ti.func
def _record(node: ti.i32, light: ti.i32) -> ti.i32:
    """Append a light to a node's list. Returns 0 if the entry arena is full."""
    ok = 0
    entry = num_entries[None]
    if entry < MAX_LIGHT_ENTRIES:
        num_entries[None] = entry + 1
        entry_lights[entry] = light
        entry_next[entry] = NO_ENTRY
        tail = light_node_tail[node]
        if tail == NO_ENTRY:
            light_node_head[node] = entry
        else:
            entry_next[tail] = entry
        light_node_tail[node] = entry
        ok = 1
    return ok


@ti.func
def _split(node: ti.i32) -> ti.i32:
    """Give a node 8 empty children. Returns 0 if the node arena is full."""
    ok = 1
    if light_node_first_child[node] == -1:
        ok = 0
        first = num_light_nodes[None]
        if first + 8 <= MAX_LIGHT_NODES:
            for i in range(8):
                light_node_first_child[first + i] = -1
                light_node_head[first + i] = NO_ENTRY
                light_node_tail[first + i] = NO_ENTRY
            num_light_nodes[None] = first + 8
            light_node_first_child[node] = first
            ok = 1
    return ok


@ti.kernel
def _insert_light_kernel(light: ti.i32, useful: ti.f32, negligible: ti.f32) -> ti.i32:
    center = voxel_center(light_points[light])
    strength = emission_strength_f(light_emissions[light])
    records = 0
    _insert_overflow[None] = 0

    _stack_nodes[0] = 0
    _stack_origins[0] = light_root_origin[None]
    _stack_sizes[0] = light_root_size[None]
    top = 1
    while top > 0:
        top -= 1
        node = _stack_nodes[top]
        cube = make_cube(_stack_origins[top], _stack_sizes[top])

        record = 0
        descend = 0
        farthest = cube_max_border_distance(cube, center)
        if strength / (farthest * farthest) > useful:
            record = 1
        else:
            relevant = 1
            if cube_contains_f(cube, center) == 0:
                nearest = cube_distance_to(cube, center)
                if strength / (nearest * nearest) < negligible:
                    relevant = 0
            if relevant == 1:
                if cube.size == 1:
                    record = 1
                else:
                    descend = 1

        if record == 1:
            if _record(node, light) == 1:
                records += 1
            else:
                _insert_overflow[None] = 1
                top = 0
        elif descend == 1:
            if _split(node) == 1:
                first = light_node_first_child[node]
                for k in range(8):
                    octant = 7 - k
                    child = cube_child(cube, octant)
                    _stack_nodes[top] = first + octant
                    _stack_origins[top] = child.origin
                    _stack_sizes[top] = child.size
                    top += 1
            else:
                _insert_overflow[None] = 1
                top = 0
    return records


def insert_light(
    point: Iterable[int],
    emission: int,
    useful_limit: float | None = None,
    negligible_limit: float | None = None,
) -> bool:
    """Insert an emissive voxel into the light tree.

    The emissive voxel itself must be inserted into the voxel octree
    separately; shadow rays only count a light when they hit that voxel.

    Args:
        point: Voxel coordinate of the light.
        emission: Emission code (byte), strength = 2 ** (emission / 16).
        useful_limit: Brightness above which a light is recorded at a node.
            Defaults to the active tracer settings.
        negligible_limit: Brightness below which a light is pruned.
            Defaults to the active tracer settings.

    Returns:
        True if the light lies inside the root bounds, False if it was ignored.

    Raises:
        ValueError: If the emission code is not a byte or the limits are
            inconsistent.
        RuntimeError: If the light table, node arena or entry arena is full.
    """
    point = as_point(point)
    if isinstance(emission, bool) or int(emission) != emission or not 0 <= emission <= 255:
        raise ValueError(f"Emission = {emission!r} is not a byte in [0, 255].")
    settings = get_tracer_settings()
    useful = settings.useful_light_limit if useful_limit is None else useful_limit
    negligible = settings.negligible_light_limit if negligible_limit is None else negligible_limit
    if negligible < 0.0 or useful < negligible:
        raise ValueError(
            f"Light limits must satisfy 0 <= negligible ({negligible}) <= useful ({useful})."
        )

    origin = light_root_origin.to_numpy().tolist()
    size = int(light_root_size[None])
    if not point_in_bounds(point, origin, size):
        logger.debug("Ignoring light %s outside the light tree bounds", tuple(point))
        return False

    index = int(num_lights[None])
    if index >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_points[index] = [point.x, point.y, point.z]
    light_emissions[index] = int(emission)
    num_lights[None] = index + 1

    records = _insert_light_kernel(index, float(useful), float(negligible))
    if _insert_overflow[None]:
        raise RuntimeError(
            f"Light tree capacity exceeded ({MAX_LIGHT_NODES} nodes, {MAX_LIGHT_ENTRIES} entries)"
        )
    logger.debug("Light %s (emission %d) recorded at %d nodes", tuple(point), emission, records)
    return True


# =============================================================================
# Queries
# =============================================================================


@ti.kernel
def _query_lights_kernel(px: ti.f32, py: ti.f32, pz: ti.f32) -> ti.i32:
    pos = vec3(px, py, pz)
    count = 0
    _query_overflow[None] = 0
    cube = light_tree_root()
    node = -1
    if cube_contains_f(cube, pos):
        node = 0
    while node != -1:
        entry = light_node_first_entry(node)
        while entry != NO_ENTRY:
            if count < MAX_LIGHT_QUERY_RESULTS:
                _query_lights[count] = light_entry_light(entry)
                count += 1
            else:
                _query_overflow[None] = 1
            entry = light_entry_next(entry)
        octant = cube_octant(cube, pos)
        node = light_child(node, octant)
        cube = cube_child(cube, octant)
    return count


def query_lights(
    pos: tuple[float, float, float], visit_fn: Callable[[Point, int], None]
) -> int:
    """Visit every light recorded on the path from the root to a position.

    Lights are visited parent node first, then in insertion order within a
    node. Positions outside the root bounds visit nothing.

    Args:
        pos: Query position.
        visit_fn: Called with (light point, emission code) per recorded light.

    Returns:
        The number of visits.

    Raises:
        RuntimeError: If more than MAX_LIGHT_QUERY_RESULTS lights match.
    """
    count = _query_lights_kernel(float(pos[0]), float(pos[1]), float(pos[2]))
    if _query_overflow[None]:
        raise RuntimeError(f"Light query matched more than {MAX_LIGHT_QUERY_RESULTS} lights")
    if count == 0:
        return 0
    indices = _query_lights.to_numpy()[:count]
    points = light_points.to_numpy()
    emissions = light_emissions.to_numpy()
    for index in indices:
        p = points[index]
        visit_fn(Point(int(p[0]), int(p[1]), int(p[2])), int(emissions[index]))
    return count
