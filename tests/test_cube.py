"""Unit tests for the Cube bounds helpers.

Tests cover:
- Closed-open containment for integer and continuous positions
- Distances to the nearest point and the farthest corner
- Empty-space skip distance along each axis
- Octant selection and child tiling
"""

import math

import pytest
import taichi as ti


class TestContainment:
    """Tests for cube_contains and cube_contains_f."""

    def test_integer_containment_is_closed_open(self):
        """Test that the lower corner is inside and the upper bound is not."""
        from voxeltrace.geometry.cube import cube_contains, make_cube
        from voxeltrace.core.vector import ivec3

        result = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            cube = make_cube(ivec3(-4, 0, 0), 4)
            result[0] = cube_contains(cube, ivec3(-4, 0, 0))
            result[1] = cube_contains(cube, ivec3(-1, 3, 3))
            result[2] = cube_contains(cube, ivec3(0, 0, 0))
            result[3] = cube_contains(cube, ivec3(-5, 1, 1))

        test_kernel()
        assert [result[i] for i in range(4)] == [1, 1, 0, 0]

    def test_float_containment_is_closed_open(self):
        """Test continuous containment on the faces of the cube."""
        from voxeltrace.core.vector import ivec3, vec3
        from voxeltrace.geometry.cube import cube_contains_f, make_cube

        result = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            cube = make_cube(ivec3(0, 0, 0), 8)
            result[0] = cube_contains_f(cube, vec3(0.0, 0.0, 0.0))
            result[1] = cube_contains_f(cube, vec3(7.99, 4.0, 0.5))
            result[2] = cube_contains_f(cube, vec3(8.0, 4.0, 4.0))
            result[3] = cube_contains_f(cube, vec3(4.0, -0.01, 4.0))

        test_kernel()
        assert [result[i] for i in range(4)] == [1, 1, 0, 0]


class TestDistances:
    """Tests for cube_distance_to and cube_max_border_distance."""

    def _distances(self, pos):
        from voxeltrace.core.vector import ivec3, vec3
        from voxeltrace.geometry.cube import (
            cube_distance_to,
            cube_max_border_distance,
            make_cube,
        )

        result = ti.field(dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel(px: ti.f32, py: ti.f32, pz: ti.f32):
            cube = make_cube(ivec3(0, 0, 0), 4)
            result[0] = cube_distance_to(cube, vec3(px, py, pz))
            result[1] = cube_max_border_distance(cube, vec3(px, py, pz))

        test_kernel(*pos)
        return result[0], result[1]

    def test_inside_distance_is_zero(self):
        """Test that positions inside the cube are at distance zero."""
        nearest, farthest = self._distances((1.0, 1.0, 1.0))
        assert nearest == 0.0
        assert farthest == pytest.approx(3.0 * math.sqrt(3.0), rel=1e-5)

    def test_face_distance(self):
        """Test distance to a face straight ahead."""
        nearest, farthest = self._distances((6.0, 2.0, 2.0))
        assert nearest == pytest.approx(2.0)
        assert farthest == pytest.approx(math.sqrt(36.0 + 4.0 + 4.0), rel=1e-5)

    def test_corner_distance(self):
        """Test distance to the nearest corner from a diagonal position."""
        nearest, _ = self._distances((-1.0, -1.0, -1.0))
        assert nearest == pytest.approx(math.sqrt(3.0), rel=1e-5)


class TestMaxMarchableDistance:
    """Tests for the empty-space skip distance."""

    def _skip(self, direction):
        from voxeltrace.core.vector import ivec3, vec3
        from voxeltrace.geometry.cube import cube_max_marchable_distance, make_cube

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(dx: ti.f32, dy: ti.f32, dz: ti.f32):
            cube = make_cube(ivec3(0, 0, 0), 8)
            result[None] = cube_max_marchable_distance(
                cube, vec3(1.0, 2.0, 3.0), vec3(dx, dy, dz)
            )

        test_kernel(*direction)
        return result[None]

    @pytest.mark.parametrize(
        "direction, expected",
        [
            ((1.0, 0.0, 0.0), 7.0),
            ((-1.0, 0.0, 0.0), 1.0),
            ((0.0, -1.0, 0.0), 2.0),
            ((0.0, 0.0, 1.0), 5.0),
        ],
    )
    def test_axis_directions(self, direction, expected):
        """Test exit distances along each axis."""
        assert self._skip(direction) == pytest.approx(expected)

    def test_diagonal_direction(self):
        """Test that the nearest exiting axis bounds the skip."""
        d = 1.0 / math.sqrt(3.0)
        # z exits first after 5 units along z, i.e. 5 * sqrt(3) along the ray
        assert self._skip((d, d, d)) == pytest.approx(5.0 * math.sqrt(3.0), rel=1e-5)


class TestOctants:
    """Tests for octant selection and child bounds."""

    def test_boundary_belongs_to_upper_child(self):
        """Test that a position on the midplane selects the upper half."""
        from voxeltrace.core.vector import ivec3, vec3
        from voxeltrace.geometry.cube import cube_octant, cube_point_octant, make_cube

        result = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            cube = make_cube(ivec3(0, 0, 0), 8)
            result[0] = cube_octant(cube, vec3(4.0, 0.0, 0.0))
            result[1] = cube_octant(cube, vec3(3.99, 4.0, 4.0))
            result[2] = cube_point_octant(cube, ivec3(4, 4, 4))
            result[3] = cube_point_octant(cube, ivec3(3, 3, 3))

        test_kernel()
        assert result[0] == 0b100
        assert result[1] == 0b011
        assert result[2] == 0b111
        assert result[3] == 0

    def test_children_tile_the_parent(self):
        """Test that the 8 children have half size and distinct corners."""
        from voxeltrace.core.vector import ivec3
        from voxeltrace.geometry.cube import cube_child, make_cube

        origins = ti.Vector.field(3, dtype=ti.i32, shape=8)
        sizes = ti.field(dtype=ti.i32, shape=8)

        @ti.kernel
        def test_kernel():
            cube = make_cube(ivec3(-8, 0, 8), 8)
            for octant in range(8):
                child = cube_child(cube, octant)
                origins[octant] = child.origin
                sizes[octant] = child.size

        test_kernel()
        origins_np = origins.to_numpy()
        corners = {tuple(origins_np[i]) for i in range(8)}
        assert len(corners) == 8
        assert all(sizes[i] == 4 for i in range(8))
        assert tuple(origins_np[0]) == (-8, 0, 8)
        assert tuple(origins_np[0b100]) == (-4, 0, 8)
        assert tuple(origins_np[0b010]) == (-8, 4, 8)
        assert tuple(origins_np[0b001]) == (-8, 0, 12)

    def test_child_contains_its_octant_positions(self):
        """Test that the selected child contains the position."""
        from voxeltrace.core.vector import ivec3, vec3
        from voxeltrace.geometry.cube import cube_child, cube_contains_f, cube_octant, make_cube

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            cube = make_cube(ivec3(0, 0, 0), 16)
            result[None] = 1
            for i in range(16):
                for j in range(16):
                    fi = ti.cast(i, ti.f32)
                    pos = vec3(fi + 0.5, ti.cast(j, ti.f32), 15.0 - fi)
                    child = cube_child(cube, cube_octant(cube, pos))
                    if cube_contains_f(child, pos) == 0:
                        result[None] = 0

        test_kernel()
        assert result[None] == 1
