"""Tests for the light importance tree.

Tests cover:
- Recording at the root once a light is useful everywhere
- Pruning below the negligible limit, keeping lights exactly at it
- Query order (parent nodes first, insertion order within a node)
- Completeness: every light brighter than the negligible limit is visited
- Input validation
"""

import numpy as np
import pytest

# Brightness of a strength-1 light at (0, 0, 0) seen from the corner (4, 4, 4)
NEAREST_BRIGHTNESS = 1.0 / 36.75
# ... and from the corner (8, 8, 8)
FARTHEST_BRIGHTNESS = 1.0 / 168.75


def _collect(pos):
    from voxeltrace.scene.light_tree import query_lights

    found = []
    count = query_lights(pos, lambda point, emission: found.append((point, emission)))
    assert count == len(found)
    return found


class TestPruning:
    """Tests for the useful and negligible limits."""

    def test_light_just_below_negligible_is_pruned(self):
        """Test that a subtree is pruned when its brightest point is negligible."""
        from voxeltrace.scene.light_tree import insert_light, setup_light_tree

        setup_light_tree((0, 0, 0), 8)
        insert_light((0, 0, 0), 0, useful_limit=10.0, negligible_limit=NEAREST_BRIGHTNESS * 1.01)
        assert _collect((4.5, 4.5, 4.5)) == []

    def test_light_just_above_negligible_is_kept(self):
        """Test that the same light is found once the limit drops below it."""
        from voxeltrace.scene.light_tree import insert_light, setup_light_tree

        setup_light_tree((0, 0, 0), 8)
        insert_light((0, 0, 0), 0, useful_limit=10.0, negligible_limit=NEAREST_BRIGHTNESS * 0.99)
        assert _collect((4.5, 4.5, 4.5)) == [((0, 0, 0), 0)]

    def test_light_exactly_at_negligible_is_kept(self):
        """Test that a node whose brightest point equals the limit keeps the light."""
        from voxeltrace.scene.light_tree import insert_light, setup_light_tree

        # The unit node (1, 0, 0) is 0.5 from the light's center: brightness 1 / 0.25
        setup_light_tree((0, 0, 0), 8)
        insert_light((0, 0, 0), 0, useful_limit=10.0, negligible_limit=4.0)
        assert _collect((1.5, 0.5, 0.5)) == [((0, 0, 0), 0)]
        assert _collect((4.5, 0.5, 0.5)) == []

    def test_useful_light_recorded_at_root(self):
        """Test that a light useful everywhere never splits the root."""
        from voxeltrace.scene.light_tree import (
            get_light_entry_count,
            get_light_node_count,
            insert_light,
            setup_light_tree,
        )

        setup_light_tree((0, 0, 0), 8)
        insert_light((0, 0, 0), 0, useful_limit=FARTHEST_BRIGHTNESS * 0.99, negligible_limit=0.0)
        assert get_light_node_count() == 1
        assert get_light_entry_count() == 1
        assert _collect((7.5, 7.5, 7.5)) == [((0, 0, 0), 0)]

    def test_light_not_useful_at_root_splits(self):
        """Test that the root splits and the far corner still sees the light."""
        from voxeltrace.scene.light_tree import get_light_node_count, insert_light, setup_light_tree

        setup_light_tree((0, 0, 0), 8)
        insert_light((0, 0, 0), 0, useful_limit=FARTHEST_BRIGHTNESS * 1.01, negligible_limit=0.0)
        assert get_light_node_count() > 1
        assert _collect((7.5, 7.5, 7.5)) == [((0, 0, 0), 0)]
        assert _collect((0.5, 0.5, 0.5)) == [((0, 0, 0), 0)]


class TestQueryOrder:
    """Tests for the order lights are visited in."""

    def test_parent_lights_come_first(self):
        """Test that a light stored higher up is visited before a deeper one."""
        from voxeltrace.scene.light_tree import insert_light

        insert_light((10, 10, 10), 0)
        insert_light((0, 0, 0), 255)
        found = _collect((10.5, 10.5, 10.5))
        assert found == [((0, 0, 0), 255), ((10, 10, 10), 0)]

    def test_insertion_order_within_a_node(self):
        """Test that lights recorded at the same node keep insertion order."""
        from voxeltrace.scene.light_tree import insert_light

        insert_light((1, 1, 1), 255)
        insert_light((0, 0, 0), 255)
        found = _collect((-30.5, 20.5, 0.5))
        assert found == [((1, 1, 1), 255), ((0, 0, 0), 255)]

    def test_query_outside_root_visits_nothing(self):
        """Test that positions outside the root bounds have no lights."""
        from voxeltrace.scene.light_tree import insert_light

        insert_light((0, 0, 0), 255)
        assert _collect((100.0, 0.0, 0.0)) == []


class TestCompleteness:
    """Tests that no relevant light is lost."""

    def test_every_bright_light_is_visited_once(self):
        """Test against brute force for random lights and positions."""
        from voxeltrace.core.settings import get_tracer_settings
        from voxeltrace.materials.voxel import emission_strength
        from voxeltrace.scene.light_tree import insert_light, setup_light_tree

        setup_light_tree((-16, -16, -16), 32)
        rng = np.random.default_rng(3)
        lights = []
        for _ in range(6):
            point = tuple(int(c) for c in rng.integers(-16, 16, size=3))
            emission = int(rng.integers(0, 32))
            insert_light(point, emission)
            lights.append((point, emission))

        negligible = get_tracer_settings().negligible_light_limit
        for pos in rng.uniform(-16.0, 16.0, size=(40, 3)):
            found = _collect(tuple(pos))
            assert len(found) == len(set(found))
            for point, emission in lights:
                center = np.array(point, dtype=np.float64) + 0.5
                distance_sq = float(np.sum((center - pos) ** 2))
                # Stay clear of float32 rounding at the limit
                if emission_strength(emission) / distance_sq > negligible * 1.01:
                    assert (point, emission) in found


class TestValidation:
    """Tests for insert_light argument checks."""

    def test_light_outside_root_is_ignored(self):
        """Test that out-of-bounds lights are skipped."""
        from voxeltrace.scene.light_tree import get_light_count, insert_light

        assert insert_light((64, 0, 0), 10) is False
        assert get_light_count() == 0

    @pytest.mark.parametrize("emission", [-1, 256, 1.5, True])
    def test_invalid_emission(self, emission):
        """Test that the emission must be a byte."""
        from voxeltrace.scene.light_tree import insert_light

        with pytest.raises(ValueError, match="byte"):
            insert_light((0, 0, 0), emission)

    def test_inconsistent_limits(self):
        """Test that negligible must not exceed useful."""
        from voxeltrace.scene.light_tree import insert_light

        with pytest.raises(ValueError, match="negligible"):
            insert_light((0, 0, 0), 10, useful_limit=0.1, negligible_limit=0.2)

    def test_get_light_roundtrip(self):
        """Test that inserted lights can be read back."""
        from voxeltrace.scene.light_tree import get_light, get_light_count, insert_light

        insert_light((3, -4, 5), 42)
        assert get_light_count() == 1
        assert get_light(0) == ((3, -4, 5), 42)
        with pytest.raises(ValueError):
            get_light(1)
