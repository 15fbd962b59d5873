"""Pytest configuration for voxeltrace tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti

# World volume every test starts from
TEST_ORIGIN = (-64, -64, -64)
TEST_SIZE = 128


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset the octree, light tree, materials and settings around each test."""
    # Import here so Taichi is initialized before the fields are created
    from voxeltrace.core.settings import reset_tracer_settings
    from voxeltrace.core.shading import reset_light_violations
    from voxeltrace.materials.voxel import clear_voxel_materials
    from voxeltrace.scene.light_tree import setup_light_tree
    from voxeltrace.scene.octree import setup_octree

    def _clear_all():
        setup_octree(TEST_ORIGIN, TEST_SIZE)
        setup_light_tree(TEST_ORIGIN, TEST_SIZE)
        clear_voxel_materials()
        reset_tracer_settings()
        reset_light_violations()

    _clear_all()

    yield

    _clear_all()
