"""Tracer settings shared by the marcher, the light tree and the shader.

The epsilon pushes, march budgets and light-usefulness thresholds are tuned
per scene scale rather than derived from physics, so they are exposed as
tunable settings with documented defaults.

Kernels read the active values from Taichi scalar fields, which lets the
settings change between renders without recompiling any kernel. Call
configure_tracer() before rendering; the TileRenderer does this for you.

Example:
    >>> settings = TracerSettings(max_steps=200, max_depth=4)
    >>> configure_tracer(settings)
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import taichi as ti

logger = logging.getLogger(__name__)


@dataclass
class TracerSettings:
    """Tunable constants of the voxel ray tracer.

    Attributes:
        max_steps: Step budget of a single march.
        max_distance: Distance budget of a single march.
        push_distance: Epsilon added to every march step so the ray lands
            strictly past the boundary it skipped to.
        solid_push: Distance a hit position is moved back along the ray
            before shadow and reflection rays are cast from it.
        max_depth: Maximum shading recursion depth (reflection bounces + 1).
        useful_light_limit: A light is stored at a light-tree node once its
            minimum brightness anywhere inside the node exceeds this.
        negligible_light_limit: A light is pruned from a light-tree subtree
            when its maximum brightness inside it falls below this.
        reflection_bias: Exponent offset k of the reflection weight
            1 - 2 ** (-k + roughness / roughness_scale).
        roughness_scale: Roughness divisor of the reflection weight.
    """

    max_steps: int = 100
    max_distance: float = 1000.0
    push_distance: float = 1e-4
    solid_push: float = 2e-4
    max_depth: int = 6
    useful_light_limit: float = 1.0 / 20.0
    negligible_light_limit: float = 1.0 / 100.0
    reflection_bias: float = 4.0
    roughness_scale: float = 64.0

    def validate(self) -> None:
        """Check the settings for consistency.

        Raises:
            ValueError: If any value is out of range.
        """
        if self.max_steps < 1:
            raise ValueError(f"max_steps = {self.max_steps} must be at least 1.")
        if self.max_depth < 0:
            raise ValueError(f"max_depth = {self.max_depth} must not be negative.")
        for name in ("max_distance", "push_distance", "solid_push", "roughness_scale"):
            value = getattr(self, name)
            if value <= 0.0:
                raise ValueError(f"{name} = {value} must be positive.")
        if self.negligible_light_limit < 0.0:
            raise ValueError(
                f"negligible_light_limit = {self.negligible_light_limit} must not be negative."
            )
        if self.useful_light_limit < self.negligible_light_limit:
            raise ValueError(
                f"useful_light_limit = {self.useful_light_limit} is below "
                f"negligible_light_limit = {self.negligible_light_limit}."
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TracerSettings:
        """Build settings from a mapping.

        Raises:
            ValueError: If the mapping contains unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown tracer settings: {sorted(unknown)}")
        settings = cls(**data)
        settings.validate()
        return settings


def load_settings(path: str | Path) -> TracerSettings:
    """Read tracer settings from a JSON file.

    Missing keys keep their defaults.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a JSON object or holds invalid settings.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Tracer settings in {path} must be a JSON object.")
    settings = TracerSettings.from_dict(data)
    logger.info("Loaded tracer settings from %s", path)
    return settings


# =============================================================================
# Kernel-visible Settings
# =============================================================================

max_steps = ti.field(dtype=ti.i32, shape=())
max_distance = ti.field(dtype=ti.f32, shape=())
push_distance = ti.field(dtype=ti.f32, shape=())
solid_push = ti.field(dtype=ti.f32, shape=())
reflection_bias = ti.field(dtype=ti.f32, shape=())
roughness_scale = ti.field(dtype=ti.f32, shape=())

_active = TracerSettings()
_applied = False


def configure_tracer(settings: TracerSettings) -> None:
    """Make settings the active tracer configuration.

    Raises:
        ValueError: If the settings are invalid.
    """
    global _active, _applied
    settings.validate()
    max_steps[None] = settings.max_steps
    max_distance[None] = settings.max_distance
    push_distance[None] = settings.push_distance
    solid_push[None] = settings.solid_push
    reflection_bias[None] = settings.reflection_bias
    roughness_scale[None] = settings.roughness_scale
    _active = settings
    _applied = True
    logger.debug("Tracer configured: %s", settings)


def get_tracer_settings() -> TracerSettings:
    """Return the active tracer settings."""
    return _active


def ensure_tracer_configured() -> None:
    """Push the active settings to the kernel fields if that has not happened yet."""
    if not _applied:
        configure_tracer(_active)


def reset_tracer_settings() -> None:
    """Restore the default tracer settings."""
    configure_tracer(TracerSettings())
