"""Fixed pinhole camera for the voxel tracer.

The camera looks along +X before rotation, with image columns spreading along
+Y and image rows along +Z. It is then pitched by `pitch` radians toward +Z
and turned by `yaw` radians about the Z axis. The resulting orthonormal basis
is:

- forward: the direction through the image center
- right: the direction pixel columns advance in
- up: the direction pixel rows advance in

A pixel (x, y) of a width x height image maps to the direction

    forward + right * (x - width / 2 - shake) / scale + up * (y - height / 2 - shake) / scale

where `scale` is the number of pixels per unit on an image plane one unit in
front of the camera. The small `shake` offset is also added to the camera
position on every axis; it keeps primary rays off exact voxel boundaries and
axis-aligned degenerate directions.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from voxeltrace.camera.pinhole import VoxelCamera, setup_camera, get_ray
    >>> setup_camera(VoxelCamera())
    >>> @ti.kernel
    ... def center_direction() -> ti.f32:
    ...     ray = get_ray(320.0, 240.0, 640, 480)
    ...     return ray.direction.z
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from voxeltrace.core.vector import Ray, make_ray, normalize

# =============================================================================
# Camera Data Structures
# =============================================================================

# Offset added to the camera position and the image center
DEFAULT_SHAKE = 1e-3


@dataclass
class VoxelCamera:
    """Configuration for the fixed pinhole camera.

    Attributes:
        position: Camera position in world space (x, y, z).
        scale: Pixels per unit on the image plane at unit distance.
        pitch: Elevation of the view direction toward +Z, in radians.
        yaw: Rotation of the view direction about the Z axis, in radians.
        shake: Positional jitter added to the position and the image center.
    """

    position: tuple[float, float, float] = (-4.0, -4.0, -4.0)
    scale: float = 1080.0
    pitch: float = math.pi / 7.0
    yaw: float = math.pi / 4.0
    shake: float = DEFAULT_SHAKE

    def __post_init__(self) -> None:
        if self.scale <= 0.0:
            raise ValueError(f"Camera scale {self.scale} must be positive.")

    @classmethod
    def looking_at(
        cls,
        position: tuple[float, float, float],
        target: tuple[float, float, float],
        scale: float = 1080.0,
        shake: float = DEFAULT_SHAKE,
    ) -> "VoxelCamera":
        """Create a camera whose image center looks at a target point.

        Raises:
            ValueError: If position and target coincide.
        """
        forward = np.asarray(target, dtype=np.float64) - np.asarray(position, dtype=np.float64)
        norm = np.linalg.norm(forward)
        if norm == 0.0:
            raise ValueError("Camera position and target must differ.")
        forward = forward / norm
        pitch = math.asin(float(np.clip(forward[2], -1.0, 1.0)))
        yaw = math.atan2(float(forward[1]), float(forward[0]))
        return cls(
            position=tuple(float(c) for c in position),
            scale=scale,
            pitch=pitch,
            yaw=yaw,
            shake=shake,
        )


# =============================================================================
# Rotation Helpers
# =============================================================================


def rotate_about_axis(v: np.ndarray, angle: float, axis: np.ndarray) -> np.ndarray:
    """Rotate a vector about a unit axis (Rodrigues' formula)."""
    v = np.asarray(v, dtype=np.float64)
    axis = np.asarray(axis, dtype=np.float64)
    s, c = math.sin(angle), math.cos(angle)
    return v * c + np.cross(axis, v) * s + axis * np.dot(axis, v) * (1.0 - c)


def rotate_z(v: np.ndarray, angle: float) -> np.ndarray:
    """Rotate a vector about the Z axis."""
    x, y, z = np.asarray(v, dtype=np.float64)
    s, c = math.sin(angle), math.cos(angle)
    return np.array([x * c - y * s, x * s + y * c, z])


def camera_basis(pitch: float, yaw: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Compute the (forward, right, up) basis for a pitch and yaw."""
    # Pitching toward +Z is a rotation about -Y, i.e. X cross Z
    pitch_axis = np.cross([1.0, 0.0, 0.0], [0.0, 0.0, 1.0])
    pitch_axis = pitch_axis / np.linalg.norm(pitch_axis)
    basis = []
    for axis in np.eye(3):
        basis.append(rotate_z(rotate_about_axis(axis, pitch, pitch_axis), yaw))
    forward, right, up = basis
    return forward, right, up


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_forward = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_scale = ti.field(dtype=ti.f32, shape=())
_camera_shake = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: VoxelCamera) -> None:
    """Initialize camera state from configuration.

    Must be called before rendering.
    """
    forward, right, up = camera_basis(camera.pitch, camera.yaw)
    origin = np.asarray(camera.position, dtype=np.float64) + camera.shake

    _camera_origin[None] = origin.tolist()
    _camera_forward[None] = forward.tolist()
    _camera_right[None] = right.tolist()
    _camera_up[None] = up.tolist()
    _camera_scale[None] = camera.scale
    _camera_shake[None] = camera.shake


@ti.func
def get_ray(x: ti.f32, y: ti.f32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate the primary ray of pixel (x, y).

    Args:
        x: Pixel column.
        y: Pixel row.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray from the camera position with a unit direction.
    """
    scale = _camera_scale[None]
    shake = _camera_shake[None]
    u = (x - (0.5 * ti.cast(width, ti.f32) + shake)) / scale
    v = (y - (0.5 * ti.cast(height, ti.f32) + shake)) / scale
    direction = _camera_forward[None] + u * _camera_right[None] + v * _camera_up[None]
    return make_ray(_camera_origin[None], normalize(direction))


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, forward, right, up, scale and shake.
    """
    info: dict[str, tuple[float, float, float] | float] = {}
    for name, field in (
        ("origin", _camera_origin),
        ("forward", _camera_forward),
        ("right", _camera_right),
        ("up", _camera_up),
    ):
        vec = field[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    info["scale"] = float(_camera_scale[None])
    info["shake"] = float(_camera_shake[None])
    return info
