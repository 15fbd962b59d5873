"""Parallel row-band tile renderer.

The raster is split into `workers` contiguous bands of rows, each
height // workers rows tall, with the last band also taking the remainder.
One render is a single kernel launch whose outermost loop runs over the
bands: Taichi executes its iterations in parallel and joins them before the
launch returns. Each band walks its own rows, generates the camera ray of
every pixel and shades it, writing only to its own rows of the radiance
buffer. The voxel octree, light tree, materials and camera are read-only
during the launch, so any schedule produces the same image.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from voxeltrace.scene.presets import create_reflection_scene
    >>> from voxeltrace.core.renderer import TileRenderer
    >>>
    >>> scene, camera = create_reflection_scene()
    >>> renderer = TileRenderer(640, 480, workers=8, camera=camera)
    >>> pixels = renderer.render()  # (480, 640, 3) uint8
"""

import logging
import os
import time
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti

from voxeltrace.camera.pinhole import VoxelCamera, get_ray, setup_camera
from voxeltrace.core.settings import TracerSettings, configure_tracer, get_tracer_settings
from voxeltrace.core.shading import check_light_consistency, direct_color, reset_light_violations
from voxeltrace.preview.display import TONE_MAP_METHODS, ToneMapMethod
from voxeltrace.preview.export import image_to_uint8, save_png

logger = logging.getLogger(__name__)

# Maximum image dimensions (fields are preallocated)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Linear radiance, indexed [row, column]
_radiance = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))


@ti.kernel
def _render_bands(width: ti.i32, height: ti.i32, workers: ti.i32, depth: ti.i32):
    band_rows = height // workers
    # One parallel task per band
    ti.loop_config(block_dim=1)
    for worker in range(workers):
        start = worker * band_rows
        stop = start + band_rows
        if worker == workers - 1:
            stop = height
        for y in range(start, stop):
            for x in range(width):
                ray = get_ray(ti.cast(x, ti.f32), ti.cast(y, ti.f32), width, height)
                _radiance[y, x] = direct_color(ray.origin, ray.direction, depth)


def split_bands(height: int, workers: int) -> list[tuple[int, int]]:
    """Row ranges [start, stop) of each band, in worker order."""
    band_rows = height // workers
    bands = [(w * band_rows, (w + 1) * band_rows) for w in range(workers)]
    start, _ = bands[-1]
    bands[-1] = (start, height)
    return bands


class TileRenderer:
    """Renders the current scene with a fixed pool of row-band workers.

    The scene (octree, light tree and materials) must be fully built before
    rendering and must not change during a render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        workers: Number of row bands rendered in parallel.
        depth: Shading depth, None to use the tracer settings.
        tone_map: Tone mapping used by render() and save_png().
        settings: Tracer settings applied before each render, None to keep
            the active settings.
        camera: Camera configured before each render, None to keep the
            active camera.
    """

    def __init__(
        self,
        width: int,
        height: int,
        workers: int | None = None,
        depth: int | None = None,
        tone_map: ToneMapMethod = "filmic",
        settings: TracerSettings | None = None,
        camera: VoxelCamera | None = None,
    ) -> None:
        """Initialize the renderer.

        Raises:
            ValueError: If dimensions, worker count, depth or tone map are invalid.
        """
        if not (0 < width <= MAX_IMAGE_WIDTH and 0 < height <= MAX_IMAGE_HEIGHT):
            raise ValueError(
                f"Image dimensions ({width}x{height}) must be positive and at most "
                f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
            )
        if workers is None:
            workers = min(os.cpu_count() or 1, height)
        if not 0 < workers <= height:
            raise ValueError(f"Worker count {workers} must be between 1 and the height {height}")
        if depth is not None and depth < 0:
            raise ValueError(f"Depth {depth} must not be negative.")
        if tone_map not in TONE_MAP_METHODS:
            raise ValueError(f"Unknown tone mapping method: {tone_map}")
        if settings is not None:
            settings.validate()

        self.width = width
        self.height = height
        self.workers = workers
        self.depth = depth
        self.tone_map = tone_map
        self.settings = settings
        self.camera = camera

    def band_bounds(self) -> list[tuple[int, int]]:
        """Row ranges [start, stop) rendered by each worker."""
        return split_bands(self.height, self.workers)

    def render_radiance(self) -> npt.NDArray[np.float32]:
        """Render linear radiance.

        Returns:
            Float32 array of shape (height, width, 3), row-major.

        Raises:
            LightVisibilityError: If a shadow ray violated light visibility.
        """
        if self.settings is not None:
            configure_tracer(self.settings)
        else:
            # Refresh the kernel-visible copy of the active settings
            configure_tracer(get_tracer_settings())
        if self.camera is not None:
            setup_camera(self.camera)
        depth = get_tracer_settings().max_depth if self.depth is None else self.depth

        reset_light_violations()
        start = time.perf_counter()
        _render_bands(self.width, self.height, self.workers, depth)
        ti.sync()
        elapsed = time.perf_counter() - start
        logger.info(
            "Rendered %dx%d in %.3fs (%d workers, depth %d)",
            self.width,
            self.height,
            elapsed,
            self.workers,
            depth,
        )
        check_light_consistency()
        return _radiance.to_numpy()[: self.height, : self.width].copy()

    def render(self) -> npt.NDArray[np.uint8]:
        """Render the scene to 8-bit RGB.

        Returns:
            Uint8 array of shape (height, width, 3), row-major.
        """
        return image_to_uint8(self.render_radiance(), tone_map=self.tone_map)

    def save_png(self, filepath: str | Path) -> npt.NDArray[np.uint8]:
        """Render the scene and save it as a PNG file.

        Returns:
            The saved 8-bit image.
        """
        image = self.render()
        save_png(image, filepath)
        logger.info("Saved %s", filepath)
        return image

    def __repr__(self) -> str:
        return (
            f"TileRenderer(width={self.width}, height={self.height}, "
            f"workers={self.workers}, depth={self.depth}, tone_map={self.tone_map!r})"
        )
