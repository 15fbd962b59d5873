#!/usr/bin/env python3
"""Render a preset voxel scene.

Builds one of the preset scenes, renders it with the row-band tile renderer
and saves the result as a PNG.

Usage:
    python -m examples.render_voxel_scene [options]

Options:
    --scene NAME        Preset scene: reflection, lattice, single (default: reflection)
    --width WIDTH       Image width in pixels (default: 640)
    --height HEIGHT     Image height in pixels (default: 480)
    --workers N         Number of row bands rendered in parallel (default: CPU count)
    --depth DEPTH       Shading depth (default: from settings)
    --tone-map METHOD   filmic, reinhard, aces or none (default: filmic)
    --settings FILE     JSON file with tracer settings
    --output OUTPUT     Output file path (default: voxel_scene.png)
    --cpu               Force the CPU backend
    --show              Show the result in a Matplotlib window
    --log-level LEVEL   Logging level (default: INFO)

Example:
    python -m examples.render_voxel_scene --scene lattice --width 320 --height 240
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import taichi as ti

logger = logging.getLogger("voxeltrace.examples")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset voxel scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scene",
        choices=("reflection", "lattice", "single"),
        default="reflection",
        help="Preset scene (default: reflection)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=640,
        help="Image width in pixels (default: 640)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=480,
        help="Image height in pixels (default: 480)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of row bands rendered in parallel (default: CPU count)",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Shading depth (default: from settings)",
    )
    parser.add_argument(
        "--tone-map",
        choices=("filmic", "reinhard", "aces", "none"),
        default="filmic",
        help="Tone mapping method (default: filmic)",
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        help="JSON file with tracer settings",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="voxel_scene.png",
        help="Output file path (default: voxel_scene.png)",
    )
    parser.add_argument(
        "--cpu",
        action="store_true",
        help="Force the CPU backend",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Show the result in a Matplotlib window",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args()


def render_voxel_scene(
    scene_name: str = "reflection",
    width: int = 640,
    height: int = 480,
    workers: int | None = None,
    depth: int | None = None,
    tone_map: str = "filmic",
    settings_path: str | None = None,
    output_path: str = "voxel_scene.png",
    show: bool = False,
) -> Path:
    """Render a preset scene and save it to file.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports so Taichi is initialized before fields are created
    from voxeltrace.core.renderer import TileRenderer
    from voxeltrace.core.settings import configure_tracer, load_settings
    from voxeltrace.preview.display import show_preview
    from voxeltrace.scene.presets import SCENES

    settings = None
    if settings_path is not None:
        settings = load_settings(settings_path)
        # Light tree limits apply while the scene is built
        configure_tracer(settings)

    scene, camera = SCENES[scene_name]()
    logger.info("Scene: %r", scene)

    renderer = TileRenderer(
        width,
        height,
        workers=workers,
        depth=depth,
        tone_map=tone_map,
        settings=settings,
        camera=camera,
    )
    output_file = Path(output_path)
    image = renderer.save_png(output_file)
    logger.info("Saved to: %s", output_file.absolute())

    if show:
        show_preview(image, title=f"{scene_name} ({width}x{height})")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    from voxeltrace.logging_config import setup_logging

    setup_logging(args.log_level)

    if args.cpu:
        ti.init(arch=ti.cpu)
    else:
        # Use GPU if available, fall back to CPU
        ti.init(arch=ti.gpu)

    try:
        render_voxel_scene(
            scene_name=args.scene,
            width=args.width,
            height=args.height,
            workers=args.workers,
            depth=args.depth,
            tone_map=args.tone_map,
            settings_path=args.settings,
            output_path=args.output,
            show=args.show,
        )
        return 0
    except (OSError, ValueError, RuntimeError) as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
