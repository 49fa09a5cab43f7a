#!/usr/bin/env python3
"""
Generate a sample town and write it as scene JSON and a PNG preview.

Usage:
    python generate_sample_towns.py [--seed SEED] [--out DIR] [--width W --height H]

Writes town_<seed>.json and town_<seed>.png into the output directory.
"""

import argparse
from pathlib import Path

import matplotlib
import structlog

from py_towngen.config import settings
from py_towngen.core.params import TownParams
from py_towngen.log_config import configure_logging
from py_towngen.scene import create_scene, export_scene_json, render_scene_png

logger = structlog.get_logger()


def generate_sample_town(seed: str, out_dir: Path, width: int, height: int, size_px: int = 1024):
    """Generate one town and write its files; returns (json_path, png_path)."""
    scene = create_scene(TownParams(seed=seed))
    scene.regenerate((width, height))

    out_dir.mkdir(parents=True, exist_ok=True)
    json_path = out_dir / f"town_{seed}.json"
    json_path.write_text(export_scene_json(scene), encoding="utf-8")
    png_path = render_scene_png(scene, out_dir / f"town_{seed}.png", size_px=size_px)

    logger.info("Sample town written", seed=seed, json=str(json_path), png=str(png_path), **scene.counts())
    return json_path, png_path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate a sample town (JSON + PNG)")
    parser.add_argument("--seed", default="winack", help="Seed string")
    parser.add_argument("--out", default="output", help="Output directory")
    parser.add_argument("--width", type=int, default=settings.default_viewport_width, help="Raster width")
    parser.add_argument("--height", type=int, default=settings.default_viewport_height, help="Raster height")
    parser.add_argument("--size", type=int, default=1024, help="PNG size in pixels")
    args = parser.parse_args(argv)

    matplotlib.use("Agg")
    configure_logging(settings.log_level, "console")
    json_path, png_path = generate_sample_town(args.seed, Path(args.out), args.width, args.height, args.size)
    print(f"Saved {json_path}")
    print(f"Saved {png_path}")


if __name__ == "__main__":
    main()
