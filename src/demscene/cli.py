"""
Command-line entry point: build a terrain scene and save its buffers.

Usage:
    demscene dem.tif
    demscene dem.tif mask.tif --data snow_depth.tif
    demscene dem.tif mask.tif large_dem.tif --boundary bound.shp --stream streams.shp -v
"""

import argparse
import logging
import sys
from pathlib import Path

from src import config

from .errors import ConfigurationError, ResourceUnavailable
from .features import FeatureRole
from .scene import FeatureSource, SceneConfig, build_scene

logger = logging.getLogger(__name__)


def setup_logging(verbose=False):
    """Configure console logging for the demscene package."""
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    package_logger = logging.getLogger("src.demscene")
    package_logger.setLevel(logging.DEBUG if verbose else getattr(logging, config.DEFAULT_LOG_LEVEL))

    if not package_logger.handlers:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    return package_logger


def build_parser():
    parser = argparse.ArgumentParser(
        prog="demscene",
        description="Generate terrain meshes from DEM and mask rasters",
    )
    parser.add_argument(
        "terrain",
        nargs="+",
        help="Terrain rasters: DEM [MASK [REFERENCE_DEM]]",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "-s", "--scalar",
        type=float,
        default=config.DEFAULT_HEIGHT_SCALE,
        help=f"Height scalar value (default: {config.DEFAULT_HEIGHT_SCALE})",
    )
    parser.add_argument(
        "-m", "--map-scalar",
        type=float,
        default=config.DEFAULT_MAP_SCALE,
        help=f"Map scalar value (default: {config.DEFAULT_MAP_SCALE})",
    )
    parser.add_argument(
        "-t", "--texture",
        default=config.DEFAULT_COLOR_MAP,
        help="Color map texture file",
    )
    parser.add_argument("-w", "--wireframe", action="store_true", help="Render wireframes only")
    parser.add_argument(
        "--speed",
        type=float,
        default=config.DEFAULT_CAMERA_SPEED,
        help=f"Camera speed (default: {config.DEFAULT_CAMERA_SPEED})",
    )
    parser.add_argument(
        "--sensitivity",
        type=float,
        default=config.DEFAULT_CAMERA_SENSITIVITY,
        help=f"Mouse sensitivity (default: {config.DEFAULT_CAMERA_SENSITIVITY})",
    )
    parser.add_argument("-d", "--data", help="Data raster applied as a scalar overlay")
    parser.add_argument(
        "--boundary",
        action="append",
        default=[],
        metavar="PATH",
        help="Boundary vector layer (repeatable)",
    )
    parser.add_argument(
        "--stream",
        action="append",
        default=[],
        metavar="PATH",
        help="Stream vector layer (repeatable)",
    )
    parser.add_argument(
        "--outside",
        choices=("skip", "clamp", "raise"),
        default="skip",
        help="Handling of feature points outside the reference DEM (default: skip)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=config.DEFAULT_OUTPUT_FILE,
        help=f"Output .npz file (default: {config.DEFAULT_OUTPUT_FILE})",
    )
    return parser


def config_from_args(args) -> SceneConfig:
    features = [FeatureSource(path, FeatureRole.BOUNDARY) for path in args.boundary]
    features += [FeatureSource(path, FeatureRole.STREAM) for path in args.stream]
    return SceneConfig(
        terrain_paths=list(args.terrain),
        height_scale=args.scalar,
        map_scale=args.map_scalar,
        verbose=args.verbose,
        data_path=args.data,
        features=features,
        wireframe=args.wireframe,
        color_map=args.texture,
        on_outside=args.outside,
        camera_speed=args.speed,
        camera_sensitivity=args.sensitivity,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        scene = build_scene(config_from_args(args))
        scene.save(args.output)
    except (ResourceUnavailable, ConfigurationError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
