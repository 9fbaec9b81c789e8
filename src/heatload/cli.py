"""
Command line entry point for the heat load pipeline.

Usage:
    # Rasters only, DEM in meters
    heatload --dem site_dem.tif --output-dir out

    # DEM stored in feet, summarized onto management units
    heatload --dem site_dem_ft.tif --dem-unit feet --units units.gpkg --id-field UNIT

    # Custom resolutions, ignoring any cached derivatives
    heatload --dem site_dem.tif --resolutions 10 30 90 --overwrite
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from heatload import __version__
from heatload.core.config import Settings
from heatload.core.errors import ConfigurationError, HeatLoadException
from heatload.core.logging_config import setup_logging
from heatload.core.pipeline import HeatLoadPipeline
from heatload.models.terrain import ElevationUnit


logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="heatload",
        description="Compute Heat Load Index rasters and zonal summaries from a DEM",
    )
    parser.add_argument("--dem", type=Path, required=True, help="Elevation raster")
    parser.add_argument(
        "--dem-unit",
        choices=[unit.value for unit in ElevationUnit],
        default=ElevationUnit.METERS.value,
        help="Unit of the stored elevations (default: meters)",
    )
    parser.add_argument(
        "--units", type=Path, help="Management-unit polygons to summarize (any vector format)"
    )
    parser.add_argument("--id-field", help="Attribute naming each unit (default: row index)")
    parser.add_argument("--output-dir", type=Path, help="Directory for output files")
    parser.add_argument("--cache-dir", type=Path, help="Directory for the derivative cache")
    parser.add_argument(
        "--resolutions",
        type=float,
        nargs="+",
        metavar="METERS",
        help="Aggregation cell sizes (default: 10 25 50 100)",
    )
    parser.add_argument("--buffer", type=float, help="Crop buffer around the units in meters")
    parser.add_argument("--target-crs", help="Working CRS the DEM must be in")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        default=None,
        help="Recompute derivatives even if a cache entry exists",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    parser.add_argument("--json-logs", type=Path, metavar="FILE", help="Also log JSON to FILE")
    parser.add_argument("--version", action="version", version=f"heatload {__version__}")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """
    Build settings from environment defaults and command line overrides.

    Raises:
        ConfigurationError: If an override is invalid
    """
    overrides: Dict[str, Any] = {
        "output_dir": args.output_dir,
        "cache_dir": args.cache_dir,
        "resolutions": tuple(args.resolutions) if args.resolutions else None,
        "buffer_meters": args.buffer,
        "target_crs": args.target_crs,
        "overwrite": args.overwrite,
        "log_level": args.log_level,
    }
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ConfigurationError(
            f"Invalid option: {first['msg']}",
            config_key=".".join(str(p) for p in first["loc"]),
        ) from e


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the pipeline from the command line.

    Returns:
        0 on success, 1 on a fatal error, 2 if some stages failed
    """
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ConfigurationError as e:
        print(f"heatload: {e}", file=sys.stderr)
        return EXIT_FAILED

    setup_logging(
        log_level=settings.log_level,
        log_file=args.json_logs,
        json_logs=args.json_logs is not None,
    )

    try:
        result = HeatLoadPipeline(settings).run(
            args.dem,
            dem_unit=ElevationUnit(args.dem_unit),
            units_path=args.units,
            id_field=args.id_field,
        )
    except HeatLoadException as e:
        logger.error(f"Run aborted: {e}", extra={"error": e.to_dict()})
        for suggestion in e.suggestions:
            logger.info(f"Suggestion: {suggestion}")
        return EXIT_FAILED

    print(json.dumps(result.summary(), indent=2, default=str))
    return EXIT_OK if result.succeeded else EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
