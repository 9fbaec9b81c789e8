"""
GeoTIFF export of HLI grids.

Continuous HLI rasters are written as float32 with NaN no-data; classified
quartile rasters as uint8 with 0 no-data.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import rasterio
from pyproj import CRS
from rasterio.transform import Affine

from heatload.core.errors import StorageError
from heatload.models.hli import CLASS_NODATA, ResolutionVariant

logger = logging.getLogger(__name__)

HLI_PREFIX = "hli"
CLASSIFIED_PREFIX = "hli_qrtl"


def raster_name(prefix: str, label: str) -> str:
    """Build an output raster file name, e.g. ``hli_qrtl_25m.tif``."""
    return f"{prefix}_{label}.tif"


def write_grid(
    path: Union[str, Path],
    values: np.ndarray,
    transform: Affine,
    crs: Optional[CRS],
    nodata: Optional[float] = None,
    dtype: Optional[str] = None,
    tags: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Write a single-band grid to a GeoTIFF.

    Existing files are overwritten.

    Args:
        path: Output file path
        values: 2D array to write
        transform: Affine transform of the grid
        crs: Coordinate reference system of the grid
        nodata: No-data value stored in the file
        dtype: Output data type (default: the array's)
        tags: Extra dataset tags

    Returns:
        Path of the written file

    Raises:
        StorageError: If the file cannot be written
    """
    path = Path(path)
    dtype = dtype or str(values.dtype)

    profile = {
        "driver": "GTiff",
        "height": values.shape[0],
        "width": values.shape[1],
        "count": 1,
        "dtype": dtype,
        "crs": crs.to_wkt() if crs is not None else None,
        "transform": transform,
        "nodata": nodata,
        "compress": "lzw",
    }

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with rasterio.open(path, "w", **profile) as dst:
            dst.write(values.astype(dtype), 1)
            if tags:
                dst.update_tags(**{k: str(v) for k, v in tags.items()})
    except Exception as e:
        raise StorageError(
            f"Failed to write raster: {e}", operation="write_raster", file_path=str(path)
        ) from e

    logger.debug(f"Wrote {values.shape[1]}x{values.shape[0]} {dtype} raster to {path}")
    return path


def write_variant(variant: ResolutionVariant, output_dir: Union[str, Path]) -> Tuple[Path, Path]:
    """
    Write the continuous and classified rasters of a resolution variant.

    Args:
        variant: Aggregated and classified HLI variant
        output_dir: Directory to write into

    Returns:
        Tuple of (continuous raster path, classified raster path)
    """
    output_dir = Path(output_dir)
    field = variant.hli
    tags = {"resolution": variant.label, "factor": variant.factor}

    hli_path = write_grid(
        output_dir / raster_name(HLI_PREFIX, variant.label),
        field.values,
        field.transform,
        field.crs,
        nodata=float("nan"),
        dtype="float32",
        tags=tags,
    )
    classified_path = write_grid(
        output_dir / raster_name(CLASSIFIED_PREFIX, variant.label),
        variant.classified,
        field.transform,
        field.crs,
        nodata=CLASS_NODATA,
        dtype="uint8",
        tags={**tags, **{k: f"{v:.6f}" for k, v in variant.breaks.to_dict().items()}},
    )

    logger.info(f"Wrote {hli_path.name} and {classified_path.name}")
    return hli_path, classified_path
