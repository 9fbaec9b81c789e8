"""
CRS helpers for projected grids: horizontal units and cell latitudes.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from pyproj import CRS, Transformer
from rasterio.transform import Affine

from heatload.core.errors import CRSError

logger = logging.getLogger(__name__)

GEOGRAPHIC_CRS = CRS.from_epsg(4326)


def _to_geographic(crs: Optional[CRS]) -> Transformer:
    """Build a transformer from ``crs`` to WGS84 lon/lat."""
    if crs is None:
        raise CRSError(
            "Cannot derive latitude without a coordinate reference system",
            target_crs=GEOGRAPHIC_CRS.to_string(),
        )
    try:
        return Transformer.from_crs(crs, GEOGRAPHIC_CRS, always_xy=True)
    except Exception as e:
        raise CRSError(
            f"Failed to create transformer to geographic coordinates: {e}",
            source_crs=crs.to_string(),
            target_crs=GEOGRAPHIC_CRS.to_string(),
        ) from e


def meters_per_unit(crs: Optional[CRS]) -> float:
    """
    Get the length in meters of one horizontal unit of a projected CRS.

    A grid without a CRS is taken to be in meters.

    Args:
        crs: Coordinate reference system of the grid

    Returns:
        Conversion factor, e.g. 1.0 for meters or 0.3048006 for US survey feet

    Raises:
        CRSError: If the CRS is geographic or has no linear axis unit
    """
    if crs is None:
        return 1.0
    if crs.is_geographic:
        raise CRSError(
            "Grid is in geographic coordinates; reproject it to a projected CRS first",
            source_crs=crs.to_string(),
        )
    axes = crs.axis_info
    if not axes or not axes[0].unit_conversion_factor:
        raise CRSError(
            "CRS has no linear unit for its horizontal axes", source_crs=crs.to_string()
        )
    return float(axes[0].unit_conversion_factor)


def cell_centers(transform: Affine, shape: Tuple[int, int]) -> Tuple[NDArray, NDArray]:
    """
    Get CRS coordinates of every cell centre.

    Args:
        transform: Affine transform of the grid
        shape: Grid shape as (rows, cols)

    Returns:
        Tuple of (x, y) arrays with the grid's shape
    """
    rows, cols = shape
    col_idx, row_idx = np.meshgrid(np.arange(cols) + 0.5, np.arange(rows) + 0.5)
    xs, ys = transform * (col_idx, row_idx)
    return np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)


def latitude_grid(
    transform: Affine, shape: Tuple[int, int], crs: Optional[CRS]
) -> NDArray[np.floating]:
    """
    Calculate the latitude of every cell centre.

    Args:
        transform: Affine transform of the grid
        shape: Grid shape as (rows, cols)
        crs: Coordinate reference system of the grid

    Returns:
        2D array of latitudes in degrees

    Raises:
        CRSError: If the CRS is missing or cannot be transformed
    """
    xs, ys = cell_centers(transform, shape)

    if crs is not None and crs.is_geographic:
        return ys

    transformer = _to_geographic(crs)
    try:
        _, lats = transformer.transform(xs, ys)
    except Exception as e:
        raise CRSError(
            f"Latitude transformation failed: {e}",
            source_crs=crs.to_string() if crs else None,
            target_crs=GEOGRAPHIC_CRS.to_string(),
        ) from e

    lats = np.asarray(lats, dtype=np.float64)
    logger.debug(
        f"Cell latitudes span {np.nanmin(lats):.4f} to {np.nanmax(lats):.4f} degrees"
    )
    return lats


def point_latitude(x: float, y: float, crs: Optional[CRS]) -> float:
    """
    Calculate the latitude of a single point.

    Args:
        x: X coordinate in ``crs``
        y: Y coordinate in ``crs``
        crs: Coordinate reference system of the point

    Returns:
        Latitude in degrees

    Raises:
        CRSError: If the CRS is missing or cannot be transformed
    """
    if crs is not None and crs.is_geographic:
        return float(y)

    transformer = _to_geographic(crs)
    try:
        _, lat = transformer.transform(x, y)
    except Exception as e:
        raise CRSError(
            f"Latitude transformation failed: {e}",
            source_crs=crs.to_string() if crs else None,
        ) from e
    return float(lat)
