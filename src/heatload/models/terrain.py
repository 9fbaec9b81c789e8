"""
Terrain data models for DEM processing.

This module defines the containers for Digital Elevation Models (DEMs),
their metadata, and the fixed-schema terrain derivative set that every
downstream stage consumes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np
from pyproj import CRS
from rasterio.transform import Affine

# US survey/international foot conversion as applied to the site DEM
FEET_PER_METER = 3.2808


class ElevationUnit(str, Enum):
    """Elevation unit types."""

    METERS = "meters"
    FEET = "feet"


@dataclass
class DEMMetadata:
    """
    Metadata for a Digital Elevation Model.

    Attributes:
        width: Number of columns in the raster
        height: Number of rows in the raster
        resolution: Tuple of (x_resolution, y_resolution) in CRS units
        bounds: Tuple of (min_x, min_y, max_x, max_y) in CRS units
        crs: Coordinate Reference System
        transform: Affine transform mapping (col, row) to CRS coordinates
        no_data_value: Value representing missing data in the array (NaN once loaded)
        elevation_unit: Unit of elevation values after loading
        converted_from_feet: True when the loader rescaled feet to meters
        source_path: File the DEM was read from, if any
        dtype: Data type of elevation values
    """

    width: int
    height: int
    resolution: Tuple[float, float]
    bounds: Tuple[float, float, float, float]
    crs: Optional[CRS]
    transform: Affine
    no_data_value: Optional[float] = None
    elevation_unit: ElevationUnit = ElevationUnit.METERS
    converted_from_feet: bool = False
    source_path: Optional[str] = None
    dtype: str = "float32"

    def __post_init__(self) -> None:
        """Validate metadata after initialization."""
        if self.width <= 0:
            raise ValueError(f"Width must be positive, got {self.width}")
        if self.height <= 0:
            raise ValueError(f"Height must be positive, got {self.height}")
        if self.resolution[0] <= 0 or self.resolution[1] <= 0:
            raise ValueError(f"Resolution must be positive, got {self.resolution}")

        min_x, min_y, max_x, max_y = self.bounds
        if min_x >= max_x:
            raise ValueError(f"min_x ({min_x}) must be less than max_x ({max_x})")
        if min_y >= max_y:
            raise ValueError(f"min_y ({min_y}) must be less than max_y ({max_y})")

    @classmethod
    def from_transform(
        cls,
        transform: Affine,
        width: int,
        height: int,
        crs: Optional[CRS],
        **kwargs: Any,
    ) -> "DEMMetadata":
        """
        Build metadata for a north-up grid from its affine transform.

        Args:
            transform: Affine transform of the grid
            width: Number of columns
            height: Number of rows
            crs: Coordinate reference system
            **kwargs: Remaining DEMMetadata fields

        Returns:
            DEMMetadata instance
        """
        x_res = abs(transform.a)
        y_res = abs(transform.e)
        min_x = transform.c
        max_y = transform.f
        return cls(
            width=width,
            height=height,
            resolution=(x_res, y_res),
            bounds=(min_x, max_y - height * y_res, min_x + width * x_res, max_y),
            crs=crs,
            transform=transform,
            **kwargs,
        )

    @property
    def pixel_count(self) -> int:
        """Total number of pixels in the DEM."""
        return self.width * self.height


@dataclass
class TerrainMetrics:
    """
    Statistical metrics for terrain elevation data.

    Attributes:
        min_elevation: Minimum elevation value
        max_elevation: Maximum elevation value
        mean_elevation: Mean elevation value
        median_elevation: Median elevation value
        valid_pixel_count: Number of valid (non-no-data) pixels
        no_data_pixel_count: Number of no-data pixels
        no_data_percentage: Percentage of no-data pixels
    """

    min_elevation: float
    max_elevation: float
    mean_elevation: float
    median_elevation: float
    valid_pixel_count: int
    no_data_pixel_count: int
    no_data_percentage: float


@dataclass
class DEMData:
    """
    Container for DEM elevation data and metadata.

    Attributes:
        elevation: 2D numpy array of elevation values (meters, NaN = no data)
        metadata: DEM metadata
    """

    elevation: np.ndarray
    metadata: DEMMetadata
    metrics: Optional[TerrainMetrics] = None

    def __post_init__(self) -> None:
        """Validate DEM data after initialization."""
        if self.elevation.ndim != 2:
            raise ValueError(
                f"Elevation array must be 2D, got {self.elevation.ndim} dimensions"
            )
        if self.elevation.shape != (self.metadata.height, self.metadata.width):
            raise ValueError(
                f"Elevation shape {self.elevation.shape} does not match "
                f"metadata dimensions ({self.metadata.height}, {self.metadata.width})"
            )

    def compute_metrics(self) -> TerrainMetrics:
        """
        Compute terrain metrics from elevation data.

        Returns:
            TerrainMetrics object with statistical information
        """
        valid_mask = ~np.isnan(self.elevation)
        valid_data = self.elevation[valid_mask]
        total = self.metadata.pixel_count

        if valid_data.size == 0:
            metrics = TerrainMetrics(
                min_elevation=np.nan,
                max_elevation=np.nan,
                mean_elevation=np.nan,
                median_elevation=np.nan,
                valid_pixel_count=0,
                no_data_pixel_count=total,
                no_data_percentage=100.0,
            )
        else:
            valid_count = int(valid_data.size)
            metrics = TerrainMetrics(
                min_elevation=float(np.min(valid_data)),
                max_elevation=float(np.max(valid_data)),
                mean_elevation=float(np.mean(valid_data)),
                median_elevation=float(np.median(valid_data)),
                valid_pixel_count=valid_count,
                no_data_pixel_count=total - valid_count,
                no_data_percentage=((total - valid_count) / total) * 100.0,
            )

        self.metrics = metrics
        return metrics


def _freeze(array: np.ndarray) -> np.ndarray:
    """Return a read-only float64 view of an array."""
    frozen = np.asarray(array, dtype=np.float64)
    if frozen is array:
        frozen = frozen.view()
    frozen.flags.writeable = False
    return frozen


@dataclass(frozen=True)
class TerrainDerivatives:
    """
    Per-cell terrain derivative set with a fixed schema.

    All arrays share one shape and are read-only; downstream stages build new
    arrays instead of mutating these.

    Attributes:
        elevation: Elevation in meters
        slope: Slope in degrees from horizontal
        aspect: Downslope compass bearing in degrees [0, 360), NaN where flat
        folded_aspect: Aspect reflected about the north-south axis, [0, 180]
        latitude: Geographic latitude of each cell centre in degrees
        transform: Affine transform shared by all arrays
        crs: Coordinate reference system shared by all arrays
    """

    elevation: np.ndarray
    slope: np.ndarray
    aspect: np.ndarray
    folded_aspect: np.ndarray
    latitude: np.ndarray
    transform: Affine
    crs: Optional[CRS]

    FIELDS = ("elevation", "slope", "aspect", "folded_aspect", "latitude")

    def __post_init__(self) -> None:
        shape = self.elevation.shape
        if len(shape) != 2:
            raise ValueError(f"Derivative arrays must be 2D, got shape {shape}")
        for name in self.FIELDS:
            array = getattr(self, name)
            if array.shape != shape:
                raise ValueError(
                    f"{name} shape {array.shape} does not match elevation shape {shape}"
                )
            object.__setattr__(self, name, _freeze(array))

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid shape as (rows, cols)."""
        return self.elevation.shape

    @property
    def cell_size(self) -> Tuple[float, float]:
        """Cell size as (x, y) in CRS units."""
        return (abs(self.transform.a), abs(self.transform.e))

    def as_arrays(self) -> Dict[str, np.ndarray]:
        """Get the derivative arrays keyed by field name."""
        return {name: getattr(self, name) for name in self.FIELDS}
