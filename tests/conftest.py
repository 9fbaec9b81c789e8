"""
Shared fixtures: synthetic DEMs and management units in UTM zone 10N.
"""

import math
from pathlib import Path
from typing import Callable, Dict, Optional

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from pyproj import CRS
from rasterio.transform import Affine, from_origin
from shapely.geometry import box

from heatload.core.config import Settings

# NAD83 / UTM zone 10N, the default working CRS
UTM_CRS = CRS.from_epsg(26910)

# Central meridian easting and the northing of 40 degrees north
ORIGIN_X = 500000.0
NORTHING_40N = 4427757.0

CELL_SIZE = 10.0


def south_slope(rows: int, cols: int, degrees: float, cell_size: float = CELL_SIZE) -> np.ndarray:
    """Plane dropping towards the south at ``degrees``."""
    drop = cell_size * math.tan(math.radians(degrees))
    column = 1000.0 - drop * np.arange(rows, dtype=np.float64)
    return np.repeat(column[:, None], cols, axis=1)


@pytest.fixture
def utm_transform() -> Affine:
    """10 m grid whose top edge sits on 40 degrees north."""
    return from_origin(ORIGIN_X, NORTHING_40N, CELL_SIZE, CELL_SIZE)


@pytest.fixture
def write_dem(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an elevation array to a GeoTIFF."""

    def _write(
        elevation: np.ndarray,
        transform: Affine,
        name: str = "dem.tif",
        crs: Optional[CRS] = UTM_CRS,
        nodata: Optional[float] = -9999.0,
        tags: Optional[Dict[str, str]] = None,
    ) -> Path:
        path = tmp_path / name
        data = elevation.astype(np.float32)
        if nodata is not None:
            data = np.where(np.isnan(data), nodata, data).astype(np.float32)
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=data.shape[0],
            width=data.shape[1],
            count=1,
            dtype=data.dtype,
            crs=crs.to_wkt() if crs is not None else None,
            transform=transform,
            nodata=nodata,
        ) as dst:
            dst.write(data, 1)
            if tags:
                dst.update_tags(**tags)
        return path

    return _write


@pytest.fixture
def south_slope_dem(write_dem: Callable[..., Path], utm_transform: Affine) -> Path:
    """40x40 DEM sloping 30 degrees to the south."""
    return write_dem(south_slope(40, 40, 30.0), utm_transform, name="south_slope.tif")


@pytest.fixture
def units_path(tmp_path: Path) -> Path:
    """Two units inside the south slope DEM and one far outside it."""
    inside_west = box(ORIGIN_X + 50, NORTHING_40N - 350, ORIGIN_X + 190, NORTHING_40N - 50)
    inside_east = box(ORIGIN_X + 210, NORTHING_40N - 350, ORIGIN_X + 350, NORTHING_40N - 50)
    outside = box(ORIGIN_X + 5000, NORTHING_40N - 5350, ORIGIN_X + 5100, NORTHING_40N - 5250)

    frame = gpd.GeoDataFrame(
        {"UNIT": ["West", "East", "Away"], "AREA_HA": [4.2, 4.2, 1.0]},
        geometry=[inside_west, inside_east, outside],
        crs=UTM_CRS.to_wkt(),
    )
    path = tmp_path / "units.gpkg"
    frame.to_file(path, driver="GPKG")
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings writing into the test's temporary directory."""
    return Settings(
        output_dir=tmp_path / "output",
        cache_dir=tmp_path / "cache",
        resolutions=(10.0, 20.0, 50.0),
        buffer_meters=20.0,
    )


@pytest.fixture
def make_south_slope() -> Callable[..., np.ndarray]:
    """Factory for south-facing planes."""
    return south_slope
