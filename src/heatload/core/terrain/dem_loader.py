"""
DEM loader for reading Digital Elevation Models.

Reads single-band elevation rasters (GeoTIFF and other GDAL formats) into
DEMData, converts feet to meters when the caller says the source is in feet,
and crops to a buffered site boundary.
"""

import logging
import math
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import rasterio
from pyproj import CRS
from rasterio.errors import RasterioIOError
from rasterio.transform import Affine
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from heatload.core.errors import CRSError, HeatLoadException, ParseError, ValidationError
from heatload.core.terrain.latitude import meters_per_unit
from heatload.models.terrain import (
    FEET_PER_METER,
    DEMData,
    DEMMetadata,
    ElevationUnit,
)

logger = logging.getLogger(__name__)

BoundaryLike = Union[BaseGeometry, Tuple[float, float, float, float]]


class DEMLoader:
    """
    Load Digital Elevation Models for terrain analysis.

    The source elevation unit is always stated by the caller. Grids are
    expected to already be in the working CRS; reprojection happens upstream.
    """

    SUPPORTED_FORMATS = [".tif", ".tiff", ".asc", ".img", ".vrt"]

    def __init__(self, target_crs: Optional[Union[str, CRS]] = None) -> None:
        """
        Initialize DEM loader.

        Args:
            target_crs: Working CRS the DEM must already be in (optional)
        """
        self.target_crs = CRS.from_user_input(target_crs) if target_crs else None

    def load(
        self,
        file_path: Union[str, Path],
        source_unit: ElevationUnit,
    ) -> DEMData:
        """
        Load a DEM file.

        Args:
            file_path: Path to the elevation raster
            source_unit: Unit of the stored elevation values

        Returns:
            DEMData in meters; ``metadata.converted_from_feet`` records whether
            a feet-to-meters conversion happened

        Raises:
            ValidationError: If the file is missing, unsupported or not north-up
            ParseError: If the file cannot be read
            CRSError: If the raster is not in the target CRS
        """
        file_path = self._check_path(file_path)
        source_unit = ElevationUnit(source_unit)

        logger.info(f"Loading DEM from {file_path} ({source_unit.value})")

        try:
            with rasterio.open(file_path) as src:
                metadata = self._extract_metadata(src, source_unit)
                self._check_unit_tags(src, source_unit)
                elevation = src.read(1, masked=True).astype(np.float64).filled(np.nan)
        except HeatLoadException:
            raise
        except RasterioIOError as e:
            raise ParseError(
                f"Failed to read DEM: {e}", file_path=str(file_path), file_type="raster"
            ) from e
        except Exception as e:
            raise ParseError(
                f"Error loading DEM: {e}", file_path=str(file_path), file_type="raster"
            ) from e

        # No-data is NaN from here on
        metadata.no_data_value = np.nan
        metadata.dtype = str(elevation.dtype)

        if source_unit == ElevationUnit.FEET:
            elevation = elevation / FEET_PER_METER
            metadata.elevation_unit = ElevationUnit.METERS
            metadata.converted_from_feet = True
            logger.info(f"Converted elevations from feet to meters (/ {FEET_PER_METER})")

        dem = DEMData(elevation=elevation, metadata=metadata)
        metrics = dem.compute_metrics()
        logger.info(
            f"Loaded DEM: {metadata.width}x{metadata.height}, "
            f"resolution: {metadata.resolution}, "
            f"elevation {metrics.min_elevation:.1f}-{metrics.max_elevation:.1f} m, "
            f"{metrics.no_data_percentage:.1f}% no-data"
        )
        return dem

    def load_for_boundary(
        self,
        file_path: Union[str, Path],
        source_unit: ElevationUnit,
        boundary: BoundaryLike,
        buffer_meters: float,
    ) -> DEMData:
        """
        Load a DEM and crop it to a buffered boundary.

        Args:
            file_path: Path to the elevation raster
            source_unit: Unit of the stored elevation values
            boundary: Site boundary geometry or (min_x, min_y, max_x, max_y)
            buffer_meters: Margin kept beyond the boundary

        Returns:
            Cropped DEMData in meters
        """
        return self.crop_to_boundary(self.load(file_path, source_unit), boundary, buffer_meters)

    def crop_to_boundary(
        self,
        dem_data: DEMData,
        boundary: BoundaryLike,
        buffer_meters: float = 100.0,
    ) -> DEMData:
        """
        Crop DEM to a boundary extent expanded by a buffer.

        The crop window is snapped outward to whole cells, so at least
        ``buffer_meters`` of terrain is kept beyond the boundary wherever the
        source DEM extends that far.

        Args:
            dem_data: Input DEM data
            boundary: Boundary geometry or bounds tuple (min_x, min_y, max_x, max_y)
            buffer_meters: Buffer distance in meters

        Returns:
            Cropped DEM data

        Raises:
            ValidationError: If the buffer is negative or the boundary misses the DEM
            CRSError: If the DEM is in geographic coordinates
        """
        if buffer_meters < 0:
            raise ValidationError(
                f"Buffer must be >= 0, got {buffer_meters}", field="buffer_meters"
            )

        metadata = dem_data.metadata
        boundary_geom = boundary if isinstance(boundary, BaseGeometry) else box(*boundary)

        buffer_units = buffer_meters / meters_per_unit(metadata.crs)

        # Slope/aspect lose one cell at every edge
        if buffer_units < max(metadata.resolution):
            logger.warning(
                f"Buffer of {buffer_meters}m is smaller than one cell "
                f"({max(metadata.resolution)}); boundary cells will lack slope and aspect"
            )

        logger.info(f"Cropping DEM with {buffer_meters}m buffer")

        min_x, min_y, max_x, max_y = boundary_geom.bounds
        crop_bounds = (
            min_x - buffer_units,
            min_y - buffer_units,
            max_x + buffer_units,
            max_y + buffer_units,
        )

        dem_bounds = metadata.bounds
        crop_bounds = (
            max(crop_bounds[0], dem_bounds[0]),
            max(crop_bounds[1], dem_bounds[1]),
            min(crop_bounds[2], dem_bounds[2]),
            min(crop_bounds[3], dem_bounds[3]),
        )

        if crop_bounds[0] >= crop_bounds[2] or crop_bounds[1] >= crop_bounds[3]:
            raise ValidationError(
                "Crop bounds do not overlap with DEM extent",
                details={"boundary_bounds": boundary_geom.bounds, "dem_bounds": dem_bounds},
            )

        x_res, y_res = metadata.resolution
        col_start = max(0, int(math.floor((crop_bounds[0] - dem_bounds[0]) / x_res)))
        row_start = max(0, int(math.floor((dem_bounds[3] - crop_bounds[3]) / y_res)))
        col_end = min(metadata.width, int(math.ceil((crop_bounds[2] - dem_bounds[0]) / x_res)))
        row_end = min(metadata.height, int(math.ceil((dem_bounds[3] - crop_bounds[1]) / y_res)))

        cropped = dem_data.elevation[row_start:row_end, col_start:col_end].copy()
        transform = metadata.transform * Affine.translation(col_start, row_start)

        new_metadata = DEMMetadata.from_transform(
            transform,
            width=cropped.shape[1],
            height=cropped.shape[0],
            crs=metadata.crs,
            no_data_value=metadata.no_data_value,
            elevation_unit=metadata.elevation_unit,
            converted_from_feet=metadata.converted_from_feet,
            source_path=metadata.source_path,
            dtype=str(cropped.dtype),
        )

        logger.info(f"Cropped to {new_metadata.width}x{new_metadata.height} pixels")

        return DEMData(elevation=cropped, metadata=new_metadata)

    def get_metadata(
        self, file_path: Union[str, Path], source_unit: ElevationUnit = ElevationUnit.METERS
    ) -> DEMMetadata:
        """
        Get DEM metadata without loading the elevation array.

        Args:
            file_path: Path to DEM file
            source_unit: Unit of the stored elevation values

        Returns:
            DEMMetadata object
        """
        file_path = self._check_path(file_path)
        try:
            with rasterio.open(file_path) as src:
                return self._extract_metadata(src, ElevationUnit(source_unit))
        except HeatLoadException:
            raise
        except Exception as e:
            raise ParseError(
                f"Error reading DEM metadata: {e}", file_path=str(file_path)
            ) from e

    def _check_path(self, file_path: Union[str, Path]) -> Path:
        """Validate that a DEM path exists and has a supported suffix."""
        file_path = Path(file_path)

        if not file_path.exists():
            raise ValidationError(f"DEM file not found: {file_path}", file_path=str(file_path))

        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_FORMATS:
            raise ValidationError(
                f"Unsupported DEM format: {suffix}. "
                f"Supported: {', '.join(self.SUPPORTED_FORMATS)}",
                file_path=str(file_path),
            )
        return file_path

    def _extract_metadata(
        self, src: "rasterio.DatasetReader", source_unit: ElevationUnit
    ) -> DEMMetadata:
        """
        Extract metadata from an open raster and validate its geometry.

        Args:
            src: Rasterio dataset reader
            source_unit: Unit of the stored elevation values

        Returns:
            DEMMetadata object
        """
        transform = src.transform
        if transform.b != 0 or transform.d != 0:
            raise ValidationError(
                "Rotated rasters are not supported", file_path=src.name
            )
        if transform.e >= 0:
            raise ValidationError(
                "DEM must be north-up (negative y cell size)", file_path=src.name
            )

        crs = CRS.from_wkt(src.crs.to_wkt()) if src.crs else None
        if self.target_crs is not None:
            if crs is None:
                raise CRSError(
                    "DEM has no coordinate reference system",
                    target_crs=self.target_crs.to_string(),
                )
            if not crs.equals(self.target_crs, ignore_axis_order=True):
                raise CRSError(
                    "DEM is not in the working coordinate reference system; "
                    "reproject it before loading",
                    source_crs=crs.to_string(),
                    target_crs=self.target_crs.to_string(),
                )

        return DEMMetadata.from_transform(
            transform,
            width=src.width,
            height=src.height,
            crs=crs,
            no_data_value=src.nodata,
            elevation_unit=source_unit,
            source_path=str(src.name),
            dtype=str(src.dtypes[0]),
        )

    def _check_unit_tags(
        self, src: "rasterio.DatasetReader", source_unit: ElevationUnit
    ) -> None:
        """Warn when the raster's unit tag disagrees with the stated unit."""
        unit_str = src.tags().get("units", "").lower()
        if not unit_str:
            return

        tagged: Optional[ElevationUnit] = None
        if "feet" in unit_str or "foot" in unit_str or unit_str == "ft":
            tagged = ElevationUnit.FEET
        elif "meter" in unit_str or "metre" in unit_str or unit_str == "m":
            tagged = ElevationUnit.METERS

        if tagged is not None and tagged != source_unit:
            logger.warning(
                f"DEM unit tag '{unit_str}' disagrees with stated unit "
                f"'{source_unit.value}'; using the stated unit"
            )
