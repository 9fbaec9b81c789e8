"""
Terrain derivative engine.

Turns an elevation grid into the fixed-schema TerrainDerivatives set:
elevation, slope, aspect, folded aspect and cell latitude.
"""

import logging

import numpy as np

from heatload.core.errors import ValidationError
from heatload.core.hli.index import fold_aspect
from heatload.core.terrain.aspect import AspectCalculator
from heatload.core.terrain.latitude import latitude_grid, meters_per_unit
from heatload.core.terrain.slope import SlopeCalculator, SlopeMethod
from heatload.models.terrain import DEMData, ElevationUnit, TerrainDerivatives
from heatload.utils.logging import log_performance

logger = logging.getLogger(__name__)


class TerrainDerivativeEngine:
    """
    Compute slope, aspect, folded aspect and latitude grids from a DEM.

    Slope and aspect use the same 3x3 kernel, so both are NaN on the outer
    ring of the grid and around no-data elevations.
    """

    def __init__(self, method: SlopeMethod = SlopeMethod.HORN) -> None:
        """
        Initialize the engine.

        Args:
            method: Gradient scheme used for slope and aspect
        """
        self.method = method

    @log_performance()
    def derive(self, dem: DEMData) -> TerrainDerivatives:
        """
        Derive the terrain set for a DEM.

        Args:
            dem: Elevation grid in meters

        Returns:
            TerrainDerivatives sharing the DEM's transform and CRS

        Raises:
            ValidationError: If the DEM is not in meters
            CRSError: If the grid is geographic or cell latitudes cannot be derived
        """
        metadata = dem.metadata
        if metadata.elevation_unit != ElevationUnit.METERS:
            raise ValidationError(
                "Terrain derivatives require elevations in meters",
                field="elevation_unit",
                details={"elevation_unit": metadata.elevation_unit.value},
            )

        # Kernels need horizontal distances in the same unit as elevation
        to_meters = meters_per_unit(metadata.crs)
        cell_size = (metadata.resolution[0] * to_meters, metadata.resolution[1] * to_meters)
        logger.info(
            f"Deriving terrain for {metadata.width}x{metadata.height} grid, "
            f"cell size {cell_size[0]:g}x{cell_size[1]:g}m, method {self.method.value}"
        )

        elevation = dem.elevation.astype(np.float64)
        slope = SlopeCalculator(cell_size=cell_size, method=self.method).calculate(elevation)
        aspect = AspectCalculator(cell_size=cell_size, method=self.method).calculate(elevation)
        latitude = latitude_grid(metadata.transform, elevation.shape, metadata.crs)

        derivatives = TerrainDerivatives(
            elevation=elevation,
            slope=slope,
            aspect=aspect,
            folded_aspect=fold_aspect(aspect),
            latitude=latitude,
            transform=metadata.transform,
            crs=metadata.crs,
        )

        defined = int(np.count_nonzero(~np.isnan(slope)))
        flat = int(np.count_nonzero(~np.isnan(slope) & np.isnan(aspect)))
        logger.info(f"Terrain derived: {defined:,} cells with slope, {flat:,} flat cells")

        return derivatives
