"""
Terrain analysis module for Heatload.

This module provides the terrain stage of the heat load pipeline:
- DEM loading with explicit elevation units and boundary cropping
- Slope calculation using Horn or Fleming-Hoffer kernels
- Aspect calculation as compass bearing of steepest descent
- Cell-centre latitude from projected grids
- Composition into a fixed-schema derivative set
"""

# Core slope and aspect calculation modules
from heatload.core.terrain.slope import (
    SlopeCalculator,
    SlopeMethod,
    calculate_slope,
)
from heatload.core.terrain.aspect import (
    AspectCalculator,
    calculate_aspect,
)
from heatload.core.terrain.latitude import (
    latitude_grid,
    meters_per_unit,
    point_latitude,
)
from heatload.core.terrain.dem_loader import DEMLoader
from heatload.core.terrain.derivatives import TerrainDerivativeEngine

__all__ = [
    "SlopeCalculator",
    "SlopeMethod",
    "calculate_slope",
    "AspectCalculator",
    "calculate_aspect",
    "latitude_grid",
    "meters_per_unit",
    "point_latitude",
    "DEMLoader",
    "TerrainDerivativeEngine",
]
