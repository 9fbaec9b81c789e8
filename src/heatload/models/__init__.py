"""
Data models and schemas.
"""

from .hli import (
    CLASS_NODATA,
    ClassDistribution,
    HeatLoadClass,
    HLIField,
    QuartileBreaks,
    ResolutionVariant,
)
from .terrain import (
    FEET_PER_METER,
    DEMData,
    DEMMetadata,
    ElevationUnit,
    TerrainDerivatives,
    TerrainMetrics,
)
from .zones import PolygonBoundary, ZonalSummaryRecord

__all__ = [
    # HLI
    "CLASS_NODATA",
    "ClassDistribution",
    "HeatLoadClass",
    "HLIField",
    "QuartileBreaks",
    "ResolutionVariant",
    # Terrain
    "FEET_PER_METER",
    "DEMData",
    "DEMMetadata",
    "ElevationUnit",
    "TerrainDerivatives",
    "TerrainMetrics",
    # Zones
    "PolygonBoundary",
    "ZonalSummaryRecord",
]
