"""
Models for management-unit polygons and their zonal summaries.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pyproj import CRS
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry


@dataclass
class PolygonBoundary:
    """
    A management-unit polygon to summarize terrain fields onto.

    Attributes:
        identifier: Unit name or id
        geometry: Polygon or MultiPolygon in ``crs`` coordinates
        crs: Coordinate reference system of the geometry
        attributes: Original attribute values carried through to outputs
    """

    identifier: str
    geometry: BaseGeometry
    crs: Optional[CRS]
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.geometry, (Polygon, MultiPolygon)):
            raise ValueError(
                f"Boundary {self.identifier!r} must be a Polygon or MultiPolygon, "
                f"got {self.geometry.geom_type}"
            )


class ZonalSummaryRecord(BaseModel):
    """
    Median terrain statistics of one management unit.

    Statistics are None when no defined cell centre falls inside the unit.

    Attributes:
        unit_id: Identifier of the summarized polygon
        cell_count: Defined HLI cells whose centres fall in the polygon
        slope_median: Median slope in degrees
        aspect_median: Median aspect in degrees
        folded_aspect_median: Median folded aspect in degrees
        hli_median: Median Heat Load Index
        centroid_latitude: Latitude of the polygon centroid in degrees
        hli_polygon: HLI recomputed from the medians at the centroid latitude
        error: Failure message when the unit could not be summarized
    """

    unit_id: str = Field(..., description="Management unit identifier")
    cell_count: int = Field(
        default=0, description="Defined HLI cells whose centres fall in the unit", ge=0
    )
    slope_median: Optional[float] = Field(None, description="Median slope (deg)", ge=0)
    aspect_median: Optional[float] = Field(
        None, description="Median aspect (deg)", ge=0, lt=360
    )
    folded_aspect_median: Optional[float] = Field(
        None, description="Median folded aspect (deg)", ge=0, le=180
    )
    hli_median: Optional[float] = Field(None, description="Median HLI", ge=0, le=1)
    centroid_latitude: Optional[float] = Field(
        None, description="Centroid latitude (deg)", ge=-90, le=90
    )
    hli_polygon: Optional[float] = Field(
        None, description="HLI from unit medians", ge=0, le=1
    )
    error: Optional[str] = Field(None, description="Failure message, if any")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "unit_id": "Unit 12",
                "cell_count": 5210,
                "slope_median": 18.4,
                "aspect_median": 201.7,
                "folded_aspect_median": 158.3,
                "hli_median": 0.91,
                "centroid_latitude": 41.07,
                "hli_polygon": 0.93,
                "error": None,
            }
        }
    )

    @property
    def is_complete(self) -> bool:
        """Whether every median statistic is defined."""
        return None not in (
            self.slope_median,
            self.aspect_median,
            self.folded_aspect_median,
            self.hli_median,
        )

    def to_attributes(self) -> Dict[str, Any]:
        """
        Get the record as output attribute columns.

        Column names stay within the 10-character shapefile limit.
        """
        return {
            "n_cells": self.cell_count,
            "slope_med": self.slope_median,
            "aspect_med": self.aspect_median,
            "fold_med": self.folded_aspect_median,
            "hli_med": self.hli_median,
            "cent_lat": self.centroid_latitude,
            "hli_poly": self.hli_polygon,
            "zs_error": self.error,
        }
