"""
Zonal median summaries of terrain fields onto management-unit polygons.

A grid cell belongs to a polygon when its centre lies inside the polygon.
Every polygon is summarized independently: a polygon that cannot be
summarized gets a record carrying the error instead of statistics.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from numpy.typing import NDArray
from pyproj import CRS, Transformer
from rasterio.features import geometry_mask
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as transform_geometry

from heatload.core.errors import CRSError, HeatLoadException, ValidationError
from heatload.core.hli.index import hli_from_medians
from heatload.core.terrain.latitude import point_latitude
from heatload.models.hli import HLIField
from heatload.models.terrain import TerrainDerivatives
from heatload.models.zones import PolygonBoundary, ZonalSummaryRecord

logger = logging.getLogger(__name__)


def _median(values: NDArray[np.floating[Any]]) -> Optional[float]:
    """Median of the defined values, or None if there are none."""
    defined = values[~np.isnan(values)]
    if defined.size == 0:
        return None
    return float(np.median(defined))


def reproject_geometry(
    geometry: BaseGeometry, source_crs: Optional[CRS], target_crs: Optional[CRS]
) -> BaseGeometry:
    """
    Reproject a geometry between coordinate reference systems.

    Args:
        geometry: Shapely geometry in ``source_crs``
        source_crs: CRS of the geometry
        target_crs: CRS to transform into

    Returns:
        Geometry in ``target_crs`` (unchanged if the CRSs are equal)

    Raises:
        CRSError: If either CRS is missing or the transformation fails
    """
    if source_crs is None:
        raise CRSError(
            "Polygon has no coordinate reference system",
            target_crs=target_crs.to_string() if target_crs else None,
        )
    if target_crs is None:
        raise CRSError(
            "Grid has no coordinate reference system",
            source_crs=source_crs.to_string(),
        )
    if source_crs.equals(target_crs, ignore_axis_order=True):
        return geometry

    try:
        transformer = Transformer.from_crs(source_crs, target_crs, always_xy=True)
        reprojected = transform_geometry(transformer.transform, geometry)
    except Exception as e:
        raise CRSError(
            f"Failed to reproject polygon: {e}",
            source_crs=source_crs.to_string(),
            target_crs=target_crs.to_string(),
        ) from e

    if reprojected.is_empty or not all(math.isfinite(v) for v in reprojected.bounds):
        raise CRSError(
            "Polygon could not be reprojected to the grid CRS",
            source_crs=source_crs.to_string(),
            target_crs=target_crs.to_string(),
        )
    return reprojected


class ZonalSummarizer:
    """
    Summarize full-resolution terrain and HLI fields per polygon.

    Example:
        >>> summarizer = ZonalSummarizer(derivatives, hli)
        >>> records = summarizer.summarize(boundaries)
        >>> records[0].hli_median
        0.87
    """

    def __init__(self, derivatives: TerrainDerivatives, hli: HLIField) -> None:
        """
        Initialize the summarizer.

        Args:
            derivatives: Full-resolution terrain derivatives
            hli: Full-resolution HLI field on the same grid

        Raises:
            ValidationError: If the HLI field is not on the derivatives' grid
        """
        if hli.shape != derivatives.shape or hli.transform != derivatives.transform:
            raise ValidationError(
                "HLI field and terrain derivatives must share one grid",
                details={"hli_shape": hli.shape, "terrain_shape": derivatives.shape},
            )

        self.derivatives = derivatives
        self.hli = hli
        self._fields: Dict[str, NDArray[np.floating[Any]]] = {
            "slope": derivatives.slope,
            "aspect": derivatives.aspect,
            "folded_aspect": derivatives.folded_aspect,
            "hli": hli.values,
        }

    def cell_mask(self, geometry: BaseGeometry) -> NDArray[np.bool_]:
        """
        Get the cells whose centres fall inside a geometry.

        Args:
            geometry: Geometry in the grid CRS

        Returns:
            Boolean array, True inside the geometry
        """
        return geometry_mask(
            [geometry],
            out_shape=self.derivatives.shape,
            transform=self.derivatives.transform,
            all_touched=False,
            invert=True,
        )

    def summarize_boundary(self, boundary: PolygonBoundary) -> ZonalSummaryRecord:
        """
        Summarize one polygon.

        Args:
            boundary: Polygon to summarize

        Returns:
            ZonalSummaryRecord; statistics are None when no defined cell
            centre falls inside the polygon

        Raises:
            CRSError: If the polygon cannot be brought into the grid CRS
        """
        grid_crs = self.derivatives.crs
        geometry = reproject_geometry(boundary.geometry, boundary.crs, grid_crs)

        centroid = geometry.centroid
        latitude = point_latitude(centroid.x, centroid.y, grid_crs)

        inside = self.cell_mask(geometry)
        hli_values = self._fields["hli"][inside]
        cell_count = int(np.count_nonzero(~np.isnan(hli_values)))

        if cell_count == 0:
            logger.warning(f"Polygon {boundary.identifier!r} covers no defined cells")
            return ZonalSummaryRecord(
                unit_id=boundary.identifier,
                cell_count=0,
                centroid_latitude=latitude,
            )

        medians = {name: _median(values[inside]) for name, values in self._fields.items()}

        return ZonalSummaryRecord(
            unit_id=boundary.identifier,
            cell_count=cell_count,
            slope_median=medians["slope"],
            aspect_median=medians["aspect"],
            folded_aspect_median=medians["folded_aspect"],
            hli_median=medians["hli"],
            centroid_latitude=latitude,
            hli_polygon=hli_from_medians(
                medians["slope"], medians["folded_aspect"], latitude
            ),
        )

    def summarize(self, boundaries: Iterable[PolygonBoundary]) -> List[ZonalSummaryRecord]:
        """
        Summarize every polygon, isolating per-polygon failures.

        Args:
            boundaries: Polygons to summarize

        Returns:
            One record per polygon, in input order
        """
        records: List[ZonalSummaryRecord] = []
        for boundary in boundaries:
            try:
                record = self.summarize_boundary(boundary)
            except HeatLoadException as e:
                logger.error(f"Zonal summary failed for {boundary.identifier!r}: {e}")
                record = ZonalSummaryRecord(unit_id=boundary.identifier, error=str(e))
            records.append(record)

        complete = sum(1 for r in records if r.is_complete)
        logger.info(f"Summarized {len(records)} polygons ({complete} complete)")
        return records
