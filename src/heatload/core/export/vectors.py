"""
Vector I/O for management-unit polygons and their zonal summaries.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import geopandas as gpd
from pyproj import CRS

from heatload.core.errors import ParseError, StorageError, ValidationError
from heatload.models.zones import PolygonBoundary, ZonalSummaryRecord

logger = logging.getLogger(__name__)

# Output drivers by file extension
DRIVERS_BY_SUFFIX = {
    ".gpkg": "GPKG",
    ".shp": "ESRI Shapefile",
    ".geojson": "GeoJSON",
    ".json": "GeoJSON",
}


def read_boundaries(
    path: Union[str, Path], id_field: Optional[str] = None
) -> List[PolygonBoundary]:
    """
    Read management-unit polygons from a vector file.

    Args:
        path: Any vector format GDAL can read
        id_field: Attribute holding the unit identifier (default: row index)

    Returns:
        One PolygonBoundary per polygon feature, in file order

    Raises:
        ValidationError: If the file or id field is missing
        ParseError: If the file cannot be read
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"Polygon file not found: {path}", file_path=str(path))

    try:
        frame = gpd.read_file(path)
    except Exception as e:
        raise ParseError(
            f"Failed to read polygons: {e}", file_path=str(path), file_type="vector"
        ) from e

    if id_field is not None and id_field not in frame.columns:
        raise ValidationError(
            f"Id field {id_field!r} not found in {path.name}",
            field="id_field",
            file_path=str(path),
            details={"columns": [c for c in frame.columns if c != "geometry"]},
        )

    crs = CRS.from_user_input(frame.crs) if frame.crs is not None else None
    if crs is None:
        logger.warning(f"{path.name} has no CRS; its polygons cannot be summarized")

    boundaries = []
    skipped = 0
    for index, row in frame.iterrows():
        geometry = row.geometry
        if geometry is None or geometry.is_empty or geometry.geom_type not in (
            "Polygon",
            "MultiPolygon",
        ):
            skipped += 1
            continue
        attributes = {k: v for k, v in row.items() if k != frame.geometry.name}
        identifier = str(attributes[id_field]) if id_field else str(index)
        boundaries.append(
            PolygonBoundary(
                identifier=identifier, geometry=geometry, crs=crs, attributes=attributes
            )
        )

    if skipped:
        logger.warning(f"Skipped {skipped} non-polygon features in {path.name}")
    logger.info(f"Read {len(boundaries)} polygons from {path}")
    return boundaries


def records_to_frame(
    boundaries: Sequence[PolygonBoundary], records: Sequence[ZonalSummaryRecord]
) -> gpd.GeoDataFrame:
    """
    Append zonal summary fields to the polygons' own attributes.

    Args:
        boundaries: Summarized polygons
        records: One record per polygon, in the same order

    Returns:
        GeoDataFrame with one row per polygon

    Raises:
        ValidationError: If polygons and records do not pair up
    """
    if len(boundaries) != len(records):
        raise ValidationError(
            f"Got {len(records)} records for {len(boundaries)} polygons", field="records"
        )

    rows = []
    for boundary, record in zip(boundaries, records):
        if record.unit_id != boundary.identifier:
            raise ValidationError(
                f"Record {record.unit_id!r} does not match polygon {boundary.identifier!r}",
                field="records",
            )
        rows.append({**boundary.attributes, **record.to_attributes()})

    crs = boundaries[0].crs if boundaries else None
    return gpd.GeoDataFrame(
        rows,
        geometry=[b.geometry for b in boundaries],
        crs=crs.to_wkt() if crs is not None else None,
    )


def write_zonal_summary(
    boundaries: Sequence[PolygonBoundary],
    records: Sequence[ZonalSummaryRecord],
    path: Union[str, Path],
    driver: Optional[str] = None,
) -> Path:
    """
    Write polygons with their zonal summary fields.

    Args:
        boundaries: Summarized polygons
        records: One record per polygon
        path: Output file path (overwritten if present)
        driver: OGR driver (default: inferred from the extension, else GPKG)

    Returns:
        Path of the written file

    Raises:
        StorageError: If the file cannot be written
    """
    path = Path(path)
    driver = driver or DRIVERS_BY_SUFFIX.get(path.suffix.lower(), "GPKG")
    frame = records_to_frame(boundaries, records)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            path.unlink()
        frame.to_file(path, driver=driver)
    except Exception as e:
        raise StorageError(
            f"Failed to write zonal summary: {e}", operation="write_vector", file_path=str(path)
        ) from e

    logger.info(f"Wrote zonal summary of {len(frame)} polygons to {path}")
    return path
