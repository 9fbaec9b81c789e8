"""
Export of heat load products.

This module writes per-resolution HLI GeoTIFFs and the polygon zonal
summary vector file.
"""

from heatload.core.export.rasters import write_grid, write_variant
from heatload.core.export.vectors import (
    read_boundaries,
    records_to_frame,
    write_zonal_summary,
)

__all__ = [
    "write_grid",
    "write_variant",
    "read_boundaries",
    "records_to_frame",
    "write_zonal_summary",
]
