"""
Heat Load Index data models.

Containers for the full-resolution HLI field, per-resolution quartile cut
points, and the aggregated/classified resolution variants.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple

import numpy as np
from pyproj import CRS
from rasterio.transform import Affine

from heatload.core.config import format_resolution

# No-data code in classified rasters
CLASS_NODATA = 0


class HeatLoadClass(IntEnum):
    """Ordinal heat-load quartile classes, coolest first."""

    COOLEST = 1
    MED_COOL = 2
    MED_WARM = 3
    WARMEST = 4

    @property
    def label(self) -> str:
        """Human-readable class label used in map legends."""
        return _CLASS_LABELS[self]


_CLASS_LABELS = {
    HeatLoadClass.COOLEST: "Coolest",
    HeatLoadClass.MED_COOL: "Med. Cool",
    HeatLoadClass.MED_WARM: "Med. Warm",
    HeatLoadClass.WARMEST: "Warmest",
}


@dataclass(frozen=True)
class HLIField:
    """
    Heat Load Index grid at a single resolution.

    Attributes:
        values: 2D array of HLI values in [0, 1], NaN = no data
        transform: Affine transform of the grid
        crs: Coordinate reference system
    """

    values: np.ndarray
    transform: Affine
    crs: Optional[CRS]

    def __post_init__(self) -> None:
        if self.values.ndim != 2:
            raise ValueError(f"HLI grid must be 2D, got {self.values.ndim} dimensions")

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid shape as (rows, cols)."""
        return self.values.shape

    @property
    def cell_size(self) -> Tuple[float, float]:
        """Cell size as (x, y) in CRS units."""
        return (abs(self.transform.a), abs(self.transform.e))

    @property
    def defined_count(self) -> int:
        """Number of cells holding a value."""
        return int(np.count_nonzero(~np.isnan(self.values)))


@dataclass(frozen=True)
class QuartileBreaks:
    """
    Quartile cut points of one HLI grid.

    Attributes:
        minimum: Smallest defined value
        p25: 25th percentile
        p50: Median
        p75: 75th percentile
        maximum: Largest defined value
    """

    minimum: float
    p25: float
    p50: float
    p75: float
    maximum: float

    @property
    def cuts(self) -> Tuple[float, float, float]:
        """Interior cut points (p25, p50, p75)."""
        return (self.p25, self.p50, self.p75)

    def to_dict(self) -> Dict[str, float]:
        """Convert breaks to dictionary."""
        return {
            "min": self.minimum,
            "p25": self.p25,
            "p50": self.p50,
            "p75": self.p75,
            "max": self.maximum,
        }


@dataclass(frozen=True)
class ResolutionVariant:
    """
    HLI aggregated to one target cell size, with its own quartile classes.

    Attributes:
        resolution: Target cell size in CRS units
        factor: Aggregation factor relative to the source grid
        hli: Aggregated HLI field
        breaks: Quartile cut points computed on this grid
        classified: uint8 class grid (1-4, 0 = no data)
    """

    resolution: float
    factor: int
    hli: HLIField
    breaks: QuartileBreaks
    classified: np.ndarray

    def __post_init__(self) -> None:
        if self.classified.shape != self.hli.shape:
            raise ValueError(
                f"Classified shape {self.classified.shape} does not match "
                f"HLI shape {self.hli.shape}"
            )

    @property
    def label(self) -> str:
        """Resolution label used in output names (e.g. '25m')."""
        return format_resolution(self.resolution)

    def summary(self) -> Dict[str, Any]:
        """Summarize the variant for run reports."""
        return {
            "resolution": self.resolution,
            "factor": self.factor,
            "shape": self.hli.shape,
            "defined_cells": self.hli.defined_count,
            "breaks": self.breaks.to_dict(),
        }


@dataclass
class ClassDistribution:
    """
    Cell counts per heat-load class.

    Attributes:
        counts: Cells per class label
        percentages: Share of defined cells per class label
        no_data: Cells without a class
    """

    counts: Dict[str, int]
    percentages: Dict[str, float]
    no_data: int = 0

    def get(self, heat_class: HeatLoadClass) -> int:
        """Get the cell count for one class."""
        return self.counts.get(heat_class.label, 0)
