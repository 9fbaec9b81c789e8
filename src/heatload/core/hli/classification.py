"""
Quartile classification of HLI grids.

Cut points are computed from each grid's own distribution; a grid at one
resolution is never classified with another resolution's cut points.
"""

import logging
from typing import Any, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from heatload.core.errors import ValidationError
from heatload.models.hli import (
    CLASS_NODATA,
    ClassDistribution,
    HeatLoadClass,
    HLIField,
    QuartileBreaks,
    ResolutionVariant,
)

logger = logging.getLogger(__name__)

QUARTILE_PROBABILITIES: Tuple[float, float, float] = (0.25, 0.5, 0.75)


def compute_quartile_breaks(values: NDArray[np.floating[Any]]) -> QuartileBreaks:
    """
    Compute min, quartiles and max over the defined cells of a grid.

    Quantiles use linear interpolation between order statistics.

    Args:
        values: Array of HLI values, NaN = no data

    Returns:
        QuartileBreaks for the grid

    Raises:
        ValidationError: If the grid has no defined cells
    """
    defined = np.asarray(values, dtype=np.float64)
    defined = defined[~np.isnan(defined)]
    if defined.size == 0:
        raise ValidationError("Cannot compute quartiles of a grid with no defined cells")

    p25, p50, p75 = np.quantile(defined, QUARTILE_PROBABILITIES)
    return QuartileBreaks(
        minimum=float(defined.min()),
        p25=float(p25),
        p50=float(p50),
        p75=float(p75),
        maximum=float(defined.max()),
    )


def classify(values: NDArray[np.floating[Any]], breaks: QuartileBreaks) -> NDArray[np.uint8]:
    """
    Assign each cell to a heat-load quartile class.

    Classes are closed on the right: 1 = [min, p25], 2 = (p25, p50],
    3 = (p50, p75], 4 = (p75, max]. No-data cells get CLASS_NODATA.

    Args:
        values: Array of HLI values
        breaks: Cut points to classify with

    Returns:
        uint8 array of class codes
    """
    values = np.asarray(values, dtype=np.float64)
    defined = ~np.isnan(values)

    classes = np.full(values.shape, CLASS_NODATA, dtype=np.uint8)
    codes = np.searchsorted(np.asarray(breaks.cuts), values[defined], side="left") + 1
    classes[defined] = codes.astype(np.uint8)
    return classes


def class_distribution(classified: NDArray[np.integer[Any]]) -> ClassDistribution:
    """
    Count cells per heat-load class.

    Args:
        classified: Class grid from ``classify``

    Returns:
        ClassDistribution with counts and percentages of classified cells
    """
    counts = {cls.label: int(np.count_nonzero(classified == cls)) for cls in HeatLoadClass}
    total = sum(counts.values())
    percentages = {
        label: (count / total) * 100.0 if total else 0.0 for label, count in counts.items()
    }
    return ClassDistribution(
        counts=counts,
        percentages=percentages,
        no_data=int(np.count_nonzero(classified == CLASS_NODATA)),
    )


class QuartileClassifier:
    """
    Classify aggregated HLI grids into quartile classes.
    """

    def classify_field(
        self, field: HLIField, breaks: Optional[QuartileBreaks] = None
    ) -> Tuple[QuartileBreaks, NDArray[np.uint8]]:
        """
        Classify a field, computing its own cut points unless given.

        Args:
            field: HLI field to classify
            breaks: Existing cut points for the same grid (reclassification)

        Returns:
            Tuple of (breaks, class grid)
        """
        if breaks is None:
            breaks = compute_quartile_breaks(field.values)
        return breaks, classify(field.values, breaks)

    def build_variant(self, resolution: float, factor: int, field: HLIField) -> ResolutionVariant:
        """
        Build the resolution variant for an aggregated field.

        Args:
            resolution: Target cell size of the field
            factor: Aggregation factor used to produce the field
            field: Aggregated HLI field

        Returns:
            ResolutionVariant with its own quartile cut points
        """
        breaks, classified = self.classify_field(field)
        variant = ResolutionVariant(
            resolution=resolution,
            factor=factor,
            hli=field,
            breaks=breaks,
            classified=classified,
        )
        logger.info(
            f"Quartiles at {variant.label}: p25={breaks.p25:.4f}, "
            f"p50={breaks.p50:.4f}, p75={breaks.p75:.4f}"
        )
        return variant
