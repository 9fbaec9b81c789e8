"""
Heat Load Index (McCune & Keon 2002, equation 2).

HLI estimates potential direct incident radiation from slope, folded aspect
and latitude. The empirical fit can exceed the theoretical [0, 1] range on
extreme slope/latitude combinations; such values are clamped.

Reference:
    McCune, B. & Keon, D. (2002). Equations for potential annual direct
    incident radiation and heat load. Journal of Vegetation Science 13: 603-606.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from heatload.models.hli import HLIField
from heatload.models.terrain import TerrainDerivatives

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HLICoefficients:
    """Coefficients of the log-linear heat load model."""

    intercept: float
    cos_lat_cos_slope: float
    cos_fold_sin_slope_sin_lat: float
    sin_lat_sin_slope: float
    sin_fold_sin_slope: float


MCCUNE_KEON_2002 = HLICoefficients(
    intercept=-1.236,
    cos_lat_cos_slope=1.350,
    cos_fold_sin_slope_sin_lat=-1.376,
    sin_lat_sin_slope=-0.331,
    sin_fold_sin_slope=0.375,
)


def fold_aspect(aspect: ArrayLike) -> NDArray[np.floating[Any]]:
    """
    Fold aspect about the north-south axis.

    ``180 - |aspect - 180|`` maps NE and NW (and E and W) to the same value,
    so 0 is north-facing and 180 is south-facing. NaN stays NaN.

    Args:
        aspect: Aspect in degrees [0, 360)

    Returns:
        Folded aspect in degrees [0, 180]
    """
    aspect = np.asarray(aspect, dtype=np.float64)
    return 180.0 - np.abs(aspect - 180.0)


def calculate_hli(
    slope: ArrayLike,
    folded_aspect: ArrayLike,
    latitude: ArrayLike,
    coefficients: HLICoefficients = MCCUNE_KEON_2002,
) -> NDArray[np.floating[Any]]:
    """
    Evaluate the Heat Load Index.

    A cell with zero slope has no aspect, but every aspect term is multiplied
    by sin(slope) = 0, so its HLI reduces to
    ``exp(intercept + 1.350 * cos(lat))`` and is defined.

    Args:
        slope: Slope in degrees
        folded_aspect: Folded aspect in degrees (NaN allowed where slope is 0)
        latitude: Latitude in degrees
        coefficients: Model coefficients

    Returns:
        HLI clamped to [0, 1]; NaN where slope or latitude is missing, or
        where aspect is missing on a sloped cell
    """
    slope = np.asarray(slope, dtype=np.float64)
    folded = np.asarray(folded_aspect, dtype=np.float64)
    latitude = np.asarray(latitude, dtype=np.float64)

    flat = slope == 0
    folded = np.where(flat & np.isnan(folded), 0.0, folded)

    slope_r = np.radians(slope)
    folded_r = np.radians(folded)
    lat_r = np.radians(latitude)

    sin_slope = np.sin(slope_r)
    sin_lat = np.sin(lat_r)

    exponent = (
        coefficients.intercept
        + coefficients.cos_lat_cos_slope * np.cos(lat_r) * np.cos(slope_r)
        + coefficients.cos_fold_sin_slope_sin_lat * np.cos(folded_r) * sin_slope * sin_lat
        + coefficients.sin_lat_sin_slope * sin_lat * sin_slope
        + coefficients.sin_fold_sin_slope * np.sin(folded_r) * sin_slope
    )

    # NaN passes through clip unchanged
    return np.clip(np.exp(exponent), 0.0, 1.0)


def hli_from_medians(
    slope: Optional[float],
    folded_aspect: Optional[float],
    latitude: Optional[float],
) -> Optional[float]:
    """
    Recompute HLI for a whole unit from its summary statistics.

    Args:
        slope: Median slope in degrees
        folded_aspect: Median folded aspect in degrees
        latitude: Centroid latitude in degrees

    Returns:
        Clamped HLI, or None if an input is missing
    """
    if slope is None or latitude is None:
        return None
    if folded_aspect is None and slope != 0:
        return None

    value = float(
        calculate_hli(
            slope, np.nan if folded_aspect is None else folded_aspect, latitude
        )
    )
    return None if math.isnan(value) else value


class HeatLoadCalculator:
    """
    Build the full-resolution HLI field from a terrain derivative set.
    """

    def __init__(self, coefficients: HLICoefficients = MCCUNE_KEON_2002) -> None:
        """
        Initialize the calculator.

        Args:
            coefficients: Model coefficients (default: McCune & Keon 2002)
        """
        self.coefficients = coefficients

    def from_derivatives(self, derivatives: TerrainDerivatives) -> HLIField:
        """
        Calculate HLI for every cell of a derivative set.

        Args:
            derivatives: Terrain derivatives

        Returns:
            HLIField on the derivatives' grid
        """
        values = calculate_hli(
            derivatives.slope,
            derivatives.folded_aspect,
            derivatives.latitude,
            self.coefficients,
        )
        field = HLIField(values=values, transform=derivatives.transform, crs=derivatives.crs)

        if field.defined_count:
            logger.info(
                f"HLI computed for {field.defined_count:,} cells, "
                f"range {np.nanmin(values):.3f}-{np.nanmax(values):.3f}"
            )
        else:
            logger.warning("HLI field has no defined cells")
        return field
