"""
Aspect calculation for terrain.

Aspect is the compass direction a slope faces, i.e. the direction of steepest
descent, measured in degrees clockwise from north (0 = N, 90 = E, 180 = S,
270 = W). Flat cells have no facing direction and are NaN.
"""

from typing import Any, Dict

import numpy as np
from numpy.typing import NDArray

from heatload.core.terrain.slope import CellSize, SlopeMethod, calculate_gradients


class AspectCalculator:
    """
    Calculate aspect (direction of slope) from north-up DEMs.

    Uses the same gradient kernels and edge policy as SlopeCalculator, so
    slope and aspect grids are defined on exactly the same cells.
    """

    def __init__(
        self,
        cell_size: CellSize = 1.0,
        method: SlopeMethod = SlopeMethod.HORN,
    ):
        """
        Initialize the aspect calculator.

        Args:
            cell_size: Resolution of the DEM in meters, scalar or (x, y) (default: 1.0)
            method: Gradient scheme (default: Horn's method)
        """
        self.cell_size = cell_size
        self.method = method

    def calculate(self, dem: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
        """
        Calculate aspect from a DEM array.

        Args:
            dem: 2D numpy array representing the Digital Elevation Model

        Returns:
            2D numpy array of aspect values in degrees [0, 360), NaN for flat
            and edge cells

        Raises:
            ValueError: If DEM is not a 2D array or has invalid dimensions
        """
        dzdx, dzdy = calculate_gradients(dem, self.cell_size, self.method)

        # Downslope vector is (-dz/dx) east and (+dz/dy_rows) north since rows run south
        aspect = np.degrees(np.arctan2(-dzdx, dzdy)) % 360.0
        # -0.0 % 360 can round to 360.0
        aspect = np.where(aspect >= 360.0, 0.0, aspect)

        # Flat means an exactly zero gradient
        flat = (dzdx == 0) & (dzdy == 0)
        return np.where(flat, np.nan, aspect)

    def calculate_with_metadata(self, dem: NDArray[np.floating[Any]]) -> Dict[str, Any]:
        """
        Calculate aspect and return with counts of defined and flat cells.

        Args:
            dem: 2D numpy array representing the Digital Elevation Model

        Returns:
            Dictionary containing aspect array and statistics
        """
        aspect = self.calculate(dem)
        defined = ~np.isnan(aspect)

        stats: Dict[str, Any] = {
            "aspect": aspect,
            "undefined_pixels": int(np.count_nonzero(~defined)),
            "defined_pixels": int(np.count_nonzero(defined)),
        }
        if stats["defined_pixels"]:
            stats["median"] = float(np.median(aspect[defined]))

        return stats


def calculate_aspect(
    dem: NDArray[np.floating[Any]],
    cell_size: CellSize = 1.0,
    method: SlopeMethod = SlopeMethod.HORN,
) -> NDArray[np.floating[Any]]:
    """
    Convenience function to calculate aspect from a DEM.

    Args:
        dem: 2D numpy array representing the Digital Elevation Model
        cell_size: Resolution of the DEM in meters (default: 1.0)
        method: Gradient scheme (default: Horn's method)

    Returns:
        2D numpy array of aspect values in degrees, NaN for flat/edge cells

    Example:
        >>> import numpy as np
        >>> dem = np.array([[102, 102, 102],
        ...                 [101, 101, 101],
        ...                 [100, 100, 100]], dtype=float)
        >>> float(calculate_aspect(dem)[1, 1])
        180.0
    """
    calculator = AspectCalculator(cell_size=cell_size, method=method)
    return calculator.calculate(dem)
