"""
Slope calculation for terrain analysis.

This module implements two finite-difference schemes for calculating slope
from Digital Elevation Models (DEMs):
- Horn's method (8-neighbour 3x3 weighted kernel, standard in GIS)
- Fleming and Hoffer method (4-neighbour central differences)

Edge policy: cells without a complete 3x3 neighbourhood (the outer ring of the
grid, and any cell next to a no-data elevation) are no-data (NaN). Callers
must crop the DEM with a buffer of at least one cell beyond the area of
interest.
"""

from enum import Enum
from typing import Any, Dict, Tuple, Union

import numpy as np
from numpy.typing import NDArray

CellSize = Union[float, Tuple[float, float]]


class SlopeMethod(str, Enum):
    """Supported gradient schemes."""

    HORN = "horn"
    FLEMING_HOFFER = "fleming_hoffer"


def _split_cell_size(cell_size: CellSize) -> Tuple[float, float]:
    """Normalize a scalar or (x, y) cell size to a positive (x, y) pair."""
    if isinstance(cell_size, (tuple, list)):
        x_size, y_size = float(cell_size[0]), float(cell_size[1])
    else:
        x_size = y_size = float(cell_size)
    if x_size <= 0 or y_size <= 0:
        raise ValueError(f"cell_size must be positive, got {cell_size}")
    return x_size, y_size


def calculate_gradients(
    dem: NDArray[np.floating[Any]],
    cell_size: CellSize = 1.0,
    method: SlopeMethod = SlopeMethod.HORN,
) -> Tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
    """
    Calculate elevation gradients of a north-up DEM.

    The returned dz/dy follows array row order, so it is positive where
    elevation increases towards the south.

    Horn kernels:
        dz/dx:  [-1  0  1]       dz/dy:  [-1 -2 -1]
                [-2  0  2]               [ 0  0  0]
                [-1  0  1]               [ 1  2  1]

    Args:
        dem: 2D elevation array (NaN = no data)
        cell_size: Cell size in the elevation unit, scalar or (x, y)
        method: Gradient scheme

    Returns:
        Tuple of (dz/dx, dz/dy) gradient arrays, NaN on the grid edge

    Raises:
        ValueError: If DEM is not a 2D array of at least 3x3 cells
    """
    if dem.ndim != 2:
        raise ValueError("DEM must be a 2D array")
    if dem.shape[0] < 3 or dem.shape[1] < 3:
        raise ValueError("DEM must be at least 3x3 pixels")

    x_size, y_size = _split_cell_size(cell_size)

    # NaN padding marks edge cells as no-data
    padded = np.pad(
        dem.astype(np.float64), pad_width=1, mode="constant", constant_values=np.nan
    )

    a = padded[0:-2, 0:-2]  # top-left
    b = padded[0:-2, 1:-1]  # top
    c = padded[0:-2, 2:]  # top-right
    d = padded[1:-1, 0:-2]  # left
    f = padded[1:-1, 2:]  # right
    g = padded[2:, 0:-2]  # bottom-left
    h = padded[2:, 1:-1]  # bottom
    i = padded[2:, 2:]  # bottom-right

    if method == SlopeMethod.HORN:
        dzdx = ((c + 2 * f + i) - (a + 2 * d + g)) / (8.0 * x_size)
        dzdy = ((g + 2 * h + i) - (a + 2 * b + c)) / (8.0 * y_size)
    elif method == SlopeMethod.FLEMING_HOFFER:
        dzdx = (f - d) / (2.0 * x_size)
        dzdy = (h - b) / (2.0 * y_size)
    else:
        raise ValueError(f"Unknown method: {method}")

    return dzdx, dzdy


class SlopeCalculator:
    """
    Calculate slope from Digital Elevation Models.

    Slope is the angle between the local tangent plane and horizontal,
    expressed in degrees or percent.
    """

    def __init__(
        self,
        cell_size: CellSize = 1.0,
        method: SlopeMethod = SlopeMethod.HORN,
        units: str = "degrees",
    ):
        """
        Initialize the slope calculator.

        Args:
            cell_size: Resolution of the DEM in meters, scalar or (x, y) (default: 1.0)
            method: Gradient scheme (default: Horn's method)
            units: Output units - 'degrees' or 'percent' (default: 'degrees')

        Raises:
            ValueError: If units is not 'degrees' or 'percent'
        """
        if units not in ["degrees", "percent"]:
            raise ValueError("units must be 'degrees' or 'percent'")

        self.cell_size = cell_size
        self.method = method
        self.units = units

    def calculate(
        self, dem: NDArray[np.floating[Any]], z_factor: float = 1.0
    ) -> NDArray[np.floating[Any]]:
        """
        Calculate slope from a DEM array.

        Args:
            dem: 2D numpy array representing the Digital Elevation Model
            z_factor: Vertical exaggeration factor (default: 1.0)

        Returns:
            2D numpy array of slope values in the specified units, NaN on edges

        Raises:
            ValueError: If DEM is not a 2D array or has invalid dimensions
        """
        dzdx, dzdy = calculate_gradients(dem * z_factor, self.cell_size, self.method)
        slope_radians = np.arctan(np.hypot(dzdx, dzdy))

        if self.units == "degrees":
            return np.degrees(slope_radians)
        return np.tan(slope_radians) * 100.0

    def calculate_with_metadata(
        self, dem: NDArray[np.floating[Any]], z_factor: float = 1.0
    ) -> Dict[str, Any]:
        """
        Calculate slope and return with statistics over defined cells.

        Args:
            dem: 2D numpy array representing the Digital Elevation Model
            z_factor: Vertical exaggeration factor (default: 1.0)

        Returns:
            Dictionary containing the slope array, summary statistics,
            the method and the units
        """
        slope = self.calculate(dem, z_factor)
        result: Dict[str, Any] = {
            "slope": slope,
            "method": self.method.value,
            "units": self.units,
            "defined_pixels": int(np.count_nonzero(~np.isnan(slope))),
        }
        if result["defined_pixels"]:
            result.update(
                {
                    "min": float(np.nanmin(slope)),
                    "max": float(np.nanmax(slope)),
                    "mean": float(np.nanmean(slope)),
                    "std": float(np.nanstd(slope)),
                }
            )
        return result


def calculate_slope(
    dem: NDArray[np.floating[Any]],
    cell_size: CellSize = 1.0,
    method: SlopeMethod = SlopeMethod.HORN,
    units: str = "degrees",
    z_factor: float = 1.0,
) -> NDArray[np.floating[Any]]:
    """
    Convenience function to calculate slope from a DEM.

    Args:
        dem: 2D numpy array representing the Digital Elevation Model
        cell_size: Resolution of the DEM in meters (default: 1.0)
        method: Gradient scheme (default: Horn's method)
        units: Output units - 'degrees' or 'percent' (default: 'degrees')
        z_factor: Vertical exaggeration factor (default: 1.0)

    Returns:
        2D numpy array of slope values

    Example:
        >>> import numpy as np
        >>> dem = np.array([[100, 101, 102],
        ...                 [100, 101, 102],
        ...                 [100, 101, 102]], dtype=float)
        >>> slope = calculate_slope(dem, cell_size=1.0)
        >>> round(float(slope[1, 1]), 1)
        45.0
    """
    calculator = SlopeCalculator(cell_size=cell_size, method=method, units=units)
    return calculator.calculate(dem, z_factor)
