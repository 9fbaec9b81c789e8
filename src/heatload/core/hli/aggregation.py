"""
Block-mean aggregation of the HLI field to coarser resolutions.
"""

import logging
import math
from typing import Any, Dict, Iterable, Tuple

import numpy as np
from numpy.typing import NDArray
from rasterio.transform import Affine

from heatload.core.errors import ValidationError
from heatload.models.hli import HLIField

logger = logging.getLogger(__name__)

# Tolerance when checking that target / source cell size is a whole number
FACTOR_TOLERANCE = 1e-6


def aggregation_factor(source_cell_size: float, target_cell_size: float) -> int:
    """
    Get the integer block size that turns one cell size into another.

    Args:
        source_cell_size: Cell size of the full-resolution grid
        target_cell_size: Requested coarser cell size

    Returns:
        Number of source cells per target cell along each axis

    Raises:
        ValidationError: If the target is not a positive whole multiple of the source
    """
    if source_cell_size <= 0 or target_cell_size <= 0:
        raise ValidationError(
            f"Cell sizes must be positive, got {source_cell_size} and {target_cell_size}",
            field="resolution",
        )

    ratio = target_cell_size / source_cell_size
    factor = int(round(ratio))
    if factor < 1 or not math.isclose(ratio, factor, rel_tol=FACTOR_TOLERANCE):
        raise ValidationError(
            f"Resolution {target_cell_size} is not a whole multiple of the "
            f"source cell size {source_cell_size}",
            field="resolution",
            suggestions=["Choose resolutions that are multiples of the DEM cell size"],
        )
    return factor


def block_mean(values: NDArray[np.floating[Any]], factor: int) -> NDArray[np.floating[Any]]:
    """
    Average non-overlapping ``factor`` x ``factor`` blocks.

    No-data cells are left out of each mean and a block with no defined cells
    is no-data. Blocks on the right and bottom edges may be partial; they
    average the cells that exist.

    Args:
        values: 2D array, NaN = no data
        factor: Block size in cells (>= 1)

    Returns:
        Aggregated array of shape ceil(rows / factor) x ceil(cols / factor)
    """
    if factor < 1:
        raise ValidationError(f"Aggregation factor must be >= 1, got {factor}", field="factor")
    if factor == 1:
        return np.array(values, dtype=np.float64, copy=True)

    rows, cols = values.shape
    out_rows = -(-rows // factor)
    out_cols = -(-cols // factor)

    padded = np.full((out_rows * factor, out_cols * factor), np.nan, dtype=np.float64)
    padded[:rows, :cols] = values

    blocks = padded.reshape(out_rows, factor, out_cols, factor)
    defined = ~np.isnan(blocks)
    sums = np.where(defined, blocks, 0.0).sum(axis=(1, 3))
    counts = defined.sum(axis=(1, 3))

    with np.errstate(invalid="ignore", divide="ignore"):
        means = sums / counts
    means[counts == 0] = np.nan
    return means


def aggregate_transform(transform: Affine, factor: int) -> Affine:
    """Scale a grid's affine transform by an aggregation factor."""
    return transform * Affine.scale(factor)


class MultiResolutionAggregator:
    """
    Aggregate a full-resolution HLI field to a list of target cell sizes.

    Each resolution is handled independently; callers decide how to treat a
    resolution that fails.
    """

    def __init__(self, resolutions: Iterable[float]) -> None:
        """
        Initialize the aggregator.

        Args:
            resolutions: Target cell sizes in CRS units

        Raises:
            ValidationError: If no resolution is given or one is not positive
        """
        self.resolutions = tuple(sorted(set(float(r) for r in resolutions)))
        if not self.resolutions:
            raise ValidationError("At least one resolution is required", field="resolutions")
        if any(r <= 0 for r in self.resolutions):
            raise ValidationError(
                f"Resolutions must be positive, got {self.resolutions}", field="resolutions"
            )

    def aggregate_to(self, field: HLIField, resolution: float) -> Tuple[int, HLIField]:
        """
        Aggregate a field to one target cell size.

        Args:
            field: Full-resolution HLI field
            resolution: Target cell size

        Returns:
            Tuple of (factor, aggregated HLIField)

        Raises:
            ValidationError: If the field has non-square cells or the
                resolution is not a multiple of its cell size
        """
        x_size, y_size = field.cell_size
        if not math.isclose(x_size, y_size, rel_tol=FACTOR_TOLERANCE):
            raise ValidationError(
                f"Block aggregation needs square cells, got {field.cell_size}",
                field="cell_size",
            )

        factor = aggregation_factor(x_size, resolution)
        values = block_mean(field.values, factor)
        logger.info(
            f"Aggregated HLI to {resolution:g} (factor {factor}): "
            f"{field.shape} -> {values.shape}"
        )
        return factor, HLIField(
            values=values,
            transform=aggregate_transform(field.transform, factor),
            crs=field.crs,
        )

    def aggregate(self, field: HLIField) -> Dict[float, Tuple[int, HLIField]]:
        """
        Aggregate a field to every configured resolution.

        Args:
            field: Full-resolution HLI field

        Returns:
            Mapping of resolution to (factor, aggregated HLIField)
        """
        return {r: self.aggregate_to(field, r) for r in self.resolutions}
