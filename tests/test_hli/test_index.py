"""
Tests for the Heat Load Index transform.
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal
from rasterio.transform import from_origin

from heatload.core.hli.index import (
    MCCUNE_KEON_2002,
    HeatLoadCalculator,
    HLICoefficients,
    calculate_hli,
    fold_aspect,
    hli_from_medians,
)
from heatload.models.hli import HLIField
from heatload.models.terrain import TerrainDerivatives


def flat_hli(latitude: float) -> float:
    """HLI of a level cell: exp(-1.236 + 1.350 cos(lat)), clamped."""
    return min(1.0, math.exp(-1.236 + 1.350 * math.cos(math.radians(latitude))))


class TestFoldAspect:
    """Tests for fold_aspect."""

    @pytest.mark.parametrize(
        "aspect, folded",
        [(0.0, 0.0), (45.0, 45.0), (90.0, 90.0), (180.0, 180.0), (225.0, 135.0), (270.0, 90.0), (359.0, 1.0)],
    )
    def test_known_values(self, aspect: float, folded: float) -> None:
        """Test 180 - |aspect - 180|."""
        assert float(fold_aspect(aspect)) == pytest.approx(folded)

    def test_symmetric_about_north_south_axis(self) -> None:
        """Test a and 360 - a fold to the same value."""
        aspects = np.arange(1.0, 360.0, 7.0)
        assert_array_almost_equal(fold_aspect(aspects), fold_aspect(360.0 - aspects))

    def test_range(self) -> None:
        """Test folded values lie in [0, 180]."""
        folded = fold_aspect(np.linspace(0.0, 359.9, 1000))
        assert folded.min() >= 0.0
        assert folded.max() <= 180.0

    def test_nan_propagates(self) -> None:
        """Test undefined aspect stays undefined."""
        assert np.isnan(fold_aspect(np.array([np.nan]))).all()


class TestCalculateHLI:
    """Tests for calculate_hli."""

    def test_coefficients_are_immutable(self) -> None:
        """Test the published coefficients cannot be modified."""
        assert MCCUNE_KEON_2002.intercept == -1.236
        with pytest.raises(AttributeError):
            MCCUNE_KEON_2002.intercept = 0.0

    @pytest.mark.parametrize("latitude", [20.0, 40.0, 55.0, 70.0])
    def test_flat_cell_reduces_to_latitude_term(self, latitude: float) -> None:
        """Test slope 0 with undefined aspect uses only the latitude term."""
        value = calculate_hli(0.0, np.nan, latitude)
        assert float(value) == pytest.approx(flat_hli(latitude))

    def test_flat_cell_independent_of_aspect(self) -> None:
        """Test aspect has no effect on a level cell."""
        values = calculate_hli(np.zeros(4), np.array([0.0, 60.0, 120.0, 180.0]), np.full(4, 45.0))
        assert_array_almost_equal(values, np.full(4, flat_hli(45.0)))

    def test_clamped_at_one(self) -> None:
        """Test equatorial level ground overshoots 1 and is clamped."""
        assert math.exp(-1.236 + 1.350) > 1.0
        assert float(calculate_hli(0.0, np.nan, 0.0)) == 1.0

    def test_extreme_inputs_stay_in_unit_interval(self) -> None:
        """Test the output never leaves [0, 1]."""
        slope, folded, lat = np.meshgrid(
            np.linspace(0.0, 90.0, 19), np.linspace(0.0, 180.0, 19), np.linspace(-90.0, 90.0, 19)
        )
        values = calculate_hli(slope, folded, lat)

        assert not np.isnan(values).any()
        assert values.min() >= 0.0
        assert values.max() <= 1.0

    def test_south_slope_at_40n_is_warm(self) -> None:
        """Test a 30 degree south-facing slope at 40 N."""
        folded = float(fold_aspect(180.0))
        value = float(calculate_hli(30.0, folded, 40.0))

        assert folded == 180.0
        assert value > 0.5
        assert value == pytest.approx(0.9954, abs=1e-3)

    def test_south_warmer_than_north(self) -> None:
        """Test folded aspect 180 (SW-S) beats 0 (NE-N) on the same slope."""
        south = float(calculate_hli(25.0, 180.0, 45.0))
        north = float(calculate_hli(25.0, 0.0, 45.0))
        assert south > north

    def test_missing_inputs(self) -> None:
        """Test NaN slope, latitude, or aspect on a sloped cell give NaN."""
        values = calculate_hli(
            np.array([np.nan, 10.0, 10.0]),
            np.array([90.0, 90.0, np.nan]),
            np.array([40.0, np.nan, 40.0]),
        )
        assert np.isnan(values).all()

    def test_custom_coefficients(self) -> None:
        """Test alternative coefficients are applied."""
        zero = HLICoefficients(0.0, 0.0, 0.0, 0.0, 0.0)
        assert float(calculate_hli(30.0, 90.0, 40.0, zero)) == 1.0


class TestHLIFromMedians:
    """Tests for hli_from_medians."""

    def test_matches_grid_formula(self) -> None:
        """Test the scalar helper agrees with calculate_hli."""
        assert hli_from_medians(20.0, 150.0, 42.0) == pytest.approx(float(calculate_hli(20.0, 150.0, 42.0)))

    def test_missing_input(self) -> None:
        """Test missing statistics give None."""
        assert hli_from_medians(None, 90.0, 40.0) is None
        assert hli_from_medians(10.0, 90.0, None) is None
        assert hli_from_medians(10.0, None, 40.0) is None

    def test_flat_without_aspect(self) -> None:
        """Test a level unit has an HLI without aspect."""
        assert hli_from_medians(0.0, None, 40.0) == pytest.approx(flat_hli(40.0))


class TestHeatLoadCalculator:
    """Tests for HeatLoadCalculator."""

    def test_from_derivatives(self) -> None:
        """Test the field shares the derivatives' grid."""
        transform = from_origin(500000.0, 4427757.0, 10.0, 10.0)
        slope = np.array([[np.nan, 30.0], [0.0, 10.0]])
        aspect = np.array([[np.nan, 180.0], [np.nan, 90.0]])
        derivs = TerrainDerivatives(
            elevation=np.zeros((2, 2)),
            slope=slope,
            aspect=aspect,
            folded_aspect=fold_aspect(aspect),
            latitude=np.full((2, 2), 40.0),
            transform=transform,
            crs=None,
        )

        field = HeatLoadCalculator().from_derivatives(derivs)

        assert isinstance(field, HLIField)
        assert field.transform == transform
        assert np.isnan(field.values[0, 0])
        assert field.values[0, 1] > 0.5
        assert field.values[1, 0] == pytest.approx(flat_hli(40.0))
        assert field.defined_count == 3
