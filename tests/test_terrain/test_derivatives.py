"""
Tests for the terrain derivative engine.
"""

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal
from pyproj import CRS
from rasterio.transform import from_origin

from heatload.core.errors import CRSError, ValidationError
from heatload.core.hli.index import HeatLoadCalculator
from heatload.core.terrain.derivatives import TerrainDerivativeEngine
from heatload.core.terrain.slope import SlopeMethod
from heatload.models.terrain import DEMData, DEMMetadata, ElevationUnit, TerrainDerivatives

US_SURVEY_FOOT = 1200.0 / 3937.0


def make_dem(elevation, transform, crs=CRS.from_epsg(26910), unit=ElevationUnit.METERS) -> DEMData:
    """Wrap an array in DEMData."""
    metadata = DEMMetadata.from_transform(
        transform,
        width=elevation.shape[1],
        height=elevation.shape[0],
        crs=crs,
        elevation_unit=unit,
    )
    return DEMData(elevation=elevation, metadata=metadata)


class TestTerrainDerivativeEngine:
    """Tests for TerrainDerivativeEngine.derive."""

    def test_south_slope_at_40n(self, make_south_slope, utm_transform) -> None:
        """Test a 30 degree south-facing plane on the 40th parallel."""
        derivs = TerrainDerivativeEngine().derive(make_dem(make_south_slope(8, 8, 30.0), utm_transform))
        interior = (slice(1, -1), slice(1, -1))

        assert isinstance(derivs, TerrainDerivatives)
        assert_array_almost_equal(derivs.slope[interior], np.full((6, 6), 30.0), decimal=6)
        assert_array_almost_equal(derivs.aspect[interior], np.full((6, 6), 180.0), decimal=6)
        assert_array_almost_equal(derivs.folded_aspect[interior], np.full((6, 6), 180.0), decimal=6)
        assert derivs.latitude[0, 0] == pytest.approx(40.0, abs=0.01)

    def test_shared_grid(self, make_south_slope, utm_transform) -> None:
        """Test every field shares the DEM's shape, transform and CRS."""
        dem = make_dem(make_south_slope(6, 9, 10.0), utm_transform)
        derivs = TerrainDerivativeEngine().derive(dem)

        for name, array in derivs.as_arrays().items():
            assert array.shape == (6, 9), name
        assert derivs.transform == dem.metadata.transform
        assert derivs.crs == dem.metadata.crs
        assert derivs.cell_size == (10.0, 10.0)

    def test_fields_are_read_only(self, make_south_slope, utm_transform) -> None:
        """Test derived arrays cannot be mutated in place."""
        derivs = TerrainDerivativeEngine().derive(make_dem(make_south_slope(5, 5, 10.0), utm_transform))

        with pytest.raises(ValueError):
            derivs.slope[2, 2] = 0.0

    def test_flat_cells(self, utm_transform) -> None:
        """Test flat cells have zero slope and no aspect."""
        derivs = TerrainDerivativeEngine().derive(make_dem(np.full((5, 5), 250.0), utm_transform))

        assert_array_almost_equal(derivs.slope[1:-1, 1:-1], np.zeros((3, 3)))
        assert np.isnan(derivs.aspect).all()
        assert np.isnan(derivs.folded_aspect).all()

    def test_fleming_hoffer_method(self, make_south_slope, utm_transform) -> None:
        """Test the engine passes its method to both calculators."""
        engine = TerrainDerivativeEngine(method=SlopeMethod.FLEMING_HOFFER)
        derivs = engine.derive(make_dem(make_south_slope(5, 5, 20.0), utm_transform))

        assert derivs.slope[2, 2] == pytest.approx(20.0)
        assert derivs.aspect[2, 2] == pytest.approx(180.0)

    def test_requires_meters(self, utm_transform) -> None:
        """Test elevations still in feet are rejected."""
        dem = make_dem(np.ones((5, 5)), utm_transform, unit=ElevationUnit.FEET)
        with pytest.raises(ValidationError, match="meters"):
            TerrainDerivativeEngine().derive(dem)

    def test_requires_crs(self, utm_transform) -> None:
        """Test latitude cannot be derived without a CRS."""
        dem = make_dem(np.ones((5, 5)), utm_transform, crs=None)
        with pytest.raises(CRSError):
            TerrainDerivativeEngine().derive(dem)

    def test_gentle_slope_keeps_hli(self, make_south_slope, utm_transform) -> None:
        """Test a half degree plane keeps its aspect and a defined HLI."""
        derivs = TerrainDerivativeEngine().derive(make_dem(make_south_slope(6, 6, 0.5), utm_transform))
        hli = HeatLoadCalculator().from_derivatives(derivs)
        interior = (slice(1, -1), slice(1, -1))

        assert_array_almost_equal(derivs.slope[interior], np.full((4, 4), 0.5), decimal=6)
        assert_array_almost_equal(derivs.aspect[interior], np.full((4, 4), 180.0), decimal=6)
        assert np.isfinite(hli.values[interior]).all()

    def test_us_survey_feet_grid(self, make_south_slope) -> None:
        """Test cell sizes in US survey feet are converted before the kernels run."""
        transform = from_origin(6561666.667, 2000000.0, 10.0, 10.0)
        elevation = make_south_slope(6, 6, 30.0, cell_size=10.0 * US_SURVEY_FOOT)
        derivs = TerrainDerivativeEngine().derive(make_dem(elevation, transform, crs=CRS.from_epsg(2227)))

        assert_array_almost_equal(derivs.slope[1:-1, 1:-1], np.full((4, 4), 30.0), decimal=4)
        assert derivs.cell_size == (10.0, 10.0)

    def test_geographic_grid_rejected(self) -> None:
        """Test a grid in degrees is rejected rather than given degree-sized cells."""
        transform = from_origin(-120.0, 40.0, 0.0001, 0.0001)
        dem = make_dem(np.ones((5, 5)), transform, crs=CRS.from_epsg(4326))
        with pytest.raises(CRSError, match="geographic"):
            TerrainDerivativeEngine().derive(dem)
