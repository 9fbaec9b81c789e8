"""
End-to-end tests for the heat load pipeline.
"""

from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from shapely.geometry import box

from heatload.core.config import Settings
from heatload.core.errors import StorageError, ValidationError
from heatload.core.hli.index import MCCUNE_KEON_2002, calculate_hli
from heatload.core.pipeline import HeatLoadPipeline, PipelineResult

ORIGIN_X = 500000.0
NORTHING_40N = 4427757.0


def run(settings: Settings, dem: Path, **kwargs) -> PipelineResult:
    return HeatLoadPipeline(settings).run(dem, **kwargs)


class TestRasterOutputs:
    """Pipeline runs without management units."""

    def test_writes_every_resolution(self, settings, south_slope_dem) -> None:
        """Test one continuous and one classified raster per resolution."""
        result = run(settings, south_slope_dem)

        assert result.succeeded
        assert result.from_cache is False
        assert sorted(result.raster_paths) == ["10m", "20m", "50m"]
        for label in ("10m", "20m", "50m"):
            assert (settings.output_dir / f"hli_{label}.tif").exists()
            assert (settings.output_dir / f"hli_qrtl_{label}.tif").exists()

    def test_aggregated_grids(self, settings, south_slope_dem) -> None:
        """Test aggregated shapes and cell sizes."""
        result = run(settings, south_slope_dem)

        assert result.variants[10.0].hli.shape == (40, 40)
        assert result.variants[20.0].hli.shape == (20, 20)
        assert result.variants[50.0].hli.shape == (8, 8)
        with rasterio.open(settings.output_dir / "hli_50m.tif") as src:
            assert src.res == (50.0, 50.0)
            assert src.bounds.left == ORIGIN_X
            assert src.bounds.top == NORTHING_40N

    def test_full_resolution_hli(self, settings, south_slope_dem) -> None:
        """Test interior HLI matches the closed form for the plane."""
        result = run(settings, south_slope_dem)

        interior = result.hli.values[1:-1, 1:-1]
        expected = calculate_hli(
            result.derivatives.slope[1:-1, 1:-1],
            result.derivatives.folded_aspect[1:-1, 1:-1],
            result.derivatives.latitude[1:-1, 1:-1],
            MCCUNE_KEON_2002,
        )
        np.testing.assert_allclose(interior, expected, rtol=1e-6)
        assert np.isnan(result.hli.values[0]).all()

    def test_bad_resolution_is_isolated(self, settings, south_slope_dem) -> None:
        """Test a resolution that is not a multiple of the cell size fails alone."""
        settings = settings.model_copy(update={"resolutions": (10.0, 15.0, 50.0)})
        result = run(settings, south_slope_dem)

        assert not result.succeeded
        assert list(result.failures) == ["resolution:15m"]
        assert sorted(result.raster_paths) == ["10m", "50m"]
        assert not (settings.output_dir / "hli_15m.tif").exists()

    def test_missing_dem_aborts(self, settings, tmp_path) -> None:
        """Test loader failures propagate."""
        with pytest.raises(ValidationError):
            run(settings, tmp_path / "missing.tif")

    def test_summary(self, settings, south_slope_dem) -> None:
        """Test the run summary lists every resolution."""
        summary = run(settings, south_slope_dem).summary()

        assert summary["grid_shape"] == (40, 40)
        assert set(summary["resolutions"]) == {"10m", "20m", "50m"}
        assert summary["resolutions"]["20m"]["factor"] == 2
        assert summary["failures"] == {}


class TestZonalOutputs:
    """Pipeline runs with management units."""

    def test_zonal_summary(self, settings, south_slope_dem, units_path) -> None:
        """Test one record per unit, with medians for units on the DEM."""
        result = run(settings, south_slope_dem, units_path=units_path, id_field="UNIT")

        assert result.succeeded
        records = {r.unit_id: r for r in result.zonal_records}
        assert list(records) == ["West", "East", "Away"]

        west = records["West"]
        assert west.cell_count == 14 * 30
        assert west.slope_median == pytest.approx(30.0, abs=1e-2)
        assert west.aspect_median == pytest.approx(180.0, abs=1e-6)
        assert west.hli_polygon == pytest.approx(west.hli_median, abs=1e-3)
        assert west.centroid_latitude == pytest.approx(39.998, abs=0.01)

        assert records["Away"].cell_count == 0
        assert records["Away"].hli_median is None
        assert result.summary()["incomplete_polygons"] == ["Away"]

    def test_zonal_file(self, settings, south_slope_dem, units_path) -> None:
        """Test the written layer keeps input attributes."""
        result = run(settings, south_slope_dem, units_path=units_path, id_field="UNIT")

        assert result.zonal_path == settings.output_dir / "units_hli.gpkg"
        written = gpd.read_file(result.zonal_path)
        assert list(written["UNIT"]) == ["West", "East", "Away"]
        assert {"AREA_HA", "hli_med", "hli_poly", "n_cells"} <= set(written.columns)

    def test_dem_cropped_to_units(self, settings, south_slope_dem, tmp_path) -> None:
        """Test the DEM is cropped to the buffered unit extent."""
        frame = gpd.GeoDataFrame(
            {"UNIT": ["West"]},
            geometry=[box(ORIGIN_X + 50, NORTHING_40N - 350, ORIGIN_X + 190, NORTHING_40N - 50)],
            crs="EPSG:26910",
        )
        path = tmp_path / "west.gpkg"
        frame.to_file(path, driver="GPKG")

        result = run(settings, south_slope_dem, units_path=path)

        # 20 m buffer around x 50-190, y 50-350 snapped to 10 m cells
        assert result.derivatives.shape == (34, 18)
        assert result.zonal_records[0].cell_count == 14 * 30

    def test_units_without_crs(self, settings, south_slope_dem, tmp_path) -> None:
        """Test polygons with no CRS fail individually."""
        frame = gpd.GeoDataFrame(
            {"UNIT": ["A"]},
            geometry=[box(ORIGIN_X + 50, NORTHING_40N - 350, ORIGIN_X + 190, NORTHING_40N - 50)],
        )
        path = tmp_path / "no_crs.shp"
        frame.to_file(path, driver="ESRI Shapefile")

        result = run(settings, south_slope_dem, units_path=path, id_field="UNIT")

        assert result.zonal_records[0].error.startswith("CRS_ERROR")
        assert "unit:A" in result.failures
        assert sorted(result.raster_paths) == ["10m", "20m", "50m"]

    def test_zonal_write_failure_is_isolated(
        self, settings, south_slope_dem, units_path, monkeypatch
    ) -> None:
        """Test rasters survive a failed zonal write."""

        def fail(*args, **kwargs):
            raise StorageError("disk full", operation="write_vector")

        monkeypatch.setattr("heatload.core.pipeline.write_zonal_summary", fail)
        result = run(settings, south_slope_dem, units_path=units_path, id_field="UNIT")

        assert "zonal" in result.failures
        assert len(result.zonal_records) == 3
        assert sorted(result.raster_paths) == ["10m", "20m", "50m"]


class TestCacheReuse:
    """Derivative cache behaviour across runs."""

    def test_second_run_uses_cache(self, settings, south_slope_dem) -> None:
        """Test derivatives are reused on the second run."""
        first = run(settings, south_slope_dem)
        second = run(settings, south_slope_dem)

        assert first.from_cache is False
        assert second.from_cache is True
        assert (settings.cache_dir / "south_slope_derivatives.npz").exists()
        np.testing.assert_array_equal(first.hli.values, second.hli.values)

    def test_overwrite_recomputes(self, settings, south_slope_dem) -> None:
        """Test overwrite ignores an existing cache entry."""
        run(settings, south_slope_dem)
        result = run(settings.model_copy(update={"overwrite": True}), south_slope_dem)

        assert result.from_cache is False

    def test_cache_write_failure_is_isolated(self, settings, south_slope_dem, monkeypatch) -> None:
        """Test a failed cache write is recorded and outputs still written."""
        pipeline = HeatLoadPipeline(settings)

        def fail(*args, **kwargs):
            raise StorageError("read-only", operation="cache_save")

        monkeypatch.setattr(pipeline.cache, "save", fail)
        result = pipeline.run(south_slope_dem)

        assert list(result.failures) == ["cache"]
        assert sorted(result.raster_paths) == ["10m", "20m", "50m"]
