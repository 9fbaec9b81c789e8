"""
Demonstration of the heat load pipeline.

Builds a synthetic hill DEM and two management units in UTM zone 10N,
runs the full pipeline into a temporary directory and prints the
per-resolution quartile classes and per-unit medians.
"""

import tempfile
from pathlib import Path

import geopandas as gpd
import numpy as np
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

from heatload.core.config import Settings
from heatload.core.hli.classification import class_distribution
from heatload.core.pipeline import HeatLoadPipeline
from heatload.models.hli import HeatLoadClass

# Easting of the zone 10 central meridian and the northing of 41 degrees north
ORIGIN_X = 500000.0
ORIGIN_Y = 4538700.0
CELL_SIZE = 5.0


def create_synthetic_dem(size: int = 200) -> np.ndarray:
    """Create a synthetic DEM with a hill in the centre."""
    x = np.arange(size)
    y = np.arange(size)
    xx, yy = np.meshgrid(x, y)

    center = size // 2
    distance = np.sqrt((xx - center) ** 2 + (yy - center) ** 2)

    # Hill (Gaussian-like shape)
    elevation = 1200 + 150 * np.exp(-distance**2 / (2 * (size / 5) ** 2))

    # Add some random noise for realism
    elevation += np.random.default_rng(0).normal(0, 0.3, elevation.shape)

    return elevation.astype(np.float32)


def write_inputs(workdir: Path) -> tuple:
    """Write the DEM and a two-unit polygon layer."""
    size = 200
    dem_path = workdir / "hill_dem.tif"
    with rasterio.open(
        dem_path,
        "w",
        driver="GTiff",
        height=size,
        width=size,
        count=1,
        dtype="float32",
        crs="EPSG:26910",
        transform=from_origin(ORIGIN_X, ORIGIN_Y, CELL_SIZE, CELL_SIZE),
        nodata=-9999,
    ) as dst:
        dst.write(create_synthetic_dem(size), 1)

    half = size * CELL_SIZE / 2
    units = gpd.GeoDataFrame(
        {"UNIT": ["North face", "South face"]},
        geometry=[
            box(ORIGIN_X + 200, ORIGIN_Y - half + 50, ORIGIN_X + 800, ORIGIN_Y - 100),
            box(ORIGIN_X + 200, ORIGIN_Y - 900, ORIGIN_X + 800, ORIGIN_Y - half - 50),
        ],
        crs="EPSG:26910",
    )
    units_path = workdir / "units.gpkg"
    units.to_file(units_path, driver="GPKG")
    return dem_path, units_path


def main():
    """Run the demonstration."""
    print("=" * 60)
    print("HEAT LOAD INDEX DEMONSTRATION")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        workdir = Path(tmp)
        dem_path, units_path = write_inputs(workdir)

        settings = Settings(
            output_dir=workdir / "output",
            cache_dir=workdir / "cache",
            resolutions=(5.0, 25.0, 50.0),
            buffer_meters=25.0,
        )
        result = HeatLoadPipeline(settings).run(dem_path, units_path=units_path, id_field="UNIT")

        print(f"\nGrid: {result.derivatives.shape}, defined HLI cells: {result.hli.defined_count}")

        for variant in result.variants.values():
            distribution = class_distribution(variant.classified)
            print(f"\n{variant.label} (factor {variant.factor}, grid {variant.hli.shape})")
            print(f"  Breaks: {', '.join(f'{v:.3f}' for v in variant.breaks.cuts)}")
            for heat_class in HeatLoadClass:
                print(f"  {heat_class.label:10s} {distribution.get(heat_class):6d} cells")

        print("\nManagement units:")
        for record in result.zonal_records:
            print(
                f"  {record.unit_id:12s} cells={record.cell_count:5d} "
                f"slope={record.slope_median:5.1f} aspect={record.aspect_median:5.1f} "
                f"HLI median={record.hli_median:.3f} HLI of medians={record.hli_polygon:.3f}"
            )

        if result.failures:
            print(f"\nFailed stages: {result.failures}")


if __name__ == "__main__":
    main()
