"""
End-to-end heat load pipeline.

DEM -> terrain derivatives -> HLI -> {per-resolution aggregation and
quartile classes} and {zonal medians per management unit}.

Loader failures abort the run. Failures of one resolution, of the zonal
pass, or of the cache write are recorded on the result and the remaining
work continues.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pyproj import CRS
from shapely.ops import unary_union

from heatload.core.cache import DerivativeCache
from heatload.core.config import Settings, format_resolution, get_settings
from heatload.core.errors import HeatLoadException
from heatload.core.export.rasters import write_variant
from heatload.core.export.vectors import read_boundaries, write_zonal_summary
from heatload.core.hli.aggregation import MultiResolutionAggregator
from heatload.core.hli.classification import QuartileClassifier
from heatload.core.hli.index import HeatLoadCalculator
from heatload.core.hli.zonal import ZonalSummarizer, reproject_geometry
from heatload.core.logging_config import LogContext
from heatload.core.terrain.dem_loader import DEMLoader
from heatload.core.terrain.derivatives import TerrainDerivativeEngine
from heatload.models.hli import HLIField, ResolutionVariant
from heatload.models.terrain import DEMData, ElevationUnit, TerrainDerivatives
from heatload.models.zones import PolygonBoundary, ZonalSummaryRecord
from heatload.utils.logging import PerformanceTimer

logger = logging.getLogger(__name__)

ZONAL_SUFFIXES = {
    "GPKG": ".gpkg",
    "ESRI Shapefile": ".shp",
    "GeoJSON": ".geojson",
}


@dataclass
class PipelineResult:
    """
    Outputs of one pipeline run.

    Attributes:
        derivatives: Full-resolution terrain derivatives
        hli: Full-resolution HLI field
        from_cache: Whether derivatives were reused from the cache
        variants: Resolution variants keyed by cell size
        raster_paths: (continuous, classified) raster paths keyed by label
        zonal_records: One record per management unit
        zonal_path: Written zonal summary file
        failures: Error message per failed stage (e.g. 'resolution:25m')
    """

    derivatives: TerrainDerivatives
    hli: HLIField
    from_cache: bool = False
    variants: Dict[float, ResolutionVariant] = field(default_factory=dict)
    raster_paths: Dict[str, Tuple[Path, Path]] = field(default_factory=dict)
    zonal_records: List[ZonalSummaryRecord] = field(default_factory=list)
    zonal_path: Optional[Path] = None
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        """Whether every stage completed."""
        return not self.failures

    def summary(self) -> Dict[str, Any]:
        """Summarize the run for logs and the CLI."""
        return {
            "grid_shape": self.derivatives.shape,
            "from_cache": self.from_cache,
            "resolutions": {
                variant.label: variant.summary() for variant in self.variants.values()
            },
            "polygons": len(self.zonal_records),
            "incomplete_polygons": [
                r.unit_id for r in self.zonal_records if not r.is_complete
            ],
            "zonal_path": str(self.zonal_path) if self.zonal_path else None,
            "failures": dict(self.failures),
        }


class HeatLoadPipeline:
    """
    Run the heat load pipeline for one DEM and an optional unit layer.

    Example:
        >>> pipeline = HeatLoadPipeline(settings)
        >>> result = pipeline.run("site_dem.tif", units_path="units.gpkg")
        >>> result.raster_paths["25m"]
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[TerrainDerivativeEngine] = None,
        calculator: Optional[HeatLoadCalculator] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            settings: Run settings (default: process-wide settings)
            engine: Terrain derivative engine (default: Horn kernel)
            calculator: HLI calculator (default: McCune & Keon 2002)
        """
        self.settings = settings or get_settings()
        self.engine = engine or TerrainDerivativeEngine()
        self.calculator = calculator or HeatLoadCalculator()
        self.loader = DEMLoader(target_crs=self.settings.target_crs)
        self.cache = DerivativeCache(self.settings.cache_dir)
        self.classifier = QuartileClassifier()

    def run(
        self,
        dem_path: Union[str, Path],
        dem_unit: ElevationUnit = ElevationUnit.METERS,
        units_path: Optional[Union[str, Path]] = None,
        id_field: Optional[str] = None,
    ) -> PipelineResult:
        """
        Run every stage.

        Args:
            dem_path: Elevation raster in the target CRS
            dem_unit: Unit of the stored elevation values
            units_path: Management-unit polygons to summarize (optional)
            id_field: Attribute naming each unit (default: row index)

        Returns:
            PipelineResult with outputs and per-stage failures

        Raises:
            HeatLoadException: If the DEM or the unit layer cannot be loaded
        """
        dem_path = Path(dem_path)
        output_dir = Path(self.settings.output_dir)
        logger.info(f"Starting heat load run for {dem_path}")

        boundaries: List[PolygonBoundary] = []
        if units_path is not None:
            boundaries = read_boundaries(units_path, id_field=id_field)

        derivatives, hli, from_cache = self._derive(dem_path, dem_unit, boundaries)
        result = PipelineResult(derivatives=derivatives, hli=hli, from_cache=from_cache)

        if not from_cache:
            try:
                self.cache.save(dem_path.stem, derivatives, hli, source_path=dem_path)
            except HeatLoadException as e:
                logger.error(f"Derivative cache not written: {e}")
                result.failures["cache"] = str(e)

        self._run_resolutions(result, output_dir)

        if boundaries:
            self._run_zonal(result, boundaries, output_dir, Path(units_path).stem)

        if result.failures:
            logger.warning(f"Run finished with {len(result.failures)} failed stage(s)")
        else:
            logger.info("Run finished successfully")
        return result

    def _derive(
        self,
        dem_path: Path,
        dem_unit: ElevationUnit,
        boundaries: List[PolygonBoundary],
    ) -> Tuple[TerrainDerivatives, HLIField, bool]:
        """Reuse cached derivatives, or load the DEM and compute them."""
        key = dem_path.stem
        if not self.settings.overwrite:
            cached = self.cache.load(key)
            if cached is not None:
                return cached[0], cached[1], True
        elif self.cache.exists(key):
            logger.info(f"Overwrite requested; recomputing derivatives for {key!r}")

        with PerformanceTimer("load DEM"):
            dem = self._load_dem(dem_path, dem_unit, boundaries)
        with PerformanceTimer("terrain derivatives and HLI"):
            derivatives = self.engine.derive(dem)
            hli = self.calculator.from_derivatives(derivatives)
        return derivatives, hli, False

    def _load_dem(
        self,
        dem_path: Path,
        dem_unit: ElevationUnit,
        boundaries: List[PolygonBoundary],
    ) -> DEMData:
        """Load the DEM, cropped to the buffered extent of the units if any."""
        dem = self.loader.load(dem_path, dem_unit)
        extent = self._units_extent(boundaries, dem.metadata.crs)
        if extent is None:
            return dem
        return self.loader.crop_to_boundary(dem, extent, self.settings.buffer_meters)

    def _units_extent(
        self, boundaries: List[PolygonBoundary], grid_crs: Optional[CRS]
    ) -> Optional[Any]:
        """Union of all units that can be brought into the grid CRS."""
        geometries = []
        for boundary in boundaries:
            try:
                geometries.append(reproject_geometry(boundary.geometry, boundary.crs, grid_crs))
            except HeatLoadException as e:
                logger.warning(f"Unit {boundary.identifier!r} left out of the crop extent: {e}")
        if not geometries:
            return None
        return unary_union(geometries)

    def _run_resolutions(self, result: PipelineResult, output_dir: Path) -> None:
        """Aggregate, classify and write each resolution independently."""
        aggregator = MultiResolutionAggregator(self.settings.resolutions)
        for resolution in aggregator.resolutions:
            label = format_resolution(resolution)
            with LogContext(resolution=label):
                try:
                    with PerformanceTimer(f"resolution {label}"):
                        factor, aggregated = aggregator.aggregate_to(result.hli, resolution)
                        variant = self.classifier.build_variant(
                            resolution, factor, aggregated
                        )
                        result.raster_paths[label] = write_variant(variant, output_dir)
                    result.variants[resolution] = variant
                except HeatLoadException as e:
                    logger.error(f"Resolution {label} failed: {e}")
                    result.failures[f"resolution:{label}"] = str(e)

    def _run_zonal(
        self,
        result: PipelineResult,
        boundaries: List[PolygonBoundary],
        output_dir: Path,
        name: str,
    ) -> None:
        """Summarize every unit and write the augmented polygon layer."""
        driver = self.settings.vector_driver
        path = output_dir / f"{name}_hli{ZONAL_SUFFIXES.get(driver, '.gpkg')}"
        try:
            with PerformanceTimer("zonal summary"):
                summarizer = ZonalSummarizer(result.derivatives, result.hli)
                result.zonal_records = summarizer.summarize(boundaries)
                result.zonal_path = write_zonal_summary(
                    boundaries, result.zonal_records, path, driver=driver
                )
        except HeatLoadException as e:
            logger.error(f"Zonal summary failed: {e}")
            result.failures["zonal"] = str(e)

        for record in result.zonal_records:
            if record.error:
                result.failures[f"unit:{record.unit_id}"] = record.error
