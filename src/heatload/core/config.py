"""
Configuration settings for the Heatload pipeline.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Pipeline settings with environment variable support.

    Attributes:
        target_crs: Projected CRS every input grid and boundary is expected in
        buffer_meters: Margin kept around the site boundary when cropping the DEM
        resolutions: Cell sizes (CRS units) the HLI field is aggregated to
        output_dir: Directory receiving rasters and the zonal summary
        cache_dir: Directory holding the derivative cache
        overwrite: Recompute derivatives even when a cache file exists
        vector_driver: OGR driver used for the zonal summary output
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="HEATLOAD_",
    )

    # Spatial reference
    target_crs: str = "EPSG:26910"
    buffer_meters: float = 100.0

    # Aggregation
    resolutions: tuple[float, ...] = (10.0, 25.0, 50.0, 100.0)

    # Files
    output_dir: Path = Path("./data/output")
    cache_dir: Path = Path("./data/cache")
    overwrite: bool = False
    vector_driver: str = "GPKG"

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Optional[str] = None

    @field_validator("resolutions")
    @classmethod
    def validate_resolutions(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        """Require a non-empty list of positive cell sizes."""
        if not v:
            raise ValueError("At least one resolution is required")
        if any(r <= 0 for r in v):
            raise ValueError(f"Resolutions must be positive, got {v}")
        return tuple(sorted(set(v)))

    @field_validator("buffer_meters")
    @classmethod
    def validate_buffer(cls, v: float) -> float:
        """Reject negative buffers."""
        if v < 0:
            raise ValueError(f"buffer_meters must be >= 0, got {v}")
        return v

    @property
    def resolution_labels(self) -> list[str]:
        """Get output labels for each resolution (e.g. '10m')."""
        return [format_resolution(r) for r in self.resolutions]


def format_resolution(resolution: float) -> str:
    """
    Format a cell size for use in output file names.

    Args:
        resolution: Cell size in CRS units

    Returns:
        Label such as '10m' or '12.5m'
    """
    if float(resolution).is_integer():
        return f"{int(resolution)}m"
    return f"{resolution:g}m"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
