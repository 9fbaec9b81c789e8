"""
On-disk cache of terrain derivatives and the full-resolution HLI field.

A cache entry is a compressed ``.npz`` of the grids plus a JSON manifest.
Reuse is decided by the entry being present; contents are not hashed, so a
cache built from a different DEM is reused until the caller overwrites it.
"""

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field
from pyproj import CRS
from rasterio.transform import Affine

from heatload.core.errors import StorageError
from heatload.models.hli import HLIField
from heatload.models.terrain import TerrainDerivatives

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


class CacheManifest(BaseModel):
    """Metadata stored next to a cached derivative set."""

    format_version: int = Field(..., description="Cache layout version")
    source_path: Optional[str] = Field(None, description="DEM the cache was built from")
    source_mtime: Optional[float] = Field(None, description="DEM modification time")
    crs_wkt: Optional[str] = Field(None, description="Grid CRS as WKT")
    transform: List[float] = Field(..., min_length=6, max_length=6)
    shape: Tuple[int, int]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DerivativeCache:
    """
    Store and reload TerrainDerivatives and HLIField by key.

    Example:
        >>> cache = DerivativeCache(Path("./data/cache"))
        >>> cache.save("site", derivatives, hli, source_path=dem_path)
        >>> derivatives, hli = cache.load("site")
    """

    def __init__(self, cache_dir: Union[str, Path]) -> None:
        """
        Initialize the cache.

        Args:
            cache_dir: Directory holding cache entries
        """
        self.cache_dir = Path(cache_dir)

    def _array_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}_derivatives.npz"

    def _manifest_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}_derivatives.json"

    def exists(self, key: str) -> bool:
        """Whether a complete cache entry is present for ``key``."""
        return self._array_path(key).exists() and self._manifest_path(key).exists()

    def save(
        self,
        key: str,
        derivatives: TerrainDerivatives,
        hli: HLIField,
        source_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Write a cache entry, replacing any existing one.

        Args:
            key: Entry name
            derivatives: Terrain derivatives to store
            hli: Full-resolution HLI field on the same grid
            source_path: DEM the derivatives were computed from

        Returns:
            Path of the array file

        Raises:
            StorageError: If the entry cannot be written
        """
        array_path = self._array_path(key)
        manifest_path = self._manifest_path(key)

        source_mtime = None
        if source_path is not None and Path(source_path).exists():
            source_mtime = Path(source_path).stat().st_mtime

        manifest = CacheManifest(
            format_version=CACHE_FORMAT_VERSION,
            source_path=str(source_path) if source_path is not None else None,
            source_mtime=source_mtime,
            crs_wkt=derivatives.crs.to_wkt() if derivatives.crs is not None else None,
            transform=list(derivatives.transform)[:6],
            shape=derivatives.shape,
        )

        temp_arrays = array_path.with_name(array_path.name + ".tmp")
        temp_manifest = manifest_path.with_name(manifest_path.name + ".tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

            with open(temp_arrays, "wb") as f:
                np.savez_compressed(f, hli=hli.values, **derivatives.as_arrays())
            temp_manifest.write_text(json.dumps(manifest.model_dump(mode="json"), indent=2))

            # Drop the old manifest before the arrays change; it is written back last
            manifest_path.unlink(missing_ok=True)
            shutil.move(str(temp_arrays), str(array_path))
            shutil.move(str(temp_manifest), str(manifest_path))
        except Exception as e:
            for temp in (temp_arrays, temp_manifest):
                if temp.exists():
                    temp.unlink()
            logger.error(f"Failed to write cache entry {key!r}: {e}")
            raise StorageError(
                f"Failed to write derivative cache: {e}",
                operation="cache_save",
                file_path=str(array_path),
            ) from e

        logger.info(f"Cached derivatives for {key!r} in {array_path}")
        return array_path

    def load(self, key: str) -> Optional[Tuple[TerrainDerivatives, HLIField]]:
        """
        Load a cache entry.

        Args:
            key: Entry name

        Returns:
            Tuple of (derivatives, HLI field), or None when the entry is
            missing or was written by another cache format version

        Raises:
            StorageError: If a present entry cannot be read
        """
        if not self.exists(key):
            logger.debug(f"No cache entry for {key!r}")
            return None

        array_path = self._array_path(key)
        try:
            manifest = CacheManifest(**json.loads(self._manifest_path(key).read_text()))
        except Exception as e:
            raise StorageError(
                f"Failed to read cache manifest: {e}",
                operation="cache_load",
                file_path=str(self._manifest_path(key)),
            ) from e

        if manifest.format_version != CACHE_FORMAT_VERSION:
            logger.warning(
                f"Ignoring cache entry {key!r}: format version "
                f"{manifest.format_version} != {CACHE_FORMAT_VERSION}"
            )
            return None

        self._warn_if_stale(key, manifest)

        try:
            with np.load(array_path) as data:
                arrays = {name: data[name] for name in (*TerrainDerivatives.FIELDS, "hli")}
        except Exception as e:
            raise StorageError(
                f"Failed to read derivative cache: {e}",
                operation="cache_load",
                file_path=str(array_path),
            ) from e

        crs = CRS.from_wkt(manifest.crs_wkt) if manifest.crs_wkt else None
        transform = Affine(*manifest.transform)
        hli_values = arrays.pop("hli")

        derivatives = TerrainDerivatives(transform=transform, crs=crs, **arrays)
        hli = HLIField(values=hli_values, transform=transform, crs=crs)

        logger.info(f"Loaded cached derivatives for {key!r} ({derivatives.shape})")
        return derivatives, hli

    def clear(self, key: str) -> bool:
        """
        Delete a cache entry.

        Args:
            key: Entry name

        Returns:
            True if anything was deleted
        """
        deleted = False
        for path in (self._array_path(key), self._manifest_path(key)):
            if path.exists():
                path.unlink()
                deleted = True
        if deleted:
            logger.info(f"Cleared cache entry {key!r}")
        return deleted

    def _warn_if_stale(self, key: str, manifest: CacheManifest) -> None:
        """Log when the source DEM changed after the entry was written."""
        if manifest.source_path is None or manifest.source_mtime is None:
            return
        source = Path(manifest.source_path)
        if source.exists() and source.stat().st_mtime > manifest.source_mtime:
            logger.warning(
                f"Source DEM {source} changed after cache entry {key!r} was written; "
                "reusing cache anyway (pass overwrite to recompute)"
            )
