"""
Raster sampling for terrain mesh generation.

Wraps a single-band rasterio dataset and exposes the small surface the mesh
builders need: row-by-row reads, the affine geotransform, the CRS and a
resolved (min, max) pair used to normalize elevations into [0, 1].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import numpy as np
import rasterio
from rasterio.errors import RasterioIOError
from rasterio.windows import Window

from .errors import ConfigurationError, ResourceUnavailable

logger = logging.getLogger(__name__)

STATISTICS_MIN_TAG = "STATISTICS_MINIMUM"
STATISTICS_MAX_TAG = "STATISTICS_MAXIMUM"


def normalize(raw, vmin, vmax):
    """
    Normalize raw raster values against a (min, max) range.

    Values inside [vmin, vmax] map to [0, 1]. Works on scalars and numpy
    arrays alike. The caller must guarantee ``vmax > vmin``; RasterHandle
    refuses to hand out a degenerate range.
    """
    return (raw - vmin) / (vmax - vmin)


@dataclass(frozen=True)
class RasterInfo:
    """Immutable snapshot of a raster's metadata.

    Meshes keep one of these instead of an open dataset so the dataset can be
    closed as soon as the build finishes.
    """

    path: str
    width: int
    height: int
    geotransform: Tuple[float, float, float, float, float, float]
    """GDAL order: (originX, pixelW, rotX, originY, rotY, pixelH)."""
    crs_wkt: Optional[str]
    min: float
    max: float

    @property
    def origin(self) -> Tuple[float, float]:
        return self.geotransform[0], self.geotransform[3]

    @property
    def pixel_width(self) -> float:
        return self.geotransform[1]

    @property
    def pixel_height(self) -> float:
        return self.geotransform[5]

    @property
    def min_max(self) -> Tuple[float, float]:
        return self.min, self.max

    def pixel_to_world(self, col: float, row: float) -> Tuple[float, float]:
        """Map pixel (col, row) to world (x, y)."""
        origin_x, pixel_w, _, origin_y, _, pixel_h = self.geotransform
        return origin_x + col * pixel_w, origin_y + row * pixel_h

    def world_to_pixel(self, x: float, y: float) -> Tuple[float, float]:
        """Map world (x, y) to fractional pixel (col, row)."""
        origin_x, pixel_w, _, origin_y, _, pixel_h = self.geotransform
        return (x - origin_x) / pixel_w, (y - origin_y) / pixel_h


class RasterHandle:
    """
    Read-only access to band 1 of an elevation (or mask, or data) raster.

    Use as a context manager; the underlying dataset is closed on exit.
    Elevation reads are one scan-line at a time so a build only ever holds two
    rows of the raster in memory.

    Attributes:
        path: Source path as given to ``open_raster``
        width: Number of columns
        height: Number of rows
    """

    def __init__(self, dataset, path):
        self._dataset = dataset
        self.path = str(path)
        self.width = dataset.width
        self.height = dataset.height
        self.nodata = dataset.nodata
        self._min_max = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self):
        return f"RasterHandle({self.path!r}, {self.width}x{self.height})"

    @property
    def closed(self) -> bool:
        return self._dataset.closed

    def close(self):
        if not self._dataset.closed:
            self._dataset.close()
            logger.debug(f"Closed raster {self.path}")

    @property
    def geotransform(self) -> Tuple[float, float, float, float, float, float]:
        """Affine geotransform in GDAL order."""
        return tuple(float(v) for v in self._dataset.transform.to_gdal())

    @property
    def crs_wkt(self) -> Optional[str]:
        crs = self._dataset.crs
        if crs is None:
            return None
        return crs.to_wkt()

    def read_row(self, row: int) -> np.ndarray:
        """
        Read one scan-line of band 1 as float32.

        Args:
            row: Row index in [0, height)

        Returns:
            np.ndarray of shape (width,)

        Raises:
            IndexError: If row is outside the raster
        """
        if not 0 <= row < self.height:
            raise IndexError(f"Row {row} outside raster {self.path} with {self.height} rows")
        data = self._dataset.read(1, window=Window(0, row, self.width, 1))
        return data[0].astype(np.float32, copy=False)

    def read_all(self) -> np.ndarray:
        """Read the full band as a (height, width) float32 array."""
        return self._dataset.read(1).astype(np.float32, copy=False)

    def iter_row_pairs(self) -> Iterator[Tuple[int, np.ndarray, np.ndarray]]:
        """
        Yield ``(row, current, next)`` for every row that has a row below it.

        Only two scan-lines are alive at a time: the ``next`` row of one step
        becomes the ``current`` row of the following step.
        """
        if self.height < 2:
            return
        current = self.read_row(0)
        for row in range(self.height - 1):
            nxt = self.read_row(row + 1)
            yield row, current, nxt
            current = nxt

    def reported_min_max(self) -> Optional[Tuple[float, float]]:
        """
        Band statistics stored with the raster, if any.

        Returns:
            (min, max) from the GDAL statistics metadata, or None if the
            raster does not carry both values.
        """
        tags = self._dataset.tags(1)
        try:
            return float(tags[STATISTICS_MIN_TAG]), float(tags[STATISTICS_MAX_TAG])
        except (KeyError, ValueError):
            return None

    def scan_min_max(self) -> Tuple[float, float]:
        """Compute (min, max) with one linear pass over every row."""
        vmin = np.inf
        vmax = -np.inf
        for row in range(self.height):
            values = self.read_row(row)
            valid = ~np.isnan(values)
            if self.nodata is not None:
                valid &= values != self.nodata
            if not valid.any():
                continue
            vmin = min(vmin, float(values[valid].min()))
            vmax = max(vmax, float(values[valid].max()))
        if not np.isfinite(vmin):
            raise ResourceUnavailable(f"Raster {self.path} contains no valid samples")
        return vmin, vmax

    def min_max(self) -> Tuple[float, float]:
        """
        Resolve the (min, max) pair used for normalization.

        Uses the reported statistics when present and falls back to a full
        scan otherwise. The result is cached on the handle.

        Raises:
            ResourceUnavailable: If min equals max
        """
        if self._min_max is not None:
            return self._min_max

        reported = self.reported_min_max()
        if reported is None:
            logger.warning(f"No statistics reported for {self.path}, scanning all rows")
            vmin, vmax = self.scan_min_max()
        else:
            vmin, vmax = reported

        if vmax == vmin:
            raise ResourceUnavailable(
                f"Raster {self.path} is flat (min == max == {vmin}); cannot normalize"
            )

        self._min_max = (vmin, vmax)
        logger.debug(f"{self.path}: {self.width}x{self.height} min={vmin} max={vmax}")
        return self._min_max

    def snapshot(self) -> RasterInfo:
        """Capture metadata (including resolved min/max) as a RasterInfo."""
        vmin, vmax = self.min_max()
        return RasterInfo(
            path=self.path,
            width=self.width,
            height=self.height,
            geotransform=self.geotransform,
            crs_wkt=self.crs_wkt,
            min=vmin,
            max=vmax,
        )


def open_raster(path) -> RasterHandle:
    """
    Open a single-band, axis-aligned raster.

    Args:
        path: Any path rasterio can open (GeoTIFF, HGT, ...)

    Returns:
        RasterHandle (use as a context manager)

    Raises:
        ResourceUnavailable: If the file cannot be opened
        ConfigurationError: If the raster has more than one band or a
            rotated/skewed geotransform
    """
    try:
        dataset = rasterio.open(path)
    except RasterioIOError as e:
        raise ResourceUnavailable(f"Unable to open raster {path}: {e}") from e

    if dataset.count != 1:
        dataset.close()
        raise ConfigurationError(f"Raster {path} has {dataset.count} bands; expected 1")

    transform = dataset.transform
    if transform.b != 0 or transform.d != 0:
        dataset.close()
        raise ConfigurationError(f"Raster {path} has a rotated geotransform; only axis-aligned rasters are supported")

    handle = RasterHandle(dataset, Path(path))
    logger.debug(f"Opened {handle}")
    return handle


def raster_info(path) -> RasterInfo:
    """Open a raster just long enough to snapshot its metadata."""
    with open_raster(path) as handle:
        return handle.snapshot()
