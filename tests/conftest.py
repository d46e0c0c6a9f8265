"""Pytest configuration and fixtures for demscene tests."""
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
import numpy as np
import rasterio
from rasterio.transform import Affine


def write_raster(path, data, transform=None, crs="EPSG:32611", statistics=None, nodata=None):
    """
    Write a single-band GeoTIFF.

    Args:
        statistics: (min, max) to store as band statistics, True to store the
            data's own range, or None to store nothing
    """
    data = np.asarray(data, dtype=np.float32)
    if transform is None:
        transform = Affine.translation(0, data.shape[0]) * Affine.scale(1, -1)

    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=data.shape[0],
        width=data.shape[1],
        count=1,
        dtype=data.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(data, 1)
        if statistics is True:
            statistics = (float(np.nanmin(data)), float(np.nanmax(data)))
        if statistics:
            dst.update_tags(1, STATISTICS_MINIMUM=statistics[0], STATISTICS_MAXIMUM=statistics[1])
    return path


@pytest.fixture
def raster_factory(tmp_path):
    """Write rasters into tmp_path: raster_factory("dem.tif", data, **kwargs) -> Path."""

    def _make(name, data, **kwargs):
        return write_raster(tmp_path / name, data, **kwargs)

    return _make


@pytest.fixture
def scenario_dem():
    """4x4 elevations spanning exactly 0..10."""
    return np.array(
        [
            [0.0, 1.0, 2.0, 3.0],
            [4.0, 5.0, 6.0, 7.0],
            [8.0, 9.0, 10.0, 2.5],
            [1.5, 3.5, 4.5, 5.5],
        ],
        dtype=np.float32,
    )


@pytest.fixture
def sample_dem():
    """Create a small synthetic DEM with a peak in the center."""
    x = np.linspace(-10, 10, 12)
    y = np.linspace(-10, 10, 9)
    X, Y = np.meshgrid(x, y)
    Z = 1000 + 100 * np.exp(-(X**2 + Y**2) / 50)
    return Z.astype(np.float32)


@pytest.fixture
def project_root():
    """Get the project root directory."""
    return Path(__file__).parent.parent
