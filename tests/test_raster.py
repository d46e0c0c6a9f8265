"""
Tests for raster sampling.

Covers opening, scan-line reads, min/max resolution (reported statistics and
the full-scan fallback) and normalization.
"""

import logging

import pytest
import numpy as np
import rasterio
from rasterio.transform import Affine

from src.demscene.errors import ConfigurationError, ResourceUnavailable
from src.demscene.raster import RasterInfo, normalize, open_raster, raster_info


class TestOpenRaster:
    """Tests for open_raster."""

    def test_missing_file_raises_resource_unavailable(self, tmp_path):
        with pytest.raises(ResourceUnavailable, match="Unable to open raster"):
            open_raster(tmp_path / "missing.tif")

    def test_resource_unavailable_is_an_oserror(self, tmp_path):
        with pytest.raises(OSError):
            open_raster(tmp_path / "missing.tif")

    def test_multiband_raster_rejected(self, tmp_path):
        path = tmp_path / "rgb.tif"
        with rasterio.open(
            path, "w", driver="GTiff", height=3, width=3, count=3, dtype="float32",
            transform=Affine.identity(),
        ) as dst:
            dst.write(np.zeros((3, 3, 3), dtype=np.float32))

        with pytest.raises(ConfigurationError, match="3 bands"):
            open_raster(path)

    def test_rotated_geotransform_rejected(self, raster_factory):
        rotated = Affine(1.0, 0.5, 0.0, 0.0, -1.0, 10.0)
        path = raster_factory("rotated.tif", np.arange(9).reshape(3, 3), transform=rotated)

        with pytest.raises(ConfigurationError, match="axis-aligned"):
            open_raster(path)

    def test_dimensions(self, raster_factory, sample_dem):
        path = raster_factory("dem.tif", sample_dem)

        with open_raster(path) as handle:
            assert handle.width == 12
            assert handle.height == 9

    def test_context_manager_closes(self, raster_factory, sample_dem):
        path = raster_factory("dem.tif", sample_dem)

        with open_raster(path) as handle:
            assert not handle.closed
        assert handle.closed


class TestRowAccess:
    """Tests for scan-line reads."""

    def test_read_row_returns_float32_row(self, raster_factory, scenario_dem):
        path = raster_factory("dem.tif", scenario_dem)

        with open_raster(path) as handle:
            row = handle.read_row(2)

        assert row.dtype == np.float32
        assert row.shape == (4,)
        np.testing.assert_array_equal(row, scenario_dem[2])

    def test_read_row_out_of_range(self, raster_factory, scenario_dem):
        path = raster_factory("dem.tif", scenario_dem)

        with open_raster(path) as handle:
            with pytest.raises(IndexError):
                handle.read_row(4)
            with pytest.raises(IndexError):
                handle.read_row(-1)

    def test_iter_row_pairs_yields_adjacent_rows(self, raster_factory, scenario_dem):
        path = raster_factory("dem.tif", scenario_dem)

        with open_raster(path) as handle:
            pairs = list(handle.iter_row_pairs())

        assert [row for row, _, _ in pairs] == [0, 1, 2]
        for row, current, nxt in pairs:
            np.testing.assert_array_equal(current, scenario_dem[row])
            np.testing.assert_array_equal(nxt, scenario_dem[row + 1])

    def test_iter_row_pairs_single_row(self, raster_factory):
        path = raster_factory("line.tif", np.array([[1.0, 2.0, 3.0]]))

        with open_raster(path) as handle:
            assert list(handle.iter_row_pairs()) == []


class TestMinMax:
    """Tests for min/max resolution."""

    def test_reported_statistics_are_used(self, raster_factory, scenario_dem):
        path = raster_factory("dem.tif", scenario_dem, statistics=(-5.0, 20.0))

        with open_raster(path) as handle:
            assert handle.reported_min_max() == (-5.0, 20.0)
            assert handle.min_max() == (-5.0, 20.0)

    def test_missing_statistics_reported_as_none(self, raster_factory, scenario_dem):
        path = raster_factory("dem.tif", scenario_dem)

        with open_raster(path) as handle:
            assert handle.reported_min_max() is None

    def test_missing_statistics_fall_back_to_scan(self, raster_factory, scenario_dem, caplog):
        path = raster_factory("dem.tif", scenario_dem)

        with caplog.at_level(logging.WARNING):
            with open_raster(path) as handle:
                assert handle.min_max() == (0.0, 10.0)

        assert "scanning all rows" in caplog.text

    def test_scan_ignores_nodata(self, raster_factory):
        data = np.array([[-9999.0, 2.0], [3.0, 8.0]])
        path = raster_factory("dem.tif", data, nodata=-9999.0)

        with open_raster(path) as handle:
            assert handle.min_max() == (2.0, 8.0)

    def test_flat_raster_is_unavailable(self, raster_factory):
        path = raster_factory("flat.tif", np.full((3, 3), 7.0))

        with open_raster(path) as handle:
            with pytest.raises(ResourceUnavailable, match="flat"):
                handle.min_max()

    def test_flat_reported_statistics_are_unavailable(self, raster_factory, scenario_dem):
        path = raster_factory("dem.tif", scenario_dem, statistics=(4.0, 4.0))

        with open_raster(path) as handle:
            with pytest.raises(ResourceUnavailable):
                handle.min_max()


class TestNormalize:
    """Tests for normalize."""

    def test_min_maps_to_zero_and_max_to_one(self):
        assert normalize(3.0, 3.0, 11.0) == 0.0
        assert normalize(11.0, 3.0, 11.0) == 1.0

    def test_midpoint(self):
        assert normalize(7.0, 3.0, 11.0) == pytest.approx(0.5)

    def test_arrays(self):
        values = np.array([0.0, 2.5, 10.0])
        np.testing.assert_allclose(normalize(values, 0.0, 10.0), [0.0, 0.25, 1.0])


class TestRasterInfo:
    """Tests for metadata snapshots."""

    def test_snapshot(self, raster_factory, scenario_dem):
        transform = Affine.translation(500000.0, 4000000.0) * Affine.scale(10.0, -10.0)
        path = raster_factory("dem.tif", scenario_dem, transform=transform, statistics=True)

        info = raster_info(path)

        assert isinstance(info, RasterInfo)
        assert (info.width, info.height) == (4, 4)
        assert info.geotransform == (500000.0, 10.0, 0.0, 4000000.0, 0.0, -10.0)
        assert info.origin == (500000.0, 4000000.0)
        assert info.pixel_width == 10.0
        assert info.pixel_height == -10.0
        assert info.min_max == (0.0, 10.0)
        assert "32611" in info.crs_wkt or "UTM" in info.crs_wkt

    def test_pixel_world_round_trip(self):
        info = RasterInfo("x.tif", 4, 4, (100.0, 2.0, 0.0, 50.0, 0.0, -2.0), None, 0.0, 1.0)

        assert info.pixel_to_world(3, 1) == (106.0, 48.0)
        assert info.world_to_pixel(106.0, 48.0) == (3.0, 1.0)
