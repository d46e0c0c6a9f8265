"""
Tests for vector feature overlays.
"""

import logging

import pytest
import numpy as np
import geopandas as gpd
from rasterio.transform import Affine
from shapely.geometry import LineString, MultiLineString, Point, Polygon

from src.demscene.errors import ConfigurationError, ResourceUnavailable
from src.demscene.features import (
    FEATURE_ELEVATION_EPSILON,
    FeatureRole,
    ReferenceElevation,
    load_feature_overlay,
    read_line_coordinates,
)
from src.demscene.raster import raster_info
from src.demscene.rendering import ShaderProgram

ORIGIN_X = 600000.0
ORIGIN_Y = 4800000.0


@pytest.fixture
def reference(raster_factory):
    """20x20 reference DEM, 10 m pixels, elevations 0..399 row-major."""
    data = np.arange(400, dtype=np.float32).reshape(20, 20)
    path = raster_factory(
        "large.tif", data,
        transform=Affine.translation(ORIGIN_X, ORIGIN_Y) * Affine.scale(10.0, -10.0),
    )
    return raster_info(path)


@pytest.fixture
def write_layer(tmp_path):
    def _write(name, geometries):
        path = tmp_path / name
        frame = gpd.GeoDataFrame({"id": list(range(len(geometries)))}, geometry=geometries, crs="EPSG:32611")
        frame.to_file(path, driver="GeoJSON")
        return path

    return _write


def world(col, row):
    return ORIGIN_X + col * 10.0, ORIGIN_Y - row * 10.0


class TestFeatureRole:
    """Tests for FeatureRole."""

    def test_colors(self):
        assert FeatureRole.BOUNDARY.color == (1.0, 0.0, 0.0, 1.0)
        assert FeatureRole.STREAM.color == (0.0, 0.0, 1.0, 1.0)

    def test_from_string(self):
        assert FeatureRole("stream") is FeatureRole.STREAM


class TestLoadFeatureOverlay:
    """Tests for load_feature_overlay."""

    def test_stream_vertices_draped_on_reference(self, reference, write_layer):
        path = write_layer("streams.geojson", [LineString([world(5.5, 5.5), world(12.2, 3.7)])])

        overlay = load_feature_overlay(path, reference, FeatureRole.STREAM)

        assert len(overlay) == 2
        positions = overlay.vertices["position"]
        np.testing.assert_allclose(positions[0], [-4.5, 105.0 / 399.0 + FEATURE_ELEVATION_EPSILON, -4.5], rtol=1e-5)
        # Nearest-pixel lookup: (12.2, 3.7) falls in column 12, row 3
        np.testing.assert_allclose(positions[1], [2.2, 72.0 / 399.0 + FEATURE_ELEVATION_EPSILON, -6.3], rtol=1e-5)

    def test_overlay_metadata(self, reference, write_layer):
        path = write_layer("streams.geojson", [LineString([world(1, 1), world(2, 2)])])

        overlay = load_feature_overlay(path, reference, "stream")

        assert overlay.role is FeatureRole.STREAM
        assert overlay.color == (0.0, 0.0, 1.0, 1.0)
        assert overlay.program is ShaderProgram.SHAPE
        assert not overlay.vertices["scalar"].any()

    def test_map_scale(self, reference, write_layer):
        path = write_layer("streams.geojson", [LineString([world(5.5, 5.5), world(6.5, 6.5)])])

        overlay = load_feature_overlay(path, reference, FeatureRole.STREAM, map_scale=2.0)

        np.testing.assert_allclose(overlay.vertices["position"][0][[0, 2]], [-9.0, -9.0])

    def test_boundary_uses_polygon_outline(self, reference, write_layer):
        polygon = Polygon([world(1.5, 1.5), world(8.5, 1.5), world(8.5, 8.5), world(1.5, 8.5)])
        path = write_layer("bound.geojson", [polygon])

        overlay = load_feature_overlay(path, reference, FeatureRole.BOUNDARY)

        # Closed exterior ring: four corners plus the closing vertex
        assert len(overlay) == 5
        assert overlay.color == (1.0, 0.0, 0.0, 1.0)

    def test_multilinestrings_are_exploded(self, reference, write_layer):
        lines = MultiLineString([[world(1, 1), world(2, 2)], [world(3, 3), world(4, 4), world(5, 5)]])
        path = write_layer("streams.geojson", [lines])

        overlay = load_feature_overlay(path, reference, FeatureRole.STREAM)

        assert len(overlay) == 5

    def test_points_are_ignored(self, reference, write_layer):
        path = write_layer("mixed.geojson", [Point(world(1, 1)), LineString([world(1, 1), world(2, 2)])])

        coords = read_line_coordinates(path, FeatureRole.STREAM)

        assert coords.shape == (2, 2)

    def test_missing_file(self, reference, tmp_path):
        with pytest.raises(ResourceUnavailable):
            load_feature_overlay(tmp_path / "missing.shp", reference, FeatureRole.STREAM)

    def test_unreadable_file(self, reference, tmp_path):
        path = tmp_path / "broken.geojson"
        path.write_text("not a vector layer")

        with pytest.raises(ResourceUnavailable, match="Unable to open vector layer"):
            load_feature_overlay(path, reference, FeatureRole.STREAM)

    def test_shared_elevation_cache(self, reference, write_layer):
        path = write_layer("streams.geojson", [LineString([world(1.5, 1.5), world(2.5, 2.5)])])
        elevations = ReferenceElevation(reference, np.full((20, 20), 399.0, dtype=np.float32))

        overlay = load_feature_overlay(path, reference, FeatureRole.STREAM, elevations=elevations)

        np.testing.assert_allclose(overlay.vertices["position"][:, 1], 1.0 + FEATURE_ELEVATION_EPSILON)


class TestOutsidePoints:
    """Feature vertices beyond the reference DEM extent."""

    @pytest.fixture
    def layer(self, write_layer):
        return write_layer("streams.geojson", [LineString([world(1.5, 1.5), world(25.0, 1.5), world(3.5, -2.0)])])

    def test_skip_drops_outside_points(self, reference, layer, caplog):
        with caplog.at_level(logging.WARNING):
            overlay = load_feature_overlay(layer, reference, FeatureRole.STREAM, on_outside="skip")

        assert len(overlay) == 1
        assert "Dropped 2 feature vertices" in caplog.text

    def test_clamp_snaps_to_edge(self, reference, layer):
        overlay = load_feature_overlay(layer, reference, FeatureRole.STREAM, on_outside="clamp")

        assert len(overlay) == 3
        positions = overlay.vertices["position"]
        # (25, 1.5) clamps to column 19
        assert positions[1][0] == pytest.approx(19 - 10)
        assert positions[1][1] == pytest.approx(39.0 / 399.0 + FEATURE_ELEVATION_EPSILON, rel=1e-5)
        # (3.5, -2) clamps to row 0
        assert positions[2][2] == pytest.approx(-10)

    def test_raise_rejects_outside_points(self, reference, layer):
        with pytest.raises(ConfigurationError, match="outside"):
            load_feature_overlay(layer, reference, FeatureRole.STREAM, on_outside="raise")

    def test_unknown_policy(self, reference, layer):
        with pytest.raises(ValueError):
            load_feature_overlay(layer, reference, FeatureRole.STREAM, on_outside="wrap")
