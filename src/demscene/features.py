"""
Vector feature overlays (watershed boundaries, stream networks).

Line features are draped over the reference DEM as a point list: each
vertex is placed in the reference grid, given the elevation of the pixel it
falls in and lifted slightly so it floats above the terrain surface. Feature
coordinates are expected in the reference DEM's CRS; they are not reprojected.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

import geopandas as gpd
import numpy as np
from pyogrio.errors import DataLayerError, DataSourceError
from shapely.geometry import LineString, MultiLineString

from .errors import ConfigurationError, ResourceUnavailable
from .mesh import VERTEX_DTYPE, grid_offsets
from .raster import normalize, open_raster
from .rendering import ShaderProgram, translation_matrix

logger = logging.getLogger(__name__)

FEATURE_ELEVATION_EPSILON = 0.04
OUTSIDE_POLICIES = ("skip", "clamp", "raise")


class FeatureRole(Enum):
    """What a vector layer represents; decides geometry handling and color."""

    BOUNDARY = "boundary"
    STREAM = "stream"

    @property
    def color(self):
        if self is FeatureRole.BOUNDARY:
            return (1.0, 0.0, 0.0, 1.0)
        return (0.0, 0.0, 1.0, 1.0)


class ReferenceElevation:
    """
    Full elevation buffer of the reference DEM, loaded once and shared by
    every feature layer draped on it.
    """

    def __init__(self, info, elevations: np.ndarray):
        if elevations.shape != (info.height, info.width):
            raise ValueError(
                f"Elevation buffer {elevations.shape} does not match {info.width}x{info.height}"
            )
        self.info = info
        self.elevations = elevations

    @classmethod
    def load(cls, info) -> "ReferenceElevation":
        with open_raster(info.path) as handle:
            logger.debug(f"Caching full elevation buffer of {info.path}")
            return cls(info, handle.read_all())

    def pixel_indices(self, xs, ys, on_outside="skip"):
        """
        Convert world coordinates into pixel indices of the reference grid.

        Args:
            xs: World x coordinates
            ys: World y coordinates
            on_outside: What to do with points outside the DEM: "skip" drops
                them, "clamp" snaps them to the nearest edge pixel, "raise"
                raises ConfigurationError

        Returns:
            tuple: (cols, rows, keep) where cols/rows are fractional pixel
            coordinates of the kept points and keep is the boolean mask of
            kept input points
        """
        if on_outside not in OUTSIDE_POLICIES:
            raise ValueError(f"on_outside must be one of {OUTSIDE_POLICIES}, got {on_outside!r}")

        cols, rows = self.info.world_to_pixel(np.asarray(xs, dtype=np.float64),
                                              np.asarray(ys, dtype=np.float64))
        inside = (cols >= 0) & (cols < self.info.width) & (rows >= 0) & (rows < self.info.height)

        if on_outside == "raise" and not inside.all():
            raise ConfigurationError(
                f"{int((~inside).sum())} feature vertices fall outside {self.info.path}"
            )
        if on_outside == "clamp":
            cols = np.clip(cols, 0, self.info.width - 1)
            rows = np.clip(rows, 0, self.info.height - 1)
            return cols, rows, np.ones(len(cols), dtype=bool)
        return cols[inside], rows[inside], inside

    def sample(self, cols, rows):
        """Nearest-pixel elevation lookup at fractional pixel coordinates."""
        col_idx = np.clip(np.floor(cols).astype(np.intp), 0, self.info.width - 1)
        row_idx = np.clip(np.floor(rows).astype(np.intp), 0, self.info.height - 1)
        return self.elevations[row_idx, col_idx]


@dataclass
class FeatureOverlay:
    """Point primitives for one vector layer."""

    name: str
    role: FeatureRole
    vertices: np.ndarray
    program: ShaderProgram = ShaderProgram.SHAPE
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @property
    def color(self):
        return self.role.color

    def __len__(self):
        return len(self.vertices)

    def model_matrix(self):
        return translation_matrix(self.translation)


def _line_strings(geometry, role) -> List[LineString]:
    if geometry is None or geometry.is_empty:
        return []
    if role is FeatureRole.BOUNDARY and geometry.geom_type in ("Polygon", "MultiPolygon"):
        geometry = geometry.boundary
    if isinstance(geometry, LineString):
        return [geometry]
    if isinstance(geometry, MultiLineString):
        return list(geometry.geoms)
    return []


def read_line_coordinates(path, role):
    """
    Read every LineString vertex of a vector layer.

    Polygons are reduced to their boundary for the BOUNDARY role. Point
    features are ignored.

    Returns:
        np.ndarray of shape (n, 2) world (x, y) coordinates

    Raises:
        ResourceUnavailable: If the layer cannot be read
    """
    if not Path(path).exists():
        raise ResourceUnavailable(f"Unable to open vector layer {path}: file does not exist")
    try:
        frame = gpd.read_file(path)
    except (OSError, DataSourceError, DataLayerError) as e:
        raise ResourceUnavailable(f"Unable to open vector layer {path}: {e}") from e

    coords = []
    skipped = 0
    for geometry in frame.geometry:
        lines = _line_strings(geometry, role)
        if not lines:
            skipped += 1
        for line in lines:
            coords.extend((x, y) for x, y, *_ in line.coords)

    if skipped:
        logger.debug(f"{path}: ignored {skipped} features without line geometry")
    if not coords:
        return np.empty((0, 2), dtype=np.float64)
    return np.asarray(coords, dtype=np.float64)


def drape_points(coords, reference: ReferenceElevation, map_scale=1.0, on_outside="skip"):
    """
    Place world coordinates on the reference terrain.

    Args:
        coords: (n, 2) world coordinates in the reference CRS
        reference: ReferenceElevation of the reference DEM
        map_scale: Horizontal scale of the reference mesh
        on_outside: Policy for points outside the DEM (see pixel_indices)

    Returns:
        Structured array with VERTEX_DTYPE, one vertex per kept point
    """
    info = reference.info
    cols, rows, keep = reference.pixel_indices(coords[:, 0], coords[:, 1], on_outside)
    if not keep.all():
        logger.warning(f"Dropped {int((~keep).sum())} feature vertices outside {info.path}")

    heights = normalize(reference.sample(cols, rows).astype(np.float64), info.min, info.max)
    x_offset, z_offset = grid_offsets(info.width, info.height)

    vertices = np.zeros(len(cols), dtype=VERTEX_DTYPE)
    vertices["position"][:, 0] = (cols - x_offset) * map_scale
    vertices["position"][:, 1] = heights + FEATURE_ELEVATION_EPSILON
    vertices["position"][:, 2] = (rows - z_offset) * map_scale
    return vertices


def load_feature_overlay(path, reference, role, map_scale=1.0, on_outside="skip",
                         elevations: Optional[ReferenceElevation] = None) -> FeatureOverlay:
    """
    Build a point overlay for a vector layer draped on a reference DEM.

    Args:
        path: Vector file readable by geopandas (shapefile, GeoJSON, ...)
        reference: RasterInfo of the reference DEM
        role: FeatureRole of the layer
        map_scale: Horizontal scale of the reference mesh
        on_outside: Policy for vertices outside the DEM extent
        elevations: Optional preloaded ReferenceElevation to share between layers

    Returns:
        FeatureOverlay
    """
    role = FeatureRole(role)
    if elevations is None:
        elevations = ReferenceElevation.load(reference)

    coords = read_line_coordinates(path, role)
    vertices = drape_points(coords, elevations, map_scale, on_outside)
    logger.info(f"Loaded {role.value} layer {path}: {len(vertices)} points")
    return FeatureOverlay(name=str(path), role=role, vertices=vertices)
