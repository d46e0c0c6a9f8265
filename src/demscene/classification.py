"""
Mask-driven splitting of a DEM into two meshes.

Every triangle of the DEM grid is routed to exactly one of two meshes: the
mask-set mesh when all three of its mask corners normalize to at least
MASK_THRESHOLD, the dem-set mesh otherwise. Triangles A and B of a quad are
classified independently.
"""

import logging

import numpy as np
from tqdm import tqdm

from .errors import ConfigurationError
from .mesh import Mesh, TriangleSelection, grid_offsets
from .mesh_operations import strip_triangles, triangle_corner_values
from .raster import normalize, open_raster
from .rendering import ShaderProgram

logger = logging.getLogger(__name__)

MASK_THRESHOLD = 0.1


def mask_triangle_selection(mask_current, mask_next, vmin, vmax, threshold=MASK_THRESHOLD):
    """
    Classify one strip of triangles against a mask.

    Args:
        mask_current: Mask row z, shape (width,)
        mask_next: Mask row z + 1, shape (width,)
        vmin: Mask normalization minimum
        vmax: Mask normalization maximum
        threshold: Normalized value every corner must reach (default: 0.1)

    Returns:
        Boolean array of shape (width - 1, 2), True where the triangle
        belongs to the mask set.
    """
    corners = normalize(triangle_corner_values(mask_current, mask_next).astype(np.float64), vmin, vmax)
    return np.all(corners >= threshold, axis=2)


def check_same_grid(first, second):
    """Raise ConfigurationError unless both rasters have the same dimensions."""
    if (first.width, first.height) != (second.width, second.height):
        raise ConfigurationError(
            f"Raster {second.path} is {second.width}x{second.height} but "
            f"{first.path} is {first.width}x{first.height}; resolutions must match"
        )


def classify_dem_and_mask(dem, mask, scale=1.0, reference_min_max=None, threshold=MASK_THRESHOLD):
    """
    Split a DEM into dem-set and mask-set meshes.

    Args:
        dem: Open RasterHandle for elevations
        mask: Open RasterHandle for the mask, same dimensions as ``dem``
        scale: Horizontal scale per pixel
        reference_min_max: Optional (min, max) of a larger reference DEM.
            When given, heights of both meshes are normalized against it
            instead of the DEM's own range.
        threshold: Mask threshold (default: MASK_THRESHOLD)

    Returns:
        tuple: (dem_set, mask_set) meshes. Together they hold
        ``6 * (width - 1) * (height - 1)`` vertices.

    Raises:
        ConfigurationError: If DEM and mask dimensions differ
    """
    check_same_grid(dem, mask)

    dem_min, dem_max = dem.min_max()
    mask_min, mask_max = mask.min_max()
    vmin, vmax = reference_min_max if reference_min_max is not None else (dem_min, dem_max)

    logger.info(f"Classifying {dem.path} with mask {mask.path}")
    logger.debug(f"  dem min={dem_min} max={dem_max}")
    logger.debug(f"  mask min={mask_min} max={mask_max}")
    logger.debug(f"  height normalization min={vmin} max={vmax}")

    x_offset, z_offset = grid_offsets(dem.width, dem.height)

    dem_triangles = []
    mask_triangles = []
    selection_rows = []
    strips = zip(dem.iter_row_pairs(), mask.iter_row_pairs())
    for (row, current, nxt), (_, mask_current, mask_next) in tqdm(
        strips, total=max(dem.height - 1, 0), desc="Classifying", leave=False
    ):
        strip = strip_triangles(current, nxt, row - z_offset, x_offset, scale, vmin, vmax)
        in_mask = mask_triangle_selection(mask_current, mask_next, mask_min, mask_max, threshold)

        mask_triangles.append(strip[in_mask])
        dem_triangles.append(strip[~in_mask])
        selection_rows.append(in_mask)

    mask_selection = TriangleSelection.from_rows(dem.width, dem.height, selection_rows)

    dem_set = Mesh.from_triangles(
        dem_triangles, dem.snapshot(), ~mask_selection, scale,
        program=ShaderProgram.GRAY, name=f"{dem.path} (dem set)",
    )
    mask_set = Mesh.from_triangles(
        mask_triangles, mask.snapshot(), mask_selection, scale,
        program=ShaderProgram.COLOR, name=f"{mask.path} (mask set)",
    )

    logger.info(f"  dem set: {len(dem_set)} vertices, mask set: {len(mask_set)} vertices")
    return dem_set, mask_set


def create_terrain_from_dem_and_mask(dem_path, mask_path, scale=1.0, reference=None):
    """
    Path-level wrapper around classify_dem_and_mask.

    Args:
        dem_path: Elevation raster path
        mask_path: Mask raster path
        scale: Horizontal scale per pixel
        reference: Optional RasterInfo of a large reference DEM whose
            (min, max) drives height normalization

    Returns:
        tuple: (dem_set, mask_set)
    """
    reference_min_max = reference.min_max if reference is not None else None
    with open_raster(dem_path) as dem, open_raster(mask_path) as mask:
        return classify_dem_and_mask(dem, mask, scale, reference_min_max=reference_min_max)
