"""
Mesh generation operations for terrain visualization.

Triangulates a raster grid one strip of quads at a time. Each quad with
corners (x, z), (x+1, z), (x, z+1), (x+1, z+1) becomes two triangles:

    A = (x, z), (x+1, z), (x, z+1)
    B = (x, z+1), (x+1, z+1), (x+1, z)

The corner ordering defined here is shared by mask classification and the
scalar overlay so that every pass visits triangles in the same order.
"""

import logging

import numpy as np
from tqdm import tqdm

from .mesh import Mesh, TriangleSelection, grid_offsets
from .raster import normalize, open_raster
from .rendering import ShaderProgram

logger = logging.getLogger(__name__)


def triangle_corner_values(current, nxt):
    """
    Arrange two adjacent scan-lines into per-triangle corner samples.

    Args:
        current: Row z samples, shape (width,)
        nxt: Row z + 1 samples, shape (width,)

    Returns:
        np.ndarray of shape (width - 1, 2, 3): for every cell, the three
        corner samples of triangle A then triangle B, in emission order.
    """
    current = np.asarray(current)
    nxt = np.asarray(nxt)
    corners = np.empty((max(len(current) - 1, 0), 2, 3), dtype=np.result_type(current, nxt))
    corners[:, 0, 0] = current[:-1]
    corners[:, 0, 1] = current[1:]
    corners[:, 0, 2] = nxt[:-1]
    corners[:, 1, 0] = nxt[:-1]
    corners[:, 1, 1] = nxt[1:]
    corners[:, 1, 2] = current[1:]
    return corners


def strip_triangles(current, nxt, z, x_offset, scale, vmin, vmax):
    """
    Generate vertex positions for one strip of grid cells.

    Args:
        current: Row samples at grid row z, shape (width,)
        nxt: Row samples at grid row z + 1, shape (width,)
        z: Centered row index of ``current`` (raster row minus the row offset)
        x_offset: Column offset so that column 0 sits at x = -x_offset
        scale: Horizontal scale applied to x and z
        vmin: Elevation normalization minimum
        vmax: Elevation normalization maximum

    Returns:
        np.ndarray of shape (width - 1, 2, 3, 3) float32: cell, triangle
        (A, B), corner, (x, y, z).
    """
    n_cells = max(len(current) - 1, 0)
    heights = normalize(triangle_corner_values(current, nxt).astype(np.float64), vmin, vmax)

    x0 = (np.arange(n_cells, dtype=np.float64) - x_offset) * scale
    x1 = x0 + scale
    z0 = z * scale
    z1 = (z + 1) * scale

    # Corner (x, z) layout per triangle, matching triangle_corner_values
    xs = np.empty((n_cells, 2, 3))
    xs[:, 0] = np.column_stack([x0, x1, x0])
    xs[:, 1] = np.column_stack([x0, x1, x1])
    zs = np.array([[z0, z0, z1], [z1, z1, z0]])

    strip = np.empty((n_cells, 2, 3, 3), dtype=np.float32)
    strip[..., 0] = xs
    strip[..., 1] = heights
    strip[..., 2] = zs
    return strip


def build_terrain_mesh(handle, scale=1.0, min_max=None, program=ShaderProgram.COLOR, name=""):
    """
    Triangulate every cell of a raster into a single mesh.

    Args:
        handle: Open RasterHandle
        scale: Horizontal scale per pixel (default: 1.0)
        min_max: Optional (min, max) used for normalization instead of the
            raster's own range
        program: Shader program recorded on the mesh
        name: Mesh name (defaults to the raster path)

    Returns:
        Mesh with ``6 * (width - 1) * (height - 1)`` vertices
    """
    vmin, vmax = min_max if min_max is not None else handle.min_max()
    x_offset, z_offset = grid_offsets(handle.width, handle.height)

    logger.info(f"Building terrain mesh from {handle.path} ({handle.width}x{handle.height}, scale={scale})")

    triangles = []
    rows = tqdm(handle.iter_row_pairs(), total=max(handle.height - 1, 0),
                desc="Triangulating", leave=False)
    for row, current, nxt in rows:
        strip = strip_triangles(current, nxt, row - z_offset, x_offset, scale, vmin, vmax)
        triangles.append(strip.reshape(-1, 3, 3))

    mesh = Mesh.from_triangles(
        triangles,
        handle.snapshot(),
        TriangleSelection.full(handle.width, handle.height),
        scale,
        program=program,
        name=name,
    )
    logger.info(f"Generated {len(mesh)} vertices ({mesh.triangle_count} triangles)")
    return mesh


def create_terrain_mesh(path, scale=1.0, min_max=None, program=ShaderProgram.COLOR):
    """Open ``path``, triangulate it and close it again."""
    with open_raster(path) as handle:
        return build_terrain_mesh(handle, scale, min_max=min_max, program=program)
