"""
Per-vertex scalar overlay for already built meshes.

A data raster (snow depth, temperature, ...) aligned with a mesh's source
grid is sampled at every triangle corner and written to the ``scalar``
attribute of the mesh vertices. Geometry is not rebuilt, so the pass replays
the original traversal: strips top to bottom, cells left to right, triangle
A before B, keeping only the triangles the mesh's selection says it holds.
"""

import logging

import numpy as np
from tqdm import tqdm

from .classification import check_same_grid
from .errors import OverlayMismatch
from .mesh_operations import triangle_corner_values
from .raster import normalize, open_raster
from .rendering import ShaderProgram

logger = logging.getLogger(__name__)


def apply_scalar_values(mesh, data):
    """
    Rebind ``mesh.scalars`` from an open data raster.

    Args:
        mesh: Mesh built by build_terrain_mesh or classify_dem_and_mask
        data: Open RasterHandle with the same dimensions as ``mesh.source``

    Returns:
        The same mesh, with scalars written and its program set to DATA

    Raises:
        ConfigurationError: If the data raster does not match the mesh grid
        OverlayMismatch: If the replay does not cover exactly every vertex
    """
    check_same_grid(mesh.source, data)
    vmin, vmax = data.min_max()

    logger.info(f"Applying data {data.path} to {mesh.name}")
    logger.debug(f"  data min={vmin} max={vmax}")

    scalars = mesh.scalars
    cursor = 0
    for row, current, nxt in tqdm(data.iter_row_pairs(), total=max(data.height - 1, 0),
                                  desc="Overlaying", leave=False):
        selected = mesh.selection.row(row)
        values = normalize(triangle_corner_values(current, nxt).astype(np.float64), vmin, vmax)
        values = values[selected].reshape(-1)

        end = cursor + len(values)
        if end > len(scalars):
            raise OverlayMismatch(
                f"Overlay of {data.path} ran past the {len(scalars)} vertices of {mesh.name}"
            )
        scalars[cursor:end] = values
        cursor = end

    if cursor != len(scalars):
        raise OverlayMismatch(
            f"Overlay of {data.path} wrote {cursor} of {len(scalars)} vertices of {mesh.name}"
        )

    mesh.program = ShaderProgram.DATA
    return mesh


def apply_scalar_overlay(mesh, data_path):
    """Open ``data_path`` and apply it to ``mesh`` with apply_scalar_values."""
    with open_raster(data_path) as data:
        return apply_scalar_values(mesh, data)
