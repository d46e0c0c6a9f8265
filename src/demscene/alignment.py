"""
Cross-dataset alignment of an inset terrain inside a larger reference terrain.

The inset (a higher resolution DEM, typically split by a mask) and the
reference DEM may use different geotransforms and different CRSs. Alignment
reprojects the inset's top-left corner into the reference CRS, expresses it
as a pixel offset in the reference grid and translates the inset meshes by
that amount. Vertex buffers are never modified; only mesh translations are.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from rasterio.crs import CRS
from rasterio.warp import transform as warp_transform

logger = logging.getLogger(__name__)

VERTICAL_BUMP = 0.01
"""Lift applied to the inset (times height scale) so it does not z-fight the reference."""


def coordinate_transform(src_crs_wkt, dst_crs_wkt):
    """
    Build a function mapping (x, y) from one CRS into another.

    Returns the identity when the CRSs are equal or when either is unknown
    (the latter is logged, since the rasters are then assumed to share a CRS).
    """
    if src_crs_wkt is None or dst_crs_wkt is None:
        logger.warning("Missing CRS on one of the datasets; assuming both share a CRS")
        return lambda x, y: (x, y)

    src_crs = CRS.from_wkt(src_crs_wkt)
    dst_crs = CRS.from_wkt(dst_crs_wkt)
    if src_crs == dst_crs:
        return lambda x, y: (x, y)

    def _transform(x, y):
        xs, ys = warp_transform(src_crs, dst_crs, [x], [y])
        return xs[0], ys[0]

    return _transform


def reproject_origin(inset, reference) -> Tuple[float, float]:
    """
    Reproject the inset raster's pixel (0, 0) corner into the reference CRS.

    Args:
        inset: RasterInfo of the inset DEM
        reference: RasterInfo of the reference DEM

    Returns:
        (x, y) in reference CRS units
    """
    to_reference = coordinate_transform(inset.crs_wkt, reference.crs_wkt)
    x, y = inset.origin
    x_ref, y_ref = to_reference(x, y)
    logger.debug(f"Inset origin ({x}, {y}) -> reference CRS ({x_ref}, {y_ref})")
    return x_ref, y_ref


def pixel_offset(world_xy, reference) -> Tuple[float, float]:
    """
    Express a reference-CRS point as a pixel offset from the reference origin.

    Returns:
        (dx, dz): column and row offsets (fractional)
    """
    x, y = world_xy
    origin_x, origin_y = reference.origin
    return (x - origin_x) / reference.pixel_width, (y - origin_y) / reference.pixel_height


def origin_alignment(reference_mesh, inset_mesh) -> np.ndarray:
    """
    Offset that moves the inset grid's corner onto the reference grid's corner.

    Both meshes center their grids on the scene origin, so their top-left
    corners differ even before any geographic offset is applied.
    """
    shift = reference_mesh.grid_origin - inset_mesh.grid_origin
    shift[1] = 0.0
    return shift


@dataclass
class Alignment:
    """Translations to apply to an inset mesh, in application order."""

    origin_shift: np.ndarray
    geo_shift: np.ndarray

    @property
    def total(self) -> np.ndarray:
        return self.origin_shift + self.geo_shift

    def apply(self, mesh):
        """Translate ``mesh`` by both shifts. Calling twice doubles the offset."""
        mesh.translate(self.origin_shift)
        mesh.translate(self.geo_shift)


def compute_alignment(reference_mesh, inset_mesh, height_scale, map_scale) -> Alignment:
    """
    Compute the translation that places ``inset_mesh`` inside ``reference_mesh``.

    Args:
        reference_mesh: Mesh built from the large reference DEM
        inset_mesh: Mesh built from the inset DEM (its source supplies the
            inset geotransform and CRS)
        height_scale: Vertical exaggeration used at render time
        map_scale: Horizontal scale of the reference mesh

    Returns:
        Alignment
    """
    reference = reference_mesh.source
    inset = inset_mesh.source

    dx, dz = pixel_offset(reproject_origin(inset, reference), reference)
    logger.info(f"Inset {inset.path} sits at pixel offset ({dx:.3f}, {dz:.3f}) of {reference.path}")

    geo_shift = np.array([dx * map_scale, VERTICAL_BUMP * height_scale, dz * map_scale])
    return Alignment(origin_alignment(reference_mesh, inset_mesh), geo_shift)


def align_inset(reference_mesh, inset_meshes, height_scale, map_scale) -> Alignment:
    """
    Align every mesh of an inset (e.g. its dem set and mask set) to the reference.

    The alignment is computed from the first inset mesh and applied to all of
    them. Call exactly once per scene build; translations accumulate.
    """
    inset_meshes = list(inset_meshes)
    alignment = compute_alignment(reference_mesh, inset_meshes[0], height_scale, map_scale)
    for mesh in inset_meshes:
        alignment.apply(mesh)
    return alignment


def inset_scale(inset, reference, map_scale) -> float:
    """Horizontal scale for an inset grid expressed in reference pixel units."""
    return map_scale * abs(inset.pixel_width) / abs(reference.pixel_width)
