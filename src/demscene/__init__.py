"""
Terrain scene generation from elevation rasters.

Core functionality:
- RasterHandle for scan-line access to single-band DEMs
- Mesh triangulation of raster grids
- Mask-driven splitting of a DEM into two meshes
- Alignment of an inset terrain inside a larger reference terrain
- Scalar data overlays and draped vector features
"""

from .alignment import align_inset, compute_alignment
from .classification import MASK_THRESHOLD, classify_dem_and_mask, create_terrain_from_dem_and_mask
from .errors import ConfigurationError, DemSceneError, OverlayMismatch, ResourceUnavailable
from .features import FeatureRole, load_feature_overlay
from .mesh import VERTEX_DTYPE, Mesh, TriangleSelection
from .mesh_operations import build_terrain_mesh, create_terrain_mesh
from .overlay import apply_scalar_overlay, apply_scalar_values
from .raster import RasterHandle, RasterInfo, normalize, open_raster
from .rendering import ShaderProgram
from .scene import FeatureSource, Scene, SceneConfig, build_scene

__all__ = [
    "align_inset",
    "compute_alignment",
    "MASK_THRESHOLD",
    "classify_dem_and_mask",
    "create_terrain_from_dem_and_mask",
    "ConfigurationError",
    "DemSceneError",
    "OverlayMismatch",
    "ResourceUnavailable",
    "FeatureRole",
    "load_feature_overlay",
    "VERTEX_DTYPE",
    "Mesh",
    "TriangleSelection",
    "build_terrain_mesh",
    "create_terrain_mesh",
    "apply_scalar_overlay",
    "apply_scalar_values",
    "RasterHandle",
    "RasterInfo",
    "normalize",
    "open_raster",
    "ShaderProgram",
    "FeatureSource",
    "Scene",
    "SceneConfig",
    "build_scene",
]
