"""
Scene assembly: from configured terrain sources to draw commands.

The number of terrain paths selects the generation mode:

- 1 path: a single terrain mesh
- 2 paths (dem, mask): the DEM split into dem-set and mask-set meshes
- 3 paths (dem, mask, reference): the split inset, normalized with the
  reference DEM's range and aligned inside the reference terrain

A scalar data overlay and vector feature layers are applied afterwards.
Everything runs once at startup; a Scene is plain data handed to a renderer.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import numpy as np

from src import config as defaults

from .alignment import Alignment, align_inset, inset_scale
from .camera import CameraState, perspective
from .classification import classify_dem_and_mask
from .errors import ConfigurationError
from .features import FeatureOverlay, FeatureRole, ReferenceElevation, load_feature_overlay
from .mesh import Mesh
from .mesh_operations import build_terrain_mesh
from .overlay import apply_scalar_overlay
from .raster import open_raster
from .rendering import DrawCommand, Primitive, ShaderProgram

logger = logging.getLogger(__name__)

TEXTURED_PROGRAMS = (ShaderProgram.COLOR, ShaderProgram.DATA)


@dataclass
class FeatureSource:
    """A vector layer and the role it plays in the scene."""

    path: str
    role: FeatureRole

    def __post_init__(self):
        self.role = FeatureRole(self.role)


@dataclass
class SceneConfig:
    """Scene settings consumed by build_scene."""

    terrain_paths: List[str]
    height_scale: float = defaults.DEFAULT_HEIGHT_SCALE
    map_scale: float = defaults.DEFAULT_MAP_SCALE
    verbose: bool = False
    data_path: Optional[str] = None
    features: List[FeatureSource] = field(default_factory=list)
    wireframe: bool = False
    color_map: str = defaults.DEFAULT_COLOR_MAP
    on_outside: str = "skip"
    camera_speed: float = defaults.DEFAULT_CAMERA_SPEED
    camera_sensitivity: float = defaults.DEFAULT_CAMERA_SENSITIVITY

    @property
    def mode(self) -> int:
        return len(self.terrain_paths)

    def validate(self):
        """
        Check settings before any file is opened.

        Raises:
            ConfigurationError: If the configuration cannot describe a scene
        """
        if not 1 <= len(self.terrain_paths) <= 3:
            raise ConfigurationError(
                f"Expected 1, 2 or 3 terrain paths, got {len(self.terrain_paths)}"
            )
        if self.map_scale <= 0:
            raise ConfigurationError(f"map_scale must be positive, got {self.map_scale}")
        if self.on_outside not in ("skip", "clamp", "raise"):
            raise ConfigurationError(f"Unknown outside-point policy {self.on_outside!r}")
        if self.camera_speed <= 0:
            raise ConfigurationError(f"camera_speed must be positive, got {self.camera_speed}")


@dataclass
class Scene:
    """Built meshes and overlays, ready to be drawn."""

    config: SceneConfig
    terrain: List[Mesh] = field(default_factory=list)
    features: List[FeatureOverlay] = field(default_factory=list)
    reference: Optional[Mesh] = None
    alignment: Optional[Alignment] = None

    @property
    def overlay_target(self) -> Mesh:
        """Mesh that receives the scalar data overlay (the mask set when split)."""
        if self.config.mode == 1:
            return self.terrain[0]
        return self.terrain[1]

    def draw_commands(self, view, projection) -> List[DrawCommand]:
        """
        Produce one DrawCommand per mesh and feature layer.

        Args:
            view: 4x4 view matrix
            projection: 4x4 projection matrix
        """
        view_projection = np.asarray(projection) @ np.asarray(view)
        commands = []
        for mesh in self.terrain:
            textured = mesh.program in TEXTURED_PROGRAMS
            commands.append(DrawCommand(
                program=mesh.program,
                primitive=Primitive.TRIANGLES,
                vertices=mesh.vertices,
                mvp=view_projection @ mesh.model_matrix(),
                height_scale=self.config.height_scale,
                texture_units=(0,) if textured else (),
                color_map=self.config.color_map if textured else None,
                wireframe=self.config.wireframe,
                name=mesh.name,
            ))
        for overlay in self.features:
            commands.append(DrawCommand(
                program=overlay.program,
                primitive=Primitive.POINTS,
                vertices=overlay.vertices,
                mvp=view_projection @ overlay.model_matrix(),
                height_scale=self.config.height_scale,
                line_color=overlay.color,
                name=overlay.name,
            ))
        return commands

    def save(self, path) -> Path:
        """
        Write every vertex buffer and translation to a compressed ``.npz``.

        A JSON manifest (names, programs, roles, render and camera settings) is
        stored under ``manifest``.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        arrays = {}
        manifest = {
            "terrain": [],
            "features": [],
            "height_scale": self.config.height_scale,
            "map_scale": self.config.map_scale,
            "color_map": self.config.color_map,
            "wireframe": self.config.wireframe,
            "camera": {
                "speed": self.config.camera_speed,
                "sensitivity": self.config.camera_sensitivity,
            },
        }
        for i, mesh in enumerate(self.terrain):
            arrays[f"terrain_{i}_vertices"] = mesh.vertices
            arrays[f"terrain_{i}_translation"] = mesh.translation
            manifest["terrain"].append({"name": mesh.name, "program": mesh.program.name})
        for i, overlay in enumerate(self.features):
            arrays[f"feature_{i}_vertices"] = overlay.vertices
            manifest["features"].append({
                "name": overlay.name,
                "role": overlay.role.value,
                "color": list(overlay.color),
            })
        arrays["manifest"] = np.array(json.dumps(manifest))

        np.savez_compressed(path, **arrays)
        logger.info(f"Saved scene to {path}")
        return path

    def camera(self) -> CameraState:
        """Initial camera state using the configured speed and sensitivity."""
        return CameraState(speed=self.config.camera_speed, sensitivity=self.config.camera_sensitivity)

    def summary(self) -> str:
        lines = [f"Scene with {len(self.terrain)} terrain meshes, {len(self.features)} feature layers"]
        for mesh in self.terrain:
            lines.append(f"  {mesh!r} translation={mesh.translation.tolist()}")
        for overlay in self.features:
            lines.append(f"  {overlay.role.value}: {overlay.name} ({len(overlay)} points)")
        return "\n".join(lines)


def _build_terrain(config: SceneConfig, scene: Scene):
    paths = config.terrain_paths

    if config.mode == 1:
        with open_raster(paths[0]) as dem:
            scene.terrain.append(build_terrain_mesh(dem, config.map_scale, program=ShaderProgram.COLOR))
        return

    if config.mode == 2:
        with open_raster(paths[0]) as dem, open_raster(paths[1]) as mask:
            scene.terrain.extend(classify_dem_and_mask(dem, mask, config.map_scale))
        return

    with open_raster(paths[2]) as large:
        reference = build_terrain_mesh(large, config.map_scale, program=ShaderProgram.GRAY)

    with open_raster(paths[0]) as dem, open_raster(paths[1]) as mask:
        scale = inset_scale(dem.snapshot(), reference.source, config.map_scale)
        logger.info(f"Inset grid scale: {scale}")
        dem_set, mask_set = classify_dem_and_mask(
            dem, mask, scale, reference_min_max=reference.source.min_max
        )

    scene.terrain.extend([dem_set, mask_set, reference])
    scene.reference = reference
    scene.alignment = align_inset(reference, [dem_set, mask_set], config.height_scale, config.map_scale)


def _build_features(config: SceneConfig, scene: Scene):
    if not config.features:
        return
    if scene.reference is None:
        logger.warning("Feature layers need a reference DEM (three terrain paths); skipping them")
        return

    elevations = ReferenceElevation.load(scene.reference.source)
    for source in config.features:
        scene.features.append(load_feature_overlay(
            source.path,
            scene.reference.source,
            source.role,
            map_scale=config.map_scale,
            on_outside=config.on_outside,
            elevations=elevations,
        ))


def build_scene(config: SceneConfig) -> Scene:
    """
    Build every mesh and overlay described by ``config``.

    Raises:
        ConfigurationError: For invalid settings or incompatible rasters
        ResourceUnavailable: If any source cannot be opened or normalized
    """
    config.validate()
    logger.info(f"Building scene in mode {config.mode} from {config.terrain_paths}")

    scene = Scene(config)
    _build_terrain(config, scene)

    if config.data_path is not None:
        apply_scalar_overlay(scene.overlay_target, config.data_path)

    _build_features(config, scene)

    if config.verbose:
        logger.info(scene.summary())
    else:
        logger.debug(scene.summary())
    return scene


def default_projection(aspect) -> np.ndarray:
    """Projection matching the configured field of view and clip planes."""
    return perspective(
        math.radians(defaults.DEFAULT_FIELD_OF_VIEW_DEG),
        aspect,
        defaults.DEFAULT_NEAR_PLANE,
        defaults.DEFAULT_FAR_PLANE,
    )
