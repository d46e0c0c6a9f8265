"""
Triangle mesh container for terrain geometry.

A Mesh is a flat triangle list (every three vertices form one triangle) in
local scene units, plus the bookkeeping later passes need: the raster it
came from, which triangles of that raster's grid it holds, and a render-time
translation that is never baked into the vertex buffer.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from .raster import RasterInfo
from .rendering import ShaderProgram, translation_matrix

logger = logging.getLogger(__name__)

VERTEX_DTYPE = np.dtype([("position", np.float32, (3,)), ("scalar", np.float32)])


def grid_offsets(width: int, height: int):
    """
    Column and row offsets that center a raster grid on the origin.

    Column indices run over ``[-width // 2, width - width // 2)`` and rows
    over ``[-height // 2, height - height // 2)``.
    """
    return width // 2, height // 2


class TriangleSelection:
    """
    Which triangles of a raster grid belong to a mesh.

    Stored per quad cell as a boolean array of shape
    ``(height - 1, width - 1, 2)``; the last axis is (triangle A, triangle B).
    ``cells=None`` means every triangle is selected.
    """

    def __init__(self, width: int, height: int, cells: Optional[np.ndarray] = None):
        self.width = width
        self.height = height
        shape = (max(height - 1, 0), max(width - 1, 0), 2)
        if cells is not None and cells.shape != shape:
            raise ValueError(f"Selection shape {cells.shape} does not match grid cells {shape}")
        self._cells = cells

    @classmethod
    def full(cls, width: int, height: int) -> "TriangleSelection":
        return cls(width, height)

    @classmethod
    def from_rows(cls, width: int, height: int, rows: List[np.ndarray]) -> "TriangleSelection":
        """Assemble a selection from per-row ``(width - 1, 2)`` arrays."""
        if rows:
            cells = np.stack(rows).astype(bool)
        else:
            cells = np.zeros((max(height - 1, 0), max(width - 1, 0), 2), dtype=bool)
        return cls(width, height, cells)

    @property
    def is_full(self) -> bool:
        return self._cells is None

    def row(self, row: int) -> np.ndarray:
        """Selection for one strip of cells, shape ``(width - 1, 2)``."""
        if self._cells is None:
            return np.ones((max(self.width - 1, 0), 2), dtype=bool)
        return self._cells[row]

    def count(self) -> int:
        """Number of selected triangles."""
        if self._cells is None:
            return 2 * max(self.width - 1, 0) * max(self.height - 1, 0)
        return int(self._cells.sum())

    def __invert__(self) -> "TriangleSelection":
        if self._cells is None:
            cells = np.zeros((max(self.height - 1, 0), max(self.width - 1, 0), 2), dtype=bool)
        else:
            cells = ~self._cells
        return TriangleSelection(self.width, self.height, cells)


class Mesh:
    """
    Flat triangle-list mesh built from a raster grid.

    Attributes:
        vertices: Structured array with VERTEX_DTYPE; length is a multiple of 3
        source: RasterInfo snapshot of the raster the geometry came from
        selection: TriangleSelection recording which grid triangles are present
        scale: Horizontal grid scale used when the mesh was built
        program: ShaderProgram used to draw the mesh
        translation: Render-time offset (x, y, z)
    """

    def __init__(self, vertices: np.ndarray, source: RasterInfo, selection: TriangleSelection,
                 scale: float, program: ShaderProgram = ShaderProgram.COLOR, name: str = ""):
        if len(vertices) % 3 != 0:
            raise ValueError(f"Vertex count {len(vertices)} is not a whole number of triangles")
        self.vertices = vertices
        self.source = source
        self.selection = selection
        self.scale = scale
        self.program = program
        self.name = name or source.path
        self.translation = np.zeros(3, dtype=np.float64)

    @classmethod
    def from_triangles(cls, triangles: List[np.ndarray], source: RasterInfo,
                       selection: TriangleSelection, scale: float,
                       program: ShaderProgram = ShaderProgram.COLOR, name: str = "") -> "Mesh":
        """
        Build a mesh from per-strip triangle arrays.

        Args:
            triangles: List of arrays shaped ``(n, 3, 3)``: n triangles of
                three (x, y, z) corners, already in emission order
        """
        if triangles:
            positions = np.concatenate(triangles).reshape(-1, 3)
        else:
            positions = np.empty((0, 3), dtype=np.float32)
        vertices = np.zeros(len(positions), dtype=VERTEX_DTYPE)
        vertices["position"] = positions
        return cls(vertices, source, selection, scale, program, name)

    def __len__(self) -> int:
        return len(self.vertices)

    def __repr__(self):
        return f"Mesh({self.name!r}, vertices={len(self)}, program={self.program.name})"

    @property
    def positions(self) -> np.ndarray:
        return self.vertices["position"]

    @property
    def scalars(self) -> np.ndarray:
        return self.vertices["scalar"]

    @property
    def triangle_count(self) -> int:
        return len(self.vertices) // 3

    @property
    def grid_origin(self) -> np.ndarray:
        """
        Scene position of the source grid's top-left sample at height 0.

        This is where the first vertex of an unmasked build sits, whether or
        not this mesh actually contains that triangle.
        """
        x_offset, z_offset = grid_offsets(self.source.width, self.source.height)
        return np.array([-x_offset * self.scale, 0.0, -z_offset * self.scale])

    def translate(self, offset):
        """
        Add ``offset`` to the render-time translation.

        Offsets accumulate: translating twice moves the mesh by the sum.
        """
        self.translation = self.translation + np.asarray(offset, dtype=np.float64)
        logger.debug(f"{self.name}: translation now {self.translation.tolist()}")

    def model_matrix(self) -> np.ndarray:
        return translation_matrix(self.translation)
