"""
Render-facing types shared by meshes and the scene.

Nothing here talks to a GPU. These are the values a rendering backend needs
to issue draws: which shader program, which primitive type, the vertex
buffer and the per-draw uniforms.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np


class ShaderProgram(IntEnum):
    """Shader programs a scene can select.

    Values double as slots in a ProgramRegistry.
    """

    COLOR = 0
    GRAY = 1
    DATA = 2
    SHAPE = 3


class Primitive(IntEnum):
    TRIANGLES = 0
    POINTS = 1


class ProgramRegistry:
    """
    Fixed-size table of compiled program handles keyed by ShaderProgram.

    Built once at startup by the rendering backend; lookups are list
    indexing, never string matching.
    """

    def __init__(self, handles: Optional[Dict[ShaderProgram, int]] = None):
        self._handles: List[Optional[int]] = [None] * len(ShaderProgram)
        for program, handle in (handles or {}).items():
            self.register(program, handle)

    def register(self, program: ShaderProgram, handle: int):
        self._handles[ShaderProgram(program)] = handle

    def __getitem__(self, program: ShaderProgram) -> int:
        handle = self._handles[program]
        if handle is None:
            raise KeyError(f"Shader program {ShaderProgram(program).name} has not been registered")
        return handle

    def __contains__(self, program) -> bool:
        return self._handles[program] is not None

    def missing(self, programs: Iterable[ShaderProgram]) -> List[ShaderProgram]:
        """Programs from ``programs`` that have no registered handle."""
        return [p for p in programs if p not in self]


@dataclass
class DrawCommand:
    """Everything needed to issue one draw call.

    ``color_map`` names the texture bound to ``texture_units``; ``wireframe``
    asks the backend to rasterize triangles as lines.
    """

    program: ShaderProgram
    primitive: Primitive
    vertices: np.ndarray
    mvp: np.ndarray
    height_scale: float
    texture_units: Tuple[int, ...] = ()
    line_color: Optional[Tuple[float, float, float, float]] = None
    color_map: Optional[str] = None
    wireframe: bool = False
    name: str = ""
    uniforms: Dict[str, object] = field(init=False)

    def __post_init__(self):
        self.uniforms = {
            "mvpMatrix": self.mvp,
            "heightScalar": self.height_scale,
            "tex": list(self.texture_units),
        }
        if self.line_color is not None:
            self.uniforms["lineColor"] = self.line_color
        if self.color_map is not None:
            self.uniforms["colorMap"] = self.color_map

    @property
    def count(self) -> int:
        return len(self.vertices)


def translation_matrix(offset) -> np.ndarray:
    """4x4 column-vector translation matrix for ``offset`` (x, y, z)."""
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, 3] = offset
    return matrix
