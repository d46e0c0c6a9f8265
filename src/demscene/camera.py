"""
Free-flying camera driven by an explicit input event queue.

Window code translates raw key and mouse input into InputEvent values and
queues them; once per frame the queue is folded into a new CameraState with
apply_events. Nothing here mutates shared state.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from src import config


class Direction(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


class EventKind(Enum):
    MOVE = "move"
    ROTATE = "rotate"
    QUIT = "quit"


@dataclass(frozen=True)
class InputEvent:
    kind: EventKind
    direction: Optional[Direction] = None
    dx: float = 0.0
    dy: float = 0.0

    @classmethod
    def move(cls, direction):
        return cls(EventKind.MOVE, direction=Direction(direction))

    @classmethod
    def rotate(cls, dx, dy):
        return cls(EventKind.ROTATE, dx=float(dx), dy=float(dy))

    @classmethod
    def quit(cls):
        return cls(EventKind.QUIT)


KEY_BINDINGS = {
    "w": InputEvent.move(Direction.FORWARD),
    "s": InputEvent.move(Direction.BACKWARD),
    "a": InputEvent.move(Direction.LEFT),
    "d": InputEvent.move(Direction.RIGHT),
    "r": InputEvent.move(Direction.UP),
    "f": InputEvent.move(Direction.DOWN),
    "escape": InputEvent.quit(),
}


def key_event(key: str) -> Optional[InputEvent]:
    """Event bound to a key name (case-insensitive), or None if unbound."""
    return KEY_BINDINGS.get(key.lower())


def _vec(values):
    return np.asarray(values, dtype=np.float64)


@dataclass(frozen=True, eq=False)
class CameraState:
    position: np.ndarray = field(default_factory=lambda: _vec((0.0, 50.0, 200.0)))
    orientation: np.ndarray = field(default_factory=lambda: _vec((0.0, -50.0, -200.0)))
    up: np.ndarray = field(default_factory=lambda: _vec((0.0, 1.0, 0.0)))
    speed: float = config.DEFAULT_CAMERA_SPEED
    sensitivity: float = config.DEFAULT_CAMERA_SENSITIVITY


def _normalize(v):
    return v / np.linalg.norm(v)


def rotate_vector(v, angle, axis):
    """Rotate ``v`` by ``angle`` radians about ``axis`` (Rodrigues' formula)."""
    k = _normalize(_vec(axis))
    v = _vec(v)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return v * cos_a + np.cross(k, v) * sin_a + k * np.dot(k, v) * (1.0 - cos_a)


def _move(state, direction):
    step = _normalize(state.orientation) * state.speed
    if direction is Direction.FORWARD:
        delta = step
    elif direction is Direction.BACKWARD:
        delta = -step
    elif direction is Direction.LEFT:
        delta = -np.cross(step, state.up)
    elif direction is Direction.RIGHT:
        delta = np.cross(step, state.up)
    elif direction is Direction.UP:
        delta = state.up * state.speed
    else:
        delta = -state.up * state.speed
    return replace(state, position=state.position + delta)


def apply_events(state: CameraState, events: Iterable[InputEvent]) -> CameraState:
    """
    Fold one frame's worth of input events into a new camera state.

    Moves are applied in queue order. Mouse deltas are accumulated over the
    frame and applied once at the end: yaw about ``up`` then pitch about
    ``up x orientation``. QUIT events are left to the caller (see
    quit_requested).
    """
    yaw = 0.0
    pitch = 0.0
    for event in events:
        if event.kind is EventKind.MOVE:
            state = _move(state, event.direction)
        elif event.kind is EventKind.ROTATE:
            yaw -= event.dx * state.sensitivity
            pitch += event.dy * state.sensitivity

    orientation = state.orientation
    if yaw != 0.0:
        orientation = rotate_vector(orientation, yaw, state.up)
    if pitch != 0.0:
        orientation = rotate_vector(orientation, pitch, np.cross(state.up, orientation))
    return replace(state, orientation=orientation)


def quit_requested(events: Iterable[InputEvent]) -> bool:
    return any(event.kind is EventKind.QUIT for event in events)


def look_at(eye, center, up) -> np.ndarray:
    """Right-handed look-at view matrix."""
    eye = _vec(eye)
    f = _normalize(_vec(center) - eye)
    s = _normalize(np.cross(f, _vec(up)))
    u = np.cross(s, f)

    view = np.eye(4)
    view[0, :3] = s
    view[1, :3] = u
    view[2, :3] = -f
    view[0, 3] = -np.dot(s, eye)
    view[1, 3] = -np.dot(u, eye)
    view[2, 3] = np.dot(f, eye)
    return view


def view_matrix(state: CameraState) -> np.ndarray:
    return look_at(state.position, state.position + state.orientation, state.up)


def perspective(fovy, aspect, near, far) -> np.ndarray:
    """
    Right-handed perspective projection with clip depth in [-1, 1].

    Args:
        fovy: Vertical field of view in radians
        aspect: Viewport width / height
        near: Near plane distance
        far: Far plane distance
    """
    f = 1.0 / math.tan(fovy / 2.0)
    projection = np.zeros((4, 4))
    projection[0, 0] = f / aspect
    projection[1, 1] = f
    projection[2, 2] = -(far + near) / (far - near)
    projection[2, 3] = -(2.0 * far * near) / (far - near)
    projection[3, 2] = -1.0
    return projection
