"""Freehand stroke tracking and the in-memory drawing surface.

The "point" gesture's box center is mapped onto the drawing surface and
consecutive positions are joined into segments. Large jumps are treated as
detector noise, tiny moves as jitter. Lifting the point gesture always
breaks the stroke.

Usage:
    tracker = StrokeTracker(StrokeState())
    segment = tracker.update(predictions, (640, 480), sink.size)
    if segment:
        sink.draw_segment(segment.start, segment.end, palette.style)
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence

import numpy as np

from gesture_sketch.config import SessionConfig
from gesture_sketch.predictions import POINT, BBox, Prediction, find_label


class Point(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class Segment:
    start: Point
    end: Point

    @property
    def length(self) -> float:
        return float(np.hypot(self.end.x - self.start.x, self.end.y - self.start.y))


class JumpPolicy(Enum):
    HOLD = "hold"    # keep the old anchor, wait for the hand to come back
    RESET = "reset"  # move the anchor to the new point without drawing


@dataclass
class StrokeState:
    """Cross-tick stroke state for one detection session."""
    last_point: Optional[Point] = None

    def reset(self):
        self.last_point = None


def to_surface(
    bbox: BBox,
    frame_size: tuple[float, float],
    surface_size: tuple[float, float],
) -> Point:
    """Map a box center from frame pixels to drawing-surface pixels."""
    frame = np.asarray(frame_size, dtype=np.float64)
    if np.any(frame <= 0):
        raise ValueError(f"frame size must be positive, got {frame_size}")
    normalized = np.asarray(bbox.center, dtype=np.float64) / frame
    x, y = normalized * np.asarray(surface_size, dtype=np.float64)
    return Point(float(x), float(y))


def fit_surface(
    frame_size: tuple[float, float],
    container_size: tuple[float, float],
) -> tuple[float, float]:
    """Largest surface with the frame's aspect ratio that fits the container."""
    fw, fh = frame_size
    cw, ch = container_size
    if fw <= 0 or fh <= 0 or cw <= 0 or ch <= 0:
        raise ValueError(f"sizes must be positive, got {frame_size}, {container_size}")
    frame_aspect = fw / fh
    if frame_aspect > cw / ch:
        return (cw, cw / frame_aspect)
    return (ch * frame_aspect, ch)


class StrokeTracker:
    """Turns the tracked point gesture into connected line segments."""

    def __init__(
        self,
        state: Optional[StrokeState] = None,
        min_segment: float = 2.0,
        max_jump: float = 100.0,
        jump_policy: JumpPolicy = JumpPolicy.HOLD,
        label: str = POINT,
    ):
        self.state = state if state is not None else StrokeState()
        self.min_segment = min_segment
        self.max_jump = max_jump
        self.jump_policy = JumpPolicy(jump_policy)
        self.label = label
        self.rejected_jumps = 0

    @classmethod
    def from_config(cls, config: SessionConfig, state: Optional[StrokeState] = None) -> StrokeTracker:
        return cls(
            state=state,
            min_segment=config.min_segment,
            max_jump=config.max_jump,
            jump_policy=JumpPolicy(config.jump_policy),
            label=config.draw_label,
        )

    def update(
        self,
        predictions: Sequence[Prediction],
        frame_size: tuple[float, float],
        surface_size: tuple[float, float],
    ) -> Optional[Segment]:
        """Process one frame. Returns the segment to draw, if any."""
        tracked = find_label(predictions, self.label)
        if tracked is None:
            # Lifting the gesture ends the stroke
            self.state.last_point = None
            return None

        current = to_surface(tracked.bbox, frame_size, surface_size)
        last = self.state.last_point
        if last is None:
            self.state.last_point = current
            return None

        distance = float(np.hypot(current.x - last.x, current.y - last.y))

        if distance >= self.max_jump:
            self.rejected_jumps += 1
            if self.jump_policy is JumpPolicy.RESET:
                self.state.last_point = current
            return None

        if distance <= self.min_segment:
            # Jitter: nothing to draw, but keep up with slow motion
            self.state.last_point = current
            return None

        self.state.last_point = current
        return Segment(last, current)

    @property
    def is_drawing(self) -> bool:
        return self.state.last_point is not None


# --- Style ---

DEFAULT_COLORS = (
    "#ff0000", "#00ff00", "#0000ff", "#ffff00",
    "#ff00ff", "#00ffff", "#ffffff", "#ffa500",
)


@dataclass(frozen=True)
class StrokeStyle:
    color: str
    width: float = 8.0
    cap: str = "round"


@dataclass
class Palette:
    """Rotating stroke color, advanced by the "closed" gesture."""
    colors: tuple[str, ...] = DEFAULT_COLORS
    index: int = 0
    width: float = 8.0

    @property
    def color(self) -> str:
        return self.colors[self.index]

    @property
    def style(self) -> StrokeStyle:
        return StrokeStyle(color=self.color, width=self.width)

    def advance(self) -> str:
        self.index = (self.index + 1) % len(self.colors)
        return self.color

    def reset(self):
        self.index = 0


# --- In-memory render sink ---

@dataclass
class DrawCommand:
    """A single drawing command."""
    type: str  # "line", "clear"
    start: Optional[Point] = None
    end: Optional[Point] = None
    color: str = "#ffffff"
    width: float = 8.0

    def to_dict(self) -> dict:
        if self.type == "line":
            return {
                "type": "line",
                "x1": round(self.start.x, 1),
                "y1": round(self.start.y, 1),
                "x2": round(self.end.x, 1),
                "y2": round(self.end.y, 1),
                "color": self.color,
                "width": self.width,
            }
        return {"type": self.type}


class CanvasSink:
    """Render sink that keeps drawing commands in memory.

    The history can be replayed by any real renderer. A clear collapses
    the history to a single clear command.
    """

    def __init__(
        self,
        width: float = 640,
        height: float = 480,
        max_history: int = 10000,
    ):
        self.width = width
        self.height = height
        self._history: list[DrawCommand] = []
        self._max_history = max_history
        self._pending: deque[DrawCommand] = deque(maxlen=max_history)
        self.segment_count = 0

    @classmethod
    def fitted(
        cls,
        frame_size: tuple[float, float],
        container_size: tuple[float, float],
        **kwargs,
    ) -> CanvasSink:
        """Sink sized to the frame's aspect ratio inside a container."""
        width, height = fit_surface(frame_size, container_size)
        return cls(width=width, height=height, **kwargs)

    @property
    def size(self) -> tuple[float, float]:
        return (self.width, self.height)

    def clear(self):
        cmd = DrawCommand(type="clear")
        self._history = [cmd]
        self._pending.append(cmd)

    def draw_segment(self, start: Point, end: Point, style: StrokeStyle):
        cmd = DrawCommand(type="line", start=start, end=end, color=style.color, width=style.width)
        self._history.append(cmd)
        self._pending.append(cmd)
        self.segment_count += 1

        if len(self._history) > self._max_history:
            # Keep a clear at the start + recent commands
            self._history = [DrawCommand(type="clear")] + self._history[-self._max_history // 2:]

    def drain(self) -> list[DrawCommand]:
        """Commands issued since the last drain."""
        pending = list(self._pending)
        self._pending.clear()
        return pending

    def get_full_state(self) -> list[dict]:
        return [cmd.to_dict() for cmd in self._history]

    @property
    def command_count(self) -> int:
        return len(self._history)
