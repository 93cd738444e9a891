"""GestureSketch - gesture-stabilized freehand drawing from hand detector output."""

__version__ = "0.1.0"

from gesture_sketch.predictions import BBox, Prediction, normalize_score, top_prediction
from gesture_sketch.config import SessionConfig
from gesture_sketch.stabilizer import GestureEvent, GestureStabilizer, GestureState
from gesture_sketch.canvas import (
    CanvasSink,
    DrawCommand,
    JumpPolicy,
    Palette,
    Point,
    Segment,
    StrokeState,
    StrokeStyle,
    StrokeTracker,
)
from gesture_sketch.actions import Action, ActionMapper, ActionType
from gesture_sketch.metrics import FrameRateMeter, MetricsCollector
from gesture_sketch.scheduler import (
    DetectionScheduler,
    DrawingSession,
    Frame,
    FrameSourceUnavailable,
    InvalidTransition,
    SessionError,
    SessionState,
    TickResult,
)
from gesture_sketch.recorder import PredictionPlayer, PredictionRecorder, ReplayDetector, ReplaySource
