"""Fixed-cadence detection loop.

Drives one detection session: pulls a frame, awaits the detector, feeds the
result to the gesture stabilizer and stroke tracker, then to the render
sink. At most one detector call is outstanding at a time, and a stop
request takes effect immediately: the loop is woken, the frame source is
released and any detector result that arrives afterwards is discarded.

Session lifecycle:
    IDLE → STARTING → RUNNING → STOPPING → IDLE

Usage:
    scheduler = DetectionScheduler(source, detector, sink, SessionConfig())
    await scheduler.start()
    ...
    scheduler.stop()
    await scheduler.join()

    # or
    async with DetectionScheduler(source, detector, sink) as scheduler:
        await asyncio.sleep(10)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Sequence

from gesture_sketch.actions import Action, ActionMapper
from gesture_sketch.canvas import Palette, Point, Segment, StrokeState, StrokeStyle, StrokeTracker
from gesture_sketch.config import SessionConfig
from gesture_sketch.metrics import FrameRateMeter, MetricsCollector
from gesture_sketch.predictions import NONE, Prediction, top_prediction
from gesture_sketch.stabilizer import GestureEvent, GestureStabilizer, GestureState

if TYPE_CHECKING:
    from gesture_sketch.recorder import PredictionRecorder

logger = logging.getLogger("gesture_sketch.scheduler")


class SessionState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class SessionError(RuntimeError):
    """Base class for detection session errors."""


class FrameSourceUnavailable(SessionError):
    """The frame source could not be acquired (denied, missing, never ready)."""


class InvalidTransition(SessionError):
    """start() called on a session that is not idle."""


# --- External collaborators ---

@dataclass
class Frame:
    """One frame from the frame source."""
    width: int
    height: int
    image: Any = None
    paused: bool = False
    ended: bool = False
    timestamp: Optional[float] = None

    @property
    def valid(self) -> bool:
        return self.width > 0 and self.height > 0 and not (self.paused or self.ended)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


class FrameSource(Protocol):
    async def open(self) -> bool:
        """Acquire the underlying stream. False means denied or not found."""

    async def wait_ready(self) -> None:
        """Resolve once the first frame's metadata is available."""

    def read(self) -> Optional[Frame]:
        """Current frame, or None when nothing is available."""

    def release(self) -> None:
        """Release the stream. Must be safe to call repeatedly."""


class Detector(Protocol):
    async def detect(self, frame: Frame) -> Sequence[Prediction | dict]:
        ...

    def render_predictions(self, predictions: list[Prediction], overlay: Any, frame: Frame) -> None:
        ...


class RenderSink(Protocol):
    @property
    def size(self) -> tuple[float, float]:
        ...

    def clear(self) -> None:
        ...

    def draw_segment(self, start: Point, end: Point, style: StrokeStyle) -> None:
        ...


class CancellationToken:
    """Set once by stop(); checked before issuing and before consuming work."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout` seconds. Returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


# --- Session state ---

@dataclass
class DrawingSession:
    """All cross-tick mutable state of one detection session."""
    gesture: GestureState = field(default_factory=GestureState)
    stroke: StrokeState = field(default_factory=StrokeState)
    palette: Palette = field(default_factory=Palette)

    def snapshot(self) -> dict:
        return {
            "gesture": asdict(self.gesture),
            "last_point": self.stroke.last_point,
            "color_index": self.palette.index,
        }

    def restore(self, snapshot: dict):
        for name, value in snapshot["gesture"].items():
            setattr(self.gesture, name, value)
        self.stroke.last_point = snapshot["last_point"]
        self.palette.index = snapshot["color_index"]

    def reset(self):
        self.gesture.reset()
        self.stroke.reset()
        self.palette.reset()


@dataclass
class TickResult:
    """Outcome of one tick.

    status is one of:
      "ok"        detector succeeded and its result was consumed
      "busy"      previous detector call still outstanding
      "no_frame"  no valid frame this tick
      "failed"    detector raised or timed out
      "stale"     result arrived after stop and was discarded
      "inactive"  session not running
    """
    status: str
    event: Optional[GestureEvent] = None
    segment: Optional[Segment] = None
    action: Optional[Action] = None
    error: Optional[BaseException] = None


class DetectionScheduler:
    """Runs detection ticks at a fixed period for one session at a time."""

    def __init__(
        self,
        source: FrameSource,
        detector: Detector,
        sink: RenderSink,
        config: Optional[SessionConfig] = None,
        overlay: Any = None,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsCollector] = None,
        recorder: Optional[PredictionRecorder] = None,
    ):
        self.source = source
        self.detector = detector
        self.sink = sink
        self.config = (config or SessionConfig()).validate()
        self.overlay = overlay
        self.metrics = metrics or MetricsCollector()
        self.recorder = recorder
        self.actions = ActionMapper.from_config(self.config.actions)
        self.fps_meter = FrameRateMeter()

        self._clock = clock
        self._state = SessionState.IDLE
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._callbacks: list[Callable[[TickResult], None]] = []

        self.session: Optional[DrawingSession] = None
        self.stabilizer: Optional[GestureStabilizer] = None
        self.tracker: Optional[StrokeTracker] = None

    def on_tick(self, callback: Callable[[TickResult], None]):
        """Register a callback for consumed ticks."""
        self._callbacks.append(callback)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def fps(self) -> int:
        return self.fps_meter.fps

    # --- Lifecycle ---

    async def start(self, autorun: bool = True):
        """Acquire the frame source and begin the session.

        With autorun=False no loop task is created and ticks are driven by
        calling tick() directly.

        Raises:
            InvalidTransition: session is not idle.
            FrameSourceUnavailable: the source could not be acquired.
        """
        if self._state is not SessionState.IDLE:
            raise InvalidTransition(f"cannot start from {self._state.value}")

        self._state = SessionState.STARTING
        logger.info("Starting detection session")
        try:
            await self._acquire()
        except BaseException:
            self._state = SessionState.IDLE
            self.source.release()
            raise

        self.session = DrawingSession(palette=Palette(width=self.config.line_width))
        self.stabilizer = GestureStabilizer.from_config(
            self.config, self.session.gesture, triggers=self.actions.triggers,
        )
        self.tracker = StrokeTracker.from_config(self.config, self.session.stroke)
        self.fps_meter.reset()

        token = CancellationToken()
        self._token = token
        self._state = SessionState.RUNNING
        if self.recorder is not None:
            self.recorder.start()
        if autorun:
            self._task = asyncio.create_task(self._run(token))
        logger.info("Detection session running (period %.0f ms)", self.config.tick_period * 1000)

    async def _acquire(self):
        # Drop any stream left over from a previous session
        self.source.release()
        try:
            opened = await self.source.open()
        except Exception as e:
            logger.error("Frame source failed to open: %s", e)
            raise FrameSourceUnavailable(f"frame source failed to open: {e}") from e
        if not opened:
            logger.error("Camera denied or not found")
            raise FrameSourceUnavailable("camera denied or not found")

        try:
            await asyncio.wait_for(self.source.wait_ready(), self.config.ready_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Frame source not ready after %.1fs", self.config.ready_timeout)
            raise FrameSourceUnavailable(
                f"frame source not ready after {self.config.ready_timeout}s"
            ) from e
        except Exception as e:
            logger.error("Frame source failed while warming up: %s", e)
            raise FrameSourceUnavailable(f"frame source failed while warming up: {e}") from e

    def clear(self):
        """Wipe the surface and end the current stroke, like the clear action."""
        self.sink.clear()
        if self.session is not None:
            self.session.stroke.reset()
        logger.info("Canvas cleared")

    def stop(self):
        """Stop the session. No tick runs or takes effect after this returns."""
        if self._state in (SessionState.IDLE, SessionState.STOPPING):
            return

        self._state = SessionState.STOPPING
        if self._token is not None:
            self._token.cancel()
        try:
            self.source.release()
        finally:
            if self.recorder is not None:
                self.recorder.stop()
            if self.session is not None:
                self.session.reset()
            self.fps_meter.reset()
            self._state = SessionState.IDLE
            logger.info("Detection session stopped")

    async def join(self, timeout: Optional[float] = None):
        """Wait for the loop task to exit, cancelling it after `timeout`."""
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout)
        except asyncio.TimeoutError:
            logger.warning("Detection loop did not exit within %.1fs", timeout)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        self.stop()
        await self.join(timeout=self.config.ready_timeout)

    # --- Loop ---

    async def _run(self, token: CancellationToken):
        period = self.config.tick_period
        try:
            while not token.cancelled:
                started = time.monotonic()
                await self._tick(token)
                if token.cancelled:
                    break
                delay = max(0.0, period - (time.monotonic() - started))
                await token.wait(delay)
        except Exception:
            logger.exception("Detection loop failed")
            raise
        finally:
            # Abnormal exit still releases the session's resources
            if self._token is token and not token.cancelled:
                self.stop()
            logger.debug("Detection loop exited")

    async def tick(self) -> TickResult:
        """Run one tick of the current session."""
        if self._token is None:
            return self._finish(TickResult("inactive"))
        return await self._tick(self._token)

    async def _tick(self, token: CancellationToken) -> TickResult:
        if token.cancelled or self._state is not SessionState.RUNNING:
            return self._finish(TickResult("inactive"))
        if self._in_flight:
            logger.debug("Previous detection still in flight, skipping tick")
            return self._finish(TickResult("busy"))

        frame = self.source.read()
        if frame is None or not frame.valid:
            return self._finish(TickResult("no_frame"))

        self._in_flight = True
        t0 = time.perf_counter()
        try:
            raw = await self._detect(frame)
            predictions = [p if isinstance(p, Prediction) else Prediction.from_dict(p) for p in raw]
        except Exception as e:
            if token.cancelled:
                return self._finish(TickResult("stale"))
            logger.warning("Detection failed: %s", e or type(e).__name__)
            self.metrics.record_detection_failure()
            return self._finish(TickResult("failed", error=e))
        finally:
            self._in_flight = False

        if token.cancelled:
            logger.debug("Discarding detection result that arrived after stop")
            return self._finish(TickResult("stale"))

        self.metrics.record_detection(time.perf_counter() - t0)
        return self._finish(self._consume(frame, predictions))

    async def _detect(self, frame: Frame) -> Sequence[Prediction | dict]:
        if self.config.detect_timeout is None:
            return await self.detector.detect(frame)
        return await asyncio.wait_for(self.detector.detect(frame), self.config.detect_timeout)

    def _consume(self, frame: Frame, predictions: list[Prediction]) -> TickResult:
        now = frame.timestamp if frame.timestamp is not None else self._clock()

        # State phase: all-or-nothing
        snapshot = self.session.snapshot()
        try:
            event = self.stabilizer.update(predictions, now)
            segment = self.tracker.update(predictions, frame.size, self.sink.size)
        except Exception:
            self.session.restore(snapshot)
            raise

        if self.recorder is not None:
            self.recorder.add_tick(now, frame.size, predictions)

        # Render phase
        # Boxes below the confidence floor are hidden, matching the gesture decision
        top = top_prediction(predictions) if event.label != NONE else None
        try:
            self.detector.render_predictions([top] if top else [], self.overlay, frame)
        except Exception as e:
            logger.warning("Overlay render failed: %s", e)
            self.metrics.record_render_failure()

        action = None
        if event.triggered:
            action = self.actions.dispatch(event.triggered, self.session, self.sink)
            if action is not None:
                self.metrics.record_action(action.type.value)
                logger.info("Gesture %s → %s", event.triggered, action.type.value)

        if segment is not None and self.session.stroke.last_point is None:
            # A clear on this tick ended the stroke
            segment = None

        if segment is not None:
            try:
                self.sink.draw_segment(segment.start, segment.end, self.session.palette.style)
                self.metrics.record_segment()
            except Exception as e:
                logger.warning("Segment render failed: %s", e)
                self.metrics.record_render_failure()

        fps = self.fps_meter.tick(now)
        if fps is not None:
            self.metrics.set_fps(fps)

        return TickResult("ok", event=event, segment=segment, action=action)

    def _finish(self, result: TickResult) -> TickResult:
        self.metrics.record_tick(result.status)
        if result.status == "ok":
            for cb in self._callbacks:
                cb(result)
        return result
