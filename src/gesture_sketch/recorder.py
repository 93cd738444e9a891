"""Prediction recording and replay.

Captures the detector output of a session to disk so it can be replayed
without a camera or a model:
- Reproducible tests of stabilization and stroke tracking
- Offline runs through the CLI

Only detector output is stored, never the drawing itself.

Usage:
    recorder = PredictionRecorder()
    scheduler = DetectionScheduler(source, detector, sink, recorder=recorder)
    ...
    recorder.save("session.json")

    player = PredictionPlayer.load("session.json")
    scheduler = DetectionScheduler(ReplaySource(player), ReplayDetector(), sink)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from gesture_sketch.predictions import Prediction
from gesture_sketch.scheduler import Frame

logger = logging.getLogger("gesture_sketch.recorder")

FORMAT_VERSION = 1


@dataclass
class RecordedTick:
    """Detector output for one consumed tick."""
    timestamp: float  # seconds from the first recorded tick
    frame_width: int
    frame_height: int
    predictions: list[dict]

    def to_predictions(self) -> list[Prediction]:
        return [Prediction.from_dict(p) for p in self.predictions]


class PredictionRecorder:
    """Records per-tick predictions. Oldest ticks drop past `max_ticks`."""

    def __init__(self, max_ticks: int = 100_000):
        self._ticks: deque[RecordedTick] = deque(maxlen=max_ticks)
        self._origin: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording."""
        self._ticks.clear()
        self._origin = None
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of ticks captured."""
        self._recording = False
        return len(self._ticks)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._ticks)

    @property
    def duration(self) -> float:
        if not self._ticks:
            return 0.0
        return self._ticks[-1].timestamp

    def add_tick(
        self,
        timestamp: float,
        frame_size: tuple[int, int],
        predictions: Sequence[Prediction],
    ):
        if not self._recording:
            return
        if self._origin is None:
            self._origin = timestamp

        width, height = frame_size
        self._ticks.append(RecordedTick(
            timestamp=timestamp - self._origin,
            frame_width=int(width),
            frame_height=int(height),
            predictions=[p.to_dict() for p in predictions],
        ))

    def save(self, path: str | Path):
        """Save recording to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": FORMAT_VERSION,
            "frame_count": len(self._ticks),
            "duration": self.duration,
            "ticks": [asdict(t) for t in self._ticks],
        }
        with open(path, "w") as f:
            json.dump(data, f)
        logger.info("Saved %d ticks to %s", len(self._ticks), path)


class PredictionPlayer:
    """Loaded recording."""

    def __init__(self, ticks: list[RecordedTick]):
        self._ticks = ticks

    @classmethod
    def load(cls, path: str | Path) -> PredictionPlayer:
        with open(path) as f:
            data = json.load(f)

        version = data.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"unsupported recording version {version}")

        ticks = [
            RecordedTick(
                timestamp=float(t["timestamp"]),
                frame_width=int(t["frame_width"]),
                frame_height=int(t["frame_height"]),
                predictions=t.get("predictions", []),
            )
            for t in data["ticks"]
        ]
        return cls(ticks)

    @property
    def frame_count(self) -> int:
        return len(self._ticks)

    @property
    def duration(self) -> float:
        if not self._ticks:
            return 0.0
        return self._ticks[-1].timestamp

    @property
    def frame_size(self) -> Optional[tuple[int, int]]:
        """Frame size of the first tick."""
        if not self._ticks:
            return None
        return (self._ticks[0].frame_width, self._ticks[0].frame_height)

    def play(self) -> Iterator[RecordedTick]:
        yield from self._ticks


class ReplaySource:
    """Frame source that yields one frame per recorded tick.

    Each frame carries the recorded timestamp and the tick itself as its
    image, which ReplayDetector reads back.
    """

    def __init__(self, player: PredictionPlayer):
        self._player = player
        self._iter: Optional[Iterator[RecordedTick]] = None
        self.exhausted = False

    async def open(self) -> bool:
        self._iter = self._player.play()
        self.exhausted = False
        return True

    async def wait_ready(self) -> None:
        return None

    def read(self) -> Optional[Frame]:
        if self._iter is None:
            return None
        tick = next(self._iter, None)
        if tick is None:
            self.exhausted = True
            return Frame(width=0, height=0, ended=True)
        return Frame(
            width=tick.frame_width,
            height=tick.frame_height,
            image=tick,
            timestamp=tick.timestamp,
        )

    def release(self) -> None:
        self._iter = None


class ReplayDetector:
    """Detector that returns the predictions recorded for each replayed frame."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.calls = 0

    async def detect(self, frame: Frame) -> list[Prediction]:
        self.calls += 1
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        if not isinstance(frame.image, RecordedTick):
            raise TypeError("ReplayDetector needs frames from ReplaySource")
        return frame.image.to_predictions()

    def render_predictions(self, predictions: list[Prediction], overlay: Any, frame: Frame) -> None:
        if overlay is not None:
            overlay.append([p.to_dict() for p in predictions])
