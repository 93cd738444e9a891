"""Tests for the OpenCV camera frame source (with a stand-in cv2 module)."""

import asyncio
from types import SimpleNamespace

import numpy as np
import pytest

from gesture_sketch import sources
from gesture_sketch.config import SessionConfig
from gesture_sketch.scheduler import DetectionScheduler, FrameSourceUnavailable
from gesture_sketch.sources import VideoCaptureSource


class FakeCapture:
    def __init__(self, index, opened=True, frames=None):
        self.index = index
        self._opened = opened
        self.frames = list(frames or [])
        self.released = False
        self.props = {}

    def isOpened(self):
        return self._opened

    def set(self, prop, value):
        self.props[prop] = value

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


def fake_cv2(opened=True, frames=None):
    captures = []

    def video_capture(index):
        cap = FakeCapture(index, opened, frames)
        captures.append(cap)
        return cap

    module = SimpleNamespace(
        VideoCapture=video_capture,
        CAP_PROP_FRAME_WIDTH=3,
        CAP_PROP_FRAME_HEIGHT=4,
        flip=lambda image, code: image[:, ::-1],
    )
    return module, captures


class TestVideoCaptureSource:
    def test_open_and_read(self, monkeypatch):
        image = np.zeros((480, 640, 3), dtype=np.uint8)
        image[:, 0] = 255
        module, captures = fake_cv2(frames=[image])
        monkeypatch.setattr(sources, "cv2", module)

        source = VideoCaptureSource(camera_index=1, width=640, height=480)
        assert asyncio.run(source.open())
        assert captures[0].props == {3: 640, 4: 480}

        frame = source.read()
        assert frame.size == (640, 480)
        assert frame.image[0, -1, 0] == 255  # mirrored
        assert not source.read().valid  # no more frames

        source.release()
        assert captures[0].released
        assert source.read() is None
        source.release()

    def test_not_opened(self, monkeypatch):
        module, captures = fake_cv2(opened=False)
        monkeypatch.setattr(sources, "cv2", module)
        source = VideoCaptureSource()
        assert asyncio.run(source.open()) is False
        assert captures[0].released

    def test_wait_ready(self, monkeypatch):
        module, _ = fake_cv2(frames=[np.zeros((4, 4, 3), dtype=np.uint8)])
        monkeypatch.setattr(sources, "cv2", module)
        source = VideoCaptureSource(ready_poll=0.001)

        async def scenario():
            await source.open()
            await asyncio.wait_for(source.wait_ready(), 1.0)

        asyncio.run(scenario())

    def test_missing_opencv_fails_start(self, monkeypatch):
        monkeypatch.setattr(sources, "cv2", None)
        scheduler = DetectionScheduler(VideoCaptureSource(), detector=None, sink=None, config=SessionConfig())
        with pytest.raises(FrameSourceUnavailable, match="opencv"):
            asyncio.run(scheduler.start())
