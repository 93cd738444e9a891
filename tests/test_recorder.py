"""Tests for prediction recording and replay."""

import asyncio
import json

import pytest

from gesture_sketch.predictions import BBox, Prediction
from gesture_sketch.recorder import (
    PredictionPlayer,
    PredictionRecorder,
    RecordedTick,
    ReplayDetector,
    ReplaySource,
)
from gesture_sketch.scheduler import Frame


def make_predictions(label="point", x=100):
    return [Prediction(label, 0.9, BBox(x, 100, 20, 20))]


def record(n=5, start=10.0):
    rec = PredictionRecorder()
    rec.start()
    for i in range(n):
        rec.add_tick(start + i * 0.1, (640, 480), make_predictions(x=100 + i))
    rec.stop()
    return rec


class TestRecorder:
    def test_record_and_count(self):
        rec = record(10)
        assert rec.frame_count == 10
        assert rec.duration == pytest.approx(0.9)

    def test_not_recording_ignores_ticks(self):
        rec = PredictionRecorder()
        rec.add_tick(0.0, (640, 480), make_predictions())
        assert rec.frame_count == 0

    def test_bounded(self):
        rec = PredictionRecorder(max_ticks=3)
        rec.start()
        for i in range(10):
            rec.add_tick(float(i), (640, 480), [])
        assert rec.frame_count == 3
        assert rec.duration == 9.0

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "session.json"
        record(4).save(path)
        player = PredictionPlayer.load(path)
        assert player.frame_count == 4
        assert player.frame_size == (640, 480)
        ticks = list(player.play())
        assert ticks[0].timestamp == 0.0
        assert ticks[3].to_predictions()[0].bbox.x == 103

    def test_version_check(self, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(json.dumps({"version": 99, "ticks": []}))
        with pytest.raises(ValueError):
            PredictionPlayer.load(path)

    def test_empty_player(self):
        player = PredictionPlayer([])
        assert player.frame_size is None
        assert player.duration == 0.0


class TestReplay:
    def test_source_and_detector(self):
        async def scenario():
            player = PredictionPlayer([
                RecordedTick(0.0, 640, 480, [p.to_dict() for p in make_predictions(x=1)]),
                RecordedTick(0.1, 640, 480, []),
            ])
            source = ReplaySource(player)
            detector = ReplayDetector()
            assert source.read() is None
            assert await source.open()

            frame = source.read()
            assert frame.size == (640, 480)
            assert frame.timestamp == 0.0
            assert (await detector.detect(frame))[0].bbox.x == 1

            frame = source.read()
            assert await detector.detect(frame) == []

            frame = source.read()
            assert not frame.valid
            assert source.exhausted
            assert detector.calls == 2

        asyncio.run(scenario())

    def test_detector_rejects_foreign_frames(self):
        with pytest.raises(TypeError):
            asyncio.run(ReplayDetector().detect(Frame(640, 480)))

    def test_overlay(self):
        overlay = []
        ReplayDetector().render_predictions(make_predictions(), overlay, Frame(640, 480))
        assert overlay[0][0]["label"] == "point"
