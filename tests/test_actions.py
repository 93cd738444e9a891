"""Tests for the gesture-to-action mapping."""

import logging

from gesture_sketch.actions import Action, ActionMapper, ActionType
from gesture_sketch.canvas import Point
from gesture_sketch.scheduler import DrawingSession


class RecordingSink:
    size = (320, 240)

    def __init__(self, fail=False):
        self.clears = 0
        self.fail = fail

    def clear(self):
        if self.fail:
            raise RuntimeError("no surface")
        self.clears += 1

    def draw_segment(self, start, end, style):
        pass


class TestAction:
    def test_from_dict(self):
        action = Action.from_dict({"type": "log", "params": {"message": "hello"}})
        assert action.type == ActionType.LOG
        assert action.params["message"] == "hello"

    def test_roundtrip(self):
        action = Action(type=ActionType.NEXT_COLOR, description="fist")
        assert Action.from_dict(action.to_dict()) == action


class TestActionMapper:
    def test_from_config(self):
        mapper = ActionMapper.from_config({
            "open": "clear",
            "face": {"type": "log", "params": {"message": "hi"}},
        })
        assert mapper.triggers == ["open", "face"]
        assert mapper.get("face").params == {"message": "hi"}

    def test_clear_ends_stroke(self):
        mapper = ActionMapper.from_config({"open": "clear"})
        session = DrawingSession()
        session.stroke.last_point = Point(3, 4)
        sink = RecordingSink()
        action = mapper.dispatch("open", session, sink)
        assert action.type == ActionType.CLEAR
        assert sink.clears == 1
        assert session.stroke.last_point is None

    def test_next_color(self):
        mapper = ActionMapper.from_config({"closed": "next_color"})
        session = DrawingSession()
        mapper.dispatch("closed", session, RecordingSink())
        mapper.dispatch("closed", session, RecordingSink())
        assert session.palette.index == 2

    def test_log(self, caplog):
        mapper = ActionMapper.from_config({"face": {"type": "log", "params": {"message": "peekaboo"}}})
        with caplog.at_level(logging.INFO, logger="gesture_sketch.actions"):
            mapper.dispatch("face", DrawingSession(), RecordingSink())
        assert "peekaboo" in caplog.text

    def test_unmapped(self):
        mapper = ActionMapper.from_config({"open": "clear"})
        assert mapper.dispatch("point", DrawingSession(), RecordingSink()) is None

    def test_failure_reported(self):
        mapper = ActionMapper.from_config({"open": "clear"})
        session = DrawingSession()
        session.stroke.last_point = Point(3, 4)
        assert mapper.dispatch("open", session, RecordingSink(fail=True)) is None

    def test_to_config(self):
        mapper = ActionMapper.from_config({"open": "clear"})
        restored = ActionMapper.from_config(mapper.to_config())
        assert restored.get("open").type == ActionType.CLEAR
