"""Tests for session configuration."""

import pytest
import yaml

from gesture_sketch.config import SessionConfig


class TestSessionConfig:
    def test_defaults_valid(self):
        config = SessionConfig().validate()
        assert config.confidence_floor == 0.7
        assert config.dwell_time == 0.5
        assert config.max_jump == 100.0
        assert config.actions == {"open": "clear", "closed": "next_color"}

    def test_yaml_roundtrip(self, tmp_path):
        config = SessionConfig(tick_period=0.15, jump_policy="reset", actions={"open": "clear"})
        path = tmp_path / "session.yml"
        config.to_yaml(path)
        loaded = SessionConfig.from_yaml(path)
        assert loaded == config

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "session.yml"
        path.write_text(yaml.dump({"tick_period": 0.2, "flip_horizontal": True}))
        assert SessionConfig.from_yaml(path).tick_period == 0.2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert SessionConfig.from_yaml(path) == SessionConfig()

    @pytest.mark.parametrize("overrides", [
        {"confidence_floor": 1.5},
        {"stability_step": 0},
        {"dwell_time": -1},
        {"min_segment": 10, "max_jump": 5},
        {"jump_policy": "teleport"},
        {"tick_period": 0},
        {"detect_timeout": -0.1},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            SessionConfig.from_dict(overrides)
