"""Session configuration.

All tunables for one detection session live in a single dataclass that
can be round-tripped through YAML:

    config = SessionConfig.from_yaml("session.yml")
    config.to_yaml("session.yml")
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml


def _default_actions() -> dict[str, str]:
    return {"open": "clear", "closed": "next_color"}


@dataclass
class SessionConfig:
    # Gesture stabilization
    confidence_floor: float = 0.7
    stability_seed: float = 0.1
    stability_step: float = 0.2
    stability_threshold: float = 0.5
    dwell_time: float = 0.5  # seconds

    # Stroke tracking (drawing-surface pixels)
    min_segment: float = 2.0
    max_jump: float = 100.0
    jump_policy: str = "hold"  # "hold" or "reset"
    draw_label: str = "point"
    line_width: float = 8.0

    # Scheduling
    tick_period: float = 0.1  # seconds
    ready_timeout: float = 5.0
    detect_timeout: Optional[float] = None

    actions: dict[str, str] = field(default_factory=_default_actions)

    def validate(self) -> SessionConfig:
        """Raise ValueError on out-of-range tunables. Returns self."""
        for name in ("confidence_floor", "stability_seed", "stability_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if not 0.0 < self.stability_step <= 1.0:
            raise ValueError(f"stability_step must be in (0, 1], got {self.stability_step}")
        if self.dwell_time < 0:
            raise ValueError(f"dwell_time must be >= 0, got {self.dwell_time}")
        if self.min_segment < 0 or self.max_jump <= self.min_segment:
            raise ValueError(
                f"need 0 <= min_segment < max_jump, got {self.min_segment}, {self.max_jump}"
            )
        if self.jump_policy not in ("hold", "reset"):
            raise ValueError(f"jump_policy must be 'hold' or 'reset', got {self.jump_policy!r}")
        if self.tick_period <= 0:
            raise ValueError(f"tick_period must be > 0, got {self.tick_period}")
        if self.ready_timeout <= 0:
            raise ValueError(f"ready_timeout must be > 0, got {self.ready_timeout}")
        if self.detect_timeout is not None and self.detect_timeout <= 0:
            raise ValueError(f"detect_timeout must be > 0, got {self.detect_timeout}")
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SessionConfig:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known}).validate()

    @classmethod
    def from_yaml(cls, path: str | Path) -> SessionConfig:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
