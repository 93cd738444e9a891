"""Gesture stabilization.

Per-frame detector labels flicker. The stabilizer only reports a gesture
as actionable once the same label has been the confident top prediction
for long enough, and fires one-shot actions (clear, next color) at most
once per continuous actionable period.

Usage:
    stabilizer = GestureStabilizer(GestureState())
    event = stabilizer.update(predictions, now)
    if event.triggered:
        mapper.dispatch(event.triggered, session, sink)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from gesture_sketch.config import SessionConfig
from gesture_sketch.predictions import CLOSED, NONE, OPEN, Prediction, top_prediction


@dataclass
class GestureState:
    """Cross-tick gesture state for one detection session."""
    current_label: str = NONE
    stable_since: float = 0.0
    stability_score: float = 0.0
    # Set once the one-shot for the current stable period has fired
    action_dispatched: bool = False
    last_fired_label: Optional[str] = None

    def reset(self):
        self.current_label = NONE
        self.stable_since = 0.0
        self.stability_score = 0.0
        self.action_dispatched = False
        self.last_fired_label = None


@dataclass
class GestureEvent:
    """Result of one stabilizer update."""
    label: str  # observed label after confidence gating
    score: float
    stability: float
    actionable: bool
    triggered: Optional[str]  # label whose one-shot fired on this tick
    timestamp: float

    @property
    def stable(self) -> str:
        """The debounced gesture: the label when actionable, else "none"."""
        return self.label if self.actionable else NONE


class GestureStabilizer:
    """Debounces raw per-frame predictions into stable gestures.

    A label is actionable when its stability score exceeds `threshold` and
    it has been the observed label for at least `dwell_time` seconds.
    Switching labels resets both, so there is no carry-over between two
    gestures.
    """

    def __init__(
        self,
        state: Optional[GestureState] = None,
        confidence_floor: float = 0.7,
        seed: float = 0.1,
        step: float = 0.2,
        threshold: float = 0.5,
        dwell_time: float = 0.5,
        triggers: Iterable[str] = (OPEN, CLOSED),
    ):
        self.state = state if state is not None else GestureState()
        self.confidence_floor = confidence_floor
        self.seed = seed
        self.step = step
        self.threshold = threshold
        self.dwell_time = dwell_time
        self.triggers = frozenset(triggers)

    @classmethod
    def from_config(
        cls,
        config: SessionConfig,
        state: Optional[GestureState] = None,
        triggers: Optional[Iterable[str]] = None,
    ) -> GestureStabilizer:
        return cls(
            state=state,
            confidence_floor=config.confidence_floor,
            seed=config.stability_seed,
            step=config.stability_step,
            threshold=config.stability_threshold,
            dwell_time=config.dwell_time,
            triggers=config.actions.keys() if triggers is None else triggers,
        )

    def observe(self, predictions: Sequence[Prediction]) -> tuple[str, float]:
        """Confidence-gated label of the top prediction."""
        top = top_prediction(predictions)
        if top is None or top.score < self.confidence_floor:
            return NONE, top.score if top is not None else 0.0
        return top.label, top.score

    def update(self, predictions: Sequence[Prediction], now: float) -> GestureEvent:
        """Feed one frame's predictions and return the resulting event."""
        label, score = self.observe(predictions)
        state = self.state

        # Compute everything first, then commit in one step
        if label == state.current_label:
            stability = min(state.stability_score + self.step, 1.0)
            since = state.stable_since
            dispatched = state.action_dispatched
        else:
            stability = self.seed
            since = now
            dispatched = False

        actionable = stability > self.threshold and (now - since) >= self.dwell_time

        triggered = None
        if actionable and not dispatched and label in self.triggers:
            triggered = label
            dispatched = True

        state.current_label = label
        state.stability_score = stability
        state.stable_since = since
        state.action_dispatched = dispatched
        if triggered is not None:
            state.last_fired_label = triggered

        return GestureEvent(
            label=label,
            score=score,
            stability=stability,
            actionable=actionable,
            triggered=triggered,
            timestamp=now,
        )
