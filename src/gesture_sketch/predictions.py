"""Detector output types.

A detector returns zero or more labeled, scored boxes per frame. Scores
sometimes arrive as strings, so everything goes through `normalize_score`
before it is compared.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

logger = logging.getLogger("gesture_sketch.predictions")

# Labels the hand detector is known to emit
OPEN = "open"
CLOSED = "closed"
POINT = "point"
FACE = "face"
NONE = "none"


def normalize_score(value: Any) -> float:
    """Coerce a detector score (number or numeric text) to a float.

    Unparsable values and NaN become 0.0 so they never win a top-score pick.
    """
    try:
        score = float(value)
    except (TypeError, ValueError):
        logger.debug("Unparsable score %r treated as 0.0", value)
        return 0.0
    if math.isnan(score):
        return 0.0
    return score


@dataclass(frozen=True)
class BBox:
    """Axis-aligned box in frame pixels, origin top-left."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> BBox:
        if len(values) != 4:
            raise ValueError(f"bbox needs 4 values, got {len(values)}")
        x, y, w, h = (float(v) for v in values)
        return cls(x, y, w, h)

    def to_list(self) -> list[float]:
        return [self.x, self.y, self.width, self.height]


@dataclass(frozen=True)
class Prediction:
    """One detector output for one frame."""
    label: str
    score: float
    bbox: BBox

    def __post_init__(self):
        object.__setattr__(self, "score", normalize_score(self.score))

    @classmethod
    def from_dict(cls, data: dict) -> Prediction:
        return cls(
            label=str(data["label"]),
            score=data.get("score", 0.0),
            bbox=BBox.from_sequence(data.get("bbox", (0, 0, 0, 0))),
        )

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "score": self.score,
            "bbox": self.bbox.to_list(),
        }


def top_prediction(predictions: Sequence[Prediction]) -> Optional[Prediction]:
    """Return the highest-scoring prediction; ties keep the first one seen."""
    best: Optional[Prediction] = None
    for prediction in predictions:
        if best is None or prediction.score > best.score:
            best = prediction
    return best


def find_label(predictions: Sequence[Prediction], label: str) -> Optional[Prediction]:
    """First prediction carrying `label`, or None."""
    for prediction in predictions:
        if prediction.label == label:
            return prediction
    return None
