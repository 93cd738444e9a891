"""Gesture-to-action mapping.

One-shot actions fired by the stabilizer when a gesture becomes stable:
- open   → clear the surface (and end the current stroke)
- closed → advance the stroke color

Mappings come from the `actions` section of the session config:

    actions:
      open: clear
      closed: next_color
      face: log
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from gesture_sketch.scheduler import DrawingSession, RenderSink

logger = logging.getLogger("gesture_sketch.actions")


class ActionType(Enum):
    CLEAR = "clear"
    NEXT_COLOR = "next_color"
    LOG = "log"


@dataclass
class Action:
    """A single action to execute when a gesture becomes stable."""
    type: ActionType
    params: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "params": self.params,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Action:
        return cls(
            type=ActionType(data["type"]),
            params=data.get("params", {}),
            description=data.get("description", ""),
        )


class ActionMapper:
    """Maps stable gesture labels to one-shot actions and executes them."""

    def __init__(self):
        self._mappings: dict[str, Action] = {}

    def add_mapping(self, label: str, action: Action):
        self._mappings[label] = action

    @classmethod
    def from_config(cls, mapping: dict[str, Any]) -> ActionMapper:
        """Build from `{label: "clear"}` or `{label: {"type": ..., "params": ...}}`."""
        mapper = cls()
        for label, entry in mapping.items():
            if isinstance(entry, str):
                action = Action(type=ActionType(entry))
            else:
                action = Action.from_dict(entry)
            mapper.add_mapping(label, action)
        return mapper

    @property
    def triggers(self) -> list[str]:
        return list(self._mappings.keys())

    def get(self, label: str) -> Optional[Action]:
        return self._mappings.get(label)

    def dispatch(
        self,
        label: str,
        session: DrawingSession,
        sink: RenderSink,
    ) -> Optional[Action]:
        """Execute the action mapped to `label`. Returns it, or None if nothing ran."""
        action = self._mappings.get(label)
        if action is None:
            return None

        try:
            if action.type == ActionType.CLEAR:
                sink.clear()
                session.stroke.reset()
            elif action.type == ActionType.NEXT_COLOR:
                color = session.palette.advance()
                logger.debug("Stroke color → %s", color)
            elif action.type == ActionType.LOG:
                logger.info(
                    "Action LOG: %s (gesture: %s)",
                    action.params.get("message", "gesture triggered"),
                    label,
                )
        except Exception as e:
            logger.error("Action %s for %s failed: %s", action.type.value, label, e)
            return None

        return action

    def to_config(self) -> dict[str, dict]:
        return {label: action.to_dict() for label, action in self._mappings.items()}
