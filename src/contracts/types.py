# core shared types: Vec2, Action, ActionResult, PerceivedObject, ToolResult
# src/contracts/types.py

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Vec2:
    """2D position / vector on the plane agents walk on."""
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def scaled(self, factor: float) -> "Vec2":
        return Vec2(self.x * factor, self.y * factor)

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def distance_to(self, other: "Vec2") -> float:
        return (other - self).length()

    def normalized(self) -> "Vec2":
        n = self.length()
        if n == 0.0:
            return Vec2(0.0, 0.0)
        return Vec2(self.x / n, self.y / n)

    def to_dict(self) -> Dict[str, float]:
        return {"x": round(self.x, 3), "y": round(self.y, 3)}

    @classmethod
    def from_any(cls, value: Any) -> "Vec2":
        """
        Coerce a mapping ({"x": .., "y": ..}), a 2-sequence, or a Vec2.

        Raises ValueError / TypeError on garbage; callers decide how to surface it.
        """
        if isinstance(value, Vec2):
            return value
        if isinstance(value, dict):
            return cls(float(value["x"]), float(value["y"]))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(float(value[0]), float(value[1]))
        raise TypeError(f"cannot interpret {value!r} as Vec2")


ZERO = Vec2(0.0, 0.0)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class ActionType(str, Enum):
    """Action kinds understood by the execution component."""
    MOVE = "move"
    WAIT = "wait"
    FACE = "face"
    INTERACT = "interact"


class ActionPriority(IntEnum):
    """Queue priority levels; higher value runs first."""
    LOW = 0
    NORMAL = 1
    HIGH = 2
    URGENT = 3

    @classmethod
    def parse(cls, value: Any) -> "ActionPriority":
        """Accept an int level, a level name ("high"), or an ActionPriority."""
        if isinstance(value, ActionPriority):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"unknown priority {value!r}") from None
        return cls(int(value))


@dataclass
class Action:
    """
    A unit of work for the execution component.

    `type` is kept as a plain string when callers hand us something that is
    not a known ActionType; dispatch rejects it instead of the constructor.
    """
    type: Any                               # ActionType, or raw string for unknown kinds
    payload: Dict[str, Any] = field(default_factory=dict)
    priority: ActionPriority = ActionPriority.NORMAL
    queued_at: float = 0.0
    action_id: int = 0

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, ActionType) else str(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.action_id,
            "type": self.type_name,
            "payload": dict(self.payload),
            "priority": self.priority.name,
            "queued_at": self.queued_at,
        }


@dataclass
class ActionResult:
    """Result of executing an Action."""
    success: bool                           # did it work?
    error: Optional[str]                    # error code if not
    details: Dict[str, Any]                 # extra info (final position, elapsed, ...)


# ---------------------------------------------------------------------------
# Perception
# ---------------------------------------------------------------------------

@dataclass
class PerceivedObject:
    """
    One entity seen during a perception scan.

    Recomputed wholesale every scan; there is no identity tracking between
    scans beyond the `id` string itself.
    """
    id: str
    type: str
    position: Vec2
    relative_position: Vec2
    distance: float
    direction: Vec2
    velocity: Vec2
    is_moving: bool
    timestamp: float
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "position": self.position.to_dict(),
            "relative_position": self.relative_position.to_dict(),
            "distance": round(self.distance, 2),
            "direction": self.direction.to_dict(),
            "velocity": self.velocity.to_dict(),
            "is_moving": self.is_moving,
            "timestamp": self.timestamp,
            "properties": dict(self.properties),
        }


@dataclass
class WorldEntity:
    """
    Raw entity as reported by the spatial query collaborator.

    Fields:

      - instance_id:
          Engine-side handle, used only as a last-resort identifier.

      - name:
          Display / node name; feeds name heuristics and id normalization.

      - explicit_id:
          Identifier the entity declares for itself, when it has one.

      - tags:
          Category tags ("npc", "light_source", "terrain", ...).
    """
    instance_id: int
    name: str
    position: Vec2
    velocity: Vec2 = ZERO
    explicit_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Capability surface
# ---------------------------------------------------------------------------

@dataclass
class ToolResult:
    """Structured outcome of a tool invocation or resource read."""
    success: bool
    data: Any = None
    error: Optional[str] = None             # error code ("not_active", "not_found", ...)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "details": dict(self.details),
        }
