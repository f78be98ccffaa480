"""
Shared data types and collaborator interfaces.

Every other package depends on this one; it depends on nothing.
"""

from .types import (
    Vec2,
    ZERO,
    ActionType,
    ActionPriority,
    Action,
    ActionResult,
    PerceivedObject,
    WorldEntity,
    ToolResult,
)
from .collaborators import WorldQuery, Mover, TimeSource, OracleTransport, Subsystem

__all__ = [
    "Vec2",
    "ZERO",
    "ActionType",
    "ActionPriority",
    "Action",
    "ActionResult",
    "PerceivedObject",
    "WorldEntity",
    "ToolResult",
    "WorldQuery",
    "Mover",
    "TimeSource",
    "OracleTransport",
    "Subsystem",
]
