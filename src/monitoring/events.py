# path: src/monitoring/events.py
"""
Event and command schemas for monitoring.

This module defines:
- MonitoringEvent (structured system events)
- EventType enum
- ControlCommandType enum
- ControlCommand for human/system-issued controls

All events are JSON-serializable via `.to_dict()` and are intended
for use with monitoring.bus.EventBus and monitoring.logger.JsonFileLogger.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum, auto
from typing import Any, Dict, Optional


# ============================================================
# Event Types
# ============================================================

class EventType(Enum):
    """Typed monitoring events emitted throughout the cognition core."""

    # Capability surface
    TOOL_EXECUTED = auto()
    RESOURCE_ACCESSED = auto()
    CAPABILITY_ERROR = auto()

    # Perception
    PERCEPTION_UPDATED = auto()

    # Action execution
    ACTION_QUEUED = auto()
    ACTION_STARTED = auto()
    ACTION_COMPLETED = auto()
    ACTION_INTERRUPTED = auto()

    # Inflection
    DECISION_TRIGGERED = auto()

    # Decision orchestration
    DECISION_REQUESTED = auto()
    DECISION_QUEUED = auto()
    DECISION_CACHE_HIT = auto()
    DECISION_RECEIVED = auto()
    DECISION_FAILED = auto()

    # Full state snapshot (rare, expensive)
    SNAPSHOT = auto()

    # Control surface events
    CONTROL_COMMAND = auto()

    # Generic log messages
    LOG = auto()


# ============================================================
# Monitoring Event Structure
# ============================================================

@dataclass
class MonitoringEvent:
    """
    Runtime event emitted by a subsystem, the orchestrator, or the control
    surface.

    All fields must be JSON-safe.
    """

    ts: float                   # UNIX timestamp (seconds)
    module: str                 # Source module string ("execution", "decision", ...)
    event_type: EventType       # Enum describing the event class
    message: str                # Short human-readable description
    payload: Dict[str, Any]     # Structured data (tool args, action, triggers)
    correlation_id: Optional[str] = None  # Agent id, used to group events per NPC

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for loggers."""
        data = asdict(self)
        data["event_type"] = self.event_type.name  # store name, not enum
        return data


# ============================================================
# Control Commands
# ============================================================

class ControlCommandType(Enum):
    """
    Commands that humans or tools can send to a running agent.
    """

    PAUSE = auto()             # Stop ticking the agent
    RESUME = auto()            # Resume ticking
    FORCE_DECISION = auto()    # Run force_decision_check() now
    INTERRUPT_ACTION = auto()  # Interrupt the active action
    DUMP_STATE = auto()        # Emit a full snapshot event


@dataclass
class ControlCommand:
    """
    Represents an external command for an agent.

    Sent through EventBus.publish_command(); an NpcController only reacts
    to commands whose `agent_id` arg is absent or matches its agent.
    """

    cmd: ControlCommandType             # The specific command
    args: Dict[str, Any]                # Additional arguments for command execution

    @staticmethod
    def pause(agent_id: Optional[str] = None) -> "ControlCommand":
        return ControlCommand(ControlCommandType.PAUSE, {"agent_id": agent_id})

    @staticmethod
    def resume(agent_id: Optional[str] = None) -> "ControlCommand":
        return ControlCommand(ControlCommandType.RESUME, {"agent_id": agent_id})

    @staticmethod
    def force_decision(agent_id: Optional[str] = None) -> "ControlCommand":
        return ControlCommand(ControlCommandType.FORCE_DECISION, {"agent_id": agent_id})

    @staticmethod
    def interrupt_action(
        reason: str = "operator", agent_id: Optional[str] = None
    ) -> "ControlCommand":
        return ControlCommand(
            ControlCommandType.INTERRUPT_ACTION, {"agent_id": agent_id, "reason": reason}
        )

    @staticmethod
    def dump_state(agent_id: Optional[str] = None) -> "ControlCommand":
        return ControlCommand(ControlCommandType.DUMP_STATE, {"agent_id": agent_id})
