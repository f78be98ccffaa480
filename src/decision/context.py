# src/decision/context.py
"""
Decision context: what the oracle is told about one agent at one moment.

build_context() reads perception/execution through the agent's capability
hub (never by direct method calls) and folds in identity and stub-subsystem
states. normalize_context() + context_hash() give the cache key:

  - volatile timestamp-like keys are stripped at every depth;
  - unordered list fields are sorted by their canonical JSON.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from capabilities.hub import CapabilityHub


VOLATILE_KEYS = frozenset(
    {
        "timestamp",
        "ts",
        "time",
        "queued_at",
        "started_at",
        "finished_at",
        "requested_at",
        "last_scan_at",
        "inserted_at",
        "current_elapsed",
    }
)

UNORDERED_FIELDS = frozenset({"available_actions", "nearby_objects", "tags", "members"})


@dataclass
class DecisionContext:
    available_actions: List[str]
    current_needs: str
    nearby_objects: List[Dict[str, Any]]
    current_goals: str
    emotional_state: str
    time_of_day: str
    agent: Dict[str, Any] = field(default_factory=dict)
    environment: Dict[str, Any] = field(default_factory=dict)
    execution: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available_actions": list(self.available_actions),
            "current_needs": self.current_needs,
            "nearby_objects": [dict(o) for o in self.nearby_objects],
            "current_goals": self.current_goals,
            "emotional_state": self.emotional_state,
            "time_of_day": self.time_of_day,
            "agent": dict(self.agent),
            "environment": dict(self.environment),
            "execution": dict(self.execution),
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------------------
# Normalization + hashing
# ---------------------------------------------------------------------------


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def normalize_context(value: Any, *, _field: Optional[str] = None) -> Any:
    """Strip volatile keys and sort unordered lists, recursively."""
    if isinstance(value, Mapping):
        return {
            str(k): normalize_context(v, _field=str(k))
            for k, v in value.items()
            if str(k) not in VOLATILE_KEYS
        }
    if isinstance(value, (list, tuple)):
        items = [normalize_context(v) for v in value]
        if _field in UNORDERED_FIELDS:
            items.sort(key=_canonical)
        return items
    return value


def context_hash(context: Any) -> str:
    """SHA-256 of the normalized context's canonical JSON."""
    data = context.to_dict() if isinstance(context, DecisionContext) else context
    return hashlib.sha256(_canonical(normalize_context(data)).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def describe_state(state: Mapping[str, Any], empty: str = "none") -> str:
    """
    Flatten a subsystem state dict into one prompt-friendly line.

    {"hunger": 0.7, "rest": 0.2} -> "hunger: 0.7, rest: 0.2"
    A "summary" key, when present, wins over the field listing.
    """
    if not state:
        return empty
    if "summary" in state and isinstance(state["summary"], str):
        return state["summary"]
    parts = []
    for key in sorted(state):
        value = state[key]
        if isinstance(value, float):
            value = round(value, 2)
        elif isinstance(value, (list, tuple)):
            value = "/".join(str(v) for v in value)
        parts.append(f"{key}: {value}")
    return ", ".join(parts)


def _rounded_position(position: Any) -> Optional[Dict[str, int]]:
    if not isinstance(position, Mapping):
        return None
    return {"x": int(round(float(position.get("x", 0.0)))), "y": int(round(float(position.get("y", 0.0))))}


def _nearby_for_context(objects: Iterable[Mapping[str, Any]], limit: int) -> List[Dict[str, Any]]:
    """
    Prompt-sized object entries. Positions are dropped and distances rounded
    to whole units so small drift keeps the same cache key.
    """
    out: List[Dict[str, Any]] = []
    for obj in list(objects)[:limit]:
        out.append(
            {
                "id": obj.get("id"),
                "type": obj.get("type"),
                "distance": int(round(float(obj.get("distance", 0.0)))),
                "is_moving": bool(obj.get("is_moving", False)),
            }
        )
    return out


def build_context(
    *,
    hub: CapabilityHub,
    identity: Mapping[str, Any],
    subsystem_states: Mapping[str, Mapping[str, Any]],
    available_actions: Iterable[str],
    max_objects: int = 8,
    now: Optional[float] = None,
) -> DecisionContext:
    """
    Assemble a DecisionContext for one agent.

    Missing perception/execution subsystems yield empty sections, not errors.
    """
    perception = hub.read_resource("perception", "perception_state")
    p_data: Dict[str, Any] = perception.data if perception.success and perception.data else {}
    execution = hub.read_resource("execution", "execution_state")
    e_data: Dict[str, Any] = execution.data if execution.success and execution.data else {}

    environment = dict(p_data.get("environment") or {})
    temporal = dict(p_data.get("temporal") or {})
    time_of_day = (
        f"day {temporal.get('day', 1)}, {temporal.get('time_string', '12:00')} ({temporal.get('period', 'unknown')})"
        if temporal
        else "unknown"
    )

    current = e_data.get("current_action") or {}
    movement = e_data.get("movement") or {}
    execution_summary = {
        "status": e_data.get("status", "unknown"),
        "current_action": current.get("type"),
        "queue_length": len(e_data.get("queue") or []),
        "position": _rounded_position(movement.get("position")),
    }

    return DecisionContext(
        available_actions=sorted(set(available_actions)),
        current_needs=describe_state(subsystem_states.get("needs") or {}),
        nearby_objects=_nearby_for_context(p_data.get("objects") or [], max_objects),
        current_goals=describe_state(subsystem_states.get("goals") or {}),
        emotional_state=describe_state(subsystem_states.get("emotion") or {}, empty="neutral"),
        time_of_day=time_of_day,
        agent={k: v for k, v in identity.items()},
        environment=environment,
        execution=execution_summary,
        timestamp=time.time() if now is None else now,
    )
