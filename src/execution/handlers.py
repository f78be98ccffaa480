# src/execution/handlers.py
"""
Per-action-type state machines.

Each handler has two hooks:

    start(action, body) -> (state, result_or_None)
        Initialize type-specific state. Returning a result completes the
        action immediately (face) or fails it (bad payload).

    tick(state, body, delta) -> result_or_None
        Advance by `delta` seconds; a non-None result completes the action.

`body` is the ExecutionComponent; handlers only touch its position,
velocity, facing, movement speed and config.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from contracts.types import ActionResult, ActionType, Vec2, ZERO

if TYPE_CHECKING:  # pragma: no cover
    from .component import ExecutionComponent


# Screen-style axes: y grows downward, so north is -y.
COMPASS: Dict[str, Vec2] = {
    "north": Vec2(0.0, -1.0),
    "south": Vec2(0.0, 1.0),
    "east": Vec2(1.0, 0.0),
    "west": Vec2(-1.0, 0.0),
    "northeast": Vec2(1.0, -1.0).normalized(),
    "northwest": Vec2(-1.0, -1.0).normalized(),
    "southeast": Vec2(1.0, 1.0).normalized(),
    "southwest": Vec2(-1.0, 1.0).normalized(),
    "up": Vec2(0.0, -1.0),
    "down": Vec2(0.0, 1.0),
    "left": Vec2(-1.0, 0.0),
    "right": Vec2(1.0, 0.0),
}


@dataclass
class ActiveState:
    """Mutable per-action bookkeeping owned by the execution component."""
    elapsed: float = 0.0
    data: Dict[str, Any] = field(default_factory=dict)


def _fail(error: str, **details: Any) -> ActionResult:
    return ActionResult(success=False, error=error, details=details)


def _target_from_payload(payload: Dict[str, Any]) -> Vec2:
    if "target" in payload:
        target = Vec2.from_any(payload["target"])
    else:
        target = Vec2(float(payload["x"]), float(payload["y"]))
    if not (math.isfinite(target.x) and math.isfinite(target.y)):
        raise ValueError(f"non-finite target {target}")
    return target


# ---------------------------------------------------------------------------
# move
# ---------------------------------------------------------------------------


class MoveHandler:
    def start(self, action, body: "ExecutionComponent") -> Tuple[ActiveState, Optional[ActionResult]]:
        try:
            target = _target_from_payload(action.payload)
        except (KeyError, TypeError, ValueError):
            return ActiveState(), _fail("invalid_payload", reason="move needs target or x/y", payload=dict(action.payload))

        state = ActiveState(
            data={
                "target": target,
                "origin": body.position,
                "best_distance": body.position.distance_to(target),
                "stalled_for": 0.0,
            }
        )
        if body.position.distance_to(target) <= body.config.arrival_threshold:
            return state, self._arrived(state, body)
        return state, None

    def tick(self, state: ActiveState, body: "ExecutionComponent", delta: float) -> Optional[ActionResult]:
        target: Vec2 = state.data["target"]
        to_target = target - body.position
        distance = to_target.length()
        if distance <= body.config.arrival_threshold:
            return self._arrived(state, body)

        if delta <= 0.0:
            return None

        step = body.movement_speed * delta
        if step >= distance:
            velocity = to_target.scaled(1.0 / delta)
        else:
            velocity = to_target.normalized().scaled(body.movement_speed)

        body.velocity = velocity
        body.facing = to_target.normalized()
        body.position = body.mover.apply_velocity(body.position, velocity, delta)

        remaining = body.position.distance_to(target)
        if remaining <= body.config.arrival_threshold:
            return self._arrived(state, body)

        # Stuck guard: no meaningful progress for stuck_timeout seconds.
        if remaining < state.data["best_distance"] - body.config.stuck_epsilon:
            state.data["best_distance"] = remaining
            state.data["stalled_for"] = 0.0
        else:
            state.data["stalled_for"] += delta
            if state.data["stalled_for"] >= body.config.stuck_timeout:
                body.velocity = ZERO
                return _fail(
                    "stuck",
                    target=target.to_dict(),
                    position=body.position.to_dict(),
                    remaining=round(remaining, 2),
                )
        return None

    @staticmethod
    def _arrived(state: ActiveState, body: "ExecutionComponent") -> ActionResult:
        body.velocity = ZERO
        target: Vec2 = state.data["target"]
        return ActionResult(
            success=True,
            error=None,
            details={
                "target": target.to_dict(),
                "final_position": body.position.to_dict(),
                "travelled": round(state.data["origin"].distance_to(body.position), 2),
            },
        )


# ---------------------------------------------------------------------------
# wait / interact
# ---------------------------------------------------------------------------


class TimedHandler:
    """Completes once elapsed time reaches the action's duration."""

    def __init__(self, default_duration_attr: str) -> None:
        self._default_attr = default_duration_attr

    def duration_for(self, action, body: "ExecutionComponent") -> float:
        default = float(getattr(body.config, self._default_attr))
        try:
            duration = float(action.payload.get("duration", default))
        except (TypeError, ValueError):
            return default
        return max(0.0, duration) if math.isfinite(duration) else default

    def start(self, action, body: "ExecutionComponent") -> Tuple[ActiveState, Optional[ActionResult]]:
        body.velocity = ZERO
        state = ActiveState(data={"duration": self.duration_for(action, body)})
        target_id = action.payload.get("target_id")
        if target_id is not None:
            state.data["target_id"] = target_id
        return state, None

    def tick(self, state: ActiveState, body: "ExecutionComponent", delta: float) -> Optional[ActionResult]:
        if state.elapsed < state.data["duration"]:
            return None
        details: Dict[str, Any] = {"duration": state.data["duration"], "elapsed": round(state.elapsed, 3)}
        if "target_id" in state.data:
            details["target_id"] = state.data["target_id"]
        return ActionResult(success=True, error=None, details=details)


# ---------------------------------------------------------------------------
# face
# ---------------------------------------------------------------------------


class FaceHandler:
    """Sets facing and completes during start()."""

    def start(self, action, body: "ExecutionComponent") -> Tuple[ActiveState, Optional[ActionResult]]:
        payload = action.payload
        try:
            facing = self._resolve(payload, body)
        except (KeyError, TypeError, ValueError):
            return ActiveState(), _fail("invalid_payload", reason="face needs direction or target", payload=dict(payload))
        if facing.length() == 0.0:
            return ActiveState(), _fail("invalid_payload", reason="zero facing vector", payload=dict(payload))

        body.facing = facing
        return ActiveState(), ActionResult(success=True, error=None, details={"facing": facing.to_dict()})

    def tick(self, state: ActiveState, body: "ExecutionComponent", delta: float) -> Optional[ActionResult]:
        return None  # unreachable: face always completes in start()

    @staticmethod
    def _resolve(payload: Dict[str, Any], body: "ExecutionComponent") -> Vec2:
        direction = payload.get("direction")
        if isinstance(direction, str):
            return COMPASS[direction.strip().lower()]
        if direction is not None:
            return Vec2.from_any(direction).normalized()
        return (_target_from_payload(payload) - body.position).normalized()


HANDLERS = {
    ActionType.MOVE: MoveHandler(),
    ActionType.WAIT: TimedHandler("default_wait_duration"),
    ActionType.INTERACT: TimedHandler("default_interact_duration"),
    ActionType.FACE: FaceHandler(),
}
