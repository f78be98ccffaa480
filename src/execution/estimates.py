# src/execution/estimates.py

from __future__ import annotations

from typing import Iterable, Tuple

from contracts.types import Action, ActionType, Vec2
from env.schema import ExecutionConfig


def estimate_duration(
    action: Action, start: Vec2, speed: float, cfg: ExecutionConfig
) -> Tuple[float, Vec2]:
    """
    Estimated seconds to run `action` from position `start`.

    Returns (seconds, position after the action) so callers can chain
    estimates through a queue of moves.
    """
    payload = action.payload
    if action.type == ActionType.MOVE:
        try:
            if "target" in payload:
                target = Vec2.from_any(payload["target"])
            else:
                target = Vec2(float(payload["x"]), float(payload["y"]))
        except (KeyError, TypeError, ValueError):
            return 0.0, start
        if speed <= 0:
            return 0.0, target
        return start.distance_to(target) / speed, target

    if action.type == ActionType.WAIT:
        return _duration(payload, cfg.default_wait_duration), start
    if action.type == ActionType.INTERACT:
        return _duration(payload, cfg.default_interact_duration), start
    return 0.0, start


def estimate_total(
    actions: Iterable[Action], start: Vec2, speed: float, cfg: ExecutionConfig
) -> float:
    total = 0.0
    position = start
    for action in actions:
        seconds, position = estimate_duration(action, position, speed, cfg)
        total += seconds
    return total


def _duration(payload, default: float) -> float:
    try:
        return max(0.0, float(payload.get("duration", default)))
    except (TypeError, ValueError):
        return default
