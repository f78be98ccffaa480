# src/execution/component.py
"""
Execution component.

Owns a priority queue of pending actions and runs exactly one active action
at a time through a per-type state machine:

    IDLE -> {MOVING | WAITING | TURNING | INTERACTING} -> IDLE

Public contract:
    queue_action(action, priority) -> Action
    tick(delta)
    interrupt_current_action(reason) -> bool
    clear_action_queue(keep_current) -> int

Invariant (holds after every tick(), interrupt and clear):
    active slot is empty  <=>  status is IDLE and the queue is empty.

Between ticks a freshly queued action may wait in the queue while the status
is still IDLE; dispatch happens at the start of the next tick so several
actions queued in the same frame are ordered by priority, not arrival.

Failures never raise out of tick(): bad payloads and unknown action types
complete the action unsuccessfully and are logged.
"""

from __future__ import annotations

import itertools
import logging
import math
import time
from collections import Counter, deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from capabilities.errors import InvalidArgumentError
from capabilities.registry import CapabilityRegistry
from contracts.collaborators import Mover
from contracts.types import Action, ActionPriority, ActionResult, ActionType, Vec2, ZERO
from env.schema import ExecutionConfig
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .estimates import estimate_duration, estimate_total
from .handlers import COMPASS, HANDLERS, ActiveState
from .queue import ActionQueue

log = logging.getLogger(__name__)

SUBSYSTEM_NAME = "execution"


class ExecutionStatus(str, Enum):
    IDLE = "idle"
    MOVING = "moving"
    WAITING = "waiting"
    TURNING = "turning"
    INTERACTING = "interacting"


_STATUS_FOR_TYPE = {
    ActionType.MOVE: ExecutionStatus.MOVING,
    ActionType.WAIT: ExecutionStatus.WAITING,
    ActionType.FACE: ExecutionStatus.TURNING,
    ActionType.INTERACT: ExecutionStatus.INTERACTING,
}


class KinematicMover:
    """Collision-free mover: position + velocity * delta."""

    def apply_velocity(self, position: Vec2, velocity: Vec2, delta: float) -> Vec2:
        return position + velocity.scaled(delta)


@dataclass
class _Active:
    action: Action
    state: ActiveState
    started_at: float


class ExecutionComponent(CapabilityRegistry):
    """Priority action scheduler for one agent."""

    def __init__(
        self,
        *,
        position: Vec2 = ZERO,
        mover: Optional[Mover] = None,
        config: Optional[ExecutionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
        agent_id: Optional[str] = None,
    ) -> None:
        super().__init__(SUBSYSTEM_NAME, bus=bus, agent_id=agent_id)

        self.config = config if config is not None else ExecutionConfig()
        self.mover: Mover = mover if mover is not None else KinematicMover()
        self._clock = clock

        # Body state
        self.position: Vec2 = position
        self.velocity: Vec2 = ZERO
        self.facing: Vec2 = COMPASS["south"]
        self.movement_speed: float = self.config.movement_speed

        # Scheduling state
        self.status = ExecutionStatus.IDLE
        self._queue = ActionQueue()
        self._current: Optional[_Active] = None
        self._ids = itertools.count(1)

        self._completed: Deque[Dict[str, Any]] = deque(maxlen=self.config.history_size)
        self._interrupted: Deque[Dict[str, Any]] = deque(maxlen=self.config.interruption_history_size)
        self.total_completed = 0
        self.total_failed = 0

        self._register_capabilities()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def current_action(self) -> Optional[Action]:
        return self._current.action if self._current else None

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def is_idle(self) -> bool:
        """No active action and nothing queued."""
        return self._current is None and not self._queue

    @property
    def completed_history(self) -> List[Dict[str, Any]]:
        return list(self._completed)

    @property
    def interruption_history(self) -> List[Dict[str, Any]]:
        return list(self._interrupted)

    def pending_actions(self) -> List[Action]:
        return self._queue.in_dispatch_order()

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def queue_action(self, action: Action, priority: Any = None) -> Action:
        """
        Append `action` to the pending queue, stamping queue time.

        `priority` overrides action.priority when given. Unknown types are
        accepted here and rejected at dispatch.
        """
        if priority is not None:
            action.priority = ActionPriority.parse(priority)
        action.type = _coerce_type(action.type)
        action.queued_at = self._clock()
        action.action_id = next(self._ids)
        self._queue.push(action)

        log.debug("queued %s priority=%s id=%d", action.type_name, action.priority.name, action.action_id)
        self._emit(EventType.ACTION_QUEUED, "Action queued", {"action": action.to_dict(), "queue_length": len(self._queue)})
        return action

    def clear_action_queue(self, keep_current: bool = True) -> int:
        """Drop pending actions; interrupt the active one unless keep_current."""
        dropped = self._queue.clear()
        if not keep_current and self._current is not None:
            self.interrupt_current_action("queue_cleared")
        self._settle()
        log.debug("cleared %d queued actions (keep_current=%s)", dropped, keep_current)
        return dropped

    def interrupt_current_action(self, reason: str = "interrupted") -> bool:
        """
        Force-complete the active action as failed.

        Returns False when nothing was running.
        """
        active = self._current
        if active is None:
            return False

        result = ActionResult(success=False, error="interrupted", details={"reason": reason})
        now = self._clock()
        entry = self._history_entry(active, result, now)
        entry["reason"] = reason
        self._interrupted.append(entry)
        self._completed.append(entry)
        self.total_failed += 1
        self._current = None
        self.velocity = ZERO

        log.info("interrupted %s: %s", active.action.type_name, reason)
        self._emit(EventType.ACTION_INTERRUPTED, "Action interrupted", {"action": active.action.to_dict(), "reason": reason})
        if self.is_active:
            self._dispatch_pending()
        if self._current is None:
            # Deactivated with work queued: nothing runs until reactivation.
            self.status = ExecutionStatus.IDLE
        self._settle()
        return True

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, delta: float) -> None:
        """Advance the active action by `delta` seconds; dispatch as needed."""
        if not self.is_active:
            return

        self._dispatch_pending()
        active = self._current
        if active is not None:
            active.state.elapsed += max(0.0, delta)
            handler = HANDLERS[active.action.type]
            result = handler.tick(active.state, self, delta)
            if result is not None:
                self._complete(result)
                self._dispatch_pending()
        self._settle()

    def _dispatch_pending(self) -> None:
        # Loop: face actions and failed starts complete without taking a tick.
        while self._current is None and self._queue:
            action = self._queue.pop()
            self._start(action)

    def _start(self, action: Action) -> None:
        now = self._clock()
        handler = HANDLERS.get(action.type) if isinstance(action.type, ActionType) else None

        self._current = _Active(action=action, state=ActiveState(), started_at=now)

        if handler is None:
            log.warning("unknown action type %r; marking failed", action.type_name)
            self._complete(
                ActionResult(success=False, error="unknown_action_type", details={"type": action.type_name})
            )
            return

        self.status = _STATUS_FOR_TYPE[action.type]
        self._emit(EventType.ACTION_STARTED, "Action started", {"action": action.to_dict()})

        state, immediate = handler.start(action, self)
        self._current.state = state
        if immediate is not None:
            self._complete(immediate)

    def _complete(self, result: ActionResult) -> None:
        active = self._current
        if active is None:
            return
        now = self._clock()
        self._completed.append(self._history_entry(active, result, now))
        if result.success:
            self.total_completed += 1
        else:
            self.total_failed += 1
            log.info("%s failed: %s %s", active.action.type_name, result.error, result.details)

        self._current = None
        self._emit(
            EventType.ACTION_COMPLETED,
            "Action completed",
            {
                "action": active.action.to_dict(),
                "success": result.success,
                "error": result.error,
                "result": dict(result.details),
            },
        )

    def _settle(self) -> None:
        """Reset to idle once nothing is running or queued."""
        if self._current is None and not self._queue:
            self.status = ExecutionStatus.IDLE
            self.velocity = ZERO

    def _history_entry(self, active: _Active, result: ActionResult, now: float) -> Dict[str, Any]:
        return {
            "action": active.action.to_dict(),
            "success": result.success,
            "error": result.error,
            "result": dict(result.details),
            "started_at": active.started_at,
            "finished_at": now,
            "duration": round(now - active.started_at, 3),
        }

    # ------------------------------------------------------------------
    # Tool implementations
    # ------------------------------------------------------------------

    def set_movement_speed(self, speed: float) -> Dict[str, Any]:
        speed = _finite("set_movement_speed", "speed", speed)
        if speed <= 0:
            raise InvalidArgumentError("set_movement_speed", "speed must be positive", speed=speed)
        previous = self.movement_speed
        self.movement_speed = speed
        return {"previous": previous, "speed": self.movement_speed}

    def _queue_tool(self, action_type: ActionType, payload: Dict[str, Any], args: Dict[str, Any], tool: str) -> Dict[str, Any]:
        try:
            priority = ActionPriority.parse(args.get("priority", ActionPriority.NORMAL))
        except ValueError:
            raise InvalidArgumentError(tool, "unknown priority", priority=args.get("priority")) from None
        action = self.queue_action(Action(type=action_type, payload=payload), priority)
        return {"queued": True, "action_id": action.action_id, "queue_length": len(self._queue)}

    def _tool_move_to(self, args: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"target": {"x": _finite("move_to", "x", args["x"]), "y": _finite("move_to", "y", args["y"])}}
        return self._queue_tool(ActionType.MOVE, payload, args, "move_to")

    def _tool_wait(self, args: Dict[str, Any]) -> Dict[str, Any]:
        payload = {}
        if args.get("duration") is not None:
            payload["duration"] = _finite("wait", "duration", args["duration"])
        return self._queue_tool(ActionType.WAIT, payload, args, "wait")

    def _tool_face_direction(self, args: Dict[str, Any]) -> Dict[str, Any]:
        direction = args.get("direction")
        if direction is not None:
            if direction.strip().lower() not in COMPASS:
                raise InvalidArgumentError("face_direction", "unknown direction", direction=direction)
            payload: Dict[str, Any] = {"direction": direction}
        elif args.get("x") is not None and args.get("y") is not None:
            payload = {"target": {"x": _finite("face_direction", "x", args["x"]), "y": _finite("face_direction", "y", args["y"])}}
        else:
            raise InvalidArgumentError("face_direction", "direction or x/y required")
        return self._queue_tool(ActionType.FACE, payload, args, "face_direction")

    def _tool_interact_with(self, args: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if args.get("target_id") is not None:
            payload["target_id"] = args["target_id"]
        if args.get("duration") is not None:
            payload["duration"] = _finite("interact_with", "duration", args["duration"])
        return self._queue_tool(ActionType.INTERACT, payload, args, "interact_with")

    # ------------------------------------------------------------------
    # Resource snapshots
    # ------------------------------------------------------------------

    def movement_state(self) -> Dict[str, Any]:
        return {
            "position": self.position.to_dict(),
            "velocity": self.velocity.to_dict(),
            "facing": self.facing.to_dict(),
            "movement_speed": self.movement_speed,
            "is_moving": self.status == ExecutionStatus.MOVING,
        }

    def queue_stats(self) -> Dict[str, Any]:
        pending = self._queue.in_dispatch_order()
        by_priority = Counter(a.priority.name for a in pending)
        by_type = Counter(a.type_name for a in pending)

        start = self.position
        remaining_active = 0.0
        if self._current is not None:
            seconds, start = estimate_duration(self._current.action, self.position, self.movement_speed, self.config)
            if self._current.action.type != ActionType.MOVE:
                seconds = max(0.0, seconds - self._current.state.elapsed)
            remaining_active = seconds

        drain = remaining_active + estimate_total(pending, start, self.movement_speed, self.config)
        return {
            "queue_length": len(pending),
            "by_priority": dict(by_priority),
            "by_type": dict(by_type),
            "estimated_time_to_drain": round(drain, 3),
        }

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "is_idle": self.is_idle,
            "current_action": self.current_action.to_dict() if self.current_action else None,
            "current_elapsed": round(self._current.state.elapsed, 3) if self._current else 0.0,
            "queue": [a.to_dict() for a in self._queue.in_dispatch_order()],
            "movement": self.movement_state(),
            "totals": {"completed": self.total_completed, "failed": self.total_failed},
        }

    def action_history(self) -> Dict[str, Any]:
        return {
            "completed": list(self._completed),
            "interrupted": list(self._interrupted),
        }

    # ------------------------------------------------------------------
    # Capability registration
    # ------------------------------------------------------------------

    def _register_capabilities(self) -> None:
        priority_param = {"type": "string", "description": "low | normal | high | urgent"}

        self.register_tool(
            "move_to",
            "Walk to a position.",
            parameters={
                "x": {"type": "number", "description": "Target x"},
                "y": {"type": "number", "description": "Target y"},
                "priority": priority_param,
            },
            required=["x", "y"],
            handler=self._tool_move_to,
        )
        self.register_tool(
            "wait",
            "Stand still for a while.",
            parameters={
                "duration": {"type": "number", "description": "Seconds to wait"},
                "priority": priority_param,
            },
            handler=self._tool_wait,
        )
        self.register_tool(
            "face_direction",
            "Turn toward a compass direction or a position.",
            parameters={
                "direction": {"type": "string", "description": "north, south, east, west, ..."},
                "x": {"type": "number", "description": "Position x to face"},
                "y": {"type": "number", "description": "Position y to face"},
                "priority": priority_param,
            },
            handler=self._tool_face_direction,
        )
        self.register_tool(
            "interact_with",
            "Interact with a nearby object.",
            parameters={
                "target_id": {"type": "string", "description": "Perceived object id"},
                "duration": {"type": "number", "description": "Seconds the interaction takes"},
                "priority": priority_param,
            },
            handler=self._tool_interact_with,
        )
        self.register_tool(
            "interrupt_action",
            "Stop the current action.",
            parameters={"reason": {"type": "string", "description": "Why"}},
            handler=lambda a: {"interrupted": self.interrupt_current_action(a.get("reason") or "tool_request")},
        )
        self.register_tool(
            "clear_queue",
            "Drop all queued actions.",
            parameters={"keep_current": {"type": "boolean", "description": "Keep the running action"}},
            handler=lambda a: {"dropped": self.clear_action_queue(bool(a.get("keep_current", True)))},
        )
        self.register_tool(
            "set_movement_speed",
            "Change walking speed.",
            parameters={"speed": {"type": "number", "description": "Units per second"}},
            required=["speed"],
            handler=lambda a: self.set_movement_speed(a["speed"]),
        )

        self.register_resource("execution_state", "Status, active action and queue.", handler=self.snapshot)
        self.register_resource("movement", "Position, velocity, facing and speed.", handler=self.movement_state)
        self.register_resource("action_history", "Recent completed and interrupted actions.", handler=self.action_history)
        self.register_resource("queue_stats", "Queue counts and estimated time to drain.", handler=self.queue_stats)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event_type: EventType, message: str, payload: Dict[str, Any]) -> None:
        payload = {"status": self.status.value, "queue_length": len(self._queue), **payload}
        log_event(
            bus=self._bus,
            module=SUBSYSTEM_NAME,
            event_type=event_type,
            message=message,
            payload=payload,
            correlation_id=self.agent_id,
        )


def _coerce_type(value: Any) -> Any:
    """Map "move" and friends to ActionType; leave anything else untouched."""
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(str(value).strip().lower())
    except ValueError:
        return value


def _finite(tool: str, name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(tool, f"{name} must be a number", **{name: value}) from None
    if not math.isfinite(number):
        raise InvalidArgumentError(tool, f"{name} must be finite", **{name: value})
    return number
