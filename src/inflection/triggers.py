# src/inflection/triggers.py
"""
Inflection component: decides *when* a new decision should be requested.

should_make_decision():
    1. False while now - last_decision < cooldown.
    2. Otherwise evaluate every trigger predicate:
         routine_check        routine interval elapsed since the last decision
         environment_changed  environment signature differs from the last check
         idle                 no active action and nothing queued
         context_changed      perception flagged a significant change
         needs_changed        needs/goals state digest differs from the last check
    3. Fire if at least one holds: emit DECISION_TRIGGERED with the names,
       reset the last-decision timestamp.

Collaborators are plain callables so the component can be wired to real
subsystems or lambdas in tests.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from env.schema import InflectionConfig
from monitoring.bus import EventBus, default_bus
from monitoring.events import EventType
from monitoring.logger import log_event

logger = logging.getLogger(__name__)

ROUTINE_CHECK = "routine_check"
ENVIRONMENT_CHANGED = "environment_changed"
IDLE = "idle"
CONTEXT_CHANGED = "context_changed"
NEEDS_CHANGED = "needs_changed"


def state_digest(state: Any) -> str:
    """Order-insensitive digest of a JSON-like value."""
    raw = json.dumps(state, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


class InflectionComponent:
    def __init__(
        self,
        *,
        is_idle: Callable[[], bool],
        environment_signature: Callable[[], str] = lambda: "",
        consume_context_change: Callable[[], bool] = lambda: False,
        needs_state: Callable[[], Any] = lambda: {},
        config: Optional[InflectionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
        agent_id: Optional[str] = None,
    ) -> None:
        self._cfg = config if config is not None else InflectionConfig()
        self._is_idle = is_idle
        self._environment_signature = environment_signature
        self._consume_context_change = consume_context_change
        self._needs_state = needs_state
        self._clock = clock
        self._bus = bus or default_bus
        self.agent_id = agent_id

        self.cooldown = self._cfg.cooldown
        self.routine_interval = self._cfg.routine_interval

        now = self._clock()
        self.last_decision_at: float = now
        self.last_routine_at: float = now
        self._last_environment: Optional[str] = None
        self._last_needs_digest: Optional[str] = None
        self.last_triggers: List[str] = []
        self.fire_count = 0

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def in_cooldown(self) -> bool:
        return self._clock() - self.last_decision_at < self.cooldown

    def should_make_decision(self) -> bool:
        if self.in_cooldown():
            return False

        triggers = self.evaluate_triggers()
        if not triggers:
            return False

        self.last_decision_at = self._clock()
        self.last_triggers = triggers
        self.fire_count += 1
        logger.debug("%s: decision triggered by %s", self.agent_id, triggers)
        log_event(
            bus=self._bus,
            module="inflection",
            event_type=EventType.DECISION_TRIGGERED,
            message="Decision triggered",
            payload={"triggers": list(triggers)},
            correlation_id=self.agent_id,
        )
        return True

    def force_decision_check(self) -> bool:
        """
        Run should_make_decision() with the cooldown timer zeroed.

        If nothing fires, the previous last-decision timestamp is restored.
        """
        previous = self.last_decision_at
        self.last_decision_at = float("-inf")
        fired = self.should_make_decision()
        if not fired:
            self.last_decision_at = previous
        return fired

    # ------------------------------------------------------------------
    # Trigger predicates
    # ------------------------------------------------------------------

    def evaluate_triggers(self) -> List[str]:
        """
        Names of every trigger that currently holds.

        Every predicate is evaluated (no short-circuit) so change trackers stay
        in sync with the latest observed state. The routine timer runs on its
        own clock and restarts only when routine_check fires.
        """
        active: List[str] = []

        now = self._clock()
        if now - self.last_routine_at >= self.routine_interval:
            active.append(ROUTINE_CHECK)
            self.last_routine_at = now

        signature = self._environment_signature()
        if self._last_environment is not None and signature != self._last_environment:
            active.append(ENVIRONMENT_CHANGED)
        self._last_environment = signature

        if self._is_idle():
            active.append(IDLE)

        if self._consume_context_change():
            active.append(CONTEXT_CHANGED)

        digest = state_digest(self._needs_state())
        if self._last_needs_digest is not None and digest != self._last_needs_digest:
            active.append(NEEDS_CHANGED)
        self._last_needs_digest = digest

        return active

    def snapshot(self) -> Dict[str, Any]:
        now = self._clock()
        return {
            "cooldown": self.cooldown,
            "routine_interval": self.routine_interval,
            "seconds_since_decision": round(now - self.last_decision_at, 3),
            "seconds_since_routine": round(now - self.last_routine_at, 3),
            "in_cooldown": self.in_cooldown(),
            "last_triggers": list(self.last_triggers),
            "fire_count": self.fire_count,
        }
