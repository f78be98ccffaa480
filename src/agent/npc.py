# src/agent/npc.py
"""
NpcAgent: one NPC's cognition core, wired together.

Per host tick:

    perception.update(delta)
    execution.tick(delta)
    inflection.should_make_decision() -> orchestrator.request_decision()

The orchestrator itself is shared between agents and polled once per host
tick by whoever owns it (see agent.bootstrap.NpcWorldLoop).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from capabilities.hub import CapabilityHub
from capabilities.optional import ABSENT, STANDARD_SUBSYSTEMS, Capability, resolve, subsystem_state
from contracts.collaborators import Mover, Subsystem, TimeSource, WorldQuery
from contracts.types import ZERO, ActionPriority, Vec2
from decision.orchestrator import DecisionOrchestrator, RequestStatus
from env.schema import CoreConfig
from execution.component import ExecutionComponent
from inflection.triggers import CONTEXT_CHANGED, ENVIRONMENT_CHANGED, InflectionComponent
from monitoring.bus import EventBus, default_bus
from perception.component import PerceptionComponent

logger = logging.getLogger(__name__)

# Triggers that make a decision more urgent than routine upkeep.
URGENT_TRIGGERS = frozenset({CONTEXT_CHANGED, ENVIRONMENT_CHANGED})


class NpcAgent:
    def __init__(
        self,
        agent_id: str,
        *,
        world: WorldQuery,
        position: Vec2 = ZERO,
        mover: Optional[Mover] = None,
        time_source: Optional[TimeSource] = None,
        self_instance_id: Optional[int] = None,
        identity: Optional[Mapping[str, Any]] = None,
        subsystems: Optional[Mapping[str, Optional[Subsystem]]] = None,
        orchestrator: Optional[DecisionOrchestrator] = None,
        config: Optional[CoreConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.agent_id = agent_id
        self.config = config if config is not None else CoreConfig()
        self._bus = bus or default_bus
        self._identity = dict(identity or {})
        self._active = True

        self.execution = ExecutionComponent(
            position=position,
            mover=mover,
            config=self.config.execution,
            clock=clock,
            bus=self._bus,
            agent_id=agent_id,
        )
        self.perception = PerceptionComponent(
            world,
            lambda: self.execution.position,
            self_instance_id=self_instance_id,
            time_source=time_source,
            config=self.config.perception,
            clock=clock,
            bus=self._bus,
            agent_id=agent_id,
        )

        # Optional state holders are resolved exactly once.
        provided = dict(subsystems or {})
        self._subsystems: Dict[str, Capability[Subsystem]] = {}
        for name in STANDARD_SUBSYSTEMS:
            capability = resolve(provided.get(name))
            if capability.present:
                capability.handle.initialize()
            self._subsystems[name] = capability

        self.inflection = InflectionComponent(
            is_idle=lambda: self.execution.is_idle,
            environment_signature=self.perception.environment_signature,
            consume_context_change=self.perception.consume_significant_change,
            needs_state=lambda: {
                "needs": subsystem_state(self.subsystem("needs")),
                "goals": subsystem_state(self.subsystem("goals")),
            },
            config=self.config.inflection,
            clock=clock,
            bus=self._bus,
            agent_id=agent_id,
        )

        self.hub = CapabilityHub()
        self.hub.register(self.execution)
        self.hub.register(self.perception)

        self._orchestrator = orchestrator
        if orchestrator is not None:
            orchestrator.register_agent(self)

        self.last_request_status: Optional[RequestStatus] = None

    # ------------------------------------------------------------------
    # DecisionAgent protocol
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def identity(self) -> Dict[str, Any]:
        ident = {"agent_id": self.agent_id, **self._identity}
        ident.update(subsystem_state(self.subsystem("identity")))
        return ident

    def subsystem_states(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: subsystem_state(capability)
            for name, capability in self._subsystems.items()
            if name != "identity"
        }

    def subsystem(self, name: str) -> "Capability[Subsystem]":
        return self._subsystems.get(name, ABSENT)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def deactivate(self) -> None:
        """Stop ticking; a decision still in flight for this agent becomes a no-op."""
        self._active = False
        self.perception.deactivate()
        self.execution.deactivate()
        logger.info("%s deactivated", self.agent_id)

    def activate(self) -> None:
        self._active = True
        self.perception.activate()
        self.execution.activate()
        logger.info("%s activated", self.agent_id)

    # ------------------------------------------------------------------
    # Per-frame driving
    # ------------------------------------------------------------------

    def tick(self, delta: float) -> None:
        if not self._active:
            return
        self.perception.update(delta)
        self.execution.tick(delta)
        if self.inflection.should_make_decision():
            self._request_decision(self.inflection.last_triggers)

    def force_decision(self) -> bool:
        fired = self.inflection.force_decision_check()
        if fired:
            self._request_decision(self.inflection.last_triggers)
        return fired

    def interrupt_current_action(self, reason: str) -> bool:
        return self.execution.interrupt_current_action(reason)

    def _request_decision(self, triggers: Iterable[str]) -> None:
        if self._orchestrator is None:
            return
        triggers = list(triggers)
        priority = ActionPriority.HIGH if URGENT_TRIGGERS.intersection(triggers) else ActionPriority.NORMAL
        self.last_request_status = self._orchestrator.request_decision(self.agent_id, priority, triggers)
        logger.debug("%s: decision request %s (%s)", self.agent_id, self.last_request_status.value, triggers)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def debug_state(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "active": self._active,
            "identity": self.identity(),
            "execution": self.execution.snapshot(),
            "perception": {
                "scan_count": self.perception.scan_count,
                "environment": self.perception.environment.to_dict(),
                "temporal": self.perception.temporal.to_dict(),
                "objects": len(self.perception.objects),
            },
            "inflection": self.inflection.snapshot(),
            "subsystems": self.subsystem_states(),
            "last_request_status": self.last_request_status.value if self.last_request_status else None,
        }
