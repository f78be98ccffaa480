# src/agent/bootstrap.py
"""
Wiring entrypoint for hosts.

    config = load_core_config()
    orchestrator = build_orchestrator(config)
    loop = NpcWorldLoop(orchestrator)
    loop.add(build_agent("baker", world=world, config=config, orchestrator=orchestrator))
    ...
    loop.tick(delta)   # once per host frame

Hosts that already own a frame loop can skip NpcWorldLoop and call
agent.tick(delta) for each agent followed by orchestrator.poll().
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from agent.npc import NpcAgent
from capabilities.optional import STANDARD_SUBSYSTEMS, StaticSubsystem
from contracts.collaborators import Mover, OracleTransport, Subsystem, TimeSource, WorldQuery
from contracts.types import ZERO, Vec2
from decision.orchestrator import DecisionOrchestrator, DecisionOutcome
from decision.transport import HttpOracleTransport
from env.loader import load_core_config
from env.schema import CoreConfig
from monitoring.bus import EventBus, default_bus
from monitoring.controller import NpcController
from monitoring.llm_logging import OracleLogWriter

logger = logging.getLogger(__name__)


def build_orchestrator(
    config: Optional[CoreConfig] = None,
    *,
    transport: Optional[OracleTransport] = None,
    log_dir: Optional[Path] = None,
    clock: Callable[[], float] = time.monotonic,
    bus: Optional[EventBus] = None,
) -> DecisionOrchestrator:
    """
    Shared orchestrator for every agent in a world.

    Without an explicit transport, an HttpOracleTransport is built from the
    `oracle` config section. Oracle calls are written to `log_dir` when given.
    """
    config = config if config is not None else load_core_config()
    if transport is None:
        transport = HttpOracleTransport(config.oracle)
        logger.info("oracle transport: %s (model=%s)", config.oracle.url, config.oracle.model)
    return DecisionOrchestrator(
        transport,
        config=config.decision,
        oracle_model=config.oracle.model,
        clock=clock,
        bus=bus or default_bus,
        log_writer=OracleLogWriter(log_dir) if log_dir is not None else None,
    )


def stub_subsystems(states: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[str, Subsystem]:
    """
    StaticSubsystem for every state given; names outside the standard set
    are ignored with a warning.
    """
    out: Dict[str, Subsystem] = {}
    for name, state in (states or {}).items():
        if name not in STANDARD_SUBSYSTEMS:
            logger.warning("unknown subsystem %r ignored", name)
            continue
        out[name] = StaticSubsystem(name, state)
    return out


def build_agent(
    agent_id: str,
    *,
    world: WorldQuery,
    config: Optional[CoreConfig] = None,
    orchestrator: Optional[DecisionOrchestrator] = None,
    position: Vec2 = ZERO,
    mover: Optional[Mover] = None,
    time_source: Optional[TimeSource] = None,
    self_instance_id: Optional[int] = None,
    identity: Optional[Mapping[str, Any]] = None,
    subsystem_states: Optional[Mapping[str, Mapping[str, Any]]] = None,
    clock: Callable[[], float] = time.monotonic,
    bus: Optional[EventBus] = None,
) -> NpcAgent:
    config = config if config is not None else load_core_config()
    agent = NpcAgent(
        agent_id,
        world=world,
        position=position,
        mover=mover,
        time_source=time_source,
        self_instance_id=self_instance_id,
        identity=identity,
        subsystems=stub_subsystems(subsystem_states),
        orchestrator=orchestrator,
        config=config,
        clock=clock,
        bus=bus or default_bus,
    )
    logger.info("built agent %s at %s", agent_id, position.to_dict())
    return agent


class NpcWorldLoop:
    """
    Ticks a set of agents and polls their shared orchestrator.

    Each agent gets an NpcController so pause/resume and the other control
    commands published on the bus apply to it.
    """

    def __init__(self, orchestrator: Optional[DecisionOrchestrator], *, bus: Optional[EventBus] = None) -> None:
        self._orchestrator = orchestrator
        self._bus = bus or default_bus
        self._controllers: Dict[str, NpcController] = {}
        self._agents: Dict[str, NpcAgent] = {}

    def add(self, agent: NpcAgent) -> NpcAgent:
        self._agents[agent.agent_id] = agent
        self._controllers[agent.agent_id] = NpcController(agent, self._bus)
        return agent

    def remove(self, agent_id: str) -> None:
        agent = self._agents.pop(agent_id, None)
        controller = self._controllers.pop(agent_id, None)
        if controller is not None:
            controller.close()
        if agent is not None:
            agent.deactivate()
            if self._orchestrator is not None:
                self._orchestrator.unregister_agent(agent_id)

    @property
    def agents(self) -> List[NpcAgent]:
        return list(self._agents.values())

    def controller(self, agent_id: str) -> NpcController:
        return self._controllers[agent_id]

    def tick(self, delta: float) -> List[DecisionOutcome]:
        for agent_id in list(self._controllers):
            self._controllers[agent_id].maybe_tick(delta)
        if self._orchestrator is None:
            return []
        return self._orchestrator.poll()
