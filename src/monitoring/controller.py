# src/monitoring/controller.py
"""
Control surface for running NPC agents.

NpcController wraps an agent and applies ControlCommand messages from the
EventBus to it.

Supported commands (ControlCommandType):
- PAUSE             -> stop ticking the agent
- RESUME            -> tick again
- FORCE_DECISION    -> bypass the inflection cooldown once
- INTERRUPT_ACTION  -> fail the active action with the given reason
- DUMP_STATE        -> emit a debug snapshot as a SNAPSHOT event

Commands carry an optional `agent_id`; a command without one addresses
every controller on the bus.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Protocol

from .bus import EventBus
from .events import (
    ControlCommand,
    ControlCommandType,
    EventType,
)
from .logger import log_event

logger = logging.getLogger(__name__)


class NpcControl(Protocol):
    """What the controller expects from an agent."""

    agent_id: str

    def tick(self, delta: float) -> None:
        """Advance the agent by `delta` seconds."""

    def force_decision(self) -> bool:
        """Run a decision check with the cooldown bypassed."""

    def interrupt_current_action(self, reason: str) -> bool:
        """Fail the active action, if any."""

    def debug_state(self) -> Dict[str, Any]:
        """JSON-serializable snapshot of the agent."""


class NpcController:
    """
    The host loop should call `maybe_tick(delta)` instead of
    `agent.tick(delta)` so pause state is respected.
    """

    def __init__(self, agent: NpcControl, bus: EventBus) -> None:
        self._agent = agent
        self._bus = bus
        self._paused: bool = False
        self._bus.subscribe_commands(self._handle_command)

    def close(self) -> None:
        self._bus.unsubscribe_commands(self._handle_command)

    # --------------------------------------------------------
    # Command handling
    # --------------------------------------------------------

    def _handle_command(self, cmd: ControlCommand) -> None:
        target = cmd.args.get("agent_id")
        if target is not None and target != self._agent.agent_id:
            return

        if cmd.cmd == ControlCommandType.PAUSE:
            self._paused = True
            self._log_control("PAUSE", {"paused": True})

        elif cmd.cmd == ControlCommandType.RESUME:
            self._paused = False
            self._log_control("RESUME", {"paused": False})

        elif cmd.cmd == ControlCommandType.FORCE_DECISION:
            fired = self._agent.force_decision()
            self._log_control("FORCE_DECISION", {"fired": fired})

        elif cmd.cmd == ControlCommandType.INTERRUPT_ACTION:
            reason = str(cmd.args.get("reason") or "operator")
            interrupted = self._agent.interrupt_current_action(reason)
            self._log_control("INTERRUPT_ACTION", {"reason": reason, "interrupted": interrupted})

        elif cmd.cmd == ControlCommandType.DUMP_STATE:
            self._log_snapshot(self._debug_state())

    # --------------------------------------------------------
    # Stepping API for the host loop
    # --------------------------------------------------------

    def maybe_tick(self, delta: float) -> bool:
        """Tick the agent unless paused. Returns whether it ticked."""
        if self._paused:
            return False
        self._agent.tick(delta)
        return True

    @property
    def paused(self) -> bool:
        return self._paused

    # --------------------------------------------------------
    # Logging helpers
    # --------------------------------------------------------

    def _log_control(self, cmd_name: str, payload: Dict[str, Any]) -> None:
        logger.info("%s: control command %s", self._agent.agent_id, cmd_name)
        log_event(
            bus=self._bus,
            module="controller",
            event_type=EventType.CONTROL_COMMAND,
            message=f"Control command: {cmd_name}",
            payload={"cmd": cmd_name, **payload},
            correlation_id=self._agent.agent_id,
        )

    def _log_snapshot(self, state: Dict[str, Any]) -> None:
        log_event(
            bus=self._bus,
            module="controller",
            event_type=EventType.SNAPSHOT,
            message="Agent state snapshot",
            payload={"state": state},
            correlation_id=self._agent.agent_id,
        )

    def _debug_state(self) -> Dict[str, Any]:
        state = self._agent.debug_state()
        if is_dataclass(state):
            return asdict(state)
        return state
