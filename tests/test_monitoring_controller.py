#tests/test_monitoring_controller.py
"""
Tests for monitoring.controller.NpcController.

Covers:
- pause/resume gating of maybe_tick
- force decision and interrupt forwarding
- agent_id targeting
- DUMP_STATE snapshot events
"""

from __future__ import annotations

from typing import Any, Dict, List

from monitoring.bus import EventBus
from monitoring.controller import NpcController
from monitoring.events import ControlCommand, EventType, MonitoringEvent


class FakeAgent:
    def __init__(self, agent_id: str = "npc-1") -> None:
        self.agent_id = agent_id
        self.ticks: List[float] = []
        self.forced = 0
        self.interrupts: List[str] = []

    def tick(self, delta: float) -> None:
        self.ticks.append(delta)

    def force_decision(self) -> bool:
        self.forced += 1
        return True

    def interrupt_current_action(self, reason: str) -> bool:
        self.interrupts.append(reason)
        return True

    def debug_state(self) -> Dict[str, Any]:
        return {"agent_id": self.agent_id, "status": "idle"}


def test_pause_and_resume_gate_ticks():
    bus = EventBus()
    agent = FakeAgent()
    controller = NpcController(agent, bus)

    assert controller.maybe_tick(0.1) is True

    bus.publish_command(ControlCommand.pause())
    assert controller.paused is True
    assert controller.maybe_tick(0.1) is False

    bus.publish_command(ControlCommand.resume())
    assert controller.maybe_tick(0.2) is True
    assert agent.ticks == [0.1, 0.2]


def test_force_decision_and_interrupt_are_forwarded():
    bus = EventBus()
    agent = FakeAgent()
    NpcController(agent, bus)

    control_events: List[MonitoringEvent] = []
    bus.subscribe(lambda e: control_events.append(e) if e.event_type == EventType.CONTROL_COMMAND else None)

    bus.publish_command(ControlCommand.force_decision())
    bus.publish_command(ControlCommand.interrupt_action("player waved"))

    assert agent.forced == 1
    assert agent.interrupts == ["player waved"]
    assert [e.payload["cmd"] for e in control_events] == ["FORCE_DECISION", "INTERRUPT_ACTION"]
    assert all(e.correlation_id == "npc-1" for e in control_events)


def test_commands_for_other_agents_are_ignored():
    bus = EventBus()
    agent = FakeAgent("npc-1")
    controller = NpcController(agent, bus)

    bus.publish_command(ControlCommand.pause(agent_id="npc-2"))
    assert controller.paused is False

    bus.publish_command(ControlCommand.pause(agent_id="npc-1"))
    assert controller.paused is True


def test_dump_state_emits_snapshot():
    bus = EventBus()
    NpcController(FakeAgent(), bus)
    snapshots: List[MonitoringEvent] = []
    bus.subscribe(lambda e: snapshots.append(e) if e.event_type == EventType.SNAPSHOT else None)

    bus.publish_command(ControlCommand.dump_state())

    assert len(snapshots) == 1
    assert snapshots[0].payload["state"] == {"agent_id": "npc-1", "status": "idle"}


def test_close_detaches_from_bus():
    bus = EventBus()
    controller = NpcController(FakeAgent(), bus)
    controller.close()
    bus.publish_command(ControlCommand.pause())
    assert controller.paused is False
