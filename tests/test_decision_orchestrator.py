#tests/test_decision_orchestrator.py
"""
Tests for decision.orchestrator.DecisionOrchestrator.

Agents here are minimal stand-ins with a real ExecutionComponent behind a
CapabilityHub; the oracle is a FakeOracleTransport the test resolves by hand.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from capabilities.hub import CapabilityHub
from contracts.types import ActionPriority
from decision.orchestrator import DecisionOrchestrator, DecisionOutcome, RequestStatus
from env.schema import DecisionConfig
from execution.component import ExecutionComponent
from monitoring.bus import EventBus
from monitoring.events import EventType, MonitoringEvent
from monitoring.llm_logging import OracleLogWriter
from testing.fakes import FakeOracleTransport, ManualClock

WAIT = json.dumps({"tool": "wait", "server": "execution", "reason": "catch my breath", "args": {"duration": 2}})
MOVE = json.dumps({"tool": "move_to", "server": "execution", "reason": "head to the well", "args": {"x": 10, "y": 0}})


class StubAgent:
    def __init__(self, agent_id: str, clock: ManualClock, bus: EventBus) -> None:
        self.agent_id = agent_id
        self.execution = ExecutionComponent(clock=clock, bus=bus, agent_id=agent_id)
        self.hub = CapabilityHub()
        self.hub.register(self.execution)
        self.active = True
        self.needs: Dict[str, Any] = {"hunger": 0.5}

    @property
    def is_active(self) -> bool:
        return self.active

    def identity(self) -> Dict[str, Any]:
        return {"agent_id": self.agent_id, "name": self.agent_id.title()}

    def subsystem_states(self) -> Dict[str, Dict[str, Any]]:
        return {"needs": dict(self.needs)}


class Harness:
    def __init__(self, **cfg) -> None:
        self.clock = ManualClock(1000.0)
        self.bus = EventBus()
        self.events: List[MonitoringEvent] = []
        self.bus.subscribe(self.events.append)
        self.transport = FakeOracleTransport()
        self.orchestrator = DecisionOrchestrator(
            self.transport,
            config=DecisionConfig(**cfg),
            clock=self.clock,
            bus=self.bus,
        )
        self.outcomes: List[DecisionOutcome] = []
        self.orchestrator.add_outcome_listener(self.outcomes.append)

    def agent(self, agent_id: str) -> StubAgent:
        agent = StubAgent(agent_id, self.clock, self.bus)
        self.orchestrator.register_agent(agent)
        return agent

    def event_types(self, agent_id: str) -> List[EventType]:
        return [e.event_type for e in self.events if e.correlation_id == agent_id and e.module == "decision"]

    def tool_calls(self) -> List[MonitoringEvent]:
        return [e for e in self.events if e.event_type == EventType.TOOL_EXECUTED]


@pytest.fixture
def h() -> Harness:
    return Harness()


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


def test_valid_reply_is_dispatched_to_execution(h):
    baker = h.agent("baker")

    assert h.orchestrator.request_decision("baker", triggers=["idle"]) is RequestStatus.SENT
    assert h.orchestrator.in_flight
    assert "head to the well" not in h.transport.last_prompt
    assert "execution.move_to" in h.transport.last_prompt

    h.transport.respond(MOVE)
    (outcome,) = h.orchestrator.poll()

    assert outcome.success is True
    assert outcome.decision["tool"] == "move_to"
    assert outcome.from_cache is False
    assert outcome.details["triggers"] == ["idle"]
    assert baker.execution.queue_length == 1
    assert baker.execution.pending_actions()[0].payload == {"target": {"x": 10.0, "y": 0.0}}
    assert not h.orchestrator.in_flight
    assert h.outcomes == [outcome]
    assert h.event_types("baker") == [EventType.DECISION_REQUESTED, EventType.DECISION_RECEIVED]


def test_poll_without_response_does_nothing(h):
    h.agent("baker")
    h.orchestrator.request_decision("baker")
    assert h.orchestrator.poll() == []
    assert h.orchestrator.in_flight


# ---------------------------------------------------------------------------
# One request in flight
# ---------------------------------------------------------------------------


def test_second_agent_waits_while_a_request_is_in_flight(h):
    h.agent("baker")
    smith = h.agent("smith")

    assert h.orchestrator.request_decision("baker") is RequestStatus.SENT
    assert h.orchestrator.request_decision("smith") is RequestStatus.QUEUED
    assert h.transport.submit_count == 1
    assert [e.agent_id for e in h.orchestrator.retry_queue()] == ["smith"]

    h.transport.respond(WAIT)
    h.orchestrator.poll()

    assert h.transport.submit_count == 2
    assert h.orchestrator.pending.agent_id == "smith"
    assert h.orchestrator.retry_queue() == []

    h.transport.respond(MOVE)
    (outcome,) = h.orchestrator.poll()
    assert outcome.agent_id == "smith"
    assert smith.execution.queue_length == 1


def test_never_more_than_one_open_request(h):
    for name in ("a", "b", "c", "d"):
        h.agent(name)
    for _ in range(3):
        for name in ("a", "b", "c", "d"):
            h.orchestrator.request_decision(name)
            assert len(h.transport.open_requests) <= 1
        h.clock.advance(1.0)
        h.orchestrator.poll()
        assert len(h.transport.open_requests) <= 1


def test_retry_queue_orders_by_priority_then_arrival(h):
    for name in ("a", "b", "c", "d"):
        h.agent(name)
    h.orchestrator.request_decision("a")
    h.orchestrator.request_decision("b", ActionPriority.NORMAL)
    h.orchestrator.request_decision("c", ActionPriority.HIGH)
    h.orchestrator.request_decision("d", "normal")

    assert [e.agent_id for e in h.orchestrator.retry_queue()] == ["c", "b", "d"]

    h.transport.respond(WAIT)
    h.orchestrator.poll()
    assert h.orchestrator.pending.agent_id == "c"


def test_retry_queue_keeps_one_entry_per_agent(h):
    h.agent("a")
    h.agent("b")
    h.orchestrator.request_decision("a")
    h.orchestrator.request_decision("b", ActionPriority.LOW, triggers=["idle"])
    h.orchestrator.request_decision("b", ActionPriority.HIGH, triggers=["context_changed", "idle"])

    (entry,) = h.orchestrator.retry_queue()
    assert entry.priority is ActionPriority.HIGH
    assert entry.triggers == ("idle", "context_changed")


def test_full_retry_queue_evicts_lowest_priority():
    h = Harness(retry_queue_size=1)
    for name in ("a", "b", "c", "d"):
        h.agent(name)
    h.orchestrator.request_decision("a")
    h.orchestrator.request_decision("b", ActionPriority.LOW)
    h.orchestrator.request_decision("c", ActionPriority.HIGH)
    h.orchestrator.request_decision("d", ActionPriority.NORMAL)

    assert [e.agent_id for e in h.orchestrator.retry_queue()] == ["c"]


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


def test_repeat_context_is_served_from_cache(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond(WAIT)
    h.orchestrator.poll()
    baker.execution.clear_action_queue()

    assert h.orchestrator.request_decision("baker") is RequestStatus.CACHED

    assert h.transport.submit_count == 1
    assert baker.execution.queue_length == 1
    assert h.outcomes[-1].from_cache is True
    assert h.event_types("baker")[-2:] == [EventType.DECISION_CACHE_HIT, EventType.DECISION_RECEIVED]
    assert h.orchestrator.cache.stats()["hits"] == 1


def test_expired_cache_entry_goes_back_to_the_oracle(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond(WAIT)
    h.orchestrator.poll()
    baker.execution.clear_action_queue()

    h.clock.advance(30.0)
    assert h.orchestrator.request_decision("baker") is RequestStatus.SENT
    assert h.transport.submit_count == 2


def test_changed_needs_miss_the_cache(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond(WAIT)
    h.orchestrator.poll()
    baker.execution.clear_action_queue()

    baker.needs = {"hunger": 0.9}
    h.clock.advance(3.0)
    assert h.orchestrator.request_decision("baker") is RequestStatus.SENT


# ---------------------------------------------------------------------------
# Cooldown
# ---------------------------------------------------------------------------


def test_agent_cooldown_parks_request_until_it_elapses(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond(WAIT)
    h.orchestrator.poll()

    baker.needs = {"hunger": 0.8}
    h.clock.advance(1.0)
    assert h.orchestrator.in_cooldown("baker")
    assert h.orchestrator.request_decision("baker") is RequestStatus.QUEUED

    h.orchestrator.poll()
    assert h.transport.submit_count == 1

    h.clock.advance(2.0)
    h.orchestrator.poll()
    assert h.transport.submit_count == 2
    assert h.orchestrator.retry_queue() == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "reply, code",
    [
        ("I think I will take a nap.", "parse_failure"),
        ('{"tool": "wait", "server": "execution"', "parse_failure"),
        ('{"tool": "wait", "server": "execution", "args": {}}', "validation_failure"),
        ('{"tool": "teleport", "server": "execution", "reason": "x"}', "validation_failure"),
        ('{"tool": "wait", "server": "magic", "reason": "x"}', "validation_failure"),
        ('{"tool": "set_movement_speed", "server": "execution", "reason": "x", "args": {"speed": 99}}', "validation_failure"),
        ('{"tool": "face_direction", "server": "execution", "reason": "x", "args": {"direction": "sideways"}}', "dispatch_failure"),
        ('{"tool": "move_to", "server": "execution", "reason": "r", "args": {"x": null, "y": 1}}', "validation_failure"),
        ('{"tool": "wait", "server": "execution", "reason": "r", "args": {"duration": NaN}}', "validation_failure"),
    ],
)
def test_bad_replies_produce_failures_without_queueing(h, reply, code):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond(reply)
    (outcome,) = h.orchestrator.poll()

    assert outcome.success is False
    assert outcome.error == code
    assert baker.execution.queue_length == 0
    assert baker.execution.movement_speed == 50.0
    assert h.event_types("baker")[-1] == EventType.DECISION_FAILED
    assert not h.orchestrator.in_flight


def test_failed_reply_is_not_cached(h):
    h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond("nope")
    h.orchestrator.poll()
    assert len(h.orchestrator.cache) == 0


def test_transport_failure_is_reported(h):
    h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.fail("connection refused")
    (outcome,) = h.orchestrator.poll()
    assert outcome.error == "transport_failure"
    assert outcome.details["message"] == "connection refused"


def test_timeout_abandons_request_and_late_reply_is_ignored(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")

    h.clock.advance(29.0)
    assert h.orchestrator.poll() == []

    h.clock.advance(1.0)
    (outcome,) = h.orchestrator.poll()
    assert outcome.error == "timeout"
    assert not h.orchestrator.in_flight

    h.transport.respond(MOVE)
    assert h.orchestrator.poll() == []
    assert baker.execution.queue_length == 0


def test_timeout_frees_the_slot_for_the_next_agent(h):
    h.agent("baker")
    h.agent("smith")
    h.orchestrator.request_decision("baker")
    h.orchestrator.request_decision("smith")

    h.clock.advance(30.0)
    h.orchestrator.poll()
    assert h.orchestrator.pending.agent_id == "smith"


# ---------------------------------------------------------------------------
# Agent lifecycle
# ---------------------------------------------------------------------------


def test_unknown_or_inactive_agents_are_rejected(h):
    baker = h.agent("baker")
    baker.active = False
    assert h.orchestrator.request_decision("baker") is RequestStatus.REJECTED
    assert h.orchestrator.request_decision("ghost") is RequestStatus.REJECTED
    assert h.transport.submit_count == 0


def test_response_for_unregistered_agent_is_a_no_op(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.orchestrator.unregister_agent("baker")

    h.transport.respond(WAIT)
    assert h.orchestrator.poll() == []
    assert baker.execution.queue_length == 0
    assert h.tool_calls() == []


def test_response_for_deactivated_agent_is_dropped(h):
    baker = h.agent("baker")
    h.orchestrator.request_decision("baker")
    baker.active = False

    h.transport.respond(WAIT)
    assert h.orchestrator.poll() == []
    assert baker.execution.queue_length == 0


def test_unregister_removes_parked_request(h):
    h.agent("baker")
    h.agent("smith")
    h.orchestrator.request_decision("baker")
    h.orchestrator.request_decision("smith")
    h.orchestrator.unregister_agent("smith")
    assert h.orchestrator.retry_queue() == []


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def test_listener_errors_do_not_break_polling(h):
    def explode(outcome):
        raise RuntimeError("listener bug")

    h.orchestrator.add_outcome_listener(explode)
    h.agent("baker")
    h.orchestrator.request_decision("baker")
    h.transport.respond(WAIT)

    (outcome,) = h.orchestrator.poll()
    assert outcome.success
    assert h.orchestrator.last_outcome is outcome


def test_oracle_calls_are_written_to_log_dir(tmp_path: Path):
    clock = ManualClock()
    transport = FakeOracleTransport(model="tiny")
    orchestrator = DecisionOrchestrator(
        transport,
        clock=clock,
        bus=EventBus(),
        log_writer=OracleLogWriter(tmp_path),
    )
    orchestrator.register_agent(StubAgent("baker", clock, EventBus()))
    orchestrator.request_decision("baker")
    clock.advance(0.25)
    transport.respond(WAIT)
    orchestrator.poll()

    (path,) = list(tmp_path.glob("*.json"))
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["model"] == "tiny"
    assert record["agent_id"] == "baker"
    assert record["response"] == WAIT
    assert record["meta"]["outcome"] == "ok"
    assert record["meta"]["latency"] == 0.25


def test_snapshot_describes_pending_and_queue(h):
    h.agent("baker")
    h.agent("smith")
    h.orchestrator.request_decision("baker")
    h.orchestrator.request_decision("smith", "high")
    h.clock.advance(2.0)

    snap = h.orchestrator.snapshot()
    assert snap["agents"] == ["baker", "smith"]
    assert snap["pending"]["agent_id"] == "baker"
    assert snap["pending"]["age"] == 2.0
    assert snap["retry_queue"] == [{"agent_id": "smith", "priority": "HIGH"}]
    assert snap["requests_sent"] == 1
