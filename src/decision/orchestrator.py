# src/decision/orchestrator.py
"""
DecisionOrchestrator: turns inflection triggers into dispatched tool calls.

Flow for request_decision(agent_id):

    build context -> normalize + hash
      -> fresh cache hit?          dispatch now              (CACHED)
      -> in flight / in cooldown?  park in the retry queue   (QUEUED)
      -> otherwise                 render prompt, submit     (SENT)

poll(), called once per host tick, drains finished transport futures,
parses and validates the reply, caches it, dispatches it through the
agent's CapabilityHub, abandons requests older than request_timeout, and
starts the best retry entry once the transport is free.

At most one oracle request is in flight for the whole orchestrator. The
transport's completion callback only appends to an inbox; every other
piece of state is touched from request_decision()/poll() under one lock.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from capabilities.hub import CapabilityHub
from contracts.collaborators import OracleTransport
from contracts.types import ActionPriority
from env.schema import DecisionConfig
from monitoring.bus import EventBus, default_bus
from monitoring.events import EventType
from monitoring.llm_logging import OracleLogWriter
from monitoring.logger import log_event

from .cache import DecisionCache
from .context import DecisionContext, build_context, context_hash
from .errors import DecisionError, TransportFailure
from .parsing import parse_decision, validate_decision
from .prompt import render_prompt, tool_menu

logger = logging.getLogger(__name__)

MODULE = "decision"

OutcomeListener = Callable[["DecisionOutcome"], None]


class DecisionAgent(Protocol):
    """What the orchestrator needs from an agent."""

    agent_id: str
    hub: CapabilityHub

    @property
    def is_active(self) -> bool:
        ...

    def identity(self) -> Dict[str, Any]:
        ...

    def subsystem_states(self) -> Dict[str, Dict[str, Any]]:
        ...


class RequestStatus(Enum):
    CACHED = "cached"
    SENT = "sent"
    QUEUED = "queued"
    REJECTED = "rejected"


@dataclass
class PendingDecision:
    request_id: int
    agent_id: str
    context_hash: str
    requested_at: float
    priority: ActionPriority
    prompt: str
    triggers: Tuple[str, ...] = ()


@dataclass
class RetryEntry:
    agent_id: str
    priority: ActionPriority
    seq: int
    triggers: Tuple[str, ...] = ()


@dataclass
class DecisionOutcome:
    agent_id: str
    success: bool
    error: Optional[str] = None
    decision: Optional[Dict[str, Any]] = None
    tool_result: Optional[Dict[str, Any]] = None
    from_cache: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "success": self.success,
            "error": self.error,
            "decision": self.decision,
            "tool_result": self.tool_result,
            "from_cache": self.from_cache,
            "details": dict(self.details),
        }


class DecisionOrchestrator:
    def __init__(
        self,
        transport: OracleTransport,
        *,
        config: Optional[DecisionConfig] = None,
        oracle_model: str = "",
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
        log_writer: Optional[OracleLogWriter] = None,
    ) -> None:
        self._cfg = config if config is not None else DecisionConfig()
        self._transport = transport
        self._oracle_model = oracle_model or getattr(transport, "model", "")
        self._clock = clock
        self._bus = bus or default_bus
        self._log_writer = log_writer

        self.cache = DecisionCache(
            expiry=self._cfg.cache_expiry,
            max_entries=self._cfg.cache_max_entries,
            clock=clock,
        )

        self._lock = threading.RLock()
        self._agents: Dict[str, DecisionAgent] = {}
        self._listeners: List[OutcomeListener] = []
        self._pending: Optional[PendingDecision] = None
        self._inbox: Deque[Tuple[int, "Future[str]"]] = deque()
        self._retry: Dict[str, RetryEntry] = {}
        self._last_sent_at: Dict[str, float] = {}
        self._request_ids = itertools.count(1)
        self._retry_seq = itertools.count()

        self.requests_sent = 0
        self.last_outcome: Optional[DecisionOutcome] = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_agent(self, agent: DecisionAgent) -> None:
        with self._lock:
            self._agents[agent.agent_id] = agent

    def unregister_agent(self, agent_id: str) -> None:
        """Forget an agent. A response still in flight for it becomes a no-op."""
        with self._lock:
            self._agents.pop(agent_id, None)
            self._retry.pop(agent_id, None)

    def add_outcome_listener(self, fn: OutcomeListener) -> None:
        self._listeners.append(fn)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    @property
    def pending(self) -> Optional[PendingDecision]:
        return self._pending

    def retry_queue(self) -> List[RetryEntry]:
        """Parked requests, best first."""
        with self._lock:
            return sorted(self._retry.values(), key=lambda e: (-int(e.priority), e.seq))

    def in_cooldown(self, agent_id: str) -> bool:
        last = self._last_sent_at.get(agent_id)
        return last is not None and self._clock() - last < self._cfg.agent_cooldown

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            pending = self._pending
            return {
                "agents": sorted(self._agents),
                "in_flight": pending is not None,
                "pending": (
                    {
                        "request_id": pending.request_id,
                        "agent_id": pending.agent_id,
                        "age": round(self._clock() - pending.requested_at, 3),
                        "priority": pending.priority.name,
                    }
                    if pending
                    else None
                ),
                "retry_queue": [
                    {"agent_id": e.agent_id, "priority": e.priority.name}
                    for e in self.retry_queue()
                ],
                "cache": self.cache.stats(),
                "requests_sent": self.requests_sent,
            }

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_decision(
        self,
        agent_id: str,
        priority: Any = ActionPriority.NORMAL,
        triggers: Iterable[str] = (),
    ) -> RequestStatus:
        outcomes: List[DecisionOutcome] = []
        with self._lock:
            status = self._request(agent_id, ActionPriority.parse(priority), tuple(triggers), outcomes)
        self._notify(outcomes)
        return status

    def _request(
        self,
        agent_id: str,
        priority: ActionPriority,
        triggers: Tuple[str, ...],
        outcomes: List[DecisionOutcome],
    ) -> RequestStatus:
        agent = self._agents.get(agent_id)
        if agent is None or not agent.is_active:
            logger.debug("decision request for unknown or inactive agent %s ignored", agent_id)
            return RequestStatus.REJECTED

        context = self._build_context(agent)
        key = context_hash(context)

        cached = self.cache.get(key)
        if cached is not None:
            self._emit(
                EventType.DECISION_CACHE_HIT,
                "Decision served from cache",
                {"tool": cached.get("tool"), "context_hash": key, "triggers": list(triggers)},
                agent_id,
            )
            outcomes.append(self._dispatch(agent, cached, from_cache=True, details={"context_hash": key}))
            return RequestStatus.CACHED

        if self._pending is not None or self.in_cooldown(agent_id):
            self._enqueue_retry(agent_id, priority, triggers)
            return RequestStatus.QUEUED

        self._send(agent, context, key, priority, triggers, outcomes)
        return RequestStatus.SENT

    def _build_context(self, agent: DecisionAgent) -> DecisionContext:
        menu = tool_menu(agent.hub.describe(), self._cfg.allowed_tools)
        return build_context(
            hub=agent.hub,
            identity=agent.identity(),
            subsystem_states=agent.subsystem_states(),
            available_actions=[entry["name"] for entry in menu],
            max_objects=self._cfg.max_prompt_objects,
        )

    def _send(
        self,
        agent: DecisionAgent,
        context: DecisionContext,
        key: str,
        priority: ActionPriority,
        triggers: Tuple[str, ...],
        outcomes: List[DecisionOutcome],
    ) -> None:
        prompt = render_prompt(context, tool_menu(agent.hub.describe(), self._cfg.allowed_tools))
        request_id = next(self._request_ids)
        now = self._clock()
        try:
            future = self._transport.submit(prompt)
        except DecisionError as exc:
            outcomes.append(self._failure(agent.agent_id, exc.code, exc.message, {"context_hash": key}))
            return

        self._pending = PendingDecision(
            request_id=request_id,
            agent_id=agent.agent_id,
            context_hash=key,
            requested_at=now,
            priority=priority,
            prompt=prompt,
            triggers=triggers,
        )
        self._last_sent_at[agent.agent_id] = now
        self.requests_sent += 1
        self._emit(
            EventType.DECISION_REQUESTED,
            "Decision requested from oracle",
            {
                "request_id": request_id,
                "context_hash": key,
                "priority": priority.name,
                "triggers": list(triggers),
            },
            agent.agent_id,
        )
        future.add_done_callback(lambda f, rid=request_id: self._inbox.append((rid, f)))

    def _enqueue_retry(self, agent_id: str, priority: ActionPriority, triggers: Tuple[str, ...]) -> None:
        existing = self._retry.get(agent_id)
        if existing is not None:
            # One entry per agent; keep the higher priority and original order.
            if priority > existing.priority:
                existing.priority = priority
            existing.triggers = tuple(dict.fromkeys(existing.triggers + triggers))
            return

        if len(self._retry) >= self._cfg.retry_queue_size:
            worst = min(self._retry.values(), key=lambda e: (int(e.priority), -e.seq))
            if worst.priority >= priority:
                logger.warning("retry queue full; dropping request for %s", agent_id)
                return
            del self._retry[worst.agent_id]
            logger.warning("retry queue full; evicted request for %s", worst.agent_id)

        self._retry[agent_id] = RetryEntry(agent_id, priority, next(self._retry_seq), triggers)
        self._emit(
            EventType.DECISION_QUEUED,
            "Decision request parked for retry",
            {"priority": priority.name, "in_flight": self._pending is not None, "triggers": list(triggers)},
            agent_id,
        )

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    def poll(self) -> List[DecisionOutcome]:
        """Process finished responses, timeouts and the retry queue."""
        outcomes: List[DecisionOutcome] = []
        with self._lock:
            while self._inbox:
                request_id, future = self._inbox.popleft()
                pending = self._pending
                if pending is None or pending.request_id != request_id:
                    logger.info("ignoring late oracle response for request %d", request_id)
                    continue
                self._pending = None
                outcome = self._handle_response(pending, future)
                if outcome is not None:
                    outcomes.append(outcome)

            self._check_timeout(outcomes)
            self._drain_retry(outcomes)
        self._notify(outcomes)
        return outcomes

    def _check_timeout(self, outcomes: List[DecisionOutcome]) -> None:
        pending = self._pending
        if pending is None:
            return
        age = self._clock() - pending.requested_at
        if age < self._cfg.request_timeout:
            return
        self._pending = None
        logger.warning("oracle request %d for %s timed out after %.1fs", pending.request_id, pending.agent_id, age)
        if pending.agent_id in self._agents:
            outcomes.append(
                self._failure(
                    pending.agent_id,
                    "timeout",
                    f"no oracle response after {age:.1f}s",
                    {"request_id": pending.request_id, "context_hash": pending.context_hash},
                )
            )

    def _drain_retry(self, outcomes: List[DecisionOutcome]) -> None:
        while self._pending is None:
            entry = next(
                (e for e in self.retry_queue() if not self.in_cooldown(e.agent_id)),
                None,
            )
            if entry is None:
                return
            del self._retry[entry.agent_id]
            self._request(entry.agent_id, entry.priority, entry.triggers, outcomes)

    def _handle_response(self, pending: PendingDecision, future: "Future[str]") -> Optional[DecisionOutcome]:
        latency = round(self._clock() - pending.requested_at, 3)
        details: Dict[str, Any] = {
            "request_id": pending.request_id,
            "context_hash": pending.context_hash,
            "latency": latency,
            "triggers": list(pending.triggers),
        }

        raw = ""
        try:
            raw = future.result()
        except DecisionError as exc:
            self._write_log(pending, raw, {**details, "outcome": exc.code, "error": exc.message})
            return self._response_failure(pending, exc, details)
        except Exception as exc:
            logger.exception("oracle transport raised unexpectedly")
            failure = TransportFailure(f"{type(exc).__name__}: {exc}")
            self._write_log(pending, raw, {**details, "outcome": failure.code, "error": failure.message})
            return self._response_failure(pending, failure, details)

        agent = self._agents.get(pending.agent_id)
        if agent is None or not agent.is_active:
            logger.info("oracle response for gone or inactive agent %s dropped", pending.agent_id)
            self._write_log(pending, raw, {**details, "outcome": "dropped"})
            return None

        try:
            decision = validate_decision(parse_decision(raw), agent.hub, self._cfg.allowed_tools)
        except DecisionError as exc:
            self._write_log(pending, raw, {**details, "outcome": exc.code, "error": exc.message})
            return self._failure(pending.agent_id, exc.code, exc.message, {**details, **exc.details})

        self._write_log(pending, raw, {**details, "outcome": "ok"})
        self.cache.put(pending.context_hash, decision)
        return self._dispatch(agent, decision, from_cache=False, details=details)

    def _response_failure(
        self, pending: PendingDecision, exc: DecisionError, details: Dict[str, Any]
    ) -> Optional[DecisionOutcome]:
        if pending.agent_id not in self._agents:
            return None
        return self._failure(pending.agent_id, exc.code, exc.message, {**details, **exc.details})

    # ------------------------------------------------------------------
    # Dispatch + reporting
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        agent: DecisionAgent,
        decision: Mapping[str, Any],
        *,
        from_cache: bool,
        details: Dict[str, Any],
    ) -> DecisionOutcome:
        result = agent.hub.invoke_tool(decision["server"], decision["tool"], dict(decision.get("args") or {}))
        if not result.success:
            return self._failure(
                agent.agent_id,
                "dispatch_failure",
                result.error or "tool invocation failed",
                {**details, "decision": dict(decision), "tool_error": result.details},
            )

        outcome = DecisionOutcome(
            agent_id=agent.agent_id,
            success=True,
            decision=dict(decision),
            tool_result=result.to_dict(),
            from_cache=from_cache,
            details=details,
        )
        self._emit(
            EventType.DECISION_RECEIVED,
            f"Decision dispatched: {decision['server']}.{decision['tool']}",
            {
                "tool": decision["tool"],
                "server": decision["server"],
                "reason": decision.get("reason"),
                "args": dict(decision.get("args") or {}),
                "from_cache": from_cache,
            },
            agent.agent_id,
        )
        return outcome

    def _failure(self, agent_id: str, code: str, message: str, details: Dict[str, Any]) -> DecisionOutcome:
        logger.warning("decision for %s failed (%s): %s", agent_id, code, message)
        self._emit(
            EventType.DECISION_FAILED,
            f"Decision failed: {code}",
            {"error": code, "message": message, **{k: v for k, v in details.items() if k != "decision"}},
            agent_id,
        )
        return DecisionOutcome(agent_id=agent_id, success=False, error=code, details={"message": message, **details})

    def _notify(self, outcomes: List[DecisionOutcome]) -> None:
        for outcome in outcomes:
            self.last_outcome = outcome
            for fn in list(self._listeners):
                try:
                    fn(outcome)
                except Exception:
                    logger.exception("decision outcome listener %r raised", fn)

    def _write_log(self, pending: PendingDecision, response: str, meta: Dict[str, Any]) -> None:
        if self._log_writer is None:
            return
        try:
            self._log_writer.log_call(
                agent_id=pending.agent_id,
                model=self._oracle_model,
                prompt=pending.prompt,
                response=response,
                context_hash=pending.context_hash,
                meta=meta,
            )
        except OSError:
            logger.exception("failed to write oracle call log")

    def _emit(self, event_type: EventType, message: str, payload: Dict[str, Any], agent_id: str) -> None:
        log_event(
            bus=self._bus,
            module=MODULE,
            event_type=event_type,
            message=message,
            payload=payload,
            correlation_id=agent_id,
        )
