# src/monitoring/bus.py
"""
In-process pub/sub for monitoring events and control commands.

Every component of every agent publishes on one bus; consumers usually care
about a slice of it, so subscriptions can be narrowed:

    bus.subscribe(dashboard.on_event)                                # everything
    bus.subscribe(log.write, agent_id="baker")                       # one NPC
    bus.subscribe(alerts, event_types={EventType.DECISION_FAILED})   # one kind
    bus.subscribe(trace, module="decision", agent_id="baker")        # filters AND together

Publishing iterates a snapshot taken under the lock, so handlers may
(un)subscribe or publish from inside a callback. A failing handler is logged
and skipped; it never reaches the publisher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, FrozenSet, Iterable, List, Optional

from .events import ControlCommand, EventType, MonitoringEvent

logger = logging.getLogger(__name__)


SubscriberFn = Callable[[MonitoringEvent], None]
CommandHandlerFn = Callable[[ControlCommand], None]


@dataclass(frozen=True)
class _Subscription:
    fn: SubscriberFn
    agent_id: Optional[str] = None
    event_types: Optional[FrozenSet[EventType]] = None
    module: Optional[str] = None

    def matches(self, event: MonitoringEvent) -> bool:
        if self.agent_id is not None and event.correlation_id != self.agent_id:
            return False
        if self.event_types is not None and event.event_type not in self.event_types:
            return False
        if self.module is not None and event.module != self.module:
            return False
        return True


class EventBus:
    def __init__(self) -> None:
        self._subscriptions: List[_Subscription] = []
        self._cmd_handlers: List[CommandHandlerFn] = []
        self._lock = Lock()

    # --------------------------------------------------------
    # Monitoring events
    # --------------------------------------------------------

    def subscribe(
        self,
        fn: SubscriberFn,
        *,
        agent_id: Optional[str] = None,
        event_types: Optional[Iterable[EventType]] = None,
        module: Optional[str] = None,
    ) -> None:
        """Register `fn` for events matching every filter given."""
        sub = _Subscription(
            fn=fn,
            agent_id=agent_id,
            event_types=frozenset(event_types) if event_types is not None else None,
            module=module,
        )
        with self._lock:
            self._subscriptions.append(sub)

    def unsubscribe(self, fn: SubscriberFn) -> None:
        """Drop every subscription of `fn`. Unknown callbacks are ignored."""
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.fn != fn]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: MonitoringEvent) -> None:
        with self._lock:
            targets = [s.fn for s in self._subscriptions if s.matches(event)]

        for fn in targets:
            try:
                fn(event)
            except Exception:
                logger.exception("EventBus subscriber %r failed on %s", fn, event.event_type.name)

    # --------------------------------------------------------
    # Control commands
    # --------------------------------------------------------

    def subscribe_commands(self, fn: CommandHandlerFn) -> None:
        with self._lock:
            self._cmd_handlers.append(fn)

    def unsubscribe_commands(self, fn: CommandHandlerFn) -> None:
        with self._lock:
            if fn in self._cmd_handlers:
                self._cmd_handlers.remove(fn)

    def publish_command(self, cmd: ControlCommand) -> None:
        with self._lock:
            handlers = list(self._cmd_handlers)

        for fn in handlers:
            try:
                fn(cmd)
            except Exception:
                logger.exception("EventBus command handler %r failed on %s", fn, cmd.cmd.name)

    def clear(self) -> None:
        """Drop all subscribers and command handlers (tests, host shutdown)."""
        with self._lock:
            self._subscriptions.clear()
            self._cmd_handlers.clear()


# Components accept an explicit bus; this one is used when none is given.
default_bus = EventBus()
