# src/monitoring/logger.py
"""
Event emission and the JSONL event sink.

    log_event(bus=bus, module="execution", event_type=EventType.ACTION_STARTED,
              message="Action started", payload={...}, correlation_id="baker")

    sink = JsonFileLogger(Path("logs/monitoring/events.log"), bus)
    per_npc = JsonFileLogger(Path("logs/npc/baker.log"), bus, agent_id="baker")
    ...
    sink.close()

Each line of the sink is MonitoringEvent.to_dict() as JSON.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .bus import EventBus
from .events import EventType, MonitoringEvent

_log = logging.getLogger(__name__)


class JsonFileLogger:
    """
    Appends matching bus events to `path`, one JSON object per line.

    Filters are passed straight to EventBus.subscribe(). Write errors are
    logged once per logger and the line is dropped; agents keep running.
    """

    def __init__(
        self,
        path: Path,
        bus: EventBus,
        *,
        agent_id: Optional[str] = None,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> None:
        self._path = path
        self._bus = bus
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = path.open("a", encoding="utf-8")
        self._write_failed = False
        self.lines_written = 0
        bus.subscribe(self._on_event, agent_id=agent_id, event_types=event_types)

    @property
    def path(self) -> Path:
        return self._path

    def _on_event(self, event: MonitoringEvent) -> None:
        line = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
        try:
            self._file.write(line + "\n")
            self._file.flush()
        except (OSError, ValueError):
            if not self._write_failed:
                _log.warning("JsonFileLogger could not write to %s; dropping events", self._path)
            self._write_failed = True
            return
        self.lines_written += 1

    def close(self) -> None:
        """Unsubscribe and close the file. Safe to call twice."""
        self._bus.unsubscribe(self._on_event)
        if not self._file.closed:
            self._file.close()


def log_event(
    bus: EventBus,
    module: str,
    event_type: EventType,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> MonitoringEvent:
    """
    Build a MonitoringEvent stamped with wall-clock time and publish it.

    `correlation_id` is the agent id for per-NPC events; None for global ones.
    Returns the published event.
    """
    event = MonitoringEvent(
        ts=time.time(),
        module=module,
        event_type=event_type,
        message=message,
        payload=payload or {},
        correlation_id=correlation_id,
    )
    bus.publish(event)
    return event
