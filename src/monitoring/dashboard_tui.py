# rich-based TUI dashboard
#src/monitoring/dashboard_tui.py
"""
Terminal dashboard for running NPC agents.

Subscribes to the monitoring EventBus and renders, per agent:

- Execution: status, current action, queue length
- Inflection: last trigger set
- Decision: last dispatched tool (or failure) and cache hits

Plus a bottom panel with the most recent events across all agents.
This runs entirely offline.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .bus import EventBus, default_bus
from .events import EventType, MonitoringEvent


def _blank_agent() -> Dict[str, Any]:
    return {
        "status": "idle",
        "current_action": None,
        "queued": 0,
        "triggers": [],
        "last_decision": None,
        "last_failure": None,
        "cache_hits": 0,
        "nearby": 0,
    }


class TuiDashboard:
    """
    Live terminal dashboard bound to a monitoring.EventBus.

    Event handling only updates an in-memory dict; rendering happens on the
    dashboard's own thread in run().
    """

    def __init__(self, bus: EventBus, *, recent_events: int = 12) -> None:
        self._bus = bus
        self._console = Console()
        self._lock = threading.Lock()
        self._agents: Dict[str, Dict[str, Any]] = {}
        self._recent: Deque[MonitoringEvent] = deque(maxlen=recent_events)
        self._bus.subscribe(self._on_event)

    def close(self) -> None:
        self._bus.unsubscribe(self._on_event)

    # --------------------------------------------------------
    # Event handler
    # --------------------------------------------------------

    def _on_event(self, event: MonitoringEvent) -> None:
        with self._lock:
            self._recent.append(event)
            if event.correlation_id is None:
                return
            state = self._agents.setdefault(event.correlation_id, _blank_agent())
            self._apply(state, event)

    @staticmethod
    def _apply(state: Dict[str, Any], event: MonitoringEvent) -> None:
        et = event.event_type
        payload = event.payload

        if et == EventType.ACTION_QUEUED:
            state["queued"] = payload.get("queue_length", state["queued"])

        elif et == EventType.ACTION_STARTED:
            action = payload.get("action") or {}
            state["current_action"] = action.get("type")
            state["status"] = payload.get("status", state["status"])
            state["queued"] = payload.get("queue_length", state["queued"])

        elif et in (EventType.ACTION_COMPLETED, EventType.ACTION_INTERRUPTED):
            state["current_action"] = None
            state["status"] = payload.get("status", state["status"])
            state["queued"] = payload.get("queue_length", state["queued"])

        elif et == EventType.PERCEPTION_UPDATED:
            state["nearby"] = payload.get("objects", state["nearby"])

        elif et == EventType.DECISION_TRIGGERED:
            state["triggers"] = list(payload.get("triggers") or [])

        elif et == EventType.DECISION_RECEIVED:
            state["last_decision"] = {
                "tool": f"{payload.get('server')}.{payload.get('tool')}",
                "reason": payload.get("reason"),
                "from_cache": payload.get("from_cache", False),
            }
            state["last_failure"] = None

        elif et == EventType.DECISION_CACHE_HIT:
            state["cache_hits"] += 1

        elif et == EventType.DECISION_FAILED:
            state["last_failure"] = {
                "error": payload.get("error", "unknown"),
                "message": payload.get("message"),
            }

    # --------------------------------------------------------
    # Rendering
    # --------------------------------------------------------

    def agent_state(self, agent_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            state = self._agents.get(agent_id)
            return dict(state) if state is not None else None

    def _render_agents_panel(self) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Agent", style="bold")
        table.add_column("Status")
        table.add_column("Action")
        table.add_column("Queue", justify="right")
        table.add_column("Nearby", justify="right")
        table.add_column("Triggers")
        table.add_column("Last decision")

        with self._lock:
            agents = {k: dict(v) for k, v in self._agents.items()}

        if not agents:
            table.add_row("<none>", "-", "-", "-", "-", "-", "-")
        for agent_id in sorted(agents):
            st = agents[agent_id]
            if st["last_failure"]:
                decision = f"[bold red]{st['last_failure']['error']}[/bold red]"
            elif st["last_decision"]:
                d = st["last_decision"]
                decision = d["tool"] + (" (cached)" if d["from_cache"] else "")
            else:
                decision = "-"
            table.add_row(
                agent_id,
                str(st["status"]),
                str(st["current_action"] or "-"),
                str(st["queued"]),
                str(st["nearby"]),
                ", ".join(st["triggers"]) or "-",
                decision,
            )

        return Panel(table, title="Agents", border_style="cyan")

    def _render_events_panel(self) -> Panel:
        with self._lock:
            recent = list(self._recent)

        txt = Text()
        if not recent:
            txt.append("No events yet")
        for event in reversed(recent):
            stamp = time.strftime("%H:%M:%S", time.localtime(event.ts))
            txt.append(f"{stamp} ", style="dim")
            txt.append(f"{event.event_type.name:<20}", style="bold")
            txt.append(f" {event.correlation_id or '-'}: {event.message}\n")

        return Panel(txt, title="Recent Events", border_style="yellow")

    def _build_layout(self) -> Layout:
        layout = Layout()
        layout.split(
            Layout(name="agents", ratio=2),
            Layout(name="events", ratio=1),
        )
        layout["agents"].update(self._render_agents_panel())
        layout["events"].update(self._render_events_panel())
        return layout

    # --------------------------------------------------------
    # Main loop
    # --------------------------------------------------------

    def run(self, refresh_per_second: float = 4.0, stop: Optional[threading.Event] = None) -> None:
        """
        Run the TUI loop until `stop` is set (or forever).

        This blocks the current thread. Use a separate thread if needed.
        """
        refresh_delay = 1.0 / max(refresh_per_second, 0.1)
        with Live(self._build_layout(), console=self._console, refresh_per_second=refresh_per_second) as live:
            while stop is None or not stop.is_set():
                live.update(self._build_layout())
                time.sleep(refresh_delay)


def run_dashboard_with_default_bus() -> None:
    """Spawn a dashboard bound to monitoring.bus.default_bus."""
    dashboard = TuiDashboard(default_bus)
    dashboard.run()


if __name__ == "__main__":
    run_dashboard_with_default_bus()
