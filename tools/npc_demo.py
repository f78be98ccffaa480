# Path: tools/npc_demo.py

from __future__ import annotations

import argparse
import itertools
import json
import logging
from pathlib import Path
from typing import Iterator, Optional

from agent.bootstrap import NpcWorldLoop, build_agent, build_orchestrator
from agent.logging_config import configure_logging
from contracts.collaborators import OracleTransport
from contracts.types import Vec2
from env.loader import load_core_config
from monitoring.bus import default_bus
from monitoring.events import EventType, MonitoringEvent
from monitoring.logger import JsonFileLogger
from testing.fakes import FakeTimeSource, FakeWorld, ScriptedOracleTransport, entity


def _scripted_replies() -> Iterator[str]:
    """Cycle of plausible oracle answers for an offline village."""
    replies = [
        {"tool": "move_to", "server": "execution", "reason": "walk to the well", "args": {"x": 40, "y": 10}},
        {"tool": "interact_with", "server": "execution", "reason": "draw water", "args": {"target_id": "well", "duration": 2}},
        {"tool": "face_direction", "server": "execution", "reason": "look at the square", "args": {"direction": "north"}},
        {"tool": "wait", "server": "execution", "reason": "rest a moment", "args": {"duration": 3}},
        {"tool": "move_to", "server": "execution", "reason": "head back to the bakery", "args": {"x": 0, "y": 0}},
    ]
    return itertools.cycle(json.dumps(r) for r in replies)


def _build_world() -> FakeWorld:
    return FakeWorld(
        [
            entity(100, "Well", 42.0, 12.0, tags=["object"]),
            entity(101, "Guard", 20.0, -15.0, vx=2.0, tags=["npc"]),
            entity(102, "Torch", 5.0, 30.0, tags=["light"]),
            entity(103, "Chicken", -25.0, 8.0, vx=3.0, tags=["animal"]),
        ]
    )


def _print_event(event: MonitoringEvent) -> None:
    if event.event_type in (EventType.DECISION_RECEIVED, EventType.DECISION_FAILED, EventType.ACTION_COMPLETED):
        print(f"[{event.correlation_id}] {event.event_type.name}: {event.message}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run NPC agents in a fake village (offline by default).")
    parser.add_argument("--seconds", type=float, default=60.0, help="Simulated seconds to run.")
    parser.add_argument("--delta", type=float, default=0.25, help="Seconds per host tick.")
    parser.add_argument("--agents", type=int, default=2, help="Number of NPCs.")
    parser.add_argument("--config", type=Path, default=None, help="Path to an npc_core.yaml.")
    parser.add_argument(
        "--live-oracle",
        action="store_true",
        help="Send prompts to the oracle in the config instead of scripted replies.",
    )
    parser.add_argument("--log-dir", type=Path, default=None, help="Write events.log and oracle calls here.")
    parser.add_argument("--verbose", action="store_true", help="DEBUG logging.")
    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_core_config(args.config)

    # Simulated clock so the demo runs as fast as the CPU allows.
    now = [0.0]

    def clock() -> float:
        return now[0]

    transport: Optional[OracleTransport] = None
    if not args.live_oracle:
        replies = _scripted_replies()
        transport = ScriptedOracleTransport(reply_fn=lambda prompt: next(replies))

    event_logger: Optional[JsonFileLogger] = None
    if args.log_dir is not None:
        event_logger = JsonFileLogger(args.log_dir / "events.log", default_bus)

    orchestrator = build_orchestrator(
        config,
        transport=transport,
        log_dir=args.log_dir / "oracle" if args.log_dir is not None else None,
        clock=clock,
        bus=default_bus,
    )
    default_bus.subscribe(_print_event)

    world = _build_world()
    time_source = FakeTimeSource()
    loop = NpcWorldLoop(orchestrator, bus=default_bus)
    for i in range(args.agents):
        loop.add(
            build_agent(
                f"villager-{i + 1}",
                world=world,
                config=config,
                orchestrator=orchestrator,
                position=Vec2(i * 10.0, 0.0),
                time_source=time_source,
                identity={"name": f"Villager {i + 1}", "role": "villager"},
                subsystem_states={"needs": {"thirst": 0.6}, "goals": {"summary": "keep the bakery stocked"}},
                clock=clock,
                bus=default_bus,
            )
        )

    steps = int(args.seconds / args.delta)
    for _ in range(steps):
        now[0] += args.delta
        # One in-game minute per simulated second, starting at 06:00.
        minutes = 6 * 60 + int(now[0])
        time_source.emit(1 + minutes // (24 * 60), (minutes // 60) % 24, minutes % 60)
        loop.tick(args.delta)

    print("\n=== Final state ===")
    for agent in loop.agents:
        state = agent.debug_state()
        execution = state["execution"]
        print(
            f"{agent.agent_id}: status={execution['status']} "
            f"position={execution['movement']['position']} "
            f"completed={execution['totals']['completed']} failed={execution['totals']['failed']}"
        )
    print("orchestrator:", json.dumps(orchestrator.snapshot(), indent=2))

    if event_logger is not None:
        event_logger.close()


if __name__ == "__main__":
    main()
