# src/contracts/collaborators.py
"""
Interfaces for the collaborators the core consumes but does not implement.

Host engines provide concrete implementations; tests use testing.fakes.
Everything here is injected at construction time, never discovered at
runtime by name.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Protocol

from .types import Vec2, WorldEntity


TimeTickFn = Callable[[int, int, int], None]


class WorldQuery(Protocol):
    """Spatial queries against the host world."""

    def entities_within(self, center: Vec2, radius: float) -> List[WorldEntity]:
        """All entities whose position lies within `radius` of `center`."""
        ...

    def line_of_sight(self, origin: Vec2, target: Vec2) -> bool:
        """True if nothing solid blocks the segment origin -> target."""
        ...


class Mover(Protocol):
    """Applies velocity and resolves collisions; physics semantics are opaque."""

    def apply_velocity(self, position: Vec2, velocity: Vec2, delta: float) -> Vec2:
        """Return the agent's position after moving for `delta` seconds."""
        ...


class TimeSource(Protocol):
    """Day/night notifier that pushes time_tick(day, hour, minute) events."""

    def subscribe(self, callback: TimeTickFn) -> None:
        ...


class OracleTransport(Protocol):
    """
    Asynchronous request channel to the decision oracle.

    `submit` must return immediately; the future resolves to the raw
    `response` text or raises TransportFailure.
    """

    def submit(self, prompt: str) -> "Future[str]":
        ...


class Subsystem(Protocol):
    """
    Minimal state-holder interface for needs / emotion / goals / memory
    and friends. These carry no logic of their own in this core.
    """

    @property
    def is_active(self) -> bool:
        ...

    def initialize(self) -> None:
        ...

    def get_state(self) -> Dict[str, Any]:
        ...
