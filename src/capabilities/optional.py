# src/capabilities/optional.py
"""
Optional collaborators and stub state holders.

Capability
    Present(handle) | Absent, resolved once when an agent is built. Code that
    consumes an optional feature asks the Capability, never the object itself.

StaticSubsystem
    Minimal Subsystem (needs, emotion, goals, memory, social, ...). It holds a
    state dict and nothing else; context building treats every subsystem the
    same way whether it exists or not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# Names the decision context knows how to read. Order is the prompt order.
STANDARD_SUBSYSTEMS = (
    "identity",
    "needs",
    "goals",
    "emotion",
    "memory",
    "social",
    "reputation",
    "resource",
    "theory_of_mind",
)


# ---------------------------------------------------------------------------
# Capability sum type
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Present(Generic[T]):
    handle: T

    @property
    def present(self) -> bool:
        return True

    def map(self, fn: Callable[[T], R], default: R) -> R:
        return fn(self.handle)


@dataclass(frozen=True)
class Absent:
    @property
    def present(self) -> bool:
        return False

    def map(self, fn: Callable[[Any], R], default: R) -> R:
        return default


Capability = Union[Present[T], Absent]

ABSENT = Absent()


def resolve(handle: Optional[T]) -> "Capability[T]":
    """Wrap an optional collaborator once, at construction time."""
    return ABSENT if handle is None else Present(handle)


# ---------------------------------------------------------------------------
# Stub subsystems
# ---------------------------------------------------------------------------


class StaticSubsystem:
    """
    State holder implementing the Subsystem protocol.

    `set_state` replaces or merges values; the decision layer only reads
    through get_state().
    """

    def __init__(self, name: str, state: Optional[Mapping[str, Any]] = None) -> None:
        self.name = name
        self._state: Dict[str, Any] = dict(state or {})
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def initialize(self) -> None:
        self._active = True
        logger.debug("Subsystem %s initialized", self.name)

    def shutdown(self) -> None:
        self._active = False

    def get_state(self) -> Dict[str, Any]:
        return dict(self._state)

    def set_state(self, state: Mapping[str, Any], *, merge: bool = True) -> None:
        if merge:
            self._state.update(state)
        else:
            self._state = dict(state)


def subsystem_state(capability: "Capability[Any]") -> Dict[str, Any]:
    """
    State of an optional subsystem, or {} when absent or inactive.
    """
    return capability.map(
        lambda sub: sub.get_state() if sub.is_active else {},
        {},
    )
