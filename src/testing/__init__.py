# src/testing/__init__.py

"""
Fakes for exercising the cognition core without a game engine or oracle.

Used by tests/ and tools/npc_demo.py.
"""

from .fakes import (
    FakeMover,
    FakeOracleTransport,
    FakeTimeSource,
    FakeWorld,
    ManualClock,
    ScriptedOracleTransport,
    entity,
)

__all__ = [
    "FakeMover",
    "FakeOracleTransport",
    "FakeTimeSource",
    "FakeWorld",
    "ManualClock",
    "ScriptedOracleTransport",
    "entity",
]
