"""
Inflection: when should an agent ask for a new decision.
"""

from .triggers import (
    CONTEXT_CHANGED,
    ENVIRONMENT_CHANGED,
    IDLE,
    NEEDS_CHANGED,
    ROUTINE_CHECK,
    InflectionComponent,
    state_digest,
)

__all__ = [
    "CONTEXT_CHANGED",
    "ENVIRONMENT_CHANGED",
    "IDLE",
    "NEEDS_CHANGED",
    "ROUTINE_CHECK",
    "InflectionComponent",
    "state_digest",
]
