"""
Execution: priority action queue and per-action state machines.
"""

from .component import ExecutionComponent, ExecutionStatus, KinematicMover
from .estimates import estimate_duration, estimate_total
from .queue import ActionQueue

__all__ = [
    "ExecutionComponent",
    "ExecutionStatus",
    "KinematicMover",
    "ActionQueue",
    "estimate_duration",
    "estimate_total",
]
