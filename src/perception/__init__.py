"""
Perception: periodic scans of nearby entities plus environment synthesis.
"""

from .component import MIN_VISION_RADIUS, PerceptionComponent, PerceptionStatus
from .classify import classify, stable_id
from .environment import EnvironmentState, TemporalState
from .spatial import SpatialGrid, cluster_objects, distance_band

__all__ = [
    "MIN_VISION_RADIUS",
    "PerceptionComponent",
    "PerceptionStatus",
    "classify",
    "stable_id",
    "EnvironmentState",
    "TemporalState",
    "SpatialGrid",
    "cluster_objects",
    "distance_band",
]
