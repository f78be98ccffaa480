"""Configuration loading for the cognition core."""

from .schema import (
    CoreConfig,
    PerceptionConfig,
    ExecutionConfig,
    InflectionConfig,
    DecisionConfig,
    OracleConfig,
)
from .loader import load_core_config

__all__ = [
    "CoreConfig",
    "PerceptionConfig",
    "ExecutionConfig",
    "InflectionConfig",
    "DecisionConfig",
    "OracleConfig",
    "load_core_config",
]
