# src/env/schema.py
"""
Configuration dataclasses for the cognition core.

Every threshold in the core is configuration: these defaults are a
reasonable starting point, not product intent. Each class has a
`from_dict` that ignores unknown keys so YAML files can carry comments
and future settings without breaking older code.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

C = TypeVar("C")


def _from_mapping(cls: Type[C], data: Optional[Mapping[str, Any]]) -> C:
    """Build dataclass `cls` from the keys of `data` it knows about."""
    if not data:
        return cls()
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PerceptionConfig:
    vision_radius: float = 80.0
    update_interval: float = 0.5          # seconds of accumulated delta between scans
    grid_cell_size: float = 32.0
    cluster_radius: float = 20.0
    moving_speed_threshold: float = 1.0   # speed above which an entity counts as moving
    significant_change_threshold: int = 2
    noise_moving_moderate: int = 2        # moving objects for "moderate" noise
    noise_moving_loud: int = 5
    crowd_npc_moderate: int = 3           # npcs in range for "moderate" crowd
    crowd_npc_crowded: int = 6
    excluded_tags: tuple = ("terrain", "structure", "wall", "ground")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PerceptionConfig":
        cfg = _from_mapping(cls, data)
        cfg.excluded_tags = tuple(cfg.excluded_tags)
        return cfg


@dataclass
class ExecutionConfig:
    movement_speed: float = 50.0          # units per second
    arrival_threshold: float = 5.0
    default_wait_duration: float = 2.0
    default_interact_duration: float = 1.5
    history_size: int = 20
    interruption_history_size: int = 10
    stuck_timeout: float = 3.0            # seconds without progress before a move fails
    stuck_epsilon: float = 0.01

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ExecutionConfig":
        return _from_mapping(cls, data)


@dataclass
class InflectionConfig:
    cooldown: float = 5.0
    routine_interval: float = 15.0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "InflectionConfig":
        return _from_mapping(cls, data)


@dataclass
class DecisionConfig:
    agent_cooldown: float = 3.0           # per-agent minimum spacing of oracle requests
    cache_expiry: float = 30.0
    cache_max_entries: int = 100
    request_timeout: float = 30.0
    retry_queue_size: int = 32
    max_prompt_objects: int = 8           # nearby objects listed in the prompt
    # server -> tools the oracle may name; anything else is rejected before dispatch
    allowed_tools: Dict[str, List[str]] = field(
        default_factory=lambda: {
            "execution": [
                "move_to",
                "wait",
                "face_direction",
                "interact_with",
                "interrupt_action",
                "clear_queue",
            ],
        }
    )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DecisionConfig":
        cfg = _from_mapping(cls, data)
        cfg.allowed_tools = {str(k): [str(t) for t in v] for k, v in dict(cfg.allowed_tools).items()}
        return cfg


@dataclass
class OracleConfig:
    base_url: str = "http://localhost:11434"
    endpoint: str = "/api/generate"
    model: str = "llama3.2"
    timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "OracleConfig":
        return _from_mapping(cls, data)

    @property
    def url(self) -> str:
        return self.base_url.rstrip("/") + "/" + self.endpoint.lstrip("/")


@dataclass
class CoreConfig:
    """Top-level resolved configuration."""
    perception: PerceptionConfig = field(default_factory=PerceptionConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    inflection: InflectionConfig = field(default_factory=InflectionConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CoreConfig":
        data = data or {}
        return cls(
            perception=PerceptionConfig.from_dict(data.get("perception")),
            execution=ExecutionConfig.from_dict(data.get("execution")),
            inflection=InflectionConfig.from_dict(data.get("inflection")),
            decision=DecisionConfig.from_dict(data.get("decision")),
            oracle=OracleConfig.from_dict(data.get("oracle")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
