# src/perception/component.py
"""
Perception component.

Builds a periodic snapshot of nearby entities, environmental conditions and
time-of-day, and exposes it through the capability registry.

State machine:

    IDLE --(accumulated delta >= update_interval)--> SCANNING --> IDLE

Scans are driven by the delta passed to update(), not by wall clock, so a
paused host does not perceive. Time of day is pushed in by the day/night
notifier (time_tick), never polled.

This component does NOT:
  - track identity across scans (objects are rebuilt wholesale)
  - decide anything; Inflection and the orchestrator read its outputs
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from capabilities.registry import CapabilityRegistry
from contracts.collaborators import TimeSource, WorldQuery
from contracts.types import PerceivedObject, Vec2, WorldEntity
from env.schema import PerceptionConfig
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .classify import classify, has_excluded_tag, unique_id
from .environment import EnvironmentState, TemporalState, synthesize_environment
from .spatial import SpatialGrid, cluster_objects, distance_band

log = logging.getLogger(__name__)


# Configuration cannot shrink the vision radius below this.
MIN_VISION_RADIUS = 10.0

SUBSYSTEM_NAME = "perception"


class PerceptionStatus(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class PerceptionComponent(CapabilityRegistry):
    """
    Periodic scanner over a WorldQuery.

    Parameters
    ----------
    world:
        Spatial query collaborator.
    position_provider:
        Returns the agent's current position (usually ExecutionComponent.position).
    self_instance_id:
        The agent's own entity handle, excluded from scans.
    time_source:
        Optional day/night notifier; subscribed to once here.
    """

    def __init__(
        self,
        world: WorldQuery,
        position_provider: Callable[[], Vec2],
        *,
        self_instance_id: Optional[int] = None,
        time_source: Optional[TimeSource] = None,
        config: Optional[PerceptionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
        agent_id: Optional[str] = None,
    ) -> None:
        super().__init__(SUBSYSTEM_NAME, bus=bus, agent_id=agent_id)

        self._cfg = config if config is not None else PerceptionConfig()
        self._world = world
        self._position_provider = position_provider
        self._self_instance_id = self_instance_id
        self._clock = clock

        self.vision_radius = self._cfg.vision_radius

        self.status = PerceptionStatus.IDLE
        self._accumulator = 0.0
        self.scan_count = 0
        self.last_scan_at: Optional[float] = None

        self._objects: List[PerceivedObject] = []
        self._grid = SpatialGrid(self._cfg.grid_cell_size)
        self.temporal = TemporalState()
        self.environment = EnvironmentState()

        self._last_type_counts: Counter = Counter()
        self._significant_change = False

        if time_source is not None:
            time_source.subscribe(self.on_time_tick)

        self._register_capabilities()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def vision_radius(self) -> float:
        return self._vision_radius

    @vision_radius.setter
    def vision_radius(self, value: float) -> None:
        value = float(value)
        if value < MIN_VISION_RADIUS:
            log.warning(
                "vision_radius %.1f below minimum; clamped to %.1f", value, MIN_VISION_RADIUS
            )
            value = MIN_VISION_RADIUS
        self._vision_radius = value

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def update(self, delta: float) -> bool:
        """
        Accumulate `delta` seconds; scan when the update interval is reached.

        Returns True if a scan ran.
        """
        if not self.is_active:
            return False
        self._accumulator += max(0.0, delta)
        if self._accumulator < self._cfg.update_interval:
            return False
        self._accumulator = 0.0
        self.scan()
        return True

    def on_time_tick(self, day: int, hour: int, minute: int) -> None:
        """Day/night notifier callback."""
        self.temporal = TemporalState(day=int(day), hour=int(hour) % 24, minute=int(minute) % 60, received=True)

    def scan(self) -> List[PerceivedObject]:
        """Run one full scan and rebuild all derived state."""
        self.status = PerceptionStatus.SCANNING
        try:
            origin = self._position_provider()
            now = self._clock()
            raw = self._world.entities_within(origin, self.vision_radius)

            objects: List[PerceivedObject] = []
            taken: Set[str] = set()
            for entity in raw:
                if self._self_instance_id is not None and entity.instance_id == self._self_instance_id:
                    continue
                if has_excluded_tag(entity, self._cfg.excluded_tags):
                    continue
                obj = self._perceive(entity, origin, now, taken)
                if obj.distance <= self.vision_radius:
                    objects.append(obj)

            objects.sort(key=lambda o: o.distance)
            self._objects = objects
            self._grid.rebuild(objects)
            self.environment = synthesize_environment(
                objects,
                self.temporal,
                noise_moderate=self._cfg.noise_moving_moderate,
                noise_loud=self._cfg.noise_moving_loud,
                crowd_moderate=self._cfg.crowd_npc_moderate,
                crowd_crowded=self._cfg.crowd_npc_crowded,
            )
            self._detect_significant_change(objects)

            self.scan_count += 1
            self.last_scan_at = now
        finally:
            self.status = PerceptionStatus.IDLE

        log_event(
            bus=self._bus,
            module=SUBSYSTEM_NAME,
            event_type=EventType.PERCEPTION_UPDATED,
            message="Perception scan complete",
            payload={
                "objects": len(self._objects),
                "environment": self.environment.signature,
                "significant_change": self._significant_change,
            },
            correlation_id=self.agent_id,
        )
        return list(self._objects)

    def _perceive(
        self, entity: WorldEntity, origin: Vec2, now: float, taken: Set[str]
    ) -> PerceivedObject:
        rel = entity.position - origin
        speed = entity.velocity.length()
        return PerceivedObject(
            id=unique_id(entity, taken),
            type=classify(entity),
            position=entity.position,
            relative_position=rel,
            distance=rel.length(),
            direction=rel.normalized(),
            velocity=entity.velocity,
            is_moving=speed > self._cfg.moving_speed_threshold,
            timestamp=now,
            properties={"name": entity.name, "tags": list(entity.tags), **entity.properties},
        )

    def _detect_significant_change(self, objects: List[PerceivedObject]) -> None:
        counts = Counter(o.type for o in objects)
        if self.scan_count > 0:
            appeared_or_vanished = set(counts) ^ set(self._last_type_counts)
            delta = sum(abs(counts[k] - self._last_type_counts[k]) for k in set(counts) | set(self._last_type_counts))
            if appeared_or_vanished or delta >= self._cfg.significant_change_threshold:
                self._significant_change = True
        self._last_type_counts = counts

    # ------------------------------------------------------------------
    # Queries used by the agent / inflection
    # ------------------------------------------------------------------

    @property
    def objects(self) -> List[PerceivedObject]:
        return list(self._objects)

    def consume_significant_change(self) -> bool:
        """Return and clear the significant-change flag."""
        changed = self._significant_change
        self._significant_change = False
        return changed

    def environment_signature(self) -> str:
        return self.environment.signature

    # ------------------------------------------------------------------
    # Tool implementations
    # ------------------------------------------------------------------

    def get_nearby_objects(
        self, filter_type: Optional[str] = None, max_distance: Optional[float] = None
    ) -> Dict[str, Any]:
        if max_distance is not None:
            candidates = self._grid.query(Vec2(0.0, 0.0), float(max_distance))
            candidates.sort(key=lambda o: o.distance)
        else:
            candidates = list(self._objects)
        if filter_type:
            candidates = [o for o in candidates if o.type == filter_type]

        by_type = Counter(o.type for o in candidates)
        by_distance, by_movement = self._bands(candidates)
        distances = [o.distance for o in candidates]
        return {
            "objects": [o.to_dict() for o in candidates],
            "summary": {
                "count": len(candidates),
                "by_type": dict(by_type),
                "by_distance": by_distance,
                "by_movement": by_movement,
                "moving": by_movement["moving"],
                "stationary": by_movement["stationary"],
                "closest_distance": round(min(distances), 2) if distances else 0.0,
                "furthest_distance": round(max(distances), 2) if distances else 0.0,
            },
        }

    def find_object(
        self, object_id: Optional[str] = None, object_type: Optional[str] = None
    ) -> Dict[str, Any]:
        """Nearest object matching the id and/or type given."""
        for obj in self._objects:
            if object_id is not None and obj.id != object_id:
                continue
            if object_type is not None and obj.type != object_type:
                continue
            return {"found": True, "object": obj.to_dict()}
        return {"found": False, "object": None}

    def _bands(self, objects: List[PerceivedObject]) -> Tuple[Dict[str, int], Dict[str, int]]:
        by_distance = {"close": 0, "medium": 0, "far": 0}
        by_movement = {"moving": 0, "stationary": 0}
        for obj in objects:
            by_distance[distance_band(obj.distance, self.vision_radius)] += 1
            by_movement["moving" if obj.is_moving else "stationary"] += 1
        return by_distance, by_movement

    def get_spatial_analysis(self) -> Dict[str, Any]:
        by_distance, by_movement = self._bands(self._objects)
        return {
            "total": len(self._objects),
            "by_type": dict(Counter(o.type for o in self._objects)),
            "by_distance": by_distance,
            "by_movement": by_movement,
            "clusters": cluster_objects(self._objects, self._cfg.cluster_radius),
        }

    def check_line_of_sight(self, target_id: str) -> Dict[str, Any]:
        match = self.find_object(object_id=target_id)
        if not match["found"]:
            return {"target_id": target_id, "found": False, "visible": False}
        target = next(o for o in self._objects if o.id == target_id)
        visible = bool(self._world.line_of_sight(self._position_provider(), target.position))
        return {"target_id": target_id, "found": True, "visible": visible}

    # ------------------------------------------------------------------
    # Resource snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "vision_radius": self.vision_radius,
            "scan_count": self.scan_count,
            "last_scan_at": self.last_scan_at,
            "position": self._position_provider().to_dict(),
            "environment": self.environment.to_dict(),
            "temporal": self.temporal.to_dict(),
            "objects": [o.to_dict() for o in self._objects],
            "analysis": self.get_spatial_analysis(),
        }

    # ------------------------------------------------------------------
    # Capability registration
    # ------------------------------------------------------------------

    def _register_capabilities(self) -> None:
        self.register_tool(
            "get_nearby_objects",
            "List perceived objects sorted by distance, with a summary.",
            parameters={
                "filter_type": {"type": "string", "description": "Only objects of this type"},
                "max_distance": {"type": "number", "description": "Only objects within this distance"},
            },
            handler=lambda a: self.get_nearby_objects(a.get("filter_type"), a.get("max_distance")),
        )
        self.register_tool(
            "find_object",
            "Find the nearest object by id and/or type.",
            parameters={
                "id": {"type": "string", "description": "Object id"},
                "type": {"type": "string", "description": "Object type"},
            },
            handler=lambda a: self.find_object(a.get("id"), a.get("type")),
        )
        self.register_tool(
            "get_spatial_analysis",
            "Counts by type, distance band and movement, plus clusters.",
            handler=lambda a: self.get_spatial_analysis(),
        )
        self.register_tool(
            "check_line_of_sight",
            "Whether a perceived object is visible from the agent.",
            parameters={"target_id": {"type": "string", "description": "Object id"}},
            required=["target_id"],
            handler=lambda a: self.check_line_of_sight(a["target_id"]),
        )

        self.register_resource("perception_state", "Full perception snapshot.", handler=self.snapshot)
        self.register_resource(
            "environment", "Lighting, noise, crowd and time of day.",
            handler=lambda: self.environment.to_dict(),
        )
        self.register_resource(
            "temporal", "Day, hour, minute and period.",
            handler=lambda: self.temporal.to_dict(),
        )
        self.register_resource(
            "objects", "Raw perceived object list.",
            handler=lambda: [o.to_dict() for o in self._objects],
        )
        self.register_resource(
            "spatial_grid", "Occupied grid cells around the agent.",
            handler=self._grid.summary,
        )
