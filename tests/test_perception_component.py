#tests/test_perception_component.py
"""
Tests for perception.component.PerceptionComponent.

Covers:
- empty scans
- the radius-80 / npc-at-40 scenario
- update interval accumulation
- excluded tags and self exclusion
- significant change detection
- time ticks and environment synthesis
- tools through the registry
"""

from __future__ import annotations

from typing import List

from contracts.types import Vec2
from env.schema import PerceptionConfig
from monitoring.bus import EventBus
from monitoring.events import EventType, MonitoringEvent
from perception.component import MIN_VISION_RADIUS, PerceptionComponent
from testing.fakes import FakeTimeSource, FakeWorld, ManualClock, entity


def make_perception(world: FakeWorld, **cfg) -> PerceptionComponent:
    return PerceptionComponent(
        world,
        lambda: Vec2(0.0, 0.0),
        self_instance_id=1,
        config=PerceptionConfig(**cfg),
        clock=ManualClock(),
        bus=EventBus(),
        agent_id="npc-1",
    )


def test_zero_entities_gives_zero_counts():
    perception = make_perception(FakeWorld())
    perception.scan()

    nearby = perception.invoke_tool("get_nearby_objects", {})
    assert nearby["objects"] == []
    assert nearby["summary"]["count"] == 0
    assert nearby["summary"]["moving"] == 0
    assert nearby["summary"]["closest_distance"] == 0.0

    analysis = perception.invoke_tool("get_spatial_analysis", {})
    assert analysis["total"] == 0
    assert analysis["by_distance"] == {"close": 0, "medium": 0, "far": 0}
    assert analysis["by_movement"] == {"moving": 0, "stationary": 0}
    assert analysis["clusters"] == []


def test_moving_npc_at_half_radius_counts_as_medium_and_moving():
    world = FakeWorld([entity(2, "Villager", 40.0, 0.0, vx=3.0, tags=["npc"])])
    perception = make_perception(world, vision_radius=80.0)
    perception.scan()

    nearby = perception.get_nearby_objects()
    assert len(nearby["objects"]) == 1
    obj = nearby["objects"][0]
    assert obj["type"] == "npc"
    assert obj["distance"] == 40.0
    assert obj["is_moving"] is True
    assert nearby["summary"]["by_distance"] == {"close": 0, "medium": 1, "far": 0}
    assert nearby["summary"]["by_movement"]["moving"] == 1

    analysis = perception.get_spatial_analysis()
    assert analysis["by_distance"]["medium"] == 1
    assert analysis["by_movement"]["moving"] == 1


def test_scan_skips_self_excluded_tags_and_out_of_range():
    world = FakeWorld(
        [
            entity(1, "Me", 0.0, 0.0, tags=["npc"]),
            entity(2, "Stone Wall", 5.0, 0.0, tags=["wall"]),
            entity(3, "Lamp Post", 10.0, 0.0),
            entity(4, "Far Guard", 500.0, 0.0),
        ]
    )
    perception = make_perception(world)
    objects = perception.scan()

    assert [o.id for o in objects] == ["lamp_post"]
    assert objects[0].type == "light_source"
    assert perception.environment.lighting == "artificial"


def test_duplicate_names_get_distinct_ids():
    world = FakeWorld([entity(2, "Guard", 10.0, 0.0), entity(3, "Guard", 20.0, 0.0)])
    perception = make_perception(world)
    ids = [o.id for o in perception.scan()]
    assert ids == ["guard", "guard_3"]


def test_update_scans_only_after_interval():
    world = FakeWorld()
    perception = make_perception(world, update_interval=0.5)

    assert perception.update(0.2) is False
    assert perception.update(0.2) is False
    assert perception.update(0.2) is True
    assert perception.scan_count == 1
    assert world.queries == 1


def test_inactive_perception_does_not_scan():
    world = FakeWorld()
    perception = make_perception(world, update_interval=0.1)
    perception.deactivate()
    assert perception.update(1.0) is False
    assert world.queries == 0


def test_vision_radius_is_clamped():
    perception = make_perception(FakeWorld(), vision_radius=2.0)
    assert perception.vision_radius == MIN_VISION_RADIUS


def test_significant_change_flag_is_consumed_once():
    world = FakeWorld([entity(2, "Villager", 10.0, 0.0)])
    perception = make_perception(world)

    perception.scan()
    assert perception.consume_significant_change() is False

    world.add(entity(3, "Goblin", 30.0, 0.0))
    perception.scan()
    assert perception.consume_significant_change() is True
    assert perception.consume_significant_change() is False

    perception.scan()
    assert perception.consume_significant_change() is False


def test_time_ticks_drive_temporal_state_and_lighting():
    source = FakeTimeSource()
    perception = PerceptionComponent(
        FakeWorld(),
        lambda: Vec2(0.0, 0.0),
        time_source=source,
        clock=ManualClock(),
        bus=EventBus(),
    )

    source.emit(3, 22, 15)
    perception.scan()

    temporal = perception.read_resource("temporal")
    assert temporal["day"] == 3
    assert temporal["time_string"] == "22:15"
    assert temporal["period"] == "night"
    assert perception.environment.lighting == "dim"


def test_crowd_and_noise_levels():
    world = FakeWorld([entity(10 + i, f"Villager {i}", 5.0 + i, 0.0, vx=2.0) for i in range(6)])
    perception = make_perception(world)
    perception.scan()

    env = perception.read_resource("environment")
    assert env["crowd_density"] == "crowded"
    assert env["noise_level"] == "loud"
    assert env["npc_count"] == 6


def test_clusters_link_chains_of_nearby_objects():
    world = FakeWorld(
        [
            entity(2, "Chicken A", 10.0, 0.0),
            entity(3, "Chicken B", 25.0, 0.0),
            entity(4, "Chicken C", 40.0, 0.0),
            entity(5, "Tree", -60.0, 0.0),
        ]
    )
    perception = make_perception(world, cluster_radius=20.0)
    perception.scan()

    clusters = perception.get_spatial_analysis()["clusters"]
    assert len(clusters) == 1
    assert clusters[0]["size"] == 3
    assert clusters[0]["members"] == ["chicken_a", "chicken_b", "chicken_c"]
    assert clusters[0]["types"] == {"animal": 3}


def test_find_object_and_line_of_sight():
    world = FakeWorld([entity(2, "Merchant", 30.0, 0.0)])
    world.blockers.append((Vec2(15.0, 0.0), 2.0))
    perception = make_perception(world)
    perception.scan()

    found = perception.invoke_tool("find_object", {"type": "npc"})
    assert found["found"] is True
    assert found["object"]["id"] == "merchant"

    assert perception.invoke_tool("find_object", {"id": "dragon"}) == {"found": False, "object": None}

    los = perception.invoke_tool("check_line_of_sight", {"target_id": "merchant"})
    assert los == {"target_id": "merchant", "found": True, "visible": False}


def test_filter_and_max_distance():
    world = FakeWorld(
        [
            entity(2, "Villager", 10.0, 0.0),
            entity(3, "Horse", 20.0, 0.0),
            entity(4, "Guard", 60.0, 0.0),
        ]
    )
    perception = make_perception(world)
    perception.scan()

    npcs = perception.invoke_tool("get_nearby_objects", {"filter_type": "npc"})
    assert [o["id"] for o in npcs["objects"]] == ["villager", "guard"]

    close = perception.invoke_tool("get_nearby_objects", {"max_distance": 25})
    assert [o["id"] for o in close["objects"]] == ["villager", "horse"]
    assert close["summary"]["by_type"] == {"npc": 1, "animal": 1}


def test_scan_emits_perception_updated():
    bus = EventBus()
    events: List[MonitoringEvent] = []
    bus.subscribe(events.append)
    perception = PerceptionComponent(FakeWorld([entity(2, "Cat", 3.0, 4.0)]), lambda: Vec2(0.0, 0.0), bus=bus)

    perception.scan()

    updates = [e for e in events if e.event_type == EventType.PERCEPTION_UPDATED]
    assert len(updates) == 1
    assert updates[0].payload["objects"] == 1
