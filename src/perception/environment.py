# src/perception/environment.py
"""
Environment synthesis: time of day, lighting, noise and crowd levels.

Time is pushed in from the day/night notifier; everything else is derived
from the most recent scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence

from contracts.types import PerceivedObject

from .classify import is_light_source


def period_for_hour(hour: int) -> str:
    if 5 <= hour < 8:
        return "dawn"
    if 8 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def is_daytime(hour: int) -> bool:
    return 6 <= hour < 18


@dataclass
class TemporalState:
    """Last time_tick received from the day/night notifier."""
    day: int = 1
    hour: int = 12
    minute: int = 0
    received: bool = False

    @property
    def time_string(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    @property
    def period(self) -> str:
        return period_for_hour(self.hour)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "hour": self.hour,
            "minute": self.minute,
            "time_string": self.time_string,
            "period": self.period,
            "is_daytime": is_daytime(self.hour),
            "synced": self.received,
        }


@dataclass
class EnvironmentState:
    time_of_day: str = "12:00"
    period: str = "afternoon"
    lighting: str = "bright"
    noise_level: str = "quiet"
    crowd_density: str = "empty"
    light_sources: int = 0
    moving_objects: int = 0
    npc_count: int = 0

    @property
    def signature(self) -> str:
        """Compact string compared between checks to detect environment changes."""
        return f"{self.period}|{self.lighting}|{self.noise_level}|{self.crowd_density}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_of_day": self.time_of_day,
            "period": self.period,
            "lighting": self.lighting,
            "noise_level": self.noise_level,
            "crowd_density": self.crowd_density,
            "light_sources": self.light_sources,
            "moving_objects": self.moving_objects,
            "npc_count": self.npc_count,
        }


def synthesize_environment(
    objects: Sequence[PerceivedObject],
    temporal: TemporalState,
    *,
    noise_moderate: int,
    noise_loud: int,
    crowd_moderate: int,
    crowd_crowded: int,
) -> EnvironmentState:
    lights = sum(1 for o in objects if is_light_source(o.type, o.properties))
    moving = sum(1 for o in objects if o.is_moving)
    npcs = sum(1 for o in objects if o.type == "npc")

    if lights > 0:
        lighting = "artificial"
    elif is_daytime(temporal.hour):
        lighting = "bright"
    else:
        lighting = "dim"

    if moving >= noise_loud:
        noise = "loud"
    elif moving >= noise_moderate:
        noise = "moderate"
    else:
        noise = "quiet"

    if npcs >= crowd_crowded:
        crowd = "crowded"
    elif npcs >= crowd_moderate:
        crowd = "moderate"
    elif npcs > 0:
        crowd = "sparse"
    else:
        crowd = "empty"

    return EnvironmentState(
        time_of_day=temporal.time_string,
        period=temporal.period,
        lighting=lighting,
        noise_level=noise,
        crowd_density=crowd,
        light_sources=lights,
        moving_objects=moving,
        npc_count=npcs,
    )
