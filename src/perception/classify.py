# src/perception/classify.py
"""
Classification and identity for raw world entities.

Classification order:
  1. explicit category tags on the entity
  2. substring heuristics on the entity name
  3. "unknown"

Identifier order:
  1. the entity's explicit id
  2. normalized name
  3. "obj_<instance_id>"
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Set, Tuple

from contracts.types import WorldEntity


UNKNOWN = "unknown"

# Tag -> canonical type. Tags are matched case-insensitively.
CATEGORY_TAGS: Dict[str, str] = {
    "npc": "npc",
    "npcs": "npc",
    "villager": "npc",
    "player": "player",
    "players": "player",
    "enemy": "enemy",
    "enemies": "enemy",
    "monster": "enemy",
    "animal": "animal",
    "animals": "animal",
    "item": "item",
    "items": "item",
    "pickup": "item",
    "light_source": "light_source",
    "light": "light_source",
    "lights": "light_source",
    "building": "building",
    "buildings": "building",
    "door": "building",
    "vehicle": "vehicle",
    "furniture": "furniture",
    "plant": "nature",
    "tree": "nature",
}

# Ordered (substring, type) pairs; first match wins.
NAME_HEURISTICS: Tuple[Tuple[str, str], ...] = (
    ("player", "player"),
    ("npc", "npc"),
    ("villager", "npc"),
    ("guard", "npc"),
    ("merchant", "npc"),
    ("lamp", "light_source"),
    ("torch", "light_source"),
    ("lantern", "light_source"),
    ("light", "light_source"),
    ("fire", "light_source"),
    ("goblin", "enemy"),
    ("skeleton", "enemy"),
    ("enemy", "enemy"),
    ("horse", "animal"),
    ("dog", "animal"),
    ("cat", "animal"),
    ("chicken", "animal"),
    ("chest", "item"),
    ("coin", "item"),
    ("potion", "item"),
    ("item", "item"),
    ("door", "building"),
    ("house", "building"),
    ("shop", "building"),
    ("cart", "vehicle"),
    ("chair", "furniture"),
    ("table", "furniture"),
    ("bench", "furniture"),
    ("tree", "nature"),
    ("bush", "nature"),
    ("rock", "nature"),
)

LIGHT_SOURCE = "light_source"

_NON_WORD = re.compile(r"[^a-z0-9]+")


def classify(entity: WorldEntity) -> str:
    """Canonical type tag for `entity`."""
    for tag in entity.tags:
        mapped = CATEGORY_TAGS.get(tag.strip().lower())
        if mapped is not None:
            return mapped

    lowered = entity.name.lower()
    for needle, kind in NAME_HEURISTICS:
        if needle in lowered:
            return kind

    return UNKNOWN


def normalize_name(name: str) -> str:
    """'Town Guard #2' -> 'town_guard_2'."""
    return _NON_WORD.sub("_", name.strip().lower()).strip("_")


def stable_id(entity: WorldEntity) -> str:
    if entity.explicit_id:
        return str(entity.explicit_id)
    normalized = normalize_name(entity.name)
    if normalized:
        return normalized
    return f"obj_{entity.instance_id}"


def has_excluded_tag(entity: WorldEntity, excluded: Iterable[str]) -> bool:
    excluded_set: Set[str] = {t.lower() for t in excluded}
    return any(tag.strip().lower() in excluded_set for tag in entity.tags)


def unique_id(entity: WorldEntity, taken: Set[str]) -> str:
    """
    stable_id(), disambiguated against ids already used in this scan.

    Two entities both named "Guard" become "guard" and "guard_<instance_id>".
    """
    candidate = stable_id(entity)
    if candidate in taken:
        candidate = f"{candidate}_{entity.instance_id}"
    taken.add(candidate)
    return candidate


def is_light_source(kind: str, properties: Optional[dict] = None) -> bool:
    if kind == LIGHT_SOURCE:
        return True
    return bool(properties and properties.get("emits_light"))
