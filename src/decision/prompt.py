# src/decision/prompt.py
"""
Prompt rendering for oracle decisions.

tool_menu() narrows hub discovery to the allowed tools; render_prompt()
turns a DecisionContext plus that menu into the text sent to the oracle.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from .context import DecisionContext


def tool_menu(hub_description: Mapping[str, Mapping[str, Any]], allowed: Mapping[str, List[str]]) -> List[Dict[str, Any]]:
    """
    Flatten hub.describe() into the tools the oracle may name.

    Only entries present in both the hub and the allowed set are listed.
    """
    menu: List[Dict[str, Any]] = []
    for server in sorted(allowed):
        tools = {t["name"]: t for t in hub_description.get(server, {}).get("tools", [])}
        for name in allowed[server]:
            if name in tools:
                menu.append({"server": server, **tools[name]})
    return menu


def _format_tool(entry: Mapping[str, Any]) -> str:
    params = entry.get("parameters") or {}
    required = set(entry.get("required") or [])
    parts = []
    for pname in sorted(params):
        ptype = params[pname].get("type", "any")
        marker = "" if pname in required else "?"
        parts.append(f"{pname}{marker}: {ptype}")
    signature = ", ".join(parts)
    return f"- {entry['server']}.{entry['name']}({signature}): {entry.get('description', '')}"


def render_prompt(context: DecisionContext, menu: List[Mapping[str, Any]]) -> str:
    """
    Build the oracle prompt for one decision.

    Loose by intent; the contract that matters is the JSON reply shape.
    """
    agent = context.agent
    name = agent.get("name") or agent.get("agent_id", "npc")
    role = agent.get("role", "villager")

    object_lines: List[str] = []
    for obj in context.nearby_objects:
        moving = "moving" if obj.get("is_moving") else "still"
        object_lines.append(f"- {obj.get('id')} ({obj.get('type')}), {obj.get('distance')} units away, {moving}")
    if not object_lines:
        object_lines.append("- nothing nearby")

    env = context.environment
    env_line = (
        f"lighting {env.get('lighting', 'unknown')}, noise {env.get('noise_level', 'unknown')}, "
        f"crowd {env.get('crowd_density', 'unknown')}"
    )

    ex = context.execution
    exec_line = (
        f"status {ex.get('status', 'unknown')}, current action {ex.get('current_action') or 'none'}, "
        f"{ex.get('queue_length', 0)} queued"
    )

    tool_lines = [_format_tool(entry) for entry in menu] or ["- (no tools available)"]

    return (
        f"You are {name}, a {role} in a living game world. Decide what to do next.\n\n"
        "Needs:\n"
        f"{context.current_needs}\n\n"
        "Goals:\n"
        f"{context.current_goals}\n\n"
        "Mood:\n"
        f"{context.emotional_state}\n\n"
        "World time:\n"
        f"{context.time_of_day}\n\n"
        "Surroundings:\n"
        f"{env_line}\n"
        f"{chr(10).join(object_lines)}\n\n"
        "What you are doing:\n"
        f"{exec_line}\n\n"
        "Available tools (? marks optional args):\n"
        f"{chr(10).join(tool_lines)}\n\n"
        "Respond with STRICT JSON using the shape:\n"
        "{\n"
        '  "tool": "tool_name",\n'
        '  "server": "subsystem_name",\n'
        '  "reason": "one short sentence",\n'
        '  "args": {...}\n'
        "}\n"
    )
