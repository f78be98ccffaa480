#tests/test_capability_registry.py
"""
Tests for capabilities.registry / capabilities.hub.

Covers:
- error taxonomy: not_active, not_found, missing_parameter, invalid_argument
- null and non-finite arguments, handler TypeError/ValueError
- upsert semantics
- hub converts every failure into a ToolResult
- error events for repeated calls on an inactive subsystem
"""

from __future__ import annotations

from typing import List

import pytest

from capabilities.errors import (
    InvalidArgumentError,
    MissingParameterError,
    NotActiveError,
    ResourceNotFoundError,
    ToolNotFoundError,
)
from capabilities.hub import CapabilityHub
from capabilities.registry import CapabilityRegistry
from monitoring.bus import EventBus
from monitoring.events import EventType, MonitoringEvent


def make_registry(bus: EventBus) -> CapabilityRegistry:
    reg = CapabilityRegistry("greeter", bus=bus, agent_id="npc-1")
    reg.register_tool(
        "greet",
        "Say hello.",
        parameters={
            "name": {"type": "string", "description": "Who"},
            "times": {"type": "integer", "description": "How often"},
        },
        required=["name"],
        handler=lambda a: {"text": ("hello " + a["name"] + " ") * int(a.get("times", 1))},
    )
    reg.register_resource("mood", "Current mood.", handler=lambda: {"mood": "cheerful"})
    return reg


def test_invoke_tool_success_emits_tool_executed():
    bus = EventBus()
    events: List[MonitoringEvent] = []
    bus.subscribe(events.append)
    reg = make_registry(bus)

    result = reg.invoke_tool("greet", {"name": "Ann"})

    assert result == {"text": "hello Ann "}
    assert [e.event_type for e in events] == [EventType.TOOL_EXECUTED]
    assert events[0].payload["tool"] == "greet"
    assert events[0].correlation_id == "npc-1"


@pytest.mark.parametrize(
    "name,args,exc_type,code",
    [
        ("wave", {}, ToolNotFoundError, "not_found"),
        ("greet", {}, MissingParameterError, "missing_parameter"),
        ("greet", ["Ann"], InvalidArgumentError, "invalid_argument"),
        ("greet", {"name": 42}, InvalidArgumentError, "invalid_argument"),
        ("greet", {"name": None}, InvalidArgumentError, "invalid_argument"),
        ("greet", {"name": "Ann", "times": None}, InvalidArgumentError, "invalid_argument"),
    ],
)
def test_invoke_tool_errors(name, args, exc_type, code):
    reg = make_registry(EventBus())
    with pytest.raises(exc_type) as info:
        reg.invoke_tool(name, args)
    assert info.value.code == code


def test_inactive_registry_rejects_calls_and_counts_them():
    bus = EventBus()
    errors: List[MonitoringEvent] = []
    bus.subscribe(lambda e: errors.append(e) if e.event_type == EventType.CAPABILITY_ERROR else None)
    reg = make_registry(bus)
    reg.deactivate()

    for _ in range(3):
        with pytest.raises(NotActiveError):
            reg.invoke_tool("greet", {"name": "Ann"})
    with pytest.raises(NotActiveError):
        reg.read_resource("mood")

    assert reg.inactive_call_count == 4
    assert len(errors) == 4
    assert errors[-1].payload["code"] == "not_active"
    assert errors[-1].payload["inactive_calls"] == 4

    reg.activate()
    assert reg.inactive_call_count == 0
    assert reg.read_resource("mood") == {"mood": "cheerful"}


def test_handler_raised_capability_error_is_reported():
    bus = EventBus()
    errors: List[MonitoringEvent] = []
    bus.subscribe(lambda e: errors.append(e) if e.event_type == EventType.CAPABILITY_ERROR else None)
    reg = CapabilityRegistry("strict", bus=bus)

    def handler(args):
        raise InvalidArgumentError("check", "value out of range", value=args["value"])

    reg.register_tool("check", "Check.", parameters={"value": {"type": "number"}}, required=["value"], handler=handler)

    with pytest.raises(InvalidArgumentError):
        reg.invoke_tool("check", {"value": -1})
    assert errors[0].payload["details"]["value"] == -1


def test_register_is_an_upsert():
    reg = make_registry(EventBus())
    reg.register_tool("greet", "Say hi instead.", handler=lambda a: "hi")

    assert len(reg.list_tools()) == 1
    assert reg.get_tool("greet").description == "Say hi instead."
    assert reg.get_tool("greet").required == frozenset()
    assert reg.invoke_tool("greet") == "hi"


def test_unknown_resource_raises_not_found():
    reg = make_registry(EventBus())
    with pytest.raises(ResourceNotFoundError):
        reg.read_resource("weather")


def test_hub_turns_errors_into_results():
    hub = CapabilityHub()
    hub.register(make_registry(EventBus()))

    ok = hub.invoke_tool("greeter", "greet", {"name": "Bo", "times": 2})
    assert ok.success is True
    assert ok.data == {"text": "hello Bo hello Bo "}

    missing = hub.invoke_tool("greeter", "greet", {})
    assert missing.success is False
    assert missing.error == "missing_parameter"
    assert missing.details["parameter"] == "name"

    unknown_subsystem = hub.read_resource("weather", "forecast")
    assert unknown_subsystem.success is False
    assert unknown_subsystem.error == "not_found"

    mood = hub.read_resource("greeter", "mood")
    assert mood.success is True and mood.data == {"mood": "cheerful"}


def test_hub_describe_lists_tools_and_resources():
    hub = CapabilityHub()
    hub.register(make_registry(EventBus()))

    listing = hub.describe()
    assert list(listing) == ["greeter"]
    tool = listing["greeter"]["tools"][0]
    assert tool["name"] == "greet"
    assert tool["required"] == ["name"]
    assert listing["greeter"]["resources"][0]["name"] == "mood"
    assert hub.find_tool("greeter", "greet") is not None
    assert hub.find_tool("greeter", "wave") is None


def test_hub_turns_handler_type_errors_into_results():
    bus = EventBus()
    reg = CapabilityRegistry("scale", bus=bus)
    reg.register_tool(
        "weigh",
        "Weigh something.",
        parameters={"grams": {"type": "number", "description": "Weight"}},
        handler=lambda a: {"kg": float(a.get("grams")) / 1000.0},
    )
    hub = CapabilityHub()
    hub.register(reg)

    missing_value = hub.invoke_tool("scale", "weigh", {"grams": None})
    not_finite = hub.invoke_tool("scale", "weigh", {"grams": float("nan")})

    assert missing_value.success is False
    assert missing_value.error == "invalid_argument"
    assert "error" in missing_value.details
    assert not_finite.success is False
    assert not_finite.error == "invalid_argument"
    assert hub.invoke_tool("scale", "weigh", {"grams": 2500}).data == {"kg": 2.5}
