# src/capabilities/registry.py
"""
Capability registry: named tools and resources exposed by a subsystem.

Each subsystem (perception, execution, ...) subclasses CapabilityRegistry and
registers its tools/resources in __init__. Discovery and invocation always go
through the registry, so a decision source can drive a subsystem knowing only
names and parameter schemas.

Contract:
  - register_tool / register_resource: idempotent upsert by name.
  - list_tools / list_resources: descriptors, order not significant.
  - invoke_tool(name, args):
        NotActiveError      subsystem deactivated
        InvalidArgumentError args is not a mapping, or a value has the wrong type
        ToolNotFoundError   name not registered
        MissingParameterError required arg absent
    otherwise calls the handler and emits TOOL_EXECUTED.
  - read_resource(name): same activity/existence checks, emits RESOURCE_ACCESSED.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

from monitoring.bus import EventBus, default_bus
from monitoring.events import EventType
from monitoring.logger import log_event

from .errors import (
    CapabilityError,
    InvalidArgumentError,
    MissingParameterError,
    NotActiveError,
    ResourceNotFoundError,
    ToolNotFoundError,
)

logger = logging.getLogger(__name__)


ToolHandler = Callable[[Dict[str, Any]], Any]
ResourceHandler = Callable[[], Any]

# JSON-schema-ish type names accepted in parameter schemas.
_TYPE_CHECKS: Dict[str, Callable[[Any], bool]] = {
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "string": lambda v: isinstance(v, str),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, Mapping),
    "array": lambda v: isinstance(v, (list, tuple)),
}


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapabilityDescriptor:
    """
    Immutable description of a tool or resource.

    parameters maps parameter name -> {"type": ..., "description": ...}.
    For resources, `parameters` holds the schema of the returned snapshot.
    """

    name: str
    description: str
    parameters: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    required: FrozenSet[str] = frozenset()

    def type_errors(self, args: Mapping[str, Any]) -> List[str]:
        """
        Names of supplied args whose value does not match the declared type.

        Unknown types ("any", missing) and undeclared args are not checked;
        handlers ignore what they do not use. None counts as absent for
        optional parameters and as a wrong type for required ones. Numbers
        must be finite.
        """
        bad: List[str] = []
        for key, value in args.items():
            declared = self.parameters.get(key)
            if declared is None:
                continue
            check = _TYPE_CHECKS.get(str(declared.get("type", "")))
            if check is None:
                continue
            if value is None:
                if key in self.required:
                    bad.append(key)
            elif not check(value):
                bad.append(key)
        return bad

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {k: dict(v) for k, v in self.parameters.items()},
            "required": sorted(self.required),
        }


# ---------------------------------------------------------------------------
# Registry base class
# ---------------------------------------------------------------------------


class CapabilityRegistry:
    """
    Base class for subsystems that expose tools and resources.

    Subclasses call register_tool / register_resource (usually from their
    constructor) and inherit discovery, invocation and event emission.
    """

    # Consecutive calls on an inactive subsystem before we log at WARNING.
    inactive_warning_threshold = 3

    def __init__(
        self,
        subsystem_name: str,
        *,
        bus: Optional[EventBus] = None,
        agent_id: Optional[str] = None,
    ) -> None:
        self.subsystem_name = subsystem_name
        self.agent_id = agent_id
        self._bus = bus or default_bus
        self._active = True

        self._tools: Dict[str, CapabilityDescriptor] = {}
        self._tool_handlers: Dict[str, ToolHandler] = {}
        self._resources: Dict[str, CapabilityDescriptor] = {}
        self._resource_handlers: Dict[str, ResourceHandler] = {}

        self._inactive_calls = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def activate(self) -> None:
        self._active = True
        self._inactive_calls = 0

    def deactivate(self) -> None:
        self._active = False

    @property
    def inactive_call_count(self) -> int:
        """Tool/resource calls rejected since the last activate()."""
        return self._inactive_calls

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_tool(
        self,
        name: str,
        description: str,
        parameters: Optional[Mapping[str, Mapping[str, str]]] = None,
        required: Optional[List[str]] = None,
        handler: Optional[ToolHandler] = None,
    ) -> CapabilityDescriptor:
        """
        Upsert a tool descriptor and its handler.

        Re-registering a name replaces the previous descriptor; registering
        without a handler keeps the existing one.
        """
        descriptor = CapabilityDescriptor(
            name=name,
            description=description,
            parameters={k: dict(v) for k, v in (parameters or {}).items()},
            required=frozenset(required or ()),
        )
        self._tools[name] = descriptor
        if handler is not None:
            self._tool_handlers[name] = handler
        return descriptor

    def register_resource(
        self,
        name: str,
        description: str,
        schema: Optional[Mapping[str, Mapping[str, str]]] = None,
        handler: Optional[ResourceHandler] = None,
    ) -> CapabilityDescriptor:
        descriptor = CapabilityDescriptor(
            name=name,
            description=description,
            parameters={k: dict(v) for k, v in (schema or {}).items()},
        )
        self._resources[name] = descriptor
        if handler is not None:
            self._resource_handlers[name] = handler
        return descriptor

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def list_tools(self) -> List[CapabilityDescriptor]:
        return list(self._tools.values())

    def list_resources(self) -> List[CapabilityDescriptor]:
        return list(self._resources.values())

    def get_tool(self, name: str) -> Optional[CapabilityDescriptor]:
        return self._tools.get(name)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def invoke_tool(self, name: str, args: Any = None) -> Any:
        """
        Validate and dispatch a tool call.

        Raises a CapabilityError subclass on any contract violation; the
        handler's own return value is passed through unchanged.
        """
        if args is None:
            args = {}
        try:
            self._ensure_active()
            if not isinstance(args, Mapping):
                raise InvalidArgumentError(
                    name, "args must be a mapping", got=type(args).__name__
                )
            descriptor = self._tools.get(name)
            handler = self._tool_handlers.get(name)
            if descriptor is None or handler is None:
                raise ToolNotFoundError(name, self.subsystem_name)
            for param in sorted(descriptor.required):
                if param not in args:
                    raise MissingParameterError(name, param)
            bad = descriptor.type_errors(args)
            if bad:
                raise InvalidArgumentError(name, "wrong argument type", parameters=bad)
            # Handlers may raise CapabilityError for value-level problems too.
            try:
                result = handler(dict(args))
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError(name, "handler rejected arguments", error=str(exc)) from exc
        except CapabilityError as exc:
            self._report_error("tool", name, exc)
            raise

        log_event(
            bus=self._bus,
            module=self.subsystem_name,
            event_type=EventType.TOOL_EXECUTED,
            message=f"Tool executed: {name}",
            payload={"tool": name, "args": dict(args), "result": result},
            correlation_id=self.agent_id,
        )
        return result

    def read_resource(self, name: str) -> Any:
        try:
            self._ensure_active()
            handler = self._resource_handlers.get(name)
            if name not in self._resources or handler is None:
                raise ResourceNotFoundError(name, self.subsystem_name)
        except CapabilityError as exc:
            self._report_error("resource", name, exc)
            raise

        data = handler()

        log_event(
            bus=self._bus,
            module=self.subsystem_name,
            event_type=EventType.RESOURCE_ACCESSED,
            message=f"Resource accessed: {name}",
            payload={"resource": name},
            correlation_id=self.agent_id,
        )
        return data

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_active(self) -> None:
        if self._active:
            return
        self._inactive_calls += 1
        raise NotActiveError(self.subsystem_name)

    def _report_error(self, kind: str, name: str, exc: CapabilityError) -> None:
        if exc.code == "not_active" and self._inactive_calls >= self.inactive_warning_threshold:
            logger.warning(
                "%s: %d calls on inactive subsystem (last %s %r)",
                self.subsystem_name,
                self._inactive_calls,
                kind,
                name,
            )
        else:
            logger.debug("%s: %s %r failed: %s", self.subsystem_name, kind, name, exc)

        log_event(
            bus=self._bus,
            module=self.subsystem_name,
            event_type=EventType.CAPABILITY_ERROR,
            message=f"{kind} {name} failed: {exc.code}",
            payload={
                "kind": kind,
                "name": name,
                "code": exc.code,
                "details": dict(exc.details),
                "inactive_calls": self._inactive_calls,
            },
            correlation_id=self.agent_id,
        )
