# src/capabilities/hub.py
"""
CapabilityHub: the single entry point external callers use.

    invoke_tool(subsystem, tool_name, args) -> ToolResult
    read_resource(subsystem, resource_name) -> ToolResult

Registries raise CapabilityError; the hub turns every such failure into a
ToolResult with `error` set. Nothing above the hub needs try/except.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from contracts.types import ToolResult

from .errors import CapabilityError, NotFoundError
from .registry import CapabilityDescriptor, CapabilityRegistry

logger = logging.getLogger(__name__)


class CapabilityHub:
    """Name -> registry routing table for one agent."""

    def __init__(self) -> None:
        self._subsystems: Dict[str, CapabilityRegistry] = {}

    def register(self, registry: CapabilityRegistry, name: Optional[str] = None) -> None:
        """Attach a subsystem under `name` (defaults to its subsystem_name)."""
        self._subsystems[name or registry.subsystem_name] = registry

    def subsystem_names(self) -> List[str]:
        return sorted(self._subsystems)

    def get(self, name: str) -> Optional[CapabilityRegistry]:
        return self._subsystems.get(name)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def find_tool(self, subsystem: str, tool_name: str) -> Optional[CapabilityDescriptor]:
        registry = self._subsystems.get(subsystem)
        if registry is None:
            return None
        return registry.get_tool(tool_name)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """
        Full discovery listing:

            {"execution": {"tools": [...], "resources": [...]}, ...}
        """
        return {
            name: {
                "tools": [d.to_dict() for d in reg.list_tools()],
                "resources": [d.to_dict() for d in reg.list_resources()],
            }
            for name, reg in sorted(self._subsystems.items())
        }

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def invoke_tool(self, subsystem: str, tool_name: str, args: Any = None) -> ToolResult:
        registry = self._subsystems.get(subsystem)
        if registry is None:
            return self._failure(NotFoundError("subsystem", subsystem, subsystem))
        try:
            data = registry.invoke_tool(tool_name, args)
        except CapabilityError as exc:
            return self._failure(exc)
        return ToolResult(success=True, data=data)

    def read_resource(self, subsystem: str, resource_name: str) -> ToolResult:
        registry = self._subsystems.get(subsystem)
        if registry is None:
            return self._failure(NotFoundError("subsystem", subsystem, subsystem))
        try:
            data = registry.read_resource(resource_name)
        except CapabilityError as exc:
            return self._failure(exc)
        return ToolResult(success=True, data=data)

    @staticmethod
    def _failure(exc: CapabilityError) -> ToolResult:
        logger.debug("CapabilityHub call failed: %s", exc)
        return ToolResult(
            success=False,
            error=exc.code,
            details={"message": exc.message, **exc.details},
        )
