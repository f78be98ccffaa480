# src/capabilities/errors.py
"""
Error types for the capability surface.

Registries raise these; CapabilityHub converts them into ToolResult so no
caller outside a subsystem ever sees a raw exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class CapabilityError(Exception):
    """
    Base class for tool/resource failures.

    `code` is the stable machine-readable name surfaced in ToolResult.error.
    """

    code: str
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotActiveError(CapabilityError):
    def __init__(self, subsystem: str) -> None:
        super().__init__(
            code="not_active",
            message=f"subsystem {subsystem!r} is not active",
            details={"subsystem": subsystem},
        )


class NotFoundError(CapabilityError):
    """Unknown subsystem, tool or resource name."""

    def __init__(self, kind: str, name: str, subsystem: str) -> None:
        super().__init__(
            code="not_found",
            message=f"{kind} {name!r} not registered on {subsystem!r}",
            details={"kind": kind, "name": name, "subsystem": subsystem},
        )


class ToolNotFoundError(NotFoundError):
    def __init__(self, name: str, subsystem: str) -> None:
        super().__init__("tool", name, subsystem)


class ResourceNotFoundError(NotFoundError):
    def __init__(self, name: str, subsystem: str) -> None:
        super().__init__("resource", name, subsystem)


class MissingParameterError(CapabilityError):
    def __init__(self, tool: str, parameter: str) -> None:
        super().__init__(
            code="missing_parameter",
            message=f"tool {tool!r} requires parameter {parameter!r}",
            details={"tool": tool, "parameter": parameter},
        )


class InvalidArgumentError(CapabilityError):
    def __init__(self, tool: str, reason: str, **details: Any) -> None:
        super().__init__(
            code="invalid_argument",
            message=f"tool {tool!r}: {reason}",
            details={"tool": tool, "reason": reason, **details},
        )
