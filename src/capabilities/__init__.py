"""
Capability surface: tool/resource registries, the per-agent hub, and
optional-subsystem handling.
"""

from .errors import (
    CapabilityError,
    NotActiveError,
    NotFoundError,
    ToolNotFoundError,
    ResourceNotFoundError,
    MissingParameterError,
    InvalidArgumentError,
)
from .registry import CapabilityDescriptor, CapabilityRegistry
from .hub import CapabilityHub
from .optional import (
    ABSENT,
    Absent,
    Capability,
    Present,
    STANDARD_SUBSYSTEMS,
    StaticSubsystem,
    resolve,
    subsystem_state,
)

__all__ = [
    "CapabilityError",
    "NotActiveError",
    "NotFoundError",
    "ToolNotFoundError",
    "ResourceNotFoundError",
    "MissingParameterError",
    "InvalidArgumentError",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "CapabilityHub",
    "ABSENT",
    "Absent",
    "Capability",
    "Present",
    "STANDARD_SUBSYSTEMS",
    "StaticSubsystem",
    "resolve",
    "subsystem_state",
]
