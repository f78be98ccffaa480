# src/decision/errors.py
"""
Failures of the oracle round trip.

Raised inside the decision package (transport, parsing, validation) and
converted to DecisionOutcome by the orchestrator; callers never see them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class DecisionError(Exception):
    code: str
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class TransportFailure(DecisionError):
    """Oracle unreachable, timed out at the HTTP layer, or answered non-2xx."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(code="transport_failure", message=message, details=details)


class ParseFailure(DecisionError):
    """No balanced JSON object in the reply, or the object is malformed."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(code="parse_failure", message=message, details=details)


class ValidationFailure(DecisionError):
    """Decision payload is missing fields or names an unknown tool/server."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(code="validation_failure", message=message, details=details)
