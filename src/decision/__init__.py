"""
Decision orchestration: context, cache, oracle transport and dispatch.
"""

from .cache import DecisionCache
from .context import DecisionContext, build_context, context_hash, normalize_context
from .errors import DecisionError, ParseFailure, TransportFailure, ValidationFailure
from .orchestrator import (
    DecisionAgent,
    DecisionOrchestrator,
    DecisionOutcome,
    PendingDecision,
    RequestStatus,
)
from .parsing import extract_first_json_object, parse_decision, validate_decision
from .prompt import render_prompt, tool_menu
from .transport import HttpOracleTransport

__all__ = [
    "DecisionAgent",
    "DecisionCache",
    "DecisionContext",
    "DecisionError",
    "DecisionOrchestrator",
    "DecisionOutcome",
    "HttpOracleTransport",
    "ParseFailure",
    "PendingDecision",
    "RequestStatus",
    "TransportFailure",
    "ValidationFailure",
    "build_context",
    "context_hash",
    "extract_first_json_object",
    "normalize_context",
    "parse_decision",
    "render_prompt",
    "tool_menu",
    "validate_decision",
]
