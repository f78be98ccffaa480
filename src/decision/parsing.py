# src/decision/parsing.py
"""
Oracle reply handling: salvage, parse and validate a decision payload.

Replies are noisy; models wrap JSON in prose or code fences. We take the
first *balanced* {...} block (string- and escape-aware), parse it, then
check it against the allowed tool menu before anything is dispatched.
Unknown tool/server names are rejected, never coerced.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from capabilities.hub import CapabilityHub

from .errors import ParseFailure, ValidationFailure

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("tool", "server", "reason")


def extract_first_json_object(text: str) -> str:
    """
    Return the first balanced {...} substring of `text`.

    Braces inside JSON strings do not count toward the balance.
    Raises ParseFailure when no opening brace exists or it never closes.
    """
    if not text:
        raise ParseFailure("empty oracle reply")

    start = text.find("{")
    if start == -1:
        raise ParseFailure("no JSON object in oracle reply", raw=text[:200])

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                candidate = text[start : idx + 1]
                logger.debug("extracted decision candidate: %s", candidate)
                return candidate

    raise ParseFailure("unbalanced JSON object in oracle reply", raw=text[:200])


def parse_decision(text: str) -> Dict[str, Any]:
    """Extract and json-decode the decision object from a raw reply."""
    candidate = extract_first_json_object(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ParseFailure(
            f"JSONDecodeError at pos {exc.pos}: {exc.msg}",
            candidate=candidate[:200],
        ) from None
    if not isinstance(data, dict):
        raise ParseFailure("decision payload is not an object")
    return data


def validate_decision(
    payload: Mapping[str, Any],
    hub: CapabilityHub,
    allowed_tools: Mapping[str, Iterable[str]],
) -> Dict[str, Any]:
    """
    Check a parsed payload and return the normalized decision:

        {"tool": str, "server": str, "reason": str, "args": dict}

    Raises ValidationFailure naming the first problem found.
    """
    for key in REQUIRED_FIELDS:
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValidationFailure(f"missing or empty field '{key}'", field=key)

    server = payload["server"].strip()
    tool = payload["tool"].strip()

    allowed = allowed_tools.get(server)
    if allowed is None:
        raise ValidationFailure(f"server '{server}' is not allowed", server=server)
    if tool not in set(allowed):
        raise ValidationFailure(f"tool '{tool}' is not allowed on '{server}'", server=server, tool=tool)

    descriptor = hub.find_tool(server, tool)
    if descriptor is None:
        raise ValidationFailure(f"tool '{tool}' is not registered on '{server}'", server=server, tool=tool)

    args: Optional[Any] = payload.get("args")
    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        raise ValidationFailure("'args' must be an object", tool=tool, got=type(args).__name__)

    missing = sorted(p for p in descriptor.required if p not in args)
    if missing:
        raise ValidationFailure(f"'{tool}' is missing required args", tool=tool, missing=missing)

    wrong = descriptor.type_errors(args)
    if wrong:
        raise ValidationFailure(f"'{tool}' has mistyped args", tool=tool, invalid=sorted(wrong))

    return {
        "tool": tool,
        "server": server,
        "reason": payload["reason"].strip(),
        "args": dict(args),
    }
