# path: src/monitoring/llm_logging.py

"""
Per-call oracle logging.

Structured monitoring events still use:
    monitoring.logger.log_event -> JsonFileLogger -> logs/monitoring/events.log

This module is specifically for:
    - One JSON file per oracle request/response pair
    - Written under logs/oracle/
    - Read by humans (jq, etc.) when a decision looks wrong

Schema (one JSON per file):

{
  "ts": <float unix timestamp>,
  "agent_id": "<npc id>",
  "model": "<model identifier>",
  "context_hash": "<normalized context hash>",
  "prompt": "<prompt text>",
  "response": "<raw response text or empty on failure>",
  "meta": {
    "latency": 0.42,
    "outcome": "ok" | "parse_failure" | "dropped" | ...,
    "error": "<message, failures only>"
  }
}
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional


JsonDict = Dict[str, Any]


# ------------------------------------------------------------------------------
# Data structure representing a single oracle call
# ------------------------------------------------------------------------------

@dataclass
class OracleCallLog:
    """Structured record for one oracle interaction."""
    ts: float                        # unix timestamp when the call resolved
    agent_id: str                    # NPC the decision was for
    model: str                       # model identifier sent in the request body
    context_hash: Optional[str]      # cache key of the context that produced the prompt
    prompt: str
    response: str
    meta: JsonDict                   # latency, outcome, error

    def to_dict(self) -> JsonDict:
        return asdict(self)


# ------------------------------------------------------------------------------
# Oracle log writer
# ------------------------------------------------------------------------------

class OracleLogWriter:
    """
    File-based oracle log writer.

    Responsibilities:
    - Ensure the log directory exists.
    - Write one JSON file per oracle call using the OracleCallLog schema.
    """

    def __init__(self, log_dir: Path | None = None) -> None:
        if log_dir is None:
            log_dir = Path("logs") / "oracle"
        self._log_dir = log_dir
        self._log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def write(self, call_log: OracleCallLog) -> Path:
        """
        Persist a single oracle call log as a JSON file.

        Returns:
            The full path to the written JSON file.
        """
        # Timestamp + random suffix avoids collisions between agents
        filename = f"{call_log.ts:.6f}_{call_log.agent_id}_{uuid.uuid4().hex[:8]}.json"
        path = self._log_dir / filename

        with path.open("w", encoding="utf-8") as f:
            json.dump(call_log.to_dict(), f, indent=2, sort_keys=True, default=str)

        return path

    def log_call(
        self,
        *,
        agent_id: str,
        model: str,
        prompt: str,
        response: str,
        context_hash: Optional[str] = None,
        meta: Optional[JsonDict] = None,
    ) -> Path:
        """One-shot helper that stamps the current time and writes the record."""
        return self.write(
            OracleCallLog(
                ts=time.time(),
                agent_id=agent_id,
                model=model,
                context_hash=context_hash,
                prompt=prompt,
                response=response,
                meta=meta or {},
            )
        )
