#tests/test_monitoring_logger.py
"""
Tests for monitoring.logger and monitoring.llm_logging.

Covers:
- JSONL event lines carry every MonitoringEvent field
- close() stops writing
- oracle call records land as one JSON file each
"""

from __future__ import annotations

import json
from pathlib import Path

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.llm_logging import OracleLogWriter
from monitoring.logger import JsonFileLogger, log_event


def test_json_file_logger_writes_one_line_per_event(tmp_path: Path):
    bus = EventBus()
    log_path = tmp_path / "nested" / "events.jsonl"
    logger = JsonFileLogger(log_path, bus)

    log_event(
        bus=bus,
        module="execution",
        event_type=EventType.ACTION_COMPLETED,
        message="Action completed",
        payload={"success": True, "action": {"type": "wait"}},
        correlation_id="npc-7",
    )
    log_event(bus=bus, module="perception", event_type=EventType.PERCEPTION_UPDATED, message="scan")
    logger.close()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2

    first = json.loads(lines[0])
    assert first["module"] == "execution"
    assert first["event_type"] == "ACTION_COMPLETED"
    assert first["payload"]["action"]["type"] == "wait"
    assert first["correlation_id"] == "npc-7"
    assert isinstance(first["ts"], (int, float))

    second = json.loads(lines[1])
    assert second["payload"] == {}
    assert second["correlation_id"] is None


def test_closed_logger_ignores_later_events(tmp_path: Path):
    bus = EventBus()
    log_path = tmp_path / "events.jsonl"
    logger = JsonFileLogger(log_path, bus)
    logger.close()

    log_event(bus=bus, module="test", event_type=EventType.LOG, message="after close")

    assert log_path.read_text(encoding="utf-8") == ""


def test_oracle_log_writer_writes_json_record(tmp_path: Path):
    writer = OracleLogWriter(tmp_path / "oracle")
    path = writer.log_call(
        agent_id="npc-1",
        model="llama3.2",
        prompt="What now?",
        response='{"tool": "wait"}',
        context_hash="abc123",
        meta={"latency": 0.4, "outcome": "ok"},
    )

    assert path.parent == tmp_path / "oracle"
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["agent_id"] == "npc-1"
    assert record["model"] == "llama3.2"
    assert record["context_hash"] == "abc123"
    assert record["meta"]["outcome"] == "ok"


def test_per_agent_logger_skips_other_agents(tmp_path: Path):
    bus = EventBus()
    log_path = tmp_path / "baker.jsonl"
    logger = JsonFileLogger(log_path, bus, agent_id="baker", event_types=[EventType.ACTION_STARTED])

    log_event(bus=bus, module="execution", event_type=EventType.ACTION_STARTED, message="go", correlation_id="baker")
    log_event(bus=bus, module="execution", event_type=EventType.ACTION_STARTED, message="go", correlation_id="smith")
    log_event(bus=bus, module="execution", event_type=EventType.LOG, message="note", correlation_id="baker")
    logger.close()
    logger.close()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert logger.lines_written == 1
    assert json.loads(lines[0])["correlation_id"] == "baker"


def test_log_event_returns_published_event():
    bus = EventBus()
    event = log_event(bus=bus, module="decision", event_type=EventType.LOG, message="hello")
    assert event.module == "decision"
    assert event.payload == {}
