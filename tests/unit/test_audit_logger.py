"""Tests for the audit logger."""

from __future__ import annotations

import json
from pathlib import Path

from src.audit.logger import AuditLogger, read_audit_events
from src.models import AuditEvent, AuditEventType


def _make_event(**kwargs: object) -> AuditEvent:
    defaults: dict[str, object] = {
        "event_type": AuditEventType.DISPATCH_ATTEMPT,
        "action": "cloud",
        "result": "failure",
        "sender_id": "5542999999999",
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)  # type: ignore[arg-type]


def test_log_appends_json_line(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    logger = AuditLogger(log_path=str(log_file))
    logger.log(_make_event(details={"status_code": 400}))

    lines = log_file.read_text().strip().split("\n")
    assert len(lines) == 1
    parsed = json.loads(lines[0])
    assert parsed["event_type"] == "dispatch_attempt"
    assert parsed["sender_id"] == "5542999999999"
    assert parsed["details"] == {"status_code": 400}


def test_none_fields_omitted(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    AuditLogger(log_path=str(log_file)).log(_make_event(sender_id=None))
    parsed = json.loads(log_file.read_text())
    assert "sender_id" not in parsed
    assert "details" not in parsed


def test_log_multiple_events_in_order(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    logger = AuditLogger(log_path=str(log_file))
    for variant in ("cloud", "cloud-bare", "legacy"):
        logger.log(_make_event(action=variant))

    events = read_audit_events(log_file)
    assert [e["action"] for e in events] == ["cloud", "cloud-bare", "legacy"]


def test_log_creates_parent_directory(tmp_path: Path) -> None:
    log_file = tmp_path / "subdir" / "audit.jsonl"
    AuditLogger(log_path=str(log_file)).log(_make_event())
    assert log_file.exists()


def test_read_missing_file_is_empty(tmp_path: Path) -> None:
    assert read_audit_events(tmp_path / "nope.jsonl") == []


def test_rotation_when_max_bytes_exceeded(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.jsonl"
    logger = AuditLogger(log_path=str(log_file), max_bytes=200, backup_count=2)
    for i in range(10):
        logger.log(_make_event(action=f"action_{i}"))

    assert log_file.exists()
    assert (tmp_path / "audit.jsonl.1").exists()
    assert not (tmp_path / "audit.jsonl.3").exists()


def test_from_env_reads_rotation_settings(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("AUDIT_LOG_MAX_BYTES", "1234")
    monkeypatch.setenv("AUDIT_LOG_BACKUP_COUNT", "7")
    logger = AuditLogger.from_env(str(tmp_path / "audit.jsonl"))
    assert logger._max_bytes == 1234
    assert logger._backup_count == 7
