# Tests for the audit logger
# Covers: JSON line format, note events, singleton access

import json

from notevault.core import audit_log
from notevault.core.audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_security_event,
    set_audit_logger,
)


def read_events(logger):
    return [json.loads(line) for line in logger.log_file.read_text().splitlines() if line]


class TestAuditLogger:
    def test_creates_log_dir(self, tmp_path):
        logger = AuditLogger(tmp_path / "nested" / "logs")
        assert logger.log_dir.is_dir()
        assert logger.log_file.parent == logger.log_dir
        assert logger.log_file.name.startswith("audit_")

    def test_log_event_writes_json_line(self, tmp_path):
        logger = AuditLogger(tmp_path)
        event_id = logger.log_event(
            EventType.VAULT_UNLOCKED, EventSeverity.INFO, "Vault unlocked",
        )

        events = read_events(logger)
        assert len(events) == 1
        event = events[0]
        assert event["event_id"] == event_id
        assert event["event_type"] == "vault.unlocked"
        assert event["severity"] == "info"
        assert event["message"] == "Vault unlocked"
        assert event["details"] == {}
        assert "hostname" in event["user_context"]

    def test_events_are_appended(self, tmp_path):
        logger = AuditLogger(tmp_path)
        logger.log_event(EventType.VAULT_UNLOCKED, EventSeverity.INFO, "one")
        logger.log_event(EventType.VAULT_LOCKED, EventSeverity.INFO, "two")

        reopened = AuditLogger(tmp_path)
        reopened.log_event(EventType.SYSTEM_STOP, EventSeverity.INFO, "three")

        messages = [e["message"] for e in read_events(reopened)]
        assert messages == ["one", "two", "three"]

    def test_log_note_event(self, tmp_path):
        logger = AuditLogger(tmp_path)
        logger.log_note_event(EventType.NOTE_CREATED, "groceries", details={"size": 3})

        event = read_events(logger)[0]
        assert event["event_type"] == "note.created"
        assert event["details"] == {"size": 3, "note": "groceries"}
        assert "groceries" in event["message"]

    def test_explicit_user_context(self, tmp_path):
        logger = AuditLogger(tmp_path)
        logger.log_event(
            EventType.VAULT_ERROR, EventSeverity.CRITICAL, "boom",
            user_context={"os_user": "tester"},
        )
        assert read_events(logger)[0]["user_context"] == {"os_user": "tester"}


class TestGlobalLogger:
    def test_singleton(self):
        assert get_audit_logger() is get_audit_logger()

    def test_default_goes_to_isolated_dir(self, tmp_path):
        assert get_audit_logger().log_dir == tmp_path / "audit_logs"

    def test_set_audit_logger(self, tmp_path):
        custom = AuditLogger(tmp_path / "custom")
        set_audit_logger(custom)
        assert get_audit_logger() is custom
        assert audit_log._audit_logger is custom

    def test_log_security_event_uses_global(self, tmp_path):
        logger = AuditLogger(tmp_path / "global")
        set_audit_logger(logger)
        log_security_event(
            EventType.VAULT_ERROR, EventSeverity.CRITICAL, "Header unreadable",
            details={"path": "/tmp/v"},
        )
        event = read_events(logger)[0]
        assert event["severity"] == "critical"
        assert event["details"] == {"path": "/tmp/v"}
