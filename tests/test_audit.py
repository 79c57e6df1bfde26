"""Audit logging: entry format, severity mapping, disabled logger."""

import json
import logging

import pytest

from security.audit import AuditEntry, AuditEventType, AuditLogger, AuditSeverity


def audit_lines(caplog):
    return [r for r in caplog.records if r.name == "audit" and r.getMessage().startswith("AUDIT")]


def payload(record):
    return json.loads(record.getMessage().split(": ", 1)[1])


@pytest.fixture
def audit(caplog):
    caplog.set_level(logging.DEBUG, logger="audit")
    return AuditLogger(enabled=True)


def test_entry_serializes_fields():
    entry = AuditEntry(AuditEventType.RATE_LIMIT, AuditSeverity.WARNING, "10.0.0.1",
                       "rate_limit_exceeded", "Request rate limit exceeded", {"limit_type": "Request"})
    data = json.loads(entry.to_json())

    assert data["event_type"] == "rate_limit"
    assert data["severity"] == "warning"
    assert data["client_ip"] == "10.0.0.1"
    assert data["action"] == "rate_limit_exceeded"
    assert data["metadata"] == {"limit_type": "Request"}
    assert data["timestamp"].endswith("+00:00")


def test_entry_is_immutable():
    entry = AuditEntry(AuditEventType.CONNECTION, AuditSeverity.INFO, "::1", "connection_open", "x")
    with pytest.raises(AttributeError):
        entry.action = "other"  # type: ignore[misc]


def test_metadata_omitted_when_absent():
    entry = AuditEntry(AuditEventType.CONNECTION, AuditSeverity.INFO, "::1", "connection_open", "x")
    assert "metadata" not in entry.to_dict()


def test_severity_ordering():
    assert AuditSeverity.INFO < AuditSeverity.WARNING < AuditSeverity.ERROR < AuditSeverity.CRITICAL


def test_auth_success_includes_key_hint(audit, caplog):
    audit.log_auth_success("10.0.0.1", "abcd")

    [record] = audit_lines(caplog)
    assert record.levelno == logging.INFO
    data = payload(record)
    assert data["action"] == "auth_success"
    assert data["message"] == "Authentication successful (key: abcd...)"


def test_auth_failure_is_warning(audit, caplog):
    audit.log_auth_failure("10.0.0.1", "Invalid API key")

    [record] = audit_lines(caplog)
    assert record.levelno == logging.WARNING
    assert payload(record)["event_type"] == "authentication"


def test_security_validation_failure_is_error(audit, caplog):
    audit.log_validation_failure("Thai name", "Security", "Contains suspicious characters", True)

    [record] = audit_lines(caplog)
    assert record.levelno == logging.ERROR
    data = payload(record)
    assert data["event_type"] == "security_error"
    assert data["client_ip"] == "127.0.0.1"
    assert "Thai name" in data["message"]


def test_format_validation_failure_is_warning(audit, caplog):
    audit.log_validation_failure("Gender", "Format", "bad code", False)

    [record] = audit_lines(caplog)
    assert record.levelno == logging.WARNING
    assert payload(record)["event_type"] == "validation"


def test_connection_close_duration(audit, caplog):
    audit.log_connection_close("10.0.0.1", 1500)

    data = payload(audit_lines(caplog)[0])
    assert data["message"] == "WebSocket connection closed (duration: 1500ms)"
    assert data["metadata"] == {"duration_ms": 1500}


def test_critical_prefix(audit, caplog):
    audit.log_configuration("Encryption initialization failed", severity=AuditSeverity.CRITICAL)

    [record] = audit_lines(caplog)
    assert record.levelno == logging.CRITICAL
    assert record.getMessage().startswith("AUDIT[CRITICAL]: ")


def test_disabled_logger_emits_nothing(caplog):
    caplog.set_level(logging.DEBUG, logger="audit")
    audit = AuditLogger(enabled=False)

    audit.log_auth_failure("10.0.0.1", "x")
    audit.log_rate_limit("10.0.0.1", "Request")
    audit.log_card_read("*********7366")
    audit.log_security_error("boom")

    assert audit_lines(caplog) == []
