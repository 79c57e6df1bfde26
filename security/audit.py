"""
Audit logging for security events.

Each entry is one JSON line on the "audit" logger:

    AUDIT: {"timestamp": "...", "event_type": "authentication", ...}

Covers authentication attempts, rate limiting, WebSocket connections, card
reads, configuration and security errors. A disabled AuditLogger drops
everything.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

AUDIT_LOGGER_NAME = "audit"
LOCAL_ADDRESS = "127.0.0.1"


class AuditEventType(Enum):
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    CONNECTION = "connection"
    CARD_READ = "card_read"
    CONFIGURATION = "configuration"
    SECURITY_ERROR = "security_error"
    VALIDATION = "validation"


class AuditSeverity(IntEnum):
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4

    @property
    def log_level(self) -> int:
        return {
            AuditSeverity.INFO: logging.INFO,
            AuditSeverity.WARNING: logging.WARNING,
            AuditSeverity.ERROR: logging.ERROR,
            AuditSeverity.CRITICAL: logging.CRITICAL,
        }[self]


@dataclass(frozen=True)
class AuditEntry:
    event_type: AuditEventType
    severity: AuditSeverity
    client_address: str
    action: str
    message: str
    metadata: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.name.lower(),
            "client_ip": self.client_address,
            "action": self.action,
            "message": self.message,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def log(self, logger: Optional[logging.Logger] = None):
        logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)
        prefix = "AUDIT[CRITICAL]" if self.severity is AuditSeverity.CRITICAL else "AUDIT"
        logger.log(self.severity.log_level, f"{prefix}: {self.to_json()}")


class AuditLogger:
    """Builds and emits AuditEntry lines; every method is a no-op when disabled"""

    def __init__(self, enabled: bool = True, logger: Optional[logging.Logger] = None):
        self.enabled = enabled
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)
        if enabled:
            self.logger.info("Audit logging ENABLED")
        else:
            self.logger.warning("Audit logging DISABLED - security events will not be recorded!")

    def _emit(self, event_type: AuditEventType, severity: AuditSeverity, client_address: Optional[str],
              action: str, message: str, metadata: Optional[Dict[str, Any]] = None):
        if not self.enabled:
            return
        AuditEntry(
            event_type=event_type,
            severity=severity,
            client_address=client_address or LOCAL_ADDRESS,
            action=action,
            message=message,
            metadata=metadata,
        ).log(self.logger)

    def log_auth_success(self, client_address: str, api_key_hint: Optional[str] = None):
        message = "Authentication successful"
        if api_key_hint:
            message = f"Authentication successful (key: {api_key_hint}...)"
        self._emit(AuditEventType.AUTHENTICATION, AuditSeverity.INFO, client_address,
                   "auth_success", message)

    def log_auth_failure(self, client_address: str, reason: str):
        self._emit(AuditEventType.AUTHENTICATION, AuditSeverity.WARNING, client_address,
                   "auth_failure", f"Authentication failed: {reason}")

    def log_rate_limit(self, client_address: str, limit_type: str):
        self._emit(AuditEventType.RATE_LIMIT, AuditSeverity.WARNING, client_address,
                   "rate_limit_exceeded", f"{limit_type} rate limit exceeded",
                   {"limit_type": limit_type})

    def log_connection_open(self, client_address: str):
        self._emit(AuditEventType.CONNECTION, AuditSeverity.INFO, client_address,
                   "connection_open", "WebSocket connection established")

    def log_connection_close(self, client_address: str, duration_ms: Optional[int] = None):
        message = "WebSocket connection closed"
        metadata = None
        if duration_ms is not None:
            message = f"WebSocket connection closed (duration: {duration_ms}ms)"
            metadata = {"duration_ms": duration_ms}
        self._emit(AuditEventType.CONNECTION, AuditSeverity.INFO, client_address,
                   "connection_close", message, metadata)

    def log_validation_failure(self, field_name: str, error_type: str, details: str,
                               is_security_threat: bool, client_address: Optional[str] = None):
        if is_security_threat:
            self._emit(AuditEventType.SECURITY_ERROR, AuditSeverity.ERROR, client_address,
                       "validation_failure",
                       f"Security threat detected in field '{field_name}': {details}")
        else:
            self._emit(AuditEventType.VALIDATION, AuditSeverity.WARNING, client_address,
                       "validation_failure",
                       f"Validation failed for field '{field_name}': {error_type} - {details}")

    def log_card_read(self, masked_id: str, reader: str = ""):
        self._emit(AuditEventType.CARD_READ, AuditSeverity.INFO, None, "card_read",
                   f"Card read: {masked_id}", {"reader": reader} if reader else None)

    def log_card_removed(self, reader: str = ""):
        self._emit(AuditEventType.CARD_READ, AuditSeverity.INFO, None, "card_removed",
                   "Card removed", {"reader": reader} if reader else None)

    def log_configuration(self, message: str, metadata: Optional[Dict[str, Any]] = None,
                          severity: AuditSeverity = AuditSeverity.INFO):
        self._emit(AuditEventType.CONFIGURATION, severity, None, "configuration", message, metadata)

    def log_security_error(self, message: str, client_address: Optional[str] = None,
                           action: str = "security_error", severity: AuditSeverity = AuditSeverity.ERROR):
        self._emit(AuditEventType.SECURITY_ERROR, severity, client_address, action, message)
