"""
Security Middleware
===================
Gates and protects the outbound card event stream.

- Input validation of decoded card data
- AES-256-GCM field encryption
- Audit logging of security events
- Per-source rate limiting
- API key authentication
"""

from .audit import AuditEntry, AuditEventType, AuditLogger, AuditSeverity
from .auth import ApiKeyAuthenticator
from .crypto import CryptoService, EncryptedPayload
from .exceptions import CryptoError, SecurityError
from .rate_limiter import RateLimitConfig, RateLimiter, RateLimitStats
from .validation import ValidationCategory, ValidationFinding, validate_record

__all__ = [
    'AuditEntry',
    'AuditEventType',
    'AuditLogger',
    'AuditSeverity',
    'ApiKeyAuthenticator',
    'CryptoService',
    'EncryptedPayload',
    'CryptoError',
    'SecurityError',
    'RateLimitConfig',
    'RateLimiter',
    'RateLimitStats',
    'ValidationCategory',
    'ValidationFinding',
    'validate_record',
]
