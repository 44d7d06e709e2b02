"""
Credential redaction and audit logging utilities.

SECURITY REQUIREMENTS:
- Tokens NEVER appear in logs (access_token, refresh_token, private-app tokens)
- ALLOWED in logs: user_id, provider, connection kind, expiry timestamps
- All credential refreshes logged for audit trail

Audit Events:
- credential.refreshed
- credential.connected
- credential.error

Usage:
    from src.credentials.redaction import CredentialAuditLogger, AuditEventType

    audit = CredentialAuditLogger(user_id)
    audit.log(
        event_type=AuditEventType.CREDENTIAL_REFRESHED,
        provider="hubspot",
        metadata={"new_expires_at": "2026-01-01T00:00:00+00:00"},
    )
"""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Dict

logger = logging.getLogger(__name__)

REDACTED_VALUE = "[REDACTED]"


class AuditEventType(str, Enum):
    """Credential audit event types."""
    CREDENTIAL_CONNECTED = "credential.connected"
    CREDENTIAL_REFRESHED = "credential.refreshed"
    CREDENTIAL_ERROR = "credential.error"


# Token shapes issued by the two providers
CREDENTIAL_SECRET_PATTERNS = [
    re.compile(r"(ya29\.[a-zA-Z0-9_\-.]+)"),  # Google access tokens
    re.compile(r"(1//[a-zA-Z0-9_\-]{20,})"),  # Google refresh tokens
    re.compile(r"(pat-[a-z]{2}\d-[a-fA-F0-9\-]{36})"),  # HubSpot private-app tokens
    re.compile(r"\b(C[A-Za-z0-9]{2}[A-Za-z0-9_\-]{60,})"),  # HubSpot OAuth access tokens
    re.compile(r"(Bearer\s+[A-Za-z0-9_\-.=]+)", re.IGNORECASE),
]

# Keys that contain "token" but only ever hold timestamps or flags
SAFE_KEYS = frozenset({
    "expires_at",
    "new_expires_at",
    "token_expires_at",
    "google_token_expires_at",
    "hubspot_token_expires_at",
    "has_refresh_token",
})

_SECRET_KEY_PARTS = (
    "token", "secret", "credential", "bearer",
    "oauth", "api_key", "apikey", "password", "authorization",
)


def is_credential_secret_key(key: str) -> bool:
    """
    Check if a key name indicates a credential secret.

    Args:
        key: The key name to check

    Returns:
        True if the key likely contains a secret
    """
    key_lower = key.lower()
    if key_lower in SAFE_KEYS:
        return False
    return any(part in key_lower for part in _SECRET_KEY_PARTS)


def redact_credential_value(value: Any) -> Any:
    """
    Redact token patterns from a value.

    Non-string values are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    result = value
    for pattern in CREDENTIAL_SECRET_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)
    return result


def redact_credential_data(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact credential secrets from a data structure.

    Args:
        data: Dictionary, list, or other data structure

    Returns:
        Copy of data with secrets redacted
    """
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and is_credential_secret_key(key):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_credential_data(value, _depth + 1)
        return result

    if isinstance(data, (list, tuple)):
        return [redact_credential_data(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_credential_value(data)

    return data


class CredentialAuditLogger:
    """
    Structured audit logger for credential operations.

    SECURITY:
    - Tokens are NEVER logged
    - metadata is redacted before it reaches the handler
    """

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.logger = logging.getLogger("credentials.audit")

    def log(
        self,
        event_type: AuditEventType,
        provider: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: Type of audit event
            provider: Provider name (google, hubspot)
            metadata: Additional context (will be redacted)
        """
        safe_metadata = redact_credential_data(metadata) if metadata else {}

        audit_record = {
            "event_type": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_id": self.user_id,
            "provider": provider,
            **safe_metadata,
        }

        self.logger.info(
            f"Credential audit: {event_type.value}",
            extra=audit_record
        )

    def log_error(self, provider: str, error: str) -> None:
        """Log a credential error; the message is redacted first."""
        self.log(
            event_type=AuditEventType.CREDENTIAL_ERROR,
            provider=provider,
            metadata={"error": redact_credential_value(error)},
        )


class CredentialLoggingFilter(logging.Filter):
    """
    Logging filter that redacts credential secrets from log records.

    Usage:
        logger.addFilter(CredentialLoggingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_credential_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_credential_data(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_credential_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key in list(record.__dict__.keys()):
            value = record.__dict__[key]
            if is_credential_secret_key(key):
                record.__dict__[key] = REDACTED_VALUE
            elif isinstance(value, str):
                record.__dict__[key] = redact_credential_value(value)

        return True


def setup_credential_logging() -> None:
    """
    Configure credential-safe logging.

    Call this during application startup so every credential logger has
    the redaction filter applied.
    """
    credential_filter = CredentialLoggingFilter()

    credential_loggers = [
        "credentials.audit",
        "src.credentials",
        "src.credentials.manager",
        "src.credentials.providers",
        "src.credentials.store",
        "src.credentials.locks",
        "httpx",
    ]

    for logger_name in credential_loggers:
        log = logging.getLogger(logger_name)
        if not any(isinstance(f, CredentialLoggingFilter) for f in log.filters):
            log.addFilter(credential_filter)

    logger.info("Credential logging configured with redaction filter")
