"""
Structured security audit logging.

All security events are logged as JSON for machine parsing, covering
authentication, lockout, session, CSRF and payment lifecycle events.

NEVER logs: passwords, session tokens, CSRF tokens, or full ID numbers.
"""

import json
import logging
import re
import time
from typing import Any, Dict


# Control characters that could enable log injection attacks.
_LOG_INJECTION_PATTERN = re.compile(r'[\x00-\x08\x0a-\x1f\x7f]')

AUDIT_LOGGER_NAME = 'security.audit'

# Optional context fields copied from the log record, in output order.
_CONTEXT_FIELDS = (
    'principal_type',
    'username',
    'principal_id',
    'ip',
    'user_agent',
    'request_id',
    'reason',
    'attempts',
    'locked_until',
    'transaction_id',
    'count',
)


def sanitize_log_value(value: Any, max_length: int = 256) -> str:
    """
    Sanitize a value for safe inclusion in log output.

    Removes control characters (including CR/LF) and truncates.
    """
    cleaned = _LOG_INJECTION_PATTERN.sub('', str(value))
    return cleaned[:max_length]


def mask_identifier(value: str, keep_start: int = 4, keep_end: int = 2) -> str:
    """Mask the middle of an identifier, e.g. 8001****87."""
    if len(value) <= keep_start + keep_end:
        return '*' * len(value)
    return value[:keep_start] + '****' + value[-keep_end:]


class SecurityAuditFormatter(logging.Formatter):
    """JSON formatter for security audit events."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%S%z', time.gmtime(record.created)),
            'level': record.levelname,
            'event': getattr(record, 'event', 'unknown'),
            'message': sanitize_log_value(record.getMessage(), max_length=512),
        }

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = sanitize_log_value(value)

        return json.dumps(log_entry)


def setup_security_logging(app) -> logging.Logger:
    """
    Configure the security audit logger.

    Returns the dedicated 'security.audit' logger writing JSON to stderr.
    """
    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    logger.setLevel(logging.INFO)

    # Repeated create_app() calls (tests) must not stack handlers.
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(SecurityAuditFormatter())
    logger.addHandler(console_handler)

    return logger


def audit_log(event: str, message: str, level: int = logging.INFO, **context) -> None:
    """
    Log a security audit event.

    Args:
        event: Event type (e.g., 'login_success', 'transaction_verified')
        message: Human-readable description
        level: Logging level; lockouts and CSRF failures use WARNING
        **context: Additional context (ip, username, principal_type, ...)
    """
    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    extra = {'event': event}
    extra.update(context)
    logger.log(level, message, extra=extra)
