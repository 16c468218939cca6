"""Structured logging configuration using structlog.

JSON output for production, console output for development. Secrets and
payload bytes are masked before rendering; audit events logged under
AUDIT_LOG_KEY pass through untouched.
"""

import re
import sys
from typing import Any, Dict, List, cast

import structlog
from structlog.types import EventDict, WrappedLogger

# Key under which LoggingAuditTrail nests an AuditEvent. The redactor leaves
# it as recorded.
AUDIT_LOG_KEY = "audit"

SENSITIVE_KEYS = frozenset({
    "client_secret",
    "api_token",
    "access_token",
    "authorization",
    "credentials",
    "encrypted_payload",
    "payload",
})

# Error strings from OpenFGA token exchange and gateway responses
BEARER_PATTERN = re.compile(r"(?i)bearer\s+[A-Za-z0-9\-._~+/]+=*")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


class PIIRedactor:
    """Processor that masks secrets and e-mail addresses in log events.

    Keys listed in SENSITIVE_KEYS are replaced outright. Other string values
    are scanned for bearer tokens and e-mail addresses, since requester IDs
    may be e-mails. The audit key is skipped.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        result: Dict[str, Any] = {}
        for key, value in event_dict.items():
            if key == AUDIT_LOG_KEY:
                result[key] = value
            else:
                result[key] = self._redact_item(key, value)
        return cast(EventDict, result)

    def _redact_item(self, key: Any, value: Any) -> Any:
        if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
            return "[REDACTED]"
        if isinstance(value, dict):
            return {k: self._redact_item(k, v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._redact_item(None, item) for item in value]
        if isinstance(value, str):
            value = BEARER_PATTERN.sub("Bearer [REDACTED]", value)
            return EMAIL_PATTERN.sub("[EMAIL]", value)
        return value


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for production, "console" for development
        redact_pii: Whether to mask secrets and e-mails before rendering
    """
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if redact_pii:
        processors.append(PIIRedactor())

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LEVELS.get(level.upper(), 20)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to the given module name."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
