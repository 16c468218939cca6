"""
Audit trail sinks for record access events.

Sinks are append-only. The gateway treats a write as fire-and-forget: a
failing sink is logged and counted but never fails the retrieval.
"""

from typing import List, Protocol, runtime_checkable

from .models import AuditAction, AuditEvent
from .observability.logging import AUDIT_LOG_KEY, get_logger


@runtime_checkable
class AuditTrail(Protocol):
    """Append-only sink for structured security events."""

    async def record(self, event: AuditEvent) -> None:
        ...


class InMemoryAuditTrail:
    """List-backed audit trail for development and tests."""

    def __init__(self):
        self._events: List[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[AuditEvent]:
        # Copy so callers cannot mutate the trail
        return list(self._events)

    def by_action(self, action: AuditAction) -> List[AuditEvent]:
        return [e for e in self._events if e.action == action]


class LoggingAuditTrail:
    """
    Writes each event as one structured `audit_event` log line.

    The event sits under the `audit` key, apart from the fields the log
    pipeline adds (its own timestamp, level) and out of reach of PII
    redaction. Pair with a log shipper that treats the audit logger as an
    append-only stream.
    """

    def __init__(self, logger_name: str = "record_access.audit.trail"):
        self._logger = get_logger(logger_name)

    async def record(self, event: AuditEvent) -> None:
        self._logger.info("audit_event", **{AUDIT_LOG_KEY: event.to_dict()})
