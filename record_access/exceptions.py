"""
Exceptions raised across the record access system.

Caller-facing errors (subclasses of RecordAccessError) never carry storage
pointers or the identity of the downstream service that failed in their
message. That context travels in attributes and in the chained cause, and is
only written to logs.
"""

from typing import Optional


class RecordAccessError(Exception):
    """Base class for errors returned to callers of the gateway."""

    retryable = False


class RecordNotFound(RecordAccessError):
    """Raised when the record identifier is unknown."""

    def __init__(self, record_id: str):
        super().__init__(f"Record {record_id} not found")
        self.record_id = record_id


class AccessForbidden(RecordAccessError):
    """Raised when the access decision resolved to false."""

    def __init__(self, record_id: str, requester_id: str):
        super().__init__("Access denied to this record")
        self.record_id = record_id
        self.requester_id = requester_id


class ServiceUnavailable(RecordAccessError):
    """
    Raised when a downstream dependency could not produce an answer.

    This is an operational failure, not a denial. Callers may retry.
    """

    retryable = True

    def __init__(self, stage: str):
        super().__init__("Record service temporarily unavailable")
        self.stage = stage


class VerificationUnavailable(Exception):
    """Raised by the resolver when a verification tier could not respond."""

    def __init__(self, stage: str, message: Optional[str] = None):
        super().__init__(message or f"Access verification failed at {stage}")
        self.stage = stage


class TransportError(Exception):
    """Raised by HTTP adapters on transport or protocol failures."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code
