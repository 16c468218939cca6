"""
Data models for the record access system.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


class DecisionSource(str, Enum):
    """Which tier produced an access decision."""
    GRANT_DENIED = "grant"  # local grant missing, on-chain never consulted
    ON_CHAIN = "grant+on_chain"


class AuditAction(str, Enum):
    ACCESSED = "RECORD_ACCESSED"
    UNAUTHORIZED_ATTEMPT = "UNAUTHORIZED_ACCESS_ATTEMPT"


class AuditSeverity(str, Enum):
    LOW = "LOW"
    HIGH = "HIGH"


class CachePriority(int, Enum):
    """Eviction weighting for cache entries. Higher survives longer."""
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


@dataclass(frozen=True)
class Record:
    """A medical record row as seen by the retrieval path (read-only)."""
    id: str
    patient_id: str
    cid: str  # content address of the encrypted blob
    stellar_tx_hash: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class OnChainVerification:
    """Result of the authoritative on-chain access check."""
    has_access: bool
    tx_hash: Optional[str] = None
    grant_id: Optional[str] = None


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of resolving whether a requester may read a record."""
    requester_id: str
    record_id: str
    granted: bool
    source: DecisionSource
    decided_at: datetime = field(default_factory=utc_now)
    tx_hash: Optional[str] = None
    grant_id: Optional[str] = None


@dataclass(frozen=True)
class CacheOptions:
    """Cache-management metadata attached to an entry."""
    ttl_ms: int = 60_000
    category: str = "default"
    priority: CachePriority = CachePriority.NORMAL
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {self.ttl_ms}")


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float
    created_at: float
    options: CacheOptions

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class AuditEvent:
    """Represents an audit event for compliance and security tracking."""
    user_id: str
    action: AuditAction
    entity: str
    entity_id: str
    severity: AuditSeverity
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action.value,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "severity": self.severity.value,
            "details": dict(self.details),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class BlobContent:
    """Encrypted blob as returned by the content-addressed store."""
    cid: str
    encrypted_payload: bytes
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RetrievedPayload:
    """Response assembled for a successful record retrieval."""
    cid: str
    encrypted_payload: bytes
    metadata: Dict[str, Any]
    stellar_tx_hash: Optional[str] = None
