"""
Record Access - access-gated retrieval of encrypted medical records

Releases a record's encrypted payload from a content-addressed store only
after a local grant (OpenFGA) and an on-chain check (Soroban) both confirm
access. Decisions are cached briefly with single-flight resolution, and
every resolved attempt is audited.
"""

from .audit import AuditTrail, InMemoryAuditTrail, LoggingAuditTrail
from .auth_service import (
    AccessDecisionResolver,
    GrantStore,
    InMemoryGrantStore,
    OpenFgaGrantStore,
)
from .blobstore import BlobStore, InMemoryBlobStore, IpfsGatewayBlobStore
from .caching import AccessDecisionCache
from .catalog import InMemoryRecordCatalog, RecordCatalog
from .exceptions import (
    AccessForbidden,
    RecordAccessError,
    RecordNotFound,
    ServiceUnavailable,
    TransportError,
    VerificationUnavailable,
)
from .gateway import RecordAccessGateway
from .models import (
    AccessDecision,
    AuditAction,
    AuditEvent,
    AuditSeverity,
    BlobContent,
    CacheOptions,
    CachePriority,
    DecisionSource,
    OnChainVerification,
    Record,
    RetrievedPayload,
)
from .onchain import OnChainVerifier, SorobanAccessVerifier, StaticOnChainVerifier
from .utils import ANONYMOUS_REQUESTER_ID

__version__ = "0.1.0"
__all__ = [
    "RecordAccessGateway",
    "AccessDecisionResolver",
    "AccessDecisionCache",
    "GrantStore",
    "OpenFgaGrantStore",
    "InMemoryGrantStore",
    "OnChainVerifier",
    "SorobanAccessVerifier",
    "StaticOnChainVerifier",
    "BlobStore",
    "IpfsGatewayBlobStore",
    "InMemoryBlobStore",
    "RecordCatalog",
    "InMemoryRecordCatalog",
    "AuditTrail",
    "InMemoryAuditTrail",
    "LoggingAuditTrail",
    "RecordAccessError",
    "RecordNotFound",
    "AccessForbidden",
    "ServiceUnavailable",
    "VerificationUnavailable",
    "TransportError",
    "AccessDecision",
    "AuditAction",
    "AuditEvent",
    "AuditSeverity",
    "BlobContent",
    "CacheOptions",
    "CachePriority",
    "DecisionSource",
    "OnChainVerification",
    "Record",
    "RetrievedPayload",
    "ANONYMOUS_REQUESTER_ID",
]
