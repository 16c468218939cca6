"""
Example usage of the record access gateway.

Shows the retrieval flow end to end with in-memory collaborators, then how
the same gateway is wired against OpenFGA, Soroban and an IPFS gateway.
"""

import asyncio

from record_access import (
    AccessDecisionCache,
    AccessDecisionResolver,
    AccessForbidden,
    BlobContent,
    InMemoryAuditTrail,
    InMemoryBlobStore,
    InMemoryGrantStore,
    InMemoryRecordCatalog,
    Record,
    RecordAccessGateway,
    RecordNotFound,
    StaticOnChainVerifier,
)
from record_access.config import get_settings
from record_access.factory import create_gateway
from record_access.observability import setup_logging


async def example_local_flow():
    """
    Example of the complete retrieval flow with in-memory collaborators.

    This shows:
    1. A granted retrieval with merged metadata
    2. A denied retrieval and its HIGH severity audit event
    3. A lookup miss, which is not audited
    4. Revoking a grant, which also drops the cached decision
    """
    record = Record(
        id="record-123",
        patient_id="patient-456",
        cid="QmTest123",
        stellar_tx_hash="stellar-tx-hash-123",
        metadata={"recordType": "consultation"},
    )
    audit_trail = InMemoryAuditTrail()
    grant_store = InMemoryGrantStore({("dr-alice", "record-123")})

    gateway = RecordAccessGateway(
        record_catalog=InMemoryRecordCatalog([record]),
        resolver=AccessDecisionResolver(grant_store, StaticOnChainVerifier(default=True)),
        decision_cache=AccessDecisionCache(),
        blob_store=InMemoryBlobStore({
            "QmTest123": BlobContent(
                cid="QmTest123",
                encrypted_payload=b"encrypted-data-here",
                metadata={"size": 19},
            )
        }),
        audit_trail=audit_trail,
    )

    payload = await gateway.get_record("record-123", "dr-alice")
    print(f"Retrieved {payload.cid}: {payload.metadata}")

    try:
        await gateway.get_record("record-123", "dr-mallory")
    except AccessForbidden as e:
        print(f"Denied: {e}")

    try:
        await gateway.get_record("no-such-record", "dr-alice")
    except RecordNotFound as e:
        print(f"Not found: {e}")

    await gateway.revoke_access("dr-alice", "record-123")
    try:
        await gateway.get_record("record-123", "dr-alice")
    except AccessForbidden:
        print("Access revoked")

    for event in audit_trail.events:
        print(f"[audit] {event.severity.value} {event.action.value} by {event.user_id}")


async def example_production_wiring():
    """
    Example of wiring the gateway from RECORD_ACCESS_* settings.

    Requires RECORD_ACCESS_OPENFGA__STORE_ID and
    RECORD_ACCESS_STELLAR__CONTRACT_ID to point at real services.
    """
    settings = get_settings()
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
        redact_pii=settings.observability.redact_pii,
    )

    # In production the catalog is backed by the records table
    catalog = InMemoryRecordCatalog()
    gateway = create_gateway(settings, catalog)

    try:
        payload = await gateway.get_record("record-123", "dr-alice", timeout=5.0)
        print(f"Retrieved {len(payload.encrypted_payload)} encrypted bytes")
    finally:
        await gateway.aclose()


if __name__ == "__main__":
    asyncio.run(example_local_flow())
