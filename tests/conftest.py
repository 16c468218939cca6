"""Shared fixtures for the record access test suite."""

import pytest

from record_access.audit import InMemoryAuditTrail
from record_access.auth_service import AccessDecisionResolver, InMemoryGrantStore
from record_access.blobstore import InMemoryBlobStore
from record_access.caching import AccessDecisionCache
from record_access.catalog import InMemoryRecordCatalog
from record_access.gateway import RecordAccessGateway
from record_access.models import BlobContent, Record
from record_access.onchain import StaticOnChainVerifier


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def record() -> Record:
    return Record(
        id="r1",
        patient_id="patient-456",
        cid="QmTest123",
        stellar_tx_hash="stellar-tx-hash-123",
        metadata={"recordType": "consultation", "size": 0},
    )


@pytest.fixture
def blob() -> BlobContent:
    return BlobContent(
        cid="QmTest123",
        encrypted_payload=b"encrypted-data-here",
        metadata={"fetchedAt": "2024-01-01T00:00:00Z", "size": 1024},
    )


@pytest.fixture
def catalog(record) -> InMemoryRecordCatalog:
    return InMemoryRecordCatalog([record])


@pytest.fixture
def blob_store(blob) -> InMemoryBlobStore:
    return InMemoryBlobStore({blob.cid: blob})


@pytest.fixture
def grant_store() -> InMemoryGrantStore:
    return InMemoryGrantStore({("u1", "r1")})


@pytest.fixture
def verifier() -> StaticOnChainVerifier:
    return StaticOnChainVerifier(default=True)


@pytest.fixture
def audit_trail() -> InMemoryAuditTrail:
    return InMemoryAuditTrail()


@pytest.fixture
def decision_cache(clock) -> AccessDecisionCache:
    return AccessDecisionCache(clock=clock)


@pytest.fixture
def gateway(catalog, grant_store, verifier, decision_cache, blob_store, audit_trail) -> RecordAccessGateway:
    return RecordAccessGateway(
        record_catalog=catalog,
        resolver=AccessDecisionResolver(grant_store, verifier),
        decision_cache=decision_cache,
        blob_store=blob_store,
        audit_trail=audit_trail,
    )
