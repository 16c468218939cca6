"""
Access-gated retrieval of encrypted medical records.
"""

import asyncio
import time
from typing import Any, Awaitable, Optional, Tuple

import structlog

from .audit import AuditTrail
from .auth_service import AccessDecisionResolver
from .blobstore import BlobStore
from .caching import AccessDecisionCache
from .catalog import RecordCatalog
from .exceptions import (
    AccessForbidden,
    RecordNotFound,
    ServiceUnavailable,
    VerificationUnavailable,
)
from .models import (
    AccessDecision,
    AuditAction,
    AuditEvent,
    AuditSeverity,
    BlobContent,
    CacheOptions,
    CachePriority,
    Record,
    RetrievedPayload,
    utc_now,
)
from .observability.logging import get_logger
from .observability.metrics import (
    ACCESS_DECISIONS,
    AUDIT_WRITE_FAILURES,
    DOWNSTREAM_FAILURES,
    RETRIEVAL_LATENCY,
)
from .utils import access_cache_key, record_tag, requester_tag, resolve_requester_id

logger = get_logger(__name__)

ACCESS_CACHE_TTL_MS = 60_000
AUDIT_WRITE_TIMEOUT_SECONDS = 2.0
ACCESS_CACHE_CATEGORY = "access-control"
RECORD_ENTITY = "Record"


class RecordAccessGateway:
    """
    Gateway that releases a record payload only after a fresh access decision.

    Every call runs the same sequence:
    1. Look up the record (unknown ID -> RecordNotFound, nothing audited)
    2. Resolve the access decision through the cache (single-flight per
       requester/record pair)
    3. Audit the outcome, denied or granted, even on a cache hit
    4. On denial raise AccessForbidden; on grant fetch the blob live
    5. Merge metadata and return the payload

    A dependency that cannot answer yields ServiceUnavailable. It is never
    cached, never audited as an access attempt and never turned into a
    denial.

    The caller's timeout bounds the lookup, the decision and the blob fetch.
    The audit write runs outside it under its own bound, so a slow sink
    cannot turn a decision into a timeout or lose the event.
    """

    def __init__(
        self,
        record_catalog: RecordCatalog,
        resolver: AccessDecisionResolver,
        decision_cache: AccessDecisionCache,
        blob_store: BlobStore,
        audit_trail: AuditTrail,
        access_ttl_ms: int = ACCESS_CACHE_TTL_MS,
        include_storage_pointer: bool = True,
        audit_write_timeout: Optional[float] = AUDIT_WRITE_TIMEOUT_SECONDS
    ):
        """
        Initialize the gateway.

        Args:
            record_catalog: Lookup of record rows
            resolver: Combines grant and on-chain checks into a decision
            decision_cache: Shared cache for access decisions
            blob_store: Content-addressed store holding encrypted payloads
            audit_trail: Sink for security audit events
            access_ttl_ms: How long a resolved decision stays valid
            include_storage_pointer: Whether ACCESSED audit details carry the CID
            audit_write_timeout: Bound on one audit write in seconds; None waits
        """
        self.record_catalog = record_catalog
        self.resolver = resolver
        self.decision_cache = decision_cache
        self.blob_store = blob_store
        self.audit_trail = audit_trail
        self.access_ttl_ms = access_ttl_ms
        self.include_storage_pointer = include_storage_pointer
        self.audit_write_timeout = audit_write_timeout

    async def get_record(
        self,
        record_id: str,
        requester_id: Optional[str] = None,
        *,
        timeout: Optional[float] = None
    ) -> RetrievedPayload:
        """
        Retrieve a record's encrypted payload on behalf of a requester.

        Args:
            record_id: ID of the record to retrieve
            requester_id: ID of the requester; anonymous sentinel when omitted
            timeout: Optional bound in seconds on lookup, decision and fetch

        Returns:
            RetrievedPayload with merged metadata

        Raises:
            RecordNotFound: The record does not exist
            AccessForbidden: The access decision is negative
            ServiceUnavailable: A dependency could not respond (retryable)
        """
        requester_id = resolve_requester_id(requester_id)
        started = time.perf_counter()
        outcome = "error"

        try:
            with structlog.contextvars.bound_contextvars(
                record_id=record_id,
                requester_id=requester_id,
            ):
                deadline = None
                if timeout is not None:
                    deadline = asyncio.get_running_loop().time() + timeout
                payload = await self._get_record(record_id, requester_id, deadline)
            outcome = "granted"
            return payload
        except RecordNotFound:
            outcome = "not_found"
            raise
        except AccessForbidden:
            outcome = "denied"
            raise
        except ServiceUnavailable:
            outcome = "unavailable"
            raise
        finally:
            RETRIEVAL_LATENCY.labels(outcome=outcome).observe(time.perf_counter() - started)

    async def _get_record(
        self,
        record_id: str,
        requester_id: str,
        deadline: Optional[float]
    ) -> RetrievedPayload:
        record, decision = await self._within(self._decide(record_id, requester_id), deadline)

        if not decision.granted:
            await self._emit(self._denial_event(record, requester_id, decision))
            raise AccessForbidden(record_id, requester_id)

        await self._emit(self._access_event(record, requester_id, decision))

        blob = await self._within(self._fetch(record), deadline)

        logger.info("record_retrieved", size=len(blob.encrypted_payload))
        return RetrievedPayload(
            cid=blob.cid,
            encrypted_payload=blob.encrypted_payload,
            metadata={**record.metadata, **blob.metadata},
            stellar_tx_hash=record.stellar_tx_hash,
        )

    async def _decide(self, record_id: str, requester_id: str) -> Tuple[Record, AccessDecision]:
        logger.info("record_lookup")

        try:
            record = await self.record_catalog.lookup(record_id)
        except Exception as exc:
            raise self._unavailable("catalog_lookup", exc) from exc

        if record is None:
            logger.warning("record_not_found")
            raise RecordNotFound(record_id)

        key = access_cache_key(requester_id, record_id)
        try:
            decision: AccessDecision = await self.decision_cache.get_or_compute(
                key,
                lambda: self.resolver.resolve(requester_id, record_id),
                self._cache_options(requester_id, record_id),
            )
        except VerificationUnavailable as exc:
            raise self._unavailable(exc.stage, exc) from exc

        ACCESS_DECISIONS.labels(
            outcome="granted" if decision.granted else "denied",
            source=decision.source.value,
        ).inc()
        return record, decision

    async def _fetch(self, record: Record) -> BlobContent:
        try:
            return await self.blob_store.fetch(record.cid)
        except Exception as exc:
            raise self._unavailable("blob_fetch", exc) from exc

    async def _within(self, awaitable: Awaitable[Any], deadline: Optional[float]) -> Any:
        if deadline is None:
            return await awaitable
        remaining = max(deadline - asyncio.get_running_loop().time(), 0)
        try:
            return await asyncio.wait_for(awaitable, remaining)
        except asyncio.TimeoutError as exc:
            raise self._unavailable("timeout", exc) from exc

    async def revoke_access(self, requester_id: str, record_id: str) -> None:
        """
        Revoke a requester's local grant and drop its cached decision.

        The grant store must support revoke(). The cache is invalidated after
        the grant is gone so a decision computed in between is not kept.
        """
        await self.resolver.grant_store.revoke(requester_id, record_id)
        self.decision_cache.invalidate(access_cache_key(requester_id, record_id))
        logger.info("access_revoked", requester_id=requester_id, record_id=record_id)

    def invalidate_record(self, record_id: str) -> int:
        """Drop every cached decision for a record. Returns entries removed."""
        return self.decision_cache.invalidate_tag(record_tag(record_id))

    def _cache_options(self, requester_id: str, record_id: str) -> CacheOptions:
        return CacheOptions(
            ttl_ms=self.access_ttl_ms,
            category=ACCESS_CACHE_CATEGORY,
            priority=CachePriority.HIGH,
            tags=[requester_tag(requester_id), record_tag(record_id)],
        )

    def _denial_event(
        self,
        record: Record,
        requester_id: str,
        decision: AccessDecision
    ) -> AuditEvent:
        timestamp = utc_now()
        return AuditEvent(
            user_id=requester_id,
            action=AuditAction.UNAUTHORIZED_ATTEMPT,
            entity=RECORD_ENTITY,
            entity_id=record.id,
            severity=AuditSeverity.HIGH,
            details={
                "record_id": record.id,
                "requester_id": requester_id,
                "decision_source": decision.source.value,
                "timestamp": timestamp.isoformat(),
            },
            timestamp=timestamp,
        )

    def _access_event(
        self,
        record: Record,
        requester_id: str,
        decision: AccessDecision
    ) -> AuditEvent:
        timestamp = utc_now()
        details = {
            "record_id": record.id,
            "requester_id": requester_id,
            "decision_source": decision.source.value,
            "timestamp": timestamp.isoformat(),
        }
        if self.include_storage_pointer:
            details["cid"] = record.cid
        return AuditEvent(
            user_id=requester_id,
            action=AuditAction.ACCESSED,
            entity=RECORD_ENTITY,
            entity_id=record.id,
            severity=AuditSeverity.LOW,
            details=details,
            timestamp=timestamp,
        )

    async def _emit(self, event: AuditEvent) -> None:
        """Write an audit event. A failing or stalled sink is logged, never raised."""
        try:
            if self.audit_write_timeout is None:
                await self.audit_trail.record(event)
            else:
                await asyncio.wait_for(self.audit_trail.record(event), self.audit_write_timeout)
        except Exception as exc:
            AUDIT_WRITE_FAILURES.labels(action=event.action.value).inc()
            logger.error(
                "audit_write_failed",
                audit_event_id=event.id,
                action=event.action.value,
                severity=event.severity.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return
        logger.debug("audit_event_recorded", audit_event_id=event.id, action=event.action.value)

    async def aclose(self) -> None:
        """Close collaborators that hold network clients."""
        collaborators = (self.resolver.grant_store, self.resolver.on_chain_verifier, self.blob_store)
        for collaborator in collaborators:
            close = getattr(collaborator, "aclose", None)
            if close is not None:
                await close()

    def _unavailable(self, stage: str, exc: BaseException) -> ServiceUnavailable:
        DOWNSTREAM_FAILURES.labels(stage=stage).inc()
        logger.error(
            "dependency_unavailable",
            stage=stage,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return ServiceUnavailable(stage)
