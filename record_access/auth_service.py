"""
Access decision resolution for medical records.

A requester may read a record only if both tiers agree:
1. A local grant exists (OpenFGA relationship tuple)
2. The on-chain access contract confirms it

The local grant is a precondition, so the on-chain call is skipped when it
is missing.
"""

from typing import Optional, Protocol, Set, Tuple, runtime_checkable

from openfga_sdk import OpenFgaClient
from openfga_sdk.client.models import ClientCheckRequest, ClientTuple, ClientWriteRequest

from .exceptions import VerificationUnavailable
from .models import AccessDecision, DecisionSource
from .observability.logging import get_logger
from .onchain import OnChainVerifier

logger = get_logger(__name__)


@runtime_checkable
class GrantStore(Protocol):
    """Local record of explicit access grants."""

    async def verify(self, requester_id: str, record_id: str) -> bool:
        ...


class OpenFgaGrantStore:
    """
    Grant store backed by OpenFGA relationship tuples.

    A grant is the tuple (user:<requester>, <relation>, record:<record>).
    Granting writes the tuple, revoking deletes it.
    """

    def __init__(
        self,
        openfga_client: OpenFgaClient,
        relation: str = "viewer",
        authorization_model_id: Optional[str] = None
    ):
        """
        Initialize the grant store.

        Args:
            openfga_client: Configured OpenFGA client (store id set on its configuration)
            relation: Relation that confers read access to a record
            authorization_model_id: Optional pinned authorization model
        """
        self.client = openfga_client
        self.relation = relation
        self.authorization_model_id = authorization_model_id

    def _tuple(self, requester_id: str, record_id: str) -> ClientTuple:
        return ClientTuple(
            user=f"user:{requester_id}",
            relation=self.relation,
            object=f"record:{record_id}"
        )

    def _options(self) -> dict:
        if self.authorization_model_id:
            return {"authorization_model_id": self.authorization_model_id}
        return {}

    async def verify(self, requester_id: str, record_id: str) -> bool:
        """Check whether the requester holds a grant on the record."""
        response = await self.client.check(
            ClientCheckRequest(
                user=f"user:{requester_id}",
                relation=self.relation,
                object=f"record:{record_id}"
            ),
            self._options()
        )
        return bool(response.allowed)

    async def grant(self, requester_id: str, record_id: str) -> None:
        """Grant the requester read access to the record."""
        await self.client.write(
            ClientWriteRequest(writes=[self._tuple(requester_id, record_id)]),
            self._options()
        )
        logger.info("grant_written", requester_id=requester_id, record_id=record_id)

    async def revoke(self, requester_id: str, record_id: str) -> None:
        """Remove the requester's grant on the record."""
        await self.client.write(
            ClientWriteRequest(deletes=[self._tuple(requester_id, record_id)]),
            self._options()
        )
        logger.info("grant_revoked", requester_id=requester_id, record_id=record_id)


class InMemoryGrantStore:
    """Set-backed grant store for development and tests."""

    def __init__(self, grants: Optional[Set[Tuple[str, str]]] = None):
        self.grants: Set[Tuple[str, str]] = set(grants or ())
        self.verify_calls = 0

    async def verify(self, requester_id: str, record_id: str) -> bool:
        self.verify_calls += 1
        return (requester_id, record_id) in self.grants

    async def grant(self, requester_id: str, record_id: str) -> None:
        self.grants.add((requester_id, record_id))

    async def revoke(self, requester_id: str, record_id: str) -> None:
        self.grants.discard((requester_id, record_id))


class AccessDecisionResolver:
    """
    Combines the local grant check with on-chain verification.

    The resolver never caches. It returns a decision or raises
    VerificationUnavailable; a failure to verify is never reported as a
    denial or as a grant.
    """

    def __init__(self, grant_store: GrantStore, on_chain_verifier: OnChainVerifier):
        """
        Initialize the resolver.

        Args:
            grant_store: Local grant lookup
            on_chain_verifier: Authoritative on-chain access check
        """
        self.grant_store = grant_store
        self.on_chain_verifier = on_chain_verifier

    async def resolve(self, requester_id: str, record_id: str) -> AccessDecision:
        """
        Resolve whether the requester may read the record.

        Args:
            requester_id: ID of the requesting identity
            record_id: ID of the record being accessed

        Returns:
            AccessDecision with granted flag and provenance

        Raises:
            VerificationUnavailable: If either tier could not answer
        """
        try:
            has_grant = await self.grant_store.verify(requester_id, record_id)
        except Exception as exc:
            logger.error(
                "grant_check_failed",
                requester_id=requester_id,
                record_id=record_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise VerificationUnavailable("grant_check") from exc

        if not has_grant:
            logger.info("access_denied_no_grant", requester_id=requester_id, record_id=record_id)
            return AccessDecision(
                requester_id=requester_id,
                record_id=record_id,
                granted=False,
                source=DecisionSource.GRANT_DENIED,
            )

        try:
            verification = await self.on_chain_verifier.verify(requester_id, record_id)
        except Exception as exc:
            logger.error(
                "on_chain_verification_failed",
                requester_id=requester_id,
                record_id=record_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise VerificationUnavailable("on_chain_verification") from exc

        logger.info(
            "access_decision_resolved",
            requester_id=requester_id,
            record_id=record_id,
            granted=verification.has_access,
            tx_hash=verification.tx_hash,
        )
        return AccessDecision(
            requester_id=requester_id,
            record_id=record_id,
            granted=bool(verification.has_access),
            source=DecisionSource.ON_CHAIN,
            tx_hash=verification.tx_hash,
            grant_id=verification.grant_id,
        )
