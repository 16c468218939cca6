"""
On-chain access verification against the Soroban access contract.
"""

import itertools
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

import httpx

from .exceptions import TransportError
from .models import OnChainVerification
from .observability.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class OnChainVerifier(Protocol):
    """Authoritative access check against a smart-contract ledger."""

    async def verify(self, requester_id: str, record_id: str) -> OnChainVerification:
        ...


class SorobanAccessVerifier:
    """
    Calls the access contract's read-only verify_access view over JSON-RPC.

    Request: {"jsonrpc": "2.0", "id": n, "method": "verify_access",
              "params": {"contract_id", "requester_id", "record_id"}}
    Response result: {"has_access": bool, "tx_hash": str?, "grant_id": str?}

    Any HTTP failure, non-200 status or JSON-RPC error raises TransportError.
    """

    SERVICE = "soroban"

    def __init__(
        self,
        rpc_url: str = "https://soroban-testnet.stellar.org",
        contract_id: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the verifier.

        Args:
            rpc_url: Soroban RPC endpoint
            contract_id: Deployed access-control contract ID
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        if not contract_id:
            raise ValueError("Soroban contract_id is required")
        self.rpc_url = rpc_url
        self.contract_id = contract_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def verify(self, requester_id: str, record_id: str) -> OnChainVerification:
        request_id = next(self._ids)
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "verify_access",
            "params": {
                "contract_id": self.contract_id,
                "requester_id": requester_id,
                "record_id": record_id,
            },
        }
        logger.debug(
            "soroban_verify_request",
            requester_id=requester_id,
            record_id=record_id,
            request_id=request_id,
        )

        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(self.SERVICE, f"request failed: {exc}") from exc

        if response.status_code != 200:
            raise TransportError(
                self.SERVICE,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(self.SERVICE, "malformed JSON response") from exc

        if body.get("error"):
            error = body["error"]
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            raise TransportError(self.SERVICE, f"rpc error: {message}")

        result = body.get("result")
        if not isinstance(result, dict) or not isinstance(result.get("has_access"), bool):
            raise TransportError(self.SERVICE, "response missing has_access")

        return OnChainVerification(
            has_access=result["has_access"],
            tx_hash=result.get("tx_hash"),
            grant_id=result.get("grant_id"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class StaticOnChainVerifier:
    """
    Deterministic verifier for tests and local development.

    Answers from a (requester_id, record_id) -> bool table, falling back to
    a default. Set `failure` to make every call raise it.
    """

    def __init__(
        self,
        answers: Optional[Dict[Tuple[str, str], bool]] = None,
        default: bool = False,
        failure: Optional[Exception] = None,
    ):
        self.answers = dict(answers or {})
        self.default = default
        self.failure = failure
        self.calls: list = []

    async def verify(self, requester_id: str, record_id: str) -> OnChainVerification:
        self.calls.append((requester_id, record_id))
        if self.failure is not None:
            raise self.failure
        has_access = self.answers.get((requester_id, record_id), self.default)
        return OnChainVerification(
            has_access=has_access,
            tx_hash=f"static-tx-{record_id}" if has_access else None,
            grant_id=f"static-grant-{requester_id}-{record_id}" if has_access else None,
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)

