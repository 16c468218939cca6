"""Tests for the on-chain verifiers."""

import json

import httpx
import pytest

from record_access.exceptions import TransportError
from record_access.onchain import OnChainVerifier, SorobanAccessVerifier, StaticOnChainVerifier

RPC_URL = "https://soroban-testnet.stellar.org"


def make_verifier(handler) -> SorobanAccessVerifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SorobanAccessVerifier(rpc_url=RPC_URL, contract_id="test-contract-id", client=client)


class TestSorobanAccessVerifier:

    @pytest.mark.asyncio
    async def test_verify_parses_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["url"] = str(request.url)
            return httpx.Response(200, json={
                "jsonrpc": "2.0",
                "id": seen["body"]["id"],
                "result": {"has_access": True, "tx_hash": "tx-abc", "grant_id": "grant-7"},
            })

        verifier = make_verifier(handler)
        result = await verifier.verify("requester-123", "record-456")

        assert result.has_access is True
        assert result.tx_hash == "tx-abc"
        assert result.grant_id == "grant-7"
        assert seen["url"] == RPC_URL
        assert seen["body"]["method"] == "verify_access"
        assert seen["body"]["params"] == {
            "contract_id": "test-contract-id",
            "requester_id": "requester-123",
            "record_id": "record-456",
        }

    @pytest.mark.asyncio
    async def test_denied_result(self):
        verifier = make_verifier(
            lambda request: httpx.Response(200, json={"result": {"has_access": False}})
        )

        result = await verifier.verify("u1", "r1")

        assert result.has_access is False
        assert result.tx_hash is None

    @pytest.mark.asyncio
    async def test_non_200_raises_transport_error(self):
        verifier = make_verifier(lambda request: httpx.Response(503, text="busy"))

        with pytest.raises(TransportError) as exc_info:
            await verifier.verify("u1", "r1")

        assert exc_info.value.status_code == 503
        assert exc_info.value.service == "soroban"

    @pytest.mark.asyncio
    async def test_rpc_error_raises_transport_error(self):
        verifier = make_verifier(lambda request: httpx.Response(
            200, json={"error": {"code": -32600, "message": "contract not found"}}
        ))

        with pytest.raises(TransportError, match="contract not found"):
            await verifier.verify("u1", "r1")

    @pytest.mark.asyncio
    async def test_missing_has_access_is_not_treated_as_denial(self):
        verifier = make_verifier(lambda request: httpx.Response(200, json={"result": {}}))

        with pytest.raises(TransportError):
            await verifier.verify("u1", "r1")

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        verifier = make_verifier(handler)

        with pytest.raises(TransportError):
            await verifier.verify("u1", "r1")

    def test_contract_id_required(self):
        with pytest.raises(ValueError):
            SorobanAccessVerifier(rpc_url=RPC_URL, contract_id="")


class TestStaticOnChainVerifier:

    @pytest.mark.asyncio
    async def test_answers_from_table_then_default(self):
        verifier = StaticOnChainVerifier({("u1", "r1"): True}, default=False)
        assert isinstance(verifier, OnChainVerifier)

        granted = await verifier.verify("u1", "r1")
        denied = await verifier.verify("u2", "r1")

        assert granted.has_access is True
        assert granted.tx_hash == "static-tx-r1"
        assert denied.has_access is False
        assert verifier.call_count == 2

    @pytest.mark.asyncio
    async def test_injected_failure(self):
        verifier = StaticOnChainVerifier(failure=TransportError("soroban", "down"))

        with pytest.raises(TransportError):
            await verifier.verify("u1", "r1")
