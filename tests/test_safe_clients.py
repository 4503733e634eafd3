"""Tests for the Safe API clients (transaction service, client gateway, mock)."""

import json

import httpx
import pytest
from web3 import Web3

from safe_monitor.safe.chains import get_chain, is_supported
from safe_monitor.safe.clients import (
    ClientGatewayClient,
    MockSafeClient,
    SafeAPIError,
    SafeAuthenticationError,
    SafeConnectionError,
    SafeNotFoundError,
    SafeRateLimitError,
    SafeResponseError,
    TransactionServiceClient,
)
from safe_monitor.safe.clients.client_gateway import hash_from_gateway_id
from tests.conftest import SAFE_A

CHECKSUMMED = Web3.to_checksum_address(SAFE_A)
SERVICE = "https://tx.example"
GATEWAY = "https://gateway.example"
HASH_1 = "0x" + "11" * 32
HASH_2 = "0x" + "22" * 32
OWNER = "0x" + "d4" * 20


def service_tx(tx_hash, nonce, confirmations=0, required=2, executed=False):
    return {
        "safeTxHash": tx_hash,
        "to": "0x" + "c3" * 20,
        "value": "1000000000000000000",
        "data": None,
        "operation": 0,
        "nonce": nonce,
        "isExecuted": executed,
        "confirmationsRequired": required,
        "confirmations": [{"owner": OWNER}] * confirmations,
        "dataDecoded": {"method": "transfer"} if nonce == 6 else None,
        "submissionDate": "2026-01-01T10:00:00Z",
    }


def service_client(handler) -> TransactionServiceClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TransactionServiceClient(base_url=SERVICE, http_client=http)


def gateway_client(handler) -> ClientGatewayClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ClientGatewayClient(base_url=GATEWAY, http_client=http)


class TestTransactionServiceClient:
    """Safe info plus paginated multisig transactions."""

    @pytest.mark.asyncio
    async def test_fetch_follows_pagination_and_uses_safe_threshold(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            path = request.url.path
            if path == f"/api/v1/safes/{CHECKSUMMED}/":
                return httpx.Response(200, json={"threshold": 3, "nonce": "5"})
            if request.url.params.get("page") == "2":
                return httpx.Response(
                    200, json={"results": [service_tx(HASH_2, 6, confirmations=1)], "next": None}
                )
            assert request.url.params["nonce__gte"] == "5"
            assert request.url.params["executed"] == "false"
            return httpx.Response(
                200,
                json={
                    "results": [service_tx(HASH_1, 5)],
                    "next": f"{SERVICE}/api/v1/safes/{CHECKSUMMED}/multisig-transactions/?page=2",
                },
            )

        pending = await service_client(handler).fetch_pending(8453, SAFE_A)

        assert [tx.safe_tx_hash for tx in pending] == [HASH_1, HASH_2]
        assert all(tx.confirmations_required == 3 for tx in pending)
        assert pending[1].confirmations == 1
        assert pending[1].confirmed_signers == [OWNER]
        assert pending[1].method == "transfer"
        assert len(requested) == 3

    @pytest.mark.asyncio
    async def test_executed_items_are_dropped(self):
        def handler(request):
            if request.url.path.endswith(f"{CHECKSUMMED}/"):
                return httpx.Response(200, json={"threshold": 2, "nonce": 0})
            return httpx.Response(
                200,
                json={
                    "results": [service_tx(HASH_1, 0, executed=True), service_tx(HASH_2, 1)],
                    "next": None,
                },
            )

        pending = await service_client(handler).fetch_pending(8453, SAFE_A)

        assert [tx.safe_tx_hash for tx in pending] == [HASH_2]

    @pytest.mark.asyncio
    async def test_missing_threshold_is_a_response_error(self):
        def handler(request):
            return httpx.Response(200, json={"nonce": 0})

        with pytest.raises(SafeResponseError):
            await service_client(handler).fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_missing_results_list_is_a_response_error(self):
        def handler(request):
            if request.url.path.endswith(f"{CHECKSUMMED}/"):
                return httpx.Response(200, json={"threshold": 2, "nonce": 0})
            return httpx.Response(200, json={"count": 0})

        with pytest.raises(SafeResponseError):
            await service_client(handler).fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_invalid_address_is_rejected(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(SafeResponseError):
            await service_client(handler).fetch_pending(8453, "0x1234")


class TestErrorMapping:
    """HTTP and transport failures map onto the Safe error taxonomy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [
            (401, SafeAuthenticationError),
            (403, SafeAuthenticationError),
            (404, SafeNotFoundError),
            (429, SafeRateLimitError),
            (500, SafeConnectionError),
            (503, SafeConnectionError),
            (422, SafeAPIError),
        ],
    )
    async def test_status_codes(self, status, error):
        def handler(request):
            return httpx.Response(status, text="nope")

        with pytest.raises(error):
            await service_client(handler).fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "7"})

        with pytest.raises(SafeRateLimitError) as exc_info:
            await service_client(handler).fetch_pending(8453, SAFE_A)

        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})

        with pytest.raises(SafeResponseError):
            await service_client(handler).fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SafeConnectionError):
            await service_client(handler).fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(SafeConnectionError):
            await service_client(handler).fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_api_key_is_sent_as_bearer(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(401)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = TransactionServiceClient(api_key="k-123", base_url=SERVICE, http_client=http)

        with pytest.raises(SafeAuthenticationError):
            await client.fetch_pending(8453, SAFE_A)

        assert seen["auth"] == "Bearer k-123"


class TestClientGatewayClient:
    """Queued endpoint normalization."""

    @staticmethod
    def queued_item(tx_hash, nonce, submitted, required):
        return {
            "type": "TRANSACTION",
            "transaction": {
                "id": f"multisig_{CHECKSUMMED}_{tx_hash}",
                "txInfo": {
                    "type": "Transfer",
                    "recipient": {"value": "0x" + "c3" * 20},
                    "transferInfo": {"value": "250000000000000000"},
                },
                "executionInfo": {
                    "nonce": nonce,
                    "confirmationsSubmitted": submitted,
                    "confirmationsRequired": required,
                },
            },
        }

    @pytest.mark.asyncio
    async def test_only_transaction_items_are_kept(self):
        def handler(request):
            assert request.url.path == f"/v1/chains/8453/safes/{CHECKSUMMED}/transactions/queued"
            return httpx.Response(
                200,
                json={
                    "results": [
                        {"type": "LABEL", "label": "Next"},
                        self.queued_item(HASH_1, 4, 1, 2),
                        {"type": "CONFLICT_HEADER", "nonce": 5},
                        self.queued_item(HASH_2, 5, 0, 2),
                    ],
                    "next": None,
                },
            )

        pending = await gateway_client(handler).fetch_pending(8453, SAFE_A)

        assert [tx.safe_tx_hash for tx in pending] == [HASH_1, HASH_2]
        assert pending[0].confirmations == 1
        assert pending[0].confirmations_required == 2
        assert pending[0].value == "250000000000000000"
        assert pending[0].to == "0x" + "c3" * 20

    @pytest.mark.asyncio
    async def test_follows_next_links(self):
        pages = {
            "1": {"results": [self.queued_item(HASH_1, 0, 0, 2)], "next": f"{GATEWAY}/page?cursor=2"},
            "2": {"results": [self.queued_item(HASH_2, 1, 0, 2)], "next": None},
        }

        def handler(request):
            return httpx.Response(200, json=pages[request.url.params.get("cursor", "1")])

        pending = await gateway_client(handler).fetch_pending(8453, SAFE_A)

        assert len(pending) == 2

    def test_hash_from_gateway_id(self):
        assert hash_from_gateway_id(f"multisig_{CHECKSUMMED}_{HASH_1}") == HASH_1
        assert hash_from_gateway_id("module_0xabc_0xdef") == ""
        assert hash_from_gateway_id(None) == ""


class TestMockSafeClient:
    """Synthetic source used in development."""

    @pytest.mark.asyncio
    async def test_hashes_are_stable_between_polls(self):
        client = MockSafeClient(latency_ms=0)

        first = await client.fetch_pending(8453, SAFE_A)
        second = await client.fetch_pending(8453, SAFE_A)

        assert [tx.safe_tx_hash for tx in first] == [tx.safe_tx_hash for tx in second]
        assert all(b.confirmations >= a.confirmations for a, b in zip(first, second))
        assert all(tx.confirmations <= tx.confirmations_required for tx in second)

    @pytest.mark.asyncio
    async def test_failure_rate(self):
        client = MockSafeClient(latency_ms=0, failure_rate=1.0)

        with pytest.raises(SafeConnectionError):
            await client.fetch_pending(8453, SAFE_A)

    @pytest.mark.asyncio
    async def test_queue_size_and_payload_shape(self):
        client = MockSafeClient(latency_ms=0, queue_size=5)

        pending = await client.fetch_pending(1, SAFE_A)

        assert [tx.nonce for tx in pending] == list(range(5))
        assert json.loads(pending[0].model_dump_json())["safe_tx_hash"].startswith("0x")


class TestChains:
    def test_known_and_unknown_chains(self):
        assert get_chain(8453).short_name == "base"
        assert is_supported(1)
        assert not is_supported(999999)
        assert get_chain(999999).short_name == "999999"
