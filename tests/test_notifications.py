"""Tests for message formatting and the Telegram sinks."""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from safe_monitor.db.unit_of_work import UnitOfWork
from safe_monitor.notifications import (
    LoggingSink,
    NotificationEvent,
    NotificationReason,
    TelegramSink,
    TenantTelegramSink,
)
from safe_monitor.notifications.formatter import (
    ERC20Call,
    decode_erc20_call,
    decode_method,
    format_eth_value,
    format_transaction_message,
    preview_image_url,
    safe_app_url,
    shorten_address,
)
from tests.conftest import SAFE_A, make_tx, make_wallet

HASH_1 = "0x" + "11" * 32
SPENDER = "0x" + "5e" * 20


def erc20_calldata(selector: str, target: str, amount: int) -> str:
    return selector + "00" * 12 + target[2:] + format(amount, "064x")


def make_event(reason=NotificationReason.NEW, tenant_id="default", **tx_fields):
    tx = make_tx(HASH_1, nonce=4, confirmations=1).model_copy(update=tx_fields)
    return NotificationEvent(
        wallet=make_wallet(tenant_id=tenant_id),
        transaction=tx,
        confirmations=tx.confirmations,
        threshold=2,
        reason=reason,
    )


class TelegramRecorder:
    """MockTransport handler recording Bot API calls."""

    def __init__(self, statuses=None):
        self.statuses = statuses or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        self.requests.append((request.url.path, json.loads(request.content)))
        status = self.statuses.get(method, 200)
        return httpx.Response(status, json={"ok": status < 400})

    @property
    def methods(self):
        return [path.rsplit("/", 1)[-1] for path, _ in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class TestFormatter:
    @pytest.mark.parametrize(
        "wei,expected",
        [
            ("0", "0"),
            (None, "0"),
            ("1000000000000000000", "1"),
            ("1500000000000000", "0.0015"),
            ("1234567890000000000", "1.2345"),
            ("100", "0"),
            ("not-a-number", "0"),
        ],
    )
    def test_format_eth_value(self, wei, expected):
        assert format_eth_value(wei) == expected

    def test_shorten_address(self):
        assert shorten_address(SAFE_A) == "0xa1a1…a1a1"
        assert shorten_address("0x12") == "0x12"
        assert shorten_address("") == ""

    def test_decode_method(self):
        assert decode_method("0xa9059cbb" + "00" * 64) == "transfer"
        assert decode_method("0x095EA7B3" + "00" * 64) == "approve"
        assert decode_method("0xdeadbeef") is None
        assert decode_method("0x", method="multiSend") == "multiSend"
        assert decode_method(None) is None

    def test_decode_erc20_transfer(self):
        call = decode_erc20_call(erc20_calldata("0xa9059cbb", SPENDER, 2_500_000))

        assert call == ERC20Call(kind="transfer", target=call.target, amount_raw=2_500_000)
        assert call.target.lower() == SPENDER
        assert call.unlimited is False

    def test_decode_erc20_unlimited_approve(self):
        call = decode_erc20_call(erc20_calldata("0x095ea7b3", SPENDER, 2**256 - 1))

        assert call.kind == "approve"
        assert call.unlimited is True

    @pytest.mark.parametrize(
        "data",
        [None, "0x", "0xa9059cbb" + "00" * 10, "0xdeadbeef" + "00" * 64, "0xa9059cbb" + "zz" * 64],
    )
    def test_decode_erc20_ignores_other_calldata(self, data):
        assert decode_erc20_call(data) is None

    def test_safe_app_url(self):
        url = safe_app_url(8453, SAFE_A, HASH_1)

        assert url == (
            f"https://app.safe.global/transactions/tx?safe=base:{SAFE_A}"
            f"&id=multisig_{SAFE_A}_{HASH_1}"
        )

    def test_preview_image_url(self):
        event = make_event(confirmed_signers=["0x01", "0x02"])

        url = preview_image_url("https://dash.example/", event)

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert parsed.path == "/api/og/transaction"
        assert params["safeTxHash"] == [HASH_1]
        assert params["chainId"] == ["8453"]
        assert params["confirmations"] == ["1"]
        assert params["threshold"] == ["2"]
        assert params["confirmedSigners"] == ["0x01,0x02"]

    def test_new_transaction_message(self):
        message = format_transaction_message(make_event(data="0xa9059cbb" + "00" * 64))

        assert "New Safe Transaction Needs Signatures" in message
        assert "<b>Nonce:</b> 4" in message
        assert "<b>Signatures:</b> 1/2 required" in message
        assert "<b>Value:</b> 1 ETH" in message
        assert "<b>Operation:</b> CALL" in message
        assert "<code>transfer</code>" in message
        assert "https://basescan.org/address/" in message
        assert safe_app_url(8453, SAFE_A, HASH_1) in message

    def test_progress_message_and_escaped_name(self):
        event = make_event(reason=NotificationReason.PROGRESSED)
        event.wallet.name = "Ops <treasury>"

        message = format_transaction_message(event)

        assert "Safe Transaction Signed" in message
        assert "Ops &lt;treasury&gt;" in message
        assert "Method" not in message

    def test_approve_message_shows_spender_and_amount(self):
        data = erc20_calldata("0x095ea7b3", SPENDER, 1_000_000)

        message = format_transaction_message(make_event(data=data))

        assert "<code>approve</code>" in message
        assert "<b>Spender:</b>" in message
        assert f"https://basescan.org/address/{decode_erc20_call(data).target}" in message
        assert "<b>Amount:</b> 1000000 (raw units)" in message

    def test_unlimited_approve_message(self):
        data = erc20_calldata("0x095ea7b3", SPENDER, 2**256 - 1)

        message = format_transaction_message(make_event(data=data))

        assert "<b>Amount:</b> unlimited" in message


class TestTelegramSink:
    @pytest.mark.asyncio
    async def test_sends_photo_when_image_url_configured(self):
        recorder = TelegramRecorder()
        sink = TelegramSink(
            "token", "chat-1", image_base_url="https://dash.example", http_client=recorder.client()
        )

        assert await sink.notify(make_event()) is True

        assert recorder.methods == ["sendPhoto"]
        path, payload = recorder.requests[0]
        assert path == "/bottoken/sendPhoto"
        assert payload["chat_id"] == "chat-1"
        assert payload["photo"].startswith("https://dash.example/api/og/transaction?")
        assert payload["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_falls_back_to_text_when_photo_fails(self):
        recorder = TelegramRecorder(statuses={"sendPhoto": 400})
        sink = TelegramSink(
            "token", "chat-1", image_base_url="https://dash.example", http_client=recorder.client()
        )

        assert await sink.notify(make_event()) is True

        assert recorder.methods == ["sendPhoto", "sendMessage"]
        assert recorder.requests[1][1]["disable_web_page_preview"] is True

    @pytest.mark.asyncio
    async def test_no_text_fallback_when_photo_response_is_lost(self):
        calls = []

        def handler(request):
            calls.append(request.url.path.rsplit("/", 1)[-1])
            raise httpx.ReadTimeout("no response", request=request)

        sink = TelegramSink(
            "token",
            "chat-1",
            image_base_url="https://dash.example",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await sink.notify(make_event()) is False
        assert calls == ["sendPhoto"]

    @pytest.mark.asyncio
    async def test_falls_back_to_text_when_photo_never_sent(self):
        calls = []

        def handler(request):
            method = request.url.path.rsplit("/", 1)[-1]
            calls.append(method)
            if method == "sendPhoto":
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"ok": True})

        sink = TelegramSink(
            "token",
            "chat-1",
            image_base_url="https://dash.example",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await sink.notify(make_event()) is True
        assert calls == ["sendPhoto", "sendMessage"]

    @pytest.mark.asyncio
    async def test_text_only_without_image_url(self):
        recorder = TelegramRecorder()
        sink = TelegramSink("token", "chat-1", http_client=recorder.client())

        assert await sink.notify(make_event()) is True

        assert recorder.methods == ["sendMessage"]

    @pytest.mark.asyncio
    async def test_api_error_returns_false(self):
        recorder = TelegramRecorder(statuses={"sendMessage": 403})
        sink = TelegramSink("token", "chat-1", http_client=recorder.client())

        assert await sink.notify(make_event()) is False

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        sink = TelegramSink("token", "chat-1", http_client=http)

        assert await sink.notify(make_event()) is False

    @pytest.mark.asyncio
    async def test_missing_credentials_returns_false(self):
        recorder = TelegramRecorder()
        sink = TelegramSink("", "chat-1", http_client=recorder.client())

        assert await sink.notify(make_event()) is False
        assert recorder.requests == []


class TestTenantTelegramSink:
    @staticmethod
    async def save_setting(tenant_id, token, chat_id, enabled=True):
        async with UnitOfWork() as uow:
            await uow.notification_settings.upsert_for_tenant(
                tenant_id, token, chat_id, enabled=enabled
            )

    @pytest.mark.asyncio
    async def test_routes_to_tenant_chat(self, test_db):
        await self.save_setting("acme", "acme-token", "acme-chat")
        recorder = TelegramRecorder()
        sink = TenantTelegramSink("global-token", "global-chat", http_client=recorder.client())

        assert await sink.notify(make_event(tenant_id="acme")) is True

        path, payload = recorder.requests[0]
        assert path == "/botacme-token/sendMessage"
        assert payload["chat_id"] == "acme-chat"

    @pytest.mark.asyncio
    async def test_disabled_tenant_is_not_delivered(self, test_db):
        await self.save_setting("acme", "acme-token", "acme-chat", enabled=False)
        recorder = TelegramRecorder()
        sink = TenantTelegramSink("global-token", "global-chat", http_client=recorder.client())

        assert await sink.notify(make_event(tenant_id="acme")) is False
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_incomplete_setting_is_not_delivered(self, test_db):
        await self.save_setting("acme", None, "acme-chat")
        recorder = TelegramRecorder()
        sink = TenantTelegramSink("global-token", "global-chat", http_client=recorder.client())

        assert await sink.notify(make_event(tenant_id="acme")) is False

    @pytest.mark.asyncio
    async def test_tenant_without_setting_uses_defaults(self, test_db):
        recorder = TelegramRecorder()
        sink = TenantTelegramSink("global-token", "global-chat", http_client=recorder.client())

        assert await sink.notify(make_event(tenant_id="other")) is True
        assert recorder.requests[0][0] == "/botglobal-token/sendMessage"

    @pytest.mark.asyncio
    async def test_no_setting_and_no_defaults(self, test_db):
        recorder = TelegramRecorder()
        sink = TenantTelegramSink(http_client=recorder.client())

        assert await sink.notify(make_event(tenant_id="other")) is False
        assert recorder.requests == []


class TestLoggingSink:
    @pytest.mark.asyncio
    async def test_always_succeeds(self):
        assert await LoggingSink().notify(make_event()) is True
