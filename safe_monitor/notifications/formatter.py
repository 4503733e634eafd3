"""
Telegram message formatting for pending Safe transactions.

Builds the HTML text (also used as the photo caption), the Safe web app
signing link and the URL of the preview image rendered by the dashboard.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from html import escape
from typing import NamedTuple, Optional
from urllib.parse import urlencode

from safe_monitor.notifications.models import NotificationEvent, NotificationReason
from safe_monitor.safe.chains import SAFE_WEB_APP_URL, get_chain
from safe_monitor.safe.clients.base import SafeAPIError, to_checksum

WEI_PER_ETH = Decimal(10) ** 18

# 4-byte selectors of the ERC-20 calls recognised without an ABI
ERC20_SELECTORS = {
    "0x095ea7b3": "approve",
    "0xa9059cbb": "transfer",
}

HEADERS = {
    NotificationReason.NEW: "🔔 New Safe Transaction Needs Signatures",
    NotificationReason.PROGRESSED: "✍️ Safe Transaction Signed",
}

OPERATIONS = {0: "CALL", 1: "DELEGATECALL"}

MAX_UINT256 = 2**256 - 1


def shorten_address(address: str) -> str:
    """0x1234…abcd"""
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return f"{address[:6]}…{address[-4:]}"


def format_eth_value(value_wei: Optional[str]) -> str:
    """Wei decimal string to ETH with at most 4 decimals, trailing zeros cut."""
    if not value_wei or value_wei == "0":
        return "0"
    try:
        eth = (Decimal(value_wei) / WEI_PER_ETH).quantize(
            Decimal("0.0001"), rounding=ROUND_DOWN
        )
    except InvalidOperation:
        return "0"
    text = f"{eth:f}"
    return text.rstrip("0").rstrip(".") or "0"


def decode_method(data: Optional[str], method: Optional[str] = None) -> Optional[str]:
    """Decoded method name, falling back to known ERC-20 selectors."""
    if method:
        return method
    if not data or len(data) < 10:
        return None
    return ERC20_SELECTORS.get(data[:10].lower())


class ERC20Call(NamedTuple):
    kind: str
    target: str
    amount_raw: int

    @property
    def unlimited(self) -> bool:
        return self.amount_raw == MAX_UINT256


def decode_erc20_call(data: Optional[str]) -> Optional[ERC20Call]:
    """
    Decode the arguments of an ERC-20 ``approve`` or ``transfer`` call.

    Both take ``(address, uint256)``: the selector is followed by one 32-byte
    word holding the spender or recipient and one holding the amount in the
    token's smallest unit. Returns None for any other calldata.
    """
    if not data or len(data) < 138:
        return None
    kind = ERC20_SELECTORS.get(data[:10].lower())
    if kind is None:
        return None
    try:
        target = to_checksum("0x" + data[34:74])
        amount = int(data[74:138], 16)
    except (SafeAPIError, ValueError):
        return None
    return ERC20Call(kind=kind, target=target, amount_raw=amount)


def safe_app_url(chain_id: int, safe_address: str, safe_tx_hash: str) -> str:
    """Signing page of a queued transaction in the Safe web app."""
    chain = get_chain(chain_id)
    return (
        f"{SAFE_WEB_APP_URL}/transactions/tx"
        f"?safe={chain.short_name}:{safe_address}"
        f"&id=multisig_{safe_address}_{safe_tx_hash}"
    )


def preview_image_url(base_url: str, event: NotificationEvent) -> str:
    """URL of the transaction preview image served by the dashboard."""
    tx = event.transaction
    params = {
        "safeTxHash": tx.safe_tx_hash,
        "safeAddress": event.wallet.address,
        "chainId": str(event.wallet.chain_id),
        "to": tx.to,
        "value": tx.value,
        "nonce": str(tx.nonce),
        "confirmations": str(event.confirmations),
        "threshold": str(event.threshold),
        "confirmedSigners": ",".join(tx.confirmed_signers),
        "method": decode_method(tx.data, tx.method) or "",
        "data": tx.data or "",
    }
    return f"{base_url.rstrip('/')}/api/og/transaction?{urlencode(params)}"


def _linked_address(explorer: str, address: str) -> str:
    if explorer and address:
        return f'<a href="{explorer}/address/{address}">{shorten_address(address)}</a>'
    return shorten_address(address) or "unknown"


def format_transaction_message(event: NotificationEvent) -> str:
    """HTML body for Telegram (parse_mode=HTML)."""
    wallet = event.wallet
    tx = event.transaction
    chain = get_chain(wallet.chain_id)

    safe_label = _linked_address(chain.explorer, wallet.address)
    if wallet.name:
        safe_label = f"{escape(wallet.name)} ({safe_label})"

    lines = [
        f"<b>{HEADERS[event.reason]}</b>",
        "",
        f"<b>Safe:</b> {safe_label} on {escape(chain.name)}",
        f"<b>Nonce:</b> {tx.nonce}",
        f"<b>Signatures:</b> {event.confirmations}/{event.threshold} required",
        "",
        f"<b>To:</b> {_linked_address(chain.explorer, tx.to)}",
        f"<b>Operation:</b> {OPERATIONS.get(tx.operation, str(tx.operation))}",
        f"<b>Value:</b> {format_eth_value(tx.value)} ETH",
    ]

    method = decode_method(tx.data, tx.method)
    if method:
        lines.append(f"<b>Method:</b> <code>{escape(method)}</code>")

    call = decode_erc20_call(tx.data)
    if call is not None:
        amount = "unlimited" if call.unlimited else f"{call.amount_raw} (raw units)"
        role = "Spender" if call.kind == "approve" else "Recipient"
        lines.append(f"<b>{role}:</b> {_linked_address(chain.explorer, call.target)}")
        lines.append(f"<b>Amount:</b> {amount}")

    lines.append("")
    lines.append(
        f'<a href="{safe_app_url(wallet.chain_id, wallet.address, tx.safe_tx_hash)}">'
        "✅ Sign Transaction in Safe App</a>"
    )
    return "\n".join(lines)
