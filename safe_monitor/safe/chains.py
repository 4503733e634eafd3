"""Chain metadata used for Safe API endpoints and human-facing links."""

from dataclasses import dataclass
from typing import Dict

SAFE_TX_SERVICE_URL = "https://api.safe.global/tx-service/{slug}"
SAFE_WEB_APP_URL = "https://app.safe.global"


@dataclass(frozen=True)
class ChainInfo:
    """Static description of an EVM chain supported by Safe."""

    chain_id: int
    name: str
    short_name: str  # EIP-3770 prefix used by the Safe web app
    explorer: str
    tx_service_slug: str

    @property
    def tx_service_url(self) -> str:
        return SAFE_TX_SERVICE_URL.format(slug=self.tx_service_slug)


CHAINS: Dict[int, ChainInfo] = {
    1: ChainInfo(1, "ethereum", "eth", "https://etherscan.io", "eth"),
    10: ChainInfo(10, "optimism", "oeth", "https://optimistic.etherscan.io", "oeth"),
    56: ChainInfo(56, "bnb", "bnb", "https://bscscan.com", "bnb"),
    100: ChainInfo(100, "gnosis", "gno", "https://gnosisscan.io", "gno"),
    137: ChainInfo(137, "polygon", "matic", "https://polygonscan.com", "pol"),
    8453: ChainInfo(8453, "base", "base", "https://basescan.org", "base"),
    42161: ChainInfo(42161, "arbitrum", "arb1", "https://arbiscan.io", "arb1"),
    11155111: ChainInfo(
        11155111, "sepolia", "sep", "https://sepolia.etherscan.io", "sep"
    ),
}


def get_chain(chain_id: int) -> ChainInfo:
    """Return chain metadata, with a generic entry for unknown chains."""
    chain = CHAINS.get(int(chain_id))
    if chain is not None:
        return chain
    return ChainInfo(
        chain_id=int(chain_id),
        name=f"chain {chain_id}",
        short_name=str(chain_id),
        explorer="",
        tx_service_slug=str(chain_id),
    )


def is_supported(chain_id: int) -> bool:
    return int(chain_id) in CHAINS
