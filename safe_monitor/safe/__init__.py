"""
Safe multisig API access.

Fetches pending transactions from the Safe Transaction Service or the Safe
Client Gateway and normalizes them into PendingTransaction records.
"""

from safe_monitor.safe.chains import ChainInfo, get_chain
from safe_monitor.safe.clients import BaseSafeClient, PendingTransaction

__all__ = ["ChainInfo", "get_chain", "BaseSafeClient", "PendingTransaction"]
