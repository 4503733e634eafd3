"""Repository exports."""

from .wallet_repository import WalletRepository
from .seen_transaction_repository import SeenTransactionRepository
from .notification_setting_repository import NotificationSettingRepository

__all__ = [
    "WalletRepository",
    "SeenTransactionRepository",
    "NotificationSettingRepository",
]
