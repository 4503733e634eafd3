"""Database models for the Safe monitor."""

from .wallet import Wallet
from .seen_transaction import SeenTransaction
from .notification_setting import NotificationSetting

__all__ = ["Wallet", "SeenTransaction", "NotificationSetting"]
