"""
Notification delivery for pending Safe transactions.

Formats events as Telegram HTML messages and delivers them through a sink.
"""

from safe_monitor.notifications.models import NotificationEvent, NotificationReason
from safe_monitor.notifications.sinks import (
    BaseNotificationSink,
    LoggingSink,
    TelegramSink,
    TenantTelegramSink,
)

__all__ = [
    "NotificationEvent",
    "NotificationReason",
    "BaseNotificationSink",
    "LoggingSink",
    "TelegramSink",
    "TenantTelegramSink",
]
