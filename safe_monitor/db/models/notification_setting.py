"""Per-tenant Telegram notification settings."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from safe_monitor.db.base import Base


class NotificationSetting(Base):
    """Where a tenant wants its pending transaction alerts delivered."""

    __tablename__ = "notification_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tenant_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    telegram_bot_token: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    telegram_chat_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_deliverable(self) -> bool:
        """True when enabled and both Telegram credentials are present."""
        return bool(self.enabled and self.telegram_bot_token and self.telegram_chat_id)

    def __repr__(self) -> str:
        return (
            f"<NotificationSetting(tenant_id={self.tenant_id}, "
            f"chat_id={self.telegram_chat_id}, enabled={self.enabled})>"
        )
