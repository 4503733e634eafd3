"""Notification setting repository."""

from typing import Optional

from safe_monitor.db.models.notification_setting import NotificationSetting
from safe_monitor.db.repository import BaseRepository


class NotificationSettingRepository(BaseRepository[NotificationSetting]):
    """Repository for per-tenant notification settings."""

    async def get_for_tenant(self, tenant_id: str) -> Optional[NotificationSetting]:
        matches = await self.filter(tenant_id=tenant_id)
        return matches[0] if matches else None

    async def upsert_for_tenant(
        self,
        tenant_id: str,
        telegram_bot_token: Optional[str],
        telegram_chat_id: Optional[str],
        enabled: bool = True,
    ) -> NotificationSetting:
        setting = await self.get_for_tenant(tenant_id)
        if setting is None:
            return await self.create(
                tenant_id=tenant_id,
                telegram_bot_token=telegram_bot_token,
                telegram_chat_id=telegram_chat_id,
                enabled=enabled,
            )

        setting.telegram_bot_token = telegram_bot_token
        setting.telegram_chat_id = telegram_chat_id
        setting.enabled = enabled
        await self.session.flush()
        return setting
