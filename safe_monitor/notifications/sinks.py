"""
Notification sinks.

A sink delivers one NotificationEvent and reports success as a bool. Delivery
problems never raise: they are logged and returned as False so the event
stays eligible for retry on the next pass.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError

from safe_monitor.db.unit_of_work import UnitOfWork
from safe_monitor.notifications.formatter import (
    format_transaction_message,
    preview_image_url,
)
from safe_monitor.notifications.models import NotificationEvent

logger = structlog.get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
# Bot API limit for photo captions
CAPTION_LIMIT = 1024


class Delivery(str, Enum):
    """Outcome of one Bot API call."""

    SENT = "sent"
    FAILED = "failed"  # Telegram did not accept the message
    UNCERTAIN = "uncertain"  # Request went out but no response arrived


class BaseNotificationSink(ABC):
    """Base class for all notification sinks."""

    @abstractmethod
    async def notify(self, event: NotificationEvent) -> bool:
        """Deliver the event. True only if the channel accepted it."""
        pass

    def get_sink_name(self) -> str:
        return self.__class__.__name__


class LoggingSink(BaseNotificationSink):
    """Writes events to the log. For development without Telegram credentials."""

    async def notify(self, event: NotificationEvent) -> bool:
        logger.info(
            "notification.logged",
            wallet_id=event.wallet.id,
            chain_id=event.wallet.chain_id,
            address=event.wallet.address,
            tx_hash=event.tx_hash,
            nonce=event.transaction.nonce,
            confirmations=event.confirmations,
            threshold=event.threshold,
            reason=event.reason.value,
        )
        return True


class TelegramSink(BaseNotificationSink):
    """Telegram Bot API sink: preview photo with caption, text as fallback."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        image_base_url: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        api_url: str = TELEGRAM_API_URL,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.image_base_url = image_base_url
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _call(
        self, client: httpx.AsyncClient, method: str, payload: Dict[str, Any]
    ) -> Delivery:
        url = f"{self.api_url}/bot{self.bot_token}/{method}"
        try:
            response = await client.post(url, json=payload)
        except (httpx.ReadTimeout, httpx.WriteTimeout) as e:
            logger.warning("telegram.response_lost", method=method, error=str(e))
            return Delivery.UNCERTAIN
        except httpx.HTTPError as e:
            logger.warning("telegram.request_failed", method=method, error=str(e))
            return Delivery.FAILED

        if response.status_code >= 400:
            logger.warning(
                "telegram.api_error",
                method=method,
                status_code=response.status_code,
                body=response.text[:200],
            )
            return Delivery.FAILED
        return Delivery.SENT

    async def send_message(self, client: httpx.AsyncClient, text: str) -> Delivery:
        return await self._call(
            client,
            "sendMessage",
            {
                "chat_id": self.chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
        )

    async def send_photo(
        self, client: httpx.AsyncClient, photo_url: str, caption: str
    ) -> Delivery:
        return await self._call(
            client,
            "sendPhoto",
            {
                "chat_id": self.chat_id,
                "photo": photo_url,
                "caption": caption,
                "parse_mode": "HTML",
            },
        )

    async def notify(self, event: NotificationEvent) -> bool:
        if not self.bot_token or not self.chat_id:
            logger.error("telegram.not_configured", wallet_id=event.wallet.id)
            return False

        text = format_transaction_message(event)

        async with self._client() as client:
            if self.image_base_url and len(text) <= CAPTION_LIMIT:
                photo_url = preview_image_url(self.image_base_url, event)
                outcome = await self.send_photo(client, photo_url, text)
                if outcome is Delivery.SENT:
                    logger.info(
                        "telegram.photo_sent",
                        wallet_id=event.wallet.id,
                        tx_hash=event.tx_hash,
                    )
                    return True
                if outcome is Delivery.UNCERTAIN:
                    # No text fallback: the photo may already be in the chat
                    return False
                logger.info("telegram.photo_fallback", tx_hash=event.tx_hash)

            sent = await self.send_message(client, text) is Delivery.SENT

        if sent:
            logger.info(
                "telegram.message_sent",
                wallet_id=event.wallet.id,
                tx_hash=event.tx_hash,
            )
        return sent


class TenantTelegramSink(BaseNotificationSink):
    """
    Routes each event to the Telegram chat of the tenant owning the wallet.

    Tenants without a stored setting use the global credentials when those
    are configured. A tenant whose setting is disabled or incomplete gets
    nothing, and the event is reported as not delivered.
    """

    def __init__(
        self,
        default_bot_token: Optional[str] = None,
        default_chat_id: Optional[str] = None,
        image_base_url: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.default_bot_token = default_bot_token
        self.default_chat_id = default_chat_id
        self.image_base_url = image_base_url
        self.timeout = timeout
        self._http_client = http_client

    async def _resolve_credentials(
        self, tenant_id: str
    ) -> Optional[tuple[str, str]]:
        async with UnitOfWork() as uow:
            setting = await uow.notification_settings.get_for_tenant(tenant_id)

        if setting is not None:
            if not setting.is_deliverable:
                return None
            return setting.telegram_bot_token, setting.telegram_chat_id

        if self.default_bot_token and self.default_chat_id:
            return self.default_bot_token, self.default_chat_id
        return None

    async def notify(self, event: NotificationEvent) -> bool:
        tenant_id = event.wallet.tenant_id
        try:
            credentials = await self._resolve_credentials(tenant_id)
        except SQLAlchemyError as e:
            logger.error(
                "notification.settings_lookup_failed",
                tenant_id=tenant_id,
                error=str(e),
            )
            return False

        if credentials is None:
            logger.info(
                "notification.skipped",
                tenant_id=tenant_id,
                wallet_id=event.wallet.id,
                tx_hash=event.tx_hash,
                reason="no_enabled_channel",
            )
            return False

        bot_token, chat_id = credentials
        sink = TelegramSink(
            bot_token=bot_token,
            chat_id=chat_id,
            image_base_url=self.image_base_url,
            timeout=self.timeout,
            http_client=self._http_client,
        )
        return await sink.notify(event)
