"""
Monitor assembly.

Wires the Safe source, seen-transaction store, notification sink and wallet
provider selected by the settings into a FleetScheduler.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from redis.asyncio import Redis

from safe_monitor.core.config import Settings, get_settings
from safe_monitor.monitor.config import MonitorConfig
from safe_monitor.monitor.metrics import MonitorMetrics
from safe_monitor.monitor.reconciler import ReconciliationEngine
from safe_monitor.monitor.scheduler import FleetScheduler
from safe_monitor.monitor.store import (
    InMemorySeenTransactionStore,
    RedisSeenTransactionStore,
    SeenTransactionStore,
    SqlSeenTransactionStore,
)
from safe_monitor.monitor.wallets import (
    DatabaseWalletProvider,
    StaticWalletProvider,
    WalletProvider,
)
from safe_monitor.notifications.sinks import (
    BaseNotificationSink,
    LoggingSink,
    TelegramSink,
    TenantTelegramSink,
)
from safe_monitor.safe.clients import (
    BaseSafeClient,
    ClientGatewayClient,
    MockSafeClient,
    TransactionServiceClient,
)

logger = structlog.get_logger(__name__)


@dataclass
class Monitor:
    """The assembled monitor and the collaborators it was built from."""

    scheduler: FleetScheduler
    engine: ReconciliationEngine
    source: BaseSafeClient
    store: SeenTransactionStore
    sink: BaseNotificationSink
    wallet_provider: WalletProvider
    config: MonitorConfig
    redis: Optional[Redis] = None

    async def aclose(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()


def build_source(settings: Settings) -> BaseSafeClient:
    if settings.SAFE_SOURCE == "mock":
        return MockSafeClient()
    if settings.SAFE_SOURCE == "client_gateway":
        return ClientGatewayClient(
            base_url=settings.SAFE_CLIENT_GATEWAY_URL,
            timeout=settings.SOURCE_TIMEOUT_SECONDS,
        )
    return TransactionServiceClient(
        api_key=settings.SAFE_API_KEY,
        timeout=settings.SOURCE_TIMEOUT_SECONDS,
    )


def build_store(
    settings: Settings, redis: Optional[Redis] = None
) -> SeenTransactionStore:
    if settings.STORE_BACKEND == "memory":
        logger.warning("monitor.store.not_durable", backend="memory")
        return InMemorySeenTransactionStore()
    if settings.STORE_BACKEND == "redis":
        if redis is None:
            raise ValueError("STORE_BACKEND=redis requires REDIS_URL")
        return RedisSeenTransactionStore(redis)
    return SqlSeenTransactionStore()


def build_sink(settings: Settings) -> BaseNotificationSink:
    has_default = bool(settings.TELEGRAM_BOT_TOKEN and settings.TELEGRAM_CHAT_ID)

    if settings.WALLET_SOURCE == "database":
        return TenantTelegramSink(
            default_bot_token=settings.TELEGRAM_BOT_TOKEN,
            default_chat_id=settings.TELEGRAM_CHAT_ID,
            image_base_url=settings.APP_BASE_URL,
            timeout=settings.SINK_TIMEOUT_SECONDS,
        )
    if not has_default and settings.ENV == "development":
        logger.warning("monitor.sink.logging_only", reason="telegram_not_configured")
        return LoggingSink()
    return TelegramSink(
        bot_token=settings.TELEGRAM_BOT_TOKEN or "",
        chat_id=settings.TELEGRAM_CHAT_ID or "",
        image_base_url=settings.APP_BASE_URL,
        timeout=settings.SINK_TIMEOUT_SECONDS,
    )


def build_wallet_provider(settings: Settings) -> WalletProvider:
    if settings.WALLET_SOURCE == "static":
        return StaticWalletProvider.from_string(settings.MONITORED_SAFES)
    return DatabaseWalletProvider()


def build_monitor(settings: Optional[Settings] = None) -> Monitor:
    """Build a Monitor from settings (defaults to the cached app settings)."""
    settings = settings or get_settings()
    config = MonitorConfig.from_settings(settings)

    redis = None
    if settings.STORE_BACKEND == "redis" and settings.REDIS_URL:
        redis = Redis.from_url(settings.REDIS_URL)

    source = build_source(settings)
    store = build_store(settings, redis)
    sink = build_sink(settings)
    wallet_provider = build_wallet_provider(settings)

    engine = ReconciliationEngine(source, store, sink, config=config)
    scheduler = FleetScheduler(
        wallet_provider, engine, config=config, metrics=MonitorMetrics()
    )

    logger.info(
        "monitor.built",
        source=source.get_source_name(),
        store=store.get_backend_name(),
        sink=sink.get_sink_name(),
        wallet_source=settings.WALLET_SOURCE,
        concurrency_limit=config.concurrency_limit,
        notify_on_progress=config.notify_on_progress,
    )

    return Monitor(
        scheduler=scheduler,
        engine=engine,
        source=source,
        store=store,
        sink=sink,
        wallet_provider=wallet_provider,
        config=config,
        redis=redis,
    )
