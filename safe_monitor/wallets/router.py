"""REST API endpoints for monitored wallets and tenant notification settings."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from safe_monitor.db.unit_of_work import UnitOfWork
from safe_monitor.monitor.router import get_monitor
from safe_monitor.monitor.service import Monitor
from safe_monitor.monitor.store import StoreError
from safe_monitor.safe.chains import is_supported

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallets", tags=["wallets"])

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


# Request/Response models
class WalletCreateRequest(BaseModel):
    """Request to register a Safe for monitoring."""

    chain_id: int = Field(..., gt=0, description="EVM chain id, e.g. 8453 for Base")
    address: str = Field(..., description="Safe address (any casing)")
    name: Optional[str] = Field(None, max_length=255)
    tenant_id: str = Field("default", min_length=1, max_length=255)
    enabled: bool = True

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        v = v.strip()
        if not ADDRESS_RE.match(v):
            raise ValueError("Invalid Ethereum address format")
        return v.lower()


class WalletUpdateRequest(BaseModel):
    """Partial update of a wallet."""

    name: Optional[str] = Field(None, max_length=255)
    enabled: Optional[bool] = None


class WalletResponse(BaseModel):
    """Response model for a wallet."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    chain_id: int
    address: str
    name: Optional[str]
    enabled: bool
    created_at: datetime
    updated_at: datetime


class NotificationSettingRequest(BaseModel):
    """Telegram destination of a tenant."""

    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    enabled: bool = True


class NotificationSettingResponse(BaseModel):
    tenant_id: str
    telegram_chat_id: Optional[str]
    has_bot_token: bool
    enabled: bool
    deliverable: bool


# Endpoints


@router.get("", response_model=list[WalletResponse])
async def list_wallets(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant"),
):
    async with UnitOfWork() as uow:
        if tenant_id:
            wallets = await uow.wallets.get_by_tenant(tenant_id)
        else:
            wallets = await uow.wallets.get_all()
        return [WalletResponse.model_validate(w) for w in wallets]


@router.post("", response_model=WalletResponse, status_code=status.HTTP_201_CREATED)
async def create_wallet(request: WalletCreateRequest):
    """
    Register a Safe.

    The address is stored lower-cased; registering the same
    (tenant, chain, address) twice is rejected.
    """
    if not is_supported(request.chain_id):
        logger.warning(
            f"Wallet registered on chain {request.chain_id} without known Safe service"
        )

    async with UnitOfWork() as uow:
        existing = await uow.wallets.get_by_identity(
            request.tenant_id, request.chain_id, request.address
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Multisig already exists",
            )

        wallet = await uow.wallets.create(**request.model_dump())
        logger.info(
            f"Wallet {wallet.id} registered: {wallet.chain_id}:{wallet.address} "
            f"(tenant {wallet.tenant_id})"
        )
        return WalletResponse.model_validate(wallet)


@router.patch("/{wallet_id}", response_model=WalletResponse)
async def update_wallet(wallet_id: int, request: WalletUpdateRequest):
    async with UnitOfWork() as uow:
        changes = request.model_dump(exclude_unset=True)
        wallet = (
            await uow.wallets.update(wallet_id, **changes)
            if changes
            else await uow.wallets.get_by_id(wallet_id)
        )
        if wallet is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Wallet {wallet_id} not found",
            )
        return WalletResponse.model_validate(wallet)


@router.delete("/{wallet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_wallet(wallet_id: int, monitor: Monitor = Depends(get_monitor)):
    """Delete a wallet together with its seen transaction records."""
    async with UnitOfWork() as uow:
        if await uow.wallets.get_by_id(wallet_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Wallet {wallet_id} not found",
            )

    # Seen records may live outside the database (redis, memory)
    try:
        removed = await monitor.store.delete_wallet(wallet_id)
    except StoreError as e:
        logger.error(f"Could not delete seen records of wallet {wallet_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Seen transaction store unavailable",
        )

    async with UnitOfWork() as uow:
        deleted = await uow.wallets.delete_with_history(wallet_id)
        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Wallet {wallet_id} not found",
            )
    logger.info(f"Wallet {wallet_id} deleted ({removed} seen records removed)")


@router.put(
    "/tenants/{tenant_id}/notifications",
    response_model=NotificationSettingResponse,
)
async def put_notification_settings(
    tenant_id: str, request: NotificationSettingRequest
):
    async with UnitOfWork() as uow:
        setting = await uow.notification_settings.upsert_for_tenant(
            tenant_id,
            telegram_bot_token=request.telegram_bot_token,
            telegram_chat_id=request.telegram_chat_id,
            enabled=request.enabled,
        )
        return NotificationSettingResponse(
            tenant_id=setting.tenant_id,
            telegram_chat_id=setting.telegram_chat_id,
            has_bot_token=bool(setting.telegram_bot_token),
            enabled=setting.enabled,
            deliverable=setting.is_deliverable,
        )
