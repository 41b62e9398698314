"""StoreRepository — KYC and entitlement flags on stores."""

from __future__ import annotations

import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import NotFoundException
from src.models.enums import KYCStatus
from src.models.store import Store


class StoreRepository:
    """Every method runs on the caller's transaction."""

    async def find_by_id(self, tx: AsyncSession, store_id: uuid.UUID) -> Store:
        result = await tx.execute(select(Store).where(Store.id == store_id))
        store = result.scalar_one_or_none()
        if store is None:
            raise NotFoundException(f"store {store_id} not found")
        return store

    async def update(self, tx: AsyncSession, store: Store) -> Store:
        merged = await tx.merge(store)
        await tx.flush()
        return merged

    async def update_status(self, tx: AsyncSession, store_id: uuid.UUID, kyc_status: KYCStatus) -> None:
        await tx.execute(update(Store).where(Store.id == store_id).values(kyc_status=kyc_status))

    async def update_subscription_active(self, tx: AsyncSession, store_id: uuid.UUID, active: bool) -> None:
        await tx.execute(
            update(Store).where(Store.id == store_id).values(subscription_active=active)
        )
