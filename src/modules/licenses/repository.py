"""LicenseRepository — license queries used by the lifecycle job."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.models.enums import LicenseStatus
from src.models.license import License


class LicenseRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _find(self, *criteria, with_media: bool = False) -> list[License]:
        statement = select(License).where(*criteria).order_by(License.created_at.asc(), License.id.asc())
        if with_media:
            statement = statement.options(selectinload(License.media))
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def find_expiring_between(self, start: datetime, end: datetime) -> list[License]:
        """Licenses expiring in ``[start, end)`` that are not already expired."""
        return await self._find(
            License.expiration_date >= start,
            License.expiration_date < end,
            License.status != LicenseStatus.EXPIRED,
        )

    async def find_expired_in_range(self, start: datetime, end: datetime) -> list[License]:
        return await self._find(
            License.expiration_date.is_not(None),
            License.expiration_date >= start,
            License.expiration_date < end,
            License.status != LicenseStatus.EXPIRED,
        )

    async def find_expired_before(self, cutoff: datetime) -> list[License]:
        """Expired licenses old enough to purge, with their media row loaded."""
        return await self._find(
            License.expiration_date.is_not(None),
            License.expiration_date <= cutoff,
            License.status == LicenseStatus.EXPIRED,
            with_media=True,
        )

    async def update_status(self, tx: AsyncSession, license_id: uuid.UUID, status: LicenseStatus) -> None:
        await tx.execute(update(License).where(License.id == license_id).values(status=status))

    async def list_statuses(self, tx: AsyncSession, store_id: uuid.UUID) -> list[LicenseStatus]:
        result = await tx.execute(select(License.status).where(License.store_id == store_id))
        return list(result.scalars().all())

    async def delete(self, tx: AsyncSession, license_id: uuid.UUID) -> None:
        await tx.execute(delete(License).where(License.id == license_id))
