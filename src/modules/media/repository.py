"""MediaRepository and AttachmentRepository."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.enums import MediaStatus
from src.models.media import Media
from src.models.media_attachment import MediaAttachment


class MediaRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_pending_before(self, cutoff: datetime) -> list[Media]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Media)
                .where(Media.status == MediaStatus.PENDING, Media.created_at < cutoff)
                .order_by(Media.created_at.asc(), Media.id.asc())
            )
            return list(result.scalars().all())

    async def delete(self, tx: AsyncSession, media_id: uuid.UUID) -> None:
        await tx.execute(delete(Media).where(Media.id == media_id))


class AttachmentRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_by_media_id(self, media_id: uuid.UUID) -> list[MediaAttachment]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MediaAttachment).where(MediaAttachment.media_id == media_id)
            )
            return list(result.scalars().all())

    async def delete(
        self,
        tx: AsyncSession,
        entity_type: str,
        entity_id: uuid.UUID,
        media_id: uuid.UUID,
    ) -> None:
        await tx.execute(
            delete(MediaAttachment).where(
                MediaAttachment.entity_type == entity_type,
                MediaAttachment.entity_id == entity_id,
                MediaAttachment.media_id == media_id,
            )
        )

    async def delete_by_media_id(self, tx: AsyncSession, media_id: uuid.UUID) -> int:
        result = await tx.execute(delete(MediaAttachment).where(MediaAttachment.media_id == media_id))
        return result.rowcount or 0
