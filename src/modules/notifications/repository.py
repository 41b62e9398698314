"""NotificationRepository — retention deletes for in-app notifications."""

from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.notification import Notification


class NotificationRepository:
    async def delete_older_than(self, tx: AsyncSession, cutoff: datetime) -> int:
        result = await tx.execute(delete(Notification).where(Notification.created_at < cutoff))
        return result.rowcount or 0
