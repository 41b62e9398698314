"""MediaAttachment model — links a media row to the entity that uses it."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDPrimaryKeyMixin, utcnow
from src.database.types import UTCDateTime

ATTACHMENT_ENTITY_LICENSE = "license"
ATTACHMENT_ENTITY_AD = "ad"


class MediaAttachment(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "media_attachments"

    media_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("media.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "media_id", name="uq_media_attachments_entity_media"),
        Index("ix_media_attachments_media_id", "media_id"),
    )
