"""Media model — uploaded objects and their storage keys."""

import uuid

from sqlalchemy import BigInteger, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.types import enum_column
from src.models.enums import MediaKind, MediaStatus


class Media(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "media"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[MediaKind] = mapped_column(enum_column(MediaKind, "media_kind"), nullable=False)
    status: Mapped[MediaStatus] = mapped_column(
        enum_column(MediaStatus, "media_status"), nullable=False, default=MediaStatus.PENDING
    )
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (Index("ix_media_status_created_at", "status", "created_at"),)
