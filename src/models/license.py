"""License model — store compliance documents with an expiration lifecycle."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.types import UTCDateTime, enum_column
from src.models.enums import LicenseStatus, LicenseType
from src.models.media import Media


class License(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "licenses"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[LicenseStatus] = mapped_column(
        enum_column(LicenseStatus, "license_status"), nullable=False, default=LicenseStatus.PENDING
    )
    media_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("media.id", ondelete="RESTRICT"), nullable=False
    )
    issuing_state: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    issue_date: Mapped[datetime | None] = mapped_column(UTCDateTime)
    expiration_date: Mapped[datetime | None] = mapped_column(UTCDateTime)
    type: Mapped[LicenseType] = mapped_column(
        enum_column(LicenseType, "license_type"), nullable=False, default=LicenseType.MERCHANT
    )
    number: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)

    media: Mapped[Media | None] = relationship("Media", lazy="raise")

    __table_args__ = (
        Index("ix_licenses_store_id", "store_id"),
        Index("ix_licenses_status_expiration", "status", "expiration_date"),
    )

    @property
    def storage_key(self) -> str:
        if self.media is None:
            return ""
        return self.media.storage_key or ""
