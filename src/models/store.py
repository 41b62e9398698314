"""Store model — the subset of store state the background core reads and writes."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.types import enum_column
from src.models.enums import KYCStatus, StoreType


class Store(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "stores"

    type: Mapped[StoreType] = mapped_column(
        enum_column(StoreType, "store_type"), nullable=False, default=StoreType.BUYER
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    kyc_status: Mapped[KYCStatus] = mapped_column(
        enum_column(KYCStatus, "kyc_status"),
        nullable=False,
        default=KYCStatus.PENDING_VERIFICATION,
    )
    subscription_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
