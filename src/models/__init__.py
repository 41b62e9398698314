# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.enums import (
    KYCStatus,
    LicenseStatus,
    LicenseType,
    LineItemStatus,
    MediaKind,
    MediaStatus,
    NotificationType,
    OutboxAggregateType,
    OutboxDLQErrorReason,
    OutboxEventType,
    StoreType,
    SubscriptionStatus,
    VendorOrderStatus,
)
from src.models.inventory_item import InventoryItem
from src.models.license import License
from src.models.media import Media
from src.models.media_attachment import MediaAttachment
from src.models.notification import Notification
from src.models.order_line_item import OrderLineItem
from src.models.outbox_dlq import OutboxDLQ
from src.models.outbox_event import OutboxEvent
from src.models.store import Store
from src.models.subscription import Subscription
from src.models.vendor_order import VendorOrder

__all__ = [
    "InventoryItem",
    "KYCStatus",
    "License",
    "LicenseStatus",
    "LicenseType",
    "LineItemStatus",
    "Media",
    "MediaAttachment",
    "MediaKind",
    "MediaStatus",
    "Notification",
    "NotificationType",
    "OrderLineItem",
    "OutboxAggregateType",
    "OutboxDLQ",
    "OutboxDLQErrorReason",
    "OutboxEvent",
    "OutboxEventType",
    "Store",
    "StoreType",
    "Subscription",
    "SubscriptionStatus",
    "VendorOrder",
]
