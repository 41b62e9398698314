import enum


class OutboxEventType(str, enum.Enum):
    ORDER_CREATED = "order_created"
    ORDER_STATE_CHANGED = "order_state_changed"
    LINE_ITEM_STATE_CHANGED = "line_item_state_changed"
    LICENSE_STATUS_CHANGED = "license_status_changed"
    LICENSE_EXPIRING_SOON = "license_expiring_soon"
    LICENSE_EXPIRED = "license_expired"
    MEDIA_UPLOADED = "media_uploaded"
    PAYMENT_SETTLED = "payment_settled"
    CASH_COLLECTED = "cash_collected"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REJECTED = "payment_rejected"
    VENDOR_PAYOUT_RECORDED = "vendor_payout_recorded"
    NOTIFICATION_REQUESTED = "notification_requested"
    ORDER_EXPIRED = "order_expired"
    ORDER_PENDING_NUDGE = "order_pending_nudge"
    ORDER_CANCELED = "order_canceled"
    ORDER_RETRIED = "order_retried"
    ORDER_PAID = "order_paid"
    ORDER_DECIDED = "order_decided"
    ORDER_READY_FOR_DISPATCH = "order_ready_for_dispatch"
    RESERVATION_RELEASED = "reservation_released"
    CHECKOUT_CONVERTED = "checkout_converted"


class OutboxAggregateType(str, enum.Enum):
    VENDOR_ORDER = "vendor_order"
    CHECKOUT_GROUP = "checkout_group"
    LICENSE = "license"
    STORE = "store"
    MEDIA = "media"
    LEDGER_EVENT = "ledger_event"
    NOTIFICATION = "notification"
    SUBSCRIPTION = "subscription"


class OutboxDLQErrorReason(str, enum.Enum):
    MAX_ATTEMPTS = "max_attempts"
    NON_RETRYABLE = "non_retryable"


class LicenseStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class LicenseType(str, enum.Enum):
    PRODUCER = "producer"
    GROWER = "grower"
    DISPENSARY = "dispensary"
    MERCHANT = "merchant"


class KYCStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class StoreType(str, enum.Enum):
    BUYER = "buyer"
    VENDOR = "vendor"


class MediaKind(str, enum.Enum):
    PRODUCT = "product"
    ADS = "ads"
    PDF = "pdf"
    LICENSE_DOC = "license_doc"
    COA = "coa"
    MANIFEST = "manifest"
    USER = "user"
    OTHER = "other"


class MediaStatus(str, enum.Enum):
    PENDING = "pending"
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"
    DELETE_REQUESTED = "delete_requested"
    DELETED = "deleted"
    DELETE_FAILED = "delete_failed"


class VendorOrderStatus(str, enum.Enum):
    CREATED_PENDING = "created_pending"
    ACCEPTED = "accepted"
    PARTIALLY_ACCEPTED = "partially_accepted"
    REJECTED = "rejected"
    FULFILLED = "fulfilled"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    HOLD = "hold"
    HOLD_FOR_PICKUP = "hold_for_pickup"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CLOSED = "closed"
    CANCELED = "canceled"
    EXPIRED = "expired"


class LineItemStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FULFILLED = "fulfilled"
    HOLD = "hold"


class NotificationType(str, enum.Enum):
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    MARKET_UPDATE = "market_update"
    SECURITY_ALERT = "security_alert"
    ORDER_ALERT = "order_alert"
    COMPLIANCE = "compliance"


class SubscriptionStatus(str, enum.Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    UNPAID = "unpaid"
    PAUSED = "paused"
