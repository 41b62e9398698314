"""Reliability core tables

Revision ID: 001
Revises: None
Create Date: 2026-03-01

Creates: stores, media, licenses, media_attachments, vendor_orders,
order_line_items, inventory_items, notifications, outbox_events, outbox_dlq,
subscriptions
Enum columns are VARCHAR with CHECK constraints holding the lowercase wire values.
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


EVENT_TYPES = (
    "order_created", "order_state_changed", "line_item_state_changed",
    "license_status_changed", "license_expiring_soon", "license_expired",
    "media_uploaded", "payment_settled", "cash_collected", "payment_failed",
    "payment_rejected", "vendor_payout_recorded", "notification_requested",
    "order_expired", "order_pending_nudge", "order_canceled", "order_retried",
    "order_paid", "order_decided", "order_ready_for_dispatch",
    "reservation_released", "checkout_converted",
)
AGGREGATE_TYPES = (
    "vendor_order", "checkout_group", "license", "store", "media",
    "ledger_event", "notification", "subscription",
)
SUBSCRIPTION_STATUSES = (
    "trialing", "active", "past_due", "canceled", "incomplete",
    "incomplete_expired", "unpaid", "paused",
)
VENDOR_ORDER_STATUSES = (
    "created_pending", "accepted", "partially_accepted", "rejected", "fulfilled",
    "ready_for_dispatch", "hold", "hold_for_pickup", "in_transit", "delivered",
    "closed", "canceled", "expired",
)


def _in(column: str, values: Sequence[str]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"CHECK ({column} IN ({quoted}))"


def upgrade() -> None:
    # ── 1. Stores, media and licenses ──────────────────────────────────────
    op.execute(f"""
        CREATE TABLE stores (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            type VARCHAR(64) NOT NULL DEFAULT 'buyer' {_in("type", ("buyer", "vendor"))},
            company_name VARCHAR(255) NOT NULL,
            kyc_status VARCHAR(64) NOT NULL DEFAULT 'pending_verification'
                {_in("kyc_status", ("pending_verification", "verified", "rejected", "expired", "suspended"))},
            subscription_active BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute(f"""
        CREATE TABLE media (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            store_id UUID NOT NULL REFERENCES stores(id) ON DELETE CASCADE,
            kind VARCHAR(64) NOT NULL
                {_in("kind", ("product", "ads", "pdf", "license_doc", "coa", "manifest", "user", "other"))},
            status VARCHAR(64) NOT NULL DEFAULT 'pending'
                {_in("status", ("pending", "uploaded", "processing", "ready", "failed",
                                "delete_requested", "deleted", "delete_failed"))},
            storage_key VARCHAR(1024) NOT NULL UNIQUE,
            file_name VARCHAR(512) NOT NULL DEFAULT '',
            mime_type VARCHAR(255) NOT NULL DEFAULT '',
            size_bytes BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_media_status_created_at ON media (status, created_at);")

    op.execute(f"""
        CREATE TABLE licenses (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            store_id UUID NOT NULL REFERENCES stores(id) ON DELETE CASCADE,
            user_id UUID,
            status VARCHAR(64) NOT NULL DEFAULT 'pending'
                {_in("status", ("pending", "verified", "rejected", "expired"))},
            media_id UUID NOT NULL REFERENCES media(id) ON DELETE RESTRICT,
            issuing_state VARCHAR(8) NOT NULL DEFAULT '',
            issue_date TIMESTAMPTZ,
            expiration_date TIMESTAMPTZ,
            type VARCHAR(64) NOT NULL DEFAULT 'merchant'
                {_in("type", ("producer", "grower", "dispensary", "merchant"))},
            number VARCHAR(128) NOT NULL UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_licenses_store_id ON licenses (store_id);")
    op.execute("CREATE INDEX ix_licenses_status_expiration ON licenses (status, expiration_date);")

    op.execute("""
        CREATE TABLE media_attachments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            media_id UUID NOT NULL REFERENCES media(id) ON DELETE CASCADE,
            entity_type VARCHAR(64) NOT NULL,
            entity_id UUID NOT NULL,
            store_id UUID NOT NULL,
            storage_key VARCHAR(1024) NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_media_attachments_entity_media UNIQUE (entity_type, entity_id, media_id)
        );
    """)
    op.execute("CREATE INDEX ix_media_attachments_media_id ON media_attachments (media_id);")

    # ── 2. Vendor orders and inventory ─────────────────────────────────────
    op.execute(f"""
        CREATE TABLE vendor_orders (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            checkout_group_id UUID NOT NULL,
            buyer_store_id UUID NOT NULL,
            vendor_store_id UUID NOT NULL,
            status VARCHAR(64) NOT NULL DEFAULT 'created_pending' {_in("status", VENDOR_ORDER_STATUSES)},
            subtotal_cents INTEGER NOT NULL DEFAULT 0,
            total_cents INTEGER NOT NULL DEFAULT 0,
            balance_due_cents INTEGER NOT NULL DEFAULT 0,
            order_number INTEGER NOT NULL DEFAULT 0,
            expired_at TIMESTAMPTZ,
            canceled_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_vendor_orders_status_created_at ON vendor_orders (status, created_at);")
    op.execute("CREATE INDEX ix_vendor_orders_checkout_group_id ON vendor_orders (checkout_group_id);")

    op.execute(f"""
        CREATE TABLE order_line_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            order_id UUID NOT NULL REFERENCES vendor_orders(id) ON DELETE CASCADE,
            product_id UUID,
            name VARCHAR(255) NOT NULL DEFAULT '',
            qty INTEGER NOT NULL DEFAULT 0,
            unit_price_cents INTEGER NOT NULL DEFAULT 0,
            total_cents INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(64) NOT NULL DEFAULT 'pending'
                {_in("status", ("pending", "accepted", "rejected", "fulfilled", "hold"))},
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_order_line_items_order_id ON order_line_items (order_id);")

    op.execute("""
        CREATE TABLE inventory_items (
            product_id UUID PRIMARY KEY,
            available_qty INTEGER NOT NULL DEFAULT 0,
            reserved_qty INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_inventory_available_non_negative CHECK (available_qty >= 0),
            CONSTRAINT ck_inventory_reserved_non_negative CHECK (reserved_qty >= 0)
        );
    """)

    # ── 3. Notifications ───────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            store_id UUID NOT NULL,
            type VARCHAR(64) NOT NULL
                {_in("type", ("system_announcement", "market_update", "security_alert",
                              "order_alert", "compliance"))},
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            link TEXT,
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_notifications_created_at ON notifications (created_at);")

    # ── 4. Outbox and DLQ ──────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE outbox_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type VARCHAR(64) NOT NULL {_in("event_type", EVENT_TYPES)},
            aggregate_type VARCHAR(64) NOT NULL {_in("aggregate_type", AGGREGATE_TYPES)},
            aggregate_id UUID NOT NULL,
            payload JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            published_at TIMESTAMPTZ,
            attempt_count INTEGER NOT NULL DEFAULT 0 CHECK (attempt_count >= 0),
            last_error TEXT
        );
    """)
    op.execute("""
        CREATE INDEX ix_outbox_events_aggregate
            ON outbox_events (event_type, aggregate_type, aggregate_id);
    """)
    op.execute("""
        CREATE INDEX ix_outbox_events_unpublished
            ON outbox_events (created_at) WHERE published_at IS NULL;
    """)
    op.execute("CREATE INDEX ix_outbox_events_published_at ON outbox_events (published_at);")

    op.execute(f"""
        CREATE TABLE outbox_dlq (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL UNIQUE,
            event_type VARCHAR(64) NOT NULL {_in("event_type", EVENT_TYPES)},
            aggregate_type VARCHAR(64) NOT NULL {_in("aggregate_type", AGGREGATE_TYPES)},
            aggregate_id UUID NOT NULL,
            payload_json JSONB NOT NULL,
            error_reason VARCHAR(64) NOT NULL {_in("error_reason", ("max_attempts", "non_retryable"))},
            error_message TEXT,
            attempt_count INTEGER NOT NULL DEFAULT 0,
            failed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_outbox_dlq_failed_at ON outbox_dlq (failed_at);")
    op.execute("CREATE INDEX ix_outbox_dlq_event_type ON outbox_dlq (event_type);")

    # ── 5. Subscriptions ───────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE subscriptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            store_id UUID NOT NULL,
            external_subscription_id VARCHAR(255) NOT NULL UNIQUE,
            status VARCHAR(64) NOT NULL DEFAULT 'active' {_in("status", SUBSCRIPTION_STATUSES)},
            price_id VARCHAR(255),
            current_period_start TIMESTAMPTZ,
            current_period_end TIMESTAMPTZ,
            cancel_at_period_end BOOLEAN NOT NULL DEFAULT FALSE,
            canceled_at TIMESTAMPTZ,
            paused_at TIMESTAMPTZ,
            pause_effective_at TIMESTAMPTZ,
            metadata JSONB NOT NULL DEFAULT '{{}}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX ix_subscriptions_store_id ON subscriptions (store_id);")
    op.execute(
        "CREATE UNIQUE INDEX uq_subscriptions_store_id_live ON subscriptions (store_id) "
        "WHERE status <> 'canceled';"
    )
    op.execute("CREATE INDEX ix_subscriptions_updated_at ON subscriptions (updated_at);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS subscriptions;")
    op.execute("DROP TABLE IF EXISTS outbox_dlq;")
    op.execute("DROP TABLE IF EXISTS outbox_events;")
    op.execute("DROP TABLE IF EXISTS notifications;")
    op.execute("DROP TABLE IF EXISTS inventory_items;")
    op.execute("DROP TABLE IF EXISTS order_line_items;")
    op.execute("DROP TABLE IF EXISTS vendor_orders;")
    op.execute("DROP TABLE IF EXISTS media_attachments;")
    op.execute("DROP TABLE IF EXISTS licenses;")
    op.execute("DROP TABLE IF EXISTS media;")
    op.execute("DROP TABLE IF EXISTS stores;")
