"""Translate provider subscription snapshots into local ``Subscription`` rows."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from src.exceptions import DependencyException, ValidationException
from src.models.enums import SubscriptionStatus
from src.models.subscription import Subscription
from src.modules.subscriptions.provider import ProviderSubscription

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "ACTIVE": SubscriptionStatus.ACTIVE,
    "PENDING": SubscriptionStatus.TRIALING,
    "CANCELED": SubscriptionStatus.CANCELED,
    "DEACTIVATED": SubscriptionStatus.CANCELED,
    "PAUSED": SubscriptionStatus.CANCELED,
    "COMPLETED": SubscriptionStatus.CANCELED,
    "PAST_DUE": SubscriptionStatus.PAST_DUE,
    "PAST-DUE": SubscriptionStatus.PAST_DUE,
    "PASTDUE": SubscriptionStatus.PAST_DUE,
}


def map_provider_status(raw: str | None) -> SubscriptionStatus:
    """Map a provider status string onto the local enum.

    Unrecognised values fall back to ``active`` so an unexpected provider
    status never strands a paying store without entitlement.
    """
    key = (raw or "").strip().upper()
    status = _STATUS_MAP.get(key)
    if status is None:
        logger.warning("Unknown provider subscription status %r; treating as active", raw)
        return SubscriptionStatus.ACTIVE
    return status


def is_active_status(status: SubscriptionStatus | str | None) -> bool:
    """A subscription is present for a store until it is canceled."""
    if status is None:
        return False
    return SubscriptionStatus(status) != SubscriptionStatus.CANCELED


def from_unix(ts: int | None) -> datetime | None:
    if not ts:
        return None
    return datetime.fromtimestamp(ts, UTC)


def period_from_subscription(snapshot: ProviderSubscription | None) -> tuple[int, int]:
    if snapshot is None:
        return 0, 0
    if snapshot.start_date and snapshot.charged_through_date:
        return snapshot.start_date, snapshot.charged_through_date
    if snapshot.items:
        item = snapshot.items[0]
        return item.current_period_start, item.current_period_end
    return 0, 0


def _merge_metadata(base: dict | None, extras: dict | None) -> dict[str, str]:
    merged = {str(k): str(v) for k, v in (base or {}).items()}
    for key, value in (extras or {}).items():
        if value in (None, ""):
            continue
        merged[str(key)] = str(value)
    return merged


def build_subscription_from_provider(
    snapshot: ProviderSubscription | None,
    store_id: uuid.UUID,
    price_id: str,
    customer_id: str = "",
    payment_method_id: str = "",
) -> Subscription:
    if snapshot is None:
        raise DependencyException("provider subscription is nil")

    extras = {
        "square_customer_id": customer_id.strip(),
        "square_payment_method_id": payment_method_id.strip(),
        "square_card_id": payment_method_id.strip(),
    }
    start_ts, end_ts = period_from_subscription(snapshot)
    return Subscription(
        store_id=store_id,
        external_subscription_id=snapshot.id,
        status=map_provider_status(snapshot.status),
        price_id=price_id.strip() or None,
        current_period_start=from_unix(start_ts),
        current_period_end=from_unix(end_ts),
        cancel_at_period_end=snapshot.cancel_at_period_end,
        canceled_at=from_unix(snapshot.canceled_at),
        paused_at=None,
        metadata_extra=_merge_metadata(snapshot.metadata, extras),
    )


def update_subscription_from_provider(
    target: Subscription,
    snapshot: ProviderSubscription | None,
    price_id: str | None = None,
) -> Subscription:
    """Copy provider state onto ``target`` in place.

    Stored metadata keys survive; provider keys win on collision.
    """
    if snapshot is None:
        raise DependencyException("provider subscription is nil")

    start_ts, end_ts = period_from_subscription(snapshot)
    target.external_subscription_id = snapshot.id
    target.status = map_provider_status(snapshot.status)
    if price_id:
        target.price_id = price_id
    target.current_period_start = from_unix(start_ts)
    target.current_period_end = from_unix(end_ts)
    target.cancel_at_period_end = snapshot.cancel_at_period_end
    target.canceled_at = from_unix(snapshot.canceled_at)
    target.metadata_extra = _merge_metadata(target.metadata_extra, snapshot.metadata)
    return target


def store_id_from_metadata(metadata: dict[str, str] | None) -> uuid.UUID:
    if metadata is None:
        raise ValidationException("subscription metadata is required")
    raw = (metadata.get("store_id") or "").strip()
    if not raw:
        raise ValidationException("store_id missing from metadata")
    try:
        return uuid.UUID(raw)
    except ValueError as exc:
        raise ValidationException(f"invalid store_id metadata: {raw}") from exc
