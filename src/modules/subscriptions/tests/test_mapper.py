"""Tests for provider-to-local subscription mapping."""

import uuid
from datetime import UTC, datetime

import pytest

from src.exceptions import DependencyException, ValidationException
from src.models.enums import SubscriptionStatus
from src.models.subscription import Subscription
from src.modules.subscriptions.mapper import (
    build_subscription_from_provider,
    is_active_status,
    map_provider_status,
    period_from_subscription,
    store_id_from_metadata,
    update_subscription_from_provider,
)
from src.modules.subscriptions.provider import ProviderSubscription, ProviderSubscriptionItem

START = int(datetime(2026, 2, 1, tzinfo=UTC).timestamp())
END = int(datetime(2026, 3, 1, tzinfo=UTC).timestamp())


class TestMapProviderStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("ACTIVE", SubscriptionStatus.ACTIVE),
            ("active", SubscriptionStatus.ACTIVE),
            ("PENDING", SubscriptionStatus.TRIALING),
            ("CANCELED", SubscriptionStatus.CANCELED),
            ("DEACTIVATED", SubscriptionStatus.CANCELED),
            ("PAUSED", SubscriptionStatus.CANCELED),
            ("COMPLETED", SubscriptionStatus.CANCELED),
            ("PAST_DUE", SubscriptionStatus.PAST_DUE),
            (" past-due ", SubscriptionStatus.PAST_DUE),
            ("PASTDUE", SubscriptionStatus.PAST_DUE),
        ],
    )
    def test_known_statuses(self, raw, expected):
        assert map_provider_status(raw) == expected

    def test_unknown_status_is_treated_as_active(self, caplog):
        assert map_provider_status("SOMETHING_NEW") == SubscriptionStatus.ACTIVE
        assert "SOMETHING_NEW" in caplog.text

    def test_present_until_canceled(self):
        assert is_active_status(SubscriptionStatus.PAUSED)
        assert is_active_status("past_due")
        assert not is_active_status(SubscriptionStatus.CANCELED)
        assert not is_active_status(None)


class TestPeriod:
    def test_prefers_start_and_charged_through(self):
        snapshot = ProviderSubscription(
            id="sq_1",
            status="ACTIVE",
            start_date=START,
            charged_through_date=END,
            items=[ProviderSubscriptionItem(current_period_start=1, current_period_end=2)],
        )
        assert period_from_subscription(snapshot) == (START, END)

    def test_falls_back_to_first_item(self):
        snapshot = ProviderSubscription(
            id="sq_1",
            status="ACTIVE",
            start_date=START,
            items=[ProviderSubscriptionItem(current_period_start=START, current_period_end=END)],
        )
        assert period_from_subscription(snapshot) == (START, END)

    def test_nothing_known(self):
        assert period_from_subscription(None) == (0, 0)
        assert period_from_subscription(ProviderSubscription(id="sq_1", status="ACTIVE")) == (0, 0)


class TestBuild:
    def test_build_copies_provider_state_and_customer_metadata(self):
        store_id = uuid.uuid4()
        snapshot = ProviderSubscription(
            id="sq_1",
            status="ACTIVE",
            metadata={"store_id": str(store_id)},
            start_date=START,
            charged_through_date=END,
        )

        sub = build_subscription_from_provider(snapshot, store_id, " plan_monthly ", "cust_1", "card_1")

        assert sub.store_id == store_id
        assert sub.external_subscription_id == "sq_1"
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.price_id == "plan_monthly"
        assert sub.current_period_start == datetime(2026, 2, 1, tzinfo=UTC)
        assert sub.current_period_end == datetime(2026, 3, 1, tzinfo=UTC)
        assert sub.canceled_at is None
        assert sub.metadata_extra == {
            "store_id": str(store_id),
            "square_customer_id": "cust_1",
            "square_payment_method_id": "card_1",
            "square_card_id": "card_1",
        }

    def test_build_requires_snapshot(self):
        with pytest.raises(DependencyException):
            build_subscription_from_provider(None, uuid.uuid4(), "plan")


class TestUpdate:
    def test_stored_metadata_survives_and_provider_wins_on_collision(self):
        target = Subscription(
            store_id=uuid.uuid4(),
            external_subscription_id="sq_1",
            status=SubscriptionStatus.ACTIVE,
            price_id="plan_old",
            metadata_extra={"square_customer_id": "cust_1", "tier": "basic"},
        )
        snapshot = ProviderSubscription(
            id="sq_1",
            status="CANCELED",
            metadata={"tier": "pro"},
            cancel_at_period_end=True,
            canceled_at=END,
        )

        update_subscription_from_provider(target, snapshot)

        assert target.status == SubscriptionStatus.CANCELED
        assert target.price_id == "plan_old"
        assert target.cancel_at_period_end is True
        assert target.canceled_at == datetime(2026, 3, 1, tzinfo=UTC)
        assert target.metadata_extra == {"square_customer_id": "cust_1", "tier": "pro"}

    def test_price_id_replaced_when_given(self):
        target = Subscription(external_subscription_id="sq_1", price_id="plan_old", metadata_extra={})
        update_subscription_from_provider(target, ProviderSubscription(id="sq_1", status="ACTIVE"), "plan_new")
        assert target.price_id == "plan_new"


class TestStoreIdFromMetadata:
    def test_parses_store_id(self):
        store_id = uuid.uuid4()
        assert store_id_from_metadata({"store_id": f" {store_id} "}) == store_id

    @pytest.mark.parametrize("metadata", [None, {}, {"store_id": ""}, {"store_id": "not-a-uuid"}])
    def test_rejects_missing_or_invalid(self, metadata):
        with pytest.raises(ValidationException):
            store_id_from_metadata(metadata)
