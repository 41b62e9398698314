"""Tests for the Square Subscriptions adapter using httpx.MockTransport."""

import json
from datetime import UTC, datetime

import httpx
import pytest

from src.modules.subscriptions.provider import (
    CancelParams,
    PauseParams,
    ProviderAPIError,
    ResumeParams,
    SubscriptionParams,
)
from src.modules.subscriptions.square_client import (
    SquareSubscriptionClient,
    convert_subscription,
    parse_date,
)

BASE_URL = "https://connect.squareupsandbox.com"


def _ts(*args) -> int:
    return int(datetime(*args, tzinfo=UTC).timestamp())


def _subscription_body(**overrides) -> dict:
    sub = {
        "id": "sq_sub_1",
        "status": "ACTIVE",
        "plan_variation_id": "plan_monthly",
        "start_date": "2026-02-01",
        "charged_through_date": "2026-03-01",
    }
    sub.update(overrides)
    return {"subscription": sub}


def _make_client(handler, location_id: str = "LOC1") -> SquareSubscriptionClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return SquareSubscriptionClient(
        access_token="sq-token",
        location_id=location_id,
        base_url=BASE_URL,
        api_version="2025-01-23",
        client=http,
        backoff_seconds=0,
    )


class TestParseDate:
    def test_formats(self):
        assert parse_date("2026-03-01") == _ts(2026, 3, 1)
        assert parse_date("2026-03-01T10:30:00Z") == _ts(2026, 3, 1, 10, 30)
        assert parse_date("2026-03-01T10:30:00+02:00") == _ts(2026, 3, 1, 8, 30)
        assert parse_date("1772361000") == 1772361000
        assert parse_date(42) == 42

    def test_empty_and_garbage(self):
        assert parse_date(None) == 0
        assert parse_date("  ") == 0
        assert parse_date("next tuesday") == 0


class TestConvertSubscription:
    def test_maps_fields(self):
        snapshot = convert_subscription(
            _subscription_body(canceled_date="2026-03-01"), metadata={"store_id": "s1"}
        )

        assert snapshot.id == "sq_sub_1"
        assert snapshot.start_date == _ts(2026, 2, 1)
        assert snapshot.charged_through_date == _ts(2026, 3, 1)
        assert snapshot.canceled_at == _ts(2026, 3, 1)
        assert snapshot.metadata == {"store_id": "s1"}
        assert snapshot.cancel_at_period_end is False
        assert snapshot.items[0].price.id == "plan_monthly"

    def test_price_fallbacks(self):
        body = _subscription_body(plan_variation_id="")
        assert convert_subscription(body, "plan_fallback").items[0].price.id == "plan_fallback"
        assert convert_subscription(body, metadata={"price_id": "plan_meta"}).items[0].price.id == "plan_meta"

    def test_canceled_status_sets_cancel_flag(self):
        assert convert_subscription(_subscription_body(status="CANCELED")).cancel_at_period_end is True

    def test_actions_inside_or_beside_subscription(self):
        inside = _subscription_body(actions=[{"id": "a1", "type": "PAUSE", "effective_date": "2026-03-01"}])
        beside = _subscription_body()
        beside["actions"] = [{"id": "a2", "type": "CANCEL", "effective_date": "2026-04-01"}]

        assert [(a.id, a.type) for a in convert_subscription(inside).actions] == [("a1", "PAUSE")]
        action = convert_subscription(beside).actions[0]
        assert (action.id, action.type, action.effective_date) == ("a2", "CANCEL", _ts(2026, 4, 1))

    def test_missing_subscription(self):
        assert convert_subscription({"errors": []}) is None


class TestSquareSubscriptionClient:
    @pytest.mark.asyncio
    async def test_get_sends_auth_headers_and_include_actions(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json=_subscription_body())

        client = _make_client(handler)
        snapshot = await client.get(
            "sq_sub_1", SubscriptionParams(price_id="plan_monthly", include_actions=True)
        )

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/v2/subscriptions/sq_sub_1"
        assert request.url.params["include"] == "actions"
        assert request.headers["Authorization"] == "Bearer sq-token"
        assert request.headers["Square-Version"] == "2025-01-23"
        assert snapshot.status == "ACTIVE"
        await client.close()

    @pytest.mark.asyncio
    async def test_get_returns_none_on_404(self):
        client = _make_client(lambda request: httpx.Response(404, json={"errors": []}))
        assert await client.get("missing") is None

    @pytest.mark.asyncio
    async def test_client_error_raises_with_body(self):
        body = {"errors": [{"detail": "Subscription sq_sub_1 already has a pending pause date."}]}
        client = _make_client(lambda request: httpx.Response(400, json=body))

        with pytest.raises(ProviderAPIError) as exc_info:
            await client.pause("sq_sub_1", PauseParams(pause_effective_date="2026-03-01"))

        assert exc_info.value.status_code == 400
        assert json.loads(exc_info.value.body) == body

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json=_subscription_body())

        client = _make_client(handler)
        snapshot = await client.cancel("sq_sub_1", CancelParams())

        assert len(calls) == 3
        assert calls[0].url.path == "/v2/subscriptions/sq_sub_1/cancel"
        assert snapshot.id == "sq_sub_1"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, text="boom")

        client = _make_client(handler)
        with pytest.raises(ProviderAPIError) as exc_info:
            await client.resume("sq_sub_1", ResumeParams())

        assert exc_info.value.status_code == 500
        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=_subscription_body())

        client = _make_client(handler)
        assert (await client.get("sq_sub_1")).id == "sq_sub_1"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_create_posts_plan_customer_and_card(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_subscription_body())

        client = _make_client(handler)
        snapshot = await client.create(
            SubscriptionParams(
                customer_id="cust_1",
                price_id="plan_monthly",
                payment_method_id="card_1",
                metadata={"store_id": "s1"},
            )
        )

        body = seen["body"]
        assert body["location_id"] == "LOC1"
        assert body["plan_variation_id"] == "plan_monthly"
        assert body["customer_id"] == "cust_1"
        assert body["card_id"] == "card_1"
        assert body["idempotency_key"].startswith("sub-create-")
        assert snapshot.metadata == {"store_id": "s1"}

    @pytest.mark.asyncio
    async def test_create_requires_location(self):
        client = _make_client(lambda request: httpx.Response(200, json=_subscription_body()), location_id=" ")
        with pytest.raises(ValueError, match="location"):
            await client.create(SubscriptionParams(customer_id="c", price_id="p", payment_method_id="k"))

    @pytest.mark.asyncio
    async def test_delete_action_and_pause_paths(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, request.content))
            return httpx.Response(200, json=_subscription_body())

        client = _make_client(handler)
        await client.delete_action("sq_sub_1", "act_9")
        await client.pause("sq_sub_1", PauseParams(pause_effective_date="2026-03-01"))

        assert seen[0][:2] == ("DELETE", "/v2/subscriptions/sq_sub_1/actions/act_9")
        assert seen[1][:2] == ("POST", "/v2/subscriptions/sq_sub_1/pause")
        assert json.loads(seen[1][2]) == {"pause_effective_date": "2026-03-01"}
