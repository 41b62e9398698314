"""Square Subscriptions REST adapter."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

import httpx

from src.config import Settings, settings
from src.modules.subscriptions.provider import (
    BillingProvider,
    CancelParams,
    PauseParams,
    ProviderAPIError,
    ProviderSubscription,
    ProviderSubscriptionAction,
    ProviderSubscriptionItem,
    ProviderSubscriptionPrice,
    ResumeParams,
    SubscriptionParams,
)

logger = logging.getLogger(__name__)

# Retry config for the Square API
_MAX_RETRIES = 3
_RETRY_STATUSES = {429, 500, 502, 503, 504}
_BASE_BACKOFF_SECONDS = 2.0


def parse_date(value: Any) -> int:
    """Unix seconds from an RFC3339 timestamp, a ``YYYY-MM-DD`` date or an integer string."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if not raw:
        return 0
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp())
    try:
        return int(raw)
    except ValueError:
        return 0


def _convert_actions(raw_actions: list[dict] | None) -> list[ProviderSubscriptionAction]:
    actions = []
    for raw in raw_actions or []:
        if not isinstance(raw, dict):
            continue
        actions.append(
            ProviderSubscriptionAction(
                id=str(raw.get("id") or ""),
                type=str(raw.get("type") or ""),
                effective_date=parse_date(raw.get("effective_date")),
            )
        )
    return actions


def convert_subscription(
    payload: dict[str, Any],
    fallback_price: str = "",
    metadata: dict[str, str] | None = None,
) -> ProviderSubscription | None:
    """Build a snapshot from a Square response body.

    Actions may appear inside the subscription object or beside it at the top
    level when the request asked for ``include=actions``.
    """
    sub = payload.get("subscription")
    if not isinstance(sub, dict):
        return None

    meta = dict(metadata or {})
    price_id = (sub.get("plan_variation_id") or "").strip()
    if not price_id:
        price_id = (fallback_price or "").strip()
    if not price_id:
        price_id = (meta.get("price_id") or meta.get("plan_variation_id") or "").strip()

    start = parse_date(sub.get("start_date"))
    end = parse_date(sub.get("charged_through_date"))
    status = str(sub.get("status") or "")
    raw_actions = sub.get("actions") or payload.get("actions")

    return ProviderSubscription(
        id=str(sub.get("id") or ""),
        status=status,
        metadata=meta,
        cancel_at_period_end=status.upper() == "CANCELED",
        canceled_at=parse_date(sub.get("canceled_date")),
        charged_through_date=end,
        start_date=start,
        actions=_convert_actions(raw_actions),
        items=[
            ProviderSubscriptionItem(
                current_period_start=start,
                current_period_end=end,
                price=ProviderSubscriptionPrice(id=price_id),
            )
        ],
    )


class SquareSubscriptionClient(BillingProvider):
    def __init__(
        self,
        access_token: str,
        location_id: str,
        base_url: str,
        api_version: str,
        client: httpx.AsyncClient | None = None,
        backoff_seconds: float = _BASE_BACKOFF_SECONDS,
    ) -> None:
        self.access_token = access_token
        self.location_id = location_id.strip()
        self.base_url = base_url
        self.api_version = api_version
        self.backoff_seconds = backoff_seconds
        self._client = client

    @classmethod
    def from_settings(cls, config: Settings = settings) -> SquareSubscriptionClient:
        return cls(
            access_token=config.square_access_token,
            location_id=config.square_location_id,
            base_url=config.square_base_url,
            api_version=config.square_api_version,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=30.0)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Make an HTTP request with exponential backoff for retryable errors."""
        client = await self._get_client()
        headers = kwargs.setdefault("headers", {})
        headers["Authorization"] = f"Bearer {self.access_token}"
        headers["Square-Version"] = self.api_version
        headers.setdefault("Content-Type", "application/json")

        last_exception: Exception | None = None
        for attempt in range(_MAX_RETRIES + 1):
            try:
                response = await client.request(method, path, **kwargs)
                if response.status_code < 400:
                    return response
                if response.status_code not in _RETRY_STATUSES or attempt >= _MAX_RETRIES:
                    raise ProviderAPIError(response.status_code, response.text)
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Square %s %s returned %d, retrying in %.1fs (attempt %d/%d)",
                    method, path, response.status_code, delay, attempt + 1, _MAX_RETRIES,
                )
                await asyncio.sleep(delay)
            except httpx.RequestError as exc:
                last_exception = exc
                if attempt >= _MAX_RETRIES:
                    raise
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Square %s %s request error: %s, retrying in %.1fs",
                    method, path, exc, delay,
                )
                await asyncio.sleep(delay)

        if last_exception:
            raise last_exception
        raise RuntimeError("Max retries exceeded for Square request")

    async def create(self, params: SubscriptionParams) -> ProviderSubscription:
        if not self.location_id:
            raise ValueError("square location id required")
        body = {
            "idempotency_key": f"sub-create-{uuid.uuid4()}",
            "location_id": self.location_id,
            "plan_variation_id": params.price_id.strip(),
            "customer_id": params.customer_id,
            "card_id": params.payment_method_id,
        }
        response = await self._request_with_retry("POST", "/v2/subscriptions", json=body)
        snapshot = convert_subscription(response.json(), params.price_id, params.metadata)
        if snapshot is None:
            raise ProviderAPIError(response.status_code, response.text, "square create returned no subscription")
        logger.info("Square subscription created id=%s", snapshot.id)
        return snapshot

    async def cancel(self, subscription_id: str, params: CancelParams | None = None) -> ProviderSubscription:
        response = await self._request_with_retry("POST", f"/v2/subscriptions/{subscription_id}/cancel")
        return convert_subscription(response.json())

    async def get(
        self, subscription_id: str, params: SubscriptionParams | None = None
    ) -> ProviderSubscription | None:
        query = {"include": "actions"} if params is not None and params.include_actions else None
        try:
            response = await self._request_with_retry(
                "GET", f"/v2/subscriptions/{subscription_id}", params=query,
            )
        except ProviderAPIError as exc:
            if exc.status_code == 404:
                return None
            raise
        fallback_price = params.price_id if params is not None else ""
        metadata = params.metadata if params is not None else None
        return convert_subscription(response.json(), fallback_price, metadata)

    async def pause(self, subscription_id: str, params: PauseParams) -> ProviderSubscription:
        body = {}
        if params.pause_effective_date:
            body["pause_effective_date"] = params.pause_effective_date
        response = await self._request_with_retry(
            "POST", f"/v2/subscriptions/{subscription_id}/pause", json=body,
        )
        return convert_subscription(response.json(), params.price_id)

    async def resume(self, subscription_id: str, params: ResumeParams) -> ProviderSubscription:
        response = await self._request_with_retry(
            "POST", f"/v2/subscriptions/{subscription_id}/resume", json={},
        )
        return convert_subscription(response.json(), params.price_id)

    async def delete_action(self, subscription_id: str, action_id: str) -> ProviderSubscription:
        response = await self._request_with_retry(
            "DELETE", f"/v2/subscriptions/{subscription_id}/actions/{action_id}",
        )
        return convert_subscription(response.json())
