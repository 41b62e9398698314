"""Billing-provider contract and the snapshot types it returns.

Timestamps on snapshots are Unix seconds; ``0`` means the provider left the
field unset.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class ProviderSubscriptionAction:
    id: str
    type: str
    effective_date: int = 0


@dataclass
class ProviderSubscriptionPrice:
    id: str = ""


@dataclass
class ProviderSubscriptionItem:
    current_period_start: int = 0
    current_period_end: int = 0
    price: ProviderSubscriptionPrice | None = None


@dataclass
class ProviderSubscription:
    id: str
    status: str
    metadata: dict[str, str] = field(default_factory=dict)
    cancel_at_period_end: bool = False
    canceled_at: int = 0
    charged_through_date: int = 0
    start_date: int = 0
    actions: list[ProviderSubscriptionAction] = field(default_factory=list)
    items: list[ProviderSubscriptionItem] = field(default_factory=list)


@dataclass
class SubscriptionParams:
    customer_id: str = ""
    price_id: str = ""
    payment_method_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    include_actions: bool = False


@dataclass
class CancelParams:
    pass


@dataclass
class PauseParams:
    price_id: str = ""
    pause_effective_date: str = ""


@dataclass
class ResumeParams:
    price_id: str = ""


class ProviderAPIError(Exception):
    """Non-2xx response from the billing provider, carrying the raw body."""

    def __init__(self, status_code: int, body: str, message: str | None = None) -> None:
        super().__init__(message or f"provider returned {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class BillingProvider(ABC):
    @abstractmethod
    async def create(self, params: SubscriptionParams) -> ProviderSubscription:
        """Create a subscription and return the provider's first view of it."""

    @abstractmethod
    async def cancel(self, subscription_id: str, params: CancelParams | None = None) -> ProviderSubscription:
        """Schedule cancellation at the end of the current period."""

    @abstractmethod
    async def get(self, subscription_id: str, params: SubscriptionParams | None = None) -> ProviderSubscription | None:
        """Return the live subscription, or None when the provider has no such id."""

    @abstractmethod
    async def pause(self, subscription_id: str, params: PauseParams) -> ProviderSubscription:
        """Schedule a pause on ``params.pause_effective_date``."""

    @abstractmethod
    async def resume(self, subscription_id: str, params: ResumeParams) -> ProviderSubscription:
        """Resume a paused subscription."""

    @abstractmethod
    async def delete_action(self, subscription_id: str, action_id: str) -> ProviderSubscription:
        """Drop a scheduled action (pause or cancel) and return the refreshed subscription."""
