"""Pending provider actions and the entitlement flag derived from them."""

from __future__ import annotations

from datetime import datetime

from src.models.subscription import Subscription
from src.modules.subscriptions.mapper import from_unix
from src.modules.subscriptions.provider import ProviderSubscription, ProviderSubscriptionAction


def _pending_action(
    actions: list[ProviderSubscriptionAction] | None, action_type: str
) -> ProviderSubscriptionAction | None:
    for action in actions or []:
        if action is None or not (action.id or "").strip():
            continue
        if (action.type or "").strip().upper() == action_type:
            return action
    return None


def pending_pause_action(actions: list[ProviderSubscriptionAction] | None) -> ProviderSubscriptionAction | None:
    return _pending_action(actions, "PAUSE")


def pending_cancel_action(actions: list[ProviderSubscriptionAction] | None) -> ProviderSubscriptionAction | None:
    return _pending_action(actions, "CANCEL")


def action_time(action: ProviderSubscriptionAction | None) -> datetime | None:
    if action is None:
        return None
    return from_unix(action.effective_date)


def apply_pending_actions(stored: Subscription | None, actions: list[ProviderSubscriptionAction] | None) -> None:
    """Project scheduled provider actions onto the local row."""
    if stored is None:
        return
    cancel = pending_cancel_action(actions)
    if cancel is not None:
        stored.cancel_at_period_end = True
        when = action_time(cancel)
        if when is not None:
            stored.canceled_at = when
    pause = pending_pause_action(actions)
    if pause is not None:
        when = action_time(pause)
        if when is not None:
            stored.pause_effective_at = when


def derive_entitlement_active(
    now: datetime, snapshot: ProviderSubscription | None, stored: Subscription | None
) -> bool:
    """Whether the store keeps paid features at ``now``.

    A cancel or pause that has taken effect revokes entitlement. Otherwise the
    store is entitled through the charged-through date (or the stored period
    end), and only a live ``ACTIVE`` status counts when neither is known.
    """
    if snapshot is None:
        return False
    for action in (pending_cancel_action(snapshot.actions), pending_pause_action(snapshot.actions)):
        when = action_time(action)
        if when is not None and now >= when:
            return False

    entitled_until = from_unix(snapshot.charged_through_date)
    if entitled_until is None and stored is not None:
        entitled_until = stored.current_period_end
    if entitled_until is None:
        return (snapshot.status or "").strip().upper() == "ACTIVE"
    return now <= entitled_until
