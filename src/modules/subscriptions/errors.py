"""Recognise the provider's "already pending" responses.

The provider answers a duplicate pause or cancel with an error whose JSON body
looks like ``{"errors": [{"detail": "... already has a pending pause date ..."}]}``.
Those two shapes mean the requested state is already scheduled, so callers sync
instead of failing.
"""

from __future__ import annotations

import json

from src.modules.subscriptions.provider import ProviderAPIError

PENDING_CANCEL_DETAIL = "already has a pending cancel date"
PENDING_PAUSE_DETAIL = "already has a pending pause date"


def _find_api_error(exc: BaseException | None) -> ProviderAPIError | None:
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, ProviderAPIError):
            return exc
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return None


def _error_details(exc: BaseException | None) -> list[str]:
    api_error = _find_api_error(exc)
    if api_error is None:
        return []
    raw = (api_error.body or "").strip()
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(payload, dict):
        return []
    details = []
    for entry in payload.get("errors") or []:
        if isinstance(entry, dict) and isinstance(entry.get("detail"), str):
            details.append(entry["detail"])
    return details


def _has_detail(exc: BaseException | None, needle: str) -> bool:
    return any(needle in detail.lower() for detail in _error_details(exc))


def is_cancel_already_scheduled(exc: BaseException | None) -> bool:
    return _has_detail(exc, PENDING_CANCEL_DETAIL)


def is_pause_already_scheduled(exc: BaseException | None) -> bool:
    return _has_detail(exc, PENDING_PAUSE_DETAIL)
