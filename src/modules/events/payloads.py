"""Outbox payload shapes.

Every row in ``outbox_events.payload`` is a :class:`PayloadEnvelope` whose
``data`` member holds one of the event models below. Field names on the wire
are camelCase and must stay stable: downstream consumers decode them by name.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ActorRef(CamelModel):
    user_id: uuid.UUID
    store_id: uuid.UUID | None = None
    role: str | None = None


class PayloadEnvelope(CamelModel):
    version: int = 1
    event_id: uuid.UUID
    occurred_at: datetime
    actor: ActorRef | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class LicenseExpiringSoonEvent(CamelModel):
    license_id: uuid.UUID
    store_id: uuid.UUID
    expiration_date: datetime
    days_until_expiration: int


class LicenseExpiredEvent(CamelModel):
    license_id: uuid.UUID
    store_id: uuid.UUID
    expiration_date: datetime
    expired_at: datetime


class LicenseStatusChangedEvent(CamelModel):
    license_id: uuid.UUID
    store_id: uuid.UUID
    status: str
    reason: str | None = None


class OrderPendingNudgeEvent(CamelModel):
    order_id: uuid.UUID
    checkout_group_id: uuid.UUID
    buyer_store_id: uuid.UUID
    vendor_store_id: uuid.UUID
    pending_days: int


class OrderExpiredEvent(CamelModel):
    order_id: uuid.UUID
    checkout_group_id: uuid.UUID
    buyer_store_id: uuid.UUID
    vendor_store_id: uuid.UUID
    expired_at: datetime


def decode_envelope(raw: bytes | str | dict) -> PayloadEnvelope:
    """Parse a stored payload (JSON text or an already-decoded dict) into an envelope."""
    if isinstance(raw, dict):
        return PayloadEnvelope.model_validate(raw)
    return PayloadEnvelope.model_validate_json(raw)
