"""PayloadDecoderRegistry — maps (event_type, version) to a payload model."""

import logging

from pydantic import BaseModel

from src.models.enums import OutboxEventType
from src.modules.events.payloads import (
    LicenseExpiredEvent,
    LicenseExpiringSoonEvent,
    LicenseStatusChangedEvent,
    OrderExpiredEvent,
    OrderPendingNudgeEvent,
    PayloadEnvelope,
)

logger = logging.getLogger(__name__)


class PayloadDecoderRegistry:
    """Class-level registry of payload models keyed by event type and version.

    Consumers decode ``envelope.data`` through it so a schema bump registers a
    new version instead of changing the meaning of an old one.
    """

    _models: dict[tuple[str, int], type[BaseModel]] = {}

    @classmethod
    def register(cls, event_type: OutboxEventType | str, version: int, model: type[BaseModel]) -> None:
        key = (OutboxEventType(event_type).value, version)
        cls._models[key] = model
        logger.debug("Registered payload model %s for %s@v%d", model.__name__, key[0], version)

    @classmethod
    def decode(cls, event_type: OutboxEventType | str, envelope: PayloadEnvelope) -> BaseModel:
        key = (OutboxEventType(event_type).value, envelope.version)
        model = cls._models.get(key)
        if model is None:
            raise LookupError(f"decoder not registered for {key[0]}@v{key[1]}")
        return model.model_validate(envelope.data)

    @classmethod
    def clear(cls) -> None:
        """Remove all registered models. Useful for testing."""
        cls._models.clear()

    @classmethod
    def register_defaults(cls) -> None:
        cls.register(OutboxEventType.LICENSE_EXPIRING_SOON, 1, LicenseExpiringSoonEvent)
        cls.register(OutboxEventType.LICENSE_EXPIRED, 1, LicenseExpiredEvent)
        cls.register(OutboxEventType.LICENSE_STATUS_CHANGED, 1, LicenseStatusChangedEvent)
        cls.register(OutboxEventType.ORDER_PENDING_NUDGE, 1, OrderPendingNudgeEvent)
        cls.register(OutboxEventType.ORDER_EXPIRED, 1, OrderExpiredEvent)


PayloadDecoderRegistry.register_defaults()
