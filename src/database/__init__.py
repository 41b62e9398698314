from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.engine import async_session, engine
from src.database.transaction import TransactionRunner

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "TransactionRunner",
    "async_session",
    "engine",
]
