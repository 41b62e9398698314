"""Pydantic v2 schemas for subscription operations."""

from __future__ import annotations

from pydantic import BaseModel


class CreateSubscriptionInput(BaseModel):
    square_customer_id: str = ""
    square_payment_method_id: str = ""
    price_id: str = ""
