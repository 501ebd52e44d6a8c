from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP = "picked_up"
    CANCELLED_BY_USER = "cancelled_by_user"
    CANCELLED_BY_BUSINESS = "cancelled_by_business"
    FAILED_PAYMENT = "failed_payment"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Order(BaseModel):
    """One order as returned by the upstream service and pushed on the channel."""

    model_config = ConfigDict(extra="allow")

    id: str
    order_number: str
    business_id: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = None
    arrival_code: Optional[str] = None
    pickup_datetime: Optional[datetime] = None
    subtotal: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    discount_name: Optional[str] = None
    total_amount: Decimal = Decimal("0")
    item_count: int = 0
    special_instructions: Optional[str] = None
    user_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", "order_number", "business_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        raise ValueError("identifier must be a string or integer")

    @field_validator("status", "payment_status", mode="before")
    @classmethod
    def _normalize_enum(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("subtotal", "discount_amount", "total_amount", mode="before")
    @classmethod
    def _none_is_zero(cls, value):
        return Decimal("0") if value is None else value

    @field_validator("item_count", mode="before")
    @classmethod
    def _count_none_is_zero(cls, value):
        return 0 if value is None else value

    def to_json(self) -> dict:
        return self.model_dump(mode="json")


class PaymentStatusChange(BaseModel):
    payment_status: PaymentStatus = Field(...)

    @field_validator("payment_status", mode="before")
    @classmethod
    def _normalize(cls, value):
        return value.strip().lower() if isinstance(value, str) else value
