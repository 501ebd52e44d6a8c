from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..common.timeutil import parse_instant


class DiscountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PAUSED = "paused"
    EXPIRED = "expired"


class DiscountBucket(str, Enum):
    ALL = "all"
    ONGOING = "ongoing"
    SCHEDULED = "scheduled"
    EXPIRED = "expired"
    INACTIVE = "inactive"


class LimitMode(str, Enum):
    NO_UPDATE = "no_update"
    NO_LIMIT = "no_limit"
    SET_LIMIT = "set_limit"


class Product(BaseModel):
    """Catalog entry as the product service returns it."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: Decimal
    current_stock: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) and not isinstance(value, bool) else value

    @field_validator("current_stock", mode="before")
    @classmethod
    def _stock_none_is_zero(cls, value):
        return 0 if value is None else value


class ApplicableProduct(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_id: str
    discounted_price: Decimal
    stock_limit: Optional[int] = None
    purchase_limit: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_id_alias(cls, data):
        # some endpoints return the joined product row with "id" instead of "product_id"
        if isinstance(data, dict) and not data.get("product_id") and data.get("id"):
            data = {**data, "product_id": data["id"]}
        return data

    @field_validator("product_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) and not isinstance(value, bool) else value


class Discount(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    business_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    start_datetime: datetime
    end_datetime: Optional[datetime] = None
    status: DiscountStatus = DiscountStatus.ACTIVE
    applicable_products: List[ApplicableProduct] = Field(default_factory=list)

    @field_validator("id", "business_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) and not isinstance(value, bool) else value

    @field_validator("start_datetime", "end_datetime", mode="before")
    @classmethod
    def _utc_instant(cls, value):
        if value is None or value == "":
            return None
        return parse_instant(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("applicable_products", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value
