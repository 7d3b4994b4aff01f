from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.enums import OrderStatus, Role
from schemas.base import CamelModel


class Actor(BaseModel):
    """Already-authenticated caller, as decoded from the upstream bearer token."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role


class OrderItemInput(CamelModel):
    product_id: str
    quantity: int
    price: Decimal

    @field_validator('product_id')
    @classmethod
    def validate_product_id(cls, value):
        if not value or not value.strip():
            raise ValueError('Product ID cannot be empty')
        return value.strip()


class CreateOrderRequest(CamelModel):
    customer_id: Optional[str] = None
    vendor_id: str
    items: list[OrderItemInput]

    @field_validator('vendor_id')
    @classmethod
    def validate_vendor_id(cls, value):
        if not value or not value.strip():
            raise ValueError('Vendor ID cannot be empty')
        return value.strip()


class VendorActionRequest(CamelModel):
    # Left as a plain string: unknown actions are reported as INVALID_ACTION, not a schema error
    action: str


class AssignCourierRequest(CamelModel):
    courier_id: str

    @field_validator('courier_id')
    @classmethod
    def validate_courier_id(cls, value):
        if not value or not value.strip():
            raise ValueError('Courier ID cannot be empty')
        return value.strip()


class OrderItemResponse(CamelModel):
    id: str
    product_id: str
    quantity: int
    price: float


class OrderResponse(CamelModel):
    id: str
    customer_id: str
    vendor_id: str
    courier_id: Optional[str] = None
    status: OrderStatus
    total_price: float
    items: list[OrderItemResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
