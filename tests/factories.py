import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from jose import jwt

from core.config import settings
from core.enums import OrderStatus
from models.order_items import OrderItem
from models.orders import Order

CUSTOMER_ID = "0b6f3c52-0d8e-4a57-9d6c-2d1c8f1b1a01"
OTHER_CUSTOMER_ID = "0b6f3c52-0d8e-4a57-9d6c-2d1c8f1b1a02"
VENDOR_ID = "5a1d9e0c-7c4b-4f0e-8b7a-3e2f1d0c9b01"
OTHER_VENDOR_ID = "5a1d9e0c-7c4b-4f0e-8b7a-3e2f1d0c9b02"
COURIER_ID = "c0de0000-1111-4222-8333-444455556601"
OTHER_COURIER_ID = "c0de0000-1111-4222-8333-444455556602"
PENDING_COURIER_ID = "c0de0000-1111-4222-8333-444455556603"
ADMIN_ID = "ad000000-0000-4000-8000-000000000001"


def make_token(user_id: str, role: str, token_type: str = "access",
               expires_delta: timedelta = timedelta(minutes=15)) -> str:
    payload = {
        "sub": f"{role}@example.com",
        "id": user_id,
        "role": role,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + expires_delta
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(user_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


def order_payload(**overrides) -> dict:
    payload = {
        "vendorId": VENDOR_ID,
        "items": [
            {"productId": "p-burger", "quantity": 2, "price": 10},
            {"productId": "p-fries", "quantity": 1, "price": 5},
        ]
    }
    payload.update(overrides)
    return payload


def insert_order(session, status: OrderStatus = OrderStatus.PENDING_VENDOR, courier_id=None,
                 customer_id: str = CUSTOMER_ID, vendor_id: str = VENDOR_ID) -> Order:
    """Write an order straight to the store in any state, bypassing the service."""
    order = Order(
        id=str(uuid.uuid4()),
        customer_id=customer_id,
        vendor_id=vendor_id,
        courier_id=courier_id,
        status=status.value,
        total_price=Decimal("12.50")
    )
    order.items = [OrderItem(id=str(uuid.uuid4()), product_id="p-1", quantity=1, price=Decimal("12.50"))]
    session.add(order)
    session.commit()
    return order
