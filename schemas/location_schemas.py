from datetime import datetime
from typing import Optional

from schemas.base import CamelModel


class PublishLocationRequest(CamelModel):
    order_id: str
    # Range checks happen in LocationRelay.publish so every caller gets the same INVALID_INPUT
    latitude: float
    longitude: float


class LocationResponse(CamelModel):
    id: Optional[str] = None
    user_id: str
    order_id: str
    latitude: float
    longitude: float
    timestamp: datetime


class LocationUpdateEvent(CamelModel):
    order_id: str
    latitude: float
    longitude: float
    user_id: str
    timestamp: datetime


class SubscriptionMessage(CamelModel):
    action: str
    order_id: Optional[str] = None
