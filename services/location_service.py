import asyncio
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from core.exceptions import InvalidInputError, PersistenceError
from models.locations import Location
from models.mixins import generate_uuid
from schemas.location_schemas import LocationResponse, LocationUpdateEvent
from utils.logger import get_logger

logger = get_logger(__name__)

Send = Callable[[dict[str, Any]], Awaitable[None]]


def channel_name(order_id: str) -> str:
    return f"order-{order_id}"


def _is_number(value) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def validate_position(latitude, longitude):
    if latitude is None or longitude is None:
        raise InvalidInputError("Missing required fields: latitude, longitude")
    if not _is_number(latitude) or not _is_number(longitude):
        raise InvalidInputError("Latitude and longitude must be numbers")
    if math.isnan(float(latitude)) or math.isnan(float(longitude)):
        raise InvalidInputError("Invalid latitude or longitude values")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise InvalidInputError("Invalid latitude or longitude values")


class LocationRelay:
    """
    Fan-out of courier positions to everyone watching an order.

    Subscribers join the ``order-{orderId}`` channel with an async ``send``
    callable (a WebSocket in production). Publishing to one channel is
    serialized by a per-channel lock, so updates from a single publisher reach
    subscribers in the order they were published. Different channels do not
    block each other and carry no relative ordering.

    The relay keeps only in-process state; with several replicas each one
    fans out the updates it receives itself.
    """

    def __init__(self, persistence_enabled: bool = True, history_limit: int = 50):
        self.persistence_enabled = persistence_enabled
        self.history_limit = history_limit
        self._channels: dict[str, dict[str, Send]] = {}
        # A lock exists only while some publish holds or waits on it
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def join(self, order_id: str, subscriber_id: str, send: Send):
        if not order_id:
            raise InvalidInputError("Invalid orderId")

        room = channel_name(order_id)
        self._channels.setdefault(room, {})[subscriber_id] = send
        logger.debug(f"Subscriber {subscriber_id} joined room: {room}")

    def leave(self, order_id: str, subscriber_id: str):
        if not order_id:
            raise InvalidInputError("Invalid orderId")

        room = channel_name(order_id)
        members = self._channels.get(room)
        if members is None:
            return
        members.pop(subscriber_id, None)
        if not members:
            self._channels.pop(room, None)
        logger.debug(f"Subscriber {subscriber_id} left room: {room}")

    def leave_all(self, subscriber_id: str) -> list[str]:
        """Remove a subscriber from every channel it joined (used on disconnect)."""
        left = []
        for room, members in list(self._channels.items()):
            if subscriber_id in members:
                order_id = room[len("order-"):]
                self.leave(order_id, subscriber_id)
                left.append(order_id)
        return left

    def subscribers(self, order_id: str) -> list[str]:
        return list(self._channels.get(channel_name(order_id), {}))

    @asynccontextmanager
    async def _channel_lock(self, room: str):
        lock = self._locks.setdefault(room, asyncio.Lock())
        self._lock_users[room] = self._lock_users.get(room, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[room] -= 1
            if not self._lock_users[room]:
                del self._lock_users[room]
                self._locks.pop(room, None)

    def _save(self, db: Session, record: Location):
        try:
            db.add(record)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Error saving location: {str(e)}",
                extra={"order_id": record.order_id, "user_id": record.user_id},
                exc_info=True
            )
            raise PersistenceError("Failed to save location", details=str(e))

    async def publish(self, order_id: str, latitude, longitude, user_id: str,
                      db: Optional[Session] = None) -> LocationResponse:
        """
        Validate a position, append it to history and broadcast it.

        Args:
            order_id: Order whose channel receives the update
            latitude: -90..90
            longitude: -180..180
            user_id: Publishing courier
            db: Session for the append-only history; skipped when None or
                when persistence is disabled

        Raises:
            InvalidInputError: missing ids or out-of-range coordinates
            PersistenceError: history row could not be written
        """
        if not order_id or not user_id:
            raise InvalidInputError("Missing required fields: userId, orderId")
        validate_position(latitude, longitude)

        room = channel_name(order_id)
        record_id = None

        # Held across save and broadcast so one channel sees updates in publish order
        async with self._channel_lock(room):
            timestamp = datetime.now(timezone.utc)

            if self.persistence_enabled and db is not None:
                record_id = generate_uuid()
                record = Location(
                    id=record_id,
                    user_id=user_id,
                    order_id=order_id,
                    latitude=Decimal(str(latitude)),
                    longitude=Decimal(str(longitude)),
                    timestamp=timestamp
                )
                # Session work stays off the event loop
                await run_in_threadpool(self._save, db, record)

            event = LocationUpdateEvent(
                order_id=order_id,
                latitude=float(latitude),
                longitude=float(longitude),
                user_id=user_id,
                timestamp=timestamp
            )
            await self._broadcast(order_id, event)

        return LocationResponse(id=record_id, **event.model_dump())

    async def _broadcast(self, order_id: str, event: LocationUpdateEvent) -> int:
        """Send to every current subscriber. Caller holds the channel lock."""
        room = channel_name(order_id)
        members = list(self._channels.get(room, {}).items())
        if not members:
            return 0

        message = {"event": "locationUpdate", "data": event.model_dump(by_alias=True, mode="json")}
        delivered = 0
        for subscriber_id, send in members:
            try:
                await send(message)
                delivered += 1
            except Exception as e:
                # One dead socket must not stop the rest of the room
                logger.warning(
                    f"Dropping subscriber {subscriber_id} from {room}: {str(e)}",
                    extra={"order_id": order_id, "error_type": type(e).__name__}
                )
                self.leave(order_id, subscriber_id)

        logger.debug(
            f"Emitted location update to {room}",
            extra={"order_id": order_id, "user_id": event.user_id, "delivered": delivered}
        )
        return delivered

    def recent_locations(self, db: Session, user_id: str, limit: Optional[int] = None) -> list[Location]:
        if not user_id:
            raise InvalidInputError("Missing required field: userId")

        cap = min(limit or self.history_limit, self.history_limit)
        try:
            return (
                db.query(Location)
                .filter(Location.user_id == user_id)
                .order_by(Location.timestamp.desc())
                .limit(cap)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching recent locations: {str(e)}", extra={"user_id": user_id})
            raise PersistenceError("Failed to fetch recent locations", details=str(e))
