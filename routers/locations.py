import json
import uuid

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette import status

from core.exceptions import InvalidInputError
from middleware.rate_limiter import limiter
from schemas.location_schemas import LocationResponse, PublishLocationRequest, SubscriptionMessage
from services.location_service import LocationRelay
from utils.deps import (actor_dependency, db_dependency, dispatcher_dependency,
                        location_relay_dependency)
from utils.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(
    prefix="/locations",
    tags=["locations"]
)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=LocationResponse)
@limiter.limit("120/minute")
async def post_location(request: Request, body: PublishLocationRequest, actor: dispatcher_dependency,
                        relay: location_relay_dependency, db: db_dependency):
    """
    Record the caller's position for an order and push it to everyone
    watching that order.
    """
    return await relay.publish(body.order_id, body.latitude, body.longitude, actor.user_id, db=db)


@router.patch("", status_code=status.HTTP_200_OK, response_model=LocationResponse)
@limiter.limit("120/minute")
async def update_location(request: Request, body: PublishLocationRequest, actor: dispatcher_dependency,
                          relay: location_relay_dependency, db: db_dependency):
    """
    Real-time position update. Same effect as ``POST /locations``; kept for
    tracking clients that send their periodic updates as PATCH.
    """
    return await relay.publish(body.order_id, body.latitude, body.longitude, actor.user_id, db=db)


@router.get("/{user_id}", status_code=status.HTTP_200_OK, response_model=list[LocationResponse])
def fetch_locations(user_id: str, actor: actor_dependency, relay: location_relay_dependency,
                    db: db_dependency):
    locations = relay.recent_locations(db, user_id)
    logger.debug(
        "Locations retrieved",
        extra={"user_id": user_id, "count": len(locations), "requested_by": actor.user_id}
    )
    return [LocationResponse.model_validate(location) for location in locations]


async def _handle_message(relay: LocationRelay, websocket: WebSocket, subscriber_id: str, raw: str):
    try:
        message = SubscriptionMessage.model_validate(json.loads(raw))
    except (ValueError, ValidationError):
        raise InvalidInputError("Messages must be JSON objects with an action")

    if message.action == "join":
        relay.join(message.order_id, subscriber_id, websocket.send_json)
        await websocket.send_json({"event": "joined", "orderId": message.order_id})
    elif message.action == "leave":
        relay.leave(message.order_id, subscriber_id)
        await websocket.send_json({"event": "left", "orderId": message.order_id})
    else:
        raise InvalidInputError(f"Unknown action: {message.action}")


@router.websocket("/ws")
async def location_socket(websocket: WebSocket):
    """
    Real-time channel. Clients send ``{"action": "join"|"leave", "orderId": ...}``
    and receive ``{"event": "locationUpdate", "data": {...}}`` for every
    position published on the orders they joined.
    """
    relay: LocationRelay = websocket.app.state.location_relay
    subscriber_id = str(uuid.uuid4())

    await websocket.accept()
    logger.info(f"Client connected: {subscriber_id}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                await _handle_message(relay, websocket, subscriber_id, raw)
            except InvalidInputError as e:
                logger.warning(f"Invalid socket message from {subscriber_id}: {e.message}")
                await websocket.send_json({"event": "error", "message": e.message})
    except WebSocketDisconnect:
        logger.info(f"Client disconnected: {subscriber_id}")
    finally:
        relay.leave_all(subscriber_id)
