from typing import Annotated, Optional

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core.enums import Role
from core.exceptions import ForbiddenError, UnauthorizedError
from middleware.request_id import get_request_id
from schemas.order_schemas import Actor
from services.courier_service import CourierAssignmentCoordinator
from services.location_service import LocationRelay
from services.notification_service import NotificationDispatcher, OrderEventEmitter
from services.order_service import OrderService
from utils.logger import get_logger
from utils.tokens import decode_actor

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_current_actor(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]
) -> Actor:
    # Cached for this request only; the rate limiter key reads it too
    cached = getattr(request.state, "actor", None)
    if cached is not None:
        return cached

    if credentials is None:
        raise UnauthorizedError("Authorization token missing or malformed", error_code="INVALID_TOKEN")

    actor = decode_actor(credentials.credentials)
    request.state.actor = actor
    return actor

actor_dependency = Annotated[Actor, Depends(get_current_actor)]


def require_roles(*roles: Role):
    allowed = ", ".join(role.value for role in roles)

    def checker(actor: actor_dependency) -> Actor:
        if actor.role not in roles:
            logger.warning(
                "Role not authorized",
                extra={"user_id": actor.user_id, "role": actor.role.value, "allowed": allowed}
            )
            raise ForbiddenError(f"Forbidden: Requires one of roles {allowed}", error_code="FORBIDDEN")
        return actor

    return checker

customer_dependency = Annotated[Actor, Depends(require_roles(Role.CUSTOMER, Role.ADMIN))]
vendor_dependency = Annotated[Actor, Depends(require_roles(Role.VENDOR))]
courier_dependency = Annotated[Actor, Depends(require_roles(Role.COURIER))]
dispatcher_dependency = Annotated[Actor, Depends(require_roles(Role.COURIER, Role.ADMIN))]


def get_courier_coordinator(request: Request) -> CourierAssignmentCoordinator:
    return request.app.state.courier_coordinator


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notification_dispatcher


def get_location_relay(request: Request) -> LocationRelay:
    return request.app.state.location_relay

location_relay_dependency = Annotated[LocationRelay, Depends(get_location_relay)]


def get_order_service(
    request: Request,
    db: db_dependency,
    bg: BackgroundTasks,
    coordinator: Annotated[CourierAssignmentCoordinator, Depends(get_courier_coordinator)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]
) -> OrderService:
    events = OrderEventEmitter(dispatcher, bg=bg, correlation_id=get_request_id(request))
    return OrderService(db, coordinator=coordinator, events=events)

order_service_dependency = Annotated[OrderService, Depends(get_order_service)]
