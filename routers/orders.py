from fastapi import APIRouter, Request
from starlette import status

from core.config import settings
from core.enums import Role
from core.exceptions import ForbiddenError
from middleware.rate_limiter import limiter
from schemas.order_schemas import (AssignCourierRequest, CreateOrderRequest, OrderResponse,
                                   VendorActionRequest)
from utils.deps import (actor_dependency, courier_dependency, customer_dependency,
                        dispatcher_dependency, order_service_dependency, vendor_dependency)
from utils.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(
    prefix="/orders",
    tags=["orders"]
)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=OrderResponse)
@limiter.limit(settings.ORDER_RATE_LIMIT)
def place_order(request: Request, body: CreateOrderRequest, actor: customer_dependency,
                orders: order_service_dependency):
    """
    Place an order with a vendor. Customers order for themselves; admins may
    place an order on a customer's behalf by passing ``customerId``.
    """
    customer_id = body.customer_id or actor.user_id
    if actor.role == Role.CUSTOMER and customer_id != actor.user_id:
        raise ForbiddenError("Customers can only place orders for themselves")

    order = orders.create_order(customer_id, body.vendor_id, body.items)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}", status_code=status.HTTP_200_OK, response_model=OrderResponse)
def get_order(order_id: str, actor: actor_dependency, orders: order_service_dependency):
    order = orders.get_order(order_id)
    logger.debug("Order retrieved", extra={"order_id": order_id, "user_id": actor.user_id})
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/action", status_code=status.HTTP_200_OK, response_model=OrderResponse)
@limiter.limit(settings.ORDER_RATE_LIMIT)
def vendor_action(request: Request, order_id: str, body: VendorActionRequest,
                  actor: vendor_dependency, orders: order_service_dependency):
    order = orders.apply_vendor_action(order_id, body.action, actor)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/assign", status_code=status.HTTP_200_OK, response_model=OrderResponse)
@limiter.limit(settings.ORDER_RATE_LIMIT)
def assign_courier(request: Request, order_id: str, body: AssignCourierRequest,
                   actor: dispatcher_dependency, orders: order_service_dependency):
    order = orders.assign_courier(order_id, body.courier_id, actor)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/delivered", status_code=status.HTTP_200_OK, response_model=OrderResponse)
@limiter.limit(settings.ORDER_RATE_LIMIT)
def mark_delivered(request: Request, order_id: str, actor: courier_dependency,
                   orders: order_service_dependency):
    order = orders.mark_delivered(order_id, actor)
    return OrderResponse.model_validate(order)
