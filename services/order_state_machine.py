"""
Order lifecycle state machine.

    PENDING_VENDOR --approve--> APPROVED --assign--> EN_ROUTE --deliver--> DELIVERED
    PENDING_VENDOR --reject---> REJECTED

REJECTED and DELIVERED are terminal. AWAITING_COURIER exists in the order
store's status enum but no transition enters or leaves it.

``transition`` is pure: it reads the order's status/vendor_id/courier_id,
decides, and returns the outcome. It never touches the database, so the
caller is responsible for persisting the result with a conditional update.
"""

from typing import NamedTuple, Optional, Union

from core.enums import OrderAction, OrderStatus, Role
from core.exceptions import (ForbiddenError, InvalidActionError, InvalidInputError,
                             InvalidStateError)
from schemas.order_schemas import Actor


# (current status, action) -> next status
TRANSITIONS: dict[tuple[OrderStatus, OrderAction], OrderStatus] = {
    (OrderStatus.PENDING_VENDOR, OrderAction.APPROVE): OrderStatus.APPROVED,
    (OrderStatus.PENDING_VENDOR, OrderAction.REJECT): OrderStatus.REJECTED,
    (OrderStatus.APPROVED, OrderAction.ASSIGN): OrderStatus.EN_ROUTE,
    (OrderStatus.EN_ROUTE, OrderAction.DELIVER): OrderStatus.DELIVERED,
}

TERMINAL_STATES = frozenset({OrderStatus.REJECTED, OrderStatus.DELIVERED})


class Transition(NamedTuple):
    action: OrderAction
    from_status: OrderStatus
    to_status: OrderStatus
    courier_id: Optional[str] = None


def parse_action(action: Union[str, OrderAction]) -> OrderAction:
    try:
        return OrderAction(action)
    except ValueError:
        raise InvalidActionError(f"Unknown order action: {action!r}")


def allowed_actions(status: Union[str, OrderStatus]) -> list[OrderAction]:
    current = OrderStatus(status)
    return [action for (state, action) in TRANSITIONS if state == current]


def is_terminal(status: Union[str, OrderStatus]) -> bool:
    return OrderStatus(status) in TERMINAL_STATES


def _authorize(order, action: OrderAction, actor: Actor, courier_id: Optional[str]):
    if action in (OrderAction.APPROVE, OrderAction.REJECT):
        if actor.role != Role.VENDOR or actor.user_id != order.vendor_id:
            raise ForbiddenError("Only the vendor this order was placed with can approve or reject it")

    elif action == OrderAction.ASSIGN:
        if actor.role == Role.ADMIN:
            return
        if actor.role != Role.COURIER or actor.user_id != courier_id:
            raise ForbiddenError("Couriers can only assign orders to themselves")

    elif action == OrderAction.DELIVER:
        if order.courier_id is None or actor.user_id != order.courier_id:
            raise ForbiddenError("Courier not assigned to this order")


def transition(order, action: Union[str, OrderAction], actor: Actor,
               courier_id: Optional[str] = None) -> Transition:
    """
    Decide the outcome of ``action`` on ``order`` for ``actor``.

    Checks run in a fixed order: the action must be known
    (InvalidActionError), permitted from the current status
    (InvalidStateError), and the actor must be entitled to it
    (ForbiddenError). ``assign`` additionally needs a ``courier_id``;
    courier eligibility is left to the caller.

    Returns:
        Transition describing the status change. ``order`` is left untouched.
    """
    requested = parse_action(action)
    current = OrderStatus(order.status)

    next_status = TRANSITIONS.get((current, requested))
    if next_status is None:
        raise InvalidStateError(current_state=current.value, action=requested.value)

    if requested == OrderAction.ASSIGN and not courier_id:
        raise InvalidInputError("Courier ID is required")

    _authorize(order, requested, actor, courier_id)

    return Transition(
        action=requested,
        from_status=current,
        to_status=next_status,
        courier_id=courier_id if requested == OrderAction.ASSIGN else order.courier_id
    )
