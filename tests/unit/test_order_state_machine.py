from types import SimpleNamespace

import pytest

from core.enums import OrderAction, OrderStatus, Role
from core.exceptions import ForbiddenError, InvalidActionError, InvalidInputError, InvalidStateError
from schemas.order_schemas import Actor
from services.order_state_machine import allowed_actions, is_terminal, transition

VENDOR = Actor(user_id="vendor-1", role=Role.VENDOR)
COURIER = Actor(user_id="courier-1", role=Role.COURIER)
ADMIN = Actor(user_id="admin-1", role=Role.ADMIN)


def make_order(status, courier_id=None):
    return SimpleNamespace(
        id="order-1",
        status=status.value if isinstance(status, OrderStatus) else status,
        vendor_id="vendor-1",
        customer_id="customer-1",
        courier_id=courier_id
    )


def test_vendor_approves_pending_order():
    order = make_order(OrderStatus.PENDING_VENDOR)

    result = transition(order, "approve", VENDOR)

    assert result.from_status == OrderStatus.PENDING_VENDOR
    assert result.to_status == OrderStatus.APPROVED
    # pure: the order itself is untouched
    assert order.status == "PENDING_VENDOR"


def test_vendor_rejects_pending_order():
    result = transition(make_order(OrderStatus.PENDING_VENDOR), OrderAction.REJECT, VENDOR)
    assert result.to_status == OrderStatus.REJECTED


@pytest.mark.parametrize("status", [s for s in OrderStatus if s != OrderStatus.PENDING_VENDOR])
@pytest.mark.parametrize("action", ["approve", "reject"])
def test_vendor_action_outside_pending_is_invalid_state(status, action):
    order = make_order(status)

    with pytest.raises(InvalidStateError) as exc_info:
        transition(order, action, VENDOR)

    assert exc_info.value.current_state == status.value
    assert exc_info.value.action == action
    assert exc_info.value.error_code == "INVALID_STATE"
    assert order.status == status.value


def test_other_vendor_cannot_approve():
    other_vendor = Actor(user_id="vendor-2", role=Role.VENDOR)

    with pytest.raises(ForbiddenError):
        transition(make_order(OrderStatus.PENDING_VENDOR), "approve", other_vendor)


def test_non_vendor_with_matching_id_cannot_approve():
    impostor = Actor(user_id="vendor-1", role=Role.CUSTOMER)

    with pytest.raises(ForbiddenError):
        transition(make_order(OrderStatus.PENDING_VENDOR), "approve", impostor)


def test_state_is_checked_before_actor():
    other_vendor = Actor(user_id="vendor-2", role=Role.VENDOR)

    with pytest.raises(InvalidStateError):
        transition(make_order(OrderStatus.DELIVERED), "approve", other_vendor)


def test_courier_assigns_self_to_approved_order():
    result = transition(make_order(OrderStatus.APPROVED), "assign", COURIER, courier_id="courier-1")

    assert result.to_status == OrderStatus.EN_ROUTE
    assert result.courier_id == "courier-1"


def test_courier_cannot_assign_someone_else():
    with pytest.raises(ForbiddenError):
        transition(make_order(OrderStatus.APPROVED), "assign", COURIER, courier_id="courier-2")


def test_admin_can_assign_any_courier():
    result = transition(make_order(OrderStatus.APPROVED), "assign", ADMIN, courier_id="courier-9")
    assert result.courier_id == "courier-9"


def test_assign_requires_courier_id():
    with pytest.raises(InvalidInputError):
        transition(make_order(OrderStatus.APPROVED), "assign", ADMIN)


@pytest.mark.parametrize("status", [
    OrderStatus.PENDING_VENDOR,
    OrderStatus.REJECTED,
    OrderStatus.AWAITING_COURIER,
    OrderStatus.EN_ROUTE,
    OrderStatus.DELIVERED,
])
def test_assign_only_from_approved(status):
    with pytest.raises(InvalidStateError):
        transition(make_order(status, courier_id="courier-1"), "assign", COURIER, courier_id="courier-1")


def test_assigned_courier_delivers():
    result = transition(make_order(OrderStatus.EN_ROUTE, courier_id="courier-1"), "deliver", COURIER)
    assert result.to_status == OrderStatus.DELIVERED


def test_other_courier_cannot_deliver():
    other = Actor(user_id="courier-2", role=Role.COURIER)

    with pytest.raises(ForbiddenError) as exc_info:
        transition(make_order(OrderStatus.EN_ROUTE, courier_id="courier-1"), "deliver", other)

    assert exc_info.value.error_code == "UNAUTHORIZED"
    assert exc_info.value.status_code == 403


def test_deliver_before_en_route_is_invalid_state():
    with pytest.raises(InvalidStateError):
        transition(make_order(OrderStatus.APPROVED), "deliver", COURIER)


def test_unknown_action():
    with pytest.raises(InvalidActionError):
        transition(make_order(OrderStatus.PENDING_VENDOR), "cancel", VENDOR)


def test_allowed_actions_and_terminal_states():
    assert set(allowed_actions(OrderStatus.PENDING_VENDOR)) == {OrderAction.APPROVE, OrderAction.REJECT}
    assert allowed_actions("APPROVED") == [OrderAction.ASSIGN]
    assert allowed_actions(OrderStatus.AWAITING_COURIER) == []
    assert is_terminal("DELIVERED")
    assert is_terminal(OrderStatus.REJECTED)
    assert not is_terminal(OrderStatus.EN_ROUTE)
