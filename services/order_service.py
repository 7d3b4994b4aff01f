import time
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.enums import OrderAction, OrderStatus
from core.exceptions import (DependencyUnavailableError, InvalidActionError, InvalidInputError,
                             InvalidStateError, NotFoundError, PersistenceError)
from models.mixins import generate_uuid
from models.order_items import OrderItem
from models.orders import Order
from schemas.order_schemas import Actor, OrderItemInput
from services import notification_service as order_events
from services.courier_service import CourierAssignmentCoordinator
from services.notification_service import OrderEventEmitter
from services.order_state_machine import Transition, parse_action, transition
from utils.logger import get_logger, log_database_query

logger = get_logger(__name__)

CENT = Decimal("0.01")


class OrderService:
    """
    Orchestrates the order lifecycle.

    Every status change follows the same path: load the order, let the state
    machine decide, then persist with an UPDATE conditioned on the status the
    decision was based on. If another replica changed the order in between,
    the UPDATE matches no row and the caller gets InvalidStateError. Events
    are emitted only after the change is committed.
    """

    def __init__(self, db: Session, coordinator: Optional[CourierAssignmentCoordinator] = None,
                 events: Optional[OrderEventEmitter] = None):
        self.db = db
        self.coordinator = coordinator
        self.events = events

    # ---- creation ---------------------------------------------------------

    @staticmethod
    def _validate_item(index: int, item: OrderItemInput) -> tuple[str, int, Decimal]:
        product_id = (item.product_id or "").strip()
        if not product_id:
            raise InvalidInputError(f"Item {index}: product ID is required",
                                    error_code="INVALID_ITEM_FORMAT")

        quantity = item.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidInputError(f"Item {index}: quantity must be a positive integer",
                                    error_code="INVALID_ITEM_FORMAT")

        try:
            price = Decimal(str(item.price))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidInputError(f"Item {index}: price must be a number",
                                    error_code="INVALID_ITEM_FORMAT")

        if not price.is_finite() or price < 0:
            raise InvalidInputError(f"Item {index}: price must be a non-negative number",
                                    error_code="INVALID_ITEM_FORMAT")

        # Prices are stored with two decimals; anything finer would make the
        # stored items disagree with the stored total.
        if price != price.quantize(CENT):
            raise InvalidInputError(f"Item {index}: price cannot have more than two decimal places",
                                    error_code="INVALID_ITEM_FORMAT")

        return product_id, quantity, price

    def create_order(self, customer_id: str, vendor_id: str, items: list[OrderItemInput]) -> Order:
        """
        Place a new order in PENDING_VENDOR.

        The order row and all of its item rows are written in one
        transaction; on any storage failure nothing is kept.

        Raises:
            InvalidInputError: missing ids, empty item list or a malformed item
            PersistenceError: the transaction could not be committed
        """
        if not customer_id or not vendor_id:
            raise InvalidInputError("Customer ID and vendor ID are required")

        if not items:
            raise InvalidInputError("Items must be a non-empty array")

        validated = [self._validate_item(i, item) for i, item in enumerate(items)]
        total_price = sum((price * quantity for _, quantity, price in validated), Decimal("0"))

        order = Order(
            id=generate_uuid(),
            customer_id=customer_id,
            vendor_id=vendor_id,
            status=OrderStatus.PENDING_VENDOR.value,
            total_price=total_price
        )
        order.items = [
            OrderItem(id=generate_uuid(), product_id=product_id, quantity=quantity, price=price)
            for product_id, quantity, price in validated
        ]

        try:
            self.db.add(order)
            self.db.flush()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Order creation failed: {str(e)}",
                extra={"customer_id": customer_id, "vendor_id": vendor_id,
                       "error_type": type(e).__name__},
                exc_info=True
            )
            raise PersistenceError("Failed to place order", details=str(e))

        logger.info(
            "Order created successfully",
            extra={"order_id": order.id, "customer_id": customer_id, "vendor_id": vendor_id,
                   "item_count": len(validated), "total_price": str(total_price)}
        )
        self._emit(order_events.ORDER_PLACED, order)
        return order

    # ---- reads ------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        try:
            order = self.db.get(Order, order_id)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to load order", details=str(e))

        if order is None:
            raise NotFoundError("Order not found")
        return order

    # ---- transitions ------------------------------------------------------

    def apply_vendor_action(self, order_id: str, action: str, actor: Actor) -> Order:
        requested = parse_action(action)
        if requested not in (OrderAction.APPROVE, OrderAction.REJECT):
            raise InvalidActionError("Action must be 'approve' or 'reject'")

        order = self.get_order(order_id)
        decision = transition(order, requested, actor)
        order = self._persist(order_id, decision, actor)

        event = order_events.ORDER_APPROVED if requested == OrderAction.APPROVE else order_events.ORDER_REJECTED
        logger.info(
            f"Order {decision.to_status.value.lower()}",
            extra={"order_id": order_id, "vendor_id": actor.user_id}
        )
        self._emit(event, order)
        return order

    def assign_courier(self, order_id: str, courier_id: str, actor: Actor) -> Order:
        """
        Bind ``courier_id`` to an APPROVED order and move it to EN_ROUTE.

        The courier's eligibility comes from the courier service and is not
        covered by the order transaction; the conditional update on
        ``status = APPROVED`` is what decides between concurrent assignments.
        """
        if self.coordinator is None:
            raise DependencyUnavailableError("Courier lookup is not configured")

        order = self.get_order(order_id)
        # Fail on state/actor before spending a call to the courier service
        decision = transition(order, OrderAction.ASSIGN, actor, courier_id=courier_id)
        self.coordinator.ensure_eligible(courier_id)

        order = self._persist(order_id, decision, actor)

        logger.info(
            "Courier assigned",
            extra={"order_id": order_id, "courier_id": courier_id, "assigned_by": actor.user_id}
        )
        self._emit(order_events.ORDER_ASSIGNED, order)
        return order

    def mark_delivered(self, order_id: str, actor: Actor) -> Order:
        order = self.get_order(order_id)
        decision = transition(order, OrderAction.DELIVER, actor)
        order = self._persist(order_id, decision, actor)

        logger.info(
            "Order marked as delivered",
            extra={"order_id": order_id, "courier_id": actor.user_id}
        )
        self._emit(order_events.ORDER_DELIVERED, order)
        return order

    # ---- persistence helpers ---------------------------------------------

    def _persist(self, order_id: str, decision: Transition, actor: Actor) -> Order:
        values = {Order.status: decision.to_status.value, Order.updated_at: func.now()}
        criteria = [Order.id == order_id, Order.status == decision.from_status.value]

        if decision.action == OrderAction.ASSIGN:
            values[Order.courier_id] = decision.courier_id
            criteria.append(Order.courier_id.is_(None))
        elif decision.action == OrderAction.DELIVER:
            criteria.append(Order.courier_id == actor.user_id)

        rows = self._conditional_update(criteria, values, order_id, decision)

        order = self.get_order(order_id)
        if rows == 0:
            logger.warning(
                "Conditional update matched no row - order changed concurrently",
                extra={"order_id": order_id, "expected_status": decision.from_status.value,
                       "current_status": order.status, "action": decision.action.value}
            )
            raise InvalidStateError(
                current_state=order.status,
                action=decision.action.value,
                message=f"Order is no longer {decision.from_status.value} (now {order.status})"
            )
        return order

    def _conditional_update(self, criteria, values, order_id: str, decision: Transition) -> int:
        start = time.perf_counter()
        try:
            rows = (
                self.db.query(Order)
                .filter(*criteria)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Order update failed: {str(e)}",
                extra={"order_id": order_id, "action": decision.action.value,
                       "error_type": type(e).__name__},
                exc_info=True
            )
            raise PersistenceError("Failed to update order", details=str(e))

        log_database_query(
            logger, "UPDATE", "orders",
            (time.perf_counter() - start) * 1000,
            rows_affected=rows,
            extra={"order_id": order_id, "expected_status": decision.from_status.value,
                   "new_status": decision.to_status.value}
        )
        return rows

    def _emit(self, event: str, order: Order):
        if self.events is not None:
            self.events.emit(event, order)
