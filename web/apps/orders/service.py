"""Order lifecycle service.

``OrderService`` turns a cart into an order, cancels orders with stock
restoration, and applies admin status changes. Every mutating operation runs
in one ``transaction.atomic(durable=True)`` block: either all of its writes
commit or none do, so a failed call can be retried as a whole.
"""

import logging
import uuid

from django.db import transaction

from .domain import (
    CartPort,
    EmptyCart,
    Identity,
    Order,
    OrderAccessDenied,
    OrderNotFound,
    OrderStatus,
    OrderStorePort,
    StockLedgerPort,
    check_admin_transition,
    check_cancellable,
    compute_total,
)
from .stock import validate_stock

logger = logging.getLogger(__name__)


class OrderService:
    """Domain service orchestrating the order lifecycle over its ports."""

    def __init__(self, carts: CartPort, stock: StockLedgerPort, orders: OrderStorePort):
        self.carts = carts
        self.stock = stock
        self.orders = orders

    def place_order(self, identity: Identity) -> Order:
        """Create an order from the caller's cart.

        Steps: an unlocked advisory read for a fast rejection, then inside a
        single transaction: lock and re-read the cart, validate, persist the
        order with frozen prices, decrement stock (re-checked at write time)
        and clear the cart.

        Args:
            identity: Caller; the order belongs to ``identity.user_id``.

        Returns:
            The created PENDING ``Order``.

        Raises:
            EmptyCart: The cart has no items.
            ProductUnavailable: A product was deactivated.
            InsufficientStock: Stock does not cover one or more lines.
            OrderNumberExhausted: No unique order number could be allocated.
        """
        snapshot = self.carts.read_snapshot(identity.user_id)
        if snapshot.is_empty:
            raise EmptyCart()
        validate_stock(snapshot.lines)

        with transaction.atomic(durable=True):
            snapshot = self.carts.read_snapshot(identity.user_id, lock=True)
            if snapshot.is_empty:
                raise EmptyCart()
            validate_stock(snapshot.lines)

            total = compute_total(snapshot.lines)
            order = self.orders.create(identity.user_id, snapshot.lines, total)
            self.stock.decrement(snapshot.lines)
            self.carts.clear(snapshot.cart_id)

        logger.info(
            "order placed",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "user_id": identity.user_id,
                "total_cents": order.total_cents,
            },
        )
        return order

    def get_order(self, identity: Identity, order_id: uuid.UUID) -> Order:
        """Return an order visible to the caller.

        Orders of other users are reported as not found.
        """
        order = self.orders.get(order_id)
        if not identity.can_access(order.user_id):
            raise OrderNotFound("Order not found")
        return order

    def cancel_order(self, identity: Identity, order_id: uuid.UUID) -> Order:
        """Cancel a PENDING or PROCESSING order and restore its stock.

        The order row is locked for the duration of the transaction, so two
        concurrent cancellations cannot both restore stock.

        Raises:
            OrderNotFound: No such order.
            OrderAccessDenied: Caller is neither the owner nor an admin.
            OrderNotCancellable: Current status is SHIPPED, DELIVERED or
                CANCELLED.
        """
        with transaction.atomic(durable=True):
            order = self._cancel_locked(identity, order_id)

        logger.info(
            "order cancelled",
            extra={"order_id": str(order.id), "user_id": identity.user_id, "by_admin": identity.is_admin},
        )
        return order

    def update_status(self, identity: Identity, order_id: uuid.UUID, target: OrderStatus) -> Order:
        """Apply an admin status change.

        A target of CANCELLED goes through the cancellation rules so stock is
        restored.

        Raises:
            OrderAccessDenied: Caller is not an admin.
            OrderNotFound: No such order.
            InvalidStatusTransition: The order is DELIVERED or CANCELLED.
            OrderNotCancellable: CANCELLED requested for a SHIPPED order.
        """
        if not identity.is_admin:
            raise OrderAccessDenied("Only administrators can change order status")

        with transaction.atomic(durable=True):
            current = self.orders.get(order_id, for_update=True)
            check_admin_transition(current.status, target)
            if target == OrderStatus.CANCELLED:
                order = self._cancel_locked(identity, order_id)
            else:
                order = self.orders.set_status(order_id, target)

        logger.info(
            "order status changed",
            extra={"order_id": str(order_id), "from_status": current.status.value, "to_status": target.value},
        )
        return order

    def _cancel_locked(self, identity: Identity, order_id: uuid.UUID) -> Order:
        order = self.orders.get(order_id, for_update=True)
        if not identity.can_access(order.user_id):
            raise OrderAccessDenied("You can only cancel your own orders")
        check_cancellable(order.status)
        self.stock.increment(order.items)
        return self.orders.set_status(order_id, OrderStatus.CANCELLED)
