"""Repository layer for persisting orders.

This module contains a small repository abstraction used by the order
service. It keeps a thin interface returning domain ``Order`` objects so the
service is not coupled to Django ORM details.
"""

import logging
import uuid
from typing import List, Sequence, Tuple

from django.conf import settings
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.db.models import Prefetch
from django.utils import timezone

from .domain import (
    Identity,
    Order,
    OrderItem,
    OrderNotFound,
    OrderNumberExhausted,
    OrderStatus,
    generate_order_number,
)
from .models import OrderItemModel, OrderModel

logger = logging.getLogger(__name__)


def _items_prefetch() -> Prefetch:
    # Items with their product names, one query per batch of orders
    return Prefetch("items", queryset=OrderItemModel.objects.select_related("product").order_by("product_id"))


def _to_domain(obj: OrderModel) -> Order:
    items = [
        OrderItem(
            product_id=it.product_id,
            quantity=it.quantity,
            unit_price_cents=it.unit_price_cents,
            product_name=it.product.name,
        )
        for it in obj.items.all()
    ]
    return Order(
        id=obj.id,
        order_number=obj.order_number,
        user_id=obj.user_id,
        items=items,
        status=OrderStatus(obj.status),
        total_cents=obj.total_cents,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


class OrderRepository:
    """Repository that persists Order domain objects using Django ORM."""

    def create(self, user_id: int, lines: Sequence, total_cents: int) -> Order:
        """Persist a new PENDING order and one item per cart line.

        The order number is guarded by a unique constraint. A collision rolls
        back only the nested savepoint and the insert is retried with a fresh
        number.

        Args:
            user_id: Owner of the order.
            lines: Cart lines; their ``unit_price_cents`` is frozen on the
                order items.
            total_cents: Precomputed order total.

        Returns:
            The persisted domain ``Order``.

        Raises:
            OrderNumberExhausted: When every attempt collided.
        """
        attempts = getattr(settings, "ORDER_NUMBER_MAX_ATTEMPTS", 5)
        for attempt in range(1, attempts + 1):
            number = generate_order_number(user_id, timezone.now())
            try:
                # Nested savepoint: a duplicate number only rolls back this insert.
                with transaction.atomic():
                    obj = OrderModel.objects.create(
                        order_number=number,
                        user_id=user_id,
                        status=OrderStatus.PENDING.value,
                        total_cents=total_cents,
                    )
            except IntegrityError:
                logger.warning("order number collision", extra={"order_number": number, "attempt": attempt})
                continue

            OrderItemModel.objects.bulk_create(
                [
                    OrderItemModel(
                        order=obj,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                    )
                    for line in lines
                ]
            )
            return self.get(obj.pk)

        raise OrderNumberExhausted("Could not allocate a unique order number")

    def get(self, order_id: uuid.UUID, *, for_update: bool = False) -> Order:
        qs = OrderModel.objects.prefetch_related(_items_prefetch())
        if for_update:
            qs = qs.select_for_update()
        try:
            obj = qs.get(pk=order_id)
        except OrderModel.DoesNotExist:
            raise OrderNotFound("Order not found")
        return _to_domain(obj)

    def set_status(self, order_id: uuid.UUID, status: OrderStatus) -> Order:
        OrderModel.objects.filter(pk=order_id).update(status=status.value, updated_at=timezone.now())
        return self.get(order_id)

    def page(self, identity: Identity, page: int = 1, page_size: int = 20) -> Tuple[int, int, List[Order]]:
        """Return ``(count, page_number, orders)`` visible to the caller.

        Admins see every order; other callers only their own.
        """
        qs = OrderModel.objects.prefetch_related(_items_prefetch()).order_by("-created_at")
        if not identity.is_admin:
            qs = qs.filter(user_id=identity.user_id)
        p = Paginator(qs, page_size)
        page_obj = p.get_page(page)
        return p.count, page_obj.number, [_to_domain(o) for o in page_obj.object_list]
