"""Pydantic schemas for orders.

This module exposes the request validation schema for admin status updates
and the read schemas used to render orders. Money leaves the service as
integer cents and is rendered here as two-decimal strings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from apps.catalog.pricing import format_cents
from .domain import Order, OrderStatus


class UpdateOrderStatusDTO(BaseModel):
    """Schema for an admin status update.

    Attributes:
        status: Target status, one of the five OrderStatus values. Normalized
            to uppercase.
    """

    status: OrderStatus

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return v.upper() if isinstance(v, str) else v


class OrderItemReadDTO(BaseModel):
    product_id: str
    name: str
    quantity: int
    price: str
    price_cents: int
    subtotal: str


class OrderReadDTO(BaseModel):
    id: str
    order_number: str
    user_id: int
    status: OrderStatus
    total: str
    total_cents: int
    items: List[OrderItemReadDTO]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status,
            total=format_cents(order.total_cents),
            total_cents=order.total_cents,
            items=[
                OrderItemReadDTO(
                    product_id=str(it.product_id),
                    name=it.product_name,
                    quantity=it.quantity,
                    price=format_cents(it.unit_price_cents),
                    price_cents=it.unit_price_cents,
                    subtotal=format_cents(it.subtotal_cents),
                )
                for it in order.items
            ],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
