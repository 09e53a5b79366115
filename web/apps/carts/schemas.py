"""Pydantic schemas for the cart API."""

import uuid
from typing import List

from pydantic import BaseModel, Field

from apps.catalog.pricing import format_cents
from .snapshot import CartSnapshot


class AddCartItemDTO(BaseModel):
    """Add ``quantity`` units of a product, merging with an existing line."""

    product_id: uuid.UUID
    quantity: int = Field(gt=0)


class UpdateCartItemDTO(BaseModel):
    """Set the quantity of a cart line; 0 removes the line."""

    product_id: uuid.UUID
    quantity: int = Field(ge=0)


class CartLineReadDTO(BaseModel):
    product_id: str
    name: str
    quantity: int
    price: str
    stock: int
    subtotal: str


class CartReadDTO(BaseModel):
    id: str
    items: List[CartLineReadDTO]
    total: str
    total_cents: int

    @classmethod
    def from_snapshot(cls, snapshot: CartSnapshot) -> "CartReadDTO":
        return cls(
            id=str(snapshot.cart_id),
            items=[
                CartLineReadDTO(
                    product_id=str(line.product_id),
                    name=line.product_name,
                    quantity=line.quantity,
                    price=format_cents(line.unit_price_cents),
                    stock=line.stock,
                    subtotal=format_cents(line.subtotal_cents),
                )
                for line in snapshot.lines
            ],
            total=format_cents(snapshot.total_cents),
            total_cents=snapshot.total_cents,
        )
