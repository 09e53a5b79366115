"""Domain models, rules, errors and ports for orders.

This module contains the dataclasses used as DTOs for orders, the order
status machine, the domain error taxonomy, and protocol definitions (ports)
for the persistence collaborators the order service depends on (cart,
stock ledger and order store). It does not import the ORM.
"""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence


# ---- Enums ----
class OrderStatus(str, Enum):
    """Enumeration of the possible order statuses.

    ``PENDING -> PROCESSING -> SHIPPED -> DELIVERED`` is the happy path;
    ``CANCELLED`` is reachable from PENDING or PROCESSING only. DELIVERED and
    CANCELLED are terminal.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})


# ---- Errors ----
class OrderError(Exception):
    """Base class for order lifecycle failures.

    Attributes:
        code: Stable machine-readable error code returned as ``detail``.
        http_status: Status code the HTTP layer answers with.
    """

    code = "ORDER_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None):
        self.message = message or self.code
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"detail": self.code, "message": self.message}


class EmptyCart(OrderError, ValueError):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Your cart is empty")


class InsufficientStock(OrderError, ValueError):
    """Raised when one or more products cannot cover the requested quantity.

    Attributes:
        products: ``[{"product_id", "name", "requested", "available"}]`` for
            every failing line. ``available`` is None when the shortfall was
            detected by the write-time check, where the live count is not read.
    """

    code = "INSUFFICIENT_STOCK"

    def __init__(self, products: List[dict]):
        self.products = products
        names = ", ".join(p["name"] for p in products)
        super().__init__(f"Insufficient stock for {names}")

    def as_dict(self) -> dict:
        body = super().as_dict()
        body["products"] = [
            {**p, "product_id": str(p["product_id"])} for p in self.products
        ]
        return body


class ProductUnavailable(OrderError, ValueError):
    code = "PRODUCT_UNAVAILABLE"

    def __init__(self, names: List[str]):
        self.names = names
        super().__init__(f"No longer available: {', '.join(names)}")


class InvalidStatusTransition(OrderError, ValueError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: OrderStatus, target: OrderStatus):
        self.status = current
        self.target = target
        super().__init__(
            f"Order is {current.value} and can no longer change status (requested {target.value})"
        )

    def as_dict(self) -> dict:
        body = super().as_dict()
        body["status"] = self.status.value
        return body


class OrderNotCancellable(OrderError, ValueError):
    code = "ORDER_NOT_CANCELLABLE"

    def __init__(self, current: OrderStatus):
        self.status = current
        super().__init__(f"Order cannot be cancelled while {current.value}")

    def as_dict(self) -> dict:
        body = super().as_dict()
        body["status"] = self.status.value
        return body


class OrderAccessDenied(OrderError):
    code = "FORBIDDEN"
    http_status = 403


class OrderNotFound(OrderError):
    code = "NOT_FOUND"
    http_status = 404


class OrderNumberExhausted(OrderError):
    code = "STORE_UNAVAILABLE"
    http_status = 503


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Identity:
    """Caller identity, built by the HTTP layer from the session user."""

    user_id: int
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_access(self, owner_id: int) -> bool:
        return self.is_admin or self.user_id == owner_id


@dataclass(frozen=True)
class OrderItem:
    """A single order line.

    ``unit_price_cents`` is the price at the time of purchase and is never
    recomputed from the live product.
    """

    product_id: uuid.UUID
    quantity: int
    unit_price_cents: int
    product_name: str = ""

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Persistent identifier.
        order_number: Human readable unique number (``ORD-...``).
        user_id: Owner.
        items: Frozen order lines.
        status: Current OrderStatus.
        total_cents: Sum of the item subtotals at creation time.
    """

    id: Optional[uuid.UUID]
    order_number: str
    user_id: int
    items: List[OrderItem] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    total_cents: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---- Rules ----
def compute_total(lines: Iterable) -> int:
    """Sum ``unit_price_cents * quantity`` over cart or order lines."""
    return sum(line.unit_price_cents * line.quantity for line in lines)


def generate_order_number(user_id, now: datetime) -> str:
    """Build a human readable order number.

    The value combines a microsecond UTC timestamp, a user-derived suffix and
    a random tail. Uniqueness is still enforced by the store; callers retry
    with a fresh number on conflict.
    """
    user_part = uuid.uuid5(uuid.NAMESPACE_OID, str(user_id)).hex[:4].upper()
    return f"ORD-{now:%Y%m%d%H%M%S%f}-{user_part}{secrets.token_hex(2).upper()}"


def check_admin_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Validate an admin-driven status change.

    Moves among the non-terminal statuses are permitted in any direction;
    nothing may leave DELIVERED or CANCELLED.

    Raises:
        InvalidStatusTransition: If ``current`` is terminal.
    """
    if current in TERMINAL_STATUSES:
        raise InvalidStatusTransition(current, target)


def check_cancellable(current: OrderStatus) -> None:
    """Raises OrderNotCancellable unless the order is PENDING or PROCESSING."""
    if current not in CANCELLABLE_STATUSES:
        raise OrderNotCancellable(current)


# ---- Ports (DIP) ----
class CartPort(Protocol):
    """Port describing cart access used by checkout."""

    def read_snapshot(self, user_id: int, *, lock: bool = False):
        """Return a ``CartSnapshot`` for the user (created lazily)."""
        raise NotImplementedError()

    def clear(self, cart_id: uuid.UUID) -> int:
        raise NotImplementedError()


class StockLedgerPort(Protocol):
    """Port describing stock mutations.

    Implementations must run inside the caller's transaction and re-check
    stock at write time on the decrement path.
    """

    def decrement(self, lines: Sequence) -> None:
        raise NotImplementedError()

    def increment(self, items: Sequence[OrderItem]) -> None:
        raise NotImplementedError()


class OrderStorePort(Protocol):
    """Port describing order persistence."""

    def create(self, user_id: int, lines: Sequence, total_cents: int) -> Order:
        raise NotImplementedError()

    def get(self, order_id: uuid.UUID, *, for_update: bool = False) -> Order:
        """Return the order or raise OrderNotFound."""
        raise NotImplementedError()

    def set_status(self, order_id: uuid.UUID, status: OrderStatus) -> Order:
        raise NotImplementedError()
