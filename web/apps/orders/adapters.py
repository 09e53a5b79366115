"""ORM-backed adapters for the orders domain ports.

``CartAdapter`` implements ``CartPort`` on top of the carts app. The stock
ledger (``stock.StockLedger``) and the order store
(``repository.OrderRepository``) live in their own modules.
"""

import uuid

from apps.carts.snapshot import CartSnapshot, clear_cart, read_cart_snapshot
from .domain import CartPort


class CartAdapter(CartPort):
    """Reads and clears carts through ``apps.carts.snapshot``."""

    def read_snapshot(self, user_id: int, *, lock: bool = False) -> CartSnapshot:
        return read_cart_snapshot(user_id, lock=lock)

    def clear(self, cart_id: uuid.UUID) -> int:
        return clear_cart(cart_id)
