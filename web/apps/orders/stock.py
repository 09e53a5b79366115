"""Stock validation and the stock ledger.

``validate_stock`` is the advisory, read-time check used for a fast
rejection. ``StockLedger`` performs the mutations; on the decrement path every
write is a conditional ``UPDATE ... WHERE stock >= quantity`` so the check and
the write are the same statement and a concurrent checkout can never push
stock below zero. Ledger methods must be called inside ``transaction.atomic``:
raising ``InsufficientStock`` part-way rolls back the earlier decrements.
"""

import logging
from typing import Sequence

from django.db.models import F

from apps.catalog.models import Product
from .domain import InsufficientStock, OrderItem, ProductUnavailable

logger = logging.getLogger(__name__)


def validate_stock(lines: Sequence) -> None:
    """Check every cart line against the stock read with it.

    Args:
        lines: ``CartLine`` objects from a cart snapshot.

    Raises:
        ProductUnavailable: If any product has been deactivated.
        InsufficientStock: Naming every product whose stock is below the
            requested quantity.
    """
    inactive = [line.product_name for line in lines if not line.is_active]
    if inactive:
        raise ProductUnavailable(inactive)

    short = [
        {
            "product_id": line.product_id,
            "name": line.product_name,
            "requested": line.quantity,
            "available": line.stock,
        }
        for line in lines
        if line.stock < line.quantity
    ]
    if short:
        raise InsufficientStock(short)


class StockLedger:
    """ORM-backed implementation of ``StockLedgerPort``."""

    def decrement(self, lines: Sequence) -> None:
        """Take ``quantity`` units of each line's product out of stock.

        Lines are processed in product id order to keep lock acquisition
        consistent across transactions.

        Raises:
            InsufficientStock: On the first product whose stock no longer
                covers the quantity at write time.
        """
        for line in sorted(lines, key=lambda line: line.product_id):
            updated = Product.objects.filter(pk=line.product_id, stock__gte=line.quantity).update(
                stock=F("stock") - line.quantity
            )
            if updated != 1:
                logger.warning(
                    "stock write-time check failed",
                    extra={"product_id": str(line.product_id), "requested": line.quantity},
                )
                raise InsufficientStock(
                    [
                        {
                            "product_id": line.product_id,
                            "name": getattr(line, "product_name", "") or str(line.product_id),
                            "requested": line.quantity,
                            "available": None,
                        }
                    ]
                )

    def increment(self, items: Sequence[OrderItem]) -> None:
        """Return ``quantity`` units of each item's product to stock."""
        for item in sorted(items, key=lambda item: item.product_id):
            Product.objects.filter(pk=item.product_id).update(stock=F("stock") + item.quantity)
