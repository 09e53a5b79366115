"""Service provider helpers for wiring OrderService with its ports.

Views obtain the service through ``get_order_service`` so tests can swap
a collaborator (for example a failing stock ledger) by monkeypatching this
function instead of the view code.
"""

from .adapters import CartAdapter
from .repository import OrderRepository
from .service import OrderService
from .stock import StockLedger


def get_order_service() -> OrderService:
    """Return an OrderService wired with the ORM-backed adapters."""
    return OrderService(
        carts=CartAdapter(),
        stock=StockLedger(),
        orders=OrderRepository(),
    )
