"""Money helpers.

Amounts are integer minor units (cents) everywhere inside the project;
decimal strings only appear at the HTTP boundary.
"""

from decimal import Decimal

CENT = Decimal("0.01")


def format_cents(cents: int) -> str:
    """Render cents as a two-decimal string, e.g. ``4500 -> "45.00"``."""
    return str((Decimal(cents) / 100).quantize(CENT))
