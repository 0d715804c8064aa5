"""Order totals and per-tax breakdown.

Every enabled tax line is charged independently against the unrounded
subtotal and rounded on its own; the order tax is the sum of those rounded
amounts. Totals are never clamped, so a discount larger than subtotal plus tax
produces a negative total.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from .schemas import OrderItem, OrderTaxSnapshot, OrderTotals, TaxConfig
from .utils import ZERO, round2, to_decimal

HUNDRED = Decimal(100)


def calculate_tax_amount(subtotal: Decimal, rate: Decimal) -> Decimal:
    """Tax charged at ``rate`` percent of ``subtotal``, rounded to cents.

    Rates at or below zero have no effect.
    """
    rate = to_decimal(rate)
    if rate <= 0:
        return round2(ZERO)
    return round2(to_decimal(subtotal) * rate / HUNDRED)


def compute_subtotal(items: Iterable[OrderItem]) -> Decimal:
    return sum((item.line_total for item in items), ZERO)


def compute_order_totals(
    items: Iterable[OrderItem],
    tax_config: Optional[TaxConfig] = None,
    discount: object = 0,
) -> OrderTotals:
    discount = to_decimal(discount)
    if discount < 0:
        raise ValueError("discount cannot be negative")

    subtotal = compute_subtotal(items)

    snapshots = []
    tax_amount = ZERO
    if tax_config is not None:
        for tax in tax_config.enabled_taxes():
            amount = calculate_tax_amount(subtotal, tax.rate)
            tax_amount += amount
            snapshots.append(OrderTaxSnapshot(id=tax.id, name=tax.name, rate=tax.rate, amount=amount))

    total = round2(subtotal) + tax_amount - round2(discount)

    return OrderTotals(
        subtotal=round2(subtotal),
        tax_snapshots=snapshots,
        tax_amount=round2(tax_amount),
        discount=round2(discount),
        total=round2(total),
    )
