"""Invoice summary aggregation over a set of stored orders."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .schemas import (
    CurrentPricing,
    ExportSummary,
    InvoiceSummary,
    LegacyPricing,
    Order,
    OrderPricing,
    OrderStatus,
    OrderTaxSnapshot,
)
from .utils import ZERO, round2

logger = logging.getLogger(__name__)

DEFAULT_TAX_LABEL = "Tax"
LEGACY_SNAPSHOT_ID = "legacy"


def classify_pricing(order: Order) -> OrderPricing:
    """Tag an order's pricing as current (has tax snapshots) or legacy."""
    subtotal = order.subtotal if order.subtotal is not None else order.total
    tax_amount = order.tax_amount if order.tax_amount is not None else ZERO
    discount = order.discount if order.discount is not None else ZERO

    if order.tax_snapshots is not None:
        return CurrentPricing(
            subtotal=subtotal,
            tax_snapshots=order.tax_snapshots,
            tax_amount=tax_amount,
            discount=discount,
            total=order.total,
        )
    return LegacyPricing(
        subtotal=subtotal,
        tax_amount=tax_amount,
        tax_name=order.tax_name,
        tax_rate=order.tax_rate,
        discount=discount,
        total=order.total,
    )


def normalize_pricing(order: Order, legacy_tax_label: str = DEFAULT_TAX_LABEL) -> CurrentPricing:
    pricing = classify_pricing(order)
    if isinstance(pricing, CurrentPricing):
        return pricing

    snapshots: List[OrderTaxSnapshot] = []
    if pricing.tax_amount > 0:
        snapshots.append(
            OrderTaxSnapshot(
                id=LEGACY_SNAPSHOT_ID,
                name=pricing.tax_name or legacy_tax_label,
                rate=pricing.tax_rate if pricing.tax_rate is not None else ZERO,
                amount=pricing.tax_amount,
            )
        )
    logger.debug("order %s normalized from legacy pricing", order.id)
    return CurrentPricing(
        subtotal=pricing.subtotal,
        tax_snapshots=snapshots,
        tax_amount=pricing.tax_amount,
        discount=pricing.discount,
        total=pricing.total,
    )


class InvoiceAggregator:
    """Fold orders into an invoice summary.

    Callers filter by date range and status beforehand; every order passed in
    is counted. Sums are kept exact during the fold and rounded to cents once
    at the end.
    """

    def __init__(self, legacy_tax_label: str = DEFAULT_TAX_LABEL) -> None:
        self.legacy_tax_label = legacy_tax_label

    def aggregate(self, orders: Iterable[Order]) -> InvoiceSummary:
        total_orders = 0
        subtotal = ZERO
        tax_amount = ZERO
        discount = ZERO
        grand_total = ZERO
        breakdown: Dict[str, Decimal] = {}

        for order in orders:
            pricing = normalize_pricing(order, self.legacy_tax_label)
            total_orders += 1
            subtotal += pricing.subtotal
            tax_amount += pricing.tax_amount
            discount += pricing.discount
            grand_total += pricing.total
            for snap in pricing.tax_snapshots:
                breakdown[snap.name] = breakdown.get(snap.name, ZERO) + snap.amount

        return InvoiceSummary(
            total_orders=total_orders,
            subtotal=round2(subtotal),
            tax_amount=round2(tax_amount),
            discount=round2(discount),
            grand_total=round2(grand_total),
            tax_breakdown={name: round2(amount) for name, amount in breakdown.items()},
        )

    def summarize_for_export(self, orders: Iterable[Order]) -> ExportSummary:
        """Summary of active orders plus a separate tally of cancelled ones."""
        active: List[Order] = []
        cancelled_orders = 0
        cancelled_total = ZERO
        for order in orders:
            if order.status == OrderStatus.CANCELLED:
                cancelled_orders += 1
                cancelled_total += order.total
            else:
                active.append(order)

        summary = self.aggregate(active)
        return ExportSummary(
            **summary.model_dump(),
            cancelled_orders=cancelled_orders,
            cancelled_total=round2(cancelled_total),
        )


def aggregate_invoice_summary(orders: Iterable[Order], legacy_tax_label: str = DEFAULT_TAX_LABEL) -> InvoiceSummary:
    return InvoiceAggregator(legacy_tax_label).aggregate(orders)


def summarize_for_export(orders: Iterable[Order], legacy_tax_label: str = DEFAULT_TAX_LABEL) -> ExportSummary:
    return InvoiceAggregator(legacy_tax_label).summarize_for_export(orders)


def filter_orders(
    orders: Iterable[Order],
    start: Optional[date] = None,
    end: Optional[date] = None,
    include_cancelled: bool = False,
) -> List[Order]:
    """Select orders created within ``[start, end]`` (whole days, inclusive)."""
    selected: List[Order] = []
    for order in orders:
        if order.status == OrderStatus.CANCELLED and not include_cancelled:
            continue
        created = order.created_at.date()
        if start is not None and created < start:
            continue
        if end is not None and created > end:
            continue
        selected.append(order)
    return selected
