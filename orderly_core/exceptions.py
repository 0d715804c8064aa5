"""Exceptions raised by the order lifecycle and tax configuration layers."""
from __future__ import annotations


class OrderlyError(Exception):
    """Base class for all engine errors."""


class OrderNotFound(OrderlyError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"order not found: {order_id}")
        self.order_id = order_id


class ProductNotFound(OrderlyError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"product not found: {product_id}")
        self.product_id = product_id


class InvalidTransition(OrderlyError):
    """An order status change that the lifecycle does not allow.

    ``pending`` may move to ``completed`` or ``cancelled``; both of those are
    terminal.
    """

    def __init__(self, order_id: str, current: str, requested: str) -> None:
        super().__init__(f"order {order_id}: cannot move from {current} to {requested}")
        self.order_id = order_id
        self.current = current
        self.requested = requested


class TaxConfigError(OrderlyError):
    pass


class StockReconciliationError(OrderlyError):
    pass
