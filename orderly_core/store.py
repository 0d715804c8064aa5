"""Storage interfaces for products and orders, with in-memory implementations."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol

from .schemas import Order, Product


class ProductStore(Protocol):
    def get(self, product_id: str) -> Optional[Product]: ...

    def list(self) -> List[Product]: ...

    def save(self, product: Product) -> None: ...

    def delete(self, product_ids: Iterable[str]) -> None: ...


class OrderStore(Protocol):
    def get(self, order_id: str) -> Optional[Order]: ...

    def list(self) -> List[Order]: ...

    def save(self, order: Order) -> None: ...


class InMemoryProductStore:
    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: Dict[str, Product] = {p.id: p for p in products}

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def list(self) -> List[Product]:
        return list(self._products.values())

    def save(self, product: Product) -> None:
        self._products[product.id] = product

    def delete(self, product_ids: Iterable[str]) -> None:
        for product_id in product_ids:
            self._products.pop(product_id, None)


class InMemoryOrderStore:
    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self._orders: Dict[str, Order] = {o.id: o for o in orders}

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def list(self) -> List[Order]:
        """Newest first."""
        return sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)

    def save(self, order: Order) -> None:
        self._orders[order.id] = order
