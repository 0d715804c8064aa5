"""Order lifecycle and the stock reconciliation tied to it.

Creating an order deducts its quantities from stock; cancelling a pending
order puts them back in the same place. Completion only changes status. For
products with an option group the option stock is the ledger and the product
level ``stock`` is recomputed as the sum of its options.

Stock is allowed to go negative: availability checks belong to the caller.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from contextlib import ExitStack, contextmanager
from threading import Lock, RLock
from typing import Dict, Iterable, Iterator, List, Optional

from .calculator import compute_order_totals
from .exceptions import InvalidTransition, OrderNotFound, ProductNotFound, StockReconciliationError
from .schemas import (
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductOptionGroup,
    TaxConfig,
)
from .store import InMemoryOrderStore, InMemoryProductStore, OrderStore, ProductStore
from .utils import generate_id, to_decimal, utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class KeyedLocks:
    """One re-entrant lock per key, acquired in sorted key order.

    A key's lock lives only while someone holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_ref(self, key: str) -> RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _release_ref(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                lock = self._acquire_ref(key)
                stack.callback(self._release_ref, key)
                stack.enter_context(lock)
            yield


def adjust_product_stock(product: Product, items: Iterable[OrderItem], sign: int) -> Product:
    """Return a copy of ``product`` with the item quantities applied.

    ``sign`` is -1 to deduct and +1 to restore.
    """
    if product.has_options:
        wanted = Counter()
        for item in items:
            wanted[item.selected_option_id] += item.quantity

        options = []
        for option in product.option_group.options:
            qty = wanted.pop(option.id, 0)
            options.append(option.model_copy(update={"stock": option.stock + sign * qty}) if qty else option)
        for option_id, qty in wanted.items():
            logger.warning("product %s has no option %s; %d unit(s) not adjusted", product.id, option_id, qty)

        group = product.option_group.model_copy(update={"options": options})
        return product.model_copy(
            update={"option_group": group, "stock": sum(o.stock for o in options), "last_updated": utcnow()}
        )

    qty = sum(item.quantity for item in items)
    return product.model_copy(update={"stock": product.stock + sign * qty, "last_updated": utcnow()})


def is_low_stock(product: Product, threshold: Optional[int] = None) -> bool:
    """Stock at or below the threshold; ``threshold`` overrides the stored ones.

    Variant products are low when any option is low, each option falling back
    to the product threshold when it has none of its own.
    """
    if product.has_options:
        for option in product.option_group.options:
            limit = threshold
            if limit is None:
                limit = option.low_stock_threshold
            if limit is None:
                limit = product.low_stock_threshold
            if option.stock <= limit:
                return True
        return False
    limit = product.low_stock_threshold if threshold is None else threshold
    return product.stock <= limit


def find_low_stock(products: Iterable[Product], threshold: Optional[int] = None) -> List[Product]:
    return [p for p in products if p.status == "active" and is_low_stock(p, threshold)]


class InventoryService:
    def __init__(
        self,
        products: Optional[ProductStore] = None,
        orders: Optional[OrderStore] = None,
        low_stock_threshold: int = 5,
    ) -> None:
        self.products = products if products is not None else InMemoryProductStore()
        self.orders = orders if orders is not None else InMemoryOrderStore()
        self.low_stock_threshold = low_stock_threshold
        self._locks = KeyedLocks()

    # Catalog
    def add_product(
        self,
        name: str,
        price: object,
        stock: int = 0,
        low_stock_threshold: Optional[int] = None,
        option_group: Optional[ProductOptionGroup] = None,
    ) -> Product:
        if option_group is not None and option_group.options:
            stock = sum(o.stock for o in option_group.options)
        product = Product(
            id=generate_id("PRD"),
            sku=generate_id("SKU"),
            name=name,
            price=to_decimal(price),
            stock=stock,
            low_stock_threshold=self.low_stock_threshold if low_stock_threshold is None else low_stock_threshold,
            option_group=option_group,
        )
        self.products.save(product)
        logger.info("product added: %s (%s)", product.name, product.id)
        return product

    def update_product(self, product_id: str, **updates: object) -> Product:
        with self._locks.hold([_product_key(product_id)]):
            product = self.products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            updates.pop("id", None)
            data = {**product.model_dump(), **updates, "last_updated": utcnow()}
            updated = Product.model_validate(data)
            if updated.has_options:
                updated = updated.model_copy(update={"stock": sum(o.stock for o in updated.option_group.options)})
            self.products.save(updated)
        return updated

    def delete_products(self, product_ids: Iterable[str]) -> None:
        # historical orders keep their own product_name snapshot
        product_ids = list(product_ids)
        with self._locks.hold(_product_key(pid) for pid in product_ids):
            self.products.delete(product_ids)
        logger.info("deleted %d product(s)", len(product_ids))

    def list_products(self) -> List[Product]:
        return self.products.list()

    def low_stock_products(self) -> List[Product]:
        return find_low_stock(self.products.list())

    # Orders
    def get_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self) -> List[Order]:
        return self.orders.list()

    def create_order(
        self,
        items: List[OrderItem],
        tax_config: Optional[TaxConfig] = None,
        discount: object = 0,
        customer_name: Optional[str] = None,
        whatsapp_number: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Order:
        items = list(items)
        if not items:
            raise ValueError("an order needs at least one item")

        totals = compute_order_totals(items, tax_config, discount)
        order = Order(
            id=generate_id("ORD"),
            customer_name=customer_name,
            whatsapp_number=whatsapp_number,
            items=items,
            subtotal=totals.subtotal,
            tax_snapshots=totals.tax_snapshots,
            tax_amount=totals.tax_amount,
            discount=totals.discount,
            total=totals.total,
            status=OrderStatus.PENDING,
            created_at=utcnow(),
            note=note,
        )

        with self._locks.hold(_product_key(i.product_id) for i in items):
            self._check_options(items)
            self._adjust_stock(order.id, items, sign=-1)
            self.orders.save(order)

        logger.info("order %s created: %d item(s), total %s", order.id, len(items), order.total)
        return order

    def update_order_items(
        self,
        order_id: str,
        items: List[OrderItem],
        tax_config: Optional[TaxConfig] = None,
    ) -> Order:
        """Replace the items of a pending order.

        The order is re-priced with ``tax_config`` and its stored discount,
        and stock moves by the difference between the old and new items.
        """
        items = list(items)
        if not items:
            raise ValueError("an order needs at least one item")

        with self._locks.hold([_order_key(order_id)]):
            order = self.get_order(order_id)
            if order.status != OrderStatus.PENDING:
                logger.warning("rejected edit of order %s in status %s", order.id, order.status.value)
                raise InvalidTransition(order.id, order.status.value, OrderStatus.PENDING.value)

            totals = compute_order_totals(items, tax_config, order.discount or 0)
            updated = order.model_copy(
                update={
                    "items": items,
                    "subtotal": totals.subtotal,
                    "tax_snapshots": totals.tax_snapshots,
                    "tax_amount": totals.tax_amount,
                    "discount": totals.discount,
                    "total": totals.total,
                    "tax_name": None,
                    "tax_rate": None,
                }
            )

            touched = {i.product_id for i in order.items} | {i.product_id for i in items}
            with self._locks.hold(_product_key(pid) for pid in touched):
                self._check_options(items)
                self._adjust_stock(order.id, order.items, sign=1)
                self._adjust_stock(order.id, items, sign=-1)
                self.orders.save(updated)

        logger.info("order %s edited: %d item(s), total %s", order.id, len(items), updated.total)
        return updated

    def complete_order(self, order_id: str) -> Order:
        return self.update_order_status(order_id, OrderStatus.COMPLETED)

    def cancel_order(self, order_id: str) -> Order:
        return self.update_order_status(order_id, OrderStatus.CANCELLED)

    def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        status = OrderStatus(status)
        with self._locks.hold([_order_key(order_id)]):
            order = self.get_order(order_id)
            if status not in ALLOWED_TRANSITIONS[order.status]:
                logger.warning("rejected transition for order %s: %s -> %s", order.id, order.status.value, status.value)
                raise InvalidTransition(order.id, order.status.value, status.value)

            updated = order.model_copy(update={"status": status})
            if status == OrderStatus.CANCELLED:
                with self._locks.hold(_product_key(i.product_id) for i in order.items):
                    self._adjust_stock(order.id, order.items, sign=1)
                    self.orders.save(updated)
            else:
                self.orders.save(updated)

        logger.info("order %s %s", order.id, status.value)
        return updated

    # Internals
    def _check_options(self, items: List[OrderItem]) -> None:
        for item in items:
            product = self.products.get(item.product_id)
            if product is None or not product.has_options:
                continue
            if product.find_option(item.selected_option_id) is None:
                raise StockReconciliationError(
                    f"item {item.product_name!r} must select one of the options of product {product.id}"
                )

    def _adjust_stock(self, order_id: str, items: Iterable[OrderItem], sign: int) -> None:
        by_product: Dict[str, List[OrderItem]] = defaultdict(list)
        for item in items:
            by_product[item.product_id].append(item)

        for product_id, product_items in by_product.items():
            product = self.products.get(product_id)
            if product is None:
                logger.warning("order %s: product %s not found, stock not adjusted", order_id, product_id)
                continue
            updated = adjust_product_stock(product, product_items, sign)
            self.products.save(updated)
            logger.debug("product %s stock %d -> %d", product_id, product.stock, updated.stock)


def _product_key(product_id: str) -> str:
    return f"product:{product_id}"


def _order_key(order_id: str) -> str:
    return f"order:{order_id}"
