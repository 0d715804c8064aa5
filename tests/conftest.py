from datetime import datetime, timezone
from decimal import Decimal

import pytest

from orderly_core.inventory import InventoryService
from orderly_core.schemas import (
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductOption,
    ProductOptionGroup,
    TaxConfig,
    TaxLine,
)


def make_item(price, quantity=1, product_id="P1", name="Coffee Beans", option_id=None):
    return OrderItem(
        product_id=product_id,
        product_name=name,
        quantity=quantity,
        price=Decimal(str(price)),
        selected_option_id=option_id,
    )


def make_order(total, order_id="ORD-1", status=OrderStatus.COMPLETED, created_at=None, **pricing):
    return Order(
        id=order_id,
        total=Decimal(str(total)),
        status=status,
        created_at=created_at or datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
        **pricing,
    )


@pytest.fixture
def vat_config():
    return TaxConfig(taxes=[TaxLine(id="vat", name="VAT", rate=Decimal("5"))])


@pytest.fixture
def two_tax_config():
    return TaxConfig(
        taxes=[
            TaxLine(id="t5", name="State", rate=Decimal("5")),
            TaxLine(id="t10", name="City", rate=Decimal("10")),
        ]
    )


@pytest.fixture
def service():
    svc = InventoryService()
    svc.products.save(Product(id="P1", name="Coffee Beans", sku="CF-001", price=Decimal("85"), stock=12))
    svc.products.save(
        Product(
            id="P2",
            name="T-Shirt",
            sku="TS-001",
            price=Decimal("40"),
            stock=15,
            option_group=ProductOptionGroup(
                label="Size",
                options=[
                    ProductOption(id="S", label="S", stock=5),
                    ProductOption(id="M", label="M", stock=10),
                ],
            ),
        )
    )
    return svc
