"""Data models used across the calculator, aggregator, inventory, CLI, and API.

Records are written by the web front end in camelCase, so every model accepts
both the camelCase alias and the snake_case field name.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils import ZERO, utcnow

_RECORD = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)
_FROZEN_RECORD = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel, frozen=True)


class TaxMode(str, Enum):
    FIXED = "fixed"
    EDITABLE = "editable"


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Tax configuration


class TaxLine(BaseModel):
    model_config = _RECORD

    id: str
    name: str
    rate: Decimal = Field(ge=0, description="Percentage, e.g. 5 for 5%")
    mode: TaxMode = TaxMode.FIXED
    enabled: bool = True


class TaxConfig(BaseModel):
    model_config = _RECORD

    taxes: List[TaxLine] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_unique_ids(self) -> "TaxConfig":
        seen: set[str] = set()
        for tax in self.taxes:
            if tax.id in seen:
                raise ValueError(f"duplicate tax id: {tax.id}")
            seen.add(tax.id)
        return self

    def enabled_taxes(self) -> List[TaxLine]:
        return [t for t in self.taxes if t.enabled]


# Orders


class OrderItem(BaseModel):
    model_config = _RECORD

    product_id: str
    product_name: str = Field(description="Display snapshot taken at time of sale")
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0, description="Unit price at time of sale")
    selected_option_id: Optional[str] = None
    selected_option_label: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderTaxSnapshot(BaseModel):
    model_config = _FROZEN_RECORD

    id: str
    name: str
    rate: Decimal
    amount: Decimal


class OrderTotals(BaseModel):
    model_config = _RECORD

    subtotal: Decimal
    tax_snapshots: List[OrderTaxSnapshot] = Field(default_factory=list)
    tax_amount: Decimal
    discount: Decimal
    total: Decimal


class Order(BaseModel):
    """A stored order.

    Orders priced by this engine always carry ``subtotal``, ``tax_snapshots``,
    ``tax_amount`` and ``discount``. Older records may only have ``total`` and a
    flat ``tax_amount`` with an optional ``tax_name``/``tax_rate``.
    """

    model_config = _RECORD

    id: str
    customer_name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    subtotal: Optional[Decimal] = None
    tax_snapshots: Optional[List[OrderTaxSnapshot]] = None
    tax_amount: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime
    note: Optional[str] = None

    # legacy single-tax fields
    tax_name: Optional[str] = None
    tax_rate: Optional[Decimal] = None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # records without an offset were written in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class CurrentPricing(BaseModel):
    model_config = _RECORD

    kind: Literal["current"] = "current"
    subtotal: Decimal
    tax_snapshots: List[OrderTaxSnapshot] = Field(default_factory=list)
    tax_amount: Decimal
    discount: Decimal
    total: Decimal


class LegacyPricing(BaseModel):
    model_config = _RECORD

    kind: Literal["legacy"] = "legacy"
    subtotal: Decimal
    tax_amount: Decimal = ZERO
    tax_name: Optional[str] = None
    tax_rate: Optional[Decimal] = None
    discount: Decimal = ZERO
    total: Decimal


OrderPricing = Annotated[Union[CurrentPricing, LegacyPricing], Field(discriminator="kind")]


class InvoiceSummary(BaseModel):
    model_config = _RECORD

    total_orders: int
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    grand_total: Decimal
    tax_breakdown: Dict[str, Decimal] = Field(default_factory=dict)


class ExportSummary(InvoiceSummary):
    cancelled_orders: int = 0
    cancelled_total: Decimal = ZERO


# Catalog


class ProductOption(BaseModel):
    model_config = _RECORD

    id: str
    label: str
    stock: int = 0
    price_adjustment: Optional[Decimal] = None
    low_stock_threshold: Optional[int] = None


class ProductOptionGroup(BaseModel):
    model_config = _RECORD

    label: str
    affects_stock: bool = True
    options: List[ProductOption] = Field(default_factory=list)


class Product(BaseModel):
    model_config = _RECORD

    id: str
    name: str
    sku: str
    price: Decimal = Field(ge=0)
    stock: int = 0
    low_stock_threshold: int = 5
    status: Literal["active", "archived"] = "active"
    last_updated: datetime = Field(default_factory=utcnow)
    option_group: Optional[ProductOptionGroup] = None

    @property
    def has_options(self) -> bool:
        return bool(self.option_group and self.option_group.options)

    def find_option(self, option_id: Optional[str]) -> Optional[ProductOption]:
        if not self.option_group or option_id is None:
            return None
        for option in self.option_group.options:
            if option.id == option_id:
                return option
        return None


# API request bodies


class TotalsRequest(BaseModel):
    model_config = _RECORD

    items: List[OrderItem] = Field(default_factory=list)
    tax_config: TaxConfig = Field(default_factory=TaxConfig)
    discount: Decimal = Field(default=ZERO, ge=0)


class SummaryRequest(BaseModel):
    model_config = _RECORD

    orders: List[Order] = Field(default_factory=list)
    start: Optional[date] = None
    end: Optional[date] = None
    include_cancelled: bool = False


class CreateOrderRequest(BaseModel):
    model_config = _RECORD

    items: List[OrderItem] = Field(min_length=1)
    discount: Decimal = Field(default=ZERO, ge=0)
    customer_name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    note: Optional[str] = None


class NewTaxLine(BaseModel):
    model_config = _RECORD

    name: str
    rate: Decimal = Field(ge=0)
    mode: TaxMode = TaxMode.FIXED
    enabled: bool = True


class TaxLineUpdate(BaseModel):
    model_config = _RECORD

    name: Optional[str] = None
    rate: Optional[Decimal] = Field(default=None, ge=0)
    mode: Optional[TaxMode] = None
    enabled: Optional[bool] = None


class NewProduct(BaseModel):
    model_config = _RECORD

    name: str
    price: Decimal = Field(ge=0)
    stock: int = 0
    low_stock_threshold: int = 5
    option_group: Optional[ProductOptionGroup] = None


class UpdateOrderRequest(BaseModel):
    model_config = _RECORD

    items: List[OrderItem] = Field(min_length=1)
