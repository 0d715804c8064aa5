"""FastAPI application exposing pricing, invoice summary, and order lifecycle endpoints."""
from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .aggregator import filter_orders, summarize_for_export
from .calculator import compute_order_totals
from .config import Settings
from .exceptions import (
    InvalidTransition,
    OrderNotFound,
    ProductNotFound,
    StockReconciliationError,
    TaxConfigError,
)
from .inventory import InventoryService
from .log import configure_logging
from .schemas import (
    CreateOrderRequest,
    ExportSummary,
    NewProduct,
    NewTaxLine,
    Order,
    OrderTotals,
    Product,
    SummaryRequest,
    TaxConfig,
    TaxLineUpdate,
    TotalsRequest,
    UpdateOrderRequest,
)
from .tax_config import TaxConfigState, add_tax, delete_tax, update_tax


def create_app(service: Optional[InventoryService] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Orderly Order Service", version="0.1.0")
    app.state.settings = settings
    app.state.service = service or InventoryService(low_stock_threshold=settings.low_stock_threshold)
    app.state.taxes = TaxConfigState()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidTransition)
    async def invalid_transition(request: Request, exc: InvalidTransition):
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "current": exc.current, "requested": exc.requested},
        )

    @app.exception_handler(OrderNotFound)
    @app.exception_handler(ProductNotFound)
    async def not_found(request: Request, exc: Exception):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(TaxConfigError)
    @app.exception_handler(StockReconciliationError)
    async def unprocessable(request: Request, exc: Exception):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "currency": settings.currency}

    # Pricing and summaries

    @app.post("/orders/totals", response_model=OrderTotals)
    def order_totals(body: TotalsRequest):
        return compute_order_totals(body.items, body.tax_config, body.discount)

    @app.post("/invoices/summary", response_model=ExportSummary)
    def invoice_summary(body: SummaryRequest):
        orders = filter_orders(body.orders, body.start, body.end, body.include_cancelled)
        return summarize_for_export(orders, settings.legacy_tax_label)

    # Tax configuration

    @app.get("/tax-config", response_model=TaxConfig)
    def get_tax_config():
        return app.state.taxes.config

    @app.post("/tax-config/taxes", response_model=TaxConfig, status_code=201)
    def create_tax(body: NewTaxLine):
        return app.state.taxes.apply(add_tax, body.name, body.rate, body.mode, body.enabled)

    @app.patch("/tax-config/taxes/{tax_id}", response_model=TaxConfig)
    def patch_tax(tax_id: str, body: TaxLineUpdate):
        return app.state.taxes.apply(update_tax, tax_id, **body.model_dump(exclude_none=True))

    @app.delete("/tax-config/taxes/{tax_id}", response_model=TaxConfig)
    def remove_tax(tax_id: str):
        return app.state.taxes.apply(delete_tax, tax_id)

    # Catalog

    @app.get("/products", response_model=List[Product])
    def list_products():
        return app.state.service.list_products()

    @app.get("/products/low-stock", response_model=List[Product])
    def low_stock_products():
        return app.state.service.low_stock_products()

    @app.post("/products", response_model=Product, status_code=201)
    def create_product(body: NewProduct):
        return app.state.service.add_product(
            name=body.name,
            price=body.price,
            stock=body.stock,
            low_stock_threshold=body.low_stock_threshold,
            option_group=body.option_group,
        )

    @app.delete("/products/{product_id}", status_code=204)
    def remove_product(product_id: str):
        if app.state.service.products.get(product_id) is None:
            raise HTTPException(status_code=404, detail=f"product not found: {product_id}")
        app.state.service.delete_products([product_id])

    # Orders

    @app.get("/orders", response_model=List[Order])
    def list_orders():
        return app.state.service.list_orders()

    @app.post("/orders", response_model=Order, status_code=201)
    def create_order(body: CreateOrderRequest):
        return app.state.service.create_order(
            body.items,
            app.state.taxes.config,
            body.discount,
            customer_name=body.customer_name,
            whatsapp_number=body.whatsapp_number,
            note=body.note,
        )

    @app.get("/orders/{order_id}", response_model=Order)
    def get_order(order_id: str):
        return app.state.service.get_order(order_id)

    @app.patch("/orders/{order_id}", response_model=Order)
    def edit_order(order_id: str, body: UpdateOrderRequest):
        return app.state.service.update_order_items(order_id, body.items, app.state.taxes.config)

    @app.post("/orders/{order_id}/complete", response_model=Order)
    def complete_order(order_id: str):
        return app.state.service.complete_order(order_id)

    @app.post("/orders/{order_id}/cancel", response_model=Order)
    def cancel_order(order_id: str):
        return app.state.service.cancel_order(order_id)

    return app


app = create_app()
