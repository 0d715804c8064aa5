"""Command-line entrypoints for order totals, invoice summaries, and stock alerts."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich import print

from .aggregator import filter_orders, summarize_for_export
from .calculator import compute_order_totals
from .config import Settings
from .inventory import find_low_stock
from .log import configure_logging
from .schemas import ExportSummary, Order, OrderItem, OrderTotals, Product
from .tax_config import load_tax_config
from .utils import parse_date, to_decimal

app = typer.Typer(add_completion=False, help="Orderly order and invoice CLI")


@app.callback()
def _setup(log_level: Optional[str] = typer.Option(None, help="Log level (defaults to ORDERLY_LOG_LEVEL or INFO)")) -> None:
    settings = Settings.from_env()
    configure_logging(log_level or settings.log_level)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def _load_list(path: Path, model):
    try:
        return [model.model_validate(item) for item in _read_json(path)]
    except ValidationError as exc:
        raise typer.BadParameter(f"{path}: {exc}") from exc


def _print_totals(totals: OrderTotals) -> None:
    print(f"[bold]Subtotal:[/bold] {totals.subtotal}")
    for snap in totals.tax_snapshots:
        print(f"- {snap.name} ({snap.rate}%): {snap.amount}")
    print(f"[bold]Tax:[/bold] {totals.tax_amount}  [bold]Discount:[/bold] {totals.discount}")
    print(f"[green]Total:[/green] {totals.total}")


def _print_summary(summary: ExportSummary) -> None:
    print(f"[bold]Orders:[/bold] {summary.total_orders}")
    print(f"[bold]Subtotal:[/bold] {summary.subtotal}  [bold]Tax:[/bold] {summary.tax_amount}  [bold]Discount:[/bold] {summary.discount}")
    if summary.tax_breakdown:
        print("Tax breakdown:")
        for name, amount in summary.tax_breakdown.items():
            print(f"- {name}: {amount}")
    print(f"[green]Grand total:[/green] {summary.grand_total}")
    if summary.cancelled_orders:
        print(f"[red]Cancelled:[/red] {summary.cancelled_orders} order(s), {summary.cancelled_total}")


@app.command()
def totals(
    items: Path = typer.Option(..., exists=True, dir_okay=False, help="JSON file with order items"),
    taxes: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="JSON tax configuration"),
    discount: str = typer.Option("0", help="Discount amount"),
    output: Optional[Path] = typer.Option(None, help="Optional path to write the totals as JSON"),
) -> None:
    """Price a set of items against a tax configuration."""
    order_items = _load_list(items, OrderItem)
    try:
        tax_config = load_tax_config(_read_json(taxes) if taxes else None)
        result = compute_order_totals(order_items, tax_config, to_decimal(discount))
    except (ValidationError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        print(f"Totals written to {output}")
    _print_totals(result)


@app.command()
def summarize(
    orders: Path = typer.Option(..., exists=True, dir_okay=False, help="JSON file with stored orders"),
    start: Optional[str] = typer.Option(None, help="First day of the period"),
    end: Optional[str] = typer.Option(None, help="Last day of the period"),
    include_cancelled: bool = typer.Option(False, help="Report cancelled orders separately"),
    report: Optional[Path] = typer.Option(None, help="Optional path to write the summary as JSON"),
) -> None:
    """Aggregate stored orders into an invoice summary."""
    start_date = parse_date(start) if start else None
    if start and start_date is None:
        raise typer.BadParameter(f"unparseable start date: {start}")
    end_date = parse_date(end) if end else None
    if end and end_date is None:
        raise typer.BadParameter(f"unparseable end date: {end}")

    settings = Settings.from_env()
    selected = filter_orders(_load_list(orders, Order), start_date, end_date, include_cancelled)
    summary = summarize_for_export(selected, settings.legacy_tax_label)
    if report:
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(summary.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        print(f"Report written to {report}")
    _print_summary(summary)


@app.command("low-stock")
def low_stock(
    products: Path = typer.Option(..., exists=True, dir_okay=False, help="JSON file with products"),
    threshold: Optional[int] = typer.Option(None, min=0, help="Override every stored threshold"),
) -> None:
    """List active products at or below their low-stock threshold."""
    flagged = find_low_stock(_load_list(products, Product), threshold)
    if not flagged:
        print("[green]No low-stock products[/green]")
        return
    for product in flagged:
        if product.has_options:
            detail = ", ".join(f"{o.label}={o.stock}" for o in product.option_group.options)
            print(f"- {product.name} ({product.sku}): {detail}")
        else:
            print(f"- {product.name} ({product.sku}): {product.stock}")
    raise typer.Exit(code=1)


def main():
    app()


if __name__ == "__main__":
    main()
