from decimal import Decimal

import pytest

from orderly_core.calculator import calculate_tax_amount, compute_order_totals
from orderly_core.schemas import TaxConfig, TaxLine

from conftest import make_item


def test_single_vat_scenario(vat_config):
    totals = compute_order_totals([make_item(85, quantity=2)], vat_config)

    assert totals.subtotal == Decimal("170.00")
    assert totals.tax_amount == Decimal("8.50")
    assert totals.discount == Decimal("0.00")
    assert totals.total == Decimal("178.50")
    assert [(s.id, s.name, s.amount) for s in totals.tax_snapshots] == [("vat", "VAT", Decimal("8.50"))]


def test_two_taxes_listed_in_config_order(two_tax_config):
    totals = compute_order_totals([make_item(100)], two_tax_config)

    assert [s.amount for s in totals.tax_snapshots] == [Decimal("5.00"), Decimal("10.00")]
    assert [s.name for s in totals.tax_snapshots] == ["State", "City"]
    assert totals.tax_amount == Decimal("15.00")
    assert totals.total == Decimal("115.00")


def test_taxes_are_rounded_independently():
    config = TaxConfig(
        taxes=[
            TaxLine(id="a", name="A", rate=Decimal("5")),
            TaxLine(id="b", name="B", rate=Decimal("5")),
        ]
    )
    totals = compute_order_totals([make_item("10.10")], config)

    # 0.505 rounds to 0.51 per line; a combined 10% would give 1.01
    assert [s.amount for s in totals.tax_snapshots] == [Decimal("0.51"), Decimal("0.51")]
    assert totals.tax_amount == Decimal("1.02")
    assert totals.total == Decimal("11.12")


def test_taxes_do_not_compound(two_tax_config):
    totals = compute_order_totals([make_item("33.33")], two_tax_config)

    assert [s.amount for s in totals.tax_snapshots] == [Decimal("1.67"), Decimal("3.33")]
    assert totals.tax_amount == Decimal("5.00")
    assert totals.subtotal == Decimal("33.33")


def test_disabled_tax_never_produces_a_snapshot():
    config = TaxConfig(
        taxes=[
            TaxLine(id="vat", name="VAT", rate=Decimal("5")),
            TaxLine(id="lux", name="Luxury", rate=Decimal("50"), enabled=False),
        ]
    )
    totals = compute_order_totals([make_item(200)], config)

    assert [s.id for s in totals.tax_snapshots] == ["vat"]
    assert totals.tax_amount == Decimal("10.00")


def test_zero_items_still_emit_one_snapshot_per_enabled_tax(two_tax_config):
    totals = compute_order_totals([], two_tax_config)

    assert totals.subtotal == Decimal("0.00")
    assert len(totals.tax_snapshots) == 2
    assert all(s.amount == Decimal("0.00") for s in totals.tax_snapshots)
    assert totals.total == Decimal("0.00")


def test_zero_rate_tax_yields_zero_snapshot():
    config = TaxConfig(taxes=[TaxLine(id="z", name="Exempt", rate=Decimal("0"))])
    totals = compute_order_totals([make_item(50)], config)

    assert len(totals.tax_snapshots) == 1
    assert totals.tax_snapshots[0].amount == Decimal("0.00")
    assert totals.total == Decimal("50.00")


def test_without_tax_config():
    totals = compute_order_totals([make_item("19.99", quantity=3)])

    assert totals.tax_snapshots == []
    assert totals.total == Decimal("59.97")


def test_discount_larger_than_order_gives_negative_total(vat_config):
    totals = compute_order_totals([make_item(10)], vat_config, discount=Decimal("20"))

    assert totals.total == Decimal("-9.50")


def test_negative_discount_is_rejected(vat_config):
    with pytest.raises(ValueError):
        compute_order_totals([make_item(10)], vat_config, discount=-1)


@pytest.mark.parametrize("discount", ["NaN", "Infinity", "-Infinity", float("nan")])
def test_non_finite_discount_is_rejected(vat_config, discount):
    with pytest.raises(ValueError):
        compute_order_totals([make_item(10)], vat_config, discount=discount)


def test_discount_accepts_float_without_binary_noise(vat_config):
    totals = compute_order_totals([make_item(10)], vat_config, discount=0.1)

    assert totals.discount == Decimal("0.10")
    assert totals.total == Decimal("10.40")


def test_tax_rounds_half_up():
    assert calculate_tax_amount(Decimal("0.10"), Decimal("5")) == Decimal("0.01")
    assert calculate_tax_amount(Decimal("0.09"), Decimal("5")) == Decimal("0.00")


def test_negative_rate_has_no_effect():
    assert calculate_tax_amount(Decimal("100"), Decimal("-5")) == Decimal("0.00")


@pytest.mark.parametrize(
    "prices, discount",
    [
        ([("12.345", 3)], "0"),
        ([("0.99", 7), ("4.49", 2)], "1.25"),
        ([("1999.95", 1), ("0.01", 13)], "250"),
    ],
)
def test_total_is_subtotal_plus_tax_minus_discount(two_tax_config, prices, discount):
    items = [make_item(p, quantity=q) for p, q in prices]
    totals = compute_order_totals(items, two_tax_config, Decimal(discount))

    assert totals.total == totals.subtotal + totals.tax_amount - totals.discount
    assert totals.tax_amount == sum(s.amount for s in totals.tax_snapshots)


def test_calculation_is_pure_and_repeatable(two_tax_config):
    items = [make_item("12.34", quantity=3), make_item("0.5", quantity=1, product_id="P2")]
    items_before = [i.model_dump() for i in items]
    config_before = two_tax_config.model_dump()

    first = compute_order_totals(items, two_tax_config, Decimal("1"))
    second = compute_order_totals(items, two_tax_config, Decimal("1"))

    assert first == second
    assert [i.model_dump() for i in items] == items_before
    assert two_tax_config.model_dump() == config_before


def test_item_quantity_must_be_positive():
    with pytest.raises(ValueError):
        make_item(10, quantity=0)
