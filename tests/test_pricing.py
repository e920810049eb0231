import pytest

from contractor_bids.bid_editor import BidEditor, LineItemKind
from contractor_bids.models.bid import Bid
from contractor_bids.models.line_items import (
    CustomExpenseCategory,
    CustomExpenseItem,
    EquipmentItem,
    LaborItem,
    MaterialItem,
    OverheadItem,
)
from contractor_bids.pricing import billable_amounts, compute_totals, normalize_bid


def build_bid(**overrides) -> Bid:
    fields = dict(
        materials=[MaterialItem(quantity=10, cost_per_unit=5, actual_cost=50)],
        labor_items=[LaborItem(hours=8, cost_per_hour=40, actual_cost=320)],
        equipment_items=[EquipmentItem(rental_duration=2, cost_per_unit=75, actual_cost=150)],
        overhead_items=[OverheadItem(quantity=1, cost_per_unit=30, actual_cost=30)],
        custom_expenses=[
            CustomExpenseCategory(
                category_name="Permits",
                items=[CustomExpenseItem(quantity=1, cost_per_unit=100, actual_cost=100)],
            )
        ],
        markup_percentage=25,
    )
    fields.update(overrides)
    return Bid(**fields)


def test_single_material_with_twenty_percent_markup():
    editor = BidEditor()
    editor.add_item(LineItemKind.materials)
    editor.update_item(LineItemKind.materials, 0, "quantity", 10)
    editor.update_item(LineItemKind.materials, 0, "cost_per_unit", 5)
    editor.set_field("markup_percentage", 20)

    bid = editor.bid
    assert bid.materials[0].actual_cost == 50.0
    assert bid.subtotal == 50.0
    assert bid.markup_amount == pytest.approx(10.0)
    assert bid.total_bid_amount == pytest.approx(60.0)
    assert bid.profit_margin_percentage == pytest.approx(16.6666667)


def test_empty_bid_is_all_zero():
    totals = compute_totals(Bid(markup_percentage=25))
    assert totals.model_dump() == {name: 0.0 for name in totals.model_dump()}


def test_totals_follow_category_sums():
    totals = compute_totals(build_bid())

    assert totals.materials_total == 50.0
    assert totals.labor_total == 320.0
    assert totals.equipment_total == 150.0
    assert totals.overhead_total == 30.0
    assert totals.custom_expenses_total == 100.0
    assert totals.subtotal == (
        totals.materials_total
        + totals.labor_total
        + totals.equipment_total
        + totals.overhead_total
        + totals.custom_expenses_total
    )
    assert totals.total_actual_cost == totals.subtotal
    assert totals.total_bid_amount == pytest.approx(totals.subtotal * 1.25)
    assert totals.total_profit == totals.markup_amount
    assert totals.profit_margin_percentage == pytest.approx(
        100 * (totals.total_bid_amount - totals.subtotal) / totals.total_bid_amount
    )


def test_totals_are_idempotent():
    bid = build_bid()
    first = compute_totals(bid)
    second = compute_totals(bid.with_totals(first))
    assert first == second


@pytest.mark.parametrize("markup", ["", None, "abc"])
def test_unreadable_markup_counts_as_zero(markup):
    totals = compute_totals(build_bid(markup_percentage=markup))
    assert totals.markup_amount == 0.0
    assert totals.total_bid_amount == totals.subtotal
    assert totals.profit_margin_percentage == 0.0


def test_normalize_bid_converts_form_input():
    bid = build_bid(
        materials=[MaterialItem(quantity="3", cost_per_unit="2.5", actual_cost=7.5)],
        markup_percentage="10",
    )
    normalized = normalize_bid(bid)

    assert normalized.materials[0].quantity == 3.0
    assert normalized.materials[0].cost_per_unit == 2.5
    assert normalized.markup_percentage == 10.0
    assert normalized.materials_total == 7.5
    assert normalized.total_bid_amount == pytest.approx((7.5 + 320 + 150 + 30 + 100) * 1.1)


def test_normalize_bid_computes_missing_actual_cost():
    normalized = normalize_bid(Bid(materials=[MaterialItem(quantity=10, cost_per_unit=5)], markup_percentage=20))

    assert normalized.materials[0].actual_cost == 50.0
    assert normalized.subtotal == 50.0
    assert normalized.total_bid_amount == pytest.approx(60.0)


def test_normalize_bid_replaces_stale_actual_cost():
    bid = build_bid(
        labor_items=[LaborItem(hours=20, cost_per_hour=40, actual_cost=320)],
        custom_expenses=[
            CustomExpenseCategory(
                category_name="Permits",
                items=[CustomExpenseItem(quantity="2", cost_per_unit=100, actual_cost=100)],
            )
        ],
    )
    normalized = normalize_bid(bid)

    assert normalized.labor_items[0].actual_cost == 800.0
    assert normalized.custom_expenses[0].items[0].actual_cost == 200.0
    assert normalized.subtotal == 50 + 800 + 150 + 30 + 200


def test_billable_amounts_skip_zero_totals():
    bid = Bid(materials_total=100, labor_total=0, markup_amount=20, total_bid_amount=120)
    assert billable_amounts(bid) == [("materials_total", 100.0), ("markup_amount", 20.0)]
