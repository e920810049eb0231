from __future__ import annotations

from typing import Iterable

from .coercion import coerce_number
from .models.bid import Bid, BidTotals
from .models.line_items import CostItem


def _sum_costs(items: Iterable[CostItem]) -> float:
    return sum((coerce_number(item.actual_cost) for item in items), 0.0)


def compute_totals(bid: Bid) -> BidTotals:
    """Aggregate the bid's line items and markup into its totals.

    Markup is applied to job cost, so profit equals the markup amount and
    the margin is profit over bid price (not over cost).
    """
    materials_total = _sum_costs(bid.materials)
    labor_total = _sum_costs(bid.labor_items)
    equipment_total = _sum_costs(bid.equipment_items)
    overhead_total = _sum_costs(bid.overhead_items)
    custom_expenses_total = sum(
        (_sum_costs(category.items) for category in bid.custom_expenses), 0.0
    )

    subtotal = materials_total + labor_total + equipment_total + overhead_total + custom_expenses_total
    markup_amount = subtotal * (coerce_number(bid.markup_percentage) / 100)
    total_bid_amount = subtotal + markup_amount
    total_profit = markup_amount
    profit_margin_percentage = (
        total_profit / total_bid_amount * 100 if total_bid_amount > 0 else 0.0
    )

    return BidTotals(
        materials_total=materials_total,
        labor_total=labor_total,
        equipment_total=equipment_total,
        overhead_total=overhead_total,
        custom_expenses_total=custom_expenses_total,
        subtotal=subtotal,
        markup_amount=markup_amount,
        total_bid_amount=total_bid_amount,
        total_actual_cost=subtotal,
        total_profit=total_profit,
        profit_margin_percentage=profit_margin_percentage,
    )


BILLABLE_TOTALS = (
    "materials_total",
    "labor_total",
    "equipment_total",
    "overhead_total",
    "custom_expenses_total",
    "markup_amount",
)


def billable_amounts(bid: Bid) -> list[tuple[str, float]]:
    """Persisted category totals (and markup) that are above zero, in display order."""
    amounts = [(name, float(getattr(bid, name) or 0.0)) for name in BILLABLE_TOTALS]
    return [(name, amount) for name, amount in amounts if amount > 0]


def apply_totals(bid: Bid) -> Bid:
    return bid.with_totals(compute_totals(bid))


def normalize_bid(bid: Bid) -> Bid:
    """Coerce every numeric form input to a number and refresh the totals."""
    normalized = bid.model_copy(
        update={
            "materials": [item.normalized() for item in bid.materials],
            "labor_items": [item.normalized() for item in bid.labor_items],
            "equipment_items": [item.normalized() for item in bid.equipment_items],
            "overhead_items": [item.normalized() for item in bid.overhead_items],
            "custom_expenses": [
                category.model_copy(update={"items": [item.normalized() for item in category.items]})
                for category in bid.custom_expenses
            ],
            "markup_percentage": coerce_number(bid.markup_percentage),
        }
    )
    return apply_totals(normalized)


__all__ = ["BILLABLE_TOTALS", "billable_amounts", "compute_totals", "apply_totals", "normalize_bid"]
