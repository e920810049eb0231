"""Read-only business analytics over stored bids.

Everything here works from persisted totals and status; nothing is
recomputed from line items.
"""
from __future__ import annotations

import calendar
import math
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from .models.bid import Bid, BidStatus

# Assumed margin before adopting structured bidding; the ROI reference point.
BASELINE_MARGIN = 15.0

HISTORY_MONTHS = 6
DEFAULT_BID_VALUE = 5000.0
DEFAULT_MARGIN = 20.0

DEFAULT_SUBSCRIPTION = 29.0
DEFAULT_HOURS_SAVED = 10.0
DEFAULT_HOURLY_RATE = 50.0

RECENT_WINDOW = timedelta(days=30)
STAGNANT_AFTER = timedelta(days=7)
LOW_MARGIN = 15.0
HIGH_MARGIN = 30.0
HIGH_REJECTION_RATE = 40.0
UNDERBID_RATIO = 0.7
UNDERBID_MIN_ACCEPTED = 3


class DashboardStats(BaseModel):
    total_bids: int = 0
    accepted_bids: int = 0
    accepted_value: float = 0.0
    average_margin: float = 0.0
    pending_bids: int = 0
    win_rate: float = 0.0


class ForecastMonth(BaseModel):
    month: date
    confirmed_revenue: float = 0.0
    projected_revenue: float = 0.0
    total_revenue: float = 0.0
    confirmed_profit: float = 0.0
    projected_profit: float = 0.0
    total_profit: float = 0.0
    bid_count: float = 0.0


class Forecast(BaseModel):
    months: list[ForecastMonth] = Field(default_factory=list)
    total_revenue: float = 0.0
    total_profit: float = 0.0
    total_bids: float = 0.0


class ROIReport(BaseModel):
    months_since_start: int
    total_bids: int
    accepted_bids: int
    total_revenue: float
    total_profit: float
    average_margin: float
    additional_profit_from_margins: float
    time_savings_value: float
    total_app_cost: float
    total_benefit: float
    roi: float
    net_gain: float


class TrendMonth(BaseModel):
    month: date
    revenue: float = 0.0
    profit: float = 0.0
    margin: float = 0.0
    bids: int = 0
    accepted: int = 0


class AlertPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"
    positive = "positive"


_PRIORITY_ORDER = {
    AlertPriority.high: 0,
    AlertPriority.medium: 1,
    AlertPriority.low: 2,
    AlertPriority.positive: 3,
}


class CashFlowAlert(BaseModel):
    kind: str
    title: str
    description: str
    priority: AlertPriority
    bid_ids: list[str] = Field(default_factory=list)


def _accepted(bids: Iterable[Bid]) -> list[Bid]:
    return [bid for bid in bids if bid.status is BidStatus.accepted]


def _created_on(bid: Bid) -> date | None:
    return bid.created_date.date() if bid.created_date else None


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _add_months(day: date, months: int) -> date:
    index = day.year * 12 + day.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def months_before(day: date, months: int) -> date:
    index = day.year * 12 + day.month - 1 - months
    year, month = index // 12, index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _in_month(bid: Bid, month: date) -> bool:
    created = _created_on(bid)
    return created is not None and _month_start(created) == month


def win_rate(bids: Sequence[Bid]) -> float:
    """Accepted bids as a percentage of all bids."""
    if not bids:
        return 0.0
    return len(_accepted(bids)) / len(bids) * 100


def average_margin(bids: Sequence[Bid]) -> float:
    """Mean profit margin over accepted bids."""
    accepted = _accepted(bids)
    if not accepted:
        return 0.0
    return sum(bid.profit_margin_percentage or 0.0 for bid in accepted) / len(accepted)


def dashboard_stats(bids: Sequence[Bid]) -> DashboardStats:
    accepted = _accepted(bids)
    return DashboardStats(
        total_bids=len(bids),
        accepted_bids=len(accepted),
        accepted_value=sum(bid.total_bid_amount or 0.0 for bid in accepted),
        average_margin=average_margin(bids),
        pending_bids=sum(1 for bid in bids if bid.status in (BidStatus.draft, BidStatus.sent)),
        win_rate=win_rate(bids),
    )


def monthly_forecast(bids: Sequence[Bid], *, months: int = 6, today: date) -> Forecast:
    """Project revenue and profit per calendar month starting with the current one.

    Confirmed figures come from accepted bids already dated into a month;
    projected figures cover only the bids still expected on top of the
    ones that exist.
    """
    accepted = _accepted(bids)
    if accepted:
        avg_monthly_bids = len(accepted) / HISTORY_MONTHS
        avg_bid_value = sum(bid.total_bid_amount or 0.0 for bid in accepted) / len(accepted)
        avg_margin = sum(bid.profit_margin_percentage or DEFAULT_MARGIN for bid in accepted) / len(accepted)
    else:
        avg_monthly_bids = 1.0
        avg_bid_value = DEFAULT_BID_VALUE
        avg_margin = DEFAULT_MARGIN

    forecast = Forecast()
    first = _month_start(today)
    for offset in range(months):
        month = _add_months(first, offset)
        existing = [bid for bid in bids if _in_month(bid, month)]
        existing_accepted = _accepted(existing)
        confirmed_revenue = sum(bid.total_bid_amount or 0.0 for bid in existing_accepted)
        confirmed_profit = sum(bid.total_profit or 0.0 for bid in existing_accepted)

        projected_bids = max(1.0, avg_monthly_bids - len(existing))
        projected_revenue = projected_bids * avg_bid_value
        projected_profit = projected_revenue * (avg_margin / 100)

        entry = ForecastMonth(
            month=month,
            confirmed_revenue=confirmed_revenue,
            projected_revenue=projected_revenue,
            total_revenue=confirmed_revenue + projected_revenue,
            confirmed_profit=confirmed_profit,
            projected_profit=projected_profit,
            total_profit=confirmed_profit + projected_profit,
            bid_count=len(existing) + projected_bids,
        )
        forecast.months.append(entry)
        forecast.total_revenue += entry.total_revenue
        forecast.total_profit += entry.total_profit
        forecast.total_bids += entry.bid_count
    return forecast


def roi(
    bids: Sequence[Bid],
    *,
    start_date: date,
    today: date,
    monthly_subscription: float = DEFAULT_SUBSCRIPTION,
    time_saved_hours: float = DEFAULT_HOURS_SAVED,
    hourly_rate: float = DEFAULT_HOURLY_RATE,
) -> ROIReport:
    months_since_start = max(1, math.ceil((today - start_date).days / 30))
    since_start = [bid for bid in bids if (_created_on(bid) or date.min) >= start_date]
    accepted = _accepted(since_start)

    total_revenue = sum(bid.total_bid_amount or 0.0 for bid in accepted)
    total_profit = sum(bid.total_profit or 0.0 for bid in accepted)
    avg_margin = average_margin(accepted)

    improvement = max(0.0, avg_margin - BASELINE_MARGIN)
    additional_profit = total_revenue * (improvement / 100)
    time_savings_value = time_saved_hours * hourly_rate * months_since_start
    total_app_cost = monthly_subscription * months_since_start
    total_benefit = additional_profit + time_savings_value
    roi_percentage = (total_benefit - total_app_cost) / total_app_cost * 100 if total_app_cost > 0 else 0.0

    return ROIReport(
        months_since_start=months_since_start,
        total_bids=len(since_start),
        accepted_bids=len(accepted),
        total_revenue=total_revenue,
        total_profit=total_profit,
        average_margin=avg_margin,
        additional_profit_from_margins=additional_profit,
        time_savings_value=time_savings_value,
        total_app_cost=total_app_cost,
        total_benefit=total_benefit,
        roi=roi_percentage,
        net_gain=total_benefit - total_app_cost,
    )


def monthly_trend(bids: Sequence[Bid], *, start_date: date, today: date) -> list[TrendMonth]:
    trend: list[TrendMonth] = []
    month = _month_start(start_date)
    while month <= today:
        in_month = [bid for bid in bids if _in_month(bid, month)]
        accepted = _accepted(in_month)
        trend.append(
            TrendMonth(
                month=month,
                revenue=sum(bid.total_bid_amount or 0.0 for bid in accepted),
                profit=sum(bid.total_profit or 0.0 for bid in accepted),
                margin=round(average_margin(accepted), 1),
                bids=len(in_month),
                accepted=len(accepted),
            )
        )
        month = _add_months(month, 1)
    return trend


def _ids(bids: Iterable[Bid]) -> list[str]:
    return [bid.id for bid in bids if bid.id]


def cash_flow_alerts(bids: Sequence[Bid], *, today: date) -> list[CashFlowAlert]:
    recent_cutoff = today - RECENT_WINDOW
    stagnant_cutoff = today - STAGNANT_AFTER
    recent = [bid for bid in bids if (_created_on(bid) or date.min) > recent_cutoff]
    alerts: list[CashFlowAlert] = []

    low_margin = [bid for bid in recent if bid.profit_margin_percentage and bid.profit_margin_percentage < LOW_MARGIN]
    if low_margin:
        alerts.append(
            CashFlowAlert(
                kind="low_margin",
                title="Low Profit Margin Alert",
                description=f"{len(low_margin)} recent bids have profit margins below {LOW_MARGIN:.0f}%",
                priority=AlertPriority.high,
                bid_ids=_ids(low_margin),
            )
        )

    rejected = [bid for bid in recent if bid.status is BidStatus.rejected]
    rejection_rate = len(rejected) / len(recent) * 100 if recent else 0.0
    if rejection_rate > HIGH_REJECTION_RATE:
        alerts.append(
            CashFlowAlert(
                kind="high_rejection_rate",
                title="High Rejection Rate",
                description=(
                    f"{rejection_rate:.0f}% of recent bids were rejected. "
                    "Consider reviewing your pricing strategy."
                ),
                priority=AlertPriority.high,
                bid_ids=_ids(rejected),
            )
        )

    accepted = _accepted(bids)
    if len(accepted) >= UNDERBID_MIN_ACCEPTED:
        avg_amount = sum(bid.total_bid_amount or 0.0 for bid in accepted) / len(accepted)
        low_bids = [
            bid
            for bid in recent
            if (bid.total_bid_amount or 0.0) < avg_amount * UNDERBID_RATIO and bid.status is not BidStatus.rejected
        ]
        if low_bids:
            alerts.append(
                CashFlowAlert(
                    kind="underbidding",
                    title="Potentially Underbidding",
                    description=f"{len(low_bids)} recent bids are significantly below your average of ${avg_amount:,.2f}",
                    priority=AlertPriority.medium,
                    bid_ids=_ids(low_bids),
                )
            )

    stagnant = [
        bid
        for bid in bids
        if bid.status is BidStatus.draft and (_created_on(bid) or date.max) <= stagnant_cutoff
    ]
    if stagnant:
        alerts.append(
            CashFlowAlert(
                kind="stagnant_drafts",
                title="Stagnant Draft Bids",
                description=f"{len(stagnant)} draft bids haven't been sent in over a week",
                priority=AlertPriority.low,
                bid_ids=_ids(stagnant),
            )
        )

    high_margin = [bid for bid in recent if bid.profit_margin_percentage and bid.profit_margin_percentage > HIGH_MARGIN]
    if high_margin:
        alerts.append(
            CashFlowAlert(
                kind="excellent_margins",
                title="Excellent Profit Margins",
                description=f"{len(high_margin)} recent bids achieved profit margins above {HIGH_MARGIN:.0f}%!",
                priority=AlertPriority.positive,
                bid_ids=_ids(high_margin),
            )
        )

    alerts.sort(key=lambda alert: _PRIORITY_ORDER[alert.priority])
    return alerts


__all__ = [
    "AlertPriority",
    "BASELINE_MARGIN",
    "CashFlowAlert",
    "DashboardStats",
    "Forecast",
    "ForecastMonth",
    "ROIReport",
    "TrendMonth",
    "average_margin",
    "cash_flow_alerts",
    "dashboard_stats",
    "monthly_forecast",
    "monthly_trend",
    "months_before",
    "roi",
    "win_rate",
]
