from datetime import date, datetime, timedelta, timezone

import pytest

from contractor_bids import analytics
from contractor_bids.models.bid import Bid, BidStatus

TODAY = date(2026, 10, 19)


def bid_on(day: date, status: BidStatus = BidStatus.accepted, amount: float = 1000.0, margin: float = 20.0, **extra) -> Bid:
    created = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)
    return Bid(
        status=status,
        total_bid_amount=amount,
        total_profit=amount * margin / 100,
        profit_margin_percentage=margin,
        created_date=created,
        **extra,
    )


def test_win_rate_and_average_margin():
    bids = [
        bid_on(TODAY, margin=20),
        bid_on(TODAY, margin=30),
        bid_on(TODAY, status=BidStatus.rejected, margin=5),
        bid_on(TODAY, status=BidStatus.sent, margin=50),
    ]
    assert analytics.win_rate(bids) == 50.0
    assert analytics.average_margin(bids) == 25.0
    assert analytics.win_rate([]) == 0.0
    assert analytics.average_margin([]) == 0.0


def test_dashboard_stats():
    bids = [
        bid_on(TODAY, amount=1000),
        bid_on(TODAY, status=BidStatus.draft),
        bid_on(TODAY, status=BidStatus.sent),
        bid_on(TODAY, status=BidStatus.rejected),
    ]
    stats = analytics.dashboard_stats(bids)
    assert stats.total_bids == 4
    assert stats.accepted_bids == 1
    assert stats.accepted_value == 1000.0
    assert stats.pending_bids == 2
    assert stats.win_rate == 25.0


def test_forecast_without_history_uses_defaults():
    forecast = analytics.monthly_forecast([], months=3, today=TODAY)

    assert [month.month for month in forecast.months] == [date(2026, 10, 1), date(2026, 11, 1), date(2026, 12, 1)]
    first = forecast.months[0]
    assert first.confirmed_revenue == 0.0
    assert first.projected_revenue == 5000.0
    assert first.projected_profit == pytest.approx(1000.0)
    assert forecast.total_revenue == pytest.approx(15000.0)


def test_forecast_keeps_confirmed_and_projected_apart():
    accepted = [bid_on(TODAY, amount=1200, margin=25) for _ in range(6)]
    forecast = analytics.monthly_forecast(accepted, months=12, today=TODAY)

    current = forecast.months[0]
    assert current.confirmed_revenue == pytest.approx(7200.0)
    assert current.confirmed_profit == pytest.approx(1800.0)
    assert current.projected_revenue == pytest.approx(1200.0)
    assert current.total_revenue == pytest.approx(8400.0)
    assert current.bid_count == 7

    later = forecast.months[1]
    assert later.confirmed_revenue == 0.0
    assert later.projected_revenue == pytest.approx(1200.0)
    assert forecast.months[-1].month == date(2027, 9, 1)


def test_roi_against_baseline_margin():
    start = date(2026, 7, 19)
    bids = [
        bid_on(date(2026, 9, 1), amount=10000, margin=25),
        bid_on(date(2026, 9, 2), status=BidStatus.rejected),
        bid_on(date(2026, 6, 1), amount=50000, margin=40),
    ]

    report = analytics.roi(bids, start_date=start, today=TODAY)

    assert report.months_since_start == 4
    assert report.total_bids == 2
    assert report.accepted_bids == 1
    assert report.additional_profit_from_margins == pytest.approx(1000.0)
    assert report.time_savings_value == pytest.approx(2000.0)
    assert report.total_app_cost == pytest.approx(116.0)
    assert report.net_gain == pytest.approx(2884.0)
    assert report.roi == pytest.approx(2884.0 / 116.0 * 100)


def test_roi_never_counts_margin_below_baseline():
    report = analytics.roi([bid_on(TODAY, margin=10)], start_date=TODAY, today=TODAY)
    assert report.months_since_start == 1
    assert report.additional_profit_from_margins == 0.0


def test_monthly_trend_covers_start_to_today():
    bids = [bid_on(date(2026, 8, 5), amount=2000, margin=22.25), bid_on(date(2026, 8, 9), status=BidStatus.sent)]
    trend = analytics.monthly_trend(bids, start_date=date(2026, 7, 19), today=TODAY)

    assert [month.month.month for month in trend] == [7, 8, 9, 10]
    august = trend[1]
    assert (august.bids, august.accepted, august.revenue) == (2, 1, 2000.0)
    assert august.margin == 22.2


def test_months_before_clamps_day():
    assert analytics.months_before(date(2026, 5, 31), 3) == date(2026, 2, 28)
    assert analytics.months_before(date(2026, 1, 15), 3) == date(2025, 10, 15)


def test_cash_flow_alerts_are_prioritised():
    bids = [
        bid_on(TODAY - timedelta(days=1), margin=40, id="great"),
        bid_on(TODAY - timedelta(days=10), status=BidStatus.draft, margin=0, id="stale"),
        bid_on(TODAY - timedelta(days=2), status=BidStatus.sent, margin=10, id="thin"),
    ]

    alerts = analytics.cash_flow_alerts(bids, today=TODAY)

    assert [alert.kind for alert in alerts] == ["low_margin", "stagnant_drafts", "excellent_margins"]
    assert alerts[0].bid_ids == ["thin"]
    assert alerts[1].bid_ids == ["stale"]
    assert alerts[2].bid_ids == ["great"]


def test_rejection_and_underbidding_alerts():
    history = [bid_on(TODAY - timedelta(days=90), amount=10000, id=f"old{i}") for i in range(3)]
    recent = [
        bid_on(TODAY - timedelta(days=3), status=BidStatus.rejected, amount=9000, id="r1"),
        bid_on(TODAY - timedelta(days=4), status=BidStatus.rejected, amount=9000, id="r2"),
        bid_on(TODAY - timedelta(days=5), status=BidStatus.sent, amount=2000, id="low"),
    ]

    alerts = analytics.cash_flow_alerts(history + recent, today=TODAY)
    by_kind = {alert.kind: alert for alert in alerts}

    assert by_kind["high_rejection_rate"].priority is analytics.AlertPriority.high
    assert by_kind["high_rejection_rate"].description.startswith("67% of recent bids were rejected")
    assert by_kind["underbidding"].bid_ids == ["low"]
    assert alerts[-1].priority is not analytics.AlertPriority.high
