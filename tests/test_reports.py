"""
Tests for date ranges, reports and the dashboard.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from tailorbook.queries import (
    DateRangePreset,
    ReportBuilder,
    date_range_label,
    days_overdue,
    resolve_date_range,
)
from tailorbook.models import OrderStatus


NOW = datetime(2024, 3, 20, 15, 45)


class TestDateRanges:
    """Tests for resolving range presets."""

    def test_today(self):
        """Test that today runs midnight to end of day."""
        rng = resolve_date_range("today", now=NOW)
        assert rng.start == datetime(2024, 3, 20)
        assert rng.end.date() == date(2024, 3, 20)
        assert rng.end.hour == 23

    def test_yesterday(self):
        """Test yesterday bounds."""
        rng = resolve_date_range(DateRangePreset.YESTERDAY, now=NOW)
        assert rng.start == datetime(2024, 3, 19)
        assert rng.end.date() == date(2024, 3, 19)

    def test_last_seven_days(self):
        """Test that 7d starts seven days back at midnight."""
        rng = resolve_date_range("7d", now=NOW)
        assert rng.start == datetime(2024, 3, 13)
        assert rng.end.date() == date(2024, 3, 20)

    def test_month_clamps_to_short_month(self):
        """Test that one month back from 31 March lands on 29 February."""
        rng = resolve_date_range("month", now=datetime(2024, 3, 31))
        assert rng.start == datetime(2024, 2, 29)

    def test_month_crosses_year(self):
        """Test that one month back from January is December."""
        rng = resolve_date_range("month", now=datetime(2024, 1, 15))
        assert rng.start == datetime(2023, 12, 15)

    def test_custom_range(self):
        """Test that a custom range covers both days in full."""
        rng = resolve_date_range("custom", now=NOW, start=date(2024, 1, 1), end=date(2024, 1, 31))
        assert rng.start == datetime(2024, 1, 1)
        assert rng.end.date() == date(2024, 1, 31)

    def test_incomplete_custom_falls_back_to_today(self):
        """Test that a custom range missing an end date means today."""
        rng = resolve_date_range("custom", now=NOW, start=date(2024, 1, 1))
        assert rng.start == datetime(2024, 3, 20)

    def test_all_time_is_open(self):
        """Test that the all preset has no bounds."""
        rng = resolve_date_range("all", now=NOW)
        assert rng.start is None and rng.end is None

    def test_unknown_preset(self):
        """Test that an unknown preset is rejected."""
        with pytest.raises(ValueError):
            resolve_date_range("fortnight", now=NOW)

    def test_labels(self):
        """Test range labels for display."""
        assert date_range_label(date(2024, 3, 1), date(2024, 3, 1)) == "on 01 Mar 2024"
        assert date_range_label(date(2024, 3, 1), date(2024, 3, 20)) == "from 01 Mar to 20 Mar 2024"
        assert date_range_label(None, None) == "all time"


class TestReports:
    """Tests for report figures per user."""

    def test_admin_month_report(self, ready_state):
        """Test shop-wide figures for an admin."""
        report = ReportBuilder().build_report(
            ready_state.current_user,
            ready_state.collections,
            resolve_date_range("month", now=NOW),
        )
        summary = report.summary

        assert summary.revenue == Decimal("8000")
        assert summary.collections == Decimal("1500")
        assert summary.expenses == Decimal("700")
        assert summary.net_flow == Decimal("800")
        assert report.worker_payables == Decimal("800")
        assert report.estimated_net_profit == Decimal("0")
        assert report.pending_orders == 2
        assert report.delivered_orders == 0

    def test_no_report_permission_is_empty(self, ready_state):
        """Test that a user without report rights gets zeros, not an error."""
        sara = next(u for u in ready_state.users if u.id == "U-sara")
        report = ReportBuilder().build_report(
            sara, ready_state.collections, resolve_date_range("all", now=NOW)
        )
        assert report.summary.revenue == Decimal("0")
        assert report.worker_payables == Decimal("0")

    def test_own_scope_report(self, ready_state):
        """Test that an own-scope report only counts the worker's orders."""
        sara = next(u for u in ready_state.users if u.id == "U-sara")
        sara.permissions = ["view_own_orders", "view_own_reports"]
        report = ReportBuilder().build_report(
            sara, ready_state.collections, resolve_date_range("all", now=NOW)
        )

        assert report.summary.revenue == Decimal("3000")
        assert report.summary.collections == Decimal("500")
        assert report.summary.expenses == Decimal("0")
        assert report.worker_payables == Decimal("500")

    def test_report_outside_range(self, ready_state):
        """Test that orders outside the range are left out."""
        report = ReportBuilder().build_report(
            ready_state.current_user,
            ready_state.collections,
            resolve_date_range("today", now=NOW),
        )
        assert report.summary.order_count == 0
        assert report.period_label == "on 20 Mar 2024"


class TestDashboard:
    """Tests for the dashboard snapshot."""

    def test_counts_and_receivables(self, ready_state):
        """Test status counts and outstanding dues."""
        ready_state.orders[0].delivery_date = date(2024, 3, 15)
        dashboard = ReportBuilder().build_dashboard(
            ready_state.current_user, ready_state.collections, today=date(2024, 3, 20)
        )

        assert dashboard.status_counts["Booked"] == 2
        assert dashboard.status_counts["Delivered"] == 0
        assert dashboard.orders_with_dues == 2
        assert dashboard.total_receivable == Decimal("6500")
        assert [(o.order_id, o.days_overdue) for o in dashboard.overdue] == [("O-1", 5)]

    def test_delivered_orders_are_never_overdue(self, make_order):
        """Test that a delivered order has no overdue days."""
        order = make_order(status=OrderStatus.DELIVERED, delivery_date=date(2024, 1, 1))
        assert days_overdue(order, date(2024, 3, 1)) == 0

    def test_dashboard_needs_permission(self, ready_state, make_user):
        """Test that a user without view_dashboard sees an empty dashboard."""
        user = make_user(name="Guest", role="Visitor")
        dashboard = ReportBuilder().build_dashboard(user, ready_state.collections)
        assert dashboard.status_counts == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
