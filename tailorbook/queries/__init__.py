"""Reports package."""

from tailorbook.queries.reports import (
    Dashboard,
    DateRange,
    DateRangePreset,
    OverdueOrder,
    ReportBuilder,
    ShopReport,
    date_range_label,
    days_overdue,
    resolve_date_range,
)

__all__ = [
    "Dashboard",
    "DateRange",
    "DateRangePreset",
    "OverdueOrder",
    "ReportBuilder",
    "ShopReport",
    "date_range_label",
    "days_overdue",
    "resolve_date_range",
]
