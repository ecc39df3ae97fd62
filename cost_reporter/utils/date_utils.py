"""Date range helpers for cost reports."""

import calendar
from datetime import date, datetime, timedelta, timezone

from cost_reporter.schemas.common import DateRange


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def get_week_date_range(today: date | None = None) -> DateRange:
    """The last seven days, ending today (Cost Explorer end dates are exclusive)."""
    end = today or utc_today()
    return DateRange(start=end - timedelta(days=7), end=end)


def get_previous_week_date_range(today: date | None = None) -> DateRange:
    """The seven days before the current week range."""
    end = (today or utc_today()) - timedelta(days=7)
    return DateRange(start=end - timedelta(days=7), end=end)


def get_month_to_date_range(today: date | None = None) -> DateRange:
    """From the first day of the current month until today."""
    end = today or utc_today()
    return DateRange(start=end.replace(day=1), end=end)


def get_forecast_date_range(today: date | None = None) -> DateRange:
    """From today until the last day of the current month."""
    start = today or utc_today()
    last_day = calendar.monthrange(start.year, start.month)[1]
    return DateRange(start=start, end=start.replace(day=last_day))


def format_date_display(value: date | str) -> str:
    """
    Format a date for humans.

    Example: date(2025, 1, 5) or "2025-01-05" -> "Jan 5, 2025"
    """
    if isinstance(value, str):
        value = date.fromisoformat(value)
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def get_current_month_name(today: date | None = None) -> str:
    """English month name, e.g. 'January'."""
    return calendar.month_name[(today or utc_today()).month]


def get_current_year(today: date | None = None) -> int:
    return (today or utc_today()).year
