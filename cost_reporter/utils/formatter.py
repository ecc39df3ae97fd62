"""Number and text formatting for Slack reports."""


def format_currency(amount: float) -> str:
    """
    Format a USD amount with thousands separators and two decimals.

    Example: 1234.5 -> "$1,234.50", -3 -> "-$3.00"
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_percent_change(current: float, previous: float) -> float:
    """Percent change from ``previous`` to ``current`` (100 when growing from zero)."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def format_percent_display(percent: float) -> str:
    """Signed percentage with one decimal, e.g. "+12.3%"."""
    sign = "+" if percent >= 0 else ""
    return f"{sign}{percent:.1f}%"


def truncate_service_name(name: str, max_length: int = 25) -> str:
    """Shorten long names for table cells, marking the cut with '...'."""
    if len(name) <= max_length:
        return name
    return name[: max_length - 3] + "..."
