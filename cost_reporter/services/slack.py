"""Slack Block Kit report builders and webhook delivery."""

from datetime import date
from typing import Any

import httpx
import structlog

from cost_reporter.core.config import settings
from cost_reporter.schemas.report import MonthlyReportData, ServiceCost, WeeklyReportData
from cost_reporter.schemas.resource import ScanOutcome, UnusedResource
from cost_reporter.utils.date_utils import format_date_display
from cost_reporter.utils.formatter import (
    format_currency,
    format_percent_display,
    truncate_service_name,
)

logger = structlog.get_logger()

SlackBlock = dict[str, Any]
SlackMessage = dict[str, list[SlackBlock]]


class SlackDeliveryError(Exception):
    """Slack webhook rejected the message or is not configured."""

    pass


def format_region(region: str | None) -> str:
    if not region or region == "global":
        return "Global"
    return region


def text_cell(text: str, bold: bool = False) -> dict[str, Any]:
    """Rich text cell for a Block Kit table."""
    element: dict[str, Any] = {"type": "text", "text": text}
    if bold:
        element["style"] = {"bold": True}
    return {
        "type": "rich_text",
        "elements": [{"type": "rich_text_section", "elements": [element]}],
    }


def table_row(cells: list[str], bold: bool = False) -> list[dict[str, Any]]:
    return [text_cell(cell, bold) for cell in cells]


def mrkdwn_section(text: str) -> SlackBlock:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def mrkdwn_fields(*texts: str) -> SlackBlock:
    return {"type": "section", "fields": [{"type": "mrkdwn", "text": t} for t in texts]}


def context_block(text: str) -> SlackBlock:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": text}]}


def header_block(text: str) -> SlackBlock:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def share_of(cost: float, total: float) -> str:
    if total <= 0:
        return "-"
    return f"{cost / total * 100:.1f}%"


def trend_label(current: float, previous: float) -> str:
    """Week-over-week trend of one service; NEW when it was not in last week's top list."""
    if previous <= 0:
        return "NEW"
    change = (current - previous) / previous * 100
    if change > 0:
        return f"↑+{change:.0f}%"
    if change < 0:
        return f"↓{change:.0f}%"
    return "→0%"


def build_weekly_service_table(
    current_services: list[ServiceCost],
    previous_services: list[ServiceCost],
    total_cost: float,
    is_organization_mode: bool = False,
) -> SlackBlock:
    """Top services table with forecast, share of total and trend vs. last week."""
    previous_costs = {(s.service, s.account_id or ""): s.cost for s in previous_services}

    header = ["#", "Service", "Cost", "Forecast", "Share", "Trend"]
    header += ["Account ID", "Region"] if is_organization_mode else ["Region"]
    rows = [table_row(header, bold=True)]

    for index, s in enumerate(current_services, start=1):
        previous = previous_costs.get((s.service, s.account_id or ""), 0.0)
        cells = [
            str(index),
            truncate_service_name(s.service, 25),
            format_currency(s.cost),
            format_currency(s.forecast) if s.forecast else "-",
            share_of(s.cost, total_cost),
            trend_label(s.cost, previous),
        ]
        if is_organization_mode:
            cells.append(s.account_id or "-")
        cells.append(format_region(s.region))
        rows.append(table_row(cells))

    return {"type": "table", "rows": rows}


def build_monthly_service_table(
    services: list[ServiceCost],
    total_cost: float,
    days_elapsed: int,
    budget: float,
    is_organization_mode: bool = False,
) -> SlackBlock:
    """Top services table with daily average, share of total and share of budget."""
    header = ["#", "Service", "Cost", "Daily Avg", "Share", "Budget%"]
    header += ["Account ID", "Region"] if is_organization_mode else ["Region"]
    rows = [table_row(header, bold=True)]

    for index, s in enumerate(services, start=1):
        cells = [
            str(index),
            truncate_service_name(s.service, 25),
            format_currency(s.cost),
            format_currency(s.cost / max(1, days_elapsed)),
            share_of(s.cost, total_cost),
            share_of(s.cost, budget),
        ]
        if is_organization_mode:
            cells.append(s.account_id or "-")
        cells.append(format_region(s.region))
        rows.append(table_row(cells))

    return {"type": "table", "rows": rows}


def build_unused_resources_table(
    resources: list[UnusedResource], is_organization_mode: bool = False
) -> SlackBlock:
    """Unused resources table, capped at UNUSED_SERVICES_COUNT rows."""
    header = ["#", "Service", "Resource", "Region", "Reason"]
    if is_organization_mode:
        header.append("Account ID")
    rows = [table_row(header, bold=True)]

    for index, r in enumerate(resources[: settings.UNUSED_SERVICES_COUNT], start=1):
        cells = [
            str(index),
            r.service,
            truncate_service_name(r.resource_name or r.resource_id, 25),
            format_region(r.region),
            r.reason,
        ]
        if is_organization_mode:
            cells.append(r.account_id or "-")
        rows.append(table_row(cells))

    return {"type": "table", "rows": rows}


def build_unused_resources_section(
    outcome: ScanOutcome | None, is_organization_mode: bool = False
) -> list[SlackBlock]:
    """
    Blocks describing the unused resource scan.

    A degraded scan (at least one checker, region or account failed) gets an
    explicit notice so that an empty result is not read as "all clear".
    """
    outcome = outcome or ScanOutcome()
    blocks: list[SlackBlock] = [{"type": "divider"}]

    if outcome.degraded:
        blocks.append(
            context_block(
                f":warning: _Scan degraded: {outcome.error_count} check"
                f"{'s' if outcome.error_count != 1 else ''} failed "
                "(API errors, unreachable accounts or timeouts). Results may be incomplete._"
            )
        )

    if not outcome.resources:
        if outcome.degraded:
            blocks.append(mrkdwn_section("*:grey_question: Resource Utilization Check*"))
            blocks.append(
                context_block("_No idle or unused resources found in the parts that could be scanned._")
            )
        else:
            blocks.append(mrkdwn_section("*:white_check_mark: Resource Utilization Check*"))
            blocks.append(
                context_block(
                    "_No idle or unused resources detected across all regions. "
                    "All resources appear to be actively utilized._"
                )
            )
        return blocks

    count = len(outcome.resources)
    blocks.append(mrkdwn_section("*:warning: Potentially Unused Resources (Charged but Idle)*"))
    blocks.append(build_unused_resources_table(outcome.resources, is_organization_mode))
    blocks.append(
        context_block(
            f"_Found {count} potentially unused resource{'s' if count > 1 else ''}. "
            "Consider reviewing these to reduce costs._"
        )
    )
    return blocks


def build_unused_resources_message(
    outcome: ScanOutcome | None, is_organization_mode: bool = False
) -> SlackMessage:
    return {
        "blocks": [
            header_block("AWS Unused Resources Report"),
            *build_unused_resources_section(outcome, is_organization_mode),
        ]
    }


def _organization_context(is_organization_mode: bool, account_count: int | None) -> list[SlackBlock]:
    if not (is_organization_mode and account_count):
        return []
    return [
        context_block(
            f":office: _Organization Mode: Costs aggregated across {account_count} linked accounts_"
        )
    ]


def build_weekly_report_message(data: WeeklyReportData) -> SlackMessage:
    """Weekly cost report: totals, week-over-week change and top services."""
    current = data.current_week
    change_emoji = (
        ":chart_with_upwards_trend:" if data.percent_change >= 0 else ":chart_with_downwards_trend:"
    )

    blocks: list[SlackBlock] = [
        header_block("AWS Weekly Cost Report"),
        mrkdwn_fields(
            f"*Account:*\n{data.account_id}",
            f"*Period:*\n{format_date_display(current.start_date)} - "
            f"{format_date_display(current.end_date)}",
        ),
        mrkdwn_fields(
            f"*Total Spend:*\n{format_currency(current.total_cost)}",
            f"*Previous Week:*\n{format_currency(data.previous_week.total_cost)}",
        ),
        mrkdwn_section(
            f"*Week-over-Week Change:* {change_emoji} {format_percent_display(data.percent_change)}"
        ),
    ]

    if data.is_anomaly:
        blocks.append(
            mrkdwn_section(
                ":warning: *Anomaly Detected:* Spending increased significantly compared to last week!"
            )
        )

    blocks.append({"type": "divider"})
    blocks.append(mrkdwn_section("*:bar_chart: Top Services Breakdown*"))
    blocks.extend(_organization_context(data.is_organization_mode, current.account_count))

    if current.top_services:
        blocks.append(
            build_weekly_service_table(
                current.top_services,
                data.previous_week.top_services,
                current.total_cost,
                data.is_organization_mode,
            )
        )
        blocks.append(
            context_block(
                "_Forecast = projected monthly cost | Trend = vs last week | "
                "NEW = not in top last week_"
            )
        )

    return {"blocks": blocks}


def build_monthly_report_message(data: MonthlyReportData) -> SlackMessage:
    """Monthly forecast: month-to-date spend, forecasted total and budget status."""
    mtd = data.month_to_date
    forecasted_total = mtd.total_cost + data.forecast
    over = forecasted_total > data.budget
    budget_status = "Over Budget" if over else "On Track"
    budget_emoji = ":x:" if over else ":white_check_mark:"
    budget_used = share_of(mtd.total_cost, data.budget)

    days_elapsed = max(
        1, (date.fromisoformat(mtd.end_date) - date.fromisoformat(mtd.start_date)).days
    )

    blocks: list[SlackBlock] = [
        header_block("AWS Monthly Cost Forecast"),
        mrkdwn_fields(f"*Account:*\n{data.account_id}", f"*Month:*\n{data.month} {data.year}"),
        mrkdwn_fields(
            f"*Month-to-Date:*\n{format_currency(mtd.total_cost)}",
            f"*Forecasted Total:*\n{format_currency(forecasted_total)}",
        ),
        mrkdwn_fields(
            f"*Budget:*\n{format_currency(data.budget)}",
            f"*Budget Used:*\n{budget_used}",
        ),
        mrkdwn_fields(
            f"*Days Elapsed:*\n{days_elapsed} days",
            f"*Budget Status:*\n{budget_emoji} {budget_status}",
        ),
    ]

    if data.is_over_budget:
        blocks.append(
            mrkdwn_section(
                ":rotating_light: *Warning:* Forecasted spending exceeds the monthly budget!"
            )
        )

    blocks.append({"type": "divider"})
    blocks.append(mrkdwn_section("*:bar_chart: Top Services Breakdown*"))
    blocks.extend(_organization_context(data.is_organization_mode, mtd.account_count))

    if mtd.top_services:
        blocks.append(
            build_monthly_service_table(
                mtd.top_services,
                mtd.total_cost,
                days_elapsed,
                data.budget,
                data.is_organization_mode,
            )
        )
        blocks.append(
            context_block(
                "_Daily Avg = cost/day | Share = % of total | Budget% = % of monthly budget_"
            )
        )

    return {"blocks": blocks}


async def send_slack_message(
    message: SlackMessage,
    webhook_url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """
    Post a message to the Slack incoming webhook.

    Args:
        message: Block Kit payload
        webhook_url: Webhook URL (defaults to settings.SLACK_WEBHOOK_URL)
        client: Existing HTTP client to reuse

    Raises:
        SlackDeliveryError: If no webhook is configured or Slack returns non-2xx
    """
    url = webhook_url or settings.SLACK_WEBHOOK_URL
    if not url:
        raise SlackDeliveryError("SLACK_WEBHOOK_URL is not set")

    if client is None:
        async with httpx.AsyncClient(timeout=settings.SLACK_TIMEOUT_SECONDS) as owned_client:
            response = await owned_client.post(url, json=message)
    else:
        response = await client.post(url, json=message)

    if response.is_success:
        return

    logger.error(
        "slack.delivery_failed",
        status_code=response.status_code,
        response_body=response.text,
        block_count=len(message.get("blocks", [])),
    )
    raise SlackDeliveryError(f"Slack API returned status {response.status_code}: {response.text}")


async def send_weekly_report(data: WeeklyReportData, client: httpx.AsyncClient | None = None) -> None:
    """Send the weekly cost report followed by the unused resources report."""
    await send_slack_message(build_weekly_report_message(data), client=client)
    await send_slack_message(
        build_unused_resources_message(data.current_week.unused, data.is_organization_mode),
        client=client,
    )


async def send_monthly_report(
    data: MonthlyReportData, client: httpx.AsyncClient | None = None
) -> None:
    """Send the monthly forecast followed by the unused resources report."""
    await send_slack_message(build_monthly_report_message(data), client=client)
    await send_slack_message(
        build_unused_resources_message(data.month_to_date.unused, data.is_organization_mode),
        client=client,
    )
