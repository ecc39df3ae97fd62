"""AWS Lambda entry point for the weekly and monthly cost reports."""

import asyncio
import json
import os
from datetime import date
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_reporter.core.config import settings
from cost_reporter.core.logging import configure_logging
from cost_reporter.schemas.account import AccountIdentity
from cost_reporter.schemas.report import MonthlyReportData, ReportType, WeeklyReportData
from cost_reporter.services.accounts import (
    get_account_id,
    get_configured_accounts,
    should_use_organization_mode,
)
from cost_reporter.services.cost_explorer import get_cost_forecast, get_costs
from cost_reporter.services.slack import send_monthly_report, send_weekly_report
from cost_reporter.services.unused_resources import Deadline, detect_unused_resources
from cost_reporter.utils.date_utils import (
    get_current_month_name,
    get_current_year,
    get_forecast_date_range,
    get_month_to_date_range,
    get_previous_week_date_range,
    get_week_date_range,
)
from cost_reporter.utils.formatter import format_percent_change

configure_logging()
logger = structlog.get_logger()

UNKNOWN_ACCOUNT_ID = "unknown"

# Initialize Sentry for error tracking
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.aws_lambda import AwsLambdaIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[AwsLambdaIntegration()],
        send_default_pii=False,
        release=f"cost-reporter@{os.getenv('GIT_COMMIT', 'dev')}",
    )
    logger.info("sentry.initialized", environment=settings.SENTRY_ENVIRONMENT)


def _organization_accounts() -> dict[str, AccountIdentity] | None:
    if not should_use_organization_mode():
        return None
    return get_configured_accounts()


async def _resolve_account_id() -> str | None:
    """
    Caller's account id, or None when STS is unavailable.

    The cost report still goes out without it; the resource scan retries the
    lookup itself and reports a degraded scan if it fails again.
    """
    try:
        return await get_account_id()
    except (ClientError, BotoCoreError) as e:
        logger.warning("report.caller_identity_failed", error_type=type(e).__name__, error=str(e))
        return None


async def generate_weekly_report(
    deadline: Deadline | None = None, today: date | None = None
) -> WeeklyReportData:
    """Fetch this week's and last week's costs, scan for unused resources and send to Slack."""
    current_range = get_week_date_range(today)
    previous_range = get_previous_week_date_range(today)
    accounts = _organization_accounts()
    account_id = await _resolve_account_id()

    current_week, previous_week, unused = await asyncio.gather(
        get_costs(current_range, include_forecasts=True, accounts=accounts),
        get_costs(previous_range, accounts=accounts),
        detect_unused_resources(
            current_range,
            own_account_id=account_id,
            accounts=accounts,
            organization_mode=bool(accounts),
            deadline=deadline,
        ),
    )
    current_week.unused = unused

    percent_change = format_percent_change(current_week.total_cost, previous_week.total_cost)
    report = WeeklyReportData(
        current_week=current_week,
        previous_week=previous_week,
        percent_change=percent_change,
        is_anomaly=percent_change > settings.ANOMALY_THRESHOLD,
        account_id=account_id or UNKNOWN_ACCOUNT_ID,
        is_organization_mode=bool(accounts),
    )

    logger.info(
        "report.weekly_ready",
        total_cost=round(current_week.total_cost, 2),
        previous_cost=round(previous_week.total_cost, 2),
        percent_change=round(percent_change, 1),
        is_anomaly=report.is_anomaly,
        unused_found=len(unused.resources),
        scan_errors=unused.error_count,
    )
    await send_weekly_report(report)
    logger.info("report.weekly_sent")
    return report


async def generate_monthly_report(
    deadline: Deadline | None = None, today: date | None = None
) -> MonthlyReportData:
    """Fetch month-to-date costs and forecast, scan for unused resources and send to Slack."""
    month_to_date_range = get_month_to_date_range(today)
    forecast_range = get_forecast_date_range(today)
    accounts = _organization_accounts()
    account_id = await _resolve_account_id()

    month_to_date, forecast, unused = await asyncio.gather(
        get_costs(month_to_date_range, accounts=accounts),
        get_cost_forecast(forecast_range, today=today),
        detect_unused_resources(
            month_to_date_range,
            own_account_id=account_id,
            accounts=accounts,
            organization_mode=bool(accounts),
            deadline=deadline,
        ),
    )
    month_to_date.unused = unused

    forecasted_total = month_to_date.total_cost + forecast
    report = MonthlyReportData(
        month_to_date=month_to_date,
        forecast=forecast,
        budget=settings.MONTHLY_BUDGET,
        is_over_budget=forecasted_total > settings.MONTHLY_BUDGET,
        month=get_current_month_name(today),
        year=get_current_year(today),
        account_id=account_id or UNKNOWN_ACCOUNT_ID,
        is_organization_mode=bool(accounts),
    )

    logger.info(
        "report.monthly_ready",
        month_to_date=round(month_to_date.total_cost, 2),
        forecast=round(forecast, 2),
        budget=settings.MONTHLY_BUDGET,
        is_over_budget=report.is_over_budget,
        unused_found=len(unused.resources),
        scan_errors=unused.error_count,
    )
    await send_monthly_report(report)
    logger.info("report.monthly_sent")
    return report


async def generate_report(report_type: ReportType, deadline: Deadline | None = None) -> None:
    """
    Generate and send one report.

    Raises:
        ValueError: If the report type is unknown
    """
    if report_type == "weekly":
        await generate_weekly_report(deadline)
    elif report_type == "monthly":
        await generate_monthly_report(deadline)
    else:
        raise ValueError(f"Unknown report type: {report_type}")


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler.

    Args:
        event: {"type": "weekly" | "monthly"} from the EventBridge schedule
        context: Lambda context (remaining time bounds the resource scan)

    Returns:
        API Gateway style response
    """
    report_type = (event or {}).get("type")
    request_id = getattr(context, "aws_request_id", None)
    structlog.contextvars.bind_contextvars(report_type=report_type, request_id=request_id)
    logger.info("report.invoked", payload=event)

    try:
        deadline = Deadline.from_lambda_context(context)
        asyncio.run(generate_report(report_type, deadline))
    except Exception as e:
        logger.error("report.failed", error_type=type(e).__name__, error=str(e), exc_info=True)
        raise
    finally:
        structlog.contextvars.clear_contextvars()

    return {
        "statusCode": 200,
        "body": json.dumps({"message": f"{report_type} report generated successfully"}),
    }
