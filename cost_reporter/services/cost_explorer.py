"""AWS Cost Explorer queries."""

from datetime import date

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_reporter.core.config import settings
from cost_reporter.providers.session import SessionFactory, build_session, client_config
from cost_reporter.schemas.account import AccountIdentity
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.report import CostData, ServiceCost
from cost_reporter.utils.date_utils import utc_today

logger = structlog.get_logger()

FORECAST_DAYS = 30  # Per-service forecast horizon (daily average projected forward)


def _group_by(organization_mode: bool) -> list[dict[str, str]]:
    second_key = "LINKED_ACCOUNT" if organization_mode else "REGION"
    return [
        {"Type": "DIMENSION", "Key": "SERVICE"},
        {"Type": "DIMENSION", "Key": second_key},
    ]


async def get_costs(
    date_range: DateRange,
    include_forecasts: bool = False,
    accounts: dict[str, AccountIdentity] | None = None,
    session_factory: SessionFactory = build_session,
) -> CostData:
    """
    Get unblended costs grouped by service.

    Single-account mode groups by SERVICE and REGION. When ``accounts`` is
    given (organization mode) costs are grouped by SERVICE and LINKED_ACCOUNT
    instead, and account names are resolved from the mapping.

    Args:
        date_range: Period to query (end date exclusive, as Cost Explorer expects)
        include_forecasts: Add a 30-day projection per service from its daily average
        accounts: Configured organization accounts, or None for single-account mode
        session_factory: Builds the ambient aioboto3 session

    Returns:
        CostData with the total and the top TOP_SERVICES_COUNT services by cost

    Raises:
        ClientError: If Cost Explorer rejects the query
    """
    organization_mode = bool(accounts)
    cost_data = CostData(
        total_cost=0.0,
        start_date=date_range.start.isoformat(),
        end_date=date_range.end.isoformat(),
        is_organization_mode=organization_mode,
        account_count=len(accounts) if accounts else None,
    )
    if date_range.start == date_range.end:
        # Empty period (e.g., month-to-date on the 1st); Cost Explorer rejects start == end
        return cost_data

    service_costs: list[ServiceCost] = []
    total_cost = 0.0
    days_in_period = date_range.days

    session = session_factory(None)
    async with session.client("ce", region_name=settings.AWS_REGION, config=client_config()) as ce:
        request = {
            "TimePeriod": {
                "Start": date_range.start.isoformat(),
                "End": date_range.end.isoformat(),
            },
            "Granularity": "MONTHLY",
            "Metrics": ["UnblendedCost"],
            "GroupBy": _group_by(organization_mode),
        }

        while True:
            response = await ce.get_cost_and_usage(**request)

            for result in response.get("ResultsByTime", []):
                for group in result.get("Groups", []):
                    keys = group.get("Keys", [])
                    service_name = keys[0] if keys else "Unknown"
                    second_key = keys[1] if len(keys) > 1 else None
                    cost = float(group.get("Metrics", {}).get("UnblendedCost", {}).get("Amount", "0"))
                    if cost <= 0:
                        continue

                    service_cost = ServiceCost(service=service_name, cost=cost)
                    if organization_mode:
                        account = accounts.get(second_key) if second_key else None
                        service_cost.account_id = second_key
                        service_cost.account_name = account.name if account else second_key
                    else:
                        service_cost.region = second_key or "global"

                    if include_forecasts:
                        service_cost.forecast = cost / days_in_period * FORECAST_DAYS

                    service_costs.append(service_cost)
                    total_cost += cost

            next_token = response.get("NextPageToken")
            if not next_token:
                break
            request["NextPageToken"] = next_token

    service_costs.sort(key=lambda s: s.cost, reverse=True)
    cost_data.total_cost = total_cost
    cost_data.top_services = service_costs[: settings.TOP_SERVICES_COUNT]

    logger.info(
        "cost_explorer.costs_fetched",
        start=cost_data.start_date,
        end=cost_data.end_date,
        total_cost=round(total_cost, 2),
        services=len(service_costs),
        organization_mode=organization_mode,
    )
    return cost_data


async def get_cost_forecast(
    date_range: DateRange,
    today: date | None = None,
    session_factory: SessionFactory = build_session,
) -> float:
    """
    Forecast unblended cost for the rest of the range.

    Cost Explorer only forecasts from today onwards, so the start is clamped
    to today. Returns 0 when nothing is left to forecast or the forecast
    is unavailable (e.g., not enough history).
    """
    today = today or utc_today()
    start = max(date_range.start, today)
    if start >= date_range.end:
        return 0.0

    session = session_factory(None)
    try:
        async with session.client(
            "ce", region_name=settings.AWS_REGION, config=client_config()
        ) as ce:
            response = await ce.get_cost_forecast(
                TimePeriod={"Start": start.isoformat(), "End": date_range.end.isoformat()},
                Metric="UNBLENDED_COST",
                Granularity="MONTHLY",
            )
    except (ClientError, BotoCoreError) as e:
        logger.warning("cost_explorer.forecast_failed", start=str(start), error=str(e))
        return 0.0

    return float(response.get("Total", {}).get("Amount", "0"))
