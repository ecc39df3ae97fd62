"""Cost report Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from cost_reporter.schemas.resource import ScanOutcome

ReportType = Literal["weekly", "monthly"]


class ServiceCost(BaseModel):
    """Cost of one service (optionally per region or linked account)."""

    service: str
    cost: float
    forecast: float | None = None
    region: str | None = None
    account_id: str | None = None
    account_name: str | None = None


class CostData(BaseModel):
    """Cost Explorer results for one date range."""

    total_cost: float
    top_services: list[ServiceCost] = Field(default_factory=list)
    start_date: str
    end_date: str
    unused: ScanOutcome | None = None
    is_organization_mode: bool = False
    account_count: int | None = None


class WeeklyReportData(BaseModel):
    """Schema for the weekly cost report."""

    current_week: CostData
    previous_week: CostData
    percent_change: float
    is_anomaly: bool
    account_id: str
    is_organization_mode: bool = False


class MonthlyReportData(BaseModel):
    """Schema for the monthly cost forecast."""

    month_to_date: CostData
    forecast: float
    budget: float
    is_over_budget: bool
    month: str
    year: int
    account_id: str
    is_organization_mode: bool = False
