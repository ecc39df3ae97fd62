"""CloudWatch metric queries with an explicit value / no-data / error result."""

from enum import Enum
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from cost_reporter.schemas.common import DateRange

logger = structlog.get_logger()

DAY_SECONDS = 86400


class MetricStatus(str, Enum):
    """Outcome of a metric query."""

    VALUE = "value"
    NO_DATA = "no_data"  # Backend reachable, no datapoints in range
    ERROR = "error"  # Query failed (transport, auth, throttling)


class MetricResult(BaseModel):
    """Result of a CloudWatch aggregate query."""

    model_config = ConfigDict(frozen=True)

    status: MetricStatus
    value: float | None = None

    @classmethod
    def of(cls, value: float) -> "MetricResult":
        return cls(status=MetricStatus.VALUE, value=value)

    @classmethod
    def no_data(cls) -> "MetricResult":
        return cls(status=MetricStatus.NO_DATA)

    @classmethod
    def error(cls) -> "MetricResult":
        return cls(status=MetricStatus.ERROR)

    @property
    def is_conclusive(self) -> bool:
        return self.status is MetricStatus.VALUE

    @property
    def is_zero(self) -> bool:
        """Confirmed zero: at least one datapoint and an aggregate of exactly 0."""
        return self.is_conclusive and self.value == 0

    def below(self, threshold: float) -> bool:
        """True only for a conclusive value strictly below ``threshold``."""
        return self.is_conclusive and self.value < threshold


class MetricGateway:
    """
    Issues daily-granularity GetMetricStatistics queries for one region.

    The queried window ends one day after the range end so that datapoints for
    the last day of the range (which CloudWatch publishes late) are included.
    Failures never propagate: they are logged and returned as ``ERROR``.
    """

    def __init__(self, client: Any, region: str) -> None:
        """
        Initialize metric gateway.

        Args:
            client: aioboto3 CloudWatch client (owned by the caller)
            region: AWS region of the client, for log context
        """
        self.client = client
        self.region = region

    async def query_average(
        self,
        namespace: str,
        metric_name: str,
        dimensions: dict[str, str],
        date_range: DateRange,
    ) -> MetricResult:
        """Mean of the daily averages over the range."""
        return await self._query("Average", namespace, metric_name, dimensions, date_range)

    async def query_sum(
        self,
        namespace: str,
        metric_name: str,
        dimensions: dict[str, str],
        date_range: DateRange,
    ) -> MetricResult:
        """Sum of the daily sums over the range."""
        return await self._query("Sum", namespace, metric_name, dimensions, date_range)

    async def _query(
        self,
        statistic: str,
        namespace: str,
        metric_name: str,
        dimensions: dict[str, str],
        date_range: DateRange,
    ) -> MetricResult:
        window = date_range.extended(days=1)
        try:
            response = await self.client.get_metric_statistics(
                Namespace=namespace,
                MetricName=metric_name,
                Dimensions=[{"Name": name, "Value": value} for name, value in dimensions.items()],
                StartTime=window.start_datetime,
                EndTime=window.end_datetime,
                Period=DAY_SECONDS,
                Statistics=[statistic],
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "metrics.query_failed",
                region=self.region,
                namespace=namespace,
                metric=metric_name,
                dimensions=dimensions,
                error=str(e),
            )
            return MetricResult.error()

        datapoints = response.get("Datapoints", [])
        if not datapoints:
            return MetricResult.no_data()

        total = sum(dp.get(statistic, 0.0) for dp in datapoints)
        if statistic == "Sum":
            return MetricResult.of(total)
        # Simple mean of daily means, not weighted by sample count
        return MetricResult.of(total / len(datapoints))
