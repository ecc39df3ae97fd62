"""Tests for the CloudWatch metric gateway."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import EndpointConnectionError

from cost_reporter.providers.metrics import MetricGateway, MetricResult, MetricStatus


class TestMetricResult:
    """Test suite for tri-state metric results."""

    def test_no_data_is_never_zero_or_below(self):
        result = MetricResult.no_data()

        assert not result.is_conclusive
        assert not result.is_zero
        assert not result.below(5)

    def test_error_is_never_zero_or_below(self):
        result = MetricResult.error()

        assert not result.is_zero
        assert not result.below(1000)

    def test_value_comparisons(self):
        assert MetricResult.of(0).is_zero
        assert MetricResult.of(2.0).below(5)
        assert not MetricResult.of(5.0).below(5)
        assert not MetricResult.of(0.5).is_zero


class TestMetricGateway:
    """Test suite for MetricGateway queries."""

    @pytest.mark.asyncio
    async def test_average_is_mean_of_daily_averages(self, cloudwatch, date_range):
        cw = cloudwatch({"CPUUtilization": [1.0, 2.0, 3.0]})
        gateway = MetricGateway(cw, "us-east-1")

        result = await gateway.query_average(
            "AWS/EC2", "CPUUtilization", {"InstanceId": "i-1"}, date_range
        )

        assert result.status is MetricStatus.VALUE
        assert result.value == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_sum_adds_daily_sums(self, cloudwatch, date_range):
        cw = cloudwatch({"RequestCount": [10.0, 0.0, 5.0]})
        gateway = MetricGateway(cw, "us-east-1")

        result = await gateway.query_sum(
            "AWS/ApplicationELB", "RequestCount", {"LoadBalancer": "app/x/1"}, date_range
        )

        assert result.value == 15.0

    @pytest.mark.asyncio
    async def test_empty_datapoints_is_no_data(self, cloudwatch, date_range):
        gateway = MetricGateway(cloudwatch({}), "us-east-1")

        result = await gateway.query_sum("AWS/EBS", "VolumeReadOps", {"VolumeId": "v"}, date_range)

        assert result.status is MetricStatus.NO_DATA

    @pytest.mark.asyncio
    async def test_client_error_is_error(self, cloudwatch, client_error, date_range):
        cw = cloudwatch({"CPUUtilization": client_error("Throttling", "GetMetricStatistics")})
        gateway = MetricGateway(cw, "eu-west-1")

        result = await gateway.query_average("AWS/EC2", "CPUUtilization", {"InstanceId": "i"}, date_range)

        assert result.status is MetricStatus.ERROR

    @pytest.mark.asyncio
    async def test_transport_error_is_error(self, fake_client, date_range):
        cw = fake_client(
            get_metric_statistics=AsyncMock(
                side_effect=EndpointConnectionError(endpoint_url="https://monitoring")
            )
        )
        gateway = MetricGateway(cw, "eu-west-1")

        result = await gateway.query_sum("AWS/NATGateway", "BytesOutToDestination", {"NatGatewayId": "n"}, date_range)

        assert result.status is MetricStatus.ERROR

    @pytest.mark.asyncio
    async def test_query_window_and_period(self, cloudwatch, date_range):
        cw = cloudwatch({"CPUUtilization": 3.0})
        gateway = MetricGateway(cw, "us-east-1")

        await gateway.query_average("AWS/EC2", "CPUUtilization", {"InstanceId": "i-1"}, date_range)

        kwargs = cw.get_metric_statistics.call_args.kwargs
        assert kwargs["StartTime"] == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert kwargs["EndTime"] == datetime(2025, 1, 9, tzinfo=timezone.utc)
        assert kwargs["Period"] == 86400
        assert kwargs["Statistics"] == ["Average"]
        assert kwargs["Dimensions"] == [{"Name": "InstanceId", "Value": "i-1"}]
