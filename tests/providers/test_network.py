"""Tests for load balancer, Elastic IP and NAT gateway checkers."""

from unittest.mock import AsyncMock

import pytest

from cost_reporter.providers.checkers.network import (
    ElasticIPChecker,
    LoadBalancerChecker,
    NATGatewayChecker,
    load_balancer_dimension,
)

ALB_ARN = "arn:aws:elasticloadbalancing:us-east-1:111111111111:loadbalancer/app/web/50dc6c495c0c9188"
NLB_ARN = "arn:aws:elasticloadbalancing:us-east-1:111111111111:loadbalancer/net/tcp/73e2d6bc24d8a067"


class TestLoadBalancerChecker:
    """Test suite for ELBv2 detection."""

    def test_dimension_is_last_three_arn_parts(self):
        assert load_balancer_dimension(ALB_ARN) == "app/web/50dc6c495c0c9188"

    @pytest.mark.asyncio
    async def test_zero_traffic_flagged_per_type(self, fake_client, cloudwatch, session_factory, date_range):
        elb = fake_client(
            pages={
                "describe_load_balancers": [
                    {
                        "LoadBalancers": [
                            {"LoadBalancerArn": ALB_ARN, "LoadBalancerName": "web", "Type": "application"},
                            {"LoadBalancerArn": NLB_ARN, "LoadBalancerName": "tcp", "Type": "network"},
                        ]
                    }
                ]
            }
        )
        cw = cloudwatch({"RequestCount": [0.0, 0.0], "ActiveFlowCount": [3.0]})
        factory = session_factory({"elbv2": elb, "cloudwatch": cw})

        resources = await LoadBalancerChecker(factory).check("us-east-1", date_range)

        assert [(r.resource_name, r.reason) for r in resources] == [("web", "No traffic")]
        namespaces = [c.kwargs["Namespace"] for c in cw.get_metric_statistics.await_args_list]
        assert namespaces == ["AWS/ApplicationELB", "AWS/NetworkELB"]

    @pytest.mark.asyncio
    async def test_metric_error_is_not_zero_traffic(
        self, fake_client, cloudwatch, session_factory, date_range, client_error
    ):
        elb = fake_client(
            pages={
                "describe_load_balancers": [
                    {"LoadBalancers": [{"LoadBalancerArn": ALB_ARN, "LoadBalancerName": "web", "Type": "application"}]}
                ]
            }
        )
        cw = cloudwatch({"RequestCount": client_error("Throttling", "GetMetricStatistics")})
        factory = session_factory({"elbv2": elb, "cloudwatch": cw})

        outcome = await LoadBalancerChecker(factory).run("us-east-1", date_range)

        assert outcome.resources == []
        assert outcome.error_count == 0

    @pytest.mark.asyncio
    async def test_no_datapoints_is_not_zero_traffic(self, fake_client, cloudwatch, session_factory, date_range):
        elb = fake_client(
            pages={
                "describe_load_balancers": [
                    {"LoadBalancers": [{"LoadBalancerArn": ALB_ARN, "LoadBalancerName": "web", "Type": "application"}]}
                ]
            }
        )
        factory = session_factory({"elbv2": elb, "cloudwatch": cloudwatch({})})

        assert await LoadBalancerChecker(factory).check("us-east-1", date_range) == []


class TestElasticIPChecker:
    """Test suite for Elastic IP detection."""

    @pytest.mark.asyncio
    async def test_unattached_addresses(self, fake_client, session_factory, date_range):
        ec2 = fake_client(
            describe_addresses=AsyncMock(
                return_value={
                    "Addresses": [
                        {"AllocationId": "eipalloc-1", "PublicIp": "203.0.113.10"},
                        {"AllocationId": "eipalloc-2", "PublicIp": "203.0.113.11", "InstanceId": "i-1"},
                        {"AllocationId": "eipalloc-3", "PublicIp": "203.0.113.12", "NetworkInterfaceId": "eni-1"},
                    ]
                }
            )
        )

        resources = await ElasticIPChecker(session_factory({"ec2": ec2})).check("us-east-1", date_range)

        assert len(resources) == 1
        assert resources[0].resource_id == "eipalloc-1"
        assert resources[0].resource_name == "203.0.113.10"
        assert resources[0].service == "Amazon EC2 (EIP)"
        assert resources[0].reason == "Unattached Elastic IP"


class TestNATGatewayChecker:
    """Test suite for NAT gateway detection."""

    @pytest.mark.asyncio
    async def test_no_outbound_traffic(self, fake_client, cloudwatch, session_factory, date_range):
        ec2 = fake_client(
            pages={
                "describe_nat_gateways": [
                    {"NatGateways": [{"NatGatewayId": "nat-1"}, {"NatGatewayId": "nat-2"}]}
                ]
            }
        )
        cw = cloudwatch(
            {("BytesOutToDestination", "nat-1"): 0.0, ("BytesOutToDestination", "nat-2"): 1024.0}
        )
        factory = session_factory({"ec2": ec2, "cloudwatch": cw})

        resources = await NATGatewayChecker(factory).check("us-east-1", date_range)

        assert [(r.resource_id, r.reason) for r in resources] == [("nat-1", "No outbound traffic")]
        assert ec2.paginate_calls[0][1]["Filters"] == [{"Name": "state", "Values": ["available"]}]
