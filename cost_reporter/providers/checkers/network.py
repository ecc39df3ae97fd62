"""Load balancer, Elastic IP and NAT gateway checkers."""

from typing import AsyncIterator

from cost_reporter.providers.base import ResourceChecker
from cost_reporter.providers.metrics import MetricGateway
from cost_reporter.providers.session import name_from_tags, paginate
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import UnusedResource

# ELBv2 type -> (namespace, traffic metric)
LOAD_BALANCER_METRICS = {
    "application": ("AWS/ApplicationELB", "RequestCount"),
    "network": ("AWS/NetworkELB", "ActiveFlowCount"),
    "gateway": ("AWS/GatewayELB", "ActiveFlowCount"),
}


def load_balancer_dimension(arn: str) -> str:
    """CloudWatch LoadBalancer dimension: the last three ARN path parts (app/name/id)."""
    return "/".join(arn.split("/")[-3:])


class LoadBalancerChecker(ResourceChecker):
    """ELBv2 load balancers with a confirmed zero request/flow count."""

    name = "load_balancers"
    service = "Elastic Load Balancing"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("elbv2", region, credentials) as elb:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for lb in paginate(elb, "describe_load_balancers", "LoadBalancers"):
                    lb_arn = lb["LoadBalancerArn"]
                    namespace, metric_name = LOAD_BALANCER_METRICS.get(
                        lb.get("Type", "application"), LOAD_BALANCER_METRICS["application"]
                    )
                    traffic = await metrics.query_sum(
                        namespace,
                        metric_name,
                        {"LoadBalancer": load_balancer_dimension(lb_arn)},
                        date_range,
                    )
                    if traffic.is_zero:
                        yield self.flag(lb_arn, region, "No traffic", lb.get("LoadBalancerName"))


class ElasticIPChecker(ResourceChecker):
    """Elastic IPs not associated with an instance or network interface."""

    name = "elastic_ips"
    service = "Amazon EC2 (EIP)"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("ec2", region, credentials) as ec2:
            # DescribeAddresses is not paginated
            response = await ec2.describe_addresses()

            for address in response.get("Addresses", []):
                if address.get("InstanceId") or address.get("NetworkInterfaceId"):
                    continue
                public_ip = address.get("PublicIp", "")
                yield self.flag(
                    address.get("AllocationId") or public_ip,
                    region,
                    "Unattached Elastic IP",
                    public_ip,
                )


class NATGatewayChecker(ResourceChecker):
    """Available NAT gateways that sent no bytes to their destinations."""

    name = "nat_gateways"
    service = "NAT Gateway"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("ec2", region, credentials) as ec2:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for nat_gateway in paginate(
                    ec2,
                    "describe_nat_gateways",
                    "NatGateways",
                    Filters=[{"Name": "state", "Values": ["available"]}],
                ):
                    nat_gateway_id = nat_gateway["NatGatewayId"]
                    bytes_out = await metrics.query_sum(
                        "AWS/NATGateway",
                        "BytesOutToDestination",
                        {"NatGatewayId": nat_gateway_id},
                        date_range,
                    )
                    if bytes_out.is_zero:
                        yield self.flag(
                            nat_gateway_id,
                            region,
                            "No outbound traffic",
                            name_from_tags(nat_gateway.get("Tags"), nat_gateway_id),
                        )
