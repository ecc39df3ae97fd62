"""EC2 instance checker."""

from typing import AsyncIterator

from cost_reporter.providers.base import CPU_THRESHOLD, NETWORK_THRESHOLD, ResourceChecker
from cost_reporter.providers.metrics import MetricGateway
from cost_reporter.providers.session import name_from_tags, paginate
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import UnusedResource


class EC2InstanceChecker(ResourceChecker):
    """
    Running EC2 instances that look idle.

    Detection order (first match wins):
    1. Average CPUUtilization below 5%
    2. Average NetworkIn and NetworkOut both below 1000 bytes
    """

    name = "ec2_instances"
    service = "Amazon EC2"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("ec2", region, credentials) as ec2:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for reservation in paginate(
                    ec2,
                    "describe_instances",
                    "Reservations",
                    Filters=[{"Name": "instance-state-name", "Values": ["running"]}],
                ):
                    for instance in reservation.get("Instances", []):
                        instance_id = instance["InstanceId"]
                        instance_name = name_from_tags(instance.get("Tags"), instance_id)
                        dimensions = {"InstanceId": instance_id}

                        cpu = await metrics.query_average(
                            "AWS/EC2", "CPUUtilization", dimensions, date_range
                        )
                        if cpu.below(CPU_THRESHOLD):
                            yield self.flag(
                                instance_id, region, f"Low CPU ({cpu.value:.1f}% avg)", instance_name
                            )
                            continue

                        network_in = await metrics.query_average(
                            "AWS/EC2", "NetworkIn", dimensions, date_range
                        )
                        network_out = await metrics.query_average(
                            "AWS/EC2", "NetworkOut", dimensions, date_range
                        )
                        if network_in.below(NETWORK_THRESHOLD) and network_out.below(
                            NETWORK_THRESHOLD
                        ):
                            yield self.flag(instance_id, region, "No network traffic", instance_name)
