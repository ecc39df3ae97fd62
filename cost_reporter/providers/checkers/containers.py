"""EKS and ECS cluster checkers."""

from typing import AsyncIterator

from cost_reporter.providers.base import CPU_THRESHOLD, ResourceChecker
from cost_reporter.providers.metrics import MetricGateway
from cost_reporter.providers.session import paginate
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import UnusedResource

# DescribeServices accepts at most 10 services per call
ECS_DESCRIBE_SERVICES_LIMIT = 10


def chunked(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class EKSClusterChecker(ResourceChecker):
    """
    Active EKS clusters without nodes or with low CPU.

    Both metrics come from Container Insights. Clusters without Container
    Insights have no datapoints and are never flagged.
    """

    name = "eks_clusters"
    service = "Amazon EKS"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("eks", region, credentials) as eks:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for cluster_name in paginate(eks, "list_clusters", "clusters"):
                    response = await eks.describe_cluster(name=cluster_name)
                    cluster = response.get("cluster", {})
                    if cluster.get("status") != "ACTIVE":
                        continue

                    cluster_id = cluster.get("arn") or cluster_name
                    dimensions = {"ClusterName": cluster_name}

                    node_count = await metrics.query_average(
                        "ContainerInsights", "cluster_node_count", dimensions, date_range
                    )
                    if node_count.is_zero:
                        yield self.flag(cluster_id, region, "No nodes in cluster", cluster_name)
                        continue

                    cpu = await metrics.query_average(
                        "ContainerInsights", "cluster_cpu_utilization", dimensions, date_range
                    )
                    if cpu.below(CPU_THRESHOLD):
                        yield self.flag(
                            cluster_id, region, f"Low CPU ({cpu.value:.1f}% avg)", cluster_name
                        )


class ECSClusterChecker(ResourceChecker):
    """
    ECS clusters with no services, and services that are idle.

    A service is idle when it has no running and no desired tasks, or when it
    runs tasks with low average CPU.
    """

    name = "ecs_clusters"
    service = "Amazon ECS"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("ecs", region, credentials) as ecs:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for cluster_arn in paginate(ecs, "list_clusters", "clusterArns"):
                    cluster_name = cluster_arn.split("/")[-1]
                    service_arns = [
                        arn
                        async for arn in paginate(
                            ecs, "list_services", "serviceArns", cluster=cluster_arn
                        )
                    ]

                    if not service_arns:
                        yield self.flag(
                            cluster_arn, region, "No services in cluster", cluster_name
                        )
                        continue

                    for batch in chunked(service_arns, ECS_DESCRIBE_SERVICES_LIMIT):
                        response = await ecs.describe_services(cluster=cluster_arn, services=batch)

                        for svc in response.get("services", []):
                            service_arn = svc.get("serviceArn", "")
                            service_name = svc.get("serviceName", "")
                            running = svc.get("runningCount", 0)
                            desired = svc.get("desiredCount", 0)

                            if running == 0 and desired == 0:
                                yield self.flag(
                                    service_arn, region, "No running tasks", service_name
                                )
                                continue

                            if running > 0:
                                cpu = await metrics.query_average(
                                    "AWS/ECS",
                                    "CPUUtilization",
                                    {"ClusterName": cluster_name, "ServiceName": service_name},
                                    date_range,
                                )
                                if cpu.below(CPU_THRESHOLD):
                                    yield self.flag(
                                        service_arn,
                                        region,
                                        f"Low CPU ({cpu.value:.1f}% avg)",
                                        service_name,
                                    )
