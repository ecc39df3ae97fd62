"""ElastiCache, Redshift and OpenSearch checkers."""

from typing import AsyncIterator

from cost_reporter.providers.base import CONNECTIONS_THRESHOLD, CPU_THRESHOLD, ResourceChecker
from cost_reporter.providers.metrics import MetricGateway
from cost_reporter.providers.session import paginate
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import UnusedResource


class ElastiCacheChecker(ResourceChecker):
    """Available cache clusters with no connections or low CPU."""

    name = "elasticache_clusters"
    service = "Amazon ElastiCache"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("elasticache", region, credentials) as elasticache:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for cluster in paginate(
                    elasticache, "describe_cache_clusters", "CacheClusters"
                ):
                    if cluster.get("CacheClusterStatus") != "available":
                        continue

                    cluster_id = cluster["CacheClusterId"]
                    dimensions = {"CacheClusterId": cluster_id}

                    connections = await metrics.query_average(
                        "AWS/ElastiCache", "CurrConnections", dimensions, date_range
                    )
                    if connections.below(CONNECTIONS_THRESHOLD):
                        yield self.flag(
                            cluster_id, region, f"No connections ({connections.value:.0f} avg)"
                        )
                        continue

                    cpu = await metrics.query_average(
                        "AWS/ElastiCache", "CPUUtilization", dimensions, date_range
                    )
                    if cpu.below(CPU_THRESHOLD):
                        yield self.flag(cluster_id, region, f"Low CPU ({cpu.value:.1f}% avg)")


class RedshiftChecker(ResourceChecker):
    """Available Redshift clusters with no connections or low CPU."""

    name = "redshift_clusters"
    service = "Amazon Redshift"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("redshift", region, credentials) as redshift:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for cluster in paginate(redshift, "describe_clusters", "Clusters"):
                    if cluster.get("ClusterStatus") != "available":
                        continue

                    cluster_id = cluster["ClusterIdentifier"]
                    dimensions = {"ClusterIdentifier": cluster_id}

                    connections = await metrics.query_average(
                        "AWS/Redshift", "DatabaseConnections", dimensions, date_range
                    )
                    if connections.below(CONNECTIONS_THRESHOLD):
                        yield self.flag(
                            cluster_id, region, f"No connections ({connections.value:.0f} avg)"
                        )
                        continue

                    cpu = await metrics.query_average(
                        "AWS/Redshift", "CPUUtilization", dimensions, date_range
                    )
                    if cpu.below(CPU_THRESHOLD):
                        yield self.flag(cluster_id, region, f"Low CPU ({cpu.value:.1f}% avg)")


class OpenSearchChecker(ResourceChecker):
    """
    OpenSearch domains with no search traffic or low CPU.

    Domain metrics live in the AWS/ES namespace and are keyed by domain name
    plus the owning account id (ClientId).
    """

    name = "opensearch_domains"
    service = "Amazon OpenSearch"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("opensearch", region, credentials) as opensearch:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                # ListDomainNames is not paginated
                listing = await opensearch.list_domain_names()

                for entry in listing.get("DomainNames", []):
                    domain_name = entry["DomainName"]
                    response = await opensearch.describe_domain(DomainName=domain_name)
                    status = response.get("DomainStatus", {})
                    if not status.get("Created") or status.get("Deleted"):
                        continue

                    domain_id = status.get("ARN") or domain_name
                    dimensions = {
                        "DomainName": domain_name,
                        "ClientId": status.get("DomainId", "").split("/")[0],
                    }

                    search_rate = await metrics.query_sum(
                        "AWS/ES", "SearchRate", dimensions, date_range
                    )
                    if search_rate.is_zero:
                        yield self.flag(domain_id, region, "No search requests", domain_name)
                        continue

                    cpu = await metrics.query_average(
                        "AWS/ES", "CPUUtilization", dimensions, date_range
                    )
                    if cpu.below(CPU_THRESHOLD):
                        yield self.flag(
                            domain_id, region, f"Low CPU ({cpu.value:.1f}% avg)", domain_name
                        )
