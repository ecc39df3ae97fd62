"""RDS instance, snapshot and cluster snapshot checkers."""

from typing import AsyncIterator

from cost_reporter.providers.base import (
    CONNECTIONS_THRESHOLD,
    CPU_THRESHOLD,
    ArtifactChecker,
    ArtifactState,
    ResourceChecker,
)
from cost_reporter.providers.metrics import MetricGateway
from cost_reporter.providers.session import paginate
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import UnusedResource


class RDSInstanceChecker(ResourceChecker):
    """
    Available RDS instances with no connections or low CPU.

    The connection check runs first; CPU is only queried when connections
    are not conclusively below one.
    """

    name = "rds_instances"
    service = "Amazon RDS"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("rds", region, credentials) as rds:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for instance in paginate(rds, "describe_db_instances", "DBInstances"):
                    if instance.get("DBInstanceStatus") != "available":
                        continue

                    instance_id = instance["DBInstanceIdentifier"]
                    dimensions = {"DBInstanceIdentifier": instance_id}

                    connections = await metrics.query_average(
                        "AWS/RDS", "DatabaseConnections", dimensions, date_range
                    )
                    if connections.below(CONNECTIONS_THRESHOLD):
                        yield self.flag(
                            instance_id, region, f"No connections ({connections.value:.0f} avg)"
                        )
                        continue

                    cpu = await metrics.query_average(
                        "AWS/RDS", "CPUUtilization", dimensions, date_range
                    )
                    if cpu.below(CPU_THRESHOLD):
                        yield self.flag(instance_id, region, f"Low CPU ({cpu.value:.1f}% avg)")


class RDSSnapshotChecker(ArtifactChecker):
    """Manual DB snapshots whose instance was deleted, or that are old."""

    name = "rds_snapshots"
    service = "Amazon RDS Snapshot"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("rds", region, credentials) as rds:
            instance_ids = {
                instance["DBInstanceIdentifier"]
                async for instance in paginate(rds, "describe_db_instances", "DBInstances")
            }

            async for snapshot in paginate(
                rds, "describe_db_snapshots", "DBSnapshots", SnapshotType="manual"
            ):
                if snapshot.get("Status") != "available":
                    continue

                snapshot_id = snapshot["DBSnapshotIdentifier"]
                source_id = snapshot.get("DBInstanceIdentifier")
                state, age_days = self.classify(
                    source_id, instance_ids, snapshot["SnapshotCreateTime"]
                )
                if state is None:
                    continue

                if state is ArtifactState.ORPHANED:
                    reason = f"Orphaned manual snapshot (DB {source_id} deleted)"
                else:
                    reason = f"Old manual snapshot ({age_days} days)"
                yield self.flag(snapshot_id, region, reason)


class RDSClusterSnapshotChecker(ArtifactChecker):
    """Manual Aurora/DocumentDB cluster snapshots whose cluster was deleted, or that are old."""

    name = "rds_cluster_snapshots"
    service = "Amazon RDS Cluster Snapshot"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("rds", region, credentials) as rds:
            cluster_ids = {
                cluster["DBClusterIdentifier"]
                async for cluster in paginate(rds, "describe_db_clusters", "DBClusters")
            }

            async for snapshot in paginate(
                rds, "describe_db_cluster_snapshots", "DBClusterSnapshots", SnapshotType="manual"
            ):
                if snapshot.get("Status") != "available":
                    continue

                snapshot_id = snapshot["DBClusterSnapshotIdentifier"]
                source_id = snapshot.get("DBClusterIdentifier")
                state, age_days = self.classify(
                    source_id, cluster_ids, snapshot["SnapshotCreateTime"]
                )
                if state is None:
                    continue

                if state is ArtifactState.ORPHANED:
                    reason = f"Orphaned cluster snapshot (cluster {source_id} deleted)"
                else:
                    reason = f"Old cluster snapshot ({age_days} days)"
                yield self.flag(snapshot_id, region, reason)
