"""Tests for RDS checkers."""

from datetime import datetime, timedelta, timezone

import pytest

from cost_reporter.providers.checkers.database import (
    RDSClusterSnapshotChecker,
    RDSInstanceChecker,
    RDSSnapshotChecker,
)


def days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


@pytest.fixture
def rds_instances():
    return [
        {
            "DBInstances": [
                {"DBInstanceIdentifier": "orders-db", "DBInstanceStatus": "available"},
                {"DBInstanceIdentifier": "stopped-db", "DBInstanceStatus": "stopped"},
            ]
        }
    ]


class TestRDSInstanceChecker:
    """Test suite for RDS instance detection."""

    @pytest.mark.asyncio
    async def test_no_connections(self, fake_client, cloudwatch, session_factory, date_range, rds_instances):
        rds = fake_client(pages={"describe_db_instances": rds_instances})
        cw = cloudwatch({"DatabaseConnections": 0.0, "CPUUtilization": 1.0})
        factory = session_factory({"rds": rds, "cloudwatch": cw})

        resources = await RDSInstanceChecker(factory).check("us-east-1", date_range)

        assert [(r.resource_id, r.reason) for r in resources] == [
            ("orders-db", "No connections (0 avg)")
        ]

    @pytest.mark.asyncio
    async def test_low_cpu_when_connected(self, fake_client, cloudwatch, session_factory, date_range, rds_instances):
        rds = fake_client(pages={"describe_db_instances": rds_instances})
        cw = cloudwatch({"DatabaseConnections": 4.0, "CPUUtilization": 3.2})
        factory = session_factory({"rds": rds, "cloudwatch": cw})

        resources = await RDSInstanceChecker(factory).check("us-east-1", date_range)

        assert [r.reason for r in resources] == ["Low CPU (3.2% avg)"]
        assert resources[0].service == "Amazon RDS"

    @pytest.mark.asyncio
    async def test_unknown_connections_fall_through_to_cpu(
        self, fake_client, cloudwatch, session_factory, date_range, rds_instances
    ):
        rds = fake_client(pages={"describe_db_instances": rds_instances})
        cw = cloudwatch({"CPUUtilization": 50.0})
        factory = session_factory({"rds": rds, "cloudwatch": cw})

        assert await RDSInstanceChecker(factory).check("us-east-1", date_range) == []


class TestRDSSnapshotChecker:
    """Test suite for RDS manual snapshot detection."""

    @pytest.mark.asyncio
    async def test_old_snapshot_with_live_instance(self, fake_client, session_factory, date_range, rds_instances):
        rds = fake_client(
            pages={
                "describe_db_instances": rds_instances,
                "describe_db_snapshots": [
                    {
                        "DBSnapshots": [
                            {
                                "DBSnapshotIdentifier": "orders-2024",
                                "DBInstanceIdentifier": "orders-db",
                                "Status": "available",
                                "SnapshotCreateTime": days_ago(120),
                            }
                        ]
                    }
                ],
            }
        )

        resources = await RDSSnapshotChecker(session_factory({"rds": rds})).check("us-east-1", date_range)

        assert [r.reason for r in resources] == ["Old manual snapshot (120 days)"]
        assert resources[0].service == "Amazon RDS Snapshot"
        snapshot_call = [c for c in rds.paginate_calls if c[0] == "describe_db_snapshots"][0]
        assert snapshot_call[1] == {"SnapshotType": "manual"}

    @pytest.mark.asyncio
    async def test_orphaned_snapshot_ignores_age(self, fake_client, session_factory, date_range, rds_instances):
        rds = fake_client(
            pages={
                "describe_db_instances": rds_instances,
                "describe_db_snapshots": [
                    {
                        "DBSnapshots": [
                            {
                                "DBSnapshotIdentifier": "legacy-final",
                                "DBInstanceIdentifier": "legacy-db",
                                "Status": "available",
                                "SnapshotCreateTime": days_ago(10),
                            },
                            {
                                "DBSnapshotIdentifier": "creating",
                                "DBInstanceIdentifier": "legacy-db",
                                "Status": "creating",
                                "SnapshotCreateTime": days_ago(0),
                            },
                        ]
                    }
                ],
            }
        )

        resources = await RDSSnapshotChecker(session_factory({"rds": rds})).check("us-east-1", date_range)

        assert [(r.resource_id, r.reason) for r in resources] == [
            ("legacy-final", "Orphaned manual snapshot (DB legacy-db deleted)")
        ]


class TestRDSClusterSnapshotChecker:
    """Test suite for RDS cluster snapshot detection."""

    @pytest.mark.asyncio
    async def test_cluster_snapshots(self, fake_client, session_factory, date_range):
        rds = fake_client(
            pages={
                "describe_db_clusters": [{"DBClusters": [{"DBClusterIdentifier": "aurora-live"}]}],
                "describe_db_cluster_snapshots": [
                    {
                        "DBClusterSnapshots": [
                            {
                                "DBClusterSnapshotIdentifier": "gone-snap",
                                "DBClusterIdentifier": "aurora-gone",
                                "Status": "available",
                                "SnapshotCreateTime": days_ago(400),
                            },
                            {
                                "DBClusterSnapshotIdentifier": "old-snap",
                                "DBClusterIdentifier": "aurora-live",
                                "Status": "available",
                                "SnapshotCreateTime": days_ago(95),
                            },
                        ]
                    }
                ],
            }
        )

        resources = await RDSClusterSnapshotChecker(session_factory({"rds": rds})).check(
            "us-east-1", date_range
        )

        assert {r.resource_id: r.reason for r in resources} == {
            "gone-snap": "Orphaned cluster snapshot (cluster aurora-gone deleted)",
            "old-snap": "Old cluster snapshot (95 days)",
        }
