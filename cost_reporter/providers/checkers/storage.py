"""EBS volume/snapshot and EFS file system/backup checkers."""

from typing import AsyncIterator

from cost_reporter.providers.base import ArtifactChecker, ArtifactState, ResourceChecker
from cost_reporter.providers.metrics import MetricGateway
from cost_reporter.providers.session import name_from_tags, paginate
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import UnusedResource

# Snapshots copied from another snapshot or created from an AMI carry this volume id
EBS_PLACEHOLDER_VOLUME_ID = "vol-ffffffff"


def file_system_id_from_arn(resource_arn: str) -> str | None:
    """
    Extract the file system id from an EFS ARN.

    Example: 'arn:aws:elasticfilesystem:us-east-1:123456789012:file-system/fs-0abc' -> 'fs-0abc'
    """
    marker = "file-system/"
    if marker not in resource_arn:
        return None
    return resource_arn.split(marker, 1)[1].split("/")[0] or None


class EBSVolumeChecker(ResourceChecker):
    """
    EBS volumes that are unattached, or attached with no I/O.

    Unattached volumes are flagged without looking at metrics. Attached volumes
    are flagged only on a confirmed zero for both read and write operations.
    """

    name = "ebs_volumes"
    service = "Amazon EBS"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("ec2", region, credentials) as ec2:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for volume in paginate(ec2, "describe_volumes", "Volumes"):
                    volume_id = volume["VolumeId"]
                    volume_name = name_from_tags(volume.get("Tags"), volume_id)

                    if not volume.get("Attachments"):
                        yield self.flag(volume_id, region, "Unattached volume", volume_name)
                        continue

                    dimensions = {"VolumeId": volume_id}
                    read_ops = await metrics.query_sum(
                        "AWS/EBS", "VolumeReadOps", dimensions, date_range
                    )
                    write_ops = await metrics.query_sum(
                        "AWS/EBS", "VolumeWriteOps", dimensions, date_range
                    )
                    if read_ops.is_zero and write_ops.is_zero:
                        yield self.flag(volume_id, region, "No I/O operations", volume_name)


class EBSSnapshotChecker(ArtifactChecker):
    """Completed EBS snapshots owned by the account whose volume is gone or that are old."""

    name = "ebs_snapshots"
    service = "Amazon EBS Snapshot"
    placeholder_source_ids = frozenset({EBS_PLACEHOLDER_VOLUME_ID})

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("ec2", region, credentials) as ec2:
            volume_ids = {
                volume["VolumeId"] async for volume in paginate(ec2, "describe_volumes", "Volumes")
            }

            async for snapshot in paginate(
                ec2, "describe_snapshots", "Snapshots", OwnerIds=["self"]
            ):
                if snapshot.get("State") != "completed":
                    continue

                snapshot_id = snapshot["SnapshotId"]
                volume_id = snapshot.get("VolumeId")
                state, age_days = self.classify(volume_id, volume_ids, snapshot["StartTime"])
                if state is None:
                    continue

                if state is ArtifactState.ORPHANED:
                    reason = f"Orphaned snapshot (volume {volume_id} deleted)"
                else:
                    reason = f"Old snapshot ({age_days} days)"
                yield self.flag(
                    snapshot_id,
                    region,
                    reason,
                    name_from_tags(snapshot.get("Tags"), snapshot_id),
                )


class EFSFileSystemChecker(ResourceChecker):
    """Available EFS file systems with a confirmed zero client connection average."""

    name = "efs_file_systems"
    service = "Amazon EFS"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("efs", region, credentials) as efs:
            async with self.client("cloudwatch", region, credentials) as cw:
                metrics = MetricGateway(cw, region)

                async for file_system in paginate(efs, "describe_file_systems", "FileSystems"):
                    if file_system.get("LifeCycleState", "available") != "available":
                        continue

                    fs_id = file_system["FileSystemId"]
                    connections = await metrics.query_average(
                        "AWS/EFS", "ClientConnections", {"FileSystemId": fs_id}, date_range
                    )
                    if connections.is_zero:
                        yield self.flag(
                            fs_id, region, "No client connections", file_system.get("Name") or fs_id
                        )


class EFSBackupChecker(ArtifactChecker):
    """
    EFS recovery points in AWS Backup vaults.

    The source file system is taken from the recovery point's ResourceArn and
    looked up in the current EFS inventory.
    """

    name = "efs_backups"
    service = "Amazon EFS Backup"

    async def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        async with self.client("efs", region, credentials) as efs:
            async with self.client("backup", region, credentials) as backup:
                file_system_ids = {
                    fs["FileSystemId"]
                    async for fs in paginate(efs, "describe_file_systems", "FileSystems")
                }

                async for vault in paginate(backup, "list_backup_vaults", "BackupVaultList"):
                    vault_name = vault["BackupVaultName"]

                    async for recovery_point in paginate(
                        backup,
                        "list_recovery_points_by_backup_vault",
                        "RecoveryPoints",
                        BackupVaultName=vault_name,
                        ByResourceType="EFS",
                    ):
                        if recovery_point.get("Status") != "COMPLETED":
                            continue

                        fs_id = file_system_id_from_arn(recovery_point.get("ResourceArn", ""))
                        state, age_days = self.classify(
                            fs_id, file_system_ids, recovery_point["CreationDate"]
                        )
                        if state is None:
                            continue

                        if state is ArtifactState.ORPHANED:
                            reason = f"Orphaned backup (file system {fs_id} deleted)"
                        else:
                            reason = f"Old backup ({age_days} days)"
                        yield self.flag(
                            recovery_point["RecoveryPointArn"],
                            region,
                            reason,
                            f"{vault_name}/{fs_id or 'unknown'}",
                        )
