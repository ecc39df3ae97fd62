"""Unused-resource checkers, one per resource family."""

from cost_reporter.providers.base import ResourceChecker
from cost_reporter.providers.checkers.analytics import (
    ElastiCacheChecker,
    OpenSearchChecker,
    RedshiftChecker,
)
from cost_reporter.providers.checkers.compute import EC2InstanceChecker
from cost_reporter.providers.checkers.containers import ECSClusterChecker, EKSClusterChecker
from cost_reporter.providers.checkers.database import (
    RDSClusterSnapshotChecker,
    RDSInstanceChecker,
    RDSSnapshotChecker,
)
from cost_reporter.providers.checkers.network import (
    ElasticIPChecker,
    LoadBalancerChecker,
    NATGatewayChecker,
)
from cost_reporter.providers.checkers.storage import (
    EBSSnapshotChecker,
    EBSVolumeChecker,
    EFSBackupChecker,
    EFSFileSystemChecker,
)
from cost_reporter.providers.session import SessionFactory, build_session

CHECKER_CLASSES: list[type[ResourceChecker]] = [
    EC2InstanceChecker,
    EBSVolumeChecker,
    EBSSnapshotChecker,
    RDSInstanceChecker,
    RDSSnapshotChecker,
    RDSClusterSnapshotChecker,
    LoadBalancerChecker,
    ElasticIPChecker,
    NATGatewayChecker,
    EFSFileSystemChecker,
    EFSBackupChecker,
    EKSClusterChecker,
    ECSClusterChecker,
    ElastiCacheChecker,
    RedshiftChecker,
    OpenSearchChecker,
]


def default_checkers(session_factory: SessionFactory = build_session) -> list[ResourceChecker]:
    """Instantiate every checker with a shared session factory."""
    return [checker_cls(session_factory) for checker_cls in CHECKER_CLASSES]


__all__ = [
    "CHECKER_CLASSES",
    "default_checkers",
    "EC2InstanceChecker",
    "EBSVolumeChecker",
    "EBSSnapshotChecker",
    "RDSInstanceChecker",
    "RDSSnapshotChecker",
    "RDSClusterSnapshotChecker",
    "LoadBalancerChecker",
    "ElasticIPChecker",
    "NATGatewayChecker",
    "EFSFileSystemChecker",
    "EFSBackupChecker",
    "EKSClusterChecker",
    "ECSClusterChecker",
    "ElastiCacheChecker",
    "RedshiftChecker",
    "OpenSearchChecker",
]
