"""Base classes for unused-resource checkers."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_reporter.core.config import settings
from cost_reporter.providers.session import SessionFactory, build_session, client_config
from cost_reporter.schemas.account import AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import ScanOutcome, UnusedResource

logger = structlog.get_logger()

# Thresholds for determining unused resources
CPU_THRESHOLD = 5.0  # Average CPU below 5% is considered idle
NETWORK_THRESHOLD = 1000.0  # Less than 1KB/s is considered idle
CONNECTIONS_THRESHOLD = 1.0  # Less than 1 connection is considered idle


class ResourceChecker(ABC):
    """
    Inventory + classification routine for one resource family in one region.

    Subclasses implement ``scan`` as an async generator. ``run`` drains it and
    converts AWS API failures into an error count, keeping whatever was yielded
    before the failure. Anything other than an AWS API failure propagates to
    the region scanner.
    """

    name: str = ""
    service: str = ""

    def __init__(self, session_factory: SessionFactory = build_session) -> None:
        """
        Initialize checker.

        Args:
            session_factory: Builds an aioboto3 session from optional credentials
        """
        self.session_factory = session_factory

    def client(self, service_name: str, region: str, credentials: AwsCredentials | None) -> Any:
        """Create a scoped aioboto3 client (use with ``async with``)."""
        session = self.session_factory(credentials)
        return session.client(service_name, region_name=region, config=client_config())

    def flag(
        self,
        resource_id: str,
        region: str,
        reason: str,
        resource_name: str | None = None,
    ) -> UnusedResource:
        return UnusedResource(
            service=self.service,
            resource_id=resource_id,
            resource_name=resource_name or resource_id,
            region=region,
            cost=0.0,
            reason=reason,
        )

    @abstractmethod
    def scan(
        self, region: str, date_range: DateRange, credentials: AwsCredentials | None
    ) -> AsyncIterator[UnusedResource]:
        """Yield unused resources found in ``region``."""

    async def run(
        self,
        region: str,
        date_range: DateRange,
        credentials: AwsCredentials | None = None,
    ) -> ScanOutcome:
        """
        Run the checker without raising.

        Returns:
            ScanOutcome with the resources found and error_count 1 if the
            inventory or metric calls (or response handling) failed part-way
        """
        found: list[UnusedResource] = []
        try:
            async for resource in self.scan(region, date_range, credentials):
                found.append(resource)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.warning(
                "checker.failed",
                checker=self.name,
                region=region,
                error_code=error_code,
                error=str(e),
                partial_results=len(found),
            )
            return ScanOutcome(resources=found, error_count=1)
        except BotoCoreError as e:
            logger.warning(
                "checker.failed",
                checker=self.name,
                region=region,
                error=str(e),
                partial_results=len(found),
            )
            return ScanOutcome(resources=found, error_count=1)
        except Exception as e:
            logger.error(
                "checker.crashed",
                checker=self.name,
                region=region,
                error_type=type(e).__name__,
                error=str(e),
                partial_results=len(found),
                exc_info=True,
            )
            return ScanOutcome(resources=found, error_count=1)

        return ScanOutcome(resources=found)

    async def check(
        self,
        region: str,
        date_range: DateRange,
        credentials: AwsCredentials | None = None,
    ) -> list[UnusedResource]:
        """List unused resources in ``region``; failures yield a partial list."""
        outcome = await self.run(region, date_range, credentials)
        return outcome.resources


class ArtifactState(str, Enum):
    """Classification of a snapshot or backup."""

    ORPHANED = "orphaned"
    OLD = "old"


def age_in_days(created_at: datetime, now: datetime | None = None) -> int:
    """Whole days elapsed since ``created_at``."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (now - created_at).days


class ArtifactChecker(ResourceChecker):
    """
    Checker for dependent artifacts (snapshots, backups) of a source resource.

    An artifact is orphaned when its source no longer exists in the current
    inventory, and old when its age exceeds the configured threshold. The
    orphan test wins, so each artifact is reported at most once.
    """

    # Source ids that mean "unknown source", never treated as orphaned
    placeholder_source_ids: frozenset[str] = frozenset()

    def __init__(
        self,
        session_factory: SessionFactory = build_session,
        max_age_days: int | None = None,
    ) -> None:
        super().__init__(session_factory)
        self.max_age_days = (
            settings.SNAPSHOT_AGE_THRESHOLD_DAYS if max_age_days is None else max_age_days
        )

    def classify(
        self,
        source_id: str | None,
        existing_source_ids: set[str],
        created_at: datetime,
    ) -> tuple[ArtifactState | None, int]:
        """
        Classify an artifact.

        Returns:
            (state, age_days) where state is None when the artifact is fine
        """
        age_days = age_in_days(created_at)
        if (
            source_id
            and source_id not in self.placeholder_source_ids
            and source_id not in existing_source_ids
        ):
            return ArtifactState.ORPHANED, age_days
        if age_days > self.max_age_days:
            return ArtifactState.OLD, age_days
        return None, age_days
