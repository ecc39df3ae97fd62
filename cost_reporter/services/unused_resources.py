"""
Unused resource detection across regions and accounts.

Concurrency tapers from wide to none: every checker of a region runs
concurrently, regions run in batches of four (batches one after another),
and accounts are scanned strictly sequentially so the STS AssumeRole
backend never sees simultaneous requests.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_reporter.core.config import settings
from cost_reporter.providers.base import ResourceChecker
from cost_reporter.providers.checkers import default_checkers
from cost_reporter.providers.credentials import CredentialResolver
from cost_reporter.schemas.account import AccountIdentity, AwsCredentials
from cost_reporter.schemas.common import DateRange
from cost_reporter.schemas.resource import ScanOutcome, UnusedResource, tag_resources
from cost_reporter.services.accounts import (
    get_account_id,
    get_configured_accounts,
    should_use_organization_mode,
)

logger = structlog.get_logger()

# Regions enabled by default on every account (opt-in regions excluded)
REGIONS = [
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "ap-south-1",
    "ap-northeast-1",
    "ap-northeast-2",
    "ap-northeast-3",
    "ap-southeast-1",
    "ap-southeast-2",
    "ca-central-1",
    "eu-central-1",
    "eu-west-1",
    "eu-west-2",
    "eu-west-3",
    "eu-north-1",
    "sa-east-1",
]

REGION_BATCH_SIZE = 4


class AccountState(str, Enum):
    """Lifecycle of one account within a scan. SKIPPED and DONE are terminal."""

    PENDING = "pending"
    AMBIENT = "ambient"
    ASSUMING_ROLE = "assuming_role"
    SCANNING = "scanning"
    DONE = "done"
    SKIPPED = "skipped"


class Deadline:
    """Point in time after which no new scanning work is started."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Initialize deadline.

        Args:
            seconds: Time budget from now
            clock: Monotonic clock (injectable for tests)
        """
        self._clock = clock
        self._expires_at = clock() + seconds

    @classmethod
    def from_lambda_context(
        cls, context: Any, margin_seconds: float | None = None
    ) -> "Deadline | None":
        """
        Build a deadline from the Lambda context's remaining time minus a margin.

        Returns:
            Deadline, or None when running outside Lambda
        """
        get_remaining = getattr(context, "get_remaining_time_in_millis", None)
        if get_remaining is None:
            return None
        margin = settings.SCAN_DEADLINE_MARGIN_SECONDS if margin_seconds is None else margin_seconds
        return cls(max(0.0, get_remaining() / 1000 - margin))

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


def region_batches(regions: list[str], size: int = REGION_BATCH_SIZE) -> list[list[str]]:
    """Split regions into consecutive batches of at most ``size``."""
    return [regions[i : i + size] for i in range(0, len(regions), size)]


def describe_resource(resource: UnusedResource) -> str:
    return f"{resource.service}: {resource.resource_name or resource.resource_id} ({resource.reason})"


async def _run_checker(
    checker: ResourceChecker,
    region: str,
    date_range: DateRange,
    account: AccountIdentity,
    credentials: AwsCredentials | None,
) -> ScanOutcome:
    """Run one checker, counting anything that escapes its own guard as one error."""
    try:
        return await checker.run(region, date_range, credentials)
    except Exception as e:
        logger.error(
            "scan.checker_crashed",
            checker=checker.name,
            region=region,
            account_id=account.id,
            error_type=type(e).__name__,
            error=str(e),
            exc_info=True,
        )
        return ScanOutcome(error_count=1)


async def scan_region(
    region: str,
    date_range: DateRange,
    account: AccountIdentity,
    credentials: AwsCredentials | None = None,
    checkers: list[ResourceChecker] | None = None,
) -> ScanOutcome:
    """
    Run every checker for one region concurrently.

    Args:
        region: AWS region
        date_range: Metric evaluation window
        account: Account being scanned (log context only)
        credentials: Assumed-role credentials, or None for ambient identity
        checkers: Checkers to run (defaults to all resource families)

    Returns:
        Merged outcome of all checkers (untagged)
    """
    checkers = default_checkers() if checkers is None else checkers
    outcomes = await asyncio.gather(
        *(_run_checker(checker, region, date_range, account, credentials) for checker in checkers)
    )
    outcome = ScanOutcome.combine(list(outcomes))

    if outcome.resources:
        logger.info(
            "scan.region_complete",
            region=region,
            account_id=account.id,
            found=len(outcome.resources),
            error_count=outcome.error_count,
            resources=[describe_resource(r) for r in outcome.resources],
        )
    else:
        logger.debug(
            "scan.region_complete",
            region=region,
            account_id=account.id,
            found=0,
            error_count=outcome.error_count,
        )
    return outcome


async def _scan_batch(
    batch: list[str],
    date_range: DateRange,
    account: AccountIdentity,
    credentials: AwsCredentials | None,
    checkers: list[ResourceChecker],
    deadline: Deadline | None,
) -> ScanOutcome:
    """Scan regions of one batch concurrently, keeping regions that finish before the deadline."""
    tasks = {
        asyncio.create_task(scan_region(region, date_range, account, credentials, checkers)): region
        for region in batch
    }
    timeout = deadline.remaining() if deadline is not None else None
    done, pending = await asyncio.wait(tasks, timeout=timeout)

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(
            "scan.regions_cancelled",
            account_id=account.id,
            regions=sorted(tasks[task] for task in pending),
        )

    outcome = ScanOutcome.combine([task.result() for task in done])
    return outcome.merge(ScanOutcome(error_count=len(pending)))


async def scan_account(
    date_range: DateRange,
    account: AccountIdentity,
    credentials: AwsCredentials | None = None,
    *,
    checkers: list[ResourceChecker] | None = None,
    deadline: Deadline | None = None,
    regions: list[str] | None = None,
) -> ScanOutcome:
    """
    Scan all regions of one account in sequential batches.

    Regions not started (or cancelled) because the deadline passed count
    one error each. Resources are tagged with the account afterwards.

    Returns:
        Account outcome with every resource tagged with ``account``
    """
    checkers = default_checkers() if checkers is None else checkers
    batches = region_batches(REGIONS if regions is None else regions)
    outcome = ScanOutcome()

    for index, batch in enumerate(batches):
        if deadline is not None and deadline.expired:
            skipped = [region for rest in batches[index:] for region in rest]
            logger.warning(
                "scan.deadline_reached",
                account_id=account.id,
                skipped_regions=skipped,
            )
            outcome = outcome.merge(ScanOutcome(error_count=len(skipped)))
            break

        logger.debug("scan.batch_started", account_id=account.id, batch=index + 1, regions=batch)
        outcome = outcome.merge(
            await _scan_batch(batch, date_range, account, credentials, checkers, deadline)
        )

    return ScanOutcome(
        resources=tag_resources(outcome.resources, account),
        error_count=outcome.error_count,
    )


def _log_state(account: AccountIdentity, state: AccountState, **kwargs: Any) -> None:
    logger.info(
        "scan.account_state",
        account_id=account.id,
        account_name=account.name,
        state=state.value,
        **kwargs,
    )


async def detect_unused_resources(
    date_range: DateRange,
    *,
    own_account_id: str | None = None,
    accounts: dict[str, AccountIdentity] | None = None,
    organization_mode: bool | None = None,
    resolver: CredentialResolver | None = None,
    checkers: list[ResourceChecker] | None = None,
    deadline: Deadline | None = None,
) -> ScanOutcome:
    """
    Detect unused resources in the caller's account or across an organization.

    Organization mode applies when enabled and the configured account set is
    non-empty; otherwise only the caller's own account is scanned. The own
    account always uses ambient credentials, other accounts assume
    CROSS_ACCOUNT_ROLE_NAME. An account whose role cannot be assumed is
    skipped and counted as one error.

    Args:
        date_range: Metric evaluation window
        own_account_id: Caller's account id (resolved with STS when omitted; if that
            lookup fails nothing is scanned and one error is counted)
        accounts: Configured accounts (defaults to ACCOUNT_IDS)
        organization_mode: Override for should_use_organization_mode()
        resolver: Credential resolver for member accounts
        checkers: Checkers to run (defaults to all resource families)
        deadline: Stop starting new work once this passes

    Returns:
        ScanOutcome with all resources found and the aggregate error count
    """
    if own_account_id is None:
        try:
            own_account_id = await get_account_id()
        except (ClientError, BotoCoreError) as e:
            logger.error("scan.caller_identity_failed", error_type=type(e).__name__, error=str(e))
            return ScanOutcome(error_count=1)
    if organization_mode is None:
        organization_mode = should_use_organization_mode()
    if organization_mode and accounts is None:
        accounts = get_configured_accounts()

    own_account = AccountIdentity(id=own_account_id)
    if organization_mode and accounts:
        # The caller's own account is always a member
        plan = {own_account_id: accounts.get(own_account_id, own_account), **accounts}
    else:
        plan = {own_account_id: own_account}

    checkers = default_checkers() if checkers is None else checkers
    resolver = resolver or CredentialResolver()

    logger.info(
        "scan.started",
        organization_mode=bool(organization_mode and accounts),
        account_count=len(plan),
        region_count=len(REGIONS),
        checker_count=len(checkers),
        start=str(date_range.start),
        end=str(date_range.end),
    )

    outcome = ScanOutcome()
    pending_accounts = list(plan.values())

    for index, account in enumerate(pending_accounts):
        if deadline is not None and deadline.expired:
            not_started = pending_accounts[index:]
            for skipped_account in not_started:
                _log_state(skipped_account, AccountState.SKIPPED, reason="deadline")
            outcome = outcome.merge(ScanOutcome(error_count=len(not_started)))
            break

        _log_state(account, AccountState.PENDING)

        credentials: AwsCredentials | None = None
        if account.id == own_account_id:
            _log_state(account, AccountState.AMBIENT)
        else:
            _log_state(account, AccountState.ASSUMING_ROLE)
            credentials = await resolver.assume(account.id)
            if credentials is None:
                _log_state(account, AccountState.SKIPPED, reason="assume_role_failed")
                outcome = outcome.merge(ScanOutcome(error_count=1))
                continue

        _log_state(account, AccountState.SCANNING)
        account_outcome = await scan_account(
            date_range, account, credentials, checkers=checkers, deadline=deadline
        )
        _log_state(
            account,
            AccountState.DONE,
            found=len(account_outcome.resources),
            error_count=account_outcome.error_count,
        )
        outcome = outcome.merge(account_outcome)

    logger.info(
        "scan.complete",
        found=len(outcome.resources),
        error_count=outcome.error_count,
        by_account=outcome.count_by_account(),
        by_service=outcome.count_by_service(),
    )
    return outcome
