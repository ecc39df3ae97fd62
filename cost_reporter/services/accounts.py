"""Account configuration and caller identity."""

import re

import structlog

from cost_reporter.core.config import settings
from cost_reporter.providers.session import SessionFactory, build_session, client_config
from cost_reporter.schemas.account import AccountIdentity

logger = structlog.get_logger()

ACCOUNT_ID_PATTERN = re.compile(r"^\d{12}$")


def parse_account_ids(raw: str) -> dict[str, AccountIdentity]:
    """
    Parse an ACCOUNT_IDS value.

    Entries are comma-separated, each either ``<id>`` or ``<id>:<name>``.
    Entries whose id is not 12 digits are dropped with a warning; later
    duplicates override earlier ones.

    Args:
        raw: Raw configuration value (e.g., "111111111111:Production,222222222222")

    Returns:
        Mapping of account id to identity (may be empty)
    """
    accounts: dict[str, AccountIdentity] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue

        account_id, _, name = entry.partition(":")
        account_id = account_id.strip()
        if not ACCOUNT_ID_PATTERN.match(account_id):
            logger.warning("accounts.invalid_account_id", entry=entry)
            continue

        accounts[account_id] = AccountIdentity(id=account_id, name=name.strip())
    return accounts


def get_configured_accounts(raw: str | None = None) -> dict[str, AccountIdentity] | None:
    """
    Accounts to scan in organization mode.

    Args:
        raw: ACCOUNT_IDS value (defaults to settings.ACCOUNT_IDS)

    Returns:
        Mapping of account id to identity, or None when nothing valid is configured
    """
    raw = settings.ACCOUNT_IDS if raw is None else raw
    accounts = parse_account_ids(raw)
    return accounts or None


def should_use_organization_mode() -> bool:
    """Organization mode is on when explicitly enabled or when accounts are configured."""
    return settings.ORGANIZATION_MODE or bool(settings.ACCOUNT_IDS.strip())


async def get_account_id(session_factory: SessionFactory = build_session) -> str:
    """
    Resolve the caller's own account id with STS GetCallerIdentity.

    Called once per invocation; the result is passed down explicitly.

    Raises:
        ClientError: If the ambient identity cannot call STS
    """
    session = session_factory(None)
    async with session.client(
        "sts", region_name=settings.AWS_REGION, config=client_config()
    ) as sts:
        response = await sts.get_caller_identity()

    account_id = response["Account"]
    logger.info("accounts.caller_identity", account_id=account_id, arn=response.get("Arn"))
    return account_id
