"""Cross-account credential resolution via STS AssumeRole."""

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_reporter.core.config import settings
from cost_reporter.providers.session import SessionFactory, build_session, client_config
from cost_reporter.schemas.account import AwsCredentials

logger = structlog.get_logger()

ASSUMED_ROLE_DURATION_SECONDS = 900  # STS minimum, 15 minutes
ROLE_SESSION_NAME = "cost-reporter-unused-resources"


class CredentialResolver:
    """Obtains short-lived credentials for member accounts of an organization."""

    def __init__(
        self,
        role_name: str | None = None,
        session_factory: SessionFactory = build_session,
        region: str | None = None,
    ) -> None:
        """
        Initialize credential resolver.

        Args:
            role_name: Role to assume in each member account
                (defaults to settings.CROSS_ACCOUNT_ROLE_NAME)
            session_factory: Builds the ambient session used to call STS
            region: STS endpoint region (defaults to settings.AWS_REGION)
        """
        self.role_name = role_name or settings.CROSS_ACCOUNT_ROLE_NAME
        self.session_factory = session_factory
        self.region = region or settings.AWS_REGION

    def role_arn(self, account_id: str) -> str:
        return f"arn:aws:iam::{account_id}:role/{self.role_name}"

    async def assume(self, account_id: str) -> AwsCredentials | None:
        """
        Assume the cross-account role in ``account_id``.

        Args:
            account_id: Target AWS account id

        Returns:
            Temporary credentials, or None when the role cannot be assumed
            (callers skip the account and count one error)
        """
        role_arn = self.role_arn(account_id)
        try:
            session = self.session_factory(None)
            async with session.client(
                "sts", region_name=self.region, config=client_config()
            ) as sts:
                response = await sts.assume_role(
                    RoleArn=role_arn,
                    RoleSessionName=ROLE_SESSION_NAME,
                    DurationSeconds=ASSUMED_ROLE_DURATION_SECONDS,
                )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.warning(
                "credentials.assume_role_failed",
                account_id=account_id,
                role_arn=role_arn,
                error_code=error_code,
                error=str(e),
            )
            return None
        except BotoCoreError as e:
            logger.warning(
                "credentials.assume_role_failed",
                account_id=account_id,
                role_arn=role_arn,
                error=str(e),
            )
            return None

        creds = response.get("Credentials") or {}
        if not creds.get("AccessKeyId") or not creds.get("SecretAccessKey"):
            logger.warning("credentials.assume_role_empty", account_id=account_id, role_arn=role_arn)
            return None

        logger.info("credentials.assumed_role", account_id=account_id, role_arn=role_arn)
        return AwsCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds.get("SessionToken"),
        )
