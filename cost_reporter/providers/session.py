"""aioboto3 session and client helpers."""

from typing import Any, AsyncIterator, Callable

import aioboto3
from botocore.config import Config

from cost_reporter.core.config import settings
from cost_reporter.schemas.account import AwsCredentials

SessionFactory = Callable[[AwsCredentials | None], Any]


def build_session(credentials: AwsCredentials | None = None) -> aioboto3.Session:
    """
    Create an aioboto3 session.

    Args:
        credentials: Assumed-role credentials, or None for the ambient
            identity of the execution environment (Lambda role, profile, env vars)

    Returns:
        aioboto3 session
    """
    if credentials is None:
        return aioboto3.Session()
    return aioboto3.Session(**credentials.session_kwargs())


def client_config() -> Config:
    """botocore client configuration shared by all scanners."""
    return Config(
        connect_timeout=settings.AWS_CONNECT_TIMEOUT,
        read_timeout=settings.AWS_READ_TIMEOUT,
        retries={"max_attempts": settings.AWS_MAX_ATTEMPTS, "mode": "standard"},
    )


async def paginate(
    client: Any, operation: str, result_key: str, **kwargs: Any
) -> AsyncIterator[dict]:
    """
    Iterate over every item of a paginated describe/list operation.

    Args:
        client: aioboto3 client
        operation: Paginated operation name (e.g., "describe_volumes")
        result_key: Key of the item list in each page (e.g., "Volumes")
        **kwargs: Operation parameters

    Yields:
        Individual items from all pages
    """
    paginator = client.get_paginator(operation)
    async for page in paginator.paginate(**kwargs):
        for item in page.get(result_key, []):
            yield item


def name_from_tags(tags: list[dict] | None, default: str) -> str:
    """Return the value of the Name tag, or ``default``."""
    for tag in tags or []:
        if tag.get("Key") == "Name" and tag.get("Value"):
            return tag["Value"]
    return default
