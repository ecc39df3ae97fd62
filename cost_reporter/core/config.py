"""Application Configuration using Pydantic Settings."""

import os
from pathlib import Path
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_env_file() -> str:
    """
    Determine which .env file to load based on APP_ENV.

    Returns:
        Path to the .env file to load
    """
    app_env = os.getenv("APP_ENV", "development")
    base_dir = Path(__file__).parent.parent.parent  # repository root

    if app_env == "test":
        env_file = base_dir / ".env.test"
        if env_file.exists():
            return str(env_file)

    if app_env == "production":
        env_file = base_dir / ".env.production"
        if env_file.exists():
            return str(env_file)

    # Default to .env
    return str(base_dir / ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=get_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "CostReporter"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # AWS
    AWS_REGION: str = "us-east-1"  # Cost Explorer and STS endpoint region
    AWS_CONNECT_TIMEOUT: int = 10
    AWS_READ_TIMEOUT: int = 30
    AWS_MAX_ATTEMPTS: int = 3

    # Slack
    SLACK_WEBHOOK_URL: str = ""
    SLACK_TIMEOUT_SECONDS: float = 10.0

    # Report thresholds
    MONTHLY_BUDGET: float = 500.0
    ANOMALY_THRESHOLD: float = 20.0  # Week-over-week increase (%) flagged as anomaly
    TOP_SERVICES_COUNT: int = 10
    UNUSED_SERVICES_COUNT: int = 40

    # Unused resource detection
    SNAPSHOT_AGE_THRESHOLD_DAYS: int = 90
    SCAN_DEADLINE_MARGIN_SECONDS: int = 30  # Stop scanning this long before Lambda timeout

    # Organization (multi-account) mode
    ORGANIZATION_MODE: bool = False
    ACCOUNT_IDS: str = ""  # "111111111111:Production,222222222222"
    CROSS_ACCOUNT_ROLE_NAME: str = "OrganizationAccountAccessRole"

    # Error Tracking (Sentry)
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0

    @field_validator(
        "MONTHLY_BUDGET",
        "ANOMALY_THRESHOLD",
        "TOP_SERVICES_COUNT",
        "UNUSED_SERVICES_COUNT",
        "SNAPSHOT_AGE_THRESHOLD_DAYS",
        "SCAN_DEADLINE_MARGIN_SECONDS",
        mode="before",
    )
    @classmethod
    def blank_numeric_uses_default(cls, v: Any, info) -> Any:
        """Treat blank numeric environment values as unset."""
        if isinstance(v, str) and not v.strip():
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("SNAPSHOT_AGE_THRESHOLD_DAYS", mode="after")
    @classmethod
    def validate_snapshot_age(cls, v: int) -> int:
        """Snapshot age threshold must be at least one day."""
        if v < 1:
            raise ValueError("SNAPSHOT_AGE_THRESHOLD_DAYS must be >= 1")
        return v

    @field_validator("CROSS_ACCOUNT_ROLE_NAME", mode="after")
    @classmethod
    def validate_role_name(cls, v: str) -> str:
        """Strip whitespace and fall back to the default role name."""
        v = v.strip()
        return v or "OrganizationAccountAccessRole"


# Create global settings instance
settings = Settings()
