"""Unit tests for Settings validation."""

import pytest
from pydantic import ValidationError

from cost_reporter.core.config import Settings


class TestSettingsDefaults:
    """Test suite for default configuration values."""

    def test_report_defaults(self):
        settings = Settings()

        assert settings.MONTHLY_BUDGET == 500.0
        assert settings.ANOMALY_THRESHOLD == 20.0
        assert settings.TOP_SERVICES_COUNT == 10
        assert settings.UNUSED_SERVICES_COUNT == 40

    def test_scan_defaults(self):
        settings = Settings()

        assert settings.SNAPSHOT_AGE_THRESHOLD_DAYS == 90
        assert settings.SCAN_DEADLINE_MARGIN_SECONDS == 30


class TestSettingsValidation:
    """Test suite for field validators."""

    def test_blank_numeric_values_fall_back_to_defaults(self):
        settings = Settings(MONTHLY_BUDGET="", SNAPSHOT_AGE_THRESHOLD_DAYS="  ", TOP_SERVICES_COUNT="")

        assert settings.MONTHLY_BUDGET == 500.0
        assert settings.SNAPSHOT_AGE_THRESHOLD_DAYS == 90
        assert settings.TOP_SERVICES_COUNT == 10

    def test_numeric_strings_are_parsed(self):
        settings = Settings(MONTHLY_BUDGET="1250.5", SNAPSHOT_AGE_THRESHOLD_DAYS="30")

        assert settings.MONTHLY_BUDGET == 1250.5
        assert settings.SNAPSHOT_AGE_THRESHOLD_DAYS == 30

    def test_reject_zero_snapshot_age(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(SNAPSHOT_AGE_THRESHOLD_DAYS=0)

        assert "SNAPSHOT_AGE_THRESHOLD_DAYS" in str(exc_info.value)

    def test_blank_role_name_uses_default(self):
        settings = Settings(CROSS_ACCOUNT_ROLE_NAME="   ")

        assert settings.CROSS_ACCOUNT_ROLE_NAME == "OrganizationAccountAccessRole"

    def test_role_name_is_stripped(self):
        settings = Settings(CROSS_ACCOUNT_ROLE_NAME=" CostReaderRole ")

        assert settings.CROSS_ACCOUNT_ROLE_NAME == "CostReaderRole"
