"""Tests for account configuration and caller identity."""

from unittest.mock import AsyncMock, patch

import pytest

from cost_reporter.services.accounts import (
    get_account_id,
    get_configured_accounts,
    parse_account_ids,
    should_use_organization_mode,
)


class TestParseAccountIds:
    """Test suite for ACCOUNT_IDS parsing."""

    def test_ids_with_and_without_names(self):
        accounts = parse_account_ids("111111111111:Production, 222222222222")

        assert list(accounts) == ["111111111111", "222222222222"]
        assert accounts["111111111111"].name == "Production"
        assert accounts["222222222222"].name == "222222222222"

    def test_invalid_ids_are_dropped(self):
        accounts = parse_account_ids("12345,abcdefghijkl:Bad,333333333333:Ok,,")

        assert list(accounts) == ["333333333333"]

    def test_blank_value(self):
        assert parse_account_ids("  ") == {}


class TestConfiguredAccounts:
    def test_none_when_nothing_valid(self):
        assert get_configured_accounts("") is None
        assert get_configured_accounts("not-an-id") is None

    def test_reads_settings_by_default(self):
        with patch("cost_reporter.services.accounts.settings") as settings:
            settings.ACCOUNT_IDS = "444444444444:Data"

            accounts = get_configured_accounts()

        assert accounts["444444444444"].name == "Data"

    @pytest.mark.parametrize(
        "organization_mode,account_ids,expected",
        [
            (False, "", False),
            (True, "", True),
            (False, "111111111111", True),
        ],
    )
    def test_should_use_organization_mode(self, organization_mode, account_ids, expected):
        with patch("cost_reporter.services.accounts.settings") as settings:
            settings.ORGANIZATION_MODE = organization_mode
            settings.ACCOUNT_IDS = account_ids

            assert should_use_organization_mode() is expected


class TestGetAccountId:
    @pytest.mark.asyncio
    async def test_caller_identity(self, fake_client, session_factory):
        sts = fake_client(
            get_caller_identity=AsyncMock(
                return_value={"Account": "111111111111", "Arn": "arn:aws:iam::111111111111:role/lambda"}
            )
        )

        assert await get_account_id(session_factory({"sts": sts})) == "111111111111"
