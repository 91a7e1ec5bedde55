"""Tests for explorer response models and timestamp parsing."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from wallet_watcher.services.explorers.response_models import (
    BlnscanAccount,
    ChainzAddressInfo,
    parse_epoch_timestamp,
)


class TestParseEpochTimestamp:
    """Timestamp normalization into epoch seconds."""

    def test_empty_values(self):
        assert parse_epoch_timestamp(None) is None
        assert parse_epoch_timestamp("") is None

    def test_integer_seconds(self):
        assert parse_epoch_timestamp(1_700_000_000) == 1_700_000_000

    def test_float_seconds_truncated(self):
        assert parse_epoch_timestamp(1_700_000_000.9) == 1_700_000_000

    def test_milliseconds(self):
        assert parse_epoch_timestamp(1_700_000_000_000) == 1_700_000_000

    def test_numeric_string(self):
        assert parse_epoch_timestamp(" 1700000000 ") == 1_700_000_000

    def test_iso_with_z(self):
        assert parse_epoch_timestamp("2023-11-14T22:13:20Z") == 1_700_000_000

    def test_iso_with_offset(self):
        assert parse_epoch_timestamp("2023-11-15T00:13:20+02:00") == 1_700_000_000

    def test_naive_string_is_utc(self):
        assert parse_epoch_timestamp("2023-11-14 22:13:20") == 1_700_000_000

    def test_datetime(self):
        dt = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert parse_epoch_timestamp(dt) == 1_700_000_000

    @pytest.mark.parametrize("value", [True, -5, float("inf"), float("nan"), "yesterday", [1]])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_epoch_timestamp(value)


class TestChainzAddressInfo:
    """Chainz addressinfo model."""

    def test_alias_and_extra_fields(self):
        info = ChainzAddressInfo.model_validate(
            {"balance": 1.25, "lastBlockTimestamp": "1700000000", "totalReceived": 99}
        )
        assert info.balance == 1.25
        assert info.last_block_timestamp == 1_700_000_000

    def test_missing_timestamp(self):
        assert ChainzAddressInfo.model_validate({}).last_block_timestamp is None

    def test_bad_timestamp_raises(self):
        with pytest.raises(ValidationError):
            ChainzAddressInfo.model_validate({"lastBlockTimestamp": "never"})


class TestBlnscanAccount:
    """BLNScan account model."""

    def test_latest_time_skips_unreadable_entries(self):
        account = BlnscanAccount.model_validate(
            {"txns": [{"time": 100}, {"time": "garbage"}, "not-a-dict", {"time": 300}, {}]}
        )
        assert len(account.txns) == 4
        assert account.latest_time == 300

    def test_no_txns(self):
        assert BlnscanAccount.model_validate({}).latest_time is None
        assert BlnscanAccount.model_validate({"txns": None}).latest_time is None

    def test_lenient_balance(self):
        assert BlnscanAccount.model_validate({"balance": "2.5"}).balance == 2.5
        assert BlnscanAccount.model_validate({"balance": "n/a"}).balance is None

    def test_txns_must_be_list(self):
        with pytest.raises(ValidationError):
            BlnscanAccount.model_validate({"txns": {"time": 1}})
