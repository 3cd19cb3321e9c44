"""Tests for policy checks and policy-record loading."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from claim_pipeline.core.policy import (
    CsvPolicyChecker,
    DatabasePolicyChecker,
    read_policy_records,
    seed_policies,
)
from claim_pipeline.schemas.policy import PolicyStatus
from claim_pipeline.storage.store import ClaimStore


class TestReadPolicyRecords:
    def test_normalises_status(self, policies_csv: str) -> None:
        df = read_policy_records(policies_csv)
        assert len(df) == 3
        assert list(df["status"]) == ["ACTIVE", "ACTIVE", "EXPIRED"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="not found"):
            read_policy_records(str(tmp_path / "nope.csv"))

    def test_missing_required_column(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.csv"
        bad.write_text("policy_number,status\nPOL-1,ACTIVE\n")
        with pytest.raises(ValueError, match="policyholder_id"):
            read_policy_records(str(bad))


class TestSeedPolicies:
    def test_seeds_every_row(self, policies_csv: str) -> None:
        store = ClaimStore.from_url("sqlite:///:memory:")
        assert seed_policies(store, policies_csv) == 3
        assert store.count_policies() == 3

        policy = store.get_policy("POL-1")
        assert policy is not None
        assert policy.coverage_amount == Decimal("50000.00")
        assert policy.start_date == date(2024, 1, 1)
        assert policy.end_date == date(2027, 12, 31)

    def test_blank_dates_become_none(self, policies_csv: str) -> None:
        store = ClaimStore.from_url("sqlite:///:memory:")
        seed_policies(store, policies_csv)
        policy = store.get_policy("POL-2")
        assert policy is not None
        assert policy.end_date is None
        assert policy.status == PolicyStatus.ACTIVE

    def test_reseeding_is_idempotent(self, policies_csv: str) -> None:
        store = ClaimStore.from_url("sqlite:///:memory:")
        seed_policies(store, policies_csv)
        seed_policies(store, policies_csv)
        assert store.count_policies() == 3


class TestDatabasePolicyChecker:
    def test_exists(self, store: ClaimStore) -> None:
        checker = DatabasePolicyChecker(store)
        assert checker.exists("POL-1") is True
        assert checker.exists("POL-3") is False
        assert checker.exists("POL-404") is False


class TestCsvPolicyChecker:
    def test_exists(self, policies_csv: str) -> None:
        checker = CsvPolicyChecker(policies_csv)
        assert checker.exists("POL-1") is True
        # lower-case status in the file is still ACTIVE
        assert checker.exists("POL-2") is True
        assert checker.exists("POL-3") is False
        assert checker.exists("POL-404") is False
