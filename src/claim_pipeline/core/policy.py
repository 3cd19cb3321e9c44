"""Policy existence checks and policy-record loading.

Claims are only admitted against policies with an ACTIVE record. The check
is side-effect free and is used as a hard gate by the claim processor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from pathlib import Path

import pandas as pd
from loguru import logger

from claim_pipeline.schemas.policy import InsurancePolicy, PolicyStatus
from claim_pipeline.storage.store import ClaimStore

_REQUIRED_COLUMNS = ("policy_number", "policyholder_id", "status")


class PolicyChecker(ABC):
    """Answers whether an active policy record exists for a policy number."""

    @abstractmethod
    def exists(self, policy_number: str) -> bool:
        ...


class DatabasePolicyChecker(PolicyChecker):
    """Policy check against the ``insurance_policies`` table."""

    def __init__(self, store: ClaimStore) -> None:
        self.store = store

    def exists(self, policy_number: str) -> bool:
        found = self.store.active_policy_exists(policy_number)
        logger.debug(
            "Policy lookup {policy}: {found}",
            policy=policy_number,
            found=found,
        )
        return found


class CsvPolicyChecker(PolicyChecker):
    """Policy check against a policy-records CSV, loaded once at construction."""

    def __init__(self, csv_path: str) -> None:
        df = read_policy_records(csv_path)
        active = df[df["status"] == PolicyStatus.ACTIVE.value]
        self._active: frozenset[str] = frozenset(active["policy_number"])
        logger.info(
            "Loaded {n} active policies from {path}",
            n=len(self._active),
            path=csv_path,
        )

    def exists(self, policy_number: str) -> bool:
        return policy_number in self._active


# ---------------------------------------------------------------------------
# CSV loading
# ---------------------------------------------------------------------------


def read_policy_records(csv_path: str) -> pd.DataFrame:
    """Read and normalise a policy-records CSV.

    Parameters
    ----------
    csv_path:
        Path to a CSV with at least ``policy_number``, ``policyholder_id`` and
        ``status`` columns. ``policy_type``, ``coverage_amount``,
        ``start_date`` and ``end_date`` are optional.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If a required column is missing.
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        msg = f"Policy records file not found: {csv_path}"
        logger.error(msg)
        raise FileNotFoundError(msg)

    df = pd.read_csv(csv_file, dtype=str).fillna("")
    missing = [c for c in _REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Policy records file {csv_path} is missing columns: {missing}")

    df["policy_number"] = df["policy_number"].str.strip()
    df["status"] = df["status"].str.strip().str.upper()
    logger.debug("Loaded policy records: {n} rows", n=len(df))
    return df


def seed_policies(store: ClaimStore, csv_path: str) -> int:
    """Upsert every row of a policy-records CSV into *store*.

    Returns
    -------
    int
        Number of policies written.
    """
    df = read_policy_records(csv_path)
    for row in df.to_dict(orient="records"):
        store.upsert_policy(_row_to_policy(row))
    logger.info("Seeded {n} policies from {path}", n=len(df), path=csv_path)
    return len(df)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _row_to_policy(row: dict[str, str]) -> InsurancePolicy:
    return InsurancePolicy(
        policy_number=row["policy_number"],
        policyholder_id=row["policyholder_id"],
        policy_type=row.get("policy_type") or "GENERAL",
        coverage_amount=Decimal(row.get("coverage_amount") or "0"),
        start_date=_parse_date(row.get("start_date", "")),
        end_date=_parse_date(row.get("end_date", "")),
        status=PolicyStatus(row["status"]),
    )


def _parse_date(value: str) -> date | None:
    """Coerce an ISO date string to ``datetime.date``; blank means unknown."""
    value = str(value).strip()
    if not value:
        return None
    return date.fromisoformat(value)
