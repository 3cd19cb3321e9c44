"""Shared fixtures for the claim processing pipeline test suite."""

from __future__ import annotations

import csv
import random
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from omegaconf import OmegaConf

from claim_pipeline.core.assessment import BASE_SCORE_RANGE, AssessmentEngine
from claim_pipeline.core.builder import ClaimBuilder
from claim_pipeline.core.policy import DatabasePolicyChecker
from claim_pipeline.messaging.bus import InMemoryMessageBus
from claim_pipeline.messaging.publisher import EventPublisher
from claim_pipeline.pipelines.processor import ClaimProcessor
from claim_pipeline.schemas.claim import ClaimPriority, ClaimSubmission, ClaimType
from claim_pipeline.schemas.policy import InsurancePolicy, PolicyStatus
from claim_pipeline.storage.store import ClaimStore

PAST_DATE = date(2025, 3, 14)


class FixedBaseRandom(random.Random):
    """``random.Random`` whose risk-score base draw is pinned to *base*."""

    def __init__(self, base: int) -> None:
        super().__init__(0)
        self.base = base

    def randint(self, a: int, b: int) -> int:
        if (a, b) == BASE_SCORE_RANGE:
            return self.base
        return super().randint(a, b)


# ---------------------------------------------------------------------------
# ClaimSubmission fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def accident_submission() -> ClaimSubmission:
    """A modest ACCIDENT claim against an active policy."""
    return ClaimSubmission(
        policy_number="POL-1",
        claim_type=ClaimType.ACCIDENT,
        incident_date=PAST_DATE,
        claimed_amount=Decimal("3500.00"),
        description="Rear-end collision at intersection, bumper damage",
    )


@pytest.fixture()
def theft_submission() -> ClaimSubmission:
    """A large THEFT claim, above the fraud amount threshold."""
    return ClaimSubmission(
        policy_number="POL-1",
        claim_type=ClaimType.THEFT,
        incident_date=PAST_DATE,
        claimed_amount=Decimal("60000"),
        description="x",
    )


@pytest.fixture()
def urgent_submission() -> ClaimSubmission:
    """A client-numbered URGENT claim."""
    return ClaimSubmission(
        claim_number="CLM-CLIENT-001",
        policy_number="POL-1",
        claim_type=ClaimType.PROPERTY_DAMAGE,
        incident_date=PAST_DATE,
        claimed_amount=Decimal("8000"),
        description="Kitchen fire",
        priority=ClaimPriority.URGENT,
    )


@pytest.fixture()
def unknown_policy_submission() -> ClaimSubmission:
    return ClaimSubmission(
        policy_number="POL-404",
        claim_type=ClaimType.ILLNESS,
        incident_date=PAST_DATE,
        claimed_amount=Decimal("1200"),
        description="Hospital stay",
    )


@pytest.fixture()
def submission_payload() -> dict[str, Any]:
    """Wire-format (camelCase) submission body."""
    return {
        "policyNumber": "POL-1",
        "claimType": "THEFT",
        "incidentDate": PAST_DATE.isoformat(),
        "claimedAmount": 60000,
        "description": "x",
    }


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> ClaimStore:
    """In-memory store with one active, one expired and one suspended policy."""
    claim_store = ClaimStore.from_url("sqlite:///:memory:")
    claim_store.upsert_policy(
        InsurancePolicy(policy_number="POL-1", policyholder_id="PH-001", policy_type="AUTO")
    )
    claim_store.upsert_policy(
        InsurancePolicy(
            policy_number="POL-3",
            policyholder_id="PH-003",
            status=PolicyStatus.EXPIRED,
        )
    )
    claim_store.upsert_policy(
        InsurancePolicy(
            policy_number="POL-4",
            policyholder_id="PH-004",
            status=PolicyStatus.SUSPENDED,
        )
    )
    return claim_store


@pytest.fixture()
def policies_csv(tmp_path: Path) -> str:
    """Write a small policy-records CSV and return its path."""
    csv_file = tmp_path / "policies.csv"
    rows = [
        ["policy_number", "policyholder_id", "policy_type", "coverage_amount",
         "start_date", "end_date", "status"],
        ["POL-1", "PH-001", "AUTO", "50000.00", "2024-01-01", "2027-12-31", "ACTIVE"],
        ["POL-2", "PH-002", "HOME", "250000.00", "2023-06-01", "", "active"],
        ["POL-3", "PH-003", "HEALTH", "100000.00", "2022-01-01", "2023-12-31", "EXPIRED"],
    ]
    with csv_file.open("w", newline="") as f:
        csv.writer(f).writerows(rows)
    return str(csv_file)


# ---------------------------------------------------------------------------
# Pipeline component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def bus() -> InMemoryMessageBus:
    return InMemoryMessageBus()


@pytest.fixture()
def publisher(bus: InMemoryMessageBus) -> EventPublisher:
    return EventPublisher(bus, publish_timeout_s=1.0)


@pytest.fixture()
def make_engine() -> Callable[[int], AssessmentEngine]:
    """Factory for engines whose base risk draw is pinned to a given value."""
    return lambda base: AssessmentEngine(FixedBaseRandom(base))


@pytest.fixture()
def engine(make_engine: Callable[[int], AssessmentEngine]) -> AssessmentEngine:
    """Engine whose base risk draw is pinned to 50."""
    return make_engine(50)


@pytest.fixture()
def processor(
    store: ClaimStore, engine: AssessmentEngine, publisher: EventPublisher
) -> ClaimProcessor:
    return ClaimProcessor(
        policy_checker=DatabasePolicyChecker(store),
        builder=ClaimBuilder(),
        engine=engine,
        store=store,
        publisher=publisher,
    )


# ---------------------------------------------------------------------------
# Hydra config fixture (test overrides)
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_cfg(tmp_path: Path, policies_csv: str) -> Any:
    """Return a minimal OmegaConf DictConfig with test overrides."""
    cfg_dict = {
        "pipeline": {
            "seed": 42,
            "claim_number_attempts": 3,
            "policy_source": "database",
        },
        "database": {
            "url": f"sqlite:///{tmp_path / 'claims.db'}",
            "echo": False,
        },
        "data": {
            "policies_csv": policies_csv,
        },
        "messaging": {
            "backend": "memory",
            "kafka": {
                "bootstrap_servers": "localhost:9092",
                "group_id": "claim-pipeline-test",
                "client_id": "claim-pipeline-test",
                "poll_timeout_ms": 50,
                "acks": "all",
            },
            "consumer_workers": 1,
            "max_redeliveries": 1,
            "publish_timeout_s": 1.0,
            "poll_interval_s": 0.01,
            "channels": {
                "claim_submissions": "claim-submissions",
                "high_priority_claims": "high-priority-claims",
                "processed_claims": "processed-claims",
                "fraud_alerts": "fraud-alerts",
                "claim_events": "claim-events",
            },
        },
        "logging": {
            "level": "WARNING",
            "colored": False,
            "format": "pretty",
        },
        "server": {
            "host": "127.0.0.1",
            "port": 8080,
            "debug": False,
            "cors_origins": ["http://localhost:3000"],
        },
    }
    return OmegaConf.create(cfg_dict)
