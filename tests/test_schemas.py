"""Tests for Pydantic schemas: ClaimSubmission, Claim, ClaimAssessment and events."""

from __future__ import annotations

import json
from datetime import date, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from claim_pipeline.schemas import (
    Claim,
    ClaimAssessment,
    ClaimLifecycleEvent,
    ClaimPriority,
    ClaimStatus,
    ClaimSubmission,
    ClaimSubmissionResponse,
    ClaimType,
    FraudAlert,
    ProcessedClaimEvent,
)

PAST_DATE = date(2025, 3, 14)


def _claim(**overrides) -> Claim:
    data = {
        "claim_number": "CLM-ABCDEF12",
        "policy_number": "POL-1",
        "claim_type": ClaimType.THEFT,
        "incident_date": PAST_DATE,
        "claimed_amount": Decimal("60000"),
        "description": "x",
    }
    data.update(overrides)
    return Claim(**data)


def _assessment(**overrides) -> ClaimAssessment:
    data = {
        "claim_number": "CLM-ABCDEF12",
        "assessor_id": "KAFKA_ASSESSOR_abc123",
        "approved_amount": Decimal("45000.00"),
        "risk_score": 85,
        "fraud_flag": True,
        "assessment_notes": "Standard assessment for THEFT claim. Risk score: 85.",
        "processing_time_ms": 512,
    }
    data.update(overrides)
    return ClaimAssessment(**data)


# ═══════════════════════════════════════════════════════════════════════
# ClaimSubmission
# ═══════════════════════════════════════════════════════════════════════

class TestClaimSubmission:
    """Test suite for :class:`ClaimSubmission`."""

    def test_valid_submission(self, accident_submission: ClaimSubmission) -> None:
        assert accident_submission.claim_number is None
        assert accident_submission.policy_number == "POL-1"
        assert accident_submission.claimed_amount == Decimal("3500.00")
        assert accident_submission.priority == ClaimPriority.NORMAL

    def test_parses_camel_case_wire_format(self, submission_payload: dict) -> None:
        submission = ClaimSubmission.model_validate_json(json.dumps(submission_payload))
        assert submission.policy_number == "POL-1"
        assert submission.claim_type == ClaimType.THEFT
        assert submission.incident_date == PAST_DATE
        assert submission.claimed_amount == Decimal("60000")

    def test_accepts_snake_case_names(self) -> None:
        submission = ClaimSubmission(
            policy_number="POL-2",
            claim_type="ILLNESS",
            incident_date="2025-01-10",
            claimed_amount="120.50",
            description="Clinic visit",
        )
        assert submission.claim_type == ClaimType.ILLNESS
        assert submission.incident_date == date(2025, 1, 10)

    def test_amount_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="greater_than"):
            ClaimSubmission(
                policy_number="POL-1",
                claim_type=ClaimType.OTHER,
                incident_date=PAST_DATE,
                claimed_amount=Decimal("0"),
                description="Nothing",
            )

    def test_one_cent_is_the_smallest_amount(self) -> None:
        submission = ClaimSubmission(
            policy_number="POL-1",
            claim_type=ClaimType.OTHER,
            incident_date=PAST_DATE,
            claimed_amount=Decimal("0.01"),
            description="Smallest claim",
        )
        assert submission.claimed_amount == Decimal("0.01")

    @pytest.mark.parametrize("amount", ["0.009", "0.001", "100.005"])
    def test_sub_cent_amounts_rejected(self, amount: str) -> None:
        with pytest.raises(ValidationError, match="claimed_amount|claimedAmount"):
            ClaimSubmission(
                policy_number="POL-1",
                claim_type=ClaimType.OTHER,
                incident_date=PAST_DATE,
                claimed_amount=Decimal(amount),
                description="Fractional cents",
            )

    def test_incident_date_cannot_be_in_future(self) -> None:
        with pytest.raises(ValidationError, match="cannot be in the future"):
            ClaimSubmission(
                policy_number="POL-1",
                claim_type=ClaimType.ACCIDENT,
                incident_date=date.today() + timedelta(days=1),
                claimed_amount=Decimal("10"),
                description="Tomorrow's accident",
            )

    def test_incident_date_today_is_allowed(self) -> None:
        submission = ClaimSubmission(
            policy_number="POL-1",
            claim_type=ClaimType.ACCIDENT,
            incident_date=date.today(),
            claimed_amount=Decimal("10"),
            description="Fender bender",
        )
        assert submission.incident_date == date.today()

    def test_description_length_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            ClaimSubmission(
                policy_number="POL-1",
                claim_type=ClaimType.ACCIDENT,
                incident_date=PAST_DATE,
                claimed_amount=Decimal("10"),
                description="d" * 1001,
            )

    def test_blank_policy_number_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClaimSubmission(
                policy_number="   ",
                claim_type=ClaimType.ACCIDENT,
                incident_date=PAST_DATE,
                claimed_amount=Decimal("10"),
                description="Whitespace only",
            )

    def test_unknown_claim_type_rejected(self, submission_payload: dict) -> None:
        submission_payload["claimType"] = "ALIEN_ABDUCTION"
        with pytest.raises(ValidationError):
            ClaimSubmission.model_validate(submission_payload)

    def test_missing_required_field_rejected(self, submission_payload: dict) -> None:
        del submission_payload["policyNumber"]
        with pytest.raises(ValidationError):
            ClaimSubmission.model_validate(submission_payload)


# ═══════════════════════════════════════════════════════════════════════
# Claim / ClaimAssessment
# ═══════════════════════════════════════════════════════════════════════

class TestClaim:
    def test_defaults(self) -> None:
        claim = _claim()
        assert claim.status == ClaimStatus.SUBMITTED
        assert claim.priority == ClaimPriority.NORMAL
        assert claim.created_at is not None

    def test_amount_serialised_as_json_number(self) -> None:
        body = json.loads(_claim().model_dump_json(by_alias=True))
        assert body["claimedAmount"] == 60000.0
        assert body["claimNumber"] == "CLM-ABCDEF12"
        assert body["claimType"] == "THEFT"

    def test_python_dump_keeps_decimal(self) -> None:
        assert isinstance(_claim().model_dump()["claimed_amount"], Decimal)

    def test_amount_limited_to_cents(self) -> None:
        with pytest.raises(ValidationError, match="decimal_max_places"):
            _claim(claimed_amount=Decimal("100.005"))


class TestClaimAssessment:
    def test_risk_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            _assessment(risk_score=101)
        with pytest.raises(ValidationError):
            _assessment(risk_score=-1)

    def test_approved_amount_non_negative(self) -> None:
        with pytest.raises(ValidationError):
            _assessment(approved_amount=Decimal("-1"))


class TestClaimSubmissionResponse:
    def test_accepted(self) -> None:
        resp = ClaimSubmissionResponse.accepted(None, "POL-1")
        assert resp.status == "ACCEPTED"
        assert resp.claim_number is None

    def test_urgent_accepted(self) -> None:
        resp = ClaimSubmissionResponse.urgent_accepted("CLM-1", "POL-1")
        assert resp.status == "URGENT_ACCEPTED"
        assert "expedited" in resp.message


# ═══════════════════════════════════════════════════════════════════════
# Events
# ═══════════════════════════════════════════════════════════════════════

class TestEvents:
    def test_processed_event_payload(self) -> None:
        body = json.loads(ProcessedClaimEvent.from_outcome(_claim(), _assessment()).to_json())
        assert body["eventType"] == "CLAIM_PROCESSED"
        assert body["claimNumber"] == "CLM-ABCDEF12"
        assert body["approvedAmount"] == 45000.0
        assert body["riskScore"] == 85
        assert body["fraudFlag"] is True
        assert "timestamp" in body

    def test_fraud_alert_payload(self) -> None:
        body = json.loads(FraudAlert.from_outcome(_claim(), _assessment()).to_json())
        assert body["alertType"] == "FRAUD_DETECTED"
        assert body["assessorId"] == "KAFKA_ASSESSOR_abc123"
        assert body["claimedAmount"] == 60000.0

    def test_lifecycle_event_carries_status(self) -> None:
        claim = _claim(status=ClaimStatus.UNDER_REVIEW, priority=ClaimPriority.HIGH)
        body = json.loads(
            ClaimLifecycleEvent.from_claim(claim, "HIGH_PRIORITY_CLAIM_PROCESSED").to_json()
        )
        assert body["eventType"] == "HIGH_PRIORITY_CLAIM_PROCESSED"
        assert body["status"] == "UNDER_REVIEW"
        assert body["priority"] == "HIGH"
