"""Outbound event payloads published on the downstream channels."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from claim_pipeline.schemas.claim import (
    Claim,
    ClaimAssessment,
    ClaimPriority,
    ClaimStatus,
    ClaimType,
    JsonDecimal,
)


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    claim_number: str
    policy_number: str
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_json(self) -> str:
        """Serialize with camelCase keys, as consumers expect."""
        return self.model_dump_json(by_alias=True)


class ProcessedClaimEvent(_Event):
    event_type: Literal["CLAIM_PROCESSED"] = "CLAIM_PROCESSED"
    claim_type: ClaimType
    claimed_amount: JsonDecimal
    approved_amount: JsonDecimal
    risk_score: int
    fraud_flag: bool
    processing_time_ms: int

    @classmethod
    def from_outcome(cls, claim: Claim, assessment: ClaimAssessment) -> ProcessedClaimEvent:
        return cls(
            claim_number=claim.claim_number,
            policy_number=claim.policy_number,
            claim_type=claim.claim_type,
            claimed_amount=claim.claimed_amount,
            approved_amount=assessment.approved_amount,
            risk_score=assessment.risk_score,
            fraud_flag=assessment.fraud_flag,
            processing_time_ms=assessment.processing_time_ms,
        )


class UrgentProcessedClaimEvent(_Event):
    event_type: Literal["URGENT_CLAIM_PROCESSED"] = "URGENT_CLAIM_PROCESSED"
    priority: ClaimPriority
    approved_amount: JsonDecimal
    processing_time_ms: int

    @classmethod
    def from_outcome(
        cls, claim: Claim, assessment: ClaimAssessment
    ) -> UrgentProcessedClaimEvent:
        return cls(
            claim_number=claim.claim_number,
            policy_number=claim.policy_number,
            priority=claim.priority,
            approved_amount=assessment.approved_amount,
            processing_time_ms=assessment.processing_time_ms,
        )


class FraudAlert(_Event):
    alert_type: Literal["FRAUD_DETECTED"] = "FRAUD_DETECTED"
    claimed_amount: JsonDecimal
    risk_score: int
    assessor_id: str
    assessment_notes: str

    @classmethod
    def from_outcome(cls, claim: Claim, assessment: ClaimAssessment) -> FraudAlert:
        return cls(
            claim_number=claim.claim_number,
            policy_number=claim.policy_number,
            claimed_amount=claim.claimed_amount,
            risk_score=assessment.risk_score,
            assessor_id=assessment.assessor_id,
            assessment_notes=assessment.assessment_notes,
        )


class HighPriorityNotification(_Event):
    notification_type: Literal["HIGH_PRIORITY_CLAIM"] = "HIGH_PRIORITY_CLAIM"
    claim_type: ClaimType
    priority: ClaimPriority
    claimed_amount: JsonDecimal

    @classmethod
    def from_claim(cls, claim: Claim) -> HighPriorityNotification:
        return cls(
            claim_number=claim.claim_number,
            policy_number=claim.policy_number,
            claim_type=claim.claim_type,
            priority=claim.priority,
            claimed_amount=claim.claimed_amount,
        )


class ClaimLifecycleEvent(_Event):
    event_type: str
    status: ClaimStatus
    priority: ClaimPriority
    claim_type: ClaimType

    @classmethod
    def from_claim(cls, claim: Claim, event_type: str) -> ClaimLifecycleEvent:
        return cls(
            event_type=event_type,
            claim_number=claim.claim_number,
            policy_number=claim.policy_number,
            status=claim.status,
            priority=claim.priority,
            claim_type=claim.claim_type,
        )
