"""Pydantic schemas for the claim processing pipeline."""

from claim_pipeline.schemas.claim import (
    Claim,
    ClaimAssessment,
    ClaimDetails,
    ClaimPriority,
    ClaimStatus,
    ClaimSubmission,
    ClaimSubmissionResponse,
    ClaimType,
)
from claim_pipeline.schemas.events import (
    ClaimLifecycleEvent,
    FraudAlert,
    HighPriorityNotification,
    ProcessedClaimEvent,
    UrgentProcessedClaimEvent,
)

__all__ = [
    "Claim",
    "ClaimAssessment",
    "ClaimDetails",
    "ClaimLifecycleEvent",
    "ClaimPriority",
    "ClaimStatus",
    "ClaimSubmission",
    "ClaimSubmissionResponse",
    "ClaimType",
    "FraudAlert",
    "HighPriorityNotification",
    "ProcessedClaimEvent",
    "UrgentProcessedClaimEvent",
]
