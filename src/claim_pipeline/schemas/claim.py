"""Pydantic models for insurance claims and their assessments."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

# Decimals travel as JSON numbers on the wire, not as strings.
JsonDecimal = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


# Matches the scale of the claims.claimed_amount column.
MIN_CLAIMED_AMOUNT = Decimal("0.01")


class ClaimType(str, Enum):
    ACCIDENT = "ACCIDENT"
    ILLNESS = "ILLNESS"
    PROPERTY_DAMAGE = "PROPERTY_DAMAGE"
    THEFT = "THEFT"
    NATURAL_DISASTER = "NATURAL_DISASTER"
    TRAVEL_CANCELATION = "TRAVEL_CANCELATION"
    DEATH = "DEATH"
    DISABILITY = "DISABILITY"
    OTHER = "OTHER"


class ClaimStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"
    CLOSED = "CLOSED"


class ClaimPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class _CamelModel(BaseModel):
    """Base model accepting both camelCase (wire) and snake_case names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ClaimSubmission(_CamelModel):
    """Incoming claim payload — validated at the intake boundary."""

    claim_number: Optional[str] = Field(
        default=None, description="Client-supplied claim number; generated when absent"
    )
    policy_number: str = Field(
        ..., min_length=1, max_length=50, description="Policy the claim is filed against"
    )
    claim_type: ClaimType = Field(..., description="Category of the loss")
    incident_date: date = Field(..., description="Date the incident occurred")
    claimed_amount: JsonDecimal = Field(
        ...,
        ge=MIN_CLAIMED_AMOUNT,
        max_digits=15,
        decimal_places=2,
        description="Amount claimed, in whole cents",
    )
    description: str = Field(
        ..., min_length=1, max_length=1000, description="Free-text description of the incident"
    )
    priority: ClaimPriority = Field(default=ClaimPriority.NORMAL)
    policyholder_id: Optional[str] = None
    policyholder_name: Optional[str] = None
    policyholder_email: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "policyNumber": "POL-1",
                    "claimType": "ACCIDENT",
                    "incidentDate": "2026-02-15",
                    "claimedAmount": 3500.00,
                    "description": "Rear-end collision at intersection",
                    "priority": "NORMAL",
                }
            ]
        }
    }

    @field_validator("incident_date")
    @classmethod
    def _not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Incident date cannot be in the future")
        return value


class Claim(_CamelModel):
    """Canonical claim record owned by the processing pipeline."""

    claim_number: str
    policy_number: str
    claim_type: ClaimType
    incident_date: date
    claimed_amount: JsonDecimal = Field(
        ..., ge=MIN_CLAIMED_AMOUNT, max_digits=15, decimal_places=2
    )
    description: str
    status: ClaimStatus = ClaimStatus.SUBMITTED
    priority: ClaimPriority = ClaimPriority.NORMAL
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ClaimAssessment(_CamelModel):
    """Outcome of evaluating a claim. Looked up by claim number, not by key."""

    claim_number: str
    assessor_id: str
    approved_amount: JsonDecimal = Field(..., ge=0)
    risk_score: int = Field(..., ge=0, le=100)
    fraud_flag: bool = False
    assessment_notes: str = ""
    processing_time_ms: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=datetime.now)


class ClaimSubmissionResponse(_CamelModel):
    """Acknowledgement returned by the intake endpoints."""

    claim_number: Optional[str] = None
    policy_number: str
    status: str
    message: str

    @classmethod
    def accepted(cls, claim_number: Optional[str], policy_number: str) -> ClaimSubmissionResponse:
        return cls(
            claim_number=claim_number,
            policy_number=policy_number,
            status="ACCEPTED",
            message="Claim submitted successfully for processing",
        )

    @classmethod
    def urgent_accepted(
        cls, claim_number: Optional[str], policy_number: str
    ) -> ClaimSubmissionResponse:
        return cls(
            claim_number=claim_number,
            policy_number=policy_number,
            status="URGENT_ACCEPTED",
            message="Urgent claim submitted successfully for expedited processing",
        )


class ClaimDetails(_CamelModel):
    """A claim together with every assessment recorded against it."""

    claim: Claim
    assessments: list[ClaimAssessment] = Field(default_factory=list)
