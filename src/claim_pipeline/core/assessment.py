"""Rule-based claim assessment: approved amount, risk score and fraud flag.

Two variants exist. The standard assessor applies per-type payout
multipliers and a randomised risk score; the express assessor used by the
expedited lane applies a fixed formula with no randomness.

Randomness is never ambient: the standard assessor draws from the
``random.Random`` instance it was constructed with, so a seeded engine
produces exactly reproducible assessments.
"""

from __future__ import annotations

import random
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from loguru import logger

from claim_pipeline.schemas.claim import Claim, ClaimAssessment, ClaimType

APPROVAL_MULTIPLIERS: dict[ClaimType, Decimal] = {
    ClaimType.ACCIDENT: Decimal("0.85"),
    ClaimType.ILLNESS: Decimal("0.90"),
    ClaimType.PROPERTY_DAMAGE: Decimal("0.80"),
    ClaimType.THEFT: Decimal("0.75"),
    ClaimType.NATURAL_DISASTER: Decimal("0.95"),
    ClaimType.TRAVEL_CANCELATION: Decimal("0.70"),
    ClaimType.DEATH: Decimal("1.00"),
    ClaimType.DISABILITY: Decimal("0.90"),
    ClaimType.OTHER: Decimal("0.60"),
}

HIGH_RISK_TYPES = frozenset({ClaimType.THEFT, ClaimType.NATURAL_DISASTER})

BASE_SCORE_RANGE = (10, 59)
LARGE_CLAIM_THRESHOLD = Decimal("10000")
LARGE_CLAIM_PENALTY = 20
HIGH_RISK_TYPE_PENALTY = 15
FRAUD_SCORE_THRESHOLD = 70
FRAUD_AMOUNT_THRESHOLD = Decimal("50000")
PROCESSING_TIME_RANGE_MS = (300, 999)

STANDARD_ASSESSOR_PREFIX = "KAFKA_ASSESSOR_"

EXPRESS_ASSESSOR_ID = "EXPRESS_ASSESSOR"
EXPRESS_MULTIPLIER = Decimal("0.90")
EXPRESS_RISK_SCORE = 15
EXPRESS_PROCESSING_TIME_MS = 200
EXPRESS_NOTES = "Express assessment for high priority claim"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def approved_amount(claim: Claim) -> Decimal:
    """``claimed_amount × multiplier(claim_type)``, exact decimal arithmetic."""
    return claim.claimed_amount * APPROVAL_MULTIPLIERS[claim.claim_type]


def risk_score(claim: Claim, base: int) -> int:
    """Add amount and type penalties to *base* and clamp to ``[0, 100]``."""
    score = base
    if claim.claimed_amount > LARGE_CLAIM_THRESHOLD:
        score += LARGE_CLAIM_PENALTY
    if claim.claim_type in HIGH_RISK_TYPES:
        score += HIGH_RISK_TYPE_PENALTY
    return max(0, min(score, 100))


def is_fraudulent(score: int, claimed_amount: Decimal) -> bool:
    return score > FRAUD_SCORE_THRESHOLD or claimed_amount > FRAUD_AMOUNT_THRESHOLD


def assessment_notes(claim: Claim, score: int, fraud: bool) -> str:
    verdict = "Flagged for potential fraud." if fraud else "No fraud indicators detected."
    return (
        f"Standard assessment for {claim.claim_type.value} claim. "
        f"Risk score: {score}. {verdict}"
    )


# ---------------------------------------------------------------------------
# Assessors
# ---------------------------------------------------------------------------


class Assessor(ABC):
    """Contract for interchangeable assessment variants."""

    @abstractmethod
    def assess(self, claim: Claim) -> ClaimAssessment:
        ...


class StandardAssessor(Assessor):
    """Per-type multipliers, randomised risk score, fraud heuristics."""

    def __init__(self, rng: random.Random) -> None:
        self.rng = rng

    def assess(self, claim: Claim) -> ClaimAssessment:
        # One draw per run; the fraud decision and the notes share it.
        base = self.rng.randint(*BASE_SCORE_RANGE)
        score = risk_score(claim, base)
        fraud = is_fraudulent(score, claim.claimed_amount)

        assessment = ClaimAssessment(
            claim_number=claim.claim_number,
            assessor_id=STANDARD_ASSESSOR_PREFIX + self._suffix(),
            approved_amount=approved_amount(claim),
            risk_score=score,
            fraud_flag=fraud,
            assessment_notes=assessment_notes(claim, score, fraud),
            processing_time_ms=self.rng.randint(*PROCESSING_TIME_RANGE_MS),
        )
        logger.debug(
            "Standard assessment for {num}: base={base} score={score} fraud={fraud}",
            num=claim.claim_number,
            base=base,
            score=score,
            fraud=fraud,
        )
        return assessment

    def _suffix(self) -> str:
        return uuid.UUID(int=self.rng.getrandbits(128)).hex[:6]


class ExpressAssessor(Assessor):
    """Fixed-formula assessment for the expedited lane."""

    def assess(self, claim: Claim) -> ClaimAssessment:
        return ClaimAssessment(
            claim_number=claim.claim_number,
            assessor_id=EXPRESS_ASSESSOR_ID,
            approved_amount=claim.claimed_amount * EXPRESS_MULTIPLIER,
            risk_score=EXPRESS_RISK_SCORE,
            fraud_flag=False,
            assessment_notes=EXPRESS_NOTES,
            processing_time_ms=EXPRESS_PROCESSING_TIME_MS,
        )


class AssessmentEngine:
    """Single entry point to both assessment variants.

    Parameters
    ----------
    rng:
        Randomness source for the standard assessor. Defaults to a fresh
        unseeded ``random.Random``.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self._standard = StandardAssessor(self.rng)
        self._express = ExpressAssessor()

    @classmethod
    def seeded(cls, seed: Optional[int]) -> AssessmentEngine:
        return cls(random.Random(seed))

    def standard(self, claim: Claim) -> ClaimAssessment:
        return self._standard.assess(claim)

    def express(self, claim: Claim) -> ClaimAssessment:
        return self._express.assess(claim)
