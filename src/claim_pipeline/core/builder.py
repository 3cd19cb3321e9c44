"""Normalise raw submissions into canonical claim records."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from loguru import logger

from claim_pipeline.core.errors import ClaimProcessingError
from claim_pipeline.schemas.claim import Claim, ClaimPriority, ClaimStatus, ClaimSubmission

STANDARD_PREFIX = "CLM-"
EXPEDITED_PREFIX = "HP-"


def generate_claim_number(prefix: str) -> str:
    """Return *prefix* followed by 8 uppercase hex chars of a random UUID."""
    return prefix + uuid.uuid4().hex[:8].upper()


class ClaimBuilder:
    """Builds :class:`Claim` records in standard or expedited mode.

    Parameters
    ----------
    is_taken:
        Optional predicate reporting whether a generated claim number is
        already in use. When given, generation is retried up to
        ``max_attempts`` times.
    max_attempts:
        Upper bound on claim-number generation attempts.
    """

    def __init__(
        self,
        is_taken: Optional[Callable[[str], bool]] = None,
        max_attempts: int = 3,
    ) -> None:
        self.is_taken = is_taken
        self.max_attempts = max(1, max_attempts)

    def build_standard(self, submission: ClaimSubmission) -> Claim:
        """SUBMITTED status, priority as submitted, ``CLM-`` numbers."""
        return self._build(
            submission,
            prefix=STANDARD_PREFIX,
            status=ClaimStatus.SUBMITTED,
            priority=submission.priority or ClaimPriority.NORMAL,
        )

    def build_expedited(self, submission: ClaimSubmission) -> Claim:
        """UNDER_REVIEW status and HIGH priority regardless of input, ``HP-`` numbers."""
        return self._build(
            submission,
            prefix=EXPEDITED_PREFIX,
            status=ClaimStatus.UNDER_REVIEW,
            priority=ClaimPriority.HIGH,
        )

    def _build(
        self,
        submission: ClaimSubmission,
        *,
        prefix: str,
        status: ClaimStatus,
        priority: ClaimPriority,
    ) -> Claim:
        now = datetime.now()
        return Claim(
            claim_number=submission.claim_number or self._new_claim_number(prefix),
            policy_number=submission.policy_number,
            claim_type=submission.claim_type,
            incident_date=submission.incident_date,
            claimed_amount=submission.claimed_amount,
            description=submission.description,
            status=status,
            priority=priority,
            created_at=now,
            updated_at=now,
        )

    def _new_claim_number(self, prefix: str) -> str:
        for attempt in range(1, self.max_attempts + 1):
            claim_number = generate_claim_number(prefix)
            if self.is_taken is None or not self.is_taken(claim_number):
                return claim_number
            logger.warning(
                "Generated claim number {num} already taken (attempt {n})",
                num=claim_number,
                n=attempt,
            )
        raise ClaimProcessingError(
            f"Could not generate a unique claim number after {self.max_attempts} attempts",
            error_code="CLAIM_NUMBER_EXHAUSTED",
        )
