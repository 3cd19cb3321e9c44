"""Claim processor — the orchestrator of both processing lanes.

Standard lane::

    policy gate ──(missing)──► PolicyNotFoundError
      │
      ▼
    build (CLM-, SUBMITTED) ─► upsert claim
      │
      ▼
    standard assessment ─► insert assessment
      │
      ├─(fraud flag)──────► fraud alert
      ├─(HIGH / URGENT)───► high-priority notification
      ▼
    processed event + lifecycle CLAIM_PROCESSED

Expedited lane::

    policy gate ─► build (HP-, UNDER_REVIEW, HIGH) ─► upsert claim
      ─► express assessment ─► insert assessment
      ─► urgent processed event + lifecycle HIGH_PRIORITY_CLAIM_PROCESSED

The claim and the assessment are committed in two separate transactions.
Event publishing happens after both commits and never fails the run.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from loguru import logger

from claim_pipeline.core.assessment import AssessmentEngine
from claim_pipeline.core.builder import ClaimBuilder
from claim_pipeline.core.errors import ClaimProcessingError, PolicyNotFoundError
from claim_pipeline.core.policy import PolicyChecker
from claim_pipeline.messaging.publisher import EventPublisher
from claim_pipeline.schemas.claim import Claim, ClaimAssessment, ClaimPriority, ClaimSubmission
from claim_pipeline.storage.store import ClaimStore

CLAIM_PROCESSED = "CLAIM_PROCESSED"
HIGH_PRIORITY_CLAIM_PROCESSED = "HIGH_PRIORITY_CLAIM_PROCESSED"

PRIORITY_NOTIFY = frozenset({ClaimPriority.HIGH, ClaimPriority.URGENT})


@dataclass(frozen=True)
class ProcessingResult:
    """The persisted claim and the assessment produced by one run."""

    claim: Claim
    assessment: ClaimAssessment


class ClaimProcessor:
    """Sequences validation, persistence, assessment and event emission.

    All collaborators are passed in explicitly; the processor owns the
    ordering of writes and is the only component that persists claims and
    assessments.
    """

    def __init__(
        self,
        policy_checker: PolicyChecker,
        builder: ClaimBuilder,
        engine: AssessmentEngine,
        store: ClaimStore,
        publisher: EventPublisher,
    ) -> None:
        self.policy_checker = policy_checker
        self.builder = builder
        self.engine = engine
        self.store = store
        self.publisher = publisher

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def process_claim_submission(self, submission: ClaimSubmission) -> ProcessingResult:
        """Run the standard lane for one submission.

        Raises
        ------
        PolicyNotFoundError
            If no active policy exists; nothing is persisted.
        PersistenceError
            If the claim or assessment write fails.
        """
        logger.info(
            "Starting claim processing for policy {policy}",
            policy=submission.policy_number,
        )
        start = time.time()

        self._require_policy(submission)

        claim = self.builder.build_standard(submission)
        with _correlated(claim.claim_number):
            claim = self.store.upsert_claim(claim)
            logger.info("Claim saved: {num}", num=claim.claim_number)

            assessment = self.store.insert_assessment(self.engine.standard(claim))
            logger.info(
                "Assessment created for {num} | approved={amount} | risk={score} | fraud={fraud}",
                num=claim.claim_number,
                amount=assessment.approved_amount,
                score=assessment.risk_score,
                fraud=assessment.fraud_flag,
            )

        self._handle_fraud_detection(claim, assessment)
        self._handle_high_priority(claim)

        self.publisher.send_processed_claim_event(claim, assessment)
        self.publisher.send_claim_lifecycle_event(claim, CLAIM_PROCESSED)

        logger.info(
            "Claim {num} processed in {t:.3f}s",
            num=claim.claim_number,
            t=time.time() - start,
        )
        return ProcessingResult(claim=claim, assessment=assessment)

    def process_high_priority_claim(self, submission: ClaimSubmission) -> ProcessingResult:
        """Run the expedited lane: forced HIGH priority, express assessment.

        The express assessment never flags fraud and the priority is already
        HIGH, so neither the fraud handler nor the priority handler runs.
        """
        logger.info(
            "Starting HIGH PRIORITY claim processing for policy {policy}",
            policy=submission.policy_number,
        )
        start = time.time()

        self._require_policy(submission)

        claim = self.builder.build_expedited(submission)
        with _correlated(claim.claim_number):
            claim = self.store.upsert_claim(claim)
            logger.info("High priority claim saved: {num}", num=claim.claim_number)

            assessment = self.store.insert_assessment(self.engine.express(claim))
            logger.info(
                "Express assessment created for {num} | approved={amount} | time={ms}ms",
                num=claim.claim_number,
                amount=assessment.approved_amount,
                ms=assessment.processing_time_ms,
            )

        self.publisher.send_urgent_processed_claim_event(claim, assessment)
        self.publisher.send_claim_lifecycle_event(claim, HIGH_PRIORITY_CLAIM_PROCESSED)

        logger.info(
            "High priority claim {num} processed in {t:.3f}s",
            num=claim.claim_number,
            t=time.time() - start,
        )
        return ProcessingResult(claim=claim, assessment=assessment)

    # -----------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------

    def _require_policy(self, submission: ClaimSubmission) -> None:
        if not self.policy_checker.exists(submission.policy_number):
            logger.warning(
                "Policy not found: {policy}, rejecting claim",
                policy=submission.policy_number,
                claim_number=submission.claim_number,
            )
            raise PolicyNotFoundError(
                submission.policy_number, claim_number=submission.claim_number
            )

    def _handle_fraud_detection(self, claim: Claim, assessment: ClaimAssessment) -> None:
        if assessment.fraud_flag:
            logger.info("High fraud risk detected for claim {num}", num=claim.claim_number)
            self.publisher.send_fraud_alert(claim, assessment)
        else:
            logger.info("No fraud indicators detected for claim {num}", num=claim.claim_number)

    def _handle_high_priority(self, claim: Claim) -> None:
        if claim.priority in PRIORITY_NOTIFY:
            logger.info(
                "{priority} priority claim detected: {num}",
                priority=claim.priority.value,
                num=claim.claim_number,
            )
            self.publisher.send_high_priority_notification(claim)


@contextmanager
def _correlated(claim_number: str) -> Iterator[None]:
    """Tag log records and pipeline errors inside the block with *claim_number*.

    Unexpected exceptions are wrapped in :class:`ClaimProcessingError`.
    """
    with logger.contextualize(claim_number=claim_number):
        try:
            yield
        except ClaimProcessingError as exc:
            if exc.claim_number is None:
                exc.claim_number = claim_number
            raise
        except Exception as exc:
            logger.error("Processing failed for {num}: {err}", num=claim_number, err=exc)
            raise ClaimProcessingError(
                f"Failed to process claim: {exc}", claim_number=claim_number
            ) from exc
