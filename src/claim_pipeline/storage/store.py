"""Transactional claim store backed by SQLAlchemy.

Claims are keyed by their unique claim number and written with
insert-or-update semantics. Assessments are append-only: every processing
run inserts a new row. Each public method runs in its own transaction, so a
claim write and the assessment write that follows it commit independently.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from claim_pipeline.core.errors import PersistenceError
from claim_pipeline.schemas.claim import Claim, ClaimAssessment, ClaimStatus
from claim_pipeline.schemas.policy import InsurancePolicy, PolicyStatus
from claim_pipeline.storage.models import AssessmentRecord, Base, ClaimRecord, PolicyRecord

PENDING_STATUSES = (ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW)


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine usable from the pipeline's worker threads.

    In-memory SQLite databases are pinned to a single shared connection,
    otherwise every new connection would see an empty database.
    """
    kwargs: dict = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class ClaimStore:
    """
    SQLAlchemy-backed storage for claims, assessments and policies.

    Usage:
        store = ClaimStore(create_db_engine("sqlite:///claims.db"))

        claim = store.upsert_claim(claim)
        store.insert_assessment(assessment)

        store.get_claim("CLM-1A2B3C4D")
        store.assessments_for("CLM-1A2B3C4D")
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> ClaimStore:
        return cls(create_db_engine(url, echo=echo))

    @contextmanager
    def _session(self, claim_number: Optional[str] = None) -> Iterator[Session]:
        """Yield a session inside a transaction; translate driver errors."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "Database error: {err}",
                err=exc,
                claim_number=claim_number,
            )
            raise PersistenceError(
                f"Database operation failed: {exc}", claim_number=claim_number
            ) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -----------------------------------------------------------------
    # Claims
    # -----------------------------------------------------------------

    def upsert_claim(self, claim: Claim) -> Claim:
        """Insert *claim*, or update the existing row with the same claim number.

        The original ``created_at`` of an existing row is preserved.
        """
        now = datetime.now()
        with self._session(claim.claim_number) as session:
            record = session.scalar(
                select(ClaimRecord).where(ClaimRecord.claim_number == claim.claim_number)
            )
            if record is None:
                record = ClaimRecord(
                    claim_number=claim.claim_number,
                    created_at=claim.created_at,
                )
                session.add(record)
                logger.debug("Inserting claim {num}", num=claim.claim_number)
            else:
                logger.debug("Updating existing claim {num}", num=claim.claim_number)

            record.policy_number = claim.policy_number
            record.claim_type = claim.claim_type.value
            record.incident_date = claim.incident_date
            record.claimed_amount = claim.claimed_amount
            record.description = claim.description
            record.status = claim.status.value
            record.priority = claim.priority.value
            record.updated_at = now
            session.flush()
            return _to_claim(record)

    def get_claim(self, claim_number: str) -> Optional[Claim]:
        with self._session(claim_number) as session:
            record = session.scalar(
                select(ClaimRecord).where(ClaimRecord.claim_number == claim_number)
            )
            return _to_claim(record) if record else None

    def list_claims(
        self,
        status: Optional[ClaimStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Claim]:
        """List claims, newest first, optionally filtered by status."""
        query = select(ClaimRecord)
        if status is not None:
            query = query.where(ClaimRecord.status == status.value)
        query = query.order_by(ClaimRecord.created_at.desc()).limit(limit).offset(offset)
        with self._session() as session:
            return [_to_claim(r) for r in session.scalars(query)]

    def pending_claims(self) -> list[Claim]:
        """Claims still awaiting a decision (SUBMITTED or UNDER_REVIEW)."""
        query = (
            select(ClaimRecord)
            .where(ClaimRecord.status.in_([s.value for s in PENDING_STATUSES]))
            .order_by(ClaimRecord.created_at.desc())
        )
        with self._session() as session:
            return [_to_claim(r) for r in session.scalars(query)]

    def count_claims(self, status: Optional[ClaimStatus] = None) -> int:
        query = select(func.count()).select_from(ClaimRecord)
        if status is not None:
            query = query.where(ClaimRecord.status == status.value)
        with self._session() as session:
            return session.scalar(query) or 0

    # -----------------------------------------------------------------
    # Assessments
    # -----------------------------------------------------------------

    def insert_assessment(self, assessment: ClaimAssessment) -> ClaimAssessment:
        """Append a new assessment row. Never updates an existing one."""
        with self._session(assessment.claim_number) as session:
            record = AssessmentRecord(
                claim_number=assessment.claim_number,
                assessor_id=assessment.assessor_id,
                approved_amount=assessment.approved_amount,
                risk_score=assessment.risk_score,
                fraud_flag=assessment.fraud_flag,
                assessment_notes=assessment.assessment_notes,
                processing_time_ms=assessment.processing_time_ms,
                created_at=assessment.created_at,
            )
            session.add(record)
            session.flush()
            return _to_assessment(record)

    def assessments_for(self, claim_number: str) -> list[ClaimAssessment]:
        """All assessments for *claim_number*, oldest first."""
        query = (
            select(AssessmentRecord)
            .where(AssessmentRecord.claim_number == claim_number)
            .order_by(AssessmentRecord.id)
        )
        with self._session(claim_number) as session:
            return [_to_assessment(r) for r in session.scalars(query)]

    def latest_assessment(self, claim_number: str) -> Optional[ClaimAssessment]:
        """The current assessment: the most recently inserted row."""
        query = (
            select(AssessmentRecord)
            .where(AssessmentRecord.claim_number == claim_number)
            .order_by(AssessmentRecord.id.desc())
            .limit(1)
        )
        with self._session(claim_number) as session:
            record = session.scalar(query)
            return _to_assessment(record) if record else None

    def count_assessments(self, fraud_flag: Optional[bool] = None) -> int:
        query = select(func.count()).select_from(AssessmentRecord)
        if fraud_flag is not None:
            query = query.where(AssessmentRecord.fraud_flag == fraud_flag)
        with self._session() as session:
            return session.scalar(query) or 0

    # -----------------------------------------------------------------
    # Policies
    # -----------------------------------------------------------------

    def upsert_policy(self, policy: InsurancePolicy) -> None:
        with self._session() as session:
            record = session.scalar(
                select(PolicyRecord).where(PolicyRecord.policy_number == policy.policy_number)
            )
            if record is None:
                record = PolicyRecord(policy_number=policy.policy_number)
                session.add(record)
            record.policyholder_id = policy.policyholder_id
            record.policy_type = policy.policy_type
            record.coverage_amount = policy.coverage_amount
            record.start_date = policy.start_date
            record.end_date = policy.end_date
            record.status = policy.status.value

    def get_policy(self, policy_number: str) -> Optional[InsurancePolicy]:
        with self._session() as session:
            record = session.scalar(
                select(PolicyRecord).where(PolicyRecord.policy_number == policy_number)
            )
            return InsurancePolicy.model_validate(record) if record else None

    def active_policy_exists(self, policy_number: str) -> bool:
        query = (
            select(func.count())
            .select_from(PolicyRecord)
            .where(
                PolicyRecord.policy_number == policy_number,
                PolicyRecord.status == PolicyStatus.ACTIVE.value,
            )
        )
        with self._session() as session:
            return (session.scalar(query) or 0) > 0

    def count_policies(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(PolicyRecord)) or 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_claim(record: ClaimRecord) -> Claim:
    return Claim(
        claim_number=record.claim_number,
        policy_number=record.policy_number,
        claim_type=record.claim_type,
        incident_date=record.incident_date,
        claimed_amount=record.claimed_amount,
        description=record.description,
        status=record.status,
        priority=record.priority,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_assessment(record: AssessmentRecord) -> ClaimAssessment:
    return ClaimAssessment(
        claim_number=record.claim_number,
        assessor_id=record.assessor_id,
        approved_amount=record.approved_amount,
        risk_score=record.risk_score,
        fraud_flag=record.fraud_flag,
        assessment_notes=record.assessment_notes,
        processing_time_ms=record.processing_time_ms,
        created_at=record.created_at,
    )
