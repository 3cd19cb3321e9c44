"""SQLAlchemy ORM models for claims, assessments and policies."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ClaimRecord(Base):
    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    policy_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    claim_type: Mapped[str] = mapped_column(String(30), nullable=False)
    incident_date: Mapped[date] = mapped_column(Date, nullable=False)
    claimed_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AssessmentRecord(Base):
    # claim_number is matched by value, no foreign key.
    __tablename__ = "claim_assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    assessor_id: Mapped[str] = mapped_column(String(50), nullable=False)
    approved_amount: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    fraud_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assessment_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    processing_time_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class PolicyRecord(Base):
    __tablename__ = "insurance_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    policyholder_id: Mapped[str] = mapped_column(String(50), nullable=False)
    policy_type: Mapped[str] = mapped_column(String(30), nullable=False)
    coverage_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
