"""Pydantic models for insurance policy records."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PolicyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class InsurancePolicy(BaseModel):
    """A policy claims can be filed against. Only ACTIVE policies admit claims."""

    policy_number: str = Field(..., min_length=1, max_length=50)
    policyholder_id: str = Field(..., description="Owner of the policy")
    policy_type: str = Field(default="GENERAL", description="Line of business")
    coverage_amount: Decimal = Field(default=Decimal("0"), ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: PolicyStatus = PolicyStatus.ACTIVE

    model_config = ConfigDict(from_attributes=True)
