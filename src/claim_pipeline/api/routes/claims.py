"""Claim intake and lookup API routes.

Endpoints
---------
POST /api/v1/claims/submit
    Validate a ``ClaimSubmission`` and publish it to the standard intake channel.

POST /api/v1/claims/urgent
    Same, with priority forced to URGENT, on the high-priority intake channel.

POST /api/v1/claims/process
    Run the standard lane synchronously and return the assessment.

GET  /api/v1/claims, /api/v1/claims/pending, /api/v1/claims/{claim_number}
    Read claims and their assessments.

GET  /api/v1/claims/status, /api/v1/health
    Lightweight status checks.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from loguru import logger

from claim_pipeline.schemas.claim import (
    Claim,
    ClaimDetails,
    ClaimPriority,
    ClaimStatus,
    ClaimSubmission,
    ClaimSubmissionResponse,
)
from claim_pipeline.schemas.events import ProcessedClaimEvent

router = APIRouter()


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------

@router.post(
    "/claims/submit",
    response_model=ClaimSubmissionResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a claim for processing",
)
def submit_claim(submission: ClaimSubmission, request: Request) -> ClaimSubmissionResponse:
    """Publish the claim to the standard intake channel.

    A publish failure raises ``PublishError``, which is mapped to 503.
    """
    logger.info("API: submitting claim for policy {policy}", policy=submission.policy_number)
    request.app.state.pipeline.publisher.publish_claim_submission(submission)
    return ClaimSubmissionResponse.accepted(submission.claim_number, submission.policy_number)


@router.post(
    "/claims/urgent",
    response_model=ClaimSubmissionResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit an urgent claim for expedited processing",
)
def submit_urgent_claim(
    submission: ClaimSubmission, request: Request
) -> ClaimSubmissionResponse:
    logger.info(
        "API: submitting urgent claim for policy {policy}", policy=submission.policy_number
    )
    urgent = submission.model_copy(update={"priority": ClaimPriority.URGENT})
    request.app.state.pipeline.publisher.publish_high_priority_claim(urgent)
    return ClaimSubmissionResponse.urgent_accepted(urgent.claim_number, urgent.policy_number)


@router.post(
    "/claims/process",
    response_model=ProcessedClaimEvent,
    response_model_by_alias=True,
    summary="Process a claim synchronously through the standard lane",
)
def process_claim(submission: ClaimSubmission, request: Request) -> ProcessedClaimEvent:
    """Direct-call path: runs the standard lane in the request and returns its outcome."""
    result = request.app.state.pipeline.processor.process_claim_submission(submission)
    logger.info(
        "API: claim {num} processed, fraud={fraud}",
        num=result.claim.claim_number,
        fraud=result.assessment.fraud_flag,
    )
    return ProcessedClaimEvent.from_outcome(result.claim, result.assessment)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

@router.get(
    "/claims/status",
    response_class=PlainTextResponse,
    summary="System status",
)
async def system_status() -> str:
    return "Insurance Claim Processing System - Message Bus Integration Active"


@router.get(
    "/claims/pending",
    response_model=list[Claim],
    response_model_by_alias=True,
    summary="Claims awaiting a decision",
)
def pending_claims(request: Request) -> list[Claim]:
    return request.app.state.pipeline.store.pending_claims()


@router.get(
    "/claims",
    response_model=list[Claim],
    response_model_by_alias=True,
    summary="List claims",
)
def list_claims(
    request: Request,
    claim_status: Optional[ClaimStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[Claim]:
    return request.app.state.pipeline.store.list_claims(
        status=claim_status, limit=limit, offset=offset
    )


@router.get(
    "/claims/{claim_number}",
    response_model=ClaimDetails,
    response_model_by_alias=True,
    summary="A claim and its assessments",
)
def get_claim(claim_number: str, request: Request) -> ClaimDetails:
    store = request.app.state.pipeline.store
    claim = store.get_claim(claim_number)
    if claim is None:
        raise HTTPException(status_code=404, detail=f"Claim not found: {claim_number}")
    return ClaimDetails(claim=claim, assessments=store.assessments_for(claim_number))


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

@router.get(
    "/health",
    summary="Health check",
    description="Returns service health status and claim counts.",
)
def health(request: Request) -> dict:
    """Return a lightweight health-check response."""
    store = request.app.state.pipeline.store
    return {
        "status": "healthy",
        "claims": store.count_claims(),
        "assessments": store.count_assessments(),
    }
