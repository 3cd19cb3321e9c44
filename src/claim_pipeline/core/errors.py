"""Exception taxonomy for the claim processing pipeline.

Every error carries the claim number when it is known so log lines and
broker-side failure records can be correlated with a claim.
"""

from __future__ import annotations

from typing import Optional


class ClaimProcessingError(Exception):
    """Base class for failures raised while handling a claim."""

    error_code = "CLAIM_PROCESSING_ERROR"

    def __init__(
        self,
        message: str,
        claim_number: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.claim_number = claim_number
        if error_code is not None:
            self.error_code = error_code

    def __str__(self) -> str:
        if self.claim_number:
            return f"[{self.claim_number}] {self.message}"
        return self.message


class PolicyNotFoundError(ClaimProcessingError):
    """The submission references a policy with no active record."""

    error_code = "POLICY_NOT_FOUND"

    def __init__(self, policy_number: str, claim_number: Optional[str] = None) -> None:
        super().__init__(f"Policy not found: {policy_number}", claim_number=claim_number)
        self.policy_number = policy_number


class DeserializationError(ClaimProcessingError):
    """An inbound message could not be decoded into a claim submission."""

    error_code = "DESERIALIZATION_ERROR"


class PersistenceError(ClaimProcessingError):
    """A write or read against the claim store failed."""

    error_code = "PERSISTENCE_ERROR"


class PublishError(ClaimProcessingError):
    """A message could not be handed to (or acknowledged by) the broker."""

    error_code = "PUBLISH_ERROR"
