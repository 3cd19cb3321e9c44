"""Serialise pipeline outcomes and publish them to named channels.

Downstream events (processed, fraud alert, high-priority notification,
lifecycle) are fire-and-forget: a failure to publish is logged and never
propagates, because the claim and assessment are already committed.

The intake path (a submission handed to the broker on behalf of an API
caller) is different: it waits for the broker's acknowledgement and raises
:class:`PublishError` so the caller learns the claim was not accepted.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from claim_pipeline.core.errors import PublishError
from claim_pipeline.messaging.bus import MessageBus
from claim_pipeline.schemas.claim import Claim, ClaimAssessment, ClaimSubmission
from claim_pipeline.schemas.events import (
    ClaimLifecycleEvent,
    FraudAlert,
    HighPriorityNotification,
    ProcessedClaimEvent,
    UrgentProcessedClaimEvent,
)


@dataclass(frozen=True)
class Channels:
    """Names of the broker channels the pipeline reads from and writes to."""

    claim_submissions: str = "claim-submissions"
    high_priority_claims: str = "high-priority-claims"
    processed_claims: str = "processed-claims"
    fraud_alerts: str = "fraud-alerts"
    claim_events: str = "claim-events"

    @classmethod
    def from_cfg(cls, cfg: Any) -> Channels:
        """Build from the ``messaging.channels`` config section (any key optional)."""
        if cfg is None:
            return cls()
        defaults = cls()
        return cls(**{
            name: str(getattr(cfg, name, None) or getattr(defaults, name))
            for name in cls.__dataclass_fields__
        })


class EventPublisher:
    """One send operation per logical event type."""

    def __init__(
        self,
        bus: MessageBus,
        channels: Optional[Channels] = None,
        publish_timeout_s: float = 10.0,
    ) -> None:
        self.bus = bus
        self.channels = channels or Channels()
        self.publish_timeout_s = publish_timeout_s

    # -----------------------------------------------------------------
    # Downstream events (fire-and-forget)
    # -----------------------------------------------------------------

    def send_processed_claim_event(
        self, claim: Claim, assessment: ClaimAssessment
    ) -> Optional[Future]:
        return self._emit(
            self.channels.processed_claims,
            lambda: ProcessedClaimEvent.from_outcome(claim, assessment).to_json(),
            claim.claim_number,
            "processed claim event",
        )

    def send_urgent_processed_claim_event(
        self, claim: Claim, assessment: ClaimAssessment
    ) -> Optional[Future]:
        return self._emit(
            self.channels.processed_claims,
            lambda: UrgentProcessedClaimEvent.from_outcome(claim, assessment).to_json(),
            claim.claim_number,
            "urgent processed claim event",
        )

    def send_fraud_alert(self, claim: Claim, assessment: ClaimAssessment) -> Optional[Future]:
        logger.warning(
            "Sending FRAUD ALERT for claim {num} (risk score {score})",
            num=claim.claim_number,
            score=assessment.risk_score,
        )
        return self._emit(
            self.channels.fraud_alerts,
            lambda: FraudAlert.from_outcome(claim, assessment).to_json(),
            claim.claim_number,
            "fraud alert",
        )

    def send_high_priority_notification(self, claim: Claim) -> Optional[Future]:
        return self._emit(
            self.channels.claim_events,
            lambda: HighPriorityNotification.from_claim(claim).to_json(),
            claim.claim_number,
            "high priority notification",
        )

    def send_claim_lifecycle_event(self, claim: Claim, event_type: str) -> Optional[Future]:
        return self._emit(
            self.channels.claim_events,
            lambda: ClaimLifecycleEvent.from_claim(claim, event_type).to_json(),
            claim.claim_number,
            f"lifecycle event {event_type}",
        )

    def _emit(
        self, channel: str, render: Callable[[], str], claim_number: str, label: str
    ) -> Optional[Future]:
        """Render and send one event; log, never raise, on failure."""
        try:
            payload = render()
            logger.debug("Event data for {label}: {payload}", label=label, payload=payload)
            future = self.bus.send(channel, payload)
        except Exception as exc:
            logger.error(
                "Error sending {label} for {num} to {channel}: {err}",
                label=label,
                num=claim_number,
                channel=channel,
                err=exc,
            )
            return None

        def _on_complete(done: Future) -> None:
            failure = done.exception()
            if failure is None:
                logger.info(
                    "Sent {label} for {num} to {channel}",
                    label=label,
                    num=claim_number,
                    channel=channel,
                )
            else:
                logger.error(
                    "Failed to send {label} for {num} to {channel}: {err}",
                    label=label,
                    num=claim_number,
                    channel=channel,
                    err=failure,
                )

        future.add_done_callback(_on_complete)
        return future

    # -----------------------------------------------------------------
    # Intake (failures propagate)
    # -----------------------------------------------------------------

    def publish_claim_submission(self, submission: ClaimSubmission) -> None:
        self._publish_intake(self.channels.claim_submissions, submission)

    def publish_high_priority_claim(self, submission: ClaimSubmission) -> None:
        self._publish_intake(self.channels.high_priority_claims, submission)

    def _publish_intake(self, channel: str, submission: ClaimSubmission) -> None:
        payload = submission.model_dump_json(by_alias=True, exclude_none=True)
        logger.info(
            "Publishing claim for policy {policy} to {channel}",
            policy=submission.policy_number,
            channel=channel,
        )
        try:
            self.bus.send(channel, payload).result(timeout=self.publish_timeout_s)
        except Exception as exc:
            logger.error(
                "Failed to publish claim for policy {policy} to {channel}: {err}",
                policy=submission.policy_number,
                channel=channel,
                err=exc,
            )
            raise PublishError(
                f"Failed to publish claim to {channel}: {exc}",
                claim_number=submission.claim_number,
            ) from exc
        logger.info(
            "Published claim {num} to {channel}",
            num=submission.claim_number or "<unassigned>",
            channel=channel,
        )
