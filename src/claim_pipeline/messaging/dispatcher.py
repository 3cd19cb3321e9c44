"""Route inbound intake messages to the claim processor.

Each of the two intake channels maps to one processor entry point. A message
that cannot be decoded, or whose processing fails, raises out of the handler
so the broker records a delivery failure and applies its redelivery policy.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Optional

from loguru import logger
from pydantic import ValidationError

from claim_pipeline.core.errors import DeserializationError
from claim_pipeline.messaging.bus import MessageBus
from claim_pipeline.messaging.publisher import Channels
from claim_pipeline.schemas.claim import ClaimSubmission

if TYPE_CHECKING:
    from claim_pipeline.pipelines.processor import ClaimProcessor, ProcessingResult


def parse_submission(message: str | bytes) -> ClaimSubmission:
    """Decode a JSON intake message into a :class:`ClaimSubmission`.

    Raises
    ------
    DeserializationError
        On malformed JSON, missing required fields or invalid values.
    """
    try:
        return ClaimSubmission.model_validate_json(message)
    except ValidationError as exc:
        raise DeserializationError(
            f"Invalid claim submission message: {exc.error_count()} error(s): {exc}"
        ) from exc


class ChannelDispatcher:
    """Subscribes to the intake channels and drives the processor."""

    def __init__(
        self,
        processor: ClaimProcessor,
        bus: MessageBus,
        channels: Optional[Channels] = None,
    ) -> None:
        self.processor = processor
        self.bus = bus
        self.channels = channels or Channels()

    def start(self) -> None:
        self.bus.subscribe(self.channels.claim_submissions, self.handle_claim_submission)
        self.bus.subscribe(self.channels.high_priority_claims, self.handle_high_priority_claim)

    def stop(self) -> None:
        self.bus.unsubscribe(self.channels.claim_submissions)
        self.bus.unsubscribe(self.channels.high_priority_claims)

    def dispatch(self, channel: str, message: str | bytes) -> ProcessingResult:
        """Route *message* by the channel it arrived on."""
        if channel == self.channels.claim_submissions:
            return self.handle_claim_submission(message)
        if channel == self.channels.high_priority_claims:
            return self.handle_high_priority_claim(message)
        raise ValueError(f"No route for channel {channel!r}")

    def handle_claim_submission(self, message: str | bytes) -> ProcessingResult:
        return self._handle(
            self.channels.claim_submissions,
            message,
            self.processor.process_claim_submission,
        )

    def handle_high_priority_claim(self, message: str | bytes) -> ProcessingResult:
        return self._handle(
            self.channels.high_priority_claims,
            message,
            self.processor.process_high_priority_claim,
        )

    def _handle(
        self,
        channel: str,
        message: str | bytes,
        entry_point: Callable[[ClaimSubmission], ProcessingResult],
    ) -> ProcessingResult:
        logger.info("Received message on {channel}", channel=channel)
        logger.debug("Message data: {data}", data=message)
        try:
            submission = parse_submission(message)
            logger.info(
                "Parsed submission for policy {policy} from {channel}",
                policy=submission.policy_number,
                channel=channel,
            )
            result = entry_point(submission)
        except Exception as exc:
            logger.error(
                "Error processing message from {channel}: {err}",
                channel=channel,
                err=exc,
            )
            logger.debug("Failed message data: {data}", data=message)
            raise
        logger.info(
            "Message from {channel} processed: claim {num}",
            channel=channel,
            num=result.claim.claim_number,
        )
        return result
