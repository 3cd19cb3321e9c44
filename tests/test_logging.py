"""Tests for loguru sink setup and log correlation."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator

import pytest
from loguru import logger
from omegaconf import OmegaConf

from claim_pipeline.logging.setup import _sink, setup_logging
from claim_pipeline.pipelines.processor import ClaimProcessor
from claim_pipeline.schemas.claim import ClaimSubmission


@pytest.fixture()
def captured() -> Iterator[list[str]]:
    """Configure logging as the service does, then capture formatted lines."""
    setup_logging(OmegaConf.create({"level": "INFO", "colored": False, "format": "pretty"}))
    lines: list[str] = []
    sink_id = logger.add(
        lines.append,
        level="INFO",
        format="{extra[request_id]}|{extra[claim_number]}|{message}",
    )
    yield lines
    logger.remove(sink_id)
    logger.remove()
    logger.add(sys.stderr)
    logging.basicConfig(handlers=[logging.StreamHandler()], force=True)


class TestSetupLogging:
    def test_correlation_extras_default_to_dash(self, captured: list[str]) -> None:
        logger.info("plain line")
        assert "-|-|plain line\n" in captured

    def test_stdlib_records_forwarded(self, captured: list[str]) -> None:
        logging.getLogger("claim_pipeline.thirdparty").warning("from stdlib %s", "logging")
        assert "-|-|from stdlib logging\n" in captured

    def test_chatty_libraries_quietened(self, captured: list[str]) -> None:
        for name in ("sqlalchemy.engine", "kafka", "httpx"):
            assert logging.getLogger(name).level == logging.WARNING

    def test_structured_format_serializes(self) -> None:
        sink = _sink(OmegaConf.create({"level": "debug", "format": "structured"}))
        assert sink["serialize"] is True
        assert sink["level"] == "DEBUG"
        assert "format" not in sink

    def test_pretty_format_shows_correlation(self) -> None:
        sink = _sink(OmegaConf.create({"level": "INFO", "colored": False, "format": "pretty"}))
        assert "{extra[claim_number]" in sink["format"]
        assert sink["colorize"] is False


class TestClaimCorrelation:
    def test_processing_lines_carry_claim_number(
        self,
        captured: list[str],
        processor: ClaimProcessor,
        urgent_submission: ClaimSubmission,
    ) -> None:
        processor.process_claim_submission(urgent_submission)
        assert any(line.startswith("-|CLM-CLIENT-001|") for line in captured)
