"""Pipeline factory — wire the processing components from Hydra config."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

from claim_pipeline.core.assessment import AssessmentEngine
from claim_pipeline.core.builder import ClaimBuilder
from claim_pipeline.core.policy import (
    CsvPolicyChecker,
    DatabasePolicyChecker,
    PolicyChecker,
    seed_policies,
)
from claim_pipeline.messaging.bus import InMemoryMessageBus, MessageBus
from claim_pipeline.messaging.kafka_bus import KafkaMessageBus
from claim_pipeline.messaging.dispatcher import ChannelDispatcher
from claim_pipeline.messaging.publisher import Channels, EventPublisher
from claim_pipeline.pipelines.processor import ClaimProcessor
from claim_pipeline.storage.store import ClaimStore

if TYPE_CHECKING:
    from omegaconf import DictConfig


@dataclass
class Pipeline:
    """Every long-lived component of a running pipeline."""

    store: ClaimStore
    bus: MessageBus
    publisher: EventPublisher
    processor: ClaimProcessor
    dispatcher: ChannelDispatcher

    def start(self) -> None:
        """Subscribe to the intake channels and begin consuming."""
        self.dispatcher.start()
        self.bus.start()

    def stop(self) -> None:
        self.bus.stop()
        self.dispatcher.stop()


def create_pipeline(
    cfg: DictConfig,
    bus: Optional[MessageBus] = None,
    store: Optional[ClaimStore] = None,
) -> Pipeline:
    """Create and wire a :class:`Pipeline` from the full Hydra configuration.

    Parameters
    ----------
    cfg:
        The full Hydra configuration.
    bus:
        Broker to use. Defaults to the one ``cfg.messaging.backend`` names.
    store:
        Claim store to use. Defaults to one on ``cfg.database.url``.

    Returns
    -------
    Pipeline
        Wired, not yet started, pipeline components.

    Raises
    ------
    ValueError
        If ``cfg.pipeline.policy_source`` or ``cfg.messaging.backend`` is
        not recognised.
    """
    if store is None:
        store = ClaimStore.from_url(cfg.database.url, echo=cfg.database.get("echo", False))
        logger.info("Claim store ready on {url}", url=cfg.database.url)

    messaging = cfg.messaging
    if bus is None:
        bus = create_message_bus(messaging)
    channels = Channels.from_cfg(messaging.get("channels"))

    publisher = EventPublisher(bus, channels, publish_timeout_s=messaging.publish_timeout_s)
    processor = ClaimProcessor(
        policy_checker=create_policy_checker(cfg, store),
        builder=ClaimBuilder(
            is_taken=lambda number: store.get_claim(number) is not None,
            max_attempts=cfg.pipeline.claim_number_attempts,
        ),
        engine=AssessmentEngine.seeded(cfg.pipeline.get("seed")),
        store=store,
        publisher=publisher,
    )
    dispatcher = ChannelDispatcher(processor, bus, channels)

    logger.info("Pipeline wired: policy source={src}", src=cfg.pipeline.policy_source)
    return Pipeline(
        store=store,
        bus=bus,
        publisher=publisher,
        processor=processor,
        dispatcher=dispatcher,
    )


def create_message_bus(messaging: DictConfig) -> MessageBus:
    """Build the broker named by ``messaging.backend`` (``kafka`` or ``memory``)."""
    backend: str = messaging.get("backend", "memory")

    if backend == "memory":
        return InMemoryMessageBus(
            consumer_workers=messaging.consumer_workers,
            max_redeliveries=messaging.max_redeliveries,
            poll_interval_s=messaging.poll_interval_s,
        )

    if backend == "kafka":
        kafka = messaging.kafka
        logger.info("Using Kafka broker at {servers}", servers=kafka.bootstrap_servers)
        return KafkaMessageBus(
            bootstrap_servers=kafka.bootstrap_servers,
            group_id=kafka.get("group_id", "claim-pipeline"),
            client_id=kafka.get("client_id", "claim-pipeline"),
            consumer_workers=messaging.consumer_workers,
            max_redeliveries=messaging.max_redeliveries,
            poll_timeout_ms=kafka.get("poll_timeout_ms", 1000),
            acks=kafka.get("acks", "all"),
        )

    raise ValueError(
        f"Unknown messaging backend '{backend}'. Expected 'kafka' or 'memory'."
    )


def create_policy_checker(cfg: DictConfig, store: ClaimStore) -> PolicyChecker:
    """Select the policy check named by ``cfg.pipeline.policy_source``.

    ``database`` seeds the policy table from ``cfg.data.policies_csv`` when
    that file exists; ``csv`` answers straight from the file.
    """
    source: str = cfg.pipeline.policy_source
    csv_path: Optional[str] = cfg.data.get("policies_csv")

    if source == "database":
        if csv_path and Path(csv_path).exists():
            seed_policies(store, csv_path)
        else:
            logger.info("No policy records at {path}, skipping seeding", path=csv_path)
        return DatabasePolicyChecker(store)

    if source == "csv":
        if not csv_path:
            raise ValueError("pipeline.policy_source=csv requires data.policies_csv")
        return CsvPolicyChecker(csv_path)

    raise ValueError(
        f"Unknown policy source '{source}'. Expected 'database' or 'csv'."
    )
