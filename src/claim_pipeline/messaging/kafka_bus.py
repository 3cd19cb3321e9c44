"""Kafka-backed :class:`~claim_pipeline.messaging.bus.MessageBus`.

Channels map one-to-one onto topics. Sends go through a single shared
``KafkaProducer``; each subscribed channel gets ``consumer_workers`` threads,
each with its own ``KafkaConsumer`` in the configured consumer group, so
Kafka spreads the topic's partitions across them.

Offsets are committed manually after each poll. A record whose handler
raises is re-read by seeking its partition back to it, up to
``max_redeliveries`` times. Past that it is logged, kept in
:attr:`undeliverable` and its offset is committed so the partition moves on.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from concurrent.futures import Future
from typing import Any, Optional, Union

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import KafkaError
from loguru import logger

from claim_pipeline.core.errors import PublishError
from claim_pipeline.messaging.bus import Delivery, Handler, MessageBus


def _encode(payload: str) -> bytes:
    return payload.encode("utf-8")


def _decode(raw: Optional[bytes]) -> str:
    return raw.decode("utf-8", errors="replace") if raw is not None else ""


class KafkaMessageBus(MessageBus):
    """
    Message bus on a Kafka cluster.

    Usage:
        bus = KafkaMessageBus("kafka-1:9092,kafka-2:9092", group_id="claim-pipeline")
        bus.subscribe("claim-submissions", handler)
        bus.start()

        bus.send("processed-claims", payload).result(timeout=10)

        bus.stop()
    """

    def __init__(
        self,
        bootstrap_servers: Union[str, Sequence[str]],
        group_id: str = "claim-pipeline",
        client_id: str = "claim-pipeline",
        consumer_workers: int = 1,
        max_redeliveries: int = 3,
        poll_timeout_ms: int = 1000,
        acks: Union[int, str] = "all",
        history_size: int = 1000,
    ) -> None:
        super().__init__(max_redeliveries=max_redeliveries, history_size=history_size)
        if isinstance(bootstrap_servers, str):
            bootstrap_servers = [s.strip() for s in bootstrap_servers.split(",") if s.strip()]
        self.bootstrap_servers = list(bootstrap_servers)
        self.group_id = group_id
        self.client_id = client_id
        self.consumer_workers = max(1, consumer_workers)
        self.poll_timeout_ms = poll_timeout_ms
        self.acks = acks

        self._producer: Optional[KafkaProducer] = None
        self._handlers: dict[str, Handler] = {}
        self._workers: list[threading.Thread] = []
        self._stop = threading.Event()
        self._running = False
        self._closed = False

    # -----------------------------------------------------------------
    # Producer side
    # -----------------------------------------------------------------

    def _get_producer(self) -> KafkaProducer:
        with self._lock:
            if self._producer is None:
                self._producer = KafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    client_id=self.client_id,
                    acks=self.acks,
                    value_serializer=_encode,
                )
                logger.info(
                    "Kafka producer connected to {servers}",
                    servers=",".join(self.bootstrap_servers),
                )
            return self._producer

    def send(self, channel: str, payload: str) -> Future:
        future: Future = Future()
        if self._closed:
            future.set_exception(PublishError(f"Bus is closed; cannot send to {channel}"))
            return future

        def _failed(exc: BaseException) -> None:
            future.set_exception(PublishError(f"Kafka did not accept message for {channel}: {exc}"))

        try:
            record = self._get_producer().send(channel, value=payload)
        except KafkaError as exc:
            _failed(exc)
            return future
        record.add_callback(future.set_result)
        record.add_errback(_failed)
        return future

    # -----------------------------------------------------------------
    # Consumer side
    # -----------------------------------------------------------------

    def subscribe(self, channel: str, handler: Handler) -> None:
        with self._lock:
            if channel in self._handlers:
                raise ValueError(f"Channel {channel!r} already has a subscriber")
            self._handlers[channel] = handler
            running = self._running
        logger.info("Subscribed handler to topic {channel}", channel=channel)
        if running:
            self._spawn_workers(channel)

    def unsubscribe(self, channel: str) -> None:
        # Consumers notice the missing handler on their next poll and close;
        # uncommitted records stay on the topic for the group.
        with self._lock:
            self._handlers.pop(channel, None)

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stop.clear()
            channels = list(self._handlers)
        for channel in channels:
            self._spawn_workers(channel)
        logger.info(
            "Kafka bus started: {n} topic(s), {w} consumer(s) each, group {group}",
            n=len(channels),
            w=self.consumer_workers,
            group=self.group_id,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            self._closed = True
            self._running = False
            workers = list(self._workers)
            self._workers.clear()
            producer, self._producer = self._producer, None
        self._stop.set()
        for worker in workers:
            worker.join(timeout)
        if producer is not None:
            producer.flush(timeout=timeout)
            producer.close(timeout=timeout)
        logger.info("Kafka bus stopped")

    def _spawn_workers(self, channel: str) -> None:
        for i in range(self.consumer_workers):
            worker = threading.Thread(
                target=self._consume,
                args=(channel,),
                name=f"kafka-{channel}-{i}",
                daemon=True,
            )
            with self._lock:
                self._workers.append(worker)
            worker.start()

    def _create_consumer(self, channel: str) -> KafkaConsumer:
        return KafkaConsumer(
            channel,
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            client_id=self.client_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
            value_deserializer=_decode,
        )

    def _consume(self, channel: str) -> None:
        try:
            consumer = self._create_consumer(channel)
        except KafkaError as exc:
            logger.error("Cannot consume {channel}: {err}", channel=channel, err=exc)
            return

        attempts: dict[tuple[Any, int], int] = {}
        try:
            while not self._stop.is_set():
                with self._lock:
                    handler = self._handlers.get(channel)
                if handler is None:
                    return
                batches = consumer.poll(timeout_ms=self.poll_timeout_ms)
                if not batches:
                    continue
                for tp, records in batches.items():
                    for record in records:
                        if not self._handle(consumer, channel, handler, tp, record, attempts):
                            break
                consumer.commit()
        finally:
            consumer.close()

    def _handle(
        self,
        consumer: KafkaConsumer,
        channel: str,
        handler: Handler,
        tp: Any,
        record: Any,
        attempts: dict[tuple[Any, int], int],
    ) -> bool:
        """Deliver one record. ``False`` means the partition was rewound."""
        key = (tp, record.offset)
        attempts[key] = attempts.get(key, 0) + 1
        try:
            handler(record.value)
        except Exception as exc:
            if attempts[key] <= self.max_redeliveries:
                logger.warning(
                    "Delivery on {channel} offset {offset} failed (attempt {n}), "
                    "redelivering: {err}",
                    channel=channel,
                    offset=record.offset,
                    n=attempts[key],
                    err=exc,
                )
                consumer.seek(tp, record.offset)
                return False
            self._give_up(
                Delivery(channel=channel, payload=record.value, attempts=attempts.pop(key)),
                exc,
            )
            return True
        attempts.pop(key, None)
        return True
