"""Named-channel message transport.

:class:`MessageBus` is the contract the pipeline needs from a broker: send a
text payload to a named channel (returning a delivery future) and subscribe
a handler to a channel. A handler that raises signals a delivery failure.

Two implementations exist. :class:`~claim_pipeline.messaging.kafka_bus.KafkaMessageBus`
talks to a Kafka cluster and is what a deployed pipeline runs on.
:class:`InMemoryMessageBus` keeps one FIFO queue per subscribed channel in
process, with the same redelivery rules, and backs the tests and local runs
without a broker.
"""

from __future__ import annotations

import queue
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass

from loguru import logger

from claim_pipeline.core.errors import PublishError

Handler = Callable[[str], None]


@dataclass
class Delivery:
    """A message in flight on a channel."""

    channel: str
    payload: str
    attempts: int = 0


class MessageBus(ABC):
    """Contract for the broker the pipeline publishes to and consumes from.

    Messages whose handler keeps failing after ``max_redeliveries`` retries
    are kept in a bounded :attr:`undeliverable` record.
    """

    def __init__(self, max_redeliveries: int = 3, history_size: int = 1000) -> None:
        self.max_redeliveries = max(0, max_redeliveries)
        self._lock = threading.Lock()
        self._undeliverable: deque[Delivery] = deque(maxlen=history_size)

    @abstractmethod
    def send(self, channel: str, payload: str) -> Future:
        """Hand *payload* to the broker. The future resolves once accepted."""
        ...

    @abstractmethod
    def subscribe(self, channel: str, handler: Handler) -> None:
        ...

    @abstractmethod
    def unsubscribe(self, channel: str) -> None:
        ...

    def start(self) -> None:
        """Begin delivering messages to subscribers."""

    def stop(self, timeout: float | None = None) -> None:
        """Stop delivering messages and release consumer resources."""

    @property
    def undeliverable(self) -> list[Delivery]:
        """Messages given up on, oldest first (bounded)."""
        with self._lock:
            return list(self._undeliverable)

    def _give_up(self, delivery: Delivery, reason: object) -> None:
        logger.error(
            "Delivery on {channel} failed after {n} attempt(s), giving up: {err}",
            channel=delivery.channel,
            n=delivery.attempts,
            err=reason,
        )
        with self._lock:
            self._undeliverable.append(delivery)


class InMemoryMessageBus(MessageBus):
    """
    In-process broker stand-in.

    Usage:
        bus = InMemoryMessageBus(consumer_workers=2)
        bus.subscribe("claim-submissions", handler)
        bus.start()

        bus.send("claim-submissions", payload).result()
        bus.wait_until_idle(timeout=5)
        bus.messages("processed-claims")

        bus.stop()

    ``stop`` lets the workers finish every message already accepted, up to
    its timeout. Whatever is still queued after that is recorded as
    undeliverable rather than dropped.
    """

    def __init__(
        self,
        consumer_workers: int = 1,
        max_redeliveries: int = 3,
        poll_interval_s: float = 0.1,
        history_size: int = 1000,
    ) -> None:
        super().__init__(max_redeliveries=max_redeliveries, history_size=history_size)
        self.consumer_workers = max(1, consumer_workers)
        self.poll_interval_s = poll_interval_s

        self._handlers: dict[str, Handler] = {}
        self._queues: dict[str, queue.Queue[Delivery]] = {}
        self._history: dict[str, deque[str]] = defaultdict(lambda: deque(maxlen=history_size))
        self._unrouted: set[str] = set()
        self._workers: list[threading.Thread] = []
        self._stop = threading.Event()
        self._running = False
        self._closed = False

    # -----------------------------------------------------------------
    # Producer side
    # -----------------------------------------------------------------

    def send(self, channel: str, payload: str) -> Future:
        future: Future = Future()
        with self._lock:
            if self._closed:
                future.set_exception(PublishError(f"Bus is closed; cannot send to {channel}"))
                return future
            self._history[channel].append(payload)
            target = self._queues.get(channel)
            first_unrouted = target is None and channel not in self._unrouted
            if first_unrouted:
                self._unrouted.add(channel)
        if target is not None:
            target.put(Delivery(channel=channel, payload=payload))
        elif first_unrouted:
            logger.warning(
                "No subscriber on {channel}; messages are kept only in the send history",
                channel=channel,
            )
        future.set_result(None)
        return future

    def messages(self, channel: str) -> list[str]:
        """Payloads sent to *channel*, oldest first (bounded history)."""
        with self._lock:
            return list(self._history.get(channel, ()))

    # -----------------------------------------------------------------
    # Consumer side
    # -----------------------------------------------------------------

    def subscribe(self, channel: str, handler: Handler) -> None:
        with self._lock:
            if channel in self._handlers:
                raise ValueError(f"Channel {channel!r} already has a subscriber")
            self._handlers[channel] = handler
            self._queues[channel] = queue.Queue()
            self._unrouted.discard(channel)
            running = self._running
        logger.info("Subscribed handler to channel {channel}", channel=channel)
        if running:
            self._spawn_workers(channel)

    def unsubscribe(self, channel: str) -> None:
        with self._lock:
            self._handlers.pop(channel, None)
            source = self._queues.pop(channel, None)
        if source is not None:
            self._retire(channel, source, "unsubscribed")

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
            "Message bus started: {n} channel(s), {w} worker(s) each",
            n=len(channels),
            w=self.consumer_workers,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            self._closed = True
            was_running = self._running

        if was_running and not self.wait_until_idle(
            timeout if timeout is not None else float("inf")
        ):
            logger.warning("Message bus did not drain within {t}s", t=timeout)

        with self._lock:
            self._running = False
            workers = list(self._workers)
            self._workers.clear()
            queues = list(self._queues.items())
        self._stop.set()
        for worker in workers:
            worker.join(timeout)
        for channel, source in queues:
            self._retire(channel, source, "bus stopped")
        logger.info("Message bus stopped")

    def wait_until_idle(self, timeout: float = 5.0) -> bool:
        """Block until every subscribed queue is drained; ``False`` on timeout."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                pending = sum(q.unfinished_tasks for q in self._queues.values())
            if pending == 0:
                return True
            time.sleep(0.01)
        return False

    def _spawn_workers(self, channel: str) -> None:
        for i in range(self.consumer_workers):
            worker = threading.Thread(
                target=self._consume,
                args=(channel,),
                name=f"consumer-{channel}-{i}",
                daemon=True,
            )
            with self._lock:
                self._workers.append(worker)
            worker.start()

    def _consume(self, channel: str) -> None:
        while not self._stop.is_set():
            with self._lock:
                source = self._queues.get(channel)
                handler = self._handlers.get(channel)
            if source is None or handler is None:
                return
            try:
                delivery = source.get(timeout=self.poll_interval_s)
            except queue.Empty:
                continue
            try:
                self._deliver(delivery, handler, source)
            finally:
                source.task_done()

    def _deliver(
        self, delivery: Delivery, handler: Handler, source: queue.Queue[Delivery]
    ) -> None:
        delivery.attempts += 1
        try:
            handler(delivery.payload)
        except Exception as exc:
            if delivery.attempts <= self.max_redeliveries:
                logger.warning(
                    "Delivery on {channel} failed (attempt {n}), redelivering: {err}",
                    channel=delivery.channel,
                    n=delivery.attempts,
                    err=exc,
                )
                source.put(delivery)
            else:
                self._give_up(delivery, exc)

    def _retire(self, channel: str, source: queue.Queue[Delivery], reason: str) -> None:
        """Move messages still queued on *source* to the undeliverable record."""
        retired = 0
        while True:
            try:
                delivery = source.get_nowait()
            except queue.Empty:
                break
            source.task_done()
            with self._lock:
                self._undeliverable.append(delivery)
            retired += 1
        if retired:
            logger.warning(
                "{n} accepted message(s) on {channel} not handled ({reason}); "
                "recorded as undeliverable",
                n=retired,
                channel=channel,
                reason=reason,
            )
