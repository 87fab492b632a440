"""A single named sender: one worker thread delivering one envelope at a time."""

import logging
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from queue import Empty, Full, Queue
from threading import Event, Thread

from tripwire.errors import DeliveryCancelledError
from tripwire.transport.delivery import DeliveryState, Transport

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """One unit of work: an encoded event and the future for its result."""

    event_id: str
    body: bytes
    future: Future = field(default_factory=Future)


class Sender:
    """Worker thread draining its own bounded queue in submission order."""

    def __init__(
        self,
        name: str,
        transport: Transport,
        queue_size: int = 10,
        on_dequeue: Callable[[], None] | None = None,
        poll_interval: float = 0.1,
    ):
        """Initialize sender.

        Args:
            name: Unique name within the pool
            transport: Transport performing the delivery and retries
            queue_size: Maximum deliveries waiting in this sender's queue
            on_dequeue: Called whenever a queue slot frees up
            poll_interval: Seconds between shutdown checks while idle
        """
        self.name = name
        self.transport = transport
        self.state = DeliveryState.IDLE
        self.poll_interval = poll_interval
        self._queue: Queue[Delivery] = Queue(maxsize=queue_size)
        self._on_dequeue = on_dequeue or (lambda: None)
        self._stopping = Event()
        self._thread: Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.is_running and not self._stopping.is_set():
            return

        # A fresh event per worker; an abandoned worker keeps its own, still set
        self._stopping = Event()
        self._thread = Thread(
            target=self._worker_loop,
            args=(self._stopping,),
            name=f"tripwire-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Sender {self.name} started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker, abandoning the in-flight delivery and queued ones.

        A worker still inside a request after ``timeout`` is left to finish it
        in the background and keeps counting as running.
        """
        self._stopping.set()

        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"Sender {self.name} did not stop within {timeout}s, abandoning it")
            else:
                self._thread = None

        while True:
            try:
                delivery = self._queue.get_nowait()
            except Empty:
                break
            if delivery.future.set_running_or_notify_cancel():
                delivery.future.set_exception(
                    DeliveryCancelledError(f"sender {self.name} stopped before delivery")
                )

        logger.debug(f"Sender {self.name} stopped")

    def try_submit(self, delivery: Delivery) -> bool:
        """Queue ``delivery`` without blocking; False if the queue is full."""
        if self._stopping.is_set():
            return False
        try:
            self._queue.put_nowait(delivery)
        except Full:
            return False
        return True

    def _set_state(self, state: DeliveryState) -> None:
        self.state = state

    def _worker_loop(self, stopping: Event) -> None:
        while not stopping.is_set():
            try:
                delivery = self._queue.get(timeout=self.poll_interval)
            except Empty:
                continue

            self._on_dequeue()
            self._process(delivery, stopping)

    def _process(self, delivery: Delivery, stopping: Event) -> None:
        if not delivery.future.set_running_or_notify_cancel():
            return

        try:
            remote_id = self.transport.deliver(
                delivery.body, cancel=stopping, on_state=self._set_state
            )
        except Exception as e:
            delivery.future.set_exception(e)
        else:
            delivery.future.set_result(remote_id)
        finally:
            self.state = DeliveryState.IDLE
