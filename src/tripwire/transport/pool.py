"""Sender pool and dispatcher.

A fixed set of named senders delivers events concurrently. ``dispatch``
serializes the event on the caller's thread, hands it to a sender and returns
the event ID straight away; the network round trip happens on the sender's
thread.

Senders are picked round-robin, skipping senders whose queue is full. When
every queue is full the pool either blocks the caller for up to
``dispatch_timeout`` seconds ("block") or raises PoolSaturatedError at once
("fail_fast").
"""

import itertools
import logging
import time
from collections.abc import Callable
from concurrent.futures import Future
from threading import Condition
from typing import Any

from tripwire.config import Config
from tripwire.errors import PoolSaturatedError
from tripwire.models import Event
from tripwire.transport.delivery import Transport
from tripwire.transport.envelope import encode_envelope
from tripwire.transport.sender import Delivery, Sender

logger = logging.getLogger(__name__)

# Called with the event and either the remote ID or the delivery exception
ResultCallback = Callable[[Event, Any], None]


class SenderPool:
    """Fixed pool of senders with round-robin dispatch and backpressure."""

    def __init__(
        self,
        transport: Transport,
        size: int = 4,
        queue_size: int = 10,
        backpressure: str = "block",
        dispatch_timeout: float | None = 1.0,
    ):
        """Initialize pool.

        Args:
            transport: Transport shared by every sender
            size: Number of senders
            queue_size: Maximum pending deliveries per sender
            backpressure: "block" or "fail_fast" when every queue is full
            dispatch_timeout: Max seconds to block under "block" (None waits forever)
        """
        if size < 1:
            raise ValueError(f"pool size must be at least 1, got {size}")
        if backpressure not in ("block", "fail_fast"):
            raise ValueError(f"Unknown backpressure policy: {backpressure}")

        self.transport = transport
        self.backpressure = backpressure
        self.dispatch_timeout = dispatch_timeout
        self._slot_freed = Condition()
        self._senders = [
            Sender(f"sender-{index}", transport, queue_size, on_dequeue=self._notify_slot_freed)
            for index in range(size)
        ]
        self._by_name = {sender.name: sender for sender in self._senders}
        self._cursor = itertools.count()

    @classmethod
    def from_config(cls, config: Config) -> "SenderPool":
        return cls(
            transport=Transport.from_config(config),
            size=config.sender_pool_size,
            queue_size=config.sender_queue_size,
            backpressure=config.backpressure,
            dispatch_timeout=config.dispatch_timeout,
        )

    def __len__(self) -> int:
        return len(self._senders)

    @property
    def names(self) -> list[str]:
        return [sender.name for sender in self._senders]

    @property
    def is_running(self) -> bool:
        return any(sender.is_running for sender in self._senders)

    def get(self, name: str) -> Sender:
        """Look up a sender by name.

        Raises:
            KeyError: If no sender has that name
        """
        return self._by_name[name]

    def start(self) -> None:
        for sender in self._senders:
            sender.start()
        logger.info(f"Sender pool started with {len(self._senders)} senders")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop every sender; in-flight and queued deliveries are abandoned."""
        for sender in self._senders:
            sender.stop(timeout=timeout)

        abandoned = [sender.name for sender in self._senders if sender.is_running]
        if abandoned:
            # Closing now would cut the request still in flight
            logger.warning(f"Transport left open for abandoned senders: {', '.join(abandoned)}")
        else:
            self.transport.close()
        logger.info("Sender pool stopped")

    def dispatch(self, event: Event, callback: ResultCallback | None = None) -> str:
        """Queue ``event`` for delivery and return its event ID immediately.

        Raises:
            PoolSaturatedError: If no sender can accept the event in time
        """
        self.submit(event, callback)
        return event.event_id

    def submit(self, event: Event, callback: ResultCallback | None = None) -> Future:
        """Like dispatch, but return the Future resolving to the remote ID."""
        delivery = Delivery(event.event_id, encode_envelope(event))
        delivery.future.add_done_callback(lambda future: self._on_done(event, callback, future))
        self._enqueue(delivery)
        return delivery.future

    def _notify_slot_freed(self) -> None:
        with self._slot_freed:
            self._slot_freed.notify()

    def _try_enqueue(self, delivery: Delivery) -> Sender | None:
        start = next(self._cursor)
        for offset in range(len(self._senders)):
            sender = self._senders[(start + offset) % len(self._senders)]
            if sender.try_submit(delivery):
                return sender
        return None

    def _enqueue(self, delivery: Delivery) -> Sender:
        deadline = None
        if self.backpressure == "block" and self.dispatch_timeout is not None:
            deadline = time.monotonic() + self.dispatch_timeout

        with self._slot_freed:
            while True:
                sender = self._try_enqueue(delivery)
                if sender is not None:
                    logger.debug(f"Event {delivery.event_id} queued on {sender.name}")
                    return sender

                if self.backpressure == "fail_fast":
                    raise PoolSaturatedError(f"all {len(self._senders)} senders are busy")

                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise PoolSaturatedError(
                        f"all {len(self._senders)} senders stayed busy for {self.dispatch_timeout}s"
                    )
                self._slot_freed.wait(remaining)

    def _on_done(self, event: Event, callback: ResultCallback | None, future: Future) -> None:
        if future.cancelled():
            return

        error = future.exception()
        if error is not None:
            logger.warning(f"Failed to send event {event.event_id}: {error}")
            result: Any = error
        else:
            result = future.result()
            logger.debug(f"Event {event.event_id} sent, remote id {result}")

        if callback is not None:
            try:
                callback(event, result)
            except Exception as e:
                logger.warning(f"Result callback failed for event {event.event_id}: {e}")
