"""Delivery of one envelope with retries.

Each delivery walks an explicit state machine:

    IDLE -> SENDING -> SUCCESS
                    -> RETRYING -> SENDING ...
                                -> EXHAUSTED

A 2xx response whose JSON body carries a string ``id`` is the only success.
Any other status, a malformed body or a connection fault moves to RETRYING,
which waits for the next configured interval. When the intervals run out
the delivery is EXHAUSTED and raises DeliveryError naming the last error.
Waits end early when the cancel event is set (shutdown) and never run past
the overall deadline.
"""

import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from enum import Enum

import httpx

from tripwire.config import Config, Dsn
from tripwire.errors import DeliveryCancelledError, DeliveryError
from tripwire.transport.client import HTTPClient, create_client
from tripwire.transport.envelope import auth_headers

logger = logging.getLogger(__name__)


class DeliveryState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class AttemptFailed(Exception):
    """A single delivery attempt failed and may be retried."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


def _retry_after(headers: Mapping[str, str]) -> float | None:
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def parse_response(status: int, headers: Mapping[str, str], body: bytes) -> str:
    """Return the remote event ID from a successful response.

    Raises:
        AttemptFailed: For non-2xx statuses and malformed success bodies
    """
    headers = {key.lower(): value for key, value in headers.items()}

    if not 200 <= status < 300:
        reason = headers.get("x-sentry-error") or body[:200].decode("utf-8", "replace")
        raise AttemptFailed(f"received {status} from server: {reason}", _retry_after(headers))

    try:
        data = json.loads(body)
    except ValueError:
        raise AttemptFailed(f"malformed response body: {body[:200]!r}") from None

    if not isinstance(data, dict) or not isinstance(data.get("id"), str):
        raise AttemptFailed(f"response body has no event id: {body[:200]!r}")
    return data["id"]


class Transport:
    """Posts envelopes to the DSN endpoint with the configured retry policy."""

    def __init__(
        self,
        client: HTTPClient,
        dsn: Dsn,
        retries: Iterable[float] = (),
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize transport.

        Args:
            client: HTTP client used for every attempt
            dsn: Parsed DSN with endpoint and credentials
            retries: Seconds to wait before each retry
            deadline: Overall seconds per delivery, None for no bound
            clock: Monotonic clock, injectable for tests
        """
        self.client = client
        self.dsn = dsn
        self.retries = list(retries)
        self.deadline = deadline
        self._clock = clock

    @classmethod
    def from_config(cls, config: Config) -> "Transport":
        dsn = config.parsed_dsn
        if dsn is None:
            raise ValueError("cannot build a transport without a DSN")
        return cls(
            client=create_client(config.client, timeout=config.send_timeout),
            dsn=dsn,
            retries=config.request_retries,
            deadline=config.delivery_deadline,
        )

    def close(self) -> None:
        self.client.close()

    def _attempt(self, body: bytes, timeout: float | None) -> str:
        try:
            status, headers, response_body = self.client.post(
                self.dsn.endpoint_uri, auth_headers(self.dsn), body, timeout=timeout
            )
        except (httpx.HTTPError, OSError) as e:
            raise AttemptFailed(f"request failure: {e!r}") from e
        return parse_response(status, headers, response_body)

    def deliver(
        self,
        body: bytes,
        cancel: threading.Event | None = None,
        on_state: Callable[[DeliveryState], None] | None = None,
    ) -> str:
        """Deliver an encoded envelope, retrying per policy.

        Args:
            body: Encoded envelope
            cancel: Set to abandon the delivery (checked before each attempt and during waits)
            on_state: Called on every state transition

        Returns:
            The event ID reported by the remote endpoint

        Raises:
            DeliveryError: When every attempt failed
            DeliveryCancelledError: When cancelled or past the deadline
        """
        cancel = cancel or threading.Event()
        notify = on_state or (lambda state: None)
        intervals = iter(self.retries)
        deadline_at = None if self.deadline is None else self._clock() + self.deadline

        attempts = 0
        last_error: str | None = None
        retry_after: float | None = None
        state = DeliveryState.SENDING

        while True:
            notify(state)

            if state is DeliveryState.SENDING:
                if cancel.is_set():
                    raise DeliveryCancelledError("delivery cancelled", last_error, attempts)

                timeout = None
                if deadline_at is not None:
                    timeout = deadline_at - self._clock()
                    if timeout <= 0:
                        raise DeliveryCancelledError("delivery deadline exceeded", last_error, attempts)

                attempts += 1
                try:
                    remote_id = self._attempt(body, timeout)
                except AttemptFailed as e:
                    last_error = str(e)
                    retry_after = e.retry_after
                    logger.debug(f"Delivery attempt {attempts} failed: {last_error}")
                    state = DeliveryState.RETRYING
                else:
                    notify(DeliveryState.SUCCESS)
                    return remote_id

            elif state is DeliveryState.RETRYING:
                interval = next(intervals, None)
                if interval is None:
                    notify(DeliveryState.EXHAUSTED)
                    raise DeliveryError(
                        f"Error sending event after {attempts} attempt(s): {last_error}",
                        last_error,
                        attempts,
                    )

                wait = max(interval, retry_after or 0.0)
                if deadline_at is not None and self._clock() + wait > deadline_at:
                    raise DeliveryCancelledError("delivery deadline exceeded", last_error, attempts)
                if cancel.wait(wait):
                    raise DeliveryCancelledError("delivery cancelled", last_error, attempts)

                state = DeliveryState.SENDING
