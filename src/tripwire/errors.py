"""Error hierarchy for tripwire.

Caller-contract violations (bad options to the event builder) raise plain
``ValueError``. Everything else inherits from TripwireError.
"""


class TripwireError(Exception):
    """Base error for all tripwire operations."""


class ConfigError(TripwireError):
    """Invalid or missing configuration."""


class PoolSaturatedError(TripwireError):
    """Every sender queue is full and the caller chose not to wait."""


class DeliveryError(TripwireError):
    """An event could not be delivered after exhausting the retry policy."""

    def __init__(self, message: str, last_error: str | None = None, attempts: int = 0):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class DeliveryCancelledError(DeliveryError):
    """Delivery was abandoned because of shutdown or an expired deadline."""
