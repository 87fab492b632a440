"""Core event models for tripwire.

This module defines the event payload that flows from the builder to the
transport. Field names follow the Sentry event payload format so that any
compatible ingestion endpoint accepts the serialized event as-is.

Two fields never leave the process:
- ``source`` tags where the event came from (logger, decorator, caller)
- ``original_exception`` keeps the raw exception object for local consumers
"""

from datetime import UTC, datetime
from typing import Any, Literal

from nanoid import generate
from pydantic import BaseModel, ConfigDict, Field

Level = Literal["fatal", "error", "warning", "info", "debug"]

HEX_ALPHABET = "0123456789abcdef"
DEFAULT_FINGERPRINT = ["{{default}}"]


def generate_event_id() -> str:
    """Generate a 32 character lowercase hex event ID."""
    return generate(HEX_ALPHABET, 32)


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 with microseconds and no zone suffix."""
    return datetime.now(UTC).replace(tzinfo=None).isoformat(timespec="microseconds")


class Frame(BaseModel):
    """A single normalized stack frame."""

    model_config = ConfigDict(frozen=True)

    module: str | None = None
    function: str | None = None
    filename: str | None = None
    lineno: int | None = None
    in_app: bool = False
    context_line: str | None = None
    pre_context: list[str] = Field(default_factory=list)
    post_context: list[str] = Field(default_factory=list)
    vars: dict[str, str] = Field(default_factory=dict)


class Stacktrace(BaseModel):
    model_config = ConfigDict(frozen=True)

    frames: list[Frame] = Field(default_factory=list)


class ExceptionEntry(BaseModel):
    """Wire representation of a reported exception (or message)."""

    model_config = ConfigDict(frozen=True)

    type: str
    value: str | None = None
    module: str | None = None
    stacktrace: Stacktrace | None = None


class Breadcrumb(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str | None = None
    category: str | None = None
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    level: str | None = None
    timestamp: str | float | None = None


class Request(BaseModel):
    """HTTP request interface. Unknown fields are rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: str | None = None
    url: str | None = None
    query_string: str | dict[str, Any] | None = None
    data: Any = None
    cookies: str | dict[str, Any] | None = None
    headers: dict[str, Any] = Field(default_factory=dict)
    env: dict[str, Any] = Field(default_factory=dict)


REQUEST_FIELDS = frozenset(Request.model_fields)


class Event(BaseModel):
    """A fully built error event.

    Events are immutable once built: use ``model_copy(update=...)`` to derive
    a modified event (e.g. from a ``before_send`` hook).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Required
    event_id: str = Field(default_factory=generate_event_id)
    timestamp: str = Field(default_factory=utc_timestamp)
    platform: str = "python"

    # Optional
    level: Level | None = "error"
    logger: str | None = None
    transaction: str | None = None
    server_name: str | None = None
    release: str | None = None
    dist: str | None = None
    environment: str | None = "production"
    culprit: str | None = None
    message: str | None = None
    tags: dict[str, Any] = Field(default_factory=dict)
    extra: dict[str, Any] = Field(default_factory=dict)
    user: dict[str, Any] = Field(default_factory=dict)
    modules: dict[str, str] = Field(default_factory=dict)
    fingerprint: list[str] = Field(default_factory=lambda: list(DEFAULT_FINGERPRINT))
    contexts: dict[str, Any] = Field(default_factory=dict)
    breadcrumbs: list[Breadcrumb] = Field(default_factory=list)
    exception: list[ExceptionEntry] = Field(default_factory=list)
    request: Request = Field(default_factory=Request)
    sdk: dict[str, str] | None = None

    # Non-payload fields
    source: str | None = Field(default=None, exclude=True)
    original_exception: BaseException | None = Field(default=None, exclude=True)


NON_PAYLOAD_KEYS = frozenset({"source", "original_exception"})


def remove_non_payload_keys(event: Event) -> dict[str, Any]:
    """Dump an event to a plain mapping without the non-payload fields."""
    return event.model_dump(exclude=set(NON_PAYLOAD_KEYS))
