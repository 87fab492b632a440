"""Event construction.

``create_event`` merges the caller's options with the context store and the
static configuration, in that order of precedence, and turns a raw
stacktrace into normalized frames. It never performs I/O.
"""

import socket
from collections.abc import Mapping, Sequence
from typing import Any

from tripwire import context
from tripwire.config import Config, get_config
from tripwire.models import (
    DEFAULT_FINGERPRINT,
    REQUEST_FIELDS,
    Breadcrumb,
    Event,
    ExceptionEntry,
    Level,
    Request,
    Stacktrace,
)
from tripwire.sources import get_source_code_map
from tripwire.stacktrace import RawFrame, culprit_from_stacktrace, normalize
from tripwire.state import get_process_state


def create_event(
    *,
    exception: BaseException | None = None,
    stacktrace: Sequence[RawFrame] | None = None,
    message: str | None = None,
    event_source: str | None = None,
    extra: Mapping[str, Any] | None = None,
    tags: Mapping[str, Any] | None = None,
    user: Mapping[str, Any] | None = None,
    request: Mapping[str, Any] | None = None,
    breadcrumbs: Sequence[Mapping[str, Any]] | None = None,
    level: Level = "error",
    fingerprint: Sequence[str] | None = None,
) -> Event:
    """Build an event from options, the current context and the configuration.

    Args:
        exception: Exception to report; kept as-is in ``original_exception``
        stacktrace: Raw stacktrace, most recent call first (see tripwire.stacktrace)
        message: Message to report when there is no exception
        event_source: Origin tag, e.g. "logger" or "decorator"
        extra: Merged over the context's extra
        tags: Merged over the context's tags, which are merged over config tags
        user: Merged over the context's user
        request: Merged over the context's request; only known fields allowed
        breadcrumbs: Prepended to the context's breadcrumbs
        level: One of fatal, error, warning, info, debug
        fingerprint: Grouping fingerprint, defaults to ``["{{default}}"]``

    Returns:
        The built Event

    Raises:
        ValueError: If a stacktrace is given without an exception or a message,
            or the request has an unknown field
    """
    config = get_config()
    ctx = context.get_all()
    state = get_process_state()

    merged_request = {**ctx["request"], **(request or {})}
    crumbs = [*(breadcrumbs or []), *ctx["breadcrumbs"]]

    return Event(
        breadcrumbs=_truncate_breadcrumbs(crumbs, config.max_breadcrumbs),
        contexts=state.contexts,
        culprit=culprit_from_stacktrace(stacktrace),
        environment=config.environment_name,
        exception=_coerce_exception(exception, stacktrace, message, config),
        extra={**ctx["extra"], **(extra or {})},
        fingerprint=list(fingerprint) if fingerprint is not None else list(DEFAULT_FINGERPRINT),
        level=level,
        message=message,
        modules=state.modules,
        original_exception=exception,
        release=config.release,
        request=_coerce_request(merged_request),
        sdk=state.sdk,
        server_name=config.server_name or socket.gethostname(),
        source=event_source,
        tags={**config.tags, **ctx["tags"], **(tags or {})},
        user={**ctx["user"], **(user or {})},
    )


def transform_exception(exception: BaseException, **options: Any) -> Event:
    """Build an event for ``exception``; takes the same options as create_event."""
    options["exception"] = exception
    return create_event(**options)


def _truncate_breadcrumbs(crumbs: list[Mapping[str, Any]], max_breadcrumbs: int) -> list[Breadcrumb]:
    kept = crumbs[-max_breadcrumbs:] if max_breadcrumbs else []
    return [crumb if isinstance(crumb, Breadcrumb) else Breadcrumb(**crumb) for crumb in kept]


def _coerce_exception(
    exception: BaseException | None,
    stacktrace: Sequence[RawFrame] | None,
    message: str | None,
    config: Config,
) -> list[ExceptionEntry]:
    if exception is None and message is None:
        if stacktrace is not None:
            raise ValueError(
                "cannot provide a stacktrace without an exception or a message, "
                f"got: {stacktrace!r}"
            )
        return []

    frames = None
    if stacktrace is not None:
        source_map = get_source_code_map() if config.enable_source_code_context else None
        frames = Stacktrace(
            frames=normalize(
                stacktrace,
                config.in_app_module_allow_list,
                source_map=source_map,
                context_lines=config.context_lines,
            )
        )

    if exception is None:
        return [ExceptionEntry(type="message", value=message, stacktrace=frames)]

    exc_type = type(exception)
    return [
        ExceptionEntry(
            type=exc_type.__name__,
            value=str(exception),
            module=exc_type.__module__,
            stacktrace=frames,
        )
    ]


def _coerce_request(request: Mapping[str, Any]) -> Request:
    for key in request:
        if key not in REQUEST_FIELDS:
            raise ValueError(f"unknown field for the request interface: {key!r}")
    return Request(**request)
