"""Context store for tripwire event building.

Holds the user, tags, extra, request and breadcrumbs that get merged into
every event built in the current unit of work. The store lives in a
ContextVar and is copy-on-write: every mutation installs a new snapshot, so
a snapshot handed to the event builder never changes underneath it, and
concurrent threads or asyncio tasks never see each other's mutations.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any

from tripwire.config import get_config
from tripwire.models import Breadcrumb, utc_timestamp

_EMPTY: Mapping[str, Any] = MappingProxyType(
    {"user": {}, "tags": {}, "extra": {}, "request": {}, "breadcrumbs": ()}
)

# Current snapshot for this thread/task; None means "empty"
_context: ContextVar[Mapping[str, Any] | None] = ContextVar("tripwire_context", default=None)


def _current() -> Mapping[str, Any]:
    ctx = _context.get()
    return _EMPTY if ctx is None else ctx


def _replace(key: str, value: Any) -> None:
    new = dict(_current())
    new[key] = value
    _context.set(MappingProxyType(new))


def _merge(key: str, values: Mapping[str, Any]) -> None:
    _replace(key, {**_current()[key], **values})


def set_user_context(user: Mapping[str, Any]) -> None:
    """Merge ``user`` into the user context (id, email, username, ...)."""
    _merge("user", user)


def set_tags_context(tags: Mapping[str, Any]) -> None:
    _merge("tags", tags)


def set_extra_context(extra: Mapping[str, Any]) -> None:
    _merge("extra", extra)


def set_request_context(request: Mapping[str, Any]) -> None:
    """Merge ``request`` into the request context.

    Field names are validated when an event is built, not here.
    """
    _merge("request", request)


def add_breadcrumb(breadcrumb: Mapping[str, Any] | Breadcrumb) -> None:
    """Append a breadcrumb, keeping at most ``max_breadcrumbs`` (oldest dropped).

    Breadcrumbs without a timestamp are stamped with the current time.
    """
    if isinstance(breadcrumb, Breadcrumb):
        crumb = breadcrumb.model_dump()
    else:
        crumb = dict(breadcrumb)

    if crumb.get("timestamp") is None:
        crumb["timestamp"] = utc_timestamp()

    max_breadcrumbs = get_config().max_breadcrumbs
    crumbs = (*_current()["breadcrumbs"], crumb)
    _replace("breadcrumbs", crumbs[-max_breadcrumbs:] if max_breadcrumbs else ())


def get_all() -> dict[str, Any]:
    """Snapshot of the whole context, safe for the caller to mutate."""
    ctx = _current()
    return {
        "user": dict(ctx["user"]),
        "tags": dict(ctx["tags"]),
        "extra": dict(ctx["extra"]),
        "request": dict(ctx["request"]),
        "breadcrumbs": [dict(crumb) for crumb in ctx["breadcrumbs"]],
    }


def clear_all() -> None:
    _context.set(None)


@contextmanager
def context_scope(inherit: bool = False) -> Iterator[None]:
    """Run a unit of work (e.g. one request) with its own context.

    The scope starts empty, or as a copy of the enclosing context when
    ``inherit`` is true. The enclosing context is restored on exit.

    Example:
        with tripwire.context_scope():
            tripwire.set_user_context({"id": 42})
            handle_request()
    """
    token = _context.set(_current() if inherit else None)
    try:
        yield
    finally:
        _context.reset(token)
