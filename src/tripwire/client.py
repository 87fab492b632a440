"""Client entry points: configuration lifecycle and event capture.

Handles process setup (config, process state, source map, sender pool) and
routes built events either to the sender pool or, for synchronous sends,
straight through the transport on the caller's thread.
"""

import functools
import inspect
import logging
import random
from collections.abc import Callable
from threading import Lock
from typing import Any

from tripwire.config import Config, get_config, set_config
from tripwire.errors import DeliveryError, TripwireError
from tripwire.event import create_event, transform_exception
from tripwire.models import Event
from tripwire.sources import load_source_code_map, set_source_code_map
from tripwire.stacktrace import frames_from_traceback
from tripwire.state import init_process_state
from tripwire.transport.envelope import encode_envelope
from tripwire.transport.pool import SenderPool

logger = logging.getLogger(__name__)

DSN_NOT_SET_NOTICE = "Event not sent because the dsn option is not set"

_pool: SenderPool | None = None
_pool_lock = Lock()


def configure(**options: Any) -> Config:
    """Configure tripwire for this process.

    Validates the options, snapshots process state, loads the source code map
    when source context is enabled, and (re)starts the sender pool when a
    DSN is set. Calling configure again replaces the previous setup.

    Returns:
        The validated Config

    Raises:
        ConfigError: If the options are invalid
    """
    global _pool

    config = Config.from_options(**options)

    with _pool_lock:
        if _pool is not None:
            _pool.stop()
            _pool = None

        set_config(config)
        init_process_state(report_deps=config.report_deps)

        if config.enable_source_code_context:
            set_source_code_map(
                load_source_code_map(
                    config.root_source_code_paths,
                    config.source_code_path_pattern,
                    config.source_code_exclude_patterns,
                )
            )
        else:
            set_source_code_map(None)

        if config.dsn:
            _pool = SenderPool.from_config(config)
            _pool.start()

    return config


def shutdown(timeout: float = 5.0) -> None:
    """Stop the sender pool. Undelivered events are abandoned."""
    global _pool

    with _pool_lock:
        if _pool is not None:
            _pool.stop(timeout=timeout)
            _pool = None


def get_pool() -> SenderPool:
    """Return the running sender pool, starting one for the current config if needed."""
    global _pool

    with _pool_lock:
        if _pool is None:
            _pool = SenderPool.from_config(get_config())
            _pool.start()
        return _pool


def _after_send(config: Config, event: Event, result: Any) -> None:
    if config.after_send_event is not None:
        config.after_send_event(event, result)


def send_event(event: Event, sync: bool = False) -> str | None:
    """Send a built event.

    Args:
        event: The event to send
        sync: Deliver on the calling thread and wait for the result

    Returns:
        The remote event ID when ``sync``, otherwise the local event ID;
        None when the event was not sent (no DSN, sampled out, dropped by
        ``before_send``)

    Raises:
        DeliveryError: In sync mode, when delivery failed
        PoolSaturatedError: In async mode, when no sender accepted the event
    """
    config = get_config()

    if not config.dsn:
        logger.info(DSN_NOT_SET_NOTICE)
        return None

    if config.sample_rate < 1.0 and random.random() >= config.sample_rate:
        logger.debug(f"Event {event.event_id} excluded by sample_rate")
        return None

    if config.before_send is not None:
        event = config.before_send(event)
        if event is None:
            logger.debug("Event dropped by before_send")
            return None

    pool = get_pool()

    if not sync:
        return pool.dispatch(event, callback=config.after_send_event)

    try:
        remote_id = pool.transport.deliver(encode_envelope(event))
    except DeliveryError as e:
        logger.warning(f"Failed to send event {event.event_id}: {e}")
        _after_send(config, event, e)
        raise

    _after_send(config, event, remote_id)
    return remote_id


def capture_exception(exception: BaseException, **options: Any) -> str | None:
    """Report an exception.

    The stacktrace is taken from the exception's traceback unless a
    ``stacktrace`` option is given. Pass ``sync=True`` to wait for delivery.
    Other options are those of ``create_event``.
    """
    sync = options.pop("sync", False)
    if "stacktrace" not in options and exception.__traceback__ is not None:
        options["stacktrace"] = frames_from_traceback(exception.__traceback__)

    return send_event(transform_exception(exception, **options), sync=sync)


def capture_message(message: str, **options: Any) -> str | None:
    """Report a message. Takes the same options as ``capture_exception``."""
    sync = options.pop("sync", False)
    return send_event(create_event(message=message, **options), sync=sync)


def capture_errors(
    func: Callable | None = None,
    **options: Any,
) -> Callable:
    """Decorator reporting exceptions that escape the wrapped function.

    The exception is re-raised after reporting. Can be used as
    ``@capture_errors`` or ``@capture_errors(tags={...}, level="fatal")``.

    Example:
        @tripwire.capture_errors
        def handle(job):
            ...

        @tripwire.capture_errors(tags={"queue": "billing"})
        async def consume(message):
            ...
    """
    options.setdefault("event_source", "decorator")

    def report(exception: BaseException) -> None:
        try:
            capture_exception(exception, **options)
        except TripwireError as e:
            logger.warning(f"Could not report {type(exception).__name__}: {e}")

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    report(e)
                    raise

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                report(e)
                raise

        return wrapper

    if func is None:
        return decorator
    else:
        return decorator(func)
