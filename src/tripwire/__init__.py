"""tripwire - Error reporting client with asynchronous, retrying delivery."""

__version__ = "0.1.0"

from tripwire.client import (
    capture_errors,
    capture_exception,
    capture_message,
    configure,
    send_event,
    shutdown,
)
from tripwire.config import Config, get_config
from tripwire.context import (
    add_breadcrumb,
    clear_all,
    context_scope,
    set_extra_context,
    set_request_context,
    set_tags_context,
    set_user_context,
)
from tripwire.errors import (
    ConfigError,
    DeliveryCancelledError,
    DeliveryError,
    PoolSaturatedError,
    TripwireError,
)
from tripwire.event import create_event, transform_exception
from tripwire.models import Event

__all__ = [
    "configure",
    "shutdown",
    "get_config",
    "Config",
    "capture_exception",
    "capture_message",
    "capture_errors",
    "send_event",
    "create_event",
    "transform_exception",
    "Event",
    "add_breadcrumb",
    "clear_all",
    "context_scope",
    "set_extra_context",
    "set_request_context",
    "set_tags_context",
    "set_user_context",
    "TripwireError",
    "ConfigError",
    "DeliveryError",
    "DeliveryCancelledError",
    "PoolSaturatedError",
]
