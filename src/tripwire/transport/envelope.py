"""Envelope encoding and request headers.

An envelope is newline-delimited JSON: an envelope header, an item header,
and the event payload.
"""

import json
import time

from tripwire.config import Dsn
from tripwire.models import Event, remove_non_payload_keys, utc_timestamp

CONTENT_TYPE = "application/x-sentry-envelope"
PROTOCOL_VERSION = 7


def encode_envelope(event: Event) -> bytes:
    """Serialize ``event`` (without non-payload fields) into an envelope."""
    payload = json.dumps(remove_non_payload_keys(event), default=str).encode("utf-8")
    header = {"event_id": event.event_id, "sent_at": utc_timestamp() + "Z"}
    item_header = {"type": "event", "length": len(payload), "content_type": "application/json"}

    return b"\n".join(
        [
            json.dumps(header).encode("utf-8"),
            json.dumps(item_header).encode("utf-8"),
            payload,
        ]
    ) + b"\n"


def auth_headers(dsn: Dsn) -> dict[str, str]:
    from tripwire import __version__

    client = f"tripwire/{__version__}"
    auth = (
        f"Sentry sentry_version={PROTOCOL_VERSION}, sentry_client={client}, "
        f"sentry_timestamp={int(time.time())}, sentry_key={dsn.public_key}"
    )
    if dsn.secret_key:
        auth += f", sentry_secret={dsn.secret_key}"

    return {
        "Content-Type": CONTENT_TYPE,
        "User-Agent": client,
        "X-Sentry-Auth": auth,
    }
