"""Asynchronous delivery of events to the ingestion endpoint."""

from tripwire.transport.client import HTTPClient, HttpxClient, create_client
from tripwire.transport.delivery import DeliveryState, Transport
from tripwire.transport.envelope import encode_envelope
from tripwire.transport.pool import SenderPool
from tripwire.transport.sender import Sender

__all__ = [
    "HTTPClient",
    "HttpxClient",
    "create_client",
    "DeliveryState",
    "Transport",
    "encode_envelope",
    "SenderPool",
    "Sender",
]
