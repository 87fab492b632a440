#!/usr/bin/env python3
"""Report logged exceptions through the standard logging module."""

import logging
import os
import threading

import tripwire
from tripwire.integrations.logging import EventHandler

if not os.getenv("TRIPWIRE_DSN"):
    raise ValueError("Set TRIPWIRE_DSN, e.g. https://public@errors.example.com/1")

sent = threading.Event()


def after_send_event(event, result):
    print(f"{event.event_id} -> {result}")
    sent.set()


logging.basicConfig(level=logging.INFO)
tripwire.configure(after_send_event=after_send_event)

logger = logging.getLogger("billing")
logger.addHandler(EventHandler(level=logging.ERROR))

try:
    1 / 0
except ZeroDivisionError:
    logger.exception("Could not compute ratio")

# Delivery happens on a sender thread; shutdown abandons anything still queued
sent.wait(timeout=30)
tripwire.shutdown()
