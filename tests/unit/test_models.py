import json
import re

import pytest
from pydantic import ValidationError

from tripwire.models import (
    Breadcrumb,
    Event,
    ExceptionEntry,
    Request,
    generate_event_id,
    remove_non_payload_keys,
)

PAYLOAD_KEYS = {
    "event_id",
    "timestamp",
    "platform",
    "level",
    "logger",
    "transaction",
    "server_name",
    "release",
    "dist",
    "environment",
    "culprit",
    "message",
    "tags",
    "extra",
    "user",
    "modules",
    "fingerprint",
    "contexts",
    "breadcrumbs",
    "exception",
    "request",
    "sdk",
}


@pytest.mark.unit
class TestEventModel:
    def test_event_id_is_32_lowercase_hex(self):
        event_id = generate_event_id()

        assert re.fullmatch(r"[0-9a-f]{32}", event_id)
        assert generate_event_id() != event_id

    def test_defaults(self):
        event = Event()

        assert event.level == "error"
        assert event.fingerprint == ["{{default}}"]
        assert event.exception == []
        assert event.breadcrumbs == []
        assert event.platform == "python"
        assert event.timestamp

    def test_timestamp_has_microseconds_and_no_zone(self):
        event = Event()

        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}", event.timestamp)

    def test_event_is_immutable(self):
        event = Event(message="hello")

        with pytest.raises(ValidationError):
            event.message = "changed"

    def test_invalid_level_rejected(self):
        with pytest.raises(ValidationError):
            Event(level="critical")


@pytest.mark.unit
class TestRemoveNonPayloadKeys:
    def test_strips_source_and_original_exception(self):
        event = Event(source="logger", original_exception=RuntimeError("boom"))

        payload = remove_non_payload_keys(event)

        assert "source" not in payload
        assert "original_exception" not in payload

    def test_keeps_every_payload_key(self):
        payload = remove_non_payload_keys(Event())

        assert set(payload) == PAYLOAD_KEYS

    def test_payload_is_json_serializable(self):
        event = Event(
            exception=[ExceptionEntry(type="RuntimeError", value="boom")],
            breadcrumbs=[Breadcrumb(message="clicked", data={"x": 1})],
            original_exception=RuntimeError("boom"),
        )

        parsed = json.loads(json.dumps(remove_non_payload_keys(event), default=str))

        assert parsed["exception"][0]["type"] == "RuntimeError"
        assert parsed["breadcrumbs"][0]["message"] == "clicked"


@pytest.mark.unit
class TestRequestModel:
    def test_known_fields(self):
        request = Request(method="GET", url="http://example.com", headers={"a": "b"})

        assert request.method == "GET"
        assert request.headers == {"a": "b"}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            Request(verb="GET")
