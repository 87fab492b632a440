import asyncio
import json
import logging
import threading

import pytest

import tripwire
from tripwire import client
from tripwire.client import DSN_NOT_SET_NOTICE, get_pool, send_event
from tripwire.config import Config, set_config
from tripwire.errors import DeliveryError
from tripwire.event import create_event
from tests.test_helpers import DSN


def payload_of(request):
    return json.loads(request["body"].split(b"\n")[2])


@pytest.fixture
def captured(configured):
    """Configure a before_send hook that records events and drops them."""
    events = []

    def before_send(event):
        events.append(event)
        return None

    configured(before_send=before_send)
    return events


def raise_error(reason):
    raise ValueError(reason)


@pytest.mark.unit
class TestSendEvent:
    def test_no_dsn_makes_no_network_call(self, fake_client, caplog):
        caplog.set_level(logging.INFO, logger="tripwire.client")
        tripwire.configure(client=fake_client, report_deps=False)

        result = tripwire.capture_message("nobody hears this")

        assert result is None
        assert fake_client.requests == []
        assert DSN_NOT_SET_NOTICE in caplog.text

    def test_sync_success_returns_remote_id(self, configured, fake_client):
        remote_id = tripwire.capture_message("hello", sync=True)

        assert remote_id == "340"
        assert payload_of(fake_client.requests[0])["message"] == "hello"

    def test_sync_failure_raises(self, configured, fake_client):
        fake_client.default = (500, {}, b"")

        with pytest.raises(DeliveryError, match="Error sending event"):
            tripwire.capture_message("hello", sync=True)

        assert len(fake_client.requests) == 1

    def test_async_returns_local_event_id(self, configured, fake_client):
        results = []
        done = threading.Event()

        def after_send_event(event, result):
            results.append((event.event_id, result))
            done.set()

        configured(after_send_event=after_send_event)

        event_id = tripwire.capture_message("hello")

        assert done.wait(2.0)
        assert results == [(event_id, "340")]
        assert len(event_id) == 32

    def test_after_send_event_sees_sync_failure(self, configured, fake_client):
        results = []
        configured(after_send_event=lambda event, result: results.append(result))
        fake_client.default = (500, {}, b"")

        with pytest.raises(DeliveryError):
            tripwire.capture_message("hello", sync=True)

        assert isinstance(results[0], DeliveryError)

    def test_sampled_out(self, configured, fake_client):
        configured(sample_rate=0.0)

        assert tripwire.capture_message("hello", sync=True) is None
        assert fake_client.requests == []

    def test_before_send_can_drop(self, captured, fake_client):
        assert tripwire.capture_message("hello", sync=True) is None
        assert len(captured) == 1
        assert fake_client.requests == []

    def test_before_send_can_replace(self, configured, fake_client):
        configured(before_send=lambda event: event.model_copy(update={"tags": {"scrubbed": "yes"}}))

        tripwire.capture_message("hello", sync=True)

        assert payload_of(fake_client.requests[0])["tags"] == {"scrubbed": "yes"}

    def test_send_prebuilt_event(self, configured, fake_client):
        event = create_event(message="built elsewhere", tags={"k": "v"})

        assert send_event(event, sync=True) == "340"
        assert payload_of(fake_client.requests[0])["event_id"] == event.event_id


@pytest.mark.unit
class TestCaptureException:
    def test_stacktrace_from_traceback(self, captured):
        try:
            raise_error("boom")
        except ValueError as e:
            tripwire.capture_exception(e)

        entry = captured[0].exception[0]
        assert entry.type == "ValueError"
        assert entry.value == "boom"
        assert entry.stacktrace.frames[-1].function.endswith("raise_error/1")
        assert entry.stacktrace.frames[-1].vars == {"arg0": "'boom'"}
        assert captured[0].culprit.endswith("raise_error/1")

    def test_explicit_stacktrace_wins(self, captured, sample_stacktrace):
        try:
            raise_error("boom")
        except ValueError as e:
            tripwire.capture_exception(e, stacktrace=sample_stacktrace)

        assert captured[0].culprit == "myapp.views.show/2"

    def test_exception_without_traceback(self, captured):
        tripwire.capture_exception(KeyError("never raised"), tags={"t": "1"})

        assert captured[0].exception[0].stacktrace is None
        assert captured[0].tags == {"t": "1"}

    def test_capture_message_with_context(self, captured):
        tripwire.set_user_context({"id": 3})

        tripwire.capture_message("hi", level="info")

        assert captured[0].user == {"id": 3}
        assert captured[0].level == "info"


@pytest.mark.unit
class TestCaptureErrors:
    def test_reports_and_reraises(self, captured):
        @tripwire.capture_errors
        def handle():
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError):
            handle()

        assert captured[0].source == "decorator"
        assert captured[0].exception[0].value == "handler failed"

    def test_with_options(self, captured):
        @tripwire.capture_errors(tags={"queue": "billing"}, level="fatal")
        def handle():
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError):
            handle()

        assert captured[0].tags == {"queue": "billing"}
        assert captured[0].level == "fatal"

    def test_passes_return_value_through(self, captured):
        @tripwire.capture_errors
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert add.__name__ == "add"
        assert captured == []

    def test_async_function(self, captured):
        @tripwire.capture_errors
        async def consume():
            raise ValueError("bad message")

        with pytest.raises(ValueError):
            asyncio.run(consume())

        assert captured[0].exception[0].type == "ValueError"

    def test_reporting_failure_does_not_mask_exception(self, configured, fake_client, caplog):
        fake_client.default = (500, {}, b"")

        @tripwire.capture_errors(sync=True)
        def handle():
            raise RuntimeError("original")

        with pytest.raises(RuntimeError, match="original"):
            handle()

        assert "Could not report RuntimeError" in caplog.text


@pytest.mark.unit
class TestLifecycle:
    def test_shutdown_stops_pool(self, configured):
        pool = client._pool

        tripwire.shutdown(timeout=1.0)

        assert client._pool is None
        assert not pool.is_running

    def test_get_pool_starts_lazily(self, fake_client):
        set_config(Config(dsn=DSN, client=fake_client, report_deps=False))

        pool = get_pool()

        assert pool.is_running
        assert get_pool() is pool
