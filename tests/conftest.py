"""Shared test fixtures and configuration for tripwire tests."""

import pytest
from hypothesis import HealthCheck, settings

import tripwire
from tripwire.config import ENV_OPTIONS, set_config
from tripwire.sources import set_source_code_map
from tests.test_helpers import DSN, FakeHTTPClient

# The autouse reset fixture is function-scoped; property tests manage their own state
settings.register_profile("tripwire", suppress_health_check=[HealthCheck.function_scoped_fixture])
settings.load_profile("tripwire")


@pytest.fixture(autouse=True)
def reset_tripwire(monkeypatch):
    """Give every test a clean config, context and pool."""
    for env_var in ENV_OPTIONS.values():
        monkeypatch.delenv(env_var, raising=False)

    tripwire.clear_all()
    yield
    tripwire.shutdown(timeout=1.0)
    set_config(None)
    set_source_code_map(None)
    tripwire.clear_all()


@pytest.fixture
def fake_client():
    return FakeHTTPClient()


@pytest.fixture
def configured(fake_client):
    """Configure tripwire against the fake client; returns a reconfigure function."""

    def _configure(**options):
        options.setdefault("dsn", DSN)
        options.setdefault("client", fake_client)
        options.setdefault("report_deps", False)
        options.setdefault("request_retries", [])
        options.setdefault("sender_pool_size", 2)
        return tripwire.configure(**options)

    _configure()
    return _configure


@pytest.fixture
def sample_stacktrace():
    """Raw stacktrace, most recent call first."""
    return [
        ("myapp.views", "show", ["request", 42], {"file": "myapp/views.py", "line": 12}),
        ("myapp.router", "dispatch", 2, {"file": "myapp/router.py", "line": 30}),
        ("lambda_handler", 1, {"file": "handler.py", "line": 3}),
    ]
