"""tripwire CLI: tripwire send-test-event.

Entry point for the ``tripwire`` command-line interface.
"""

import argparse
import sys

from tripwire.client import DSN_NOT_SET_NOTICE, configure, send_event, shutdown
from tripwire.config import get_config
from tripwire.errors import DeliveryError
from tripwire.event import transform_exception

TEST_EVENT_MESSAGE = "Testing sending tripwire event"


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the tripwire CLI."""
    parser = argparse.ArgumentParser(
        prog="tripwire",
        description="Error reporting client with asynchronous delivery.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # tripwire send-test-event
    send_parser = subparsers.add_parser(
        "send-test-event",
        help="Send a test event to check the configuration",
    )
    send_parser.add_argument("--dsn", help="DSN to send to (defaults to TRIPWIRE_DSN)")
    send_parser.add_argument("--environment", help="Environment name for the test event")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from tripwire import __version__

    return __version__


def _print_config() -> None:
    config = get_config()
    dsn = config.parsed_dsn

    print("Client configuration:")
    if dsn is not None:
        print(f"server: {dsn.endpoint_uri}")
        print(f"public_key: {dsn.public_key}")
        print(f"secret_key: {dsn.secret_key}")
    print(f"current environment_name: {config.environment_name!r}")
    print()


def send_test_event(dsn: str | None = None, environment: str | None = None) -> None:
    """Print the effective configuration and synchronously send a test event.

    Raises:
        SystemExit: With status 1 if the event could not be delivered
    """
    overrides = {}
    if dsn is not None:
        overrides["dsn"] = dsn
    if environment is not None:
        overrides["environment_name"] = environment
    if overrides:
        configure(**{**dict(get_config()), **overrides})

    _print_config()

    if not get_config().dsn:
        print(DSN_NOT_SET_NOTICE)
        return

    print("Sending test event...")
    event = transform_exception(RuntimeError(TEST_EVENT_MESSAGE), event_source="cli", level="info")

    try:
        remote_id = send_event(event, sync=True)
    except DeliveryError as e:
        raise SystemExit(f"Error sending event: {e}") from e
    finally:
        shutdown()

    print("Test event sent")
    print(f"Event ID: {remote_id}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "send-test-event":
        send_test_event(dsn=args.dsn, environment=args.environment)
