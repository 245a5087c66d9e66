"""Command-line entry point: reserve a device, run a navigation, release it."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from selenium.common.exceptions import WebDriverException

from rdc.automation.driver import DEFAULT_TARGETS, run_navigation
from rdc.cloud.client import RdcClient
from rdc.config import ClientConfig, get_default_os
from rdc.models import ConfigError, RemoteDeviceError, Session, SessionState
from rdc.session.controller import (
    ACTIVATION_TIMEOUT,
    CLOSE_TIMEOUT,
    DEFAULT_APPIUM_VERSION,
    SessionController,
)

logger = logging.getLogger("rdc-session.main")


def _build_controller(config: ClientConfig) -> tuple[RdcClient, SessionController]:
    client = RdcClient(config)
    return client, SessionController(client, poll_interval=config.poll_interval)


async def _run(args: argparse.Namespace, config: ClientConfig) -> None:
    client, controller = _build_controller(config)
    async with client:

        async def automation(appium_url: str) -> None:
            print("--- Appium test ---")
            print(f"    Connecting to {appium_url}")
            visited = await run_navigation(
                appium_url, args.os, args.url or DEFAULT_TARGETS, args.browser,
            )
            print(f"    Visited {len(visited)} page(s)")

        session = await controller.run(
            args.os,
            automation,
            activation_timeout=args.activation_timeout,
            close_timeout=args.close_timeout,
            appium_version=args.appium_version,
        )
    print(f"Session {session.session_id} is {session.state.value}")


async def _status(args: argparse.Namespace, config: ClientConfig) -> None:
    client, controller = _build_controller(config)
    async with client:
        state = await controller.get_state(Session(session_id=args.session_id))
    print(f"{args.session_id}: {state.value}")


async def _close(args: argparse.Namespace, config: ClientConfig) -> None:
    client, controller = _build_controller(config)
    async with client:
        session = Session(session_id=args.session_id, state=SessionState.ACTIVE)
        if not await controller.close(session):
            print(f"{args.session_id}: nothing to release")
            return
        if args.wait:
            await controller.wait_for_state(session, SessionState.CLOSED, args.wait)
    print(f"{args.session_id}: {session.state.value}")


def cli(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Reserve a remote real device, drive it through Appium, release it",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # run
    run_parser = subparsers.add_parser("run", help="Full lifecycle: reserve, test, release")
    run_parser.add_argument("--os", default=None, help="Device OS class (default: Android)")
    run_parser.add_argument(
        "--url", action="append", default=None,
        help="Page to open on the device (repeatable, default: https://www.saucelabs.com)",
    )
    run_parser.add_argument("--browser", default=None, help="browserName capability")
    run_parser.add_argument(
        "--activation-timeout", type=float, default=ACTIVATION_TIMEOUT,
        help=f"Seconds to wait for ACTIVE (default: {ACTIVATION_TIMEOUT:g})",
    )
    run_parser.add_argument(
        "--close-timeout", type=float, default=CLOSE_TIMEOUT,
        help=f"Seconds to wait for CLOSED (default: {CLOSE_TIMEOUT:g})",
    )
    run_parser.add_argument(
        "--appium-version", default=DEFAULT_APPIUM_VERSION,
        help="Appium server version to attach (default: latest)",
    )

    # status
    status_parser = subparsers.add_parser("status", help="Show a session's current state")
    status_parser.add_argument("session_id")

    # close
    close_parser = subparsers.add_parser("close", help="Release a leftover session")
    close_parser.add_argument("session_id")
    close_parser.add_argument(
        "--wait", type=float, default=0.0,
        help="Seconds to wait for CLOSED after the release request (default: don't wait)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = ClientConfig.from_env()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.command == "run":
        args.os = args.os or get_default_os()
        handler = _run
    elif args.command == "status":
        handler = _status
    else:
        handler = _close

    try:
        asyncio.run(handler(args, config))
    except (RemoteDeviceError, WebDriverException) as e:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    cli()
