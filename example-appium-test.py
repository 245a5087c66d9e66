#!/usr/bin/env python3
"""Example suite: reserve one real device, run several quick tests on it.

The device is reserved once and released once. Each test opens its own
Appium driver and quits it; the underlying device session stays reserved
between tests.

Credentials come from the environment:
- SAUCE_USERNAME, SAUCE_ACCESS_KEY: required
- ENVIRONMENT: API region segment, e.g. us-west-1 (optional)
"""

import asyncio
import sys

from rdc.automation.driver import run_navigation
from rdc.cloud.client import RdcClient
from rdc.config import ClientConfig
from rdc.models import RemoteDeviceError
from rdc.session.controller import SessionController

DEVICE_OS = "Android"

TESTS = {
    "first_test": "https://www.saucelabs.com",
    "second_test": "https://www.youtube.com",
}


async def run_suite(appium_url: str) -> int:
    """Your tests go here. Returns the number of failures."""
    failures = 0
    for name, target in TESTS.items():
        print(f"Executing {name}")
        try:
            await run_navigation(appium_url, DEVICE_OS, [target])
            print(f"✓ {name}")
        except Exception as e:
            failures += 1
            print(f"✗ {name}: {e}")
    return failures


async def main() -> int:
    config = ClientConfig.from_env()
    async with RdcClient(config) as client:
        controller = SessionController(client, poll_interval=config.poll_interval)
        async with controller.reserve(DEVICE_OS) as session:
            print(f"Reserved device session {session.session_id}")
            failures = await run_suite(session.appium_url)
        print(f"Released device session {session.session_id}")
    return failures


if __name__ == "__main__":
    try:
        sys.exit(1 if asyncio.run(main()) else 0)
    except RemoteDeviceError as e:
        print(f"Error: {e}")
        sys.exit(1)
