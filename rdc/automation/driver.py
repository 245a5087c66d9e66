"""Drive a reserved device through its Appium server URL.

Each navigation run opens its own WebDriver session and always quits it.
Quitting the driver releases only the client-side connection; the reserved
device session stays open until the controller closes it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from appium import webdriver
from appium.options.android import UiAutomator2Options
from appium.options.ios import XCUITestOptions

logger = logging.getLogger("rdc-session.appium")

DEFAULT_TARGETS = ("https://www.saucelabs.com",)


def build_options(platform: str, browser_name: str | None = None):  # noqa: ANN201
    """Appium options for the device's OS class ('Android' or 'iOS')."""
    if platform.lower() == "ios":
        options = XCUITestOptions()
    else:
        options = UiAutomator2Options()
    if browser_name:
        options.set_capability("browserName", browser_name)
    return options


def open_driver(appium_url: str, platform: str, browser_name: str | None = None) -> webdriver.Remote:
    return webdriver.Remote(appium_url, options=build_options(platform, browser_name))


def navigate(
    appium_url: str,
    platform: str,
    targets: Iterable[str] = DEFAULT_TARGETS,
    browser_name: str | None = None,
) -> list[str]:
    """Open a driver, visit each target URL, quit. Returns the visited URLs."""
    driver = open_driver(appium_url, platform, browser_name)
    visited: list[str] = []
    try:
        for target in targets:
            logger.info("Navigating to %s", target)
            driver.get(target)
            visited.append(target)
    finally:
        # Closes the client connection only; the device stays reserved
        driver.quit()
    return visited


async def run_navigation(
    appium_url: str,
    platform: str,
    targets: Iterable[str] = DEFAULT_TARGETS,
    browser_name: str | None = None,
) -> list[str]:
    """Async wrapper: the Selenium client blocks, so run it in a worker thread."""
    return await asyncio.to_thread(navigate, appium_url, platform, list(targets), browser_name)
