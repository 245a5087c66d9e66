"""Tests for SessionController.reserve()/run() — the device is always released."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from rdc.models import (
    ProvisioningError,
    RemoteCallError,
    ReservationError,
    SessionState,
    SessionTimeoutError,
)

APPIUM_URL = "https://appium.test-1.saucelabs.com/wd/hub/abc123"


class TestReserveHappyPath:
    @pytest.mark.asyncio
    async def test_full_protocol_order(self, controller, cloud):
        cloud.states = ["PENDING", "CREATING", "ACTIVE"]

        async with controller.reserve("Android") as session:
            assert session.state == SessionState.ACTIVE
            assert session.endpoint == APPIUM_URL

        assert session.state == SessionState.CLOSED
        assert cloud.calls == [
            ("POST", "/sessions"),
            ("GET", "/sessions/abc123"),
            ("GET", "/sessions/abc123"),
            ("GET", "/sessions/abc123"),
            ("POST", "/sessions/abc123/appiumserver"),
            ("DELETE", "/sessions/abc123"),
            ("GET", "/sessions/abc123"),
        ]

    @pytest.mark.asyncio
    async def test_waits_for_closed(self, controller, cloud, clock):
        cloud.closing_states = ["CLOSING", "CLOSING", "CLOSED"]
        async with controller.reserve("Android"):
            pass
        assert cloud.count("GET", "/sessions/abc123") == 4
        assert clock.sleeps == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_appium_version_forwarded(self, controller, cloud):
        async with controller.reserve("Android", appium_version="2.11.0"):
            pass
        assert cloud.body(2) == {"appiumVersion": "2.11.0"}

    @pytest.mark.asyncio
    async def test_run_hands_endpoint_to_automation(self, controller, cloud):
        automation = AsyncMock()
        session = await controller.run("Android", automation)
        automation.assert_awaited_once_with(APPIUM_URL)
        assert session.state == SessionState.CLOSED


class TestReserveCleanup:
    @pytest.mark.asyncio
    async def test_create_failure_releases_nothing(self, controller, cloud):
        cloud.create = (500, "boom")
        with pytest.raises(ReservationError):
            async with controller.reserve("Android"):
                pytest.fail("body must not run")
        assert cloud.calls == [("POST", "/sessions")]

    @pytest.mark.asyncio
    async def test_scenario_c_provisioning_error_still_closes(self, controller, cloud):
        cloud.appium = (500, "Internal Server Error")

        with pytest.raises(ProvisioningError):
            async with controller.reserve("Android"):
                pytest.fail("body must not run")

        assert cloud.count("DELETE", "/sessions/abc123") == 1
        assert cloud.calls[-2:] == [
            ("DELETE", "/sessions/abc123"),
            ("GET", "/sessions/abc123"),
        ]

    @pytest.mark.asyncio
    async def test_activation_timeout_still_closes(self, controller, cloud, clock):
        cloud.states = ["CREATING"]

        with pytest.raises(SessionTimeoutError):
            async with controller.reserve("Android", activation_timeout=60):
                pytest.fail("body must not run")

        assert cloud.count("DELETE", "/sessions/abc123") == 1
        assert cloud.count("POST", "/sessions/abc123/appiumserver") == 0

    @pytest.mark.asyncio
    async def test_automation_error_still_closes(self, controller, cloud):
        with pytest.raises(RuntimeError, match="driver blew up"):
            async with controller.reserve("Android"):
                raise RuntimeError("driver blew up")
        assert cloud.count("DELETE", "/sessions/abc123") == 1

    @pytest.mark.asyncio
    async def test_run_automation_error_still_closes(self, controller, cloud):
        automation = AsyncMock(side_effect=ValueError("bad page"))
        with pytest.raises(ValueError):
            await controller.run("Android", automation)
        assert cloud.count("DELETE", "/sessions/abc123") == 1

    @pytest.mark.asyncio
    async def test_release_failure_does_not_mask_original_error(self, controller, cloud, caplog):
        cloud.appium = (500, "Internal Server Error")
        cloud.delete = (503, "unavailable")

        with caplog.at_level("WARNING", logger="rdc-session.controller"):
            with pytest.raises(ProvisioningError):
                async with controller.reserve("Android"):
                    pass

        assert "Best-effort release" in caplog.text

    @pytest.mark.asyncio
    async def test_close_wait_timeout_does_not_mask_original_error(self, controller, cloud, clock):
        cloud.closing_states = ["CLOSING"]
        with pytest.raises(RuntimeError, match="test failed"):
            async with controller.reserve("Android", close_timeout=10):
                raise RuntimeError("test failed")
        assert clock.now == 10

    @pytest.mark.asyncio
    async def test_release_failure_on_clean_exit_raises(self, controller, cloud):
        cloud.delete = (500, "boom")
        with pytest.raises(RemoteCallError):
            async with controller.reserve("Android"):
                pass

    @pytest.mark.asyncio
    async def test_unrecognised_close_state_still_waits_for_closed(self, controller, cloud):
        cloud.delete = (200, {"state": "RELEASING"})
        async with controller.reserve("Android") as session:
            pass
        assert session.state == SessionState.CLOSED
        assert cloud.calls[-2:] == [
            ("DELETE", "/sessions/abc123"),
            ("GET", "/sessions/abc123"),
        ]

    @pytest.mark.asyncio
    async def test_already_released_on_exit_is_tolerated(self, controller, cloud):
        cloud.delete = (404, {"message": "not found"})
        async with controller.reserve("Android"):
            pass
        assert cloud.calls[-1] == ("DELETE", "/sessions/abc123")

    @pytest.mark.asyncio
    async def test_cancellation_still_closes(self, controller, cloud):
        entered = asyncio.Event()

        async def body():
            async with controller.reserve("Android"):
                entered.set()
                await asyncio.sleep(3600)

        task = asyncio.create_task(body())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert cloud.count("DELETE", "/sessions/abc123") == 1
