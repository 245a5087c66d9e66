"""SessionController — owns the life of one reserved remote device.

Protocol a caller follows (or lets ``reserve()`` follow for it):

    session = await controller.create("Android")           # PENDING
    await controller.wait_for_state(session, ACTIVE, 180)  # settles to ACTIVE
    url = await controller.start_automation_endpoint(session)
    ... drive the device through url ...
    await controller.close(session)                        # CLOSING
    await controller.wait_for_state(session, CLOSED, 60)

State transitions belong to the device cloud; the controller only records
what it observes through polling. The close step must run on every exit path
once a session id exists.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
from pydantic import ValidationError

from rdc.cloud.client import RdcClient
from rdc.models import (
    AppiumServerResource,
    ProvisioningError,
    RemoteCallError,
    ReservationError,
    Session,
    SessionResource,
    SessionState,
    SessionTimeoutError,
    UnknownStateError,
)
from rdc.session.polling import Clock, PollTimeout, Sleep, poll_until

logger = logging.getLogger("rdc-session.controller")

POLL_INTERVAL = 5.0  # seconds between state polls
ACTIVATION_TIMEOUT = 3 * 60.0
CLOSE_TIMEOUT = 60.0
DEFAULT_APPIUM_VERSION = "latest"

# DELETE responses meaning the session is already being (or has been) released
_ALREADY_RELEASED_STATUSES = (404, 409, 410)


def _body_excerpt(resp: httpx.Response) -> str:
    return resp.text[:200]


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SessionController:
    """Create, poll, provision and release one device cloud session at a time."""

    def __init__(
        self,
        client: RdcClient,
        *,
        poll_interval: float = POLL_INTERVAL,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Single-attempt operations
    # ------------------------------------------------------------------

    async def create(self, os: str) -> Session:
        """Reserve a device of the given OS class.

        Not retried: a second attempt could allocate a second device.
        Raises ReservationError on a failed call or a response without an id.
        """
        try:
            resp = await self.client.create_session(os)
        except RemoteCallError as exc:
            raise ReservationError(f"Failed to create session: {exc}") from exc

        if not resp.is_success:
            raise ReservationError(
                f"Failed to create session. Status: {resp.status_code} "
                f"Body: {_body_excerpt(resp)}",
            )

        try:
            resource = SessionResource.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise ReservationError(
                f"Unreadable create-session response: {_body_excerpt(resp)}",
            ) from exc

        if not resource.id:
            raise ReservationError(
                f"Create-session response has no id: {_body_excerpt(resp)}",
            )

        session = Session(session_id=resource.id, os=os, state=SessionState.PENDING)
        logger.info(
            "Created %s session %s (reported state: %s)",
            os, session.short_id, resource.state,
        )
        return session

    async def get_state(self, session: Session) -> SessionState:
        """Fetch the server's current state and record it on the session."""
        resp = await self.client.get_session(session.session_id)
        if not resp.is_success:
            raise RemoteCallError(
                f"Failed to get session state. Status: {resp.status_code} "
                f"Body: {_body_excerpt(resp)}",
                session_id=session.session_id,
                status_code=resp.status_code,
            )

        raw = _json_or_empty(resp).get("state")
        state = SessionState.parse(raw, session_id=session.session_id)
        session.state = state
        return state

    async def start_automation_endpoint(
        self, session: Session, appium_version: str = DEFAULT_APPIUM_VERSION,
    ) -> str:
        """Attach an Appium server to an ACTIVE session and return its URL.

        The session must already be ACTIVE; the service rejects it otherwise.
        """
        try:
            resp = await self.client.start_appium_server(session.session_id, appium_version)
        except RemoteCallError as exc:
            raise ProvisioningError(
                f"Failed to start Appium server: {exc}", session_id=session.session_id,
            ) from exc

        if not resp.is_success:
            raise ProvisioningError(
                f"Failed to start Appium server. Status: {resp.status_code} "
                f"Body: {_body_excerpt(resp)}",
                session_id=session.session_id,
            )

        url = AppiumServerResource.model_validate(_json_or_empty(resp)).url
        if not url:
            raise ProvisioningError(
                f"Appium server response has no url: {_body_excerpt(resp)}",
                session_id=session.session_id,
            )

        session.appium_url = url
        logger.info("Appium server for %s at %s", session.short_id, url)
        return url

    async def close(self, session: Session) -> bool:
        """Request release of the device.

        Safe to call repeatedly and during failure unwinding: a session that
        is already closed or gone only produces a warning. Transport failures
        and other error statuses raise RemoteCallError.

        Returns True if the service accepted a release request, False if
        there was nothing left to release.
        """
        if session.state == SessionState.CLOSED:
            logger.warning("Session %s already CLOSED, not closing again", session.short_id)
            return False

        resp = await self.client.delete_session(session.session_id)
        if resp.status_code in _ALREADY_RELEASED_STATUSES:
            logger.warning(
                "Session %s already released (status %d): %s",
                session.short_id, resp.status_code, _body_excerpt(resp),
            )
            return False
        if not resp.is_success:
            raise RemoteCallError(
                f"Failed to close session. Status: {resp.status_code} "
                f"Body: {_body_excerpt(resp)}",
                session_id=session.session_id,
                status_code=resp.status_code,
            )

        raw = _json_or_empty(resp).get("state")
        if raw is not None:
            try:
                session.state = SessionState.parse(raw, session_id=session.session_id)
            except UnknownStateError:
                # The release was accepted; the wait for CLOSED reports the drift.
                logger.warning(
                    "Session %s release accepted with unexpected state %r",
                    session.short_id, raw,
                )
        logger.info("Session %s marked for closing", session.short_id)
        return True

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def wait_for_state(
        self, session: Session, target: SessionState, timeout: float,
    ) -> None:
        """Poll until the server reports ``target``.

        ERRORED is just another non-matching state here: the wait continues
        until the timeout unless ``target`` is ERRORED itself.

        Raises SessionTimeoutError when ``target`` is not seen within
        ``timeout`` seconds, UnknownStateError as soon as the server reports a
        state outside SessionState.
        """
        logger.info(
            "Waiting for session %s to become %s (timeout: %gs)...",
            session.short_id, target.value, timeout,
        )

        async def probe() -> SessionState:
            state = await self.get_state(session)
            logger.info("   Current state of %s: %s", session.short_id, state.value)
            if state.is_terminal and state != target:
                logger.warning("Session %s reports %s while waiting for %s",
                               session.short_id, state.value, target.value)
            return state

        try:
            await poll_until(
                probe,
                lambda state: state == target,
                timeout=timeout,
                interval=self.poll_interval,
                clock=self._clock,
                sleep=self._sleep,
            )
        except PollTimeout as exc:
            raise SessionTimeoutError(
                target, timeout, last_state=exc.last, session_id=session.session_id,
            ) from exc

        logger.info("Session %s is now %s", session.short_id, target.value)

    # ------------------------------------------------------------------
    # Lifecycle orchestration
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def reserve(
        self,
        os: str,
        *,
        activation_timeout: float = ACTIVATION_TIMEOUT,
        close_timeout: float = CLOSE_TIMEOUT,
        appium_version: str = DEFAULT_APPIUM_VERSION,
    ) -> AsyncIterator[Session]:
        """Reserve a device, yield it ACTIVE with an Appium URL, always release it.

        If creation fails nothing is released. Once an id exists, close plus
        the wait for CLOSED runs on every exit path. A release failure while
        another error is propagating is logged and the original error wins.
        """
        session = await self.create(os)
        try:
            await self.wait_for_state(session, SessionState.ACTIVE, activation_timeout)
            await self.start_automation_endpoint(session, appium_version)
            yield session
        except BaseException:
            await self.release(session, close_timeout, suppress=True)
            raise
        else:
            await self.release(session, close_timeout)

    async def release(
        self, session: Session, timeout: float = CLOSE_TIMEOUT, *, suppress: bool = False,
    ) -> None:
        """Close the session and wait for CLOSED.

        With ``suppress`` any failure is logged as a warning instead of raised.
        """
        logger.info("--- Closing session %s ---", session.short_id)
        try:
            if await self.close(session):
                await self.wait_for_state(session, SessionState.CLOSED, timeout)
        except Exception:
            if not suppress:
                raise
            logger.warning(
                "Best-effort release of session %s failed", session.short_id, exc_info=True,
            )

    async def run(
        self,
        os: str,
        automation: Callable[[str], Awaitable[None]],
        **reserve_kwargs: float | str,
    ) -> Session:
        """Run ``automation`` against a freshly reserved device, then release it."""
        async with self.reserve(os, **reserve_kwargs) as session:
            await automation(session.appium_url)
        return session
