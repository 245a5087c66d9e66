"""Core data models: session state, the session record, API payloads and errors."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class RemoteDeviceError(Exception):
    """Base class for everything the session lifecycle can raise."""

    def __init__(self, message: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.session_id = session_id


class ConfigError(RemoteDeviceError):
    """Required configuration (credentials, base URL) is missing or invalid."""


class ReservationError(RemoteDeviceError):
    """Creating a session failed or the response carried no session id."""


class ProvisioningError(RemoteDeviceError):
    """Attaching an Appium server to a reserved session failed."""


class RemoteCallError(RemoteDeviceError):
    """Transport failure or unexpected HTTP status from the device cloud."""

    def __init__(
        self, message: str, session_id: str | None = None, status_code: int | None = None,
    ) -> None:
        super().__init__(message, session_id=session_id)
        self.status_code = status_code


class UnknownStateError(RemoteDeviceError):
    """The service reported a session state outside SessionState."""

    def __init__(self, raw_state: object, session_id: str | None = None) -> None:
        super().__init__(f"Unknown session state: {raw_state!r}", session_id=session_id)
        self.raw_state = raw_state


class SessionTimeoutError(RemoteDeviceError, TimeoutError):
    """A session did not reach the target state within the allowed time."""

    def __init__(
        self,
        target: SessionState,
        timeout: float,
        last_state: SessionState | None = None,
        session_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Session did not transition to {target.value} within {timeout:g}s "
            f"(last state: {last_state.value if last_state else 'none'})",
            session_id=session_id,
        )
        self.target = target
        self.timeout = timeout
        self.last_state = last_state


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    """Server-reported lifecycle stage of a reserved device.

    Transitions are decided by the device cloud; the client only observes them:
    PENDING -> CREATING -> ACTIVE -> CLOSING -> CLOSED, and any state -> ERRORED.
    """

    PENDING = "PENDING"
    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    ERRORED = "ERRORED"

    @classmethod
    def parse(cls, raw: object, session_id: str | None = None) -> SessionState:
        """Map a raw server value to a member, raising UnknownStateError otherwise."""
        if isinstance(raw, str):
            try:
                return cls(raw)
            except ValueError:
                pass
        raise UnknownStateError(raw, session_id=session_id)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CLOSED, SessionState.ERRORED)


# ---------------------------------------------------------------------------
# Session record
# ---------------------------------------------------------------------------


class Session(BaseModel):
    """One reserved remote device, owned by a single run."""

    model_config = ConfigDict(validate_assignment=True)

    session_id: str = Field(min_length=1, frozen=True, description="Opaque id assigned by the service")
    os: str = Field(default="", description="Requested device OS class (e.g. 'Android')")
    state: SessionState = SessionState.PENDING
    appium_url: str | None = Field(default=None, description="Appium server URL once attached")

    @property
    def endpoint(self) -> str | None:
        """The Appium URL, only while the session is ACTIVE."""
        if self.state == SessionState.ACTIVE:
            return self.appium_url
        return None

    @property
    def short_id(self) -> str:
        return self.session_id[:8]


# ---------------------------------------------------------------------------
# Device cloud API payloads
# ---------------------------------------------------------------------------


class SessionResource(BaseModel):
    """Body of POST /sessions, GET /sessions/{id} and DELETE /sessions/{id}."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    state: str | None = None


class AppiumServerResource(BaseModel):
    """Body of POST /sessions/{id}/appiumserver."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = None
