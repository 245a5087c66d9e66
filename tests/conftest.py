"""Shared fakes: a scripted device cloud behind httpx.MockTransport and a fake clock."""

from __future__ import annotations

import json

import httpx
import pytest

from rdc.cloud.client import RdcClient
from rdc.config import ClientConfig
from rdc.session.controller import SessionController

BASE_URL = "https://api.test-1.saucelabs.com/rdc/v2/"
APPIUM_URL = "https://appium.test-1.saucelabs.com/wd/hub/abc123"


class FakeClock:
    """Monotonic clock whose sleep only advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeCloud:
    """Scripted RDC v2 session API.

    ``states`` are returned by successive GETs (the last one repeats);
    after a successful DELETE, ``closing_states`` take over.
    Responses are (status, body) pairs; a str body is sent as plain text.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.create = (200, {"id": "abc123", "state": "PENDING"})
        self.states: list[object] = ["ACTIVE"]
        self.appium = (200, {"url": APPIUM_URL})
        self.delete = (200, {"state": "CLOSING"})
        self.closing_states: list[object] = ["CLOSED"]
        self.get_status = 200
        self._closed = False

    @property
    def calls(self) -> list[tuple[str, str]]:
        """(method, path) of every request, with the /rdc/v2 prefix stripped."""
        return [(r.method, r.url.path.removeprefix("/rdc/v2")) for r in self.requests]

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    @staticmethod
    def _respond(status: int, body: object) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @staticmethod
    def _next(queue: list[object]) -> object:
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/rdc/v2")

        if request.method == "POST" and path == "/sessions":
            return self._respond(*self.create)
        if request.method == "POST" and path.endswith("/appiumserver"):
            return self._respond(*self.appium)
        if request.method == "DELETE":
            status, body = self.delete
            if 200 <= status < 300:
                self._closed = True
            return self._respond(status, body)
        if request.method == "GET":
            state = self._next(self.closing_states if self._closed else self.states)
            return self._respond(self.get_status, {"id": path.rsplit("/", 1)[-1], "state": state})
        return httpx.Response(405)

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def config():
    return ClientConfig(username="demo-user", access_key="demo-key", base_url=BASE_URL)


@pytest.fixture
def cloud():
    return FakeCloud()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(config, cloud):
    return RdcClient(config, transport=httpx.MockTransport(cloud.handler))


@pytest.fixture
def controller(client, clock):
    return SessionController(client, poll_interval=5.0, clock=clock, sleep=clock.sleep)
