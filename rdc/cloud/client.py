"""RdcClient — HTTP transport for the device cloud's session API.

Wraps a single httpx.AsyncClient configured with the API base URL, HTTP Basic
credentials and JSON headers. Status codes are left to the caller; only
transport-level failures are converted (to RemoteCallError). Nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from rdc.config import ClientConfig
from rdc.models import RemoteCallError

logger = logging.getLogger("rdc-session.client")


class RdcClient:
    """Speaks the RDC v2 REST API for one configured account."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            auth=httpx.BasicAuth(config.username, config.access_key),
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(config.request_timeout, connect=config.connect_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> RdcClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self, method: str, path: str, json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request relative to the base URL.

        Raises RemoteCallError on connection, read or timeout failures.
        """
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.TransportError as exc:
            raise RemoteCallError(
                f"{method} {path} failed ({type(exc).__name__}): {exc}",
            ) from exc

        logger.debug("%s %s -> %d", method, path, resp.status_code)
        return resp

    # ------------------------------------------------------------------
    # Session endpoints
    # ------------------------------------------------------------------

    async def create_session(self, os: str) -> httpx.Response:
        return await self.request("POST", "/sessions", json={"device": {"os": os}})

    async def get_session(self, session_id: str) -> httpx.Response:
        return await self.request("GET", f"/sessions/{session_id}")

    async def start_appium_server(
        self, session_id: str, appium_version: str = "latest",
    ) -> httpx.Response:
        return await self.request(
            "POST", f"/sessions/{session_id}/appiumserver",
            json={"appiumVersion": appium_version},
        )

    async def delete_session(self, session_id: str) -> httpx.Response:
        return await self.request("DELETE", f"/sessions/{session_id}")
