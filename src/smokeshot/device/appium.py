"""Appium (W3C WebDriver) session over HTTP."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any

import httpx

from smokeshot.core.exceptions import ConnectionError, ScreenshotError, SessionError
from smokeshot.device.session import write_screenshot

logger = logging.getLogger(__name__)


class AppiumSession:
    """Drives an Appium server through its WebDriver HTTP endpoints.

    Usage:
        async with AppiumSession("http://127.0.0.1:4723", caps) as session:
            package = await session.get_current_package()
            await session.save_screenshot("./screenshot.png")
    """

    def __init__(
        self,
        url: str,
        capabilities: dict[str, Any] | None = None,
        session_id: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.capabilities = capabilities or {}
        self.session_id = session_id
        self.serial = str(self.capabilities.get("appium:udid", "")) or "appium"
        self._owns_session = session_id is None
        self._http = httpx.AsyncClient(
            base_url=self.url, timeout=timeout, transport=transport
        )

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        try:
            resp = await self._http.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Appium request {method} {path} failed: {e}", code=1001)

        try:
            body = resp.json()
        except ValueError:
            body = {}
        value = body.get("value") if isinstance(body, dict) else None

        if resp.status_code >= 400:
            message = resp.text
            if isinstance(value, dict) and "message" in value:
                message = f"{value.get('error', 'error')}: {value['message']}"
            raise SessionError(
                f"Appium {method} {path} returned {resp.status_code}: {message}",
                code=2003,
            )
        return value

    def _session_path(self, suffix: str) -> str:
        if not self.session_id:
            raise SessionError("Appium session has not been started", code=2004)
        return f"/session/{self.session_id}{suffix}"

    async def start(self) -> str:
        """Create a new WebDriver session. Returns the session id."""
        if self.session_id:
            return self.session_id
        value = await self._request(
            "POST", "/session",
            json={"capabilities": {"alwaysMatch": self.capabilities, "firstMatch": [{}]}},
        )
        session_id = (value or {}).get("sessionId")
        if not session_id:
            raise SessionError("Appium did not return a session id", code=2005)
        self.session_id = session_id
        logger.info("Started Appium session %s", session_id)
        return session_id

    async def get_current_package(self) -> str:
        value = await self._request("GET", self._session_path("/appium/device/current_package"))
        if not isinstance(value, str):
            raise SessionError(f"Unexpected current_package value: {value!r}", code=2006)
        return value

    async def save_screenshot(self, path: str | Path) -> Path:
        value = await self._request("GET", self._session_path("/screenshot"))
        if not isinstance(value, str) or not value:
            raise ScreenshotError("Appium returned an empty screenshot", code=4003)
        try:
            data = base64.b64decode(value)
        except ValueError as e:
            raise ScreenshotError(f"Screenshot is not valid base64: {e}", code=4004)
        written = write_screenshot(path, data)
        logger.info("Saved screenshot %s (%d bytes)", written, len(data))
        return written

    async def close(self) -> None:
        """Delete the session if this object created it, then close HTTP."""
        try:
            if self.session_id and self._owns_session:
                await self._request("DELETE", self._session_path(""))
                logger.info("Closed Appium session %s", self.session_id)
                self.session_id = None
        finally:
            await self._http.aclose()

    async def __aenter__(self) -> AppiumSession:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
