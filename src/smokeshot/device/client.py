"""WebSocket client for the on-device automation agent."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import websockets
import websockets.exceptions

from smokeshot.core.config import SessionConfig
from smokeshot.core.exceptions import ConnectionError, SmokeShotError, TimeoutError
from smokeshot.device.protocol import Request, Response
from smokeshot.device.session import write_screenshot

logger = logging.getLogger(__name__)


class DeviceClient:
    """Request/response client for the agent's control channel.

    Implements the automation session interface on top of the
    ``app.current`` and ``device.screenshot`` agent methods.
    """

    def __init__(self, serial: str, config: SessionConfig | None = None,
                 control_port: int | None = None):
        self.serial = serial
        self.config = config or SessionConfig()
        self.control_port = control_port or self.config.control_port

        self._ws: Any = None
        self._pending: dict[str, asyncio.Future[Response]] = {}
        self._listener_task: asyncio.Task[None] | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the control channel."""
        uri = f"ws://{self.config.host}:{self.control_port}/control"
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(uri),
                timeout=self.config.connect_timeout,
            )
        except Exception as e:
            raise ConnectionError(f"Failed to connect to device {self.serial}: {e}", code=1002)

        self._listener_task = asyncio.create_task(self._listen())
        self._connected = True
        logger.info("Connected to device agent %s at %s", self.serial, uri)

    async def disconnect(self) -> None:
        """Close the control channel and fail any in-flight requests."""
        self._connected = False
        if self._listener_task:
            self._listener_task.cancel()
        if self._ws:
            await self._ws.close()
        self._fail_pending(ConnectionError("Disconnected", code=1003))
        logger.info("Disconnected from device agent %s", self.serial)

    async def send(self, request: Request, timeout: float | None = None) -> Response:
        """Send a request and wait for the matching response."""
        if not self._ws or not self._connected:
            raise ConnectionError("Not connected", code=1004)

        timeout = timeout or self.config.command_timeout
        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        self._pending[request.id] = future

        try:
            await self._ws.send(request.encode())
        except (websockets.exceptions.WebSocketException, OSError) as e:
            self._pending.pop(request.id, None)
            raise ConnectionError(f"Failed to send {request.method} to {self.serial}: {e}", code=1007)

        try:
            response = await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending.pop(request.id, None)
            raise TimeoutError(f"Request {request.method} timed out after {timeout}s", code=1005)

        response.raise_for_error()
        return response

    async def get_current_package(self) -> str:
        resp = await self.send(Request.current_package())
        return resp.package_name()

    async def save_screenshot(self, path: str | Path) -> Path:
        resp = await self.send(Request.screenshot())
        data = resp.screenshot_bytes()
        written = write_screenshot(path, data)
        logger.info("Saved screenshot %s (%d bytes)", written, len(data))
        return written

    async def _listen(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    response = Response.decode(raw)
                except SmokeShotError as e:
                    logger.warning("Dropping frame from %s: %s", self.serial, e)
                    continue
                if response is None:
                    continue
                future = self._pending.pop(response.id, None)
                if future and not future.done():
                    future.set_result(response)
        except websockets.exceptions.ConnectionClosed:
            logger.warning("Control channel to %s closed", self.serial)
        finally:
            self._connected = False
            self._fail_pending(ConnectionError("Session lost", code=1006))

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def __aenter__(self) -> DeviceClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()
