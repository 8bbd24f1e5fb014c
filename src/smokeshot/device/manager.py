"""Opens and tears down automation sessions for the configured backend."""

from __future__ import annotations

import logging

from smokeshot.core.config import SessionConfig
from smokeshot.core.exceptions import ConfigurationError, DeviceOfflineError
from smokeshot.device.adb import AdbClient, AdbSession
from smokeshot.device.appium import AppiumSession
from smokeshot.device.client import DeviceClient
from smokeshot.device.session import AutomationSession

logger = logging.getLogger(__name__)

BACKENDS = ("adb", "appium", "agent")


class SessionManager:
    """Builds sessions from a SessionConfig and releases them on exit.

    Usage:
        async with SessionManager(config.session) as manager:
            session = await manager.open()
    """

    def __init__(self, config: SessionConfig | None = None, adb: AdbClient | None = None):
        self.config = config or SessionConfig()
        self.adb = adb or AdbClient(self.config.adb_path)
        self._appium: list[AppiumSession] = []
        self._agents: list[DeviceClient] = []
        self._forwards: list[tuple[str, int]] = []
        self._next_local_port = 28900

    async def resolve_serial(self) -> str:
        """Return the configured serial or the only online device."""
        if self.config.serial:
            return self.config.serial
        online = [d for d in await self.adb.devices() if d.state == "device"]
        if not online:
            raise DeviceOfflineError("No online devices found", code=2008)
        if len(online) > 1:
            logger.warning(
                "%d devices online, using %s; pass a serial to choose",
                len(online), online[0].serial,
            )
        return online[0].serial

    async def open(self) -> AutomationSession:
        """Open a session for the configured backend."""
        backend = self.config.backend
        if backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown session backend {backend!r}, expected one of {', '.join(BACKENDS)}",
                code=8002,
            )

        if backend == "appium":
            capabilities = dict(self.config.capabilities)
            if self.config.serial:
                capabilities.setdefault("appium:udid", self.config.serial)
            session = AppiumSession(
                self.config.appium_url, capabilities, timeout=self.config.command_timeout
            )
            self._appium.append(session)
            await session.start()
            return session

        serial = await self.resolve_serial()
        if backend == "adb":
            logger.info("Using ADB session on %s", serial)
            return AdbSession(serial, self.adb)

        local_port = self._next_local_port
        self._next_local_port += 1
        if not await self.adb.forward(serial, local_port, self.config.control_port):
            raise DeviceOfflineError(f"Failed to set up port forwarding for {serial}", code=2009)
        self._forwards.append((serial, local_port))

        client = DeviceClient(serial, self.config, control_port=local_port)
        self._agents.append(client)
        await client.connect()
        return client

    async def close_all(self) -> None:
        """Close every session opened by this manager.

        Teardown failures are logged and never stop the remaining cleanup.
        """
        for session in self._appium:
            try:
                await session.close()
            except Exception:
                logger.warning("Failed to close Appium session %s", session.serial, exc_info=True)
        for client in self._agents:
            try:
                await client.disconnect()
            except Exception:
                logger.warning("Failed to disconnect agent %s", client.serial, exc_info=True)
        for serial, local_port in self._forwards:
            try:
                await self.adb.forward_remove(serial, local_port)
            except Exception:
                logger.warning(
                    "Failed to remove port forward %d on %s", local_port, serial, exc_info=True
                )
        self._appium.clear()
        self._agents.clear()
        self._forwards.clear()

    async def __aenter__(self) -> SessionManager:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close_all()
