from __future__ import annotations

import httpx
import pytest

from smokeshot.core.config import SessionConfig
from smokeshot.core.exceptions import ConfigurationError, DeviceOfflineError
from smokeshot.device.adb import AdbClient, AdbDevice, AdbSession
from smokeshot.device.appium import AppiumSession
from smokeshot.device.session import AutomationSession
from smokeshot.device.manager import SessionManager


class ListingAdb(AdbClient):
    def __init__(self, devices: list[AdbDevice], forward_ok: bool = True):
        super().__init__(adb_path="adb")
        self._devices = devices
        self.forward_ok = forward_ok
        self.forwards: list[tuple[str, int, int]] = []
        self.removed: list[tuple[str, int]] = []

    async def devices(self) -> list[AdbDevice]:
        return self._devices

    async def forward(self, serial, local_port, remote_port) -> bool:
        self.forwards.append((serial, local_port, remote_port))
        return self.forward_ok

    async def forward_remove(self, serial, local_port) -> bool:
        self.removed.append((serial, local_port))
        return True


@pytest.mark.asyncio
async def test_adb_backend_picks_the_only_online_device():
    adb = ListingAdb([AdbDevice("R58M", "offline"), AdbDevice("emulator-5554", "device")])
    async with SessionManager(SessionConfig(backend="adb"), adb=adb) as manager:
        session = await manager.open()

    assert isinstance(session, AdbSession)
    assert isinstance(session, AutomationSession)
    assert session.serial == "emulator-5554"


@pytest.mark.asyncio
async def test_configured_serial_wins():
    adb = ListingAdb([])
    manager = SessionManager(SessionConfig(backend="adb", serial="abc"), adb=adb)
    assert (await manager.open()).serial == "abc"


@pytest.mark.asyncio
async def test_no_devices():
    manager = SessionManager(SessionConfig(backend="adb"), adb=ListingAdb([]))
    with pytest.raises(DeviceOfflineError):
        await manager.open()


@pytest.mark.asyncio
async def test_unknown_backend():
    manager = SessionManager(SessionConfig(backend="selenium"), adb=ListingAdb([]))
    with pytest.raises(ConfigurationError, match="selenium"):
        await manager.open()


@pytest.mark.asyncio
async def test_agent_backend_forward_failure():
    adb = ListingAdb([], forward_ok=False)
    manager = SessionManager(SessionConfig(backend="agent", serial="abc"), adb=adb)
    with pytest.raises(DeviceOfflineError, match="port forwarding"):
        await manager.open()
    assert adb.forwards == [("abc", 28900, 18900)]


class FakeAgent:
    def __init__(self, serial: str):
        self.serial = serial
        self.disconnected = False

    async def disconnect(self) -> None:
        self.disconnected = True


@pytest.mark.asyncio
async def test_close_all_keeps_going_after_a_teardown_error(caplog):
    def refuse_delete(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"value": {"error": "unknown error", "message": "boom"}})

    appium = AppiumSession("http://appium:4723", transport=httpx.MockTransport(refuse_delete))
    appium.session_id = "s1"
    agent = FakeAgent("abc")
    adb = ListingAdb([])
    manager = SessionManager(SessionConfig(backend="agent"), adb=adb)
    manager._appium.append(appium)
    manager._agents.append(agent)
    manager._forwards.append(("abc", 28900))

    await manager.close_all()

    assert agent.disconnected
    assert adb.removed == [("abc", 28900)]
    assert "Failed to close Appium session" in caplog.text
