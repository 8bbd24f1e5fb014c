from __future__ import annotations

import base64
import json

import httpx
import pytest

from conftest import make_png
from smokeshot.core.exceptions import ConnectionError, ScreenshotError, SessionError
from smokeshot.device.appium import AppiumSession

PNG = make_png((10, 20, 30))


def appium_server(requests: list[tuple[str, str]], package: str = "org.bevyengine.example"):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path))
        path = request.url.path
        if request.method == "POST" and path == "/session":
            body = json.loads(request.content)
            assert body["capabilities"]["alwaysMatch"]["platformName"] == "Android"
            return httpx.Response(200, json={"value": {"sessionId": "s1", "capabilities": {}}})
        if path == "/session/s1/appium/device/current_package":
            return httpx.Response(200, json={"value": package})
        if path == "/session/s1/screenshot":
            return httpx.Response(200, json={"value": base64.b64encode(PNG).decode()})
        if request.method == "DELETE" and path == "/session/s1":
            return httpx.Response(200, json={"value": None})
        return httpx.Response(
            404, json={"value": {"error": "unknown command", "message": f"no route {path}"}}
        )

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_session_lifecycle_and_calls(tmp_path):
    requests: list[tuple[str, str]] = []
    async with AppiumSession(
        "http://appium:4723/", {"platformName": "Android"}, transport=appium_server(requests)
    ) as session:
        assert session.session_id == "s1"
        assert await session.get_current_package() == "org.bevyengine.example"
        path = await session.save_screenshot(tmp_path / "screenshot.png")
        assert path.read_bytes() == PNG

    assert requests == [
        ("POST", "/session"),
        ("GET", "/session/s1/appium/device/current_package"),
        ("GET", "/session/s1/screenshot"),
        ("DELETE", "/session/s1"),
    ]


@pytest.mark.asyncio
async def test_attached_session_is_not_deleted():
    requests: list[tuple[str, str]] = []
    session = AppiumSession(
        "http://appium:4723", session_id="s1", transport=appium_server(requests)
    )
    await session.start()
    await session.get_current_package()
    await session.close()

    assert requests == [("GET", "/session/s1/appium/device/current_package")]


@pytest.mark.asyncio
async def test_webdriver_error_becomes_session_error():
    session = AppiumSession(
        "http://appium:4723", session_id="gone", transport=appium_server([])
    )
    with pytest.raises(SessionError, match="unknown command"):
        await session.get_current_package()
    await session.close()


@pytest.mark.asyncio
async def test_calls_before_start_fail():
    session = AppiumSession("http://appium:4723", transport=appium_server([]))
    with pytest.raises(SessionError, match="not been started"):
        await session.save_screenshot("screenshot.png")
    await session.close()


@pytest.mark.asyncio
async def test_network_failure_becomes_connection_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    session = AppiumSession(
        "http://appium:4723", session_id="s1", transport=httpx.MockTransport(refuse)
    )
    with pytest.raises(ConnectionError, match="connection refused"):
        await session.get_current_package()
    await session.close()


@pytest.mark.asyncio
async def test_empty_screenshot():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"value": ""}))
    session = AppiumSession("http://appium:4723", session_id="s1", transport=transport)
    with pytest.raises(ScreenshotError):
        await session.save_screenshot("screenshot.png")
    await session.close()
