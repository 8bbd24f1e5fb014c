from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from smokeshot.automation.decorators import clear_registry
from smokeshot.core.exceptions import ScreenshotError


def make_png(color: tuple[int, int, int] = (0, 0, 0), size: tuple[int, int] = (8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeSession:
    """In-memory stand-in for a device session that records every call."""

    def __init__(self, package: str = "org.bevyengine.example", *,
                 screenshot: bytes | None = None, fail_screenshot: Exception | None = None,
                 fail_package: Exception | None = None, calls: list[str] | None = None):
        self.serial = "fake-device"
        self.package = package
        self.screenshot = screenshot if screenshot is not None else make_png()
        self.fail_screenshot = fail_screenshot
        self.fail_package = fail_package
        self.calls = calls if calls is not None else []

    async def get_current_package(self) -> str:
        self.calls.append("get_current_package")
        if self.fail_package:
            raise self.fail_package
        return self.package

    async def save_screenshot(self, path: str | Path) -> Path:
        self.calls.append("save_screenshot")
        if self.fail_screenshot:
            raise self.fail_screenshot
        path = Path(path)
        path.write_bytes(self.screenshot)
        return path


class FakeVisualDiff:
    def __init__(self, *, error: Exception | None = None, calls: list[str] | None = None):
        self.labels: list[str] = []
        self.error = error
        self.calls = calls if calls is not None else []

    async def __call__(self, label: str) -> dict[str, str]:
        self.calls.append("visual_diff")
        self.labels.append(label)
        if self.error:
            raise self.error
        return {"label": label}


class FakeClock:
    """Records sleeps and the call log position they happened at."""

    def __init__(self, calls: list[str]):
        self.calls = calls
        self.slept: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append("sleep")
        self.slept.append(seconds)


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def session(calls: list[str]) -> FakeSession:
    return FakeSession(calls=calls)


@pytest.fixture
def visual_diff(calls: list[str]) -> FakeVisualDiff:
    return FakeVisualDiff(calls=calls)


@pytest.fixture
def clock(calls: list[str]) -> FakeClock:
    return FakeClock(calls)


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    clear_registry()
    yield
    clear_registry()


@pytest.fixture
def disk_full() -> ScreenshotError:
    return ScreenshotError("No space left on device", code=4001)
