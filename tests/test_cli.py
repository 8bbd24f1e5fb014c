from __future__ import annotations

import base64
import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from conftest import FakeSession, make_png
from smokeshot.cli.app import app
from smokeshot.device import manager as manager_module
from smokeshot.device.appium import AppiumSession
from smokeshot.device.manager import SessionManager

SCENARIOS = str(Path(__file__).resolve().parents[1] / "scenarios")

runner = CliRunner()


@pytest.fixture
def fake_device(monkeypatch):
    device = FakeSession()

    async def open_fake(self):
        return device

    monkeypatch.setattr(SessionManager, "open", open_fake)
    return device


def test_profiles_lists_all_variants():
    result = runner.invoke(app, ["profiles"])
    assert result.exit_code == 0
    for name in ("assert-capture", "capture-upload", "settle-capture-upload", "full"):
        assert name in result.output


def test_run_profile_a_passes_and_writes_reports(fake_device, tmp_path):
    result = runner.invoke(app, ["run", SCENARIOS, "--profile", "A", "--output", str(tmp_path / "r")])

    assert result.exit_code == 0, result.output
    assert Path("screenshot.png").exists()
    report = json.loads((tmp_path / "r" / "report.json").read_text())
    assert report["results"][0]["status"] == "passed"
    assert (tmp_path / "r" / "junit-results.xml").exists()


def test_run_full_profile_stores_local_baseline(fake_device, tmp_path):
    result = runner.invoke(app, ["run", SCENARIOS, "--profile", "full", "--output", str(tmp_path / "r")])

    assert result.exit_code == 0, result.output
    assert Path("baselines/main-screen.png").exists()


def test_run_wrong_package_exits_nonzero(fake_device, tmp_path):
    fake_device.package = "com.other.app"
    result = runner.invoke(app, ["run", SCENARIOS, "--profile", "D", "--output", str(tmp_path / "r")])

    assert result.exit_code == 1
    assert not Path("screenshot.png").exists()


def test_run_unknown_profile(fake_device):
    result = runner.invoke(app, ["run", SCENARIOS, "--profile", "Z"])
    assert result.exit_code == 2
    assert "Unknown smoke profile" in result.output


def test_run_without_matching_tests(fake_device):
    result = runner.invoke(app, ["run", SCENARIOS, "--tags", "perf"])
    assert result.exit_code == 2
    assert "No tests found" in result.output


@pytest.fixture
def appium_refusing_delete(monkeypatch):
    """Appium server that serves the smoke calls but fails to delete the session."""
    requests: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path))
        path = request.url.path
        if request.method == "POST" and path == "/session":
            return httpx.Response(200, json={"value": {"sessionId": "s1"}})
        if path == "/session/s1/appium/device/current_package":
            return httpx.Response(200, json={"value": "org.bevyengine.example"})
        if path == "/session/s1/screenshot":
            return httpx.Response(200, json={"value": base64.b64encode(make_png()).decode()})
        return httpx.Response(500, json={"value": {"error": "unknown error", "message": "boom"}})

    def build(url, capabilities, timeout):
        return AppiumSession(url, capabilities, timeout=timeout, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(manager_module, "AppiumSession", build)
    return requests


def test_run_teardown_error_keeps_passing_result(appium_refusing_delete, tmp_path):
    result = runner.invoke(app, [
        "run", SCENARIOS, "--backend", "appium", "--serial", "emulator-5554",
        "--profile", "A", "--output", str(tmp_path / "r"),
    ])

    assert result.exit_code == 0, result.output
    assert ("DELETE", "/session/s1") in appium_refusing_delete
    report = json.loads((tmp_path / "r" / "report.json").read_text())
    assert report["results"][0]["status"] == "passed"
    assert report["results"][0]["device"] == "emulator-5554"
    assert (tmp_path / "r" / "junit-results.xml").exists()


def test_run_serial_option_selects_device(monkeypatch, tmp_path):
    opened: list[str | None] = []

    async def open_recording(self):
        opened.append(self.config.serial)
        return FakeSession()

    monkeypatch.setattr(SessionManager, "open", open_recording)
    result = runner.invoke(app, ["run", SCENARIOS, "-s", "emulator-5554", "--profile", "A",
                                 "--output", str(tmp_path / "r")])

    assert result.exit_code == 0, result.output
    assert opened == ["emulator-5554"]
