"""ADB command wrapper and an automation session built on it."""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from smokeshot.core.exceptions import ScreenshotError, SessionError
from smokeshot.core.types import ShellResult
from smokeshot.device.session import write_screenshot

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# mCurrentFocus=Window{1f2e3d u0 org.bevyengine.example/android.app.NativeActivity}
_FOCUS_PATTERNS = [
    re.compile(r"mCurrentFocus=Window\{[^}]*?\s([\w.]+)/[\w.$]+\}"),
    re.compile(r"mFocusedApp=.*?\s([\w.]+)/[\w.$]+"),
]


@dataclass
class AdbDevice:
    serial: str
    state: str  # "device", "offline", "unauthorized"
    model: str = ""
    product: str = ""


class AdbClient:
    """Async wrapper around the ADB command-line tool."""

    def __init__(self, adb_path: str | None = None):
        self.adb_path = adb_path or shutil.which("adb") or "adb"

    async def _run_raw(self, *args: str, serial: str | None = None) -> tuple[int, bytes, bytes]:
        cmd = [self.adb_path]
        if serial:
            cmd.extend(["-s", serial])
        cmd.extend(args)

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        return proc.returncode or 0, stdout, stderr

    async def _run(self, *args: str, serial: str | None = None) -> tuple[int, str, str]:
        code, stdout, stderr = await self._run_raw(*args, serial=serial)
        return (
            code,
            stdout.decode("utf-8", errors="replace").strip(),
            stderr.decode("utf-8", errors="replace").strip(),
        )

    async def devices(self) -> list[AdbDevice]:
        """List all connected devices."""
        code, stdout, _ = await self._run("devices", "-l")
        if code != 0:
            return []

        devices = []
        for line in stdout.splitlines()[1:]:
            parts = line.split()
            if len(parts) >= 2:
                model = ""
                product = ""
                for part in parts[2:]:
                    if part.startswith("model:"):
                        model = part.split(":", 1)[1]
                    elif part.startswith("product:"):
                        product = part.split(":", 1)[1]
                devices.append(
                    AdbDevice(serial=parts[0], state=parts[1], model=model, product=product)
                )
        return devices

    async def forward(self, serial: str, local_port: int, remote_port: int) -> bool:
        """Set up ADB port forwarding."""
        code, _, _ = await self._run(
            "forward", f"tcp:{local_port}", f"tcp:{remote_port}", serial=serial
        )
        return code == 0

    async def forward_remove(self, serial: str, local_port: int) -> bool:
        """Remove a port forwarding rule."""
        code, _, _ = await self._run(
            "forward", "--remove", f"tcp:{local_port}", serial=serial
        )
        return code == 0

    async def shell(self, serial: str | None, command: str) -> ShellResult:
        """Execute a shell command on the device."""
        code, stdout, stderr = await self._run("shell", command, serial=serial)
        return ShellResult(exit_code=code, stdout=stdout, stderr=stderr)

    async def exec_out(self, serial: str | None, command: str) -> tuple[int, bytes, str]:
        """Run a command with binary-safe stdout (``adb exec-out``)."""
        code, stdout, stderr = await self._run_raw("exec-out", command, serial=serial)
        return code, stdout, stderr.decode("utf-8", errors="replace").strip()

    async def get_prop(self, serial: str | None, prop: str) -> str:
        """Get a device property."""
        result = await self.shell(serial, f"getprop {prop}")
        return result.stdout.strip()


def parse_focused_package(dumpsys: str) -> str | None:
    """Extract the foreground package from ``dumpsys window`` output."""
    for pattern in _FOCUS_PATTERNS:
        match = pattern.search(dumpsys)
        if match:
            return match.group(1)
    return None


class AdbSession:
    """Automation session that talks to the device through plain ADB."""

    def __init__(self, serial: str | None = None, adb: AdbClient | None = None):
        self.serial = serial or ""
        self.adb = adb or AdbClient()

    async def get_current_package(self) -> str:
        result = await self.adb.shell(self.serial or None, "dumpsys window")
        if result.exit_code != 0:
            raise SessionError(
                f"dumpsys window failed on {self.serial or 'default device'}: "
                f"{result.stderr or result.stdout}",
                code=2001,
            )
        package = parse_focused_package(result.stdout)
        if package is None:
            raise SessionError("Could not determine the foreground package", code=2002)
        logger.debug("Foreground package on %s: %s", self.serial or "default device", package)
        return package

    async def save_screenshot(self, path: str | Path) -> Path:
        code, data, stderr = await self.adb.exec_out(self.serial or None, "screencap -p")
        if code != 0:
            raise ScreenshotError(f"screencap failed: {stderr}", code=4001)
        if not data.startswith(PNG_SIGNATURE):
            raise ScreenshotError("screencap did not return a PNG image", code=4002)
        written = write_screenshot(path, data)
        logger.info("Saved screenshot %s (%d bytes)", written, len(data))
        return written
