"""The session capability the smoke test depends on."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class AutomationSession(Protocol):
    """A live automation connection to a device or emulator.

    Both calls suspend until the driver answers and raise on failure.
    """

    serial: str

    async def get_current_package(self) -> str:
        """Return the package name of the foreground application."""
        ...

    async def save_screenshot(self, path: str | Path) -> Path:
        """Capture the screen as PNG into ``path``, overwriting it."""
        ...


def write_screenshot(path: str | Path, data: bytes) -> Path:
    """Write PNG bytes to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
