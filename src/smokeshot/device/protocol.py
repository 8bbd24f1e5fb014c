"""Frames exchanged with the on-device agent over the control channel.

Only two calls are needed for a smoke run: ``app.current`` reports the
foreground package and ``device.screenshot`` returns a base64 PNG.
"""

from __future__ import annotations

import base64
import binascii
import json
import uuid
from dataclasses import dataclass, field
from typing import Any

from smokeshot.core.exceptions import ScreenshotError, SessionError, SmokeShotError

APP_CURRENT = "app.current"
DEVICE_SCREENSHOT = "device.screenshot"


@dataclass
class Request:
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def current_package(cls) -> Request:
        return cls(APP_CURRENT)

    @classmethod
    def screenshot(cls) -> Request:
        return cls(DEVICE_SCREENSHOT, {"format": "png", "quality": 100})

    def encode(self) -> str:
        return json.dumps(
            {"id": self.id, "type": "request", "method": self.method, "params": self.params}
        )


@dataclass
class Response:
    id: str
    result: dict[str, Any] = field(default_factory=dict)
    error_code: int = 0
    error_message: str = ""

    @classmethod
    def decode(cls, raw: str | bytes) -> Response | None:
        """Parse a frame. Returns None for frames that are not responses."""
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise SessionError(f"Malformed agent frame: {e}", code=2010)
        if not isinstance(data, dict) or data.get("type") != "response" or "id" not in data:
            return None

        error = data.get("error") or {}
        return cls(
            id=str(data["id"]),
            result=data.get("result") or {},
            error_code=int(error.get("code", 0)) if error else 0,
            error_message=error.get("message", "Unknown error") if error else "",
        )

    @property
    def is_success(self) -> bool:
        return not self.error_message

    def raise_for_error(self) -> None:
        if not self.is_success:
            raise SmokeShotError(self.error_message, self.error_code)

    def package_name(self) -> str:
        package = self.result.get("packageName")
        if not package:
            raise SessionError("Agent did not report a foreground package", code=2007)
        return package

    def screenshot_bytes(self) -> bytes:
        encoded = self.result.get("data", "")
        if not encoded:
            raise ScreenshotError("Agent returned an empty screenshot", code=4005)
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ScreenshotError(f"Agent screenshot is not valid base64: {e}", code=4006)
