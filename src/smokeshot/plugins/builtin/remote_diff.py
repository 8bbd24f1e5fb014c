"""Uploads screenshots to a remote visual-regression service."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any

import httpx

from smokeshot.core.config import resolve_env
from smokeshot.core.exceptions import VisualDiffError
from smokeshot.plugins.base import Plugin, PluginContext, PluginInfo

logger = logging.getLogger(__name__)


class RemoteVisualDiffPlugin(Plugin):
    """Posts the last screenshot and its label to ``service_url``.

    The service owns baselines and the comparison itself; any non-2xx answer
    or network failure is raised as VisualDiffError.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._context: PluginContext | None = None
        self._transport = transport
        self.service_url = ""
        self.api_token = ""
        self.timeout = 60.0

    def info(self) -> PluginInfo:
        return PluginInfo(
            id="builtin.remote_diff",
            name="Remote Visual Regression",
            version="1.0.0",
            description="Submit screenshots to a hosted visual diff service",
        )

    async def on_init(self, context: PluginContext) -> None:
        self._context = context
        cfg = context.config
        self.service_url = cfg.get("service_url", "")
        self.api_token = resolve_env(cfg.get("api_token", ""))
        self.timeout = float(cfg.get("timeout", 60))
        if not self.service_url:
            raise VisualDiffError("visual_diff.service_url is not configured", code=6101)

    async def __call__(self, label: str) -> dict[str, Any]:
        return await self.upload(label)

    async def upload(self, label: str) -> dict[str, Any]:
        if self._context is None:
            raise VisualDiffError("Plugin used before on_init", code=6102)
        source = Path(self._context.screenshot_path)
        if not source.is_file():
            raise VisualDiffError(f"No screenshot found at {source}", code=6103)

        payload = {
            "name": label,
            "image": base64.b64encode(source.read_bytes()).decode("ascii"),
            "media_type": "image/png",
        }
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Token {self.api_token}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(self.service_url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VisualDiffError(
                f"Visual diff service rejected {label!r}: "
                f"{e.response.status_code} {e.response.text[:200]}",
                code=6104,
            )
        except httpx.HTTPError as e:
            raise VisualDiffError(f"Visual diff upload of {label!r} failed: {e}", code=6105)

        logger.info("Uploaded %s to visual diff service as %r", source, label)
        try:
            return resp.json()
        except ValueError:
            return {}
