"""The screenshot smoke test.

One linear sequence per run, each step awaited before the next:

    check foreground package -> settle delay -> save screenshot -> visual diff

Which of the optional steps run is decided by a SmokeProfile. Usage:

    smoke = ScreenshotSmokeTest(session, resolve_profile("full"), visual_diff=plugin)
    outcome = await smoke.run()
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from smokeshot.core.events import Event, EventBus
from smokeshot.core.exceptions import ConfigurationError, PackageMismatchError
from smokeshot.device.session import AutomationSession

logger = logging.getLogger(__name__)

EXPECTED_PACKAGE = "org.bevyengine.example"
SCREENSHOT_PATH = "./screenshot.png"
SETTLE_DELAY_MS = 2000
VISUAL_DIFF_LABEL = "Main Screen"

SUITE_NAME = "Running Bevy Example"
TEST_NAME = "can take a screenshot"

VisualDiff = Callable[[str], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class SmokeProfile:
    name: str
    check_package: bool = True
    settle_delay_ms: int = 0
    upload_label: str | None = None
    expected_package: str = EXPECTED_PACKAGE
    screenshot_path: str = SCREENSHOT_PATH

    @property
    def needs_visual_diff(self) -> bool:
        return self.upload_label is not None

    def with_overrides(self, **overrides: Any) -> SmokeProfile:
        return dataclasses.replace(self, **overrides)


PROFILES: dict[str, SmokeProfile] = {
    "assert-capture": SmokeProfile("assert-capture", check_package=True),
    "capture-upload": SmokeProfile(
        "capture-upload", check_package=False, upload_label=VISUAL_DIFF_LABEL,
    ),
    "settle-capture-upload": SmokeProfile(
        "settle-capture-upload", check_package=False,
        settle_delay_ms=SETTLE_DELAY_MS, upload_label=VISUAL_DIFF_LABEL,
    ),
    "full": SmokeProfile("full", check_package=True, upload_label=VISUAL_DIFF_LABEL),
}

PROFILE_ALIASES = {
    "A": "assert-capture",
    "B": "capture-upload",
    "C": "settle-capture-upload",
    "D": "full",
}


def resolve_profile(name: str, **overrides: Any) -> SmokeProfile:
    """Look up a built-in profile by name or letter alias (A-D)."""
    key = PROFILE_ALIASES.get(name.upper(), name)
    try:
        profile = PROFILES[key]
    except KeyError:
        known = ", ".join([*PROFILES, *PROFILE_ALIASES])
        raise ConfigurationError(f"Unknown smoke profile {name!r} (known: {known})", code=8003)
    if overrides:
        profile = profile.with_overrides(**overrides)
    return profile


@dataclass
class SmokeOutcome:
    profile: str
    package: str | None = None
    screenshot: Path | None = None
    upload_result: Any = None
    steps: list[str] = field(default_factory=list)


@dataclass
class SmokeContext:
    """What a registered smoke test receives from the runner."""
    session: AutomationSession
    profile: SmokeProfile
    visual_diff: VisualDiff | None = None
    event_bus: EventBus | None = None

    @property
    def serial(self) -> str:
        return getattr(self.session, "serial", "")


class ScreenshotSmokeTest:
    """Runs the smoke sequence once against an injected session."""

    def __init__(
        self,
        session: AutomationSession,
        profile: SmokeProfile,
        visual_diff: VisualDiff | None = None,
        event_bus: EventBus | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        if profile.needs_visual_diff and visual_diff is None:
            raise ConfigurationError(
                f"Profile {profile.name!r} uploads {profile.upload_label!r} "
                "but no visual diff service was given",
                code=8004,
            )
        self.session = session
        self.profile = profile
        self.visual_diff = visual_diff
        self.event_bus = event_bus or EventBus()
        self._sleep = sleep

    @classmethod
    def from_context(cls, context: SmokeContext) -> ScreenshotSmokeTest:
        return cls(
            context.session,
            context.profile,
            visual_diff=context.visual_diff,
            event_bus=context.event_bus,
        )

    async def run(self) -> SmokeOutcome:
        profile = self.profile
        outcome = SmokeOutcome(profile=profile.name)
        logger.info("Smoke profile %s starting", profile.name)

        if profile.check_package:
            outcome.package = await self._step("check_package", outcome, self._check_package)

        if profile.settle_delay_ms > 0:
            await self._step(
                "settle", outcome, self._sleep, profile.settle_delay_ms / 1000
            )

        outcome.screenshot = await self._step(
            "save_screenshot", outcome, self.session.save_screenshot, profile.screenshot_path
        )

        if profile.upload_label is not None and self.visual_diff is not None:
            outcome.upload_result = await self._step(
                "visual_diff", outcome, self.visual_diff, profile.upload_label
            )

        logger.info("Smoke profile %s passed (%s)", profile.name, " -> ".join(outcome.steps))
        return outcome

    async def _check_package(self) -> str:
        actual = await self.session.get_current_package()
        if actual != self.profile.expected_package:
            raise PackageMismatchError(self.profile.expected_package, actual)
        return actual

    async def _step(
        self, name: str, outcome: SmokeOutcome, func: Callable[..., Awaitable[Any]], *args: Any
    ) -> Any:
        await self.event_bus.emit(Event(type="step.started", source="smoke", data={"step": name}))
        logger.debug("Step %s started", name)
        try:
            result = await func(*args)
        except Exception as e:
            logger.error("Step %s failed: %s", name, e)
            await self.event_bus.emit(Event(
                type="step.failed",
                source="smoke",
                data={"step": name, "error": f"{type(e).__name__}: {e}"},
            ))
            raise
        outcome.steps.append(name)
        await self.event_bus.emit(Event(type="step.completed", source="smoke", data={"step": name}))
        return result
