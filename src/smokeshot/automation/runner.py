"""Test execution engine."""

from __future__ import annotations

import asyncio
import importlib.util
import logging
import sys
from pathlib import Path

from smokeshot.automation.decorators import TestCaseInfo, get_registered_tests
from smokeshot.automation.smoke import SmokeContext
from smokeshot.core.events import Event, EventBus
from smokeshot.core.types import TestResult, TestStatus

logger = logging.getLogger(__name__)


class TestRunner:
    """Discovers, filters, and executes registered test cases once each."""

    __test__ = False

    def __init__(self, event_bus: EventBus | None = None):
        self.event_bus = event_bus or EventBus()
        self.results: list[TestResult] = []

    def discover(self, paths: list[str | Path]) -> list[TestCaseInfo]:
        """Import scenario files so their @test_case functions register."""
        for path in paths:
            path = Path(path)
            if path.is_file() and path.suffix == ".py":
                self._load_module(path)
            elif path.is_dir():
                for py_file in sorted(path.rglob("test_*.py")):
                    self._load_module(py_file)
            else:
                logger.warning("Skipping %s: not a Python file or directory", path)

        tests = list(get_registered_tests().values())
        logger.info("Discovered %d test cases", len(tests))
        return tests

    @staticmethod
    def _load_module(path: Path) -> None:
        module_name = f"smokeshot_scenarios.{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, str(path))
        if spec and spec.loader:
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)

    def filter_tests(
        self,
        tests: list[TestCaseInfo],
        tags: list[str] | None = None,
        names: list[str] | None = None,
    ) -> list[TestCaseInfo]:
        """Filter tests by tags (any match) or names (title or full name)."""
        filtered = tests
        if tags:
            filtered = [t for t in filtered if any(tag in t.tags for tag in tags)]
        if names:
            filtered = [t for t in filtered if t.name in names or t.full_name in names]
        return filtered

    async def run(self, tests: list[TestCaseInfo], context: SmokeContext) -> list[TestResult]:
        """Execute tests sequentially against one session."""
        if context.event_bus is None:
            context.event_bus = self.event_bus
        serial = context.serial
        results: list[TestResult] = []
        captured: list[str] = []

        async def on_step(event: Event) -> None:
            if event.data.get("step") == "save_screenshot":
                captured.append(context.profile.screenshot_path)

        unsubscribe = context.event_bus.on("step.completed", on_step)
        try:
            await self._run_all(tests, context, serial, results, captured)
        finally:
            unsubscribe()
        return results

    async def _run_all(
        self,
        tests: list[TestCaseInfo],
        context: SmokeContext,
        serial: str,
        results: list[TestResult],
        captured: list[str],
    ) -> None:
        await self.event_bus.emit(Event(
            type="run.started",
            source="runner",
            data={"total": len(tests), "device": serial, "profile": context.profile.name},
        ))

        for i, test in enumerate(tests):
            captured.clear()
            logger.info("Running [%d/%d]: %s", i + 1, len(tests), test.full_name)

            await self.event_bus.emit(Event(
                type="test.started",
                source="runner",
                data={"name": test.name, "suite": test.suite, "index": i},
            ))

            result = await self._run_single(test, context)
            result.device_serial = serial
            result.metadata.setdefault("profile", context.profile.name)
            # Reported whenever this test saved one, including failed diffs.
            result.screenshots.extend(captured)
            results.append(result)

            await self.event_bus.emit(Event(
                type="test.completed",
                source="runner",
                data={"name": test.name, "status": result.status.value, "duration": result.duration_ms},
            ))

        self.results.extend(results)

        await self.event_bus.emit(Event(
            type="run.completed",
            source="runner",
            data={
                "total": len(results),
                "passed": sum(1 for r in results if r.status == TestStatus.PASSED),
                "failed": sum(1 for r in results if r.status == TestStatus.FAILED),
                "error": sum(1 for r in results if r.status == TestStatus.ERROR),
            },
        ))

    async def _run_single(self, test: TestCaseInfo, context: SmokeContext) -> TestResult:
        try:
            return await asyncio.wait_for(test.func(context), timeout=test.timeout)
        except asyncio.TimeoutError:
            return TestResult(
                name=test.name,
                suite=test.suite,
                status=TestStatus.ERROR,
                duration_ms=test.timeout * 1000,
                error_message=f"Test timed out after {test.timeout}s",
            )

    @property
    def all_passed(self) -> bool:
        return bool(self.results) and all(r.passed for r in self.results)
