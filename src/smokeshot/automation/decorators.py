"""Test case registration for smoke scenarios."""

from __future__ import annotations

import functools
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

from smokeshot.core.types import TestResult, TestStatus

# Global test registry, keyed by "<suite> <name>"
_test_registry: dict[str, TestCaseInfo] = {}


@dataclass
class TestCaseInfo:
    __test__ = False

    name: str
    func: Callable[..., Coroutine[Any, Any, TestResult]]
    suite: str = ""
    tags: list[str] = field(default_factory=list)
    timeout: float = 300.0
    description: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.suite} {self.name}".strip()


def test_case(
    name: str | None = None,
    suite: str = "",
    tags: list[str] | None = None,
    timeout: float = 300.0,
    description: str = "",
) -> Callable[..., Callable[..., Coroutine[Any, Any, TestResult]]]:
    """Decorator to register a function as a test case.

    An AssertionError makes the result FAILED, any other exception ERROR.

    Usage:
        @test_case(name="can take a screenshot", suite="Running Bevy Example")
        async def test_screenshot(ctx: SmokeContext):
            await ScreenshotSmokeTest.from_context(ctx).run()
    """

    def decorator(func: Callable[..., Coroutine[Any, Any, None]]) -> Callable[..., Coroutine[Any, Any, TestResult]]:
        test_name = name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> TestResult:
            start = time.monotonic()
            status = TestStatus.PASSED
            error: str | None = None
            try:
                await func(*args, **kwargs)
            except AssertionError as e:
                status = TestStatus.FAILED
                error = str(e) or "Assertion failed"
            except Exception as e:
                status = TestStatus.ERROR
                error = f"{type(e).__name__}: {e}"
            return TestResult(
                name=test_name,
                suite=suite,
                status=status,
                duration_ms=(time.monotonic() - start) * 1000,
                error_message=error,
            )

        info = TestCaseInfo(
            name=test_name,
            func=wrapper,
            suite=suite,
            tags=tags or [],
            timeout=timeout,
            description=description or func.__doc__ or "",
        )
        _test_registry[info.full_name] = info
        wrapper._test_info = info  # type: ignore[attr-defined]
        return wrapper

    return decorator


# Keep pytest from collecting the decorator itself when it is imported
test_case.__test__ = False  # type: ignore[attr-defined]


def get_registered_tests() -> dict[str, TestCaseInfo]:
    """Return all registered test cases."""
    return dict(_test_registry)


def get_tests_by_tags(tags: list[str]) -> list[TestCaseInfo]:
    """Filter tests by tags (OR logic)."""
    return [t for t in _test_registry.values() if any(tag in t.tags for tag in tags)]


def clear_registry() -> None:
    """Clear the test registry (used in testing)."""
    _test_registry.clear()
