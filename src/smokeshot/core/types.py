"""Core type definitions for smokeshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TestStatus(str, Enum):
    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class ShellResult:
    exit_code: int
    stdout: str
    stderr: str


@dataclass
class TestResult:
    __test__ = False

    name: str
    status: TestStatus
    suite: str = ""
    duration_ms: float = 0
    device_serial: str = ""
    error_message: str | None = None
    screenshots: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASSED
