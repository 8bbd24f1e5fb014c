"""Exception hierarchy for smokeshot."""

from __future__ import annotations


class SmokeShotError(Exception):
    """Base exception for all smokeshot errors."""

    def __init__(self, message: str, code: int = 0):
        super().__init__(message)
        self.code = code


# Transport errors (1000-1999)
class ConnectionError(SmokeShotError):
    pass


class TimeoutError(SmokeShotError):
    pass


# Device errors (2000-2999)
class DeviceOfflineError(SmokeShotError):
    pass


class SessionError(SmokeShotError):
    pass


# App errors (3000-3999)
class PackageMismatchError(SmokeShotError, AssertionError):
    """The foreground application is not the one under test."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Expected foreground package {expected!r}, got {actual!r}", code=3001
        )
        self.expected = expected
        self.actual = actual


# Capture errors (4000-4999)
class ScreenshotError(SmokeShotError):
    pass


# Visual diff errors (6000-6999)
class VisualDiffError(SmokeShotError):
    pass


class VisualMismatchError(VisualDiffError):
    pass


# Plugin errors (7000-7999)
class PluginError(SmokeShotError):
    pass


# Configuration errors (8000-8999)
class ConfigurationError(SmokeShotError):
    pass
