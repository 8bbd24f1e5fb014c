"""Configuration management using YAML files with .env support."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv as _load

from smokeshot.core.exceptions import ConfigurationError


def load_dotenv() -> None:
    """Load environment variables from the nearest .env file.

    Looks in the current directory first, then its parent.
    Variables already set in the environment are never overridden.
    """
    cwd = Path.cwd()
    for env_file in (cwd / ".env", cwd.parent / ".env"):
        if env_file.is_file():
            _load(env_file, override=False)
            break


def resolve_env(value: str) -> str:
    """Resolve a ``${ENV_VAR}`` reference to its value from the environment."""
    if value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1], "")
    return value


@dataclass
class SessionConfig:
    backend: str = "adb"  # adb / appium / agent
    serial: str | None = None
    host: str = "127.0.0.1"
    adb_path: str | None = None
    appium_url: str = "http://127.0.0.1:4723"
    capabilities: dict[str, Any] = field(default_factory=dict)
    control_port: int = 18900
    event_port: int = 18902
    connect_timeout: float = 10.0
    command_timeout: float = 30.0


@dataclass
class SmokeConfig:
    profile: str = "full"
    check_package: bool | None = None
    settle_delay_ms: int | None = None
    upload_label: str | None = None
    expected_package: str | None = None
    screenshot_path: str | None = None

    def overrides(self) -> dict[str, Any]:
        """Profile fields explicitly set in the config file."""
        names = (
            "check_package", "settle_delay_ms", "upload_label",
            "expected_package", "screenshot_path",
        )
        return {n: getattr(self, n) for n in names if getattr(self, n) is not None}


@dataclass
class VisualDiffConfig:
    plugin: str = "smokeshot.plugins.builtin.visual_diff:VisualDiffPlugin"
    baseline_dir: str = "./baselines"
    threshold: float = 0.01
    fail_on_mismatch: bool = True
    service_url: str = ""
    api_token: str = "${SMOKESHOT_VISUAL_TOKEN}"
    timeout: float = 60.0


@dataclass
class ReporterConfig:
    output_dir: str = "./reports"
    formats: list[str] = field(default_factory=lambda: ["json", "junit_xml"])


@dataclass
class SmokeShotConfig:
    session: SessionConfig = field(default_factory=SessionConfig)
    smoke: SmokeConfig = field(default_factory=SmokeConfig)
    visual_diff: VisualDiffConfig = field(default_factory=VisualDiffConfig)
    reporter: ReporterConfig = field(default_factory=ReporterConfig)
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: str | Path) -> SmokeShotConfig:
        """Load configuration from a YAML file.

        A .env file next to the working directory is loaded first.
        A missing file yields the defaults.
        """
        load_dotenv()
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        config = cls()
        try:
            if "session" in data:
                config.session = SessionConfig(**data["session"])
            if "smoke" in data:
                config.smoke = SmokeConfig(**data["smoke"])
            if "visual_diff" in data:
                config.visual_diff = VisualDiffConfig(**data["visual_diff"])
            if "reporter" in data:
                config.reporter = ReporterConfig(**data["reporter"])
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}", code=8001)
        config.log_level = data.get("log_level", "INFO")
        return config

    def save(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        import dataclasses

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(dataclasses.asdict(self), f, default_flow_style=False)
