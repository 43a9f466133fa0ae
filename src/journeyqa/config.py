"""JourneyQA configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from journeyqa.models import (
    BROWSERS,
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_ASSERTION_TIMEOUT_MS,
    DEFAULT_BASE_URL,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_POPUP_TIMEOUT_MS,
    DEFAULT_PRESENCE_TIMEOUT_MS,
    DEFAULT_VIEWPORT,
)


class JourneyQAConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@dataclass
class JourneyQAConfig:
    """Configuration for a JourneyQA run."""

    # Target
    base_url: str = DEFAULT_BASE_URL

    # Paths
    project_dir: Path = field(default_factory=lambda: Path(".journeyqa"))
    personas_dir: Path = field(default_factory=lambda: Path(".journeyqa/personas"))
    journeys_dir: Path = field(default_factory=lambda: Path(".journeyqa/journeys"))
    evidence_dir: Path = field(default_factory=lambda: Path(".journeyqa/evidence"))

    # Browser
    browser: str = "chromium"
    headless: bool = True
    viewport: tuple[int, int] = DEFAULT_VIEWPORT

    # Time budgets (ms)
    presence_timeout_ms: int = DEFAULT_PRESENCE_TIMEOUT_MS
    action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS
    popup_timeout_ms: int = DEFAULT_POPUP_TIMEOUT_MS
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    assertion_timeout_ms: int = DEFAULT_ASSERTION_TIMEOUT_MS

    # repr=False keeps the password out of logs and tracebacks
    sauce_password: str = field(default="", repr=False)

    @classmethod
    def from_file(cls, config_path: Path) -> JourneyQAConfig:
        """Load config from a YAML file."""
        if not config_path.exists():
            raise JourneyQAConfigError(f"Config file not found: {config_path}\n\nTo fix: journeyqa init")
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise JourneyQAConfigError(f"Config file must contain a mapping: {config_path}")
        return cls._from_dict(data, config_path.parent)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], project_dir: Path) -> JourneyQAConfig:
        """Create config from a dictionary."""
        config = cls()
        config.project_dir = project_dir

        config.personas_dir = project_dir / data.get("personas_dir", "personas")
        config.journeys_dir = project_dir / data.get("journeys_dir", "journeys")
        config.evidence_dir = project_dir / data.get("evidence_dir", "evidence")

        if "base_url" in data:
            config.base_url = str(data["base_url"])
        if "headless" in data:
            config.headless = bool(data["headless"])
        if "browser" in data:
            browser = str(data["browser"]).lower()
            if browser not in BROWSERS:
                raise JourneyQAConfigError(
                    f"Unknown browser: {browser}\n\n"
                    f"To fix: use one of {', '.join(BROWSERS)}"
                )
            config.browser = browser
        if "viewport" in data:
            vp = data["viewport"]
            if isinstance(vp, dict):
                config.viewport = (vp.get("width", 1280), vp.get("height", 720))

        timeouts = data.get("timeouts") or {}
        for key in ("presence", "action", "popup", "navigation", "assertion"):
            if key in timeouts:
                value = int(timeouts[key])
                if value < 0:
                    raise JourneyQAConfigError(f"Timeout '{key}' must not be negative (got {value})")
                setattr(config, f"{key}_timeout_ms", value)

        if "sauce_password" in data:
            config.sauce_password = str(data["sauce_password"])

        return config

    def load_yaml(self, directory: Path, name: str) -> dict[str, Any]:
        """Load ``<directory>/<name>.yaml`` as a dict."""
        path = directory / f"{name}.yaml"
        if not path.exists():
            raise JourneyQAConfigError(
                f"File not found: {name}\n\n"
                f"Expected file: {path}\n"
                "To fix: Create the YAML file or use a built-in name"
            )
        with open(path) as f:
            return yaml.safe_load(f) or {}
