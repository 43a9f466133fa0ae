"""Password resolution for JourneyQA personas."""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml

from journeyqa.models import DEFAULT_PASSWORD

PASSWORD_ENV_VAR = "SAUCE_PASSWORD"

_ENV_REF = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def resolve_password(project_dir: Path | None = None) -> str:
    """Resolve the storefront password shared by all personas.

    Resolution order (highest priority first):
    1. SAUCE_PASSWORD environment variable
    2. .env file in current directory
    3. Project config (.journeyqa/config.yaml, key ``sauce_password``)
    4. The public demo password
    """
    # 1. Environment variable
    if value := os.environ.get(PASSWORD_ENV_VAR):
        return value

    # 2. .env file
    env_path = Path(".env")
    if env_path.exists():
        value = _parse_env_file(env_path, PASSWORD_ENV_VAR)
        if value:
            return value

    # 3. Project config
    if project_dir:
        config_path = project_dir / "config.yaml"
        if config_path.exists():
            value = _parse_yaml_key(config_path)
            if value:
                return value

    # 4. Public demo default
    return DEFAULT_PASSWORD


def expand_env_ref(value: str) -> str:
    """Expand a ``${VAR}`` reference; other values pass through unchanged.

    Unset variables expand to an empty string.
    """
    match = _ENV_REF.match(value.strip())
    if not match:
        return value
    return os.environ.get(match.group(1), "")


def mask_secret(secret: str) -> str:
    """Mask a secret for display. Shows first 2 and last 2 chars."""
    if len(secret) <= 6:
        return "***"
    return f"{secret[:2]}...{secret[-2:]}"


def _parse_env_file(path: Path, key_name: str) -> str | None:
    """Parse a .env file for a specific key."""
    try:
        with open(path) as f:
            for line in f:
                line = line.strip()
                if line.startswith("#") or "=" not in line:
                    continue
                k, _, v = line.partition("=")
                if k.strip() == key_name:
                    return v.strip().strip("'\"")
    except OSError:
        pass
    return None


def _parse_yaml_key(path: Path) -> str | None:
    """Parse a YAML config file for the storefront password."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return data.get("sauce_password")
    except (OSError, yaml.YAMLError, AttributeError):
        pass
    return None
