"""Synthetic user personas.

A PersonaProfile is a comparison baseline, not business logic: it records
which deviations a persona is *expected* to show (slower responses, broken
sorting, rejected login) so journeys can tell an expected deviation from a
regression.  Built-in profiles cover the four SauceDemo users; projects can
add or override them with YAML files in ``.journeyqa/personas/``.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any

import yaml

from journeyqa.config import JourneyQAConfigError
from journeyqa.credentials import expand_env_ref
from journeyqa.models import SLOW_NAVIGATION_TIMEOUT_MS

logger = logging.getLogger("journeyqa.personas")

# Deviation tags understood by the built-in journeys
LOGIN_REJECTED = "login_rejected"
UNRELIABLE_SORT = "unreliable_sort"
UNRELIABLE_CART = "unreliable_cart"
UNRELIABLE_FORM_INPUT = "unreliable_form_input"
BROKEN_IMAGES = "broken_images"
SLOW_RESPONSES = "slow_responses"


@dataclasses.dataclass(frozen=True)
class PersonaProfile:
    """A named synthetic user with its expected behavioural deviations."""

    key: str
    username: str
    password: str = dataclasses.field(default="", repr=False)
    description: str = ""
    min_added_latency_ms: int = 0
    expected_deviations: frozenset[str] = frozenset()
    expected_login_error: str | None = None
    navigation_timeout_ms: int | None = None

    def expects(self, deviation: str | None) -> bool:
        return bool(deviation) and deviation in self.expected_deviations

    @property
    def can_log_in(self) -> bool:
        return LOGIN_REJECTED not in self.expected_deviations

    def with_password(self, password: str) -> PersonaProfile:
        return dataclasses.replace(self, password=password)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonaProfile:
        """Build a profile from a ``persona:`` YAML mapping."""
        body = data.get("persona", data)
        if not isinstance(body, dict):
            raise JourneyQAConfigError("Persona definition must be a mapping")
        key = body.get("key") or body.get("name")
        username = body.get("username")
        if not key or not username:
            raise JourneyQAConfigError(
                "Persona definition needs 'key' and 'username'\n\n"
                "To fix: add both fields under 'persona:'"
            )
        nav_timeout = body.get("navigation_timeout_ms")
        return cls(
            key=str(key),
            username=str(username),
            password=expand_env_ref(str(body.get("password") or "")),
            description=str(body.get("description", "")),
            min_added_latency_ms=int(body.get("min_added_latency_ms", 0) or 0),
            expected_deviations=frozenset(str(d) for d in body.get("expected_deviations") or ()),
            expected_login_error=body.get("expected_login_error"),
            navigation_timeout_ms=int(nav_timeout) if nav_timeout is not None else None,
        )


BUILTIN_PERSONAS: dict[str, PersonaProfile] = {
    "standard": PersonaProfile(
        key="standard",
        username="standard_user",
        description="Standard user with full access",
    ),
    "locked_out": PersonaProfile(
        key="locked_out",
        username="locked_out_user",
        description="Locked out user (negative test)",
        expected_deviations=frozenset({LOGIN_REJECTED}),
        expected_login_error="this user has been locked out",
        navigation_timeout_ms=5_000,
    ),
    "problem": PersonaProfile(
        key="problem",
        username="problem_user",
        description="User with UI/UX issues",
        expected_deviations=frozenset({
            UNRELIABLE_SORT, UNRELIABLE_CART, UNRELIABLE_FORM_INPUT, BROKEN_IMAGES,
        }),
    ),
    "performance_glitch": PersonaProfile(
        key="performance_glitch",
        username="performance_glitch_user",
        description="User with performance issues",
        min_added_latency_ms=2_500,
        expected_deviations=frozenset({SLOW_RESPONSES}),
        navigation_timeout_ms=SLOW_NAVIGATION_TIMEOUT_MS,
    ),
}


def load_personas(personas_dir: Path | None, password: str) -> dict[str, PersonaProfile]:
    """Return built-in personas overlaid with any YAML personas on disk.

    ``password`` fills in every persona that does not set its own.
    """
    personas = dict(BUILTIN_PERSONAS)
    if personas_dir is not None and personas_dir.is_dir():
        for path in sorted(personas_dir.glob("*.yaml")):
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            try:
                profile = PersonaProfile.from_dict(data)
            except JourneyQAConfigError as exc:
                raise JourneyQAConfigError(f"{path}: {exc}") from exc
            if profile.key in personas:
                logger.debug("Persona %s overridden by %s", profile.key, path)
            personas[profile.key] = profile

    return {
        key: profile if profile.password else profile.with_password(password)
        for key, profile in personas.items()
    }


def get_persona(personas: dict[str, PersonaProfile], key: str) -> PersonaProfile:
    if key not in personas:
        raise JourneyQAConfigError(
            f"Unknown persona: {key}\n\n"
            f"Available: {', '.join(sorted(personas))}"
        )
    return personas[key]
