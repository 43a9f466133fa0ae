"""Shared result vocabulary for action resolution, navigation and diagnostics.

Everything here is immutable: actions and candidates are declared per call
site, outcomes are produced once per invocation and never mutated.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import Any


class StrategyStatus(enum.Enum):
    """How a single candidate attempt ended."""

    NOT_PRESENT = "not_present"
    EXECUTED = "executed"
    EXECUTION_FAILED = "execution_failed"


class RaceKind(enum.Enum):
    """Which completion signal won a navigation race."""

    SAME_PAGE_NAVIGATION = "same_page_navigation"
    NEW_CONTEXT_OPENED = "new_context_opened"
    TIMED_OUT = "timed_out"


ACTION_KINDS = ("click", "fill", "select")


@dataclasses.dataclass(frozen=True)
class CandidateStrategy:
    """One concrete way to locate and trigger a logical action."""

    selector: str
    timeout_ms: int | None = None  # None -> resolver default
    label: str = ""

    @property
    def identifier(self) -> str:
        return self.label or self.selector


@dataclasses.dataclass(frozen=True)
class LogicalAction:
    """A named UI intent, independent of which selector achieves it."""

    description: str
    candidates: tuple[CandidateStrategy, ...]
    kind: str = "click"  # click, fill, select
    value: str = ""  # text for fill, option value for select

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError(f"LogicalAction '{self.description}' needs at least one candidate")
        if self.kind not in ACTION_KINDS:
            raise ValueError(f"Unknown action kind: {self.kind!r} (expected one of {ACTION_KINDS})")
        # Accept lists and bare selector strings at declaration sites
        normalized = tuple(
            c if isinstance(c, CandidateStrategy) else CandidateStrategy(selector=str(c))
            for c in self.candidates
        )
        object.__setattr__(self, "candidates", normalized)

    @classmethod
    def of(cls, description: str, *selectors: str, kind: str = "click", value: str = "") -> LogicalAction:
        """Shorthand: build an action from plain selector strings."""
        return cls(
            description=description,
            candidates=tuple(CandidateStrategy(selector=s) for s in selectors),
            kind=kind,
            value=value,
        )

    def with_value(self, value: str) -> LogicalAction:
        return dataclasses.replace(self, value=value)


@dataclasses.dataclass(frozen=True)
class StrategyResult:
    """Outcome of one candidate attempt."""

    candidate: CandidateStrategy
    status: StrategyStatus
    reason: str | None = None
    duration_ms: float = 0.0

    @property
    def executed(self) -> bool:
        return self.status is StrategyStatus.EXECUTED


@dataclasses.dataclass(frozen=True)
class DiagnosticBundle:
    """Artifact produced when every candidate of an action failed."""

    artifact_name: str
    screenshot_ref: str | None  # None when the capture itself failed
    action_description: str
    scenario_name: str
    timestamp: str
    attempted_selectors: tuple[str, ...] = ()
    html_ref: str | None = None


@dataclasses.dataclass(frozen=True)
class ActionOutcome:
    """Aggregate result of resolving a LogicalAction."""

    action: LogicalAction
    attempts: tuple[StrategyResult, ...]
    elapsed_ms: float
    succeeded_via: CandidateStrategy | None = None
    diagnostics: DiagnosticBundle | None = None
    warnings: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.succeeded_via is not None

    @property
    def exhausted(self) -> bool:
        return self.succeeded_via is None

    @property
    def attempted_candidates(self) -> tuple[CandidateStrategy, ...]:
        return tuple(a.candidate for a in self.attempts)

    def failure_reasons(self) -> list[str]:
        """One line per failed attempt: ``selector: status (reason)``."""
        lines = []
        for attempt in self.attempts:
            if attempt.executed:
                continue
            line = f"{attempt.candidate.selector}: {attempt.status.value}"
            if attempt.reason:
                line += f" ({attempt.reason})"
            lines.append(line)
        return lines


@dataclasses.dataclass(frozen=True)
class NavigationRaceOutcome:
    """Result of racing same-page navigation against a new browsing context."""

    kind: RaceKind
    page: Any = None  # BrowserDriver handle; None on timeout
    matched_url_pattern: str | None = None
    elapsed_ms: float = 0.0

    @property
    def timed_out(self) -> bool:
        return self.kind is RaceKind.TIMED_OUT
