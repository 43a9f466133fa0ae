"""JourneyQA Locator Strategy Resolver -- ordered selector fallback.

The storefront's markup is not under our control and changes between
versions, so every logical action carries an ordered list of candidate
selectors.  The resolver walks that list once:

- absent candidate (count == 0, or the selector is rejected by the engine)
  -> NOT_PRESENT, advance immediately
- present candidate whose interaction throws or times out
  -> EXECUTION_FAILED, advance to the next candidate (never retried)
- present candidate whose interaction succeeds -> done

If nothing executes, diagnostics are captured exactly once and the outcome
lists every attempt with its reason, which doubles as a report of which
selectors went stale.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from journeyqa.engine.diagnostics import DiagnosticsCapture
from journeyqa.engine.outcomes import (
    ActionOutcome,
    CandidateStrategy,
    LogicalAction,
    StrategyResult,
    StrategyStatus,
)
from journeyqa.engine.protocols import BrowserDriver
from journeyqa.models import DEFAULT_ACTION_TIMEOUT_MS, DEFAULT_PRESENCE_TIMEOUT_MS

logger = logging.getLogger("journeyqa.engine.resolver")


class StrategyExhausted(Exception):
    """No candidate strategy of a logical action could be executed."""

    def __init__(self, outcome: ActionOutcome) -> None:
        self.outcome = outcome
        reasons = "; ".join(outcome.failure_reasons())
        message = (
            f"All {len(outcome.attempts)} candidate(s) exhausted for "
            f"'{outcome.action.description}': {reasons}"
        )
        if outcome.diagnostics and outcome.diagnostics.screenshot_ref:
            message += f" (see {outcome.diagnostics.screenshot_ref})"
        super().__init__(message)


class LocatorStrategyResolver:
    """Resolves LogicalActions against one browsing context."""

    def __init__(
        self,
        driver: BrowserDriver,
        diagnostics: DiagnosticsCapture | None = None,
        scenario_name: str = "",
        action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS,
        presence_timeout_ms: int = DEFAULT_PRESENCE_TIMEOUT_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._driver = driver
        self._diagnostics = diagnostics
        self._scenario_name = scenario_name
        self._action_timeout_ms = action_timeout_ms
        self._presence_timeout_ms = presence_timeout_ms
        self._clock = clock

    @property
    def driver(self) -> BrowserDriver:
        return self._driver

    def resolve(self, action: LogicalAction) -> ActionOutcome:
        """Try each candidate in declared order; first successful one wins.

        Never raises for candidate failures -- an exhausted outcome is a
        return value.  Use ``resolve_or_raise`` to turn it into an exception.
        """
        start = self._clock()
        attempts: list[StrategyResult] = []

        for candidate in action.candidates:
            result = self._attempt(action, candidate)
            attempts.append(result)
            if result.executed:
                elapsed_ms = round((self._clock() - start) * 1000, 1)
                if len(attempts) > 1:
                    logger.info(
                        "'%s' resolved via fallback candidate %d/%d: %s",
                        action.description, len(attempts), len(action.candidates),
                        candidate.identifier,
                    )
                else:
                    logger.debug("'%s' resolved via %s", action.description, candidate.identifier)
                return ActionOutcome(
                    action=action,
                    attempts=tuple(attempts),
                    elapsed_ms=elapsed_ms,
                    succeeded_via=candidate,
                )

        logger.warning(
            "All candidates exhausted for '%s': %s",
            action.description, " | ".join(
                f"{a.candidate.selector}={a.status.value}" for a in attempts
            ),
        )

        bundle = None
        warnings: tuple[str, ...] = ()
        if self._diagnostics is not None:
            bundle, warning = self._diagnostics.capture_on_failure(
                self._driver, action.description, self._scenario_name, attempts,
            )
            if warning is not None:
                warnings = (str(warning),)

        return ActionOutcome(
            action=action,
            attempts=tuple(attempts),
            elapsed_ms=round((self._clock() - start) * 1000, 1),
            diagnostics=bundle,
            warnings=warnings,
        )

    def resolve_or_raise(self, action: LogicalAction) -> ActionOutcome:
        """Resolve ``action`` and raise StrategyExhausted if nothing executed."""
        outcome = self.resolve(action)
        if outcome.exhausted:
            raise StrategyExhausted(outcome)
        return outcome

    # -- Single attempt ------------------------------------------------------

    def _attempt(self, action: LogicalAction, candidate: CandidateStrategy) -> StrategyResult:
        attempt_start = self._clock()

        def _done(status: StrategyStatus, reason: str | None = None) -> StrategyResult:
            return StrategyResult(
                candidate=candidate,
                status=status,
                reason=reason,
                duration_ms=round((self._clock() - attempt_start) * 1000, 1),
            )

        try:
            present = self._driver.count(candidate.selector, self._presence_timeout_ms)
        except Exception as exc:
            # e.g. a selector syntax this engine does not understand
            return _done(StrategyStatus.NOT_PRESENT, f"presence check failed: {type(exc).__name__}: {exc}")
        if present <= 0:
            return _done(StrategyStatus.NOT_PRESENT, "no matching element")

        timeout_ms = candidate.timeout_ms if candidate.timeout_ms is not None else self._action_timeout_ms
        try:
            if action.kind == "click":
                self._driver.click(candidate.selector, timeout_ms)
            elif action.kind == "fill":
                self._driver.fill(candidate.selector, action.value, timeout_ms)
            elif action.kind == "select":
                self._driver.select_option(candidate.selector, action.value, timeout_ms)
        except Exception as exc:
            logger.debug("Candidate %s present but failed: %s", candidate.selector, exc)
            return _done(StrategyStatus.EXECUTION_FAILED, f"{type(exc).__name__}: {exc}")

        return _done(StrategyStatus.EXECUTED)
