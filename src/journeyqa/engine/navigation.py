"""JourneyQA Navigation Race Coordinator.

The same link may open a new tab or navigate in place depending on runtime
conditions.  Instead of assuming either, the coordinator races both:

1. subscribe to "new browsing context opened" BEFORE triggering
2. run the trigger
3. poll cooperatively until either a new context arrived (while the popup
   window is still open) or the current URL matches the expected pattern

The first signal wins and the other branch is dropped: the listener is
unsubscribed, so a popup that shows up after same-page navigation won is
never seen.  When the popup window lapses the race continues as a plain
same-page wait until the navigation bound.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable

from journeyqa.engine.outcomes import NavigationRaceOutcome, RaceKind
from journeyqa.engine.protocols import BrowserDriver
from journeyqa.models import (
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_POPUP_TIMEOUT_MS,
    RACE_POLL_INTERVAL_MS,
)

logger = logging.getLogger("journeyqa.engine.navigation")


class NavigationTimedOut(Exception):
    """Neither same-page navigation nor a new context happened in time."""

    def __init__(self, pattern: str, navigation_timeout_ms: int, last_url: str = "") -> None:
        self.pattern = pattern
        self.navigation_timeout_ms = navigation_timeout_ms
        self.last_url = last_url
        super().__init__(
            f"No navigation matching /{pattern}/ and no new context within "
            f"{navigation_timeout_ms}ms (last url: {last_url or 'unknown'})"
        )


def _compile(pattern: str | re.Pattern[str]) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


class NavigationRaceCoordinator:
    """Races same-page navigation against a newly opened browsing context."""

    def __init__(
        self,
        popup_timeout_ms: int = DEFAULT_POPUP_TIMEOUT_MS,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        poll_interval_ms: int = RACE_POLL_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.popup_timeout_ms = popup_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self._poll_interval_ms = max(1, poll_interval_ms)
        self._clock = clock

    def await_transition(
        self,
        driver: BrowserDriver,
        trigger: Callable[[], Any],
        expected_url_pattern: str | re.Pattern[str],
        popup_timeout_ms: int | None = None,
        navigation_timeout_ms: int | None = None,
    ) -> NavigationRaceOutcome:
        """Run ``trigger`` and report which transition it caused.

        Exceptions raised by ``trigger`` propagate after the listener has been
        removed.  Timing out is a TIMED_OUT outcome, not an exception.
        """
        pattern = _compile(expected_url_pattern)
        popup_ms = self.popup_timeout_ms if popup_timeout_ms is None else popup_timeout_ms
        nav_ms = self.navigation_timeout_ms if navigation_timeout_ms is None else navigation_timeout_ms

        opened: list[BrowserDriver] = []

        def _on_new_context(page: BrowserDriver) -> None:
            if not opened:
                opened.append(page)

        start = self._clock()
        unsubscribe = driver.on_new_context(_on_new_context)
        listening = True

        def _stop_listening() -> None:
            nonlocal listening
            if listening:
                listening = False
                unsubscribe()

        try:
            trigger()

            while True:
                elapsed_ms = (self._clock() - start) * 1000

                if listening and opened:
                    _stop_listening()
                    logger.info("Transition resolved as new context after %.0fms", elapsed_ms)
                    return NavigationRaceOutcome(
                        kind=RaceKind.NEW_CONTEXT_OPENED,
                        page=opened[0],
                        elapsed_ms=round(elapsed_ms, 1),
                    )
                if listening and elapsed_ms >= popup_ms:
                    logger.debug("No new context within %dms; waiting for same-page navigation", popup_ms)
                    _stop_listening()

                if pattern.search(driver.current_url()):
                    _stop_listening()
                    logger.info(
                        "Transition resolved as same-page navigation to /%s/ after %.0fms",
                        pattern.pattern, elapsed_ms,
                    )
                    return NavigationRaceOutcome(
                        kind=RaceKind.SAME_PAGE_NAVIGATION,
                        page=driver,
                        matched_url_pattern=pattern.pattern,
                        elapsed_ms=round(elapsed_ms, 1),
                    )

                if elapsed_ms >= nav_ms:
                    logger.warning(
                        "Transition to /%s/ timed out after %dms (url=%s)",
                        pattern.pattern, nav_ms, driver.current_url(),
                    )
                    return NavigationRaceOutcome(kind=RaceKind.TIMED_OUT, elapsed_ms=round(elapsed_ms, 1))

                remaining_ms = nav_ms - elapsed_ms
                if listening:
                    remaining_ms = min(remaining_ms, popup_ms - elapsed_ms)
                driver.wait(int(max(1, min(self._poll_interval_ms, remaining_ms))))
        finally:
            _stop_listening()

    def expect_transition(
        self,
        driver: BrowserDriver,
        trigger: Callable[[], Any],
        expected_url_pattern: str | re.Pattern[str],
        popup_timeout_ms: int | None = None,
        navigation_timeout_ms: int | None = None,
    ) -> NavigationRaceOutcome:
        """Like ``await_transition`` but raises NavigationTimedOut on timeout."""
        outcome = self.await_transition(
            driver, trigger, expected_url_pattern, popup_timeout_ms, navigation_timeout_ms,
        )
        if outcome.timed_out:
            pattern = _compile(expected_url_pattern).pattern
            nav_ms = self.navigation_timeout_ms if navigation_timeout_ms is None else navigation_timeout_ms
            raise NavigationTimedOut(pattern, nav_ms, driver.current_url())
        return outcome
