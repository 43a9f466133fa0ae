"""JourneyQA timing instrumentation.

Wraps any callable with monotonic start/end timestamps.  The measurement is
taken whether the callable returns or raises, because slow failures are as
informative as slow successes.  This module only measures; comparisons
between personas are made by the caller from independent measurements.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable, Generic, TypeVar

logger = logging.getLogger("journeyqa.engine.timing")

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class TimedResult(Generic[T]):
    """Return value of an instrumented call plus its wall-clock duration."""

    value: T
    elapsed_ms: float

    def __iter__(self):
        # Allows ``outcome, elapsed_ms = timer.instrument(...)``
        return iter((self.value, self.elapsed_ms))


class TimingInstrumentedAction:
    """Measures one invocation at a time; no retries, no smoothing."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock

    def instrument(self, action: Callable[[], T], label: str = "") -> TimedResult[T]:
        """Run ``action`` and return its result with the elapsed milliseconds.

        If ``action`` raises, the exception is re-raised with an
        ``elapsed_ms`` attribute attached so the caller still sees how long
        the failure took.
        """
        start = self._clock()
        try:
            value = action()
        except Exception as exc:
            elapsed_ms = self._elapsed_ms(start)
            exc.elapsed_ms = elapsed_ms  # type: ignore[attr-defined]
            logger.debug("%s failed after %.1fms", label or "action", elapsed_ms)
            raise
        elapsed_ms = self._elapsed_ms(start)
        logger.debug("%s took %.1fms", label or "action", elapsed_ms)
        return TimedResult(value=value, elapsed_ms=elapsed_ms)

    def _elapsed_ms(self, start: float) -> float:
        return round(max(0.0, self._clock() - start) * 1000, 1)


def compare_latency(
    slow_label: str,
    slow_ms: float,
    fast_label: str,
    fast_ms: float,
    min_gap_ms: float = 0,
) -> tuple[bool, str]:
    """Check that ``slow_ms`` exceeds ``fast_ms`` by at least ``min_gap_ms``.

    Returns ``(holds, message)``.  The message always carries the margin over
    the baseline so a near miss reads differently from a reversal.
    """
    gap = slow_ms - fast_ms
    holds = gap > 0 and gap >= min_gap_ms
    relation = ">" if gap > 0 else "<="
    message = f"{slow_label}: {slow_ms:.0f}ms {relation} {fast_label}: {fast_ms:.0f}ms ({gap:+.0f}ms"
    if min_gap_ms:
        margin = gap - min_gap_ms
        message += f", baseline {min_gap_ms:.0f}ms, margin {margin:+.0f}ms"
    return holds, message + ")"
