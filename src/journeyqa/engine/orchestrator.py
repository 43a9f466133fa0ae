"""JourneyQA Session Orchestrator -- runs a journey for one persona.

A journey is an ordered list of steps.  Each step resolves its logical
actions through the LocatorStrategyResolver, optionally races the resulting
transition through the NavigationRaceCoordinator, then checks its
assertions against whichever page handle the transition produced.  The
handle is threaded explicitly from step to step; there is no ambient
"current page".

Per-persona behaviour is data, not code paths: a step may name a deviation
tag.  For a persona that expects that deviation, a navigation timeout or an
assertion mismatch is recorded as an expected deviation (and the step's
``on_deviation`` assertions are checked instead).  Everything else fails the
step, and a failed step aborts the rest of the journey because later steps
assume the state earlier ones produced.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import time
from typing import Any, Callable

from journeyqa.engine.diagnostics import DiagnosticsCapture, slugify
from journeyqa.engine.navigation import NavigationRaceCoordinator, NavigationTimedOut
from journeyqa.engine.outcomes import (
    CandidateStrategy,
    DiagnosticBundle,
    LogicalAction,
    NavigationRaceOutcome,
)
from journeyqa.engine.protocols import ArtifactSink, BrowserDriver
from journeyqa.engine.resolver import LocatorStrategyResolver, StrategyExhausted
from journeyqa.engine.timing import TimingInstrumentedAction
from journeyqa.models import (
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_ASSERTION_TIMEOUT_MS,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_POPUP_TIMEOUT_MS,
    DEFAULT_PRESENCE_TIMEOUT_MS,
    RACE_POLL_INTERVAL_MS,
)
from journeyqa.personas import PersonaProfile

logger = logging.getLogger("journeyqa.engine.orchestrator")

ASSERTION_KINDS = (
    "url_matches",
    "text_contains",
    "visible",
    "absent",
    "count_equals",
    "sorted",
    "input_value",
    "distinct",
)


class AssertionMismatch(Exception):
    """Observed page state differs from what the step expected."""

    def __init__(self, assertion: Assertion, observed: Any, detail: str = "") -> None:
        self.assertion = assertion
        self.observed = observed
        message = f"{assertion.describe()}: observed {observed!r}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class JourneyDefinitionError(ValueError):
    """A journey, step, action or assertion definition is malformed."""


def _render(value: Any, persona: PersonaProfile) -> Any:
    """Substitute ``{username}``-style persona fields into string values."""
    if not isinstance(value, str) or "{" not in value:
        return value
    fields = {
        "username": persona.username,
        "password": persona.password,
        "persona": persona.key,
        "expected_login_error": persona.expected_login_error or "",
    }
    try:
        return value.format_map(fields)
    except (KeyError, IndexError, ValueError):
        # Literal braces in selectors and the like
        return value


def _parse_price(text: str) -> float:
    return float(text.strip().lstrip("$").replace(",", ""))


# -- Assertions ---------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Assertion:
    """A check against observed page state."""

    kind: str
    selector: str = ""
    expected: Any = None
    by: str = "name"  # sorted: name | price
    order: str = "asc"  # sorted: asc | desc
    attribute: str = ""  # distinct: compare this attribute instead of text

    def __post_init__(self) -> None:
        if self.kind not in ASSERTION_KINDS:
            raise JourneyDefinitionError(f"Unknown assertion kind: {self.kind!r}")
        if self.kind != "url_matches" and not self.selector:
            raise JourneyDefinitionError(f"Assertion '{self.kind}' needs a selector")

    def describe(self) -> str:
        if self.kind == "url_matches":
            return f"url matches /{self.expected}/"
        if self.kind == "sorted":
            return f"{self.selector} sorted by {self.by} {self.order}"
        if self.kind == "distinct":
            return f"{self.selector} {self.attribute or 'text'} values distinct"
        if self.kind in ("visible", "absent"):
            return f"{self.selector} {self.kind}"
        return f"{self.selector} {self.kind} {self.expected!r}"

    def rendered(self, persona: PersonaProfile) -> Assertion:
        return dataclasses.replace(
            self,
            selector=_render(self.selector, persona),
            expected=_render(self.expected, persona),
        )

    def check(self, driver: BrowserDriver, timeout_ms: int = 0) -> None:
        """Raise AssertionMismatch unless the page satisfies this assertion.

        ``timeout_ms`` bounds how long checks that wait for something to
        appear (``url_matches``, ``visible`` and the presence check before a
        read) keep waiting.  Count-based checks never wait.
        """
        if self.kind == "url_matches":
            self._await_url(driver, timeout_ms)
        elif self.kind == "text_contains":
            self._require_present(driver, timeout_ms)
            text = driver.read_text(self.selector)
            if str(self.expected).lower() not in text.lower():
                raise AssertionMismatch(self, text)
        elif self.kind == "visible":
            count = driver.count(self.selector, timeout_ms)
            if count == 0:
                raise AssertionMismatch(self, count, "no matching element")
        elif self.kind == "absent":
            count = driver.count(self.selector)
            if count != 0:
                raise AssertionMismatch(self, count)
        elif self.kind == "count_equals":
            count = driver.count(self.selector)
            if count != int(self.expected):
                raise AssertionMismatch(self, count)
        elif self.kind == "input_value":
            self._require_present(driver, timeout_ms)
            value = driver.input_value(self.selector)
            if value != str(self.expected):
                raise AssertionMismatch(self, value)
        elif self.kind == "distinct":
            self._require_present(driver, timeout_ms)
            if self.attribute:
                values = driver.read_all_attributes(self.selector, self.attribute)
            else:
                values = [t.strip() for t in driver.read_all_texts(self.selector)]
            repeated = sorted({v for v in values if values.count(v) > 1})
            if repeated:
                raise AssertionMismatch(self, repeated, f"{len(values)} values, repeats found")
        elif self.kind == "sorted":
            texts = [t.strip() for t in driver.read_all_texts(self.selector)]
            try:
                keys: list[Any] = [_parse_price(t) for t in texts] if self.by == "price" else texts
            except ValueError:
                raise AssertionMismatch(self, texts, "unparseable price") from None
            expected_keys = sorted(keys, reverse=self.order == "desc")
            if keys != expected_keys:
                raise AssertionMismatch(self, texts, "not in expected order")

    def _require_present(self, driver: BrowserDriver, timeout_ms: int) -> None:
        # Reading from a missing element would block until the driver's own timeout
        if driver.count(self.selector, timeout_ms) == 0:
            raise AssertionMismatch(self, None, "no matching element")

    def _await_url(self, driver: BrowserDriver, timeout_ms: int) -> None:
        pattern = str(self.expected)
        waited = 0
        url = driver.current_url()
        while not re.search(pattern, url):
            if waited >= timeout_ms:
                raise AssertionMismatch(self, url)
            pause = min(RACE_POLL_INTERVAL_MS, timeout_ms - waited)
            driver.wait(pause)
            waited += pause
            url = driver.current_url()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Assertion:
        if "kind" not in data:
            raise JourneyDefinitionError(f"Assertion missing 'kind': {data!r}")
        return cls(
            kind=str(data["kind"]),
            selector=str(data.get("selector", "")),
            expected=data.get("expected"),
            by=str(data.get("by", "name")),
            order=str(data.get("order", "asc")),
            attribute=str(data.get("attribute", "")),
        )


# -- Journey definition -------------------------------------------------------


def _action_from_dict(data: dict[str, Any]) -> LogicalAction:
    raw_candidates = data.get("candidates") or []
    if not raw_candidates:
        raise JourneyDefinitionError(f"Action '{data.get('description', '?')}' has no candidates")
    candidates = []
    for raw in raw_candidates:
        if isinstance(raw, dict):
            candidates.append(CandidateStrategy(
                selector=str(raw["selector"]),
                timeout_ms=int(raw["timeout_ms"]) if raw.get("timeout_ms") is not None else None,
                label=str(raw.get("label", "")),
            ))
        else:
            candidates.append(CandidateStrategy(selector=str(raw)))
    try:
        return LogicalAction(
            description=str(data.get("description", candidates[0].selector)),
            candidates=tuple(candidates),
            kind=str(data.get("kind", "click")),
            value=str(data.get("value", "")),
        )
    except ValueError as exc:
        raise JourneyDefinitionError(str(exc)) from exc


@dataclasses.dataclass(frozen=True)
class JourneyStep:
    """One step of a journey: actions, an optional transition, assertions."""

    id: str
    description: str = ""
    goto: str | None = None  # URL (absolute, or relative to the journey start)
    actions: tuple[LogicalAction, ...] = ()
    transition: str | None = None  # expected URL regex after the last action
    assertions: tuple[Assertion, ...] = ()
    timed: bool = False
    capture: bool = False
    deviation: str | None = None
    on_deviation: tuple[Assertion, ...] = ()
    ends_on_deviation: bool = False

    def __post_init__(self) -> None:
        if self.transition and not self.actions:
            raise JourneyDefinitionError(f"Step '{self.id}' has a transition but no action to trigger it")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JourneyStep:
        if "id" not in data:
            raise JourneyDefinitionError(f"Step missing 'id': {data!r}")
        return cls(
            id=str(data["id"]),
            description=str(data.get("description", "")),
            goto=data.get("goto"),
            actions=tuple(_action_from_dict(a) for a in data.get("actions") or ()),
            transition=data.get("transition"),
            assertions=tuple(Assertion.from_dict(a) for a in data.get("assertions") or ()),
            timed=bool(data.get("timed", False)),
            capture=bool(data.get("capture", False)),
            deviation=data.get("deviation"),
            on_deviation=tuple(Assertion.from_dict(a) for a in data.get("on_deviation") or ()),
            ends_on_deviation=bool(data.get("ends_on_deviation", False)),
        )


@dataclasses.dataclass(frozen=True)
class Journey:
    """An ordered, persona-independent sequence of steps."""

    id: str
    name: str
    steps: tuple[JourneyStep, ...]
    start_url: str | None = None  # None -> orchestrator's base URL

    def until(self, step_id: str) -> Journey:
        """The prefix of this journey ending with ``step_id`` (inclusive)."""
        for idx, step in enumerate(self.steps):
            if step.id == step_id:
                return dataclasses.replace(self, steps=self.steps[: idx + 1])
        raise JourneyDefinitionError(f"Journey '{self.id}' has no step '{step_id}'")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Journey:
        body = data.get("journey", data)
        steps = body.get("steps") or []
        if not steps:
            raise JourneyDefinitionError(f"Journey '{body.get('id', '?')}' has no steps")
        ids = [s.get("id") for s in steps]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise JourneyDefinitionError(f"Duplicate step ids: {', '.join(sorted(map(str, duplicates)))}")
        journey_id = str(body.get("id", "journey"))
        return cls(
            id=journey_id,
            name=str(body.get("name", journey_id)),
            steps=tuple(JourneyStep.from_dict(s) for s in steps),
            start_url=body.get("start_url"),
        )


# -- Results ------------------------------------------------------------------


@dataclasses.dataclass
class StepResult:
    """What happened when a step ran for a persona."""

    step_id: str
    status: str  # passed, deviated, failed, skipped
    elapsed_ms: float = 0.0
    description: str = ""
    succeeded_via: list[str] = dataclasses.field(default_factory=list)
    navigation: str | None = None  # RaceKind value
    deviations: list[str] = dataclasses.field(default_factory=list)
    error: str | None = None
    error_type: str | None = None
    diagnostics: DiagnosticBundle | None = None
    warnings: list[str] = dataclasses.field(default_factory=list)
    screenshots: list[str] = dataclasses.field(default_factory=list)
    timed: bool = False

    @property
    def ok(self) -> bool:
        return self.status in ("passed", "deviated")


@dataclasses.dataclass
class JourneyResult:
    """Complete result of one journey run for one persona."""

    journey_id: str
    journey_name: str
    persona: str
    steps: list[StepResult]
    elapsed_ms: float
    aborted_at: str | None = None
    ended_early_at: str | None = None  # expected deviation that ends the journey

    @property
    def passed(self) -> bool:
        return self.aborted_at is None and all(s.status != "failed" for s in self.steps)

    def step(self, step_id: str) -> StepResult:
        for s in self.steps:
            if s.step_id == step_id:
                return s
        raise KeyError(step_id)


class _ExpectedDeviation(Exception):
    """Internal: step hit a deviation the persona is expected to show."""

    def __init__(self, note: str) -> None:
        self.note = note
        super().__init__(note)


# -- Orchestrator -------------------------------------------------------------


class SessionOrchestrator:
    """Runs journeys against one isolated browsing session."""

    def __init__(
        self,
        driver: BrowserDriver,
        sink: ArtifactSink,
        base_url: str = "",
        presence_timeout_ms: int = DEFAULT_PRESENCE_TIMEOUT_MS,
        action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS,
        popup_timeout_ms: int = DEFAULT_POPUP_TIMEOUT_MS,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        assertion_timeout_ms: int = DEFAULT_ASSERTION_TIMEOUT_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._driver = driver
        self._sink = sink
        self._base_url = base_url
        self._presence_timeout_ms = presence_timeout_ms
        self._action_timeout_ms = action_timeout_ms
        self._popup_timeout_ms = popup_timeout_ms
        self._navigation_timeout_ms = navigation_timeout_ms
        self._assertion_timeout_ms = assertion_timeout_ms
        self._clock = clock
        self._diagnostics = DiagnosticsCapture(sink)
        self._timer = TimingInstrumentedAction(clock=clock)

    @property
    def driver(self) -> BrowserDriver:
        """The page handle the last journey ended on."""
        return self._driver

    def run(self, journey: Journey, persona: PersonaProfile) -> JourneyResult:
        """Run every step in order, aborting on the first failure."""
        scenario_name = f"{journey.id} {persona.key}"
        nav_timeout = persona.navigation_timeout_ms or self._navigation_timeout_ms
        race = NavigationRaceCoordinator(
            popup_timeout_ms=self._popup_timeout_ms,
            navigation_timeout_ms=nav_timeout,
            clock=self._clock,
        )

        logger.info("Journey %s starting for persona %s (%d steps)", journey.id, persona.key, len(journey.steps))
        start = self._clock()
        results: list[StepResult] = []
        aborted_at: str | None = None
        ended_early_at: str | None = None

        start_url = journey.start_url or self._base_url
        if start_url:
            try:
                self._driver.navigate(self._resolve_url(start_url))
            except Exception as exc:
                first = journey.steps[0]
                failed = StepResult(step_id=first.id, status="failed", description=first.description)
                self._fail(failed, exc)
                results.append(failed)
                aborted_at = first.id
                logger.error("Journey %s could not open %s: %s", journey.id, start_url, exc)

        for step in journey.steps[len(results):]:
            if aborted_at or ended_early_at:
                results.append(StepResult(step_id=step.id, status="skipped", description=step.description))
                continue

            result = self._run_step(step, persona, race, scenario_name, journey)
            results.append(result)

            if result.status == "failed":
                aborted_at = step.id
                logger.error(
                    "Journey %s aborted at step %s for persona %s: %s",
                    journey.id, step.id, persona.key, result.error,
                )
            elif result.status == "deviated" and step.ends_on_deviation:
                ended_early_at = step.id
                logger.info("Journey %s ends at expected deviation in step %s", journey.id, step.id)

        elapsed_ms = round((self._clock() - start) * 1000, 1)
        journey_result = JourneyResult(
            journey_id=journey.id,
            journey_name=journey.name,
            persona=persona.key,
            steps=results,
            elapsed_ms=elapsed_ms,
            aborted_at=aborted_at,
            ended_early_at=ended_early_at,
        )
        logger.info(
            "Journey %s for persona %s %s in %.0fms",
            journey.id, persona.key, "passed" if journey_result.passed else "FAILED", elapsed_ms,
        )
        return journey_result

    def measure_step(self, journey: Journey, persona: PersonaProfile, step_id: str) -> StepResult:
        """Run ``journey`` up to ``step_id`` and return that step's result."""
        return self.run(journey.until(step_id), persona).step(step_id)

    # -- Step execution ------------------------------------------------------

    def _run_step(
        self,
        step: JourneyStep,
        persona: PersonaProfile,
        race: NavigationRaceCoordinator,
        scenario_name: str,
        journey: Journey,
    ) -> StepResult:
        result = StepResult(step_id=step.id, status="passed", description=step.description, timed=step.timed)
        logger.info("Step %s (%s)", step.id, persona.key)

        try:
            timed = self._timer.instrument(
                lambda: self._perform(step, persona, race, scenario_name, result),
                label=step.id,
            )
            result.elapsed_ms = timed.elapsed_ms
        except _ExpectedDeviation as exc:
            result.elapsed_ms = getattr(exc, "elapsed_ms", 0.0)
            result.status = "deviated"
            result.deviations.append(exc.note)
        except StrategyExhausted as exc:
            result.elapsed_ms = getattr(exc, "elapsed_ms", 0.0)
            self._fail(result, exc)
            result.diagnostics = exc.outcome.diagnostics
            result.warnings.extend(exc.outcome.warnings)
        except (NavigationTimedOut, AssertionMismatch) as exc:
            result.elapsed_ms = getattr(exc, "elapsed_ms", 0.0)
            self._fail(result, exc)
        except Exception as exc:
            # Driver errors the resolver does not absorb, e.g. a goto that times out
            result.elapsed_ms = getattr(exc, "elapsed_ms", 0.0)
            self._fail(result, exc)
            logger.warning("Step %s hit a driver error: %s: %s", step.id, type(exc).__name__, exc)

        if step.capture and result.status != "failed":
            name = f"{slugify(journey.id)}-{slugify(persona.key)}-{slugify(step.id)}"
            try:
                ref = self._sink.attach_artifact(name, self._driver.screenshot(full_page=True), "image/png")
                result.screenshots.append(ref)
            except Exception as exc:
                result.warnings.append(f"Step screenshot failed: {type(exc).__name__}: {exc}")
                logger.warning("Step %s screenshot failed: %s", step.id, exc)

        return result

    @staticmethod
    def _fail(result: StepResult, exc: Exception) -> None:
        result.status = "failed"
        result.error = str(exc)
        result.error_type = type(exc).__name__

    def _perform(
        self,
        step: JourneyStep,
        persona: PersonaProfile,
        race: NavigationRaceCoordinator,
        scenario_name: str,
        result: StepResult,
    ) -> None:
        expects_deviation = persona.expects(step.deviation)

        if step.goto:
            self._driver.navigate(self._resolve_url(_render(step.goto, persona)))

        actions = [a.with_value(_render(a.value, persona)) for a in step.actions]
        resolver = self._resolver(scenario_name)

        try:
            if step.transition:
                for action in actions[:-1]:
                    result.succeeded_via.append(resolver.resolve_or_raise(action).succeeded_via.identifier)
                outcome = self._race(race, resolver, actions[-1], step.transition, result)
                result.navigation = outcome.kind.value
                if outcome.timed_out:
                    raise NavigationTimedOut(step.transition, race.navigation_timeout_ms, self._driver.current_url())
                if outcome.page is not self._driver:
                    logger.info("Step %s continued in a new browsing context", step.id)
                    self._driver = outcome.page
                self._driver.wait_for_load(race.navigation_timeout_ms)
            else:
                for action in actions:
                    result.succeeded_via.append(resolver.resolve_or_raise(action).succeeded_via.identifier)

            for assertion in step.assertions:
                assertion.rendered(persona).check(self._driver, self._assertion_timeout_ms)
        except (NavigationTimedOut, AssertionMismatch) as exc:
            if not expects_deviation:
                raise
            for assertion in step.on_deviation:
                assertion.rendered(persona).check(self._driver, self._assertion_timeout_ms)
            raise _ExpectedDeviation(f"{step.deviation}: expected deviation observed ({exc})") from exc

        if expects_deviation:
            result.deviations.append(f"{step.deviation}: not observed this run")

    def _resolver(self, scenario_name: str) -> LocatorStrategyResolver:
        return LocatorStrategyResolver(
            self._driver,
            diagnostics=self._diagnostics,
            scenario_name=scenario_name,
            action_timeout_ms=self._action_timeout_ms,
            presence_timeout_ms=self._presence_timeout_ms,
            clock=self._clock,
        )

    def _race(
        self,
        race: NavigationRaceCoordinator,
        resolver: LocatorStrategyResolver,
        action: LogicalAction,
        pattern: str,
        result: StepResult,
    ) -> NavigationRaceOutcome:
        def _trigger() -> None:
            outcome = resolver.resolve_or_raise(action)
            result.succeeded_via.append(outcome.succeeded_via.identifier)

        return race.await_transition(self._driver, _trigger, pattern)

    def _resolve_url(self, url: str) -> str:
        if re.match(r"^[a-z][a-z0-9+.-]*://", url, re.I) or not self._base_url:
            return url
        base = self._base_url.rsplit("/", 1)[0] if self._base_url.endswith(".html") else self._base_url.rstrip("/")
        return f"{base}/{url.lstrip('/')}"
