"""JourneyQA Diagnostics Capture -- failure evidence for exhausted actions.

When every candidate strategy of a logical action has failed, the resolver
calls ``capture_on_failure`` exactly once.  It takes a full-page screenshot
(plus a best-effort HTML snapshot), attaches both to the artifact sink under
a label built from the scenario name and the action description, and hands
back a DiagnosticBundle.

Capturing is never allowed to mask the original failure: if the page is
already gone or the sink rejects the artifact, the problem comes back as a
DiagnosticsCaptureFailed warning next to an empty bundle.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Sequence

from journeyqa.engine.outcomes import DiagnosticBundle, StrategyResult
from journeyqa.engine.protocols import ArtifactSink, BrowserDriver

logger = logging.getLogger("journeyqa.engine.diagnostics")


class DiagnosticsCaptureFailed(Exception):
    """Secondary failure: the diagnostic artifact itself could not be produced."""

    def __init__(self, artifact_name: str, cause: Exception) -> None:
        self.artifact_name = artifact_name
        self.cause = cause
        super().__init__(f"Diagnostics capture failed for '{artifact_name}': {type(cause).__name__}: {cause}")


def slugify(text: str) -> str:
    """Lower-case, dash-separated, filesystem-safe form of ``text``."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "unnamed"


def artifact_label(scenario_name: str, action_description: str) -> str:
    """Attributable artifact name, e.g. ``checkout-journey--activate-checkout-control-debug``."""
    if scenario_name:
        return f"{slugify(scenario_name)}--{slugify(action_description)}-debug"
    return f"{slugify(action_description)}-debug"


class DiagnosticsCapture:
    """Produces one DiagnosticBundle per exhausted action."""

    def __init__(self, sink: ArtifactSink, capture_html: bool = True) -> None:
        self._sink = sink
        self._capture_html = capture_html

    def capture_on_failure(
        self,
        driver: BrowserDriver,
        action_description: str,
        scenario_name: str = "",
        attempts: Sequence[StrategyResult] = (),
    ) -> tuple[DiagnosticBundle, DiagnosticsCaptureFailed | None]:
        """Capture a full-page screenshot for a failed action.

        Returns ``(bundle, warning)``.  ``warning`` is None when the screenshot
        was stored; otherwise it describes why it was not and
        ``bundle.screenshot_ref`` is None.  Never raises.
        """
        name = artifact_label(scenario_name, action_description)
        timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")
        warning: DiagnosticsCaptureFailed | None = None

        screenshot_ref: str | None = None
        try:
            png = driver.screenshot(full_page=True)
            screenshot_ref = self._sink.attach_artifact(name, png, "image/png")
            logger.info("Diagnostic screenshot attached: %s", screenshot_ref)
        except Exception as exc:
            warning = DiagnosticsCaptureFailed(name, exc)
            logger.warning("%s", warning)

        html_ref: str | None = None
        if self._capture_html and warning is None:
            try:
                html = driver.content()
                html_ref = self._sink.attach_artifact(f"{name}-html", html.encode("utf-8"), "text/html")
            except Exception as exc:
                # Screenshot already stored; the HTML snapshot is a bonus
                logger.debug("HTML snapshot skipped for %s: %s", name, exc)

        bundle = DiagnosticBundle(
            artifact_name=name,
            screenshot_ref=screenshot_ref,
            action_description=action_description,
            scenario_name=scenario_name,
            timestamp=timestamp,
            attempted_selectors=tuple(a.candidate.selector for a in attempts),
            html_ref=html_ref,
        )
        return bundle, warning
