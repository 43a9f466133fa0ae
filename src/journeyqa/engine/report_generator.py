"""JourneyQA Report Generator -- markdown reports for journey runs.

One report covers one run: every persona's journey result, step by step,
with timings, the selector that worked for each action, expected deviations,
failure diagnostics and the evidence that was attached along the way.
"""

from __future__ import annotations

import dataclasses
from typing import Sequence

from journeyqa.engine.evidence import Attachment
from journeyqa.engine.orchestrator import JourneyResult


@dataclasses.dataclass
class RunReport:
    """Everything a run produced, ready to render."""

    run_id: str
    base_url: str
    start_time: str
    results: list[JourneyResult]
    attachments: list[Attachment] = dataclasses.field(default_factory=list)
    comparisons: list[str] = dataclasses.field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)


class ReportGenerator:
    """Generates markdown reports from run results."""

    def generate(self, report: RunReport) -> str:
        """Generate a complete report in markdown format."""
        sections = [
            self._header(report),
            self._summary(report),
            *[self._journey_section(r) for r in report.results],
            self._deviations(report),
            self._diagnostics(report),
            self._timing_section(report),
            self._attachments_section(report.attachments),
        ]
        return "\n\n".join(s for s in sections if s)

    def _header(self, r: RunReport) -> str:
        verdict = "PASS" if r.passed else "FAIL"
        return (
            f"# JourneyQA Report: {r.run_id}\n"
            f"\n"
            f"**Target:** {r.base_url}\n"
            f"**Date:** {r.start_time}\n"
            f"**Verdict:** {verdict}"
        )

    def _summary(self, r: RunReport) -> str:
        lines = ["## Summary"]
        for result in r.results:
            ok = sum(1 for s in result.steps if s.ok)
            verdict = "PASS" if result.passed else "FAIL"
            line = (
                f"- **{result.persona}** / {result.journey_name}: {verdict} "
                f"({ok}/{len(result.steps)} steps, {result.elapsed_ms / 1000:.1f}s)"
            )
            if result.aborted_at:
                line += f", aborted at `{result.aborted_at}`"
            elif result.ended_early_at:
                line += f", ended at expected deviation in `{result.ended_early_at}`"
            lines.append(line)
        lines.extend(f"- {c}" for c in r.comparisons)
        return "\n".join(lines)

    def _journey_section(self, result: JourneyResult) -> str:
        lines = [
            f"## {result.journey_name} -- {result.persona}",
            "| Step | Result | Duration | Resolved via | Navigation | Notes |",
            "|------|--------|----------|--------------|------------|-------|",
        ]
        for step in result.steps:
            via = ", ".join(f"`{v}`" for v in step.succeeded_via) or "-"
            notes = step.error or "; ".join(step.deviations) or step.description
            if len(notes) > 80:
                notes = notes[:77] + "..."
            notes = notes.replace("|", "\\|")
            via = via.replace("|", "\\|")
            lines.append(
                f"| {step.step_id} | {step.status.upper()} | {step.elapsed_ms:.0f}ms | "
                f"{via} | {step.navigation or '-'} | {notes} |"
            )
        return "\n".join(lines)

    def _deviations(self, r: RunReport) -> str:
        rows = [
            (result.persona, step.step_id, note)
            for result in r.results
            for step in result.steps
            for note in step.deviations
        ]
        if not rows:
            return "## Expected Deviations\n\nNone recorded."
        lines = ["## Expected Deviations", ""]
        for persona, step_id, note in rows:
            lines.append(f"- **{persona} / {step_id}**: {note}")
        return "\n".join(lines)

    def _diagnostics(self, r: RunReport) -> str:
        lines: list[str] = []
        for result in r.results:
            for step in result.steps:
                if step.status != "failed":
                    continue
                lines.append(f"### {result.persona} / {step.step_id} ({step.error_type})")
                lines.append("")
                lines.append(f"{step.error}")
                bundle = step.diagnostics
                if bundle is not None:
                    lines.append("")
                    lines.append(f"- Artifact: `{bundle.artifact_name}`")
                    lines.append(f"- Screenshot: `{bundle.screenshot_ref or 'not captured'}`")
                    if bundle.html_ref:
                        lines.append(f"- Page HTML: `{bundle.html_ref}`")
                    if bundle.attempted_selectors:
                        lines.append("- Attempted selectors:")
                        lines.extend(f"  - `{s}`" for s in bundle.attempted_selectors)
                for warning in step.warnings:
                    lines.append(f"- Warning: {warning}")
                lines.append("")
        if not lines:
            return "## Failures\n\nNo failures."
        return "\n".join(["## Failures", "", *lines]).rstrip()

    def _timing_section(self, r: RunReport) -> str:
        timed = [
            (result.persona, step)
            for result in r.results
            for step in result.steps
            if step.timed and step.status != "skipped"
        ]
        if not timed:
            return "## Timing\n\nNo timed steps."
        lines = [
            "## Timing",
            "| Persona | Step | Duration (ms) |",
            "|---------|------|---------------|",
        ]
        for persona, step in timed:
            lines.append(f"| {persona} | {step.step_id} | {step.elapsed_ms:.0f} |")
        return "\n".join(lines)

    def _attachments_section(self, attachments: Sequence[Attachment]) -> str:
        if not attachments:
            return "## Evidence\n\nNo artifacts attached."
        lines = ["## Evidence", ""]
        for a in attachments:
            lines.append(f"- **{a.name}** ({a.mime_type}): `{a.path}`")
        return "\n".join(lines)
