"""journeyqa run — Execute a journey for one or more personas.

Resolves config and the storefront password, loads personas and journeys
(built-ins overlaid with the project's YAML files), then runs the journey
once per persona, each in its own fresh browser session.  Prints a Rich
step table per persona, writes a markdown report plus evidence into
``.journeyqa/evidence/<run-id>/`` and exits 1 if any journey failed.
"""

from __future__ import annotations

import contextlib
import datetime as dt
import logging
import time
from pathlib import Path
from typing import Iterator

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from journeyqa.catalog import get_journey, load_journeys
from journeyqa.config import JourneyQAConfig, JourneyQAConfigError
from journeyqa.credentials import mask_secret, resolve_password
from journeyqa.engine.evidence import EvidenceStore
from journeyqa.engine.orchestrator import JourneyResult, SessionOrchestrator
from journeyqa.engine.protocols import BrowserDriver
from journeyqa.engine.report_generator import ReportGenerator, RunReport
from journeyqa.models import BROWSERS
from journeyqa.personas import PersonaProfile, get_persona, load_personas

console = Console(stderr=True)

logger = logging.getLogger("journeyqa.cli.run")

_STATUS_STYLES = {
    "passed": "green",
    "deviated": "yellow",
    "failed": "bold red",
    "skipped": "dim",
}

# ── Shared error printer ──────────────────────────────────────────────────


def _print_error(c: Console, message: str, title: str = "Error") -> None:
    c.print(Panel(f"[red]{message}[/red]", title=f"[red]{title}[/red]", border_style="red"))


# ── Viewport parser ───────────────────────────────────────────────────────


def _parse_viewport(viewport_str: str) -> tuple[int, int]:
    """Parse a 'WIDTHxHEIGHT' string into a (width, height) tuple."""
    try:
        parts = viewport_str.lower().split("x")
        if len(parts) != 2:
            raise ValueError
        return (int(parts[0]), int(parts[1]))
    except (ValueError, IndexError):
        _print_error(
            console,
            f"Invalid viewport format: {viewport_str}\n\nExpected format: WIDTHxHEIGHT (e.g., 1280x720)",
            "Config Error",
        )
        raise typer.Exit(code=2)


# ── Config builder ────────────────────────────────────────────────────────


def _resolve_project_dir() -> Path:
    """Find the .journeyqa/ project directory, searching upward from cwd."""
    current = Path.cwd()
    candidate = current / ".journeyqa"
    if candidate.is_dir():
        return candidate
    for parent in current.parents:
        candidate = parent / ".journeyqa"
        if candidate.is_dir():
            return candidate
    return current / ".journeyqa"


def _build_config(
    project_dir: Path,
    headless: bool | None = None,
    browser: str | None = None,
    base_url: str | None = None,
    viewport: tuple[int, int] | None = None,
) -> JourneyQAConfig:
    """Build a JourneyQAConfig from CLI options, merging with config.yaml if present."""
    config_path = project_dir / "config.yaml"

    if config_path.is_file():
        config = JourneyQAConfig.from_file(config_path)
    else:
        config = JourneyQAConfig._from_dict({}, project_dir)

    # CLI options override config file values
    if headless is not None:
        config.headless = headless
    if browser is not None:
        config.browser = _validate_browser(browser)
    if base_url:
        config.base_url = base_url
    if viewport is not None:
        config.viewport = viewport

    config.sauce_password = resolve_password(project_dir)
    return config


def _validate_browser(browser: str) -> str:
    name = browser.lower()
    if name not in BROWSERS:
        raise JourneyQAConfigError(f"Unknown browser: {browser}\n\nTo fix: use one of {', '.join(BROWSERS)}")
    return name


@contextlib.contextmanager
def _open_session(config: JourneyQAConfig) -> Iterator[BrowserDriver]:
    """One fresh browser context for one persona run."""
    from journeyqa.engine.playwright_driver import BrowserSession

    with BrowserSession(
        browser=config.browser,
        headless=config.headless,
        viewport=config.viewport,
    ) as driver:
        yield driver


def _orchestrator(config: JourneyQAConfig, driver: BrowserDriver, store: EvidenceStore) -> SessionOrchestrator:
    return SessionOrchestrator(
        driver,
        store,
        base_url=config.base_url,
        presence_timeout_ms=config.presence_timeout_ms,
        action_timeout_ms=config.action_timeout_ms,
        popup_timeout_ms=config.popup_timeout_ms,
        navigation_timeout_ms=config.navigation_timeout_ms,
        assertion_timeout_ms=config.assertion_timeout_ms,
    )


def _new_run_id() -> str:
    return f"JQA-RUN-{dt.datetime.now().strftime('%Y%m%d-%H%M%S')}"


# ── Rich output helpers ───────────────────────────────────────────────────


def _print_run_header(config: JourneyQAConfig, journey_id: str, personas: list[PersonaProfile]) -> None:
    info_lines = [
        f"[bold]Target:[/bold]    {config.base_url}",
        f"[bold]Journey:[/bold]   {journey_id}",
        f"[bold]Personas:[/bold]  {', '.join(p.key for p in personas)}",
        f"[bold]Browser:[/bold]   {config.browser} ({'headless' if config.headless else 'headed'})",
        f"[bold]Viewport:[/bold]  {config.viewport[0]}x{config.viewport[1]}",
        f"[bold]Password:[/bold]  {mask_secret(config.sauce_password)}",
    ]
    console.print()
    console.print(
        Panel(
            "\n".join(info_lines),
            title="[bold cyan]JourneyQA Run[/bold cyan]",
            border_style="cyan",
        )
    )
    console.print()


def _print_journey_table(result: JourneyResult) -> None:
    table = Table(title=f"{result.journey_name} -- {result.persona}", border_style="cyan")
    table.add_column("Step", style="bold")
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    table.add_column("Resolved via")
    table.add_column("Notes")

    for step in result.steps:
        notes = step.error or "; ".join(step.deviations) or ""
        if len(notes) > 80:
            notes = notes[:77] + "..."
        table.add_row(
            step.step_id,
            Text(step.status.upper(), style=_STATUS_STYLES.get(step.status, "")),
            f"{step.elapsed_ms:.0f}ms" if step.status != "skipped" else "-",
            ", ".join(step.succeeded_via) or "-",
            notes,
        )
    console.print(table)


def _print_summary_panel(report: RunReport, duration: float, report_path: Path) -> None:
    if report.passed:
        border = "green"
        verdict = "[bold green]ALL JOURNEYS PASSED[/bold green]"
    else:
        border = "red"
        verdict = "[bold red]JOURNEYS FAILED[/bold red]"

    passed = sum(1 for r in report.results if r.passed)
    summary_lines = [
        verdict,
        "",
        f"  Journeys:  {passed}/{len(report.results)} passed",
        f"  Evidence:  {len(report.attachments)} artifact(s)",
        f"  Duration:  {duration:.1f}s",
        f"  Run ID:    {report.run_id}",
        f"  Report:    {report_path}",
    ]
    console.print()
    console.print(Panel("\n".join(summary_lines), border_style=border))
    console.print()


# ── Main command ──────────────────────────────────────────────────────────


def run(
    journey: str = typer.Option(
        "purchase",
        "--journey",
        "-j",
        help="Journey ID (built-in or from .journeyqa/journeys/).  [default: purchase]",
    ),
    persona: list[str] | None = typer.Option(
        None,
        "--persona",
        "-p",
        help="Persona key; repeat for several. Default: every known persona.",
    ),
    browser: str | None = typer.Option(
        None,
        "--browser",
        help="Browser engine: chromium, firefox or webkit. Overrides config.yaml.",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Storefront URL. Overrides config.yaml.",
    ),
    viewport: str | None = typer.Option(
        None,
        "--viewport",
        help="Browser viewport as WIDTHxHEIGHT.  [default: 1280x720]",
    ),
    headless: bool | None = typer.Option(
        None,
        "--headless/--no-headless",
        help="Run browser in headless mode or visible. Overrides config.yaml.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging.",
    ),
) -> None:
    """Run a journey for one or more personas.

    \b
    Examples:
      journeyqa run
      journeyqa run --journey login --persona locked_out
      journeyqa run -j purchase -p standard -p problem --no-headless
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")

    vp = _parse_viewport(viewport) if viewport else None
    project_dir = _resolve_project_dir()

    try:
        config = _build_config(project_dir, headless=headless, browser=browser, base_url=base_url, viewport=vp)
        personas = load_personas(config.personas_dir, config.sauce_password)
        selected = [get_persona(personas, key) for key in persona] if persona else list(personas.values())
        target = get_journey(load_journeys(config.journeys_dir), journey)
    except JourneyQAConfigError as exc:
        _print_error(console, str(exc), "Config Error")
        raise typer.Exit(code=2)

    _print_run_header(config, target.id, selected)

    run_id = _new_run_id()
    run_dir = config.evidence_dir / run_id
    store = EvidenceStore(run_dir)
    start_time = dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")
    start = time.monotonic()
    results: list[JourneyResult] = []

    try:
        for profile in selected:
            console.print(f"[bold]Running {target.id} as {profile.key}...[/bold]")
            with _open_session(config) as driver:
                result = _orchestrator(config, driver, store).run(target, profile)
            results.append(result)
            _print_journey_table(result)
    except KeyboardInterrupt:
        console.print("\n[yellow]Run interrupted by user.[/yellow]")
        raise typer.Exit(code=1)
    except ImportError as exc:
        _print_error(
            console,
            f"Failed to start the browser: {exc}\n\n"
            "This usually means Playwright is missing.\n"
            "Try: pip install playwright\n"
            "Then: playwright install chromium",
            "Import Error",
        )
        raise typer.Exit(code=3)
    except Exception as exc:
        logger.exception("Unexpected error during run")
        _print_error(
            console,
            f"Unexpected error: {exc}\n\nRun with --verbose for full traceback.",
            "Infrastructure Error",
        )
        raise typer.Exit(code=3)

    duration = time.monotonic() - start

    report = RunReport(
        run_id=run_id,
        base_url=config.base_url,
        start_time=start_time,
        results=results,
        attachments=store.attachments,
    )
    run_dir.mkdir(parents=True, exist_ok=True)
    report_path = run_dir / "report.md"
    report_path.write_text(ReportGenerator().generate(report), encoding="utf-8")
    logger.info("Report written to %s", report_path)

    _print_summary_panel(report, duration, report_path)

    if not report.passed:
        raise typer.Exit(code=1)
