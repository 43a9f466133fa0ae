"""journeyqa compare — Differential timing between two personas.

Times one step (the login by default) for a persona that is expected to be
slow and for a baseline persona, each in its own fresh browser session, and
checks that the slow one really is slower.  Exits 1 when it is not, or when
either measurement did not complete.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from journeyqa.catalog import get_journey, load_journeys
from journeyqa.cli.run import (
    _build_config,
    _open_session,
    _orchestrator,
    _print_error,
    _resolve_project_dir,
)
from journeyqa.config import JourneyQAConfigError
from journeyqa.engine.evidence import EvidenceStore
from journeyqa.engine.orchestrator import StepResult
from journeyqa.engine.timing import compare_latency
from journeyqa.personas import get_persona, load_personas

console = Console(stderr=True)

logger = logging.getLogger("journeyqa.cli.compare")


def compare(
    slow: str = typer.Option(
        "performance_glitch",
        "--slow",
        help="Persona expected to be slower.  [default: performance_glitch]",
    ),
    fast: str = typer.Option(
        "standard",
        "--fast",
        help="Baseline persona.  [default: standard]",
    ),
    journey: str = typer.Option(
        "login",
        "--journey",
        "-j",
        help="Journey containing the step to time.  [default: login]",
    ),
    step: str = typer.Option(
        "login",
        "--step",
        "-s",
        help="Step to time.  [default: login]",
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
    """Check that one persona's step is slower than another's.

    \b
    Examples:
      journeyqa compare
      journeyqa compare --slow performance_glitch --fast problem
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")

    if slow == fast:
        _print_error(console, f"--slow and --fast are both '{slow}'", "Config Error")
        raise typer.Exit(code=2)

    project_dir = _resolve_project_dir()
    try:
        config = _build_config(project_dir, headless=headless)
        personas = load_personas(config.personas_dir, config.sauce_password)
        slow_persona = get_persona(personas, slow)
        fast_persona = get_persona(personas, fast)
        target = get_journey(load_journeys(config.journeys_dir), journey).until(step)
    except (JourneyQAConfigError, ValueError) as exc:
        _print_error(console, str(exc), "Config Error")
        raise typer.Exit(code=2)

    for profile in (slow_persona, fast_persona):
        if not profile.can_log_in:
            _print_error(
                console,
                f"Persona '{profile.key}' is expected to be rejected at login,\n"
                "so its timings do not measure the storefront.\n\n"
                "To fix: pick personas that can log in",
                "Config Error",
            )
            raise typer.Exit(code=2)

    store = EvidenceStore(config.evidence_dir / "compare")
    measured: dict[str, StepResult] = {}
    try:
        for profile in (slow_persona, fast_persona):
            console.print(f"[bold]Timing {step} as {profile.key}...[/bold]")
            with _open_session(config) as driver:
                measured[profile.key] = _orchestrator(config, driver, store).measure_step(
                    target, profile, step,
                )
    except KeyboardInterrupt:
        console.print("\n[yellow]Run interrupted by user.[/yellow]")
        raise typer.Exit(code=1)
    except Exception as exc:
        logger.exception("Unexpected error during compare")
        _print_error(
            console,
            f"Unexpected error: {exc}\n\nRun with --verbose for full traceback.",
            "Infrastructure Error",
        )
        raise typer.Exit(code=3)

    table = Table(title=f"{target.name}: {step}", border_style="cyan")
    table.add_column("Persona", style="bold")
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    for key, result in measured.items():
        table.add_row(key, result.status.upper(), f"{result.elapsed_ms:.0f}ms")
    console.print(table)

    incomplete = [k for k, r in measured.items() if r.status != "passed"]
    if incomplete:
        _print_error(
            console,
            f"Step '{step}' did not pass for: {', '.join(incomplete)}\n\n"
            + "\n".join(measured[k].error or "; ".join(measured[k].deviations) for k in incomplete),
            "Measurement Failed",
        )
        raise typer.Exit(code=1)

    holds, message = compare_latency(
        slow_persona.key, measured[slow_persona.key].elapsed_ms,
        fast_persona.key, measured[fast_persona.key].elapsed_ms,
        min_gap_ms=slow_persona.min_added_latency_ms,
    )
    if holds:
        console.print(Panel(f"[green]{message}[/green]", title="[green]Slower as expected[/green]", border_style="green"))
    else:
        console.print(Panel(f"[red]{message}[/red]", title="[red]Not slower than expected[/red]", border_style="red"))
        raise typer.Exit(code=1)
