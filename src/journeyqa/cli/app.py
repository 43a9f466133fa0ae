"""JourneyQA CLI — Main Typer entry point.

Registers all subcommands and provides --version / --verbose global options.
"""

from __future__ import annotations

import typer
from rich.console import Console

from journeyqa import __version__

TAGLINE = "Resilient end-to-end journeys for every persona."

console = Console()

# ── Version callback ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print("JourneyQA", style="bold cyan")
        console.print(f"  {TAGLINE}", style="dim")
        console.print(f"  v{__version__}\n", style="bold")
        raise typer.Exit()


# ── Main app ──────────────────────────────────────────────────────────────

app = typer.Typer(
    name="journeyqa",
    help=f"JourneyQA -- {TAGLINE}",
    rich_markup_mode="rich",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show JourneyQA version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
) -> None:
    """JourneyQA -- persona-driven UI journeys with selector fallback.

    Login, catalog, cart and checkout, for every synthetic user.
    """
    if verbose:
        import logging

        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")


# ── Register subcommands ──────────────────────────────────────────────────

from journeyqa.cli.compare import compare  # noqa: E402
from journeyqa.cli.init_cmd import init  # noqa: E402
from journeyqa.cli.run import run  # noqa: E402

app.command(name="init", help="Initialize a .journeyqa/ project directory.")(init)
app.command(name="run", help="Run a journey for one or more personas.")(run)
app.command(name="compare", help="Compare login latency between two personas.")(compare)
