"""journeyqa init — Initialize a .journeyqa/ project directory.

Creates the directory structure, config template, and sample YAML files
for personas and journeys.  Built-in personas and journeys work without
any of these files; the samples show how to add or override them.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.tree import Tree

console = Console()

# ── Sample file contents ──────────────────────────────────────────────────

_SAMPLE_CONFIG = """\
# JourneyQA project configuration

# Storefront under test
base_url: "https://www.saucedemo.com/v1/index.html"

# Browser engine: chromium, firefox or webkit
browser: chromium

# Default headless mode
headless: true

# Default viewport
viewport:
  width: 1280
  height: 720

# Time budgets (milliseconds)
timeouts:
  presence: 0        # 0 = count matches right now, do not wait
  action: 5000       # per-candidate click / fill / select timeout
  popup: 3000        # how long a new tab may take to appear
  navigation: 10000  # how long a transition may take overall
  assertion: 2000    # how long visible / url checks wait for the page to settle

# Uncomment to set the storefront password here (env var SAUCE_PASSWORD takes priority)
# sauce_password: secret_sauce
"""

_SAMPLE_PERSONA = """\
persona:
  key: visual_tester
  username: visual_user
  description: "User whose product images are swapped"

  # Use environment variable references for credentials.
  # Leave unset to use the shared storefront password.
  password: "${SAUCE_PASSWORD}"

  expected_deviations:
    - broken_images
"""

_SAMPLE_JOURNEY = """\
journey:
  id: cart-badge
  name: "Cart badge"

  steps:
    - id: login
      description: "Log in and land on the inventory page"
      actions:
        - description: "enter username"
          kind: fill
          value: "{username}"
          candidates: ["#user-name", '[data-test="username"]']
        - description: "enter password"
          kind: fill
          value: "{password}"
          candidates: ["#password", '[data-test="password"]']
        - description: "submit login"
          candidates: ["#login-button", 'input[type="submit"]']
      transition: 'inventory\\.html'
      timed: true
      deviation: login_rejected
      on_deviation:
        - kind: text_contains
          selector: '[data-test="error"]'
          expected: "{expected_login_error}"
      ends_on_deviation: true

    - id: add_to_cart
      description: "Add the first product and check the badge"
      actions:
        - description: "add first item to cart"
          candidates:
            - 'button[data-test^="add-to-cart"]'
            - selector: ".inventory_item button"
              timeout_ms: 5000
              label: "first inventory button"
      assertions:
        - kind: text_contains
          selector: ".shopping_cart_badge"
          expected: "1"
      deviation: unreliable_cart
"""


def init(
    dir: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Parent directory for .journeyqa/ project. Defaults to current directory.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing .journeyqa/ directory.",
    ),
) -> None:
    """Initialize a new JourneyQA project directory.

    Creates .journeyqa/ with personas/, journeys/, evidence/ subdirectories,
    a config.yaml template, and sample YAML files.
    """
    project_dir = dir.resolve() / ".journeyqa"

    if project_dir.exists() and not force:
        console.print(
            Panel(
                f"[yellow]Directory already exists:[/yellow] {project_dir}\n\nUse [bold]--force[/bold] to overwrite.",
                title="Already Initialized",
                border_style="yellow",
            )
        )
        raise typer.Exit(code=2)

    subdirs = ["personas", "journeys", "evidence"]
    for sub in subdirs:
        (project_dir / sub).mkdir(parents=True, exist_ok=True)

    (project_dir / "config.yaml").write_text(_SAMPLE_CONFIG, encoding="utf-8")
    (project_dir / "personas" / "visual-tester.yaml").write_text(_SAMPLE_PERSONA, encoding="utf-8")
    (project_dir / "journeys" / "cart-badge.yaml").write_text(_SAMPLE_JOURNEY, encoding="utf-8")

    # Evidence holds screenshots and page HTML; keep it out of version control
    gitignore_path = project_dir.parent / ".gitignore"
    entry = ".journeyqa/evidence/"
    if gitignore_path.exists():
        existing = gitignore_path.read_text(encoding="utf-8")
        if entry not in existing:
            gitignore_path.write_text(
                existing.rstrip("\n") + f"\n\n# JourneyQA run evidence\n{entry}\n",
                encoding="utf-8",
            )
    else:
        gitignore_path.write_text(f"# JourneyQA run evidence\n{entry}\n", encoding="utf-8")

    tree = Tree(f"[bold green]{project_dir}[/bold green]", guide_style="dim")
    tree.add("[cyan]config.yaml[/cyan]")
    for sub in subdirs:
        branch = tree.add(f"[blue]{sub}/[/blue]")
        for child in sorted((project_dir / sub).iterdir()):
            if child.is_file():
                branch.add(f"[dim]{child.name}[/dim]")

    console.print()
    console.print(
        Panel(
            tree,
            title="[bold green]JourneyQA Initialized[/bold green]",
            border_style="green",
        )
    )
    console.print()
    console.print("[dim]Next steps:[/dim]")
    console.print("  1. Run [bold]playwright install chromium[/bold] to set up the browser")
    console.print("  2. Adjust [cyan].journeyqa/config.yaml[/cyan] if you target another storefront")
    console.print("  3. Add personas and journeys, or use the built-in ones")
    console.print()
    console.print("  Run: [bold]journeyqa run --journey purchase --persona standard[/bold]")
    console.print()
