"""Unit tests for 'journeyqa run' and 'journeyqa compare' without a browser.

The browser session is swapped for a FakeStorefront driver, and the
orchestrator for one driven by the same FakeClock.
"""

from __future__ import annotations

import contextlib
from pathlib import Path

import pytest
from typer.testing import CliRunner

from journeyqa.cli import compare as compare_cmd
from journeyqa.cli import run as run_cmd
from journeyqa.cli.app import app
from journeyqa.engine.orchestrator import SessionOrchestrator

from conftest import FakeClock, FakeStorefront

runner = CliRunner()


@pytest.fixture
def project(tmp_project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_project_dir.parent)
    monkeypatch.delenv("SAUCE_PASSWORD", raising=False)
    return tmp_project_dir


@pytest.fixture
def storefront_options() -> dict:
    """Keyword arguments for every FakeStorefront the CLI opens."""
    return {}


@pytest.fixture
def fake_browser(monkeypatch: pytest.MonkeyPatch, storefront_options: dict) -> list[FakeStorefront]:
    """Every opened session gets a fresh storefront on a shared fake clock."""
    clock = FakeClock()
    opened: list[FakeStorefront] = []

    @contextlib.contextmanager
    def _open_session(config):
        storefront = FakeStorefront(clock, **storefront_options)
        opened.append(storefront)
        yield storefront.driver

    def _orchestrator(config, driver, store):
        return SessionOrchestrator(
            driver,
            store,
            base_url=config.base_url,
            popup_timeout_ms=config.popup_timeout_ms,
            navigation_timeout_ms=config.navigation_timeout_ms,
            assertion_timeout_ms=config.assertion_timeout_ms,
            clock=clock,
        )

    for module in (run_cmd, compare_cmd):
        monkeypatch.setattr(module, "_open_session", _open_session)
        monkeypatch.setattr(module, "_orchestrator", _orchestrator)
    return opened


# ---------------------------------------------------------------------------
# 1. journeyqa run
# ---------------------------------------------------------------------------

class TestRunCommand:
    def test_purchase_passes_and_writes_report(self, project, fake_browser):
        result = runner.invoke(app, ["run", "--journey", "purchase", "--persona", "standard"])

        assert result.exit_code == 0, result.output
        assert len(fake_browser) == 1
        reports = list((project / "evidence").glob("JQA-RUN-*/report.md"))
        assert len(reports) == 1
        md = reports[0].read_text(encoding="utf-8")
        assert "**Verdict:** PASS" in md
        assert "purchase-standard-complete" in md

    def test_one_session_per_persona(self, project, fake_browser):
        result = runner.invoke(app, ["run", "-j", "purchase", "-p", "standard", "-p", "problem"])

        assert result.exit_code == 0, result.output
        assert len(fake_browser) == 2
        assert fake_browser[0].driver is not fake_browser[1].driver

    def test_failed_journey_exits_1(self, project, fake_browser, monkeypatch):
        monkeypatch.setenv("SAUCE_PASSWORD", "wrong-password")

        result = runner.invoke(app, ["run", "-j", "login", "-p", "standard"])

        assert result.exit_code == 1
        md = next((project / "evidence").glob("JQA-RUN-*/report.md")).read_text(encoding="utf-8")
        assert "NavigationTimedOut" in md

    def test_unknown_persona_is_config_error(self, project, fake_browser):
        result = runner.invoke(app, ["run", "-p", "nobody"])

        assert result.exit_code == 2
        assert fake_browser == []

    def test_bad_viewport_is_config_error(self, project, fake_browser):
        result = runner.invoke(app, ["run", "--viewport", "wide"])

        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# 2. journeyqa compare
# ---------------------------------------------------------------------------

class TestCompareCommand:
    def test_glitch_slower_than_standard(self, project, fake_browser):
        result = runner.invoke(app, ["compare"])

        assert result.exit_code == 0, result.output
        assert len(fake_browser) == 2

    def test_gap_below_persona_baseline_fails(self, project, fake_browser, storefront_options):
        # Slower, but by 800ms against a 2500ms baseline
        storefront_options["glitch_delay_ms"] = 1000

        result = runner.invoke(app, ["compare"])

        assert result.exit_code == 1

    def test_reversed_comparison_fails(self, project, fake_browser):
        result = runner.invoke(app, ["compare", "--slow", "standard", "--fast", "performance_glitch"])

        assert result.exit_code == 1

    def test_locked_out_persona_rejected(self, project, fake_browser):
        result = runner.invoke(app, ["compare", "--slow", "locked_out"])

        assert result.exit_code == 2
        assert fake_browser == []

    def test_same_persona_rejected(self, project, fake_browser):
        result = runner.invoke(app, ["compare", "--slow", "standard", "--fast", "standard"])

        assert result.exit_code == 2

    def test_unknown_step_rejected(self, project, fake_browser):
        result = runner.invoke(app, ["compare", "--step", "checkout"])

        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# 3. Global options
# ---------------------------------------------------------------------------

class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
