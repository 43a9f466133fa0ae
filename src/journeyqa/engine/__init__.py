"""JourneyQA engine -- resilient action resolution and journey execution.

Provides:
- LocatorStrategyResolver: ordered selector fallback for logical actions
- NavigationRaceCoordinator: races same-page navigation against a new context
- TimingInstrumentedAction: raw duration measurement for persona comparisons
- DiagnosticsCapture: one screenshot bundle per exhausted action
- SessionOrchestrator: runs a journey for a persona, step by step
- EvidenceStore / ReportGenerator: artifacts and markdown reports
"""

from journeyqa.engine.diagnostics import DiagnosticsCapture, DiagnosticsCaptureFailed
from journeyqa.engine.evidence import Attachment, EvidenceStore
from journeyqa.engine.navigation import NavigationRaceCoordinator, NavigationTimedOut
from journeyqa.engine.orchestrator import (
    Assertion,
    AssertionMismatch,
    Journey,
    JourneyResult,
    JourneyStep,
    SessionOrchestrator,
    StepResult,
)
from journeyqa.engine.outcomes import (
    ActionOutcome,
    CandidateStrategy,
    DiagnosticBundle,
    LogicalAction,
    NavigationRaceOutcome,
    RaceKind,
    StrategyResult,
    StrategyStatus,
)
from journeyqa.engine.report_generator import ReportGenerator, RunReport
from journeyqa.engine.resolver import LocatorStrategyResolver, StrategyExhausted
from journeyqa.engine.timing import TimingInstrumentedAction

# PlaywrightDriver and BrowserSession are NOT eagerly imported here so the
# core stays importable without a browser install:
#   from journeyqa.engine.playwright_driver import BrowserSession, PlaywrightDriver

__all__ = [
    "ActionOutcome",
    "Assertion",
    "AssertionMismatch",
    "Attachment",
    "CandidateStrategy",
    "DiagnosticBundle",
    "DiagnosticsCapture",
    "DiagnosticsCaptureFailed",
    "EvidenceStore",
    "Journey",
    "JourneyResult",
    "JourneyStep",
    "LocatorStrategyResolver",
    "LogicalAction",
    "NavigationRaceCoordinator",
    "NavigationRaceOutcome",
    "NavigationTimedOut",
    "RaceKind",
    "ReportGenerator",
    "RunReport",
    "SessionOrchestrator",
    "StepResult",
    "StrategyExhausted",
    "StrategyResult",
    "StrategyStatus",
    "TimingInstrumentedAction",
]
