"""JourneyQA -- resilient persona-driven UI journey verification."""

__version__ = "0.1.0"
