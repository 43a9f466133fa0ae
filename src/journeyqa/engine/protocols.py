"""Collaborator protocols.

These protocols define the contract between the JourneyQA core and the
browser-control and artifact layers it drives.  The core never imports
Playwright; PlaywrightDriver is one implementation, the test suite ships an
in-memory one.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class BrowserDriver(Protocol):
    """One browsing context (tab) the core can act on.

    Selector descriptors are opaque strings passed through untouched.
    """

    def navigate(self, url: str) -> None: ...

    def current_url(self) -> str: ...

    def count(self, selector: str, timeout_ms: int = 0) -> int: ...

    def click(self, selector: str, timeout_ms: int) -> None: ...

    def fill(self, selector: str, text: str, timeout_ms: int) -> None: ...

    def select_option(self, selector: str, value: str, timeout_ms: int) -> None: ...

    def read_text(self, selector: str) -> str: ...

    def read_all_texts(self, selector: str) -> list[str]: ...

    def input_value(self, selector: str) -> str: ...

    def read_all_attributes(self, selector: str, name: str) -> list[str]: ...

    def on_new_context(self, callback: Callable[[BrowserDriver], None]) -> Callable[[], None]:
        """Subscribe to newly opened browsing contexts; returns an unsubscribe callable."""
        ...

    def wait(self, ms: int) -> None:
        """Yield to the browser for ``ms`` so pending events get dispatched."""
        ...

    def wait_for_load(self, timeout_ms: int) -> None:
        """Block until the current document has loaded (DOMContentLoaded)."""
        ...

    def screenshot(self, full_page: bool = True) -> bytes: ...

    def content(self) -> str: ...


@runtime_checkable
class ArtifactSink(Protocol):
    """External report sink for screenshots and other evidence."""

    def attach_artifact(self, name: str, data: bytes, mime_type: str) -> str:
        """Store ``data`` under ``name`` and return a reference to it."""
        ...
