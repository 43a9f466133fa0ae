"""JourneyQA Playwright adapter -- BrowserDriver over a Playwright page.

BrowserSession owns the Playwright lifecycle for one isolated browser
context (one session per persona run).  PlaywrightDriver wraps a single page
and is what the core sees; a popup opened from it is handed to listeners as
another PlaywrightDriver.

Uses the sync API: events such as ``page`` on the context are dispatched
while a Playwright call is in progress, which is why ``wait`` goes through
``page.wait_for_timeout`` rather than ``time.sleep``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from journeyqa.models import BROWSERS, DEFAULT_VIEWPORT

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger("journeyqa.engine.playwright_driver")


class PlaywrightDriver:
    """BrowserDriver implementation backed by a Playwright ``Page``."""

    # Timeout for reading text / values from an element that is already present (ms)
    READ_TIMEOUT_MS = 5_000

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def page(self) -> Page:
        return self._page

    def navigate(self, url: str) -> None:
        self._page.goto(url, wait_until="domcontentloaded")

    def current_url(self) -> str:
        return self._page.url

    def count(self, selector: str, timeout_ms: int = 0) -> int:
        locator = self._page.locator(selector)
        if timeout_ms > 0:
            from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

            try:
                locator.first.wait_for(state="attached", timeout=timeout_ms)
            except PlaywrightTimeoutError:
                return 0
        return locator.count()

    def click(self, selector: str, timeout_ms: int) -> None:
        self._page.locator(selector).first.click(timeout=timeout_ms)

    def fill(self, selector: str, text: str, timeout_ms: int) -> None:
        self._page.locator(selector).first.fill(text, timeout=timeout_ms)

    def select_option(self, selector: str, value: str, timeout_ms: int) -> None:
        self._page.locator(selector).first.select_option(value, timeout=timeout_ms)

    def read_text(self, selector: str) -> str:
        return self._page.locator(selector).first.text_content(timeout=self.READ_TIMEOUT_MS) or ""

    def read_all_texts(self, selector: str) -> list[str]:
        return self._page.locator(selector).all_text_contents()

    def input_value(self, selector: str) -> str:
        return self._page.locator(selector).first.input_value(timeout=self.READ_TIMEOUT_MS)

    def read_all_attributes(self, selector: str, name: str) -> list[str]:
        return self._page.locator(selector).evaluate_all(
            "(els, name) => els.map(el => el.getAttribute(name) || '')", name,
        )

    def on_new_context(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        context = self._page.context

        def _handler(new_page: Page) -> None:
            logger.debug("New browsing context opened: %s", new_page.url)
            callback(PlaywrightDriver(new_page))

        context.on("page", _handler)
        return lambda: context.remove_listener("page", _handler)

    def wait(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def wait_for_load(self, timeout_ms: int) -> None:
        # A popup reports about:blank until its first document commits
        self._page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)

    def screenshot(self, full_page: bool = True) -> bytes:
        return self._page.screenshot(full_page=full_page)

    def content(self) -> str:
        return self._page.content()


class BrowserSession:
    """One Playwright browser + context, started and stopped explicitly.

    Usable as a context manager::

        with BrowserSession(headless=True) as driver:
            orchestrator = SessionOrchestrator(driver, sink)
    """

    def __init__(
        self,
        browser: str = "chromium",
        headless: bool = True,
        viewport: tuple[int, int] = DEFAULT_VIEWPORT,
        ignore_https_errors: bool = True,
    ) -> None:
        if browser not in BROWSERS:
            raise ValueError(f"Unknown browser: {browser} (expected one of {BROWSERS})")
        self._browser_name = browser
        self._headless = headless
        self._viewport = viewport
        self._ignore_https_errors = ignore_https_errors

        # Managed lifecycle -- set by start()/stop()
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    def start(self) -> PlaywrightDriver:
        """Launch the browser and open a fresh context with one page."""
        from playwright.sync_api import sync_playwright

        self._playwright = sync_playwright().start()
        launcher = getattr(self._playwright, self._browser_name)
        self._browser = launcher.launch(headless=self._headless)
        self._context = self._browser.new_context(
            viewport={"width": self._viewport[0], "height": self._viewport[1]},
            ignore_https_errors=self._ignore_https_errors,
        )
        logger.info(
            "Browser session started: %s headless=%s viewport=%dx%d",
            self._browser_name, self._headless, self._viewport[0], self._viewport[1],
        )
        return PlaywrightDriver(self._context.new_page())

    def stop(self) -> None:
        """Close the context, browser and Playwright. Safe to call twice."""
        for closer in (
            lambda: self._context and self._context.close(),
            lambda: self._browser and self._browser.close(),
            lambda: self._playwright and self._playwright.stop(),
        ):
            try:
                closer()
            except Exception as exc:
                logger.debug("Ignoring error during browser shutdown: %s", exc)
        self._context = None
        self._browser = None
        self._playwright = None

    def __enter__(self) -> PlaywrightDriver:
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
