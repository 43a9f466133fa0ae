"""Shared fixtures for JourneyQA unit tests.

Nothing here starts a browser: FakeDriver is an in-memory BrowserDriver
driven by a FakeClock, and FakeStorefront scripts it to behave like the
SauceDemo v1 pages the built-in journeys walk through.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

BASE_URL = "https://shop.test/v1/index.html"
INVENTORY_URL = "https://shop.test/v1/inventory.html"
CART_URL = "https://shop.test/v1/cart.html"
STEP_ONE_URL = "https://shop.test/v1/checkout-step-one.html"
STEP_TWO_URL = "https://shop.test/v1/checkout-step-two.html"
COMPLETE_URL = "https://shop.test/v1/checkout-complete.html"
ABOUT_URL = "https://saucelabs.com/"


# ---------------------------------------------------------------------------
# Fake clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Monotonic clock in whole milliseconds; only moves when told to."""

    def __init__(self) -> None:
        self.ms = 0

    def __call__(self) -> float:
        return self.ms / 1000

    def advance(self, ms: int) -> None:
        self.ms += int(ms)


# ---------------------------------------------------------------------------
# Fake browser driver
# ---------------------------------------------------------------------------

class FakeDriver:
    """In-memory BrowserDriver.

    ``elements`` maps selector -> number of matches, ``texts`` selector ->
    text contents, ``values`` selector -> input value.  ``effects`` run after
    a successful click/fill/select on a selector.  Time passes only through
    ``wait``, ``advance`` and the per-selector ``click_delay_ms``; scheduled
    events fire once their due time is reached.  ``attributes`` maps
    (selector, attribute) -> one value per match.
    """

    def __init__(self, clock: FakeClock, url: str = "about:blank", name: str = "main") -> None:
        self.clock = clock
        self.url = url
        self.name = name
        self.elements: dict[str, int] = {}
        self.texts: dict[str, list[str]] = {}
        self.values: dict[str, str] = {}
        self.attributes: dict[tuple[str, str], list[str]] = {}
        self.effects: dict[str, Callable[[FakeDriver, str], None]] = {}
        self.failing: dict[str, Exception] = {}
        self.invalid: set[str] = set()
        self.click_delay_ms: dict[str, int] = {}
        self.screenshot_error: Exception | None = None
        self.content_error: Exception | None = None
        self.navigate_error: Exception | None = None
        self.pending_url: str | None = None  # committed on wait_for_load, like a fresh popup
        self.router: Callable[[FakeDriver, str], None] | None = None
        self.calls: list[tuple[Any, ...]] = []
        self.listeners: list[Callable[[Any], None]] = []
        self._scheduled: list[tuple[int, Callable[[], None]]] = []

    # -- scripting helpers ----------------------------------------------------

    def add(self, selector: str, count: int = 1, text: str | None = None) -> FakeDriver:
        self.elements[selector] = count
        if text is not None:
            self.texts[selector] = [text] * count
        return self

    def go(self, url: str) -> None:
        """Change the URL as if the page navigated, re-rendering via the router."""
        self.url = url
        if self.router is not None:
            self.router(self, url)

    def schedule(self, delay_ms: int, fn: Callable[[], None]) -> None:
        self._scheduled.append((self.clock.ms + int(delay_ms), fn))

    def navigate_on_click(self, selector: str, url: str, after_ms: int = 0) -> None:
        def _effect(page: FakeDriver, _value: str) -> None:
            if after_ms:
                page.schedule(after_ms, lambda: page.go(url))
            else:
                page.go(url)

        self.effects[selector] = _effect

    def popup_on_click(self, selector: str, popup: FakeDriver, after_ms: int = 0) -> None:
        def _effect(page: FakeDriver, _value: str) -> None:
            if after_ms:
                page.schedule(after_ms, lambda: page.emit_new_context(popup))
            else:
                page.emit_new_context(popup)

        self.effects[selector] = _effect

    def emit_new_context(self, page: FakeDriver) -> None:
        self.calls.append(("new_context", page.name))
        for callback in list(self.listeners):
            callback(page)

    def advance(self, ms: int) -> None:
        self.clock.advance(ms)
        self._fire_due()

    def _fire_due(self) -> None:
        due = [item for item in self._scheduled if item[0] <= self.clock.ms]
        self._scheduled = [item for item in self._scheduled if item[0] > self.clock.ms]
        for _, fn in sorted(due, key=lambda item: item[0]):
            fn()

    def _interact(self, kind: str, selector: str, value: str = "") -> None:
        if selector in self.failing:
            raise self.failing[selector]
        if selector in self.click_delay_ms:
            self.advance(self.click_delay_ms[selector])
        effect = self.effects.get(selector)
        if effect is not None:
            effect(self, value)

    # -- BrowserDriver --------------------------------------------------------

    def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))
        if self.navigate_error is not None:
            raise self.navigate_error
        self.go(url)

    def current_url(self) -> str:
        return self.url

    def count(self, selector: str, timeout_ms: int = 0) -> int:
        self.calls.append(("count", selector, timeout_ms))
        if selector in self.invalid:
            raise ValueError(f"Unexpected token in selector {selector!r}")
        waited = 0
        while not self.elements.get(selector) and waited < timeout_ms:
            pause = min(50, timeout_ms - waited)
            self.advance(pause)
            waited += pause
        return self.elements.get(selector, 0)

    def click(self, selector: str, timeout_ms: int) -> None:
        self.calls.append(("click", selector, timeout_ms))
        self._interact("click", selector)

    def fill(self, selector: str, text: str, timeout_ms: int) -> None:
        self.calls.append(("fill", selector, text, timeout_ms))
        if selector in self.failing:
            raise self.failing[selector]
        self.values[selector] = text
        self._interact("fill", selector, text)

    def select_option(self, selector: str, value: str, timeout_ms: int) -> None:
        self.calls.append(("select", selector, value, timeout_ms))
        if selector in self.failing:
            raise self.failing[selector]
        self.values[selector] = value
        self._interact("select", selector, value)

    def read_text(self, selector: str) -> str:
        texts = self.texts.get(selector) or [""]
        return texts[0]

    def read_all_texts(self, selector: str) -> list[str]:
        return list(self.texts.get(selector, []))

    def input_value(self, selector: str) -> str:
        return self.values.get(selector, "")

    def read_all_attributes(self, selector: str, name: str) -> list[str]:
        return list(self.attributes.get((selector, name), []))

    def on_new_context(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        self.calls.append(("subscribe",))
        self.listeners.append(callback)

        def _unsubscribe() -> None:
            self.calls.append(("unsubscribe",))
            if callback in self.listeners:
                self.listeners.remove(callback)

        return _unsubscribe

    def wait(self, ms: int) -> None:
        self.calls.append(("wait", ms))
        self.advance(ms)

    def wait_for_load(self, timeout_ms: int) -> None:
        self.calls.append(("load", timeout_ms))
        if self.pending_url is not None:
            url, self.pending_url = self.pending_url, None
            self.go(url)

    def screenshot(self, full_page: bool = True) -> bytes:
        self.calls.append(("screenshot", full_page))
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return b"\x89PNG fake " + self.url.encode()

    def content(self) -> str:
        if self.content_error is not None:
            raise self.content_error
        return f"<html><body data-url='{self.url}'></body></html>"

    def called(self, kind: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == kind]


# ---------------------------------------------------------------------------
# Recording artifact sink
# ---------------------------------------------------------------------------

class RecordingSink:
    """ArtifactSink that keeps artifacts in memory."""

    def __init__(self, error: Exception | None = None) -> None:
        self.artifacts: list[tuple[str, bytes, str]] = []
        self.error = error

    def attach_artifact(self, name: str, data: bytes, mime_type: str) -> str:
        if self.error is not None:
            raise self.error
        self.artifacts.append((name, data, mime_type))
        return f"mem://{name}"

    @property
    def names(self) -> list[str]:
        return [a[0] for a in self.artifacts]


# ---------------------------------------------------------------------------
# Fake storefront: scripted SauceDemo v1 pages
# ---------------------------------------------------------------------------

# Default (A to Z) catalog order
_PRODUCTS = [
    ("Sauce Labs Backpack", "$29.99", "img/sauce-backpack-1200x1500.jpg"),
    ("Sauce Labs Bike Light", "$9.99", "img/bike-light-1200x1500.jpg"),
    ("Sauce Labs Bolt T-Shirt", "$15.99", "img/bolt-shirt-1200x1500.jpg"),
    ("Sauce Labs Fleece Jacket", "$49.99", "img/sauce-pullover-1200x1500.jpg"),
    ("Sauce Labs Onesie", "$7.99", "img/red-onesie-1200x1500.jpg"),
    ("Test.allTheThings() T-Shirt (Red)", "$15.99", "img/red-tatt-1200x1500.jpg"),
]
_SORT_KEYS: dict[str, tuple[Callable[[tuple[str, str, str]], Any], bool]] = {
    "az": (lambda p: p[0], False),
    "za": (lambda p: p[0], True),
    "lohi": (lambda p: float(p[1][1:]), False),
    "hilo": (lambda p: float(p[1][1:]), True),
}


class FakeStorefront:
    """Routes a FakeDriver through login, inventory, cart and checkout.

    The markup deliberately differs from the first-choice selectors in a
    few places (checkout, continue and finish controls) so the journeys
    only pass by falling back.  Per-user quirks follow the real demo users.
    """

    PASSWORD = "secret_sauce"
    USERS = ("standard_user", "locked_out_user", "problem_user", "performance_glitch_user")

    def __init__(
        self,
        clock: FakeClock,
        login_delay_ms: int = 200,
        glitch_delay_ms: int = 3000,
        about_in_new_tab: bool = False,
    ) -> None:
        self.clock = clock
        self.login_delay_ms = login_delay_ms
        self.glitch_delay_ms = glitch_delay_ms
        self.about_in_new_tab = about_in_new_tab
        self.user: str | None = None
        self.cart = 0
        self.popups: list[FakeDriver] = []
        self.driver = FakeDriver(clock)
        self.driver.router = self.render

    def render(self, page: FakeDriver, url: str) -> None:
        page.elements, page.texts, page.effects, page.attributes = {}, {}, {}, {}
        if url.endswith("inventory.html") and self.user is None:
            # Pages behind the login bounce back to it
            page.url = BASE_URL
            self._login_page(page)
        elif url.endswith("index.html"):
            self._login_page(page)
        elif url.endswith("inventory.html"):
            self._inventory_page(page)
        elif url.endswith("cart.html"):
            self._cart_page(page)
        elif url.endswith("checkout-step-one.html"):
            self._step_one_page(page)
        elif url.endswith("checkout-step-two.html"):
            page.add(".summary_info")
            page.add('a:has-text("FINISH")')
            page.navigate_on_click('a:has-text("FINISH")', COMPLETE_URL)
        elif url.endswith("checkout-complete.html"):
            page.add(".complete-header", text="THANK YOU FOR YOUR ORDER")

    def _login_page(self, page: FakeDriver) -> None:
        page.add(".login_logo")
        page.add("#user-name").add("#password").add("#login-button")

        def _submit(p: FakeDriver, _value: str) -> None:
            username = p.values.get("#user-name", "")
            password = p.values.get("#password", "")
            if username == "locked_out_user":
                p.add('[data-test="error"]', text="Epic sadface: Sorry, this user has been locked out.")
                return
            if username not in self.USERS or password != self.PASSWORD:
                p.add('[data-test="error"]', text="Epic sadface: Username and password do not match")
                return
            self.user = username
            delay = self.glitch_delay_ms if username == "performance_glitch_user" else self.login_delay_ms
            p.schedule(delay, lambda: p.go(INVENTORY_URL))

        page.effects["#login-button"] = _submit

    def _inventory_page(self, page: FakeDriver) -> None:
        page.add(".inventory_list")
        page.add(".inventory_item", 6)
        self._show_products(page, _PRODUCTS)
        page.add("img.inventory_item_img", 6)
        if self.user == "problem_user":
            # Every product shows the same placeholder picture
            page.attributes[("img.inventory_item_img", "src")] = ["img/sl-404.jpg"] * 6
        else:
            page.attributes[("img.inventory_item_img", "src")] = [src for _, _, src in _PRODUCTS]
        page.add(".product_sort_container")
        page.add('.inventory_item button:has-text("ADD TO CART")', 6)
        page.add("a.shopping_cart_link")
        page.add(".bm-burger-button")
        if self.cart:
            page.add(".shopping_cart_badge", text=str(self.cart))

        def _sort(p: FakeDriver, value: str) -> None:
            # The problem user's sort control ignores the selection
            if value in _SORT_KEYS and self.user != "problem_user":
                key, reverse = _SORT_KEYS[value]
                self._show_products(p, sorted(_PRODUCTS, key=key, reverse=reverse))

        def _add(p: FakeDriver, _value: str) -> None:
            self.cart += 1
            p.add(".shopping_cart_badge", text=str(self.cart))

        def _menu(p: FakeDriver, _value: str) -> None:
            p.add(".bm-menu")
            p.add("#about_sidebar_link").add("#logout_sidebar_link").add("#reset_sidebar_link")
            if self.about_in_new_tab:
                # A fresh tab reports about:blank until its document loads
                popup = FakeDriver(self.clock, name="about-tab")
                popup.pending_url = ABOUT_URL
                self.popups.append(popup)
                p.popup_on_click("#about_sidebar_link", popup, after_ms=150)
            else:
                p.navigate_on_click("#about_sidebar_link", ABOUT_URL, after_ms=300)
            p.effects["#logout_sidebar_link"] = _logout
            p.effects["#reset_sidebar_link"] = _reset

        def _logout(p: FakeDriver, _value: str) -> None:
            self.user = None
            self.cart = 0
            p.schedule(100, lambda: p.go(BASE_URL))

        def _reset(p: FakeDriver, _value: str) -> None:
            self.cart = 0
            p.elements.pop(".shopping_cart_badge", None)
            p.texts.pop(".shopping_cart_badge", None)

        page.effects[".product_sort_container"] = _sort
        page.effects['.inventory_item button:has-text("ADD TO CART")'] = _add
        page.navigate_on_click("a.shopping_cart_link", CART_URL)
        page.effects[".bm-burger-button"] = _menu

    @staticmethod
    def _show_products(page: FakeDriver, products: list[tuple[str, str, str]]) -> None:
        page.texts[".inventory_item_name"] = [name for name, _, _ in products]
        page.texts[".inventory_item_price"] = [price for _, price, _ in products]

    def _cart_page(self, page: FakeDriver) -> None:
        if self.cart:
            page.add(".cart_item", self.cart)
        page.add(".checkout_button")
        page.navigate_on_click(".checkout_button", STEP_ONE_URL)

    def _step_one_page(self, page: FakeDriver) -> None:
        page.add('[data-test="firstName"]').add('[data-test="lastName"]').add('[data-test="postalCode"]')
        page.add('input[value="CONTINUE"]')
        page.navigate_on_click('input[value="CONTINUE"]', STEP_TWO_URL)
        if self.user == "problem_user":
            # The last-name field swallows what is typed into it
            page.effects['[data-test="lastName"]'] = lambda p, _v: p.values.pop('[data-test="lastName"]', None)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def driver(clock: FakeClock) -> FakeDriver:
    return FakeDriver(clock, url="https://shop.test/v1/cart.html")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def storefront(clock: FakeClock) -> FakeStorefront:
    return FakeStorefront(clock)


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary .journeyqa/ project directory with full structure."""
    project_dir = tmp_path / ".journeyqa"
    for sub in ("personas", "journeys", "evidence"):
        (project_dir / sub).mkdir(parents=True)

    config_data = {
        "base_url": BASE_URL,
        "headless": True,
        "viewport": {"width": 1280, "height": 720},
        "timeouts": {"action": 2000, "popup": 1000},
    }
    (project_dir / "config.yaml").write_text(
        yaml.dump(config_data, default_flow_style=False), encoding="utf-8"
    )
    return project_dir


@pytest.fixture
def sample_journey_yaml() -> str:
    """A minimal journey with one click step and one assertion."""
    return """\
journey:
  id: badge
  name: "Cart badge"
  steps:
    - id: add
      description: "Add one item"
      actions:
        - description: "add item"
          candidates:
            - "#add-to-cart"
            - selector: ".inventory_item button"
              timeout_ms: 1500
              label: "first item button"
      assertions:
        - kind: text_contains
          selector: ".shopping_cart_badge"
          expected: "1"
      deviation: unreliable_cart
"""
