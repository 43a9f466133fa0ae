"""Centralized defaults for the target site, timeouts and browser setup."""

# Target storefront (SauceDemo v1)
DEFAULT_BASE_URL = "https://www.saucedemo.com/v1/index.html"

# Demo password shared by every SauceDemo persona
DEFAULT_PASSWORD = "secret_sauce"

# Default viewport
DEFAULT_VIEWPORT = (1280, 720)

# Browser engines accepted by the Playwright adapter
BROWSERS = ("chromium", "firefox", "webkit")

# Timeouts (milliseconds)
DEFAULT_PRESENCE_TIMEOUT_MS = 0  # presence is a count, not a wait
DEFAULT_ACTION_TIMEOUT_MS = 5_000
DEFAULT_POPUP_TIMEOUT_MS = 3_000
DEFAULT_NAVIGATION_TIMEOUT_MS = 10_000
DEFAULT_ASSERTION_TIMEOUT_MS = 2_000  # auto-wait for visible / url_matches
SLOW_NAVIGATION_TIMEOUT_MS = 60_000

# Polling interval used while racing navigation against a new context
RACE_POLL_INTERVAL_MS = 100
