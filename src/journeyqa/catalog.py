"""SauceDemo logical actions and built-in journeys.

Candidate lists are ordered from the most specific selector to the most
forgiving one, so that a markup change degrades to a fallback instead of
breaking the journey, and the report shows which selector still works.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from journeyqa.config import JourneyQAConfigError
from journeyqa.engine.orchestrator import Assertion, Journey, JourneyDefinitionError, JourneyStep
from journeyqa.engine.outcomes import CandidateStrategy, LogicalAction
from journeyqa.personas import (
    BROKEN_IMAGES,
    LOGIN_REJECTED,
    UNRELIABLE_CART,
    UNRELIABLE_FORM_INPUT,
    UNRELIABLE_SORT,
)

logger = logging.getLogger("journeyqa.catalog")

# -- Logical actions ----------------------------------------------------------

ENTER_USERNAME = LogicalAction.of(
    "enter username",
    "#user-name",
    '[data-test="username"]',
    'input[name="user-name"]',
    kind="fill",
    value="{username}",
)

ENTER_PASSWORD = LogicalAction.of(
    "enter password",
    "#password",
    '[data-test="password"]',
    'input[type="password"]',
    kind="fill",
    value="{password}",
)

SUBMIT_LOGIN = LogicalAction.of(
    "submit login",
    "#login-button",
    '[data-test="login-button"]',
    'input[type="submit"]',
)


def _sort_action(value: str, label: str) -> LogicalAction:
    return LogicalAction.of(
        f"sort products by {label}",
        ".product_sort_container",
        '[data-test="product_sort_container"]',
        "select",
        kind="select",
        value=value,
    )


SORT_NAME_A_Z = _sort_action("az", "name A to Z")
SORT_NAME_Z_A = _sort_action("za", "name Z to A")
SORT_PRICE_LOW_HIGH = _sort_action("lohi", "price low to high")
SORT_PRICE_HIGH_LOW = _sort_action("hilo", "price high to low")

ADD_FIRST_ITEM = LogicalAction.of(
    "add first item to cart",
    '.inventory_item button:has-text("ADD TO CART")',
    'button[data-test^="add-to-cart"]',
    ".inventory_item button",
)

OPEN_CART = LogicalAction.of(
    "open cart",
    "a.shopping_cart_link",
    ".shopping_cart_link",
    '[data-test="shopping-cart-link"]',
)

ACTIVATE_CHECKOUT = LogicalAction(
    description="activate checkout control",
    candidates=(
        CandidateStrategy('button[data-test="checkout"]', timeout_ms=5000),
        CandidateStrategy("button#checkout", timeout_ms=5000),
        CandidateStrategy(".checkout_button", timeout_ms=5000),
        CandidateStrategy('button:has-text("Checkout")', timeout_ms=5000),
        CandidateStrategy("text=Checkout", timeout_ms=5000),
        CandidateStrategy('a:has-text("Checkout")', timeout_ms=5000),
        CandidateStrategy('input[value="Checkout"]', timeout_ms=5000),
    ),
)

ENTER_FIRST_NAME = LogicalAction.of(
    "enter first name", '[data-test="firstName"]', "#first-name", kind="fill", value="Test",
)
ENTER_LAST_NAME = LogicalAction.of(
    "enter last name", '[data-test="lastName"]', "#last-name", kind="fill", value="User",
)
ENTER_POSTAL_CODE = LogicalAction.of(
    "enter postal code", '[data-test="postalCode"]', "#postal-code", kind="fill", value="12345",
)

CONTINUE_CHECKOUT = LogicalAction.of(
    "continue checkout",
    'button[data-test="continue"]',
    '[data-test="continue"]',
    "button#continue",
    'button:has-text("Continue")',
    "text=Continue",
    'input[value="Continue"]',
    'input[value="CONTINUE"]',
)

FINISH_CHECKOUT = LogicalAction.of(
    "finish purchase",
    'button[data-test="finish"]',
    '[data-test="finish"]',
    "button#finish",
    'button:has-text("Finish")',
    "text=Finish",
    'a:has-text("FINISH")',
    'input[value="Finish"]',
)

OPEN_MENU = LogicalAction.of(
    "open burger menu",
    ".bm-burger-button",
    "#react-burger-menu-btn",
    'button:has-text("Open Menu")',
)

OPEN_ABOUT = LogicalAction.of(
    "open about page",
    "#about_sidebar_link",
    '[data-test="about-sidebar-link"]',
    'a:has-text("About")',
)

RESET_APP_STATE = LogicalAction.of(
    "reset app state",
    "#reset_sidebar_link",
    '[data-test="reset-sidebar-link"]',
    'a:has-text("Reset App State")',
)

LOG_OUT = LogicalAction.of(
    "log out",
    "#logout_sidebar_link",
    '[data-test="logout-sidebar-link"]',
    'a:has-text("Logout")',
)

# -- Steps ----------------------------------------------------------------------

LOGIN_STEP = JourneyStep(
    id="login",
    description="Log in and land on the inventory page",
    actions=(ENTER_USERNAME, ENTER_PASSWORD, SUBMIT_LOGIN),
    transition=r"inventory\.html",
    assertions=(Assertion("visible", ".inventory_list"),),
    timed=True,
    deviation=LOGIN_REJECTED,
    on_deviation=(Assertion("text_contains", '[data-test="error"]', "{expected_login_error}"),),
    ends_on_deviation=True,
)

BROWSE_STEP = JourneyStep(
    id="browse",
    description="Sort the catalog by price and check the order",
    actions=(SORT_PRICE_LOW_HIGH,),
    assertions=(
        Assertion("count_equals", ".inventory_item", 6),
        Assertion("sorted", ".inventory_item_price", by="price", order="asc"),
    ),
    timed=True,
    deviation=UNRELIABLE_SORT,
)

ADD_TO_CART_STEP = JourneyStep(
    id="add_to_cart",
    description="Add the first product to the cart",
    actions=(ADD_FIRST_ITEM,),
    assertions=(Assertion("text_contains", ".shopping_cart_badge", "1"),),
    timed=True,
    deviation=UNRELIABLE_CART,
)

CART_STEP = JourneyStep(
    id="cart",
    description="Open the cart and find the item there",
    actions=(OPEN_CART,),
    transition=r"cart\.html",
    assertions=(Assertion("count_equals", ".cart_item", 1),),
    capture=True,
    deviation=UNRELIABLE_CART,
)

CHECKOUT_STEP = JourneyStep(
    id="checkout",
    description="Start checkout",
    actions=(ACTIVATE_CHECKOUT,),
    transition=r"checkout-step-one\.html",
)

INFORMATION_STEP = JourneyStep(
    id="information",
    description="Fill in the buyer's details",
    actions=(ENTER_FIRST_NAME, ENTER_LAST_NAME, ENTER_POSTAL_CODE),
    assertions=(Assertion("input_value", '[data-test="lastName"]', "User"),),
    deviation=UNRELIABLE_FORM_INPUT,
    ends_on_deviation=True,
)

OVERVIEW_STEP = JourneyStep(
    id="overview",
    description="Continue to the order overview",
    actions=(CONTINUE_CHECKOUT,),
    transition=r"checkout-step-two\.html",
    assertions=(Assertion("visible", ".summary_info"),),
    capture=True,
)

COMPLETE_STEP = JourneyStep(
    id="complete",
    description="Finish the purchase",
    actions=(FINISH_CHECKOUT,),
    transition=r"checkout-complete\.html",
    assertions=(Assertion("text_contains", ".complete-header", "THANK YOU FOR YOUR ORDER"),),
    capture=True,
)

MENU_STEP = JourneyStep(
    id="menu",
    description="Open the side menu",
    actions=(OPEN_MENU,),
    assertions=(Assertion("visible", ".bm-menu"),),
)

ABOUT_STEP = JourneyStep(
    id="about",
    description="Follow the About link (new tab or same tab)",
    actions=(OPEN_ABOUT,),
    transition=r"saucelabs\.com",
    assertions=(Assertion("url_matches", expected=r"saucelabs\.com"),),
)

IMAGES_STEP = JourneyStep(
    id="images",
    description="Every product shows its own picture",
    assertions=(
        Assertion("visible", "img.inventory_item_img"),
        Assertion("distinct", "img.inventory_item_img", attribute="src"),
    ),
    deviation=BROKEN_IMAGES,
)


def _sort_step(step_id: str, action: LogicalAction, by: str, order: str) -> JourneyStep:
    return JourneyStep(
        id=step_id,
        description=action.description,
        actions=(action,),
        assertions=(
            Assertion(
                "sorted",
                ".inventory_item_price" if by == "price" else ".inventory_item_name",
                by=by,
                order=order,
            ),
        ),
        deviation=UNRELIABLE_SORT,
    )


SORT_STEPS = (
    _sort_step("sort_az", SORT_NAME_A_Z, "name", "asc"),
    _sort_step("sort_za", SORT_NAME_Z_A, "name", "desc"),
    _sort_step("sort_lohi", SORT_PRICE_LOW_HIGH, "price", "asc"),
    _sort_step("sort_hilo", SORT_PRICE_HIGH_LOW, "price", "desc"),
)

RESET_STEP = JourneyStep(
    id="reset",
    description="Reset app state from the menu and lose the cart badge",
    actions=(RESET_APP_STATE,),
    assertions=(Assertion("absent", ".shopping_cart_badge"),),
)

LOGOUT_STEP = JourneyStep(
    id="logout",
    description="Log out and return to the login page",
    actions=(LOG_OUT,),
    transition=r"index\.html",
    assertions=(Assertion("visible", ".login_logo"),),
)

DIRECT_ACCESS_STEP = JourneyStep(
    id="direct_access",
    description="Open the inventory without logging in and land on the login page",
    goto="inventory.html",
    assertions=(
        Assertion("url_matches", expected=r"index\.html"),
        Assertion("visible", ".login_logo"),
    ),
)

# -- Journeys -------------------------------------------------------------------

LOGIN_JOURNEY = Journey(id="login", name="Login", steps=(LOGIN_STEP,))

PURCHASE_JOURNEY = Journey(
    id="purchase",
    name="Purchase flow",
    steps=(
        LOGIN_STEP,
        BROWSE_STEP,
        ADD_TO_CART_STEP,
        CART_STEP,
        CHECKOUT_STEP,
        INFORMATION_STEP,
        OVERVIEW_STEP,
        COMPLETE_STEP,
    ),
)

ABOUT_JOURNEY = Journey(id="about", name="About link", steps=(LOGIN_STEP, MENU_STEP, ABOUT_STEP))

SORTING_JOURNEY = Journey(
    id="sorting",
    name="Catalog sorting and images",
    steps=(LOGIN_STEP, IMAGES_STEP) + SORT_STEPS,
)

LOGOUT_JOURNEY = Journey(
    id="logout",
    name="Reset and logout",
    steps=(LOGIN_STEP, ADD_TO_CART_STEP, MENU_STEP, RESET_STEP, LOGOUT_STEP),
)

# Needs a fresh session: nobody is logged in yet
DIRECT_ACCESS_JOURNEY = Journey(id="direct_access", name="Inventory without login", steps=(DIRECT_ACCESS_STEP,))

BUILTIN_JOURNEYS: dict[str, Journey] = {
    j.id: j
    for j in (
        LOGIN_JOURNEY,
        PURCHASE_JOURNEY,
        ABOUT_JOURNEY,
        SORTING_JOURNEY,
        LOGOUT_JOURNEY,
        DIRECT_ACCESS_JOURNEY,
    )
}


def load_journeys(journeys_dir: Path | None) -> dict[str, Journey]:
    """Return built-in journeys overlaid with YAML journeys from ``journeys_dir``."""
    journeys = dict(BUILTIN_JOURNEYS)
    if journeys_dir is None or not journeys_dir.is_dir():
        return journeys
    for path in sorted(journeys_dir.glob("*.yaml")):
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        try:
            journey = Journey.from_dict(data)
        except (JourneyDefinitionError, KeyError, TypeError) as exc:
            raise JourneyQAConfigError(f"Invalid journey file {path}: {exc}") from exc
        logger.debug("Loaded journey %s from %s", journey.id, path)
        journeys[journey.id] = journey
    return journeys


def get_journey(journeys: dict[str, Journey], journey_id: str) -> Journey:
    if journey_id not in journeys:
        raise JourneyQAConfigError(
            f"Unknown journey: {journey_id}\n\n"
            f"Available: {', '.join(sorted(journeys))}"
        )
    return journeys[journey_id]
