"""Long-lived Playwright browser used by the Maps scraper."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence

from playwright.sync_api import Error as PlaywrightError, sync_playwright

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
)
CONSENT_TITLE_MARKERS = ("Before you continue", "Innan du fortsätter", "consent", "cookie")
CONSENT_BUTTON_SELECTORS = (
    "[data-testid='accept-button']",
    "button[data-value='accept']",
    "button[data-value='I agree']",
    "button:has-text('Accept all')",
    "button:has-text('Accept')",
    "button:has-text('I agree')",
    "#L2AGLb",
    ".QS5gu",
    "[jsname='V68bde']",
)
LOAD_MORE_SELECTORS = (
    "[data-value='Sort']",
    "button[data-value='Sort']",
    ".review-more-link",
)
CLICK_WAIT_MS = 2000
CONSENT_SETTLE_MS = 3000


class BrowserUnavailableError(RuntimeError):
    """Raised when the headless browser cannot be started."""


def looks_like_consent_page(title: str) -> bool:
    return any(marker in (title or "") for marker in CONSENT_TITLE_MARKERS)


def click_first(page: Any, selectors: Sequence[str], *, label: str) -> Optional[str]:
    """Click the first selector that resolves on the page; return it, or None."""
    for selector in selectors:
        try:
            element = page.query_selector(selector)
            if element is None:
                continue
            element.click()
        except PlaywrightError as exc:
            logger.debug("Failed to click %s button %s: %s", label, selector, exc)
            continue
        logger.info("Clicked %s button with selector %s", label, selector)
        return selector
    return None


def dismiss_consent(page: Any) -> bool:
    """Accept a cookie/consent interstitial if one is showing."""
    try:
        title = page.title()
    except PlaywrightError as exc:
        logger.warning("Unable to read page title: %s", exc)
        return False
    if not looks_like_consent_page(title):
        return False

    logger.info("Detected consent page (%s), attempting to dismiss it", title)
    clicked = click_first(page, CONSENT_BUTTON_SELECTORS, label="consent")
    if clicked:
        page.wait_for_timeout(CLICK_WAIT_MS)
    page.wait_for_timeout(CONSENT_SETTLE_MS)
    return clicked is not None


def load_more_reviews(page: Any) -> None:
    """Best effort: open the sort/more control, then scroll to the bottom."""
    try:
        if click_first(page, LOAD_MORE_SELECTORS, label="load-more"):
            page.wait_for_timeout(CLICK_WAIT_MS)
        page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        page.wait_for_timeout(CLICK_WAIT_MS)
    except PlaywrightError as exc:
        logger.warning("Could not load more reviews: %s", exc)


class BrowserSession:
    """Lazily started chromium instance shared across scrape calls.

    The sync Playwright API is bound to the thread that started it, so every
    browser call runs on one worker thread owned by the session.
    """

    def __init__(self, *, headless: bool = True, settle_delay_ms: int = 2000, timeout_ms: int = 30000) -> None:
        self.headless = headless
        self.settle_delay_ms = settle_delay_ms
        self.timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser")
            future = self._executor.submit(fn, *args)
        return future.result()

    def _ensure_browser(self) -> None:
        if self._browser is not None:
            if self._browser.is_connected():
                return
            logger.warning("Browser disconnected, reinitialising")
            self._teardown()
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless, args=list(LAUNCH_ARGS))
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to initialise browser: %s", exc)
            self._teardown()
            raise BrowserUnavailableError(str(exc)) from exc
        logger.info("Browser initialised (headless=%s)", self.headless)

    def load(self, url: str) -> str:
        """Render ``url`` and return the page HTML after consent and lazy loading."""
        return self._run(self._load, url)

    def _load(self, url: str) -> str:
        self._ensure_browser()
        try:
            page = self._browser.new_page(user_agent=USER_AGENT)
        except PlaywrightError:
            self._teardown()
            raise
        try:
            page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
            dismiss_consent(page)
            page.wait_for_timeout(self.settle_delay_ms)
            load_more_reviews(page)
            return page.content()
        finally:
            try:
                page.close()
            except PlaywrightError as exc:
                logger.debug("Error closing page: %s", exc)

    def _teardown(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Error closing browser: %s", exc)
            self._browser = None
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Error stopping playwright: %s", exc)
            self._playwright = None

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is None:
            return
        executor.submit(self._teardown).result()
        executor.shutdown(wait=True)
