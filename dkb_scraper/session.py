"""Browser session lifecycle: open, login, navigate, logout, close."""

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .config import Credentials, ScraperConfig
from .errors import LoginError, NavigationError, ScraperError, SessionStartError

logger = logging.getLogger(__name__)

# A launcher returns a ready page plus a callback releasing everything it started.
Launcher = Callable[[ScraperConfig], tuple[object, Callable[[], None]]]


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class Session:
    """Owns the Playwright page for one run and releases it exactly once."""

    def __init__(self, page, release: Callable[[], None], config: ScraperConfig) -> None:
        self.page = page
        self.config = config
        self.state = SessionState.ANONYMOUS
        self._release = release

    @property
    def selectors(self):
        return self.config.selectors

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def require_authenticated(self) -> None:
        if self.state is not SessionState.AUTHENTICATED:
            raise ScraperError(f"Session is {self.state.value}; login required before account operations")

    def wait_until_idle(self, timeout_ms: int | None = None) -> None:
        """Block until the page-level busy indicator is hidden."""
        self.page.wait_for_selector(self.selectors.busy_indicator, state="hidden",
                                    timeout=timeout_ms or self.config.timeout_ms)

    def screenshot(self, path: Path) -> Path | None:
        """Best-effort full page screenshot; never raises."""
        if self.closed:
            return None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(path), full_page=True)
            logger.info("Saved screenshot %s", path)
            return path
        except Exception as e:
            logger.warning("Could not take screenshot %s: %s", path.name, e)
            return None

    def close(self) -> None:
        if self.closed:
            return
        self.state = SessionState.CLOSED
        try:
            self._release()
            logger.info("Closed browser.")
        except Exception as e:
            logger.warning("Error while closing browser: %s", e)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def launch_chromium(config: ScraperConfig):
    """Start Playwright + Chromium and return ``(page, release)``."""
    pw = sync_playwright().start()
    try:
        browser = pw.chromium.launch(
            headless=not config.interactive,
            timeout=config.timeout_ms,
            args=["--no-sandbox", "--disable-setuid-sandbox"],
        )
        width, height = config.viewport
        context = browser.new_context(
            viewport={"width": width, "height": height},
            accept_downloads=True,
        )
        page = context.new_page()
        page.set_default_timeout(config.timeout_ms)
    except Exception:
        pw.stop()
        raise

    def release() -> None:
        try:
            context.close()
            browser.close()
        finally:
            pw.stop()

    return page, release


def open_session(config: ScraperConfig, launcher: Launcher = launch_chromium) -> Session:
    """Open a browser session on the portal's start page."""
    logger.info("Setting up browser (interactive=%s).", config.interactive)
    try:
        page, release = launcher(config)
    except Exception as e:
        raise SessionStartError(f"Could not start browser: {e}") from e

    session = Session(page, release, config)
    try:
        page.goto(config.base_url, wait_until="domcontentloaded")
        page.wait_for_load_state("load")
    except PlaywrightError as e:
        session.close()
        raise SessionStartError(f"Could not open {config.base_url}: {e}") from e
    return session


def login(session: Session, credentials: Credentials) -> None:
    """Fill name and PIN, submit and wait for the post-login navigation."""
    if session.state is not SessionState.ANONYMOUS:
        raise LoginError(f"Cannot log in from state {session.state.value}")

    page = session.page
    sel = session.selectors
    timeout = session.config.timeout_ms
    session.state = SessionState.AUTHENTICATING
    try:
        logger.info("Entering login name %s", credentials.login_name)
        page.wait_for_selector(sel.login_name_input, state="visible", timeout=timeout)
        page.fill(sel.login_name_input, credentials.login_name)

        logger.info("Entering PIN")
        page.wait_for_selector(sel.login_pin_input, state="visible", timeout=timeout)
        page.fill(sel.login_pin_input, credentials.pin)

        logger.info("Pressing login button.")
        with page.expect_navigation(wait_until="networkidle", timeout=timeout):
            page.click(sel.login_button)

        # The logout control only exists for an authenticated session.
        page.wait_for_selector(sel.logout_button, state="attached", timeout=timeout)
    except PlaywrightError as e:
        session.state = SessionState.ANONYMOUS
        # Playwright messages can echo typed values; keep the PIN out of them.
        raise LoginError(f"Login failed: {_redact(str(e), credentials.pin)}") from None

    session.state = SessionState.AUTHENTICATED
    logger.info("Logged in as %s", credentials.login_name)


def _redact(text: str, secret: str) -> str:
    return text.replace(secret, "***") if secret else text


def navigate_to_transactions(session: Session) -> None:
    session.require_authenticated()
    logger.info("Navigating to transaction page.")
    try:
        session.page.click(session.selectors.transactions_menu)
        session.wait_until_idle()
    except PlaywrightError as e:
        raise NavigationError(f"Could not open the transaction page: {e}") from e


def logout(session: Session) -> bool:
    """Press the logout button. Best effort: failures are logged, not raised."""
    if session.state is not SessionState.AUTHENTICATED:
        return False
    logger.info("Pressing logout button.")
    try:
        session.page.click(session.selectors.logout_button)
        session.page.wait_for_load_state("load")
    except Exception as e:
        logger.warning("Logout failed: %s", e)
        return False
    finally:
        session.state = SessionState.ANONYMOUS
    logger.info("Logged out.")
    return True
