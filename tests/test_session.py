import logging

import pytest

from dkb_scraper import session as session_ctl
from dkb_scraper.config import Credentials
from dkb_scraper.errors import LoginError, NavigationError, SessionStartError
from dkb_scraper.session import SessionState

from .conftest import PIN
from .fakes import FakeLauncher, FakePage


def _raising(exc):
    def _fn(*args, **kwargs):
        raise exc
    return _fn


def test_open_navigates_to_base_url(config):
    launcher = FakeLauncher()
    s = session_ctl.open_session(config, launcher=launcher)
    assert launcher.page.visited == ["https://banking.example"]
    assert s.state is SessionState.ANONYMOUS


def test_open_failure_is_session_start_error(config):
    with pytest.raises(SessionStartError, match="no chromium"):
        session_ctl.open_session(config, launcher=FakeLauncher(error=RuntimeError("no chromium")))


def test_login_and_navigate(config):
    launcher = FakeLauncher()
    s = session_ctl.open_session(config, launcher=launcher)

    session_ctl.login(s, config.credentials)
    session_ctl.navigate_to_transactions(s)

    sel = config.selectors
    assert s.state is SessionState.AUTHENTICATED
    assert launcher.page.filled == {sel.login_name_input: "max.mustermann", sel.login_pin_input: PIN}
    assert launcher.page.clicks == [sel.login_button, sel.transactions_menu]


def test_missing_name_field_is_login_error(config):
    s = session_ctl.open_session(config, launcher=FakeLauncher(FakePage(missing=[config.selectors.login_name_input])))
    with pytest.raises(LoginError):
        session_ctl.login(s, config.credentials)
    assert s.state is SessionState.ANONYMOUS


def test_rejected_credentials_are_login_error(config):
    # No logout control after submitting: the portal kept us on the login page.
    page = FakePage(missing=[config.selectors.logout_button])
    s = session_ctl.open_session(config, launcher=FakeLauncher(page))
    with pytest.raises(LoginError):
        session_ctl.login(s, config.credentials)


def test_pin_never_logged(config, caplog, monkeypatch):
    page = FakePage()

    def fill(selector, value, **kwargs):
        if value == PIN:
            raise session_ctl.PlaywrightError(f"cannot type {value!r} into {selector}")

    monkeypatch.setattr(page, "fill", fill)
    s = session_ctl.open_session(config, launcher=FakeLauncher(page))

    with caplog.at_level(logging.DEBUG, logger="dkb_scraper"):
        session_ctl.login(session_ctl.open_session(config, launcher=FakeLauncher()), config.credentials)
        with pytest.raises(LoginError) as excinfo:
            session_ctl.login(s, Credentials("max.mustermann", PIN))

    assert "max.mustermann" in caplog.text
    assert PIN not in caplog.text
    assert PIN not in str(excinfo.value)
    assert PIN not in repr(config)


def test_navigation_failure(config):
    page = FakePage(missing=[config.selectors.transactions_menu])
    s = session_ctl.open_session(config, launcher=FakeLauncher(page))
    session_ctl.login(s, config.credentials)
    with pytest.raises(NavigationError):
        session_ctl.navigate_to_transactions(s)


def test_logout_is_best_effort(config, monkeypatch):
    launcher = FakeLauncher()
    s = session_ctl.open_session(config, launcher=launcher)
    assert session_ctl.logout(s) is False  # not logged in: nothing to do

    session_ctl.login(s, config.credentials)
    monkeypatch.setattr(launcher.page, "click", _raising(RuntimeError("gone")))
    assert session_ctl.logout(s) is False
    assert s.state is SessionState.ANONYMOUS


def test_close_releases_exactly_once(config):
    launcher = FakeLauncher()
    with session_ctl.open_session(config, launcher=launcher) as s:
        s.close()
    s.close()
    assert launcher.releases == 1
    assert s.state is SessionState.CLOSED
    assert s.screenshot(config.screenshot_dir / "late.png") is None


def test_screenshot_failure_is_swallowed(config, monkeypatch):
    launcher = FakeLauncher()
    s = session_ctl.open_session(config, launcher=launcher)
    monkeypatch.setattr(launcher.page, "screenshot", _raising(RuntimeError("crashed")))
    assert s.screenshot(config.screenshot_dir / "error.png") is None


def test_unreachable_start_page_releases_browser(config, monkeypatch):
    launcher = FakeLauncher()
    monkeypatch.setattr(launcher.page, "goto", _raising(session_ctl.PlaywrightError("net::ERR_NAME_NOT_RESOLVED")))

    with pytest.raises(SessionStartError, match="ERR_NAME_NOT_RESOLVED"):
        session_ctl.open_session(config, launcher=launcher)
    assert launcher.releases == 1
