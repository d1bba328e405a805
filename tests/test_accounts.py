import pytest

from dkb_scraper.accounts import classify, discover, select_accounts
from dkb_scraper.errors import DiscoveryError, ScraperError
from dkb_scraper.models import Account, AccountType
from dkb_scraper.session import Session, SessionState

from .fakes import FakePage

GIRO = Account("acc-1", "Girokonto DE12 1203 0000 IBAN123", AccountType.DEBIT)
CARD = Account("acc-2", "Kreditkarte 4930********4567", AccountType.CREDIT)
TAGESGELD = Account("acc-3", "Tagesgeld DE98 7654 IBAN999", AccountType.DEBIT)
DISCOVERED = [GIRO, CARD, TAGESGELD]


def _session(page, config):
    s = Session(page, lambda: None, config)
    s.state = SessionState.AUTHENTICATED
    return s


@pytest.mark.parametrize("label,expected", [
    ("Kreditkarte 4930********4567", AccountType.CREDIT),
    ("DKB-VISA-Kreditkarte", AccountType.CREDIT),
    ("Girokonto DE12 1203", AccountType.DEBIT),
    ("kreditkarte lowercase", AccountType.DEBIT),
    ("", AccountType.DEBIT),
])
def test_classify_by_credit_card_marker(label, expected):
    assert classify(label) is expected


def test_select_all_returns_discovered_unchanged():
    assert select_accounts(["all"], DISCOVERED) == DISCOVERED


def test_select_by_substring_keeps_discovered_order():
    assert select_accounts(["IBAN999", "4567"], DISCOVERED) == [CARD, TAGESGELD]


def test_select_does_not_duplicate_accounts_matching_twice():
    assert select_accounts(["IBAN", "DE"], DISCOVERED) == [GIRO, TAGESGELD]


def test_select_is_case_sensitive():
    assert select_accounts(["iban123"], DISCOVERED) == []


def test_select_without_match_is_empty_not_an_error():
    assert select_accounts(["nope"], DISCOVERED) == []
    assert select_accounts(["all"], []) == []


def test_all_mixed_with_other_selectors_is_treated_as_a_substring():
    assert select_accounts(["all", "4567"], DISCOVERED) == [CARD]


def test_discover_reads_options_in_portal_order(config):
    page = FakePage(accounts=[("acc-2", " Kreditkarte 4567 "), ("acc-1", "Girokonto IBAN123")])
    page.visible.add(config.selectors.account_select)

    found = discover(_session(page, config))

    assert [a.identifier for a in found] == ["acc-2", "acc-1"]
    assert [a.display_name for a in found] == ["Kreditkarte 4567", "Girokonto IBAN123"]
    assert [a.type for a in found] == [AccountType.CREDIT, AccountType.DEBIT]


def test_discover_without_selector_raises_discovery_error(config):
    with pytest.raises(DiscoveryError):
        discover(_session(FakePage(accounts=[("a", "b")]), config))


def test_discover_requires_login(config):
    page = FakePage()
    page.visible.add(config.selectors.account_select)
    with pytest.raises(ScraperError, match="login required"):
        discover(Session(page, lambda: None, config))
