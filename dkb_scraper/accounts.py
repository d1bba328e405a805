"""Account discovery, classification and selection."""

import logging
from collections.abc import Sequence

from playwright.sync_api import Error as PlaywrightError

from .errors import DiscoveryError
from .models import Account, AccountType
from .session import Session

logger = logging.getLogger(__name__)

CREDIT_CARD_MARKER = "Kreditkarte"
ALL_ACCOUNTS = "all"

_READ_OPTIONS_JS = """
(select) => Array.from(select.options).map(o => ({ value: o.value, label: o.label }))
"""


def classify(label: str) -> AccountType:
    return AccountType.CREDIT if CREDIT_CARD_MARKER in (label or "") else AccountType.DEBIT


def discover(session: Session) -> list[Account]:
    """Read every entry of the account selector, in the order the portal shows them."""
    session.require_authenticated()
    sel = session.selectors.account_select

    logger.info("Waiting for account dropdown to appear.")
    try:
        session.page.wait_for_selector(sel, state="visible", timeout=session.config.timeout_ms)
        options = session.page.eval_on_selector(sel, _READ_OPTIONS_JS)
    except PlaywrightError as e:
        raise DiscoveryError(f"Account selector not available: {e}") from e

    accounts = []
    for opt in options or []:
        label = (opt.get("label") or "").strip()
        accounts.append(Account(identifier=str(opt.get("value") or ""), display_name=label,
                                type=classify(label)))

    for acc in accounts:
        logger.info("Found account %s (%s)", acc.display_name, acc.type.value)
    return accounts


def select_accounts(requested: Sequence[str], discovered: Sequence[Account]) -> list[Account]:
    """Filter ``discovered`` by the caller's selectors.

    ``["all"]`` keeps everything. Otherwise an account is kept when its display
    name contains any requested selector (case-sensitive), e.g. an IBAN or card
    number fragment. Discovered order is preserved; an empty result is valid.
    """
    if list(requested) == [ALL_ACCOUNTS]:
        return list(discovered)

    selectors = [s for s in requested if s]
    return [acc for acc in discovered if any(s in acc.display_name for s in selectors)]
