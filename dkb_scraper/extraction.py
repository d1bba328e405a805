"""Per-account extraction: select, query, read rows or download, read balance.

Each account runs through a small state machine::

    Selecting -> QueryBuilt -> Searching -> ResultsReady | Downloading -> Done
                                                                      \\-> Failed

Any error moves the machine to ``Failed`` and propagates to the workflow.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError

from .config import ExtractMode, PortalSelectors
from .errors import ConfigurationError, ExtractionError, QueryError, ScraperError, WaitTimeout
from .logging_setup import TRACE
from .models import Account, AccountType, ExtractionResult, TimeRange
from .session import Session
from .waiting import wait_for_stable, wait_for_stable_file, wait_until

logger = logging.getLogger(__name__)

_READ_ROWS_JS = """
(rows) => rows.map(tr => Array.from(tr.children).map(td => (td.innerText || '').trim()))
"""


class ExtractionState(str, Enum):
    SELECTING = "selecting"
    QUERY_BUILT = "query_built"
    SEARCHING = "searching"
    RESULTS_READY = "results_ready"
    DOWNLOADING = "downloading"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    ExtractionState.SELECTING: {ExtractionState.QUERY_BUILT},
    ExtractionState.QUERY_BUILT: {ExtractionState.SEARCHING},
    ExtractionState.SEARCHING: {ExtractionState.RESULTS_READY, ExtractionState.DOWNLOADING},
    ExtractionState.RESULTS_READY: {ExtractionState.DONE},
    ExtractionState.DOWNLOADING: {ExtractionState.DONE},
    ExtractionState.DONE: set(),
    ExtractionState.FAILED: set(),
}


@dataclass(frozen=True)
class QueryFields:
    from_field: str
    to_field: str


@dataclass(frozen=True)
class Query:
    fields: QueryFields
    time_range: TimeRange


def query_field_mapping(selectors: PortalSelectors) -> dict[AccountType, QueryFields]:
    """Date input fields per account type. Must cover every ``AccountType``."""
    mapping = {
        AccountType.DEBIT: QueryFields(selectors.debit_from, selectors.debit_to),
        AccountType.CREDIT: QueryFields(selectors.credit_from, selectors.credit_to),
    }
    missing = set(AccountType) - set(mapping)
    if missing:
        raise ConfigurationError(f"No query fields for account types: {sorted(t.value for t in missing)}")
    return mapping


def build_query(account_type, time_range: TimeRange,
                mapping: Mapping[AccountType, QueryFields]) -> Query:
    if not isinstance(account_type, AccountType) or account_type not in mapping:
        raise ConfigurationError(f"No query field mapping for account type {account_type!r}")
    return Query(fields=mapping[account_type], time_range=time_range)


class AccountExtraction:
    """Drives one account through the extraction state machine."""

    def __init__(self, session: Session, account: Account, time_range: TimeRange,
                 download_target: Path | None = None) -> None:
        self.session = session
        self.account = account
        self.time_range = time_range
        self.download_target = download_target
        self.state = ExtractionState.SELECTING
        self.history = [self.state]
        self._mapping = query_field_mapping(session.selectors)

    @property
    def _cfg(self):
        return self.session.config

    def _advance(self, new_state: ExtractionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ScraperError(f"Illegal extraction transition {self.state.value} -> {new_state.value}")
        logger.debug("[%s] %s -> %s", self.account.display_name, self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def run(self) -> ExtractionResult:
        try:
            self.session.require_authenticated()
            self.select_account()
            query = build_query(self.account.type, self.time_range, self._mapping)
            self._advance(ExtractionState.QUERY_BUILT)

            self._advance(ExtractionState.SEARCHING)
            self.apply_query(query)

            result = ExtractionResult(account=self.account, time_range=self.time_range)
            if self._cfg.mode is ExtractMode.FILE:
                self._advance(ExtractionState.DOWNLOADING)
                result.downloaded_file = self.extract_file()
            else:
                self._advance(ExtractionState.RESULTS_READY)
                result.rows = self.extract_rows()

            if self._cfg.include_balance:
                result.balance = self.get_balance()

            self._advance(ExtractionState.DONE)
            return result
        except Exception:
            self.state = ExtractionState.FAILED
            self.history.append(self.state)
            raise

    def select_account(self) -> None:
        page = self.session.page
        sel = self.session.selectors
        logger.info("Selecting account: %s", self.account.display_name)
        try:
            page.select_option(sel.account_select, self.account.identifier)

            def _selected() -> bool:
                if page.input_value(sel.account_select) != self.account.identifier:
                    return False
                # Short per-poll wait; the overall bound belongs to wait_until.
                self.session.wait_until_idle(timeout_ms=max(1, int(self._cfg.poll_interval * 1000)))
                return True

            wait_until(_selected, timeout=self._cfg.settle_timeout, interval=self._cfg.poll_interval,
                       description=f"account {self.account.display_name} to be selected")
        except (PlaywrightError, WaitTimeout) as e:
            raise QueryError(f"Could not select account {self.account.display_name}: {e}") from e

    def apply_query(self, query: Query) -> None:
        page = self.session.page
        logger.info("Selecting time range for %s: %s", self.account.type.value, query.time_range)
        try:
            page.fill(query.fields.from_field, query.time_range.start)
            page.fill(query.fields.to_field, query.time_range.end)
            page.click(self.session.selectors.search_button)
            self.session.wait_until_idle()
        except PlaywrightError as e:
            raise QueryError(f"Search for {self.account.display_name} failed: {e}") from e

    def _read_rows(self) -> list[list[str]]:
        return self.session.page.eval_on_selector_all(self.session.selectors.result_row, _READ_ROWS_JS)

    def extract_rows(self) -> list[list[str]]:
        logger.info("Getting transactions.")
        try:
            rows = wait_for_stable(self._read_rows, timeout=self._cfg.settle_timeout,
                                   interval=self._cfg.poll_interval,
                                   description=f"result rows of {self.account.display_name}")
        except WaitTimeout as e:
            raise ExtractionError(str(e)) from e

        rows = [[str(cell).strip() for cell in row] for row in rows or []]
        logger.info("Found %d transactions for %s", len(rows), self.account.display_name)
        logger.log(TRACE, "Transactions: %s", rows)
        return rows

    def extract_file(self) -> Path:
        """Trigger the portal's export and save the file to ``download_target``."""
        if self.download_target is None:
            raise ExtractionError("File mode requires a download target")
        page = self.session.page
        cfg = self._cfg
        logger.info("Exporting transactions for %s", self.account.display_name)
        try:
            with page.expect_download(timeout=int(cfg.download_timeout * 1000)) as download_info:
                page.click(self.session.selectors.export_button)
            download = download_info.value

            target = self.download_target
            suffix = Path(download.suggested_filename or "").suffix
            # Target names end in a date ("..._31.01.2024"), so append rather than with_suffix().
            if suffix and not target.name.endswith(suffix):
                target = target.with_name(target.name + suffix)
            target.parent.mkdir(parents=True, exist_ok=True)
            download.save_as(target)

            wait_for_stable_file(target, timeout=cfg.download_timeout, interval=cfg.poll_interval)
        except (PlaywrightError, WaitTimeout, OSError) as e:
            raise ExtractionError(f"Export for {self.account.display_name} failed: {e}") from e

        logger.info("Saved: %s", target)
        return target

    def get_balance(self) -> str:
        try:
            text = self.session.page.inner_text(self.session.selectors.balance)
        except PlaywrightError as e:
            raise ExtractionError(f"Could not read balance of {self.account.display_name}: {e}") from e
        balance = " ".join((text or "").split())
        logger.info("Balance of %s: %s", self.account.display_name, balance)
        return balance
