"""Run configuration: portal address, credentials, selectors and timings.

Everything here is built once by the CLI and passed down read-only. The PIN
never appears in ``repr()`` output and is never logged.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

BASE_URL = "https://www.dkb.de/banking"

DEFAULT_SCREENSHOT_DIR = Path("screenshots")
DEFAULT_OUTPUT_DIR = Path("output")
DEFAULT_DOWNLOAD_DIR = Path("downloads")

DEFAULT_TIMEOUT_MS = 60000


class ExtractMode(str, Enum):
    ROWS = "rows"
    FILE = "file"


@dataclass(frozen=True)
class Credentials:
    login_name: str
    pin: str = field(repr=False)


@dataclass(frozen=True)
class PortalSelectors:
    """CSS selectors of the DKB banking UI."""

    busy_indicator: str = "body > div.ajax_loading"

    login_name_input: str = "#loginInputSelector"
    login_pin_input: str = "#pinInputSelector"
    login_button: str = "#buttonlogin"
    logout_button: str = "#logout"

    transactions_menu: str = "#menu_0\\2e 0\\2e 0-node"
    account_select: str = "select[id$='_slAllAccounts']"

    debit_from: str = "input[id$='_transactionDate']"
    debit_to: str = "input[id$='_toTransactionDate']"
    credit_from: str = "input[id$='_postingDate']"
    credit_to: str = "input[id$='_toPostingDate']"
    search_button: str = "#searchbutton"

    result_row: str = ".mainRow"
    export_button: str = "a[href*='csvExport']"
    balance: str = "#accountBalance"


@dataclass(frozen=True)
class ScraperConfig:
    credentials: Credentials
    base_url: str = BASE_URL
    selectors: PortalSelectors = field(default_factory=PortalSelectors)
    viewport: tuple[int, int] = (1280, 1280)
    interactive: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    # Bounded polling that replaces fixed settle delays (seconds).
    poll_interval: float = 0.25
    settle_timeout: float = 10.0
    download_timeout: float = 60.0

    screenshot_dir: Path = DEFAULT_SCREENSHOT_DIR
    output_dir: Path = DEFAULT_OUTPUT_DIR
    download_dir: Path = DEFAULT_DOWNLOAD_DIR
    mode: ExtractMode = ExtractMode.ROWS
    include_balance: bool = False

    def __post_init__(self) -> None:
        # A downloaded portal file has nowhere to carry the balance.
        if self.mode is ExtractMode.FILE and self.include_balance:
            raise ConfigurationError("Reading the balance is only supported in rows mode")


def load_credentials(environ: Mapping[str, str] | None = None,
                     dotenv_path: Path | None = None) -> tuple[Credentials, str]:
    """Return ``(credentials, base_url)`` from the environment.

    A ``.env`` file is read first (without overriding variables that are
    already set). ``LOGIN_NAME`` and ``LOGIN_PIN`` are required,
    ``DKB_BASE_URL`` optionally overrides the portal address.
    """
    if environ is None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
        environ = os.environ

    login_name = (environ.get("LOGIN_NAME") or "").strip()
    pin = environ.get("LOGIN_PIN") or ""
    missing = [k for k, v in (("LOGIN_NAME", login_name), ("LOGIN_PIN", pin)) if not v]
    if missing:
        raise ConfigurationError(
            f"Missing credentials: {', '.join(missing)}. "
            "Set them in the environment or in a .env file."
        )

    base_url = (environ.get("DKB_BASE_URL") or BASE_URL).strip().rstrip("/")
    return Credentials(login_name=login_name, pin=pin), base_url
