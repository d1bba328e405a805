"""Domain types shared by the workflow components."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path

from .errors import InvalidTimeRangeError

DATE_FORMAT = "%d.%m.%Y"


class AccountType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class Account:
    """One entry of the portal's account selector.

    ``identifier`` is the opaque option value submitted to select the account;
    ``display_name`` is the option label as rendered by the portal.
    """

    identifier: str
    display_name: str = field(compare=False)
    type: AccountType = field(compare=False)


def _parse_ddmmyyyy(s: str) -> date:
    return datetime.strptime(s, DATE_FORMAT).date()


@dataclass(frozen=True)
class TimeRange:
    """Inclusive date window, kept in the portal's ``DD.MM.YYYY`` text form."""

    start: str
    end: str

    @classmethod
    def parse(cls, date_from: str | None, date_to: str | None) -> "TimeRange":
        if not date_from or not date_to:
            raise InvalidTimeRangeError("both --from and --to are required (DD.MM.YYYY)")
        try:
            df = _parse_ddmmyyyy(date_from.strip())
            dt = _parse_ddmmyyyy(date_to.strip())
        except ValueError as exc:
            raise InvalidTimeRangeError(f"invalid date (expected DD.MM.YYYY): {exc}") from exc

        if df > dt:
            raise InvalidTimeRangeError(f"date_from {date_from} is after date_to {date_to}")

        return cls(df.strftime(DATE_FORMAT), dt.strftime(DATE_FORMAT))

    def __str__(self) -> str:
        return f"{self.start} - {self.end}"


@dataclass
class ExtractionResult:
    account: Account
    time_range: TimeRange
    rows: list[list[str]] = field(default_factory=list)
    balance: str | None = None
    downloaded_file: Path | None = None
