"""Write one account's extraction result to a deterministic location.

Layout::

    <output>/<sanitized account name>/<from>_<to>.json

Re-running with the same account and range overwrites the same file.
"""

import json
import logging
import re
from pathlib import Path

from .errors import ExportError
from .models import Account, ExtractionResult, TimeRange

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[/\\&;$%@"<>()+, ]')
_RESERVED_NAMES = {".", ".."}


def sanitize_name(name: str) -> str:
    return _UNSAFE_CHARS.sub("", name or "")


def account_dir_name(account: Account) -> str:
    """Directory name for an account; falls back to the identifier."""
    name = next((n for n in (sanitize_name(account.display_name), sanitize_name(account.identifier))
                 if n and n not in _RESERVED_NAMES), "")
    if not name:
        raise ExportError(f"Account {account!r} has no usable name for an export directory")
    return name


def export_path(output_root: Path, sanitized_name: str, time_range: TimeRange) -> Path:
    return Path(output_root) / sanitized_name / f"{time_range.start}_{time_range.end}.json"


def download_path(download_root: Path, account: Account, time_range: TimeRange, suffix: str = "") -> Path:
    return Path(download_root) / account_dir_name(account) / f"{time_range.start}_{time_range.end}{suffix}"


def to_payload(result: ExtractionResult) -> dict:
    acc = result.account
    payload = {
        "account": {"id": acc.identifier, "name": acc.display_name, "type": acc.type.value},
        "timeRange": {"from": result.time_range.start, "to": result.time_range.end},
    }
    if result.balance is not None:
        payload["saldo"] = result.balance
    payload["transactions"] = [list(row) for row in result.rows]
    return payload


def write_result(output_root: Path, result: ExtractionResult) -> Path:
    out = export_path(output_root, account_dir_name(result.account), result.time_range)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(to_payload(result), ensure_ascii=False, indent=2), encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Could not write {out}: {e}") from e
    logger.info("Wrote %d transactions to %s", len(result.rows), out)
    return out
