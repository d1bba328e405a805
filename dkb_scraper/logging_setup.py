"""Logging configuration for the ``dkb_scraper`` package.

Library modules only call ``logging.getLogger(__name__)``; the CLI calls
``configure_logging`` once at startup and installs the secret filter as soon
as the credentials are known.
"""

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "dkb_scraper"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = logging.getLevelName(level)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv("DKB_SCRAPER_LOG_LEVEL")
    if env_val:
        return _parse_level(env_val)
    return logging.WARNING


def level_from_flags(verbose: bool = False, trace: bool = False) -> int | None:
    if trace:
        return TRACE
    if verbose:
        return logging.INFO
    return None


def configure_logging(level: int | str | None = None, *, stream: IO[str] | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Calling it again replaces the previous handler, so tests and repeated CLI
    invocations in one process do not stack handlers.
    """
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if getattr(h, "_dkb_scraper_handler", False):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    handler._dkb_scraper_handler = True
    handler.setLevel(resolved)

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


class SecretRedactingFilter(logging.Filter):
    """Replace a secret value with ``***`` in every record passing through."""

    def __init__(self, secret: str) -> None:
        super().__init__()
        self.secret = secret

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secret:
            return True
        msg = record.getMessage()
        if self.secret in msg:
            record.msg = msg.replace(self.secret, "***")
            record.args = None
        # Tracebacks are rendered from exc_text once it is set.
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text and self.secret in record.exc_text:
            record.exc_text = record.exc_text.replace(self.secret, "***")
            record.exc_info = None
        if record.stack_info and self.secret in record.stack_info:
            record.stack_info = record.stack_info.replace(self.secret, "***")
        return True


def install_secret_filter(secret: str) -> SecretRedactingFilter:
    flt = SecretRedactingFilter(secret)
    for h in logging.getLogger(_PKG_LOGGER_NAME).handlers:
        h.addFilter(flt)
    return flt
