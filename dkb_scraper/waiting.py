"""Bounded condition polling.

The portal exposes no reliable "ready" signal after selecting an account or
running a search, and Playwright exposes none for a file that lands on disk
outside ``Download.save_as``. Instead of sleeping a fixed amount, poll a
condition with an upper bound and fail with a descriptive ``WaitTimeout``.
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from .errors import WaitTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARTIAL_DOWNLOAD_SUFFIXES = (".crdownload", ".part", ".tmp", ".download")


def wait_until(predicate: Callable[[], T], *, timeout: float, interval: float,
               description: str) -> T:
    """Call ``predicate`` until it returns a truthy value and return that value.

    Exceptions from the predicate count as "not yet" while time remains; the
    last one is chained to the ``WaitTimeout``.
    """
    start = time.monotonic()
    last_exc: Exception | None = None
    while True:
        try:
            value = predicate()
            if value:
                return value
        except Exception as e:
            last_exc = e
        if time.monotonic() - start >= timeout:
            break
        time.sleep(interval)

    msg = f"Timed out after {timeout:.1f}s waiting for {description}"
    if last_exc is not None:
        raise WaitTimeout(msg) from last_exc
    raise WaitTimeout(msg)


def wait_for_stable(read: Callable[[], T], *, timeout: float, interval: float,
                    description: str) -> T:
    """Read until two consecutive reads agree, then return the settled value.

    A read returning ``None`` means "not available yet" and never settles.
    """
    previous: list = []

    def _settled():
        current = read()
        if current is None:
            previous.clear()
            return None
        if previous and previous[-1] == current:
            return (current,)
        previous[:] = [current]
        return None

    return wait_until(_settled, timeout=timeout, interval=interval, description=description)[0]


def _is_partial(path: Path) -> bool:
    return path.suffix.lower() in PARTIAL_DOWNLOAD_SUFFIXES


def wait_for_stable_file(path: Path, *, timeout: float, interval: float) -> Path:
    """Wait until ``path`` exists, has no partial sibling and a stable size (empty exports included)."""

    def _size():
        if not path.exists():
            return None
        partials = [p for p in path.parent.glob(f"{path.name}*") if _is_partial(p)]
        if partials:
            logger.debug("Download still in progress: %s", ", ".join(p.name for p in partials))
            return None
        return path.stat().st_size

    wait_for_stable(_size, timeout=timeout, interval=interval,
                    description=f"download {path.name} to settle")
    return path
