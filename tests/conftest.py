import logging
from pathlib import Path

import pytest

from dkb_scraper.config import Credentials, ScraperConfig
from dkb_scraper.models import TimeRange

from .fakes import FakeLauncher, FakePage

PIN = "s3cr3t-PIN"

GIRO = ("acc-1", "Girokonto DE12 1203 0000 IBAN123")
CARD = ("acc-2", "Kreditkarte 4930********4567")


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """``configure_logging`` detaches the package logger from the root; undo it."""
    yield
    logger = logging.getLogger("dkb_scraper")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def time_range() -> TimeRange:
    return TimeRange.parse("01.01.2024", "31.01.2024")


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> ScraperConfig:
        values = dict(
            credentials=Credentials(login_name="max.mustermann", pin=PIN),
            base_url="https://banking.example",
            poll_interval=0,
            settle_timeout=0.2,
            download_timeout=0.5,
            screenshot_dir=tmp_path / "screenshots",
            output_dir=tmp_path / "output",
            download_dir=tmp_path / "downloads",
        )
        values.update(overrides)
        return ScraperConfig(**values)

    return _make


@pytest.fixture
def config(make_config) -> ScraperConfig:
    return make_config()


@pytest.fixture
def portal() -> FakePage:
    return FakePage(
        accounts=[GIRO, CARD],
        rows={
            "acc-1": [[" 02.01.2024 ", "02.01.2024", "Miete Januar", "-800,00"],
                      ["15.01.2024", "15.01.2024", "Gehalt", "2.500,00"]],
            "acc-2": [["05.01.2024", "06.01.2024", "Buchhandlung", "-23,90"]],
        },
        balances={"acc-1": "1.700,00  EUR", "acc-2": "-23,90 EUR"},
    )


@pytest.fixture
def launcher(portal) -> FakeLauncher:
    return FakeLauncher(portal)
