"""DKB web banking transaction scraper built on Playwright."""

__version__ = "0.1.0"
