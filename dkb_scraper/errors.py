"""Error kinds raised by the scraper workflow.

Every failure is fatal to the run. Components raise one of the subclasses
below, wrapping Playwright errors with ``raise ... from exc``; the workflow
executor is the only place that catches them.
"""


class ScraperError(RuntimeError):
    """Base class for all workflow failures."""


class SessionStartError(ScraperError):
    pass


class LoginError(ScraperError):
    pass


class NavigationError(ScraperError):
    pass


class DiscoveryError(ScraperError):
    pass


class ConfigurationError(ScraperError):
    pass


class InvalidTimeRangeError(ConfigurationError, ValueError):
    """Raised for malformed dates or a range whose start is after its end."""


class QueryError(ScraperError):
    pass


class ExtractionError(ScraperError):
    pass


class ExportError(ScraperError):
    pass


class WaitTimeout(ScraperError):
    """A bounded poll ran out of time before its condition held."""
