"""
Error taxonomy for the scraping pipeline.

Every failure the pipeline can report is one of a small closed set of kinds.
Only `ScrapeError` reaches the caller; it wraps the underlying cause and
renders the single user-facing message.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INPUT = "input"
    CONFIG = "config"
    FETCH = "fetch"
    EXTRACTION = "extraction"


class PageBriefError(Exception):
    kind: ErrorKind = ErrorKind.FETCH
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(PageBriefError):
    """Missing or empty URL."""
    kind = ErrorKind.INPUT


class ConfigError(PageBriefError):
    """Missing credential or browser executable. A deployment defect."""
    kind = ErrorKind.CONFIG


class FetchError(PageBriefError):
    """Retrieval-layer failure; re-invoking may succeed."""
    kind = ErrorKind.FETCH
    retryable = True


class ServiceFetchError(FetchError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class BrowserFetchError(FetchError):
    pass


class NavigationTimeoutError(BrowserFetchError):
    pass


class ExtractionError(PageBriefError):
    """The retrieved document could not be parsed as HTML."""
    kind = ErrorKind.EXTRACTION


class ScrapeError(PageBriefError):
    """
    Top-level failure surfaced to the caller.

    `kind` and `retryable` mirror the wrapped cause so the caller can decide
    whether a resend makes sense.
    """

    PREFIX = "Scraping failed"

    def __init__(self, cause: PageBriefError):
        super().__init__(f"{self.PREFIX}: {cause.message}")
        self.cause = cause
        self.kind = cause.kind
        self.retryable = cause.retryable
